#!/usr/bin/env python3
"""
Start script - runs the API and the collection scheduler under uvicorn.

The PORT environment variable (set by most hosting platforms) overrides
APP_PORT from the settings.
"""
import os

if __name__ == "__main__":
    from core.config import settings

    port = int(os.getenv("PORT", settings.app_port))

    # Import and run uvicorn programmatically
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.app_host,
        port=port,
        log_level=settings.log_level.lower()
    )
