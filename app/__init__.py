"""
FastAPI Application Package

This package contains the FastAPI application: read views over collected
funding rates, the live update WebSocket, and the lifespan that starts and
stops the collection scheduler.
"""
