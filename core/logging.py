"""
Unified Logging Configuration

This module sets up a centralized logging system for the entire application.
All modules should import and use the logger from this module instead of
using print() statements.

Usage:
    from core.logging import logger, get_logger

    logger.info("Collection started")

    log = get_logger(__name__)
    log.warning("Skipping malformed record")

Log Levels (from most to least verbose):
    DEBUG    - Request/response details, per-record skips
    INFO     - Cycle summaries, lifecycle events
    WARNING  - Retries, dropped events, rejected records
    ERROR    - Failed cycles, failed subscribers
    CRITICAL - Unused by the collector (nothing here is fatal)

Configuration:
    Log level is controlled by the LOG_LEVEL setting in .env file.
"""

import logging
import sys
from typing import Optional


def setup_logging(
    log_level: str = "INFO",
    log_format: Optional[str] = None,
    include_timestamp: bool = True,
    include_module: bool = True
) -> logging.Logger:
    """
    Configure and return the application logger.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_format: Custom log format string (uses default if None)
        include_timestamp: Include timestamp in log messages
        include_module: Include logger name in log messages

    Returns:
        logging.Logger: Configured logger instance

    Example:
        >>> logger = setup_logging(log_level="DEBUG")
        >>> logger.info("Application started")
        2024-01-01 12:00:00 [INFO] fundingmonitor: Application started
    """
    if log_format is None:
        format_parts = []

        if include_timestamp:
            format_parts.append("%(asctime)s")

        format_parts.append("[%(levelname)s]")

        if include_module:
            format_parts.append("%(name)s:")

        format_parts.append("%(message)s")

        log_format = " ".join(format_parts)

    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True
    )

    logger = logging.getLogger("fundingmonitor")
    logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    return logger


# ============================================
# Initialize Logger with Settings
# ============================================

try:
    from core.config import settings
    log_level = settings.log_level if hasattr(settings, 'log_level') else "INFO"
except ImportError:
    log_level = "INFO"

logger = setup_logging(log_level=log_level)


# ============================================
# Convenience Functions
# ============================================

def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a specific module or component.

    Args:
        name: Name for the logger (typically __name__)

    Returns:
        logging.Logger: Logger named "fundingmonitor.<name>"

    Example:
        # In core/fetcher.py:
        logger = get_logger(__name__)  # "fundingmonitor.core.fetcher"
    """
    return logging.getLogger(f"fundingmonitor.{name}")


# ============================================
# Log Helper Functions
# ============================================

def log_api_request(exchange: str, url: str, params: dict = None, attempt: int = 1) -> None:
    """
    Log an outbound API request with consistent formatting.

    Example:
        >>> log_api_request("bybit", "https://api.bybit.com/v5/market/tickers", {"category": "linear"})
        [DEBUG] API Request: bybit https://api.bybit.com/v5/market/tickers | Params: {'category': 'linear'} | Attempt 1
    """
    params_str = f" | Params: {params}" if params else ""
    logger.debug(f"API Request: {exchange} {url}{params_str} | Attempt {attempt}")


def log_api_response(exchange: str, url: str, status: int, response_time: float = None) -> None:
    """
    Log an API response with status and timing information.

    Example:
        >>> log_api_response("bybit", "https://api.bybit.com/v5/market/tickers", 200, 0.342)
        [DEBUG] API Response: bybit https://api.bybit.com/v5/market/tickers | Status: 200 | Time: 0.342s
    """
    time_str = f" | Time: {response_time:.3f}s" if response_time else ""
    logger.debug(f"API Response: {exchange} {url} | Status: {status}{time_str}")


def log_collection_cycle(
    exchange: str,
    fetched: int,
    persisted: int,
    skipped: int = 0,
    duration: float = None,
    error: str = None
) -> None:
    """
    Log the outcome of one exchange collection cycle.

    Failed cycles are logged at ERROR, everything else at INFO.

    Example:
        >>> log_collection_cycle("gate", fetched=120, persisted=118, skipped=2, duration=1.204)
        [INFO] Collection: gate | Fetched: 120 | Persisted: 118 | Skipped: 2 | Time: 1.204s
    """
    time_str = f" | Time: {duration:.3f}s" if duration is not None else ""
    if error:
        logger.error(f"Collection: {exchange} failed | Fetched: {fetched}{time_str} | {error}")
        return
    logger.info(
        f"Collection: {exchange} | Fetched: {fetched} | Persisted: {persisted} "
        f"| Skipped: {skipped}{time_str}"
    )


logger.debug("Logging system initialized")
