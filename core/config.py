"""
Configuration Management Module

This module handles loading, validating, and providing access to application configuration
from environment variables (.env file).

Uses Pydantic Settings for automatic validation and type conversion.

Key Features:
- Loads configuration from .env file
- Validates collection, retry and alerting parameters
- Provides type-safe access to configuration values
- Converts comma-separated strings to lists (exchanges, CORS origins)

Usage:
    from core.config import settings

    print(settings.collection_interval_seconds)
    print(settings.enabled_exchanges_list)  # Returns a list of strings
"""

from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


# Exchange names the adapter registry knows about. Kept here so configuration
# can be validated without importing every adapter module.
KNOWN_EXCHANGES = (
    "binance",
    "bybit",
    "htx",
    "gate",
    "bitget",
    "mexc",
    "bingx",
    "bitmart",
    "kucoin",
    "okx",
)


class Settings(BaseSettings):
    """
    Application Settings

    Values are automatically loaded from environment variables or .env file.

    Attributes:
        collection_interval_seconds: Period of each exchange's collection cycle
        fetch_max_retries: HTTP attempts per request before giving up
        fetch_timeout_seconds: Timeout of a single HTTP attempt
        fetch_backoff_base_seconds: Base delay of the exponential backoff
        max_concurrent_requests: Upper bound on simultaneous outbound requests
        detail_fetch_limit: Max instruments fetched per cycle by list-then-detail adapters
        enabled_exchanges: Comma-separated subset of exchanges to collect (empty = all)
        hot_rate_threshold: Absolute funding rate at which a rate counts as "hot"
        alert_interval_seconds: Minimum gap between two hot-rate digests
        alert_top_n: Number of rates listed in a digest
        publisher_queue_size: Queue bound for each live-update subscriber
        history_retention_hours: Funding rate history kept in memory, older rows are pruned
        shutdown_timeout_seconds: Wait on in-flight cycles after which stop() logs a warning
        app_host: Host address for FastAPI server
        app_port: Port number for FastAPI server
        environment: Current environment (development, production)
        debug: Enable debug mode
        log_level: Logging level
        cors_origins: Comma-separated list of allowed CORS origins
    """

    # ============================================
    # Collection Configuration
    # ============================================

    collection_interval_seconds: float = Field(
        default=60.0,
        description="Seconds between two collection cycles of the same exchange"
    )

    enabled_exchanges: str = Field(
        default="",
        description="Comma-separated list of exchanges to collect (empty = all)"
    )

    detail_fetch_limit: int = Field(
        default=200,
        description="Max instruments per cycle for adapters that fetch per-instrument detail"
    )

    history_retention_hours: float = Field(
        default=24.0,
        description="Hours of funding rate history kept by the in-memory storage engine"
    )

    shutdown_timeout_seconds: float = Field(
        default=30.0,
        description="Seconds stop() waits on in-flight cycles before warning (cycles are never aborted)"
    )

    # ============================================
    # HTTP Fetcher Configuration
    # ============================================

    fetch_max_retries: int = Field(
        default=3,
        description="Maximum HTTP attempts per request"
    )

    fetch_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout of a single HTTP attempt in seconds"
    )

    fetch_backoff_base_seconds: float = Field(
        default=1.0,
        description="Base delay for exponential backoff between attempts"
    )

    max_concurrent_requests: int = Field(
        default=10,
        description="Maximum simultaneous outbound HTTP requests"
    )

    # ============================================
    # Alerting Configuration
    # ============================================

    hot_rate_threshold: float = Field(
        default=0.002,
        description="Absolute funding rate considered 'hot' (0.002 = 0.2%)"
    )

    alert_interval_seconds: float = Field(
        default=3600.0,
        description="Minimum seconds between two hot-rate digests"
    )

    alert_top_n: int = Field(
        default=10,
        description="Number of hot rates listed in a digest"
    )

    publisher_queue_size: int = Field(
        default=1000,
        description="Per-subscriber queue size for live updates"
    )

    # ============================================
    # Application Configuration
    # ============================================

    app_host: str = Field(
        default="0.0.0.0",
        description="FastAPI server host address"
    )

    app_port: int = Field(
        default=8000,
        description="FastAPI server port"
    )

    environment: str = Field(
        default="development",
        description="Application environment (development, production)"
    )

    debug: bool = Field(
        default=True,
        description="Enable debug mode"
    )

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # ============================================
    # CORS Configuration
    # ============================================

    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Comma-separated list of allowed CORS origins"
    )

    # ============================================
    # Pydantic Settings Configuration
    # ============================================

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False
    )

    # ============================================
    # Properties
    # ============================================

    @property
    def enabled_exchanges_list(self) -> List[str]:
        """
        Convert comma-separated exchange names to a list.

        Returns:
            Lowercase exchange names, or an empty list meaning "all exchanges"

        Example:
            >>> settings.enabled_exchanges_list
            ['binance', 'bybit']
        """
        return [e.strip().lower() for e in self.enabled_exchanges.split(",") if e.strip()]

    @property
    def cors_origins_list(self) -> List[str]:
        """
        Convert comma-separated CORS origins string to a list.

        Example:
            >>> settings.cors_origins_list
            ['http://localhost:3000', 'http://localhost:5173']
        """
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


# ============================================
# Global Settings Instance
# ============================================

settings = Settings()


# ============================================
# Configuration Validation
# ============================================

def validate_configuration(config: Settings = None) -> None:
    """
    Validate critical configuration settings on application startup.

    Args:
        config: Settings to validate (defaults to the global instance)

    Raises:
        ValueError: If configuration is missing or invalid
    """
    # Import logger here to avoid circular import
    # (logging.py imports config.py, so we can't import at module level)
    from core.logging import logger

    config = config or settings

    if config.collection_interval_seconds <= 0:
        raise ValueError(
            f"COLLECTION_INTERVAL_SECONDS must be positive, got {config.collection_interval_seconds}"
        )

    if config.fetch_max_retries < 1:
        raise ValueError(f"FETCH_MAX_RETRIES must be at least 1, got {config.fetch_max_retries}")

    if config.fetch_timeout_seconds <= 0:
        raise ValueError(f"FETCH_TIMEOUT_SECONDS must be positive, got {config.fetch_timeout_seconds}")

    if config.fetch_backoff_base_seconds < 0:
        raise ValueError(
            f"FETCH_BACKOFF_BASE_SECONDS cannot be negative, got {config.fetch_backoff_base_seconds}"
        )

    if config.max_concurrent_requests < 1:
        raise ValueError(
            f"MAX_CONCURRENT_REQUESTS must be at least 1, got {config.max_concurrent_requests}"
        )

    if config.history_retention_hours <= 0:
        raise ValueError(
            f"HISTORY_RETENTION_HOURS must be positive, got {config.history_retention_hours}"
        )

    if config.hot_rate_threshold <= 0:
        raise ValueError(f"HOT_RATE_THRESHOLD must be positive, got {config.hot_rate_threshold}")

    for name in config.enabled_exchanges_list:
        if name not in KNOWN_EXCHANGES:
            raise ValueError(
                f"Unknown exchange in ENABLED_EXCHANGES: '{name}'. "
                f"Must be one of: {', '.join(KNOWN_EXCHANGES)}"
            )

    if not (1 <= config.app_port <= 65535):
        raise ValueError(f"Invalid port number: {config.app_port}. Must be between 1 and 65535")

    valid_log_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    if config.log_level.upper() not in valid_log_levels:
        raise ValueError(
            f"Invalid LOG_LEVEL: '{config.log_level}'. "
            f"Must be one of: {', '.join(valid_log_levels)}"
        )

    exchanges = config.enabled_exchanges_list or list(KNOWN_EXCHANGES)
    logger.info("Configuration validated successfully")
    logger.info(f"Collecting from: {', '.join(exchanges)}")
    logger.info(f"Collection interval: {config.collection_interval_seconds:g}s")
    logger.info(
        f"Fetcher: {config.fetch_max_retries} attempts, "
        f"{config.fetch_timeout_seconds:g}s timeout, "
        f"{config.fetch_backoff_base_seconds:g}s backoff base"
    )
    logger.info(f"Hot rate threshold: {config.hot_rate_threshold * 100:.3f}%")
    logger.info(f"Server: {config.app_host}:{config.app_port}")
    logger.info(f"Log level: {config.log_level.upper()}")
