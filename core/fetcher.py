"""
Resilient HTTP Fetcher

This module provides the single HTTP entry point used by every exchange adapter.
It handles:
- GET requests with a per-attempt timeout (the request is cancelled on expiry)
- Bounded retries with exponential backoff
- Non-2xx responses treated as failed attempts (body kept for diagnostics)
- A semaphore bounding concurrent outbound connections

Backoff:
    After failed attempt N (counted from 1) the fetcher sleeps
    backoff_base * 2 ** N before the next attempt. There is no sleep after
    the final attempt and no state is carried between calls.

Usage:
    async with ResilientFetcher(max_retries=3, timeout=10) as fetcher:
        payload = await fetcher.fetch("https://api.bybit.com/v5/market/tickers",
                                      params={"category": "linear"})
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from core.exceptions import FetchError
from core.logging import get_logger, log_api_request, log_api_response


# Response bodies are truncated to this many characters in errors and logs
MAX_ERROR_BODY = 500


class ResilientFetcher:
    """
    Async HTTP client with retry, backoff and timeout cancellation.

    The fetcher owns its aiohttp ClientSession. It is created by whoever owns
    the scheduler and closed on shutdown; nothing here is process-global.

    Attributes:
        max_retries: Attempts per call (default for fetch())
        timeout: Per-attempt timeout in seconds (default for fetch())
        backoff_base: Base delay in seconds for exponential backoff
        session: aiohttp ClientSession (None until started)

    Example:
        >>> fetcher = ResilientFetcher(max_retries=3, timeout=5.0, backoff_base=0.5)
        >>> await fetcher.start()
        >>> data = await fetcher.fetch("https://fapi.binance.com/fapi/v1/premiumIndex")
        >>> await fetcher.close()
    """

    def __init__(
        self,
        max_retries: int = 3,
        timeout: float = 10.0,
        backoff_base: float = 1.0,
        max_concurrency: int = 10,
        headers: Optional[Dict[str, str]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize the fetcher.

        Args:
            max_retries: Default number of attempts per call
            timeout: Default per-attempt timeout in seconds
            backoff_base: Base delay for exponential backoff in seconds
            max_concurrency: Maximum simultaneous requests
            headers: Headers sent with every request
            sleep: Coroutine used for backoff delays
        """
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")

        self.max_retries = max_retries
        self.timeout = timeout
        self.backoff_base = backoff_base
        self.default_headers = {"Accept": "application/json", **(headers or {})}
        self.logger = get_logger(__name__)
        self.session: Optional[aiohttp.ClientSession] = None
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._sleep = sleep

    @classmethod
    def from_settings(cls, config=None) -> "ResilientFetcher":
        """Build a fetcher from application settings."""
        from core.config import settings

        config = config or settings
        return cls(
            max_retries=config.fetch_max_retries,
            timeout=config.fetch_timeout_seconds,
            backoff_base=config.fetch_backoff_base_seconds,
            max_concurrency=config.max_concurrent_requests,
        )

    # ============================================
    # Session Management
    # ============================================

    async def start(self) -> None:
        """Create the HTTP session (idempotent)."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(headers=self.default_headers)
            self.logger.debug("ResilientFetcher session created")

    async def close(self) -> None:
        """Close the HTTP session."""
        if self.session and not self.session.closed:
            await self.session.close()
            self.logger.debug("ResilientFetcher session closed")
        self.session = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ============================================
    # Public API
    # ============================================

    def backoff_delay(self, attempt: int) -> float:
        """
        Delay after a failed attempt.

        Args:
            attempt: Failed attempt number, counted from 1

        Returns:
            backoff_base * 2 ** attempt
        """
        return self.backoff_base * (2 ** attempt)

    async def fetch(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, Any]] = None,
        max_retries: Optional[int] = None,
        timeout: Optional[float] = None,
        source: str = "http",
    ) -> Any:
        """
        GET a URL and return its parsed JSON body.

        Args:
            url: Absolute URL
            headers: Extra request headers
            params: Query parameters
            max_retries: Attempts for this call (defaults to self.max_retries)
            timeout: Per-attempt timeout in seconds (defaults to self.timeout)
            source: Label used in logs (usually the exchange name)

        Returns:
            Parsed JSON payload

        Raises:
            FetchError: After all attempts failed
        """
        if self.session is None or self.session.closed:
            raise RuntimeError("Fetcher session not initialized. Call start() or use 'async with'.")

        attempts = max_retries if max_retries is not None else self.max_retries
        if attempts < 1:
            raise ValueError(f"max_retries must be at least 1, got {attempts}")
        per_attempt_timeout = timeout if timeout is not None else self.timeout

        last_status: Optional[int] = None
        last_body: Optional[str] = None
        last_error = "no attempt made"

        for attempt in range(1, attempts + 1):
            log_api_request(source, url, params, attempt)
            started = time.monotonic()
            try:
                async with self._semaphore:
                    async with self.session.get(
                        url,
                        params=params,
                        headers=headers,
                        timeout=aiohttp.ClientTimeout(total=per_attempt_timeout)
                    ) as resp:
                        log_api_response(source, url, resp.status, time.monotonic() - started)

                        if 200 <= resp.status < 300:
                            return await resp.json(content_type=None)

                        last_status = resp.status
                        last_body = (await resp.text())[:MAX_ERROR_BODY]
                        last_error = f"HTTP {resp.status}"

            except asyncio.TimeoutError:
                last_status, last_body = None, None
                last_error = f"timeout after {per_attempt_timeout:g}s"

            except aiohttp.ClientError as e:
                last_status, last_body = None, None
                last_error = f"{type(e).__name__}: {e}"

            except ValueError as e:
                # 2xx with a body that is not JSON
                last_status, last_body = None, None
                last_error = f"invalid JSON: {e}"

            if attempt < attempts:
                delay = self.backoff_delay(attempt)
                self.logger.warning(
                    f"[{source}] GET {url} failed ({last_error}). "
                    f"Retrying in {delay:.1f}s... (attempt {attempt}/{attempts})"
                )
                await self._sleep(delay)
            else:
                self.logger.error(
                    f"[{source}] GET {url} failed ({last_error}) after {attempts} attempt(s)"
                    + (f": {last_body}" if last_body else "")
                )

        raise FetchError(
            f"GET {url} failed after {attempts} attempt(s): {last_error}",
            url=url,
            attempts=attempts,
            status=last_status,
            body=last_body,
        )
