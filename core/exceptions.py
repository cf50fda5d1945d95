"""
Collection Pipeline Exceptions

Every failure inside the collection pipeline is raised as one of these types so
the scheduler can decide how far it propagates:

    FetchError        - network call failed for good (retries exhausted, timeout,
                        non-2xx, undecodable body, exchange-level error code).
                        Ends the current exchange cycle.
    ParseError        - one raw record could not be normalized.
                        Skips that record only.
    PersistenceError  - the store rejected a batch.
                        Ends the current exchange cycle.
"""

from typing import Optional


class FundingMonitorError(Exception):
    """Base class for all pipeline errors."""


class FetchError(FundingMonitorError):
    """
    Terminal network failure after all retry attempts.

    Attributes:
        url: Requested URL
        attempts: Number of attempts made before giving up
        status: Last HTTP status seen (None for timeouts / connection errors)
        body: Last response body, truncated, for diagnostics
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        attempts: int = 0,
        status: Optional[int] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.attempts = attempts
        self.status = status
        self.body = body


class ParseError(FundingMonitorError):
    """A raw exchange record could not be turned into a normalized funding rate."""


class PersistenceError(FundingMonitorError):
    """The storage layer rejected a write."""
