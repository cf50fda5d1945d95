"""
Exchange Adapter Interface: Contract for All Funding Rate Sources

This module defines the abstract base classes every exchange adapter implements.
By enforcing a consistent interface, we ensure:
- The scheduler treats every exchange the same way
- New exchanges are added without touching the collection pipeline
- Exchange quirks (envelopes, symbol formats, timestamp units) stay inside adapters

Design Philosophy:
    "Program to an interface, not an implementation"

    The scheduler works with ExchangeAdapter, never with a concrete exchange.

Fetch Strategies:
    Exchanges expose funding data in one of two shapes, modelled explicitly:

    SinglePhaseAdapter
        One bulk endpoint returns every instrument with its funding rate and
        settlement time. fetch_raw() is a single GET.

    ListThenDetailAdapter
        The bulk endpoint omits the funding rate or the settlement time, so the
        adapter lists instruments first and then fetches per-instrument detail,
        sequentially (exchange rate limits). A failed detail request is logged
        and that instrument is skipped; the rest of the cycle continues.

Example:
    class GateAdapter(SinglePhaseAdapter):
        name = "gate"
        display_name = "Gate.io"
        api_url = "https://api.gateio.ws"
        color = "#7c3aed"
        endpoint = "https://api.gateio.ws/api/v4/futures/usdt/contracts"

        def parse(self, raw):
            return self.build_record(raw.get("name"), raw.get("funding_rate"),
                                     raw.get("funding_next_apply"))
"""

from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from core.exceptions import FetchError, ParseError
from core.fetcher import ResilientFetcher
from core.logging import get_logger
from core.schemas import ExchangeUpsert, NormalizedFundingRate
from core.utils.time import current_utc_datetime, parse_epoch


RawRecord = Dict[str, Any]


class ExchangeAdapter(ABC):
    """
    Abstract Base Class for Exchange Adapters

    Class Attributes (must be set by subclasses):
        name: Unique exchange identifier (lowercase, e.g., "bybit")
        display_name: Human-readable name (e.g., "Bybit")
        api_url: Base REST API URL
        ws_url: Public WebSocket URL (informational, optional)
        color: Accent color for UIs
        is_active: Whether the exchange should be collected

    Abstract Methods:
        - fetch_raw: Return the exchange's raw funding records
        - parse: Turn one raw record into a NormalizedFundingRate

    Helper Methods:
        - canonical_symbol: Exchange-native symbol -> concatenated form
        - build_record: Validate fields and build the NormalizedFundingRate
        - to_exchange_upsert: Metadata row for the exchange registry
    """

    name: str
    """Unique exchange identifier (lowercase)."""

    display_name: str

    api_url: str

    ws_url: Optional[str] = None

    color: str = "#3B82F6"

    is_active: bool = True

    strategy: str = "abstract"
    """Fetch strategy label ("single_phase" or "list_then_detail")."""

    def __init__(self):
        self.logger = get_logger(f"exchanges.{self.name}")

    # ============================================
    # Contract
    # ============================================

    @abstractmethod
    async def fetch_raw(self, fetcher: ResilientFetcher) -> List[RawRecord]:
        """
        Fetch raw funding records from the exchange.

        Args:
            fetcher: Shared resilient fetcher

        Returns:
            List of exchange-native records, in response order

        Raises:
            FetchError: If the exchange could not be reached or answered with an error
        """
        ...

    @abstractmethod
    def parse(self, raw: RawRecord) -> NormalizedFundingRate:
        """
        Normalize one raw record.

        Args:
            raw: Exchange-native record

        Returns:
            NormalizedFundingRate

        Raises:
            ParseError: If the record lacks a usable symbol, rate or settlement time
        """
        ...

    def parse_record(self, raw: Any) -> NormalizedFundingRate:
        """
        Normalize one raw record, reporting any malformed shape as ParseError.

        The scheduler calls this instead of parse() so a null, a string or a
        record missing an expected key skips that record only.
        """
        if not isinstance(raw, dict):
            raise ParseError(f"{self.name}: expected an object record, got {type(raw).__name__}")
        try:
            return self.parse(raw)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ParseError(f"{self.name}: malformed record: {type(e).__name__}: {e}") from e

    # ============================================
    # Helpers
    # ============================================

    def canonical_symbol(self, symbol: str) -> str:
        """
        Convert an exchange-native symbol to the concatenated uppercase form.

        The default strips "-", "_" and "/" separators (BTC-USDT -> BTCUSDT).
        Adapters with other conventions override this.
        """
        return symbol.replace("-", "").replace("_", "").replace("/", "").upper()

    def build_record(
        self,
        symbol: Any,
        funding_rate: Any,
        next_funding_time: Any,
    ) -> NormalizedFundingRate:
        """
        Validate raw fields and build a NormalizedFundingRate.

        Args:
            symbol: Exchange-native symbol
            funding_rate: Rate as string or number
            next_funding_time: Settlement epoch (seconds or milliseconds)

        Raises:
            ParseError: On a missing symbol or rate, or an invalid settlement time
        """
        if not symbol or not isinstance(symbol, str):
            raise ParseError(f"{self.name}: missing symbol in record")

        if funding_rate is None or funding_rate == "":
            raise ParseError(f"{self.name}: missing funding rate for {symbol}")

        try:
            rate = Decimal(str(funding_rate).strip())
        except InvalidOperation:
            raise ParseError(f"{self.name}: non-numeric funding rate for {symbol}: {funding_rate!r}")
        if not rate.is_finite():
            raise ParseError(f"{self.name}: non-finite funding rate for {symbol}: {funding_rate!r}")

        try:
            settlement = parse_epoch(next_funding_time)
        except ValueError as e:
            raise ParseError(f"{self.name}: invalid next funding time for {symbol}: {e}") from e

        return NormalizedFundingRate(
            symbol=self.canonical_symbol(symbol),
            funding_rate=str(funding_rate).strip(),
            next_funding_time=settlement,
            observed_at=current_utc_datetime(),
        )

    def to_exchange_upsert(self) -> ExchangeUpsert:
        """Metadata row for the exchange registry."""
        return ExchangeUpsert(
            name=self.name,
            display_name=self.display_name,
            api_url=self.api_url,
            ws_url=self.ws_url,
            color=self.color,
            is_active=self.is_active,
        )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(name='{self.name}', strategy='{self.strategy}')>"


class SinglePhaseAdapter(ExchangeAdapter):
    """
    Adapter whose funding data comes from one bulk endpoint.

    Subclasses set `endpoint` (and optionally `params`) and may override
    `extract_records` to unwrap the exchange's response envelope.
    """

    strategy = "single_phase"

    endpoint: str

    params: Optional[Dict[str, Any]] = None

    async def fetch_raw(self, fetcher: ResilientFetcher) -> List[RawRecord]:
        payload = await fetcher.fetch(self.endpoint, params=self.params, source=self.name)
        records = self.extract_records(payload)
        self.logger.debug(f"[{self.display_name}] {len(records)} raw records")
        return records

    def extract_records(self, payload: Any) -> List[RawRecord]:
        """
        Unwrap the response envelope.

        The default accepts a bare JSON list. Raise FetchError for an
        exchange-level error code so the cycle fails like a network error.
        """
        if isinstance(payload, list):
            return payload
        raise FetchError(f"{self.name}: unexpected response shape {type(payload).__name__}")


class ListThenDetailAdapter(ExchangeAdapter):
    """
    Adapter that lists instruments, then fetches funding detail per instrument.

    Subclasses implement:
        - list_endpoint / list_params: Instrument list request
        - extract_instruments(payload): Instruments worth collecting
        - detail_request(instrument): (url, params) of the detail request
        - merge_detail(instrument, payload): Raw record for parse()

    Per-instrument failure policy:
        FetchError, or a detail payload that merge_detail rejects with
        ParseError, skips that instrument only.
    """

    strategy = "list_then_detail"

    list_endpoint: str

    list_params: Optional[Dict[str, Any]] = None

    def __init__(self, max_instruments: Optional[int] = None):
        super().__init__()
        self.max_instruments = max_instruments

    async def fetch_raw(self, fetcher: ResilientFetcher) -> List[RawRecord]:
        payload = await fetcher.fetch(self.list_endpoint, params=self.list_params, source=self.name)
        instruments = self.extract_instruments(payload)

        if self.max_instruments is not None and len(instruments) > self.max_instruments:
            self.logger.debug(
                f"[{self.display_name}] Limiting detail fetch to {self.max_instruments} "
                f"of {len(instruments)} instruments"
            )
            instruments = instruments[: self.max_instruments]

        records: List[RawRecord] = []
        failed = 0
        # Sequential on purpose: per-instrument endpoints are rate limited
        for instrument in instruments:
            try:
                if not isinstance(instrument, dict):
                    raise ParseError(f"instrument is {type(instrument).__name__}, not an object")
                try:
                    url, params = self.detail_request(instrument)
                except (KeyError, TypeError) as e:
                    raise ParseError(f"instrument lacks {e}") from e
                detail = await fetcher.fetch(url, params=params, source=self.name)
                records.append(self.merge_detail(instrument, detail))
            except (FetchError, ParseError) as e:
                failed += 1
                self.logger.warning(
                    f"[{self.display_name}] Skipping {self.describe_instrument(instrument)}: {e}"
                )

        self.logger.debug(
            f"[{self.display_name}] {len(records)} detail records, {failed} instrument(s) skipped"
        )
        return records

    def describe_instrument(self, instrument: RawRecord) -> str:
        """Short label for an instrument in log messages."""
        if not isinstance(instrument, dict):
            return repr(instrument)
        return str(instrument.get("symbol", "?"))

    @abstractmethod
    def extract_instruments(self, payload: Any) -> List[RawRecord]:
        """Instruments to fetch detail for, from the list response."""
        ...

    @abstractmethod
    def detail_request(self, instrument: RawRecord) -> tuple:
        """(url, params) for one instrument's funding detail."""
        ...

    @abstractmethod
    def merge_detail(self, instrument: RawRecord, payload: Any) -> RawRecord:
        """Combine instrument and detail payload into one raw record."""
        ...
