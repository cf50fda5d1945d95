"""
Storage Interface

Abstract contract between the collection pipeline and whatever persists its
data. The pipeline only ever talks to FundingRateStorage.

Contract:
    - upsert_exchange / upsert_trading_pair are atomic insert-or-update on
      their unique keys (exchange name; trading pair symbol + exchange_id).
      Two concurrent upserts of the same key return the same row.
    - insert_funding_rates is all-or-nothing. A batch referencing an unknown
      exchange or trading pair raises PersistenceError and writes nothing.
    - Funding rate rows are append-only.
    - Read views return FundingRateWithExchange rows (exchange embedded).
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from core.schemas import (
    Exchange,
    ExchangeStats,
    ExchangeUpsert,
    FundingRate,
    FundingRateCreate,
    FundingRateFilters,
    FundingRateWithExchange,
    TradingPair,
    TradingPairUpsert,
)


class FundingRateStorage(ABC):
    """Abstract storage backend for exchanges, trading pairs and funding rates."""

    # ============================================
    # Registry Writes
    # ============================================

    @abstractmethod
    async def upsert_exchange(self, exchange: ExchangeUpsert) -> Exchange:
        """Insert or update an exchange keyed by name."""
        ...

    @abstractmethod
    async def upsert_trading_pair(self, pair: TradingPairUpsert) -> TradingPair:
        """Insert or update a trading pair keyed by (symbol, exchange_id)."""
        ...

    @abstractmethod
    async def set_exchange_active(self, name: str, is_active: bool) -> Optional[Exchange]:
        """Toggle an exchange's is_active flag. Returns None if the exchange is unknown."""
        ...

    @abstractmethod
    async def deactivate_trading_pair(self, pair_id: int) -> Optional[TradingPair]:
        """Mark a trading pair inactive. Returns None if the pair is unknown."""
        ...

    # ============================================
    # Funding Rate Writes
    # ============================================

    @abstractmethod
    async def insert_funding_rates(self, rates: List[FundingRateCreate]) -> List[FundingRate]:
        """
        Insert a batch of funding rates atomically.

        Raises:
            PersistenceError: If any row is rejected (nothing is written)
        """
        ...

    # ============================================
    # Reads
    # ============================================

    @abstractmethod
    async def get_exchanges(self) -> List[Exchange]:
        ...

    @abstractmethod
    async def get_active_exchanges(self) -> List[Exchange]:
        ...

    @abstractmethod
    async def get_trading_pairs(self, exchange_id: Optional[int] = None) -> List[TradingPair]:
        ...

    @abstractmethod
    async def get_latest_funding_rates(self) -> List[FundingRateWithExchange]:
        """Newest row per (exchange_id, symbol), ordered by funding_rate descending."""
        ...

    @abstractmethod
    async def get_hot_funding_rates(
        self, threshold: float, limit: int = 50
    ) -> List[FundingRateWithExchange]:
        """Rows with abs(funding_rate) >= threshold, largest magnitude first."""
        ...

    @abstractmethod
    async def get_funding_rate_history(
        self, symbol: str, exchange_id: int, hours: int
    ) -> List[FundingRateWithExchange]:
        """Rows for one symbol on one exchange from the last `hours` hours, oldest first."""
        ...

    @abstractmethod
    async def get_exchange_stats(self) -> List[ExchangeStats]:
        """Per exchange: distinct symbols and mean absolute rate, by count descending."""
        ...

    @abstractmethod
    async def get_funding_rates(
        self, filters: Optional[FundingRateFilters] = None
    ) -> List[FundingRateWithExchange]:
        """Filtered rows, newest first."""
        ...
