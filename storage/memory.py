"""
In-Memory Storage Engine

Process-local implementation of FundingRateStorage. Every write runs under a
single asyncio.Lock, which gives the same guarantees a database provides with
ON CONFLICT upserts and a transaction around the batch insert.

Funding rate rows are kept in insertion order and, when a retention window is
set, rows older than the window are pruned from the front on every insert. The
latest row per (exchange, symbol) is indexed as rows arrive, so the latest view
never scans the history.

Data does not survive a restart.
"""

import asyncio
import itertools
from collections import deque
from datetime import timedelta
from decimal import Decimal
from typing import Deque, Dict, List, Optional, Tuple

from core.exceptions import PersistenceError
from core.logging import get_logger
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
from core.utils.time import current_utc_datetime
from storage.interface import FundingRateStorage


class InMemoryStorage(FundingRateStorage):
    """
    Dict-backed storage.

    Example:
        >>> storage = InMemoryStorage()
        >>> ex = await storage.upsert_exchange(ExchangeUpsert(name="gate", display_name="Gate.io",
        ...                                                    api_url="https://api.gateio.ws"))
        >>> ex.id
        1
    """

    def __init__(self, retention_hours: Optional[float] = None):
        """
        Args:
            retention_hours: Funding rate history to keep (None keeps everything)
        """
        self._lock = asyncio.Lock()
        self._logger = get_logger(__name__)
        self.retention = timedelta(hours=retention_hours) if retention_hours else None

        self._exchanges: Dict[int, Exchange] = {}
        self._exchange_ids: Dict[str, int] = {}
        self._pairs: Dict[int, TradingPair] = {}
        self._pair_ids: Dict[Tuple[str, int], int] = {}
        self._rates: Deque[FundingRate] = deque()
        self._latest: Dict[Tuple[int, str], FundingRate] = {}

        self._next_exchange_id = itertools.count(1)
        self._next_pair_id = itertools.count(1)
        self._next_rate_id = itertools.count(1)

    # ============================================
    # Registry Writes
    # ============================================

    async def upsert_exchange(self, exchange: ExchangeUpsert) -> Exchange:
        async with self._lock:
            existing_id = self._exchange_ids.get(exchange.name)
            if existing_id is not None:
                current = self._exchanges[existing_id]
                updated = current.model_copy(update=exchange.model_dump())
            else:
                updated = Exchange(id=next(self._next_exchange_id), **exchange.model_dump())
                self._exchange_ids[updated.name] = updated.id
            self._exchanges[updated.id] = updated
            return updated

    async def upsert_trading_pair(self, pair: TradingPairUpsert) -> TradingPair:
        async with self._lock:
            if pair.exchange_id not in self._exchanges:
                raise PersistenceError(f"Unknown exchange id {pair.exchange_id} for pair {pair.symbol}")

            key = (pair.symbol, pair.exchange_id)
            existing_id = self._pair_ids.get(key)
            if existing_id is not None:
                updated = self._pairs[existing_id].model_copy(update=pair.model_dump())
            else:
                updated = TradingPair(id=next(self._next_pair_id), **pair.model_dump())
                self._pair_ids[key] = updated.id
            self._pairs[updated.id] = updated
            return updated

    async def set_exchange_active(self, name: str, is_active: bool) -> Optional[Exchange]:
        async with self._lock:
            exchange_id = self._exchange_ids.get(name.lower())
            if exchange_id is None:
                return None
            updated = self._exchanges[exchange_id].model_copy(update={"is_active": is_active})
            self._exchanges[exchange_id] = updated
            return updated

    async def deactivate_trading_pair(self, pair_id: int) -> Optional[TradingPair]:
        async with self._lock:
            if pair_id not in self._pairs:
                return None
            updated = self._pairs[pair_id].model_copy(update={"is_active": False})
            self._pairs[pair_id] = updated
            return updated

    # ============================================
    # Funding Rate Writes
    # ============================================

    async def insert_funding_rates(self, rates: List[FundingRateCreate]) -> List[FundingRate]:
        async with self._lock:
            # Validate the whole batch before writing any of it
            for rate in rates:
                if rate.exchange_id not in self._exchanges:
                    raise PersistenceError(
                        f"Funding rate for {rate.symbol} references unknown exchange {rate.exchange_id}"
                    )
                pair = self._pairs.get(rate.pair_id)
                if pair is None or pair.exchange_id != rate.exchange_id:
                    raise PersistenceError(
                        f"Funding rate for {rate.symbol} references unknown trading pair {rate.pair_id}"
                    )

            inserted = [
                FundingRate(id=next(self._next_rate_id), **rate.model_dump())
                for rate in rates
            ]
            self._rates.extend(inserted)
            for rate in inserted:
                key = (rate.exchange_id, rate.symbol)
                current = self._latest.get(key)
                # Later insert wins a timestamp tie
                if current is None or rate.timestamp >= current.timestamp:
                    self._latest[key] = rate
            pruned = self._prune()

        self._logger.debug(f"Inserted {len(inserted)} funding rate(s), pruned {pruned}")
        return inserted

    def _prune(self) -> int:
        if self.retention is None:
            return 0

        cutoff = current_utc_datetime() - self.retention
        pruned = 0
        while self._rates and self._rates[0].timestamp < cutoff:
            old = self._rates.popleft()
            key = (old.exchange_id, old.symbol)
            latest = self._latest.get(key)
            if latest is not None and latest.id == old.id:
                del self._latest[key]
            pruned += 1
        return pruned

    # ============================================
    # Reads
    # ============================================

    def _with_exchange(self, rate: FundingRate) -> FundingRateWithExchange:
        return FundingRateWithExchange(
            **rate.model_dump(),
            exchange=self._exchanges.get(rate.exchange_id),
        )

    async def get_exchanges(self) -> List[Exchange]:
        return sorted(self._exchanges.values(), key=lambda e: e.name)

    async def get_active_exchanges(self) -> List[Exchange]:
        return [e for e in await self.get_exchanges() if e.is_active]

    async def get_trading_pairs(self, exchange_id: Optional[int] = None) -> List[TradingPair]:
        pairs = [
            p for p in self._pairs.values()
            if exchange_id is None or p.exchange_id == exchange_id
        ]
        return sorted(pairs, key=lambda p: (p.exchange_id, p.symbol))

    async def get_latest_funding_rates(self) -> List[FundingRateWithExchange]:
        rows = sorted(self._latest.values(), key=lambda r: r.funding_rate, reverse=True)
        return [self._with_exchange(r) for r in rows]

    async def get_hot_funding_rates(
        self, threshold: float, limit: int = 50
    ) -> List[FundingRateWithExchange]:
        bound = Decimal(str(threshold))
        hot = [r for r in self._rates if abs(r.funding_rate) >= bound]
        hot.sort(key=lambda r: (abs(r.funding_rate), r.timestamp), reverse=True)
        return [self._with_exchange(r) for r in hot[:limit]]

    async def get_funding_rate_history(
        self, symbol: str, exchange_id: int, hours: int
    ) -> List[FundingRateWithExchange]:
        since = current_utc_datetime() - timedelta(hours=hours)
        symbol = symbol.upper()
        rows = [
            r for r in self._rates
            if r.symbol == symbol and r.exchange_id == exchange_id and r.timestamp >= since
        ]
        rows.sort(key=lambda r: r.timestamp)
        return [self._with_exchange(r) for r in rows]

    async def get_exchange_stats(self) -> List[ExchangeStats]:
        grouped: Dict[int, List[FundingRate]] = {}
        for rate in self._rates:
            grouped.setdefault(rate.exchange_id, []).append(rate)

        stats = []
        for exchange_id, rows in grouped.items():
            exchange = self._exchanges[exchange_id]
            total = sum((abs(r.funding_rate) for r in rows), Decimal(0))
            stats.append(
                ExchangeStats(
                    exchange_id=exchange_id,
                    name=exchange.display_name,
                    count=len({r.symbol for r in rows}),
                    avg_rate=float(total / len(rows)),
                )
            )

        stats.sort(key=lambda s: s.count, reverse=True)
        return stats

    async def get_funding_rates(
        self, filters: Optional[FundingRateFilters] = None
    ) -> List[FundingRateWithExchange]:
        filters = filters or FundingRateFilters()
        rows = list(self._rates)

        if filters.exchange_ids:
            rows = [r for r in rows if r.exchange_id in filters.exchange_ids]
        if filters.symbols:
            wanted = {s.upper() for s in filters.symbols}
            rows = [r for r in rows if r.symbol in wanted]
        if filters.min_rate is not None:
            floor = Decimal(str(filters.min_rate))
            rows = [r for r in rows if r.funding_rate >= floor]
        if filters.max_rate is not None:
            ceiling = Decimal(str(filters.max_rate))
            rows = [r for r in rows if r.funding_rate <= ceiling]

        rows.sort(key=lambda r: (r.timestamp, r.id), reverse=True)

        offset = filters.offset or 0
        if filters.limit is not None:
            rows = rows[offset: offset + filters.limit]
        else:
            rows = rows[offset:]

        return [self._with_exchange(r) for r in rows]
