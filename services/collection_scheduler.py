"""
Collection Scheduler

Runs one independent collection loop per registered exchange:

    IDLE -> FETCHING -> PARSING -> PERSISTING -> IDLE

Every collection_interval_seconds (and once immediately at start) each
exchange's adapter fetches its raw batch, every record is parsed and resolved
to a trading pair, and the surviving batch is persisted with one bulk insert.
After a successful persist the global latest-rates snapshot is re-queried and
handed to the UpdatePublisher.

Failure Boundaries:
    - ParseError (or a pair upsert rejected for one record): that record is
      skipped, the rest of the batch continues.
    - FetchError, PersistenceError or anything unexpected: the cycle for that
      exchange ends and is recorded as failed. Other exchanges are unaffected
      and the next cycle starts on schedule.

Usage:
    scheduler = CollectionScheduler(registry, fetcher, storage, publisher)
    await scheduler.initialize_exchanges()
    await scheduler.start()
    ...
    await scheduler.stop()
"""

import asyncio
import time
from typing import Dict, List, Optional

from core.exceptions import FundingMonitorError, ParseError, PersistenceError
from core.exchange_manager import AdapterRegistry
from core.fetcher import ResilientFetcher
from core.logging import get_logger, log_collection_cycle
from core.normalization import PairResolver
from core.schemas import CollectionState, CycleResult, FundingRateCreate
from services.update_publisher import UpdatePublisher
from storage.interface import FundingRateStorage


class CollectionScheduler:
    """
    Periodic multi-exchange funding rate collector.

    Attributes:
        states: Current CollectionState per exchange
        last_results: Most recent CycleResult per exchange
        exchange_ids: Storage id per exchange (filled by initialize_exchanges)
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        fetcher: ResilientFetcher,
        storage: FundingRateStorage,
        publisher: Optional[UpdatePublisher] = None,
        interval: Optional[float] = None,
        shutdown_timeout: Optional[float] = None,
    ) -> None:
        from core.config import settings

        self.registry = registry
        self.fetcher = fetcher
        self.storage = storage
        self.publisher = publisher
        self.resolver = PairResolver(storage)
        self.interval = interval if interval is not None else settings.collection_interval_seconds
        self.shutdown_timeout = (
            shutdown_timeout if shutdown_timeout is not None else settings.shutdown_timeout_seconds
        )

        self.exchange_ids: Dict[str, int] = {}
        self.states: Dict[str, CollectionState] = {
            name: CollectionState.IDLE for name in registry.list_exchanges()
        }
        self.last_results: Dict[str, CycleResult] = {}

        self._logger = get_logger(__name__)
        self._stop_event = asyncio.Event()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    # ============================================
    # Lifecycle
    # ============================================

    async def initialize_exchanges(self) -> Dict[str, int]:
        """
        Upsert one Exchange row per registered adapter.

        An adapter whose upsert fails is logged and left without an id; its
        cycles fail fast until the next initialization.

        Returns:
            Mapping of exchange name to storage id
        """
        for name, adapter in self.registry.items():
            try:
                exchange = await self.storage.upsert_exchange(adapter.to_exchange_upsert())
                self.exchange_ids[name] = exchange.id
                self._logger.info(f"Initialized exchange: {exchange.display_name} (id={exchange.id})")
            except Exception as e:
                self._logger.error(f"Failed to initialize exchange {name}: {e}")

        return dict(self.exchange_ids)

    async def start(self) -> None:
        """Start one collection task per exchange (idempotent)."""
        if self._running:
            return

        if not self.exchange_ids:
            await self.initialize_exchanges()

        self._stop_event.clear()
        self._running = True
        self._logger.info(
            f"Starting collection for {len(self.registry)} exchange(s), "
            f"every {self.interval:g}s"
        )

        for name in self.registry.list_exchanges():
            self._tasks[name] = asyncio.create_task(self._run_exchange(name), name=f"collect_{name}")

    async def stop(self) -> None:
        """
        Stop collecting.

        No new cycle starts once this is called and the interval waits end
        immediately. In-flight cycles are never aborted: stop() returns once
        they finish, warning if that takes longer than shutdown_timeout.
        Calling stop() twice is harmless.
        """
        if not self._running:
            return
        self._logger.info("Stopping collection scheduler...")
        self._running = False
        self._stop_event.set()

        tasks = list(self._tasks.values())
        self._tasks.clear()
        if not tasks:
            return

        _, pending = await asyncio.wait(tasks, timeout=self.shutdown_timeout)
        if pending:
            names = ", ".join(sorted(task.get_name() for task in pending))
            self._logger.warning(
                f"Still waiting for in-flight cycle(s) after {self.shutdown_timeout:g}s: {names}"
            )
        await asyncio.gather(*tasks, return_exceptions=True)

        self._logger.info("Collection scheduler stopped")

    # ============================================
    # Core Loop
    # ============================================

    async def _run_exchange(self, name: str) -> None:
        loop = asyncio.get_running_loop()
        while not self._stop_event.is_set():
            cycle_start = loop.time()
            await self.run_cycle(name)

            # Keep the cadence: subtract the time the cycle took
            wait = max(0.0, self.interval - (loop.time() - cycle_start))
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=wait)
            except asyncio.TimeoutError:
                pass

    async def run_cycle(self, name: str) -> CycleResult:
        """
        Run one collection cycle for one exchange.

        Never raises for pipeline failures; they are recorded in the result.

        Raises:
            ValueError: If the exchange is not registered
        """
        adapter = self.registry.get_adapter(name)
        name = adapter.name
        result = CycleResult(exchange=name)
        started = time.monotonic()

        try:
            exchange_id = self.exchange_ids.get(name)
            if exchange_id is None:
                raise FundingMonitorError(f"{name} is not initialized in storage")

            self.states[name] = CollectionState.FETCHING
            raw_records = await adapter.fetch_raw(self.fetcher)
            result.fetched = len(raw_records)

            self.states[name] = CollectionState.PARSING
            batch: List[FundingRateCreate] = []
            for raw in raw_records:
                try:
                    normalized = adapter.parse_record(raw)
                    batch.append(await self.resolver.resolve(normalized, exchange_id))
                except (ParseError, PersistenceError) as e:
                    result.skipped += 1
                    self._logger.debug(f"[{adapter.display_name}] Skipping record: {e}")

            self.states[name] = CollectionState.PERSISTING
            if batch:
                inserted = await self.storage.insert_funding_rates(batch)
                result.persisted = len(inserted)

        except Exception as e:
            # Cycle boundary: nothing escapes to the other exchanges
            result.error = f"{type(e).__name__}: {e}"

        finally:
            self.states[name] = CollectionState.IDLE
            result.duration = time.monotonic() - started

        self.last_results[name] = result
        log_collection_cycle(
            name,
            fetched=result.fetched,
            persisted=result.persisted,
            skipped=result.skipped,
            duration=result.duration,
            error=result.error,
        )

        if result.success and result.persisted:
            await self._publish_latest()

        return result

    async def run_all_once(self) -> Dict[str, CycleResult]:
        """Run one cycle for every exchange concurrently."""
        if not self.exchange_ids:
            await self.initialize_exchanges()

        names = self.registry.list_exchanges()
        results = await asyncio.gather(*(self.run_cycle(name) for name in names))
        return dict(zip(names, results))

    async def _publish_latest(self) -> None:
        if self.publisher is None:
            return
        try:
            snapshot = await self.storage.get_latest_funding_rates()
            await self.publisher.publish(snapshot)
        except Exception as e:
            self._logger.error(f"Failed to publish latest funding rates: {e}")
