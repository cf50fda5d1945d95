#!/usr/bin/env python3
"""
Run one collection cycle against live exchanges and print a summary.

Nothing is kept after the script exits (in-memory storage). Useful to check
that every adapter still understands its exchange's responses.

Usage examples:
  python scripts/collect_once.py
  python scripts/collect_once.py --exchanges bybit,gate --top 5
  python scripts/collect_once.py --exchanges okx --detail-limit 20
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Allow running from the repository root without installing
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from core.exchange_manager import AdapterRegistry, default_adapters  # noqa: E402
from core.fetcher import ResilientFetcher  # noqa: E402
from services.collection_scheduler import CollectionScheduler  # noqa: E402
from storage import InMemoryStorage  # noqa: E402


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Collect funding rates once from live exchanges.")
    p.add_argument("--exchanges", default="", help="Comma-separated exchanges (default: all)")
    p.add_argument("--detail-limit", type=int, default=25, help="Max instruments for list-then-detail exchanges")
    p.add_argument("--top", type=int, default=10, help="Print the N largest absolute rates")
    return p.parse_args()


async def run(args: argparse.Namespace) -> int:
    enabled = [e.strip() for e in args.exchanges.split(",") if e.strip()]
    registry = AdapterRegistry(default_adapters(args.detail_limit), enabled=enabled)
    storage = InMemoryStorage()

    async with ResilientFetcher.from_settings() as fetcher:
        scheduler = CollectionScheduler(registry, fetcher, storage)
        results = await scheduler.run_all_once()

    print(f"{'exchange':<10} {'fetched':>8} {'skipped':>8} {'persisted':>10} {'time':>8}  error")
    for name, result in results.items():
        print(
            f"{name:<10} {result.fetched:>8} {result.skipped:>8} {result.persisted:>10} "
            f"{result.duration:>7.2f}s  {result.error or ''}"
        )

    latest = await storage.get_latest_funding_rates()
    latest.sort(key=lambda r: abs(r.funding_rate), reverse=True)
    if latest and args.top > 0:
        print(f"\nTop {min(args.top, len(latest))} by absolute rate:")
        for rate in latest[: args.top]:
            print(
                f"  {rate.exchange.display_name:<10} {rate.symbol:<16} "
                f"{rate.funding_rate * 100:+.4f}%  next {rate.next_funding_time:%Y-%m-%d %H:%M} UTC"
            )

    failed = [name for name, result in results.items() if not result.success]
    return 1 if failed else 0


def main() -> int:
    args = parse_args()
    try:
        return asyncio.run(run(args))
    except ValueError as e:
        print(f"[Error] {e}")
        return 2


if __name__ == "__main__":
    sys.exit(main())
