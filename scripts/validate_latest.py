#!/usr/bin/env python3
"""
Validate the latest funding rates endpoint of the server.

Checks performed:
- HTTP 200 and JSON array
- Required fields present with correct types
- funding_rate is a decimal string; symbol uppercase
- next_funding_time and timestamp parse as ISO-8601
- Embedded exchange present with a lowercase name
- One row per (exchange_id, symbol)
- Ordered by funding_rate, highest first

Usage examples:
  python scripts/validate_latest.py
  python scripts/validate_latest.py --host 127.0.0.1 --port 8000 --print-sample 5
"""

import argparse
import sys
from decimal import Decimal, InvalidOperation
from typing import List, Tuple

import httpx
from dateutil import parser as dateparser


REQUIRED_FIELDS = [
    "id",
    "exchange_id",
    "pair_id",
    "symbol",
    "funding_rate",
    "next_funding_time",
    "timestamp",
    "exchange",
]


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Validate latest funding rates endpoint response.")
    p.add_argument("--host", default="localhost", help="Server host (default: localhost)")
    p.add_argument("--port", type=int, default=8000, help="Server port (default: 8000)")
    p.add_argument("--allow-empty", action="store_true", help="Do not fail if endpoint returns empty list")
    p.add_argument("--print-sample", type=int, default=0, help="Print first N items for visual inspection")
    return p.parse_args()


def validate_item(item: dict) -> Tuple[bool, str]:
    for f in REQUIRED_FIELDS:
        if f not in item:
            return False, f"missing field: {f}"

    if not isinstance(item["exchange_id"], int) or not isinstance(item["pair_id"], int):
        return False, "exchange_id/pair_id must be int"
    if not isinstance(item["symbol"], str):
        return False, "symbol must be string"
    if item["symbol"] != item["symbol"].upper():
        return False, "symbol should be uppercase"

    if not isinstance(item["funding_rate"], str):
        return False, "funding_rate must be a decimal string"
    try:
        Decimal(item["funding_rate"])
    except InvalidOperation:
        return False, f"funding_rate not numeric: {item['funding_rate']}"

    for field in ("next_funding_time", "timestamp"):
        try:
            dateparser.isoparse(item[field])
        except (TypeError, ValueError):
            return False, f"invalid {field}: {item[field]}"

    exchange = item["exchange"]
    if not isinstance(exchange, dict):
        return False, "exchange must be an object"
    if exchange.get("id") != item["exchange_id"]:
        return False, "embedded exchange id does not match exchange_id"
    if exchange.get("name") != str(exchange.get("name", "")).lower():
        return False, "exchange name should be lowercase"

    return True, ""


def validate_snapshot(items: List[dict]) -> Tuple[bool, str]:
    seen = set()
    for it in items:
        key = (it["exchange_id"], it["symbol"])
        if key in seen:
            return False, f"duplicate row for {key}"
        seen.add(key)

    rates = [Decimal(it["funding_rate"]) for it in items]
    # Non-increasing order (highest rate first)
    for i in range(1, len(rates)):
        if rates[i] > rates[i - 1]:
            return False, f"rates not ordered at index {i}: {rates[i-1]} -> {rates[i]}"
    return True, ""


def main() -> int:
    args = parse_args()
    url = f"http://{args.host}:{args.port}/api/funding-rates/latest"
    print(f"[Info] Requesting: {url}")

    try:
        resp = httpx.get(url, timeout=30.0)
    except httpx.HTTPError as e:
        print(f"[Error] Request failed: {e}")
        return 2

    if resp.status_code != 200:
        print(f"[Error] HTTP {resp.status_code}: {resp.text[:300]}")
        return 2

    try:
        data = resp.json()
    except ValueError as e:
        print(f"[Error] Invalid JSON: {e}")
        return 2

    if not isinstance(data, list):
        print("[Error] Response is not a list")
        return 2

    if not data:
        if args.allow_empty:
            print("[Warn] Empty list (allowed by flag).")
            return 0
        print("[Error] Empty list (use --allow-empty to accept).")
        return 1

    for idx, item in enumerate(data):
        ok, msg = validate_item(item)
        if not ok:
            print(f"[Error] Item {idx} invalid: {msg}")
            return 1

    ok, msg = validate_snapshot(data)
    if not ok:
        print(f"[Error] Snapshot check failed: {msg}")
        return 1

    if args.print_sample > 0:
        sample = data[: args.print_sample]
        print(f"[Info] Sample ({len(sample)} of {len(data)}):")
        for it in sample:
            print(it)

    exchanges = sorted({it["exchange"]["name"] for it in data})
    print(f"[OK] Validated {len(data)} latest funding rates across {len(exchanges)} exchange(s): {', '.join(exchanges)}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
