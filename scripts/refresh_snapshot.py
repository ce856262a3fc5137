#!/usr/bin/env python3
"""
Download the ministry station/price CSV exports once and persist them through
the configured snapshot store. The saved pair is what the service falls back
to when the ministry servers time out.

Usage:
  # file backend (default: ./saved_data)
  python3 scripts/refresh_snapshot.py

  # explicit sources, e.g. a manually downloaded export
  python3 scripts/refresh_snapshot.py --stations ./anagrafica_impianti_attivi.csv --prices ./prezzo_alle_8.csv

  # Redis backend
  SNAPSHOT_BACKEND=redis REDIS_HOST=localhost python3 scripts/refresh_snapshot.py
"""
import argparse
import asyncio
import logging

from carburanti.core.config import settings
from carburanti.redis_client import init_redis_pool, close_redis_pool
from carburanti.services.dataset_fetcher import DatasetFetcher
from carburanti.services.snapshot_store import build_snapshot_store


def parse_args():
    p = argparse.ArgumentParser(description="Fetch the fuel datasets and save a local snapshot")
    p.add_argument("--stations", action="append", help="Station registry URL or path (repeatable, tried in order)")
    p.add_argument("--prices", action="append", help="Price list URL or path (repeatable, tried in order)")
    p.add_argument("--separator", default=settings.CSV_SEPARATOR, help="CSV field separator")
    p.add_argument("--header-rows", type=int, default=settings.CSV_HEADER_ROWS, help="Leading lines to discard")
    p.add_argument("--dry-run", action="store_true", help="Fetch and report counts without saving")
    return p.parse_args()


async def run(args) -> int:
    fetcher = DatasetFetcher()
    station_sources = args.stations or settings.STATIONS_CSV_URLS
    price_sources = args.prices or settings.PRICES_CSV_URLS

    stations, prices = await asyncio.gather(
        fetcher.fetch_stations(station_sources, separator=args.separator, header_rows=args.header_rows),
        fetcher.fetch_prices(price_sources, separator=args.separator, header_rows=args.header_rows),
    )
    print(f"Fetched {len(stations)} stations and {len(prices)} prices")
    if not stations or not prices:
        print("ERROR: at least one dataset is empty; snapshot not saved")
        return 2

    if args.dry_run:
        print("Dry-run: nothing was saved.")
        return 0

    if settings.SNAPSHOT_BACKEND == "redis":
        await init_redis_pool()
    try:
        store = build_snapshot_store(settings.SNAPSHOT_BACKEND, settings.SNAPSHOT_DIR, settings.SNAPSHOT_REDIS_PREFIX)
        saved = await store.save(stations, prices)
    finally:
        await close_redis_pool()

    if not saved:
        print(f"ERROR: snapshot backend '{settings.SNAPSHOT_BACKEND}' did not save the data")
        return 3
    print(f"Snapshot saved with backend '{settings.SNAPSHOT_BACKEND}'")
    return 0


def main():
    logging.basicConfig(level=logging.INFO, format="%(levelname)s [%(name)s] %(message)s")
    return asyncio.run(run(parse_args()))


if __name__ == '__main__':
    raise SystemExit(main())
