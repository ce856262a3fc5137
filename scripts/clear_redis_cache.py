#!/usr/bin/env python3
"""
Scan and optionally delete Redis keys matching a pattern.
Default pattern targets the persisted fuel snapshot keys:
  carburanti:snapshot:{stations|prices|metadata}

Usage:
  # dry-run (default) - list keys only
  REDIS_HOST=localhost REDIS_PORT=6379 python3 scripts/clear_redis_cache.py

  # actually delete found keys (careful: the service loses its fallback snapshot)
  REDIS_HOST=localhost REDIS_PORT=6379 python3 scripts/clear_redis_cache.py --delete

If REDIS_PASSWORD is set, it will be used.
"""

import os
import argparse
import redis


def parse_args():
    prefix = os.environ.get("SNAPSHOT_REDIS_PREFIX", "carburanti:snapshot")
    p = argparse.ArgumentParser(description="Scan and optionally delete Redis keys for the fuel snapshot")
    p.add_argument("--pattern", default=f"{prefix}:*", help="Redis SCAN pattern to match keys")
    p.add_argument("--delete", action="store_true", help="Delete matched keys (use with caution)")
    p.add_argument("--count", type=int, default=100, help="SCAN count hint")
    return p.parse_args()


def main():
    args = parse_args()

    host = os.environ.get("REDIS_HOST", "localhost")
    port = int(os.environ.get("REDIS_PORT", 6379))
    password = os.environ.get("REDIS_PASSWORD") or None

    print(f"Connecting to Redis {host}:{port} (password set: {'yes' if password else 'no'})")
    try:
        r = redis.Redis(host=host, port=port, password=password, decode_responses=True)
        r.ping()
    except redis.RedisError as e:
        print(f"ERROR: cannot connect to Redis: {e}")
        return 2

    print(f"Scanning keys with pattern: {args.pattern}")
    try:
        found = list(r.scan_iter(match=args.pattern, count=args.count))
    except redis.RedisError as e:
        print(f"ERROR while scanning: {e}")
        return 3

    if not found:
        print("No matching keys found.")
        return 0

    print(f"Found {len(found)} key(s):")
    for k in found:
        print("  ", k, f"({r.strlen(k)} bytes)")

    if args.delete:
        deleted = r.delete(*found)
        print(f"Deleted {deleted} keys (requested {len(found)})")
    else:
        print("Dry-run: no keys were deleted. Re-run with --delete to remove them.")

    return 0


if __name__ == '__main__':
    raise SystemExit(main())
