"""Persisted copy of the last good stations/prices pair.

This is the middle fallback tier: when the ministry is unreachable the
service restarts from the most recent snapshot instead of the built-in
minimal dataset. Loading never raises; an unreadable snapshot is empty.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from redis.asyncio import Redis
from redis.exceptions import RedisError

from carburanti.models import Price, Station
from carburanti.redis_client import delete_cache, get_cache, get_redis_client, set_cache

logger = logging.getLogger(__name__)

SnapshotPair = Tuple[List[Station], List[Price]]


def _decode_pair(raw_stations: Any, raw_prices: Any) -> SnapshotPair:
    if not isinstance(raw_stations, list) or not isinstance(raw_prices, list):
        return [], []
    stations = [Station.from_dict(s) for s in raw_stations if isinstance(s, dict)]
    prices = [Price.from_dict(p) for p in raw_prices if isinstance(p, dict)]
    return [s for s in stations if s.id], [p for p in prices if p.station_id]


def _metadata(stations: Sequence[Station], prices: Sequence[Price]) -> Dict[str, Any]:
    return {
        "lastSaved": datetime.now(timezone.utc).isoformat(),
        "stationsCount": len(stations),
        "pricesCount": len(prices),
    }


class SnapshotStore:
    """Interface shared by the persistence backends."""

    name = "none"

    async def load(self) -> SnapshotPair:
        return [], []

    async def save(self, stations: Sequence[Station], prices: Sequence[Price]) -> bool:
        return False

    async def metadata(self) -> Optional[Dict[str, Any]]:
        return None

    async def clear(self) -> None:
        return None


class NullSnapshotStore(SnapshotStore):
    """Used when SNAPSHOT_BACKEND=none."""


class FileSnapshotStore(SnapshotStore):
    """JSON files in a local directory (stations_data.json, prices_data.json, metadata.json)."""

    name = "file"

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.stations_file = self.directory / "stations_data.json"
        self.prices_file = self.directory / "prices_data.json"
        self.metadata_file = self.directory / "metadata.json"

    def _load_sync(self) -> SnapshotPair:
        if not (self.stations_file.exists() and self.prices_file.exists()):
            logger.info("No saved snapshot found in %s", self.directory)
            return [], []
        raw_stations = json.loads(self.stations_file.read_text(encoding="utf-8"))
        raw_prices = json.loads(self.prices_file.read_text(encoding="utf-8"))
        return _decode_pair(raw_stations, raw_prices)

    async def load(self) -> SnapshotPair:
        try:
            stations, prices = await asyncio.to_thread(self._load_sync)
        except (OSError, ValueError) as e:
            logger.error("Failed to load saved snapshot from %s: %s", self.directory, e)
            return [], []
        if stations:
            logger.info("Loaded %d stations and %d prices from saved snapshot", len(stations), len(prices))
        return stations, prices

    def _save_sync(self, stations: Sequence[Station], prices: Sequence[Price]) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        # write to temp files first so a crash never leaves half a pair behind
        targets = (
            (self.stations_file, [s.to_dict() for s in stations]),
            (self.prices_file, [p.to_dict() for p in prices]),
            (self.metadata_file, _metadata(stations, prices)),
        )
        staged = []
        for target, payload in targets:
            tmp = target.with_suffix(target.suffix + ".tmp")
            tmp.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
            staged.append((tmp, target))
        for tmp, target in staged:
            tmp.replace(target)

    async def save(self, stations: Sequence[Station], prices: Sequence[Price]) -> bool:
        if not stations or not prices:
            logger.error("Refusing to save an empty snapshot")
            return False
        try:
            await asyncio.to_thread(self._save_sync, stations, prices)
        except OSError as e:
            logger.error("Failed to save snapshot to %s: %s", self.directory, e)
            return False
        logger.info("Snapshot saved: %d stations, %d prices", len(stations), len(prices))
        return True

    async def metadata(self) -> Optional[Dict[str, Any]]:
        try:
            text = await asyncio.to_thread(self.metadata_file.read_text, encoding="utf-8")
            return json.loads(text)
        except (OSError, ValueError):
            return None

    async def clear(self) -> None:
        for path in (self.stations_file, self.prices_file, self.metadata_file):
            path.unlink(missing_ok=True)


class RedisSnapshotStore(SnapshotStore):
    """Snapshot kept in Redis under <prefix>:stations / :prices / :metadata (no expiry)."""

    name = "redis"

    def __init__(self, prefix: str, client: Optional[Redis] = None):
        self.prefix = prefix.rstrip(":")
        self._client = client

    def _key(self, part: str) -> str:
        return f"{self.prefix}:{part}"

    async def _redis(self) -> Optional[Redis]:
        return self._client or await get_redis_client()

    async def load(self) -> SnapshotPair:
        client = await self._redis()
        if client is None:
            logger.warning("Redis is not connected; no saved snapshot available")
            return [], []
        try:
            raw_stations = await get_cache(self._key("stations"), client=client)
            raw_prices = await get_cache(self._key("prices"), client=client)
        except (RedisError, OSError, ValueError) as e:
            logger.error("Failed to load snapshot from Redis: %s", e)
            return [], []
        stations, prices = _decode_pair(raw_stations, raw_prices)
        if stations:
            logger.info("Loaded %d stations and %d prices from Redis snapshot", len(stations), len(prices))
        return stations, prices

    async def save(self, stations: Sequence[Station], prices: Sequence[Price]) -> bool:
        if not stations or not prices:
            logger.error("Refusing to save an empty snapshot")
            return False
        client = await self._redis()
        if client is None:
            return False
        try:
            await set_cache(self._key("stations"), [s.to_dict() for s in stations], client=client)
            await set_cache(self._key("prices"), [p.to_dict() for p in prices], client=client)
            await set_cache(self._key("metadata"), _metadata(stations, prices), client=client)
        except (RedisError, OSError) as e:
            logger.error("Failed to save snapshot to Redis: %s", e)
            return False
        return True

    async def metadata(self) -> Optional[Dict[str, Any]]:
        client = await self._redis()
        if client is None:
            return None
        try:
            return await get_cache(self._key("metadata"), client=client)
        except (RedisError, OSError, ValueError):
            return None

    async def clear(self) -> None:
        client = await self._redis()
        for part in ("stations", "prices", "metadata"):
            await delete_cache(self._key(part), client=client)


def build_snapshot_store(backend: str, directory: Path, redis_prefix: str) -> SnapshotStore:
    if backend == "file":
        return FileSnapshotStore(directory)
    if backend == "redis":
        return RedisSnapshotStore(redis_prefix)
    return NullSnapshotStore()
