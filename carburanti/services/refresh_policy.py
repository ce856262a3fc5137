"""Staleness-checked refresh of the data cache with ordered fallback tiers.

Fuel data:  remote (primary URL, then mirrors) -> saved snapshot -> built-in set.
EV data:    refreshed on its own, per search area, and never blocks fuel data.

Refresh runs lazily from the request path (the request that finds the cache
stale pays the fetch latency, bounded by the source timeouts) and eagerly
from the startup/timer tasks wired in main.py.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Sequence, Tuple

from carburanti.models import ChargeStation, Price, SearchArea, Station
from carburanti.services.data_cache import (
    DataCache,
    Snapshot,
    SOURCE_BUILTIN,
    SOURCE_REMOTE,
    SOURCE_SNAPSHOT,
)
from carburanti.services.dataset_fetcher import DatasetFetcher
from carburanti.services.fallback_data import builtin_dataset
from carburanti.services.geo import distance_km
from carburanti.services.snapshot_store import NullSnapshotStore, SnapshotStore

logger = logging.getLogger(__name__)

Pair = Tuple[List[Station], List[Price]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class FallbackTier:
    """One source of a stations/prices pair, consulted in priority order."""

    name = "tier"
    # whether a successful load counts as a fresh refresh (moves last_refreshed_at)
    marks_refreshed = False

    def usable_for(self, snapshot: Snapshot) -> bool:
        return True

    async def load(self) -> Pair:
        raise NotImplementedError


class RemoteTier(FallbackTier):
    """Ministry CSV exports; each dataset walks its own primary/mirror list."""

    name = SOURCE_REMOTE
    marks_refreshed = True

    def __init__(
        self,
        fetcher: DatasetFetcher,
        station_sources: Sequence[str],
        price_sources: Sequence[str],
        separator: str = ";",
        header_rows: int = 2,
    ):
        self.fetcher = fetcher
        self.station_sources = list(station_sources)
        self.price_sources = list(price_sources)
        self.separator = separator
        self.header_rows = header_rows

    async def load(self) -> Pair:
        # both downloads are independent; run them together
        stations, prices = await asyncio.gather(
            self.fetcher.fetch_stations(self.station_sources, separator=self.separator, header_rows=self.header_rows),
            self.fetcher.fetch_prices(self.price_sources, separator=self.separator, header_rows=self.header_rows),
        )
        if not stations or not prices:
            logger.warning("Remote refresh incomplete: %d stations, %d prices", len(stations), len(prices))
            return [], []
        return stations, prices


class SnapshotTier(FallbackTier):
    """Last persisted pair. Skipped while the cache already holds remote data."""

    name = SOURCE_SNAPSHOT

    def __init__(self, store: SnapshotStore):
        self.store = store

    def usable_for(self, snapshot: Snapshot) -> bool:
        return snapshot.source != SOURCE_REMOTE

    async def load(self) -> Pair:
        stations, prices = await self.store.load()
        if not stations or not prices:
            return [], []
        return stations, prices


class BuiltinTier(FallbackTier):
    """Hard-coded minimal dataset, only for a cache that was never populated."""

    name = SOURCE_BUILTIN

    def usable_for(self, snapshot: Snapshot) -> bool:
        return not snapshot.populated

    async def load(self) -> Pair:
        return builtin_dataset()


class RefreshPolicy:
    """
    Decides when the cache is stale and refills it.

    A single asyncio.Lock guards the fuel refresh and another guards the EV
    refresh; callers that queue behind an in-flight refresh re-check
    staleness after acquiring the lock, so one stale window costs one fetch
    cycle no matter how many requests arrive.
    """

    def __init__(
        self,
        cache: DataCache,
        tiers: Iterable[FallbackTier],
        staleness_threshold: timedelta,
        fetcher: Optional[DatasetFetcher] = None,
        snapshot_store: Optional[SnapshotStore] = None,
        persist_snapshots: bool = True,
        failed_refresh_cooldown: timedelta = timedelta(0),
        ev_staleness: timedelta = timedelta(minutes=15),
        ev_min_radius_km: float = 0.0,
    ):
        self.cache = cache
        self.tiers = list(tiers)
        self.staleness_threshold = staleness_threshold
        self.fetcher = fetcher
        self.snapshot_store = snapshot_store or NullSnapshotStore()
        self.persist_snapshots = persist_snapshots
        self.failed_refresh_cooldown = failed_refresh_cooldown
        self.ev_staleness = ev_staleness
        self.ev_min_radius_km = ev_min_radius_km

        self.last_attempt_at: Optional[datetime] = None
        self.last_failure_at: Optional[datetime] = None
        self.last_source: Optional[str] = None
        self.refresh_count = 0

        self._lock = asyncio.Lock()
        self._ev_lock = asyncio.Lock()

    # --------------------------
    # Fuel stations / prices
    # --------------------------
    def is_stale(self, now: Optional[datetime] = None) -> bool:
        now = now or utc_now()
        snapshot = self.cache.read()
        if snapshot.last_refreshed_at is None:
            stale = True
        else:
            stale = now - snapshot.last_refreshed_at > self.staleness_threshold
        if not stale:
            return False
        if self.last_failure_at is not None and self.failed_refresh_cooldown:
            # a remote failure just happened; leave upstream alone for a while
            if now - self.last_failure_at < self.failed_refresh_cooldown:
                return False
        return True

    @property
    def refreshing(self) -> bool:
        return self._lock.locked()

    async def ensure_fresh(self, now: Optional[datetime] = None) -> Snapshot:
        """Refresh the fuel pair if stale; return the (possibly unchanged) snapshot."""
        if not self.is_stale(now):
            return self.cache.read()

        async with self._lock:
            # another request may have refreshed while we waited for the lock
            if not self.is_stale(now):
                return self.cache.read()
            await self._refresh(now or utc_now())

        await self._refresh_known_charge_area(now)
        return self.cache.read()

    async def _refresh(self, now: datetime) -> None:
        self.last_attempt_at = now
        self.refresh_count += 1
        logger.info("Refreshing fuel datasets (cycle %d)", self.refresh_count)

        for tier in self.tiers:
            current = self.cache.read()
            if not tier.usable_for(current):
                logger.debug("Skipping tier %s", tier.name)
                continue

            try:
                stations, prices = await tier.load()
            except Exception:
                # a tier bug must not take the service down; try the next one
                logger.exception("Fallback tier %s raised", tier.name)
                stations, prices = [], []

            if tier.marks_refreshed and not (stations and prices):
                self.last_failure_at = now

            if not stations or not prices:
                logger.warning("Tier %s yielded no data", tier.name)
                continue

            if tier.marks_refreshed:
                self.cache.replace(stations, prices, source=tier.name, refreshed_at=now)
                self.last_failure_at = None
                if self.persist_snapshots:
                    await self.snapshot_store.save(stations, prices)
            else:
                # last_refreshed_at stays put so the next request retries the remote tier
                self.cache.replace(stations, prices, source=tier.name)

            self.last_source = tier.name
            logger.info("Cache loaded from %s: %d stations, %d prices", tier.name, len(stations), len(prices))
            return

        current = self.cache.read()
        if current.populated:
            logger.warning("All tiers failed; keeping existing %s data", current.source)
        else:
            logger.error("All tiers failed and the cache is empty")

    # --------------------------
    # EV charge stations
    # --------------------------
    def _charge_cache_covers(self, snapshot: Snapshot, lat: float, lon: float, radius_km: float, now: datetime) -> bool:
        area = snapshot.charge_area
        if area is None or snapshot.charge_fetched_at is None:
            return False
        if now - snapshot.charge_fetched_at > self.ev_staleness:
            return False
        return distance_km(area.lat, area.lon, lat, lon) + radius_km <= area.radius_km

    async def ensure_charge_stations(
        self, lat: float, lon: float, radius_km: float, now: Optional[datetime] = None
    ) -> Snapshot:
        """Make sure the cached EV list covers the query circle.

        An empty provider answer (outage or a genuinely empty area) leaves the
        previous list in place; the query engine's radius filter drops any
        entries that belong to another area.
        """
        now = now or utc_now()
        if self.fetcher is None or self._charge_cache_covers(self.cache.read(), lat, lon, radius_km, now):
            return self.cache.read()

        async with self._ev_lock:
            if self._charge_cache_covers(self.cache.read(), lat, lon, radius_km, now):
                return self.cache.read()
            search_radius = max(radius_km, self.ev_min_radius_km)
            stations = await self.fetcher.fetch_charge_stations(lat, lon, search_radius)
            if stations:
                area = self._covered_area(lat, lon, search_radius, stations)
                self.cache.replace_charge_stations(stations, area, now)
            else:
                logger.warning("EV search returned nothing; keeping %d cached charge stations",
                               len(self.cache.read().charge_stations))
        return self.cache.read()

    def _covered_area(self, lat: float, lon: float, radius_km: float, stations: Sequence[ChargeStation]) -> SearchArea:
        """Circle the fetched list is complete for.

        A result cut off at the provider's max results only covers the circle
        out to its farthest returned station.
        """
        max_results = getattr(self.fetcher, "ev_max_results", 0) or 0
        if max_results <= 0 or len(stations) < max_results:
            return SearchArea(lat, lon, radius_km)
        farthest = max(distance_km(lat, lon, s.lat, s.lon) for s in stations)
        covered = min(radius_km, farthest)
        logger.info("EV search hit the %d result limit; caching coverage of %.2fkm instead of %skm",
                    max_results, covered, radius_km)
        return SearchArea(lat, lon, covered)

    async def _refresh_known_charge_area(self, now: Optional[datetime]) -> None:
        area = self.cache.read().charge_area
        if area is None:
            return
        try:
            await self.ensure_charge_stations(area.lat, area.lon, area.radius_km, now)
        except Exception:
            # EV refresh is best-effort and must not fail the fuel refresh
            logger.exception("EV refresh failed for area %s", area)


def build_refresh_policy(settings, cache: DataCache, fetcher: DatasetFetcher, store: SnapshotStore) -> RefreshPolicy:
    """Wire the default remote -> snapshot -> built-in tier chain from settings."""
    tiers: List[FallbackTier] = [
        RemoteTier(
            fetcher,
            settings.STATIONS_CSV_URLS,
            settings.PRICES_CSV_URLS,
            separator=settings.CSV_SEPARATOR,
            header_rows=settings.CSV_HEADER_ROWS,
        ),
        SnapshotTier(store),
        BuiltinTier(),
    ]
    return RefreshPolicy(
        cache,
        tiers,
        staleness_threshold=timedelta(seconds=settings.STALENESS_THRESHOLD_SECONDS),
        fetcher=fetcher,
        snapshot_store=store,
        persist_snapshots=settings.PERSIST_SNAPSHOTS,
        failed_refresh_cooldown=timedelta(seconds=settings.FAILED_REFRESH_COOLDOWN_SECONDS),
        ev_staleness=timedelta(seconds=settings.EV_STALENESS_SECONDS),
        ev_min_radius_km=settings.EV_MIN_SEARCH_RADIUS_KM,
    )
