"""In-memory store for the fuel and EV datasets.

Writers never mutate a snapshot: each write builds a new frozen Snapshot and
swaps the reference, so a reader always sees one complete generation.
"""

from dataclasses import dataclass, field, replace as dc_replace
from datetime import datetime
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from carburanti.models import ChargeStation, Price, SearchArea, Station

SOURCE_EMPTY = "empty"
SOURCE_REMOTE = "remote"
SOURCE_SNAPSHOT = "snapshot"
SOURCE_BUILTIN = "builtin"

_EMPTY_INDEX: Mapping[str, Tuple[Price, ...]] = MappingProxyType({})


def index_prices(prices: Sequence[Price]) -> Mapping[str, Tuple[Price, ...]]:
    """Group price rows by normalized station id, keeping input order."""
    grouped: Dict[str, List[Price]] = {}
    for price in prices:
        grouped.setdefault(price.station_id, []).append(price)
    return MappingProxyType({key: tuple(rows) for key, rows in grouped.items()})


@dataclass(frozen=True)
class Snapshot:
    stations: Tuple[Station, ...] = ()
    prices: Tuple[Price, ...] = ()
    prices_by_station: Mapping[str, Tuple[Price, ...]] = field(default_factory=lambda: _EMPTY_INDEX, repr=False)
    charge_stations: Tuple[ChargeStation, ...] = ()
    charge_area: Optional[SearchArea] = None
    charge_fetched_at: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None
    source: str = SOURCE_EMPTY

    @property
    def populated(self) -> bool:
        return bool(self.stations) and bool(self.prices)

    def prices_for(self, station_id: str) -> Tuple[Price, ...]:
        return self.prices_by_station.get(station_id, ())


class DataCache:
    """Process-wide holder of the current Snapshot. Injected into the policy and the engine."""

    def __init__(self, initial: Optional[Snapshot] = None):
        self._snapshot = initial or Snapshot()

    def read(self) -> Snapshot:
        return self._snapshot

    def replace(
        self,
        stations: Sequence[Station],
        prices: Sequence[Price],
        source: str = SOURCE_REMOTE,
        refreshed_at: Optional[datetime] = None,
    ) -> Snapshot:
        """Swap stations and prices together; the EV list is carried over untouched.

        When refreshed_at is given the refresh timestamp moves in the same swap.
        """
        current = self._snapshot
        prices = tuple(prices)
        self._snapshot = dc_replace(
            current,
            stations=tuple(stations),
            prices=prices,
            prices_by_station=index_prices(prices),
            source=source,
            last_refreshed_at=refreshed_at or current.last_refreshed_at,
        )
        return self._snapshot

    def replace_charge_stations(
        self,
        charge_stations: Sequence[ChargeStation],
        area: Optional[SearchArea] = None,
        fetched_at: Optional[datetime] = None,
    ) -> Snapshot:
        self._snapshot = dc_replace(
            self._snapshot,
            charge_stations=tuple(charge_stations),
            charge_area=area,
            charge_fetched_at=fetched_at,
        )
        return self._snapshot

    def mark_refreshed(self, timestamp: datetime) -> Snapshot:
        self._snapshot = dc_replace(self._snapshot, last_refreshed_at=timestamp)
        return self._snapshot
