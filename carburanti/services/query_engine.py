"""Radius search over the cached datasets.

All work here is synchronous and in-memory: the refresh policy fetches what is
needed up front, then the engine filters, joins and sorts a single snapshot.
"""

import logging
import math
from dataclasses import replace
from typing import Iterable, List, Optional, Sequence, Tuple, Union

from carburanti.models import ChargeStation, Price, Station, normalize_station_id
from carburanti.schemas.station import (
    ChargeStationResult,
    Connettore,
    DettagliStazione,
    Indirizzo,
    Maps,
    PrezzoCarburante,
    StationResult,
)
from carburanti.services.data_cache import DataCache, Snapshot
from carburanti.services.ev_pricing import PowerPriceTable
from carburanti.services.geo import distance_km

logger = logging.getLogger(__name__)

CHARGE_STATION_TYPE = "Colonnina elettrica"


def _finite_or_none(value: float) -> Optional[float]:
    return value if value is not None and math.isfinite(value) else None


def price_entry(price: Price) -> PrezzoCarburante:
    return PrezzoCarburante(
        tipo=price.fuel_type,
        prezzo=price.value,
        self_service=price.is_self,
        ultimo_aggiornamento=price.updated_at or None,
    )


def station_result(station: Station, prices: Iterable[Price], distance: Optional[float]) -> StationResult:
    return StationResult(
        id_stazione=station.id,
        bandiera=station.brand,
        dettagli_stazione=DettagliStazione(gestore=station.operator, tipo=station.facility_type, nome=station.name),
        indirizzo=Indirizzo(
            via=station.address.street,
            comune=station.address.municipality,
            provincia=station.address.province,
        ),
        maps=Maps(lat=_finite_or_none(station.lat), lon=_finite_or_none(station.lon)),
        distanza=round(distance, 2) if distance is not None else None,
        prezzi_carburanti=[price_entry(p) for p in prices],
    )


def charge_station_result(station: ChargeStation, distance: float, electric_label: str) -> ChargeStationResult:
    return ChargeStationResult(
        id_stazione=station.id,
        bandiera=station.operator,
        dettagli_stazione=DettagliStazione(gestore=station.operator, tipo=CHARGE_STATION_TYPE, nome=station.name),
        indirizzo=Indirizzo(
            via=station.address.street,
            comune=station.address.municipality,
            provincia=station.address.province,
        ),
        maps=Maps(lat=station.lat, lon=station.lon),
        distanza=round(distance, 2),
        prezzi_carburanti=[
            PrezzoCarburante(
                tipo=electric_label,
                prezzo=station.estimated_price_kwh,
                self_service=True,
                ultimo_aggiornamento=station.status_updated_at,
            )
        ],
        connettori=[Connettore(tipo=c.type_label, potenza_kw=c.power_kw) for c in station.connectors],
    )


class QueryEngine:
    """
    Filters the cached snapshot around a query point.

    Results are ordered by ascending distance (stable: ties keep registry
    order) and capped at max_results to bound the response size.
    """

    def __init__(
        self,
        cache: DataCache,
        price_table: Optional[PowerPriceTable] = None,
        max_results: int = 30,
        electric_label: str = "Elettrica",
        top_limit: int = 10,
    ):
        self.cache = cache
        self.top_limit = top_limit
        self.price_table = price_table or PowerPriceTable()
        self.max_results = max_results
        self.electric_label = electric_label

    def is_electric(self, fuel_type: Optional[str]) -> bool:
        return bool(fuel_type) and fuel_type.strip().casefold() == self.electric_label.casefold()

    def _cap(self, results: list) -> list:
        if self.max_results and self.max_results > 0:
            return results[: self.max_results]
        return results

    def find_fuel_stations(
        self,
        lat: float,
        lon: float,
        max_distance_km: float,
        fuel_type: Optional[str] = None,
        snapshot: Optional[Snapshot] = None,
    ) -> List[StationResult]:
        snapshot = snapshot or self.cache.read()
        wanted = fuel_type.strip().casefold() if fuel_type and fuel_type.strip() else None

        matches: List[Tuple[float, Station, Sequence[Price]]] = []
        for station in snapshot.stations:
            dist = distance_km(lat, lon, station.lat, station.lon)
            # unparseable coordinates come back as inf and drop out here
            if not dist <= max_distance_km:
                continue
            prices: Sequence[Price] = snapshot.prices_for(normalize_station_id(station.id))
            if wanted is not None:
                prices = [p for p in prices if p.fuel_type.strip().casefold() == wanted]
                if not prices:
                    continue
            matches.append((dist, station, prices))

        matches.sort(key=lambda item: item[0])
        results = [station_result(station, prices, dist) for dist, station, prices in self._cap(matches)]
        logger.debug("Fuel search (%s, %s, %skm, %s): %d results", lat, lon, max_distance_km, fuel_type, len(results))
        return results

    def find_charge_stations(
        self,
        lat: float,
        lon: float,
        max_distance_km: float,
        snapshot: Optional[Snapshot] = None,
    ) -> List[ChargeStationResult]:
        snapshot = snapshot or self.cache.read()
        matches: List[Tuple[float, ChargeStation]] = []
        for station in snapshot.charge_stations:
            dist = distance_km(lat, lon, station.lat, station.lon)
            if not dist <= max_distance_km:
                continue
            matches.append((dist, station))

        matches.sort(key=lambda item: item[0])
        return [self._charge_result(station, dist) for dist, station in self._cap(matches)]

    def _charge_result(self, station: ChargeStation, dist: float) -> ChargeStationResult:
        if station.estimated_price_kwh is None and station.max_power_kw is not None:
            # price from the engine's table when the fetcher did not set one
            station = replace(station, estimated_price_kwh=self.price_table.price_for(station.max_power_kw))
        return charge_station_result(station, dist, self.electric_label)

    def find_fuel_stations_by_fuel_type(
        self,
        lat: float,
        lon: float,
        max_distance_km: float,
        fuel_type: str,
        snapshot: Optional[Snapshot] = None,
    ) -> Union[List[StationResult], List[ChargeStationResult]]:
        """Fuel-type filtered search; the electric label goes to the EV dataset."""
        if not fuel_type or not fuel_type.strip():
            raise ValueError("fuel_type is required")
        if self.is_electric(fuel_type):
            return self.find_charge_stations(lat, lon, max_distance_km, snapshot=snapshot)
        return self.find_fuel_stations(lat, lon, max_distance_km, fuel_type=fuel_type, snapshot=snapshot)

    def top_stations(self, limit: Optional[int] = None, snapshot: Optional[Snapshot] = None) -> List[StationResult]:
        """First `limit` registry stations with their prices (no distance)."""
        snapshot = snapshot or self.cache.read()
        limit = self.top_limit if limit is None else limit
        return [
            station_result(station, snapshot.prices_for(station.id), None)
            for station in snapshot.stations[: max(0, limit)]
        ]
