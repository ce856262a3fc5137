# Fake collaborators and sample data shared by the test modules.
# Nothing here touches the network, Redis or the filesystem.

import asyncio
from datetime import datetime, timezone

from carburanti.models import Address, ChargeStation, Connector, Price, Station
from carburanti.services.data_cache import DataCache
from carburanti.services.snapshot_store import SnapshotStore

ROME = (41.9028, 12.4964)
MILAN = (45.4642, 9.1900)
NOW = datetime(2025, 3, 5, 8, 0, tzinfo=timezone.utc)

# Registry rows in CSV column order. Station 45672 is written without padding
# here while its price rows below carry the zero-padded id.
STATION_ROWS = [
    ["1", "ROSSI MARIO", "ENI", "Stradale", "ENI PIAZZA VENEZIA", "PIAZZA VENEZIA 1", "ROMA", "RM", "41.9030", "12.4970"],
    ["2", "BIANCHI SRL", "Q8", "Stradale", "Q8 NOMENTANA", "VIA NOMENTANA 10", "ROMA", "RM", "41.9200", "12.5000"],
    ["45672", "VERDI SNC", "IP", "Stradale", "IP AURELIA", "VIA AURELIA 5", "ROMA", "RM", "41.9100", "12.4900"],
    ["3", "NERI SPA", "TAMOIL", "Stradale", "TAMOIL SEMPIONE", "CORSO SEMPIONE 94", "MILANO", "MI", "45.4642", "9.1900"],
    ["4", "SENZA COORDINATE", "", "Stradale", "", "VIA IGNOTA", "ROMA", "RM", "", "abc"],
]

PRICE_ROWS = [
    ["1", "Benzina", "1,859", "1", "05/03/2025 08:00:00"],
    ["1", "Gasolio", "1,759", "1", "05/03/2025 08:00:00"],
    ["2", "Gasolio", "1,749", "0", "05/03/2025 08:00:00"],
    ["0045672", "Benzina", "1,899", "1", "04/03/2025 19:30:00"],
    ["3", "Benzina", "1,879", "1", "05/03/2025 07:45:00"],
    ["4", "Benzina", "1,800", "1", "05/03/2025 07:00:00"],
]


def sample_stations():
    return [Station.from_row(row) for row in STATION_ROWS]


def sample_prices():
    return [Price.from_row(row) for row in PRICE_ROWS]


def sample_charge_station(station_id="99912345", lat=41.9035, lon=12.4960, power_kw=22.0, price=0.59):
    return ChargeStation(
        id=station_id,
        name="Enel X Piazza Venezia",
        operator="Enel X",
        address=Address(street="Piazza Venezia 3", municipality="Roma", province="RM"),
        lat=lat,
        lon=lon,
        connectors=[Connector("Type 2", power_kw)],
        estimated_price_kwh=price,
        status_updated_at="2025-03-01T10:00:00Z",
    )


def populated_cache(refreshed_at=NOW, charge_stations=()):
    cache = DataCache()
    cache.replace(sample_stations(), sample_prices(), refreshed_at=refreshed_at)
    if charge_stations:
        cache.replace_charge_stations(list(charge_stations))
    return cache


def csv_text(rows, header=True):
    lines = []
    if header:
        lines.append("Estrazione del 2025-03-05")
        lines.append("col0;col1;col2;col3;col4;col5;col6;col7;col8;col9")
    lines.extend(";".join(row) for row in rows)
    return "\n".join(lines) + "\n"


class FakeFetcher:
    """Stands in for DatasetFetcher; counts calls and returns canned lists."""

    def __init__(self, stations=None, prices=None, charge_stations=None, delay=0.0):
        self.stations = list(stations or [])
        self.prices = list(prices or [])
        self.charge_stations = list(charge_stations or [])
        self.delay = delay
        self.station_calls = 0
        self.price_calls = 0
        self.charge_calls = []

    async def fetch_stations(self, sources, separator=";", header_rows=2):
        self.station_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.stations)

    async def fetch_prices(self, sources, separator=";", header_rows=2):
        self.price_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        return list(self.prices)

    async def fetch_charge_stations(self, lat, lon, radius_km):
        self.charge_calls.append((lat, lon, radius_km))
        return list(self.charge_stations)


class FakeSnapshotStore(SnapshotStore):
    name = "fake"

    def __init__(self, stations=None, prices=None):
        self.stations = list(stations or [])
        self.prices = list(prices or [])
        self.saves = []
        self.load_calls = 0

    async def load(self):
        self.load_calls += 1
        return list(self.stations), list(self.prices)

    async def save(self, stations, prices):
        self.saves.append((list(stations), list(prices)))
        self.stations, self.prices = list(stations), list(prices)
        return True


class FakeRedis:
    """Just enough of redis.asyncio.Redis for the snapshot store."""

    def __init__(self):
        self.store = {}
        self.expiries = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self.store[key] = value
        self.expiries[key] = ex
        return True

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0


class BrokenPolicy:
    """Refresh policy whose every call blows up."""

    refreshing = False

    async def ensure_fresh(self, now=None):
        raise RuntimeError("refresh exploded")

    async def ensure_charge_stations(self, lat, lon, radius_km, now=None):
        raise RuntimeError("refresh exploded")
