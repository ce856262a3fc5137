import math

import pytest

from carburanti.models import (
    ChargeStation,
    Connector,
    Address,
    Price,
    Station,
    normalize_station_id,
    parse_coordinate,
    parse_price,
)
from carburanti.services.data_cache import DataCache, SOURCE_SNAPSHOT
from carburanti.services.ev_pricing import PowerPriceTable
from carburanti.services.geo import UNREACHABLE_KM, distance_km, is_within_radius

from tests.fakes import MILAN, NOW, ROME, STATION_ROWS, sample_prices, sample_stations


class TestDistance:
    def test_rome_to_milan(self):
        d = distance_km(*ROME, *MILAN)
        assert 470 < d < 485

    def test_same_point_is_zero(self):
        assert distance_km(*ROME, *ROME) == 0

    def test_is_symmetric(self):
        assert distance_km(*ROME, *MILAN) == pytest.approx(distance_km(*MILAN, *ROME))

    @pytest.mark.parametrize("bad", [None, "", "abc", math.nan, math.inf])
    def test_bad_coordinate_is_unreachable(self, bad):
        assert distance_km(bad, 12.4964, *ROME) == UNREACHABLE_KM
        assert distance_km(*ROME, 41.9, bad) == UNREACHABLE_KM

    def test_numeric_strings_are_accepted(self):
        assert distance_km("41.9028", "12.4964", *MILAN) == pytest.approx(distance_km(*ROME, *MILAN))

    def test_unreachable_point_is_never_within_radius(self):
        assert not is_within_radius(*ROME, math.nan, 12.49, 1e9)
        assert is_within_radius(*ROME, 41.9030, 12.4970, 1)


class TestParsing:
    @pytest.mark.parametrize("raw,expected", [
        ("0045672", "45672"),
        (" 45672 ", "45672"),
        ("45672", "45672"),
        ("000", "0"),
        ("", ""),
        (None, ""),
        (45672, "45672"),
    ])
    def test_normalize_station_id(self, raw, expected):
        assert normalize_station_id(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        ("1,899", 1.899),
        ("1.759", 1.759),
        (" 2,1 ", 2.1),
        (1.5, 1.5),
    ])
    def test_parse_price(self, raw, expected):
        assert parse_price(raw) == pytest.approx(expected)

    @pytest.mark.parametrize("raw", ["abc", "", None, "nan"])
    def test_unparseable_price_is_none(self, raw):
        assert parse_price(raw) is None

    def test_parse_coordinate(self):
        assert parse_coordinate("41,9028") == pytest.approx(41.9028)
        assert math.isnan(parse_coordinate(""))
        assert math.isnan(parse_coordinate("abc"))
        assert math.isnan(parse_coordinate(None))


class TestRecords:
    def test_station_from_row(self):
        station = Station.from_row(STATION_ROWS[0])
        assert station.id == "1"
        assert station.operator == "ROSSI MARIO"
        assert station.brand == "ENI"
        assert station.address.municipality == "ROMA"
        assert station.lat == pytest.approx(41.903)

    def test_station_with_bad_coordinates_keeps_nan(self):
        station = Station.from_row(STATION_ROWS[4])
        assert math.isnan(station.lat) and math.isnan(station.lon)

    def test_station_dict_round_trip_turns_nan_into_null(self):
        station = Station.from_row(STATION_ROWS[4])
        data = station.to_dict()
        assert data["lat"] is None and data["lon"] is None
        restored = Station.from_dict(data)
        assert restored.id == station.id
        assert math.isnan(restored.lat)

    def test_price_from_row(self):
        price = Price.from_row(["0045672", "Benzina", "1,899", "1", "04/03/2025 19:30:00"])
        assert price.station_id == "45672"
        assert price.value == 1.899
        assert price.is_self is True
        assert Price.from_dict(price.to_dict()) == price

    def test_price_keeps_raw_text_when_unparseable(self):
        price = Price.from_row(["1", "Metano", "n.d.", "0", ""])
        assert price.raw_price == "n.d."
        assert price.value is None
        assert price.is_self is False

    def test_charge_station_max_power(self):
        station = ChargeStation(
            id="9991", name="x", operator="", address=Address(), lat=0.0, lon=0.0,
            connectors=[Connector("Type 2", 22.0), Connector("CCS", 150.0), Connector("Schuko", None)],
        )
        assert station.max_power_kw == 150.0
        assert ChargeStation(id="9992", name="y", operator="", address=Address(), lat=0, lon=0).max_power_kw is None


class TestDataCache:
    def test_starts_empty(self):
        snapshot = DataCache().read()
        assert not snapshot.populated
        assert snapshot.last_refreshed_at is None
        assert snapshot.source == "empty"

    def test_replace_indexes_prices_by_normalized_id(self):
        cache = DataCache()
        snapshot = cache.replace(sample_stations(), sample_prices(), refreshed_at=NOW)
        assert snapshot.populated
        assert [p.fuel_type for p in snapshot.prices_for("45672")] == ["Benzina"]
        assert [p.fuel_type for p in snapshot.prices_for("1")] == ["Benzina", "Gasolio"]
        assert snapshot.prices_for("missing") == ()

    def test_replace_never_mutates_the_previous_snapshot(self):
        cache = DataCache()
        first = cache.replace(sample_stations(), sample_prices(), refreshed_at=NOW)
        second = cache.replace(sample_stations()[:1], sample_prices()[:1], source=SOURCE_SNAPSHOT)
        assert len(first.stations) == len(STATION_ROWS)
        assert len(second.stations) == 1
        # no timestamp given: the previous refresh time is carried over
        assert second.last_refreshed_at == NOW
        assert second.source == SOURCE_SNAPSHOT

    def test_mark_refreshed_only_moves_the_timestamp(self):
        cache = DataCache()
        before = cache.replace(sample_stations(), sample_prices(), source=SOURCE_SNAPSHOT)
        after = cache.mark_refreshed(NOW)
        assert after.last_refreshed_at == NOW
        assert after.stations == before.stations
        assert after.source == SOURCE_SNAPSHOT
        assert before.last_refreshed_at is None

    def test_charge_stations_survive_a_fuel_swap(self):
        cache = DataCache()
        cache.replace_charge_stations([ChargeStation(id="9991", name="x", operator="", address=Address(), lat=0, lon=0)])
        cache.replace(sample_stations(), sample_prices())
        assert len(cache.read().charge_stations) == 1


class TestPowerPriceTable:
    @pytest.mark.parametrize("power,expected", [
        (3.7, 0.49),
        (7.4, 0.49),
        (11, 0.59),
        (22, 0.59),
        (49.9, 0.59),
        (50, 0.69),
        (99, 0.69),
        (100, 0.79),
        (350, 0.79),
    ])
    def test_default_tiers(self, power, expected):
        assert PowerPriceTable().price_for(power) == expected

    def test_unknown_power_has_no_price(self):
        table = PowerPriceTable()
        assert table.price_for(None) is None
        assert table.price_for(-1) is None

    def test_custom_tiers_are_sorted(self):
        table = PowerPriceTable([(22, 0.6), (5, 0.4)])
        assert table.tiers == [(5.0, 0.4), (22.0, 0.6)]
        # below the first bound falls back to the cheapest tier
        assert table.price_for(2) == 0.4
        assert table.price_for(30) == 0.6

    def test_empty_table_is_rejected(self):
        with pytest.raises(ValueError):
            PowerPriceTable([])
