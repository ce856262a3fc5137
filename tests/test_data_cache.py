from carburanti.services.data_cache import DataCache, Snapshot


def test_default_snapshots_share_an_empty_read_only_index():
    first, second = Snapshot(), DataCache().read()
    assert first.prices_by_station is second.prices_by_station
    assert dict(first.prices_by_station) == {}
    assert first.prices_for("1") == ()
