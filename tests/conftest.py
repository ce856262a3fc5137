import pytest
from fastapi.testclient import TestClient

from carburanti.core.config import Settings
from carburanti.main import create_app
from carburanti.services.data_cache import DataCache
from carburanti.services.refresh_policy import build_refresh_policy

from tests.fakes import FakeFetcher, FakeSnapshotStore, sample_prices, sample_stations


@pytest.fixture
def test_settings():
    return Settings(
        ENVIRONMENT="test",
        SNAPSHOT_BACKEND="none",
        STARTUP_REFRESH=False,
        REFRESH_INTERVAL_SECONDS=0,
        FAILED_REFRESH_COOLDOWN_SECONDS=0,
        PERSIST_SNAPSHOTS=False,
        ALLOWED_ORIGINS=[],
    )


@pytest.fixture
def fetcher():
    return FakeFetcher(stations=sample_stations(), prices=sample_prices())


@pytest.fixture
def make_client(test_settings):
    """Build a TestClient around create_app with injected fakes."""
    clients = []

    def _make(fetcher=None, store=None, cache=None, refresh_policy=None, **kwargs):
        cache = cache or DataCache()
        fetcher = fetcher or FakeFetcher()
        store = store or FakeSnapshotStore()
        policy = refresh_policy or build_refresh_policy(test_settings, cache, fetcher, store)
        app = create_app(
            test_settings,
            cache=cache,
            fetcher=fetcher,
            snapshot_store=store,
            refresh_policy=policy,
            background_refresh=False,
        )
        client = TestClient(app, **kwargs)
        client.__enter__()
        clients.append(client)
        return client

    yield _make
    for client in clients:
        client.__exit__(None, None, None)
