import pytest
from pydantic import ValidationError

from carburanti.core.config import Settings


def test_defaults():
    settings = Settings(SNAPSHOT_BACKEND="none")
    assert settings.CSV_SEPARATOR == ";"
    assert settings.CSV_HEADER_ROWS == 2
    assert settings.STALENESS_THRESHOLD_SECONDS == 86400
    assert settings.MAX_RESULTS == 30
    assert settings.ELECTRIC_FUEL_LABEL == "Elettrica"
    assert "mise.gov.it" in settings.STATIONS_CSV_URLS[0]
    assert len(settings.PRICES_CSV_URLS) == 2


def test_url_lists_from_environment(monkeypatch):
    monkeypatch.setenv("STATIONS_CSV_URLS", "https://a.example/s.csv, https://b.example/s.csv")
    monkeypatch.setenv("PRICES_CSV_URLS", '["https://a.example/p.csv"]')
    monkeypatch.setenv("ALLOWED_ORIGINS", "https://app.example")
    settings = Settings()
    assert settings.STATIONS_CSV_URLS == ["https://a.example/s.csv", "https://b.example/s.csv"]
    assert settings.PRICES_CSV_URLS == ["https://a.example/p.csv"]
    assert settings.ALLOWED_ORIGINS == ["https://app.example"]


def test_price_tiers_from_environment(monkeypatch):
    monkeypatch.setenv("EV_PRICE_TIERS", "[[0, 0.45], [22, 0.55]]")
    assert Settings().EV_PRICE_TIERS == [(0.0, 0.45), (22.0, 0.55)]


def test_boolean_flags(monkeypatch):
    monkeypatch.setenv("STARTUP_REFRESH", "no")
    monkeypatch.setenv("PERSIST_SNAPSHOTS", "TRUE")
    settings = Settings()
    assert settings.STARTUP_REFRESH is False
    assert settings.PERSIST_SNAPSHOTS is True


def test_unknown_snapshot_backend_is_rejected():
    with pytest.raises(ValidationError):
        Settings(SNAPSHOT_BACKEND="sqlite")


def test_redis_defaults(monkeypatch):
    monkeypatch.delenv("REDIS_HOST", raising=False)
    monkeypatch.delenv("REDIS_PORT", raising=False)
    settings = Settings(SNAPSHOT_BACKEND="Redis")
    assert settings.SNAPSHOT_BACKEND == "redis"
    assert settings.REDIS_HOST == "localhost"
    assert settings.REDIS_PORT == 6379

    docker = Settings(ENVIRONMENT="docker", SNAPSHOT_BACKEND="redis")
    assert docker.REDIS_HOST == "carburanti_redis"
