import math
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Query, Request

from carburanti.services.data_cache import DataCache
from carburanti.services.query_engine import QueryEngine
from carburanti.services.refresh_policy import RefreshPolicy


def get_data_cache(request: Request) -> DataCache:
    return request.app.state.data_cache


def get_refresh_policy(request: Request) -> RefreshPolicy:
    return request.app.state.refresh_policy


def get_query_engine(request: Request) -> QueryEngine:
    return request.app.state.query_engine


@dataclass(frozen=True)
class SearchParams:
    lat: float
    lng: float
    distance: float


def _parse_number(name: str, raw: str) -> float:
    try:
        value = float(raw.strip())
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Il parametro {name} deve essere numerico")
    if not math.isfinite(value):
        raise HTTPException(status_code=400, detail=f"Il parametro {name} deve essere numerico")
    return value


def search_params(
    lat: Optional[str] = Query(None, description="Latitudine del punto di ricerca"),
    lng: Optional[str] = Query(None, description="Longitudine del punto di ricerca"),
    distance: Optional[str] = Query(None, description="Raggio di ricerca in km"),
) -> SearchParams:
    """Parse lat/lng/distance by hand so that missing or bad values answer 400, not 422."""
    if not lat or not lng or not distance:
        raise HTTPException(status_code=400, detail="Parametri lat, lng e distance sono richiesti")
    params = SearchParams(
        lat=_parse_number("lat", lat),
        lng=_parse_number("lng", lng),
        distance=_parse_number("distance", distance),
    )
    if not -90 <= params.lat <= 90 or not -180 <= params.lng <= 180:
        raise HTTPException(status_code=400, detail="Coordinate fuori intervallo")
    if params.distance < 0:
        raise HTTPException(status_code=400, detail="Il parametro distance non puo' essere negativo")
    return params
