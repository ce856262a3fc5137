"""FastAPI router for fuel and EV station searches"""

import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse

from carburanti.api.deps import SearchParams, get_query_engine, get_refresh_policy, search_params
from carburanti.schemas.station import ErrorResponse, StationSearchResponse, TopStationsResponse
from carburanti.services.query_engine import QueryEngine
from carburanti.services.refresh_policy import RefreshPolicy

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Stations"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Parametri mancanti o non validi"},
    503: {"model": ErrorResponse, "description": "Dati non ancora disponibili"},
}


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _envelope(total: int, stations: list) -> JSONResponse:
    body = StationSearchResponse(
        timestamp=_now_iso(),
        totale_stazioni=total,
        stazioni_trovate=len(stations),
        stations=stations,
    )
    return JSONResponse(status_code=200, content=body.model_dump(mode="json"))


async def _fresh_fuel_snapshot(policy: RefreshPolicy):
    snapshot = await policy.ensure_fresh()
    if not snapshot.populated:
        raise HTTPException(status_code=503, detail="Dati non ancora disponibili")
    return snapshot


@router.get(
    "/gas-stations",
    summary="Distributori entro un raggio",
    responses={200: {"model": StationSearchResponse}, **ERROR_RESPONSES},
)
async def gas_stations(
    params: SearchParams = Depends(search_params),
    policy: RefreshPolicy = Depends(get_refresh_policy),
    engine: QueryEngine = Depends(get_query_engine),
):
    """Fuel stations within `distance` km of (lat, lng), nearest first, with all prices."""
    snapshot = await _fresh_fuel_snapshot(policy)
    stations = engine.find_fuel_stations(params.lat, params.lng, params.distance, snapshot=snapshot)
    logger.info("Returned %d stations for (%s, %s) radius %skm", len(stations), params.lat, params.lng, params.distance)
    return _envelope(len(snapshot.stations), stations)


@router.get(
    "/gas-stations-by-fuel",
    summary="Distributori entro un raggio filtrati per carburante",
    responses={200: {"model": StationSearchResponse}, **ERROR_RESPONSES},
)
async def gas_stations_by_fuel(
    params: SearchParams = Depends(search_params),
    fuel_type: Optional[str] = Query(None, alias="TipoFuel", description="Benzina, Gasolio, GPL, Metano, Elettrica, ..."),
    policy: RefreshPolicy = Depends(get_refresh_policy),
    engine: QueryEngine = Depends(get_query_engine),
):
    """
    Same search as /gas-stations keeping only stations that sell `TipoFuel`.

    `TipoFuel=Elettrica` is answered from the EV charge station dataset.
    """
    if not fuel_type or not fuel_type.strip():
        raise HTTPException(status_code=400, detail="Parametri lat, lng, distance e TipoFuel sono richiesti")

    if engine.is_electric(fuel_type):
        snapshot = await policy.ensure_charge_stations(params.lat, params.lng, params.distance)
        stations = engine.find_fuel_stations_by_fuel_type(
            params.lat, params.lng, params.distance, fuel_type, snapshot=snapshot
        )
        return _envelope(len(snapshot.charge_stations), stations)

    snapshot = await _fresh_fuel_snapshot(policy)
    stations = engine.find_fuel_stations_by_fuel_type(
        params.lat, params.lng, params.distance, fuel_type, snapshot=snapshot
    )
    logger.info("Returned %d %s stations for (%s, %s) radius %skm",
                len(stations), fuel_type, params.lat, params.lng, params.distance)
    return _envelope(len(snapshot.stations), stations)


@router.get(
    "/charge-stations",
    summary="Colonnine di ricarica entro un raggio",
    responses={200: {"model": StationSearchResponse}, 400: ERROR_RESPONSES[400]},
)
async def charge_stations(
    params: SearchParams = Depends(search_params),
    policy: RefreshPolicy = Depends(get_refresh_policy),
    engine: QueryEngine = Depends(get_query_engine),
):
    """EV charge stations near (lat, lng) with a price estimated from charger power."""
    snapshot = await policy.ensure_charge_stations(params.lat, params.lng, params.distance)
    stations = engine.find_charge_stations(params.lat, params.lng, params.distance, snapshot=snapshot)
    return _envelope(len(snapshot.charge_stations), stations)


@router.get(
    "/top-stations",
    summary="Prime stazioni dell'anagrafica (debug)",
    responses={200: {"model": TopStationsResponse}, 503: ERROR_RESPONSES[503]},
)
async def top_stations(
    policy: RefreshPolicy = Depends(get_refresh_policy),
    engine: QueryEngine = Depends(get_query_engine),
):
    snapshot = await _fresh_fuel_snapshot(policy)
    stations = engine.top_stations(snapshot=snapshot)
    body = TopStationsResponse(
        timestamp=_now_iso(),
        totale_stazioni=len(snapshot.stations),
        stazioni_mostrate=len(stations),
        stations=stations,
    )
    return JSONResponse(status_code=200, content=body.model_dump(mode="json"))
