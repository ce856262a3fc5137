# carburanti/schemas/__init__.py
from .station import (
    StationResult,
    ChargeStationResult,
    PrezzoCarburante,
    Connettore,
    StationSearchResponse,
    TopStationsResponse,
    HealthResponse,
    CronResponse,
    ErrorResponse
)
