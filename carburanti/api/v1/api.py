from fastapi import APIRouter
from carburanti.api.v1.station_router import router as station_router
from carburanti.api.v1.cron_router import router as cron_router

api_router = APIRouter()

# Station searches are served at the root (/gas-stations, ...) without a version prefix
api_router.include_router(station_router)
api_router.include_router(cron_router)
