import asyncio
import contextlib
import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Depends, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

# 프로젝트 내부 모듈 임포트
from carburanti.core.config import Settings, settings as default_settings
from carburanti.redis_client import init_redis_pool, close_redis_pool
from carburanti.api.deps import get_refresh_policy
from carburanti.api.v1.api import api_router
from carburanti.schemas.station import HealthResponse
from carburanti.services.data_cache import DataCache
from carburanti.services.dataset_fetcher import DatasetFetcher
from carburanti.services.ev_pricing import PowerPriceTable
from carburanti.services.query_engine import QueryEngine
from carburanti.services.refresh_policy import RefreshPolicy, build_refresh_policy
from carburanti.services.snapshot_store import SnapshotStore, build_snapshot_store

logger = logging.getLogger("carburanti.main")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


async def _refresh_loop(policy: RefreshPolicy, interval_seconds: int) -> None:
    """Eager refresh timer; each tick is a cheap no-op while the cache is fresh."""
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await policy.ensure_fresh()
        except Exception:
            logger.exception("Scheduled refresh failed")


async def _startup_refresh(policy: RefreshPolicy) -> None:
    try:
        snapshot = await policy.ensure_fresh()
        logger.info("Startup refresh done: source=%s stations=%d", snapshot.source, len(snapshot.stations))
    except Exception:
        logger.exception("Startup refresh failed")


# --- Lifespan Context Manager 정의 ---
@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Settings = app.state.settings
    logger.info("Application startup: Initializing resources...")
    if cfg.SNAPSHOT_BACKEND == "redis":
        await init_redis_pool()

    tasks = []
    if app.state.background_refresh:
        policy: RefreshPolicy = app.state.refresh_policy
        if cfg.STARTUP_REFRESH:
            # runs in the background so the port opens immediately; requests
            # arriving meanwhile queue on the refresh lock
            tasks.append(asyncio.create_task(_startup_refresh(policy)))
        if cfg.REFRESH_INTERVAL_SECONDS > 0:
            tasks.append(asyncio.create_task(_refresh_loop(policy, cfg.REFRESH_INTERVAL_SECONDS)))
    yield
    logger.info("Application shutdown: Cleaning up resources...")
    for task in tasks:
        task.cancel()
    for task in tasks:
        with contextlib.suppress(asyncio.CancelledError):
            await task
    await close_redis_pool()


def _error_body(message: str) -> dict:
    return {"status": "error", "message": message}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content=_error_body(str(exc.detail)), headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content=_error_body("Parametri non validi"))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=_error_body("Errore interno del server"))


def create_app(
    settings: Optional[Settings] = None,
    *,
    cache: Optional[DataCache] = None,
    fetcher: Optional[DatasetFetcher] = None,
    snapshot_store: Optional[SnapshotStore] = None,
    refresh_policy: Optional[RefreshPolicy] = None,
    query_engine: Optional[QueryEngine] = None,
    background_refresh: bool = True,
) -> FastAPI:
    """Build the application; every collaborator can be injected (tests pass fakes)."""
    cfg = settings or default_settings

    price_table = PowerPriceTable(cfg.EV_PRICE_TIERS)
    cache = cache or DataCache()
    fetcher = fetcher or DatasetFetcher(
        csv_timeout=cfg.CSV_FETCH_TIMEOUT_SECONDS,
        ev_base_url=cfg.EV_API_BASE_URL,
        ev_api_key=cfg.EV_API_KEY,
        ev_timeout=cfg.EV_API_TIMEOUT_SECONDS,
        ev_retries=cfg.EV_API_RETRIES,
        ev_max_results=cfg.EV_API_MAX_RESULTS,
        price_table=price_table,
    )
    snapshot_store = snapshot_store or build_snapshot_store(cfg.SNAPSHOT_BACKEND, cfg.SNAPSHOT_DIR, cfg.SNAPSHOT_REDIS_PREFIX)
    refresh_policy = refresh_policy or build_refresh_policy(cfg, cache, fetcher, snapshot_store)
    query_engine = query_engine or QueryEngine(
        cache,
        price_table=price_table,
        max_results=cfg.MAX_RESULTS,
        electric_label=cfg.ELECTRIC_FUEL_LABEL,
        top_limit=cfg.TOP_STATIONS_LIMIT,
    )

    # --- FastAPI Application 생성 ---
    app = FastAPI(
        title=cfg.PROJECT_NAME,
        version=cfg.API_VERSION,
        description="Prezzi carburanti e colonnine di ricarica vicino a un punto",
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.data_cache = cache
    app.state.refresh_policy = refresh_policy
    app.state.query_engine = query_engine
    app.state.background_refresh = background_refresh

    # --- CORS: restrict origins to allowed list from env ---
    if cfg.ALLOWED_ORIGINS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cfg.ALLOWED_ORIGINS,
            allow_credentials=True,
            allow_methods=["GET", "HEAD", "OPTIONS"],
            allow_headers=["*"],
        )

    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    # --- 기본 헬스 체크 엔드포인트 ---
    @app.get("/", tags=["Infrastructure"])
    def read_root():
        return {
            "message": "Server is running successfully!",
            "project": cfg.PROJECT_NAME,
            "api_version": cfg.API_VERSION
        }

    @app.head("/", include_in_schema=False)
    def head_root():
        """Explicit HEAD handler to make uptime probes (HEAD) return 200 without body."""
        return Response(status_code=200)

    @app.get("/health", tags=["Infrastructure"], summary="Health check (refresh + cache counts)")
    @app.head("/health")
    async def health_check(policy: RefreshPolicy = Depends(get_refresh_policy)):
        """Runs the refresh check, then reports what the cache holds.

        Response body example:
        {
          "status": "ok",
          "stazioni": 22000,
          "prezzi": 90000,
          "colonnine": 0,
          "fonte_dati": "remote",
          "ultimo_aggiornamento": "2025-03-05T08:00:00+00:00"
        }
        """
        now = datetime.now(timezone.utc)
        try:
            snapshot = await policy.ensure_fresh()
        except Exception:
            logger.exception("Health check failed")
            return JSONResponse(status_code=500, content=_error_body("Errore durante il controllo dei dati"))

        body = HealthResponse(
            status="ok" if snapshot.populated else "degraded",
            timestamp=now.isoformat(),
            stazioni=len(snapshot.stations),
            prezzi=len(snapshot.prices),
            colonnine=len(snapshot.charge_stations),
            fonte_dati=snapshot.source,
            ultimo_aggiornamento=snapshot.last_refreshed_at.isoformat() if snapshot.last_refreshed_at else None,
            aggiornamento_in_corso=policy.refreshing,
        )
        return JSONResponse(status_code=200, content=body.model_dump(mode="json"))

    app.include_router(api_router)
    return app


configure_logging(default_settings.LOG_LEVEL)
app = create_app()


if __name__ == "__main__":
    import os
    import uvicorn

    uvicorn.run("carburanti.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "3000")))
