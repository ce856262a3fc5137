"""Scheduled refresh trigger for external schedulers (Vercel cron, GitHub Actions, ...)"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from carburanti.api.deps import get_refresh_policy
from carburanti.schemas.station import CronResponse
from carburanti.services.refresh_policy import RefreshPolicy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Infrastructure"])


@router.get("/cron", summary="Run the refresh policy", response_model=CronResponse)
async def run_cron(policy: RefreshPolicy = Depends(get_refresh_policy)):
    """
    Always answers 200: schedulers treat any other status as a system fault,
    so failures are reported in the body instead.
    """
    now = datetime.now(timezone.utc)
    try:
        snapshot = await policy.ensure_fresh(now)
    except Exception as e:
        logger.exception("Cron refresh failed")
        body = CronResponse(status="error", timestamp=now.isoformat(), message=str(e))
        return JSONResponse(status_code=200, content=body.model_dump(mode="json"))

    logger.info("Cron refresh done: source=%s stations=%d", snapshot.source, len(snapshot.stations))
    body = CronResponse(
        status="success" if snapshot.populated else "error",
        timestamp=now.isoformat(),
        message=None if snapshot.populated else "Nessun dato disponibile",
        stazioni=len(snapshot.stations),
        prezzi=len(snapshot.prices),
        fonte_dati=snapshot.source,
        ultimo_aggiornamento=snapshot.last_refreshed_at.isoformat() if snapshot.last_refreshed_at else None,
    )
    return JSONResponse(status_code=200, content=body.model_dump(mode="json"))
