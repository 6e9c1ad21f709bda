"""
AppHub Backend — Health Check Route
====================================

What:  GET /health for container probes and load balancers.
How:   SELECT 1 against the database (critical) and the mail circuit state
       (non-critical: notifications are best-effort).

Status levels:
    healthy    database up, mail circuit closed
    degraded   database up, mail circuit open or half-open (HTTP 200)
    unhealthy  database down (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Response, status
from sqlalchemy import text

from apphub import __version__
from apphub.database import engine
from apphub.schemas.common import HealthResponse
from apphub.services.notification_service import notification_dispatcher

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(response: Response) -> HealthResponse:
    db_status = "connected"
    overall = "healthy"

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    mail_state = notification_dispatcher.circuit_breaker.state
    if mail_state != "closed" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        mail=mail_state,
        pending_notifications=notification_dispatcher.pending,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
