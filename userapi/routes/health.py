"""
User API Backend — Health Check Route
=======================================

What:  GET /healthz for load balancer probes.
How:   Runs SELECT 1 through the shared Database handle.

    healthy:   database reachable   (HTTP 200)
    unhealthy: database unreachable (HTTP 503, stop routing traffic)
"""

import logging
import time

from fastapi import APIRouter, Request, Response

from userapi import __version__
from userapi.schemas.user import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/healthz",
    response_model=HealthResponse,
    responses={503: {"description": "Database unreachable", "model": HealthResponse}},
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    """Probes the database; health checks run every few seconds, so keep it to SELECT 1."""
    response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"

    db_status = "connected"
    overall = "healthy"

    database = getattr(request.app.state, "database", None)
    try:
        if database is None:
            raise RuntimeError("database handle not initialized")
        await database.ping()
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        response.status_code = 503
        logger.warning("Health check: database unreachable: %s", str(e))

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
