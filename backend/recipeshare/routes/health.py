"""
RecipeShare Backend - Health Check Route
==========================================

What:  Health check endpoint for monitoring and load balancer probes.
Why:   Load balancers route away from instances that cannot serve requests.
How:   Probes the database (SELECT 1) and the object store (HEAD bucket).
Who:   Called by Docker health checks, load balancers, and monitoring systems.

Status levels:
    - healthy:   database and object store reachable (HTTP 200)
    - degraded:  object store unreachable; reads still work (HTTP 200)
    - unhealthy: database unreachable (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Request, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from recipeshare import __version__
from recipeshare.exceptions import StoreUnavailableError
from recipeshare.schemas.recipe import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(request: Request, response: Response) -> HealthResponse:
    db_status = "connected"
    store_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        session_factory = request.app.state.recipe_store.session_factory
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError) as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Object Store ────────────────────────────────────────────────
    try:
        await request.app.state.object_store.ping()
    except StoreUnavailableError as e:
        store_status = "unavailable"
        overall = "degraded" if overall != "unhealthy" else overall
        logger.warning("Health check: object store unreachable: %s", e.context)

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        object_store=store_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
