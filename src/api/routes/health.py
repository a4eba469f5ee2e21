"""
``GET /health``: Postgres and Redis probes plus side-effect backlog.

Postgres down means readings cannot be stored (unhealthy). Redis down
means ingestion still works but observers on other workers miss events
(degraded).
"""

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import APIRouter, Depends

from src.api.dependencies import current_background_pool, get_database, get_redis_client
from src.api.models import ComponentHealth, HealthResponse
from src.api.routes.ws_bins import get_hub
from src.storage.database import Database

router = APIRouter()
logger = structlog.get_logger(__name__)

API_VERSION = "0.1.0"


async def _probe(check: Callable[[], Awaitable[object]]) -> ComponentHealth:
    """Run ``check`` and time it; a falsy result or an exception is unhealthy."""
    start = time.perf_counter()
    details = None
    try:
        ok = bool(await check())
    except Exception as e:
        ok = False
        details = {"error": str(e)}
    return ComponentHealth(
        status="healthy" if ok else "unhealthy",
        latency_ms=round((time.perf_counter() - start) * 1000, 2),
        details=details,
    )


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Postgres and Redis connectivity, background backlog and observer count.",
)
async def health_check(
    db: Database = Depends(get_database),
    redis_client=Depends(get_redis_client),
) -> HealthResponse:
    components = {
        "database": await _probe(db.health_check),
        "redis": await _probe(redis_client.ping),
    }

    if components["database"].status != "healthy":
        overall = "unhealthy"
    elif components["redis"].status != "healthy":
        overall = "degraded"
    else:
        overall = "healthy"

    if overall != "healthy":
        logger.warning(
            "Health check not healthy",
            status=overall,
            database=components["database"].status,
            redis=components["redis"].status,
        )

    hub = get_hub()
    pool = current_background_pool()
    return HealthResponse(
        status=overall,
        components=components,
        background_queue_depth=pool.pending if pool else 0,
        observers_connected=hub.active_connections if hub else 0,
        version=API_VERSION,
    )
