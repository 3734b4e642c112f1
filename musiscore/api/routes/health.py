"""
MUSISCORE - Health Check Routes
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from musiscore.api.schemas import ComponentHealth, HealthResponse
from musiscore.core.config import settings
from musiscore.core.database import get_database_manager

router = APIRouter(tags=["health"])

_start_time = datetime.now(timezone.utc)


@router.get("", response_model=HealthResponse)
async def basic_health_check():
    """Overall status for load balancers; unhealthy when the database is down."""
    now = datetime.now(timezone.utc)
    components = {}
    overall_status = "healthy"

    db_health = await get_database_manager().health_check()
    db_healthy = db_health.get("status") == "healthy"
    components["database"] = ComponentHealth(
        name="PostgreSQL",
        status="healthy" if db_healthy else "unhealthy",
        latency_ms=db_health.get("latency_ms"),
        message=db_health.get("error"),
        last_check=now,
    )
    if not db_healthy:
        overall_status = "unhealthy"

    return HealthResponse(
        status=overall_status,
        timestamp=now,
        version=settings.APP_VERSION,
        uptime_seconds=(now - _start_time).total_seconds(),
        components=components,
    )
