"""
MUSISCORE - Main FastAPI Application

Hosts the job triggers an external cron calls, plus the health endpoint.
When SCHEDULER_ENABLED is set the same process also runs the jobs on its
own crons.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from musiscore.api.routes import health_router, jobs_router
from musiscore.core.config import get_settings
from musiscore.core.database import get_database_manager
from musiscore.core.logging_config import configure_logging
from musiscore.services.scheduling import get_scheduler_service

configure_logging()
logger = logging.getLogger(__name__)

settings = get_settings()

API_V1_PREFIX = "/api/v1"


# ============================================================================
# Lifespan Management
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    logger.info("=" * 60)
    logger.info("MUSISCORE - Scoring Engine")
    logger.info("=" * 60)
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug Mode: {settings.debug}")

    db_manager = get_database_manager()
    await db_manager.initialize()
    logger.info("✓ Database initialized")

    scheduler_service = get_scheduler_service()
    await scheduler_service.initialize()
    await scheduler_service.start()
    if scheduler_service.running:
        logger.info("✓ Scheduler service started")

    yield

    logger.info("Shutting down...")
    await scheduler_service.stop()
    await db_manager.close()
    logger.info("Shutdown complete")


# ============================================================================
# Create FastAPI Application
# ============================================================================

app = FastAPI(
    title=settings.app_name,
    description="Scoring and leaderboard engine for the MusiScore fantasy music league",
    version=settings.app_version,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    openapi_url="/openapi.json" if settings.debug else None,
    lifespan=lifespan,
)


# ============================================================================
# Exception Handlers
# ============================================================================

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors."""
    errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"error": "Validation Error", "detail": errors},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions."""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": str(exc)},
    )


# ============================================================================
# Include Routers
# ============================================================================

app.include_router(health_router, prefix="/health", tags=["Health"])
app.include_router(jobs_router, prefix=f"{API_V1_PREFIX}/jobs", tags=["Jobs"])


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "endpoints": {
            "health": "/health",
            "daily_scores": f"{API_V1_PREFIX}/jobs/daily-scores",
            "weekly_leaderboard": f"{API_V1_PREFIX}/jobs/weekly-leaderboard",
            "weekly_snapshot": f"{API_V1_PREFIX}/jobs/weekly-snapshot",
        },
    }
