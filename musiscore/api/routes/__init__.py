"""
MUSISCORE - API Routes Package

- Jobs (jobs): scoring, leaderboard and snapshot triggers
- Health Checks (health)
"""

from musiscore.api.routes.health import router as health_router
from musiscore.api.routes.jobs import router as jobs_router

__all__ = ["health_router", "jobs_router"]
