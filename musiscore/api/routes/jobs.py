"""
MUSISCORE - Job Trigger Routes

POST endpoints an external cron (or an operator) hits to run a job. No
request body; the response mirrors the job summary:

    200 {"success": bool, "message": str}
    500 {"error": str}
"""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from musiscore.api.dependencies import get_scoring_store, verify_job_token
from musiscore.api.schemas import ErrorResponse, JobResponse
from musiscore.pipeline.runner import run_job
from musiscore.services.store.scoring_store import ScoringStore

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(verify_job_token)])

JOB_RESPONSES = {
    200: {"model": JobResponse},
    401: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
}


async def _trigger(name: str, store: ScoringStore) -> JSONResponse:
    summary = await run_job(name, store)
    return JSONResponse(status_code=summary.status_code, content=summary.to_payload())


@router.post("/daily-scores", responses=JOB_RESPONSES)
async def trigger_daily_scores(store: ScoringStore = Depends(get_scoring_store)):
    """Score the current week, settle promo bets and accrue the ledger."""
    return await _trigger("daily-scores", store)


@router.post("/weekly-leaderboard", responses=JOB_RESPONSES)
async def trigger_weekly_leaderboard(store: ScoringStore = Depends(get_scoring_store)):
    """Archive the week's standings, pay rewards and reset scores."""
    return await _trigger("weekly-leaderboard", store)


@router.post("/weekly-snapshot", responses=JOB_RESPONSES)
async def trigger_weekly_snapshot(store: ScoringStore = Depends(get_scoring_store)):
    """Freeze the next week's baseline from the artist cache."""
    return await _trigger("weekly-snapshot", store)
