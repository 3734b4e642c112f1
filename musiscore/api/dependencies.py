"""
MUSISCORE - API Dependencies
"""

import secrets
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from musiscore.core.config import settings
from musiscore.services.store.scoring_store import ScoringStore, SqlAlchemyScoringStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_scoring_store() -> ScoringStore:
    """Store gateway for a job run. Overridden in tests."""
    return SqlAlchemyScoringStore()


async def verify_job_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> None:
    """
    Guard the job triggers with JOB_TRIGGER_TOKEN.

    When no token is configured the triggers are open.
    """
    expected = settings.JOB_TRIGGER_TOKEN
    if not expected:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
