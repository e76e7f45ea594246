"""API dependencies: bearer token passthrough and the shared sync scheduler."""

import logging
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException

from archisheets.core.scheduler import SyncScheduler

logger = logging.getLogger(__name__)

_scheduler: Optional[SyncScheduler] = None


async def get_bearer_token(
    authorization: Annotated[Optional[str], Header()] = None,
) -> str:
    """Google access token sent by the browser as Authorization: Bearer <token>.

    The token is passed through to Sheets/Drive untouched; it is neither
    validated nor refreshed here.

    Raises:
        HTTPException: 401 if the header is missing or not a bearer token
    """
    token = None
    if authorization and authorization.startswith("Bearer "):
        token = authorization[7:].strip()

    if not token:
        raise HTTPException(
            status_code=401,
            detail="Google access token required. Provide Authorization: Bearer <token>.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return token


def get_sync_scheduler() -> SyncScheduler:
    """Process-wide autosave scheduler (only the single-flight bookkeeping is shared)."""
    global _scheduler
    if _scheduler is None:
        _scheduler = SyncScheduler()
    return _scheduler


BearerToken = Annotated[str, Depends(get_bearer_token)]
Scheduler = Annotated[SyncScheduler, Depends(get_sync_scheduler)]
