"""
Feed routes: on-demand refresh, quarantine reset and effective settings.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from ..auth import verify_api_key
from ..config import get_db, get_scheduler
from ..database import Database
from ..exceptions import FeedNotFoundError, require_feed, require_resource
from ..jobs import Scheduler
from ..schemas import EffectiveSettingsResponse, FeedResponse, RefreshResultResponse
from ..services import SettingsResolverDep

router = APIRouter(
    prefix="/feeds",
    tags=["feeds"],
    dependencies=[Depends(verify_api_key)]
)


@router.post("/{feed_id}/refresh")
async def refresh_feed(
    feed_id: int,
    scheduler: Annotated[Scheduler, Depends(get_scheduler)],
    user_id: int | None = None,
) -> RefreshResultResponse:
    """Refresh one feed now, optionally under a user's settings."""
    try:
        result = await scheduler.refresh_feed(feed_id, user_id)
    except FeedNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return RefreshResultResponse.from_result(result)


@router.post("/{feed_id}/reset-errors")
async def reset_feed_errors(
    feed_id: int,
    db: Annotated[Database, Depends(get_db)]
) -> FeedResponse:
    """Clear a feed's error count, lifting quarantine."""
    require_feed(db.get_feed(feed_id))
    db.reset_feed_errors(feed_id)
    return FeedResponse.from_db(db.get_feed(feed_id))


@router.get("/{feed_id}/settings")
async def get_effective_settings(
    feed_id: int,
    db: Annotated[Database, Depends(get_db)],
    resolver: SettingsResolverDep,
    user_id: int | None = None,
) -> EffectiveSettingsResponse:
    """Effective settings for a feed, with the tier that supplied each field."""
    require_feed(db.get_feed(feed_id))
    if user_id is not None:
        require_resource(db.subscriptions.get_user(user_id), "User not found")
    settings = resolver.for_feed(feed_id, user_id)
    return EffectiveSettingsResponse.from_settings(feed_id, user_id, settings)
