"""
User routes: per-user refresh and the override tiers of the settings cascade.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException

from ..auth import verify_api_key
from ..config import get_db, get_scheduler
from ..database import Database
from ..exceptions import require_category, require_resource, require_user
from ..jobs import Scheduler
from ..schemas import BatchRefreshResponse, FeedSettingsRequest
from ..services import FeedSettingsOverride, validate_settings

router = APIRouter(
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(verify_api_key)]
)


def _validated(request: FeedSettingsRequest) -> FeedSettingsOverride:
    override = request.to_override()
    errors = validate_settings(override)
    if errors:
        raise HTTPException(status_code=400, detail=errors)
    return override


@router.post("/{user_id}/refresh")
async def refresh_user_feeds(
    user_id: int,
    db: Annotated[Database, Depends(get_db)],
    scheduler: Annotated[Scheduler, Depends(get_scheduler)]
) -> BatchRefreshResponse:
    """Refresh the user's due feeds now."""
    require_user(db.subscriptions.get_user(user_id))
    return BatchRefreshResponse.from_result(await scheduler.refresh_user_feeds(user_id))


@router.put("/{user_id}/preferences")
async def update_preferences(
    user_id: int,
    request: FeedSettingsRequest,
    db: Annotated[Database, Depends(get_db)]
) -> dict:
    """Replace the user's default tier."""
    require_user(db.subscriptions.get_user(user_id))
    override = _validated(request)
    db.subscriptions.set_preferences(user_id, override.to_dict() or None)
    return override.to_dict()


@router.put("/{user_id}/categories/{category_id}/settings")
async def update_category_settings(
    user_id: int,
    category_id: int,
    request: FeedSettingsRequest,
    db: Annotated[Database, Depends(get_db)]
) -> dict:
    """Replace a category's tier."""
    category = require_category(db.subscriptions.get_category(category_id))
    if category.user_id != user_id:
        require_category(None)
    override = _validated(request)
    db.subscriptions.set_category_settings(category_id, override.to_dict() or None)
    return override.to_dict()


@router.put("/{user_id}/feeds/{feed_id}/settings")
async def update_subscription_settings(
    user_id: int,
    feed_id: int,
    request: FeedSettingsRequest,
    db: Annotated[Database, Depends(get_db)]
) -> dict:
    """Replace the per-subscription tier."""
    subscription = require_resource(
        db.subscriptions.get_subscription(user_id, feed_id), "Subscription not found"
    )
    override = _validated(request)
    db.subscriptions.set_subscription_settings(subscription.id, override.to_dict() or None)
    return override.to_dict()
