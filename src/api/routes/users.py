"""User endpoints: saved feeds, profile completion, activity."""

import structlog
from fastapi import APIRouter, Depends

from src.api.auth import verify_api_key
from src.api.dependencies import get_current_user, get_feed_store, get_ledger
from src.api.models import (
    ActivityResponse,
    ErrorResponse,
    FeedItemResponse,
    ProfileCompletedResponse,
    SavedFeedListResponse,
)
from src.engagement.ledger import CreditLedger
from src.engagement.schemas import Principal
from src.storage.base import FeedStore

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/users/me/saved-feeds",
    response_model=SavedFeedListResponse,
    summary="Feed items saved by the current user",
)
async def list_saved_feeds(
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    store: FeedStore = Depends(get_feed_store),
) -> SavedFeedListResponse:
    items = await store.list_saved(principal.user_id)
    return SavedFeedListResponse(
        items=[FeedItemResponse.from_item(item, principal.user_id) for item in items],
        total=len(items),
    )


@router.post(
    "/users/me/profile-completed",
    response_model=ProfileCompletedResponse,
    summary="Mark profile complete",
    description="Awards the profile completion bonus the first time only.",
)
async def profile_completed(
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
) -> ProfileCompletedResponse:
    result = await ledger.complete_profile(principal.user_id)
    if result is None or result.amount == 0:
        balance = await ledger.balance(principal.user_id)
        return ProfileCompletedResponse(awarded=False, total=balance.total)
    return ProfileCompletedResponse(awarded=True, bonus=result.amount, total=result.new_total)


@router.get(
    "/users/{user_id}/activity",
    response_model=ActivityResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Not your activity and not an admin"},
        404: {"model": ErrorResponse, "description": "User not found"},
    },
    summary="Credit history and profile state",
)
async def user_activity(
    user_id: str,
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
) -> ActivityResponse:
    if user_id == "me":
        user_id = principal.user_id
    user, history = await ledger.activity(principal, user_id)
    return ActivityResponse.from_user(user, history)
