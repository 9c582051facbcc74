"""Feed endpoints: paginated listing, save/unsave, reporting."""

import structlog
from fastapi import APIRouter, Depends, Query, status

from src.api.auth import verify_api_key
from src.api.dependencies import (
    get_current_user,
    get_feed_store,
    get_ledger,
    get_refresh_coordinator,
)
from src.api.models import (
    CreditResultResponse,
    ErrorResponse,
    FeedItemResponse,
    FeedListResponse,
    PaginationMeta,
    ReportedFeedListResponse,
    ReportedFeedResponse,
    ReportRequest,
)
from src.config.settings import get_settings
from src.engagement.errors import ValidationError
from src.engagement.ledger import CreditLedger
from src.engagement.schemas import Principal
from src.refresh.coordinator import RefreshCoordinator
from src.storage.base import FeedStore, validate_page_args

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get(
    "/feeds",
    response_model=FeedListResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Missing API key or user identity"},
        422: {"model": ErrorResponse, "description": "Invalid pagination parameters"},
    },
    summary="List feed",
    description=(
        "Newest-first feed. Requesting page 1 triggers a refresh from the "
        "sources if the stored feed is stale; other pages read the store as-is."
    ),
)
async def list_feeds(
    page: int = Query(default=1, description="1-based page number"),
    limit: int | None = Query(default=None, description="Items per page"),
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    store: FeedStore = Depends(get_feed_store),
    coordinator: RefreshCoordinator = Depends(get_refresh_coordinator),
) -> FeedListResponse:
    settings = get_settings()
    page_size = settings.default_page_size if limit is None else limit
    if page_size > settings.max_page_size:
        raise ValidationError(f"limit must be at most {settings.max_page_size}")
    validate_page_args(page, page_size)

    refresh_status = None
    if page == 1:
        outcome = await coordinator.ensure_fresh()
        refresh_status = outcome.status.value

    feed_page = await store.list_page(page, page_size)

    return FeedListResponse(
        items=[FeedItemResponse.from_item(item, principal.user_id) for item in feed_page.items],
        pagination=PaginationMeta(
            page=feed_page.page,
            limit=feed_page.page_size,
            total_items=feed_page.total_items,
            total_pages=feed_page.total_pages,
        ),
        refresh_status=refresh_status,
    )


@router.get(
    "/feeds/reported",
    response_model=ReportedFeedListResponse,
    responses={
        403: {"model": ErrorResponse, "description": "Admin privilege required"},
    },
    summary="List reported feed items (admin)",
)
async def list_reported(
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    store: FeedStore = Depends(get_feed_store),
    ledger: CreditLedger = Depends(get_ledger),
) -> ReportedFeedListResponse:
    await ledger.require_admin(principal)
    items = await store.list_reported()
    return ReportedFeedListResponse(
        items=[ReportedFeedResponse.from_item(item, principal.user_id) for item in items],
        total=len(items),
    )


@router.post(
    "/feeds/{feed_id}/save",
    response_model=CreditResultResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse, "description": "Feed item not found"},
        409: {"model": ErrorResponse, "description": "Already saved"},
    },
    summary="Save a feed item",
)
async def save_feed(
    feed_id: str,
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
) -> CreditResultResponse:
    result = await ledger.save(principal.user_id, feed_id)
    return CreditResultResponse.from_result(result)


@router.post(
    "/feeds/{feed_id}/unsave",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove a saved feed item",
    description="Idempotent. Credits earned by the original save are kept.",
)
async def unsave_feed(
    feed_id: str,
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
) -> None:
    await ledger.unsave(principal.user_id, feed_id)


@router.post(
    "/feeds/{feed_id}/report",
    response_model=CreditResultResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        404: {"model": ErrorResponse, "description": "Feed item not found"},
        409: {"model": ErrorResponse, "description": "Already reported by this user"},
        422: {"model": ErrorResponse, "description": "Missing or invalid reason"},
    },
    summary="Report a feed item",
)
async def report_feed(
    feed_id: str,
    request: ReportRequest,
    api_key: str = Depends(verify_api_key),
    principal: Principal = Depends(get_current_user),
    ledger: CreditLedger = Depends(get_ledger),
) -> CreditResultResponse:
    result = await ledger.report(principal.user_id, feed_id, request.reason)
    return CreditResultResponse.from_result(result)
