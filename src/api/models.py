"""
Request and response models for the creator-feed API.
"""

import datetime as dt

from pydantic import BaseModel, Field

from src.engagement.schemas import CreditBalance, CreditEntry, CreditResult, UserAccount
from src.ingestion.schemas import FeedItem


class ErrorResponse(BaseModel):
    """Response model for errors."""

    detail: str = Field(
        ...,
        description="Error message",
    )
    error_type: str = Field(
        default="error",
        description="Error category (validation, not_found, conflict, forbidden, internal)",
    )


# ── Feeds ───────────────────────────────────────────────


class AuthorResponse(BaseModel):
    id: str
    name: str
    profile_url: str | None = None


class EngagementResponse(BaseModel):
    likes: int = 0
    shares: int = 0
    comments: int = 0


class ReportResponse(BaseModel):
    user_id: str
    username: str | None = None
    reason: str
    reported_at: dt.datetime


class FeedItemResponse(BaseModel):
    """A feed item as seen by one principal."""

    id: str
    source_id: str
    source: str
    content: str
    author: AuthorResponse
    url: str | None = None
    media_url: str | None = None
    timestamp: dt.datetime
    created_at: dt.datetime
    engagement: EngagementResponse
    saved_count: int = Field(default=0, description="Number of users who saved this item")
    is_saved: bool = Field(default=False, description="Whether the requesting user saved it")
    report_count: int = 0

    @classmethod
    def from_item(cls, item: FeedItem, viewer_id: str | None = None) -> "FeedItemResponse":
        return cls(
            id=item.id,
            source_id=item.source_id,
            source=item.source.value,
            content=item.content,
            author=AuthorResponse(
                id=item.author.id,
                name=item.author.name,
                profile_url=item.author.profile_url,
            ),
            url=item.url,
            media_url=item.media_url,
            timestamp=item.timestamp,
            created_at=item.created_at,
            engagement=EngagementResponse(
                likes=item.likes,
                shares=item.shares,
                comments=item.comments,
            ),
            saved_count=len(item.saved_by),
            is_saved=viewer_id is not None and viewer_id in item.saved_by,
            report_count=item.report_count,
        )


class PaginationMeta(BaseModel):
    page: int
    limit: int
    total_items: int
    total_pages: int


class FeedListResponse(BaseModel):
    """Response model for the paginated feed."""

    items: list[FeedItemResponse]
    pagination: PaginationMeta
    refresh_status: str | None = Field(
        default=None,
        description="Outcome of the freshness check (page 1 only)",
    )


class ReportedFeedResponse(FeedItemResponse):
    reports: list[ReportResponse] = Field(default_factory=list)

    @classmethod
    def from_item(cls, item: FeedItem, viewer_id: str | None = None) -> "ReportedFeedResponse":
        base = FeedItemResponse.from_item(item, viewer_id)
        return cls(
            **base.model_dump(),
            reports=[
                ReportResponse(
                    user_id=r.user_id,
                    username=r.username,
                    reason=r.reason,
                    reported_at=r.reported_at,
                )
                for r in item.reported_by
            ],
        )


class ReportedFeedListResponse(BaseModel):
    items: list[ReportedFeedResponse]
    total: int


class SavedFeedListResponse(BaseModel):
    items: list[FeedItemResponse]
    total: int


class ReportRequest(BaseModel):
    """Request model for reporting a feed item."""

    # Presence only; length and blankness are checked by the ledger
    reason: str | None = Field(default=None, description="Why the item is inappropriate")


# ── Credits ─────────────────────────────────────────────


class CreditEntryResponse(BaseModel):
    amount: int
    reason: str
    action: str
    feed_id: str | None = None
    created_at: dt.datetime

    @classmethod
    def from_entry(cls, entry: CreditEntry) -> "CreditEntryResponse":
        return cls(
            amount=entry.amount,
            reason=entry.reason,
            action=entry.action.value,
            feed_id=entry.feed_id,
            created_at=entry.created_at,
        )


class CreditBalanceResponse(BaseModel):
    total: int
    history: list[CreditEntryResponse]

    @classmethod
    def from_balance(cls, balance: CreditBalance) -> "CreditBalanceResponse":
        return cls(
            total=balance.total,
            history=[CreditEntryResponse.from_entry(e) for e in balance.history],
        )


class CreditResultResponse(BaseModel):
    """Outcome of an operation that may issue credits."""

    credited: int = Field(..., description="Credits added by this call (0 if already issued)")
    total: int = Field(..., description="User's balance after the call")
    duplicate: bool = False

    @classmethod
    def from_result(cls, result: CreditResult) -> "CreditResultResponse":
        return cls(credited=result.amount, total=result.new_total, duplicate=result.duplicate)


class AwardRequest(BaseModel):
    action: str = Field(..., description="One of save, share, report")
    feed_id: str = Field(..., min_length=1)


class GrantRequest(BaseModel):
    """Admin grant; amount and reason rules are enforced by the ledger."""

    user_id: str = Field(..., min_length=1)
    amount: int | None = None
    reason: str | None = None


class GrantResponse(BaseModel):
    user_id: str
    amount: int
    total: int


# ── Users ───────────────────────────────────────────────


class ProfileCompletedResponse(BaseModel):
    awarded: bool
    bonus: int = 0
    total: int


class ActivityResponse(BaseModel):
    user_id: str
    username: str
    role: str
    profile_completed: bool
    total: int
    saved_feed_count: int
    history: list[CreditEntryResponse]

    @classmethod
    def from_user(cls, user: UserAccount, history: list[CreditEntry]) -> "ActivityResponse":
        return cls(
            user_id=user.id,
            username=user.username,
            role=user.role.value,
            profile_completed=user.profile_completed,
            total=user.credits_total,
            saved_feed_count=len(user.saved_feeds),
            history=[CreditEntryResponse.from_entry(e) for e in history],
        )


# ── Health ──────────────────────────────────────────────


class ComponentHealth(BaseModel):
    """Health status of a single infrastructure component."""

    status: str = Field(..., description="healthy or unhealthy")
    latency_ms: float | None = Field(default=None, description="Check latency in milliseconds")
    details: dict | None = Field(default=None, description="Additional details")


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str = Field(..., description="healthy, degraded, or unhealthy")
    storage_backend: str
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
    connectors: dict[str, bool] = Field(
        default_factory=dict,
        description="Connector reachability by name",
    )
    version: str = "0.1.0"
