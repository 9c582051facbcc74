"""
Canonical post schemas for the creator-feed pipeline.

RawPost is what every Source Connector emits. FeedItem is the persisted
form, built only through FeedItem.from_raw_post() so that identifiers and
ingestion timestamps are assigned before any storage call.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, field_validator


def _utc_now() -> datetime:
    """Return current UTC time with timezone info."""
    return datetime.now(timezone.utc)


class Source(str, Enum):
    """Supported external post sources."""

    TWITTER = "twitter"
    REDDIT = "reddit"


class EngagementMetrics(BaseModel):
    """
    Source-normalized engagement counters.

    Missing provider metrics default to zero.
    """

    likes: int = Field(default=0, ge=0, description="Likes, favorites, or upvotes")
    shares: int = Field(default=0, ge=0, description="Retweets, crossposts, shares")
    comments: int = Field(default=0, ge=0, description="Comment or reply count")

    @field_validator("likes", "shares", "comments", mode="before")
    @classmethod
    def default_missing(cls, v: int | None) -> int:
        return 0 if v is None else v


class RawPost(BaseModel):
    """
    Connector output. Ephemeral; never persisted directly.

    (source_id, source) is the natural key carried into FeedItem.
    """

    source_id: str = Field(..., min_length=1, description="Provider-native post id")
    source: Source = Field(..., description="Source tag")
    content: str = Field(..., min_length=1, description="Post text, whitespace-normalized")

    author_id: str = Field(default="", description="Provider-specific author identifier")
    author_name: str = Field(default="unknown", description="Display name of the author")
    author_profile_url: str | None = Field(default=None)

    media_url: str | None = Field(default=None)
    url: str | None = Field(default=None, description="Permalink to the original post")

    engagement: EngagementMetrics = Field(default_factory=EngagementMetrics)
    timestamp: datetime = Field(
        default_factory=_utc_now,
        description="UTC timestamp of creation at the source",
    )

    @field_validator("content")
    @classmethod
    def normalize_content(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("content must not be blank")
        return v

    @field_validator("timestamp")
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.source_id, self.source.value)


@dataclass
class Author:
    id: str
    name: str
    profile_url: str | None = None


@dataclass
class ReportEntry:
    """One user's report on a feed item."""

    user_id: str
    reason: str
    reported_at: datetime
    username: str | None = None


@dataclass
class FeedItem:
    """
    A persisted feed item.

    Attributes:
        id: Generated identifier (feed_{uuid_hex[:16]}).
        source_id: Provider-native id; unique together with source.
        timestamp: Origin time, used for ordering.
        created_at: Ingestion time, used for staleness.
        saved_by: User ids that saved this item.
        reported_by: At most one entry per user, in report order.
    """

    id: str
    source_id: str
    source: Source
    content: str
    author: Author
    url: str | None
    timestamp: datetime
    created_at: datetime
    media_url: str | None = None
    likes: int = 0
    shares: int = 0
    comments: int = 0
    saved_by: set[str] = field(default_factory=set)
    reported_by: list[ReportEntry] = field(default_factory=list)

    @classmethod
    def from_raw_post(cls, post: RawPost, now: datetime | None = None) -> "FeedItem":
        """Build a new FeedItem from connector output."""
        return cls(
            id=f"feed_{uuid.uuid4().hex[:16]}",
            source_id=post.source_id,
            source=post.source,
            content=post.content,
            author=Author(
                id=post.author_id,
                name=post.author_name,
                profile_url=post.author_profile_url,
            ),
            url=post.url,
            media_url=post.media_url,
            likes=post.engagement.likes,
            shares=post.engagement.shares,
            comments=post.engagement.comments,
            timestamp=post.timestamp,
            created_at=now or _utc_now(),
        )

    @property
    def natural_key(self) -> tuple[str, str]:
        return (self.source_id, self.source.value)

    @property
    def report_count(self) -> int:
        return len(self.reported_by)


@dataclass
class FeedPage:
    """One page of the time-ordered feed."""

    items: list[FeedItem]
    page: int
    page_size: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_items / self.page_size)
