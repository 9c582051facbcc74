"""
Abstract Feed Store interface.

Defines the read/ingest contract every storage backend implements. The
saved-by and reported-by sub-state is mutated only through the engagement
store (src.engagement.base.EngagementStore), never through this interface.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from src.engagement.errors import ValidationError
from src.ingestion.schemas import FeedItem, FeedPage


def validate_page_args(page: int, page_size: int) -> None:
    """Raise ValidationError unless page and page_size are positive integers."""
    if page < 1:
        raise ValidationError(f"page must be >= 1, got {page}")
    if page_size < 1:
        raise ValidationError(f"page_size must be >= 1, got {page_size}")


class FeedStore(ABC):
    """
    Canonical, time-ordered store of ingested feed items.

    Implementations must enforce uniqueness of (source_id, source) inside
    insert_if_absent() itself; callers never pre-check existence.
    """

    @abstractmethod
    async def insert_if_absent(self, item: FeedItem) -> bool:
        """
        Atomically insert item unless its natural key already exists.

        Returns:
            True if inserted, False if the key was already present
        """
        ...

    @abstractmethod
    async def latest_created_at(self) -> datetime | None:
        """Ingestion time of the most recently ingested item, or None if empty."""
        ...

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def list_page(self, page: int, page_size: int) -> FeedPage:
        """
        List one page ordered by timestamp DESC, insertion order DESC.

        Out-of-range pages return no items with correct totals.
        """
        ...

    @abstractmethod
    async def get_by_id(self, feed_id: str) -> FeedItem | None:
        ...

    @abstractmethod
    async def list_reported(self) -> list[FeedItem]:
        """Items with at least one report, reporter usernames resolved."""
        ...

    @abstractmethod
    async def list_saved(self, user_id: str) -> list[FeedItem]:
        """Items saved by user_id, most recent save first."""
        ...

    async def health_check(self) -> bool:
        return True
