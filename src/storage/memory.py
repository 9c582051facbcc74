"""
In-process Feed Store.

For single-instance deployments (STORAGE_BACKEND=memory) and tests. Every
mutation runs without a suspension point between its check and its write,
so under asyncio each call is atomic with respect to other tasks. Reads
return copies; only InMemoryEngagementStore touches the engagement
sub-state.
"""

import copy
import itertools
from datetime import datetime

from src.ingestion.schemas import FeedItem, FeedPage
from src.storage.base import FeedStore, validate_page_args


class InMemoryFeedStore(FeedStore):
    """Dict-backed feed store with a natural-key index."""

    def __init__(self) -> None:
        self._items: dict[str, FeedItem] = {}
        self._by_key: dict[tuple[str, str], str] = {}
        self._seq: dict[str, int] = {}
        self._counter = itertools.count(1)
        # (feed_id, user_id) -> saved_at
        self._saved_at: dict[tuple[str, str], datetime] = {}

    async def insert_if_absent(self, item: FeedItem) -> bool:
        if item.natural_key in self._by_key:
            return False

        stored = copy.deepcopy(item)
        stored.saved_by = set()
        stored.reported_by = []
        self._items[stored.id] = stored
        self._by_key[stored.natural_key] = stored.id
        self._seq[stored.id] = next(self._counter)
        return True

    async def latest_created_at(self) -> datetime | None:
        if not self._items:
            return None
        return max(item.created_at for item in self._items.values())

    async def count(self) -> int:
        return len(self._items)

    async def list_page(self, page: int, page_size: int) -> FeedPage:
        validate_page_args(page, page_size)

        ordered = self._ordered(self._items.values())
        start = (page - 1) * page_size
        return FeedPage(
            items=[copy.deepcopy(item) for item in ordered[start : start + page_size]],
            page=page,
            page_size=page_size,
            total_items=len(ordered),
        )

    async def get_by_id(self, feed_id: str) -> FeedItem | None:
        item = self._items.get(feed_id)
        return copy.deepcopy(item) if item else None

    async def list_reported(self) -> list[FeedItem]:
        reported = [item for item in self._items.values() if item.reported_by]
        return [copy.deepcopy(item) for item in self._ordered(reported)]

    async def list_saved(self, user_id: str) -> list[FeedItem]:
        saved = [
            (saved_at, feed_id)
            for (feed_id, uid), saved_at in self._saved_at.items()
            if uid == user_id
        ]
        saved.sort(key=lambda pair: pair[0], reverse=True)
        return [copy.deepcopy(self._items[feed_id]) for _, feed_id in saved]

    def _ordered(self, items) -> list[FeedItem]:
        return sorted(
            items,
            key=lambda item: (item.timestamp, self._seq[item.id]),
            reverse=True,
        )

    # Engagement sub-state, used only by InMemoryEngagementStore

    def _live_item(self, feed_id: str) -> FeedItem | None:
        return self._items.get(feed_id)

    def _record_save(self, feed_id: str, user_id: str, saved_at: datetime) -> None:
        self._items[feed_id].saved_by.add(user_id)
        self._saved_at[(feed_id, user_id)] = saved_at

    def _drop_save(self, feed_id: str, user_id: str) -> None:
        item = self._items.get(feed_id)
        if item is not None:
            item.saved_by.discard(user_id)
        self._saved_at.pop((feed_id, user_id), None)
