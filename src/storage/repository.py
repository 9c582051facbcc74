"""
Feed repository backed by PostgreSQL.

Provides the Feed Store contract over asyncpg. Natural-key uniqueness is
enforced by a UNIQUE (source_id, source) constraint; inserts use
ON CONFLICT DO NOTHING so concurrent refresh passes cannot create
duplicates and never see an error for losing the race.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any

from src.ingestion.schemas import Author, FeedItem, FeedPage, ReportEntry, Source
from src.storage.base import FeedStore, validate_page_args
from src.storage.database import Database

logger = logging.getLogger(__name__)


class FeedRepository(FeedStore):
    """
    Repository for feed item storage and retrieval.

    Tables:
        - feed_items: Ingested posts; seq records insertion order
        - feed_saves / feed_reports: engagement sub-state, written only by
          src.engagement.repository.EngagementRepository
    """

    def __init__(self, database: Database):
        """
        Initialize repository.

        Args:
            database: Connected Database instance
        """
        self._db = database

    async def create_tables(self) -> None:
        """Create the feed_items table and its indexes if they don't exist."""
        create_sql = """
        CREATE TABLE IF NOT EXISTS feed_items (
            id TEXT PRIMARY KEY,
            seq BIGSERIAL NOT NULL,
            source_id TEXT NOT NULL,
            source TEXT NOT NULL CHECK (source IN ('twitter', 'reddit')),
            content TEXT NOT NULL,
            author_id TEXT NOT NULL DEFAULT '',
            author_name TEXT NOT NULL DEFAULT 'unknown',
            author_profile_url TEXT,
            media_url TEXT,
            url TEXT,
            likes INTEGER NOT NULL DEFAULT 0,
            shares INTEGER NOT NULL DEFAULT 0,
            comments INTEGER NOT NULL DEFAULT 0,
            timestamp TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_feed_items_natural_key UNIQUE (source_id, source)
        );

        CREATE INDEX IF NOT EXISTS idx_feed_items_order
            ON feed_items(timestamp DESC, seq DESC);
        CREATE INDEX IF NOT EXISTS idx_feed_items_created_at
            ON feed_items(created_at DESC);
        """
        await self._db.execute(create_sql)
        logger.info("Feed tables created")

    async def insert_if_absent(self, item: FeedItem) -> bool:
        sql = """
            INSERT INTO feed_items (
                id, source_id, source, content,
                author_id, author_name, author_profile_url,
                media_url, url, likes, shares, comments,
                timestamp, created_at
            ) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14)
            ON CONFLICT (source_id, source) DO NOTHING
            RETURNING id
        """
        inserted = await self._db.fetchval(
            sql,
            item.id,
            item.source_id,
            item.source.value,
            item.content,
            item.author.id,
            item.author.name,
            item.author.profile_url,
            item.media_url,
            item.url,
            item.likes,
            item.shares,
            item.comments,
            item.timestamp,
            item.created_at,
        )
        return inserted is not None

    async def latest_created_at(self) -> datetime | None:
        return await self._db.fetchval("SELECT MAX(created_at) FROM feed_items")

    async def count(self) -> int:
        return await self._db.fetchval("SELECT COUNT(*) FROM feed_items")

    async def list_page(self, page: int, page_size: int) -> FeedPage:
        validate_page_args(page, page_size)

        total = await self.count()
        sql = """
            SELECT * FROM feed_items
            ORDER BY timestamp DESC, seq DESC
            LIMIT $1 OFFSET $2
        """
        rows = await self._db.fetch(sql, page_size, (page - 1) * page_size)
        items = await self._attach_engagement([_row_to_item(row) for row in rows])

        return FeedPage(items=items, page=page, page_size=page_size, total_items=total)

    async def get_by_id(self, feed_id: str) -> FeedItem | None:
        row = await self._db.fetchrow("SELECT * FROM feed_items WHERE id = $1", feed_id)
        if row is None:
            return None
        items = await self._attach_engagement([_row_to_item(row)])
        return items[0]

    async def list_reported(self) -> list[FeedItem]:
        sql = """
            SELECT f.* FROM feed_items f
            WHERE EXISTS (SELECT 1 FROM feed_reports r WHERE r.feed_id = f.id)
            ORDER BY f.timestamp DESC, f.seq DESC
        """
        rows = await self._db.fetch(sql)
        return await self._attach_engagement([_row_to_item(row) for row in rows])

    async def list_saved(self, user_id: str) -> list[FeedItem]:
        sql = """
            SELECT f.* FROM feed_items f
            JOIN feed_saves s ON s.feed_id = f.id
            WHERE s.user_id = $1
            ORDER BY s.saved_at DESC
        """
        rows = await self._db.fetch(sql, user_id)
        return await self._attach_engagement([_row_to_item(row) for row in rows])

    async def _attach_engagement(self, items: list[FeedItem]) -> list[FeedItem]:
        """Load saved_by and reported_by for a batch of items."""
        if not items:
            return items

        ids = [item.id for item in items]
        saves = await self._db.fetch(
            "SELECT feed_id, user_id FROM feed_saves WHERE feed_id = ANY($1::text[])",
            ids,
        )
        reports = await self._db.fetch(
            """
            SELECT r.feed_id, r.user_id, r.reason, r.reported_at, u.username
            FROM feed_reports r
            LEFT JOIN users u ON u.id = r.user_id
            WHERE r.feed_id = ANY($1::text[])
            ORDER BY r.reported_at, r.seq
            """,
            ids,
        )

        saved_by: dict[str, set[str]] = defaultdict(set)
        for row in saves:
            saved_by[row["feed_id"]].add(row["user_id"])

        reported_by: dict[str, list[ReportEntry]] = defaultdict(list)
        for row in reports:
            reported_by[row["feed_id"]].append(
                ReportEntry(
                    user_id=row["user_id"],
                    reason=row["reason"],
                    reported_at=row["reported_at"],
                    username=row["username"],
                )
            )

        for item in items:
            item.saved_by = saved_by.get(item.id, set())
            item.reported_by = reported_by.get(item.id, [])
        return items

    async def health_check(self) -> bool:
        return await self._db.health_check()


def _row_to_item(row: Any) -> FeedItem:
    """Convert an asyncpg Record to a FeedItem (engagement sub-state empty)."""
    return FeedItem(
        id=row["id"],
        source_id=row["source_id"],
        source=Source(row["source"]),
        content=row["content"],
        author=Author(
            id=row["author_id"],
            name=row["author_name"],
            profile_url=row["author_profile_url"],
        ),
        url=row["url"],
        media_url=row["media_url"],
        likes=row["likes"],
        shares=row["shares"],
        comments=row["comments"],
        timestamp=row["timestamp"],
        created_at=row["created_at"],
    )
