"""Tests for FeedRepository.

These test the SQL query construction and parameter handling of
FeedRepository using a mocked asyncpg database.
"""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from src.engagement.errors import ValidationError
from src.ingestion.schemas import FeedItem, Source
from src.storage.repository import FeedRepository
from tests.conftest import make_post

NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def _row(feed_id: str = "feed_0001", source_id: str = "1", **overrides) -> dict:
    row = {
        "id": feed_id,
        "seq": 1,
        "source_id": source_id,
        "source": "twitter",
        "content": "Creator payouts are up",
        "author_id": "42",
        "author_name": "Studio Sam",
        "author_profile_url": "https://twitter.com/studio_sam",
        "media_url": None,
        "url": f"https://twitter.com/i/web/status/{source_id}",
        "likes": 5,
        "shares": 1,
        "comments": 0,
        "timestamp": NOW,
        "created_at": NOW,
    }
    row.update(overrides)
    return row


@pytest.fixture
def mock_db():
    """Mock Database with asyncpg-like interface."""
    db = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchval = AsyncMock(return_value=0)
    db.fetchrow = AsyncMock(return_value=None)
    db.execute = AsyncMock(return_value="CREATE TABLE")
    return db


@pytest.fixture
def repo(mock_db):
    """FeedRepository with mocked database."""
    return FeedRepository(mock_db)


class TestCreateTables:
    @pytest.mark.asyncio
    async def test_natural_key_constraint(self, repo, mock_db):
        await repo.create_tables()

        sql = mock_db.execute.call_args[0][0]
        assert "UNIQUE (source_id, source)" in sql
        assert "timestamp DESC, seq DESC" in sql


class TestInsertIfAbsent:
    @pytest.mark.asyncio
    async def test_inserted(self, repo, mock_db):
        item = FeedItem.from_raw_post(make_post("1"))
        mock_db.fetchval.return_value = item.id

        assert await repo.insert_if_absent(item) is True

        args = mock_db.fetchval.call_args[0]
        assert "ON CONFLICT (source_id, source) DO NOTHING" in args[0]
        assert args[1] == item.id
        assert args[2] == "1"
        assert args[3] == "twitter"

    @pytest.mark.asyncio
    async def test_conflict_reports_not_inserted(self, repo, mock_db):
        mock_db.fetchval.return_value = None

        item = FeedItem.from_raw_post(make_post("1"))
        assert await repo.insert_if_absent(item) is False


class TestListPage:
    @pytest.mark.asyncio
    async def test_limit_offset_and_ordering(self, repo, mock_db):
        mock_db.fetchval.return_value = 12
        mock_db.fetch.side_effect = [
            [_row("feed_a", "1"), _row("feed_b", "2")],
            [{"feed_id": "feed_a", "user_id": "u1"}],
            [
                {
                    "feed_id": "feed_b",
                    "user_id": "u2",
                    "reason": "spam",
                    "reported_at": NOW,
                    "username": "Ulla",
                }
            ],
        ]

        page = await repo.list_page(3, 5)

        sql, limit, offset = mock_db.fetch.call_args_list[0][0]
        assert "ORDER BY timestamp DESC, seq DESC" in sql
        assert (limit, offset) == (5, 10)

        assert page.total_items == 12
        assert page.total_pages == 3
        assert [i.id for i in page.items] == ["feed_a", "feed_b"]
        assert page.items[0].saved_by == {"u1"}
        assert page.items[0].source == Source.TWITTER
        assert page.items[0].author.name == "Studio Sam"
        assert page.items[1].reported_by[0].username == "Ulla"
        assert page.items[1].saved_by == set()

    @pytest.mark.asyncio
    async def test_empty_page_skips_engagement_queries(self, repo, mock_db):
        mock_db.fetchval.return_value = 2
        mock_db.fetch.return_value = []

        page = await repo.list_page(4, 5)

        assert page.items == []
        assert page.total_items == 2
        assert mock_db.fetch.call_count == 1

    @pytest.mark.asyncio
    async def test_invalid_page(self, repo, mock_db):
        with pytest.raises(ValidationError):
            await repo.list_page(0, 10)
        mock_db.fetch.assert_not_called()


class TestLookups:
    @pytest.mark.asyncio
    async def test_get_by_id_missing(self, repo, mock_db):
        mock_db.fetchrow.return_value = None
        assert await repo.get_by_id("feed_missing") is None

    @pytest.mark.asyncio
    async def test_get_by_id_found(self, repo, mock_db):
        mock_db.fetchrow.return_value = _row("feed_a")
        mock_db.fetch.side_effect = [[], []]

        item = await repo.get_by_id("feed_a")

        assert item.id == "feed_a"
        assert item.reported_by == []

    @pytest.mark.asyncio
    async def test_list_saved_filters_by_user(self, repo, mock_db):
        mock_db.fetch.return_value = []

        await repo.list_saved("u1")

        sql, user_id = mock_db.fetch.call_args[0]
        assert "feed_saves" in sql
        assert user_id == "u1"

    @pytest.mark.asyncio
    async def test_latest_created_at(self, repo, mock_db):
        mock_db.fetchval.return_value = NOW

        assert await repo.latest_created_at() == NOW
        assert "MAX(created_at)" in mock_db.fetchval.call_args[0][0]
