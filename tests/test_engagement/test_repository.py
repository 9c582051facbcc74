"""Tests for EngagementRepository transaction flow with a mocked database."""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.engagement.errors import AlreadyReportedError, AlreadySavedError, NotFoundError
from src.engagement.ledger import idempotency_key
from src.engagement.repository import EngagementRepository
from src.engagement.schemas import CreditAction, CreditEntry, Role


def _mock_db(conn: AsyncMock) -> MagicMock:
    db = MagicMock()

    @asynccontextmanager
    async def transaction():
        yield conn

    db.transaction = transaction
    db.execute = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchrow = AsyncMock()
    db.fetchval = AsyncMock()
    return db


def _save_reward(feed_id: str = "feed_a") -> CreditEntry:
    return CreditEntry(
        amount=2,
        reason=f"Saved content (ID: {feed_id})",
        action=CreditAction.SAVE,
        feed_id=feed_id,
        idempotency_key=idempotency_key(CreditAction.SAVE, "u1", feed_id),
    )


def _user_row(**overrides) -> dict:
    row = {
        "id": "u1",
        "username": "Sam",
        "role": "user",
        "profile_completed": False,
        "credits_total": 0,
    }
    row.update(overrides)
    return row


class TestAddSave:
    @pytest.mark.asyncio
    async def test_save_inserts_and_credits(self):
        conn = AsyncMock()
        # feed exists, lock user, insert save, lock user, ledger id, new total
        conn.fetchval.side_effect = [1, 0, "feed_a", 0, 17, 2]
        repo = EngagementRepository(_mock_db(conn))

        result = await repo.add_save("u1", "feed_a", _save_reward())

        assert (result.amount, result.new_total, result.duplicate) == (2, 2, False)
        insert_sql = conn.fetchval.call_args_list[4].args[0]
        assert "ON CONFLICT (idempotency_key) DO NOTHING" in insert_sql
        assert conn.fetchval.call_args_list[4].args[6] == "save:u1:feed_a"

    @pytest.mark.asyncio
    async def test_existing_save_conflicts(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [1, 0, None]
        repo = EngagementRepository(_mock_db(conn))

        with pytest.raises(AlreadySavedError):
            await repo.add_save("u1", "feed_a", _save_reward())

        assert conn.fetchval.call_count == 3

    @pytest.mark.asyncio
    async def test_unknown_feed(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [None]
        repo = EngagementRepository(_mock_db(conn))

        with pytest.raises(NotFoundError) as exc_info:
            await repo.add_save("u1", "feed_missing", _save_reward("feed_missing"))

        assert exc_info.value.kind == "feed"

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [1, None]
        repo = EngagementRepository(_mock_db(conn))

        with pytest.raises(NotFoundError) as exc_info:
            await repo.add_save("ghost", "feed_a", _save_reward())

        assert exc_info.value.kind == "user"

    @pytest.mark.asyncio
    async def test_used_reward_key_credits_nothing(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [1, 2, "feed_a", 2, None]
        repo = EngagementRepository(_mock_db(conn))

        result = await repo.add_save("u1", "feed_a", _save_reward())

        assert (result.amount, result.new_total, result.duplicate) == (0, 2, True)


class TestAddReport:
    @pytest.mark.asyncio
    async def test_second_report_conflicts(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [1, 0, None]
        repo = EngagementRepository(_mock_db(conn))
        reward = CreditEntry(
            amount=1,
            reason="Reported inappropriate content (ID: feed_a)",
            action=CreditAction.REPORT,
            feed_id="feed_a",
            idempotency_key="report:u1:feed_a",
        )

        with pytest.raises(AlreadyReportedError):
            await repo.add_report(
                "u1", "feed_a", "spam", datetime.now(timezone.utc), reward
            )


class TestAppendCredit:
    @pytest.mark.asyncio
    async def test_grant_without_feed_skips_feed_check(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [5, 42, 55]
        repo = EngagementRepository(_mock_db(conn))
        entry = CreditEntry(amount=50, reason="Contest winner", action=CreditAction.ADMIN_GRANT)

        result = await repo.append_credit("u1", entry)

        assert (result.amount, result.new_total) == (50, 55)
        assert "FOR UPDATE" in conn.fetchval.call_args_list[0].args[0]


class TestCompleteProfile:
    @pytest.mark.asyncio
    async def test_first_completion_pays_bonus(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [0, "u1", 0, 7, 20]
        repo = EngagementRepository(_mock_db(conn))
        bonus = CreditEntry(
            amount=20,
            reason="Profile completion bonus",
            action=CreditAction.PROFILE_BONUS,
            idempotency_key="profile_bonus:u1",
        )

        result = await repo.complete_profile("u1", bonus)

        assert result.amount == 20
        assert result.new_total == 20

    @pytest.mark.asyncio
    async def test_already_completed_returns_none(self):
        conn = AsyncMock()
        conn.fetchval.side_effect = [20, None]
        repo = EngagementRepository(_mock_db(conn))
        bonus = CreditEntry(amount=20, reason="x", action=CreditAction.PROFILE_BONUS)

        assert await repo.complete_profile("u1", bonus) is None
        assert conn.fetchval.call_count == 2


class TestReads:
    @pytest.mark.asyncio
    async def test_get_user_maps_row_and_saves(self):
        db = _mock_db(AsyncMock())
        db.fetchrow.return_value = _user_row(role="admin", credits_total=12)
        db.fetch.return_value = [{"feed_id": "feed_a"}, {"feed_id": "feed_b"}]
        repo = EngagementRepository(db)

        user = await repo.get_user("u1")

        assert user.role == Role.ADMIN
        assert user.is_admin
        assert user.credits_total == 12
        assert user.saved_feeds == {"feed_a", "feed_b"}

    @pytest.mark.asyncio
    async def test_get_user_missing(self):
        db = _mock_db(AsyncMock())
        db.fetchrow.return_value = None
        repo = EngagementRepository(db)

        assert await repo.get_user("ghost") is None
        db.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_set_role_unknown_user(self):
        db = _mock_db(AsyncMock())
        db.fetchval.return_value = None
        repo = EngagementRepository(db)

        with pytest.raises(NotFoundError):
            await repo.set_role("ghost", Role.ADMIN)

    @pytest.mark.asyncio
    async def test_remove_save_reports_presence(self):
        db = _mock_db(AsyncMock())
        db.fetchval.side_effect = ["feed_a", None]
        repo = EngagementRepository(db)

        assert await repo.remove_save("u1", "feed_a") is True
        assert await repo.remove_save("u1", "feed_a") is False

    @pytest.mark.asyncio
    async def test_credit_history_in_ledger_order(self):
        db = _mock_db(AsyncMock())
        db.fetchval.return_value = 1
        created = datetime(2026, 3, 1, tzinfo=timezone.utc)
        db.fetch.return_value = [
            {
                "amount": 2,
                "reason": "Saved content (ID: feed_a)",
                "action": "save",
                "feed_id": "feed_a",
                "idempotency_key": "save:u1:feed_a",
                "created_at": created,
            },
            {
                "amount": 50,
                "reason": "Contest winner",
                "action": "admin_grant",
                "feed_id": None,
                "idempotency_key": None,
                "created_at": created,
            },
        ]
        repo = EngagementRepository(db)

        history = await repo.credit_history("u1")

        assert [e.action for e in history] == [CreditAction.SAVE, CreditAction.ADMIN_GRANT]
        assert "ORDER BY id" in db.fetch.call_args.args[0]

    @pytest.mark.asyncio
    async def test_credit_history_unknown_user(self):
        db = _mock_db(AsyncMock())
        db.fetchval.return_value = None
        repo = EngagementRepository(db)

        with pytest.raises(NotFoundError):
            await repo.credit_history("ghost")
