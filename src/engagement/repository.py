"""Engagement repository backed by PostgreSQL.

Every credit write runs inside one transaction that locks the user row
(SELECT ... FOR UPDATE), inserts the ledger row, and increments
users.credits_total by the same amount. Balance mutations for one user
therefore serialize; different users never contend.

feed_saves holds one row per (feed, user). That row is both the feed's
saved-by membership and the user's saved-feeds membership, so the two
views cannot drift apart.
"""

import logging
from datetime import datetime, timezone
from typing import Any

import asyncpg

from src.engagement.base import EngagementStore
from src.engagement.errors import AlreadyReportedError, AlreadySavedError, NotFoundError
from src.engagement.schemas import CreditAction, CreditEntry, CreditResult, Role, UserAccount
from src.storage.database import Database

logger = logging.getLogger(__name__)


class EngagementRepository(EngagementStore):
    """Repository for users, saves, reports and the credit ledger."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_tables(self) -> None:
        """Create engagement tables. Requires feed_items to exist."""
        create_sql = """
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            username TEXT NOT NULL,
            role TEXT NOT NULL DEFAULT 'user' CHECK (role IN ('user', 'admin')),
            profile_completed BOOLEAN NOT NULL DEFAULT FALSE,
            credits_total BIGINT NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        );

        CREATE TABLE IF NOT EXISTS feed_saves (
            feed_id TEXT NOT NULL REFERENCES feed_items(id),
            user_id TEXT NOT NULL REFERENCES users(id),
            saved_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            PRIMARY KEY (feed_id, user_id)
        );
        CREATE INDEX IF NOT EXISTS idx_feed_saves_user
            ON feed_saves(user_id, saved_at DESC);

        CREATE TABLE IF NOT EXISTS feed_reports (
            feed_id TEXT NOT NULL REFERENCES feed_items(id),
            user_id TEXT NOT NULL REFERENCES users(id),
            seq BIGSERIAL NOT NULL,
            reason TEXT NOT NULL CHECK (length(reason) > 0),
            reported_at TIMESTAMPTZ NOT NULL,
            PRIMARY KEY (feed_id, user_id)
        );

        CREATE TABLE IF NOT EXISTS credit_ledger (
            id BIGSERIAL PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id),
            amount INTEGER NOT NULL,
            reason TEXT NOT NULL,
            action TEXT NOT NULL,
            feed_id TEXT,
            idempotency_key TEXT UNIQUE,
            created_at TIMESTAMPTZ NOT NULL
        );
        CREATE INDEX IF NOT EXISTS idx_credit_ledger_user
            ON credit_ledger(user_id, id);
        """
        await self._db.execute(create_sql)
        logger.info("Engagement tables created")

    async def ensure_user(self, user_id: str, username: str | None = None) -> UserAccount:
        sql = """
            INSERT INTO users (id, username) VALUES ($1, $2)
            ON CONFLICT (id) DO NOTHING
        """
        await self._db.execute(sql, user_id, username or user_id)
        return await self.get_user(user_id)

    async def set_role(self, user_id: str, role: Role) -> UserAccount:
        updated = await self._db.fetchval(
            "UPDATE users SET role = $2 WHERE id = $1 RETURNING id", user_id, role.value
        )
        if updated is None:
            raise NotFoundError("user", user_id)
        return await self.get_user(user_id)

    async def get_user(self, user_id: str) -> UserAccount | None:
        row = await self._db.fetchrow("SELECT * FROM users WHERE id = $1", user_id)
        if row is None:
            return None
        saved = await self._db.fetch(
            "SELECT feed_id FROM feed_saves WHERE user_id = $1", user_id
        )
        return _row_to_user(row, {r["feed_id"] for r in saved})

    async def add_save(self, user_id: str, feed_id: str, reward: CreditEntry) -> CreditResult:
        async with self._db.transaction() as conn:
            await _require_feed(conn, feed_id)
            await _lock_user(conn, user_id)

            inserted = await conn.fetchval(
                """
                INSERT INTO feed_saves (feed_id, user_id, saved_at) VALUES ($1, $2, $3)
                ON CONFLICT (feed_id, user_id) DO NOTHING
                RETURNING feed_id
                """,
                feed_id,
                user_id,
                datetime.now(timezone.utc),
            )
            if inserted is None:
                raise AlreadySavedError(feed_id)

            return await _append_credit(conn, user_id, reward)

    async def remove_save(self, user_id: str, feed_id: str) -> bool:
        removed = await self._db.fetchval(
            "DELETE FROM feed_saves WHERE feed_id = $1 AND user_id = $2 RETURNING feed_id",
            feed_id,
            user_id,
        )
        return removed is not None

    async def add_report(
        self,
        user_id: str,
        feed_id: str,
        reason: str,
        reported_at: datetime,
        reward: CreditEntry,
    ) -> CreditResult:
        async with self._db.transaction() as conn:
            await _require_feed(conn, feed_id)
            await _lock_user(conn, user_id)

            inserted = await conn.fetchval(
                """
                INSERT INTO feed_reports (feed_id, user_id, reason, reported_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (feed_id, user_id) DO NOTHING
                RETURNING feed_id
                """,
                feed_id,
                user_id,
                reason,
                reported_at,
            )
            if inserted is None:
                raise AlreadyReportedError(feed_id)

            return await _append_credit(conn, user_id, reward)

    async def append_credit(self, user_id: str, entry: CreditEntry) -> CreditResult:
        async with self._db.transaction() as conn:
            if entry.feed_id is not None:
                await _require_feed(conn, entry.feed_id)
            return await _append_credit(conn, user_id, entry)

    async def complete_profile(self, user_id: str, bonus: CreditEntry) -> CreditResult | None:
        async with self._db.transaction() as conn:
            await _lock_user(conn, user_id)
            flipped = await conn.fetchval(
                """
                UPDATE users SET profile_completed = TRUE
                WHERE id = $1 AND NOT profile_completed
                RETURNING id
                """,
                user_id,
            )
            if flipped is None:
                return None
            return await _append_credit(conn, user_id, bonus)

    async def credit_history(self, user_id: str) -> list[CreditEntry]:
        exists = await self._db.fetchval("SELECT 1 FROM users WHERE id = $1", user_id)
        if exists is None:
            raise NotFoundError("user", user_id)

        rows = await self._db.fetch(
            "SELECT * FROM credit_ledger WHERE user_id = $1 ORDER BY id", user_id
        )
        return [_row_to_entry(row) for row in rows]

    async def health_check(self) -> bool:
        return await self._db.health_check()


async def _require_feed(conn: asyncpg.Connection, feed_id: str) -> None:
    if await conn.fetchval("SELECT 1 FROM feed_items WHERE id = $1", feed_id) is None:
        raise NotFoundError("feed", feed_id)


async def _lock_user(conn: asyncpg.Connection, user_id: str) -> int:
    """Lock the user row for this transaction and return its current total."""
    total = await conn.fetchval(
        "SELECT credits_total FROM users WHERE id = $1 FOR UPDATE", user_id
    )
    if total is None:
        raise NotFoundError("user", user_id)
    return total


async def _append_credit(
    conn: asyncpg.Connection, user_id: str, entry: CreditEntry
) -> CreditResult:
    """Ledger insert plus total increment; caller owns the transaction."""
    total = await _lock_user(conn, user_id)

    ledger_id = await conn.fetchval(
        """
        INSERT INTO credit_ledger (
            user_id, amount, reason, action, feed_id, idempotency_key, created_at
        ) VALUES ($1, $2, $3, $4, $5, $6, $7)
        ON CONFLICT (idempotency_key) DO NOTHING
        RETURNING id
        """,
        user_id,
        entry.amount,
        entry.reason,
        entry.action.value,
        entry.feed_id,
        entry.idempotency_key,
        entry.created_at,
    )
    if ledger_id is None:
        return CreditResult(amount=0, new_total=total, duplicate=True)

    new_total = await conn.fetchval(
        "UPDATE users SET credits_total = credits_total + $2 WHERE id = $1 RETURNING credits_total",
        user_id,
        entry.amount,
    )
    return CreditResult(amount=entry.amount, new_total=new_total)


def _row_to_user(row: Any, saved_feeds: set[str]) -> UserAccount:
    return UserAccount(
        id=row["id"],
        username=row["username"],
        role=Role(row["role"]),
        profile_completed=row["profile_completed"],
        credits_total=row["credits_total"],
        saved_feeds=saved_feeds,
    )


def _row_to_entry(row: Any) -> CreditEntry:
    return CreditEntry(
        amount=row["amount"],
        reason=row["reason"],
        action=CreditAction(row["action"]),
        feed_id=row["feed_id"],
        idempotency_key=row["idempotency_key"],
        created_at=row["created_at"],
    )
