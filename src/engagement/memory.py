"""
In-process engagement store.

Pairs with InMemoryFeedStore. Each method validates and then mutates with
no await in between, which makes it atomic under asyncio and keeps
UserAccount.saved_feeds and FeedItem.saved_by in lockstep.
"""

import copy
from datetime import datetime, timezone

from src.engagement.base import EngagementStore
from src.engagement.errors import AlreadyReportedError, AlreadySavedError, NotFoundError
from src.engagement.schemas import CreditEntry, CreditResult, Role, UserAccount
from src.ingestion.schemas import ReportEntry
from src.storage.memory import InMemoryFeedStore


class InMemoryEngagementStore(EngagementStore):
    """Users and ledger held in dicts; feed sub-state lives in the feed store."""

    def __init__(self, feed_store: InMemoryFeedStore) -> None:
        self._feeds = feed_store
        self._users: dict[str, UserAccount] = {}
        self._ledger: dict[str, list[CreditEntry]] = {}
        self._used_keys: set[str] = set()

    async def ensure_user(self, user_id: str, username: str | None = None) -> UserAccount:
        if user_id not in self._users:
            self._users[user_id] = UserAccount(id=user_id, username=username or user_id)
            self._ledger[user_id] = []
        return copy.deepcopy(self._users[user_id])

    async def set_role(self, user_id: str, role: Role) -> UserAccount:
        user = self._require_user(user_id)
        user.role = role
        return copy.deepcopy(user)

    async def get_user(self, user_id: str) -> UserAccount | None:
        user = self._users.get(user_id)
        return copy.deepcopy(user) if user else None

    async def add_save(self, user_id: str, feed_id: str, reward: CreditEntry) -> CreditResult:
        if self._feeds._live_item(feed_id) is None:
            raise NotFoundError("feed", feed_id)
        user = self._require_user(user_id)
        if feed_id in user.saved_feeds:
            raise AlreadySavedError(feed_id)

        user.saved_feeds.add(feed_id)
        self._feeds._record_save(feed_id, user_id, datetime.now(timezone.utc))
        return self._apply_credit(user, reward)

    async def remove_save(self, user_id: str, feed_id: str) -> bool:
        user = self._users.get(user_id)
        present = user is not None and feed_id in user.saved_feeds
        if user is not None:
            user.saved_feeds.discard(feed_id)
        self._feeds._drop_save(feed_id, user_id)
        return present

    async def add_report(
        self,
        user_id: str,
        feed_id: str,
        reason: str,
        reported_at: datetime,
        reward: CreditEntry,
    ) -> CreditResult:
        item = self._feeds._live_item(feed_id)
        if item is None:
            raise NotFoundError("feed", feed_id)
        user = self._require_user(user_id)
        if any(entry.user_id == user_id for entry in item.reported_by):
            raise AlreadyReportedError(feed_id)

        item.reported_by.append(
            ReportEntry(
                user_id=user_id,
                reason=reason,
                reported_at=reported_at,
                username=user.username,
            )
        )
        return self._apply_credit(user, reward)

    async def append_credit(self, user_id: str, entry: CreditEntry) -> CreditResult:
        user = self._require_user(user_id)
        if entry.feed_id is not None and self._feeds._live_item(entry.feed_id) is None:
            raise NotFoundError("feed", entry.feed_id)
        return self._apply_credit(user, entry)

    async def complete_profile(self, user_id: str, bonus: CreditEntry) -> CreditResult | None:
        user = self._require_user(user_id)
        if user.profile_completed:
            return None
        user.profile_completed = True
        return self._apply_credit(user, bonus)

    async def credit_history(self, user_id: str) -> list[CreditEntry]:
        self._require_user(user_id)
        return copy.deepcopy(self._ledger[user_id])

    def _require_user(self, user_id: str) -> UserAccount:
        user = self._users.get(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user

    def _apply_credit(self, user: UserAccount, entry: CreditEntry) -> CreditResult:
        if entry.idempotency_key is not None:
            if entry.idempotency_key in self._used_keys:
                return CreditResult(amount=0, new_total=user.credits_total, duplicate=True)
            self._used_keys.add(entry.idempotency_key)

        self._ledger[user.id].append(copy.deepcopy(entry))
        user.credits_total += entry.amount
        return CreditResult(amount=entry.amount, new_total=user.credits_total)
