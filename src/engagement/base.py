"""
Abstract persistence contract for the engagement ledger.

Each method is one atomic unit: either every write it implies lands, or
none does. In particular the save relation, the report entry and any
credit entry attached to them commit together, and every credit entry
moves the user's total by exactly its amount.
"""

from abc import ABC, abstractmethod
from datetime import datetime

from src.engagement.schemas import CreditEntry, CreditResult, Role, UserAccount


class EngagementStore(ABC):
    """Storage backend for users, saves, reports and the credit ledger."""

    @abstractmethod
    async def ensure_user(self, user_id: str, username: str | None = None) -> UserAccount:
        """Create the user record if missing; never changes an existing one."""
        ...

    @abstractmethod
    async def set_role(self, user_id: str, role: Role) -> UserAccount:
        """Raises NotFoundError if the user does not exist."""
        ...

    @abstractmethod
    async def get_user(self, user_id: str) -> UserAccount | None:
        ...

    @abstractmethod
    async def add_save(self, user_id: str, feed_id: str, reward: CreditEntry) -> CreditResult:
        """
        Record user_id saving feed_id and append reward.

        Raises:
            NotFoundError: feed or user missing
            AlreadySavedError: relation already present
        """
        ...

    @abstractmethod
    async def remove_save(self, user_id: str, feed_id: str) -> bool:
        """Remove the save relation. Returns False if it was not present."""
        ...

    @abstractmethod
    async def add_report(
        self,
        user_id: str,
        feed_id: str,
        reason: str,
        reported_at: datetime,
        reward: CreditEntry,
    ) -> CreditResult:
        """
        Append a report entry and reward.

        Raises:
            NotFoundError: feed or user missing
            AlreadyReportedError: user already reported this feed
        """
        ...

    @abstractmethod
    async def append_credit(self, user_id: str, entry: CreditEntry) -> CreditResult:
        """
        Append entry and move the total by entry.amount.

        A repeated idempotency_key is a no-op returning duplicate=True.

        Raises:
            NotFoundError: user missing, or entry.feed_id set and feed missing
        """
        ...

    @abstractmethod
    async def complete_profile(self, user_id: str, bonus: CreditEntry) -> CreditResult | None:
        """
        Flip profile_completed false -> true and append bonus.

        Returns None (and writes nothing) if the flag was already set.
        """
        ...

    @abstractmethod
    async def credit_history(self, user_id: str) -> list[CreditEntry]:
        """Ledger entries oldest first."""
        ...

    async def health_check(self) -> bool:
        return True
