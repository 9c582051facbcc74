"""Schema definitions for users, credit entries and ledger results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class CreditAction(str, Enum):
    """Actions that can appear in the credit ledger."""

    SAVE = "save"
    SHARE = "share"
    REPORT = "report"
    ADMIN_GRANT = "admin_grant"
    PROFILE_BONUS = "profile_bonus"


# Actions a client may request through award()
AWARDABLE_ACTIONS: tuple[CreditAction, ...] = (
    CreditAction.SAVE,
    CreditAction.SHARE,
    CreditAction.REPORT,
)


class Role(str, Enum):
    USER = "user"
    ADMIN = "admin"


@dataclass(frozen=True)
class Principal:
    """Identity asserted by the external authentication layer."""

    user_id: str
    username: str | None = None


@dataclass
class CreditEntry:
    """
    One append-only ledger row.

    Attributes:
        amount: Signed credit delta.
        reason: Human-readable description (verbatim for admin grants).
        action: What produced the entry.
        feed_id: Feed item the entry refers to, if any.
        idempotency_key: Repeats with the same key are no-ops; None for
            admin grants, which are always applied.
    """

    amount: int
    reason: str
    action: CreditAction
    feed_id: str | None = None
    idempotency_key: str | None = None
    created_at: datetime = field(default_factory=_utc_now)


@dataclass
class UserAccount:
    """Credit and engagement relevant slice of a user."""

    id: str
    username: str
    role: Role = Role.USER
    profile_completed: bool = False
    credits_total: int = 0
    saved_feeds: set[str] = field(default_factory=set)

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


@dataclass
class CreditResult:
    """
    Outcome of one credit write.

    amount is what this call actually credited: 0 when the idempotency key
    had already been used (duplicate=True).
    """

    amount: int
    new_total: int
    duplicate: bool = False


@dataclass
class CreditBalance:
    total: int
    history: list[CreditEntry]
