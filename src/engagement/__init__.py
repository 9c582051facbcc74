"""Engagement & Credits Ledger.

Components:
- CreditLedger: save/unsave/report/award/grant/profile-bonus operations
- EngagementStore: atomic persistence contract (PostgreSQL or in-process)
- CreditsConfig: reward table and limits, overridable via CREDITS_* env vars
- errors: caller-visible error taxonomy
"""

from src.engagement.config import CreditsConfig
from src.engagement.errors import (
    AlreadyReportedError,
    AlreadySavedError,
    ConflictError,
    EngagementError,
    ForbiddenError,
    InvalidActionError,
    NotFoundError,
    ValidationError,
)
from src.engagement.schemas import (
    CreditAction,
    CreditBalance,
    CreditEntry,
    CreditResult,
    Principal,
    Role,
    UserAccount,
)

__all__ = [
    "AlreadyReportedError",
    "AlreadySavedError",
    "ConflictError",
    "CreditAction",
    "CreditBalance",
    "CreditEntry",
    "CreditResult",
    "CreditsConfig",
    "EngagementError",
    "ForbiddenError",
    "InvalidActionError",
    "NotFoundError",
    "Principal",
    "Role",
    "UserAccount",
    "ValidationError",
]
