"""
Engagement & Credits Ledger.

CreditLedger validates input, builds ledger entries and delegates each
atomic unit to an EngagementStore. Rewards for save and report are issued
inside the same store transaction as the state change, keyed by
(action, user, feed) so that client retries, and a follow-up award() for
the same action, credit the user at most once.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timezone

import structlog

from src.engagement.base import EngagementStore
from src.engagement.config import CreditsConfig
from src.engagement.errors import (
    EngagementError,
    ForbiddenError,
    InvalidActionError,
    NotFoundError,
    ValidationError,
)
from src.engagement.schemas import (
    AWARDABLE_ACTIONS,
    CreditAction,
    CreditBalance,
    CreditEntry,
    CreditResult,
    Principal,
    UserAccount,
)
from src.observability.metrics import get_metrics

logger = structlog.get_logger(__name__)

REASON_TEMPLATES: dict[CreditAction, str] = {
    CreditAction.SAVE: "Saved content (ID: {feed_id})",
    CreditAction.SHARE: "Shared content (ID: {feed_id})",
    CreditAction.REPORT: "Reported inappropriate content (ID: {feed_id})",
}

PROFILE_BONUS_REASON = "Profile completion bonus"


def idempotency_key(action: CreditAction, user_id: str, feed_id: str) -> str:
    return f"{action.value}:{user_id}:{feed_id}"


class Authorizer(ABC):
    """Authorization collaborator consulted before admin operations."""

    @abstractmethod
    async def is_admin(self, principal: Principal) -> bool:
        ...


class StoreRoleAuthorizer(Authorizer):
    """Grants admin to principals whose stored role is admin."""

    def __init__(self, store: EngagementStore) -> None:
        self._store = store

    async def is_admin(self, principal: Principal) -> bool:
        user = await self._store.get_user(principal.user_id)
        return user is not None and user.is_admin


class OperatorAuthorizer(Authorizer):
    """Treats every principal as admin. For local operator tooling (CLI) only."""

    async def is_admin(self, principal: Principal) -> bool:
        return True


class CreditLedger:
    """
    Service for engagement actions and credit issuance.

    Usage:
        ledger = CreditLedger(store)
        await ledger.save(user_id, feed_id)
        balance = await ledger.balance(user_id)
    """

    def __init__(
        self,
        store: EngagementStore,
        authorizer: Authorizer | None = None,
        config: CreditsConfig | None = None,
    ) -> None:
        self._store = store
        self._authorizer = authorizer or StoreRoleAuthorizer(store)
        self._config = config or CreditsConfig()
        self._metrics = get_metrics()

    async def ensure_user(self, principal: Principal) -> UserAccount:
        return await self._store.ensure_user(principal.user_id, principal.username)

    async def save(self, user_id: str, feed_id: str) -> CreditResult:
        """Save feed_id for user_id and issue the save reward once."""
        reward = self._reward_entry(CreditAction.SAVE, user_id, feed_id)
        result = await self._run(
            CreditAction.SAVE, self._store.add_save(user_id, feed_id, reward)
        )
        logger.info(
            "Feed saved",
            user_id=user_id,
            feed_id=feed_id,
            credited=result.amount,
            new_total=result.new_total,
        )
        return result

    async def unsave(self, user_id: str, feed_id: str) -> None:
        """Remove a save. Removing an absent save is a no-op."""
        removed = await self._store.remove_save(user_id, feed_id)
        self._metrics.record_engagement("unsave", "success" if removed else "noop")
        logger.info("Feed unsaved", user_id=user_id, feed_id=feed_id, removed=removed)

    async def report(self, user_id: str, feed_id: str, reason: str | None) -> CreditResult:
        """Record one report per user per feed and issue the report reward once."""
        reason = self._require_reason(reason)
        reward = self._reward_entry(CreditAction.REPORT, user_id, feed_id)
        result = await self._run(
            CreditAction.REPORT,
            self._store.add_report(
                user_id, feed_id, reason, datetime.now(timezone.utc), reward
            ),
        )
        logger.info(
            "Feed reported",
            user_id=user_id,
            feed_id=feed_id,
            credited=result.amount,
        )
        return result

    async def award(self, user_id: str, action: str, feed_id: str) -> CreditResult:
        """
        Award credits for a client-reported interaction.

        Keyed by (action, user, feed): a repeat, or an award for a save or
        report already credited by save()/report(), returns amount=0.
        """
        credit_action = self._parse_action(action)
        if not feed_id:
            raise ValidationError("feed_id is required")

        entry = self._reward_entry(credit_action, user_id, feed_id)
        result = await self._run(credit_action, self._store.append_credit(user_id, entry))
        logger.info(
            "Credits awarded",
            user_id=user_id,
            action=credit_action.value,
            feed_id=feed_id,
            credited=result.amount,
            duplicate=result.duplicate,
        )
        return result

    async def admin_grant(
        self,
        admin: Principal,
        target_user_id: str,
        amount: int | None,
        reason: str | None,
    ) -> CreditResult:
        """Grant credits to target_user_id with a caller-supplied reason."""
        await self.require_admin(admin)

        if not target_user_id:
            raise ValidationError("user_id is required")
        if amount is None or isinstance(amount, bool) or not isinstance(amount, int):
            raise ValidationError("amount must be an integer")
        if amount <= 0:
            raise ValidationError(f"amount must be positive, got {amount}")
        reason = self._require_reason(reason)

        entry = CreditEntry(amount=amount, reason=reason, action=CreditAction.ADMIN_GRANT)
        result = await self._run(
            CreditAction.ADMIN_GRANT, self._store.append_credit(target_user_id, entry)
        )
        logger.info(
            "Credits granted",
            admin_id=admin.user_id,
            user_id=target_user_id,
            amount=amount,
            new_total=result.new_total,
        )
        return result

    async def complete_profile(self, user_id: str) -> CreditResult | None:
        """
        Issue the one-time profile completion bonus.

        Returns None if the profile was already marked complete.
        """
        bonus = CreditEntry(
            amount=self._config.profile_bonus,
            reason=PROFILE_BONUS_REASON,
            action=CreditAction.PROFILE_BONUS,
            idempotency_key=f"{CreditAction.PROFILE_BONUS.value}:{user_id}",
        )
        result = await self._run(
            CreditAction.PROFILE_BONUS, self._store.complete_profile(user_id, bonus)
        )
        logger.info(
            "Profile completion processed",
            user_id=user_id,
            awarded=result is not None and result.amount > 0,
        )
        return result

    async def balance(self, user_id: str) -> CreditBalance:
        user = await self._store.get_user(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        history = await self._store.credit_history(user_id)
        return CreditBalance(total=user.credits_total, history=history)

    async def activity(
        self, viewer: Principal, user_id: str
    ) -> tuple[UserAccount, list[CreditEntry]]:
        """Credit history and profile state; visible to the user and admins."""
        if viewer.user_id != user_id:
            await self.require_admin(viewer)

        user = await self._store.get_user(user_id)
        if user is None:
            raise NotFoundError("user", user_id)
        return user, await self._store.credit_history(user_id)

    async def require_admin(self, principal: Principal) -> None:
        if not await self._authorizer.is_admin(principal):
            raise ForbiddenError("Admin privilege required")

    def _parse_action(self, action: str) -> CreditAction:
        valid = [a.value for a in AWARDABLE_ACTIONS]
        if action not in valid:
            raise InvalidActionError(action, valid)
        return CreditAction(action)

    def _require_reason(self, reason: str | None) -> str:
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("reason is required")
        if len(reason) > self._config.max_reason_length:
            raise ValidationError(
                f"reason exceeds {self._config.max_reason_length} characters"
            )
        return reason

    def _reward_entry(self, action: CreditAction, user_id: str, feed_id: str) -> CreditEntry:
        return CreditEntry(
            amount=self._config.reward_for(action),
            reason=REASON_TEMPLATES[action].format(feed_id=feed_id),
            action=action,
            feed_id=feed_id,
            idempotency_key=idempotency_key(action, user_id, feed_id),
        )

    async def _run(self, action: CreditAction, op):
        """Await a store operation, recording outcome and credited amount."""
        try:
            result = await op
        except EngagementError as e:
            self._metrics.record_engagement(action.value, type(e).__name__)
            raise

        if isinstance(result, CreditResult):
            outcome = "duplicate" if result.duplicate else "success"
            self._metrics.record_engagement(action.value, outcome)
            self._metrics.record_credits(action.value, result.amount)
        else:
            self._metrics.record_engagement(action.value, "noop")
        return result
