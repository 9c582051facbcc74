"""
Error taxonomy for feed and ledger operations.

These are the only errors that reach callers as structured responses.
Connector and ingestion failures are absorbed inside the pipeline (see
src.ingestion.base_connector.ConnectorError).
"""


class EngagementError(Exception):
    """Base class for caller-visible feed and ledger errors."""


class ValidationError(EngagementError):
    """Missing or malformed input."""


class InvalidActionError(ValidationError):
    """Award requested for an action outside the reward table."""

    def __init__(self, action: str, valid: list[str]):
        super().__init__(f"Invalid action {action!r}. Must be one of: {valid}")
        self.action = action


class NotFoundError(EngagementError):
    """Referenced feed item or user does not exist."""

    def __init__(self, kind: str, identifier: str):
        super().__init__(f"{kind.capitalize()} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class ConflictError(EngagementError):
    """Operation conflicts with existing state."""


class AlreadySavedError(ConflictError):
    def __init__(self, feed_id: str):
        super().__init__(f"Feed already saved: {feed_id}")
        self.feed_id = feed_id


class AlreadyReportedError(ConflictError):
    def __init__(self, feed_id: str):
        super().__init__(f"Already reported by you: {feed_id}")
        self.feed_id = feed_id


class ForbiddenError(EngagementError):
    """Principal lacks the privilege for an admin operation."""
