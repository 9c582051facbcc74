"""
Dependency injection for FastAPI endpoints.
"""

from fastapi import Depends

from src.api.auth import get_principal
from src.engagement.ledger import CreditLedger
from src.engagement.schemas import Principal
from src.refresh.coordinator import RefreshCoordinator
from src.services.feed_service import FeedService
from src.storage.base import FeedStore

# Global service instance (initialized on first request)
_feed_service: FeedService | None = None


async def get_feed_service() -> FeedService:
    """
    Get feed service instance.

    Creates a singleton service wired to the configured storage backend.
    """
    global _feed_service

    if _feed_service is None:
        service = FeedService()
        await service.start()
        _feed_service = service

    return _feed_service


async def get_feed_store(
    service: FeedService = Depends(get_feed_service),
) -> FeedStore:
    return service.feed_store


async def get_refresh_coordinator(
    service: FeedService = Depends(get_feed_service),
) -> RefreshCoordinator:
    return service.coordinator


async def get_ledger(
    service: FeedService = Depends(get_feed_service),
) -> CreditLedger:
    return service.ledger


async def get_current_user(
    principal: Principal = Depends(get_principal),
    ledger: CreditLedger = Depends(get_ledger),
) -> Principal:
    """Principal for this request, provisioned in the user store on first sight."""
    await ledger.ensure_user(principal)
    return principal


async def cleanup_dependencies() -> None:
    """Clean up global dependencies on shutdown."""
    global _feed_service

    if _feed_service is not None:
        await _feed_service.close()
        _feed_service = None
