"""Refresh coordination: staleness check plus single-flight connector fan-out."""

from src.refresh.config import RefreshConfig
from src.refresh.coordinator import RefreshCoordinator, RefreshOutcome, RefreshStatus
from src.refresh.lock import (
    InMemoryRefreshLock,
    RedisRefreshLock,
    RefreshLease,
    RefreshLock,
)

__all__ = [
    "InMemoryRefreshLock",
    "RedisRefreshLock",
    "RefreshConfig",
    "RefreshCoordinator",
    "RefreshLease",
    "RefreshLock",
    "RefreshOutcome",
    "RefreshStatus",
]
