"""
Refresh leases for single-flight ingestion.

A RefreshLock hands out at most one live RefreshLease at a time. The
holder owns the refresh; everyone else waits for release (bounded) and
then reads the store as-is. Leases carry an owner token so only the
holder can release, and a TTL so a crashed holder cannot block refreshes
forever.

RedisRefreshLock makes the guarantee hold across processes and hosts.
InMemoryRefreshLock covers a single process.
"""

import asyncio
import time
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone

import redis.asyncio as redis
import structlog

logger = structlog.get_logger(__name__)

# Delete the key only if it still holds our marker
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


@dataclass(frozen=True)
class RefreshLease:
    """Proof of ownership of the current refresh pass."""

    token: str = field(default_factory=lambda: uuid.uuid4().hex)
    acquired_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def marker(self) -> str:
        """Stored value: owner token and acquire time, "<token>|<iso time>"."""
        return f"{self.token}|{self.acquired_at.isoformat()}"

    @classmethod
    def from_marker(cls, marker: str) -> "RefreshLease":
        token, _, acquired_at = marker.partition("|")
        return cls(token=token, acquired_at=datetime.fromisoformat(acquired_at))


class RefreshLock(ABC):
    """Compare-and-set marker meaning "a refresh is in progress since T"."""

    def __init__(self, ttl_seconds: float):
        self.ttl_seconds = ttl_seconds

    @abstractmethod
    async def try_acquire(self) -> RefreshLease | None:
        """Atomically take the lease if free (or expired); None if held."""
        ...

    @abstractmethod
    async def release(self, lease: RefreshLease) -> bool:
        """Release lease if still owned. Returns False if it had expired or was taken over."""
        ...

    @abstractmethod
    async def current(self) -> RefreshLease | None:
        """The live lease, if any; its acquired_at is when the running refresh began."""
        ...

    @abstractmethod
    async def wait_released(self, timeout: float) -> bool:
        """Wait until no lease is held. Returns False on timeout."""
        ...


class InMemoryRefreshLock(RefreshLock):
    """Single-process lease built on an asyncio.Event."""

    def __init__(self, ttl_seconds: float = 120.0):
        super().__init__(ttl_seconds)
        self._lease: RefreshLease | None = None
        self._expires_at = 0.0
        self._released = asyncio.Event()
        self._released.set()

    def _expired(self) -> bool:
        return self._lease is not None and time.monotonic() >= self._expires_at

    async def try_acquire(self) -> RefreshLease | None:
        if self._lease is not None and not self._expired():
            return None

        if self._lease is not None:
            logger.warning(
                "Refresh lease expired, taking over",
                token=self._lease.token,
                held_since=self._lease.acquired_at.isoformat(),
            )

        self._lease = RefreshLease()
        self._expires_at = time.monotonic() + self.ttl_seconds
        self._released.clear()
        return self._lease

    async def release(self, lease: RefreshLease) -> bool:
        if self._lease is None or self._lease.token != lease.token:
            return False
        self._lease = None
        self._released.set()
        return True

    async def current(self) -> RefreshLease | None:
        if self._lease is None or self._expired():
            return None
        return self._lease

    async def wait_released(self, timeout: float) -> bool:
        if self._lease is None or self._expired():
            return True
        remaining = min(timeout, max(self._expires_at - time.monotonic(), 0.0))
        try:
            await asyncio.wait_for(self._released.wait(), timeout=remaining)
            return True
        except asyncio.TimeoutError:
            return self._expired() and remaining < timeout


class RedisRefreshLock(RefreshLock):
    """
    Cross-instance lease stored in Redis.

    The value is the lease marker (owner token plus acquire time). Acquire
    is SET key marker NX PX ttl; release is a marker-checked delete.
    Waiters poll for the key to disappear.
    """

    def __init__(
        self,
        client: redis.Redis,
        key: str = "creator_feed:refresh:lease",
        ttl_seconds: float = 120.0,
        poll_interval: float = 0.25,
    ):
        super().__init__(ttl_seconds)
        self._client = client
        self._key = key
        self._poll_interval = poll_interval

    async def try_acquire(self) -> RefreshLease | None:
        lease = RefreshLease()
        acquired = await self._client.set(
            self._key,
            lease.marker,
            nx=True,
            px=int(self.ttl_seconds * 1000),
        )
        return lease if acquired else None

    async def release(self, lease: RefreshLease) -> bool:
        deleted = await self._client.eval(_RELEASE_SCRIPT, 1, self._key, lease.marker)
        return bool(deleted)

    async def current(self) -> RefreshLease | None:
        marker = await self._client.get(self._key)
        if marker is None:
            return None
        if isinstance(marker, bytes):
            marker = marker.decode()
        return RefreshLease.from_marker(marker)

    async def wait_released(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        while await self._client.exists(self._key):
            if time.monotonic() >= deadline:
                return False
            await asyncio.sleep(self._poll_interval)
        return True
