"""
Refresh coordinator - keeps the feed fresh without stampeding upstreams.

On a page-1 read the coordinator decides whether the store is stale and,
if so, makes sure exactly one refresh pass runs:

1. Concurrent callers in this process join one in-flight task, each
   for at most the wait timeout.
2. Across processes, a RefreshLock lease picks a single holder; the
   others wait for release (bounded) and then read whatever is stored.
3. The holder re-checks staleness, fans out to all connectors
   concurrently (each bounded by a timeout), and ingests the union.

Nothing in a refresh pass raises to the reader; every failure is folded
into the returned RefreshOutcome.
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

import structlog

from src.ingestion.base_connector import BaseConnector
from src.ingestion.pipeline import IngestionPipeline
from src.ingestion.schemas import RawPost, Source
from src.observability.metrics import get_metrics
from src.refresh.config import RefreshConfig
from src.refresh.lock import RefreshLock
from src.storage.base import FeedStore

logger = structlog.get_logger(__name__)


class RefreshStatus(str, Enum):
    FRESH = "fresh"
    REFRESHED = "refreshed"
    WAITED = "waited"
    TIMED_OUT = "timed_out"
    FAILED = "failed"


@dataclass
class RefreshOutcome:
    """Result of one ensure_fresh() evaluation."""

    status: RefreshStatus
    ingested: dict[Source, int] = field(default_factory=dict)

    @property
    def total_ingested(self) -> int:
        return sum(self.ingested.values())


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class RefreshCoordinator:
    """
    Staleness check plus single-flight connector fan-out.

    Usage:
        coordinator = RefreshCoordinator(store, connectors, lock)
        outcome = await coordinator.ensure_fresh()
        page = await store.list_page(1, 10)
    """

    def __init__(
        self,
        store: FeedStore,
        connectors: Sequence[BaseConnector],
        lock: RefreshLock,
        pipeline: IngestionPipeline | None = None,
        config: RefreshConfig | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._connectors = list(connectors)
        self._lock = lock
        self._pipeline = pipeline or IngestionPipeline(store)
        self._config = config or RefreshConfig()
        self._clock = clock
        self._metrics = get_metrics()
        self._inflight: asyncio.Task[RefreshOutcome] | None = None
        self._inflight_forced = False

    @property
    def connectors(self) -> list[BaseConnector]:
        return list(self._connectors)

    async def is_stale(self) -> bool:
        """True if the store is empty or its newest item is older than the threshold."""
        latest = await self._store.latest_created_at()
        if latest is None:
            return True
        age = self._clock() - latest
        return age > timedelta(seconds=self._config.staleness_seconds)

    async def ensure_fresh(self, force: bool = False) -> RefreshOutcome:
        """
        Refresh the store if stale, at most once at a time.

        Readers that find a pass already in flight join it for at most
        wait_timeout_seconds, then get TIMED_OUT and read the store as-is.
        A forced call never joins a non-forced pass; it waits for that pass
        to settle and then starts its own.

        Args:
            force: Skip the staleness check (still single-flight)

        Returns:
            RefreshOutcome; never raises for upstream or store failures
        """
        while True:
            task = self._inflight
            if task is None or task.done():
                break
            if self._inflight_forced or not force:
                return await self._join(task)
            # The running pass may have stopped at the staleness check
            await asyncio.wait({task})

        task = asyncio.create_task(self._evaluate(force))
        task.add_done_callback(self._clear_inflight)
        self._inflight = task
        self._inflight_forced = force

        # A cancelled reader must not cancel the pass other readers joined
        return await asyncio.shield(task)

    async def _join(self, task: asyncio.Task[RefreshOutcome]) -> RefreshOutcome:
        logger.debug("Joining in-flight refresh")
        timeout = self._config.wait_timeout_seconds
        try:
            return await asyncio.wait_for(asyncio.shield(task), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Timed out waiting for in-flight refresh", wait_timeout_seconds=timeout)
            self._metrics.record_refresh(RefreshStatus.TIMED_OUT.value)
            return RefreshOutcome(status=RefreshStatus.TIMED_OUT)

    def _clear_inflight(self, task: asyncio.Task) -> None:
        if self._inflight is task:
            self._inflight = None
            self._inflight_forced = False

    async def _evaluate(self, force: bool) -> RefreshOutcome:
        start_time = time.monotonic()
        try:
            outcome = await self._evaluate_unguarded(force)
        except Exception as e:
            logger.error("Refresh failed", error=str(e), exc_info=True)
            outcome = RefreshOutcome(status=RefreshStatus.FAILED)

        latency = time.monotonic() - start_time
        self._metrics.record_refresh(outcome.status.value, latency)
        logger.info(
            "Refresh evaluated",
            status=outcome.status.value,
            ingested={s.value: n for s, n in outcome.ingested.items()},
            elapsed_seconds=round(latency, 3),
        )
        return outcome

    async def _evaluate_unguarded(self, force: bool) -> RefreshOutcome:
        if not force and not await self.is_stale():
            return RefreshOutcome(status=RefreshStatus.FRESH)

        lease = await self._lock.try_acquire()
        if lease is None:
            holder = await self._lock.current()
            logger.info(
                "Refresh held elsewhere, waiting for release",
                held_since=holder.acquired_at.isoformat() if holder else None,
            )
            released = await self._lock.wait_released(self._config.wait_timeout_seconds)
            if not released:
                logger.warning(
                    "Timed out waiting for refresh",
                    wait_timeout_seconds=self._config.wait_timeout_seconds,
                )
                return RefreshOutcome(status=RefreshStatus.TIMED_OUT)
            return RefreshOutcome(status=RefreshStatus.WAITED)

        try:
            # Another holder may have finished between our check and acquire
            if not force and not await self.is_stale():
                return RefreshOutcome(status=RefreshStatus.FRESH)

            ingested = await self._refresh()
            return RefreshOutcome(status=RefreshStatus.REFRESHED, ingested=ingested)
        finally:
            if not await self._lock.release(lease):
                logger.warning("Refresh lease expired before release", token=lease.token)

    async def _refresh(self) -> dict[Source, int]:
        batches = await asyncio.gather(
            *(self._fetch_bounded(connector) for connector in self._connectors)
        )
        posts = [post for batch in batches for post in batch]

        ingested = {connector.source: 0 for connector in self._connectors}
        ingested.update(await self._pipeline.ingest(posts))
        return ingested

    async def _fetch_bounded(self, connector: BaseConnector) -> list[RawPost]:
        timeout = self._config.connector_timeout_seconds
        try:
            return await asyncio.wait_for(connector.fetch(), timeout=timeout)
        except asyncio.TimeoutError:
            self._metrics.record_connector_error(connector.source, "timeout")
            logger.warning(
                "Connector timed out",
                connector=connector.name,
                timeout_seconds=timeout,
            )
        except Exception as e:
            self._metrics.record_connector_error(connector.source, type(e).__name__)
            logger.error("Connector raised", connector=connector.name, error=str(e))
        return []
