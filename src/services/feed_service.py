"""
Feed service - wires storage, connectors, refresh and the credits ledger.

One FeedService per process. It chooses the backend from settings:

- postgres: FeedRepository + EngagementRepository on a shared asyncpg pool,
  with a Redis lease so refreshes are single-flight across instances
- memory: in-process stores and lease (single instance only)

The API dependency layer and the CLI both go through this class.
"""

from collections.abc import Sequence

import redis.asyncio as redis
import structlog

from src.config.settings import Settings, get_settings
from src.engagement.base import EngagementStore
from src.engagement.config import CreditsConfig
from src.engagement.ledger import CreditLedger
from src.engagement.memory import InMemoryEngagementStore
from src.engagement.repository import EngagementRepository
from src.ingestion.base_connector import BaseConnector
from src.ingestion.mock_connector import create_mock_connectors
from src.ingestion.pipeline import IngestionPipeline
from src.ingestion.reddit_connector import RedditConnector
from src.ingestion.twitter_connector import TwitterConnector
from src.refresh.config import RefreshConfig
from src.refresh.coordinator import RefreshCoordinator
from src.refresh.lock import InMemoryRefreshLock, RedisRefreshLock, RefreshLock
from src.storage.base import FeedStore
from src.storage.database import Database
from src.storage.memory import InMemoryFeedStore
from src.storage.repository import FeedRepository

logger = structlog.get_logger(__name__)


def create_connectors(settings: Settings, use_mock: bool = False) -> list[BaseConnector]:
    """Create connectors based on available configuration."""
    if use_mock or settings.use_mock_connectors:
        return create_mock_connectors()

    connectors: list[BaseConnector] = []

    if settings.twitter_configured:
        connectors.append(TwitterConnector(rate_limit=settings.twitter_rate_limit))
        logger.info("Twitter connector enabled", query=settings.twitter_query)

    if settings.reddit_configured:
        connectors.append(RedditConnector(rate_limit=settings.reddit_rate_limit))
        logger.info("Reddit connector enabled", subreddit=settings.reddit_subreddit)

    # If no connectors configured, use mock
    if not connectors:
        logger.warning("No API credentials configured, using mock connectors")
        return create_mock_connectors()

    return connectors


class FeedService:
    """
    Process-wide container for the feed and ledger components.

    Usage:
        service = FeedService()
        await service.start()
        page = await service.feed_store.list_page(1, 10)
        await service.close()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        connectors: Sequence[BaseConnector] | None = None,
        use_mock: bool = False,
        refresh_config: RefreshConfig | None = None,
        credits_config: CreditsConfig | None = None,
    ):
        self._settings = settings or get_settings()
        self._connectors = (
            list(connectors)
            if connectors is not None
            else create_connectors(self._settings, use_mock=use_mock)
        )
        self._refresh_config = refresh_config or RefreshConfig()
        self._credits_config = credits_config or CreditsConfig()

        self._database: Database | None = None
        self._redis: redis.Redis | None = None
        self._feed_store: FeedStore | None = None
        self._engagement_store: EngagementStore | None = None
        self._coordinator: RefreshCoordinator | None = None
        self._ledger: CreditLedger | None = None

    @property
    def backend(self) -> str:
        return self._settings.storage_backend

    @property
    def started(self) -> bool:
        return self._feed_store is not None

    async def start(self) -> None:
        """Open connections and build components. Idempotent."""
        if self.started:
            return

        lock: RefreshLock
        if self.backend == "memory":
            feed_store = InMemoryFeedStore()
            self._feed_store = feed_store
            self._engagement_store = InMemoryEngagementStore(feed_store)
            lock = InMemoryRefreshLock(ttl_seconds=self._refresh_config.lock_ttl_seconds)
        else:
            self._database = Database()
            await self._database.connect()
            self._redis = redis.from_url(
                str(self._settings.redis_url),
                encoding="utf-8",
                decode_responses=True,
            )
            self._feed_store = FeedRepository(self._database)
            self._engagement_store = EngagementRepository(self._database)
            lock = RedisRefreshLock(
                self._redis,
                key=self._refresh_config.lock_key,
                ttl_seconds=self._refresh_config.lock_ttl_seconds,
            )

        self._coordinator = RefreshCoordinator(
            store=self._feed_store,
            connectors=self._connectors,
            lock=lock,
            pipeline=IngestionPipeline(self._feed_store),
            config=self._refresh_config,
        )
        self._ledger = CreditLedger(self._engagement_store, config=self._credits_config)

        logger.info(
            "Feed service started",
            backend=self.backend,
            connectors=[c.name for c in self._connectors],
        )

    async def init_schema(self) -> None:
        """Create PostgreSQL tables. No-op for the memory backend."""
        await self.start()
        if isinstance(self._feed_store, FeedRepository):
            await self._feed_store.create_tables()
        if isinstance(self._engagement_store, EngagementRepository):
            await self._engagement_store.create_tables()

    async def close(self) -> None:
        if self._database is not None:
            await self._database.close()
            self._database = None

        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None

        self._feed_store = None
        self._engagement_store = None
        self._coordinator = None
        self._ledger = None
        logger.info("Feed service stopped")

    async def __aenter__(self) -> "FeedService":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def connectors(self) -> list[BaseConnector]:
        return list(self._connectors)

    @property
    def database(self) -> Database | None:
        return self._database

    @property
    def redis_client(self) -> redis.Redis | None:
        return self._redis

    @property
    def feed_store(self) -> FeedStore:
        self._require_started()
        return self._feed_store

    @property
    def engagement_store(self) -> EngagementStore:
        self._require_started()
        return self._engagement_store

    @property
    def coordinator(self) -> RefreshCoordinator:
        self._require_started()
        return self._coordinator

    @property
    def ledger(self) -> CreditLedger:
        self._require_started()
        return self._ledger

    def _require_started(self) -> None:
        if not self.started:
            raise RuntimeError("FeedService not started. Call start() first.")
