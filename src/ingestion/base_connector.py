"""
Base connector interface and shared functionality for source connectors.

Each connector implements _fetch_raw() and _transform(); the base class
provides:
- Rate limiting
- Failure containment (any upstream failure degrades to zero results)
- Stats, logging and metrics
"""

import asyncio
import logging
import re
import time
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from src.ingestion.schemas import RawPost, Source
from src.observability.metrics import get_metrics

logger = logging.getLogger(__name__)


class ConnectorError(Exception):
    """
    Upstream source degraded (auth failure, rate limit, bad payload).

    Raised inside connectors and absorbed by BaseConnector.fetch().
    """

    def __init__(self, message: str, error_type: str = "upstream"):
        super().__init__(message)
        self.error_type = error_type


@dataclass
class RateLimiter:
    """
    Simple token bucket rate limiter.

    Allows `rate` requests per minute with burst capacity.
    """

    rate: int  # requests per minute
    _tokens: float = field(init=False)
    _last_update: float = field(init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    def __post_init__(self) -> None:
        self._tokens = float(self.rate)
        self._last_update = time.monotonic()

    async def acquire(self) -> None:
        """Wait until a token is available, then consume it."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_update
            self._last_update = now

            self._tokens = min(
                float(self.rate),
                self._tokens + elapsed * (self.rate / 60.0),
            )

            if self._tokens < 1:
                wait_time = (1 - self._tokens) * 60.0 / self.rate
                logger.debug(f"Rate limited, waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
                self._tokens = 0
            else:
                self._tokens -= 1


@dataclass
class ConnectorStats:
    """Statistics for a connector run."""

    posts_fetched: int = 0
    posts_filtered: int = 0
    errors: int = 0
    degraded: bool = False
    start_time: float = field(default_factory=time.monotonic)

    @property
    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.start_time


class BaseConnector(ABC):
    """
    Abstract base class for source connectors.

    Subclasses must implement:
        - source: Source enum value
        - _fetch_raw(): Async generator yielding raw provider payloads
        - _transform(): Convert one payload to RawPost (or None to drop it)

    fetch() never raises for ordinary upstream failures. Whatever was
    collected before the failure is discarded so a refresh never ingests a
    half-read page; the source simply contributes nothing this round.
    """

    def __init__(self, rate_limit: int = 60):
        """
        Initialize connector with rate limiting.

        Args:
            rate_limit: Maximum requests per minute
        """
        self._rate_limiter = RateLimiter(rate=rate_limit)
        self._stats = ConnectorStats()

    @property
    @abstractmethod
    def source(self) -> Source:
        """Return the source this connector handles."""
        ...

    @property
    def name(self) -> str:
        return f"{self.source.value}_connector"

    @abstractmethod
    async def _fetch_raw(self, **query: Any) -> AsyncIterator[dict[str, Any]]:
        """
        Fetch raw payloads from the provider API.

        Subclasses MUST call `await self._rate_limiter.acquire()` before each
        HTTP request, and raise ConnectorError for auth failures, rate limits
        and unusable responses.
        """
        ...

    @abstractmethod
    def _transform(self, raw: dict[str, Any]) -> RawPost | None:
        """
        Transform one raw payload to RawPost.

        Returns None for payloads that should be dropped. May raise on
        malformed input; fetch() counts the error and drops the item.
        """
        ...

    async def fetch(self, **query: Any) -> list[RawPost]:
        """
        Fetch and normalize posts from the provider.

        Args:
            **query: Provider-specific query overrides

        Returns:
            Ordered list of RawPost; empty if the source degraded
        """
        self._stats = ConnectorStats()
        posts: list[RawPost] = []

        logger.info(f"Starting fetch for {self.name}")

        try:
            async for raw in self._fetch_raw(**query):
                try:
                    post = self._transform(raw)
                except Exception as e:
                    self._stats.errors += 1
                    logger.warning(f"Dropping malformed payload in {self.name}: {e}")
                    continue

                if post is None:
                    self._stats.posts_filtered += 1
                    continue

                posts.append(post)
                self._stats.posts_fetched += 1

        except ConnectorError as e:
            self._degrade(e.error_type, str(e))
            posts = []
        except Exception as e:
            self._degrade(type(e).__name__, str(e))
            posts = []

        finally:
            logger.info(
                f"{self.name} completed: "
                f"fetched={self._stats.posts_fetched}, "
                f"filtered={self._stats.posts_filtered}, "
                f"errors={self._stats.errors}, "
                f"degraded={self._stats.degraded}, "
                f"elapsed={self._stats.elapsed_seconds:.2f}s"
            )

        return posts

    def _degrade(self, error_type: str, message: str) -> None:
        self._stats.errors += 1
        self._stats.degraded = True
        get_metrics().record_connector_error(self.source, error_type)
        logger.error(f"UpstreamDegraded in {self.name} ({error_type}): {message}")

    @property
    def stats(self) -> ConnectorStats:
        """Get statistics for the most recent run."""
        return self._stats

    async def health_check(self) -> bool:
        """
        Check if the connector can reach its provider.

        Override in subclasses for provider-specific checks.
        """
        return True


def clean_text(text: str) -> str:
    """
    Clean text content by removing excessive whitespace and control characters.

    Args:
        text: Raw text content

    Returns:
        Cleaned text
    """
    text = " ".join(text.split())
    text = re.sub(r'[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]', '', text)
    return text.strip()
