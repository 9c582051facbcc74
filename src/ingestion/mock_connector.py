"""
Mock connector for testing and development.

Generates synthetic creator-economy posts that mimic real source payloads.
Useful for:
- Running the feed without API credentials
- Exercising refresh and deduplication paths in tests
"""

import asyncio
import random
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone
from typing import Any

from src.ingestion.base_connector import BaseConnector, ConnectorError
from src.ingestion.schemas import EngagementMetrics, RawPost, Source

POST_TEMPLATES = [
    "Just crossed {n}k subscribers. Consistency beats virality every time.",
    "Sponsorship rates for mid-size creators are finally going up. Here is what I charge.",
    "Thread: how I batch {n} videos in one weekend without burning out.",
    "Platform payouts dropped again this month. Diversify your income, folks.",
    "Hot take: newsletters are the most underrated creator business in {year}.",
    "We tested {n} thumbnail styles. The plain one won by a mile.",
]

SAMPLE_AUTHORS = [
    "studio_sam",
    "creator_cafe",
    "the_niche_lab",
    "edit_with_eli",
    "brand_deals_daily",
]


class MockConnector(BaseConnector):
    """
    Connector that returns synthetic posts, or a fixed list when given one.

    Attributes:
        fetch_count: Number of fetch() calls, for asserting single-flight.
    """

    def __init__(
        self,
        source: Source = Source.TWITTER,
        posts: list[RawPost] | None = None,
        posts_per_fetch: int = 5,
        delay_seconds: float = 0.0,
        fail: bool = False,
        rate_limit: int = 1000,
    ):
        """
        Initialize mock connector.

        Args:
            source: Which source to mimic
            posts: Fixed posts returned by every fetch (synthetic if None)
            posts_per_fetch: Synthetic posts generated per fetch
            delay_seconds: Simulated network latency
            fail: Raise an upstream error on every fetch
        """
        super().__init__(rate_limit=rate_limit)
        self._source = source
        self._posts = posts
        self._posts_per_fetch = posts_per_fetch
        self._delay = delay_seconds
        self._fail = fail
        self._counter = 0
        self.fetch_count = 0

    @property
    def source(self) -> Source:
        return self._source

    async def fetch(self, **query: Any) -> list[RawPost]:
        self.fetch_count += 1
        return await super().fetch(**query)

    async def _fetch_raw(self, **query: Any) -> AsyncIterator[dict[str, Any]]:
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._fail:
            raise ConnectorError(f"Simulated {self._source.value} outage", "mock")

        if self._posts is not None:
            for post in self._posts:
                yield {"post": post}
            return

        now = datetime.now(timezone.utc)
        for _ in range(self._posts_per_fetch):
            self._counter += 1
            author = random.choice(SAMPLE_AUTHORS)
            yield {
                "id": f"mock{self._counter}_{random.randint(0, 10**9)}",
                "author": author,
                "text": random.choice(POST_TEMPLATES).format(
                    n=random.randint(2, 50), year=now.year
                ),
                "likes": random.randint(0, 5000),
                "shares": random.randint(0, 500),
                "comments": random.randint(0, 300),
                "created_at": now - timedelta(minutes=random.randint(0, 600)),
            }

    def _transform(self, raw: dict[str, Any]) -> RawPost | None:
        if "post" in raw:
            return raw["post"]

        return RawPost(
            source_id=raw["id"],
            source=self._source,
            content=raw["text"],
            author_id=raw["author"],
            author_name=raw["author"],
            url=f"https://example.com/{self._source.value}/{raw['id']}",
            engagement=EngagementMetrics(
                likes=raw["likes"],
                shares=raw["shares"],
                comments=raw["comments"],
            ),
            timestamp=raw["created_at"],
        )


def create_mock_connectors() -> list[BaseConnector]:
    """Create one mock connector per source."""
    return [MockConnector(source=source) for source in Source]
