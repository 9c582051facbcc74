"""
Twitter API v2 connector.

Uses the recent search endpoint with an app-only bearer token. Handles:
- Rate limiting before each request
- Author expansion (display names)
- Normalizing public_metrics to the common engagement counters
"""

import logging
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from typing import Any

import httpx

from src.config.settings import get_settings
from src.ingestion.base_connector import BaseConnector, ConnectorError, clean_text
from src.ingestion.schemas import EngagementMetrics, RawPost, Source

logger = logging.getLogger(__name__)

TWITTER_API_BASE = "https://api.twitter.com/2"
TWEETS_SEARCH_RECENT = f"{TWITTER_API_BASE}/tweets/search/recent"


class TwitterConnector(BaseConnector):
    """
    Twitter API v2 connector for recent tweets matching a search query.

    Query parameters accepted by fetch():
        query: Search expression (default from settings)
        max_results: Tweets per request, 10-100
    """

    def __init__(
        self,
        bearer_token: str | None = None,
        query: str | None = None,
        max_results: int | None = None,
        rate_limit: int = 30,
    ):
        super().__init__(rate_limit=rate_limit)

        settings = get_settings()
        self._bearer_token = bearer_token or settings.twitter_bearer_token
        self._query = query or settings.twitter_query
        self._max_results = max_results or settings.twitter_max_results

        if not self._bearer_token:
            logger.warning(
                "Twitter bearer token not configured. "
                "Connector will return no posts."
            )

    @property
    def source(self) -> Source:
        return Source.TWITTER

    async def _fetch_raw(self, **query: Any) -> AsyncIterator[dict[str, Any]]:
        if not self._bearer_token:
            raise ConnectorError("Twitter bearer token not configured", "auth")

        params = {
            "query": query.get("query", self._query),
            "max_results": min(max(int(query.get("max_results", self._max_results)), 10), 100),
            "tweet.fields": "created_at,public_metrics,author_id,attachments",
            "expansions": "author_id,attachments.media_keys",
            "user.fields": "name,username",
            "media.fields": "url,preview_image_url",
        }
        headers = {
            "Authorization": f"Bearer {self._bearer_token}",
            "User-Agent": "CreatorFeed/1.0",
        }

        async with httpx.AsyncClient(timeout=30.0) as client:
            await self._rate_limiter.acquire()
            response = await client.get(TWEETS_SEARCH_RECENT, headers=headers, params=params)

            if response.status_code == 429:
                raise ConnectorError("Twitter rate limit hit", "rate_limit")
            if response.status_code in (401, 403):
                raise ConnectorError(
                    f"Twitter authentication failed ({response.status_code})", "auth"
                )
            response.raise_for_status()

            try:
                data = response.json()
            except ValueError as e:
                raise ConnectorError(f"Malformed Twitter payload: {e}", "payload") from e

        includes = data.get("includes", {})
        authors = {user["id"]: user for user in includes.get("users", [])}
        media = {m["media_key"]: m for m in includes.get("media", [])}

        for tweet in data.get("data", []):
            media_keys = tweet.get("attachments", {}).get("media_keys", [])
            yield {
                "tweet": tweet,
                "author": authors.get(tweet.get("author_id"), {}),
                "media": media.get(media_keys[0], {}) if media_keys else {},
            }

    def _transform(self, raw: dict[str, Any]) -> RawPost | None:
        tweet = raw["tweet"]
        author = raw.get("author", {})
        media = raw.get("media", {})

        content = clean_text(tweet.get("text", ""))
        if not content:
            return None

        created_at = tweet.get("created_at")
        if created_at:
            timestamp = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
        else:
            timestamp = datetime.now(timezone.utc)

        metrics = tweet.get("public_metrics", {})
        author_id = str(tweet.get("author_id", ""))
        username = author.get("username")

        return RawPost(
            source_id=str(tweet["id"]),
            source=Source.TWITTER,
            content=content,
            author_id=author_id,
            author_name=author.get("name") or f"Twitter User {author_id[-4:]}",
            author_profile_url=f"https://twitter.com/{username}" if username else None,
            media_url=media.get("url") or media.get("preview_image_url"),
            url=f"https://twitter.com/i/web/status/{tweet['id']}",
            engagement=EngagementMetrics(
                likes=metrics.get("like_count", 0),
                shares=metrics.get("retweet_count", 0),
                comments=metrics.get("reply_count", 0),
            ),
            timestamp=timestamp,
        )

    async def health_check(self) -> bool:
        """Check that the API is reachable with the configured token."""
        if not self._bearer_token:
            return False

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.get(
                    f"{TWITTER_API_BASE}/tweets/search/recent",
                    headers={"Authorization": f"Bearer {self._bearer_token}"},
                    params={"query": self._query, "max_results": 10},
                )
                return response.status_code == 200
        except httpx.HTTPError:
            return False
