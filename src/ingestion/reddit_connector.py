"""
Reddit API connector.

Authenticates with the OAuth2 client-credentials flow, then reads the hot
listing of a subreddit. Handles:
- Token exchange (cached for the connector's lifetime)
- Rate limiting before each request
- Stickied/removed post filtering
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

REDDIT_API_BASE = "https://oauth.reddit.com"
REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"


class RedditConnector(BaseConnector):
    """
    Reddit API connector for the hot listing of one subreddit.

    Query parameters accepted by fetch():
        subreddit: Subreddit name without the r/ prefix
        limit: Posts per request
    """

    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        user_agent: str | None = None,
        subreddit: str | None = None,
        limit: int | None = None,
        rate_limit: int = 60,
    ):
        super().__init__(rate_limit=rate_limit)

        settings = get_settings()
        self._client_id = client_id or settings.reddit_client_id
        self._client_secret = client_secret or settings.reddit_client_secret
        self._user_agent = user_agent or settings.reddit_user_agent
        self._subreddit = subreddit or settings.reddit_subreddit
        self._limit = limit or settings.reddit_post_limit

        self._access_token: str | None = None

        if not self._client_id or not self._client_secret:
            logger.warning(
                "Reddit API credentials not configured. "
                "Connector will return no posts."
            )

    @property
    def source(self) -> Source:
        return Source.REDDIT

    async def _get_access_token(self, client: httpx.AsyncClient) -> str:
        """Exchange client credentials for a bearer token."""
        if self._access_token:
            return self._access_token

        await self._rate_limiter.acquire()
        response = await client.post(
            REDDIT_TOKEN_URL,
            auth=(self._client_id, self._client_secret),
            data={"grant_type": "client_credentials"},
            headers={"User-Agent": self._user_agent},
        )
        if response.status_code in (401, 403):
            raise ConnectorError(
                f"Reddit token exchange rejected ({response.status_code})", "auth"
            )
        response.raise_for_status()

        token = response.json().get("access_token")
        if not token:
            raise ConnectorError("Reddit token response had no access_token", "auth")

        self._access_token = token
        return token

    async def _fetch_raw(self, **query: Any) -> AsyncIterator[dict[str, Any]]:
        if not self._client_id or not self._client_secret:
            raise ConnectorError("Reddit credentials not configured", "auth")

        subreddit = query.get("subreddit", self._subreddit)
        limit = int(query.get("limit", self._limit))

        async with httpx.AsyncClient(timeout=30.0) as client:
            token = await self._get_access_token(client)

            await self._rate_limiter.acquire()
            response = await client.get(
                f"{REDDIT_API_BASE}/r/{subreddit}/hot",
                headers={
                    "Authorization": f"Bearer {token}",
                    "User-Agent": self._user_agent,
                },
                params={"limit": limit},
            )

            if response.status_code == 429:
                raise ConnectorError("Reddit rate limit hit", "rate_limit")
            if response.status_code == 401:
                # Expired token; drop it so the next refresh exchanges again
                self._access_token = None
                raise ConnectorError("Reddit token expired", "auth")
            response.raise_for_status()

            try:
                data = response.json()
            except ValueError as e:
                raise ConnectorError(f"Malformed Reddit payload: {e}", "payload") from e

        children = data.get("data", {}).get("children", [])
        logger.debug(f"Fetched {len(children)} posts from r/{subreddit}")

        for child in children:
            yield {"subreddit": subreddit, "post": child.get("data", {})}

    def _transform(self, raw: dict[str, Any]) -> RawPost | None:
        post = raw["post"]

        if post.get("stickied") or post.get("removed_by_category"):
            return None

        title = post.get("title", "")
        selftext = post.get("selftext", "")
        content = clean_text(f"{title}\n\n{selftext}" if selftext else title)
        if not content:
            return None

        author = post.get("author", "unknown")
        thumbnail = post.get("thumbnail") or ""
        permalink = post.get("permalink", "")

        return RawPost(
            source_id=post["id"],
            source=Source.REDDIT,
            content=content,
            author_id=author,
            author_name=author,
            author_profile_url=f"https://www.reddit.com/user/{author}",
            media_url=thumbnail if thumbnail.startswith("http") else None,
            url=f"https://www.reddit.com{permalink}" if permalink else None,
            engagement=EngagementMetrics(
                likes=post.get("ups", 0),
                shares=post.get("num_crossposts", 0),
                comments=post.get("num_comments", 0),
            ),
            timestamp=datetime.fromtimestamp(post.get("created_utc", 0), tz=timezone.utc),
        )

    async def health_check(self) -> bool:
        """Check that the token exchange succeeds."""
        if not self._client_id or not self._client_secret:
            return False

        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                await self._get_access_token(client)
                return True
        except (httpx.HTTPError, ConnectorError):
            return False
