"""Data ingestion module - connectors, schemas and the deduplicating pipeline."""

from src.ingestion.base_connector import BaseConnector, ConnectorError
from src.ingestion.mock_connector import MockConnector, create_mock_connectors
from src.ingestion.reddit_connector import RedditConnector
from src.ingestion.schemas import (
    Author,
    EngagementMetrics,
    FeedItem,
    FeedPage,
    RawPost,
    ReportEntry,
    Source,
)
from src.ingestion.twitter_connector import TwitterConnector

__all__ = [
    "Author",
    "BaseConnector",
    "ConnectorError",
    "EngagementMetrics",
    "FeedItem",
    "FeedPage",
    "MockConnector",
    "RawPost",
    "RedditConnector",
    "ReportEntry",
    "Source",
    "TwitterConnector",
    "create_mock_connectors",
]
