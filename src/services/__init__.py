"""Service wiring for the API and CLI."""

from src.services.feed_service import FeedService, create_connectors

__all__ = ["FeedService", "create_connectors"]
