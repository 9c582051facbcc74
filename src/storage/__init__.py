"""Feed Store backends: PostgreSQL repository and in-process store."""

from src.storage.base import FeedStore
from src.storage.database import Database
from src.storage.memory import InMemoryFeedStore
from src.storage.repository import FeedRepository

__all__ = ["Database", "FeedStore", "FeedRepository", "InMemoryFeedStore"]
