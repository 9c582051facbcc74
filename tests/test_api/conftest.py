"""Shared fixtures for API tests."""

import asyncio

import pytest
from fastapi.testclient import TestClient

from src.api.app import create_app
from src.api.auth import verify_api_key
from src.api.dependencies import get_feed_service
from src.config.settings import Settings
from src.engagement.schemas import Role
from src.ingestion.mock_connector import MockConnector
from src.ingestion.schemas import Source
from src.services.feed_service import FeedService
from tests.conftest import make_post, seed_items

USER = {"X-User-ID": "u1", "X-User-Name": "Sam"}
OTHER_USER = {"X-User-ID": "u2", "X-User-Name": "Riley"}
ADMIN = {"X-User-ID": "admin1", "X-User-Name": "Ada"}


def _memory_settings() -> Settings:
    return Settings(
        environment="development",
        storage_backend="memory",
        use_mock_connectors=True,
        default_page_size=10,
        max_page_size=100,
    )


def _fixed_connectors() -> list[MockConnector]:
    return [
        MockConnector(
            source=Source.TWITTER,
            posts=[make_post(source_id=f"tw-{i}", source=Source.TWITTER) for i in range(2)],
        ),
        MockConnector(
            source=Source.REDDIT,
            posts=[make_post(source_id=f"rd-{i}", source=Source.REDDIT) for i in range(2)],
        ),
    ]


def make_service(seed: int = 3) -> FeedService:
    """Started memory-backed service; seeds `seed` fresh items."""
    service = FeedService(settings=_memory_settings(), connectors=_fixed_connectors())
    asyncio.run(service.start())
    if seed:
        asyncio.run(seed_items(service.feed_store, seed))
    asyncio.run(service.engagement_store.ensure_user("admin1", "Ada"))
    asyncio.run(service.engagement_store.set_role("admin1", Role.ADMIN))
    return service


def make_client(service: FeedService) -> TestClient:
    app = create_app()
    app.dependency_overrides[verify_api_key] = lambda: "test-key"
    app.dependency_overrides[get_feed_service] = lambda: service
    return TestClient(app)


def feed_ids(service: FeedService) -> list[str]:
    """Ids of stored items, newest first."""
    page = asyncio.run(service.feed_store.list_page(1, 100))
    return [item.id for item in page.items]


@pytest.fixture
def service() -> FeedService:
    return make_service()


@pytest.fixture
def client(service):
    with make_client(service) as test_client:
        yield test_client
