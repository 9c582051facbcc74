"""
Health check endpoint with infrastructure and connector checks.
"""

import asyncio
import time

import structlog
from fastapi import APIRouter, Depends

from src.api.dependencies import get_feed_service
from src.api.models import ComponentHealth, HealthResponse
from src.ingestion.base_connector import BaseConnector
from src.services.feed_service import FeedService

router = APIRouter()
logger = structlog.get_logger(__name__)

CONNECTOR_CHECK_TIMEOUT = 5.0


async def _timed(check) -> ComponentHealth:
    """Run an async health check and measure latency."""
    start = time.perf_counter()
    try:
        healthy = await check
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="healthy" if healthy is not False else "unhealthy",
            latency_ms=round(latency_ms, 2),
        )
    except Exception as e:
        latency_ms = (time.perf_counter() - start) * 1000
        return ComponentHealth(
            status="unhealthy",
            latency_ms=round(latency_ms, 2),
            details={"error": str(e)},
        )


async def _check_connector(connector: BaseConnector) -> bool:
    try:
        return await asyncio.wait_for(connector.health_check(), CONNECTOR_CHECK_TIMEOUT)
    except Exception as e:
        logger.warning("Connector health check failed", connector=connector.name, error=str(e))
        return False


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
    description="Check the health of the service and its dependencies.",
)
async def health_check(
    service: FeedService = Depends(get_feed_service),
) -> HealthResponse:
    """
    Check storage, Redis and connector reachability.

    Status logic:
    - unhealthy: feed or engagement storage is down
    - degraded: Redis (refresh lease) is down, or no connector is reachable
    - healthy: all components operational
    """
    components: dict[str, ComponentHealth] = {
        "feed_store": await _timed(service.feed_store.health_check()),
        "engagement_store": await _timed(service.engagement_store.health_check()),
    }

    if service.redis_client is not None:
        components["redis"] = await _timed(service.redis_client.ping())

    connector_results = await asyncio.gather(
        *(_check_connector(c) for c in service.connectors)
    )
    connectors = {c.name: ok for c, ok in zip(service.connectors, connector_results)}

    if any(
        components[name].status == "unhealthy" for name in ("feed_store", "engagement_store")
    ):
        status = "unhealthy"
    elif "redis" in components and components["redis"].status == "unhealthy":
        status = "degraded"
    elif connectors and not any(connectors.values()):
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        storage_backend=service.backend,
        components=components,
        connectors=connectors,
    )
