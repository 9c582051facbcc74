"""
Command-line interface for creator-feed.

Provides commands to run the API, initialize the database, trigger a
refresh, and manage users and credits.

Usage:
    creator-feed serve            # Run the API server
    creator-feed init-db          # Initialize database
    creator-feed refresh --mock   # Run one refresh pass
    creator-feed add-user u1 --admin
    creator-feed grant u1 50 "Contest winner"
    creator-feed health           # Check service health
"""

import asyncio
import sys

import click

from src.config.settings import get_settings
from src.observability.logging import setup_logging
from src.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Creator Feed - aggregated creator-economy feed with engagement credits."""
    if debug:
        import os
        os.environ["LOG_LEVEL"] = "DEBUG"
        get_settings.cache_clear()

    setup_logging()


@main.command()
@click.option("--host", default=None, help="API server host")
@click.option("--port", default=None, type=int, help="API server port")
@click.option("--reload", is_flag=True, help="Enable auto-reload (dev only)")
@click.option("--metrics-port", default=None, type=int, help="Metrics server port")
def serve(host: str | None, port: int | None, reload: bool, metrics_port: int | None) -> None:
    """Start the API server."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port
    metrics_port = metrics_port or settings.metrics_port

    # Start metrics server on separate port
    get_metrics().start_server(port=metrics_port)

    click.echo(f"Starting API server on {host}:{port} ({settings.storage_backend} backend)")
    click.echo(f"Metrics available on http://localhost:{metrics_port}/metrics")
    click.echo(f"API docs available on http://localhost:{port}/docs")

    uvicorn.run(
        "src.api.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level="info",
    )


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from src.services.feed_service import FeedService

    async def run():
        async with FeedService() as service:
            if service.backend == "memory":
                click.echo("Memory backend configured; nothing to initialize")
                return
            await service.init_schema()
            click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command()
@click.option("--mock", is_flag=True, help="Use mock connectors")
@click.option("--force", is_flag=True, help="Refresh even if the feed is fresh")
def refresh(mock: bool, force: bool) -> None:
    """Run one refresh pass (single-flight with any running API instance)."""
    from src.services.feed_service import FeedService

    async def run():
        async with FeedService(use_mock=mock) as service:
            outcome = await service.coordinator.ensure_fresh(force=force)
            total = await service.feed_store.count()

        click.echo(f"Refresh status: {outcome.status.value}")
        for source, count in sorted(outcome.ingested.items(), key=lambda kv: kv[0].value):
            click.echo(f"  {source.value}: {count} new")
        click.echo(f"Feed now holds {total} items")

        if outcome.status.value in ("failed", "timed_out"):
            sys.exit(1)

    asyncio.run(run())


@main.command("add-user")
@click.argument("user_id")
@click.option("--username", default=None, help="Display name (defaults to USER_ID)")
@click.option("--admin", is_flag=True, help="Give the user the admin role")
def add_user(user_id: str, username: str | None, admin: bool) -> None:
    """Create a user, or update the role of an existing one."""
    from src.engagement.schemas import Role
    from src.services.feed_service import FeedService

    async def run():
        async with FeedService() as service:
            store = service.engagement_store
            await store.ensure_user(user_id, username)
            user = await store.set_role(user_id, Role.ADMIN if admin else Role.USER)

        click.echo(
            f"User {user.id} ({user.username}): role={user.role.value}, "
            f"credits={user.credits_total}"
        )

    asyncio.run(run())


@main.command()
@click.argument("user_id")
@click.argument("amount", type=int)
@click.argument("reason")
def grant(user_id: str, amount: int, reason: str) -> None:
    """Grant AMOUNT credits to USER_ID as the operator."""
    from src.engagement.errors import EngagementError
    from src.engagement.ledger import CreditLedger, OperatorAuthorizer
    from src.engagement.schemas import Principal
    from src.services.feed_service import FeedService

    async def run():
        async with FeedService() as service:
            ledger = CreditLedger(service.engagement_store, authorizer=OperatorAuthorizer())
            try:
                result = await ledger.admin_grant(
                    Principal(user_id="cli", username="operator"), user_id, amount, reason
                )
            except EngagementError as e:
                click.echo(click.style(f"Grant failed: {e}", fg="red"))
                sys.exit(1)

        click.echo(f"Granted {result.amount} credits to {user_id}; new total {result.new_total}")

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import structlog
    logger = structlog.get_logger()

    async def check():
        from src.services.feed_service import FeedService

        settings = get_settings()
        results: dict[str, bool] = {}

        service = FeedService()
        try:
            await service.start()
            results["storage"] = await service.feed_store.health_check()
            if service.redis_client is not None:
                try:
                    results["redis"] = bool(await service.redis_client.ping())
                except Exception as e:
                    results["redis"] = False
                    logger.error("Redis health check failed", error=str(e))
        except Exception as e:
            results["storage"] = False
            logger.error("Storage health check failed", error=str(e))
        finally:
            await service.close()

        # Check connectors
        results["twitter_configured"] = settings.twitter_configured
        results["reddit_configured"] = settings.reddit_configured

        # Print results
        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name in ("storage", "redis") and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
