"""
Prometheus metrics for the feed pipeline and credits ledger.

Defines and exposes metrics for:
- Feed items ingested per source
- Connector (upstream) failures
- Refresh passes and their latency
- Engagement actions and credits issued

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import Counter, Histogram, start_http_server

from src.config.settings import get_settings

logger = logging.getLogger(__name__)

# Buckets for refresh latency histograms (in seconds)
LATENCY_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)


class MetricsCollector:
    """
    Prometheus metrics collector for creator-feed.

    Usage:
        metrics = get_metrics()
        metrics.record_ingestion(Source.REDDIT, count=3)
        metrics.record_refresh("refreshed", latency=1.2)
    """

    def __init__(self):
        self.items_ingested = Counter(
            "creator_feed_items_ingested_total",
            "Feed items newly inserted by the ingestion pipeline",
            ["source"],
        )

        self.items_skipped = Counter(
            "creator_feed_items_skipped_total",
            "Posts skipped because their natural key already existed",
            ["source"],
        )

        self.items_failed = Counter(
            "creator_feed_items_failed_total",
            "Posts dropped because the store insert raised",
            ["source"],
        )

        self.connector_errors = Counter(
            "creator_feed_connector_errors_total",
            "Source connector failures degraded to empty results",
            ["source", "error_type"],
        )

        self.refresh_runs = Counter(
            "creator_feed_refresh_total",
            "Refresh evaluations by outcome",
            ["outcome"],  # fresh, refreshed, waited, timed_out, failed
        )

        self.refresh_latency = Histogram(
            "creator_feed_refresh_latency_seconds",
            "Time spent in a refresh pass (fan-out plus ingestion)",
            buckets=LATENCY_BUCKETS,
        )

        self.engagement_actions = Counter(
            "creator_feed_engagement_actions_total",
            "Engagement and ledger operations by outcome",
            ["action", "outcome"],
        )

        self.credits_issued = Counter(
            "creator_feed_credits_issued_total",
            "Credits added to user balances",
            ["action"],
        )

    def start_server(self, port: int | None = None) -> None:
        """Start the Prometheus HTTP server."""
        port = port or get_settings().metrics_port
        start_http_server(port)
        logger.info(f"Metrics server started on port {port}")

    def record_ingestion(
        self, source, inserted: int, skipped: int = 0, failed: int = 0
    ) -> None:
        source_str = getattr(source, "value", source)
        if inserted:
            self.items_ingested.labels(source=source_str).inc(inserted)
        if skipped:
            self.items_skipped.labels(source=source_str).inc(skipped)
        if failed:
            self.items_failed.labels(source=source_str).inc(failed)

    def record_connector_error(self, source, error_type: str) -> None:
        source_str = getattr(source, "value", source)
        self.connector_errors.labels(source=source_str, error_type=error_type).inc()

    def record_refresh(self, outcome: str, latency: float | None = None) -> None:
        self.refresh_runs.labels(outcome=outcome).inc()
        if latency is not None:
            self.refresh_latency.observe(latency)

    def record_engagement(self, action: str, outcome: str) -> None:
        self.engagement_actions.labels(action=action, outcome=outcome).inc()

    def record_credits(self, action: str, amount: int) -> None:
        # Counters only go up; admin grants are validated positive
        if amount > 0:
            self.credits_issued.labels(action=action).inc(amount)


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
