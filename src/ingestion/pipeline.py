"""
Ingestion pipeline - persists connector output into the Feed Store.

Only posts whose (source_id, source) is not already stored are inserted.
Existing items are never updated in place. A store error on one post
drops that post only; the rest of the batch is still ingested. Uniqueness
is decided by the store's conditional insert, not by a prior lookup, so concurrent passes
over the same posts are safe.
"""

import time
from collections import Counter
from collections.abc import Iterable
from datetime import datetime, timezone

import structlog

from src.ingestion.schemas import FeedItem, RawPost, Source
from src.observability.metrics import get_metrics
from src.storage.base import FeedStore

logger = structlog.get_logger(__name__)


class IngestionPipeline:
    """
    Deduplicating writer from RawPost to FeedItem.

    Usage:
        pipeline = IngestionPipeline(store)
        counts = await pipeline.ingest(posts)  # {Source.TWITTER: 3, ...}
    """

    def __init__(self, store: FeedStore):
        self._store = store
        self._metrics = get_metrics()

    async def ingest(self, posts: Iterable[RawPost]) -> dict[Source, int]:
        """
        Insert posts not already present by natural key.

        Args:
            posts: RawPost from one or more connectors

        Returns:
            Newly ingested item count per source (sources seen with zero
            new items are included)
        """
        start_time = time.monotonic()
        now = datetime.now(timezone.utc)

        inserted: Counter[Source] = Counter()
        skipped: Counter[Source] = Counter()
        failed: Counter[Source] = Counter()
        seen: set[tuple[str, str]] = set()

        for post in posts:
            # Repeats inside one batch never reach the store
            if post.natural_key in seen:
                skipped[post.source] += 1
                continue
            seen.add(post.natural_key)

            item = FeedItem.from_raw_post(post, now=now)
            try:
                is_new = await self._store.insert_if_absent(item)
            except Exception as e:
                failed[post.source] += 1
                logger.warning(
                    "Insert failed",
                    source=post.source.value,
                    source_id=post.source_id,
                    error=str(e),
                )
                continue

            if is_new:
                inserted[post.source] += 1
            else:
                skipped[post.source] += 1

        sources = inserted.keys() | skipped.keys() | failed.keys()
        counts = {source: inserted[source] for source in sources}
        for source, count in counts.items():
            self._metrics.record_ingestion(source, count, skipped[source], failed[source])

        logger.info(
            "Ingestion completed",
            inserted={s.value: n for s, n in counts.items()},
            skipped=sum(skipped.values()),
            failed=sum(failed.values()),
            elapsed_seconds=round(time.monotonic() - start_time, 3),
        )
        return counts
