"""
Cache Build Pipeline
====================

One run of the cache engine:

    load prior cache -> fetch today's sources -> regroup by day
    -> deduplicate each day -> evict outside the window -> sort newest first
    -> persist -> return the aggregate

Only a persistence failure aborts the run. The artifact must be written
before the aggregate is handed to the caller, because it is the only way the
next run recovers this run's state.
"""

import asyncio
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional

from ..cache.models import AggregateCache, DayBucket
from ..cache.store import CacheLoader, CachePersister
from ..config.settings import DailyFeedSettings, get_settings
from ..ingestion.feed_fetcher import FeedFetcher, results_to_bucket
from ..utils.logging import PerformanceLogger, get_logger_for_component
from .bucketer import merge_into_buckets
from .deduplicator import deduplicate
from .evictor import evict, sort_buckets


@dataclass
class BuildResult:
    """Aggregate produced by a run plus what happened along the way."""

    cache: AggregateCache
    run_date: date
    sources_total: int
    failed_sources: List[str] = field(default_factory=list)
    history_days_loaded: int = 0
    processing_time_seconds: float = 0.0

    @property
    def sources_succeeded(self) -> int:
        return self.sources_total - len(self.failed_sources)


class CachePipeline:
    """Ingestion and cache reconciliation for one process invocation.

    Assumes it is the only writer of the artifact for the duration of the
    run; see ``CacheLock`` for serializing concurrent invocations.
    """

    def __init__(
        self,
        settings: Optional[DailyFeedSettings] = None,
        fetcher: Optional[FeedFetcher] = None,
        loader: Optional[CacheLoader] = None,
        persister: Optional[CachePersister] = None,
    ):
        self.settings = settings or get_settings()
        self.fetcher = fetcher or FeedFetcher(settings=self.settings)
        self.loader = loader or CacheLoader(fetcher=self.fetcher)
        self.persister = persister or CachePersister(self.settings.cache_path)
        self.logger = get_logger_for_component("pipeline")

    async def run(self, run_time: Optional[datetime] = None) -> BuildResult:
        """Execute one build.

        Args:
            run_time: Build timestamp (default: now, UTC); its UTC date is the run day

        Returns:
            BuildResult holding the persisted aggregate

        Raises:
            PersistError: If the artifact could not be written
        """
        run_time = run_time or datetime.now(timezone.utc)
        if run_time.tzinfo is None:
            run_time = run_time.replace(tzinfo=timezone.utc)
        run_date = run_time.astimezone(timezone.utc).date()
        sources = list(self.settings.sources)

        self.logger.info(
            f"Building cache for {run_date}",
            extra={"run_date": run_date.isoformat(), "source_count": len(sources)},
        )

        with PerformanceLogger(self.logger, "cache build") as build_timer:
            async with self.fetcher.get_session() as session:
                with PerformanceLogger(self.logger, "cache load"):
                    history = await self.loader.load(self.settings.cache_url, session)

                with PerformanceLogger(self.logger, "feed fetch", source_count=len(sources)):
                    results = await self.fetcher.fetch_feeds_batch(sources, session)

            fresh = results_to_bucket(results, run_date)
            cache = self.reconcile(history, fresh, run_date, run_time)

            with PerformanceLogger(self.logger, "cache persist"):
                self.persister.persist(cache)

        failed = [r.feed_url for r in results if not r.success]
        if failed:
            self.logger.warning(f"{len(failed)} sources skipped this run: {failed}")

        return BuildResult(
            cache=cache,
            run_date=run_date,
            sources_total=len(sources),
            failed_sources=failed,
            history_days_loaded=len(history.days),
            processing_time_seconds=build_timer.duration or 0.0,
        )

    def reconcile(
        self,
        history: AggregateCache,
        fresh: DayBucket,
        run_date: date,
        run_time: datetime,
    ) -> AggregateCache:
        """Merge, deduplicate, evict and order; no I/O."""
        buckets = merge_into_buckets(history, fresh, run_date)
        buckets = [deduplicate(bucket) for bucket in buckets]
        buckets = evict(buckets, run_date, self.settings.cache_max_days)
        buckets = sort_buckets(buckets)

        return AggregateCache(
            site_title=self.settings.site_title,
            build_time=run_time,
            days=buckets,
        )


def build_cache(
    settings: Optional[DailyFeedSettings] = None,
    run_time: Optional[datetime] = None,
) -> AggregateCache:
    """Run the pipeline from synchronous code and return the aggregate."""
    result = asyncio.run(CachePipeline(settings=settings).run(run_time))
    return result.cache
