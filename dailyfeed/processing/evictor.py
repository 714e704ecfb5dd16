"""Retention window enforcement and bucket ordering."""

from datetime import date, timedelta
from typing import List

from ..cache.models import DayBucket
from ..utils.logging import get_logger_for_component

logger = get_logger_for_component("evictor")


def retention_cutoff(run_date: date, retention_days: int) -> date:
    """Buckets dated on or before this day are evicted."""
    if retention_days < 0:
        raise ValueError("retention_days must be >= 0")
    return run_date - timedelta(days=retention_days)


def evict(buckets: List[DayBucket], run_date: date, retention_days: int) -> List[DayBucket]:
    """Drop buckets outside the retention window.

    The run-day bucket is always kept, so a zero-day window still yields
    today's fetch. Same-day history is not dropped here: it was merged with
    the fresh fetch by the bucketer and collapsed by the deduplicator.
    """
    cutoff = retention_cutoff(run_date, retention_days)
    kept, evicted = [], []
    for bucket in buckets:
        if bucket.date > cutoff or bucket.date == run_date:
            kept.append(bucket)
        else:
            evicted.append(bucket.date.isoformat())

    if evicted:
        logger.info(f"Evicted {len(evicted)} day buckets on or before {cutoff}: {evicted}")
    return kept


def sort_buckets(buckets: List[DayBucket]) -> List[DayBucket]:
    """Newest day first."""
    return sorted(buckets, key=lambda b: b.date, reverse=True)
