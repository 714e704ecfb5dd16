"""
Day Bucketer
============

Merges the loaded history with today's fetch into one bucket per day.

Granularity is the UTC calendar day. A channel's day comes from the first
date it declares in its Dublin Core metadata; channels without one, or with
a date that cannot be parsed, belong to the run day.
"""

from collections import OrderedDict
from datetime import date, timezone
from typing import Iterable, Iterator, List, Tuple

from dateutil import parser as date_parser

from ..cache.models import AggregateCache, Channel, DayBucket
from ..utils.exceptions import DateExtractionError
from ..utils.logging import get_logger_for_component

logger = get_logger_for_component("bucketer")

DatedChannel = Tuple[date, Channel]


def extract_channel_date(channel: Channel, fallback: date) -> date:
    """Day a channel is attributed to.

    Returns ``fallback`` when the channel declares no publication date.

    Raises:
        DateExtractionError: If the first declared date is malformed
    """
    ext = channel.dublin_core_ext
    if ext is None or not ext.dates:
        return fallback

    raw = ext.dates[0]
    try:
        parsed = date_parser.parse(raw)
    except (ValueError, OverflowError, TypeError) as e:
        raise DateExtractionError(
            f"Unparseable channel date {raw!r}: {e}",
            raw_date=raw,
            feed_url=channel.link,
        ) from e

    if parsed.tzinfo is None:
        return parsed.date()
    return parsed.astimezone(timezone.utc).date()


def channel_day(channel: Channel, fallback: date) -> date:
    """``extract_channel_date`` that also answers ``fallback`` for a malformed date."""
    try:
        return extract_channel_date(channel, fallback)
    except DateExtractionError as e:
        logger.warning(
            f"Falling back to {fallback} for {channel.link}: {e}", extra=e.to_dict()
        )
        return fallback


def flatten(
    history: AggregateCache, fresh: DayBucket, run_date: date
) -> Iterator[DatedChannel]:
    """Yield (day, channel) pairs, historical buckets first then the fresh one.

    Historical channels are re-dated the same way as fresh ones, so a cache
    written before a channel declared a date still lands in the right bucket.
    """
    for bucket in history.days:
        for channel in bucket.channels:
            yield channel_day(channel, bucket.date), channel

    for channel in fresh.channels:
        yield channel_day(channel, run_date), channel


def regroup(pairs: Iterable[DatedChannel], run_date: date) -> List[DayBucket]:
    """Group pairs into one bucket per distinct day.

    Channel order inside a bucket follows pair order. The run day always gets
    a bucket, even an empty one.
    """
    grouped: "OrderedDict[date, List[Channel]]" = OrderedDict()
    grouped[run_date] = []
    for day, channel in pairs:
        grouped.setdefault(day, []).append(channel)

    return [DayBucket(date=day, channels=channels) for day, channels in grouped.items()]


def merge_into_buckets(
    history: AggregateCache, fresh: DayBucket, run_date: date
) -> List[DayBucket]:
    """Flatten history and today's bucket, then regroup by day."""
    buckets = regroup(flatten(history, fresh, run_date), run_date)
    logger.debug(
        f"Regrouped {sum(len(b.channels) for b in buckets)} channels "
        f"into {len(buckets)} day buckets"
    )
    return buckets
