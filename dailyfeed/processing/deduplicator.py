"""
Bucket Deduplication
====================

Removes repeated channels inside a day bucket.

Channels are ordered by identity key and adjacent entries with the same key
are collapsed. Exact copies are dropped. When the same source appears twice
with different content (an earlier run's fetch and this run's fetch of the
same day), the later entry wins and keeps the earlier entry's items that it
does not carry itself.

This is not content-aware: two different sources republishing the same
items are both kept.
"""

from typing import List

from ..cache.models import Channel, DayBucket
from ..utils.logging import get_logger_for_component

logger = get_logger_for_component("deduplicator")


def merge_channels(earlier: Channel, later: Channel) -> Channel:
    """Merge two versions of the same source, ``later`` taking precedence."""
    if earlier.model_dump() == later.model_dump():
        return later

    known = {item.identity() for item in later.items}
    carried = []
    for item in earlier.items:
        key = item.identity()
        if key is None or key in known:
            continue
        known.add(key)
        carried.append(item)

    if not carried:
        return later
    return later.model_copy(update={"items": list(later.items) + carried})


def deduplicate_channels(channels: List[Channel]) -> List[Channel]:
    """Sort by identity key and collapse adjacent entries sharing a key.

    The sort is stable, so for equal keys input order (history before fresh)
    decides which entry is the later one.
    """
    ordered = sorted(channels, key=lambda channel: channel.link)
    result: List[Channel] = []
    for channel in ordered:
        if result and result[-1].link == channel.link:
            result[-1] = merge_channels(result[-1], channel)
        else:
            result.append(channel)
    return result


def deduplicate(bucket: DayBucket) -> DayBucket:
    """Return a copy of ``bucket`` with unique identity keys."""
    channels = deduplicate_channels(bucket.channels)
    removed = len(bucket.channels) - len(channels)
    if removed:
        logger.debug(f"Collapsed {removed} duplicate channels on {bucket.date}")
    return DayBucket(date=bucket.date, channels=channels)
