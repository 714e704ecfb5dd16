"""Aggregate cache models. The store lives in ``dailyfeed.cache.store``."""

from .models import AggregateCache, Channel, DayBucket, DublinCoreExt, Item

__all__ = ["AggregateCache", "Channel", "DayBucket", "DublinCoreExt", "Item"]
