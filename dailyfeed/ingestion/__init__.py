"""
DailyFeed Ingestion Module
==========================

Fetching configured sources and parsing them into Channel documents.
"""

from .feed_parser import FeedParser
from .feed_fetcher import FeedFetcher, FetchResult

__all__ = ["FeedParser", "FeedFetcher", "FetchResult"]
