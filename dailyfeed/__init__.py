"""
DailyFeed - Daily Feed Cache Builder
====================================

Polls a list of syndication feeds once per run and keeps a deduplicated,
day-bucketed history of them within a retention window.

Main Components:
- Ingestion: concurrent aiohttp fetching and feedparser parsing
- Processing: day bucketing, deduplication, eviction
- Cache: pydantic models and the cache.json store
- Configuration: environment variables, .env and Config.toml via pydantic-settings
"""

__version__ = "0.3.0"
__description__ = "Day-bucketed feed cache builder"

from .config.settings import get_settings
from .utils.logging import configure_application_logging, get_logger_for_component
from .utils.exceptions import DailyFeedError

__all__ = [
    "get_settings",
    "configure_application_logging",
    "get_logger_for_component",
    "DailyFeedError",
]
