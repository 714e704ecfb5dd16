"""
DailyFeed Processing Module
===========================

Reconciliation of history with today's fetch: bucketing, deduplication,
eviction, and the pipeline that runs them.
"""

from .pipeline import BuildResult, CachePipeline, build_cache

__all__ = ["BuildResult", "CachePipeline", "build_cache"]
