"""
Cache Store
===========

Reads and writes the persisted aggregate (``<target_dir>/cache.json``).

The artifact is shared state between process invocations, accessed by
read-then-overwrite. Loading is best effort and never fails a run; writing
is atomic (temporary file + rename) and any failure is fatal.

There is no cross-process locking here. Callers that may run concurrently
against the same artifact must hold a ``CacheLock`` (see utils.process_lock).
"""

import json
import os
import tempfile
from contextlib import nullcontext
from pathlib import Path
from typing import Any, Iterable, Optional, Union
from urllib.parse import urlparse

import aiohttp
from pydantic import ValidationError

from ..ingestion.feed_fetcher import FeedFetcher
from ..utils.exceptions import CacheLoadError, ErrorCode, FeedError, PersistError
from ..utils.logging import get_logger_for_component
from .models import AggregateCache

# Passthrough extension blocks are written untouched, even when empty
SKIP_PRUNE_KEYS = frozenset(
    {
        "itunes_ext",
        "dublin_core_ext",
        "syndication_ext",
        "namespaces",
        "extensions",
        "categories",
        "skip_hours",
        "skip_days",
    }
)

_PRUNED = object()


def prune_empty(value: Any, skip: Iterable[str] = SKIP_PRUNE_KEYS) -> Any:
    """Drop nulls, empty strings, empty lists and empty objects recursively.

    Values under a key in ``skip`` are kept as they are. Returns None when
    the whole value prunes away.
    """
    skip = frozenset(skip)

    def _prune(v: Any) -> Any:
        if v is None or v == "":
            return _PRUNED
        if isinstance(v, list):
            items = [p for p in (_prune(x) for x in v) if p is not _PRUNED]
            return items if items else _PRUNED
        if isinstance(v, dict):
            result = {}
            for key, inner in v.items():
                if key in skip:
                    if inner is not None:
                        result[key] = inner
                    continue
                pruned = _prune(inner)
                if pruned is not _PRUNED:
                    result[key] = pruned
            return result if result else _PRUNED
        return v

    pruned = _prune(value)
    return None if pruned is _PRUNED else pruned


def is_remote_location(location: str) -> bool:
    return urlparse(location).scheme.lower() in {"http", "https"}


class CacheLoader:
    """Best-effort loader for a previously persisted aggregate."""

    def __init__(self, fetcher: Optional[FeedFetcher] = None):
        self.fetcher = fetcher
        self.logger = get_logger_for_component("cache_loader")

    async def load(
        self,
        location: Optional[str],
        session: Optional[aiohttp.ClientSession] = None,
    ) -> AggregateCache:
        """Load the prior aggregate, or an empty default on any failure.

        Args:
            location: Local path or http(s) URL; None means no prior cache
            session: HTTP session reused for remote locations

        Returns:
            Loaded aggregate or ``AggregateCache.empty()``
        """
        if not location:
            self.logger.info("No prior cache configured, starting empty")
            return AggregateCache.empty()

        self.logger.info(f"Feeding rss cache from {location}")
        try:
            if is_remote_location(location):
                raw = await self._read_remote(location, session)
            else:
                raw = self._read_local(location)
            cache = self.decode(raw, location)
        except CacheLoadError as e:
            self.logger.warning(f"Failed: {e}! Using empty cache", extra=e.to_dict())
            return AggregateCache.empty()

        self.logger.info(
            f"Feed rss cache successfully: {len(cache.days)} days, "
            f"{cache.channel_count} channels"
        )
        return cache

    def _read_local(self, location: str) -> bytes:
        path = Path(location)
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise CacheLoadError(
                f"Cache file not found: {path}",
                location=location,
                error_code=ErrorCode.CACHE_NOT_FOUND,
            ) from e
        except OSError as e:
            raise CacheLoadError(
                f"Cache file unreadable: {e}",
                location=location,
                error_code=ErrorCode.CACHE_UNREACHABLE,
            ) from e

    async def _read_remote(
        self, location: str, session: Optional[aiohttp.ClientSession]
    ) -> bytes:
        fetcher = self.fetcher or FeedFetcher()
        scope = nullcontext(session) if session is not None else fetcher.get_session()
        try:
            async with scope as client:
                content, _ = await fetcher.fetch_payload(location, client)
        except FeedError as e:
            raise CacheLoadError(
                f"Cache unreachable: {e}",
                location=location,
                error_code=ErrorCode.CACHE_UNREACHABLE,
            ) from e
        return content

    @staticmethod
    def decode(raw: Union[bytes, str], location: str = "") -> AggregateCache:
        """Validate a serialized aggregate.

        Raises:
            CacheLoadError: If the payload is not JSON or does not match the schema
        """
        try:
            data = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as e:
            raise CacheLoadError(
                f"Cache is not valid JSON: {e}", location=location
            ) from e

        if data is None:
            # a fully pruned empty aggregate
            return AggregateCache.empty()

        try:
            return AggregateCache.model_validate(data)
        except ValidationError as e:
            raise CacheLoadError(
                f"Cache schema mismatch: {e.error_count()} errors",
                location=location,
                context={"errors": e.errors(include_url=False)[:5]},
            ) from e


class CachePersister:
    """Atomic writer for the cache artifact."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self.logger = get_logger_for_component("cache_persister")

    @staticmethod
    def encode(cache: AggregateCache) -> str:
        data = prune_empty(cache.model_dump(mode="json"))
        return json.dumps(data if data is not None else {}, ensure_ascii=False)

    def persist(self, cache: AggregateCache) -> Path:
        """Write the aggregate, replacing any existing artifact.

        Raises:
            PersistError: If the artifact could not be written
        """
        try:
            payload = self.encode(cache)
        except (TypeError, ValueError) as e:
            raise PersistError(
                f"Cache serialization failed: {e}", location=str(self.path)
            ) from e

        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=self.path.parent
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise PersistError(
                f"Cache write failed: {e}", location=str(self.path)
            ) from e

        self.logger.info(
            f"Cache written to {self.path} ({len(cache.days)} days, "
            f"{cache.channel_count} channels)"
        )
        return self.path

    def load_back(self) -> AggregateCache:
        """Read the artifact this persister writes. Errors propagate."""
        return CacheLoader.decode(self.path.read_bytes(), str(self.path))
