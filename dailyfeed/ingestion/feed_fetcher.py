"""
RSS Feed Fetcher
================

Concurrent fetching of the configured sources into today's bucket.

Every source gets exactly one GET with a timeout. A source that fails for
any reason is logged and left out of the bucket; the batch itself never
fails.
"""

import asyncio
import ssl
from contextlib import asynccontextmanager, nullcontext
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Dict, List, Optional, Tuple

import aiohttp
import certifi

from ..cache.models import Channel, DayBucket
from ..config.settings import DailyFeedSettings, get_settings
from ..utils.exceptions import ErrorCode, FeedError, SourceFetchError
from ..utils.logging import get_logger_for_component
from .feed_parser import FeedParser


@dataclass
class FetchResult:
    """Outcome of fetching one source."""

    feed_url: str
    position: int
    channel: Optional[Channel] = None
    error: Optional[FeedError] = None
    fetch_time: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.channel is not None


class FeedFetcher:
    """Bounded-concurrency fetcher producing one Channel per source."""

    def __init__(
        self,
        settings: Optional[DailyFeedSettings] = None,
        max_concurrent: Optional[int] = None,
        timeout: Optional[int] = None,
        parser: Optional[FeedParser] = None,
    ):
        """Initialize feed fetcher.

        Args:
            settings: Application settings (default: global settings)
            max_concurrent: Maximum concurrent fetches (default from config)
            timeout: Request timeout in seconds (default from config)
            parser: Parser turning bodies into channels
        """
        self.settings = settings or get_settings()
        self.max_concurrent = max_concurrent or self.settings.fetch.parallel_feeds
        self.timeout = timeout or self.settings.fetch.request_timeout
        self.proxy = self.settings.proxy
        self.parser = parser or FeedParser()
        self.logger = get_logger_for_component("feed_fetcher")

        self.ssl_context = ssl.create_default_context(cafile=certifi.where())

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[aiohttp.ClientSession, None]:
        """Get configured aiohttp session."""
        connector = aiohttp.TCPConnector(
            ssl=self.ssl_context,
            limit=self.max_concurrent,
            limit_per_host=5,
            enable_cleanup_closed=True,
        )
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        headers = {
            "User-Agent": self.settings.fetch.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml, text/xml, */*",
        }

        async with aiohttp.ClientSession(
            connector=connector, timeout=timeout, headers=headers
        ) as session:
            yield session

    async def fetch_payload(
        self, url: str, session: aiohttp.ClientSession
    ) -> Tuple[bytes, Dict[str, str]]:
        """GET one URL and return its body and response headers.

        Raises:
            SourceFetchError: On transport failure, timeout or non-2xx status
        """
        try:
            async with session.get(url, proxy=self.proxy) as response:
                if not 200 <= response.status < 300:
                    raise SourceFetchError(
                        f"HTTP {response.status}: {response.reason}",
                        feed_url=url,
                        status=response.status,
                    )
                return await response.read(), dict(response.headers)

        except asyncio.TimeoutError as e:
            raise SourceFetchError(
                f"Request timeout after {self.timeout}s",
                feed_url=url,
                error_code=ErrorCode.FEED_FETCH_TIMEOUT,
            ) from e
        except aiohttp.ClientError as e:
            raise SourceFetchError(f"Fetch error: {e}", feed_url=url) from e

    async def fetch_feed(
        self, feed_url: str, session: aiohttp.ClientSession, position: int = 0
    ) -> FetchResult:
        """Fetch and parse a single source. Never raises for feed errors."""
        start_time = datetime.now(timezone.utc)
        log = self.logger.bind(source_url=feed_url)
        log.info(f"Feeding rss from {feed_url}")

        try:
            content, headers = await self.fetch_payload(feed_url, session)
            channel = self.parser.parse(content, feed_url, response_headers=headers)
        except FeedError as error:
            log.warning(
                f"Failed: {feed_url} skipped ({error})", extra=error.to_dict()
            )
            return FetchResult(
                feed_url=feed_url, position=position, error=error, fetch_time=start_time
            )

        log.info(
            f"Fetched {len(channel.items)} items from {feed_url} "
            f"in {(datetime.now(timezone.utc) - start_time).total_seconds():.2f}s"
        )
        return FetchResult(
            feed_url=feed_url, position=position, channel=channel, fetch_time=start_time
        )

    async def fetch_feeds(
        self, feed_urls: List[str], session: Optional[aiohttp.ClientSession] = None
    ) -> AsyncGenerator[FetchResult, None]:
        """Fetch sources concurrently, yielding results as they complete."""
        if not feed_urls:
            return

        self.logger.info(f"Starting concurrent fetch of {len(feed_urls)} feeds")
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def fetch_with_semaphore(
            url: str, position: int, client: aiohttp.ClientSession
        ) -> FetchResult:
            async with semaphore:
                return await self.fetch_feed(url, client, position)

        scope = nullcontext(session) if session is not None else self.get_session()
        async with scope as client:
            tasks = [
                fetch_with_semaphore(url, i, client) for i, url in enumerate(feed_urls)
            ]
            for completed_task in asyncio.as_completed(tasks):
                yield await completed_task

    async def fetch_feeds_batch(
        self, feed_urls: List[str], session: Optional[aiohttp.ClientSession] = None
    ) -> List[FetchResult]:
        """Fetch all sources and return results in configured order."""
        results = []
        async for result in self.fetch_feeds(feed_urls, session):
            results.append(result)
        results.sort(key=lambda r: r.position)

        successful = sum(1 for r in results if r.success)
        self.logger.info(
            f"Feed fetch complete: {successful}/{len(results)} feeds successful"
        )
        return results

    async def fetch_today(
        self,
        feed_urls: List[str],
        run_date: date,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> DayBucket:
        """Fetch every source into the bucket for ``run_date``.

        A bucket with zero channels is a valid result when every source fails.
        """
        results = await self.fetch_feeds_batch(feed_urls, session)
        return results_to_bucket(results, run_date)


def results_to_bucket(results: List[FetchResult], run_date: date) -> DayBucket:
    """Collect successful channels, in result order, into one bucket."""
    return DayBucket(
        date=run_date, channels=[r.channel for r in results if r.success]
    )
