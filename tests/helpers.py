"""
Test Helpers
============

Sample feed payloads and mocked aiohttp sessions. No test touches the
network.
"""

from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

RUN_TIME = datetime(2024, 9, 10, 8, 30, tzinfo=timezone.utc)
RUN_DATE = date(2024, 9, 10)


def rss_feed(title: str, link: str, item_count: int, channel_extra: str = "") -> str:
    """RSS 2.0 payload with ``item_count`` items and no channel-level date."""
    items = "".join(
        f"""
        <item>
            <title>{title} item {i}</title>
            <link>{link}/item{i}</link>
            <description>Summary {i}</description>
            <guid>{link}/item{i}</guid>
            <pubDate>Mon, 09 Sep 2024 1{i % 10}:00:00 GMT</pubDate>
        </item>"""
        for i in range(item_count)
    )
    return f"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">
    <channel>
        <title>{title}</title>
        <link>{link}</link>
        <description>{title} description</description>
        <language>en-us</language>
        {channel_extra}{items}
    </channel>
</rss>"""


SAMPLE_RSS_FEED = rss_feed("Test RSS Feed", "http://example.com", 5)

DC_DATED_RSS_FEED = rss_feed(
    "Dated Feed",
    "http://dated.example.com",
    2,
    channel_extra="<dc:date>2024-09-08T21:00:00-05:00</dc:date>",
)

SAMPLE_ATOM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
    <title>Test Atom Feed</title>
    <link href="http://atom.example.com"/>
    <id>http://atom.example.com/feed</id>
    <updated>2024-09-09T12:00:00Z</updated>
    <subtitle>Atom subtitle</subtitle>
    <entry>
        <title>Atom Test Article</title>
        <link href="http://atom.example.com/article"/>
        <id>urn:uuid:atom-article</id>
        <updated>2024-09-09T12:00:00Z</updated>
        <summary>Atom summary</summary>
        <content type="html">&lt;p&gt;Full content&lt;/p&gt;</content>
        <category term="Science"/>
    </entry>
</feed>"""

NOT_A_FEED = "this is not xml at all { nor json"

def make_response(status: int, body) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.reason = "OK" if status < 400 else "Error"
    response.headers = {"content-type": "application/rss+xml; charset=utf-8"}
    payload = body.encode("utf-8") if isinstance(body, str) else body
    response.read = AsyncMock(return_value=payload)
    return response


def make_session(responses: dict) -> MagicMock:
    """Mock aiohttp session.

    ``responses`` maps URL to ``(status, body)`` or to an exception raised by
    ``session.get``.
    """
    session = MagicMock()

    def get(url, **kwargs):
        outcome = responses[url]
        if isinstance(outcome, BaseException):
            raise outcome
        status, body = outcome
        context_manager = MagicMock()
        context_manager.__aenter__ = AsyncMock(return_value=make_response(status, body))
        context_manager.__aexit__ = AsyncMock(return_value=False)
        return context_manager

    session.get = MagicMock(side_effect=get)
    return session


def install_session(fetcher, session) -> None:
    """Make ``fetcher.get_session()`` yield ``session``."""

    @asynccontextmanager
    async def fake_session():
        yield session

    fetcher.get_session = fake_session
