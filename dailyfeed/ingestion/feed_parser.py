"""
Feed Parser
===========

Turns raw feed bytes into a Channel using feedparser.

RSS 0.9x/1.0/2.0, Atom and RDF payloads are normalized into the same
document shape. The channel link is always replaced by the source URL.
"""

import xml.etree.ElementTree as ET
from typing import Any, Dict, List, Optional

import feedparser

from ..cache.models import Channel, DublinCoreExt, Item
from ..utils.exceptions import FeedParseError
from ..utils.logging import get_logger_for_component

DC_DATE = "{http://purl.org/dc/elements/1.1/}date"

# channel element of RSS 0.9x/2.0, RSS 1.0 and RSS 0.90 documents
_CHANNEL_PATHS = (
    "channel",
    "{http://purl.org/rss/1.0/}channel",
    "{http://my.netscape.com/rdf/simple/0.9/}channel",
)


def channel_dc_dates(content: bytes) -> List[str]:
    """Channel-level <dc:date> values, in document order.

    feedparser folds <dc:date>, <lastBuildDate> and Atom <updated> into one
    "updated" key, so the publication date is read from the XML tree. Atom
    feeds carry <dc:date> directly under <feed>.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError:
        return []

    channel = root
    for path in _CHANNEL_PATHS:
        found = root.find(path)
        if found is not None:
            channel = found
            break

    return [el.text.strip() for el in channel.findall(DC_DATE) if el.text and el.text.strip()]


class FeedParser:
    """Parse syndication payloads into Channel documents."""

    def __init__(self):
        self.logger = get_logger_for_component("feed_parser")

    def parse(
        self,
        content: bytes,
        source_url: str,
        response_headers: Optional[Dict[str, str]] = None,
    ) -> Channel:
        """Parse one payload.

        Args:
            content: Raw response body
            source_url: Configured source URL; becomes the channel identity key
            response_headers: HTTP headers, used by feedparser for encoding

        Returns:
            Parsed Channel

        Raises:
            FeedParseError: If the payload is not a usable feed
        """
        parsed = feedparser.parse(content, response_headers=response_headers or {})

        feed_data = parsed.get("feed", {})
        entries = parsed.get("entries", [])

        if parsed.get("bozo"):
            reason = parsed.get("bozo_exception", "Invalid XML structure")
            # feedparser is lenient; keep the feed if it still recovered something
            if not entries and not feed_data.get("title"):
                raise FeedParseError(
                    f"Feed parse error: {reason}", feed_url=source_url
                )
            self.logger.info(
                f"Feed has parse warnings but is usable: {source_url} ({reason})"
            )

        # HTML pages (login walls, captive portals) parse without a version
        if not parsed.get("version"):
            raise FeedParseError(
                "Payload is not a syndication feed", feed_url=source_url
            )

        items = []
        for entry in entries:
            try:
                items.append(self._extract_item(entry))
            except (TypeError, ValueError, AttributeError) as e:
                self.logger.warning(f"Failed to parse entry in {source_url}: {e}")

        return self._extract_channel(
            feed_data, source_url, items, channel_dc_dates(content)
        )

    def _extract_channel(
        self, feed_data: Any, source_url: str, items: List[Item], dc_dates: List[str]
    ) -> Channel:
        dublin_core_ext = DublinCoreExt(dates=dc_dates) if dc_dates else None

        description = feed_data.get("description") or feed_data.get("subtitle")

        return Channel(
            title=(feed_data.get("title") or "").strip(),
            link=source_url,
            description=description.strip() if description else None,
            language=feed_data.get("language"),
            pub_date=feed_data.get("published"),
            last_build_date=feed_data.get("updated"),
            generator=feed_data.get("generator"),
            items=items,
            dublin_core_ext=dublin_core_ext,
        )

    def _extract_item(self, entry: Any) -> Item:
        content = None
        if entry.get("content"):
            first = entry["content"][0]
            content = first.get("value") if isinstance(first, dict) else str(first)

        categories = []
        for tag in entry.get("tags") or []:
            term = tag.get("term") if isinstance(tag, dict) else str(tag)
            if term and term.strip():
                categories.append(term.strip())

        enclosures = []
        for enc in entry.get("enclosures") or []:
            if isinstance(enc, dict):
                enclosures.append(
                    {
                        "url": enc.get("href", ""),
                        "type": enc.get("type", ""),
                        "length": enc.get("length", ""),
                    }
                )

        title = entry.get("title")
        return Item(
            title=title.strip() if title else None,
            link=entry.get("link"),
            description=entry.get("summary") or entry.get("description"),
            content=content,
            pub_date=entry.get("published") or entry.get("updated"),
            guid=entry.get("id") or entry.get("guid"),
            author=entry.get("author"),
            categories=categories,
            enclosures=enclosures,
        )
