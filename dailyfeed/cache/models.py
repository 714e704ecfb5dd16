"""
DailyFeed Data Models
=====================

Pydantic models for the aggregate cache and the feed documents it holds.

Feed documents are passthrough: keys the parser does not know about are kept
as-is so a cache written by a newer parser survives a reload.
"""

import datetime as dt
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

DATE_FORMAT = "%Y-%m-%d"


class Item(BaseModel):
    """One feed entry."""

    model_config = ConfigDict(extra="allow", frozen=True)

    title: Optional[str] = None
    link: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    pub_date: Optional[str] = None
    guid: Optional[str] = None
    author: Optional[str] = None
    categories: List[str] = Field(default_factory=list)
    enclosures: List[Dict[str, Any]] = Field(default_factory=list)

    def identity(self) -> Optional[str]:
        """Key used to tell items of the same channel apart."""
        return self.guid or self.link or self.title


class DublinCoreExt(BaseModel):
    """Dublin Core channel metadata; only the declared dates matter here."""

    model_config = ConfigDict(extra="allow", frozen=True)

    dates: List[str] = Field(default_factory=list)


class Channel(BaseModel):
    """One parsed feed document.

    ``link`` is the identity key. The parser always sets it to the configured
    source URL, never to the link the feed declares for itself.
    """

    model_config = ConfigDict(extra="allow", frozen=True)

    title: str = ""
    link: str
    description: Optional[str] = None
    language: Optional[str] = None
    pub_date: Optional[str] = None
    last_build_date: Optional[str] = None
    generator: Optional[str] = None
    items: List[Item] = Field(default_factory=list)
    dublin_core_ext: Optional[DublinCoreExt] = None

    def __str__(self) -> str:
        return f"Channel({self.title or '?'}:{self.link})"


class DayBucket(BaseModel):
    """Channels attributed to one calendar day (UTC)."""

    date: dt.date
    channels: List[Channel] = Field(default_factory=list)

    @field_validator("date", mode="before")
    @classmethod
    def parse_day_key(cls, v):
        if isinstance(v, str):
            return datetime.strptime(v, DATE_FORMAT).date()
        if isinstance(v, datetime):
            return v.date()
        return v

    @field_validator("channels", mode="before")
    @classmethod
    def null_channels(cls, v):
        """Older artifacts store an empty day as null."""
        return [] if v is None else v

    @field_serializer("date")
    def serialize_day_key(self, v: dt.date) -> str:
        return v.strftime(DATE_FORMAT)

    @property
    def identity_keys(self) -> List[str]:
        return [channel.link for channel in self.channels]


class AggregateCache(BaseModel):
    """Site title, build time and day buckets: the only durable state."""

    site_title: str = ""
    build_time: Optional[datetime] = None
    days: List[DayBucket] = Field(default_factory=list)

    @field_validator("site_title", mode="before")
    @classmethod
    def null_title(cls, v):
        return "" if v is None else v

    @field_validator("build_time")
    @classmethod
    def ensure_utc(cls, v):
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @field_serializer("build_time")
    def serialize_build_time(self, v: Optional[datetime]) -> Optional[str]:
        # RFC 3339
        return v.isoformat() if v else None

    @classmethod
    def empty(cls) -> "AggregateCache":
        """Default aggregate used when no usable prior cache exists."""
        return cls()

    def get_day(self, day: dt.date) -> Optional[DayBucket]:
        for bucket in self.days:
            if bucket.date == day:
                return bucket
        return None

    @property
    def channel_count(self) -> int:
        return sum(len(bucket.channels) for bucket in self.days)
