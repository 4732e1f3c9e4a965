"""Canonical feed and entry models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class FeedDescriptor(BaseModel):
    """A followed feed."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    title: str
    url: str


class FeedEntry(BaseModel):
    """A normalized syndicated item. Read/star flags live in the data store."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    feed_id: str
    title: str = ""
    summary: Optional[str] = None
    content_html: Optional[str] = None
    url: str = ""
    author: Optional[str] = None
    category: Optional[str] = None
    guid: Optional[str] = None
    published_at: Optional[datetime] = None
    image_url: Optional[str] = None

    @property
    def identity(self) -> str:
        return identity(self)

    def __str__(self) -> str:
        return f"FeedEntry({self.title}, feed={self.feed_id})"


def identity(entry: FeedEntry) -> str:
    """
    Derive the deduplication key of an entry.

    Priority is guid, then url, then title with the publish timestamp in
    whole seconds. The key is unique within one feed only.

    Args:
        entry: Entry to identify

    Returns:
        Identity string prefixed with its kind
    """
    if entry.guid:
        return f"guid:{entry.guid}"
    if entry.url:
        return f"url:{entry.url}"
    ts = int(entry.published_at.timestamp()) if entry.published_at else 0
    return f"title:{entry.title}@{ts}"
