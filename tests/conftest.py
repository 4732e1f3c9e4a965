"""Shared fixtures and sample documents for the test suite."""

from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

import pytest

from rss_ingest.config import Config
from rss_ingest.core.models import FeedDescriptor, FeedEntry


RSS_FEED = b"""<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:dc="http://purl.org/dc/elements/1.1/"
     xmlns:content="http://purl.org/rss/1.0/modules/content/">
  <channel>
    <title>Test Feed</title>
    <link>https://example.com/</link>
    <description>Test description</description>
    <item>
      <title>Item 1</title>
      <link>https://example.com/1</link>
      <guid>1</guid>
      <pubDate>Mon, 21 Oct 2024 07:28:00 GMT</pubDate>
      <description>First</description>
      <dc:creator>Alice</dc:creator>
      <category>News</category>
      <content:encoded><![CDATA[<p>Hello</p>]]></content:encoded>
      <enclosure url="https://example.com/1.jpg" type="image/jpeg" length="100"/>
    </item>
    <item>
      <title>Item 2</title>
      <link>https://example.com/2</link>
      <guid>2</guid>
      <pubDate>Mon, 21 Oct 2024 08:00:00 GMT</pubDate>
      <description>Second</description>
    </item>
  </channel>
</rss>
"""

ATOM_FEED = b"""<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Feed</title>
  <id>urn:example:feed</id>
  <updated>2024-10-21T08:00:00Z</updated>
  <entry>
    <title>Atom 1</title>
    <id>urn:uuid:atom-1</id>
    <link href="https://example.com/a1"/>
    <updated>2024-10-21T08:00:00Z</updated>
    <published>2024-10-20T08:00:00Z</published>
    <author><name>Bob</name></author>
    <category term="tech"/>
    <summary>Atom summary</summary>
    <content type="html">&lt;p&gt;Body&lt;/p&gt;</content>
  </entry>
</feed>
"""

MALFORMED_FEED = b"this is definitely not a feed document"

BASE_TIME = datetime(2024, 10, 21, 12, 0, tzinfo=timezone.utc)


def rss_with_items(items: List[Dict[str, str]]) -> bytes:
    """Build a small RSS 2.0 document from item dicts (title/link/guid/pubDate)."""
    parts = []
    for item in items:
        fields = "".join(f"<{key}>{value}</{key}>" for key, value in item.items())
        parts.append(f"<item>{fields}</item>")
    return (
        '<?xml version="1.0"?><rss version="2.0"><channel><title>T</title>'
        '<link>https://example.com/</link><description>d</description>'
        f'{"".join(parts)}</channel></rss>'
    ).encode("utf-8")


def make_entry(
    feed_id: str = "feed1",
    n: int = 0,
    published_at: Optional[datetime] = None,
    guid: Optional[str] = None,
) -> FeedEntry:
    return FeedEntry(
        feed_id=feed_id,
        title=f"Entry {n}",
        url=f"https://example.com/{feed_id}/{n}",
        guid=guid if guid is not None else f"{feed_id}-{n}",
        published_at=published_at or BASE_TIME + timedelta(minutes=n),
    )


class FakeFetcher:
    """Stands in for FeedFetcher: maps URLs to bodies or exceptions."""

    def __init__(self, responses: Dict[str, Union[bytes, Exception, List[Union[bytes, Exception]]]]):
        self.responses = responses
        self.calls: List[str] = []

    def fetch(self, url: str, timeout: float) -> bytes:
        self.calls.append(url)
        outcome = self.responses[url]
        if isinstance(outcome, list):
            outcome = outcome.pop(0) if len(outcome) > 1 else outcome[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self) -> None:
        pass


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def fast_config() -> Config:
    return Config(
        poll_interval=0.05,
        request_timeout=2,
        max_retries=1,
        retry_backoff_base=0,
    )


@pytest.fixture
def feed() -> FeedDescriptor:
    return FeedDescriptor(id="feed1", title="Test", url="https://example.com/feed")
