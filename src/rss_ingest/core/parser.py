"""Dual-format feed decoding: RSS first, Atom as fallback."""

import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from typing import Dict, List, Optional

import feedparser

from ..errors import ParseFailure
from .models import FeedEntry


logger = logging.getLogger(__name__)

DC_NS = "http://purl.org/dc/elements/1.1/"
RSS1_NS = "http://purl.org/rss/1.0/"


class _DecodeError(Exception):
    """A single decoder rejected the document."""


def parse_feed(data: bytes, feed_id: str, fetched_at: Optional[datetime] = None) -> List[FeedEntry]:
    """
    Decode a raw feed document into normalized entries.

    The RSS decoder is tried first and the Atom decoder second. When both
    reject the document, the RSS error is the one reported.

    Args:
        data: Raw document bytes
        feed_id: Identifier stamped on every entry
        fetched_at: Stand-in publish time for undated items (defaults to now)

    Returns:
        List of FeedEntry objects in document order

    Raises:
        ParseFailure: If neither decoder accepts the document
    """
    if fetched_at is None:
        fetched_at = datetime.now(timezone.utc)

    parsed = feedparser.parse(data)

    try:
        entries = _decode_rss(parsed, data, feed_id, fetched_at)
    except _DecodeError as rss_error:
        try:
            entries = _decode_atom(parsed, feed_id, fetched_at)
        except _DecodeError as atom_error:
            logger.debug(f"Atom decoder also failed for {feed_id}: {atom_error}")
            raise ParseFailure(f"feed parsing error: {rss_error}") from rss_error

    logger.debug(f"Parsed {len(entries)} entries for {feed_id} ({parsed.get('version')})")
    return entries


def _decode_rss(
    parsed: feedparser.FeedParserDict,
    data: bytes,
    feed_id: str,
    fetched_at: datetime,
) -> List[FeedEntry]:
    """Decode a channel/item document (RSS 0.9x, 1.0, 2.0)."""
    _require_format(parsed, "rss", "RSS")

    sources = _rss_item_sources(data)
    if len(sources) != len(parsed.entries):
        logger.debug(f"Item count mismatch for {feed_id}; using merged author/category fields")
        sources = [{} for _ in parsed.entries]

    return [
        _to_entry(
            item,
            feed_id,
            fetched_at,
            image_url=_enclosure_url(item),
            author=source.get("creator"),
            category=source.get("category") or source.get("subject"),
        )
        for item, source in zip(parsed.entries, sources)
    ]


def _rss_item_sources(data: bytes) -> List[Dict[str, Optional[str]]]:
    """
    Read creator, category and subject of every item by element name.

    feedparser merges dc:creator with <author> and dc:subject with
    <category>, so the element a value came from is only known here.

    Args:
        data: Raw document bytes

    Returns:
        One dict per item in document order, empty if the XML is not well-formed
    """
    try:
        root = ET.fromstring(data)
    except (ET.ParseError, ValueError) as e:
        logger.debug(f"Strict XML pass failed: {e}")
        return []

    return [
        {
            "creator": _child_text(item, f"{{{DC_NS}}}creator"),
            "category": _child_text(item, "category"),
            "subject": _child_text(item, f"{{{DC_NS}}}subject"),
        }
        for item in root.iter()
        if item.tag in ("item", f"{{{RSS1_NS}}}item")
    ]


def _child_text(element: ET.Element, tag: str) -> Optional[str]:
    for child in element.findall(tag):
        text = (child.text or "").strip()
        if text:
            return text
    return None


def _decode_atom(parsed: feedparser.FeedParserDict, feed_id: str, fetched_at: datetime) -> List[FeedEntry]:
    """Decode a feed/entry document (Atom 0.3, 1.0)."""
    _require_format(parsed, "atom", "Atom")
    return [_to_entry(item, feed_id, fetched_at) for item in parsed.entries]


def _require_format(parsed: feedparser.FeedParserDict, prefix: str, label: str) -> None:
    version = parsed.get("version") or ""
    if version.startswith(prefix):
        return

    exception = parsed.get("bozo_exception")
    if exception is not None:
        raise _DecodeError(f"not a valid {label} document: {exception}")
    raise _DecodeError(f"not a valid {label} document (detected format: {version or 'unknown'})")


def _to_entry(
    item: feedparser.FeedParserDict,
    feed_id: str,
    fetched_at: datetime,
    image_url: Optional[str] = None,
    author: Optional[str] = None,
    category: Optional[str] = None,
) -> FeedEntry:
    return FeedEntry(
        feed_id=feed_id,
        title=(item.get("title") or "").strip(),
        summary=item.get("summary") or None,
        content_html=_content_html(item),
        url=(item.get("link") or "").strip(),
        author=author or _author(item),
        category=category or _category(item),
        guid=item.get("id") or None,
        published_at=_parse_published_date(item) or fetched_at,
        image_url=image_url,
    )


def _parse_published_date(item: feedparser.FeedParserDict) -> Optional[datetime]:
    """Parse published date from entry."""
    for date_field in ['published_parsed', 'updated_parsed']:
        date_tuple = item.get(date_field)
        if date_tuple:
            try:
                return datetime(*date_tuple[:6], tzinfo=timezone.utc)
            except (ValueError, TypeError):
                continue

    return None


def _author(item: feedparser.FeedParserDict) -> Optional[str]:
    # Creator/contributor detail first, generic byline last
    detail = item.get("author_detail") or {}
    if detail.get("name"):
        return detail["name"].strip()

    for contributor in item.get("contributors") or []:
        if contributor.get("name"):
            return contributor["name"].strip()

    author = item.get("author")
    return author.strip() if author else None


def _category(item: feedparser.FeedParserDict) -> Optional[str]:
    for tag in item.get("tags") or []:
        term = tag.get("term") if isinstance(tag, dict) else tag
        if term:
            return str(term).strip()
    return item.get("category") or None


def _content_html(item: feedparser.FeedParserDict) -> Optional[str]:
    for content in item.get("content") or []:
        value = content.get("value")
        if value:
            return value
    return None


def _enclosure_url(item: feedparser.FeedParserDict) -> Optional[str]:
    for enclosure in item.get("enclosures") or []:
        href = enclosure.get("href")
        if href:
            return href
    return None
