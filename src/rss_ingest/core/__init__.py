"""Core ingestion functionality."""

from .events import EventChannel, NewEntries
from .fetcher import FeedFetcher, check_url
from .models import FeedDescriptor, FeedEntry, identity
from .parser import parse_feed
from .retry import backoff_delay, fetch_with_retries

__all__ = [
    "EventChannel",
    "NewEntries",
    "FeedFetcher",
    "check_url",
    "FeedDescriptor",
    "FeedEntry",
    "identity",
    "parse_feed",
    "backoff_delay",
    "fetch_with_retries",
]
