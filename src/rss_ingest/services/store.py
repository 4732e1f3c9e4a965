"""Durable storage for feeds, per-feed article caches and read/star flags."""

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

from pydantic import ValidationError

from ..config import MAX_ARTICLES_PER_FEED
from ..core.models import FeedDescriptor, FeedEntry, identity
from .locks import AsyncRWLock
from .writer import AtomicJsonFile


logger = logging.getLogger(__name__)

FEEDS_FILE = "feeds.json"
ARTICLES_FILE = "articles_store.json"
FLAGS_FILE = "read_store.json"

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)

FlagMap = Dict[str, Set[str]]
EntryRef = Union[FeedEntry, str]


def _sort_key(entry: FeedEntry) -> datetime:
    published = entry.published_at
    if published is None:
        return _EPOCH
    if published.tzinfo is None:
        return published.replace(tzinfo=timezone.utc)
    return published


class DataStore:
    """
    Owner of every persisted user-facing structure.

    Each structure has its own reader/writer lock. Mutations build a new
    value, persist it atomically and only then publish it, so readers see
    either the previous or the next state.
    """

    def __init__(self, directory: Optional[Path] = None, capacity: int = MAX_ARTICLES_PER_FEED):
        """
        Initialize an empty store.

        Args:
            directory: Directory holding the JSON files; None keeps state in memory
            capacity: Maximum cached articles per feed
        """
        self.directory = Path(directory) if directory is not None else None
        self.capacity = capacity

        if self.directory is not None:
            self._feeds_file = AtomicJsonFile(self.directory / FEEDS_FILE)
            self._articles_file = AtomicJsonFile(self.directory / ARTICLES_FILE)
            self._flags_file = AtomicJsonFile(self.directory / FLAGS_FILE)
        else:
            self._feeds_file = self._articles_file = self._flags_file = None

        self._feeds: List[FeedDescriptor] = []
        self._articles: Dict[str, List[FeedEntry]] = {}
        self._read: FlagMap = {}
        self._starred: FlagMap = {}

        self._feeds_lock = AsyncRWLock()
        self._articles_lock = AsyncRWLock()
        self._flags_lock = AsyncRWLock()

    @classmethod
    def load_from_dir(cls, directory: Path, capacity: int = MAX_ARTICLES_PER_FEED) -> "DataStore":
        """
        Load persisted feeds, articles and flags from ``directory``.

        Args:
            directory: Data directory (created if missing)
            capacity: Maximum cached articles per feed

        Returns:
            DataStore bound to the directory
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        store = cls(directory, capacity)

        raw_feeds = store._feeds_file.read(list)
        store._feeds = [
            feed for feed in (_validate(FeedDescriptor, item) for item in _as_list(raw_feeds))
            if feed is not None
        ]

        raw_articles = store._articles_file.read(dict)
        if isinstance(raw_articles, dict):
            for feed_id, items in raw_articles.items():
                entries = [e for e in (_validate(FeedEntry, item) for item in _as_list(items)) if e is not None]
                store._articles[str(feed_id)] = entries

        raw_flags = store._flags_file.read(dict)
        if isinstance(raw_flags, dict):
            store._read = _flag_map(raw_flags.get("read"))
            store._starred = _flag_map(raw_flags.get("starred"))

        logger.info(
            f"Loaded data store from {directory}: {len(store._feeds)} feeds, "
            f"{sum(len(v) for v in store._articles.values())} cached articles"
        )
        return store

    # Feeds

    async def add_feed(self, descriptor: FeedDescriptor) -> None:
        """Add a feed, replacing any existing feed with the same id."""
        async with self._feeds_lock.write():
            feeds = [feed for feed in self._feeds if feed.id != descriptor.id]
            feeds.append(descriptor)
            await self._write(self._feeds_file, [feed.model_dump(mode="json") for feed in feeds])
            self._feeds = feeds

        logger.info(f"Added feed: {descriptor.title} ({descriptor.url})")

    async def remove_feed(self, feed_id: str) -> bool:
        """
        Remove a feed together with its cached articles and read/star marks.

        Args:
            feed_id: Identifier of the feed

        Returns:
            True if the feed existed
        """
        async with self._feeds_lock.write():
            feeds = [feed for feed in self._feeds if feed.id != feed_id]
            existed = len(feeds) != len(self._feeds)
            if existed:
                await self._write(self._feeds_file, [feed.model_dump(mode="json") for feed in feeds])
                self._feeds = feeds

        async with self._articles_lock.write():
            if feed_id in self._articles:
                articles = {k: v for k, v in self._articles.items() if k != feed_id}
                await self._write(self._articles_file, self._articles_payload(articles))
                self._articles = articles

        async with self._flags_lock.write():
            if feed_id in self._read or feed_id in self._starred:
                read = {k: v for k, v in self._read.items() if k != feed_id}
                starred = {k: v for k, v in self._starred.items() if k != feed_id}
                await self._write(self._flags_file, self._flags_payload(read, starred))
                self._read, self._starred = read, starred

        if existed:
            logger.info(f"Removed feed: {feed_id}")
        return existed

    async def list_feeds(self) -> List[FeedDescriptor]:
        """Point-in-time snapshot of the feed list."""
        async with self._feeds_lock.read():
            return list(self._feeds)

    async def get_feed(self, feed_id: str) -> Optional[FeedDescriptor]:
        async with self._feeds_lock.read():
            return next((feed for feed in self._feeds if feed.id == feed_id), None)

    # Articles

    async def upsert_articles(self, feed_id: str, new_entries: Iterable[FeedEntry]) -> int:
        """
        Merge entries into the feed's cache.

        Entries whose identity is already cached are skipped, the result is
        sorted newest first and truncated to the capacity.

        Args:
            feed_id: Feed whose cache is updated
            new_entries: Candidate entries

        Returns:
            Number of entries added before truncation
        """
        async with self._articles_lock.write():
            merged = list(self._articles.get(feed_id, []))
            known = {identity(entry) for entry in merged}
            added = 0

            for entry in new_entries:
                key = identity(entry)
                if key in known:
                    continue
                known.add(key)
                merged.append(entry)
                added += 1

            merged.sort(key=_sort_key, reverse=True)
            evicted = max(0, len(merged) - self.capacity)
            del merged[self.capacity:]

            articles = dict(self._articles)
            articles[feed_id] = merged
            await self._write(self._articles_file, self._articles_payload(articles))
            self._articles = articles

        logger.debug(f"Upserted {added} articles into {feed_id} (evicted {evicted}, cached {len(merged)})")
        return added

    async def list_articles(self, feed_id: str) -> List[FeedEntry]:
        async with self._articles_lock.read():
            return list(self._articles.get(feed_id, []))

    async def list_all_articles(self) -> List[FeedEntry]:
        """All cached articles across feeds, newest first."""
        async with self._articles_lock.read():
            entries = [entry for items in self._articles.values() for entry in items]
        entries.sort(key=_sort_key, reverse=True)
        return entries

    # Read / star flags

    async def mark_read(self, entry: EntryRef, feed_id: Optional[str] = None) -> None:
        """
        Mark an entry as read.

        Args:
            entry: The entry itself, or its identity string
            feed_id: Owning feed; required when ``entry`` is an identity string
        """
        await self._set_flag("read", *_flag_key(entry, feed_id), True)

    async def mark_unread(self, entry: EntryRef, feed_id: Optional[str] = None) -> None:
        await self._set_flag("read", *_flag_key(entry, feed_id), False)

    async def is_read(self, entry: EntryRef, feed_id: Optional[str] = None) -> bool:
        feed_id, entry_identity = _flag_key(entry, feed_id)
        async with self._flags_lock.read():
            return entry_identity in self._read.get(feed_id, set())

    async def mark_starred(self, entry: EntryRef, feed_id: Optional[str] = None) -> None:
        await self._set_flag("starred", *_flag_key(entry, feed_id), True)

    async def unmark_starred(self, entry: EntryRef, feed_id: Optional[str] = None) -> None:
        await self._set_flag("starred", *_flag_key(entry, feed_id), False)

    async def is_starred(self, entry: EntryRef, feed_id: Optional[str] = None) -> bool:
        feed_id, entry_identity = _flag_key(entry, feed_id)
        async with self._flags_lock.read():
            return entry_identity in self._starred.get(feed_id, set())

    async def _set_flag(self, flag: str, feed_id: str, entry_identity: str, value: bool) -> None:
        async with self._flags_lock.write():
            current = self._read if flag == "read" else self._starred
            ids = set(current.get(feed_id, set()))
            if (entry_identity in ids) == value:
                logger.debug(f"Entry {entry_identity} already has {flag}={value}")
                return

            if value:
                ids.add(entry_identity)
            else:
                ids.discard(entry_identity)

            updated = dict(current)
            updated[feed_id] = ids
            read, starred = (updated, self._starred) if flag == "read" else (self._read, updated)
            await self._write(self._flags_file, self._flags_payload(read, starred))
            self._read, self._starred = read, starred

    # Persistence

    @staticmethod
    async def _write(target: Optional[AtomicJsonFile], payload: Any) -> None:
        if target is None:
            return
        await asyncio.to_thread(target.write, payload)

    @staticmethod
    def _articles_payload(articles: Dict[str, List[FeedEntry]]) -> Dict[str, Any]:
        return {
            feed_id: [entry.model_dump(mode="json") for entry in entries]
            for feed_id, entries in articles.items()
        }

    @staticmethod
    def _flags_payload(read: FlagMap, starred: FlagMap) -> Dict[str, Any]:
        return {
            "read": {feed_id: sorted(ids) for feed_id, ids in read.items() if ids},
            "starred": {feed_id: sorted(ids) for feed_id, ids in starred.items() if ids},
        }


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _validate(model, item: Any):
    try:
        return model.model_validate(item)
    except ValidationError as e:
        logger.warning(f"Skipping invalid {model.__name__} record: {e}")
        return None


def _flag_key(entry: EntryRef, feed_id: Optional[str]) -> Tuple[str, str]:
    if isinstance(entry, FeedEntry):
        return feed_id or entry.feed_id, identity(entry)
    if feed_id is None:
        raise ValueError(f"feed_id is required to flag identity {entry!r}")
    return feed_id, entry


def _flag_map(value: Any) -> FlagMap:
    if not isinstance(value, dict):
        return {}
    return {str(feed_id): {str(i) for i in ids} for feed_id, ids in value.items() if isinstance(ids, list)}
