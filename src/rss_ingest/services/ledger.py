"""Persistent record of entries already announced, per feed."""

import asyncio
import logging
from pathlib import Path
from typing import Dict, Optional, Set

from ..core.models import FeedEntry, identity
from .locks import AsyncRWLock
from .writer import AtomicJsonFile


logger = logging.getLogger(__name__)

SEEN_FILE = "seen_store.json"


class SeenLedger:
    """Idempotent "have I announced this entry before" gate."""

    def __init__(self, path: Optional[Path] = None, seen: Optional[Dict[str, Set[str]]] = None):
        """
        Initialize the ledger.

        Args:
            path: Backing JSON file; None keeps the ledger in memory only
            seen: Initial mapping of feed id to identities
        """
        self._file = AtomicJsonFile(path) if path is not None else None
        self._seen: Dict[str, Set[str]] = {feed_id: set(ids) for feed_id, ids in (seen or {}).items()}
        self._lock = AsyncRWLock()

    @classmethod
    def in_memory(cls) -> "SeenLedger":
        return cls()

    @classmethod
    def load(cls, path: Path) -> "SeenLedger":
        """
        Load a ledger persisted at ``path``.

        Args:
            path: Backing JSON file (``seen_store.json``)

        Returns:
            SeenLedger bound to the file
        """
        data = AtomicJsonFile(path).read()
        raw = data.get("seen", {}) if isinstance(data, dict) else {}
        seen = {
            str(feed_id): {str(key) for key in keys}
            for feed_id, keys in raw.items()
            if isinstance(keys, list)
        }
        logger.info(f"Loaded seen ledger from {path} ({sum(len(v) for v in seen.values())} identities)")
        return cls(path, seen)

    async def is_new_and_mark(self, entry: FeedEntry) -> bool:
        """
        Check-and-set the entry's identity for its feed.

        The insertion is persisted before returning True.

        Args:
            entry: Entry to check

        Returns:
            True if the entry had not been seen before

        Raises:
            StorageError: If the ledger cannot be persisted; the mark is undone
        """
        key = identity(entry)
        async with self._lock.write():
            known = self._seen.setdefault(entry.feed_id, set())
            if key in known:
                return False

            known.add(key)
            try:
                await self._persist()
            except Exception:
                known.discard(key)
                raise

        return True

    async def contains(self, entry: FeedEntry) -> bool:
        async with self._lock.read():
            return identity(entry) in self._seen.get(entry.feed_id, set())

    async def count(self, feed_id: str) -> int:
        async with self._lock.read():
            return len(self._seen.get(feed_id, set()))

    async def _persist(self) -> None:
        if self._file is None:
            logger.debug("Seen ledger is in-memory only; skipping persist")
            return
        payload = {"seen": {feed_id: sorted(keys) for feed_id, keys in self._seen.items()}}
        await asyncio.to_thread(self._file.write, payload)
