"""Periodic polling: fetch, parse, dedupe, persist and announce per feed."""

import asyncio
import logging
from enum import Enum
from typing import Callable, List, Optional, Sequence, Tuple

from ..config import Config
from ..errors import ChannelClosed, FeedError
from ..services.ledger import SeenLedger
from ..services.store import DataStore
from .events import EventChannel, NewEntries
from .fetcher import FeedFetcher
from .models import FeedDescriptor, FeedEntry
from .parser import parse_feed
from .retry import fetch_with_retries


logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    RUNNING = "running"
    STOPPED = "stopped"


def next_tick_deadline(previous: float, now: float, interval: float) -> Tuple[float, int]:
    """
    Compute the next tick deadline, skipping boundaries that already passed.

    Args:
        previous: Deadline of the tick that just ran
        now: Current monotonic time
        interval: Tick period in seconds

    Returns:
        Tuple of (next deadline, number of skipped ticks)
    """
    deadline = previous + interval
    skipped = 0
    if now >= deadline:
        skipped = int((now - deadline) // interval) + 1
        deadline += skipped * interval
    return deadline, skipped


class FeedPoller:
    """Runs the per-feed pipeline. Shared by the scheduler and manual refresh."""

    def __init__(
        self,
        store: DataStore,
        ledger: SeenLedger,
        config: Optional[Config] = None,
        fetcher: Optional[FeedFetcher] = None,
        parser: Callable[[bytes, str], List[FeedEntry]] = parse_feed,
    ):
        """
        Initialize the poller.

        Args:
            store: Data store receiving merged entries
            ledger: Seen ledger filtering announced entries
            config: Poll configuration (defaults apply when omitted)
            fetcher: Network fetcher (built from config when omitted)
            parser: Feed decoder
        """
        self.store = store
        self.ledger = ledger
        self.config = config or Config()
        self.fetcher = fetcher or FeedFetcher(
            max_bytes=self.config.max_feed_bytes,
            allow_loopback_http=self.config.allow_loopback_http,
            user_agent=self.config.user_agent,
        )
        self.parser = parser

    async def process_feed(self, feed: FeedDescriptor) -> Optional[NewEntries]:
        """
        Fetch one feed and keep only entries never announced before.

        Per-feed errors are logged and contained. Storage errors propagate.

        Args:
            feed: Feed to process

        Returns:
            NewEntries with the unseen entries, or None if there are none
        """
        try:
            data = await fetch_with_retries(self.fetcher, feed.url, self.config)
            entries = await asyncio.to_thread(self.parser, data, feed.id)
        except FeedError as e:
            logger.warning(f"Failed to process feed {feed.title or feed.id} ({feed.url}) [{e.kind.value}]: {e}")
            return None

        new_entries = []
        for entry in entries:
            if await self.ledger.is_new_and_mark(entry):
                new_entries.append(entry)

        if not new_entries:
            logger.debug(f"No new entries for {feed.id} ({len(entries)} fetched)")
            return None

        await self.store.upsert_articles(feed.id, new_entries)
        logger.info(f"Found {len(new_entries)} new entries in {feed.title or feed.id}")
        return NewEntries(feed.id, new_entries)

    async def poll_once(self, feeds: Sequence[FeedDescriptor]) -> List[NewEntries]:
        """
        Process ``feeds`` sequentially once and return the resulting events.

        Args:
            feeds: Feeds to poll

        Returns:
            One NewEntries per feed that produced new entries
        """
        events = []
        for feed in list(feeds):
            event = await self.process_feed(feed)
            if event is not None:
                events.append(event)
        return events


class PollingScheduler:
    """
    Drives periodic ticks over the store's feed list.

    The loop task starts on construction, so the scheduler must be created
    inside a running event loop. Stopping is cooperative: the stop signal is
    observed between ticks and an in-flight tick always completes.
    """

    def __init__(self, poller: FeedPoller, channel: EventChannel, config: Optional[Config] = None):
        self.poller = poller
        self.channel = channel
        self.config = config or poller.config
        self.ticks_completed = 0
        self.ticks_skipped = 0
        self._stop_event = asyncio.Event()
        self._state = SchedulerState.RUNNING
        self._task = asyncio.get_running_loop().create_task(self._run(), name="rss-ingest-scheduler")

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def done(self) -> bool:
        return self._task.done()

    async def tick(self) -> int:
        """
        Run one tick over a snapshot of the feed list.

        Returns:
            Number of events emitted
        """
        feeds = await self.poller.store.list_feeds()
        logger.info(f"Polling {len(feeds)} feeds")

        emitted = 0
        for feed in feeds:
            event = await self.poller.process_feed(feed)
            if event is None:
                continue
            await self.channel.send(event)
            emitted += 1

        self.ticks_completed += 1
        return emitted

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.poll_interval
        deadline = loop.time()

        try:
            while not self._stop_event.is_set():
                await self.tick()

                deadline, skipped = next_tick_deadline(deadline, loop.time(), interval)
                if skipped:
                    self.ticks_skipped += skipped
                    logger.warning(f"Tick overran the {interval}s interval; skipped {skipped} tick(s)")

                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=max(0.0, deadline - loop.time()))
                except asyncio.TimeoutError:
                    pass

            logger.info("Scheduler shutdown requested")
        except ChannelClosed:
            logger.warning("Event channel closed; stopping scheduler")
        except Exception:
            logger.exception("Scheduler terminated by an unrecoverable error")
            raise
        finally:
            self._state = SchedulerState.STOPPED
            self.channel.close()

    async def wait(self) -> None:
        """
        Wait for the loop to terminate.

        Raises:
            Exception: The unrecoverable error that terminated the loop, if any
        """
        await asyncio.shield(self._task)

    async def stop(self) -> None:
        """Signal the loop to stop after the current tick and wait for it."""
        self._stop_event.set()
        await self.wait()


def spawn_scheduler(
    store: DataStore,
    ledger: SeenLedger,
    channel: EventChannel,
    config: Optional[Config] = None,
    fetcher: Optional[FeedFetcher] = None,
) -> PollingScheduler:
    """Build a poller and start a scheduler loop on the running event loop."""
    poller = FeedPoller(store, ledger, config, fetcher)
    return PollingScheduler(poller, channel, config)
