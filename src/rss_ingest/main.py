"""Main RSS Ingest application."""

import logging
from pathlib import Path
from typing import Dict, List, Optional

from .config import Config, load_config
from .core.events import EventChannel, NewEntries
from .core.fetcher import FeedFetcher
from .core.scheduler import FeedPoller, PollingScheduler
from .services.ledger import SEEN_FILE, SeenLedger
from .services.store import DataStore
from .utils.paths import get_data_dir, get_log_dir


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None) -> None:
    """
    Configure the root logger with a console and an optional file handler.

    Args:
        log_level: Level name
        log_file: Optional log file path
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        handlers.append(logging.FileHandler(log_file))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)


class IngestApp:
    """Wires configuration, storage, ledger and the polling pipeline."""

    def __init__(self, config_file: Optional[Path] = None, config: Optional[Config] = None):
        """
        Initialize the application.

        Args:
            config_file: Optional path to configuration file
            config: Preloaded configuration, takes precedence over config_file
        """
        self.config = config or load_config(config_file)
        self.data_dir = get_data_dir(self.config.data_dir)

        setup_logging(self.config.log_level, get_log_dir(self.config.data_dir) / "rss-ingest.log")

        self.store = DataStore.load_from_dir(self.data_dir, capacity=self.config.max_articles_per_feed)
        self.ledger = SeenLedger.load(self.data_dir / SEEN_FILE)
        self.fetcher = FeedFetcher(
            max_bytes=self.config.max_feed_bytes,
            allow_loopback_http=self.config.allow_loopback_http,
            user_agent=self.config.user_agent,
        )
        self.poller = FeedPoller(self.store, self.ledger, self.config, self.fetcher)

        logging.info(f"RSS Ingest initialized (data dir {self.data_dir})")

    def create_channel(self) -> EventChannel:
        return EventChannel(self.config.event_channel_capacity)

    def start_scheduler(self, channel: EventChannel) -> PollingScheduler:
        """Start the periodic loop; must be called from a running event loop."""
        return PollingScheduler(self.poller, channel, self.config)

    async def refresh(self, feed_id: Optional[str] = None) -> List[NewEntries]:
        """
        Poll all feeds, or one feed, immediately.

        Args:
            feed_id: Optional feed to restrict the refresh to

        Returns:
            Events for feeds with new entries
        """
        feeds = await self.store.list_feeds()
        if feed_id is not None:
            feeds = [feed for feed in feeds if feed.id == feed_id]
        return await self.poller.poll_once(feeds)

    async def get_info(self) -> Dict:
        from . import __version__

        feeds = await self.store.list_feeds()
        articles = await self.store.list_all_articles()
        return {
            "version": __version__,
            "data_dir": str(self.data_dir),
            "log_level": self.config.log_level,
            "total_feeds": len(feeds),
            "cached_articles": len(articles),
            "poll_interval": self.config.poll_interval,
        }

    def close(self) -> None:
        self.fetcher.close()
