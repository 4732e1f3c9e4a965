"""RSS Ingest: scheduled RSS/Atom ingestion with deduplication and durable caching."""

__version__ = "0.1.0"

from .config import Config, load_config
from .core import (
    EventChannel,
    FeedDescriptor,
    FeedEntry,
    FeedFetcher,
    NewEntries,
    identity,
    parse_feed,
)
from .core.scheduler import FeedPoller, PollingScheduler, SchedulerState, spawn_scheduler
from .errors import (
    ChannelClosed,
    ErrorKind,
    FeedError,
    NetworkFailure,
    ParseFailure,
    PollError,
    SchemeRejected,
    StorageError,
    TooLarge,
)
from .services import DataStore, SeenLedger

__all__ = [
    "__version__",
    "Config",
    "load_config",
    "EventChannel",
    "FeedDescriptor",
    "FeedEntry",
    "FeedFetcher",
    "NewEntries",
    "identity",
    "parse_feed",
    "FeedPoller",
    "PollingScheduler",
    "SchedulerState",
    "spawn_scheduler",
    "ChannelClosed",
    "ErrorKind",
    "FeedError",
    "NetworkFailure",
    "ParseFailure",
    "PollError",
    "SchemeRejected",
    "StorageError",
    "TooLarge",
    "DataStore",
    "SeenLedger",
]
