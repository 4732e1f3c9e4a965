"""Error taxonomy for the ingestion pipeline."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced by the pipeline."""

    SCHEME_REJECTED = "scheme_rejected"
    TOO_LARGE = "too_large"
    NETWORK_FAILURE = "network_failure"
    PARSE_FAILURE = "parse_failure"
    CHANNEL_CLOSED = "channel_closed"


class PollError(Exception):
    """Base class for every pipeline error."""

    kind: ErrorKind
    transient: bool = False


class FeedError(PollError):
    """An error scoped to a single feed; contained by the scheduler."""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message)
        self.url = url


class SchemeRejected(FeedError):
    """The feed URL uses a non-secure scheme outside the loopback exception."""

    kind = ErrorKind.SCHEME_REJECTED


class TooLarge(FeedError):
    """The declared or actual body size exceeds the configured ceiling."""

    kind = ErrorKind.TOO_LARGE

    def __init__(self, size: int, limit: int, url: Optional[str] = None):
        super().__init__(f"feed too large: {size} bytes (limit {limit})", url=url)
        self.size = size
        self.limit = limit


class NetworkFailure(FeedError):
    """Connection, timeout or HTTP status failure. Retryable."""

    kind = ErrorKind.NETWORK_FAILURE
    transient = True


class ParseFailure(FeedError):
    """Neither the RSS nor the Atom decoder accepted the document."""

    kind = ErrorKind.PARSE_FAILURE


class ChannelClosed(PollError):
    """The event channel was closed while the producer was still running."""

    kind = ErrorKind.CHANNEL_CLOSED

    def __init__(self, message: str = "update channel closed unexpectedly"):
        super().__init__(message)


class StorageError(IOError):
    """Persistent storage could not be written."""
