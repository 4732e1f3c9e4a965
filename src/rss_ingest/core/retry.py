"""Bounded retries with exponential backoff around the fetcher."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from ..config import Config
from ..errors import PollError
from .fetcher import FeedFetcher


logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base_ms: int) -> float:
    """
    Delay before the retry that follows failed attempt ``attempt``.

    Args:
        attempt: 1-based number of the attempt that just failed
        base_ms: Base backoff in milliseconds

    Returns:
        Delay in seconds (``base_ms * 2 ** (attempt - 1)`` milliseconds)
    """
    if attempt < 1:
        raise ValueError("attempt must be >= 1")
    return base_ms * (2 ** (attempt - 1)) / 1000.0


async def fetch_with_retries(
    fetcher: FeedFetcher,
    url: str,
    config: Config,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
) -> bytes:
    """
    Fetch a feed, retrying transient failures.

    The blocking request runs in a worker thread and backoff waits use
    asyncio.sleep, so only the calling task is suspended.

    Args:
        fetcher: Fetcher performing a single attempt
        url: Feed URL
        config: Supplies request_timeout, max_retries and retry_backoff_base
        sleep: Awaitable sleep used between attempts (tests override it)

    Returns:
        Response body

    Raises:
        PollError: Fatal errors immediately, the last transient error once
            retries are exhausted
    """
    sleep = sleep or asyncio.sleep
    attempt = 0

    while True:
        attempt += 1
        try:
            return await asyncio.to_thread(fetcher.fetch, url, config.request_timeout)
        except PollError as e:
            if not e.transient:
                raise
            if attempt > config.max_retries:
                logger.error(f"Giving up on {url} after {attempt} attempts: {e}")
                raise

            delay = backoff_delay(attempt, config.retry_backoff_base)
            logger.warning(f"Retrying {url} after error (attempt {attempt}, backoff {delay * 1000:.0f}ms): {e}")
            await sleep(delay)
