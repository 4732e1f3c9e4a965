"""Policy-enforced, size-capped HTTP retrieval of raw feed bytes."""

import logging
from typing import Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config import MAX_FEED_BYTES
from ..errors import NetworkFailure, SchemeRejected, TooLarge


logger = logging.getLogger(__name__)

LOOPBACK_HOSTS = frozenset({"localhost", "127.0.0.1", "::1"})
CHUNK_SIZE = 64 * 1024
DEFAULT_USER_AGENT = "RSS-Ingest/0.1.0 (RSS feed ingestion)"


def check_url(url: str, allow_loopback_http: bool = False) -> None:
    """
    Enforce the transport policy on a feed URL without touching the network.

    Only https is accepted, except plain http to a loopback host when
    loopback mode is enabled.

    Args:
        url: Feed URL
        allow_loopback_http: Accept http://localhost style URLs

    Raises:
        SchemeRejected: If the URL is malformed or not allowed
    """
    try:
        parsed = urlparse(url)
        host = parsed.hostname
    except ValueError as e:
        raise SchemeRejected(f"invalid feed url: {url}", url=url) from e

    if not parsed.scheme or not host:
        raise SchemeRejected(f"invalid feed url: {url}", url=url)

    scheme = parsed.scheme.lower()
    if scheme == "https":
        return
    if scheme == "http" and allow_loopback_http and host.lower() in LOOPBACK_HOSTS:
        return

    raise SchemeRejected(f"unsupported URL scheme '{scheme}' (https required): {url}", url=url)


class FeedFetcher:
    """Fetches feed documents over HTTPS with a streaming size ceiling."""

    def __init__(
        self,
        *,
        max_bytes: int = MAX_FEED_BYTES,
        allow_loopback_http: bool = False,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the fetcher.

        Args:
            max_bytes: Body size ceiling in bytes
            allow_loopback_http: Accept plain http to loopback hosts (tests/dev)
            user_agent: User-Agent header sent with every request
            session: Optional preconfigured session
        """
        self.max_bytes = max_bytes
        self.allow_loopback_http = allow_loopback_http
        self.session = session or self._create_session(user_agent)

    def _create_session(self, user_agent: str) -> requests.Session:
        """Create HTTP session; retries are owned by the retry controller."""
        session = requests.Session()

        adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({
            'User-Agent': user_agent,
            'Accept': 'application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8',
        })

        return session

    def fetch(self, url: str, timeout: float) -> bytes:
        """
        Fetch the raw bytes of a feed.

        Args:
            url: Feed URL
            timeout: Per-request timeout in seconds

        Returns:
            Response body

        Raises:
            SchemeRejected: If the URL violates the transport policy
            TooLarge: If the declared or streamed size exceeds the ceiling
            NetworkFailure: On connection, timeout or HTTP status errors
        """
        check_url(url, self.allow_loopback_http)

        try:
            with self.session.get(url, timeout=timeout, stream=True) as response:
                if response.url and response.url != url:
                    # Redirect targets obey the same policy
                    check_url(response.url, self.allow_loopback_http)

                response.raise_for_status()

                declared = self._declared_length(response)
                if declared is not None and declared > self.max_bytes:
                    raise TooLarge(declared, self.max_bytes, url=url)

                buffer = bytearray()
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if not chunk:
                        continue
                    if len(buffer) + len(chunk) > self.max_bytes:
                        raise TooLarge(len(buffer) + len(chunk), self.max_bytes, url=url)
                    buffer.extend(chunk)

        except requests.Timeout as e:
            raise NetworkFailure(f"timeout fetching {url}: {e}", url=url) from e
        except requests.HTTPError as e:
            raise NetworkFailure(f"HTTP error fetching {url}: {e}", url=url) from e
        except requests.RequestException as e:
            raise NetworkFailure(f"network error fetching {url}: {e}", url=url) from e

        logger.debug(f"Fetched {len(buffer)} bytes from {url}")
        return bytes(buffer)

    @staticmethod
    def _declared_length(response: requests.Response) -> Optional[int]:
        value = response.headers.get("Content-Length")
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    def close(self) -> None:
        self.session.close()
