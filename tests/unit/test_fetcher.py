"""Unit tests for the network fetcher."""

from unittest.mock import MagicMock

import pytest
import requests

from rss_ingest.core.fetcher import FeedFetcher, check_url
from rss_ingest.errors import ErrorKind, NetworkFailure, SchemeRejected, TooLarge


URL = "https://example.com/feed.xml"


def _response(chunks, headers=None, url=URL):
    response = MagicMock()
    response.__enter__.return_value = response
    response.__exit__.return_value = False
    response.url = url
    response.headers = headers or {}
    response.iter_content.return_value = iter(chunks)
    response.raise_for_status = MagicMock()
    return response


def _fetcher(response=None, side_effect=None, **kwargs):
    session = MagicMock()
    if side_effect is not None:
        session.get.side_effect = side_effect
    else:
        session.get.return_value = response
    return FeedFetcher(session=session, **kwargs), session


class TestSchemePolicy:
    """Tests for the https-only policy and its loopback exception."""

    def test_https_is_accepted(self):
        check_url("https://example.com/feed")

    def test_http_remote_host_is_rejected(self):
        with pytest.raises(SchemeRejected):
            check_url("http://example.com/feed", allow_loopback_http=True)

    @pytest.mark.parametrize("url", [
        "http://localhost:8080/feed",
        "http://127.0.0.1/feed",
        "http://[::1]:9000/feed",
    ])
    def test_http_loopback_accepted_in_dev_mode(self, url):
        check_url(url, allow_loopback_http=True)

    def test_http_loopback_rejected_without_dev_mode(self):
        with pytest.raises(SchemeRejected):
            check_url("http://localhost/feed")

    @pytest.mark.parametrize("url", ["ftp://example.com/feed", "file:///etc/passwd", "not a url", ""])
    def test_other_schemes_and_garbage_rejected(self, url):
        with pytest.raises(SchemeRejected):
            check_url(url, allow_loopback_http=True)

    def test_rejection_happens_before_network_io(self):
        fetcher, session = _fetcher(_response([b"x"]))

        with pytest.raises(SchemeRejected) as exc_info:
            fetcher.fetch("http://example.com/feed", timeout=5)

        session.get.assert_not_called()
        assert exc_info.value.kind is ErrorKind.SCHEME_REJECTED
        assert not exc_info.value.transient

    def test_insecure_redirect_target_rejected(self):
        fetcher, _ = _fetcher(_response([b"x"], url="http://example.com/feed.xml"))

        with pytest.raises(SchemeRejected):
            fetcher.fetch(URL, timeout=5)


class TestFetch:
    """Tests for streaming retrieval and the size ceiling."""

    def test_returns_streamed_body(self):
        fetcher, session = _fetcher(_response([b"<rss>", b"", b"</rss>"]))

        assert fetcher.fetch(URL, timeout=3) == b"<rss></rss>"
        session.get.assert_called_once_with(URL, timeout=3, stream=True)

    def test_declared_length_over_limit_fails_without_reading(self):
        response = _response([b"x" * 10], headers={"Content-Length": "2048"})
        fetcher, _ = _fetcher(response, max_bytes=1024)

        with pytest.raises(TooLarge) as exc_info:
            fetcher.fetch(URL, timeout=3)

        response.iter_content.assert_not_called()
        assert exc_info.value.size == 2048
        assert exc_info.value.limit == 1024

    def test_streamed_body_over_limit_fails(self):
        chunks = [b"a" * 400, b"b" * 400, b"c" * 400]
        fetcher, _ = _fetcher(_response(chunks), max_bytes=1000)

        with pytest.raises(TooLarge) as exc_info:
            fetcher.fetch(URL, timeout=3)

        assert exc_info.value.size == 1200

    def test_lying_content_length_is_caught_mid_stream(self):
        response = _response([b"a" * 600, b"b" * 600], headers={"Content-Length": "10"})
        fetcher, _ = _fetcher(response, max_bytes=1000)

        with pytest.raises(TooLarge):
            fetcher.fetch(URL, timeout=3)

    def test_body_exactly_at_limit_is_accepted(self):
        fetcher, _ = _fetcher(_response([b"a" * 500, b"b" * 500]), max_bytes=1000)

        assert len(fetcher.fetch(URL, timeout=3)) == 1000

    def test_invalid_content_length_is_ignored(self):
        fetcher, _ = _fetcher(_response([b"ok"], headers={"Content-Length": "abc"}))

        assert fetcher.fetch(URL, timeout=3) == b"ok"

    def test_timeout_is_transient_network_failure(self):
        fetcher, _ = _fetcher(side_effect=requests.Timeout("slow"))

        with pytest.raises(NetworkFailure) as exc_info:
            fetcher.fetch(URL, timeout=3)

        assert exc_info.value.transient
        assert isinstance(exc_info.value.__cause__, requests.Timeout)

    def test_connection_error_is_network_failure(self):
        fetcher, _ = _fetcher(side_effect=requests.ConnectionError("refused"))

        with pytest.raises(NetworkFailure):
            fetcher.fetch(URL, timeout=3)

    def test_http_error_status_is_network_failure(self):
        response = _response([b""])
        response.raise_for_status.side_effect = requests.HTTPError("503 Server Error")
        fetcher, _ = _fetcher(response)

        with pytest.raises(NetworkFailure) as exc_info:
            fetcher.fetch(URL, timeout=3)

        assert "503" in str(exc_info.value)

    def test_broken_stream_is_network_failure(self):
        response = _response([])
        response.iter_content.side_effect = requests.exceptions.ChunkedEncodingError("broken")
        fetcher, _ = _fetcher(response)

        with pytest.raises(NetworkFailure):
            fetcher.fetch(URL, timeout=3)

    def test_default_session_sets_user_agent(self):
        fetcher = FeedFetcher(user_agent="Agent/1.0")
        try:
            assert fetcher.session.headers["User-Agent"] == "Agent/1.0"
        finally:
            fetcher.close()
