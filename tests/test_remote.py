"""Tests for the HTTP fetcher, content-type routing and the retry wrapper."""

from __future__ import annotations

import logging

import httpx
import pytest

from assetlink.config import NetworkSettings
from assetlink.core.retry import RetryingFetcher, is_retryable, retrying_fetcher
from assetlink.errors import (
    ConnectionFailed,
    HttpStatusError,
    InvalidUrl,
    NetworkTimeout,
    ResponseTooLarge,
    UnexpectedContentType,
)
from assetlink.manifest import RemoteKind
from assetlink.pipeline import FetchedResource, HttpFetcher
from assetlink.pipeline.remote import (
    classify_content_type,
    extension_from_content_type,
    validate_content_type,
)

LOGGER = logging.getLogger("test")


def _fetcher(handler, **kwargs) -> HttpFetcher:
    return HttpFetcher(logger=LOGGER, transport=httpx.MockTransport(handler), **kwargs)


class TestExtensionFromContentType:
    def test_known_mime(self):
        assert extension_from_content_type("image/png", "https://example.com/x") == ".png"

    def test_mime_with_charset(self):
        assert extension_from_content_type("text/css; charset=utf-8", "https://example.com/x") == ".css"

    def test_fallback_to_url_with_query(self):
        assert extension_from_content_type(None, "https://example.com/file.gif?v=1") == ".gif"

    def test_unknown_everything(self):
        assert extension_from_content_type("application/octet-stream", "https://example.com/dl") == ".bin"


class TestClassify:
    @pytest.mark.parametrize(
        "content_type,url,expected",
        [
            ("text/css", "https://x/a", RemoteKind.STYLESHEET),
            ("application/javascript; charset=utf-8", "https://x/a", RemoteKind.SCRIPT),
            ("image/webp", "https://x/a", RemoteKind.IMAGE),
            ("image/svg+xml", "https://x/a.svg", RemoteKind.FILE),
            ("font/woff2", "https://x/a", RemoteKind.FILE),
            (None, "https://x/lib.mjs", RemoteKind.SCRIPT),
            (None, "https://x/download", RemoteKind.FILE),
        ],
    )
    def test_routing(self, content_type, url, expected):
        assert classify_content_type(content_type, url) is expected

    def test_contradicting_type_is_rejected(self):
        with pytest.raises(UnexpectedContentType):
            validate_content_type("text/html", "https://x/a.css", RemoteKind.STYLESHEET)

    def test_missing_type_is_accepted(self):
        validate_content_type(None, "https://x/a", RemoteKind.IMAGE)


class TestHttpFetcher:
    def test_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["agent"] = request.headers["user-agent"]
            return httpx.Response(200, content=b"body{}", headers={"content-type": "text/css"})

        resource = _fetcher(handler, user_agent="assetlink-test").fetch("https://cdn.example.com/a.css")

        assert resource.data == b"body{}"
        assert resource.media_type == "text/css"
        assert seen["agent"] == "assetlink-test"

    def test_not_found_is_fatal(self):
        fetcher = _fetcher(lambda request: httpx.Response(404))
        with pytest.raises(HttpStatusError) as excinfo:
            fetcher.fetch("https://cdn.example.com/missing.css")
        assert excinfo.value.status_code == 404
        assert not excinfo.value.retryable

    @pytest.mark.parametrize("status", [429, 503])
    def test_server_errors_are_retryable(self, status):
        fetcher = _fetcher(lambda request: httpx.Response(status))
        with pytest.raises(HttpStatusError) as excinfo:
            fetcher.fetch("https://cdn.example.com/a.css")
        assert excinfo.value.retryable

    def test_declared_size_limit(self):
        fetcher = _fetcher(
            lambda request: httpx.Response(200, content=b"x" * 64),
            max_size_bytes=16,
        )
        with pytest.raises(ResponseTooLarge):
            fetcher.fetch("https://cdn.example.com/big.bin")

    def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(NetworkTimeout) as excinfo:
            _fetcher(handler).fetch("https://cdn.example.com/a.css")
        assert excinfo.value.retryable

    def test_connect_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ConnectionFailed):
            _fetcher(handler).fetch("https://cdn.example.com/a.css")

    def test_invalid_scheme(self):
        with pytest.raises(InvalidUrl):
            _fetcher(lambda request: httpx.Response(200)).fetch("ftp://example.com/a")

    def test_from_settings(self):
        settings = NetworkSettings(timeout_seconds=5, max_size_bytes=1024, user_agent="ua")
        fetcher = HttpFetcher.from_settings(LOGGER, settings)
        assert (fetcher.timeout, fetcher.max_size_bytes, fetcher.user_agent) == (5.0, 1024, "ua")


class FlakyFetcher:
    def __init__(self, errors):
        self.errors = list(errors)
        self.calls = 0

    def fetch(self, url, *, timeout=None):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return FetchedResource(url=url, data=b"ok", content_type="text/plain")


def _retry_settings(retries: int) -> NetworkSettings:
    return NetworkSettings(max_retries=retries, backoff_min_seconds=0, backoff_max_seconds=0)


class TestRetry:
    def test_disabled_returns_same_fetcher(self):
        flaky = FlakyFetcher([])
        assert retrying_fetcher(flaky, _retry_settings(0)) is flaky

    def test_retries_retryable_errors(self):
        flaky = FlakyFetcher([NetworkTimeout("t1"), HttpStatusError(503)])
        wrapped = retrying_fetcher(flaky, _retry_settings(3), LOGGER)
        assert isinstance(wrapped, RetryingFetcher)
        assert wrapped.fetch("https://x/a").data == b"ok"
        assert flaky.calls == 3

    def test_fatal_errors_are_not_retried(self):
        flaky = FlakyFetcher([HttpStatusError(404)])
        with pytest.raises(HttpStatusError):
            retrying_fetcher(flaky, _retry_settings(3), LOGGER).fetch("https://x/a")
        assert flaky.calls == 1

    def test_last_error_propagates(self):
        flaky = FlakyFetcher([ConnectionFailed("c1"), ConnectionFailed("c2")])
        with pytest.raises(ConnectionFailed, match="c2"):
            retrying_fetcher(flaky, _retry_settings(1), LOGGER).fetch("https://x/a")
        assert flaky.calls == 2

    def test_is_retryable(self):
        assert is_retryable(NetworkTimeout("t"))
        assert not is_retryable(InvalidUrl("u"))
        assert not is_retryable(ValueError("v"))
