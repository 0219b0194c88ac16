"""Integration tests for the page reader: single reads and batch reads.

Network calls are mocked with respx; extraction and conversion run for real.
Tests that assert exact markdown seed the page cache directly so the result
does not depend on readability's heuristics.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import pytest
import respx
from structlog.testing import capture_logs

from websift.errors import ErrorCode, WebSiftError
from websift.pagination import PaginationOptions
from websift.reader import NO_URLS_NOTICE, read_url, read_urls

if TYPE_CHECKING:
    from websift.state import AppState

PAGE_URL = "https://docs.example.com/asyncio"

PAGE_HTML = """\
<html>
  <head><title>Async IO</title></head>
  <body>
    <nav><a href="/">Home</a></nav>
    <article>
      <h1>Async IO in Python</h1>
      <p>Asyncio is a library to write concurrent code using the async/await syntax.
      It is used as a foundation for multiple Python asynchronous frameworks that
      provide high-performance network and web-servers, database connection
      libraries and distributed task queues.</p>
      <p>The event loop is the core of every asyncio application. Event loops run
      asynchronous tasks and callbacks, perform network IO operations, and run
      subprocesses. Application developers should typically use the high-level
      asyncio functions.</p>
    </article>
  </body>
</html>
"""

SEEDED_MARKDOWN = """\
# Guide

Intro.

## Install

Run pip install.

## Usage

Import it."""

DEFAULT = PaginationOptions()


class TestReadUrl:
    @respx.mock
    async def test_cache_miss_fetches_converts_and_caches(self, app_state: AppState) -> None:
        route = respx.get(PAGE_URL).mock(return_value=httpx.Response(200, text=PAGE_HTML))

        result = await read_url(PAGE_URL, DEFAULT, app_state, "s")

        assert route.call_count == 1
        assert f"[New page] {PAGE_URL}" in result
        assert "event loop is the core" in result
        assert "<p>" not in result
        cached = app_state.caches.pages.get(PAGE_URL)
        assert cached is not None
        assert "event loop is the core" in cached

    @respx.mock(assert_all_called=False)
    async def test_cache_hit_short_circuits_network(self, app_state: AppState) -> None:
        route = respx.get(PAGE_URL).mock(return_value=httpx.Response(200, text=PAGE_HTML))
        app_state.caches.pages.set(PAGE_URL, SEEDED_MARKDOWN)

        result = await read_url(PAGE_URL, DEFAULT, app_state, "s")

        assert not route.called
        assert f"[Cached] {PAGE_URL} served from page cache" in result
        assert result.endswith(SEEDED_MARKDOWN)

    @respx.mock
    async def test_second_read_is_served_from_cache(self, app_state: AppState) -> None:
        route = respx.get(PAGE_URL).mock(return_value=httpx.Response(200, text=PAGE_HTML))

        await read_url(PAGE_URL, DEFAULT, app_state, "s")
        result = await read_url(PAGE_URL, DEFAULT, app_state, "s")

        assert route.call_count == 1
        assert "[Cached]" in result
        assert f"Cached page content: {PAGE_URL}" in result

    @respx.mock
    async def test_first_read_has_no_repeat_hint(self, app_state: AppState) -> None:
        respx.get(PAGE_URL).mock(return_value=httpx.Response(200, text=PAGE_HTML))
        result = await read_url(PAGE_URL, DEFAULT, app_state, "s")
        assert "Cached page content" not in result

    async def test_progress_header(self, app_state: AppState) -> None:
        app_state.caches.pages.set(PAGE_URL, SEEDED_MARKDOWN)
        result = await read_url(PAGE_URL, DEFAULT, app_state, "s")
        assert result.startswith(f"[Reading progress] round 1, 1 pages read\n[Read] {PAGE_URL}")

    async def test_repeat_read_logs_quick_hint(self, app_state: AppState) -> None:
        app_state.caches.pages.set(PAGE_URL, SEEDED_MARKDOWN)

        with capture_logs() as first:
            await read_url(PAGE_URL, DEFAULT, app_state, "s")
        with capture_logs() as second:
            await read_url(PAGE_URL, DEFAULT, app_state, "s")

        assert not [e for e in first if e["event"] == "repeat_read_hint"]
        hints = [e for e in second if e["event"] == "repeat_read_hint"]
        assert hints[0]["hint"] == "Read a related page before"

    async def test_pagination_options_apply_to_cached_content(self, app_state: AppState) -> None:
        app_state.caches.pages.set(PAGE_URL, SEEDED_MARKDOWN)

        headings = await read_url(
            PAGE_URL, PaginationOptions(read_headings=True), app_state, "s"
        )
        assert headings.endswith("# Guide\n## Install\n## Usage")

        section = await read_url(PAGE_URL, PaginationOptions(section="install"), app_state, "s")
        assert section.endswith("## Install\n\nRun pip install.\n")

    async def test_truncation_reports_continuation(self, app_state: AppState) -> None:
        app_state.caches.pages.set(PAGE_URL, SEEDED_MARKDOWN)

        result = await read_url(PAGE_URL, PaginationOptions(max_length=10), app_state, "s")

        remaining = len(SEEDED_MARKDOWN) - 10
        assert f"# Guide\n\nI\n\n[Truncated] {remaining} characters remain." in result
        assert "start_char=10" in result

    @respx.mock
    async def test_redirect_wrapper_is_unwrapped(self, app_state: AppState) -> None:
        route = respx.get(PAGE_URL).mock(return_value=httpx.Response(200, text=PAGE_HTML))
        wrapped = "https://search.example/url?url=https%3A%2F%2Fdocs.example.com%2Fasyncio"

        result = await read_url(wrapped, DEFAULT, app_state, "s")

        assert route.called
        assert f"[New page] {PAGE_URL}" in result
        assert app_state.caches.pages.get(PAGE_URL) is not None

    async def test_malformed_url(self, app_state: AppState) -> None:
        with pytest.raises(WebSiftError) as exc_info:
            await read_url("not-a-url", DEFAULT, app_state, "s")
        assert exc_info.value.code == ErrorCode.URL_FORMAT

    @respx.mock
    async def test_server_error_is_not_cached(self, app_state: AppState) -> None:
        respx.get(PAGE_URL).mock(return_value=httpx.Response(500, text="oops"))

        with pytest.raises(WebSiftError) as exc_info:
            await read_url(PAGE_URL, DEFAULT, app_state, "s")

        assert exc_info.value.code == ErrorCode.SERVER_ERROR
        assert exc_info.value.status_code == 500
        assert app_state.caches.pages.get(PAGE_URL) is None
        assert app_state.sessions.get("s").total_urls_read == 0

    @respx.mock
    async def test_empty_body_is_content_error(self, app_state: AppState) -> None:
        respx.get(PAGE_URL).mock(return_value=httpx.Response(200, text="   \n"))
        with pytest.raises(WebSiftError) as exc_info:
            await read_url(PAGE_URL, DEFAULT, app_state, "s")
        assert exc_info.value.code == ErrorCode.CONTENT_ERROR

    @respx.mock
    async def test_empty_conversion_warns_and_is_not_cached(self, app_state: AppState) -> None:
        html = "<html><body><script>render()</script></body></html>"
        respx.get(PAGE_URL).mock(return_value=httpx.Response(200, text=html))

        result = await read_url(PAGE_URL, DEFAULT, app_state, "s")

        assert result.startswith(f"[Empty content] {PAGE_URL}")
        assert f"returned {len(html)} characters of HTML" in result
        assert app_state.caches.pages.get(PAGE_URL) is None

    @respx.mock
    async def test_table_only_page_keeps_its_text(self, app_state: AppState) -> None:
        url = "https://data.example.com/prices"
        html = (
            "<html><body><table><tr><td>cell A value</td><td>cell B value</td></tr>"
            "</table></body></html>"
        )
        respx.get(url).mock(return_value=httpx.Response(200, text=html))

        result = await read_url(url, DEFAULT, app_state, "s")

        assert "[Empty content]" not in result
        assert "cell A value" in result
        assert "cell B value" in result
        assert app_state.caches.pages.get(url) is not None

    @respx.mock(assert_all_called=False)
    async def test_robots_disallow_blocks_read(
        self, app_state: AppState, respx_mock: respx.MockRouter
    ) -> None:
        app_state.settings.fetch.enable_robots_txt = True
        respx_mock.get("https://docs.example.com/robots.txt").mock(
            return_value=httpx.Response(200, text="User-agent: *\nDisallow: /\n")
        )
        page = respx_mock.get(PAGE_URL).mock(return_value=httpx.Response(200, text=PAGE_HTML))

        with pytest.raises(WebSiftError) as exc_info:
            await read_url(PAGE_URL, DEFAULT, app_state, "s")

        assert exc_info.value.code == ErrorCode.CONTENT_BLOCKED
        assert not page.called

    async def test_unexpected_failure_is_wrapped(self, app_state: AppState) -> None:
        class _BrokenFetcher:
            async def fetch(self, url: str, timeout_ms: int) -> str:
                raise KeyError("bug")

        app_state.fetcher = _BrokenFetcher()
        with pytest.raises(WebSiftError) as exc_info:
            await read_url(PAGE_URL, DEFAULT, app_state, "s")
        assert exc_info.value.code == ErrorCode.UNEXPECTED
        assert isinstance(exc_info.value.__cause__, KeyError)

    async def test_per_call_timeout_reaches_fetcher(self, app_state: AppState) -> None:
        seen: list[int] = []

        class _RecordingFetcher:
            async def fetch(self, url: str, timeout_ms: int) -> str:
                seen.append(timeout_ms)
                return "<p>hello there</p>"

        app_state.fetcher = _RecordingFetcher()
        await read_url(PAGE_URL, DEFAULT, app_state, "s", timeout_ms=2500)
        await read_url("https://other.example.com/", DEFAULT, app_state, "s")
        assert seen == [2500, app_state.settings.fetch.timeout_ms]


class _OverlapCounter:
    """Fake fetcher that records how many fetches overlap."""

    def __init__(self) -> None:
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self, url: str, timeout_ms: int) -> str:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return f"<p>Content of {url}</p>"


class TestReadUrls:
    async def test_empty_batch(self, app_state: AppState) -> None:
        assert await read_urls([], DEFAULT, app_state, "s") == NO_URLS_NOTICE

    @respx.mock
    async def test_failure_is_isolated(self, app_state: AppState) -> None:
        respx.get(PAGE_URL).mock(return_value=httpx.Response(200, text=PAGE_HTML))

        report = await read_urls([PAGE_URL, "not-a-url"], DEFAULT, app_state, "s")

        assert report.startswith("=== Batch read results (2 URLs, 1 succeeded, 1 failed,")
        assert f"[URL: {PAGE_URL}]\n" in report
        assert "[URL: not-a-url]\nError: Invalid URL format: not-a-url\n\n---" in report
        assert "event loop is the core" in report

    @respx.mock
    async def test_server_error_body_is_reported(self, app_state: AppState) -> None:
        respx.get(PAGE_URL).mock(return_value=httpx.Response(500, text="upstream down"))

        report = await read_urls([PAGE_URL], DEFAULT, app_state, "s")

        assert (
            f"Error: HTTP 500 Internal Server Error fetching {PAGE_URL}\n"
            "Response body: upstream down"
        ) in report

    async def test_results_keep_input_order(self, app_state: AppState) -> None:
        app_state.fetcher = _OverlapCounter()
        urls = [f"https://site{i}.example.com/" for i in range(5)]

        report = await read_urls(urls, DEFAULT, app_state, "s")

        positions = [report.index(f"[URL: {url}]") for url in urls]
        assert positions == sorted(positions)

    async def test_concurrency_is_capped(self, app_state: AppState) -> None:
        counter = _OverlapCounter()
        app_state.fetcher = counter
        app_state.settings.fetch.max_batch_concurrency = 2

        urls = [f"https://site{i}.example.com/" for i in range(6)]
        report = await read_urls(urls, DEFAULT, app_state, "s")

        assert "6 succeeded, 0 failed" in report
        assert counter.max_in_flight == 2

    async def test_zero_concurrency_is_unbounded(self, app_state: AppState) -> None:
        counter = _OverlapCounter()
        app_state.fetcher = counter
        app_state.settings.fetch.max_batch_concurrency = 0

        urls = [f"https://site{i}.example.com/" for i in range(6)]
        await read_urls(urls, DEFAULT, app_state, "s")

        assert counter.max_in_flight == 6

    async def test_batch_applies_pagination_to_each_url(self, app_state: AppState) -> None:
        app_state.caches.pages.set("https://a.example.com/", "aaaaaaaaaa")
        app_state.caches.pages.set("https://b.example.com/", "bbbbbbbbbb")

        report = await read_urls(
            ["https://a.example.com/", "https://b.example.com/"],
            PaginationOptions(start_char=2, max_length=3),
            app_state,
            "s",
        )

        assert "aaa\n\n[Truncated] 5 characters remain." in report
        assert "bbb\n\n[Truncated] 5 characters remain." in report
