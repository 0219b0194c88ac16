"""Page reading: single-URL fetch orchestration and concurrent batch reads.

A read unwraps redirect links, serves from the shared page cache when it can,
and otherwise checks robots.txt, fetches, extracts, converts, caches and
paginates. Only non-empty conversions are cached, so an empty result never
masks a later successful retry.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from websift.errors import ErrorCode, WebSiftError
from websift.extraction import convert_with_fallback, extract_with_fallback
from websift.fetcher import is_valid_url, resolve_redirect_url
from websift.pagination import paginate

if TYPE_CHECKING:
    from collections.abc import Sequence

    from websift.pagination import PaginatedText, PaginationOptions
    from websift.state import AppState

NO_URLS_NOTICE = "No URLs provided for batch reading."


@dataclass(frozen=True)
class BatchItem:
    url: str
    content: str = ""
    error: str | None = None


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _with_continuation(page: PaginatedText) -> str:
    if page.next_start is None:
        return page.text
    return (
        f"{page.text}\n\n[Truncated] {page.remaining} characters remain. "
        f"Call again with start_char={page.next_start} to continue."
    )


def _compose(*parts: str) -> str:
    return "\n\n".join(part for part in parts if part)


def _error_text(exc: WebSiftError) -> str:
    if exc.body:
        return f"{exc.message}\nResponse body: {exc.body}"
    return exc.message


def empty_content_warning(url: str, html_length: int) -> str:
    return (
        f"[Empty content] {url}\n"
        f"The page returned {html_length} characters of HTML, but no readable text "
        "remained after extraction and conversion. It may render its content with "
        "JavaScript or require a login. This result was not cached; retrying later "
        "may succeed."
    )


async def read_url(
    url: str,
    options: PaginationOptions,
    state: AppState,
    session_id: str,
    timeout_ms: int | None = None,
) -> str:
    """Read one URL and return the paginated text with a progress header.

    Raises WebSiftError for malformed URLs, robots.txt blocks, empty bodies,
    network, server and timeout failures. Anything else is wrapped as
    UNEXPECTED.
    """
    started = time.perf_counter()
    log = structlog.get_logger().bind(url=url, session_id=session_id)
    sessions = state.sessions

    sessions.increment_url_read_round(session_id)
    repeat = sessions.get_cache_hint(session_id, url)
    if repeat:
        log.info("repeat_read_hint", hint=repeat)

    resolved_url = resolve_redirect_url(url)
    hint = sessions.get_detailed_cache_hint(session_id, resolved_url)

    cached = state.caches.pages.get(resolved_url)
    if cached is not None:
        page = paginate(cached, options)
        sessions.record_url_read(session_id, resolved_url)
        elapsed = _elapsed_ms(started)
        log.info("cache_hit", resolved_url=resolved_url, length=len(page.text), elapsed_ms=elapsed)
        return _compose(
            sessions.get_url_read_context(session_id),
            hint,
            f"[Cached] {resolved_url} served from page cache ({elapsed}ms)",
            _with_continuation(page),
        )

    try:
        return await _fetch_and_convert(
            resolved_url, options, state, session_id, timeout_ms, started, hint
        )
    except WebSiftError as exc:
        log.warning("read_failed", resolved_url=resolved_url, code=exc.code, message=exc.message)
        raise
    except Exception as exc:
        log.error("read_unexpected_error", resolved_url=resolved_url, exc_info=True)
        raise WebSiftError(
            code=ErrorCode.UNEXPECTED,
            message=f"Unexpected error reading {resolved_url}: {exc}",
            suggestion="This is likely a bug; retrying the same URL will probably fail again.",
            recoverable=False,
        ) from exc


async def _fetch_and_convert(
    resolved_url: str,
    options: PaginationOptions,
    state: AppState,
    session_id: str,
    timeout_ms: int | None,
    started: float,
    hint: str,
) -> str:
    if state.fetcher is None or state.robots is None:
        raise RuntimeError("Reader components (fetcher, robots) not initialized")
    if state.extractor is None or state.converter is None:
        raise RuntimeError("Reader components (extractor, converter) not initialized")

    log = structlog.get_logger().bind(url=resolved_url, session_id=session_id)

    if not is_valid_url(resolved_url):
        raise WebSiftError(
            code=ErrorCode.URL_FORMAT,
            message=f"Invalid URL format: {resolved_url}",
            suggestion="Provide an absolute http:// or https:// URL.",
            recoverable=False,
        )

    if not await state.robots.is_url_allowed(resolved_url):
        raise WebSiftError(
            code=ErrorCode.CONTENT_BLOCKED,
            message=f"Access to {resolved_url} is blocked by the site's robots.txt policy.",
            suggestion="Pick another source for this information.",
            recoverable=False,
        )

    effective_timeout = timeout_ms or state.settings.fetch.timeout_ms
    html = await state.fetcher.fetch(resolved_url, effective_timeout)

    if not html.strip():
        raise WebSiftError(
            code=ErrorCode.CONTENT_ERROR,
            message=f"Website returned empty content: {resolved_url}",
            suggestion="The page may be generated client-side; try another source.",
            recoverable=False,
        )

    main_html = extract_with_fallback(state.extractor, html, resolved_url)
    markdown = convert_with_fallback(state.converter, main_html, resolved_url)

    if not markdown.strip():
        log.warning("empty_after_conversion", html_length=len(html))
        return empty_content_warning(resolved_url, len(html))

    state.caches.pages.set(resolved_url, markdown)

    page = paginate(markdown, options)
    state.sessions.record_url_read(session_id, resolved_url)
    elapsed = _elapsed_ms(started)
    log.info(
        "read_complete",
        markdown_length=len(markdown),
        returned_length=len(page.text),
        elapsed_ms=elapsed,
    )

    body = _with_continuation(page)
    return _compose(
        state.sessions.get_url_read_context(session_id),
        hint,
        f"[New page] {resolved_url} ({len(body)} chars, {elapsed}ms)",
        body,
    )


async def read_urls(
    urls: Sequence[str],
    options: PaginationOptions,
    state: AppState,
    session_id: str,
    timeout_ms: int | None = None,
) -> str:
    """Read every URL concurrently and render one report.

    A failing URL is reported in place and never aborts its siblings. At most
    ``fetch.max_batch_concurrency`` reads are in flight at once (0 = no cap).
    """
    if not urls:
        return NO_URLS_NOTICE

    started = time.perf_counter()
    log = structlog.get_logger().bind(session_id=session_id)
    limit = state.settings.fetch.max_batch_concurrency
    log.info("batch_started", url_count=len(urls), concurrency=limit or "unbounded")

    semaphore = asyncio.Semaphore(limit) if limit > 0 else None

    async def _read_one(url: str) -> BatchItem:
        guard = semaphore if semaphore is not None else contextlib.nullcontext()
        try:
            async with guard:
                content = await read_url(url, options, state, session_id, timeout_ms)
        except WebSiftError as exc:
            return BatchItem(url=url, error=_error_text(exc))
        return BatchItem(url=url, content=content)

    items = await asyncio.gather(*(_read_one(url) for url in urls))

    failed = sum(1 for item in items if item.error is not None)
    succeeded = len(items) - failed
    elapsed = _elapsed_ms(started)
    log.info("batch_complete", succeeded=succeeded, failed=failed, elapsed_ms=elapsed)

    sections = [
        f"=== Batch read results ({len(items)} URLs, {succeeded} succeeded, "
        f"{failed} failed, {elapsed}ms) ==="
    ]
    for item in items:
        if item.error is not None:
            sections.append(f"[URL: {item.url}]\nError: {item.error}\n\n---")
        else:
            sections.append(f"[URL: {item.url}]\n{item.content}\n\n---")
    return "\n\n".join(sections) + "\n"
