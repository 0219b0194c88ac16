"""Tool handler for search.

Receives AppState, consults the shared search cache, delegates to the SearXNG
client on a miss, and returns the rendered results with a progress header.
No MCP or FastMCP imports: server.py handles the MCP wiring.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

import structlog

from websift.errors import ErrorCode, WebSiftError
from websift.models.tools import SearchInput
from websift.search import format_results

if TYPE_CHECKING:
    from websift.state import AppState


async def handle(
    *,
    query: str,
    page: int,
    language: str | None,
    time_range: str | None,
    safesearch: int | None,
    state: AppState,
    session_id: str,
) -> str:
    """Handle a search tool call."""
    log = structlog.get_logger().bind(tool="search", query=query, session_id=session_id)
    log.info("handler_called")
    started = time.perf_counter()

    try:
        validated = SearchInput(
            query=query,
            page=page,
            language=language,
            time_range=time_range,
            safesearch=safesearch,
        )
    except ValueError as exc:
        raise WebSiftError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                "Provide a non-empty query (max 500 chars), page >= 1, time_range of "
                "day/month/year and safesearch of 0, 1 or 2."
            ),
            recoverable=False,
        ) from exc

    if state.search_client is None:
        raise RuntimeError("Search client not initialized")

    sessions = state.sessions
    sessions.increment_search_round(session_id)
    hint = sessions.get_detailed_cache_hint(session_id, validated.query)

    # Only unfiltered first pages are cached; the key is the normalized query.
    cacheable = (
        validated.page == 1
        and validated.language is None
        and validated.time_range is None
        and validated.safesearch is None
    )

    cached = sessions.get_cached_search(validated.query) if cacheable else None
    if cached is not None:
        sessions.record_search(session_id, validated.query)
        elapsed = int((time.perf_counter() - started) * 1000)
        log.info("cache_hit", elapsed_ms=elapsed)
        marker = f'[Cached] results for "{validated.query}" served from search cache ({elapsed}ms)'
        return "\n\n".join(
            part for part in (sessions.get_search_context(session_id), hint, marker, cached) if part
        )

    results = await state.search_client.search(
        validated.query,
        page=validated.page,
        language=validated.language,
        time_range=validated.time_range,
        safesearch=validated.safesearch,
    )
    text = format_results(results)
    if results and cacheable:
        sessions.cache_search_results(validated.query, text)

    sessions.record_search(session_id, validated.query)
    elapsed = int((time.perf_counter() - started) * 1000)
    marker = (
        f'[New results] "{validated.query}" page {validated.page} '
        f"({len(results)} results, {elapsed}ms)"
    )
    return "\n\n".join(
        part for part in (sessions.get_search_context(session_id), hint, marker, text) if part
    )
