"""Tool handler for read.

Validates the arguments, turns them into a single or batch fetch request and
delegates to the reader. No MCP or FastMCP imports: server.py handles the
MCP wiring.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from websift.errors import ErrorCode, WebSiftError
from websift.models.tools import BatchFetch, ReadUrlInput, SingleFetch
from websift.reader import read_url, read_urls

if TYPE_CHECKING:
    from websift.state import AppState


async def handle(
    *,
    url: str | None,
    urls: list[str] | None,
    start_char: int,
    max_length: int | None,
    section: str | None,
    paragraph_range: str | None,
    read_headings: bool,
    timeout_ms: int | None,
    state: AppState,
    session_id: str,
) -> str:
    """Handle a read tool call."""
    log = structlog.get_logger().bind(tool="read", session_id=session_id)
    log.info("handler_called", url=url, url_count=len(urls) if urls is not None else None)

    try:
        validated = ReadUrlInput(
            url=url,
            urls=urls,
            start_char=start_char,
            max_length=max_length,
            section=section,
            paragraph_range=paragraph_range,
            read_headings=read_headings,
            timeout_ms=timeout_ms,
        )
    except ValueError as exc:
        raise WebSiftError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                "Provide 'url' or 'urls', start_char >= 0, max_length >= 1, "
                "and paragraph_range like '3', '2-5' or '4-'."
            ),
            recoverable=False,
        ) from exc

    min_timeout = state.settings.fetch.min_timeout_ms
    if validated.timeout_ms is not None and validated.timeout_ms < min_timeout:
        raise WebSiftError(
            code=ErrorCode.INVALID_INPUT,
            message=f"timeout_ms must be >= {min_timeout}",
            suggestion=f"Omit timeout_ms or pass a value of at least {min_timeout}.",
            recoverable=False,
        )

    options = validated.pagination_options()
    match validated.to_request():
        case SingleFetch(url=single):
            return await read_url(single, options, state, session_id, validated.timeout_ms)
        case BatchFetch(urls=batch):
            return await read_urls(batch, options, state, session_id, validated.timeout_ms)
