"""MCP server entrypoint.

Responsibilities (and nothing more):
- Configure structlog
- Create AppState via the FastMCP lifespan context manager
- Register tools and resources
- Start the correct transport (stdio or HTTP)
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from contextlib import asynccontextmanager, suppress
from typing import TYPE_CHECKING

import structlog
from mcp.server.fastmcp import Context, FastMCP
from mcp.types import CallToolResult, LoggingLevel, TextContent

import websift.tools.read as t_read
import websift.tools.research as t_research
import websift.tools.search as t_search
from websift import __version__
from websift.cache import ContentCaches
from websift.config import Settings
from websift.errors import WebSiftError
from websift.extraction import MarkdownifyConverter, ReadabilityExtractor
from websift.fetcher import Fetcher, build_http_client
from websift.resources import USAGE_GUIDE, config_resource, status_resource
from websift.robots import RobotsGate
from websift.schedulers import run_session_sweep_scheduler
from websift.search import SearchClient
from websift.session import DEFAULT_SESSION_ID, SessionTracker
from websift.state import AppState
from websift.transport import run_http_server

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


# MCP logging/setLevel levels folded onto the four levels LoggingSettings accepts
_MCP_LOG_LEVELS: dict[str, str] = {
    "debug": "DEBUG",
    "info": "INFO",
    "notice": "INFO",
    "warning": "WARNING",
    "error": "ERROR",
    "critical": "ERROR",
    "alert": "ERROR",
    "emergency": "ERROR",
}


def _setup_logging(settings: Settings) -> None:
    """Configure structlog. Called at startup and again on logging/setLevel."""
    log_level = logging.getLevelNamesMapping()[settings.logging.level]

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.logging.format == "json":
        processors = [
            *shared_processors,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors = [*shared_processors, structlog.dev.ConsoleRenderer()]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        # Logs go to stderr; stdout is reserved for the MCP JSON-RPC stream
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        # Module-level loggers must see level changes made after startup
        cache_logger_on_first_use=False,
    )


def apply_log_level(settings: Settings, level: str) -> str:
    """Switch the log level to an MCP logging level and return the level applied."""
    applied = _MCP_LOG_LEVELS[level]
    settings.logging.level = applied  # type: ignore[assignment]
    _setup_logging(settings)
    log.info("log_level_changed", requested=level, level=applied)
    return applied


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


def build_state(settings: Settings) -> AppState:
    """Wire every shared component. The caller owns closing ``state.http_client``."""
    http_client = build_http_client(settings.fetch, settings.proxy)
    caches = ContentCaches.from_settings(settings.cache)
    return AppState(
        settings=settings,
        caches=caches,
        sessions=SessionTracker(settings.session, caches),
        http_client=http_client,
        fetcher=Fetcher(http_client),
        robots=RobotsGate(http_client, settings),
        extractor=ReadabilityExtractor(),
        converter=MarkdownifyConverter(),
        search_client=SearchClient(http_client, settings.search),
    )


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncGenerator[AppState, None]:
    """Create and tear down all shared resources for the server's lifetime."""
    settings = Settings()
    _setup_logging(settings)

    log.info(
        "server_starting",
        version=__version__,
        transport=settings.server.transport,
        searxng_url=settings.search.searxng_url,
        robots_txt=settings.fetch.enable_robots_txt,
    )

    state = build_state(settings)
    sweep_task = asyncio.create_task(run_session_sweep_scheduler(state))

    log.info("server_started", version=__version__, transport=settings.server.transport)

    try:
        yield state
    finally:
        sweep_task.cancel()
        with suppress(asyncio.CancelledError):
            await sweep_task
        if state.http_client is not None:
            await state.http_client.aclose()
        log.info("server_stopping")


# ---------------------------------------------------------------------------
# FastMCP instance, tools and resources
# ---------------------------------------------------------------------------

mcp = FastMCP("websift", lifespan=lifespan)
# FastMCP doesn't expose a version kwarg, so set it on the underlying Server
# so the MCP initialize handshake reports our version, not the SDK's.
mcp._mcp_server.version = __version__  # pyright: ignore[reportPrivateUsage]


def _serialise_tool_error(error: WebSiftError) -> CallToolResult:
    """Convert a WebSiftError to the MCP tool error result envelope."""
    return CallToolResult(
        content=[TextContent(type="text", text=json.dumps(error.to_dict()))],
        isError=True,
    )


def _session_id(ctx: Context) -> str:
    """Session from the request ``_meta.sessionId``, then the HTTP session header."""
    request_context = ctx.request_context
    meta = request_context.meta
    session_id = getattr(meta, "sessionId", None) if meta is not None else None
    if not session_id:
        request = getattr(request_context, "request", None)
        headers = getattr(request, "headers", None)
        if headers is not None:
            session_id = headers.get("mcp-session-id")
    if isinstance(session_id, str) and session_id:
        return session_id
    return DEFAULT_SESSION_ID


@mcp.tool()
async def search(
    query: str,
    ctx: Context,
    page: int = 1,
    language: str | None = None,
    time_range: str | None = None,
    safesearch: int | None = None,
) -> object:
    """Search the web and return ranked results with titles, snippets and URLs.

    Replies start with your search progress and point out queries that look
    like ones you already ran. Use the read tool on promising URLs.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_search.handle(
            query=query,
            page=page,
            language=language,
            time_range=time_range,
            safesearch=safesearch,
            state=state,
            session_id=_session_id(ctx),
        )
    except WebSiftError as exc:
        log.warning(
            "tool_error",
            tool="search",
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="search", exc_info=True)
        raise


@mcp.tool()
async def read(
    ctx: Context,
    url: str | None = None,
    urls: list[str] | None = None,
    start_char: int = 0,
    max_length: int | None = None,
    section: str | None = None,
    paragraph_range: str | None = None,
    read_headings: bool = False,
    timeout_ms: int | None = None,
) -> object:
    """Read a web page (url) or several pages at once (urls) as markdown.

    Narrow long pages with read_headings (heading list only), section (content
    under a matching heading), paragraph_range ("3", "2-5", "4-") and a
    start_char/max_length character window, applied in that order. Truncated
    replies tell you the start_char to continue from.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_read.handle(
            url=url,
            urls=urls,
            start_char=start_char,
            max_length=max_length,
            section=section,
            paragraph_range=paragraph_range,
            read_headings=read_headings,
            timeout_ms=timeout_ms,
            state=state,
            session_id=_session_id(ctx),
        )
    except WebSiftError as exc:
        log.warning(
            "tool_error",
            tool="read",
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="read", exc_info=True)
        raise


@mcp.tool()
async def research(
    thought: str,
    next_thought_needed: bool,
    thought_number: int,
    total_thoughts: int,
    ctx: Context,
    is_revision: bool = False,
    revises_thought: int | None = None,
    branch_from_thought: int | None = None,
    branch_id: str | None = None,
    needs_more_thoughts: bool = False,
) -> object:
    """Plan a search and read session one structured thinking step at a time.

    Your own knowledge may be out of date, so look things up. Start with a broad
    search for an overview, narrow down from what the results show, then read
    pages for detail. Search again when the information is still thin, and stop
    as soon as it is enough. Never invent facts the sources do not support. Use
    is_revision/revises_thought to reconsider an earlier step and
    branch_from_thought/branch_id to explore an alternative.
    """
    state: AppState = ctx.request_context.lifespan_context
    try:
        return await t_research.handle(
            thought=thought,
            next_thought_needed=next_thought_needed,
            thought_number=thought_number,
            total_thoughts=total_thoughts,
            is_revision=is_revision,
            revises_thought=revises_thought,
            branch_from_thought=branch_from_thought,
            branch_id=branch_id,
            needs_more_thoughts=needs_more_thoughts,
            state=state,
            session_id=_session_id(ctx),
        )
    except WebSiftError as exc:
        log.warning(
            "tool_error",
            tool="research",
            code=exc.code,
            message=exc.message,
            recoverable=exc.recoverable,
        )
        return _serialise_tool_error(exc)
    except Exception:
        log.error("tool_unexpected_error", tool="research", exc_info=True)
        raise


@mcp.resource("config://server-config", mime_type="application/json")
def server_config() -> str:
    """Current server configuration (credentials masked)."""
    state: AppState = mcp.get_context().request_context.lifespan_context
    return config_resource(state.settings)


@mcp.resource("stats://server-status", mime_type="application/json")
def server_status() -> str:
    """Cache fill levels, active sessions and the calling session's counters."""
    ctx = mcp.get_context()
    state: AppState = ctx.request_context.lifespan_context
    return status_resource(state, _session_id(ctx))


@mcp.resource("help://usage-guide", mime_type="text/markdown")
def usage_guide() -> str:
    """How to use the search and read tools effectively."""
    return USAGE_GUIDE


@mcp._mcp_server.set_logging_level()  # pyright: ignore[reportPrivateUsage]
async def set_logging_level(level: LoggingLevel) -> None:
    """Handle logging/setLevel: FastMCP has no public hook for it."""
    state: AppState = mcp.get_context().request_context.lifespan_context
    apply_log_level(state.settings, level)


# ---------------------------------------------------------------------------
# Entrypoint
# ---------------------------------------------------------------------------


def main() -> None:
    settings = Settings()

    if settings.server.transport == "http":
        _setup_logging(settings)
        run_http_server(mcp, settings)
        return

    mcp.run()


if __name__ == "__main__":
    main()
