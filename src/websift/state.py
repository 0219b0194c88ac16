"""Application state container.

AppState is created once at server startup (inside the FastMCP lifespan context
manager) and injected into every tool handler via the MCP Context object. It
is the only owner of the shared caches and the session map; nothing in the
package keeps module-level mutable state.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from websift.cache import ContentCaches
    from websift.config import Settings
    from websift.protocols import (
        ContentExtractor,
        FetcherProtocol,
        MarkdownConverter,
        RobotsGateProtocol,
    )
    from websift.search import SearchClient
    from websift.session import SessionTracker


@dataclass
class AppState:
    """Holds all shared runtime state. Passed to every tool handler."""

    settings: Settings
    caches: ContentCaches
    sessions: SessionTracker

    http_client: httpx.AsyncClient | None = None
    fetcher: FetcherProtocol | None = None
    robots: RobotsGateProtocol | None = None
    extractor: ContentExtractor | None = None
    converter: MarkdownConverter | None = None
    search_client: SearchClient | None = None
