"""Protocol interfaces for swappable components.

The reader and tool handlers reference these protocols, not the concrete
implementations. This allows:
- Tests to substitute extractors or converters that fail on purpose
- Other HTML extraction libraries to be plugged in without touching the reader
"""

from __future__ import annotations

from typing import Protocol


class ContentExtractor(Protocol):
    """Reduces a full HTML document to its main content. May raise."""

    def extract_main_content(self, html: str) -> str: ...


class MarkdownConverter(Protocol):
    """Converts HTML to markdown text. May raise."""

    def to_markdown(self, html: str) -> str: ...


class RobotsGateProtocol(Protocol):
    async def is_url_allowed(self, url: str) -> bool: ...


class FetcherProtocol(Protocol):
    """Interface for the HTTP page fetcher."""

    async def fetch(self, url: str, timeout_ms: int) -> str: ...
