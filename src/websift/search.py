"""SearXNG search client.

Thin boundary to the search backend: one JSON API call per search, mapped
onto SearchResult models and rendered as plain text blocks for the agent.
Ranking is entirely the backend's business.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import httpx
import structlog

from websift.errors import ErrorCode, WebSiftError
from websift.models.tools import SearchResult

if TYPE_CHECKING:
    from websift.config import SearchSettings

log = structlog.get_logger()

NO_RESULTS_NOTICE = "No results found."


def format_results(results: list[SearchResult]) -> str:
    """Render results as blank-line separated blocks."""
    if not results:
        return NO_RESULTS_NOTICE
    return "\n\n".join(
        f"Title: {r.title}\nDescription: {r.content}\nURL: {r.url}\nRelevance Score: {r.score:.3f}"
        for r in results
    )


class SearchClient:
    def __init__(self, client: httpx.AsyncClient, settings: SearchSettings) -> None:
        self._client = client
        self._settings = settings

    async def search(
        self,
        query: str,
        *,
        page: int = 1,
        language: str | None = None,
        time_range: str | None = None,
        safesearch: int | None = None,
    ) -> list[SearchResult]:
        """Run a query against SearXNG. Raises WebSiftError(SEARCH_FAILED) on any failure."""
        url = f"{self._settings.searxng_url.rstrip('/')}/search"
        params: dict[str, str | int] = {"q": query, "format": "json", "pageno": page}
        if language:
            params["language"] = language
        if time_range:
            params["time_range"] = time_range
        if safesearch is not None:
            params["safesearch"] = safesearch

        auth = None
        if self._settings.auth_username:
            auth = httpx.BasicAuth(self._settings.auth_username, self._settings.auth_password)

        timeout_ms = self._settings.timeout_ms
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                response = await self._client.get(url, params=params, auth=auth)
        except (TimeoutError, httpx.TimeoutException) as exc:
            raise WebSiftError(
                code=ErrorCode.SEARCH_FAILED,
                message=f"Search timed out after {timeout_ms}ms",
                suggestion="The search backend is slow; retry shortly.",
                recoverable=True,
            ) from exc
        except httpx.HTTPError as exc:
            raise WebSiftError(
                code=ErrorCode.SEARCH_FAILED,
                message=f"Could not reach the search backend at {url}: {exc}",
                suggestion="Check that SearXNG is running and search.searxng_url is correct.",
                recoverable=True,
            ) from exc

        if not response.is_success:
            status = response.status_code
            raise WebSiftError(
                code=ErrorCode.SEARCH_FAILED,
                message=f"Search backend returned HTTP {status} {response.reason_phrase}",
                suggestion=(
                    "The search backend may be temporarily unavailable."
                    if status >= 500
                    else "Check the SearXNG credentials and that the JSON format is enabled."
                ),
                recoverable=status >= 500,
                status_code=status,
            )

        try:
            payload = response.json()
            results = [SearchResult.model_validate(row) for row in payload.get("results", [])]
        except (ValueError, AttributeError) as exc:
            raise WebSiftError(
                code=ErrorCode.SEARCH_FAILED,
                message=f"Search backend returned an unreadable response: {exc}",
                suggestion="Check that the SearXNG instance has the JSON output format enabled.",
                recoverable=False,
            ) from exc

        log.info("search_complete", query=query, page=page, result_count=len(results))
        return results[: self._settings.max_results]
