"""Per-session bookkeeping of searches and page reads.

Each session remembers round counters and short recency lists of queries and
URLs so replies can tell the agent what it has already looked up. Sessions
hold identifiers only; the cached content itself lives in the shared
ContentCaches and is never owned or cleared by a session.

Recency lists are front-insert-if-absent: repeating a query or URL does not
move it, and overflow drops from the back. The research tool's thinking steps
are kept on the same context, so a reset or sweep drops them too.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

    from websift.cache import ContentCaches
    from websift.config import SessionSettings
    from websift.models.tools import ResearchInput

log = structlog.get_logger()

DEFAULT_SESSION_ID = "default"

_MAX_QUERY_CHARS = 100
_SEARCH_CONTEXT_ITEMS = 5
_READ_CONTEXT_ITEMS = 3
_SIMILARITY_CANDIDATES = 3
_SIMILARITY_THRESHOLD = 0.6


def normalize_query(query: str) -> str:
    """Lowercase, trim and cap a query; also the search cache key."""
    return query.lower().strip()[:_MAX_QUERY_CHARS]


def word_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the whitespace-separated words of ``a`` and ``b``."""
    s1, s2 = a.lower(), b.lower()
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0
    words1, words2 = set(s1.split()), set(s2.split())
    union = words1 | words2
    if not union:
        return 0.0
    return len(words1 & words2) / len(union)


def _push_front_if_absent(items: list[str], value: str, limit: int) -> None:
    if value in items:
        return
    items.insert(0, value)
    del items[limit:]


@dataclass
class SessionContext:
    session_id: str
    session_start_time: float
    search_round: int = 0
    url_read_round: int = 0
    total_searches: int = 0
    total_urls_read: int = 0
    searched_queries: list[str] = field(default_factory=list)  # Newest first
    read_urls: list[str] = field(default_factory=list)  # Newest first
    thoughts: list[ResearchInput] = field(default_factory=list)  # Oldest first
    branches: dict[str, list[ResearchInput]] = field(default_factory=dict)


class SessionTracker:
    """Owns every SessionContext; creates them lazily on first access."""

    def __init__(
        self,
        settings: SessionSettings,
        caches: ContentCaches,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._caches = caches
        self._clock = clock
        self._sessions: dict[str, SessionContext] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def get(self, session_id: str) -> SessionContext:
        context = self._sessions.get(session_id)
        if context is None:
            context = SessionContext(session_id=session_id, session_start_time=self._clock())
            self._sessions[session_id] = context
            log.debug("session_created", session_id=session_id)
        return context

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def increment_search_round(self, session_id: str) -> None:
        self.get(session_id).search_round += 1

    def increment_url_read_round(self, session_id: str) -> None:
        self.get(session_id).url_read_round += 1

    def record_search(self, session_id: str, query: str) -> None:
        context = self.get(session_id)
        context.total_searches += 1
        _push_front_if_absent(
            context.searched_queries,
            normalize_query(query),
            self._settings.max_tracked_queries,
        )

    def record_url_read(self, session_id: str, url: str) -> None:
        context = self.get(session_id)
        context.total_urls_read += 1
        _push_front_if_absent(context.read_urls, url, self._settings.max_tracked_urls)

    def record_thought(self, session_id: str, step: ResearchInput) -> SessionContext:
        context = self.get(session_id)
        context.thoughts.append(step)
        if step.branch_from_thought is not None and step.branch_id is not None:
            context.branches.setdefault(step.branch_id, []).append(step)
        return context

    def cache_search_results(self, query: str, results: str) -> None:
        self._caches.search.set(normalize_query(query), results)

    def get_cached_search(self, query: str) -> str | None:
        return self._caches.search.get(normalize_query(query))

    # ------------------------------------------------------------------
    # Progress summaries
    # ------------------------------------------------------------------

    def get_search_context(self, session_id: str) -> str:
        context = self.get(session_id)
        text = (
            f"[Search progress] round {context.search_round}, "
            f"{context.total_searches} searches completed"
        )
        queries = context.searched_queries
        if queries:
            text += "\n[Searched] " + "; ".join(queries[:_SEARCH_CONTEXT_ITEMS])
            if len(queries) > _SEARCH_CONTEXT_ITEMS:
                text += f" ({len(queries)} in total)"
        return text

    def get_url_read_context(self, session_id: str) -> str:
        context = self.get(session_id)
        text = (
            f"[Reading progress] round {context.url_read_round}, "
            f"{context.total_urls_read} pages read"
        )
        urls = context.read_urls
        if urls:
            text += "\n[Read] " + "; ".join(urls[:_READ_CONTEXT_ITEMS])
            if len(urls) > _READ_CONTEXT_ITEMS:
                text += f" ({len(urls)} in total)"
        return text

    def get_combined_context(self, session_id: str) -> str:
        search = self.get_search_context(session_id)
        reads = self.get_url_read_context(session_id)
        return f"{search}\n\n{reads}"

    # ------------------------------------------------------------------
    # Repeat hints
    # ------------------------------------------------------------------

    def get_cache_hint(self, session_id: str, query: str) -> str:
        """Short hint when ``query`` overlaps an earlier search or read URL."""
        context = self.get(session_id)
        raw = query.strip()
        needle = raw.lower()
        if not needle:
            return ""

        hints: list[str] = []
        for searched in context.searched_queries:
            if searched in needle or needle in searched:
                hints.append(f'Searched a similar query before: "{searched}"')
                break
        for url in context.read_urls:
            if url in raw or raw in url:
                hints.append("Read a related page before")
                break
        return "\n".join(hints)

    def get_detailed_cache_hint(self, session_id: str, query: str) -> str:
        """Like get_cache_hint, with cached sizes and a word-similarity fallback."""
        context = self.get(session_id)
        raw = query.strip()
        needle = raw.lower()
        if not needle:
            return ""

        hints: list[str] = []
        found = False

        for searched in context.searched_queries:
            if searched in needle or needle in searched:
                hints.append(f'Cached search results: "{searched}"')
                cached = self._caches.search.get(searched)
                if cached is not None:
                    count = len(cached.split("\n\n"))
                    hints.append(f"  -> {count} results, {len(cached)} characters")
                found = True
                break

        for url in context.read_urls:
            if url in raw or raw in url:
                hints.append(f"Cached page content: {url}")
                cached = self._caches.pages.get(url)
                if cached is not None:
                    hints.append(f"  -> {len(cached)} characters")
                found = True
                break

        if not found:
            for searched in context.searched_queries[:_SIMILARITY_CANDIDATES]:
                similarity = word_similarity(needle, searched)
                if similarity > _SIMILARITY_THRESHOLD:
                    hints.append(
                        f'Related earlier search: "{searched}" '
                        f"(similarity {similarity * 100:.0f}%)"
                    )
                    break

        return "\n".join(hints)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def get_stats(self, session_id: str) -> dict[str, float | int]:
        context = self.get(session_id)
        return {
            "searches": context.total_searches,
            "urls": context.total_urls_read,
            "round": context.search_round,
            "uptime_seconds": self._clock() - context.session_start_time,
            "search_cache_size": len(self._caches.search),
            "url_cache_size": len(self._caches.pages),
        }

    def reset(self, session_id: str) -> None:
        """Forget a session's bookkeeping. The shared caches are left alone."""
        if self._sessions.pop(session_id, None) is not None:
            log.info("session_reset", session_id=session_id)

    def sweep_expired(self) -> int:
        """Delete sessions created more than ``max_age_minutes`` ago.

        Age counts from session creation, not last activity.
        """
        cutoff = self._clock() - self._settings.max_age_minutes * 60
        expired = [
            sid for sid, context in self._sessions.items() if context.session_start_time < cutoff
        ]
        for sid in expired:
            self.reset(sid)
        if expired:
            log.info("session_swept", removed=len(expired), remaining=len(self._sessions))
        return len(expired)
