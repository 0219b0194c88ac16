"""robots.txt gate.

Fails open everywhere: a disabled check, an unparseable URL, a missing or
unreachable robots.txt, and a rule evaluation error all allow the read. Only
an explicit disallow rule blocks it. Parsed rules are cached per hostname.
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING
from urllib.parse import urlsplit
from urllib.robotparser import RobotFileParser

import httpx
import structlog

from websift.models.cache import RobotsCacheEntry

if TYPE_CHECKING:
    from collections.abc import Callable

    from websift.config import Settings

log = structlog.get_logger()


class RobotsGate:
    """Per-domain robots.txt fetch, cache and check."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client = client
        self._settings = settings
        self._clock = clock
        self._ttl_seconds = settings.cache.robots_ttl_hours * 3600
        self._entries: dict[str, RobotsCacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def is_url_allowed(self, url: str) -> bool:
        if not self._settings.fetch.enable_robots_txt:
            return True

        try:
            parsed = urlsplit(url)
            domain = parsed.hostname
        except ValueError:
            domain = None
        if not domain:
            log.warning("robots_url_unparseable", url=url)
            return True

        cached = self._entries.get(domain)
        if cached is not None and self._clock() - cached.fetched_at <= self._ttl_seconds:
            return self._check(cached.rules, url)

        origin = f"{parsed.scheme}://{parsed.netloc}"
        robots_txt = await self._fetch_robots_txt(origin)
        if robots_txt is None:
            return True

        rules = RobotFileParser(f"{origin}/robots.txt")
        rules.parse(robots_txt.splitlines())
        self._entries[domain] = RobotsCacheEntry(
            domain=domain, rules=rules, fetched_at=self._clock()
        )
        return self._check(rules, url)

    async def _fetch_robots_txt(self, origin: str) -> str | None:
        """Return robots.txt text, or None when it cannot be fetched."""
        robots_url = f"{origin}/robots.txt"
        timeout_ms = self._settings.fetch.timeout_ms
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                response = await self._client.get(robots_url, timeout=timeout_ms / 1000)
        except (TimeoutError, httpx.TimeoutException):
            log.warning("robots_fetch_timeout", url=robots_url, timeout_ms=timeout_ms)
            return None
        except httpx.HTTPError as exc:
            log.warning("robots_fetch_error", url=robots_url, error=str(exc))
            return None

        if not response.is_success:
            log.info("robots_not_available", url=robots_url, status_code=response.status_code)
            return None

        log.debug("robots_fetched", url=robots_url)
        return response.text

    def _check(self, rules: RobotFileParser, url: str) -> bool:
        try:
            allowed = rules.can_fetch(self._settings.fetch.user_agent, url)
        except Exception as exc:
            log.warning("robots_check_error", url=url, error=str(exc))
            return True
        if not allowed:
            log.info("robots_blocked", url=url)
        return allowed
