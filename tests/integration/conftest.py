"""Integration test fixtures.

Provides a fully wired AppState with a real httpx client (mocked per test via
respx), the real extraction stack and fresh in-memory caches and sessions.
Shared fixtures (settings, caches, sessions) come from tests/conftest.py.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

import httpx
import pytest

from websift.extraction import MarkdownifyConverter, ReadabilityExtractor
from websift.fetcher import Fetcher
from websift.robots import RobotsGate
from websift.search import SearchClient
from websift.state import AppState

if TYPE_CHECKING:
    from pathlib import Path

    from websift.cache import ContentCaches
    from websift.config import Settings
    from websift.session import SessionTracker


@pytest.fixture()
def subprocess_env(tmp_path: Path) -> dict[str, str]:
    """Baseline env dict for subprocess-based MCP integration tests.

    Forces stdio transport and points the search backend at a closed port so
    no test ever reaches a real network service.
    """
    env = os.environ.copy()
    env["WEBSIFT__SERVER__TRANSPORT"] = "stdio"
    env["WEBSIFT__SEARCH__SEARXNG_URL"] = "http://127.0.0.1:1"
    env["WEBSIFT__FETCH__ENABLE_ROBOTS_TXT"] = "false"
    env["WEBSIFT__LOGGING__LEVEL"] = "ERROR"
    # Keep a developer's websift.yaml in cwd from leaking into the subprocess.
    env["HOME"] = str(tmp_path)
    return env


@pytest.fixture()
async def app_state(
    settings: Settings, caches: ContentCaches, sessions: SessionTracker
) -> AppState:
    """Full AppState wired for integration tests."""
    async with httpx.AsyncClient(follow_redirects=True) as client:
        yield AppState(
            settings=settings,
            caches=caches,
            sessions=sessions,
            http_client=client,
            fetcher=Fetcher(client),
            robots=RobotsGate(client, settings),
            extractor=ReadabilityExtractor(),
            converter=MarkdownifyConverter(),
            search_client=SearchClient(client, settings.search),
        )
