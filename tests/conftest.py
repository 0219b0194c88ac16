"""Shared test fixtures for the websift test suite."""

from __future__ import annotations

import os

import pytest

from websift.cache import ContentCaches
from websift.config import Settings
from websift.session import SessionTracker


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def isolated_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Hide WEBSIFT__ env vars and any websift.yaml from Settings()."""
    for name in list(os.environ):
        if name.upper().startswith("WEBSIFT__"):
            monkeypatch.delenv(name)
    monkeypatch.setitem(Settings.model_config, "yaml_file", None)


@pytest.fixture()
def settings(isolated_config: None) -> Settings:
    """Default settings, isolated from any websift.yaml or WEBSIFT__ env vars."""
    return Settings(
        fetch={"enable_robots_txt": False, "timeout_ms": 5000},
        search={"searxng_url": "https://searx.test"},
    )


@pytest.fixture()
def caches(settings: Settings) -> ContentCaches:
    return ContentCaches.from_settings(settings.cache)


@pytest.fixture()
def sessions(settings: Settings, caches: ContentCaches, clock: FakeClock) -> SessionTracker:
    return SessionTracker(settings.session, caches, clock=clock)
