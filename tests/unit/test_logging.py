"""Unit tests for structlog setup and the logging/setLevel handler."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
import structlog
from structlog.testing import capture_logs

from websift.server import apply_log_level

if TYPE_CHECKING:
    from collections.abc import Iterator

    from websift.config import Settings


@pytest.fixture(autouse=True)
def _restore_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.mark.parametrize(
    ("requested", "applied"),
    [
        ("debug", "DEBUG"),
        ("info", "INFO"),
        ("notice", "INFO"),
        ("warning", "WARNING"),
        ("error", "ERROR"),
        ("critical", "ERROR"),
        ("emergency", "ERROR"),
    ],
)
def test_mcp_levels_map_onto_settings(settings: Settings, requested: str, applied: str) -> None:
    assert apply_log_level(settings, requested) == applied
    assert settings.logging.level == applied


def test_raised_level_filters_module_loggers(settings: Settings) -> None:
    module_log = structlog.get_logger()
    module_log.info("warm_up")

    apply_log_level(settings, "warning")
    with capture_logs() as logs:
        module_log.info("dropped")
        module_log.warning("kept")

    assert [entry["event"] for entry in logs] == ["kept"]


def test_lowered_level_lets_debug_through(settings: Settings) -> None:
    apply_log_level(settings, "error")
    apply_log_level(settings, "debug")
    with capture_logs() as logs:
        structlog.get_logger().debug("visible")
    assert [entry["event"] for entry in logs] == ["visible"]
