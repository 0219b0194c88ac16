"""Background scheduler coroutine for session expiry."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from websift.state import AppState

log = structlog.get_logger()


async def run_session_sweep_scheduler(state: AppState) -> None:
    """Drop aged-out sessions on the configured interval, in both transports.

    The sweep itself never awaits, so it cannot hold up in-flight tool calls.
    """
    interval_seconds = state.settings.session.sweep_interval_minutes * 60

    while True:
        await asyncio.sleep(interval_seconds)
        try:
            removed = state.sessions.sweep_expired()
        except Exception:
            log.warning("session_sweep_error", exc_info=True)
            continue
        log.debug("session_sweep_complete", removed=removed, active=len(state.sessions))
