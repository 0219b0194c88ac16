"""Tool handler for research.

Records one structured thinking step on the caller's session and answers with
where the agent stands: thought counters, open branches and its search and
reading progress so far. No MCP or FastMCP imports: server.py handles the MCP
wiring.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import structlog

from websift.errors import ErrorCode, WebSiftError
from websift.models.tools import ResearchInput

if TYPE_CHECKING:
    from websift.state import AppState


async def handle(
    *,
    thought: str,
    next_thought_needed: bool,
    thought_number: int,
    total_thoughts: int,
    is_revision: bool,
    revises_thought: int | None,
    branch_from_thought: int | None,
    branch_id: str | None,
    needs_more_thoughts: bool,
    state: AppState,
    session_id: str,
) -> str:
    """Handle a research tool call."""
    log = structlog.get_logger().bind(tool="research", session_id=session_id)
    log.info("handler_called", thought_number=thought_number, total_thoughts=total_thoughts)

    try:
        step = ResearchInput(
            thought=thought,
            next_thought_needed=next_thought_needed,
            thought_number=thought_number,
            total_thoughts=total_thoughts,
            is_revision=is_revision,
            revises_thought=revises_thought,
            branch_from_thought=branch_from_thought,
            branch_id=branch_id,
            needs_more_thoughts=needs_more_thoughts,
        )
    except ValueError as exc:
        raise WebSiftError(
            code=ErrorCode.INVALID_INPUT,
            message=str(exc),
            suggestion=(
                "Provide a non-empty thought, thought_number >= 1 and total_thoughts >= 1."
            ),
            recoverable=False,
        ) from exc

    sessions = state.sessions
    context = sessions.record_thought(session_id, step)

    return json.dumps(
        {
            "thought_number": step.thought_number,
            "total_thoughts": step.total_thoughts,
            "next_thought_needed": step.next_thought_needed,
            "branches": list(context.branches),
            "thought_history_length": len(context.thoughts),
            "progress": sessions.get_combined_context(session_id),
        },
        indent=2,
    )
