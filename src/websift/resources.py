"""MCP resources: effective configuration, runtime status and usage guide."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from websift import __version__

if TYPE_CHECKING:
    from websift.config import Settings
    from websift.state import AppState

USAGE_GUIDE = """\
# WebSift usage guide

## search
Run a web search through SearXNG.

- `query` (required): search terms.
- `page`: result page, starting at 1.
- `language`, `time_range` (`day`, `month`, `year`), `safesearch` (0, 1, 2).

Unfiltered first pages are cached for the whole server, so repeating a query
is cheap. Replies start with your search progress and flag queries that look
like earlier ones.

## read
Read one page (`url`) or several at once (`urls`) as markdown.

Narrow the content with these options, applied in this order:

1. `read_headings: true` returns only the heading lines. Start here on long pages.
2. `section`: the part under the first heading containing this text.
3. `paragraph_range`: `"3"`, `"2-5"` or `"4-"` (1-based, blank-line separated).
4. `start_char` / `max_length`: a character window. Truncated replies say which
   `start_char` to use next.

Pages are cached after the first successful read, so paging through a long
document costs one network fetch. `timeout_ms` overrides the fetch deadline.
In a batch, a failing URL is reported in place and never hides the others.

## research
Think in numbered steps before and between searches and reads. Each call
records one `thought` with `thought_number`, `total_thoughts` and
`next_thought_needed`; revise an earlier step with `is_revision` and
`revises_thought`, or branch with `branch_from_thought` and `branch_id`. The
reply echoes your counters, open branches and search and reading progress.

The `stats://server-status` resource shows cache fill levels and your session
counters.
"""


def config_resource(settings: Settings) -> str:
    """Effective settings as JSON with credentials masked."""
    return json.dumps({"version": __version__, "settings": settings.masked_dump()}, indent=2)


def status_resource(state: AppState, session_id: str) -> str:
    """Cache fill levels, active session count and one session's counters as JSON."""
    status: dict = {
        "version": __version__,
        "caches": {
            "search": state.caches.search.status(),
            "pages": state.caches.pages.status(),
        },
        "sessions": {
            "active": len(state.sessions),
            "current": {"session_id": session_id, **state.sessions.get_stats(session_id)},
        },
    }
    if state.robots is not None:
        status["robots"] = {"cached_domains": len(state.robots)}
    return json.dumps(status, indent=2)
