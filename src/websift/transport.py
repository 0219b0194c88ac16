"""HTTP deployment: Streamable HTTP app behind a request guard, plus /health.

The guard answers ``GET /health`` itself so load balancers and container
health checks need neither a key nor a localhost origin. Everything else
reaches the MCP app only after the key, origin and protocol-version checks.
"""

from __future__ import annotations

import re
import secrets
from typing import TYPE_CHECKING

import structlog
import uvicorn
from starlette.datastructures import Headers
from starlette.responses import JSONResponse, Response

from websift import __version__

if TYPE_CHECKING:
    from mcp.server.fastmcp import FastMCP
    from starlette.types import ASGIApp, Receive, Scope, Send

    from websift.config import Settings

log = structlog.get_logger()

SUPPORTED_PROTOCOL_VERSIONS: frozenset[str] = frozenset(
    {"2025-11-25", "2025-06-18", "2025-03-26"}
)
HEALTH_PATH = "/health"
_LOCALHOST_ORIGIN = re.compile(r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$")
_BEARER = "Bearer "


class TransportGuardMiddleware:
    """ASGI wrapper that serves /health and screens every other HTTP request.

    Checks run in a fixed order and the first failure answers the request:
    a missing or wrong bearer key gives 401, a non-localhost ``Origin`` gives
    403, and an ``MCP-Protocol-Version`` we do not speak gives 400. A request
    without an Origin or protocol-version header is let through. Lifespan and
    websocket scopes pass straight to the wrapped app. Written against raw
    ASGI so streamed SSE bodies flow through untouched.
    """

    def __init__(
        self,
        app: ASGIApp,
        *,
        auth_enabled: bool,
        auth_key: str | None = None,
    ) -> None:
        self.app = app
        self.auth_enabled = auth_enabled
        self.auth_key = auth_key

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if scope["path"] == HEALTH_PATH and scope["method"] == "GET":
            await JSONResponse({"status": "ok", "version": __version__})(scope, receive, send)
            return

        rejection = self._screen(Headers(scope=scope))
        if rejection is not None:
            await rejection(scope, receive, send)
            return

        await self.app(scope, receive, send)

    def _screen(self, headers: Headers) -> Response | None:
        """Return the error response for the first failed check, or None."""
        if self.auth_enabled and not self._key_matches(headers.get("authorization", "")):
            return Response("Unauthorized", status_code=401)

        origin = headers.get("origin", "")
        if origin and not _LOCALHOST_ORIGIN.match(origin):
            return Response("Forbidden", status_code=403)

        version = headers.get("mcp-protocol-version", "")
        if version and version not in SUPPORTED_PROTOCOL_VERSIONS:
            return Response(f"Unsupported protocol version: {version}", status_code=400)

        return None

    def _key_matches(self, authorization: str) -> bool:
        if not self.auth_key or not authorization.startswith(_BEARER):
            return False
        return secrets.compare_digest(authorization[len(_BEARER) :], self.auth_key)


def run_http_server(mcp: FastMCP, settings: Settings) -> None:
    """Serve the MCP app over Streamable HTTP with uvicorn until interrupted."""
    server = settings.server
    http_log = log.bind(transport="http", host=server.host, port=server.port)

    auth_key = server.auth_key or None
    if not server.auth_enabled:
        http_log.warning("http_auth_disabled")
    elif auth_key is None:
        # Printed once so the operator can hand the key to clients
        auth_key = secrets.token_urlsafe(32)
        http_log.warning("http_auth_key_auto_generated", auth_key=auth_key)

    app = TransportGuardMiddleware(
        mcp.streamable_http_app(),
        auth_enabled=server.auth_enabled,
        auth_key=auth_key,
    )

    http_log.info("http_listening")
    # structlog owns all output, so uvicorn's own logging config stays off
    uvicorn.run(app, host=server.host, port=server.port, log_config=None)
