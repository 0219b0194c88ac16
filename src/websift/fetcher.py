"""HTTP page fetcher.

All network I/O for reading pages goes through a single Fetcher instance
shared across tool calls. The Fetcher receives an httpx.AsyncClient via
constructor injection; the lifespan owns the client lifecycle.

Each fetch runs under its own deadline; hitting it cancels only that request.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urljoin, urlsplit

import httpx
import structlog

from websift.errors import ErrorCode, WebSiftError

if TYPE_CHECKING:
    from websift.config import FetchSettings, ProxySettings

log = structlog.get_logger()

_MAX_ERROR_BODY_CHARS = 500


def build_http_client(fetch: FetchSettings, proxy: ProxySettings) -> httpx.AsyncClient:
    """Create the shared httpx client. Called once at startup."""
    mounts: dict[str, httpx.AsyncBaseTransport | None] = {}
    if proxy.http_proxy:
        mounts["http://"] = httpx.AsyncHTTPTransport(proxy=proxy.http_proxy)
    if proxy.https_proxy:
        mounts["https://"] = httpx.AsyncHTTPTransport(proxy=proxy.https_proxy)
    if mounts:
        # A None mount routes the host through the client's default (direct) transport.
        for host in proxy.no_proxy_hosts():
            mounts[f"all://{host}"] = None

    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(fetch.timeout_ms / 1000),
        headers={"User-Agent": fetch.user_agent},
        mounts=mounts or None,
        limits=httpx.Limits(
            max_connections=20,
            max_keepalive_connections=10,
        ),
    )


def resolve_redirect_url(url: str) -> str:
    """Unwrap search-engine redirect links carrying the target in a ``url`` query parameter.

    Relative targets are resolved against the wrapper's origin. Anything that
    cannot be parsed is returned unchanged.
    """
    try:
        parsed = urlsplit(url)
        targets = parse_qs(parsed.query).get("url")
    except ValueError:
        return url

    if not targets or not targets[0]:
        return url

    target = targets[0]
    if not target.startswith(("http://", "https://")):
        target = urljoin(f"{parsed.scheme}://{parsed.netloc}", target)

    log.info("redirect_resolved", url=url, resolved_url=target)
    return target


def is_valid_url(url: str) -> bool:
    """True for absolute http(s) URLs with a host."""
    try:
        parsed = urlsplit(url)
        return parsed.scheme in ("http", "https") and bool(parsed.hostname)
    except ValueError:
        return False


def timeout_error(url: str, timeout_ms: int) -> WebSiftError:
    return WebSiftError(
        code=ErrorCode.TIMEOUT,
        message=f"Timed out after {timeout_ms}ms fetching {url}",
        suggestion="The site may be slow; retry with a larger timeout_ms.",
        recoverable=True,
    )


class Fetcher:
    """HTTP page fetcher with per-request deadlines."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def fetch(self, url: str, timeout_ms: int) -> str:
        """Fetch a URL and return the response body text.

        Raises WebSiftError with TIMEOUT when the deadline passes, NETWORK_ERROR
        on transport failures and SERVER_ERROR on non-2xx responses.
        """
        try:
            async with asyncio.timeout(timeout_ms / 1000):
                response = await self._client.get(url, timeout=timeout_ms / 1000)
        except TimeoutError as exc:
            raise timeout_error(url, timeout_ms) from exc
        except httpx.TimeoutException as exc:
            raise timeout_error(url, timeout_ms) from exc
        except httpx.HTTPError as exc:
            raise WebSiftError(
                code=ErrorCode.NETWORK_ERROR,
                message=f"Network error fetching {url}: {exc}",
                suggestion="Check the URL and your network or proxy settings.",
                recoverable=True,
            ) from exc

        if not response.is_success:
            body = response.text[:_MAX_ERROR_BODY_CHARS] if response.content else ""
            status = response.status_code
            raise WebSiftError(
                code=ErrorCode.SERVER_ERROR,
                message=f"HTTP {status} {response.reason_phrase} fetching {url}",
                suggestion=(
                    "The site may be temporarily unavailable."
                    if status >= 500 or status == 429
                    else "The page does not exist or refuses access."
                ),
                recoverable=status >= 500 or status == 429,
                status_code=status,
                body=body,
            )

        log.info(
            "fetch_complete",
            url=url,
            status_code=response.status_code,
            content_length=len(response.content),
        )
        return response.text
