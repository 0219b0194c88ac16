"""Unit tests for websift.robots.RobotsGate."""

from __future__ import annotations

import httpx
import pytest
import respx

from websift.config import Settings
from websift.robots import RobotsGate

ROBOTS_TXT = """\
User-agent: *
Disallow: /private/
"""


def _settings(enabled: bool = True) -> Settings:
    return Settings(
        fetch={"enable_robots_txt": enabled, "user_agent": "websift-test"},
        cache={"robots_ttl_hours": 1},
    )


@pytest.fixture()
async def client() -> httpx.AsyncClient:
    async with httpx.AsyncClient() as c:
        yield c


class TestDisabled:
    async def test_disabled_gate_allows_without_network(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings(enabled=False))
        with respx.mock(assert_all_called=False) as router:
            route = router.get("https://example.com/robots.txt")
            assert await gate.is_url_allowed("https://example.com/private/page")
            assert not route.called


class TestRules:
    async def test_disallowed_path_is_blocked(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings())
        with respx.mock:
            respx.get("https://example.com/robots.txt").mock(
                return_value=httpx.Response(200, text=ROBOTS_TXT)
            )
            assert not await gate.is_url_allowed("https://example.com/private/page")

    async def test_allowed_path_passes(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings())
        with respx.mock:
            respx.get("https://example.com/robots.txt").mock(
                return_value=httpx.Response(200, text=ROBOTS_TXT)
            )
            assert await gate.is_url_allowed("https://example.com/public/page")

    async def test_user_agent_specific_rules(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings())
        robots = "User-agent: websift-test\nDisallow: /\n\nUser-agent: *\nDisallow:\n"
        with respx.mock:
            respx.get("https://example.com/robots.txt").mock(
                return_value=httpx.Response(200, text=robots)
            )
            assert not await gate.is_url_allowed("https://example.com/anything")


class TestFailOpen:
    async def test_missing_robots_allows(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings())
        with respx.mock:
            respx.get("https://example.com/robots.txt").mock(return_value=httpx.Response(404))
            assert await gate.is_url_allowed("https://example.com/private/page")

    async def test_network_error_allows(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings())
        with respx.mock:
            respx.get("https://example.com/robots.txt").mock(
                side_effect=httpx.ConnectError("refused")
            )
            assert await gate.is_url_allowed("https://example.com/private/page")

    async def test_timeout_allows(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings())
        with respx.mock:
            respx.get("https://example.com/robots.txt").mock(
                side_effect=httpx.ReadTimeout("slow")
            )
            assert await gate.is_url_allowed("https://example.com/private/page")

    async def test_unparseable_url_allows(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings())
        with respx.mock(assert_all_called=False):
            assert await gate.is_url_allowed("not a url")

    async def test_failures_are_not_cached(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings())
        with respx.mock:
            route = respx.get("https://example.com/robots.txt")
            route.side_effect = [
                httpx.Response(503),
                httpx.Response(200, text=ROBOTS_TXT),
            ]
            assert await gate.is_url_allowed("https://example.com/private/page")
            assert len(gate) == 0
            assert not await gate.is_url_allowed("https://example.com/private/page")
            assert route.call_count == 2


class TestCaching:
    async def test_rules_cached_per_domain(self, client: httpx.AsyncClient) -> None:
        gate = RobotsGate(client, _settings())
        with respx.mock:
            route = respx.get("https://example.com/robots.txt").mock(
                return_value=httpx.Response(200, text=ROBOTS_TXT)
            )
            await gate.is_url_allowed("https://example.com/a")
            await gate.is_url_allowed("https://example.com/private/b")
            assert route.call_count == 1
            assert len(gate) == 1

    async def test_expired_rules_are_refetched(self, client: httpx.AsyncClient, clock) -> None:
        gate = RobotsGate(client, _settings(), clock=clock)
        with respx.mock:
            route = respx.get("https://example.com/robots.txt").mock(
                return_value=httpx.Response(200, text=ROBOTS_TXT)
            )
            await gate.is_url_allowed("https://example.com/a")
            clock.advance(3601)
            await gate.is_url_allowed("https://example.com/a")
            assert route.call_count == 2
