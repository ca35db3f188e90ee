from __future__ import annotations

import httpx
import pytest

from config.settings import ProbeSettings
from producer.link_probe import SourceLinkProber


def _transport(routes, seen=None):
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append((request.method, str(request.url)))
        outcome = routes.get(str(request.url), 404)
        if callable(outcome):
            return outcome(request)
        if isinstance(outcome, Exception):
            raise outcome
        return httpx.Response(outcome)

    return httpx.MockTransport(handler)


@pytest.mark.asyncio
async def test_probe_normalizes_and_dedupes_before_requesting() -> None:
    seen = []
    prober = SourceLinkProber(transport=_transport({"https://a.example.com/x": 200}, seen))

    reachable = await prober.probe(["https://A.example.com/x?utm=1", "https://a.example.com/x#top", "bad"])

    assert reachable == {"https://a.example.com/x"}
    assert seen == [("HEAD", "https://a.example.com/x")]


@pytest.mark.asyncio
async def test_error_status_and_network_errors_are_unreachable() -> None:
    routes = {
        "https://ok.example.com/": 204,
        "https://missing.example.com/": 404,
        "https://broken.example.com/": 503,
        "https://slow.example.com/": httpx.ConnectTimeout("timed out"),
    }
    prober = SourceLinkProber(transport=_transport(routes))

    reachable = await prober.probe(list(routes))

    assert reachable == {"https://ok.example.com/"}


@pytest.mark.asyncio
async def test_head_not_allowed_falls_back_to_get() -> None:
    seen = []

    def head_blocked(request: httpx.Request) -> httpx.Response:
        return httpx.Response(405 if request.method == "HEAD" else 200)

    prober = SourceLinkProber(transport=_transport({"https://a.example.com/page": head_blocked}, seen))

    assert await prober.probe(["https://a.example.com/page"]) == {"https://a.example.com/page"}
    assert [method for method, _ in seen] == ["HEAD", "GET"]
    assert prober.request_count == 2


@pytest.mark.asyncio
async def test_each_url_is_probed_once_per_prober() -> None:
    seen = []
    routes = {"https://a.example.com/": 200, "https://b.example.com/": 404}
    prober = SourceLinkProber(transport=_transport(routes, seen))

    first = await prober.probe(["https://a.example.com/", "https://b.example.com/"])
    second = await prober.probe(["https://b.example.com/", "https://a.example.com/"])

    assert first == second == {"https://a.example.com/"}
    assert len(seen) == 2
    assert prober.request_count == 2


@pytest.mark.asyncio
async def test_disabled_prober_makes_no_requests() -> None:
    seen = []
    prober = SourceLinkProber(enabled=False, transport=_transport({"https://a.example.com/": 200}, seen))

    assert await prober.probe(["https://a.example.com/"]) == set()
    assert seen == []


def test_from_settings_copies_probe_options() -> None:
    settings = ProbeSettings(enabled=False, timeout_sec=1.5, user_agent="probe-test")
    prober = SourceLinkProber.from_settings(settings)

    assert prober.enabled is False
    assert prober.timeout_sec == 1.5
    assert prober.user_agent == "probe-test"
