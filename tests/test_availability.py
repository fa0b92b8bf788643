"""Tests for the availability probe and the embed reachability check."""

from __future__ import annotations

import json

import httpx
import pytest

from app.services.availability import AvailabilityProbe, check_embed_reachable


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


CHECK_ENDPOINT = "http://probe.test/api/check-video"


def _probe(handler) -> tuple[AvailabilityProbe, httpx.AsyncClient]:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AvailabilityProbe(client, CHECK_ENDPOINT), client


@pytest.mark.anyio("asyncio")
async def test_probe_posts_url_and_reads_answer() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"available": True})

    probe, client = _probe(handler)
    async with client:
        assert await probe.check("https://vidsrc.to/embed/movie/tt1")

    assert str(requests[0].url) == CHECK_ENDPOINT
    assert json.loads(requests[0].content) == {"url": "https://vidsrc.to/embed/movie/tt1"}


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={"available": True}),
        httpx.Response(200, text="<html>nope</html>"),
        httpx.Response(200, json=["available"]),
        httpx.Response(200, json={"available": "yes"}),
        httpx.Response(200, json={"available": False}),
    ],
)
async def test_probe_treats_unconfirmed_answers_as_unavailable(
    response: httpx.Response,
) -> None:
    probe, client = _probe(lambda request: response)
    async with client:
        assert not await probe.check("https://a/tt1")


@pytest.mark.anyio("asyncio")
async def test_probe_swallows_transport_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    probe, client = _probe(handler)
    async with client:
        assert not await probe.check("https://a/tt1")


@pytest.mark.anyio("asyncio")
async def test_embed_check_accepts_html_pages() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(
            200, text="<html></html>", headers={"content-type": "text/html; charset=utf-8"}
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert await check_embed_reachable(client, "https://embed.test/tt1")

    assert seen[0].headers["referer"] == "https://embed.test/tt1"
    assert "Mozilla" in seen[0].headers["user-agent"]


@pytest.mark.anyio("asyncio")
async def test_embed_check_rejects_error_redirects() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/404":
            return httpx.Response(200, text="gone", headers={"content-type": "text/html"})
        return httpx.Response(302, headers={"location": "https://embed.test/404"})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert not await check_embed_reachable(client, "https://embed.test/tt1")


@pytest.mark.anyio("asyncio")
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, text="missing", headers={"content-type": "text/html"}),
        httpx.Response(200, json={"video": None}),
    ],
)
async def test_embed_check_rejects_errors_and_non_html(response: httpx.Response) -> None:
    async with httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: response)
    ) as client:
        assert not await check_embed_reachable(client, "https://embed.test/tt1")


@pytest.mark.anyio("asyncio")
async def test_embed_check_rejects_non_http_urls() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        assert not await check_embed_reachable(client, "javascript:alert(1)")
        assert not await check_embed_reachable(client, "ftp://files.test/tt1")
