"""Tests for the OMDb metadata client."""

from __future__ import annotations

from typing import Any

import httpx
import pytest

from app.config import Settings
from app.services.metadata import OMDbClient


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def build_settings(**overrides: Any) -> Settings:
    """Return a settings object with defaults suitable for tests."""

    base: dict[str, Any] = {"OMDB_API_KEY": "omdb-key"}
    base.update(overrides)
    return Settings(_env_file=None, **base)  # type: ignore[arg-type]


@pytest.mark.anyio("asyncio")
async def test_lookup_by_id_parses_details() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "Response": "True",
                "imdbID": "tt0903747",
                "Title": "Breaking Bad",
                "Type": "series",
                "Year": "2008–2013",
                "Plot": "A chemist turns to crime.",
                "Poster": "N/A",
                "totalSeasons": "5",
            },
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = OMDbClient(build_settings(), http_client)
        result = await client.lookup_by_id("tt0903747")

    assert result.ok
    assert result.value is not None
    assert result.value.kind == "series"
    assert result.value.total_seasons == 5
    assert result.value.poster_url is None
    params = requests[0].url.params
    assert params["i"] == "tt0903747"
    assert params["apikey"] == "omdb-key"
    assert params["plot"] == "full"


@pytest.mark.anyio("asyncio")
async def test_error_response_becomes_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"Response": "False", "Error": "Incorrect IMDb ID."})

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = OMDbClient(build_settings(), http_client)
        result = await client.lookup_by_id("tt0")

    assert not result.ok
    assert result.error == "Incorrect IMDb ID."


@pytest.mark.anyio("asyncio")
async def test_http_errors_become_failures() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="down")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = OMDbClient(build_settings(), http_client)
        result = await client.lookup_by_title("Heat", "movie")

    assert not result.ok
    assert result.error is not None
    assert result.error.startswith("HTTP error")


@pytest.mark.anyio("asyncio")
async def test_missing_api_key_short_circuits() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - never called
        raise AssertionError("no request expected")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = OMDbClient(build_settings(OMDB_API_KEY=None), http_client)
        result = await client.search("heat")

    assert not result.ok
    assert result.error == "Metadata service is not configured"


@pytest.mark.anyio("asyncio")
async def test_search_collects_results_and_total() -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(
            200,
            json={
                "Response": "True",
                "totalResults": "42",
                "Search": [
                    {"imdbID": "tt1", "Title": "Heat", "Type": "movie", "Year": "1995"},
                    {"Title": "No id"},
                    {"imdbID": "tt2", "Title": "Heat Wave", "Type": "episode"},
                ],
            },
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = OMDbClient(build_settings(), http_client)
        result = await client.search("heat", page=2, kind="movie")

    assert result.ok
    assert result.value is not None
    assert [item.title_id for item in result.value.results] == ["tt1", "tt2"]
    assert result.value.results[1].kind == "movie"
    assert result.value.total_count == 42
    assert requests[0].url.params["page"] == "2"
    assert requests[0].url.params["type"] == "movie"


@pytest.mark.anyio("asyncio")
async def test_list_season_keeps_numbered_episodes() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["Season"] == "2"
        return httpx.Response(
            200,
            json={
                "Response": "True",
                "Episodes": [
                    {"Episode": "1", "Title": "Pilot"},
                    {"Episode": "N/A", "Title": "Special"},
                    {"Episode": "2", "Title": "Second"},
                ],
            },
        )

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        client = OMDbClient(build_settings(), http_client)
        result = await client.list_season("tt777", 2)

    assert result.ok
    assert result.value is not None
    assert [episode.episode for episode in result.value.episodes] == [1, 2]
