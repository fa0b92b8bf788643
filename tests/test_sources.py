"""Tests for the source registry and custom source handling."""

from __future__ import annotations

import json

import pytest

from app.models import SourceDescriptor
from app.sources import (
    BUILTIN_SOURCES,
    DEFAULT_SOURCE_NAME,
    SourceRegistry,
    load_custom_sources,
    parse_custom_sources,
    save_custom_sources,
)
from app.storage import CUSTOM_SOURCES_KEY, MemoryStorage


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


def test_default_is_preferred_source_regardless_of_position() -> None:
    registry = SourceRegistry()

    assert registry.list_all()[0].name == "VidCloud"
    default = registry.get_default()
    assert default is not None
    assert default.name == DEFAULT_SOURCE_NAME


def test_default_falls_back_to_first_source() -> None:
    registry = SourceRegistry(
        builtin_sources=[
            SourceDescriptor(name="A", movie_url_template="https://a/"),
            SourceDescriptor(name="B", movie_url_template="https://b/"),
        ]
    )

    default = registry.get_default()
    assert default is not None
    assert default.name == "A"
    assert SourceRegistry(builtin_sources=[]).get_default() is None


def test_custom_sources_follow_builtins_and_skip_duplicates() -> None:
    custom = [
        SourceDescriptor(name="Mine", movie_url_template="https://mine/"),
        SourceDescriptor(name="VidCloud", movie_url_template="https://elsewhere/"),
    ]

    registry = SourceRegistry(custom)

    names = [source.name for source in registry.list_all()]
    assert names[-1] == "Mine"
    assert names.count("VidCloud") == 1
    assert len(registry) == len(BUILTIN_SOURCES) + 1
    vidcloud = registry.find_by_name("VidCloud")
    assert vidcloud is not None
    assert vidcloud.movie_url_template == "https://vidcloud.stream/"


def test_parse_custom_sources_drops_invalid_entries() -> None:
    raw = [
        {"name": "Good", "url": "https://good/"},
        {"name": "TvOnly", "tvUrl": "https://tv/"},
        {"name": "", "url": "https://nameless/"},
        {"name": "NoTemplates"},
        "not-an-object",
    ]

    accepted = parse_custom_sources(raw)

    assert [source.name for source in accepted] == ["Good", "TvOnly"]
    assert accepted[1].supports("series")
    assert not accepted[1].supports("movie")
    assert parse_custom_sources({"name": "x"}) == []


def test_descriptor_storage_layout() -> None:
    source = SourceDescriptor(name="Good", movie_url_template="https://good/")

    assert source.to_storage() == {"name": "Good", "url": "https://good/", "tvUrl": None}


@pytest.mark.anyio("asyncio")
async def test_custom_sources_round_trip_through_storage() -> None:
    storage = MemoryStorage()

    accepted = await save_custom_sources(
        storage, [{"name": "Mine", "url": "https://mine/"}, {"bogus": True}]
    )
    registry = await SourceRegistry.from_storage(storage, preferred_name="Mine")

    assert [source.name for source in accepted] == ["Mine"]
    assert json.loads(storage.snapshot()[CUSTOM_SOURCES_KEY]) == [
        {"name": "Mine", "url": "https://mine/", "tvUrl": None}
    ]
    default = registry.get_default()
    assert default is not None
    assert default.name == "Mine"


@pytest.mark.anyio("asyncio")
async def test_corrupt_custom_sources_read_as_empty() -> None:
    storage = MemoryStorage({CUSTOM_SOURCES_KEY: "{not json"})

    assert await load_custom_sources(storage) == []
