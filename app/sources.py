"""Embed provider definitions and the registry that orders them."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Sequence

from pydantic import ValidationError

from .models import SourceDescriptor
from .storage import CUSTOM_SOURCES_KEY, StorageMedium

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_NAME = "VidSrc.to"


BUILTIN_SOURCES: tuple[SourceDescriptor, ...] = (
    SourceDescriptor(
        name="VidCloud",
        movie_url_template="https://vidcloud.stream/",
        series_url_template="https://vidcloud.stream/",
    ),
    SourceDescriptor(
        name="fsapi.xyz",
        movie_url_template="https://fsapi.xyz/movie/",
        series_url_template="https://fsapi.xyz/tv-imdb/",
    ),
    SourceDescriptor(
        name="CurtStream",
        movie_url_template="https://curtstream.com/movies/imdb/",
    ),
    SourceDescriptor(
        name="VidSrc.to",
        movie_url_template="https://vidsrc.to/embed/movie/",
        series_url_template="https://vidsrc.to/embed/tv/",
    ),
    SourceDescriptor(
        name="VidSrc.xyz",
        movie_url_template="https://vidsrc.xyz/embed/movie/",
        series_url_template="https://vidsrc.xyz/embed/tv/",
    ),
    SourceDescriptor(
        name="VidSrc.in",
        movie_url_template="https://vidsrc.in/embed/movie/",
        series_url_template="https://vidsrc.in/embed/tv/",
    ),
    SourceDescriptor(
        name="SuperEmbed",
        movie_url_template="https://superembed.stream/movie/",
        series_url_template="https://superembed.stream/tv/",
    ),
    SourceDescriptor(
        name="MoviesAPI",
        movie_url_template="https://moviesapi.club/movie/",
        series_url_template="https://moviesapi.club/tv/",
    ),
    SourceDescriptor(
        name="2Embed",
        movie_url_template="https://2embed.cc/embed/",
        series_url_template="https://2embed.cc/embed/",
    ),
    SourceDescriptor(
        name="Fmovies",
        movie_url_template="https://fmovies.to/embed/",
        series_url_template="https://fmovies.to/embed/",
    ),
    SourceDescriptor(
        name="LookMovie",
        movie_url_template="https://lookmovie.io/player/",
        series_url_template="https://lookmovie.io/player/",
    ),
    SourceDescriptor(
        name="AutoEmbed",
        movie_url_template="https://autoembed.cc/embed/",
        series_url_template="https://autoembed.cc/embed/",
    ),
    SourceDescriptor(
        name="MultiEmbed",
        movie_url_template="https://multiembed.mov/?video_id=",
        series_url_template="https://multiembed.mov/?video_id=",
    ),
)


def parse_custom_sources(raw: Any) -> list[SourceDescriptor]:
    """Return the valid descriptors from a user-supplied list.

    Anything that is not a list yields no sources; entries that are not
    objects, lack a name or carry no URL template are skipped.
    """

    if not isinstance(raw, list):
        return []

    accepted: list[SourceDescriptor] = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        try:
            accepted.append(SourceDescriptor.model_validate(entry))
        except ValidationError:
            logger.debug("Skipping invalid custom source %r", entry)
    return accepted


class SourceRegistry:
    """Ordered, immutable list of providers with a preferred default."""

    def __init__(
        self,
        custom_sources: Iterable[SourceDescriptor] = (),
        *,
        preferred_name: str | None = DEFAULT_SOURCE_NAME,
        builtin_sources: Sequence[SourceDescriptor] = BUILTIN_SOURCES,
    ) -> None:
        ordered: list[SourceDescriptor] = []
        seen: set[str] = set()
        for source in (*builtin_sources, *custom_sources):
            if source.name in seen:
                logger.debug("Ignoring duplicate source name %s", source.name)
                continue
            seen.add(source.name)
            ordered.append(source)
        self._sources: tuple[SourceDescriptor, ...] = tuple(ordered)
        self._by_name = {source.name: source for source in self._sources}
        self._preferred_name = preferred_name

    @classmethod
    async def from_storage(
        cls,
        storage: StorageMedium,
        *,
        preferred_name: str | None = DEFAULT_SOURCE_NAME,
    ) -> "SourceRegistry":
        """Build a registry with the user-supplied sources kept in storage."""

        custom = await load_custom_sources(storage)
        return cls(custom, preferred_name=preferred_name)

    @property
    def preferred_name(self) -> str | None:
        return self._preferred_name

    def list_all(self) -> tuple[SourceDescriptor, ...]:
        return self._sources

    def find_by_name(self, name: str) -> SourceDescriptor | None:
        return self._by_name.get(name)

    def get_default(self) -> SourceDescriptor | None:
        """Return the preferred provider, else the first one, else ``None``."""

        if self._preferred_name:
            preferred = self._by_name.get(self._preferred_name)
            if preferred is not None:
                return preferred
        if not self._sources:
            return None
        return self._sources[0]

    def __len__(self) -> int:
        return len(self._sources)


async def load_custom_sources(storage: StorageMedium) -> list[SourceDescriptor]:
    """Read user-supplied sources, treating unreadable data as none."""

    raw = await storage.read(CUSTOM_SOURCES_KEY)
    if not raw:
        return []
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring corrupt custom source list")
        return []
    return parse_custom_sources(payload)


async def save_custom_sources(
    storage: StorageMedium, raw: Any
) -> list[SourceDescriptor]:
    """Persist the valid entries of ``raw`` and return them."""

    accepted = parse_custom_sources(raw)
    payload = json.dumps([source.to_storage() for source in accepted])
    await storage.write(CUSTOM_SOURCES_KEY, payload)
    return accepted
