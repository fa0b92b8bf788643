"""Client for OMDb-compatible title metadata lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

import httpx

from ..config import Settings
from ..models import MediaKind

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class MetadataResult(Generic[T]):
    """Tagged outcome of a metadata call; failures carry a message instead of raising."""

    ok: bool
    value: T | None = None
    error: str | None = None

    @classmethod
    def success(cls, value: T) -> "MetadataResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: str) -> "MetadataResult[T]":
        return cls(ok=False, error=error)


@dataclass(slots=True)
class TitleDetails:
    """Normalized view of a title's details."""

    title_id: str
    title: str
    kind: MediaKind
    year: str | None = None
    plot: str | None = None
    poster_url: str | None = None
    total_seasons: int = 0


@dataclass(slots=True)
class EpisodeSummary:
    episode: int
    title: str


@dataclass(slots=True)
class SeasonListing:
    """Episodes of one season, in broadcast order."""

    title_id: str
    season: int
    episodes: list[EpisodeSummary] = field(default_factory=list)


@dataclass(slots=True)
class SearchPage:
    results: list[TitleDetails]
    total_count: int


class MetadataClient(Protocol):
    """Lookups the playback engine needs from a metadata service."""

    async def lookup_by_title(
        self, title: str, kind: MediaKind | None = None
    ) -> MetadataResult[TitleDetails]: ...

    async def lookup_by_id(self, title_id: str) -> MetadataResult[TitleDetails]: ...

    async def search(
        self, query: str, page: int = 1, kind: MediaKind | None = None
    ) -> MetadataResult[SearchPage]: ...

    async def list_season(
        self, title_id: str, season: int
    ) -> MetadataResult[SeasonListing]: ...


class OMDbClient:
    """Client resolving titles, searches and season listings through OMDb."""

    def __init__(self, settings: Settings, http_client: httpx.AsyncClient):
        self._settings = settings
        self._client = http_client

    async def lookup_by_title(
        self, title: str, kind: MediaKind | None = None
    ) -> MetadataResult[TitleDetails]:
        params: dict[str, Any] = {"t": title}
        if kind:
            params["type"] = kind
        payload = await self._request(params, description=f"title {title!r}")
        if isinstance(payload, str):
            return MetadataResult.failure(payload)
        return self._details_result(payload)

    async def lookup_by_id(self, title_id: str) -> MetadataResult[TitleDetails]:
        payload = await self._request(
            {"i": title_id, "plot": "full"}, description=f"id {title_id}"
        )
        if isinstance(payload, str):
            return MetadataResult.failure(payload)
        return self._details_result(payload)

    async def search(
        self, query: str, page: int = 1, kind: MediaKind | None = None
    ) -> MetadataResult[SearchPage]:
        params: dict[str, Any] = {"s": query, "page": page}
        if kind:
            params["type"] = kind
        payload = await self._request(params, description=f"search {query!r}")
        if isinstance(payload, str):
            return MetadataResult.failure(payload)

        results: list[TitleDetails] = []
        for item in payload.get("Search") or []:
            if not isinstance(item, dict):
                continue
            details = self._parse_details(item)
            if details is not None:
                results.append(details)
        total = self._parse_int(payload.get("totalResults")) or len(results)
        return MetadataResult.success(SearchPage(results=results, total_count=total))

    async def list_season(
        self, title_id: str, season: int
    ) -> MetadataResult[SeasonListing]:
        payload = await self._request(
            {"i": title_id, "Season": season},
            description=f"season {season} of {title_id}",
        )
        if isinstance(payload, str):
            return MetadataResult.failure(payload)

        episodes: list[EpisodeSummary] = []
        for item in payload.get("Episodes") or []:
            if not isinstance(item, dict):
                continue
            number = self._parse_int(item.get("Episode"))
            if number is None or number < 1:
                continue
            episodes.append(
                EpisodeSummary(episode=number, title=str(item.get("Title") or ""))
            )
        return MetadataResult.success(
            SeasonListing(title_id=title_id, season=season, episodes=episodes)
        )

    async def _request(
        self, params: dict[str, Any], *, description: str
    ) -> dict[str, Any] | str:
        """Return the decoded payload, or an error message on any failure."""

        if not self._settings.omdb_api_key:
            return "Metadata service is not configured"

        query = {**params, "apikey": self._settings.omdb_api_key}
        try:
            response = await self._client.get(str(self._settings.omdb_api_url), params=query)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            logger.warning("OMDb lookup for %s failed: %s", description, exc)
            return f"HTTP error: {exc}"
        except ValueError:
            logger.warning("OMDb returned a non-JSON payload for %s", description)
            return "Invalid response from metadata service"

        if not isinstance(payload, dict):
            return "Invalid response from metadata service"
        if str(payload.get("Response", "True")).lower() == "false":
            error = str(payload.get("Error") or "Unknown error.")
            logger.info("OMDb lookup for %s returned an error: %s", description, error)
            return error
        return payload

    def _details_result(self, payload: dict[str, Any]) -> MetadataResult[TitleDetails]:
        details = self._parse_details(payload)
        if details is None:
            return MetadataResult.failure("Incomplete title details")
        return MetadataResult.success(details)

    @classmethod
    def _parse_details(cls, payload: dict[str, Any]) -> TitleDetails | None:
        title_id = str(payload.get("imdbID") or "").strip()
        if not title_id:
            return None
        raw_kind = str(payload.get("Type") or "movie").lower()
        kind: MediaKind = "series" if raw_kind == "series" else "movie"
        return TitleDetails(
            title_id=title_id,
            title=str(payload.get("Title") or title_id),
            kind=kind,
            year=cls._clean(payload.get("Year")),
            plot=cls._clean(payload.get("Plot")),
            poster_url=cls._clean(payload.get("Poster")),
            total_seasons=cls._parse_int(payload.get("totalSeasons")) or 0,
        )

    @staticmethod
    def _clean(value: Any) -> str | None:
        if not isinstance(value, str):
            return None
        stripped = value.strip()
        if not stripped or stripped == "N/A":
            return None
        return stripped

    @staticmethod
    def _parse_int(value: Any) -> int | None:
        if isinstance(value, int):
            return value
        if not isinstance(value, str):
            return None
        try:
            return int(value.strip())
        except ValueError:
            return None
