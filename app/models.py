"""Pydantic models describing sources, playback requests and library records."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

MediaKind = Literal["movie", "series"]
ProbeState = Literal["pending", "available", "unavailable"]


class SourceDescriptor(BaseModel):
    """An embed provider and the URL prefixes it serves titles from."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    name: str = Field(min_length=1)
    movie_url_template: str | None = Field(
        default=None,
        validation_alias=AliasChoices("movie_url_template", "movieUrlTemplate", "url"),
        serialization_alias="url",
    )
    series_url_template: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "series_url_template", "seriesUrlTemplate", "tvUrl"
        ),
        serialization_alias="tvUrl",
    )

    @field_validator("name", mode="before")
    @classmethod
    def _coerce_name(cls, value: object) -> object:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            value = str(value)
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("movie_url_template", "series_url_template", mode="before")
    @classmethod
    def _blank_template(cls, value: object) -> object:
        if value is None:
            return None
        if isinstance(value, str):
            return value.strip() or None
        return value

    @model_validator(mode="after")
    def _require_template(self) -> "SourceDescriptor":
        if not (self.movie_url_template or self.series_url_template):
            raise ValueError("A source needs a movie or a series URL template")
        return self

    def template_for(self, kind: MediaKind) -> str | None:
        """Return the URL prefix used for the requested media kind."""

        if kind == "series":
            return self.series_url_template
        return self.movie_url_template

    def supports(self, kind: MediaKind) -> bool:
        return self.template_for(kind) is not None

    def to_storage(self) -> dict[str, str | None]:
        """Return the persisted ``{name, url, tvUrl}`` layout."""

        return self.model_dump(by_alias=True)


class MediaRequest(BaseModel):
    """A title (and, for series, the chosen episode) to build playback URLs for."""

    model_config = ConfigDict(frozen=True)

    title_id: str = Field(min_length=1)
    kind: MediaKind
    season: int | None = Field(default=None, ge=1)
    episode: int | None = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _check_episode_pair(self) -> "MediaRequest":
        if self.kind == "movie" and (self.season is not None or self.episode is not None):
            raise ValueError("Movies cannot carry a season or an episode")
        if (self.season is None) != (self.episode is None):
            raise ValueError("Season and episode must be chosen together")
        return self

    @property
    def has_episode(self) -> bool:
        return self.season is not None and self.episode is not None

    def episode_label(self) -> str:
        """Return the `` (S1E2)`` suffix used in status messages."""

        if not self.has_episode:
            return ""
        return f" (S{self.season}E{self.episode})"


class ResolvedUrl(BaseModel):
    """A playback URL a given source can serve for one request."""

    model_config = ConfigDict(frozen=True)

    source: SourceDescriptor
    url: str

    @property
    def name(self) -> str:
        return self.source.name


class ProbeResult(BaseModel):
    """Outcome of one availability probe."""

    model_config = ConfigDict(frozen=True)

    source: str
    available: bool


class ContinueWatchingEntry(BaseModel):
    """The last thing watched for a title."""

    model_config = ConfigDict(populate_by_name=True)

    title_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("title_id", "titleId", "imdbID"),
        serialization_alias="imdbID",
    )
    title: str = ""
    poster_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("poster_url", "posterUrl", "poster"),
        serialization_alias="poster",
    )
    kind: MediaKind = Field(
        default="movie",
        validation_alias=AliasChoices("kind", "type"),
        serialization_alias="type",
    )
    season: int | None = Field(default=None, ge=1)
    episode: int | None = Field(default=None, ge=1)
    updated_at: datetime | None = Field(
        default=None,
        validation_alias=AliasChoices("updated_at", "updatedAt"),
        serialization_alias="updatedAt",
    )

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: object) -> object:
        return "" if value is None else value


class WatchlistEntry(BaseModel):
    """A title the viewer saved for later."""

    model_config = ConfigDict(populate_by_name=True)

    title_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("title_id", "titleId", "imdbID"),
        serialization_alias="imdbID",
    )
    title: str = ""
    poster_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("poster_url", "posterUrl", "poster"),
        serialization_alias="poster",
    )

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: object) -> object:
        return "" if value is None else value


class SessionStatus(str, Enum):
    """Lifecycle states of a playback session."""

    IDLE = "idle"
    RESOLVING = "resolving"
    SELECTING_EPISODE = "selecting_episode"
    SWITCHING_SOURCE = "switching_source"
    READY = "ready"
    UNAVAILABLE = "unavailable"


class SessionSnapshot(BaseModel):
    """Observable view of a playback session rendered by the front end."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    status: SessionStatus = SessionStatus.IDLE
    message: str | None = None
    title_id: str | None = None
    title: str | None = None
    kind: MediaKind | None = None
    season: int | None = None
    episode: int | None = None
    seasons: list[int] = Field(default_factory=list)
    episodes: list[int] = Field(default_factory=list)
    active_source_name: str | None = None
    active_url: str | None = None
    candidate_names: list[str] = Field(default_factory=list)
    probe_state: dict[str, ProbeState] = Field(default_factory=dict)

    def to_payload(self) -> dict[str, object]:
        return self.model_dump(mode="json", by_alias=True)
