"""Build provider-specific playback URLs for a media request."""

from __future__ import annotations

from enum import Enum
from typing import Iterable, Mapping

from .models import MediaRequest, ResolvedUrl, SourceDescriptor


class EpisodePathShape(str, Enum):
    """How a provider encodes season and episode in its embed URL."""

    SLASH_PATH = "slash_path"
    VIDCLOUD_HTML = "vidcloud_html"
    DASHED = "dashed"
    TV_QUERY = "tv_query"
    SEASON_EPISODE_PATH = "season_episode_path"
    TV_SEASON_EPISODE_PATH = "tv_season_episode_path"
    IMDB_TV_QUERY = "imdb_tv_query"
    QUERY_SUFFIX = "query_suffix"
    GENERIC = "generic"


EPISODE_TEMPLATES: Mapping[EpisodePathShape, str] = {
    EpisodePathShape.SLASH_PATH: "{base}{id}/{season}/{episode}",
    EpisodePathShape.VIDCLOUD_HTML: "{base}{id}-S{season}-E{episode}.html",
    EpisodePathShape.DASHED: "{base}{id}-{season}-{episode}",
    EpisodePathShape.TV_QUERY: "{base}tv?id={id}&s={season}&e={episode}",
    EpisodePathShape.SEASON_EPISODE_PATH: "{base}{id}/season/{season}/episode/{episode}",
    EpisodePathShape.TV_SEASON_EPISODE_PATH: (
        "{base}tv/{id}/season/{season}/episode/{episode}"
    ),
    EpisodePathShape.IMDB_TV_QUERY: "{base}imdb/tv?id={id}&s={season}&e={episode}",
    EpisodePathShape.QUERY_SUFFIX: "{base}{id}&s={season}&e={episode}",
    EpisodePathShape.GENERIC: "{base}{id}-S{season}E{episode}",
}

EPISODE_SHAPES_BY_SOURCE: Mapping[str, EpisodePathShape] = {
    "VidCloud": EpisodePathShape.VIDCLOUD_HTML,
    "fsapi.xyz": EpisodePathShape.DASHED,
    "SuperEmbed": EpisodePathShape.DASHED,
    "2Embed": EpisodePathShape.TV_QUERY,
    "MoviesAPI": EpisodePathShape.SEASON_EPISODE_PATH,
    "Fmovies": EpisodePathShape.TV_SEASON_EPISODE_PATH,
    "LookMovie": EpisodePathShape.TV_SEASON_EPISODE_PATH,
    "AutoEmbed": EpisodePathShape.IMDB_TV_QUERY,
    "MultiEmbed": EpisodePathShape.QUERY_SUFFIX,
}

# Every VidSrc deployment (VidSrc.to, VidSrc.xyz, VidSrc.in, ...) shares one
# engine, so the family is matched by name rather than listed one by one.
VIDSRC_FAMILY_MARKER = "vidsrc"


def episode_shape_for(source_name: str) -> EpisodePathShape:
    """Return the episode URL shape used by the named provider."""

    if VIDSRC_FAMILY_MARKER in source_name.casefold():
        return EpisodePathShape.SLASH_PATH
    return EPISODE_SHAPES_BY_SOURCE.get(source_name, EpisodePathShape.GENERIC)


def resolve(source: SourceDescriptor, request: MediaRequest) -> str | None:
    """Return the playback URL for ``request`` on ``source``.

    ``None`` means the source has no template for the requested kind.
    """

    base = source.template_for(request.kind)
    if base is None:
        return None

    if request.kind == "series" and request.has_episode:
        template = EPISODE_TEMPLATES[episode_shape_for(source.name)]
        return template.format(
            base=base,
            id=request.title_id,
            season=request.season,
            episode=request.episode,
        )
    return f"{base}{request.title_id}"


def resolve_candidates(
    sources: Iterable[SourceDescriptor], request: MediaRequest
) -> list[ResolvedUrl]:
    """Resolve every source, keeping order and omitting unsupported ones."""

    candidates: list[ResolvedUrl] = []
    for source in sources:
        url = resolve(source, request)
        if url is None:
            continue
        candidates.append(ResolvedUrl(source=source, url=url))
    return candidates
