"""Playback sessions: pick a provider, probe the rest and fall back on failure."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from ..errors import MetadataUnavailable, NoCandidateSource, SourceUnreachable
from ..library import ContinueWatchingStore
from ..models import (
    ContinueWatchingEntry,
    MediaRequest,
    ProbeResult,
    ProbeState,
    ResolvedUrl,
    SessionSnapshot,
    SessionStatus,
)
from ..resolver import resolve_candidates
from ..sources import SourceRegistry
from .metadata import MetadataClient, TitleDetails

logger = logging.getLogger(__name__)

BLANK_PLAYER_URL = "about:blank"
NO_EPISODES_MESSAGE = "No episodes found for this season."

PlayerCallback = Callable[[], Awaitable[None]]
SnapshotListener = Callable[[SessionSnapshot], None]


class Prober(Protocol):
    async def check(self, url: str) -> bool: ...


class PlayerSlot:
    """The one embedded player a session loads URLs into.

    Each assignment replaces the load/error callbacks of the previous one, so
    a late signal from an earlier URL can never reach the new handlers.
    """

    def __init__(self) -> None:
        self.url: str | None = None
        self.generation = 0
        self._on_load: PlayerCallback | None = None
        self._on_error: PlayerCallback | None = None

    def assign(
        self, url: str, *, on_load: PlayerCallback, on_error: PlayerCallback
    ) -> None:
        self._on_load = None
        self._on_error = None
        self.generation += 1
        self.url = url
        self._on_load = on_load
        self._on_error = on_error

    def clear(self) -> None:
        self._on_load = None
        self._on_error = None
        self.generation += 1
        self.url = BLANK_PLAYER_URL

    async def notify_loaded(self) -> bool:
        callback = self._on_load
        if callback is None:
            return False
        await callback()
        return True

    async def notify_failed(self) -> bool:
        callback = self._on_error
        if callback is None:
            return False
        await callback()
        return True


class PlaybackSession:
    """Controls which provider plays which title for one viewer.

    Every new media request (opening a title, changing season or episode,
    closing) bumps a generation counter. Metadata lookups and probe results
    carry the generation they were started under and are dropped when it no
    longer matches, which is how in-flight work from an earlier request is
    cancelled.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        metadata: MetadataClient,
        probe: Prober,
        *,
        continue_watching: ContinueWatchingStore | None = None,
        player: PlayerSlot | None = None,
    ) -> None:
        self._registry = registry
        self._metadata = metadata
        self._probe = probe
        self._continue_watching = continue_watching
        self.player = player or PlayerSlot()
        self._listeners: list[SnapshotListener] = []
        self._probe_tasks: set[asyncio.Task[None]] = set()
        self._generation = 0
        self._reset_state()

    def _reset_state(self) -> None:
        self._status = SessionStatus.IDLE
        self._message: str | None = None
        self._title_id: str | None = None
        self._details: TitleDetails | None = None
        self._seasons: list[int] = []
        self._season: int | None = None
        self._episodes: list[int] = []
        self._request: MediaRequest | None = None
        self._candidates: list[ResolvedUrl] = []
        self._probes: dict[str, ProbeResult] = {}
        self._load_failures: set[str] = set()
        self._active: str | None = None
        self._last_source: str | None = None

    @property
    def batch(self) -> int:
        """Identifier of the current request; probe results must carry it."""

        return self._generation

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def request(self) -> MediaRequest | None:
        return self._request

    @property
    def details(self) -> TitleDetails | None:
        return self._details

    @property
    def active_source(self) -> str | None:
        return self._active

    @property
    def candidates(self) -> tuple[ResolvedUrl, ...]:
        return tuple(self._candidates)

    @property
    def probes(self) -> dict[str, ProbeResult]:
        return dict(self._probes)

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register ``listener`` for state snapshots; returns an unsubscribe hook."""

        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def snapshot(self) -> SessionSnapshot:
        probe_state: dict[str, ProbeState] = {}
        for candidate in self._candidates:
            result = self._probes.get(candidate.name)
            if result is None:
                probe_state[candidate.name] = "pending"
            else:
                probe_state[candidate.name] = (
                    "available" if result.available else "unavailable"
                )
        active = self._find_candidate(self._active) if self._active else None
        return SessionSnapshot(
            status=self._status,
            message=self._message,
            title_id=self._title_id,
            title=self._details.title if self._details else None,
            kind=self._details.kind if self._details else None,
            season=self._season,
            episode=self._request.episode if self._request else None,
            seasons=list(self._seasons),
            episodes=list(self._episodes),
            active_source_name=self._active,
            active_url=active.url if active else None,
            candidate_names=[candidate.name for candidate in self._candidates],
            probe_state=probe_state,
        )

    def _emit(self) -> None:
        if not self._listeners:
            return
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)

    async def open(self, title_id: str) -> None:
        """Start playback of ``title_id``, replacing whatever was open."""

        title_id = (title_id or "").strip()
        if not title_id:
            raise ValueError("A title id is required")

        self._generation += 1
        generation = self._generation
        self.player.clear()
        self._reset_state()
        self._title_id = title_id
        self._status = SessionStatus.RESOLVING
        self._message = "Loading video sources..."
        self._emit()

        result = await self._metadata.lookup_by_id(title_id)
        if generation != self._generation:
            logger.debug("Discarding details for %s from a superseded request", title_id)
            return
        if not result.ok or result.value is None:
            reason = result.error or "Unknown error."
            logger.info("Metadata lookup for %s failed: %s", title_id, reason)
            self._fail(f"{MetadataUnavailable.user_message}: {reason}")
            return

        details = result.value
        self._details = details
        if details.kind == "movie":
            self._load_candidates(
                MediaRequest(title_id=title_id, kind="movie"), preferred=None
            )
            return

        self._seasons = list(range(1, max(details.total_seasons, 1) + 1))
        await self._change_season(1, generation)

    async def select_season(self, season: int) -> None:
        """Switch a series to ``season`` and play its first episode."""

        self._require_series()
        if season < 1:
            raise ValueError("Seasons are numbered from 1")
        self._generation += 1
        await self._change_season(season, self._generation)

    def select_episode(self, episode: int) -> None:
        """Play ``episode`` of the current season."""

        self._require_series()
        if self._season is None:
            raise ValueError("Choose a season before choosing an episode")
        if episode not in self._episodes:
            raise ValueError(f"Season {self._season} has no episode {episode}")
        self._generation += 1
        self._load_episode(episode)

    def select_source(self, name: str) -> None:
        """Load the named provider's URL for the current request."""

        if self._request is None or not self._candidates:
            raise ValueError("There are no sources to choose from")
        candidate = self._find_candidate(name)
        if candidate is None:
            raise ValueError(f"Unknown source: {name}")
        self._activate(candidate, switching=True)

    def close(self) -> None:
        """Stop playback and return to idle; a no-op when already idle."""

        if self._status is SessionStatus.IDLE:
            return
        self._generation += 1
        self.player.clear()
        self._reset_state()
        self._emit()

    async def player_loaded(self) -> bool:
        """Forward the embedded player's load signal; False if nothing is loading."""

        return await self.player.notify_loaded()

    async def player_failed(self) -> bool:
        """Forward the embedded player's error signal; False if nothing is loading."""

        return await self.player.notify_failed()

    def apply_probe_result(self, batch: int, result: ProbeResult) -> bool:
        """Record a probe outcome, falling back if the active source is down.

        Results from an older batch, or for a source outside the current
        candidates, are ignored. Returns whether the result was applied.
        """

        if batch != self._generation:
            logger.debug("Ignoring stale probe result for %s", result.source)
            return False
        if self._find_candidate(result.source) is None:
            return False
        if result.source in self._load_failures:
            # The player already failed this source; a late probe cannot revive it.
            logger.debug("Keeping %s unavailable after a failed load", result.source)
            return False

        self._probes[result.source] = result
        if result.source == self._active and not result.available:
            logger.info("%s", SourceUnreachable(result.source, "unreachable"))
            self._advance_from(result.source)
        else:
            self._emit()
        return True

    async def settle(self) -> None:
        """Wait for every probe that is still in flight."""

        while self._probe_tasks:
            await asyncio.gather(*list(self._probe_tasks))

    async def _change_season(self, season: int, generation: int) -> None:
        self._season = season
        self._episodes = []
        self._clear_candidates()
        self._status = SessionStatus.SELECTING_EPISODE
        self._message = f"Loading episodes for season {season}..."
        self._emit()

        title_id = self._open_title_id()
        result = await self._metadata.list_season(title_id, season)
        if generation != self._generation:
            logger.debug("Discarding season %s listing from a superseded request", season)
            return
        listing = result.value if result.ok else None
        if listing is None or not listing.episodes:
            self.player.clear()
            self._fail(NO_EPISODES_MESSAGE)
            return

        self._episodes = [summary.episode for summary in listing.episodes]
        self._load_episode(self._episodes[0])

    def _load_episode(self, episode: int) -> None:
        if self._season is None:
            raise RuntimeError("No season is selected")
        self._load_candidates(
            MediaRequest(
                title_id=self._open_title_id(),
                kind="series",
                season=self._season,
                episode=episode,
            ),
            preferred=self._last_source,
        )

    def _load_candidates(self, request: MediaRequest, *, preferred: str | None) -> None:
        self._request = request
        self._candidates = resolve_candidates(self._registry.list_all(), request)
        self._probes = {}
        self._load_failures = set()
        self._active = None
        if not self._candidates:
            logger.info("No provider supports %s (%s)", request.title_id, request.kind)
            self.player.clear()
            self._fail(NoCandidateSource.user_message)
            return

        batch = self._generation
        self._activate(self._initial_candidate(preferred), switching=False)
        for candidate in self._candidates:
            self._spawn_probe(batch, candidate)

    def _initial_candidate(self, preferred: str | None) -> ResolvedUrl:
        if preferred:
            candidate = self._find_candidate(preferred)
            if candidate is not None:
                return candidate
        default = self._registry.get_default()
        if default is not None:
            candidate = self._find_candidate(default.name)
            if candidate is not None:
                return candidate
        return self._candidates[0]

    def _activate(self, candidate: ResolvedUrl, *, switching: bool) -> None:
        request = self._request
        if request is None:
            raise RuntimeError("No media request is loaded")
        label = request.episode_label()
        self._active = candidate.name
        self._last_source = candidate.name
        if switching:
            self._status = SessionStatus.SWITCHING_SOURCE
            self._message = f"Loading from {candidate.name}{label}..."
        else:
            self._status = SessionStatus.READY
            self._message = f"Attempting to load from {candidate.name}{label}..."

        generation = self._generation

        async def _on_load() -> None:
            await self._handle_loaded(generation, candidate, record=switching)

        async def _on_error() -> None:
            self._handle_failed(generation, candidate)

        self.player.assign(candidate.url, on_load=_on_load, on_error=_on_error)
        self._emit()

    async def _handle_loaded(
        self, generation: int, candidate: ResolvedUrl, *, record: bool
    ) -> None:
        if generation != self._generation or self._active != candidate.name:
            return
        request = self._request
        if request is None:
            return
        self._status = SessionStatus.READY
        self._message = f"Video loaded from {candidate.name}{request.episode_label()}"
        self._emit()
        if record:
            await self._record_progress(request)

    def _handle_failed(self, generation: int, candidate: ResolvedUrl) -> None:
        if generation != self._generation or self._active != candidate.name:
            return
        request = self._request
        if request is None:
            return
        logger.info("%s", SourceUnreachable(candidate.name, "failing to load"))
        self._message = f"Failed to load from {candidate.name}{request.episode_label()}"
        self._load_failures.add(candidate.name)
        self._probes[candidate.name] = ProbeResult(source=candidate.name, available=False)
        self._advance_from(candidate.name)

    def _advance_from(self, current: str) -> None:
        for candidate in self._candidates:
            if candidate.name == current:
                continue
            if candidate.name in self._load_failures:
                continue
            result = self._probes.get(candidate.name)
            if result is not None and not result.available:
                continue
            logger.info("Switching from %s to %s", current, candidate.name)
            self._activate(candidate, switching=True)
            return

        logger.warning(
            "No playable source left for %s",
            self._request.title_id if self._request else self._title_id,
        )
        self._fail(NoCandidateSource.user_message)

    async def _record_progress(self, request: MediaRequest) -> None:
        if self._continue_watching is None:
            return
        details = self._details
        entry = ContinueWatchingEntry(
            title_id=request.title_id,
            title=details.title if details else "",
            poster_url=details.poster_url if details else None,
            kind=request.kind,
            season=request.season,
            episode=request.episode,
        )
        await self._continue_watching.upsert(entry)

    def _spawn_probe(self, batch: int, candidate: ResolvedUrl) -> None:
        async def _runner() -> None:
            try:
                available = await self._probe.check(candidate.url)
            except Exception:  # pragma: no cover - probes should never raise
                logger.exception("Availability probe for %s raised", candidate.url)
                available = False
            self.apply_probe_result(
                batch, ProbeResult(source=candidate.name, available=available)
            )

        task = asyncio.create_task(_runner())
        self._probe_tasks.add(task)
        task.add_done_callback(self._probe_tasks.discard)

    def _clear_candidates(self) -> None:
        self._request = None
        self._candidates = []
        self._probes = {}
        self._load_failures = set()
        self._active = None

    def _find_candidate(self, name: str | None) -> ResolvedUrl | None:
        for candidate in self._candidates:
            if candidate.name == name:
                return candidate
        return None

    def _open_title_id(self) -> str:
        if self._title_id is None:
            raise RuntimeError("No title is open")
        return self._title_id

    def _require_series(self) -> None:
        if self._details is None or self._details.kind != "series":
            raise ValueError("Seasons and episodes apply only to an open series")

    def _fail(self, message: str) -> None:
        self._status = SessionStatus.UNAVAILABLE
        self._message = message
        self._emit()
