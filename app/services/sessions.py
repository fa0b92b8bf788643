"""Bookkeeping for the playback sessions driven over HTTP."""

from __future__ import annotations

import logging
import secrets
import time
from collections import OrderedDict
from typing import Any, Callable

from ..config import Settings
from ..library import ContinueWatchingStore, WatchlistStore
from ..models import SourceDescriptor
from ..sources import SourceRegistry, save_custom_sources
from ..storage import StorageMedium
from .metadata import MetadataClient
from .playback import PlaybackSession, Prober

logger = logging.getLogger(__name__)


class SessionManager:
    """Creates, finds and closes playback sessions for the HTTP layer.

    Sessions are kept least-recently-used first. Creating a session drops
    those idle for longer than ``settings.session_idle_seconds`` and, past
    ``settings.max_sessions``, the least recently used ones. Dropped sessions
    are closed.
    """

    def __init__(
        self,
        settings: Settings,
        storage: StorageMedium,
        metadata: MetadataClient,
        probe: Prober,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._storage = storage
        self._metadata = metadata
        self._probe = probe
        self._clock = clock
        self._sessions: OrderedDict[str, PlaybackSession] = OrderedDict()
        self._last_seen: dict[str, float] = {}

    @property
    def metadata(self) -> MetadataClient:
        return self._metadata

    def continue_watching(self) -> ContinueWatchingStore:
        return ContinueWatchingStore(
            self._storage, limit=self._settings.continue_watching_limit
        )

    def watchlist(self) -> WatchlistStore:
        return WatchlistStore(self._storage, limit=self._settings.watchlist_limit)

    async def registry(self) -> SourceRegistry:
        """Build a registry from the built-ins and the stored custom sources."""

        return await SourceRegistry.from_storage(
            self._storage, preferred_name=self._settings.preferred_source
        )

    async def save_custom_sources(self, raw: Any) -> list[SourceDescriptor]:
        return await save_custom_sources(self._storage, raw)

    async def create(self) -> tuple[str, PlaybackSession]:
        session = PlaybackSession(
            await self.registry(),
            self._metadata,
            self._probe,
            continue_watching=self.continue_watching(),
        )
        self._prune(room_for=1)
        session_id = secrets.token_urlsafe(12)
        self._sessions[session_id] = session
        self._last_seen[session_id] = self._clock()
        logger.debug("Created playback session %s", session_id)
        return session_id, session

    def get(self, session_id: str) -> PlaybackSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise KeyError(f"Unknown session: {session_id}")
        self._sessions.move_to_end(session_id)
        self._last_seen[session_id] = self._clock()
        return session

    def discard(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            raise KeyError(f"Unknown session: {session_id}")
        self._last_seen.pop(session_id, None)
        session.close()

    def close_all(self) -> None:
        for session in self._sessions.values():
            session.close()
        self._sessions.clear()
        self._last_seen.clear()

    def _prune(self, *, room_for: int = 0) -> None:
        cutoff = self._clock() - self._settings.session_idle_seconds
        while self._sessions:
            oldest_id = next(iter(self._sessions))
            expired = self._last_seen.get(oldest_id, cutoff) <= cutoff
            over_capacity = len(self._sessions) + room_for > self._settings.max_sessions
            if not (expired or over_capacity):
                break
            logger.debug(
                "Dropping playback session %s (%s)",
                oldest_id,
                "idle" if expired else "capacity",
            )
            self.discard(oldest_id)

    def __len__(self) -> int:
        return len(self._sessions)
