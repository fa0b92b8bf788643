"""Continue-watching and watchlist lists kept in a storage medium."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Mapping, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import PersistedStateCorrupt
from .models import ContinueWatchingEntry, WatchlistEntry
from .storage import CONTINUE_WATCHING_KEY, WATCHLIST_KEY, StorageMedium

logger = logging.getLogger(__name__)

DEFAULT_CONTINUE_WATCHING_LIMIT = 20
DEFAULT_WATCHLIST_LIMIT = 100

EntryT = TypeVar("EntryT", bound=BaseModel)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _StoredList(Generic[EntryT]):
    """A bounded JSON list of records stored under one key."""

    _key: str
    _entry_type: type[EntryT]

    def __init__(self, storage: StorageMedium, *, limit: int) -> None:
        if limit < 1:
            raise ValueError("Stored lists need a capacity of at least one entry")
        self._storage = storage
        self._limit = limit

    @property
    def limit(self) -> int:
        return self._limit

    async def load(self) -> list[EntryT]:
        """Return the stored entries; unreadable data reads as an empty list."""

        raw = await self._storage.read(self._key)
        if not raw:
            return []
        try:
            return self._decode(raw)
        except PersistedStateCorrupt as exc:
            logger.warning("%s", exc)
            return []

    def _decode(self, raw: str) -> list[EntryT]:
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PersistedStateCorrupt(self._key, "invalid JSON") from exc
        if not isinstance(payload, list):
            raise PersistedStateCorrupt(self._key, "expected a list")

        entries: list[EntryT] = []
        seen: set[str] = set()
        for item in payload:
            if not isinstance(item, dict):
                continue
            try:
                entry = self._entry_type.model_validate(item)
            except ValidationError:
                logger.debug("Skipping malformed %s record %r", self._key, item)
                continue
            title_id = entry.title_id  # type: ignore[attr-defined]
            if title_id in seen:
                continue
            seen.add(title_id)
            entries.append(entry)
        return entries

    async def _save(self, entries: list[EntryT]) -> None:
        payload = [
            entry.model_dump(mode="json", by_alias=True, exclude_none=True)
            for entry in entries[: self._limit]
        ]
        await self._storage.write(self._key, json.dumps(payload))

    async def clear(self) -> None:
        await self._storage.remove(self._key)


class ContinueWatchingStore(_StoredList[ContinueWatchingEntry]):
    """Most-recently-updated-first record of what the viewer last played."""

    _key = CONTINUE_WATCHING_KEY
    _entry_type = ContinueWatchingEntry

    def __init__(
        self,
        storage: StorageMedium,
        *,
        limit: int = DEFAULT_CONTINUE_WATCHING_LIMIT,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        super().__init__(storage, limit=limit)
        self._clock = clock

    async def upsert(self, entry: ContinueWatchingEntry) -> ContinueWatchingEntry:
        """Move ``entry`` to the front, stamped with the current time."""

        stamped = entry.model_copy(update={"updated_at": self._clock()})
        existing = await self.load()
        remaining = [item for item in existing if item.title_id != entry.title_id]
        await self._save([stamped, *remaining])
        return stamped


class WatchlistStore(_StoredList[WatchlistEntry]):
    """Titles the viewer saved, newest addition first."""

    _key = WATCHLIST_KEY
    _entry_type = WatchlistEntry

    def __init__(
        self, storage: StorageMedium, *, limit: int = DEFAULT_WATCHLIST_LIMIT
    ) -> None:
        super().__init__(storage, limit=limit)

    async def contains(self, title_id: str) -> bool:
        return any(entry.title_id == title_id for entry in await self.load())

    async def toggle(self, title_id: str, data: Mapping[str, Any] | None = None) -> bool:
        """Add or remove ``title_id`` and return whether it is now listed."""

        existing = await self.load()
        remaining = [entry for entry in existing if entry.title_id != title_id]
        if len(remaining) != len(existing):
            await self._save(remaining)
            return False

        fields = {**(data or {}), "title_id": title_id}
        fields.pop("imdbID", None)
        fields.pop("titleId", None)
        entry = WatchlistEntry.model_validate(fields)
        await self._save([entry, *remaining])
        return True

    async def remove(self, title_id: str) -> None:
        existing = await self.load()
        await self._save([entry for entry in existing if entry.title_id != title_id])


async def clear_library(storage: StorageMedium) -> None:
    """Forget both the continue-watching list and the watchlist."""

    await storage.remove(WATCHLIST_KEY)
    await storage.remove(CONTINUE_WATCHING_KEY)
