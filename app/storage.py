"""Key/value storage media backing the viewer's library and custom sources."""

from __future__ import annotations

import logging
from typing import Protocol

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .db_models import StoredValue

logger = logging.getLogger(__name__)

WATCHLIST_KEY = "ns_watchlist"
CONTINUE_WATCHING_KEY = "ns_continue"
CUSTOM_SOURCES_KEY = "ns_custom_sources"


class StorageMedium(Protocol):
    """String values stored under fixed keys.

    Reads return ``None`` for missing or unreadable keys. Writes do not
    report failures back to the caller.
    """

    async def read(self, key: str) -> str | None: ...

    async def write(self, key: str, value: str) -> None: ...

    async def remove(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage, mainly for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    async def read(self, key: str) -> str | None:
        return self._values.get(key)

    async def write(self, key: str, value: str) -> None:
        self._values[key] = value

    async def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def snapshot(self) -> dict[str, str]:
        return dict(self._values)


class DatabaseStorage:
    """Storage medium persisting values in the ``stored_values`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def read(self, key: str) -> str | None:
        try:
            async with self._session_factory() as session:
                record = await session.get(StoredValue, key)
                return record.value if record is not None else None
        except SQLAlchemyError as exc:
            logger.warning("Failed to read stored value %s: %s", key, exc)
            return None

    async def write(self, key: str, value: str) -> None:
        try:
            async with self._session_factory() as session:
                record = await session.get(StoredValue, key)
                if record is None:
                    session.add(StoredValue(key=key, value=value))
                else:
                    record.value = value
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Dropping write to stored value %s: %s", key, exc)

    async def remove(self, key: str) -> None:
        try:
            async with self._session_factory() as session:
                await session.execute(delete(StoredValue).where(StoredValue.key == key))
                await session.commit()
        except SQLAlchemyError as exc:
            logger.warning("Failed to remove stored value %s: %s", key, exc)
