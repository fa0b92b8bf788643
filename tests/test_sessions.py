"""Tests for the playback session bookkeeping."""

from __future__ import annotations

from typing import Any

import pytest

from app.config import Settings
from app.models import SessionStatus
from app.services.metadata import MetadataResult
from app.services.sessions import SessionManager
from app.storage import MemoryStorage


@pytest.fixture
def anyio_backend() -> str:
    """Force AnyIO tests to run on asyncio without requiring trio."""

    return "asyncio"


class ManualClock:
    def __init__(self) -> None:
        self.now = 1_000.0

    def __call__(self) -> float:
        return self.now


class NoMetadata:
    async def lookup_by_id(self, title_id: str) -> MetadataResult[Any]:
        return MetadataResult.failure("Incorrect IMDb ID.")


class NeverAvailable:
    async def check(self, url: str) -> bool:  # pragma: no cover - no probes run here
        return False


def build_manager(clock: ManualClock, **overrides: Any) -> SessionManager:
    settings = Settings(_env_file=None, **overrides)  # type: ignore[arg-type]
    return SessionManager(
        settings, MemoryStorage(), NoMetadata(), NeverAvailable(), clock=clock  # type: ignore[arg-type]
    )


@pytest.mark.anyio("asyncio")
async def test_session_count_never_exceeds_capacity() -> None:
    manager = build_manager(ManualClock(), MAX_SESSIONS=3)

    created = [await manager.create() for _ in range(5)]

    assert len(manager) == 3
    for session_id, _ in created[:2]:
        with pytest.raises(KeyError):
            manager.get(session_id)
    for session_id, session in created[2:]:
        assert manager.get(session_id) is session


@pytest.mark.anyio("asyncio")
async def test_recently_used_sessions_survive_eviction() -> None:
    manager = build_manager(ManualClock(), MAX_SESSIONS=2)
    first_id, _ = await manager.create()
    second_id, _ = await manager.create()

    manager.get(first_id)
    await manager.create()

    assert manager.get(first_id) is not None
    with pytest.raises(KeyError):
        manager.get(second_id)


@pytest.mark.anyio("asyncio")
async def test_idle_sessions_are_dropped_and_closed() -> None:
    clock = ManualClock()
    manager = build_manager(clock, SESSION_IDLE_TIMEOUT=60)
    idle_id, idle_session = await manager.create()
    await idle_session.open("tt404")
    assert idle_session.status is SessionStatus.UNAVAILABLE

    clock.now += 30
    active_id, _ = await manager.create()
    clock.now += 45
    await manager.create()

    assert len(manager) == 2
    assert idle_session.status is SessionStatus.IDLE
    with pytest.raises(KeyError):
        manager.get(idle_id)
    manager.get(active_id)


@pytest.mark.anyio("asyncio")
async def test_discard_and_close_all_forget_sessions() -> None:
    manager = build_manager(ManualClock())
    session_id, _ = await manager.create()
    await manager.create()

    manager.discard(session_id)
    with pytest.raises(KeyError):
        manager.discard(session_id)
    manager.close_all()

    assert len(manager) == 0
