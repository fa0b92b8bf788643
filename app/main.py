"""Entry point for the FastAPI-powered playback service."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Any

import httpx
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import settings
from .database import Database
from .models import MediaKind
from .services.availability import AvailabilityProbe, check_embed_reachable
from .services.metadata import OMDbClient
from .services.playback import PlaybackSession
from .services.sessions import SessionManager
from .storage import DatabaseStorage

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app: FastAPI


@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    exit_stack = AsyncExitStack()
    metadata_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0))
    )
    probe_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.probe_timeout_seconds, connect=5.0)
        )
    )
    embed_http_client = await exit_stack.enter_async_context(
        httpx.AsyncClient(
            timeout=httpx.Timeout(settings.probe_timeout_seconds, connect=5.0)
        )
    )
    database = Database(settings.database_url)
    await database.create_all()

    manager = SessionManager(
        settings,
        DatabaseStorage(database.session_factory),
        OMDbClient(settings, metadata_http_client),
        AvailabilityProbe(probe_http_client, settings.check_video_url),
    )

    fastapi_app.state.session_manager = manager
    fastapi_app.state.embed_http_client = embed_http_client
    fastapi_app.state.database = database

    try:
        yield
    finally:  # pragma: no cover - teardown path exercised at runtime
        manager.close_all()
        await database.dispose()
        await exit_stack.aclose()


def create_app() -> FastAPI:
    fastapi_app = FastAPI(
        title=settings.app_name,
        description="Multi-provider embed resolution with availability fallback",
        version="1.0.0",
        lifespan=lifespan,
    )

    fastapi_app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )

    register_routes(fastapi_app)
    return fastapi_app


def get_session_manager(app: FastAPI) -> SessionManager:
    manager = getattr(app.state, "session_manager", None)
    if not isinstance(manager, SessionManager):
        raise RuntimeError("Session manager not initialised")
    return manager


class CheckVideoBody(BaseModel):
    url: str = Field(min_length=1)


class OpenBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title_id: str = Field(alias="titleId", min_length=1)


class SeasonBody(BaseModel):
    season: int = Field(ge=1)


class EpisodeBody(BaseModel):
    episode: int = Field(ge=1)


class SourceBody(BaseModel):
    name: str = Field(min_length=1)


class WatchlistToggleBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title_id: str = Field(alias="titleId", min_length=1)
    title: str = ""
    poster: str | None = None


async def _read_body(request: Request, model: type[BaseModel]) -> Any:
    try:
        payload = await request.json()
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400, detail=exc.errors(include_url=False, include_context=False)
        ) from exc


def register_routes(fastapi_app: FastAPI) -> None:
    def _session(session_id: str) -> PlaybackSession:
        manager = get_session_manager(fastapi_app)
        try:
            return manager.get(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found") from exc

    def _snapshot_response(session_id: str, session: PlaybackSession) -> JSONResponse:
        payload = session.snapshot().to_payload()
        payload["sessionId"] = session_id
        return JSONResponse(payload)

    @fastapi_app.get("/healthz")
    async def healthcheck() -> dict[str, str]:
        return {"status": "ok"}

    @fastapi_app.get("/api/sources")
    async def list_sources() -> dict[str, Any]:
        registry = await get_session_manager(fastapi_app).registry()
        default = registry.get_default()
        return {
            "sources": [source.to_storage() for source in registry.list_all()],
            "default": default.name if default else None,
        }

    @fastapi_app.put("/api/sources/custom")
    async def save_custom_sources(request: Request) -> dict[str, Any]:
        try:
            payload = await request.json()
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid JSON payload") from exc
        if not isinstance(payload, list):
            raise HTTPException(status_code=400, detail="Expected a list of sources")
        accepted = await get_session_manager(fastapi_app).save_custom_sources(payload)
        return {
            "accepted": [source.to_storage() for source in accepted],
            "rejected": len(payload) - len(accepted),
        }

    @fastapi_app.post("/api/check-video")
    async def check_video(request: Request) -> dict[str, bool]:
        body = await _read_body(request, CheckVideoBody)
        client = getattr(fastapi_app.state, "embed_http_client", None)
        if not isinstance(client, httpx.AsyncClient):
            raise RuntimeError("Embed HTTP client not initialised")
        available = await check_embed_reachable(
            client, body.url, timeout=settings.probe_timeout_seconds
        )
        return {"available": available}

    @fastapi_app.get("/api/search")
    async def search(
        q: str,
        page: int = 1,
        kind: MediaKind | None = Query(default=None, alias="type"),
    ) -> dict[str, Any]:
        if not q.strip():
            raise HTTPException(status_code=400, detail="A search query is required")
        if page < 1:
            raise HTTPException(status_code=400, detail="Pages are numbered from 1")
        result = await get_session_manager(fastapi_app).metadata.search(
            q.strip(), page, kind
        )
        if not result.ok or result.value is None:
            raise HTTPException(status_code=502, detail=result.error or "Search failed")
        return {
            "results": [
                {
                    "imdbID": item.title_id,
                    "title": item.title,
                    "type": item.kind,
                    "year": item.year,
                    "poster": item.poster_url,
                }
                for item in result.value.results
            ],
            "totalCount": result.value.total_count,
        }

    @fastapi_app.post("/api/sessions")
    async def create_session() -> JSONResponse:
        session_id, session = await get_session_manager(fastapi_app).create()
        return _snapshot_response(session_id, session)

    @fastapi_app.get("/api/sessions/{session_id}")
    async def session_snapshot(session_id: str, settle: bool = False) -> JSONResponse:
        session = _session(session_id)
        if settle:
            await session.settle()
        return _snapshot_response(session_id, session)

    @fastapi_app.post("/api/sessions/{session_id}/open")
    async def open_title(session_id: str, request: Request) -> JSONResponse:
        session = _session(session_id)
        body = await _read_body(request, OpenBody)
        try:
            await session.open(body.title_id)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _snapshot_response(session_id, session)

    @fastapi_app.post("/api/sessions/{session_id}/season")
    async def choose_season(session_id: str, request: Request) -> JSONResponse:
        session = _session(session_id)
        body = await _read_body(request, SeasonBody)
        try:
            await session.select_season(body.season)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _snapshot_response(session_id, session)

    @fastapi_app.post("/api/sessions/{session_id}/episode")
    async def choose_episode(session_id: str, request: Request) -> JSONResponse:
        session = _session(session_id)
        body = await _read_body(request, EpisodeBody)
        try:
            session.select_episode(body.episode)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _snapshot_response(session_id, session)

    @fastapi_app.post("/api/sessions/{session_id}/source")
    async def choose_source(session_id: str, request: Request) -> JSONResponse:
        session = _session(session_id)
        body = await _read_body(request, SourceBody)
        try:
            session.select_source(body.name)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _snapshot_response(session_id, session)

    @fastapi_app.post("/api/sessions/{session_id}/player/{event}")
    async def player_event(session_id: str, event: str) -> JSONResponse:
        session = _session(session_id)
        if event == "load":
            await session.player_loaded()
        elif event == "error":
            await session.player_failed()
        else:
            raise HTTPException(status_code=400, detail="Unsupported player event")
        return _snapshot_response(session_id, session)

    @fastapi_app.post("/api/sessions/{session_id}/close")
    async def close_session(session_id: str) -> JSONResponse:
        session = _session(session_id)
        session.close()
        return _snapshot_response(session_id, session)

    @fastapi_app.delete("/api/sessions/{session_id}")
    async def delete_session(session_id: str) -> dict[str, str]:
        try:
            get_session_manager(fastapi_app).discard(session_id)
        except KeyError as exc:
            raise HTTPException(status_code=404, detail="Session not found") from exc
        return {"status": "closed"}

    @fastapi_app.get("/api/continue-watching")
    async def continue_watching() -> dict[str, Any]:
        entries = await get_session_manager(fastapi_app).continue_watching().load()
        return {
            "items": [
                entry.model_dump(mode="json", by_alias=True, exclude_none=True)
                for entry in entries
            ]
        }

    @fastapi_app.get("/api/watchlist")
    async def watchlist() -> dict[str, Any]:
        entries = await get_session_manager(fastapi_app).watchlist().load()
        return {
            "items": [
                entry.model_dump(mode="json", by_alias=True, exclude_none=True)
                for entry in entries
            ]
        }

    @fastapi_app.post("/api/watchlist/toggle")
    async def toggle_watchlist(request: Request) -> dict[str, Any]:
        body = await _read_body(request, WatchlistToggleBody)
        member = await get_session_manager(fastapi_app).watchlist().toggle(
            body.title_id, {"title": body.title, "poster": body.poster}
        )
        return {"titleId": body.title_id, "inWatchlist": member}


app = create_app()


if __name__ == "__main__":  # pragma: no cover - manual execution
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )
