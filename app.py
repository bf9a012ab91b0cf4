"""
Hockey Scorekeeper

Backend for youth league scorekeeping: game scheduling, rosters, attendance,
goals, penalties, shots and game submission, persisted to Cosmos DB through
its MongoDB API. Goal and penalty calls can be read aloud by the announcer
(Claude-written text, Google Cloud Text-to-Speech audio).

Run with `python app.py` or `uvicorn app:create_app --factory`.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import FastAPI, Query
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.templating import Jinja2Templates
from pymongo.errors import ConnectionFailure
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request

from scorekeeper import __version__
from scorekeeper.announcer import Announcer
from scorekeeper.cache import QueryCache
from scorekeeper.config import Settings, get_settings
from scorekeeper.database import DatabaseService
from scorekeeper.errors import AppError
from scorekeeper.models import DIVISIONS, UNKNOWN_DIVISION
from scorekeeper.responses import failure, new_request_id
from scorekeeper.routers import attendance, events, games, health, rosters, stats
from scorekeeper.store import DocumentStore
from scorekeeper.tts import TTSService

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


async def housekeeping(app: FastAPI, interval: float) -> None:
    """Sweep expired cache entries and stale announcer audio on a fixed interval."""
    while True:
        await asyncio.sleep(interval)
        try:
            app.state.cache.sweep()
            app.state.tts.cleanup_old_files()
        except Exception as e:
            logger.error(f"Housekeeping error: {e}")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    task = asyncio.create_task(housekeeping(app, settings.cache_sweep_interval_seconds))
    logger.info(
        f"Scorekeeper {__version__} started ({settings.environment}); "
        f"TTS {'available' if app.state.tts.available else 'unavailable'}, "
        f"AI announcer {'on' if app.state.announcer.ai_enabled else 'off'}"
    )
    try:
        yield
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Scorekeeper shut down")


def _error_response(request: Request, status: int, code: str, message: str, details=None) -> JSONResponse:
    return JSONResponse(status_code=status, content=failure(request, code, message, details))


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return _error_response(request, exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg"),
                "type": err.get("type"),
            }
            for err in exc.errors()
        ]
        logger.warning(f"Request validation failed on {request.method} {request.url.path}: {errors}")
        return _error_response(request, 400, "VALIDATION_ERROR", "Invalid request data", {"errors": errors})

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            code, message = "NOT_FOUND", f"Route {request.method} {request.url.path} not found"
        elif exc.status_code == 405:
            code, message = "METHOD_NOT_ALLOWED", str(exc.detail)
        else:
            code, message = "HTTP_ERROR", str(exc.detail)
        logger.warning(f"{exc.status_code} on {request.method} {request.url.path}")
        return _error_response(request, exc.status_code, code, message)

    @app.exception_handler(ConnectionFailure)
    async def store_unavailable_handler(request: Request, exc: ConnectionFailure):
        logger.error(f"Document store unavailable: {exc}")
        return _error_response(request, 503, "SERVICE_UNAVAILABLE", "Database is temporarily unavailable")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}: {exc}")
        return _error_response(request, 500, "INTERNAL_SERVER_ERROR", "An unexpected error occurred")


def register_pages(app: FastAPI) -> None:
    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    def home(request: Request, division: str = Query("all")):
        db: DatabaseService = request.app.state.db
        games_list = db.get_games({"division": division})
        try:
            games_list = db.backfill_divisions(games_list)
        except Exception as e:
            logger.warning(f"Division backfill failed on game selection: {e}")

        grouped = {}
        for game in games_list:
            grouped.setdefault(game.get("division") or UNKNOWN_DIVISION, []).append(game)

        return templates.TemplateResponse(
            request,
            "index.html",
            {
                "divisions": DIVISIONS,
                "selected_division": division,
                "games_by_division": grouped,
                "game_count": len(games_list),
            },
        )

    @app.get("/games/{game_id}/score", response_class=HTMLResponse, include_in_schema=False)
    def score_game(request: Request, game_id: str):
        db: DatabaseService = request.app.state.db
        game = db.require_game(game_id)

        roster_notice = None
        try:
            game_rosters = db.get_rosters({"gameId": game_id})
        except AppError as e:
            logger.warning(f"Rosters unavailable for {game_id}: {e.message}")
            game_rosters = []
            roster_notice = e.message

        return templates.TemplateResponse(
            request,
            "game.html",
            {
                "game": game,
                "rosters": game_rosters,
                "roster_notice": roster_notice,
                "goals": db.get_goals(game_id),
                "penalties": db.get_penalties(game_id),
            },
        )


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    cache: Optional[QueryCache] = None,
    tts: Optional[TTSService] = None,
    announcer: Optional[Announcer] = None,
) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    if store is None:
        store = DocumentStore.from_settings(settings)
    cache = cache or QueryCache(default_ttl=settings.cache_ttl_seconds, max_size=settings.cache_max_size)

    app = FastAPI(title="Hockey Scorekeeper API", version=__version__, lifespan=lifespan)
    app.state.settings = settings
    app.state.cache = cache
    app.state.db = DatabaseService(store, cache)
    app.state.tts = tts or TTSService(settings)
    app.state.announcer = announcer or Announcer(settings)
    app.state.started_at = time.monotonic()
    app.state.deployment_timestamp = settings.deployment_timestamp

    origins = [o.strip() for o in settings.cors_origin.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or new_request_id()
        request.state.request_id = request_id
        started = time.perf_counter()

        if settings.enable_request_logging:
            logger.info(f"Request received: {request.method} {request.url.path} [{request_id}]")

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        if settings.enable_request_logging:
            elapsed = (time.perf_counter() - started) * 1000
            logger.info(
                f"Request completed: {request.method} {request.url.path} "
                f"{response.status_code} in {elapsed:.1f}ms [{request_id}]"
            )
        return response

    register_exception_handlers(app)
    register_pages(app)
    for module in (games, rosters, events, attendance, stats, health):
        app.include_router(module.router)

    return app


if __name__ == "__main__":
    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)
