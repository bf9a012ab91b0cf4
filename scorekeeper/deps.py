from __future__ import annotations

from fastapi import Request, Response

from .announcer import Announcer
from .config import Settings
from .database import DatabaseService
from .tts import TTSService


def get_db(request: Request) -> DatabaseService:
    return request.app.state.db


def get_tts(request: Request) -> TTSService:
    return request.app.state.tts


def get_announcer(request: Request) -> Announcer:
    return request.app.state.announcer


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def no_store(response: Response) -> None:
    """Lists change during a game; keep browsers and proxies from caching them."""
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"
