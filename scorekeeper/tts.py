"""
Google Cloud Text-to-Speech for announcer audio.

Calls the REST `text:synthesize` endpoint through a google-auth
AuthorizedSession and caches the MP3s on disk. Every failure degrades to
`None`, and the browser falls back to its own speech synthesis.
"""
from __future__ import annotations

import base64
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, Optional

import google.auth
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from .config import Settings
from .validation import slug

logger = logging.getLogger(__name__)

SYNTHESIZE_URL = "https://texttospeech.googleapis.com/v1/text:synthesize"
SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]
MAX_AGE_SECONDS = 24 * 60 * 60

# excited call for goals, slower and lower for penalties
VOICES: Dict[str, Dict[str, Any]] = {
    "goal": {
        "voice": {"languageCode": "en-US", "name": "en-US-Neural2-D", "ssmlGender": "MALE"},
        "audioConfig": {
            "audioEncoding": "MP3",
            "speakingRate": 1.1,
            "pitch": 0.5,
            "volumeGainDb": 2.0,
            "effectsProfileId": ["headphone-class-device"],
        },
    },
    "penalty": {
        "voice": {"languageCode": "en-US", "name": "en-US-Neural2-A", "ssmlGender": "MALE"},
        "audioConfig": {
            "audioEncoding": "MP3",
            "speakingRate": 0.95,
            "pitch": -0.5,
            "volumeGainDb": 1.5,
            "effectsProfileId": ["headphone-class-device"],
        },
    },
}

SAFE_FILENAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_\-\.]*\.mp3$")


def _build_session(credentials_file: Optional[str]) -> AuthorizedSession:
    if credentials_file:
        creds = service_account.Credentials.from_service_account_file(credentials_file, scopes=SCOPES)
    else:
        creds, _ = google.auth.default(scopes=SCOPES)
    return AuthorizedSession(creds)


class TTSService:
    def __init__(self, settings: Settings, session: Optional[Any] = None):
        self.enabled = settings.tts_enabled
        self.audio_dir = Path(settings.tts_audio_dir)
        self.session = session

        if not self.enabled:
            logger.info("Google TTS disabled; announcements will use browser speech")
            return

        if self.session is None:
            try:
                self.session = _build_session(settings.google_application_credentials)
            except Exception as e:
                logger.warning(f"Google TTS unavailable, falling back to browser speech: {e}")
                self.session = None
                return

        self.audio_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Google TTS ready, caching audio in {self.audio_dir}")

    @property
    def available(self) -> bool:
        return self.enabled and self.session is not None

    def synthesize(self, text: str, game_id: str, kind: str = "goal") -> Optional[str]:
        """Render `text` to `{slug(gameId)}-{kind}-{ms}.mp3` and return the file name, or None."""
        if not self.available:
            return None

        profile = VOICES.get(kind, VOICES["goal"])
        # imported game ids may hold spaces or slashes; the name must pass SAFE_FILENAME
        filename = f"{slug(game_id) or 'game'}-{kind}-{int(time.time() * 1000)}.mp3"
        body = {"input": {"text": text}, **profile}

        try:
            logger.info(f"Generating TTS for: {text[:50]!r}")
            resp = self.session.post(SYNTHESIZE_URL, json=body, timeout=20)
            resp.raise_for_status()
            audio = base64.b64decode(resp.json()["audioContent"])
            self.audio_dir.mkdir(parents=True, exist_ok=True)
            (self.audio_dir / filename).write_bytes(audio)
        except Exception as e:
            logger.error(f"Failed to generate {kind} TTS audio: {e}")
            return None

        logger.info(f"Generated TTS audio: {filename}")
        return filename

    def audio_path(self, filename: str) -> Optional[Path]:
        if not SAFE_FILENAME.match(filename) or ".." in filename:
            return None
        path = self.audio_dir / filename
        return path if path.is_file() else None

    def cleanup_old_files(self, max_age: float = MAX_AGE_SECONDS) -> int:
        if not self.audio_dir.is_dir():
            return 0
        removed = 0
        now = time.time()
        for path in self.audio_dir.glob("*.mp3"):
            try:
                if now - path.stat().st_mtime > max_age:
                    path.unlink()
                    removed += 1
            except OSError as e:
                logger.error(f"Error cleaning up TTS file {path.name}: {e}")
        if removed:
            logger.info(f"Cleaned up {removed} old TTS files")
        return removed
