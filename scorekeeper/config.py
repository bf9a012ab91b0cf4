from __future__ import annotations

from functools import lru_cache
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Fatal startup error: required configuration is missing."""


class Settings(BaseSettings):
    """
    Environment-driven settings. Every value has a default except the
    database URI and key, which are checked by `require_database()` when the
    app boots against a real store.
    """

    port: int = 3001
    environment: str = "development"

    # Cosmos DB (MongoDB API)
    cosmos_db_uri: Optional[str] = None
    cosmos_db_key: Optional[str] = None
    cosmos_db_account: Optional[str] = None
    cosmos_db_database_name: str = "hockey-scorekeeper"

    # Google Cloud Text-to-Speech
    tts_enabled: bool = Field(
        True, validation_alias=AliasChoices("GOOGLE_TTS_ENABLED", "tts_enabled")
    )
    google_application_credentials: Optional[str] = None
    tts_audio_dir: str = "audio-cache"

    # Announcer commentary
    anthropic_api_key: Optional[str] = None
    announcer_model: str = "claude-3-haiku-20240307"

    cors_origin: str = "*"

    log_level: str = "INFO"
    enable_request_logging: bool = True

    cache_max_size: int = 1000
    cache_ttl_seconds: int = Field(
        300, validation_alias=AliasChoices("CACHE_TTL", "cache_ttl_seconds")
    )
    cache_sweep_interval_seconds: int = Field(
        600, validation_alias=AliasChoices("CACHE_SWEEP_INTERVAL", "cache_sweep_interval_seconds")
    )

    deployment_timestamp: Optional[str] = None

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
        populate_by_name=True,
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def database_configured(self) -> bool:
        return bool(self.cosmos_db_uri and self.cosmos_db_key and self.cosmos_db_database_name)

    @property
    def database_account(self) -> Optional[str]:
        """Account name used as the MongoDB username; defaults to the first label of the URI host."""
        if self.cosmos_db_account:
            return self.cosmos_db_account
        if not self.cosmos_db_uri:
            return None
        host = urlparse(self.cosmos_db_uri).hostname or ""
        return host.split(".")[0] or None

    def missing_database_settings(self) -> List[str]:
        missing = []
        if not self.cosmos_db_uri:
            missing.append("COSMOS_DB_URI")
        if not self.cosmos_db_key:
            missing.append("COSMOS_DB_KEY")
        return missing

    def require_database(self) -> None:
        missing = self.missing_database_settings()
        if missing:
            raise ConfigurationError(f"Missing required configuration: {', '.join(missing)}")


@lru_cache
def get_settings() -> Settings:
    return Settings()
