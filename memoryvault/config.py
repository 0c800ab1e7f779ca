"""Application configuration using Pydantic Settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="MEMORYVAULT_",
        case_sensitive=False,
        protected_namespaces=("settings_",),
    )

    # Application
    app_name: str = "Memory Vault"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS (the companion UI runs on its own dev server)
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8081"]

    # Storage
    # Everything lives on the device; both paths below default to data_dir.
    data_dir: Path = Path.home() / ".memoryvault"
    database_url_override: str | None = None
    media_dir_override: Path | None = None

    @computed_field
    @property
    def database_url(self) -> str:
        """Get async SQLite URL. Uses override if provided, otherwise lives in data_dir."""
        if self.database_url_override:
            url = self.database_url_override
            if url.startswith("sqlite://"):
                url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)
            return url
        return f"sqlite+aiosqlite:///{self.data_dir / 'memory_vault.db'}"

    @computed_field
    @property
    def media_dir(self) -> Path:
        """Permanent directory for promoted audio and images."""
        if self.media_dir_override:
            return self.media_dir_override
        return self.data_dir / "media"

    # Inference gateway
    model_path: str = "gemma3n:e2b"
    model_use_gpu: bool = True
    model_max_images: int = 1  # Gemma-3n accepts a single image per prompt
    ollama_base_url: str = "http://localhost:11434"
    gateway_timeout_seconds: float = 300.0
    model_keep_alive: str = "30m"

    # Context limits (characters)
    note_context_max_chars: int = 2000
    max_total_context_chars: int = 24000

    # Sessions
    quiz_default_questions: int = 5
    game_min_notes: int = 1
    reminiscence_min_notes: int = 3
    protocol_retry_attempts: int = 1
    chat_history_window: int = 10


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def sanitize_error(
    error: Exception, environment: str, *, generic_message: str = "An internal error occurred."
) -> str:
    """
    Return a user-safe error message.

    In development, returns the full exception string for debugging.
    In staging/production, returns a generic message to avoid leaking internals.
    """
    if environment == "development":
        return str(error)
    return generic_message
