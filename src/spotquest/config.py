"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from spotquest.domain.difficulty import Difficulty

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    backend_base_url: str
    player_principal: str
    backend_timeout_seconds: float = 15
    difficulty: Difficulty = Difficulty.NORMAL
    region_filter: str | None = None
    timer_tick_seconds: float = 1.0
    debug: bool = False
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_region_filter(raw: str | None) -> str | None:
    """Normalize a region filter from env; blank or ``*`` means any region."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return None
    return cleaned
