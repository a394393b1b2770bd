"""VIP-Auto workshop server — configuration loaded from environment."""

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application-wide settings, loaded from .env or environment variables."""

    # ── Database ──────────────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./vipauto.db"

    # ── Credentials ───────────────────────────────────────
    jwt_secret: str = "change-me-vipauto-development-signing-key"
    jwt_algorithm: str = "HS256"
    token_ttl_hours: int = 24

    # ── Workshop rules ────────────────────────────────────
    masters_exclude_by: Literal["role", "name"] = "role"
    director_name: str = ""
    allow_client_deletion: bool = True

    # ── App ───────────────────────────────────────────────
    app_name: str = "VIP-Auto"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


# Singleton settings instance
settings = Settings()
