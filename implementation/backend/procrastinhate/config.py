"""Application configuration loaded from environment variables."""

from __future__ import annotations

import functools

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Procrast-in-hate backend settings.

    Every field has a default so the server starts with no environment at all.
    Mail delivery stays disabled until ``smtp_host`` is set.
    """

    database_url: str = "sqlite:///procrastinhate.db"
    cors_origins: str = "*"
    log_level: str = "INFO"

    # Credentials
    bcrypt_rounds: int = 10
    ws_verify_tokens: bool = False

    # Mail
    smtp_host: str | None = None
    smtp_port: int = 465
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_use_ssl: bool = True
    mail_from: str | None = None

    max_image_bytes: int = 5 * 1024 * 1024

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@functools.lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance (singleton)."""
    return Settings()
