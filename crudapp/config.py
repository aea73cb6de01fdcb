"""Configuration management for the user records service."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from sqlalchemy.engine import URL, make_url

DEFAULT_PORT = 3000
DEFAULT_HOST = "0.0.0.0"


def _int_setting(environ: Mapping[str, str], name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw.strip())
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service and its database."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    db_user: str = "postgres"
    db_password: str = "postgres"
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "crud_app"
    database_url_override: Optional[str] = None
    pool_size: int = 5
    max_overflow: int = 10
    log_level: str = "INFO"

    @staticmethod
    def from_env(environ: Mapping[str, str] | None = None) -> "Settings":
        """Create :class:`Settings` from environment variables."""
        env = os.environ if environ is None else environ

        override = env.get("DATABASE_URL")
        return Settings(
            host=env.get("HOST", DEFAULT_HOST).strip() or DEFAULT_HOST,
            port=_int_setting(env, "PORT", DEFAULT_PORT),
            db_user=env.get("DB_USER", "postgres"),
            db_password=env.get("DB_PASSWORD", "postgres"),
            db_host=env.get("DB_HOST", "localhost"),
            db_port=_int_setting(env, "DB_PORT", 5432),
            db_name=env.get("DB_NAME", "crud_app"),
            database_url_override=override.strip() if override and override.strip() else None,
            pool_size=_int_setting(env, "DB_POOL_SIZE", 5),
            max_overflow=_int_setting(env, "DB_MAX_OVERFLOW", 10),
            log_level=env.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )

    def database_url(self) -> URL:
        """Return the SQLAlchemy URL for the configured database."""
        if self.database_url_override:
            return make_url(self.database_url_override)
        return URL.create(
            "postgresql+psycopg",
            username=self.db_user,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_name,
        )


def describe_database(url: URL | str) -> str:
    """Render a database URL for log output with the password masked."""
    if isinstance(url, str):
        url = make_url(url)
    return url.render_as_string(hide_password=True)


__all__ = ["DEFAULT_HOST", "DEFAULT_PORT", "Settings", "describe_database"]
