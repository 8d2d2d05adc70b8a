"""
Configuration for the redirection store.

Settings are read once per process from environment variables (and the
.env file at the working directory); existing env vars take precedence.

    REDIRECTION_DB_BACKEND   "postgres" (default) or "sqlite"
    REDIRECTION_DB_HOST      > "localhost"
    REDIRECTION_DB_PORT      > 5432
    REDIRECTION_DB_NAME      > "postgres"
    REDIRECTION_DB_USER      > "postgres"
    REDIRECTION_DB_PASSWORD  > "postgres"
    REDIRECTION_DB_SCHEMA    > unset (public)
    REDIRECTION_SQLITE_PATH  > "redirection.db"
    REDIRECTION_LOG_LEVEL    > "INFO"
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings

# Advertised to the controller as a typed service property.
SUPPORTS_PORT_GROUP_VALUE = ":Boolean=false"

BACKENDS = ("postgres", "sqlite")


class StoreSettings(BaseSettings):
    """Configuration from environment variables."""

    redirection_db_backend: str = "postgres"
    redirection_db_host: str = "localhost"
    redirection_db_port: int = 5432
    redirection_db_name: str = "postgres"
    redirection_db_user: str = "postgres"
    redirection_db_password: str = "postgres"
    redirection_db_schema: str | None = None

    redirection_sqlite_path: str = "redirection.db"

    redirection_log_level: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"
        frozen = True


@lru_cache(maxsize=1)
def get_settings() -> StoreSettings:
    """Process-wide settings, read on first use."""
    return StoreSettings()


def supports_port_group() -> bool:
    """Whether grouped redirection is offered to the controller."""
    value = SUPPORTS_PORT_GROUP_VALUE.split("=")[1]
    return value.strip().lower() == "true"
