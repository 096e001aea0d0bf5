"""
Configuration Management.

Loads optional secrets from config/.env and settings from config/settings/*.yaml.
No hardcoded values in code; all configuration comes from these sources.

Secrets (.env):
    REDIS_PASSWORD

Settings (YAML):
    application.yaml  - App identity and deep-link scheme
    database.yaml     - Note store connection settings
    logging.yaml      - Logging configuration
    notes.yaml        - Trash retention and search snippet sizing
    mirror.yaml       - Companion mirror backend, keys and Redis connection
    resilience.yaml   - Retry and circuit breaker sizing for mirror writes
"""

from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from notekeeper.core.config_schema import (
    ApplicationSchema,
    DatabaseSchema,
    LoggingSchema,
    MirrorSchema,
    NotesSchema,
    ResilienceSchema,
)
from notekeeper.core.exceptions import ConfigurationError


def find_project_root() -> Path:
    """Find project root by looking for .project_root marker file."""
    current = Path.cwd()
    while current != current.parent:
        if (current / ".project_root").exists():
            return current
        current = current.parent
    raise RuntimeError("Project root not found. Ensure .project_root file exists.")


def validate_project_root() -> Path:
    """
    Validate that the project root can be found.

    Raises SystemExit with a clear message if .project_root is not found.
    Use this in entry scripts before any configuration loading.
    """
    try:
        return find_project_root()
    except RuntimeError as e:
        raise SystemExit(f"Error: {e}") from e


def load_yaml_config(filename: str) -> dict[str, Any]:
    """Load a YAML configuration file from config/settings/."""
    project_root = find_project_root()
    config_path = project_root / "config" / "settings" / filename

    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(config_path) as f:
        return yaml.safe_load(f) or {}


class Settings(BaseSettings):
    """Secrets loaded from config/.env. Only passwords, tokens, and keys."""

    redis_password: str = ""

    model_config = SettingsConfigDict(
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


def _load_validated(schema_cls: type, filename: str) -> Any:
    """Load YAML and validate against schema. Returns typed model instance."""
    raw = load_yaml_config(filename)
    try:
        return schema_cls(**raw)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid configuration in {filename}:\n{e}"
        ) from e


class AppConfig:
    """
    Application configuration loaded from YAML files.

    Each YAML file is validated against its Pydantic schema at load time.
    Missing keys, wrong types, or unknown fields raise a clear error
    immediately instead of causing cryptic KeyErrors later.
    """

    def __init__(self) -> None:
        self._application = _load_validated(ApplicationSchema, "application.yaml")
        self._database = _load_validated(DatabaseSchema, "database.yaml")
        self._logging = _load_validated(LoggingSchema, "logging.yaml")
        self._notes = _load_validated(NotesSchema, "notes.yaml")
        self._mirror = _load_validated(MirrorSchema, "mirror.yaml")
        self._resilience = _load_validated(ResilienceSchema, "resilience.yaml")

    @property
    def application(self) -> ApplicationSchema:
        """Application settings."""
        return self._application

    @property
    def database(self) -> DatabaseSchema:
        """Note store settings."""
        return self._database

    @property
    def logging(self) -> LoggingSchema:
        """Logging settings."""
        return self._logging

    @property
    def notes(self) -> NotesSchema:
        """Trash retention and search settings."""
        return self._notes

    @property
    def mirror(self) -> MirrorSchema:
        """Companion mirror settings."""
        return self._mirror

    @property
    def resilience(self) -> ResilienceSchema:
        """Retry and circuit breaker settings."""
        return self._resilience


@lru_cache
def get_settings() -> Settings:
    """Get cached secrets instance. Reads config/.env when present."""
    env_path = find_project_root() / "config" / ".env"
    if env_path.is_file():
        return Settings(_env_file=str(env_path))
    return Settings()


@lru_cache
def get_app_config() -> AppConfig:
    """Get cached application configuration."""
    return AppConfig()


def get_database_url() -> str:
    """
    Return the note store URL from database.yaml.

    Relative SQLite file paths are anchored at the project root so the
    store does not depend on the working directory.
    """
    url = get_app_config().database.url
    prefix = "sqlite+aiosqlite:///"
    if url.startswith(prefix):
        path = url[len(prefix):]
        if path and path != ":memory:" and not Path(path).is_absolute():
            db_path = find_project_root() / path
            db_path.parent.mkdir(parents=True, exist_ok=True)
            return f"{prefix}{db_path}"
    return url


def get_redis_url() -> str:
    """
    Construct the mirror Redis URL from mirror.yaml and secrets.

    Returns:
        Redis connection URL string.
    """
    redis = get_app_config().mirror.redis
    password = get_settings().redis_password
    auth = f":{password}@" if password else ""
    return f"redis://{auth}{redis.host}:{redis.port}/{redis.db}"
