"""
Configuration Schemas.

Pydantic models defining the expected structure of each YAML config file.
Used by AppConfig to validate configuration at load time. If a YAML file
has missing keys, wrong types, or unknown fields, a clear ValidationError
is raised at startup instead of a cryptic KeyError deep in application code.

Each top-level class corresponds to one file in config/settings/:
    ApplicationSchema  → application.yaml
    DatabaseSchema     → database.yaml
    LoggingSchema      → logging.yaml
    NotesSchema        → notes.yaml
    MirrorSchema       → mirror.yaml
    ResilienceSchema   → resilience.yaml
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class _StrictBase(BaseModel):
    """Base with extra='forbid' so unknown YAML keys are caught immediately."""

    model_config = ConfigDict(extra="forbid")


# =============================================================================
# application.yaml
# =============================================================================


class ApplicationSchema(_StrictBase):
    name: str
    version: str
    description: str
    environment: str
    deep_link_scheme: str


# =============================================================================
# database.yaml
# =============================================================================


class DatabaseSchema(_StrictBase):
    url: str
    echo: bool


# =============================================================================
# logging.yaml
# =============================================================================


class ConsoleHandlerSchema(_StrictBase):
    enabled: bool


class FileHandlerSchema(_StrictBase):
    enabled: bool
    path: str
    max_bytes: int
    backup_count: int


class HandlersSchema(_StrictBase):
    console: ConsoleHandlerSchema
    file: FileHandlerSchema


class LoggingSchema(_StrictBase):
    level: str
    format: str
    handlers: HandlersSchema


# =============================================================================
# notes.yaml
# =============================================================================


class NotesSchema(_StrictBase):
    retention_days: int = Field(ge=0)
    snippet_max_length: int = Field(gt=0)
    preview_title_length: int = Field(gt=0)


# =============================================================================
# mirror.yaml
# =============================================================================


class MirrorKeysSchema(_StrictBase):
    notes_map: str
    selected_id: str
    changed_channel: str


class MirrorRedisSchema(_StrictBase):
    host: str
    port: int
    db: int


class MirrorSchema(_StrictBase):
    backend: Literal["memory", "redis"]
    placeholder: str
    keys: MirrorKeysSchema
    redis: MirrorRedisSchema


# =============================================================================
# resilience.yaml
# =============================================================================


class RetrySchema(_StrictBase):
    max_attempts: int
    backoff_multiplier: float
    backoff_max: float


class CircuitBreakerSchema(_StrictBase):
    fail_max: int
    timeout_duration: int


class ResilienceSchema(_StrictBase):
    mirror_timeout_seconds: float
    retry: RetrySchema
    circuit_breaker: CircuitBreakerSchema
