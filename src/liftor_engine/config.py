import os

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _bool(name: str, default: bool) -> bool:
    """
    Helper to parse boolean environment variables.
    Accepts: 1, true, yes, on (case-insensitive).
    """
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in ("1", "true", "yes", "on")


def _norm_db_url(url: str | None) -> str | None:
    """
    Normalize database URL to use async drivers for SQLAlchemy.

    Ensures ``postgres`` URLs use ``asyncpg`` and plain ``sqlite`` URLs use
    ``aiosqlite``. URLs already specifying an async driver are returned as-is.
    """
    if not url:
        return None
    if url.startswith("postgres://"):
        url = "postgresql+asyncpg://" + url[len("postgres://") :]
    if url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://") :]
    if url.startswith("sqlite://"):
        url = "sqlite+aiosqlite://" + url[len("sqlite://") :]
    return url


class Config(BaseSettings):
    """
    Engine configuration loaded from environment variables (and ``.env``).
    Uses pydantic for validation and parsing.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    COMPLETION_API_URL: str = Field(
        "https://api.deepseek.com/v1/chat/completions", description="Completion endpoint"
    )
    COMPLETION_API_KEY: str | None = Field(None, description="Completion API key")
    COMPLETION_MODEL: str = Field("deepseek-chat", description="Completion model name")
    COMPLETION_TIMEOUT_SECONDS: float = Field(90.0, description="Per-request timeout")

    GENERATION_MAX_ATTEMPTS: int = Field(3, ge=1, le=10, description="AI attempts per base plan")
    GENERATION_BACKOFF_SECONDS: float = Field(1.0, ge=0, description="Backoff base in seconds")
    TITRATION_MAX_ATTEMPTS: int = Field(1, ge=1, le=5, description="AI attempts per adjustment")
    REGENERATION_COOLDOWN_DAYS: int = Field(14, ge=0, description="Days between base plans")
    PLAN_SERVICE_MAX_USERS: int = Field(1024, ge=1, description="Users kept loaded in memory")

    TIME_SOURCE_URL: str = Field(
        "https://www.google.com/generate_204", description="URL whose Date header is trusted time"
    )
    DATABASE_URL: str = Field("sqlite+aiosqlite:///./liftor.db", description="Database URL")
    LOG_LEVEL: str = Field("INFO", description="Root log level")

    # Feature flags
    FF_AI_GENERATION: bool = Field(
        default_factory=lambda: _bool("FF_AI_GENERATION", True),
        description="Call the completion API before falling back",
    )

    @field_validator("DATABASE_URL", mode="before")
    @classmethod
    def validate_database_url(cls, v):
        if not v:
            raise ValueError("DATABASE_URL environment variable is required")
        return _norm_db_url(v)

    @field_validator("LOG_LEVEL")
    @classmethod
    def log_level_upper(cls, v: str) -> str:
        return v.strip().upper() or "INFO"


SETTINGS = Config()  # pyright: ignore[reportCallIssue]
