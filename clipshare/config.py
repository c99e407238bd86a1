# clipshare/config.py
"""
Centralized application configuration using pydantic-settings.

All settings are read from environment variables or .env file.
Tests and embedders can pass an explicit Settings instance to create_app().
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from clipshare.utils.codes import MAX_CODE_LENGTH


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Priority: environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )

    # --- Store ---
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )
    STORE_BACKEND: Literal["redis", "memory"] = Field(
        default="redis",
        description="Entry store backend (memory is single-process only)"
    )
    STORE_TIMEOUT: float = Field(
        default=2.0,
        description="Timeout in seconds applied to every store round-trip"
    )
    STORE_FAILURE_THRESHOLD: int = Field(
        default=5,
        description="Consecutive store failures before the circuit opens"
    )
    STORE_RECOVERY_TIMEOUT: float = Field(
        default=10.0,
        description="Seconds the circuit stays open before a trial request"
    )
    STORE_CONNECT_RETRIES: int = Field(
        default=3,
        description="Ping retries at startup before giving up"
    )
    STORE_EVENTS_ENABLED: bool = Field(
        default=True,
        description="Relay raw store content writes to room subscribers"
    )

    # --- Expiry ---
    DATA_EXPIRY: int = Field(
        default=86400,
        description="Clipboard entry lifetime in seconds"
    )
    HISTORY_EXPIRY: int = Field(
        default=30 * 86400,
        description="Per-client history lifetime in seconds (sliding)"
    )
    HISTORY_MAX_ITEMS: int = Field(
        default=100,
        description="Max codes kept per client history, 0 keeps everything"
    )
    VIEWER_EXPIRY: int = Field(
        default=3600,
        description="Presence lifetime in seconds (sliding, per viewer)"
    )

    # --- Codes ---
    CODE_LENGTH: int = Field(default=6, description="Generated code length")
    CODE_MAX_ATTEMPTS: int = Field(
        default=5,
        description="Attempts to find an unused code before failing"
    )
    PREVIEW_LENGTH: int = Field(default=50, description="History preview length")

    # --- Server ---
    HOST: str = Field(
        default="127.0.0.1",
        description="Server bind host"
    )
    PORT: int = Field(
        default=5000,
        description="Server bind port"
    )
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins"
    )

    # --- Debug / Logging ---
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    LOGS_PATH: Optional[str] = Field(
        default=None,
        description="Directory for error.log; stdout only when unset"
    )
    SERVICE_NAME: str = Field(default="clipshare")
    TRACING_ENABLED: bool = Field(
        default=False,
        description="Export OpenTelemetry spans to the console"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v_upper

    @field_validator("DATA_EXPIRY", "HISTORY_EXPIRY", "VIEWER_EXPIRY", "CODE_LENGTH", "CODE_MAX_ATTEMPTS")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("CODE_LENGTH")
    @classmethod
    def validate_code_length(cls, v: int) -> int:
        # Longer codes would be rejected by is_valid_code on lookup
        if v > MAX_CODE_LENGTH:
            raise ValueError(f"must be at most {MAX_CODE_LENGTH}")
        return v

    @field_validator("HISTORY_MAX_ITEMS", "PREVIEW_LENGTH")
    @classmethod
    def validate_non_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must not be negative")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings()
