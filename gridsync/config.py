# gridsync/config.py
"""
Centralized application configuration using pydantic-settings.

All settings are read from environment variables or .env file.
Timeouts and buffer sizes are tuned per deployment here, never in code.
"""

import os
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


PROJECT_ROOT: str = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Priority: environment variables > .env file > defaults
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore unknown env vars
    )

    # --- Server ---
    HOST: str = Field(
        default="127.0.0.1",
        description="Server bind host"
    )
    PORT: int = Field(
        default=3000,
        description="Server bind port"
    )

    # --- Debug / Logging ---
    DEBUG: bool = Field(
        default=False,
        description="Enable debug mode (tracebacks in error responses)"
    )
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    OTEL_ENABLED: bool = Field(
        default=False,
        description="Trace requests with OpenTelemetry (console exporter)"
    )

    # --- Synchronization ---
    CLIENT_TIMEOUT_SECONDS: float = Field(
        default=10.0,
        description="Seconds without a touch before presence/liveness is evicted"
    )
    UPDATE_LOG_CAPACITY: int = Field(
        default=100,
        description="Number of most recent update records retained for polling"
    )
    SWEEP_INTERVAL_SECONDS: float = Field(
        default=1.0,
        description="Period of the background timeout sweep"
    )
    POLL_INTERVAL_SECONDS: float = Field(
        default=1.0,
        description="Sync client poll interval"
    )

    # --- Paths ---
    STATIC_PATH: str = Field(
        default=os.path.join(PROJECT_ROOT, "static"),
        description="Directory served for GET /*"
    )
    LOGS_PATH: str = Field(
        default=os.path.join(PROJECT_ROOT, "logs"),
        description="Directory for access.log and error.log"
    )

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of {allowed}")
        return v_upper

    @field_validator("CLIENT_TIMEOUT_SECONDS", "SWEEP_INTERVAL_SECONDS", "POLL_INTERVAL_SECONDS")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("intervals and timeouts must be positive")
        return v

    @field_validator("UPDATE_LOG_CAPACITY")
    @classmethod
    def validate_capacity(cls, v: int) -> int:
        if v < 1:
            raise ValueError("UPDATE_LOG_CAPACITY must be at least 1")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached Settings instance (singleton pattern)."""
    return Settings()


# --- Singleton instance for easy import ---
settings = get_settings()


# --- Module-level exports ---

# Server
HOST: str = settings.HOST
PORT: int = settings.PORT
DEBUG: bool = settings.DEBUG
LOG_LEVEL: str = settings.LOG_LEVEL

# Synchronization
CLIENT_TIMEOUT_SECONDS: float = settings.CLIENT_TIMEOUT_SECONDS
UPDATE_LOG_CAPACITY: int = settings.UPDATE_LOG_CAPACITY

# Paths
STATIC_PATH: str = settings.STATIC_PATH
LOGS_PATH: str = settings.LOGS_PATH
