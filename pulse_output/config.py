"""Configuration loader for the Pulse output."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

Grouping = Literal["batch", "name"]


class PulseConfig(BaseSettings):
    """Pydantic-based configuration model."""

    model_config = SettingsConfigDict(
        env_prefix="PULSE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    host: str = ""
    stashid: str = ""
    secret: str = ""
    source: str = ""

    grouping: Grouping = "batch"
    timeout: float = 60.0
    max_workers: int = 1

    log_level: str = "INFO"

    @field_validator("host", "stashid", "source", mode="before")
    @classmethod
    def strip_blank(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("host")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("grouping", mode="before")
    @classmethod
    def validate_grouping(cls, value: Any) -> str:
        allowed = {"batch", "name"}
        value_str = str(value or "batch").strip().lower() or "batch"
        if value_str not in allowed:
            raise ValueError(f"PULSE_GROUPING must be one of {sorted(allowed)}")
        return value_str

    @field_validator("timeout", "max_workers")
    @classmethod
    def positive_values(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("Timeout and worker count must be positive")
        return value


def load_config(**overrides: Any) -> PulseConfig:
    """Load configuration from environment variables, applying overrides."""

    return PulseConfig(**overrides)
