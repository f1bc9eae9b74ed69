"""Configuration surface for BridgeWatch services."""
from __future__ import annotations

import warnings
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from .events import DEFAULT_HISTORY_LIMIT
from .exceptions import BridgeWatchError
from .hashing import to_address
from .models import DEFAULT_BLOCK_THRESHOLD, DEFAULT_FLAG_THRESHOLD, validate_thresholds


class BridgeWatchSettings(BaseSettings):
    """Main BridgeWatch configuration."""

    # Environment
    environment: Literal["dev", "sandbox", "prod"] = "dev"

    # Administrative principal for the registry and the engine
    admin_address: Optional[str] = None

    # State storage: memory:// or sqlite:///path/to.db
    state_dsn: str = "memory://"

    # Threshold policy used until an administrator stores one
    default_flag_threshold: int = DEFAULT_FLAG_THRESHOLD
    default_block_threshold: int = DEFAULT_BLOCK_THRESHOLD

    # Recent audit events kept in memory per process
    event_history_limit: int = Field(default=DEFAULT_HISTORY_LIMIT, ge=1)

    # Logging
    log_level: str = "INFO"
    log_json: bool = True
    log_file: Optional[str] = None

    class Config:
        env_prefix = "BRIDGEWATCH_"
        env_file = ".env"
        extra = "ignore"

    @field_validator("admin_address")
    @classmethod
    def validate_admin_address(cls, v: Optional[str]) -> Optional[str]:
        if v is None or v == "":
            return None
        try:
            return to_address(v, field="admin_address")
        except BridgeWatchError as e:
            raise ValueError(e.message) from e

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("state_dsn")
    @classmethod
    def validate_state_dsn(cls, v: str) -> str:
        if not v:
            return "memory://"
        if v != "memory://" and not v.startswith("sqlite:///"):
            raise ValueError("state_dsn must be memory:// or sqlite:///path")
        return v

    @model_validator(mode="after")
    def validate_default_thresholds(self) -> "BridgeWatchSettings":
        try:
            validate_thresholds(self.default_flag_threshold, self.default_block_threshold)
        except BridgeWatchError as e:
            raise ValueError(e.message) from e
        return self

    @model_validator(mode="after")
    def warn_on_volatile_prod_state(self) -> "BridgeWatchSettings":
        if self.environment == "prod" and self.state_dsn == "memory://":
            warnings.warn(
                "In-memory state is not durable. "
                "Set BRIDGEWATCH_STATE_DSN to a sqlite:/// path in production.",
                RuntimeWarning,
            )
        return self


@lru_cache
def load_settings(env_file: str | None = None) -> BridgeWatchSettings:
    """Load BridgeWatchSettings once per process to keep components consistent."""
    if env_file:
        return BridgeWatchSettings(_env_file=Path(env_file))
    return BridgeWatchSettings()


__all__ = [
    "BridgeWatchSettings",
    "load_settings",
]
