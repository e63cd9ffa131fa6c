"""12-factor configuration adapter using environment variables and TOML config."""

import logging
import tomllib
import uuid
from pathlib import Path
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# TOML sections and the fields they may override
_TOML_SECTIONS: dict[str, tuple[str, ...]] = {
    "server": ("host", "port", "log_level", "rate_limit_per_minute"),
    "realtime": (
        "idle_timeout_seconds",
        "reaper_interval_seconds",
        "idle_after_seconds",
        "presence_grace_seconds",
        "delivery_timeout_seconds",
        "keepalive_seconds",
        "sink_queue_size",
        "catch_up_limit",
    ),
    "auth": ("session_endpoint_url", "session_timeout_seconds"),
}


class AppConfig(BaseSettings):
    """Application configuration following 12-factor principles."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Server configuration
    host: str = Field(default="0.0.0.0", description="Host to bind the server to")
    port: int = Field(default=8000, description="Port to bind the server to")
    log_level: str = Field(default="INFO", description="Root log level")
    instance_id: str = Field(
        default_factory=lambda: uuid.uuid4().hex,
        description="Id of this process, used to drop echoes from the cross-process broker",
    )

    # Connection lifecycle
    idle_timeout_seconds: float = Field(
        default=60.0, description="Connections without activity for this long are reaped"
    )
    reaper_interval_seconds: float = Field(
        default=15.0, description="Interval between two idle reaper sweeps"
    )
    idle_after_seconds: float = Field(
        default=30.0, description="Time without inbound action before a connection is idle"
    )
    presence_grace_seconds: float = Field(
        default=2.0, description="Offline transitions are held this long before being announced"
    )

    # Delivery
    delivery_timeout_seconds: float = Field(
        default=5.0, description="Upper bound for delivering one event to one connection"
    )
    keepalive_seconds: float = Field(
        default=30.0, description="Interval between keepalive pings on event streams"
    )
    sink_queue_size: int = Field(
        default=100, description="Events buffered per stream before deliveries fail"
    )
    catch_up_limit: int = Field(
        default=50, description="Maximum number of messages returned by a catch-up poll"
    )

    # Rate limiting configuration
    rate_limit_per_minute: int = Field(
        default=600,
        description="Maximum number of requests allowed per IP address per minute",
    )

    # Identity
    session_endpoint_url: str | None = Field(
        default=None,
        description="Session endpoint used to verify bearer tokens; in-memory tokens when unset",
    )
    session_timeout_seconds: float = Field(
        default=5.0, description="Timeout for session endpoint requests"
    )

    # Optional TOML file with [server], [realtime] and [auth] sections
    config_file: str | None = Field(default=None, description="Path to TOML configuration file")

    @field_validator(
        "idle_timeout_seconds",
        "reaper_interval_seconds",
        "idle_after_seconds",
        "delivery_timeout_seconds",
        "keepalive_seconds",
        "session_timeout_seconds",
    )
    @classmethod
    def validate_positive_interval(cls, v: float) -> float:
        """Validate that intervals are strictly positive."""
        if v <= 0:
            raise ValueError("interval must be greater than 0")
        return v

    @field_validator("presence_grace_seconds")
    @classmethod
    def validate_grace(cls, v: float) -> float:
        """Validate that the grace window is not negative."""
        if v < 0:
            raise ValueError("presence_grace_seconds must not be negative")
        return v

    @field_validator("sink_queue_size", "catch_up_limit", "rate_limit_per_minute")
    @classmethod
    def validate_positive_count(cls, v: int) -> int:
        """Validate that sizes and limits are at least 1."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is a standard logging level name."""
        if v.upper() not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}")
        return v.upper()

    @property
    def log_level_value(self) -> int:
        """Numeric logging level."""
        return int(logging.getLevelName(self.log_level))

    def load_toml_overrides(self) -> dict[str, Any]:
        """Apply values from the TOML file, if one is configured.

        Returns:
            The parsed TOML data (empty when no file is configured).

        Raises:
            FileNotFoundError: If the configured file does not exist.
        """
        if not self.config_file:
            return {}

        config_path = Path(self.config_file)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)

        updates: dict[str, Any] = {}
        for section, fields in _TOML_SECTIONS.items():
            values = toml_data.get(section, {})
            if not isinstance(values, dict):
                raise ValueError(f"TOML config '{section}' must be a table")
            updates.update({name: values[name] for name in fields if name in values})

        if updates:
            # Re-validate through the model so TOML values obey the same rules as env vars
            validated = self.model_validate({**self.model_dump(), **updates})
            for name in updates:
                setattr(self, name, getattr(validated, name))
        return toml_data
