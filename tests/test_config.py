"""Tests for configuration adapter."""

from pathlib import Path

import pytest

from chat_realtime.adapters.config import AppConfig


def test_config_loads_defaults() -> None:
    """Given no environment variables, when loading config, then defaults are used."""
    config = AppConfig()

    assert config.host == "0.0.0.0"
    assert config.port == 8000
    assert config.idle_timeout_seconds == 60
    assert config.reaper_interval_seconds == 15
    assert config.presence_grace_seconds == 2.0
    assert config.keepalive_seconds == 30
    assert config.catch_up_limit == 50
    assert config.session_endpoint_url is None
    assert config.instance_id


def test_config_loads_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Given environment variables, when loading config, then they are used."""
    monkeypatch.setenv("PORT", "9000")
    monkeypatch.setenv("IDLE_TIMEOUT_SECONDS", "120")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    config = AppConfig()

    assert config.port == 9000
    assert config.idle_timeout_seconds == 120
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize(
    "name", ["IDLE_TIMEOUT_SECONDS", "REAPER_INTERVAL_SECONDS", "DELIVERY_TIMEOUT_SECONDS"]
)
def test_config_rejects_non_positive_intervals(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    """Given a zero interval, when loading config, then validation fails."""
    monkeypatch.setenv(name, "0")

    with pytest.raises(ValueError, match="interval must be greater than 0"):
        AppConfig()


def test_config_rejects_negative_grace(monkeypatch: pytest.MonkeyPatch) -> None:
    """Given a negative grace window, when loading config, then validation fails."""
    monkeypatch.setenv("PRESENCE_GRACE_SECONDS", "-1")

    with pytest.raises(ValueError, match="must not be negative"):
        AppConfig()


def test_config_rejects_unknown_log_level(monkeypatch: pytest.MonkeyPatch) -> None:
    """Given an unknown log level, when loading config, then validation fails."""
    monkeypatch.setenv("LOG_LEVEL", "chatty")

    with pytest.raises(ValueError, match="log_level must be one of"):
        AppConfig()


def test_log_level_value_maps_to_logging_constant() -> None:
    """Given a level name, when reading the numeric level, then the logging constant is returned."""
    assert AppConfig(log_level="warning").log_level_value == 30


def test_toml_overrides_apply_known_sections(tmp_path: Path) -> None:
    """Given a TOML file, when loading overrides, then server and realtime values replace defaults."""
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        """
[server]
port = 8100

[realtime]
idle_timeout_seconds = 90
presence_grace_seconds = 0.5

[auth]
session_endpoint_url = "http://localhost:3000/api/auth/session"

[seed.tokens]
alice-token = "alice"
"""
    )
    config = AppConfig(config_file=str(config_path))

    data = config.load_toml_overrides()

    assert config.port == 8100
    assert config.idle_timeout_seconds == 90
    assert config.presence_grace_seconds == 0.5
    assert config.session_endpoint_url == "http://localhost:3000/api/auth/session"
    assert data["seed"]["tokens"] == {"alice-token": "alice"}


def test_toml_overrides_are_validated(tmp_path: Path) -> None:
    """Given an invalid TOML value, when loading overrides, then validation fails."""
    config_path = tmp_path / "config.toml"
    config_path.write_text("[realtime]\nkeepalive_seconds = -5\n")
    config = AppConfig(config_file=str(config_path))

    with pytest.raises(ValueError):
        config.load_toml_overrides()
    assert config.keepalive_seconds == 30


def test_missing_toml_file_raises() -> None:
    """Given a config file path that does not exist, when loading overrides, then FileNotFoundError is raised."""
    config = AppConfig(config_file="/nonexistent/config.toml")

    with pytest.raises(FileNotFoundError):
        config.load_toml_overrides()


def test_no_toml_file_means_no_overrides() -> None:
    """Given no config file, when loading overrides, then nothing changes."""
    config = AppConfig()

    assert config.load_toml_overrides() == {}
