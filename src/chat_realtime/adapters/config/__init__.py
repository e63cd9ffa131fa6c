"""Configuration adapters."""

from chat_realtime.adapters.config.app_config import AppConfig

__all__ = ["AppConfig"]
