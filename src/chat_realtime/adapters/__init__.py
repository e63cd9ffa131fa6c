"""Adapters layer - configuration, collaborators and transports."""

from chat_realtime.adapters.config import AppConfig

__all__ = ["AppConfig"]
