"""Presence tracking and event fan-out core for real-time chat."""

__version__ = "0.1.0"
