"""Presence tracker contract (protocol)."""

from datetime import datetime
from typing import Protocol

from chat_realtime.domain.models.presence_record import PresenceRecord


class PresenceTrackerProtocol(Protocol):
    """Protocol for deriving online/offline status from connections."""

    def on_connect(self, user_id: str, connection_id: str) -> None:
        """Track a new connection for the user."""
        ...

    def on_disconnect(self, user_id: str, connection_id: str) -> None:
        """Stop tracking a connection for the user."""
        ...

    def is_online(self, user_id: str) -> bool:
        """Check whether the user has at least one active connection."""
        ...

    def last_seen(self, user_id: str) -> datetime | None:
        """Return when the user was last seen, or None if never."""
        ...

    def record(self, user_id: str) -> PresenceRecord:
        """Return the presence record of the user."""
        ...
