"""Connection registry contract (protocol)."""

from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from chat_realtime.domain.models.connection import Connection
from chat_realtime.domain.ports.event_sink import EventSink


class RegistryListenerProtocol(Protocol):
    """Observer notified after connections are added or removed.

    Callbacks run under the registry lock and must return without blocking.
    """

    def on_connect(self, user_id: str, connection_id: str) -> None:
        """Called after a connection has been registered."""
        ...

    def on_disconnect(self, user_id: str, connection_id: str) -> None:
        """Called after a connection has been unregistered."""
        ...


class ConnectionRegistryProtocol(Protocol):
    """Protocol for the owner of all live connections."""

    def register(
        self,
        connection_id: str,
        user_id: str,
        topics: Iterable[str],
        sink: EventSink | None = None,
    ) -> Connection:
        """Register a connection and subscribe it to the given topics.

        Args:
            connection_id: Unique id of the connection.
            user_id: Owning user.
            topics: Topics to subscribe to. The user's personal topic is always added.
            sink: Transport sink the fan-out delivers to.

        Returns:
            Snapshot of the registered connection.

        Raises:
            DuplicateConnection: If the id is already registered.
        """
        ...

    def unregister(self, connection_id: str) -> Connection | None:
        """Remove a connection from every topic. No-op for unknown ids.

        Returns:
            The removed connection, or None if it was not registered.
        """
        ...

    def subscribers_of(self, topic: str) -> frozenset[str]:
        """Point-in-time snapshot of the connection ids subscribed to a topic."""
        ...

    def touch(self, connection_id: str, at: datetime | None = None) -> None:
        """Update the last activity timestamp.

        Raises:
            UnknownConnection: If the connection is not registered.
        """
        ...

    def sink_of(self, connection_id: str) -> EventSink | None:
        """Return the transport sink of a connection, if any."""
        ...

    def idle_candidates(self, now: datetime, timeout_seconds: float) -> list[Connection]:
        """Snapshot of connections whose last activity is older than the timeout."""
        ...
