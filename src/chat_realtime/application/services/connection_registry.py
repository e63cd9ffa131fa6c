"""Registry of live client connections."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from chat_realtime.domain.contracts.connection_registry import (
    ConnectionRegistryProtocol,
    RegistryListenerProtocol,
)
from chat_realtime.domain.errors import DuplicateConnection, UnknownConnection
from chat_realtime.domain.models.connection import Connection
from chat_realtime.domain.models.topic import user_topic

if TYPE_CHECKING:
    from chat_realtime.domain.contracts.clock import ClockProtocol
    from chat_realtime.domain.ports.event_sink import EventSink

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Default clock."""
    return datetime.now(UTC)


class ConnectionRegistry(ConnectionRegistryProtocol):
    """Tracks live connections and the topics they subscribe to.

    All state sits behind one re-entrant lock. Every method holds it only for
    in-memory bookkeeping, so snapshots taken by the fan-out are always
    consistent. Listeners are notified while the lock is held, so they see
    connects and disconnects in the order the registry applied them; they must
    not block.
    """

    def __init__(self, clock: ClockProtocol | None = None) -> None:
        """Initialize an empty registry.

        Args:
            clock: Optional time source, defaults to the UTC wall clock.
        """
        self._clock = clock or utc_now
        self._lock = threading.RLock()
        self._connections: dict[str, Connection] = {}
        self._sinks: dict[str, EventSink] = {}
        self._topic_subscribers: dict[str, set[str]] = {}
        self._user_connections: dict[str, set[str]] = {}
        self._listeners: list[RegistryListenerProtocol] = []

    def add_listener(self, listener: RegistryListenerProtocol) -> None:
        """Subscribe an observer to connect/disconnect notifications."""
        self._listeners.append(listener)

    def register(
        self,
        connection_id: str,
        user_id: str,
        topics: Iterable[str],
        sink: EventSink | None = None,
    ) -> Connection:
        """Register a connection and subscribe it to its topics."""
        now = self._clock()
        all_topics = frozenset(topics) | {user_topic(user_id)}
        with self._lock:
            if connection_id in self._connections:
                logger.warning(f"Rejected duplicate registration of connection {connection_id}")
                raise DuplicateConnection(connection_id)
            connection = Connection(
                connection_id=connection_id,
                user_id=user_id,
                topics=all_topics,
                connected_at=now,
                last_activity=now,
            )
            self._connections[connection_id] = connection
            if sink is not None:
                self._sinks[connection_id] = sink
            for topic in all_topics:
                self._topic_subscribers.setdefault(topic, set()).add(connection_id)
            self._user_connections.setdefault(user_id, set()).add(connection_id)
            total = len(self._connections)
            for listener in self._listeners:
                listener.on_connect(user_id, connection_id)

        logger.info(
            f"Registered connection {connection_id} for user {user_id} "
            f"on {len(all_topics)} topic(s), total connections: {total}"
        )
        return connection

    def unregister(self, connection_id: str) -> Connection | None:
        """Remove a connection everywhere. Idempotent."""
        with self._lock:
            connection = self._connections.pop(connection_id, None)
            if connection is None:
                return None
            self._sinks.pop(connection_id, None)
            for topic in connection.topics:
                self._discard_subscriber(topic, connection_id)
            user_connections = self._user_connections.get(connection.user_id)
            if user_connections is not None:
                user_connections.discard(connection_id)
                if not user_connections:
                    del self._user_connections[connection.user_id]
            total = len(self._connections)
            for listener in self._listeners:
                listener.on_disconnect(connection.user_id, connection_id)

        logger.info(
            f"Unregistered connection {connection_id} of user {connection.user_id}, "
            f"total connections: {total}"
        )
        return connection

    def _discard_subscriber(self, topic: str, connection_id: str) -> None:
        subscribers = self._topic_subscribers.get(topic)
        if subscribers is None:
            return
        subscribers.discard(connection_id)
        if not subscribers:
            del self._topic_subscribers[topic]

    def subscribe(self, connection_id: str, topic: str) -> None:
        """Add a topic to a registered connection.

        Raises:
            UnknownConnection: If the connection is not registered.
        """
        with self._lock:
            connection = self._require(connection_id)
            if topic in connection.topics:
                return
            self._connections[connection_id] = replace(
                connection, topics=connection.topics | {topic}
            )
            self._topic_subscribers.setdefault(topic, set()).add(connection_id)

    def unsubscribe(self, connection_id: str, topic: str) -> None:
        """Remove a topic from a connection. Unknown connections are ignored."""
        with self._lock:
            connection = self._connections.get(connection_id)
            if connection is None or topic not in connection.topics:
                return
            self._connections[connection_id] = replace(
                connection, topics=connection.topics - {topic}
            )
            self._discard_subscriber(topic, connection_id)

    def subscribers_of(self, topic: str) -> frozenset[str]:
        """Snapshot of the subscribers of a topic."""
        with self._lock:
            return frozenset(self._topic_subscribers.get(topic, ()))

    def touch(self, connection_id: str, at: datetime | None = None) -> None:
        """Record activity on a connection."""
        when = at or self._clock()
        with self._lock:
            connection = self._require(connection_id)
            if when > connection.last_activity:
                self._connections[connection_id] = replace(connection, last_activity=when)

    def get(self, connection_id: str) -> Connection | None:
        """Return the connection snapshot, or None if not registered."""
        with self._lock:
            return self._connections.get(connection_id)

    def sink_of(self, connection_id: str) -> EventSink | None:
        """Return the transport sink attached to the connection."""
        with self._lock:
            return self._sinks.get(connection_id)

    def connections_for_user(self, user_id: str) -> frozenset[str]:
        """Connection ids currently owned by a user."""
        with self._lock:
            return frozenset(self._user_connections.get(user_id, ()))

    def idle_candidates(self, now: datetime, timeout_seconds: float) -> list[Connection]:
        """Connections whose last activity is older than the timeout."""
        cutoff = now - timedelta(seconds=timeout_seconds)
        with self._lock:
            return [c for c in self._connections.values() if c.last_activity < cutoff]

    def __len__(self) -> int:
        with self._lock:
            return len(self._connections)

    def __contains__(self, connection_id: object) -> bool:
        with self._lock:
            return connection_id in self._connections

    def topic_counts(self) -> dict[str, int]:
        """Number of subscribers per topic."""
        with self._lock:
            return {topic: len(subs) for topic, subs in self._topic_subscribers.items()}

    def user_counts(self) -> dict[str, int]:
        """Number of connections per user."""
        with self._lock:
            return {user: len(conns) for user, conns in self._user_connections.items()}

    def _require(self, connection_id: str) -> Connection:
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.warning(f"Operation on unknown connection {connection_id}")
            raise UnknownConnection(connection_id)
        return connection
