"""Presence tracking for chat users."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Coroutine
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from chat_realtime.application.services.keyed_locks import KeyedLocks
from chat_realtime.domain.contracts.connection_registry import RegistryListenerProtocol
from chat_realtime.domain.contracts.presence_tracker import PresenceTrackerProtocol
from chat_realtime.domain.models.event import Event, EventKind
from chat_realtime.domain.models.presence_record import PresenceRecord
from chat_realtime.domain.models.topic import user_topic

if TYPE_CHECKING:
    from chat_realtime.domain.contracts.clock import ClockProtocol
    from chat_realtime.domain.contracts.event_fanout import EventFanoutProtocol
    from chat_realtime.domain.ports.social_graph import SocialGraph

logger = logging.getLogger(__name__)


class PresenceTracker(PresenceTrackerProtocol, RegistryListenerProtocol):
    """Derives online/offline status from registry activity.

    The first connection of a user announces them online right away. The
    offline announcement after the last connection closes is held back for a
    grace window and dropped if the user reconnects inside it, so a page
    reload does not produce a pair of presence events.
    """

    def __init__(
        self,
        fanout: EventFanoutProtocol,
        social_graph: SocialGraph,
        grace_seconds: float = 2.0,
        clock: ClockProtocol | None = None,
    ) -> None:
        """Initialize the presence tracker.

        Args:
            fanout: Fan-out used to deliver presence-changed events.
            social_graph: Source of the contacts interested in a user's presence.
            grace_seconds: How long an offline transition is held before it is announced.
            clock: Optional time source, defaults to the UTC wall clock.
        """
        self.fanout = fanout
        self.social_graph = social_graph
        self.grace_seconds = grace_seconds
        self._clock = clock or (lambda: datetime.now(UTC))
        self._connections: dict[str, set[str]] = {}
        self._last_seen: dict[str, datetime] = {}
        self._pending_offline: dict[str, asyncio.Task[None]] = {}
        self._emit_locks: KeyedLocks[str] = KeyedLocks()
        self._tasks: set[asyncio.Task[Any]] = set()

    def on_connect(self, user_id: str, connection_id: str) -> None:
        """Track a new connection; announce the user if this is their first."""
        connections = self._connections.setdefault(user_id, set())
        was_offline = not connections
        connections.add(connection_id)
        self._last_seen[user_id] = self._clock()
        if not was_offline:
            return

        pending = self._pending_offline.pop(user_id, None)
        if pending is not None and not pending.done():
            pending.cancel()
            logger.debug(f"User {user_id} reconnected within grace window, presence unchanged")
            return
        self._spawn(self._announce(user_id, is_online=True), f"presence-online-{user_id}")

    def on_disconnect(self, user_id: str, connection_id: str) -> None:
        """Stop tracking a connection; hold the offline transition for the grace window."""
        connections = self._connections.get(user_id)
        if connections is None or connection_id not in connections:
            return
        connections.discard(connection_id)
        self._last_seen[user_id] = self._clock()
        if connections:
            return

        del self._connections[user_id]
        task = self._spawn(
            self._announce_offline_after_grace(user_id), f"presence-offline-{user_id}"
        )
        if task is not None:
            self._pending_offline[user_id] = task

    def heartbeat(self, user_id: str, at: datetime | None = None) -> None:
        """Refresh the last-seen timestamp of a connected user."""
        if user_id in self._connections:
            self._last_seen[user_id] = at or self._clock()

    def is_online(self, user_id: str) -> bool:
        """Check whether the user has at least one active connection."""
        return bool(self._connections.get(user_id))

    def last_seen(self, user_id: str) -> datetime | None:
        """Return when the user was last seen."""
        return self._last_seen.get(user_id)

    def record(self, user_id: str) -> PresenceRecord:
        """Return the presence record of the user."""
        return PresenceRecord(
            user_id=user_id,
            last_seen=self._last_seen.get(user_id),
            connection_ids=frozenset(self._connections.get(user_id, ())),
        )

    def online_users(self) -> frozenset[str]:
        """Users with at least one active connection."""
        return frozenset(user for user, conns in self._connections.items() if conns)

    async def flush(self) -> None:
        """Wait for pending presence announcements, including held offline transitions."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel every pending announcement."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending_offline.clear()

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None] | None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            coro.close()
            logger.warning(f"No running event loop, presence change {name} not announced")
            return None
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _announce_offline_after_grace(self, user_id: str) -> None:
        await asyncio.sleep(self.grace_seconds)
        if self._pending_offline.get(user_id) is asyncio.current_task():
            del self._pending_offline[user_id]
        if self.is_online(user_id):
            return
        await self._announce(user_id, is_online=False)

    async def _announce(self, user_id: str, is_online: bool) -> None:
        async with self._emit_locks.hold(user_id):
            try:
                contacts = await self.social_graph.contacts_of(user_id)
            except Exception as e:
                logger.error(f"Could not load contacts of {user_id}: {e}", exc_info=True)
                return

            last_seen = self._last_seen.get(user_id)
            payload = {
                "userId": user_id,
                "isOnline": is_online,
                "lastSeen": last_seen.isoformat() if last_seen else None,
            }
            logger.info(
                f"Presence changed: user {user_id} is {'online' if is_online else 'offline'}, "
                f"notifying {len(contacts)} contact(s)"
            )
            for contact in sorted(contacts):
                topic = user_topic(contact)
                event = Event(kind=EventKind.PRESENCE_CHANGED, topic=topic, payload=payload)
                await self.fanout.publish(topic, event)
