"""Chat session orchestration: attach, typing, seen receipts, membership."""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator, Iterable
from contextlib import AsyncExitStack, asynccontextmanager
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from chat_realtime.application.services.keyed_locks import KeyedLocks
from chat_realtime.domain.errors import (
    AccessDenied,
    CannotSeeOwnMessage,
    ChatNotJoinable,
    NotFound,
    UnknownConnection,
)
from chat_realtime.domain.models.connection import ConnectionHandle, ConnectionState
from chat_realtime.domain.models.debug_status import DebugStatus
from chat_realtime.domain.models.event import Event, EventKind
from chat_realtime.domain.models.participant import ChatKind
from chat_realtime.domain.models.topic import chat_topic, is_chat_topic, parse_topic, user_topic

if TYPE_CHECKING:
    from chat_realtime.application.services.connection_registry import ConnectionRegistry
    from chat_realtime.application.services.event_fanout import EventFanout
    from chat_realtime.application.services.presence_tracker import PresenceTracker
    from chat_realtime.application.services.unread_accountant import UnreadAccountant
    from chat_realtime.domain.contracts.clock import ClockProtocol
    from chat_realtime.domain.models.delivery_report import DeliveryReport
    from chat_realtime.domain.models.message import Message
    from chat_realtime.domain.models.participant import ParticipantState
    from chat_realtime.domain.models.unread import UnreadSnapshot
    from chat_realtime.domain.ports.event_sink import EventSink
    from chat_realtime.domain.ports.identity_verifier import IdentityVerifier
    from chat_realtime.domain.ports.message_store import MessageStore
    from chat_realtime.domain.ports.participation_store import ParticipationStore

logger = logging.getLogger(__name__)


class ChatSessionService:
    """Entry point for transport code.

    Validates participation, keeps the registry and participation records in
    step, and triggers the fan-out. Participation checks and store writes for
    one (chat, user) pair are serialized, so a reader never sees a connection
    subscribed to a chat its user is not an active participant of, outside
    the duration of a single join or leave.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        fanout: EventFanout,
        presence: PresenceTracker,
        unread: UnreadAccountant,
        verifier: IdentityVerifier,
        participants: ParticipationStore,
        messages: MessageStore,
        idle_after_seconds: float = 30.0,
        idle_timeout_seconds: float = 60.0,
        catch_up_limit: int = 50,
        clock: ClockProtocol | None = None,
    ) -> None:
        """Initialize the session service.

        Args:
            registry: Connection registry.
            fanout: Event fan-out.
            presence: Presence tracker, registered as a registry listener.
            unread: Unread accountant.
            verifier: Identity verifier for attach tokens.
            participants: Participation store.
            messages: Message store.
            idle_after_seconds: Time without inbound action before a connection counts as idle.
            idle_timeout_seconds: Time without any activity before a connection is reaped.
            catch_up_limit: Maximum number of messages returned by a catch-up query.
            clock: Optional time source, defaults to the UTC wall clock.
        """
        self.registry = registry
        self.fanout = fanout
        self.presence = presence
        self.unread = unread
        self.verifier = verifier
        self.participants = participants
        self.messages = messages
        self.idle_after_seconds = idle_after_seconds
        self.idle_timeout_seconds = idle_timeout_seconds
        self.catch_up_limit = catch_up_limit
        self._clock = clock or (lambda: datetime.now(UTC))
        self._last_action: dict[str, datetime] = {}
        self._connecting: set[str] = set()
        self._membership_locks: KeyedLocks[tuple[str, str]] = KeyedLocks()
        registry.add_listener(presence)

    # -- connection lifecycle -------------------------------------------------

    async def attach(
        self,
        token: str,
        chat_ids: Iterable[str],
        sink: EventSink | None = None,
        connection_id: str | None = None,
    ) -> ConnectionHandle:
        """Authenticate a client and register its connection.

        Raises:
            AuthError: If the token cannot be verified.
            AccessDenied: If the user is not an active participant of every chat.
            DuplicateConnection: If the connection id is already registered.
        """
        connection_id = connection_id or uuid.uuid4().hex
        self._connecting.add(connection_id)
        try:
            user_id = await self.verifier.verify(token)
            chats = tuple(dict.fromkeys(chat_ids))
            async with self._membership(user_id, chats):
                for chat_id in chats:
                    await self._require_active(user_id, chat_id)
                self.registry.register(
                    connection_id, user_id, [chat_topic(c) for c in chats], sink
                )
        finally:
            self._connecting.discard(connection_id)

        handle = ConnectionHandle(connection_id=connection_id, user_id=user_id, chat_ids=chats)
        await self.fanout.send_to(
            connection_id,
            Event(
                kind=EventKind.CONNECTED,
                topic=user_topic(user_id),
                payload={
                    "message": "Connected to chat stream",
                    "connectionId": connection_id,
                    "chatIds": list(chats),
                },
            ),
        )
        return handle

    async def detach(self, handle: ConnectionHandle) -> None:
        """Unregister a connection. Safe to call more than once."""
        self._drop(handle.connection_id)

    def resolve_handle(self, connection_id: str, user_id: str) -> ConnectionHandle:
        """Rebuild the handle of a live connection for a request-per-action transport.

        Raises:
            UnknownConnection: If the connection is not registered.
            AccessDenied: If the connection belongs to another user.
        """
        connection = self.registry.get(connection_id)
        if connection is None:
            raise UnknownConnection(connection_id)
        if connection.user_id != user_id:
            raise AccessDenied(f"Connection {connection_id} belongs to another user")
        chat_ids = tuple(
            sorted(
                parse_topic(topic)[1] for topic in connection.topics if is_chat_topic(topic)
            )
        )
        return ConnectionHandle(connection_id=connection_id, user_id=user_id, chat_ids=chat_ids)

    def heartbeat(self, handle: ConnectionHandle) -> None:
        """Keep a connection alive without counting as an inbound action.

        Raises:
            UnknownConnection: If the connection is no longer registered.
        """
        self.registry.touch(handle.connection_id)
        self.presence.heartbeat(handle.user_id)

    def connection_state(self, handle: ConnectionHandle) -> ConnectionState:
        """Current lifecycle state of a connection."""
        if handle.connection_id in self._connecting:
            return ConnectionState.CONNECTING
        if handle.connection_id not in self.registry:
            return ConnectionState.DISCONNECTED
        last_action = self._last_action.get(handle.connection_id)
        if last_action is None:
            return ConnectionState.JOINED
        if self._clock() - last_action <= timedelta(seconds=self.idle_after_seconds):
            return ConnectionState.ACTIVE
        return ConnectionState.IDLE

    def reap_idle(self, now: datetime | None = None) -> list[str]:
        """Disconnect every connection idle for longer than the timeout.

        Candidates are snapshotted first and then removed one by one.
        """
        candidates = self.registry.idle_candidates(now or self._clock(), self.idle_timeout_seconds)
        reaped = []
        for connection in candidates:
            if self._drop(connection.connection_id):
                reaped.append(connection.connection_id)
                logger.debug(
                    f"Reaped idle connection {connection.connection_id} "
                    f"of user {connection.user_id}"
                )
        return reaped

    # -- inbound actions -------------------------------------------------------

    async def send_typing(
        self, handle: ConnectionHandle, chat_id: str, is_typing: bool
    ) -> DeliveryReport:
        """Tell the other participants that the user is (not) typing.

        Raises:
            AccessDenied: If the user is not an active participant.
        """
        self._record_action(handle)
        await self._require_active(handle.user_id, chat_id)
        topic = chat_topic(chat_id)
        event = Event(
            kind=EventKind.TYPING,
            topic=topic,
            payload={"userId": handle.user_id, "chatId": chat_id, "isTyping": is_typing},
            exclude_user_id=handle.user_id,
        )
        return await self.fanout.publish(topic, event)

    async def send_message(self, handle: ConnectionHandle, chat_id: str, content: str) -> Message:
        """Record a message and announce it once it is durable.

        Raises:
            AccessDenied: If the user is not an active participant.
        """
        self._record_action(handle)
        await self._require_active(handle.user_id, chat_id)
        message = await self.messages.append(chat_id, handle.user_id, content)
        await self.fanout.publish_message_created(message)
        return message

    async def mark_seen(self, handle: ConnectionHandle, chat_id: str, message_id: str) -> bool:
        """Record a seen receipt for a message and advance the read watermark.

        Returns:
            True if the receipt was new, False if it was already recorded.

        Raises:
            AccessDenied: If the user is not an active participant.
            NotFound: If the message does not exist in the chat.
            CannotSeeOwnMessage: If the user wrote the message.
        """
        self._record_action(handle)
        user_id = handle.user_id
        await self._require_active(user_id, chat_id)

        message = await self.messages.get(chat_id, message_id)
        if message is None or message.is_deleted:
            raise NotFound(f"Message {message_id} not found in chat {chat_id}")
        if message.author_id == user_id:
            raise CannotSeeOwnMessage("Cannot mark own message as seen")

        # The receipt is stored only once the watermark is
        await self.unread.mark_seen(user_id, chat_id, message.created_at)
        newly_seen = await self.messages.add_seen(chat_id, message_id, user_id)
        if not newly_seen:
            return False

        topic = chat_topic(chat_id)
        await self.fanout.publish(
            topic,
            Event(
                kind=EventKind.SEEN,
                topic=topic,
                payload={
                    "chatId": chat_id,
                    "messageId": message_id,
                    "userId": user_id,
                    "seenAt": self._clock().isoformat(),
                },
            ),
        )
        return True

    async def messages_since(
        self, handle: ConnectionHandle, chat_id: str, since: datetime
    ) -> list[Message]:
        """Catch-up query for a client that may have missed events.

        Raises:
            AccessDenied: If the user is not an active participant.
        """
        self.heartbeat(handle)
        await self._require_active(handle.user_id, chat_id)
        messages = await self.messages.messages_since(chat_id, since, limit=self.catch_up_limit)
        return [m for m in messages if not m.is_deleted]

    # -- membership --------------------------------------------------------------

    async def join_chat(self, user_id: str, chat_id: str) -> ParticipantState:
        """Activate a membership and subscribe the user's live connections.

        Raises:
            NotFound: If the chat does not exist.
            ChatNotJoinable: If the chat is not a group chat.
        """
        kind = await self.participants.chat_kind(chat_id)
        if kind is None:
            raise NotFound(f"Chat {chat_id} not found")
        if kind is not ChatKind.GROUP:
            raise ChatNotJoinable("Can only join group chats")
        topic = chat_topic(chat_id)
        async with self._membership(user_id, (chat_id,)):
            participant = await self.participants.set_active(chat_id, user_id, True)
            for connection_id in self.registry.connections_for_user(user_id):
                try:
                    self.registry.subscribe(connection_id, topic)
                except UnknownConnection:
                    logger.debug(f"Connection {connection_id} closed while joining {chat_id}")
            self.unread.invalidate(user_id, chat_id)
        logger.info(f"User {user_id} joined chat {chat_id}")
        return participant

    async def leave_chat(self, user_id: str, chat_id: str) -> None:
        """Deactivate a membership and unsubscribe the user's live connections.

        Raises:
            AccessDenied: If the user is not an active participant.
        """
        topic = chat_topic(chat_id)
        async with self._membership(user_id, (chat_id,)):
            await self._require_active(user_id, chat_id)
            subscribed = [
                cid
                for cid in self.registry.connections_for_user(user_id)
                if cid in self.registry.subscribers_of(topic)
            ]
            for connection_id in subscribed:
                self.registry.unsubscribe(connection_id, topic)
            try:
                await self.participants.set_active(chat_id, user_id, False)
            except Exception:
                for connection_id in subscribed:
                    if connection_id in self.registry:
                        self.registry.subscribe(connection_id, topic)
                logger.error(
                    f"Failed to deactivate user {user_id} in chat {chat_id}, "
                    "subscriptions restored",
                    exc_info=True,
                )
                raise
            self.unread.invalidate(user_id, chat_id)
        logger.info(f"User {user_id} left chat {chat_id}")

    # -- queries ---------------------------------------------------------------

    async def get_unread(self, user_id: str) -> UnreadSnapshot:
        """Per-chat and total unread counts for a user."""
        return await self.unread.snapshot(user_id)

    def debug_status(self) -> DebugStatus:
        """Operational snapshot of the registry."""
        per_topic = self.registry.topic_counts()
        return DebugStatus(
            active_connections=len(self.registry),
            topics=len(per_topic),
            per_topic_subscribers=per_topic,
            connections_by_user=self.registry.user_counts(),
            online_users=len(self.presence.online_users()),
            generated_at=self._clock(),
        )

    # -- notifications for changes made elsewhere -------------------------------

    async def notify_message_edited(
        self, chat_id: str, message_id: str, content: str, exclude_user_id: str | None = None
    ) -> DeliveryReport:
        """Announce an edit recorded by the message store."""
        return await self._notify_chat(
            chat_id,
            EventKind.MESSAGE_EDITED,
            {"messageId": message_id, "updatedContent": content},
            exclude_user_id,
        )

    async def notify_message_deleted(
        self, chat_id: str, message_id: str, exclude_user_id: str | None = None
    ) -> DeliveryReport:
        """Announce a deletion recorded by the message store."""
        return await self._notify_chat(
            chat_id, EventKind.MESSAGE_DELETED, {"messageId": message_id}, exclude_user_id
        )

    async def notify_reaction_updated(
        self,
        chat_id: str,
        message_id: str,
        reactions: list[dict[str, Any]],
        exclude_user_id: str | None = None,
    ) -> DeliveryReport:
        """Announce new reactions on a message."""
        return await self._notify_chat(
            chat_id,
            EventKind.REACTION_UPDATED,
            {"messageId": message_id, "reactions": reactions},
            exclude_user_id,
        )

    # -- helpers ---------------------------------------------------------------

    async def _notify_chat(
        self,
        chat_id: str,
        kind: EventKind,
        payload: dict[str, Any],
        exclude_user_id: str | None,
    ) -> DeliveryReport:
        topic = chat_topic(chat_id)
        event = Event(
            kind=kind,
            topic=topic,
            payload={"chatId": chat_id, **payload},
            exclude_user_id=exclude_user_id,
        )
        return await self.fanout.publish(topic, event)

    async def _require_active(self, user_id: str, chat_id: str) -> ParticipantState:
        participant = await self.participants.get_participant(chat_id, user_id)
        if participant is None or not participant.is_active:
            raise AccessDenied(f"User {user_id} is not a participant of chat {chat_id}")
        return participant

    def _record_action(self, handle: ConnectionHandle) -> None:
        now = self._clock()
        self.registry.touch(handle.connection_id, now)
        self._last_action[handle.connection_id] = now
        self.presence.heartbeat(handle.user_id, now)

    def _drop(self, connection_id: str) -> bool:
        self._last_action.pop(connection_id, None)
        return self.registry.unregister(connection_id) is not None

    @asynccontextmanager
    async def _membership(self, user_id: str, chat_ids: Iterable[str]) -> AsyncIterator[None]:
        # Sorted acquisition so concurrent multi-chat attaches cannot deadlock
        async with AsyncExitStack() as stack:
            for chat_id in sorted(set(chat_ids)):
                await stack.enter_async_context(self._membership_locks.hold((chat_id, user_id)))
            yield
