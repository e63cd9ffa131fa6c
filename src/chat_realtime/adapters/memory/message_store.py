"""In-memory message store."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from chat_realtime.domain.models.message import Message
from chat_realtime.domain.ports.message_store import MessageStore

if TYPE_CHECKING:
    from chat_realtime.domain.contracts.clock import ClockProtocol


class InMemoryMessageStore(MessageStore):
    """Messages per chat, kept in creation order.

    Timestamps within a chat are strictly increasing so that watermarks
    split the history unambiguously.
    """

    def __init__(self, clock: ClockProtocol | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._messages: dict[str, list[Message]] = {}

    async def append(self, chat_id: str, author_id: str, content: str) -> Message:
        history = self._messages.setdefault(chat_id, [])
        created_at = self._clock()
        if history and created_at <= history[-1].created_at:
            created_at = history[-1].created_at + timedelta(microseconds=1)
        message = Message(
            message_id=uuid.uuid4().hex,
            chat_id=chat_id,
            author_id=author_id,
            created_at=created_at,
            content=content,
        )
        history.append(message)
        return message

    async def get(self, chat_id: str, message_id: str) -> Message | None:
        for message in self._messages.get(chat_id, ()):
            if message.message_id == message_id:
                return message
        return None

    async def messages_since(
        self, chat_id: str, since: datetime, limit: int | None = None
    ) -> list[Message]:
        newer = [m for m in self._messages.get(chat_id, ()) if m.created_at > since]
        return newer[:limit] if limit is not None else newer

    async def add_seen(self, chat_id: str, message_id: str, user_id: str) -> bool:
        history = self._messages.get(chat_id, [])
        for index, message in enumerate(history):
            if message.message_id != message_id:
                continue
            if user_id in message.seen_by:
                return False
            history[index] = replace(message, seen_by=message.seen_by | {user_id})
            return True
        raise KeyError(f"Message {message_id} not found in chat {chat_id}")

    def delete(self, chat_id: str, message_id: str) -> None:
        """Soft-delete a message."""
        history = self._messages.get(chat_id, [])
        for index, message in enumerate(history):
            if message.message_id == message_id:
                history[index] = replace(message, is_deleted=True)
                return
        raise KeyError(f"Message {message_id} not found in chat {chat_id}")
