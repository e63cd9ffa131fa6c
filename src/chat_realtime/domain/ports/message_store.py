"""Message store port."""

from datetime import datetime
from typing import Protocol

from chat_realtime.domain.models.message import Message


class MessageStore(Protocol):
    """Port for durable chat messages."""

    async def append(self, chat_id: str, author_id: str, content: str) -> Message:
        """Durably record a message and return it with its assigned id and timestamp."""
        ...

    async def get(self, chat_id: str, message_id: str) -> Message | None:
        """Get a message of the chat by id."""
        ...

    async def messages_since(
        self, chat_id: str, since: datetime, limit: int | None = None
    ) -> list[Message]:
        """Messages with ``created_at > since``, oldest first."""
        ...

    async def add_seen(self, chat_id: str, message_id: str, user_id: str) -> bool:
        """Record a seen receipt. Returns False if it was already recorded."""
        ...
