"""Chat message domain model."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Message:
    """A chat message as recorded by the message store."""

    message_id: str
    chat_id: str
    author_id: str
    created_at: datetime
    content: str = ""
    is_deleted: bool = False
    seen_by: frozenset[str] = field(default_factory=frozenset)

    def to_payload(self) -> dict[str, Any]:
        """Broadcast shape of the message."""
        return {
            "id": self.message_id,
            "chatId": self.chat_id,
            "senderId": self.author_id,
            "content": self.content,
            "createdAt": self.created_at.isoformat(),
            "seenBy": sorted(self.seen_by),
        }
