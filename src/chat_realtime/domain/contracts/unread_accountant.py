"""Unread accountant contract (protocol)."""

from datetime import datetime
from typing import Protocol

from chat_realtime.domain.models.unread import UnreadSnapshot


class UnreadAccountantProtocol(Protocol):
    """Protocol for computing unread counts from read watermarks."""

    async def unread_count(self, user_id: str, chat_id: str) -> int:
        """Count messages by others newer than the user's watermark in the chat."""
        ...

    async def aggregate_unread(self, user_id: str) -> int:
        """Sum of unread counts over the user's active chats."""
        ...

    async def snapshot(self, user_id: str) -> UnreadSnapshot:
        """Per-chat unread counts and their total."""
        ...

    async def mark_seen(self, user_id: str, chat_id: str, at_least: datetime) -> datetime:
        """Advance the watermark monotonically and return the resulting value."""
        ...
