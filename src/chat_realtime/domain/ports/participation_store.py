"""Participation store port."""

from datetime import datetime
from typing import Protocol

from chat_realtime.domain.models.participant import ChatKind, ParticipantState


class ParticipationStore(Protocol):
    """Port for reading and updating chat membership records."""

    async def chat_kind(self, chat_id: str) -> ChatKind | None:
        """Get the kind of a chat, or None if no such chat exists."""
        ...

    async def get_participant(self, chat_id: str, user_id: str) -> ParticipantState | None:
        """Get the participant record, active or not, or None if the user never joined."""
        ...

    async def set_active(self, chat_id: str, user_id: str, active: bool) -> ParticipantState:
        """Activate or deactivate a membership, creating it on first join.

        Raises:
            NotFound: If the chat does not exist.
        """
        ...

    async def set_watermark(self, chat_id: str, user_id: str, timestamp: datetime) -> None:
        """Persist the last-read watermark."""
        ...

    async def active_chats_for(self, user_id: str) -> list[str]:
        """List chat ids where the user has an active membership."""
        ...
