"""Unread message accounting based on per-chat read watermarks."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING

from chat_realtime.application.services.keyed_locks import KeyedLocks
from chat_realtime.domain.contracts.unread_accountant import UnreadAccountantProtocol
from chat_realtime.domain.errors import NotAParticipant
from chat_realtime.domain.models.participant import EPOCH
from chat_realtime.domain.models.unread import UnreadSnapshot

if TYPE_CHECKING:
    from chat_realtime.domain.models.participant import ParticipantState
    from chat_realtime.domain.ports.message_store import MessageStore
    from chat_realtime.domain.ports.participation_store import ParticipationStore

logger = logging.getLogger(__name__)


class UnreadAccountant(UnreadAccountantProtocol):
    """Computes unread counts from last-read watermarks.

    Each chat has its own watermark. A message is unread when it was written
    by someone else after the watermark. Watermarks only move forward.
    """

    def __init__(self, participants: ParticipationStore, messages: MessageStore) -> None:
        """Initialize the accountant.

        Args:
            participants: Store holding participant records and watermarks.
            messages: Store holding chat messages.
        """
        self.participants = participants
        self.messages = messages
        # Latest watermark known to this process, ahead of the store while a write is in flight
        self._watermarks: dict[tuple[str, str], datetime] = {}
        self._locks: KeyedLocks[tuple[str, str]] = KeyedLocks()

    async def unread_count(self, user_id: str, chat_id: str) -> int:
        """Count unread messages of one chat for one user.

        Raises:
            NotAParticipant: If the user has no participant record in the chat.
        """
        participant = await self._require_participant(user_id, chat_id)
        watermark = self._effective_watermark(participant)
        messages = await self.messages.messages_since(chat_id, watermark)
        return sum(
            1
            for message in messages
            if message.author_id != user_id
            and not message.is_deleted
            and message.created_at > watermark
        )

    async def aggregate_unread(self, user_id: str) -> int:
        """Total unread messages over every active chat of the user."""
        return (await self.snapshot(user_id)).total

    async def snapshot(self, user_id: str) -> UnreadSnapshot:
        """Per-chat unread counts over every active chat of the user."""
        per_chat: dict[str, int] = {}
        for chat_id in await self.participants.active_chats_for(user_id):
            per_chat[chat_id] = await self.unread_count(user_id, chat_id)
        return UnreadSnapshot(per_chat=per_chat, total=sum(per_chat.values()))

    async def mark_seen(self, user_id: str, chat_id: str, at_least: datetime) -> datetime:
        """Advance the watermark to ``max(current, at_least)``.

        The new value is applied in memory first and rolled back if the store
        rejects it.

        Returns:
            The watermark after the call.

        Raises:
            NotAParticipant: If the user has no participant record in the chat.
        """
        key = (chat_id, user_id)
        async with self._locks.hold(key):
            participant = await self._require_participant(user_id, chat_id)
            current = self._effective_watermark(participant)
            if at_least <= current:
                return current

            previous = self._watermarks.get(key)
            self._watermarks[key] = at_least
            try:
                await self.participants.set_watermark(chat_id, user_id, at_least)
            except Exception:
                if previous is None:
                    self._watermarks.pop(key, None)
                else:
                    self._watermarks[key] = previous
                logger.error(
                    f"Failed to persist watermark for user {user_id} in chat {chat_id}, "
                    "rolled back",
                    exc_info=True,
                )
                raise
            logger.debug(f"Watermark of user {user_id} in chat {chat_id} advanced to {at_least}")
            return at_least

    def invalidate(self, user_id: str, chat_id: str | None = None) -> None:
        """Forget cached watermarks of a user, for one chat or all of them."""
        if chat_id is not None:
            self._watermarks.pop((chat_id, user_id), None)
            return
        for key in [k for k in self._watermarks if k[1] == user_id]:
            del self._watermarks[key]

    async def _require_participant(self, user_id: str, chat_id: str) -> ParticipantState:
        participant = await self.participants.get_participant(chat_id, user_id)
        if participant is None:
            raise NotAParticipant(f"User {user_id} is not a participant of chat {chat_id}")
        return participant

    def _effective_watermark(self, participant: ParticipantState) -> datetime:
        cached = self._watermarks.get((participant.chat_id, participant.user_id), EPOCH)
        return max(participant.watermark, cached)
