"""In-memory participation store."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from chat_realtime.domain.errors import NotFound
from chat_realtime.domain.models.participant import ChatKind, ParticipantRole, ParticipantState
from chat_realtime.domain.ports.participation_store import ParticipationStore

if TYPE_CHECKING:
    from chat_realtime.domain.contracts.clock import ClockProtocol

logger = logging.getLogger(__name__)


class InMemoryParticipationStore(ParticipationStore):
    """Participation records kept in a dict keyed by (chat_id, user_id)."""

    def __init__(self, clock: ClockProtocol | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(UTC))
        self._chats: dict[str, ChatKind] = {}
        self._records: dict[tuple[str, str], ParticipantState] = {}

    def add_chat(self, chat_id: str, kind: ChatKind = ChatKind.GROUP) -> None:
        """Seed a chat. Chats first seen through ``add`` are groups."""
        self._chats[chat_id] = kind

    def add(
        self,
        chat_id: str,
        user_id: str,
        role: ParticipantRole = ParticipantRole.MEMBER,
        last_read: datetime | None = None,
        is_active: bool = True,
    ) -> ParticipantState:
        """Seed a participant record."""
        self._chats.setdefault(chat_id, ChatKind.GROUP)
        record = ParticipantState(
            chat_id=chat_id,
            user_id=user_id,
            role=role,
            is_active=is_active,
            last_read=last_read,
            joined_at=self._clock(),
        )
        self._records[(chat_id, user_id)] = record
        return record

    async def chat_kind(self, chat_id: str) -> ChatKind | None:
        return self._chats.get(chat_id)

    async def get_participant(self, chat_id: str, user_id: str) -> ParticipantState | None:
        return self._records.get((chat_id, user_id))

    async def set_active(self, chat_id: str, user_id: str, active: bool) -> ParticipantState:
        if chat_id not in self._chats:
            raise NotFound(f"Chat {chat_id} not found")
        existing = self._records.get((chat_id, user_id))
        if existing is None:
            record = ParticipantState(
                chat_id=chat_id, user_id=user_id, is_active=active, joined_at=self._clock()
            )
        elif active and not existing.is_active:
            record = replace(existing, is_active=True, joined_at=self._clock())
        else:
            record = replace(existing, is_active=active)
        self._records[(chat_id, user_id)] = record
        return record

    async def set_watermark(self, chat_id: str, user_id: str, timestamp: datetime) -> None:
        existing = self._records.get((chat_id, user_id))
        if existing is None:
            raise KeyError(f"No participant record for user {user_id} in chat {chat_id}")
        self._records[(chat_id, user_id)] = replace(existing, last_read=timestamp)

    async def active_chats_for(self, user_id: str) -> list[str]:
        return sorted(
            chat_id
            for (chat_id, uid), record in self._records.items()
            if uid == user_id and record.is_active
        )
