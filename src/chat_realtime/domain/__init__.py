"""Domain layer - core models, errors and interfaces."""

from chat_realtime.domain.errors import (
    AccessDenied,
    AuthError,
    CannotSeeOwnMessage,
    ChatRealtimeError,
    DeliveryError,
    DuplicateConnection,
    NotAParticipant,
    NotFound,
    UnknownConnection,
)
from chat_realtime.domain.models import Event, EventKind, Message, ParticipantState

__all__ = [
    "AccessDenied",
    "AuthError",
    "CannotSeeOwnMessage",
    "ChatRealtimeError",
    "DeliveryError",
    "DuplicateConnection",
    "Event",
    "EventKind",
    "Message",
    "NotAParticipant",
    "NotFound",
    "ParticipantState",
    "UnknownConnection",
]
