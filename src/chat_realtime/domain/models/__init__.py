"""Domain models for the realtime chat core."""

from chat_realtime.domain.models.connection import Connection, ConnectionHandle, ConnectionState
from chat_realtime.domain.models.debug_status import DebugStatus
from chat_realtime.domain.models.delivery_report import DeliveryFailure, DeliveryReport
from chat_realtime.domain.models.event import Event, EventKind
from chat_realtime.domain.models.message import Message
from chat_realtime.domain.models.participant import (
    EPOCH,
    ChatKind,
    ParticipantRole,
    ParticipantState,
)
from chat_realtime.domain.models.presence_record import PresenceRecord
from chat_realtime.domain.models.topic import chat_topic, is_chat_topic, parse_topic, user_topic
from chat_realtime.domain.models.unread import UnreadSnapshot

__all__ = [
    "EPOCH",
    "ChatKind",
    "Connection",
    "ConnectionHandle",
    "ConnectionState",
    "DebugStatus",
    "DeliveryFailure",
    "DeliveryReport",
    "Event",
    "EventKind",
    "Message",
    "ParticipantRole",
    "ParticipantState",
    "PresenceRecord",
    "UnreadSnapshot",
    "chat_topic",
    "is_chat_topic",
    "parse_topic",
    "user_topic",
]
