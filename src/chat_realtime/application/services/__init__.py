"""Application services."""

from chat_realtime.application.services.chat_session_service import ChatSessionService
from chat_realtime.application.services.connection_registry import ConnectionRegistry
from chat_realtime.application.services.event_fanout import EventFanout
from chat_realtime.application.services.idle_reaper import IdleReaper
from chat_realtime.application.services.keyed_locks import KeyedLocks
from chat_realtime.application.services.presence_tracker import PresenceTracker
from chat_realtime.application.services.unread_accountant import UnreadAccountant

__all__ = [
    "ChatSessionService",
    "ConnectionRegistry",
    "EventFanout",
    "IdleReaper",
    "KeyedLocks",
    "PresenceTracker",
    "UnreadAccountant",
]
