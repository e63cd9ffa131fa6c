"""Contracts (protocols) for the core components."""

from chat_realtime.domain.contracts.clock import ClockProtocol
from chat_realtime.domain.contracts.connection_registry import (
    ConnectionRegistryProtocol,
    RegistryListenerProtocol,
)
from chat_realtime.domain.contracts.event_fanout import EventFanoutProtocol
from chat_realtime.domain.contracts.presence_tracker import PresenceTrackerProtocol
from chat_realtime.domain.contracts.unread_accountant import UnreadAccountantProtocol

__all__ = [
    "ClockProtocol",
    "ConnectionRegistryProtocol",
    "EventFanoutProtocol",
    "PresenceTrackerProtocol",
    "RegistryListenerProtocol",
    "UnreadAccountantProtocol",
]
