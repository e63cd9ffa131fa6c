"""Ports (interfaces) for the collaborators the core relies on."""

from chat_realtime.domain.ports.broker import Broker, EventHandler
from chat_realtime.domain.ports.event_sink import EventSink
from chat_realtime.domain.ports.identity_verifier import IdentityVerifier
from chat_realtime.domain.ports.message_store import MessageStore
from chat_realtime.domain.ports.participation_store import ParticipationStore
from chat_realtime.domain.ports.social_graph import SocialGraph

__all__ = [
    "Broker",
    "EventHandler",
    "EventSink",
    "IdentityVerifier",
    "MessageStore",
    "ParticipationStore",
    "SocialGraph",
]
