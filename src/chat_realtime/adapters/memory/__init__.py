"""In-memory adapters for every external collaborator."""

from chat_realtime.adapters.memory.broker import InMemoryBroker
from chat_realtime.adapters.memory.identity_verifier import StaticTokenVerifier
from chat_realtime.adapters.memory.message_store import InMemoryMessageStore
from chat_realtime.adapters.memory.participation_store import InMemoryParticipationStore
from chat_realtime.adapters.memory.social_graph import InMemorySocialGraph

__all__ = [
    "InMemoryBroker",
    "InMemoryMessageStore",
    "InMemoryParticipationStore",
    "InMemorySocialGraph",
    "StaticTokenVerifier",
]
