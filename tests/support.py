"""Test doubles and a wired service graph shared by the test modules."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta


from chat_realtime.adapters.memory import (
    InMemoryMessageStore,
    InMemoryParticipationStore,
    InMemorySocialGraph,
    StaticTokenVerifier,
)
from chat_realtime.application.services import (
    ChatSessionService,
    ConnectionRegistry,
    EventFanout,
    PresenceTracker,
    UnreadAccountant,
)
from chat_realtime.domain.errors import DeliveryError
from chat_realtime.domain.models.event import Event, EventKind


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now


@dataclass
class RecordingSink:
    """Sink that records every delivered event, or fails on demand."""

    events: list[Event] = field(default_factory=list)
    fail_with: Exception | None = None

    async def deliver(self, event: Event) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.events.append(event)

    def kinds(self) -> list[EventKind]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: EventKind) -> list[Event]:
        return [e for e in self.events if e.kind == kind]


class BrokenSink:
    """Sink whose client has gone away."""

    async def deliver(self, event: Event) -> None:
        raise DeliveryError("stream closed")


@dataclass
class ChatWorld:
    """Fully wired service graph on in-memory adapters."""

    clock: FakeClock
    registry: ConnectionRegistry
    fanout: EventFanout
    presence: PresenceTracker
    unread: UnreadAccountant
    participants: InMemoryParticipationStore
    messages: InMemoryMessageStore
    social_graph: InMemorySocialGraph
    tokens: StaticTokenVerifier
    service: ChatSessionService

    def add_user(self, user_id: str, *chat_ids: str) -> str:
        """Issue a token for the user and make them an active participant."""
        token = f"{user_id}-token"
        self.tokens.issue(token, user_id)
        for chat_id in chat_ids:
            self.participants.add(chat_id, user_id)
        return token


def build_world(clock: FakeClock | None = None, grace_seconds: float = 0.05) -> ChatWorld:
    """Wire every service on in-memory adapters."""
    clock = clock or FakeClock()
    registry = ConnectionRegistry(clock=clock)
    fanout = EventFanout(registry, delivery_timeout_seconds=0.5, instance_id="test-instance")
    social_graph = InMemorySocialGraph()
    presence = PresenceTracker(fanout, social_graph, grace_seconds=grace_seconds, clock=clock)
    participants = InMemoryParticipationStore(clock=clock)
    messages = InMemoryMessageStore(clock=clock)
    unread = UnreadAccountant(participants, messages)
    tokens = StaticTokenVerifier()
    service = ChatSessionService(
        registry,
        fanout,
        presence,
        unread,
        tokens,
        participants,
        messages,
        idle_after_seconds=30,
        idle_timeout_seconds=60,
        catch_up_limit=50,
        clock=clock,
    )
    return ChatWorld(
        clock=clock,
        registry=registry,
        fanout=fanout,
        presence=presence,
        unread=unread,
        participants=participants,
        messages=messages,
        social_graph=social_graph,
        tokens=tokens,
        service=service,
    )
