"""Fan-out event domain model."""

import uuid
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, Enum):
    """Kinds of events delivered to subscribers."""

    MESSAGE_CREATED = "message-created"
    MESSAGE_EDITED = "message-edited"
    MESSAGE_DELETED = "message-deleted"
    REACTION_UPDATED = "reaction-updated"
    TYPING = "typing"
    SEEN = "seen"
    PRESENCE_CHANGED = "presence-changed"
    CONNECTED = "connected"
    PING = "ping"


def _new_event_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(UTC)


class Event(BaseModel):
    """Immutable message fanned out to the subscribers of a topic."""

    model_config = ConfigDict(frozen=True)

    kind: EventKind
    topic: str
    payload: dict[str, Any] = Field(default_factory=dict)
    emitted_at: datetime = Field(default_factory=_now)
    event_id: str = Field(default_factory=_new_event_id)
    # Id of the process instance that created the event, used to drop broker echoes
    origin: str | None = None
    # Connections of this user are skipped, on every instance
    exclude_user_id: str | None = None

    def to_wire(self) -> dict[str, Any]:
        """Serialize into the JSON shape sent to clients."""
        return {
            "id": self.event_id,
            "type": self.kind.value,
            "topic": self.topic,
            "timestamp": self.emitted_at.isoformat(),
            **self.payload,
        }
