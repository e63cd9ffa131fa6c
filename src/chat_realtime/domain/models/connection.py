"""Connection domain models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict


class ConnectionState(str, Enum):
    """Lifecycle state of a single client connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    JOINED = "joined"
    ACTIVE = "active"
    IDLE = "idle"


@dataclass(frozen=True)
class Connection:
    """One live client session as seen by the registry.

    Instances are snapshots; the registry replaces them on every mutation.
    """

    connection_id: str
    user_id: str
    topics: frozenset[str]
    connected_at: datetime
    last_activity: datetime


class ConnectionHandle(BaseModel):
    """Opaque handle returned to transport code after a successful attach."""

    model_config = ConfigDict(frozen=True)

    connection_id: str
    user_id: str
    chat_ids: tuple[str, ...]
