"""Chat participant domain model."""

from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class ChatKind(str, Enum):
    """Kind of chat. Only group chats can be joined by request."""

    DIRECT = "direct"
    GROUP = "group"


class ParticipantRole(str, Enum):
    """Role of a user inside a chat."""

    OWNER = "owner"
    ADMIN = "admin"
    MODERATOR = "moderator"
    MEMBER = "member"


@dataclass(frozen=True)
class ParticipantState:
    """Membership of one user in one chat."""

    chat_id: str
    user_id: str
    role: ParticipantRole = ParticipantRole.MEMBER
    is_active: bool = True
    last_read: datetime | None = None
    joined_at: datetime | None = None

    @property
    def watermark(self) -> datetime:
        """Last-read watermark, defaulting to the epoch when never read."""
        return self.last_read if self.last_read is not None else EPOCH
