"""Presence record domain model."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, computed_field


class PresenceRecord(BaseModel):
    """Point-in-time presence of a user.

    A user is online exactly when at least one connection is active.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str
    last_seen: datetime | None = None
    connection_ids: frozenset[str] = frozenset()

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_online(self) -> bool:
        return bool(self.connection_ids)
