"""Operational status snapshot."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class DebugStatus(BaseModel):
    """Registry introspection for the debug endpoint."""

    model_config = ConfigDict(frozen=True)

    active_connections: int
    topics: int
    per_topic_subscribers: dict[str, int]
    connections_by_user: dict[str, int]
    online_users: int
    generated_at: datetime
