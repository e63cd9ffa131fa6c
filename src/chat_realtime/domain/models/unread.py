"""Unread count snapshot domain model."""

from pydantic import BaseModel, ConfigDict


class UnreadSnapshot(BaseModel):
    """Per-chat and aggregate unread counts for one user."""

    model_config = ConfigDict(frozen=True)

    per_chat: dict[str, int]
    total: int
