"""Request bodies accepted by the HTTP binding."""

from pydantic import BaseModel, ConfigDict, Field


class TypingRequest(BaseModel):
    """Body of a typing indicator update."""

    model_config = ConfigDict(populate_by_name=True)

    is_typing: bool = Field(alias="isTyping")
    connection_id: str | None = Field(default=None, alias="connectionId")


class SendMessageRequest(BaseModel):
    """Body of a new chat message."""

    model_config = ConfigDict(populate_by_name=True)

    content: str = Field(min_length=1, max_length=5000)
    connection_id: str | None = Field(default=None, alias="connectionId")


class SeenRequest(BaseModel):
    """Body of a seen receipt; the message id comes from the path."""

    model_config = ConfigDict(populate_by_name=True)

    connection_id: str | None = Field(default=None, alias="connectionId")
