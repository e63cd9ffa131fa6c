"""Cross-process broker port."""

from collections.abc import Awaitable, Callable
from typing import Protocol

from chat_realtime.domain.models.event import Event

EventHandler = Callable[[str, Event], Awaitable[None]]


class Broker(Protocol):
    """Port for relaying events between process instances."""

    async def publish_external(self, topic: str, event: Event) -> None:
        """Send an event to the other instances."""
        ...

    async def subscribe_external(self, topic: str, handler: EventHandler) -> None:
        """Register a handler for events from other instances.

        The wildcard topic ``"*"`` receives every topic.
        """
        ...
