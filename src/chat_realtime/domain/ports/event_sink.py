"""Event sink port."""

from typing import Protocol

from chat_realtime.domain.models.event import Event


class EventSink(Protocol):
    """Port for the transport side of one connection."""

    async def deliver(self, event: Event) -> None:
        """Hand an event to the client.

        Raises:
            DeliveryError: If the connection cannot accept the event.
        """
        ...
