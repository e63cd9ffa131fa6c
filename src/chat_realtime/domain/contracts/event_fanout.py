"""Event fan-out contract (protocol)."""

from collections.abc import Iterable
from typing import Protocol

from chat_realtime.domain.models.delivery_report import DeliveryReport
from chat_realtime.domain.models.event import Event


class EventFanoutProtocol(Protocol):
    """Protocol for delivering events to the subscribers of a topic."""

    async def publish(
        self,
        topic: str,
        event: Event,
        exclude_user_id: str | None = None,
        exclude_connection_ids: Iterable[str] = (),
    ) -> DeliveryReport:
        """Deliver an event to every current subscriber of the topic.

        Args:
            topic: The topic to publish to.
            event: The event to deliver.
            exclude_user_id: Skip every connection owned by this user.
            exclude_connection_ids: Skip these connections.

        Returns:
            A report listing delivered connections and failures.
        """
        ...

    async def send_to(self, connection_id: str, event: Event) -> DeliveryReport:
        """Deliver an event to a single connection."""
        ...
