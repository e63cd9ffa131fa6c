"""In-process broker connecting several fan-out instances."""

import logging

from chat_realtime.domain.models.event import Event
from chat_realtime.domain.ports.broker import Broker, EventHandler

logger = logging.getLogger(__name__)


class InMemoryBroker(Broker):
    """Loopback broker: every published event reaches every subscribed handler.

    Handlers see their own instance's events too; receivers drop them by origin.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[EventHandler]] = {}

    async def publish_external(self, topic: str, event: Event) -> None:
        handlers = [*self._handlers.get(topic, ()), *self._handlers.get("*", ())]
        for handler in handlers:
            try:
                await handler(topic, event)
            except Exception as e:
                logger.error(f"Broker handler failed for {topic}: {e}", exc_info=True)

    async def subscribe_external(self, topic: str, handler: EventHandler) -> None:
        self._handlers.setdefault(topic, []).append(handler)
