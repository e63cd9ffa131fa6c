"""Queue-backed event sink for streaming transports."""

from __future__ import annotations

import asyncio
import logging

from chat_realtime.domain.errors import DeliveryError
from chat_realtime.domain.models.event import Event
from chat_realtime.domain.ports.event_sink import EventSink

logger = logging.getLogger(__name__)


class QueueEventSink(EventSink):
    """Buffers events for one streaming client.

    A full buffer means the client is not keeping up; further deliveries fail
    instead of blocking the publisher.
    """

    def __init__(self, max_size: int = 100) -> None:
        self._queue: asyncio.Queue[Event] = asyncio.Queue(maxsize=max_size)
        self._closed = False

    @property
    def closed(self) -> bool:
        """Whether the client side has gone away."""
        return self._closed

    def close(self) -> None:
        """Reject every further delivery."""
        self._closed = True

    def pending(self) -> int:
        """Number of buffered events."""
        return self._queue.qsize()

    async def deliver(self, event: Event) -> None:
        if self._closed:
            raise DeliveryError("stream closed")
        try:
            self._queue.put_nowait(event)
        except asyncio.QueueFull as e:
            raise DeliveryError("client buffer full") from e

    async def next_event(self, timeout: float | None = None) -> Event | None:
        """Wait for the next event; None when the timeout expires first."""
        try:
            return await asyncio.wait_for(self._queue.get(), timeout=timeout)
        except TimeoutError:
            return None
