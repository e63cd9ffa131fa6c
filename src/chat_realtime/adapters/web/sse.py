"""Server-sent events encoding and streaming."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from typing import TYPE_CHECKING

from chat_realtime.domain.errors import UnknownConnection
from chat_realtime.domain.models.event import Event, EventKind
from chat_realtime.domain.models.topic import user_topic

if TYPE_CHECKING:
    from chat_realtime.adapters.web.sinks import QueueEventSink
    from chat_realtime.application.services.chat_session_service import ChatSessionService
    from chat_realtime.domain.models.connection import ConnectionHandle

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def format_sse(event: Event) -> str:
    """Encode an event as one SSE frame."""
    return f"data: {json.dumps(event.to_wire(), default=str)}\n\n"


async def stream_events(
    service: ChatSessionService,
    handle: ConnectionHandle,
    sink: QueueEventSink,
    keepalive_seconds: float,
) -> AsyncIterator[str]:
    """Yield SSE frames for a connection until the client goes away.

    A ping is sent whenever no event arrived for ``keepalive_seconds``. Every
    frame handed to the client, event or ping, counts as liveness for the idle
    reaper. The connection is detached when the generator ends, including on
    cancellation.
    """
    try:
        while not sink.closed:
            event = await sink.next_event(timeout=keepalive_seconds)
            if event is None:
                event = Event(kind=EventKind.PING, topic=user_topic(handle.user_id))
            try:
                service.heartbeat(handle)
            except UnknownConnection:
                logger.debug(f"Stream {handle.connection_id} was reaped, closing")
                break
            yield format_sse(event)
    finally:
        sink.close()
        await service.detach(handle)
        logger.info(f"Event stream {handle.connection_id} closed")
