"""Fan-out of events to topic subscribers."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Iterable
from typing import TYPE_CHECKING

from chat_realtime.application.services.keyed_locks import KeyedLocks
from chat_realtime.domain.contracts.event_fanout import EventFanoutProtocol
from chat_realtime.domain.errors import DeliveryError
from chat_realtime.domain.models.delivery_report import DeliveryFailure, DeliveryReport
from chat_realtime.domain.models.event import Event, EventKind
from chat_realtime.domain.models.topic import chat_topic

if TYPE_CHECKING:
    from chat_realtime.application.services.connection_registry import ConnectionRegistry
    from chat_realtime.domain.models.message import Message
    from chat_realtime.domain.ports.broker import Broker

logger = logging.getLogger(__name__)

WILDCARD_TOPIC = "*"


class EventFanout(EventFanoutProtocol):
    """Delivers events to the connections subscribed to a topic.

    Delivery is best-effort and at most once per connection per publish. The
    subscriber set is resolved when publish is called, before waiting on
    earlier publishes to the same topic; connections that subscribe later do
    not receive that event. Publishes on the same topic are
    serialized so subscribers observe them in publish order.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        delivery_timeout_seconds: float = 5.0,
        broker: Broker | None = None,
        instance_id: str | None = None,
    ) -> None:
        """Initialize the fan-out.

        Args:
            registry: Registry that owns connections and sinks.
            delivery_timeout_seconds: Upper bound for a single sink delivery.
            broker: Optional cross-process broker.
            instance_id: Id of this process, stamped on locally created events.
        """
        self.registry = registry
        self.delivery_timeout_seconds = delivery_timeout_seconds
        self.broker = broker
        self.instance_id = instance_id or uuid.uuid4().hex
        self._topic_locks: KeyedLocks[str] = KeyedLocks()

    async def attach_broker(self) -> None:
        """Start receiving events published by other instances."""
        if self.broker is None:
            return
        await self.broker.subscribe_external(WILDCARD_TOPIC, self._on_external_event)
        logger.info(f"Fan-out instance {self.instance_id} subscribed to external broker")

    async def publish(
        self,
        topic: str,
        event: Event,
        exclude_user_id: str | None = None,
        exclude_connection_ids: Iterable[str] = (),
    ) -> DeliveryReport:
        """Deliver an event to every current subscriber of the topic."""
        if event.origin is None:
            event = event.model_copy(update={"origin": self.instance_id})

        report = await self._deliver_to_topic(
            topic, event, exclude_user_id or event.exclude_user_id, exclude_connection_ids
        )

        if self.broker is not None and event.origin == self.instance_id:
            try:
                await self.broker.publish_external(topic, event)
            except Exception as e:
                logger.error(
                    f"Failed to forward event {event.event_id} to broker: {e}", exc_info=True
                )

        return report

    async def publish_message_created(
        self, message: Message, exclude_user_id: str | None = None
    ) -> DeliveryReport:
        """Announce a message that the message store has already recorded."""
        topic = chat_topic(message.chat_id)
        event = Event(
            kind=EventKind.MESSAGE_CREATED,
            topic=topic,
            payload={"message": message.to_payload()},
            exclude_user_id=exclude_user_id,
        )
        return await self.publish(topic, event)

    async def send_to(self, connection_id: str, event: Event) -> DeliveryReport:
        """Deliver an event to a single connection."""
        failure = await self._deliver(connection_id, event)
        return DeliveryReport(
            topic=event.topic,
            event_id=event.event_id,
            attempted=1,
            delivered=() if failure else (connection_id,),
            failures=(failure,) if failure else (),
        )

    async def _on_external_event(self, topic: str, event: Event) -> None:
        if event.origin == self.instance_id:
            return
        await self._deliver_to_topic(topic, event, event.exclude_user_id, ())

    async def _deliver_to_topic(
        self,
        topic: str,
        event: Event,
        exclude_user_id: str | None,
        exclude_connection_ids: Iterable[str],
    ) -> DeliveryReport:
        excluded = set(exclude_connection_ids)
        if exclude_user_id is not None:
            excluded |= self.registry.connections_for_user(exclude_user_id)
        # Snapshot before queueing behind earlier publishes on the topic
        targets = sorted(self.registry.subscribers_of(topic) - excluded)

        async with self._topic_locks.hold(topic):
            results = await asyncio.gather(*(self._deliver(cid, event) for cid in targets))

        delivered = tuple(cid for cid, failure in zip(targets, results, strict=True) if not failure)
        failures = tuple(failure for failure in results if failure is not None)
        if failures:
            logger.warning(
                f"Event {event.kind.value} on {topic}: {len(failures)} of {len(targets)} "
                f"deliveries failed"
            )
        else:
            logger.debug(f"Event {event.kind.value} on {topic} delivered to {len(targets)}")
        return DeliveryReport(
            topic=topic,
            event_id=event.event_id,
            attempted=len(targets),
            delivered=delivered,
            failures=failures,
        )

    async def _deliver(self, connection_id: str, event: Event) -> DeliveryFailure | None:
        sink = self.registry.sink_of(connection_id)
        if sink is None:
            return DeliveryFailure(connection_id=connection_id, reason="no sink attached")
        try:
            await asyncio.wait_for(sink.deliver(event), timeout=self.delivery_timeout_seconds)
        except TimeoutError:
            return DeliveryFailure(connection_id=connection_id, reason="delivery timed out")
        except DeliveryError as e:
            return DeliveryFailure(connection_id=connection_id, reason=e.message)
        except Exception as e:
            logger.warning(f"Sink of connection {connection_id} raised: {e}", exc_info=True)
            return DeliveryFailure(connection_id=connection_id, reason=str(e) or type(e).__name__)
        return None
