"""Tests for domain models."""

from datetime import UTC, datetime

import pytest
from pydantic import ValidationError

from chat_realtime.domain.models import (
    DeliveryFailure,
    DeliveryReport,
    Event,
    EventKind,
    Message,
    ParticipantState,
    PresenceRecord,
)
from chat_realtime.domain.models.participant import EPOCH
from chat_realtime.domain.models.topic import chat_topic, is_chat_topic, parse_topic, user_topic

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


class TestTopics:
    """Topic naming helpers."""

    def test_chat_and_user_topics_are_distinct(self) -> None:
        """Given the same id, when building topics, then chat and user topics differ."""
        assert chat_topic("x") == "chat:x"
        assert user_topic("x") == "user:x"
        assert is_chat_topic(chat_topic("x"))
        assert not is_chat_topic(user_topic("x"))

    def test_parse_topic_round_trip(self) -> None:
        """Given a topic, when parsing, then kind and id are recovered."""
        assert parse_topic(chat_topic("room-1")) == ("chat", "room-1")
        assert parse_topic(user_topic("alice")) == ("user", "alice")

    @pytest.mark.parametrize("topic", ["", "chat", "chat:", "room:1", ":x"])
    def test_parse_topic_rejects_malformed(self, topic: str) -> None:
        """Given a malformed topic, when parsing, then ValueError is raised."""
        with pytest.raises(ValueError):
            parse_topic(topic)

    def test_empty_ids_are_rejected(self) -> None:
        """Given an empty id, when building a topic, then ValueError is raised."""
        with pytest.raises(ValueError):
            chat_topic("")
        with pytest.raises(ValueError):
            user_topic("")


class TestEvent:
    """Event model."""

    def test_wire_format_flattens_payload(self) -> None:
        """Given an event, when serialized for clients, then payload keys sit next to type and id."""
        event = Event(
            kind=EventKind.TYPING,
            topic="chat:room",
            payload={"userId": "alice", "isTyping": True},
            emitted_at=NOW,
            event_id="e1",
        )

        assert event.to_wire() == {
            "id": "e1",
            "type": "typing",
            "topic": "chat:room",
            "timestamp": NOW.isoformat(),
            "userId": "alice",
            "isTyping": True,
        }

    def test_events_are_immutable(self) -> None:
        """Given an event, when assigning a field, then validation fails."""
        event = Event(kind=EventKind.SEEN, topic="chat:room")

        with pytest.raises(ValidationError):
            event.topic = "chat:other"  # type: ignore[misc]

    def test_event_ids_are_unique(self) -> None:
        """Given two events, when created, then their ids differ."""
        assert Event(kind=EventKind.PING, topic="user:u").event_id != Event(
            kind=EventKind.PING, topic="user:u"
        ).event_id


def test_message_payload() -> None:
    """Given a message, when building its payload, then the broadcast keys are present."""
    message = Message(
        message_id="m1",
        chat_id="room",
        author_id="bob",
        created_at=NOW,
        content="hi",
        seen_by=frozenset({"carol", "alice"}),
    )

    assert message.to_payload() == {
        "id": "m1",
        "chatId": "room",
        "senderId": "bob",
        "content": "hi",
        "createdAt": NOW.isoformat(),
        "seenBy": ["alice", "carol"],
    }


def test_participant_watermark_defaults_to_epoch() -> None:
    """Given a participant who never read, when reading the watermark, then the epoch is returned."""
    assert ParticipantState(chat_id="room", user_id="alice").watermark == EPOCH
    assert ParticipantState(chat_id="room", user_id="alice", last_read=NOW).watermark == NOW


def test_delivery_report_flags() -> None:
    """Given mixed outcomes, when inspecting the report, then ok and partial reflect them."""
    failure = DeliveryFailure(connection_id="c2", reason="stream closed")
    partial = DeliveryReport(
        topic="chat:r", event_id="e", attempted=2, delivered=("c1",), failures=(failure,)
    )
    all_failed = DeliveryReport(topic="chat:r", event_id="e", attempted=1, failures=(failure,))

    assert partial.partial and not partial.ok
    assert not all_failed.partial and not all_failed.ok
    assert DeliveryReport(topic="chat:r", event_id="e").ok


def test_presence_record_online_follows_connections() -> None:
    """Given records with and without connections, when checking, then online matches."""
    assert PresenceRecord(user_id="a", connection_ids=frozenset({"c1"})).is_online
    assert not PresenceRecord(user_id="a").is_online
    assert PresenceRecord(user_id="a").model_dump()["is_online"] is False
