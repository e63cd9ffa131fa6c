"""Tests for the Starlette binding."""

from collections.abc import Iterator
from datetime import timedelta

import pytest
from starlette.testclient import TestClient

from chat_realtime.adapters.config import AppConfig
from chat_realtime.adapters.web import create_app
from chat_realtime.domain.models.event import EventKind
from chat_realtime.domain.models.participant import ChatKind
from chat_realtime.domain.models.topic import chat_topic
from tests.support import ChatWorld, FakeClock, RecordingSink

ALICE = {"Authorization": "Bearer alice-token", "X-Connection-Id": "conn-a"}
BOB = {"Authorization": "Bearer bob-token", "X-Connection-Id": "conn-b"}


@pytest.fixture
def alice_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def bob_sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def client(
    world: ChatWorld, alice_sink: RecordingSink, bob_sink: RecordingSink
) -> Iterator[TestClient]:
    """Alice and Bob share chat 'c1' and each have one live connection."""
    world.add_user("alice", "c1")
    world.add_user("bob", "c1")
    world.registry.register("conn-a", "alice", [chat_topic("c1")], alice_sink)
    world.registry.register("conn-b", "bob", [chat_topic("c1")], bob_sink)
    app = create_app(world.service, AppConfig())
    with TestClient(app) as test_client:
        yield test_client


def test_healthz(client: TestClient) -> None:
    """Given a running app, when probing health, then ok is returned."""
    response = client.get("/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestAuthentication:
    """Token handling."""

    def test_missing_token_is_401(self, client: TestClient) -> None:
        """Given no token, when calling an action, then 401 with an error body is returned."""
        response = client.get("/chats/unread-count")

        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_forged_token_is_401(self, client: TestClient) -> None:
        """Given an unknown token, when calling an action, then 401 is returned."""
        response = client.get("/chats/unread-count", headers={"Authorization": "Bearer forged"})

        assert response.status_code == 401

    def test_token_query_parameter_is_accepted(self, client: TestClient) -> None:
        """Given a token in the query string, when calling an action, then it is accepted."""
        response = client.get("/chats/unread-count", params={"token": "alice-token"})

        assert response.status_code == 200


class TestStream:
    """Stream endpoint failures that happen before streaming starts."""

    def test_stream_requires_chat_id(self, client: TestClient) -> None:
        """Given no chatId, when opening a stream, then 400 is returned."""
        response = client.get("/chats/stream", headers=ALICE)

        assert response.status_code == 400
        assert response.json() == {"error": "Chat ID required"}

    def test_stream_with_bad_token_is_401(self, client: TestClient) -> None:
        """Given a forged token, when opening a stream, then 401 is returned."""
        response = client.get("/chats/stream", params={"chatId": "c1", "token": "forged"})

        assert response.status_code == 401

    def test_stream_to_foreign_chat_is_403(self, client: TestClient, world: ChatWorld) -> None:
        """Given a chat Alice is not in, when opening a stream, then 403 is returned and nothing is registered."""
        before = len(world.registry)

        response = client.get(
            "/chats/stream", params={"chatId": "secret", "token": "alice-token"}
        )

        assert response.status_code == 403
        assert len(world.registry) == before


class TestTyping:
    """Typing endpoint."""

    def test_typing_is_delivered_to_others(
        self, client: TestClient, alice_sink: RecordingSink, bob_sink: RecordingSink
    ) -> None:
        """Given Alice types, when posting, then Bob receives the typing event and Alice does not."""
        response = client.post("/chats/c1/typing", json={"isTyping": True}, headers=ALICE)

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["delivered"] == 1
        assert bob_sink.of_kind(EventKind.TYPING)[0].payload["isTyping"] is True
        assert alice_sink.of_kind(EventKind.TYPING) == []

    def test_invalid_body_is_400(self, client: TestClient) -> None:
        """Given a body without isTyping, when posting, then 400 is returned."""
        response = client.post("/chats/c1/typing", json={"typing": "yes"}, headers=ALICE)

        assert response.status_code == 400
        assert "error" in response.json()

    def test_malformed_json_is_400(self, client: TestClient) -> None:
        """Given a body that is not JSON, when posting, then 400 is returned."""
        response = client.post("/chats/c1/typing", content=b"{nope", headers=ALICE)

        assert response.status_code == 400

    def test_missing_connection_id_is_400(self, client: TestClient) -> None:
        """Given no connection id, when posting, then 400 is returned."""
        response = client.post(
            "/chats/c1/typing",
            json={"isTyping": True},
            headers={"Authorization": "Bearer alice-token"},
        )

        assert response.status_code == 400

    def test_connection_id_in_body_is_accepted(self, client: TestClient) -> None:
        """Given the connection id in the body, when posting, then it is used."""
        response = client.post(
            "/chats/c1/typing",
            json={"isTyping": False, "connectionId": "conn-a"},
            headers={"Authorization": "Bearer alice-token"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Typing indicator cleared"

    def test_someone_elses_connection_is_403(self, client: TestClient) -> None:
        """Given Bob's connection id, when Alice posts with it, then 403 is returned."""
        headers = {"Authorization": "Bearer alice-token", "X-Connection-Id": "conn-b"}

        response = client.post("/chats/c1/typing", json={"isTyping": True}, headers=headers)

        assert response.status_code == 403

    def test_unknown_connection_is_409(self, client: TestClient) -> None:
        """Given a closed connection id, when posting, then 409 is returned."""
        headers = {"Authorization": "Bearer alice-token", "X-Connection-Id": "gone"}

        response = client.post("/chats/c1/typing", json={"isTyping": True}, headers=headers)

        assert response.status_code == 409

    def test_foreign_chat_is_403(self, client: TestClient) -> None:
        """Given a chat Alice is not in, when posting, then 403 is returned."""
        response = client.post("/chats/secret/typing", json={"isTyping": True}, headers=ALICE)

        assert response.status_code == 403


class TestMessages:
    """Message, seen and poll endpoints."""

    def test_send_message_broadcasts_and_counts_unread(
        self, client: TestClient, alice_sink: RecordingSink
    ) -> None:
        """Given Bob writes, when Alice checks, then she got the event and one unread message."""
        response = client.post("/chats/c1/messages", json={"content": "hello"}, headers=BOB)

        assert response.status_code == 201
        message = response.json()["message"]
        assert message["senderId"] == "bob"
        assert alice_sink.of_kind(EventKind.MESSAGE_CREATED)[0].payload["message"] == message

        unread = client.get("/chats/unread-count", headers=ALICE).json()
        assert unread == {"success": True, "count": 1, "perChat": {"c1": 1}}

    def test_empty_message_is_400(self, client: TestClient) -> None:
        """Given empty content, when posting a message, then 400 is returned."""
        response = client.post("/chats/c1/messages", json={"content": ""}, headers=BOB)

        assert response.status_code == 400

    def test_mark_seen_flow(self, client: TestClient, bob_sink: RecordingSink) -> None:
        """Given Bob's message, when Alice marks it seen twice, then Bob is told once and her unread drops."""
        message_id = client.post(
            "/chats/c1/messages", json={"content": "read me"}, headers=BOB
        ).json()["message"]["id"]

        first = client.post(f"/chats/c1/messages/{message_id}/seen", headers=ALICE)
        second = client.post(f"/chats/c1/messages/{message_id}/seen", headers=ALICE)

        assert first.json()["newlySeen"] is True
        assert second.json()["newlySeen"] is False
        assert len(bob_sink.of_kind(EventKind.SEEN)) == 1
        assert client.get("/chats/unread-count", headers=ALICE).json()["count"] == 0

    def test_mark_own_message_is_400(self, client: TestClient) -> None:
        """Given Bob's own message, when Bob marks it seen, then 400 is returned."""
        message_id = client.post(
            "/chats/c1/messages", json={"content": "mine"}, headers=BOB
        ).json()["message"]["id"]

        response = client.post(f"/chats/c1/messages/{message_id}/seen", headers=BOB)

        assert response.status_code == 400
        assert response.json() == {"error": "Cannot mark own message as seen"}

    def test_mark_missing_message_is_404(self, client: TestClient) -> None:
        """Given no such message, when marking seen, then 404 is returned."""
        response = client.post("/chats/c1/messages/missing/seen", headers=ALICE)

        assert response.status_code == 404

    def test_poll_returns_messages_after_since(self, client: TestClient, clock: FakeClock) -> None:
        """Given messages before and after a timestamp, when polling, then only the later ones are returned."""
        client.post("/chats/c1/messages", json={"content": "old"}, headers=BOB)
        since = clock.advance(1)
        clock.advance(1)
        client.post("/chats/c1/messages", json={"content": "new"}, headers=BOB)

        response = client.get(
            "/chats/c1/messages/poll", params={"since": since.isoformat()}, headers=ALICE
        )

        body = response.json()
        assert response.status_code == 200
        assert [m["content"] for m in body["messages"]] == ["new"]
        assert body["count"] == 1

    def test_poll_without_since_returns_history(
        self, client: TestClient, clock: FakeClock
    ) -> None:
        """Given no since parameter, when polling, then the history from the start is returned."""
        client.post("/chats/c1/messages", json={"content": "first"}, headers=BOB)

        response = client.get("/chats/c1/messages/poll", headers=ALICE)

        assert [m["content"] for m in response.json()["messages"]] == ["first"]

    @pytest.mark.parametrize("since", ["yesterday", "2024-05-01T12:00:00"])
    def test_poll_rejects_bad_since(self, client: TestClient, since: str) -> None:
        """Given an unparseable or naive timestamp, when polling, then 400 is returned."""
        response = client.get("/chats/c1/messages/poll", params={"since": since}, headers=ALICE)

        assert response.status_code == 400


class TestMembership:
    """Join and leave endpoints."""

    def test_leave_then_join(self, client: TestClient, world: ChatWorld) -> None:
        """Given Alice in c1, when she leaves and rejoins, then her connection follows."""
        left = client.post("/chats/c1/leave", headers=ALICE)
        assert left.status_code == 200
        assert "conn-a" not in world.registry.subscribers_of(chat_topic("c1"))

        again = client.post("/chats/c1/leave", headers=ALICE)
        assert again.status_code == 403

        joined = client.post("/chats/c1/join", headers=ALICE)
        assert joined.json() == {"success": True, "chatId": "c1", "role": "member"}
        assert "conn-a" in world.registry.subscribers_of(chat_topic("c1"))

    def test_join_unknown_chat_is_404(self, client: TestClient) -> None:
        """Given no such chat, when joining, then 404 is returned."""
        response = client.post("/chats/does-not-exist/join", headers=ALICE)

        assert response.status_code == 404
        assert response.json() == {"error": "Chat does-not-exist not found"}

    def test_join_direct_chat_is_400(self, client: TestClient, world: ChatWorld) -> None:
        """Given a direct chat of Bob's, when Alice joins it, then 400 is returned."""
        world.participants.add_chat("dm-bob-carol", ChatKind.DIRECT)
        world.participants.add("dm-bob-carol", "bob")

        response = client.post("/chats/dm-bob-carol/join", headers=ALICE)

        assert response.status_code == 400
        assert response.json() == {"error": "Can only join group chats"}
        assert "conn-a" not in world.registry.subscribers_of(chat_topic("dm-bob-carol"))


def test_debug_connections(client: TestClient) -> None:
    """Given two connections, when reading debug status, then they are reported."""
    response = client.get("/chats/debug/connections", headers=ALICE)

    status = response.json()["status"]
    assert status["active_connections"] == 2
    assert status["connections_by_user"] == {"alice": 1, "bob": 1}
    assert status["per_topic_subscribers"][chat_topic("c1")] == 2


def test_rate_limit_applies_to_actions(world: ChatWorld) -> None:
    """Given a limit of two per minute, when a client sends three requests, then the third is 429."""
    world.add_user("alice", "c1")
    app = create_app(world.service, AppConfig(rate_limit_per_minute=2))
    headers = {"Authorization": "Bearer alice-token"}

    with TestClient(app) as test_client:
        statuses = [
            test_client.get("/chats/unread-count", headers=headers).status_code
            for _ in range(3)
        ]
        health = test_client.get("/healthz")

    assert statuses == [200, 200, 429]
    assert health.status_code == 200


def test_reaped_connection_actions_fail(
    client: TestClient, world: ChatWorld, clock: FakeClock
) -> None:
    """Given Alice's connection was reaped, when she posts, then 409 is returned."""
    clock.advance(61)
    world.service.reap_idle(clock() + timedelta(seconds=1))

    response = client.post("/chats/c1/typing", json={"isTyping": True}, headers=ALICE)

    assert response.status_code == 409
