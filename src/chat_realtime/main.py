"""Main entry point for the chat realtime server."""

import asyncio
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import ValidationError
from starlette.applications import Starlette

from chat_realtime.adapters.auth import HttpSessionVerifier
from chat_realtime.adapters.config import AppConfig
from chat_realtime.adapters.memory import (
    InMemoryMessageStore,
    InMemoryParticipationStore,
    InMemorySocialGraph,
    StaticTokenVerifier,
)
from chat_realtime.adapters.web import create_app
from chat_realtime.application.services import (
    ChatSessionService,
    ConnectionRegistry,
    EventFanout,
    IdleReaper,
    PresenceTracker,
    UnreadAccountant,
)
from chat_realtime.domain.models.participant import ChatKind, ParticipantRole
from chat_realtime.domain.ports.identity_verifier import IdentityVerifier

logger = logging.getLogger(__name__)


def configure_logging(level: int = logging.INFO) -> None:
    """Configure root logging on stderr."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )


def seed_dev_data(
    toml_data: dict[str, Any],
    participants: InMemoryParticipationStore,
    social_graph: InMemorySocialGraph,
    tokens: StaticTokenVerifier,
) -> None:
    """Load development fixtures from the ``[seed]`` TOML section.

    Expected shape::

        [seed.tokens]
        alice-token = "alice"

        [[seed.chats]]
        id = "general"
        kind = "group"  # or "direct"
        participants = ["alice", "bob"]
        admins = ["alice"]
    """
    seed = toml_data.get("seed", {})
    for token, user_id in seed.get("tokens", {}).items():
        tokens.issue(token, str(user_id))

    for chat in seed.get("chats", []):
        chat_id = str(chat["id"])
        participants.add_chat(chat_id, ChatKind(chat.get("kind", ChatKind.GROUP.value)))
        members = [str(u) for u in chat.get("participants", [])]
        admins = {str(u) for u in chat.get("admins", [])}
        for user_id in members:
            role = ParticipantRole.ADMIN if user_id in admins else ParticipantRole.MEMBER
            participants.add(chat_id, user_id, role=role)
        for i, user_a in enumerate(members):
            for user_b in members[i + 1 :]:
                social_graph.connect(user_a, user_b)
        logger.info(f"Seeded chat '{chat_id}' with {len(members)} participant(s)")


def build_app(config: AppConfig, toml_data: dict[str, Any] | None = None) -> Starlette:
    """Wire the services and adapters into a Starlette application."""
    participants = InMemoryParticipationStore()
    messages = InMemoryMessageStore()
    social_graph = InMemorySocialGraph()
    static_tokens = StaticTokenVerifier()
    seed_dev_data(toml_data or {}, participants, social_graph, static_tokens)

    shutdown: list[Callable[[], Awaitable[None]]] = []
    verifier: IdentityVerifier
    if config.session_endpoint_url:
        http_verifier = HttpSessionVerifier(
            config.session_endpoint_url, timeout_seconds=config.session_timeout_seconds
        )
        shutdown.append(http_verifier.close)
        verifier = http_verifier
        logger.info(f"Verifying sessions against {config.session_endpoint_url}")
    else:
        verifier = static_tokens
        logger.info("Verifying sessions against static development tokens")

    registry = ConnectionRegistry()
    fanout = EventFanout(
        registry,
        delivery_timeout_seconds=config.delivery_timeout_seconds,
        instance_id=config.instance_id,
    )
    presence = PresenceTracker(fanout, social_graph, grace_seconds=config.presence_grace_seconds)
    unread = UnreadAccountant(participants, messages)
    service = ChatSessionService(
        registry,
        fanout,
        presence,
        unread,
        verifier,
        participants,
        messages,
        idle_after_seconds=config.idle_after_seconds,
        idle_timeout_seconds=config.idle_timeout_seconds,
        catch_up_limit=config.catch_up_limit,
    )
    reaper = IdleReaper(service, interval_seconds=config.reaper_interval_seconds)
    return create_app(service, config, reaper=reaper, on_shutdown=shutdown)


async def serve(config: AppConfig, toml_data: dict[str, Any]) -> None:
    """Run the application with uvicorn until it is stopped."""
    import uvicorn

    app = build_app(config, toml_data)
    server_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
    server = uvicorn.Server(server_config)
    logger.info(f"Starting chat realtime server on {config.host}:{config.port}")
    await server.serve()


def main() -> None:
    """Console entry point."""
    configure_logging()
    try:
        config = AppConfig()
        toml_data = config.load_toml_overrides()
    except (ValidationError, ValueError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    configure_logging(config.log_level_value)
    try:
        asyncio.run(serve(config, toml_data))
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
