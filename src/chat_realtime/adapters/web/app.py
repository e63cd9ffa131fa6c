"""Starlette binding of the chat session service (SSE stream plus JSON actions)."""

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, TypeVar

from pydantic import BaseModel, ValidationError
from starlette.applications import Starlette
from starlette.exceptions import HTTPException
from starlette.middleware import Middleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response, StreamingResponse
from starlette.routing import Route

from chat_realtime.adapters.web.rate_limit_middleware import RateLimitMiddleware
from chat_realtime.adapters.web.schemas import SeenRequest, SendMessageRequest, TypingRequest
from chat_realtime.adapters.web.sinks import QueueEventSink
from chat_realtime.adapters.web.sse import SSE_HEADERS, stream_events
from chat_realtime.domain.errors import AuthError, ChatRealtimeError
from chat_realtime.domain.models.participant import EPOCH

if TYPE_CHECKING:
    from chat_realtime.adapters.config.app_config import AppConfig
    from chat_realtime.application.services.chat_session_service import ChatSessionService
    from chat_realtime.application.services.idle_reaper import IdleReaper
    from chat_realtime.domain.models.connection import ConnectionHandle

logger = logging.getLogger(__name__)

BodyT = TypeVar("BodyT", bound=BaseModel)

CONNECTION_HEADER = "X-Connection-Id"


def _service(request: Request) -> ChatSessionService:
    service: ChatSessionService = request.app.state.service
    return service


def bearer_token(request: Request) -> str:
    """Token from the Authorization header, or the ``token`` query parameter.

    The query parameter exists for EventSource clients, which cannot set headers.
    """
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    token = request.query_params.get("token", "")
    if token:
        return token
    raise AuthError("Unauthorized")


async def _current_user(request: Request) -> str:
    return await _service(request).verifier.verify(bearer_token(request))


async def _read_body(request: Request, model: type[BodyT]) -> BodyT:
    raw = await request.body()
    try:
        data = json.loads(raw) if raw else {}
        return model.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid request body: {e}") from e


async def _resolve_handle(
    request: Request, user_id: str, connection_id: str | None
) -> ConnectionHandle:
    connection_id = connection_id or request.headers.get(CONNECTION_HEADER)
    if not connection_id:
        raise HTTPException(status_code=400, detail="Connection ID required")
    return _service(request).resolve_handle(connection_id, user_id)


def _chat_ids(request: Request) -> list[str]:
    chat_ids: list[str] = []
    for value in request.query_params.getlist("chatId"):
        chat_ids.extend(part.strip() for part in value.split(",") if part.strip())
    return chat_ids


async def health(_request: Request) -> Response:
    return JSONResponse({"status": "ok"})


async def chat_stream(request: Request) -> Response:
    """Open an SSE stream for the requested chats."""
    service = _service(request)
    config: AppConfig = request.app.state.config
    chat_ids = _chat_ids(request)
    if not chat_ids:
        raise HTTPException(status_code=400, detail="Chat ID required")

    sink = QueueEventSink(max_size=config.sink_queue_size)
    handle = await service.attach(bearer_token(request), chat_ids, sink)
    logger.info(f"Opened event stream {handle.connection_id} for user {handle.user_id}")
    return StreamingResponse(
        stream_events(service, handle, sink, config.keepalive_seconds),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def typing_indicator(request: Request) -> Response:
    user_id = await _current_user(request)
    body = await _read_body(request, TypingRequest)
    handle = await _resolve_handle(request, user_id, body.connection_id)
    report = await _service(request).send_typing(
        handle, request.path_params["chat_id"], body.is_typing
    )
    return JSONResponse(
        {
            "success": True,
            "message": "Typing indicator sent" if body.is_typing else "Typing indicator cleared",
            "delivered": len(report.delivered),
        }
    )


async def send_message(request: Request) -> Response:
    user_id = await _current_user(request)
    body = await _read_body(request, SendMessageRequest)
    handle = await _resolve_handle(request, user_id, body.connection_id)
    message = await _service(request).send_message(
        handle, request.path_params["chat_id"], body.content
    )
    return JSONResponse({"success": True, "message": message.to_payload()}, status_code=201)


async def poll_messages(request: Request) -> Response:
    """Catch-up endpoint for clients that reconnect after missing events."""
    user_id = await _current_user(request)
    handle = await _resolve_handle(request, user_id, request.query_params.get("connectionId"))
    since_param = request.query_params.get("since")
    try:
        since = datetime.fromisoformat(since_param) if since_param else EPOCH
    except ValueError as e:
        raise HTTPException(status_code=400, detail="since must be an ISO timestamp") from e
    if since.tzinfo is None:
        raise HTTPException(status_code=400, detail="since must include a timezone")

    messages = await _service(request).messages_since(
        handle, request.path_params["chat_id"], since
    )
    return JSONResponse(
        {"success": True, "messages": [m.to_payload() for m in messages], "count": len(messages)}
    )


async def mark_seen(request: Request) -> Response:
    user_id = await _current_user(request)
    body = await _read_body(request, SeenRequest)
    handle = await _resolve_handle(request, user_id, body.connection_id)
    newly_seen = await _service(request).mark_seen(
        handle, request.path_params["chat_id"], request.path_params["message_id"]
    )
    return JSONResponse(
        {"success": True, "message": "Message marked as seen", "newlySeen": newly_seen}
    )


async def join_chat(request: Request) -> Response:
    user_id = await _current_user(request)
    participant = await _service(request).join_chat(user_id, request.path_params["chat_id"])
    return JSONResponse(
        {"success": True, "chatId": participant.chat_id, "role": participant.role.value}
    )


async def leave_chat(request: Request) -> Response:
    user_id = await _current_user(request)
    await _service(request).leave_chat(user_id, request.path_params["chat_id"])
    return JSONResponse({"success": True})


async def unread_count(request: Request) -> Response:
    user_id = await _current_user(request)
    snapshot = await _service(request).get_unread(user_id)
    return JSONResponse({"success": True, "count": snapshot.total, "perChat": snapshot.per_chat})


async def debug_connections(request: Request) -> Response:
    await _current_user(request)
    status = _service(request).debug_status()
    return JSONResponse({"success": True, "status": status.model_dump(mode="json")})


async def _handle_chat_error(_request: Request, exc: ChatRealtimeError) -> Response:
    if exc.status_code >= 500:
        logger.error(f"Request failed: {exc.message}", exc_info=exc)
    return JSONResponse({"error": exc.message}, status_code=exc.status_code)


async def _handle_http_error(_request: Request, exc: HTTPException) -> Response:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code)


ROUTES = [
    Route("/healthz", health, methods=["GET"]),
    Route("/chats/stream", chat_stream, methods=["GET"]),
    Route("/chats/unread-count", unread_count, methods=["GET"]),
    Route("/chats/debug/connections", debug_connections, methods=["GET"]),
    Route("/chats/{chat_id}/typing", typing_indicator, methods=["POST"]),
    Route("/chats/{chat_id}/messages", send_message, methods=["POST"]),
    Route("/chats/{chat_id}/messages/poll", poll_messages, methods=["GET"]),
    Route("/chats/{chat_id}/messages/{message_id}/seen", mark_seen, methods=["POST"]),
    Route("/chats/{chat_id}/join", join_chat, methods=["POST"]),
    Route("/chats/{chat_id}/leave", leave_chat, methods=["POST"]),
]


def create_app(
    service: ChatSessionService,
    config: AppConfig,
    reaper: IdleReaper | None = None,
    on_shutdown: Iterable[Callable[[], Awaitable[None]]] = (),
) -> Starlette:
    """Build the Starlette application.

    Args:
        service: The session service handling every action.
        config: Application configuration.
        reaper: Optional idle reaper started and stopped with the application.
        on_shutdown: Extra async callbacks run after the reaper stopped.
    """
    shutdown_callbacks = list(on_shutdown)

    @asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        await service.fanout.attach_broker()
        if reaper is not None:
            await reaper.start()
        try:
            yield
        finally:
            if reaper is not None:
                await reaper.stop()
            await service.presence.close()
            for callback in shutdown_callbacks:
                await callback()
            logger.info("Chat realtime application stopped")

    app = Starlette(
        routes=ROUTES,
        middleware=[
            Middleware(RateLimitMiddleware, requests_per_minute=config.rate_limit_per_minute)
        ],
        exception_handlers={
            ChatRealtimeError: _handle_chat_error,
            HTTPException: _handle_http_error,
        },
        lifespan=lifespan,
    )
    app.state.service = service
    app.state.config = config
    return app
