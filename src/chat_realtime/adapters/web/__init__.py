"""Web adapter exposing the session service over HTTP and server-sent events."""

from chat_realtime.adapters.web.app import create_app
from chat_realtime.adapters.web.sinks import QueueEventSink

__all__ = ["QueueEventSink", "create_app"]
