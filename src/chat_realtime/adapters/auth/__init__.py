"""Identity adapters."""

from chat_realtime.adapters.auth.http_session_verifier import HttpSessionVerifier

__all__ = ["HttpSessionVerifier"]
