"""Identity verifier that asks the platform's session endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

import aiohttp

from chat_realtime.domain.errors import AuthError
from chat_realtime.domain.ports.identity_verifier import IdentityVerifier

if TYPE_CHECKING:
    from aiohttp import ClientResponse, ClientSession

logger = logging.getLogger(__name__)


def extract_user_id(data: Any) -> str | None:
    """Pull the user id out of a session payload.

    Accepts both ``{"user": {"id": ...}}`` and a flat ``{"userId": ...}``.
    """
    if not isinstance(data, dict):
        return None
    user = data.get("user")
    if isinstance(user, dict) and user.get("id"):
        return str(user["id"])
    if data.get("userId"):
        return str(data["userId"])
    return None


class HttpSessionVerifier(IdentityVerifier):
    """Verifies bearer tokens against an HTTP session endpoint using aiohttp."""

    def __init__(
        self,
        session_endpoint_url: str,
        session: ClientSession | None = None,
        timeout_seconds: float = 5.0,
    ) -> None:
        """Initialize the verifier.

        Args:
            session_endpoint_url: URL returning the session for the presented token.
            session: Optional shared aiohttp session; one is created lazily otherwise.
            timeout_seconds: Total timeout for one verification request.
        """
        self.session_endpoint_url = session_endpoint_url
        self.timeout_seconds = timeout_seconds
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_seconds)
            )
        return self._session

    async def close(self) -> None:
        """Close the aiohttp session if this verifier created it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def verify(self, token: str) -> str:
        """Resolve a token to a user id.

        Raises:
            AuthError: If the endpoint rejects the token, answers without a user,
                or cannot be reached.
        """
        if not token:
            raise AuthError("Missing session token")

        session = await self._get_session()
        headers = {"Authorization": f"Bearer {token}", "Accept": "application/json"}
        try:
            async with session.get(self.session_endpoint_url, headers=headers) as response:
                return await self._handle_response(response)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Session endpoint unreachable: {e}")
            raise AuthError("Session could not be verified") from e

    async def _handle_response(self, response: ClientResponse) -> str:
        if response.status != 200:
            logger.info(f"Session endpoint rejected token with status {response.status}")
            raise AuthError("Invalid or expired session token")
        try:
            data = await response.json()
        except (aiohttp.ContentTypeError, ValueError) as e:
            raise AuthError("Session endpoint returned an unreadable response") from e
        user_id = extract_user_id(data)
        if user_id is None:
            raise AuthError("Session has no user")
        return user_id
