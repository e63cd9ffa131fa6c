"""Token verifier backed by a static token table."""

from chat_realtime.domain.errors import AuthError
from chat_realtime.domain.ports.identity_verifier import IdentityVerifier


class StaticTokenVerifier(IdentityVerifier):
    """Maps known tokens to user ids. Used for development and tests."""

    def __init__(self, tokens: dict[str, str] | None = None) -> None:
        self._tokens = dict(tokens or {})

    def issue(self, token: str, user_id: str) -> None:
        """Register a token for a user."""
        self._tokens[token] = user_id

    async def verify(self, token: str) -> str:
        user_id = self._tokens.get(token)
        if user_id is None:
            raise AuthError("Invalid or expired session token")
        return user_id
