"""Identity verifier port."""

from typing import Protocol


class IdentityVerifier(Protocol):
    """Port for resolving a session token to a user id."""

    async def verify(self, token: str) -> str:
        """Return the user id for the token.

        Raises:
            AuthError: If the token cannot be verified.
        """
        ...
