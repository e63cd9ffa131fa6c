"""Social graph port."""

from typing import Protocol


class SocialGraph(Protocol):
    """Port for looking up whose presence a user is interested in."""

    async def contacts_of(self, user_id: str) -> set[str]:
        """Return the user ids that should be told about this user's presence."""
        ...
