"""In-memory social graph."""

from chat_realtime.domain.ports.social_graph import SocialGraph


class InMemorySocialGraph(SocialGraph):
    """Symmetric contact lists."""

    def __init__(self) -> None:
        self._contacts: dict[str, set[str]] = {}

    def connect(self, user_a: str, user_b: str) -> None:
        """Make two users contacts of each other."""
        self._contacts.setdefault(user_a, set()).add(user_b)
        self._contacts.setdefault(user_b, set()).add(user_a)

    async def contacts_of(self, user_id: str) -> set[str]:
        return set(self._contacts.get(user_id, ()))
