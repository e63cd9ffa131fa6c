"""Topic naming helpers.

A topic is not stored anywhere; it is derived from a chat id or a user id.
"""

CHAT_PREFIX = "chat"
USER_PREFIX = "user"


def chat_topic(chat_id: str) -> str:
    """Return the topic for a chat room."""
    if not chat_id:
        raise ValueError("chat_id must not be empty")
    return f"{CHAT_PREFIX}:{chat_id}"


def user_topic(user_id: str) -> str:
    """Return the personal topic for a user."""
    if not user_id:
        raise ValueError("user_id must not be empty")
    return f"{USER_PREFIX}:{user_id}"


def parse_topic(topic: str) -> tuple[str, str]:
    """Split a topic into (kind, identifier).

    Raises:
        ValueError: If the topic is not of the form ``chat:<id>`` or ``user:<id>``.
    """
    kind, sep, identifier = topic.partition(":")
    if not sep or not identifier or kind not in (CHAT_PREFIX, USER_PREFIX):
        raise ValueError(f"Malformed topic: {topic!r}")
    return kind, identifier


def is_chat_topic(topic: str) -> bool:
    """Check whether the topic names a chat room."""
    return topic.startswith(f"{CHAT_PREFIX}:")
