"""Error taxonomy for the realtime chat core."""


class ChatRealtimeError(Exception):
    """Base class for all errors raised by the realtime core."""

    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class AuthError(ChatRealtimeError):
    """Identity could not be verified. The attach attempt is abandoned."""

    status_code = 401


class AccessDenied(ChatRealtimeError):
    """Authenticated, but not an active participant of the chat."""

    status_code = 403


class NotAParticipant(ChatRealtimeError):
    """Unread query for a chat the user never joined."""

    status_code = 403


class CannotSeeOwnMessage(ChatRealtimeError):
    """A user tried to mark their own message as seen."""

    status_code = 400


class NotFound(ChatRealtimeError):
    """The referenced chat or message does not exist."""

    status_code = 404


class ChatNotJoinable(ChatRealtimeError):
    """Only group chats can be joined by request."""

    status_code = 400


class RegistryError(ChatRealtimeError):
    """Misuse of the connection registry (programming error or race)."""

    status_code = 409


class UnknownConnection(RegistryError):
    """The connection id is not registered."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Unknown connection: {connection_id}")
        self.connection_id = connection_id


class DuplicateConnection(RegistryError):
    """The connection id is already registered."""

    def __init__(self, connection_id: str) -> None:
        super().__init__(f"Connection already registered: {connection_id}")
        self.connection_id = connection_id


class DeliveryError(ChatRealtimeError):
    """A sink could not accept an event.

    Raised by sinks only; the fan-out collects these into a delivery report.
    """

    status_code = 503
