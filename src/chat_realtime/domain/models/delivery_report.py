"""Delivery report domain models."""

from pydantic import BaseModel, ConfigDict


class DeliveryFailure(BaseModel):
    """A single failed delivery to one connection."""

    model_config = ConfigDict(frozen=True)

    connection_id: str
    reason: str


class DeliveryReport(BaseModel):
    """Outcome of publishing one event to one topic.

    A publish with some failures is a partial success, not an error.
    """

    model_config = ConfigDict(frozen=True)

    topic: str
    event_id: str
    attempted: int = 0
    delivered: tuple[str, ...] = ()
    failures: tuple[DeliveryFailure, ...] = ()

    @property
    def ok(self) -> bool:
        """True when every attempted delivery succeeded."""
        return not self.failures

    @property
    def partial(self) -> bool:
        """True when some, but not all, deliveries failed."""
        return bool(self.failures) and bool(self.delivered)
