"""Clock contract (protocol)."""

from datetime import datetime
from typing import Protocol


class ClockProtocol(Protocol):
    """Source of the current time as an aware UTC datetime."""

    def __call__(self) -> datetime: ...
