"""Background sweep that disconnects idle connections."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from chat_realtime.application.services.chat_session_service import ChatSessionService

logger = logging.getLogger(__name__)


class IdleReaper:
    """Periodically removes connections that stopped showing activity."""

    def __init__(self, session_service: ChatSessionService, interval_seconds: float = 15.0) -> None:
        """Initialize the reaper.

        Args:
            session_service: Service whose connections are swept.
            interval_seconds: Pause between two sweeps.
        """
        self.session_service = session_service
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        """Whether the sweep loop is active."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop."""
        if self.running:
            logger.warning("Idle reaper already running")
            return
        self._task = asyncio.create_task(self._sweep_loop())
        logger.info(f"Started idle reaper (interval {self.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the sweep loop."""
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                logger.info("Idle reaper cancelled")
            logger.info("Stopped idle reaper")
        self._task = None

    def sweep(self) -> list[str]:
        """Run a single sweep and return the reaped connection ids."""
        reaped = self.session_service.reap_idle()
        if reaped:
            logger.debug(f"Idle reaper removed {len(reaped)} connection(s)")
        return reaped

    async def _sweep_loop(self) -> None:
        try:
            while True:
                await asyncio.sleep(self.interval_seconds)
                try:
                    self.sweep()
                except Exception as e:
                    logger.error(f"Idle reaper sweep failed: {e}", exc_info=True)
        except asyncio.CancelledError:
            logger.debug("Idle reaper loop cancelled")
            raise
