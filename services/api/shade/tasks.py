"""
Background tasks for the Shade Party Mode API.

These tasks run periodically to maintain system health.
"""
import asyncio
import logging
from typing import Optional

from .config import get_settings
from .dependencies import get_storage
from .models import CleanupResult
from .services.party import PartyService

logger = logging.getLogger(__name__)


class CleanupTask:
    """
    Periodic task that deactivates stale rooms and players.

    Runs every hour by default. Disabled unless cleanup_task_enabled is set;
    the admin cleanup endpoint covers manual runs.
    """

    def __init__(self, interval_seconds: int = 3600):
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._running = False

    async def run_once(self) -> CleanupResult:
        """Run a single cleanup pass with the configured age thresholds."""
        party = PartyService(get_storage(), get_settings())
        return await party.cleanup_inactive()

    async def _run_cleanup(self) -> None:
        """Run the cleanup loop."""
        while self._running:
            try:
                await self.run_once()
            except Exception:
                logger.exception("Error during party cleanup")

            await asyncio.sleep(self.interval_seconds)

    def start(self) -> None:
        """Start the cleanup task."""
        if self._task is None or self._task.done():
            self._running = True
            self._task = asyncio.create_task(self._run_cleanup())
            logger.info("Party cleanup task started (interval: %ds)", self.interval_seconds)

    def stop(self) -> None:
        """Stop the cleanup task."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Party cleanup task stopped")


# Global cleanup task instance
cleanup_task = CleanupTask(get_settings().cleanup_interval_seconds)
