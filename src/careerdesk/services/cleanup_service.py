"""Periodic removal of expired advertisements."""

import asyncio
import contextlib
import logging

from beartype import beartype
from pydantic import BaseModel, ConfigDict, Field

from careerdesk.services.storage_adapter import StorageAdapter

logger = logging.getLogger(__name__)


class CleanupResult(BaseModel):
    """Outcome of one cleanup sweep."""

    model_config = ConfigDict(frozen=True)

    deleted_ads: int = Field(default=0, ge=0)


class CleanupService:
    """Runs the expired-advertisement sweep on a fixed interval."""

    @beartype
    def __init__(self, adapter: StorageAdapter, interval: float = 3600.0) -> None:
        """Initialize cleanup service.

        Args:
            adapter: Storage adapter to sweep through.
            interval: Seconds between sweeps.
        """
        self._adapter = adapter
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @beartype
    def start(self) -> None:
        """Start sweeping: once now, then every interval.

        Must be called from a running event loop.
        """
        if self.is_running():
            logger.info("Cleanup service is already running")
            return

        self._task = asyncio.get_running_loop().create_task(self._run_forever())
        logger.info(
            "Advertisement cleanup service started (every %.0f seconds)",
            self._interval,
        )

    @beartype
    async def stop(self) -> None:
        """Stop sweeping and wait for the current sweep to be cancelled."""
        if self._task is None:
            return

        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Advertisement cleanup service stopped")

    @beartype
    def is_running(self) -> bool:
        """Whether the sweep loop is active."""
        return self._task is not None and not self._task.done()

    @beartype
    async def run_cleanup(self) -> CleanupResult:
        """Run one sweep.

        Errors are logged and reported as zero deletions so that a bad sweep
        does not stop the loop.

        Returns:
            Number of advertisements deleted.
        """
        logger.info("Running advertisement cleanup...")
        try:
            deleted = await self._adapter.delete_expired_advertisements()
        except Exception:
            logger.exception("Error during advertisement cleanup")
            return CleanupResult()

        if deleted:
            logger.info("Cleanup completed: %d expired ads removed", deleted)
        else:
            logger.info("No expired advertisements to clean up")
        return CleanupResult(deleted_ads=deleted)

    async def _run_forever(self) -> None:
        while True:
            await self.run_cleanup()
            await asyncio.sleep(self._interval)
