"""
Expiry Reaper
=============
Periodic purge of OTP records whose expiry has passed.
"""

import asyncio
from datetime import datetime
from typing import Optional

import structlog

from otp_core.clock import Clock, SystemClock
from otp_core.metrics import record_swept
from otp_core.store.base import RecordStore

logger = structlog.get_logger(__name__)


class ExpiryReaper:
    """
    Deletes expired records on a fixed interval.

    Example:
        reaper = ExpiryReaper(store, interval_seconds=3600)
        reaper.start()
        ...
        await reaper.stop()
    """

    def __init__(
        self,
        store: RecordStore,
        clock: Optional[Clock] = None,
        interval_seconds: float = 3600,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None
        self._stopped = asyncio.Event()

    async def sweep(self, now: Optional[datetime] = None) -> int:
        """
        Delete every record with expires_at < now, used or not.

        Returns:
            Number of records deleted
        """
        cutoff = now or self.clock.now()
        deleted = await self.store.delete_expired_before(cutoff)
        record_swept(deleted)
        logger.info("Cleaned up expired OTPs", deleted=deleted, cutoff=cutoff.isoformat())
        return deleted

    async def run_once(self) -> int:
        """
        One scheduled sweep.

        Failures are logged and left for the next run; expired records are
        already unverifiable, so a missed sweep only delays cleanup.
        """
        try:
            return await self.sweep()
        except Exception as e:
            logger.error("Error cleaning up expired OTPs", error=str(e), exc_info=True)
            return 0

    async def run_forever(self) -> None:
        """Sweep every interval until stop() is called."""
        self._stopped.clear()
        while not self._stopped.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stopped.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    def start(self) -> asyncio.Task:
        """Schedule run_forever() on the running loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.get_running_loop().create_task(self.run_forever())
            logger.info("Expiry reaper started", interval_seconds=self.interval_seconds)
        return self._task

    async def stop(self) -> None:
        """Stop the loop and wait for the current sweep to finish."""
        self._stopped.set()
        if self._task is not None:
            await self._task
            self._task = None
            logger.info("Expiry reaper stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
