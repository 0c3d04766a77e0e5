"""Telemetry retention service - automatically purges old telemetry events."""

import asyncio
import threading
from typing import Optional

from update_feed.core import async_session_maker, settings
from update_feed.core.logging import get_logger
from update_feed.services.telemetry import TelemetryService

logger = get_logger("telemetry_retention")

# Delay before the first purge so startup is not slowed down
STARTUP_DELAY_SECONDS = 60


class TelemetryRetentionService:
    """Background service to purge telemetry older than the retention period."""

    _instance: Optional["TelemetryRetentionService"] = None
    _instance_lock: threading.Lock = threading.Lock()
    _task: asyncio.Task | None = None

    def __init__(
        self,
        retention_days: int | None = None,
        interval_seconds: int | None = None,
    ):
        self._running = False
        self._retention_days = retention_days or settings.telemetry_retention_days
        self._interval_seconds = interval_seconds or settings.telemetry_cleanup_interval_seconds

    @classmethod
    def get_instance(cls) -> "TelemetryRetentionService":
        """Get singleton instance of the retention service (thread-safe)."""
        if cls._instance is None:
            with cls._instance_lock:
                # Double-check locking pattern
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    @property
    def retention_days(self) -> int:
        """Get current retention period in days."""
        return self._retention_days

    @retention_days.setter
    def retention_days(self, value: int) -> None:
        """Set retention period in days (minimum 1 day)."""
        self._retention_days = max(1, value)
        logger.info(f"Telemetry retention period set to {self._retention_days} days")

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self):
        """Start the background retention task."""
        if self._running:
            logger.warning("Telemetry retention service is already running")
            return

        self._running = True
        TelemetryRetentionService._task = asyncio.create_task(self._cleanup_loop())
        logger.info(
            f"Telemetry retention service started (retention: {self._retention_days} days, "
            f"interval: {self._interval_seconds}s)"
        )

    async def stop(self):
        """Stop the background retention task."""
        self._running = False
        if TelemetryRetentionService._task:
            TelemetryRetentionService._task.cancel()
            try:
                await TelemetryRetentionService._task
            except asyncio.CancelledError:
                pass
            TelemetryRetentionService._task = None
        logger.info("Telemetry retention service stopped")

    async def _cleanup_loop(self):
        """Main loop that periodically purges old events."""
        await asyncio.sleep(STARTUP_DELAY_SECONDS)

        while self._running:
            try:
                await self._run_cleanup()
            except Exception as e:
                logger.error(f"Error in telemetry retention cleanup: {e}")

            await asyncio.sleep(self._interval_seconds)

    async def _run_cleanup(self):
        """Execute a single purge run."""
        async with async_session_maker() as db:
            try:
                await TelemetryService(db).purge(self._retention_days)
                await db.commit()
            except Exception as e:
                logger.exception(f"Error during telemetry purge: {e}")
                await db.rollback()
                raise  # Propagate to _cleanup_loop which handles logging

    async def run_cleanup_now(self) -> int:
        """Manually trigger a purge.

        Returns:
            Number of events deleted
        """
        async with async_session_maker() as db:
            deleted_count = await TelemetryService(db).purge(self._retention_days)
            await db.commit()
            return deleted_count
