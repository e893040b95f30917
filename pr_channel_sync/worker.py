"""Periodic sweep worker.

Runs ``ReconciliationEngine.sweep`` on a fixed interval so channels converge
even when webhook deliveries are lost.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from .sync.engine import ReconciliationEngine

logger = logging.getLogger(__name__)


class SweepWorker:
    """Runs the sweep every ``interval`` seconds until shut down."""

    def __init__(self, engine: ReconciliationEngine, interval: float):
        """Initialize the worker.

        Args:
            engine: Engine whose sweep is run
            interval: Seconds to wait between the end of one sweep and the
                start of the next
        """
        if interval <= 0:
            raise ValueError("Sweep interval must be positive")
        self.engine = engine
        self.interval = interval

        self.running = False
        self.shutdown_event = asyncio.Event()

        self.stats: dict[str, Any] = {
            "worker_started_at": None,
            "total_sweeps": 0,
            "successful_sweeps": 0,
            "failed_sweeps": 0,
            "last_sweep_at": None,
            "last_error": None,
        }

    async def run(self) -> None:
        """Sweep until ``shutdown`` is called."""
        self.running = True
        self.stats["worker_started_at"] = datetime.now(UTC)
        logger.info(f"Starting sweep loop (interval: {self.interval}s)")

        try:
            while not self.shutdown_event.is_set():
                await self.run_once()

                try:
                    await asyncio.wait_for(
                        self.shutdown_event.wait(), timeout=self.interval
                    )
                    break
                except TimeoutError:
                    continue
        finally:
            self.running = False
            logger.info("Sweep worker stopped")

    async def run_once(self) -> None:
        """Run one sweep, recording its result; never raises."""
        self.stats["total_sweeps"] += 1
        self.stats["last_sweep_at"] = datetime.now(UTC)

        try:
            report = await self.engine.sweep()
        except Exception as e:
            logger.error(f"Sweep failed: {e}")
            self.stats["failed_sweeps"] += 1
            self.stats["last_error"] = {
                "message": str(e),
                "timestamp": datetime.now(UTC),
            }
            return

        if report.success:
            self.stats["successful_sweeps"] += 1
        else:
            self.stats["failed_sweeps"] += 1
            self.stats["last_error"] = {
                "message": report.summary(),
                "timestamp": report.completed_at,
            }

    async def shutdown(self) -> None:
        """Stop the loop after the sweep in progress, if any."""
        logger.info("Shutting down sweep worker...")
        self.shutdown_event.set()
