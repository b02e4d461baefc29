"""Periodic background recalibration."""

import asyncio
import logging

from src.config.settings import SchedulerSettings
from src.engine.models import RecalibrationResult, SchedulerState
from src.engine.ranking_engine import RankingEngine

logger = logging.getLogger(__name__)


class RecalibrationScheduler:
    """Runs RankingEngine.recalibrate on a fixed interval.

    Each pass runs in a worker thread so the event loop, and any ingestion
    driven from it, keeps running. A failing pass is logged and the loop
    continues with the next interval.
    """

    def __init__(self, engine: RankingEngine, settings: SchedulerSettings):
        self._engine = engine
        self._settings = settings
        self._state = SchedulerState.STOPPED
        self._task: asyncio.Task | None = None
        self._pass_task: asyncio.Task | None = None
        self._passes = 0
        self._last_result: RecalibrationResult | None = None

    @property
    def state(self) -> SchedulerState:
        """Return the current scheduler state."""
        return self._state

    @property
    def is_running(self) -> bool:
        """Return True if the scheduler is in RUNNING state."""
        return self._state == SchedulerState.RUNNING

    @property
    def passes(self) -> int:
        """Number of completed passes."""
        return self._passes

    @property
    def last_result(self) -> RecalibrationResult | None:
        return self._last_result

    async def start(self) -> None:
        """Start the background loop."""
        if self._state != SchedulerState.STOPPED:
            raise RuntimeError("Scheduler already running")

        self._state = SchedulerState.RUNNING
        self._task = asyncio.create_task(self._run())
        logger.info(f"Recalibration scheduler started (every {self._settings.interval_seconds}s)")

    async def stop(self) -> None:
        """Stop the background loop, waiting for a pass in progress to finish.

        The worker thread of a running pass cannot be interrupted, so the pass
        is allowed to complete before the scheduler reports STOPPED.
        """
        if self._state == SchedulerState.STOPPED:
            return

        self._state = SchedulerState.STOPPING
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._pass_task and not self._pass_task.done():
            logger.info("Waiting for the recalibration pass in progress")
            try:
                await self._pass_task
            except Exception as e:
                logger.error(f"Recalibration pass failed: {e}")
        self._pass_task = None

        self._state = SchedulerState.STOPPED
        logger.info("Recalibration scheduler stopped")

    async def run_once(self) -> RecalibrationResult:
        """Run a single pass now, off the event loop thread."""
        result = await asyncio.to_thread(self._engine.recalibrate)
        if self._settings.prune:
            await asyncio.to_thread(self._engine.prune)
        if self._settings.rebuild_leaderboard:
            await asyncio.to_thread(self._engine.rebuild_leaderboard)
        self._passes += 1
        self._last_result = result
        return result

    async def _run(self) -> None:
        """Background loop."""
        try:
            while self._state == SchedulerState.RUNNING:
                await asyncio.sleep(self._settings.interval_seconds)
                if self._state != SchedulerState.RUNNING:
                    break
                # Shielded so cancelling the loop leaves the pass to stop()
                self._pass_task = asyncio.create_task(self.run_once())
                try:
                    await asyncio.shield(self._pass_task)
                except Exception as e:
                    logger.error(f"Recalibration pass failed: {e}")
        except asyncio.CancelledError:
            pass
