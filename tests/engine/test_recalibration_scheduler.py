# tests/engine/test_recalibration_scheduler.py
"""Tests for the periodic RecalibrationScheduler."""
import asyncio
import time
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from src.config.settings import SchedulerSettings
from src.engine.context import EngineContext
from src.engine.models import SchedulerState
from src.engine.ranking_engine import RankingEngine
from src.engine.recalibration_scheduler import RecalibrationScheduler
from src.models.measurement import Measurement


@pytest.fixture
def engine():
    return RankingEngine(EngineContext.create(now=datetime(2026, 1, 15)))


class TestRecalibrationScheduler:
    def test_initial_state(self, engine):
        scheduler = RecalibrationScheduler(engine, SchedulerSettings())

        assert scheduler.state == SchedulerState.STOPPED
        assert scheduler.passes == 0
        assert scheduler.last_result is None

    @pytest.mark.asyncio
    async def test_run_once(self, engine):
        engine.ingest("a", "chatgpt", Measurement(category_scores={"technical": 80.0}))
        scheduler = RecalibrationScheduler(engine, SchedulerSettings())

        result = await scheduler.run_once()

        assert scheduler.passes == 1
        assert scheduler.last_result is result
        assert engine.get_entity("a").rank == 1
        assert len(engine.context.leaderboard.snapshots()) == 1

    @pytest.mark.asyncio
    async def test_run_once_without_rebuild(self, engine):
        settings = SchedulerSettings(rebuild_leaderboard=False, prune=False)
        scheduler = RecalibrationScheduler(engine, settings)

        await scheduler.run_once()

        assert engine.context.leaderboard.snapshots() == []

    @pytest.mark.asyncio
    async def test_start_and_stop(self, engine):
        scheduler = RecalibrationScheduler(engine, SchedulerSettings(interval_seconds=3600))

        await scheduler.start()
        assert scheduler.is_running

        with pytest.raises(RuntimeError):
            await scheduler.start()

        await scheduler.stop()
        assert scheduler.state == SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_stop_when_stopped_is_noop(self, engine):
        scheduler = RecalibrationScheduler(engine, SchedulerSettings())

        await scheduler.stop()

        assert scheduler.state == SchedulerState.STOPPED

    @pytest.mark.asyncio
    async def test_failing_pass_keeps_loop_running(self):
        engine = MagicMock()
        engine.recalibrate.side_effect = [RuntimeError("boom"), MagicMock()]
        scheduler = RecalibrationScheduler(
            engine, SchedulerSettings(interval_seconds=1, prune=False, rebuild_leaderboard=False)
        )

        await scheduler.start()
        await asyncio.sleep(2.5)
        await scheduler.stop()

        assert engine.recalibrate.call_count == 2
        assert scheduler.passes == 1

    @pytest.mark.asyncio
    async def test_stop_waits_for_pass_in_progress(self):
        engine = MagicMock()

        def slow_recalibrate():
            time.sleep(0.5)
            return MagicMock()

        engine.recalibrate.side_effect = slow_recalibrate
        scheduler = RecalibrationScheduler(
            engine, SchedulerSettings(interval_seconds=1, prune=False, rebuild_leaderboard=False)
        )

        await scheduler.start()
        await asyncio.sleep(1.2)
        await scheduler.stop()

        assert engine.recalibrate.call_count == 1
        assert scheduler.passes == 1
        assert scheduler.last_result is not None
        assert scheduler.state == SchedulerState.STOPPED
