"""Engine context, external operations and background recalibration."""

from .context import EngineContext
from .models import BulkIngestResult, PruneResult, RecalibrationResult, SchedulerState
from .ranking_engine import RankingEngine
from .recalibration_scheduler import RecalibrationScheduler

__all__ = [
    "BulkIngestResult",
    "EngineContext",
    "PruneResult",
    "RankingEngine",
    "RecalibrationResult",
    "RecalibrationScheduler",
    "SchedulerState",
]
