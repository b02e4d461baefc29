"""Result models for engine-level operations."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.feedback.models import LearningResult
from src.models.scored_entity import EntityFailure, ScoredEntity
from src.weights.models import NormalizationResult


@dataclass
class BulkIngestResult:
    """Entities updated by a bulk ingest and the measurements that failed."""

    entities: list[ScoredEntity] = field(default_factory=list)
    failures: list[EntityFailure] = field(default_factory=list)


@dataclass
class RecalibrationResult:
    """Outcome of one recalibration epoch.

    Attributes:
        epoch: Feedback log epoch the pass was computed from.
        record_count: Feedback records in the snapshot.
        learning: Evaluator id -> learning result, for evaluators with enough data.
        skipped: Evaluator id -> reason, for evaluators below min_data_points.
        normalization: Normalization results of every consumer.
        started_at: When the pass started.
    """

    epoch: int
    record_count: int
    learning: dict[str, LearningResult] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)
    normalization: list[NormalizationResult] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)

    @property
    def updated_evaluators(self) -> list[str]:
        """Evaluators whose factor weights changed."""
        return sorted(k for k, v in self.learning.items() if v.changed)


@dataclass
class PruneResult:
    """What a retention pass removed."""

    cutoff: datetime
    entities: list[str] = field(default_factory=list)
    history_entities: list[str] = field(default_factory=list)
    snapshots: int = 0


class SchedulerState(Enum):
    """State of the recalibration scheduler."""

    STOPPED = "stopped"
    RUNNING = "running"
    STOPPING = "stopping"
