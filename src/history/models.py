"""Data models for score history and trend analysis."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.models.measurement import ValidationStatus


class Trend(str, Enum):
    """Direction of an entity's score over a window."""

    IMPROVING = "improving"
    DECLINING = "declining"
    STABLE = "stable"
    INSUFFICIENT_DATA = "insufficient_data"


@dataclass(frozen=True)
class ScoreHistoryPoint:
    """One recorded composite score of an entity.

    Attributes:
        entity_id: Entity scored.
        timestamp: Measurement time.
        composite_score: Composite score (0-100).
        sub_scores: Evaluator id -> adjusted sub-score.
        validation_status: Validation status of the measurement.
    """

    entity_id: str
    timestamp: datetime
    composite_score: float
    sub_scores: dict[str, float] = field(default_factory=dict)
    validation_status: ValidationStatus = ValidationStatus.UNKNOWN


@dataclass
class TrendResult:
    """Trend of one entity over a window.

    Attributes:
        entity_id: Entity analyzed.
        trend: Classification; INSUFFICIENT_DATA with fewer than two points.
        change_percent: Change from oldest to newest point in percent.
        average_score: Mean composite score over the window.
        history: Points in the window, oldest first.
        insights: Human-readable observations.
        window_days: Window length.
    """

    entity_id: str
    trend: Trend
    change_percent: float
    average_score: float
    history: list[ScoreHistoryPoint]
    insights: list[str]
    window_days: int


@dataclass(frozen=True)
class Mover:
    """An entity whose score changed across its tracked history."""

    entity_id: str
    change: float
    timeframe_days: int


@dataclass(frozen=True)
class CommonIssue:
    """A recurring issue across all recorded points.

    Attributes:
        issue: Issue description.
        frequency: Share of points showing the issue, in percent.
        impact: "high" (>30%), "medium" (>10%) or "low".
    """

    issue: str
    frequency: float
    impact: str


@dataclass
class HistorySummary:
    """Summary statistics across every tracked entity."""

    total_points: int = 0
    tracked_entities: int = 0
    average_composite: float = 0.0
    average_by_evaluator: dict[str, float] = field(default_factory=dict)
    validation_rate: float = 0.0
    top_movers: list[Mover] = field(default_factory=list)
    common_issues: list[CommonIssue] = field(default_factory=list)
