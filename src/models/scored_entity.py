"""Scored entity model: the engine's per-entity aggregate."""
from dataclasses import dataclass
from datetime import datetime

from src.models.measurement import LeaderboardSignals, ValidationStatus


@dataclass(frozen=True)
class EvaluatorSubScore:
    """Latest score of one entity from one evaluator.

    Attributes:
        evaluator_id: Evaluator that produced the measurement.
        raw_score: Composite before temporal decay (0-100), None when the
            measurement carried leaderboard signals only.
        adjusted_score: Composite after temporal decay (0-100), or None.
        category_breakdown: Category scores that entered the composite.
        factor_breakdown: Factor scores that entered the evaluator score.
        content_age_days: Content age used for decay.
        measured_at: When the measurement was taken.
        observations: Most recent leaderboard signals, oldest first.
    """

    evaluator_id: str
    raw_score: float | None
    adjusted_score: float | None
    category_breakdown: dict[str, float]
    factor_breakdown: dict[str, float]
    content_age_days: float
    measured_at: datetime
    observations: tuple[LeaderboardSignals, ...] = ()


@dataclass(frozen=True)
class ScoredEntity:
    """An entity (page/URL) scored by one or more evaluators.

    Instances are immutable; every recomputation stores a new instance so
    readers never observe a partially applied update.

    Attributes:
        entity_id: Unique identifier (usually the URL).
        url: Entity URL.
        title: Entity title.
        evaluator_scores: Evaluator id -> latest sub-score.
        composite_score: Mean of the adjusted sub-scores that exist (0-100),
            None when every evaluator reported signals only.
        last_updated: Time of the latest measurement.
        rank: Position in the latest leaderboard (0 = not ranked).
        daily_change: Composite change versus one day earlier.
        weekly_change: Composite change versus seven days earlier.
        monthly_change: Composite change versus thirty days earlier.
        validation_status: Status of the latest measurement.
    """

    entity_id: str
    url: str
    title: str
    evaluator_scores: dict[str, EvaluatorSubScore]
    composite_score: float | None
    last_updated: datetime
    rank: int = 0
    daily_change: float = 0.0
    weekly_change: float = 0.0
    monthly_change: float = 0.0
    validation_status: ValidationStatus = ValidationStatus.UNKNOWN


@dataclass(frozen=True)
class EntityFailure:
    """One entity that a batch operation could not process.

    Attributes:
        entity_id: Entity that failed.
        reason: Error message.
        evaluator_id: Evaluator involved, when known.
    """

    entity_id: str
    reason: str
    evaluator_id: str | None = None
