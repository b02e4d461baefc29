"""Data models for outcome feedback and weight learning."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.models.errors import ValidationError, require_range


class Outcome(str, Enum):
    """Observed outcome of a set of applied changes."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"

    @classmethod
    def from_delta(cls, delta: float) -> "Outcome":
        """Classify a before/after score delta."""
        if delta > 0:
            return cls.POSITIVE
        elif delta < 0:
            return cls.NEGATIVE
        return cls.NEUTRAL


@dataclass(frozen=True)
class OptimizationChange:
    """One remediation change attributed to a feedback record.

    Attributes:
        change_type: Kind of change (schema, content, technical, ...).
        impact: Observed impact from -1 to 1.
        applied: Whether the change was actually applied.
        description: Free-text description.
    """

    change_type: str
    impact: float
    applied: bool = True
    description: str = ""

    def __post_init__(self) -> None:
        if not self.change_type:
            raise ValidationError("change_type", self.change_type, "must not be empty")
        object.__setattr__(self, "impact", require_range("impact", self.impact, -1.0, 1.0))


@dataclass(frozen=True)
class FeedbackRecord:
    """Immutable observation of a before/after score for one evaluator.

    Attributes:
        evaluator_id: Evaluator whose score was observed.
        entity_id: Entity the changes were applied to.
        before_score: Score before the changes (0-100).
        after_score: Score after the changes (0-100).
        changes: Changes attributed to the delta.
        timestamp: When the outcome was observed (default now).
        outcome: Outcome classification; derived from the delta when omitted.
        confidence: Confidence in the observation (0-1, default 1.0).
    """

    evaluator_id: str
    entity_id: str
    before_score: float
    after_score: float
    changes: tuple[OptimizationChange, ...] = ()
    timestamp: datetime = field(default_factory=datetime.now)
    outcome: Outcome | None = None
    confidence: float = 1.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "before_score", require_range("before_score", self.before_score, 0.0, 100.0))
        object.__setattr__(self, "after_score", require_range("after_score", self.after_score, 0.0, 100.0))
        object.__setattr__(self, "confidence", require_range("confidence", self.confidence, 0.0, 1.0))
        object.__setattr__(self, "changes", tuple(self.changes))
        if self.outcome is None:
            object.__setattr__(self, "outcome", Outcome.from_delta(self.score_delta))
        else:
            object.__setattr__(self, "outcome", Outcome(self.outcome))

    @property
    def score_delta(self) -> float:
        """after_score - before_score."""
        return self.after_score - self.before_score


@dataclass
class LearningResult:
    """Outcome of one learning pass for one evaluator.

    Attributes:
        evaluator_id: Evaluator the pass ran for.
        record_count: Feedback records considered.
        average_impacts: Change type -> average impact of applied changes.
        adjustments: Factor -> weight increase actually applied.
        previous_weights: Factor weights before the pass.
        new_weights: Factor weights after the pass.
    """

    evaluator_id: str
    record_count: int
    average_impacts: dict[str, float]
    adjustments: dict[str, float]
    previous_weights: dict[str, float]
    new_weights: dict[str, float]

    @property
    def changed(self) -> bool:
        """True if any factor weight differs from before the pass."""
        return self.previous_weights != self.new_weights


@dataclass
class LearningMetrics:
    """Aggregate statistics over a feedback log."""

    total_feedback: int
    evaluators_with_data: list[str]
    average_improvement: float
    average_impacts: dict[str, float]
