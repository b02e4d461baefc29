"""Data models for canonical and per-consumer evaluator weights."""
from dataclasses import dataclass, field, replace
from datetime import datetime

from src.models.errors import (
    ConsistencyViolation,
    ValidationError,
    require_finite,
    require_range,
)


@dataclass
class EvaluatorWeight:
    """A consumer's copy of one evaluator weight.

    Attributes:
        evaluator_id: Evaluator the weight belongs to.
        weight: Consumer-specific weight.
        confidence: Confidence copied from the canonical evaluator.
        drift_factor: |weight - global| / global at the last normalization.
        last_updated: When the weight last changed.
    """

    evaluator_id: str
    weight: float
    confidence: float
    drift_factor: float = 0.0
    last_updated: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        self.weight = require_finite("weight", self.weight)
        if self.weight <= 0:
            raise ValidationError("weight", self.weight, "must be positive")


@dataclass
class ConsumerWeightProfile:
    """Derived weight copies held for one downstream consumer.

    Attributes:
        consumer_id: Consumer identifier (e.g. "leaderboard").
        display_name: Human-readable name.
        weights: Evaluator id -> consumer copy of the evaluator weight.
        factor_weights: Evaluator id -> copy of the evaluator factor weights.
        normalization_factor: Mean consumer weight after the last normalization.
        last_normalized: When the profile was last normalized.
    """

    consumer_id: str
    display_name: str
    weights: dict[str, EvaluatorWeight] = field(default_factory=dict)
    factor_weights: dict[str, dict[str, float]] = field(default_factory=dict)
    normalization_factor: float = 1.0
    last_normalized: datetime = field(default_factory=datetime.now)

    def copy(self) -> "ConsumerWeightProfile":
        """Return an independent copy."""
        return replace(
            self,
            weights={k: replace(v) for k, v in self.weights.items()},
            factor_weights={k: dict(v) for k, v in self.factor_weights.items()},
        )

    def weight_of(self, evaluator_id: str) -> float | None:
        """Consumer weight for an evaluator, or None if not held."""
        entry = self.weights.get(evaluator_id)
        return entry.weight if entry else None


@dataclass(frozen=True)
class PerformanceSample:
    """Observed performance of an evaluator used to recompute its global weight.

    Attributes:
        evaluator_id: Evaluator observed.
        performance: Performance score (0-100).
        confidence: New confidence for the evaluator; unchanged when None.
    """

    evaluator_id: str
    performance: float
    confidence: float | None = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "performance", require_range("performance", self.performance, 0.0, 100.0)
        )
        if self.confidence is not None:
            object.__setattr__(
                self, "confidence", require_range("confidence", self.confidence, 0.0, 1.0)
            )

    @property
    def normalized_performance(self) -> float:
        """Performance scaled to 0-1."""
        return self.performance / 100.0


@dataclass
class NormalizationResult:
    """Outcome of normalizing one consumer.

    Attributes:
        consumer_id: Consumer normalized.
        original_weights: Evaluator id -> weight before the pass.
        new_weights: Evaluator id -> weight after the pass.
        drift_factors: Evaluator id -> drift measured before correction.
        drift_correction: Mean drift factor across evaluators.
        confidence: Mean confidence across the consumer's weights.
        violations: Drift beyond the hard limit, reported not raised.
        timestamp: When the pass ran.
    """

    consumer_id: str
    original_weights: dict[str, float]
    new_weights: dict[str, float]
    drift_factors: dict[str, float]
    drift_correction: float
    confidence: float
    violations: list[ConsistencyViolation] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def corrected(self) -> list[str]:
        """Evaluator ids whose weight changed."""
        return sorted(
            k for k, v in self.new_weights.items() if self.original_weights.get(k) != v
        )


@dataclass(frozen=True)
class Inconsistency:
    """A consumer weight deviating from the canonical weight beyond tolerance."""

    consumer_id: str
    evaluator_id: str
    consumer_weight: float
    global_weight: float
    deviation: float


@dataclass
class ConsistencyReport:
    """Result of a consistency check across all consumers."""

    inconsistencies: list[Inconsistency] = field(default_factory=list)
    checked_at: datetime = field(default_factory=datetime.now)

    @property
    def is_consistent(self) -> bool:
        return not self.inconsistencies
