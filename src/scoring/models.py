"""Data models for composite scoring."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Category(str, Enum):
    """Score categories combined into the composite."""

    TECHNICAL = "technical"
    CONTENT = "content"
    EVALUATOR_FACTORS = "evaluator_factors"
    EXTERNAL_REFERENCES = "external_references"
    FRESHNESS = "freshness"
    TRUST = "trust"


DEFAULT_CATEGORY_WEIGHTS: dict[str, float] = {
    Category.TECHNICAL.value: 0.20,
    Category.CONTENT.value: 0.25,
    Category.EVALUATOR_FACTORS.value: 0.25,
    Category.EXTERNAL_REFERENCES.value: 0.15,
    Category.FRESHNESS.value: 0.10,
    Category.TRUST.value: 0.05,
}


@dataclass
class CompositeResult:
    """Result of scoring one measurement for one evaluator.

    Attributes:
        score: Composite score clipped to 0-100.
        category_breakdown: Category scores that entered the composite.
        weights_used: Weights of the categories that entered the composite.
        excluded_categories: Categories that were missing or unweighted.
        evaluator_score: Factor-weighted evaluator score, if factors were given.
        factor_breakdown: Factor scores that entered the evaluator score.
        factors: Human-readable notes about each category.
    """

    score: float
    category_breakdown: dict[str, float]
    weights_used: dict[str, float]
    excluded_categories: list[str] = field(default_factory=list)
    evaluator_score: float | None = None
    factor_breakdown: dict[str, float] = field(default_factory=dict)
    factors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class DecaySample:
    """A passive log entry comparing an old score with a re-measured one.

    Attributes:
        entity_id: Entity that was re-measured.
        evaluator_id: Evaluator that re-measured it.
        content_age_days: Content age at re-measurement.
        old_score: Previous adjusted score.
        new_score: New adjusted score.
        performance_delta: new_score - old_score.
        recency_sensitivity: Evaluator sensitivity at the time.
        temporal_weight: Delta/age weighting used for analysis.
        recorded_at: When the sample was recorded.
    """

    entity_id: str
    evaluator_id: str
    content_age_days: float
    old_score: float
    new_score: float
    performance_delta: float
    recency_sensitivity: float
    temporal_weight: float
    recorded_at: datetime
