"""Raw per-evaluator measurement pushed into the engine by the host application."""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from src.models.errors import ValidationError, require_finite, require_range


class ValidationStatus(str, Enum):
    """Validation status reported by the external measurement source."""

    VALID = "valid"
    INVALID = "invalid"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class LeaderboardSignals:
    """Answer-engine observation signals carried by one measurement.

    Every field is optional; missing signals are excluded from leaderboard
    scoring rather than treated as zero.
    """

    observed_at: datetime
    citation_count: float | None = None
    answer_inclusion: bool | None = None
    confidence: float | None = None
    response_time_ms: float | None = None

    @property
    def has_any(self) -> bool:
        """True if at least one signal is present."""
        return any(
            value is not None
            for value in (
                self.citation_count,
                self.answer_inclusion,
                self.confidence,
                self.response_time_ms,
            )
        )


@dataclass
class Measurement:
    """Already-extracted numeric/boolean measurement for one entity and evaluator.

    Attributes:
        category_scores: Category name -> score (0-100). Missing or None
            categories are excluded from the composite.
            A measurement with no category or factor score carries
            leaderboard signals only and has no composite.
        factor_scores: Factor name -> score (0-100), combined through the
            evaluator's factor weights into the evaluator_factors category.
        citation_count: Citations observed in the evaluator's answer.
        answer_inclusion: Whether the entity was included in the answer.
        confidence: Evaluator confidence in the answer (0-1).
        response_time_ms: Evaluator response time in milliseconds.
        content_age_days: Age of the content in days (default 0, no decay).
        measured_at: Measurement timestamp (default: time of ingestion).
        validation_status: Validation status from the measurement source.
        url: Entity URL, defaults to the entity id.
        title: Entity title, defaults to "Untitled Page".
    """

    category_scores: dict[str, float | None] = field(default_factory=dict)
    factor_scores: dict[str, float | None] = field(default_factory=dict)
    citation_count: float | None = None
    answer_inclusion: bool | None = None
    confidence: float | None = None
    response_time_ms: float | None = None
    content_age_days: float = 0.0
    measured_at: datetime | None = None
    validation_status: ValidationStatus = ValidationStatus.UNKNOWN
    url: str | None = None
    title: str | None = None

    def validate(self) -> None:
        """Check every present numeric field.

        Raises:
            ValidationError: On NaN, negative counts/times/ages, or scores
                outside [0, 100].
        """
        for name, value in self.category_scores.items():
            if value is not None:
                require_range(f"category_scores.{name}", value, 0.0, 100.0)
        for name, value in self.factor_scores.items():
            if value is not None:
                require_range(f"factor_scores.{name}", value, 0.0, 100.0)
        if self.citation_count is not None and require_finite("citation_count", self.citation_count) < 0:
            raise ValidationError("citation_count", self.citation_count, "must not be negative")
        if self.confidence is not None:
            require_range("confidence", self.confidence, 0.0, 1.0)
        if self.response_time_ms is not None and require_finite("response_time_ms", self.response_time_ms) < 0:
            raise ValidationError("response_time_ms", self.response_time_ms, "must not be negative")
        if require_finite("content_age_days", self.content_age_days) < 0:
            raise ValidationError("content_age_days", self.content_age_days, "must not be negative")

    def present_categories(self) -> dict[str, float]:
        """Category scores with missing entries dropped."""
        return {k: float(v) for k, v in self.category_scores.items() if v is not None}

    def present_factors(self) -> dict[str, float]:
        """Factor scores with missing entries dropped."""
        return {k: float(v) for k, v in self.factor_scores.items() if v is not None}

    @property
    def has_scores(self) -> bool:
        """True if any category or factor score is present."""
        return bool(self.present_categories() or self.present_factors())

    def signals(self, observed_at: datetime) -> LeaderboardSignals:
        """Extract the leaderboard signals of this measurement."""
        return LeaderboardSignals(
            observed_at=observed_at,
            citation_count=self.citation_count,
            answer_inclusion=self.answer_inclusion,
            confidence=self.confidence,
            response_time_ms=self.response_time_ms,
        )
