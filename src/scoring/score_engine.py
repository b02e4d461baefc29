"""Composite score engine.

Combines category scores into a bounded composite through a weight vector,
and factor scores into a per-evaluator score through that evaluator's
factor weights.

Normalization policy:
    The composite is the weighted average over the categories that are both
    present in the input and carry a positive weight. Missing categories are
    dropped from the numerator AND the denominator, so a missing category
    never counts as a zero. Categories present without a weight are reported
    in ``excluded_categories``. The result is clipped to [0, 100].
"""
import logging

from src.models.errors import ValidationError, require_finite, require_range
from src.models.evaluator import Evaluator
from src.models.measurement import Measurement
from src.scoring.models import DEFAULT_CATEGORY_WEIGHTS, Category, CompositeResult

logger = logging.getLogger(__name__)


class ScoreEngine:
    """Pure, deterministic composite scorer.

    Holds only configuration; identical inputs always give identical outputs.

    Attributes:
        category_weights: Default category weight vector.
        excellent_threshold: Category score regarded as excellent.
        good_threshold: Category score regarded as good.
    """

    MIN_SCORE = 0.0
    MAX_SCORE = 100.0

    def __init__(
        self,
        category_weights: dict[str, float] | None = None,
        excellent_threshold: float = 80.0,
        good_threshold: float = 60.0,
    ):
        """Initialize the score engine.

        Args:
            category_weights: Category weight vector. Defaults to
                DEFAULT_CATEGORY_WEIGHTS.
            excellent_threshold: Category score at or above which the factor
                note reads "excellent".
            good_threshold: Category score at or above which the note reads
                "good".
        """
        weights = category_weights if category_weights is not None else DEFAULT_CATEGORY_WEIGHTS
        self._category_weights = self._validate_weights(weights, "category_weights")
        self._excellent_threshold = excellent_threshold
        self._good_threshold = good_threshold

    @property
    def category_weights(self) -> dict[str, float]:
        """Copy of the default category weight vector."""
        return dict(self._category_weights)

    def compute_composite(
        self,
        category_scores: dict[str, float | None],
        weights: dict[str, float] | None = None,
    ) -> float:
        """Weighted average of category scores, clipped to [0, 100].

        Args:
            category_scores: Category -> score (0-100); None means missing.
            weights: Weight vector; defaults to the engine's category weights.

        Returns:
            Composite score.

        Raises:
            ValidationError: On invalid scores/weights, or if no weighted
                category is present.
        """
        score, _, _, _ = self._weighted_average(
            category_scores,
            self._category_weights if weights is None else self._validate_weights(weights, "weights"),
            "category_scores",
        )
        return score

    def compute_evaluator_score(
        self,
        factor_scores: dict[str, float | None],
        factor_weights: dict[str, float],
    ) -> float:
        """Combine factor scores through an evaluator's factor weights.

        Same normalization policy as compute_composite.

        Args:
            factor_scores: Factor -> score (0-100); None means missing.
            factor_weights: Evaluator factor weights.

        Returns:
            Evaluator score in [0, 100].
        """
        score, _, _, _ = self._weighted_average(
            factor_scores,
            self._validate_weights(factor_weights, "factor_weights"),
            "factor_scores",
        )
        return score

    def score(self, measurement: Measurement, evaluator: Evaluator) -> CompositeResult:
        """Score one measurement from the perspective of one evaluator.

        Pipeline:
        1. Combine factor scores through the evaluator's factor weights
        2. Use that score as the evaluator_factors category unless the
           measurement supplies the category directly
        3. Combine categories into the composite

        Args:
            measurement: Already-extracted measurement.
            evaluator: Evaluator whose factor weights apply.

        Returns:
            CompositeResult with breakdowns and factor notes.
        """
        categories = measurement.present_categories()
        factors = measurement.present_factors()

        evaluator_score = None
        factor_breakdown: dict[str, float] = {}
        if factors:
            evaluator_score, used_factors, _, _ = self._weighted_average(
                factors,
                self._validate_weights(evaluator.factor_weights, "factor_weights"),
                "factor_scores",
            )
            factor_breakdown = {name: factors[name] for name in used_factors}
            categories.setdefault(Category.EVALUATOR_FACTORS.value, evaluator_score)

        composite, weights_used, excluded, breakdown = self._weighted_average(
            categories, self._category_weights, "category_scores"
        )
        missing = [name for name in self._category_weights if name not in categories]

        return CompositeResult(
            score=composite,
            category_breakdown=breakdown,
            weights_used=weights_used,
            excluded_categories=sorted(set(excluded) | set(missing)),
            evaluator_score=evaluator_score,
            factor_breakdown=factor_breakdown,
            factors=self._describe_factors(breakdown),
        )

    def _weighted_average(
        self,
        scores: dict[str, float | None],
        weights: dict[str, float],
        field_name: str,
    ) -> tuple[float, dict[str, float], list[str], dict[str, float]]:
        """Weighted average over keys present in both scores and weights.

        Returns:
            Tuple of (clipped score, weights used, excluded keys, scores used).
        """
        numerator = 0.0
        denominator = 0.0
        used_weights: dict[str, float] = {}
        used_scores: dict[str, float] = {}
        excluded: list[str] = []

        for name in sorted(scores):
            value = scores[name]
            if value is None:
                continue
            value = require_range(f"{field_name}.{name}", value, self.MIN_SCORE, self.MAX_SCORE)
            weight = weights.get(name, 0.0)
            if weight <= 0:
                excluded.append(name)
                continue
            numerator += value * weight
            denominator += weight
            used_weights[name] = weight
            used_scores[name] = value

        if denominator == 0:
            raise ValidationError(field_name, scores, "no weighted entry present")

        if excluded:
            logger.debug(f"Excluded unweighted {field_name}: {', '.join(excluded)}")

        score = min(self.MAX_SCORE, max(self.MIN_SCORE, numerator / denominator))
        return score, used_weights, excluded, used_scores

    @staticmethod
    def _validate_weights(weights: dict[str, float], field_name: str) -> dict[str, float]:
        validated = {}
        for name, weight in weights.items():
            weight = require_finite(f"{field_name}.{name}", weight)
            if weight < 0:
                raise ValidationError(f"{field_name}.{name}", weight, "must not be negative")
            validated[name] = weight
        return validated

    def _describe_factors(self, breakdown: dict[str, float]) -> list[str]:
        """Generate human-readable notes for each scored category."""
        notes = []
        for name, value in breakdown.items():
            label = name.replace("_", " ")
            if value >= self._excellent_threshold:
                notes.append(f"Excellent {label} ({value:.0f}/100)")
            elif value >= self._good_threshold:
                notes.append(f"Good {label} ({value:.0f}/100)")
            else:
                notes.append(f"{label.capitalize()} needs improvement ({value:.0f}/100)")
        return notes
