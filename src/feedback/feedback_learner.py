"""Outcome-driven factor weight learning."""
import logging
from collections import defaultdict
from collections.abc import Iterable

from src.feedback.models import FeedbackRecord, LearningMetrics, LearningResult, Outcome
from src.models.errors import InsufficientDataError, require_range
from src.models.evaluator import Evaluator

logger = logging.getLogger(__name__)

DEFAULT_CHANGE_TYPE_MAPPING = {
    "schema": "schema",
    "content": "content_quality",
    "authority": "authority",
    "citations": "citations",
}


class FeedbackLearner:
    """Derives evaluator factor weights from observed optimization outcomes.

    Every pass starts again from the evaluator's base factor weights and
    replays the full feedback history, so repeating a pass over the same
    records always yields the same weights.

    For each change type whose average impact exceeds the significance
    threshold, the mapped factor gains learning_rate * impact and the other
    factors give up the same total in equal shares, never dropping below
    min_factor_weight. The sum of factor weights is therefore unchanged.

    Attributes:
        learning_rate: Fraction of the average impact applied (0.01-0.5).
        min_data_points: Records an evaluator needs before it is adjusted.
        significance_threshold: Average impact a change type must exceed.
        min_factor_weight: Floor for donor factors.
    """

    MIN_LEARNING_RATE = 0.01
    MAX_LEARNING_RATE = 0.5
    EPSILON = 1e-12

    def __init__(
        self,
        learning_rate: float = 0.1,
        min_data_points: int = 5,
        significance_threshold: float = 0.1,
        min_factor_weight: float = 0.1,
        change_type_mapping: dict[str, str] | None = None,
    ):
        """Initialize the learner.

        Args:
            learning_rate: Fraction of the average impact applied (default 0.1).
            min_data_points: Minimum records per evaluator (default 5).
            significance_threshold: Impact threshold (default 0.1).
            min_factor_weight: Donor floor (default 0.1).
            change_type_mapping: Change type -> factor name. Unknown change
                types are ignored.
        """
        self._learning_rate = require_range(
            "learning_rate", learning_rate, self.MIN_LEARNING_RATE, self.MAX_LEARNING_RATE
        )
        self._min_data_points = max(1, int(min_data_points))
        self._significance_threshold = significance_threshold
        self._min_factor_weight = min_factor_weight
        self._mapping = dict(change_type_mapping or DEFAULT_CHANGE_TYPE_MAPPING)

    @property
    def learning_rate(self) -> float:
        return self._learning_rate

    @property
    def min_data_points(self) -> int:
        return self._min_data_points

    def set_learning_rate(self, rate: float) -> None:
        """Set the learning rate, clamped to [0.01, 0.5]."""
        rate = require_range("learning_rate", rate, float("-inf"), float("inf"))
        self._learning_rate = max(self.MIN_LEARNING_RATE, min(self.MAX_LEARNING_RATE, rate))

    def set_min_data_points(self, points: int) -> None:
        """Set the minimum record count, at least 1."""
        self._min_data_points = max(1, int(points))

    def average_impacts(self, records: Iterable[FeedbackRecord]) -> dict[str, float]:
        """Average impact per change type over applied changes.

        Changes with applied=False are ignored.
        """
        impacts: dict[str, list[float]] = defaultdict(list)
        for record in records:
            for change in record.changes:
                if change.applied:
                    impacts[change.change_type].append(change.impact)
        return {
            change_type: sum(values) / len(values)
            for change_type, values in sorted(impacts.items())
        }

    def derive_weights(
        self,
        evaluator: Evaluator,
        records: Iterable[FeedbackRecord],
    ) -> LearningResult:
        """Derive factor weights for one evaluator from its feedback.

        Args:
            evaluator: Evaluator to derive weights for. Not mutated.
            records: Feedback snapshot; records of other evaluators are skipped.

        Returns:
            LearningResult. With no records at all the current weights are
            returned unchanged.

        Raises:
            InsufficientDataError: If the evaluator has some records but fewer
                than min_data_points.
        """
        relevant = [r for r in records if r.evaluator_id == evaluator.evaluator_id]
        previous = dict(evaluator.factor_weights)

        if not relevant:
            return LearningResult(
                evaluator_id=evaluator.evaluator_id,
                record_count=0,
                average_impacts={},
                adjustments={},
                previous_weights=previous,
                new_weights=dict(previous),
            )

        if len(relevant) < self._min_data_points:
            raise InsufficientDataError(
                evaluator.evaluator_id, len(relevant), self._min_data_points
            )

        weights = dict(evaluator.base_factor_weights)
        impacts = self.average_impacts(relevant)
        adjustments: dict[str, float] = {}

        for change_type, impact in impacts.items():
            if impact <= self._significance_threshold:
                continue
            factor = self._mapping.get(change_type)
            if factor is None or factor not in weights:
                logger.debug(f"No factor mapped for change type '{change_type}', skipping")
                continue
            applied = self._rebalance(weights, factor, impact * self._learning_rate)
            if applied > 0:
                adjustments[factor] = adjustments.get(factor, 0.0) + applied

        result = LearningResult(
            evaluator_id=evaluator.evaluator_id,
            record_count=len(relevant),
            average_impacts=impacts,
            adjustments=adjustments,
            previous_weights=previous,
            new_weights=weights,
        )
        if result.changed:
            logger.info(
                f"Learned factor weights for {evaluator.evaluator_id} from "
                f"{len(relevant)} records: {self._format(weights)}"
            )
        return result

    def learning_metrics(self, records: Iterable[FeedbackRecord]) -> LearningMetrics:
        """Aggregate statistics over a feedback snapshot."""
        records = list(records)
        evaluators = sorted({r.evaluator_id for r in records})
        improvements = [r.score_delta for r in records if r.outcome == Outcome.POSITIVE]
        average_improvement = sum(improvements) / len(improvements) if improvements else 0.0
        return LearningMetrics(
            total_feedback=len(records),
            evaluators_with_data=evaluators,
            average_improvement=average_improvement,
            average_impacts=self.average_impacts(records),
        )

    def _rebalance(self, weights: dict[str, float], target: str, delta: float) -> float:
        """Move up to delta of weight onto target from the other factors.

        The increase is capped so target stays <= 1 and donors stay at or
        above the floor. Donors that hit the floor stop contributing and the
        rest of the decrease is spread over the remaining donors.

        Returns:
            Increase actually applied to target.
        """
        floor = self._min_factor_weight
        donors = [k for k in sorted(weights) if k != target]
        capacity = sum(max(0.0, weights[k] - floor) for k in donors)
        increase = min(delta, 1.0 - weights[target], capacity)
        if increase <= self.EPSILON:
            return 0.0

        weights[target] += increase
        remaining = increase
        active = [k for k in donors if weights[k] - floor > self.EPSILON]
        while remaining > self.EPSILON and active:
            share = remaining / len(active)
            still_active = []
            for key in active:
                take = min(share, weights[key] - floor)
                weights[key] -= take
                remaining -= take
                if weights[key] - floor > self.EPSILON:
                    still_active.append(key)
            active = still_active
        return increase

    @staticmethod
    def _format(weights: dict[str, float]) -> str:
        return ", ".join(f"{k}={v:.3f}" for k, v in sorted(weights.items()))
