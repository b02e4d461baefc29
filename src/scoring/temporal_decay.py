"""Temporal decay of scores by content age and evaluator recency sensitivity."""
import logging
import math
import threading
from collections import defaultdict, deque
from datetime import datetime

from src.models.errors import require_finite, require_range
from src.models.evaluator import Evaluator
from src.scoring.models import DecaySample

logger = logging.getLogger(__name__)


class TemporalDecayModel:
    """Discounts scores for staleness at evaluator-specific rates.

    degradation = min(age / decay_period, 1) * max_degradation * sensitivity
    adjusted    = score * (1 - degradation), never below score * (1 - max_degradation)

    The model also keeps a passive log of re-measurement samples. It never
    changes an evaluator's recency sensitivity on its own; that is an
    explicit operation on the evaluator registry.

    Attributes:
        decay_period_days: Age at which decay reaches its maximum.
        max_degradation: Largest fraction of a score that decay can remove.
        max_samples_per_entity: Samples kept per entity (oldest dropped).
    """

    POSITIVE_DELTA_MULTIPLIER = 1.1
    NEGATIVE_DELTA_MULTIPLIER = 0.9
    MIN_AGE_MULTIPLIER = 0.8
    DAYS_PER_YEAR = 365.0

    def __init__(
        self,
        decay_period_days: float = 180.0,
        max_degradation: float = 0.3,
        max_samples_per_entity: int = 100,
    ):
        """Initialize the decay model.

        Args:
            decay_period_days: Days until the age factor saturates (default 180).
            max_degradation: Maximum degradation fraction (default 0.3).
            max_samples_per_entity: Re-measurement samples kept per entity.
        """
        self._decay_period_days = decay_period_days
        self._max_degradation = max_degradation
        self._max_samples = max_samples_per_entity
        self._samples: dict[str, deque[DecaySample]] = defaultdict(
            lambda: deque(maxlen=self._max_samples)
        )
        self._lock = threading.Lock()

    @property
    def max_degradation(self) -> float:
        """Largest fraction of a score that decay can remove."""
        return self._max_degradation

    def degradation_factor(self, content_age_days: float, recency_sensitivity: float) -> float:
        """Fraction of the score removed for this age and sensitivity.

        Negative ages (clock skew) are treated as zero.
        """
        age = max(0.0, require_finite("content_age_days", content_age_days))
        sensitivity = require_range("recency_sensitivity", recency_sensitivity, 0.0, 1.0)
        age_factor = min(age / self._decay_period_days, 1.0)
        return age_factor * self._max_degradation * sensitivity

    def temporal_adjustment(self, content_age_days: float, evaluator: Evaluator) -> float:
        """Multiplier applied to a score: 1 - degradation factor."""
        return 1.0 - self.degradation_factor(content_age_days, evaluator.recency_sensitivity)

    def adjust_for_recency(
        self,
        score: float,
        content_age_days: float,
        evaluator: Evaluator,
    ) -> float:
        """Discount a score for content age.

        Args:
            score: Base score (0-100).
            content_age_days: Content age in days.
            evaluator: Evaluator whose recency sensitivity applies.

        Returns:
            Adjusted score, floored at score * (1 - max_degradation).

        Raises:
            ValidationError: If score or age is NaN, or score is out of range.
        """
        score = require_range("score", score, 0.0, 100.0)
        degradation = self.degradation_factor(content_age_days, evaluator.recency_sensitivity)
        adjusted = score * (1.0 - degradation)
        floor = score * (1.0 - self._max_degradation)

        logger.debug(
            f"Temporal adjustment - evaluator: {evaluator.evaluator_id}, "
            f"age: {content_age_days:.0f}d, base: {score:.1f}, "
            f"adjusted: {adjusted:.1f}, degradation: {degradation:.1%}"
        )
        return max(adjusted, floor)

    def track_performance_delta(
        self,
        entity_id: str,
        evaluator: Evaluator,
        old_score: float,
        new_score: float,
        content_age_days: float,
        recorded_at: datetime | None = None,
    ) -> DecaySample:
        """Log a re-measurement sample. Never mutates the evaluator.

        Args:
            entity_id: Entity that was re-measured.
            evaluator: Evaluator that re-measured it.
            old_score: Previous score.
            new_score: Re-measured score.
            content_age_days: Content age at re-measurement.
            recorded_at: Sample time (default now).

        Returns:
            The recorded DecaySample.
        """
        old_score = require_finite("old_score", old_score)
        new_score = require_finite("new_score", new_score)
        age = max(0.0, require_finite("content_age_days", content_age_days))
        delta = new_score - old_score

        sample = DecaySample(
            entity_id=entity_id,
            evaluator_id=evaluator.evaluator_id,
            content_age_days=age,
            old_score=old_score,
            new_score=new_score,
            performance_delta=delta,
            recency_sensitivity=evaluator.recency_sensitivity,
            temporal_weight=self._temporal_weight(delta, age),
            recorded_at=recorded_at or datetime.now(),
        )
        with self._lock:
            self._samples[entity_id].append(sample)
        return sample

    def get_samples(self, entity_id: str) -> list[DecaySample]:
        """Samples recorded for an entity, oldest first."""
        with self._lock:
            return list(self._samples.get(entity_id, ()))

    def discard(self, entity_id: str) -> None:
        """Forget samples of a pruned entity."""
        with self._lock:
            self._samples.pop(entity_id, None)

    def _temporal_weight(self, delta: float, content_age_days: float) -> float:
        """Weight positive deltas up, negative down, and older content less."""
        delta_multiplier = (
            self.POSITIVE_DELTA_MULTIPLIER if delta > 0 else self.NEGATIVE_DELTA_MULTIPLIER
        )
        age_multiplier = max(self.MIN_AGE_MULTIPLIER, 1.0 - content_age_days / self.DAYS_PER_YEAR)
        return delta_multiplier * age_multiplier

    @staticmethod
    def content_age_days(
        last_modified: datetime | str | None,
        now: datetime | None = None,
    ) -> int:
        """Whole days since last_modified; 0 when unknown or in the future.

        Args:
            last_modified: Datetime or ISO-8601 string.
            now: Reference time (default datetime.now()).
        """
        if not last_modified:
            return 0
        if isinstance(last_modified, str):
            last_modified = datetime.fromisoformat(last_modified)
        now = now or datetime.now()
        if last_modified.tzinfo is not None and now.tzinfo is None:
            last_modified = last_modified.astimezone().replace(tzinfo=None)
        elif last_modified.tzinfo is None and now.tzinfo is not None:
            last_modified = last_modified.replace(tzinfo=now.tzinfo)
        seconds = (now - last_modified).total_seconds()
        return max(0, math.floor(seconds / 86400))
