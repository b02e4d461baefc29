"""Canonical evaluator weights and drift-corrected consumer copies."""
import logging
import threading
from collections import deque
from dataclasses import replace
from datetime import datetime

from src.models.errors import (
    ConsistencyViolation,
    NotFoundError,
    ValidationError,
    require_finite,
    require_range,
)
from src.models.evaluator import Evaluator, validate_factor_weights
from src.state.keyed_lock import KeyedLock
from src.weights.models import (
    ConsistencyReport,
    ConsumerWeightProfile,
    EvaluatorWeight,
    Inconsistency,
    NormalizationResult,
    PerformanceSample,
)

logger = logging.getLogger(__name__)


class WeightNormalizer:
    """Keeps per-consumer evaluator weights consistent with one canonical set.

    Canonical evaluators and consumer profiles are replaced copy-on-write
    under per-key locks; readers get the current reference without locking.
    Lock order is always evaluator before consumer.

    Drift correction is gradual. For drift d = |c - g| / g above the
    threshold, one pass multiplies a consumer weight c by
    1 - strength * min(d, 1) when c > g, or by 1 + strength * d when c < g,
    then clamps to [min_weight, max_weight]. Each pass strictly shrinks the
    gap to the canonical weight g without crossing it.

    Attributes:
        drift_threshold: Relative drift above which a weight is corrected.
        correction_strength: Fraction of drift removed per pass (0.5).
        min_weight: Lower clamp for consumer weights.
        max_weight: Upper clamp for consumer weights.
        consistency_tolerance: Relative deviation flagged as inconsistent.
        global_min_weight: Lower clamp for canonical weights.
        global_max_weight: Upper clamp for canonical weights.
        hard_drift_limit: Drift reported as a ConsistencyViolation.
    """

    PERFORMANCE_BASE = 0.8
    PERFORMANCE_SPAN = 0.4

    def __init__(
        self,
        evaluators: dict[str, Evaluator],
        drift_threshold: float = 0.1,
        correction_strength: float = 0.5,
        min_weight: float = 0.1,
        max_weight: float = 2.0,
        consistency_tolerance: float = 0.2,
        global_min_weight: float = 0.5,
        global_max_weight: float = 1.5,
        hard_drift_limit: float = 1.0,
        history_limit: int = 100,
    ):
        """Initialize the normalizer.

        Args:
            evaluators: Initial canonical evaluators keyed by id. Copied.
            drift_threshold: Drift threshold (default 0.1).
            correction_strength: Correction strength (default 0.5).
            min_weight: Consumer weight lower clamp (default 0.1).
            max_weight: Consumer weight upper clamp (default 2.0).
            consistency_tolerance: Flagging tolerance (default 0.2).
            global_min_weight: Canonical weight lower clamp (default 0.5).
            global_max_weight: Canonical weight upper clamp (default 1.5).
            hard_drift_limit: Violation limit (default 1.0).
            history_limit: Normalization results kept (default 100).
        """
        self._evaluators: dict[str, Evaluator] = {k: v.copy() for k, v in evaluators.items()}
        self._consumers: dict[str, ConsumerWeightProfile] = {}
        self._evaluator_locks = KeyedLock()
        self._consumer_locks = KeyedLock()
        self._table_lock = threading.Lock()
        self._history: deque[NormalizationResult] = deque(maxlen=history_limit)

        self.drift_threshold = drift_threshold
        self.correction_strength = correction_strength
        self.min_weight = min_weight
        self.max_weight = max_weight
        self.consistency_tolerance = consistency_tolerance
        self.global_min_weight = global_min_weight
        self.global_max_weight = global_max_weight
        self.hard_drift_limit = hard_drift_limit

    # Canonical evaluators

    def get_evaluator(self, evaluator_id: str) -> Evaluator:
        """Copy of a canonical evaluator.

        Raises:
            NotFoundError: If the evaluator is unknown.
        """
        evaluator = self._evaluators.get(evaluator_id)
        if evaluator is None:
            raise NotFoundError("evaluator", evaluator_id)
        return evaluator.copy()

    def evaluators(self) -> dict[str, Evaluator]:
        """Copies of all canonical evaluators keyed by id."""
        with self._table_lock:
            current = dict(self._evaluators)
        return {k: current[k].copy() for k in sorted(current)}

    def global_weight(self, evaluator_id: str) -> float:
        """Canonical weight of an evaluator."""
        return self._require_evaluator(evaluator_id).current_weight

    def set_factor_weights(
        self,
        evaluator_id: str,
        factor_weights: dict[str, float],
        now: datetime | None = None,
    ) -> Evaluator:
        """Replace an evaluator's learned factor weights and propagate them.

        Args:
            evaluator_id: Evaluator to update.
            factor_weights: New factor weights, each in [0, 1].
            now: Update timestamp (default now).

        Returns:
            Copy of the updated evaluator.
        """
        weights = validate_factor_weights(factor_weights)
        now = now or datetime.now()
        with self._evaluator_locks.hold(evaluator_id):
            current = self._require_evaluator(evaluator_id)
            updated = current.copy(factor_weights=weights, last_updated=now)
            self._evaluators[evaluator_id] = updated
            self._propagate_factor_weights(evaluator_id, weights)
        return updated.copy()

    def set_recency_sensitivity(self, evaluator_id: str, sensitivity: float) -> Evaluator:
        """Explicitly set an evaluator's recency sensitivity (0-1)."""
        sensitivity = require_range("recency_sensitivity", sensitivity, 0.0, 1.0)
        with self._evaluator_locks.hold(evaluator_id):
            current = self._require_evaluator(evaluator_id)
            updated = current.copy(recency_sensitivity=sensitivity, last_updated=datetime.now())
            self._evaluators[evaluator_id] = updated
        logger.info(f"Set recency sensitivity of {evaluator_id} to {sensitivity:.2f}")
        return updated.copy()

    def update_global_weights(
        self,
        samples: list[PerformanceSample],
        now: datetime | None = None,
    ) -> dict[str, float]:
        """Recompute canonical weights from performance and propagate them.

        new weight = base_weight * (0.8 + 0.4 * performance / 100), clamped
        to [global_min_weight, global_max_weight]. Every consumer copy of an
        updated evaluator is set to the new weight immediately with its drift
        reset; gradual correction does not apply.

        Args:
            samples: Performance samples.
            now: Update timestamp (default now).

        Returns:
            Evaluator id -> new canonical weight.

        Raises:
            NotFoundError: If any sample names an unknown evaluator. No
                weight is changed in that case.
        """
        for sample in samples:
            self._require_evaluator(sample.evaluator_id)

        now = now or datetime.now()
        updated: dict[str, float] = {}
        for sample in samples:
            with self._evaluator_locks.hold(sample.evaluator_id):
                current = self._evaluators[sample.evaluator_id]
                raw = current.base_weight * (
                    self.PERFORMANCE_BASE + self.PERFORMANCE_SPAN * sample.normalized_performance
                )
                weight = min(self.global_max_weight, max(self.global_min_weight, raw))
                confidence = current.confidence if sample.confidence is None else sample.confidence
                evaluator = current.copy(
                    current_weight=weight,
                    confidence=confidence,
                    drift_factor=0.0,
                    last_updated=now,
                )
                self._evaluators[sample.evaluator_id] = evaluator
                self._propagate_global_weight(evaluator)
                updated[sample.evaluator_id] = weight

        if updated:
            logger.info(
                "Updated global weights: "
                + ", ".join(f"{k}={v:.3f}" for k, v in sorted(updated.items()))
            )
        return updated

    # Consumers

    def register_consumer(
        self,
        consumer_id: str,
        display_name: str | None = None,
    ) -> ConsumerWeightProfile:
        """Register a consumer with copies of the canonical weights.

        Registering an existing consumer leaves it unchanged.

        Returns:
            Copy of the consumer profile.
        """
        if not consumer_id:
            raise ValidationError("consumer_id", consumer_id, "must not be empty")
        with self._consumer_locks.hold(consumer_id):
            existing = self._consumers.get(consumer_id)
            if existing is not None:
                return existing.copy()
            now = datetime.now()
            evaluators = self.evaluators()
            profile = ConsumerWeightProfile(
                consumer_id=consumer_id,
                display_name=display_name or consumer_id,
                weights={
                    k: EvaluatorWeight(
                        evaluator_id=k,
                        weight=e.current_weight,
                        confidence=e.confidence,
                        last_updated=now,
                    )
                    for k, e in evaluators.items()
                },
                factor_weights={k: dict(e.factor_weights) for k, e in evaluators.items()},
                normalization_factor=self._mean([e.current_weight for e in evaluators.values()]),
                last_normalized=now,
            )
            with self._table_lock:
                self._consumers[consumer_id] = profile
        logger.info(f"Registered consumer {consumer_id}")
        return profile.copy()

    def get_consumer(self, consumer_id: str) -> ConsumerWeightProfile:
        """Copy of a consumer profile.

        Raises:
            NotFoundError: If the consumer is unknown.
        """
        return self._require_consumer(consumer_id).copy()

    def consumer_ids(self) -> list[str]:
        with self._table_lock:
            return sorted(self._consumers)

    def consumer_weight(self, consumer_id: str, evaluator_id: str) -> float:
        """Weight a consumer applies to an evaluator.

        Falls back to the canonical weight when the consumer is unknown or
        holds no copy for the evaluator.
        """
        profile = self._consumers.get(consumer_id)
        weight = profile.weight_of(evaluator_id) if profile else None
        if weight is None:
            return self.global_weight(evaluator_id)
        return weight

    def set_consumer_weight(
        self,
        consumer_id: str,
        evaluator_id: str,
        weight: float,
    ) -> ConsumerWeightProfile:
        """Apply a local per-consumer weight override.

        The override is a drift source; normalize() pulls it back toward the
        canonical weight gradually.
        """
        weight = require_finite("weight", weight)
        if weight <= 0:
            raise ValidationError("weight", weight, "must be positive")
        evaluator = self._require_evaluator(evaluator_id)
        with self._consumer_locks.hold(consumer_id):
            profile = self._require_consumer(consumer_id).copy()
            entry = profile.weights.get(evaluator_id) or EvaluatorWeight(
                evaluator_id=evaluator_id,
                weight=weight,
                confidence=evaluator.confidence,
            )
            profile.weights[evaluator_id] = replace(
                entry,
                weight=weight,
                drift_factor=self._drift(weight, evaluator.current_weight),
                last_updated=datetime.now(),
            )
            self._consumers[consumer_id] = profile
        logger.debug(f"Consumer {consumer_id} overrode {evaluator_id} weight to {weight:.3f}")
        return profile.copy()

    def calculate_normalized_score(
        self,
        consumer_id: str,
        evaluator_scores: dict[str, float | None],
    ) -> float:
        """Consumer-weighted average of per-evaluator scores.

        Evaluators without a score are excluded from numerator and
        denominator alike.

        Raises:
            NotFoundError: If the consumer is unknown.
            ValidationError: If a score is invalid or none is present.
        """
        profile = self._require_consumer(consumer_id)
        total = 0.0
        total_weight = 0.0
        for evaluator_id in sorted(evaluator_scores):
            score = evaluator_scores[evaluator_id]
            if score is None:
                continue
            score = require_range(f"evaluator_scores.{evaluator_id}", score, 0.0, 100.0)
            weight = profile.weight_of(evaluator_id)
            if weight is None:
                continue
            total += score * weight
            total_weight += weight
        if total_weight == 0:
            raise ValidationError("evaluator_scores", evaluator_scores, "no weighted score present")
        return total / total_weight

    # Normalization

    def normalize(self, consumer_id: str, now: datetime | None = None) -> NormalizationResult:
        """Run one gradual drift-correction pass for a consumer.

        Args:
            consumer_id: Consumer to normalize.
            now: Pass timestamp (default now).

        Returns:
            NormalizationResult. Drift beyond hard_drift_limit is listed in
            violations and logged, never raised.

        Raises:
            NotFoundError: If the consumer is unknown.
        """
        now = now or datetime.now()
        with self._consumer_locks.hold(consumer_id):
            profile = self._require_consumer(consumer_id).copy()
            original = {k: w.weight for k, w in profile.weights.items()}
            drift_factors: dict[str, float] = {}
            violations: list[ConsistencyViolation] = []

            for evaluator_id in sorted(profile.weights):
                entry = profile.weights[evaluator_id]
                evaluator = self._evaluators.get(evaluator_id)
                if evaluator is None:
                    continue
                drift = self._drift(entry.weight, evaluator.current_weight)
                drift_factors[evaluator_id] = drift

                if drift > self.hard_drift_limit:
                    violation = ConsistencyViolation(
                        consumer_id, evaluator_id, drift, self.hard_drift_limit
                    )
                    violations.append(violation)
                    logger.warning(str(violation))

                weight = entry.weight
                if drift > self.drift_threshold:
                    weight = self._correct(entry.weight, evaluator.current_weight, drift)
                profile.weights[evaluator_id] = replace(
                    entry,
                    weight=weight,
                    drift_factor=drift,
                    last_updated=now if weight != entry.weight else entry.last_updated,
                )

            new_weights = {k: w.weight for k, w in profile.weights.items()}
            profile.normalization_factor = self._mean(list(new_weights.values()))
            profile.last_normalized = now
            self._consumers[consumer_id] = profile

        result = NormalizationResult(
            consumer_id=consumer_id,
            original_weights=original,
            new_weights=new_weights,
            drift_factors=drift_factors,
            drift_correction=self._mean(list(drift_factors.values())),
            confidence=self._mean([w.confidence for w in profile.weights.values()]),
            violations=violations,
            timestamp=now,
        )
        with self._table_lock:
            self._history.append(result)
        logger.info(
            f"Normalized {consumer_id}: corrected {len(result.corrected)} weights, "
            f"mean drift {result.drift_correction:.3f}"
        )
        return result

    def normalize_all(self, now: datetime | None = None) -> list[NormalizationResult]:
        """Normalize every consumer, in consumer id order."""
        results = [self.normalize(consumer_id, now) for consumer_id in self.consumer_ids()]
        self._record_residual_drift()
        return results

    def validate_consistency(self) -> ConsistencyReport:
        """Flag consumer weights deviating more than tolerance * global.

        Flags only; nothing is corrected.
        """
        inconsistencies = []
        with self._table_lock:
            consumers = dict(self._consumers)
        for consumer_id in sorted(consumers):
            profile = consumers[consumer_id]
            for evaluator_id in sorted(profile.weights):
                evaluator = self._evaluators.get(evaluator_id)
                if evaluator is None:
                    continue
                consumer_weight = profile.weights[evaluator_id].weight
                deviation = abs(consumer_weight - evaluator.current_weight)
                if deviation > self.consistency_tolerance * evaluator.current_weight:
                    inconsistencies.append(
                        Inconsistency(
                            consumer_id=consumer_id,
                            evaluator_id=evaluator_id,
                            consumer_weight=consumer_weight,
                            global_weight=evaluator.current_weight,
                            deviation=deviation,
                        )
                    )
        if inconsistencies:
            logger.warning(f"Found {len(inconsistencies)} inconsistent consumer weights")
        return ConsistencyReport(inconsistencies=inconsistencies)

    def history(self) -> list[NormalizationResult]:
        """Recent normalization results, oldest first."""
        with self._table_lock:
            return list(self._history)

    # State

    def export_state(self) -> tuple[dict[str, Evaluator], dict[str, ConsumerWeightProfile]]:
        """Copies of the canonical evaluators and consumer profiles."""
        with self._table_lock:
            consumers = dict(self._consumers)
        return self.evaluators(), {k: consumers[k].copy() for k in sorted(consumers)}

    def import_state(
        self,
        evaluators: dict[str, Evaluator],
        consumers: dict[str, ConsumerWeightProfile],
    ) -> None:
        """Replace canonical evaluators and consumer profiles wholesale."""
        with self._table_lock:
            self._evaluators = {k: v.copy() for k, v in evaluators.items()}
            self._consumers = {k: v.copy() for k, v in consumers.items()}
            self._history.clear()
        logger.info(f"Imported {len(evaluators)} evaluators and {len(consumers)} consumers")

    # Internals

    def _require_evaluator(self, evaluator_id: str) -> Evaluator:
        evaluator = self._evaluators.get(evaluator_id)
        if evaluator is None:
            raise NotFoundError("evaluator", evaluator_id)
        return evaluator

    def _require_consumer(self, consumer_id: str) -> ConsumerWeightProfile:
        profile = self._consumers.get(consumer_id)
        if profile is None:
            raise NotFoundError("consumer", consumer_id)
        return profile

    @staticmethod
    def _drift(consumer_weight: float, global_weight: float) -> float:
        return abs(consumer_weight - global_weight) / global_weight

    def _correct(self, consumer_weight: float, global_weight: float, drift: float) -> float:
        if consumer_weight > global_weight:
            factor = 1.0 - self.correction_strength * min(drift, 1.0)
        else:
            factor = 1.0 + self.correction_strength * drift
        return min(self.max_weight, max(self.min_weight, consumer_weight * factor))

    def _propagate_global_weight(self, evaluator: Evaluator) -> None:
        """Copy a canonical weight into every consumer. Caller holds the evaluator lock."""
        for consumer_id in self.consumer_ids():
            with self._consumer_locks.hold(consumer_id):
                profile = self._consumers[consumer_id].copy()
                profile.weights[evaluator.evaluator_id] = EvaluatorWeight(
                    evaluator_id=evaluator.evaluator_id,
                    weight=evaluator.current_weight,
                    confidence=evaluator.confidence,
                    drift_factor=0.0,
                    last_updated=evaluator.last_updated,
                )
                profile.normalization_factor = self._mean(
                    [w.weight for w in profile.weights.values()]
                )
                self._consumers[consumer_id] = profile

    def _propagate_factor_weights(self, evaluator_id: str, weights: dict[str, float]) -> None:
        """Copy canonical factor weights into every consumer. Caller holds the evaluator lock."""
        for consumer_id in self.consumer_ids():
            with self._consumer_locks.hold(consumer_id):
                profile = self._consumers[consumer_id].copy()
                profile.factor_weights[evaluator_id] = dict(weights)
                self._consumers[consumer_id] = profile

    def _record_residual_drift(self) -> None:
        """Store the largest remaining consumer drift on each canonical evaluator."""
        with self._table_lock:
            consumers = list(self._consumers.values())
        for evaluator_id in list(self._evaluators):
            drifts = [
                self._drift(p.weights[evaluator_id].weight, self._evaluators[evaluator_id].current_weight)
                for p in consumers
                if evaluator_id in p.weights
            ]
            with self._evaluator_locks.hold(evaluator_id):
                current = self._evaluators[evaluator_id]
                residual = max(drifts, default=0.0)
                if residual != current.drift_factor:
                    self._evaluators[evaluator_id] = current.copy(drift_factor=residual)

    @staticmethod
    def _mean(values: list[float]) -> float:
        return sum(values) / len(values) if values else 0.0
