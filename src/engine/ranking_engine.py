"""Ranking engine: the external interface over one EngineContext."""
import logging
import threading
from collections.abc import Iterable
from dataclasses import replace
from datetime import datetime, timedelta

from src.config.settings import Settings
from src.engine import serialization
from src.engine.context import EngineContext
from src.engine.models import BulkIngestResult, PruneResult, RecalibrationResult
from src.feedback.models import FeedbackRecord, LearningMetrics, LearningResult
from src.history.models import HistorySummary, ScoreHistoryPoint, TrendResult
from src.leaderboard.leaderboard import append_observation
from src.leaderboard.models import LeaderboardEntry, RebuildResult
from src.models.errors import (
    InsufficientDataError,
    NotFoundError,
    RankingError,
    ValidationError,
)
from src.models.evaluator import Evaluator
from src.models.measurement import Measurement
from src.models.scored_entity import EntityFailure, EvaluatorSubScore, ScoredEntity
from src.weights.models import ConsistencyReport, NormalizationResult, PerformanceSample

logger = logging.getLogger(__name__)


class RankingEngine:
    """Scores, learns, normalizes and ranks content entities.

    Data flow per measurement: ScoreEngine composite, then temporal decay,
    then the entity's composite is the mean of its decayed per-evaluator
    scores. Feedback is appended to a log and learned from in recalibration
    passes that work on a point-in-time snapshot of that log.

    Ingestion never takes the recalibration lock; only one recalibration
    (or feedback-triggered learning pass) runs at a time.
    """

    DAY = timedelta(days=1)
    WEEK = timedelta(days=7)
    MONTH = timedelta(days=30)

    def __init__(self, context: EngineContext):
        self._ctx = context
        self._recalibration_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RankingEngine":
        """Build an engine over a fresh context."""
        return cls(EngineContext.create(settings))

    @property
    def context(self) -> EngineContext:
        return self._ctx

    # Ingestion

    def ingest(
        self,
        entity_id: str,
        evaluator_id: str,
        measurement: Measurement,
        now: datetime | None = None,
    ) -> ScoredEntity:
        """Score one measurement and update the entity.

        Args:
            entity_id: Entity measured.
            evaluator_id: Evaluator that produced the measurement.
            measurement: Already-extracted measurement.
            now: Ingestion time, used when the measurement has no timestamp.

        Returns:
            The updated ScoredEntity.

        Raises:
            ValidationError: On malformed numeric input, an empty entity id,
                or a measurement with neither scores nor leaderboard signals.
            NotFoundError: If the evaluator is unknown.
        """
        if not entity_id:
            raise ValidationError("entity_id", entity_id, "must not be empty")
        evaluator = self._ctx.normalizer.get_evaluator(evaluator_id)
        measurement.validate()

        measured_at = measurement.measured_at or now or datetime.now()
        signals = measurement.signals(measured_at)
        result = None
        adjusted = None
        if measurement.has_scores:
            result = self._ctx.score_engine.score(measurement, evaluator)
            adjusted = self._ctx.decay.adjust_for_recency(
                result.score, measurement.content_age_days, evaluator
            )
        elif not signals.has_any:
            raise ValidationError(
                "measurement", evaluator_id, "carries neither scores nor leaderboard signals"
            )
        window = self._ctx.leaderboard.observation_window
        previous: list[EvaluatorSubScore] = []

        def apply(current: ScoredEntity | None) -> ScoredEntity:
            subs = dict(current.evaluator_scores) if current else {}
            prior = subs.get(evaluator_id)
            if prior is not None:
                previous.append(prior)
            observations = append_observation(
                prior.observations if prior else (), signals, window
            )
            if result is not None:
                sub = EvaluatorSubScore(
                    evaluator_id=evaluator_id,
                    raw_score=result.score,
                    adjusted_score=adjusted,
                    category_breakdown=result.category_breakdown,
                    factor_breakdown=result.factor_breakdown,
                    content_age_days=measurement.content_age_days,
                    measured_at=measured_at,
                    observations=observations,
                )
            elif prior is not None:
                # Signals only: the evaluator's last score stands
                sub = replace(
                    prior,
                    measured_at=max(prior.measured_at, measured_at),
                    observations=observations,
                )
            else:
                sub = EvaluatorSubScore(
                    evaluator_id=evaluator_id,
                    raw_score=None,
                    adjusted_score=None,
                    category_breakdown={},
                    factor_breakdown={},
                    content_age_days=measurement.content_age_days,
                    measured_at=measured_at,
                    observations=observations,
                )
            subs[evaluator_id] = sub

            scored = [s.adjusted_score for s in subs.values() if s.adjusted_score is not None]
            composite = sum(scored) / len(scored) if scored else None
            last_updated = max(current.last_updated, measured_at) if current else measured_at
            return ScoredEntity(
                entity_id=entity_id,
                url=measurement.url or (current.url if current else entity_id),
                title=measurement.title
                or (current.title if current else self._ctx.settings.engine.default_title),
                evaluator_scores=subs,
                composite_score=composite,
                last_updated=last_updated,
                rank=current.rank if current else 0,
                daily_change=self._change(entity_id, composite, last_updated - self.DAY),
                weekly_change=self._change(entity_id, composite, last_updated - self.WEEK),
                monthly_change=self._change(entity_id, composite, last_updated - self.MONTH),
                validation_status=measurement.validation_status,
            )

        entity = self._ctx.entities.update(entity_id, apply)

        if result is None:
            logger.info(f"Ingested {evaluator_id} leaderboard signals for {entity_id}")
            return entity

        if previous and previous[0].adjusted_score is not None:
            self._ctx.decay.track_performance_delta(
                entity_id,
                evaluator,
                previous[0].adjusted_score,
                adjusted,
                measurement.content_age_days,
                measured_at,
            )
        self._ctx.history.record(
            ScoreHistoryPoint(
                entity_id=entity_id,
                timestamp=measured_at,
                composite_score=entity.composite_score,
                sub_scores={
                    k: s.adjusted_score
                    for k, s in entity.evaluator_scores.items()
                    if s.adjusted_score is not None
                },
                validation_status=measurement.validation_status,
            )
        )
        logger.info(
            f"Ingested {evaluator_id} measurement for {entity_id}: "
            f"composite {result.score:.1f}, adjusted {adjusted:.1f}, "
            f"entity {entity.composite_score:.1f}"
        )
        return entity

    def bulk_ingest(
        self,
        items: Iterable[tuple[str, str, Measurement]],
        now: datetime | None = None,
    ) -> BulkIngestResult:
        """Ingest many measurements; failures do not stop the rest.

        Args:
            items: (entity_id, evaluator_id, measurement) tuples.
            now: Ingestion time for measurements without a timestamp.

        Returns:
            BulkIngestResult with updated entities and per-item failures.
        """
        result = BulkIngestResult()
        for entity_id, evaluator_id, measurement in items:
            try:
                result.entities.append(self.ingest(entity_id, evaluator_id, measurement, now))
            except RankingError as e:
                logger.warning(f"Failed to ingest {evaluator_id} measurement for {entity_id}: {e}")
                result.failures.append(
                    EntityFailure(entity_id=entity_id, reason=str(e), evaluator_id=evaluator_id)
                )
        logger.info(
            f"Bulk ingest: {len(result.entities)} succeeded, {len(result.failures)} failed"
        )
        return result

    # Feedback and recalibration

    def record_feedback(self, record: FeedbackRecord) -> LearningResult | None:
        """Append a feedback record; learn for its evaluator once enough exist.

        Returns:
            The LearningResult of the triggered pass, or None when no pass ran.

        Raises:
            NotFoundError: If the record names an unknown evaluator.
        """
        self._ctx.normalizer.get_evaluator(record.evaluator_id)
        self._ctx.feedback_log.append(record)

        settings = self._ctx.settings.feedback
        if not settings.auto_learn:
            return None
        if self._ctx.feedback_log.count(record.evaluator_id) < self._ctx.learner.min_data_points:
            return None

        with self._recalibration_lock:
            records = self._ctx.feedback_log.snapshot()
            return self._learn(self._ctx.normalizer.get_evaluator(record.evaluator_id), records)

    def recalibrate(self, now: datetime | None = None) -> RecalibrationResult:
        """Run one learning and normalization epoch.

        Learning uses a snapshot of the feedback log and a copy of the
        evaluator table taken at the start of the pass; records appended
        meanwhile wait for the next epoch.
        """
        now = now or datetime.now()
        with self._recalibration_lock:
            records, epoch = self._ctx.feedback_log.snapshot_with_epoch()
            evaluators = self._ctx.normalizer.evaluators()
            result = RecalibrationResult(epoch=epoch, record_count=len(records), started_at=now)

            for evaluator_id, evaluator in evaluators.items():
                try:
                    learning = self._learn(evaluator, records, now)
                except InsufficientDataError as e:
                    result.skipped[evaluator_id] = str(e)
                    logger.info(f"Skipped learning for {evaluator_id}: {e}")
                    continue
                if learning.record_count:
                    result.learning[evaluator_id] = learning

            result.normalization = self._ctx.normalizer.normalize_all(now)

        logger.info(
            f"Recalibration epoch {epoch}: {len(records)} records, "
            f"{len(result.updated_evaluators)} evaluators updated, "
            f"{len(result.skipped)} skipped"
        )
        return result

    def reset_learning(self, evaluator_id: str) -> Evaluator:
        """Drop an evaluator's feedback and restore its base factor weights."""
        evaluator = self._ctx.normalizer.get_evaluator(evaluator_id)
        with self._recalibration_lock:
            self._ctx.feedback_log.remove_evaluator(evaluator_id)
            return self._ctx.normalizer.set_factor_weights(
                evaluator_id, evaluator.base_factor_weights
            )

    def learning_metrics(self) -> LearningMetrics:
        return self._ctx.learner.learning_metrics(self._ctx.feedback_log.snapshot())

    # Weights

    def normalize(
        self,
        consumer_id: str | None = None,
        now: datetime | None = None,
    ) -> list[NormalizationResult]:
        """Normalize one consumer, or every consumer when consumer_id is None."""
        if consumer_id is None:
            return self._ctx.normalizer.normalize_all(now)
        return [self._ctx.normalizer.normalize(consumer_id, now)]

    def validate_consistency(self) -> ConsistencyReport:
        return self._ctx.normalizer.validate_consistency()

    def update_global_weights(self, samples: list[PerformanceSample]) -> dict[str, float]:
        return self._ctx.normalizer.update_global_weights(samples)

    def set_recency_sensitivity(self, evaluator_id: str, sensitivity: float) -> Evaluator:
        return self._ctx.normalizer.set_recency_sensitivity(evaluator_id, sensitivity)

    def get_evaluator(self, evaluator_id: str) -> Evaluator:
        return self._ctx.normalizer.get_evaluator(evaluator_id)

    # Leaderboard and history

    def rebuild_leaderboard(
        self,
        now: datetime | None = None,
        chunk_size: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RebuildResult:
        """Rank every entity and store a new snapshot.

        Raises:
            RebuildCancelled: If cancel_event is set mid-rebuild.
        """
        result = self._ctx.leaderboard.rebuild(
            self._ctx.entities.snapshot(),
            now=now,
            chunk_size=chunk_size or self._ctx.settings.leaderboard.chunk_size,
            cancel_event=cancel_event,
        )
        if self._ctx.settings.engine.rank_entities:
            ranks = {entry.entity_id: entry.rank for entry in result.snapshot.entries}
            for entity in self._ctx.entities.snapshot():
                self._ctx.entities.set_rank(entity.entity_id, ranks.get(entity.entity_id, 0))
        return result

    def current_leaderboard(self) -> list[LeaderboardEntry]:
        return self._ctx.leaderboard.current_entries()

    def get_entity(self, entity_id: str) -> ScoredEntity:
        return self._ctx.entities.require(entity_id)

    def get_trend(
        self,
        entity_id: str,
        window_days: int | None = None,
        now: datetime | None = None,
    ) -> TrendResult:
        """Trend classification of an entity plus its supporting history.

        Raises:
            NotFoundError: If the entity is tracked nowhere.
        """
        if entity_id not in self._ctx.entities and entity_id not in self._ctx.history:
            raise NotFoundError("entity", entity_id)
        return self._ctx.history.calculate_trend(entity_id, window_days, now)

    def history_summary(self) -> HistorySummary:
        return self._ctx.history.summary()

    def prune(
        self,
        now: datetime | None = None,
        retention_days: int | None = None,
    ) -> PruneResult:
        """Remove entities, history and snapshots older than the retention window."""
        retention_days = retention_days or self._ctx.settings.leaderboard.retention_days
        cutoff = (now or datetime.now()) - timedelta(days=retention_days)

        removed = self._ctx.entities.prune(cutoff)
        for entity_id in removed:
            self._ctx.history.remove_entity(entity_id)
            self._ctx.decay.discard(entity_id)

        result = PruneResult(
            cutoff=cutoff,
            entities=removed,
            history_entities=self._ctx.history.prune(cutoff),
            snapshots=self._ctx.leaderboard.prune_snapshots(cutoff),
        )
        logger.info(
            f"Pruned {len(result.entities)} entities and {result.snapshots} snapshots "
            f"older than {cutoff:%Y-%m-%d}"
        )
        return result

    # State

    def export_weights(self) -> dict:
        """Canonical evaluators and consumer profiles as JSON-safe dicts."""
        evaluators, consumers = self._ctx.normalizer.export_state()
        return {
            "evaluators": [serialization.evaluator_to_dict(e) for e in evaluators.values()],
            "consumer_weight_profiles": [
                serialization.consumer_to_dict(p) for p in consumers.values()
            ],
            "exported_at": datetime.now().isoformat(),
        }

    def import_weights(self, state: dict) -> None:
        """Replace evaluators and consumer profiles from export_weights output.

        Raises:
            ValidationError: If the state is malformed. Nothing is replaced.
        """
        try:
            evaluators = [serialization.evaluator_from_dict(d) for d in state["evaluators"]]
            consumers = [
                serialization.consumer_from_dict(d) for d in state["consumer_weight_profiles"]
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError("weights", type(state).__name__, f"malformed state: {e}") from e
        if not evaluators:
            raise ValidationError("evaluators", evaluators, "at least one evaluator is required")
        self._ctx.normalizer.import_state(
            {e.evaluator_id: e for e in evaluators},
            {p.consumer_id: p for p in consumers},
        )

    def export_state(self) -> dict:
        """Full engine state as the six JSON-safe collections."""
        state = self.export_weights()
        state.pop("exported_at")
        state["scored_entities"] = [
            serialization.entity_to_dict(e) for e in self._ctx.entities.snapshot()
        ]
        state["feedback_log"] = [
            serialization.feedback_to_dict(r) for r in self._ctx.feedback_log.snapshot()
        ]
        state["leaderboard_snapshots"] = [
            serialization.snapshot_to_dict(s) for s in self._ctx.leaderboard.snapshots()
        ]
        state["score_history"] = [
            serialization.history_point_to_dict(p) for p in self._ctx.history.export_points()
        ]
        return state

    def import_state(self, state: dict) -> None:
        """Replace the full engine state from export_state output.

        Every collection is parsed before anything is replaced.

        Raises:
            ValidationError: If the state is malformed.
        """
        try:
            entities = [serialization.entity_from_dict(d) for d in state["scored_entities"]]
            records = [serialization.feedback_from_dict(d) for d in state["feedback_log"]]
            snapshots = [
                serialization.snapshot_from_dict(d) for d in state["leaderboard_snapshots"]
            ]
            points = [serialization.history_point_from_dict(d) for d in state["score_history"]]
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError("state", type(state).__name__, f"malformed state: {e}") from e

        self.import_weights(state)
        self._ctx.entities.replace_all(entities)
        self._ctx.feedback_log.replace_all(records)
        self._ctx.leaderboard.restore_snapshots(snapshots)
        self._ctx.history.restore(points)
        logger.info(
            f"Imported state: {len(entities)} entities, {len(records)} feedback records, "
            f"{len(snapshots)} snapshots, {len(points)} history points"
        )

    # Internals

    def _learn(
        self,
        evaluator: Evaluator,
        records: tuple[FeedbackRecord, ...],
        now: datetime | None = None,
    ) -> LearningResult:
        """Derive and apply factor weights for one evaluator. Caller holds the recalibration lock."""
        result = self._ctx.learner.derive_weights(evaluator, records)
        if result.new_weights != evaluator.factor_weights:
            self._ctx.normalizer.set_factor_weights(evaluator.evaluator_id, result.new_weights, now)
        return result

    def _change(self, entity_id: str, composite: float | None, since: datetime) -> float:
        if composite is None:
            return 0.0
        previous = self._ctx.history.score_at_or_before(entity_id, since)
        return composite - previous if previous is not None else 0.0
