"""Leaderboard aggregation, ranking and snapshot retention."""
import logging
import threading
from collections import deque
from datetime import datetime, timedelta

from src.leaderboard.models import (
    EvaluatorScore,
    Highlights,
    LeaderboardEntry,
    LeaderboardSnapshot,
    PerformanceMetrics,
    RebuildResult,
)
from src.models.errors import RankingError, RebuildCancelled
from src.models.measurement import LeaderboardSignals
from src.models.scored_entity import EntityFailure, EvaluatorSubScore, ScoredEntity
from src.weights.weight_normalizer import WeightNormalizer

logger = logging.getLogger(__name__)

DEFAULT_SIGNAL_WEIGHTS = {
    "citation": 0.3,
    "inclusion": 0.4,
    "confidence": 0.2,
    "response_time": 0.1,
}


class Leaderboard:
    """Ranks entities by the mean of their per-evaluator signal scores.

    Per-evaluator score:
        Signals are averaged over the evaluator's recent observations and
        mapped to 0-100 (citations * 10 capped at 100, inclusion 100 or 0,
        confidence * 100, max(0, 100 - ms / 100)). Missing signals drop out
        and the remaining signal weights are renormalized. An evaluator that
        reported no signals at all contributes its decayed composite score.
        The result is multiplied by the evaluator weight held by the
        leaderboard consumer and clipped to 0-100.

    Ranking:
        Descending score; equal scores are ordered by entity id ascending.
        Ranks are consecutive from 1. Highlights break ties the same way, by
        evaluator id or group name ascending.

    Attributes:
        min_score: Entities below this score are not ranked.
        max_entries: Entries kept per snapshot.
    """

    def __init__(
        self,
        normalizer: WeightNormalizer,
        consumer_id: str = "leaderboard",
        signal_weights: dict[str, float] | None = None,
        points_per_citation: float = 10.0,
        max_citation_score: float = 100.0,
        response_time_divisor: float = 100.0,
        min_score: float = 0.0,
        max_entries: int = 100,
        snapshot_limit: int = 30,
        citation_leader_threshold: float = 5.0,
        inclusion_leader_threshold: float = 0.7,
        inclusion_majority: float = 0.5,
        observation_window: int = 10,
    ):
        """Initialize the leaderboard.

        Args:
            normalizer: Source of normalized evaluator weights and groups.
            consumer_id: Consumer whose weight copies are applied.
            signal_weights: Signal name -> weight.
            points_per_citation: Citation score per citation (default 10).
            max_citation_score: Citation score cap (default 100).
            response_time_divisor: Milliseconds per lost point (default 100).
            min_score: Ranking cut-off (default 0).
            max_entries: Entries per snapshot (default 100).
            snapshot_limit: Snapshots retained (default 30).
            citation_leader_threshold: Average citations for a citation leader.
            inclusion_leader_threshold: Inclusion rate for an inclusion leader.
            inclusion_majority: Share of inclusions counted as "included".
            observation_window: Observations averaged per evaluator.
        """
        self._normalizer = normalizer
        self._consumer_id = consumer_id
        self._signal_weights = dict(signal_weights or DEFAULT_SIGNAL_WEIGHTS)
        self._points_per_citation = points_per_citation
        self._max_citation_score = max_citation_score
        self._response_time_divisor = response_time_divisor
        self.min_score = min_score
        self.max_entries = max_entries
        self._citation_leader_threshold = citation_leader_threshold
        self._inclusion_leader_threshold = inclusion_leader_threshold
        self._inclusion_majority = inclusion_majority
        self._observation_window = observation_window

        self._snapshots: deque[LeaderboardSnapshot] = deque(maxlen=snapshot_limit)
        self._sequence = 0
        self._lock = threading.Lock()

    @property
    def observation_window(self) -> int:
        return self._observation_window

    # Scoring

    def evaluator_score(self, sub: EvaluatorSubScore) -> EvaluatorScore:
        """Score one evaluator's view of an entity.

        Raises:
            NotFoundError: If the evaluator is unknown.
            RankingError: If the evaluator has neither signals nor a score.
        """
        evaluator = self._normalizer.get_evaluator(sub.evaluator_id)
        weight = self._normalizer.consumer_weight(self._consumer_id, sub.evaluator_id)
        observations = [o for o in sub.observations[-self._observation_window:] if o.has_any]

        citations = self._average([o.citation_count for o in observations])
        inclusion_rate = self._average(
            [None if o.answer_inclusion is None else float(o.answer_inclusion) for o in observations]
        )
        inclusion = None if inclusion_rate is None else inclusion_rate > self._inclusion_majority
        confidence = self._average([o.confidence for o in observations])
        response_time = self._average([o.response_time_ms for o in observations])

        components: dict[str, float] = {}
        if citations is not None:
            components["citation"] = min(
                self._max_citation_score, citations * self._points_per_citation
            )
        if inclusion is not None:
            components["inclusion"] = 100.0 if inclusion else 0.0
        if confidence is not None:
            components["confidence"] = confidence * 100.0
        if response_time is not None:
            components["response_time"] = max(
                0.0, 100.0 - response_time / self._response_time_divisor
            )

        base = self._signal_score(components)
        if base is None:
            base = sub.adjusted_score
        if base is None:
            raise RankingError(
                f"Evaluator '{sub.evaluator_id}' reported neither a score nor signals"
            )

        score = min(100.0, max(0.0, base * weight))
        return EvaluatorScore(
            evaluator_id=sub.evaluator_id,
            group=evaluator.group,
            score=score,
            weight=weight,
            citation_count=citations,
            answer_inclusion=inclusion,
            confidence=confidence,
            response_time_ms=response_time,
            observation_count=len(observations),
            last_seen=sub.measured_at,
        )

    def score_entity(self, entity: ScoredEntity) -> tuple[float, tuple[EvaluatorScore, ...]]:
        """Mean of the entity's per-evaluator scores, plus the scores.

        Raises:
            RankingError: If the entity has no evaluator scores or an
                evaluator is unknown.
        """
        if not entity.evaluator_scores:
            raise RankingError(f"Entity '{entity.entity_id}' has no evaluator scores")
        scores = tuple(
            self.evaluator_score(entity.evaluator_scores[evaluator_id])
            for evaluator_id in sorted(entity.evaluator_scores)
        )
        return sum(s.score for s in scores) / len(scores), scores

    def highlights(self, scores: tuple[EvaluatorScore, ...]) -> Highlights:
        """Top evaluator, best group and leader flags for one entity."""
        top = min(scores, key=lambda s: (-s.score, s.evaluator_id))

        group_totals: dict[str, float] = {}
        for s in scores:
            group_totals[s.group] = group_totals.get(s.group, 0.0) + s.score
        best_group = min(group_totals, key=lambda g: (-group_totals[g], g))

        citations = [s.citation_count for s in scores if s.citation_count is not None]
        citation_leader = bool(citations) and (
            sum(citations) / len(citations) > self._citation_leader_threshold
        )

        inclusions = [s.answer_inclusion for s in scores if s.answer_inclusion is not None]
        inclusion_leader = bool(inclusions) and (
            sum(1 for i in inclusions if i) / len(inclusions) > self._inclusion_leader_threshold
        )

        return Highlights(
            top_evaluator=top.evaluator_id,
            best_group=best_group,
            citation_leader=citation_leader,
            inclusion_leader=inclusion_leader,
        )

    # Rebuild

    def rebuild(
        self,
        entities: list[ScoredEntity],
        now: datetime | None = None,
        chunk_size: int | None = None,
        cancel_event: threading.Event | None = None,
    ) -> RebuildResult:
        """Score, rank and snapshot a point-in-time list of entities.

        Args:
            entities: Entities to rank; not mutated.
            now: Snapshot timestamp (default now).
            chunk_size: Entities scored between cancellation checks. Defaults
                to all entities in one chunk.
            cancel_event: Set to abandon the rebuild between chunks.

        Returns:
            RebuildResult with the new snapshot, metrics and the entities
            that could not be scored.

        Raises:
            RebuildCancelled: If cancel_event was set. No snapshot is stored.
        """
        now = now or datetime.now()
        ordered = sorted(entities, key=lambda e: e.entity_id)
        total = len(ordered)
        chunk_size = chunk_size or max(total, 1)

        scored: list[tuple[ScoredEntity, float, tuple[EvaluatorScore, ...]]] = []
        failures: list[EntityFailure] = []

        for start in range(0, total, chunk_size):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Leaderboard rebuild cancelled at {start}/{total}")
                raise RebuildCancelled(start, total)
            for entity in ordered[start:start + chunk_size]:
                try:
                    score, scores = self.score_entity(entity)
                except RankingError as e:
                    logger.warning(f"Failed to score {entity.entity_id}: {e}")
                    failures.append(EntityFailure(entity_id=entity.entity_id, reason=str(e)))
                    continue
                scored.append((entity, score, scores))

        ranked = sorted(
            (item for item in scored if item[1] >= self.min_score),
            key=lambda item: (-item[1], item[0].entity_id),
        )[: self.max_entries]

        entries = tuple(
            LeaderboardEntry(
                rank=position,
                entity_id=entity.entity_id,
                url=entity.url,
                title=entity.title,
                score=score,
                evaluator_scores=scores,
                highlights=self.highlights(scores),
                last_updated=entity.last_updated,
                daily_change=entity.daily_change,
                weekly_change=entity.weekly_change,
                monthly_change=entity.monthly_change,
            )
            for position, (entity, score, scores) in enumerate(ranked, start=1)
        )

        with self._lock:
            self._sequence += 1
            snapshot = LeaderboardSnapshot(
                sequence=self._sequence,
                created_at=now,
                entries=entries,
                scored_count=len(scored),
            )
            self._snapshots.append(snapshot)

        metrics = self.metrics(scored)
        logger.info(
            f"Rebuilt leaderboard #{snapshot.sequence}: {len(entries)} ranked, "
            f"{len(scored)} scored, {len(failures)} failed"
        )
        return RebuildResult(snapshot=snapshot, metrics=metrics, failures=failures)

    def metrics(
        self,
        scored: list[tuple[ScoredEntity, float, tuple[EvaluatorScore, ...]]],
    ) -> PerformanceMetrics:
        """Aggregate metrics over scored entities."""
        if not scored:
            return PerformanceMetrics()

        top = min(scored, key=lambda item: (-item[1], item[0].entity_id))
        improved = min(scored, key=lambda item: (-item[0].daily_change, item[0].entity_id))

        evaluator_breakdown: dict[str, int] = {}
        group_breakdown: dict[str, int] = {}
        for _, _, scores in scored:
            for s in scores:
                evaluator_breakdown[s.evaluator_id] = evaluator_breakdown.get(s.evaluator_id, 0) + 1
                group_breakdown[s.group] = group_breakdown.get(s.group, 0) + 1

        return PerformanceMetrics(
            total_entities=len(scored),
            average_score=sum(item[1] for item in scored) / len(scored),
            top_performer=top[0].entity_id,
            most_improved=improved[0].entity_id,
            evaluator_breakdown=dict(sorted(evaluator_breakdown.items())),
            group_breakdown=dict(sorted(group_breakdown.items())),
        )

    # Snapshots

    def latest_snapshot(self) -> LeaderboardSnapshot | None:
        with self._lock:
            return self._snapshots[-1] if self._snapshots else None

    def current_entries(self) -> list[LeaderboardEntry]:
        """Entries of the latest snapshot."""
        snapshot = self.latest_snapshot()
        return list(snapshot.entries) if snapshot else []

    def snapshots(self) -> list[LeaderboardSnapshot]:
        """Retained snapshots, oldest first."""
        with self._lock:
            return list(self._snapshots)

    def historical_snapshots(
        self,
        days_back: int = 7,
        now: datetime | None = None,
    ) -> list[LeaderboardSnapshot]:
        """Snapshots created within the last days_back days."""
        cutoff = (now or datetime.now()) - timedelta(days=days_back)
        return [s for s in self.snapshots() if s.created_at >= cutoff]

    def prune_snapshots(self, cutoff: datetime) -> int:
        """Drop snapshots created before cutoff. Returns the number dropped."""
        with self._lock:
            kept = [s for s in self._snapshots if s.created_at >= cutoff]
            dropped = len(self._snapshots) - len(kept)
            self._snapshots.clear()
            self._snapshots.extend(kept)
        return dropped

    def restore_snapshots(self, snapshots: list[LeaderboardSnapshot]) -> None:
        """Replace retained snapshots (used when importing persisted state)."""
        with self._lock:
            self._snapshots.clear()
            self._snapshots.extend(sorted(snapshots, key=lambda s: s.sequence))
            self._sequence = max((s.sequence for s in snapshots), default=0)

    # Internals

    def _signal_score(self, components: dict[str, float]) -> float | None:
        total = 0.0
        total_weight = 0.0
        for name, value in components.items():
            weight = self._signal_weights.get(name, 0.0)
            if weight <= 0:
                continue
            total += value * weight
            total_weight += weight
        return total / total_weight if total_weight > 0 else None

    @staticmethod
    def _average(values: list[float | None]) -> float | None:
        present = [float(v) for v in values if v is not None]
        return sum(present) / len(present) if present else None


def append_observation(
    observations: tuple[LeaderboardSignals, ...],
    signals: LeaderboardSignals,
    window: int,
) -> tuple[LeaderboardSignals, ...]:
    """Append signals to an observation window, keeping the newest `window`."""
    if not signals.has_any:
        return observations
    return (observations + (signals,))[-window:]
