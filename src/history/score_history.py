"""Per-entity score history with trend classification."""
import bisect
import logging
import threading
from datetime import datetime, timedelta

import pandas as pd

from src.history.models import (
    CommonIssue,
    HistorySummary,
    Mover,
    ScoreHistoryPoint,
    Trend,
    TrendResult,
)
from src.models.errors import require_range
from src.models.measurement import ValidationStatus

logger = logging.getLogger(__name__)


class ScoreHistory:
    """Append-only per-entity log of composite scores.

    Points are kept in timestamp order; a late-arriving point is inserted at
    its position. Only the newest max_points_per_entity points are kept.

    Attributes:
        trend_threshold_percent: Percent change separating stable from
            improving/declining.
        default_window_days: Window used when calculate_trend gets none.
    """

    HIGH_IMPACT_SHARE = 0.3
    MEDIUM_IMPACT_SHARE = 0.1
    GOOD_AVERAGE = 85.0
    MIN_VALIDATION_RATE = 90.0

    def __init__(
        self,
        max_points_per_entity: int = 100,
        trend_threshold_percent: float = 5.0,
        default_window_days: int = 30,
        top_movers: int = 5,
        common_issues: int = 5,
        low_score_threshold: float = 70.0,
    ):
        self._max_points = max_points_per_entity
        self.trend_threshold_percent = trend_threshold_percent
        self.default_window_days = default_window_days
        self._top_movers = top_movers
        self._common_issues = common_issues
        self._low_score_threshold = low_score_threshold
        self._points: dict[str, list[ScoreHistoryPoint]] = {}
        self._lock = threading.Lock()

    def record(self, point: ScoreHistoryPoint) -> None:
        """Record a point.

        Raises:
            ValidationError: If the composite score is outside [0, 100].
        """
        require_range("composite_score", point.composite_score, 0.0, 100.0)
        with self._lock:
            points = self._points.setdefault(point.entity_id, [])
            bisect.insort(points, point, key=lambda p: p.timestamp)
            if len(points) > self._max_points:
                del points[: len(points) - self._max_points]
        logger.debug(f"Recorded score {point.composite_score:.1f} for {point.entity_id}")

    def get_history(self, entity_id: str, limit: int = 30) -> list[ScoreHistoryPoint]:
        """Most recent points of an entity, newest first."""
        with self._lock:
            points = list(self._points.get(entity_id, ()))
        return list(reversed(points))[:limit]

    def score_at_or_before(self, entity_id: str, when: datetime) -> float | None:
        """Composite score of the latest point at or before `when`."""
        with self._lock:
            points = list(self._points.get(entity_id, ()))
        index = bisect.bisect_right(points, when, key=lambda p: p.timestamp)
        return points[index - 1].composite_score if index else None

    def calculate_trend(
        self,
        entity_id: str,
        window_days: int | None = None,
        now: datetime | None = None,
    ) -> TrendResult:
        """Classify the trend of an entity over the last window_days.

        Compares the oldest and newest point in the window. A change above
        +threshold percent is improving, below -threshold declining, anything
        else stable. Fewer than two points gives INSUFFICIENT_DATA. When the
        oldest score is 0, the change is 100% if the newest score is positive
        and 0% otherwise.
        """
        window_days = window_days or self.default_window_days
        cutoff = (now or datetime.now()) - timedelta(days=window_days)
        with self._lock:
            window = [p for p in self._points.get(entity_id, ()) if p.timestamp >= cutoff]

        if len(window) < 2:
            average = window[0].composite_score if window else 0.0
            return TrendResult(
                entity_id=entity_id,
                trend=Trend.INSUFFICIENT_DATA,
                change_percent=0.0,
                average_score=average,
                history=window,
                insights=[],
                window_days=window_days,
            )

        oldest = window[0].composite_score
        newest = window[-1].composite_score
        if oldest == 0:
            change_percent = 100.0 if newest > 0 else 0.0
        else:
            change_percent = (newest - oldest) / oldest * 100.0

        if change_percent > self.trend_threshold_percent:
            trend = Trend.IMPROVING
        elif change_percent < -self.trend_threshold_percent:
            trend = Trend.DECLINING
        else:
            trend = Trend.STABLE

        average = sum(p.composite_score for p in window) / len(window)
        return TrendResult(
            entity_id=entity_id,
            trend=trend,
            change_percent=change_percent,
            average_score=average,
            history=window,
            insights=self._insights(window, trend, change_percent, average),
            window_days=window_days,
        )

    def summary(self) -> HistorySummary:
        """Averages, validation rate, top movers and common issues."""
        with self._lock:
            tracked = {k: list(v) for k, v in self._points.items() if v}
        points = [p for entity_points in tracked.values() for p in entity_points]
        if not points:
            return HistorySummary()

        by_evaluator: dict[str, list[float]] = {}
        for p in points:
            for evaluator_id, score in p.sub_scores.items():
                by_evaluator.setdefault(evaluator_id, []).append(score)

        valid = sum(1 for p in points if p.validation_status == ValidationStatus.VALID)

        movers = [
            Mover(
                entity_id=entity_id,
                change=entity_points[-1].composite_score - entity_points[0].composite_score,
                timeframe_days=(entity_points[-1].timestamp - entity_points[0].timestamp).days,
            )
            for entity_id, entity_points in tracked.items()
            if len(entity_points) >= 2
        ]
        movers = sorted(
            (m for m in movers if m.change != 0),
            key=lambda m: (-abs(m.change), m.entity_id),
        )[: self._top_movers]

        return HistorySummary(
            total_points=len(points),
            tracked_entities=len(tracked),
            average_composite=sum(p.composite_score for p in points) / len(points),
            average_by_evaluator={
                k: sum(v) / len(v) for k, v in sorted(by_evaluator.items())
            },
            validation_rate=valid / len(points) * 100.0,
            top_movers=movers,
            common_issues=self._identify_issues(points),
        )

    def prune(self, cutoff: datetime) -> list[str]:
        """Drop points older than cutoff and entities left without points.

        Returns:
            Ids of entities removed entirely, sorted.
        """
        removed = []
        with self._lock:
            for entity_id in list(self._points):
                kept = [p for p in self._points[entity_id] if p.timestamp >= cutoff]
                if kept:
                    self._points[entity_id] = kept
                else:
                    del self._points[entity_id]
                    removed.append(entity_id)
        if removed:
            logger.info(f"Pruned score history of {len(removed)} entities")
        return sorted(removed)

    def remove_entity(self, entity_id: str) -> bool:
        """Forget an entity. Returns True if it was tracked."""
        with self._lock:
            return self._points.pop(entity_id, None) is not None

    def entity_ids(self) -> list[str]:
        with self._lock:
            return sorted(self._points)

    def export_points(self) -> list[ScoreHistoryPoint]:
        """Every point, grouped by entity id and ordered by time."""
        with self._lock:
            return [p for k in sorted(self._points) for p in self._points[k]]

    def restore(self, points: list[ScoreHistoryPoint]) -> None:
        """Replace all history (used when importing persisted state)."""
        with self._lock:
            self._points = {}
        for point in points:
            self.record(point)

    def to_dataframe(self, entity_id: str | None = None) -> pd.DataFrame:
        """History as a DataFrame, one row per point.

        Columns: entity_id, timestamp, composite_score, validation_status and
        one ``score_<evaluator>`` column per evaluator seen.
        """
        points = self.export_points()
        if entity_id is not None:
            points = [p for p in points if p.entity_id == entity_id]
        rows = []
        for p in points:
            row = {
                "entity_id": p.entity_id,
                "timestamp": p.timestamp,
                "composite_score": p.composite_score,
                "validation_status": p.validation_status.value,
            }
            row.update({f"score_{k}": v for k, v in p.sub_scores.items()})
            rows.append(row)
        columns = ["entity_id", "timestamp", "composite_score", "validation_status"]
        return pd.DataFrame(rows, columns=columns + sorted(
            {c for row in rows for c in row if c not in columns}
        ))

    def __contains__(self, entity_id: object) -> bool:
        with self._lock:
            return entity_id in self._points

    def _insights(
        self,
        window: list[ScoreHistoryPoint],
        trend: Trend,
        change_percent: float,
        average: float,
    ) -> list[str]:
        insights = []
        if trend == Trend.IMPROVING:
            insights.append(f"Score improving by {abs(change_percent):.1f}%")
        elif trend == Trend.DECLINING:
            insights.append(f"Score declining by {abs(change_percent):.1f}% - attention needed")
        else:
            insights.append("Score stable")

        if average < self._low_score_threshold:
            insights.append("Average score is low - significant improvements needed")
        elif average < self.GOOD_AVERAGE:
            insights.append("Average score has room for improvement")
        else:
            insights.append("Excellent average score")

        valid = sum(1 for p in window if p.validation_status == ValidationStatus.VALID)
        validation_rate = valid / len(window) * 100.0
        if validation_rate < self.MIN_VALIDATION_RATE:
            insights.append(f"Validation rate is {validation_rate:.1f}%")
        return insights

    def _identify_issues(self, points: list[ScoreHistoryPoint]) -> list[CommonIssue]:
        counts: dict[str, int] = {}

        def count(issue: str) -> None:
            counts[issue] = counts.get(issue, 0) + 1

        for p in points:
            if p.composite_score < self._low_score_threshold:
                count("Low composite score")
            for evaluator_id, score in p.sub_scores.items():
                if score < self._low_score_threshold:
                    count(f"Low {evaluator_id} score")
            if p.validation_status == ValidationStatus.INVALID:
                count("Validation errors")
            elif p.validation_status == ValidationStatus.UNKNOWN:
                count("Unvalidated measurements")

        total = len(points)
        issues = []
        for issue, n in counts.items():
            if n > total * self.HIGH_IMPACT_SHARE:
                impact = "high"
            elif n > total * self.MEDIUM_IMPACT_SHARE:
                impact = "medium"
            else:
                impact = "low"
            issues.append(CommonIssue(issue=issue, frequency=n / total * 100.0, impact=impact))
        return sorted(issues, key=lambda i: (-i.frequency, i.issue))[: self._common_issues]
