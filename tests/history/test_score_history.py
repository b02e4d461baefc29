# tests/history/test_score_history.py
"""Tests for ScoreHistory trend tracking."""
from datetime import datetime, timedelta

import pytest

from src.history.models import Trend
from src.history.score_history import ScoreHistory
from src.history.models import ScoreHistoryPoint
from src.models.errors import ValidationError
from src.models.measurement import ValidationStatus

NOW = datetime(2026, 1, 15, 12, 0)


def point(entity_id, days_ago, score, sub_scores=None, status=ValidationStatus.VALID):
    return ScoreHistoryPoint(
        entity_id=entity_id,
        timestamp=NOW - timedelta(days=days_ago),
        composite_score=score,
        sub_scores=sub_scores or {"chatgpt": score},
        validation_status=status,
    )


@pytest.fixture
def history():
    return ScoreHistory()


class TestRecord:
    def test_history_newest_first(self, history):
        history.record(point("page", 3, 50.0))
        history.record(point("page", 1, 70.0))
        history.record(point("page", 2, 60.0))

        scores = [p.composite_score for p in history.get_history("page")]

        assert scores == [70.0, 60.0, 50.0]

    def test_limit(self, history):
        for i in range(5):
            history.record(point("page", i, 50.0 + i))

        assert len(history.get_history("page", limit=2)) == 2

    def test_points_trimmed_to_max(self):
        history = ScoreHistory(max_points_per_entity=3)
        for i in range(5):
            history.record(point("page", 10 - i, 50.0 + i))

        scores = [p.composite_score for p in history.get_history("page")]

        assert scores == [54.0, 53.0, 52.0]

    def test_invalid_score_rejected(self, history):
        with pytest.raises(ValidationError):
            history.record(point("page", 0, 120.0))

    def test_score_at_or_before(self, history):
        history.record(point("page", 5, 40.0))
        history.record(point("page", 1, 60.0))

        assert history.score_at_or_before("page", NOW - timedelta(days=3)) == 40.0
        assert history.score_at_or_before("page", NOW) == 60.0
        assert history.score_at_or_before("page", NOW - timedelta(days=10)) is None

    def test_unknown_entity(self, history):
        assert history.get_history("ghost") == []
        assert "ghost" not in history


class TestTrend:
    def test_improving(self, history):
        history.record(point("page", 10, 50.0))
        history.record(point("page", 1, 60.0))

        result = history.calculate_trend("page", 30, NOW)

        assert result.trend == Trend.IMPROVING
        assert result.change_percent == pytest.approx(20.0)
        assert result.average_score == pytest.approx(55.0)
        assert "Score improving by 20.0%" in result.insights

    def test_declining(self, history):
        history.record(point("page", 10, 80.0))
        history.record(point("page", 1, 70.0))

        result = history.calculate_trend("page", 30, NOW)

        assert result.trend == Trend.DECLINING
        assert result.change_percent == pytest.approx(-12.5)

    def test_stable_within_threshold(self, history):
        history.record(point("page", 10, 80.0))
        history.record(point("page", 1, 83.0))

        assert history.calculate_trend("page", 30, NOW).trend == Trend.STABLE

    def test_window_excludes_old_points(self, history):
        history.record(point("page", 60, 10.0))
        history.record(point("page", 10, 50.0))
        history.record(point("page", 1, 50.0))

        result = history.calculate_trend("page", 30, NOW)

        assert result.trend == Trend.STABLE
        assert len(result.history) == 2

    def test_insufficient_data(self, history):
        history.record(point("page", 1, 50.0))

        result = history.calculate_trend("page", 30, NOW)

        assert result.trend == Trend.INSUFFICIENT_DATA
        assert result.change_percent == 0.0
        assert result.average_score == 50.0

    def test_zero_baseline(self, history):
        history.record(point("page", 10, 0.0))
        history.record(point("page", 1, 30.0))

        result = history.calculate_trend("page", 30, NOW)

        assert result.change_percent == 100.0
        assert result.trend == Trend.IMPROVING

    def test_zero_to_zero(self, history):
        history.record(point("page", 10, 0.0))
        history.record(point("page", 1, 0.0))

        result = history.calculate_trend("page", 30, NOW)

        assert result.change_percent == 0.0
        assert result.trend == Trend.STABLE

    def test_low_validation_rate_insight(self, history):
        history.record(point("page", 10, 90.0, status=ValidationStatus.INVALID))
        history.record(point("page", 1, 90.0))

        insights = history.calculate_trend("page", 30, NOW).insights

        assert "Validation rate is 50.0%" in insights
        assert "Excellent average score" in insights


class TestSummary:
    def test_empty(self, history):
        summary = history.summary()

        assert summary.total_points == 0
        assert summary.top_movers == []

    def test_aggregates(self, history):
        history.record(point("a", 5, 40.0, {"chatgpt": 40.0, "claude": 50.0}))
        history.record(point("a", 1, 80.0, {"chatgpt": 80.0, "claude": 90.0}))
        history.record(point("b", 5, 90.0, status=ValidationStatus.INVALID))
        history.record(point("b", 1, 85.0, status=ValidationStatus.UNKNOWN))

        summary = history.summary()

        assert summary.total_points == 4
        assert summary.tracked_entities == 2
        assert summary.average_composite == pytest.approx(73.75)
        assert summary.average_by_evaluator["claude"] == pytest.approx(70.0)
        assert summary.validation_rate == pytest.approx(50.0)
        assert [m.entity_id for m in summary.top_movers] == ["a", "b"]
        assert summary.top_movers[0].change == pytest.approx(40.0)
        assert summary.top_movers[0].timeframe_days == 4

        issues = {i.issue: i for i in summary.common_issues}
        assert issues["Low composite score"].frequency == pytest.approx(25.0)
        assert issues["Low chatgpt score"].frequency == pytest.approx(25.0)
        assert issues["Validation errors"].impact == "medium"
        assert "Unvalidated measurements" in issues


class TestRetention:
    def test_prune(self, history):
        history.record(point("old", 120, 50.0))
        history.record(point("mixed", 120, 50.0))
        history.record(point("mixed", 5, 60.0))

        removed = history.prune(NOW - timedelta(days=90))

        assert removed == ["old"]
        assert "old" not in history
        assert len(history.get_history("mixed")) == 1

    def test_remove_and_restore(self, history):
        history.record(point("a", 1, 50.0))
        history.record(point("b", 1, 60.0))
        points = history.export_points()

        assert history.remove_entity("a") is True
        assert history.entity_ids() == ["b"]

        history.restore(points)
        assert history.entity_ids() == ["a", "b"]

    def test_to_dataframe(self, history):
        history.record(point("a", 2, 50.0, {"chatgpt": 50.0, "claude": 40.0}))
        history.record(point("b", 1, 60.0))

        df = history.to_dataframe()

        assert list(df.columns) == [
            "entity_id", "timestamp", "composite_score", "validation_status",
            "score_chatgpt", "score_claude",
        ]
        assert len(df) == 2
        assert len(history.to_dataframe("a")) == 1
