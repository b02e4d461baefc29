# tests/scoring/test_temporal_decay.py
"""Tests for the TemporalDecayModel."""
from datetime import datetime, timezone

import pytest

from src.models.errors import ValidationError
from src.models.evaluator import default_evaluators
from src.scoring.temporal_decay import TemporalDecayModel


@pytest.fixture
def decay():
    return TemporalDecayModel(decay_period_days=180, max_degradation=0.3)


@pytest.fixture
def evaluators():
    return default_evaluators()


class TestAdjustForRecency:
    def test_year_old_content_for_sensitive_evaluator(self, decay, evaluators):
        """365 days, sensitivity 0.9: age factor saturates, degradation 0.27."""
        perplexity = evaluators["perplexity"]

        assert decay.degradation_factor(365, perplexity.recency_sensitivity) == pytest.approx(0.27)
        assert decay.temporal_adjustment(365, perplexity) == pytest.approx(0.73)
        assert decay.adjust_for_recency(80.0, 365, perplexity) == pytest.approx(58.4)

    def test_fresh_content_unchanged(self, decay, evaluators):
        assert decay.adjust_for_recency(72.0, 0, evaluators["chatgpt"]) == pytest.approx(72.0)

    def test_partial_age(self, decay, evaluators):
        # 90 / 180 * 0.3 * 0.7
        assert decay.degradation_factor(90, evaluators["chatgpt"].recency_sensitivity) == pytest.approx(0.105)

    def test_never_below_floor(self, decay, evaluators):
        evaluator = evaluators["chatgpt"].copy(recency_sensitivity=1.0)

        for age in (180, 365, 10_000):
            assert decay.adjust_for_recency(100.0, age, evaluator) >= 70.0 - 1e-9

    def test_negative_age_treated_as_zero(self, decay, evaluators):
        assert decay.adjust_for_recency(50.0, -10, evaluators["claude"]) == pytest.approx(50.0)

    def test_nan_age_raises(self, decay, evaluators):
        with pytest.raises(ValidationError):
            decay.adjust_for_recency(50.0, float("nan"), evaluators["claude"])

    def test_out_of_range_score_raises(self, decay, evaluators):
        with pytest.raises(ValidationError):
            decay.adjust_for_recency(150.0, 10, evaluators["claude"])

    def test_less_sensitive_evaluator_decays_less(self, decay, evaluators):
        claude = decay.adjust_for_recency(80.0, 200, evaluators["claude"])
        perplexity = decay.adjust_for_recency(80.0, 200, evaluators["perplexity"])

        assert claude > perplexity


class TestPerformanceDelta:
    def test_sample_recorded(self, decay, evaluators):
        evaluator = evaluators["perplexity"]
        recorded_at = datetime(2026, 1, 1)

        sample = decay.track_performance_delta("page-1", evaluator, 60.0, 70.0, 0, recorded_at)

        assert sample.performance_delta == pytest.approx(10.0)
        assert sample.temporal_weight == pytest.approx(1.1)
        assert sample.recorded_at == recorded_at
        assert decay.get_samples("page-1") == [sample]

    def test_negative_delta_on_old_content(self, decay, evaluators):
        sample = decay.track_performance_delta("page-1", evaluators["bing"], 70.0, 60.0, 365)

        assert sample.temporal_weight == pytest.approx(0.9 * 0.8)

    def test_does_not_mutate_evaluator(self, decay, evaluators):
        evaluator = evaluators["perplexity"]

        for _ in range(20):
            decay.track_performance_delta("page-1", evaluator, 90.0, 10.0, 400)

        assert evaluator.recency_sensitivity == 0.9

    def test_samples_bounded(self, evaluators):
        decay = TemporalDecayModel(max_samples_per_entity=3)

        for i in range(5):
            decay.track_performance_delta("page-1", evaluators["claude"], 50.0, 50.0 + i, 0)

        samples = decay.get_samples("page-1")
        assert len(samples) == 3
        assert samples[0].new_score == 52.0

    def test_discard(self, decay, evaluators):
        decay.track_performance_delta("page-1", evaluators["claude"], 50.0, 55.0, 0)

        decay.discard("page-1")

        assert decay.get_samples("page-1") == []


class TestContentAge:
    def test_whole_days(self):
        now = datetime(2026, 1, 11, 12)

        assert TemporalDecayModel.content_age_days(datetime(2026, 1, 1), now) == 10
        assert TemporalDecayModel.content_age_days("2026-01-01T00:00:00", now) == 10

    def test_unknown_or_future_is_zero(self):
        now = datetime(2026, 1, 11)

        assert TemporalDecayModel.content_age_days(None, now) == 0
        assert TemporalDecayModel.content_age_days(datetime(2026, 2, 1), now) == 0

    def test_aware_timestamp(self):
        now = datetime(2026, 1, 11, tzinfo=timezone.utc)

        assert TemporalDecayModel.content_age_days("2026-01-01T00:00:00+00:00", now) == 10
