# tests/weights/test_weight_normalizer.py
"""Tests for the WeightNormalizer."""
from datetime import datetime

import pytest

from src.models.errors import NotFoundError, ValidationError
from src.models.evaluator import default_evaluators
from src.weights.models import PerformanceSample
from src.weights.weight_normalizer import WeightNormalizer

NOW = datetime(2026, 1, 15, 12, 0)


@pytest.fixture
def normalizer():
    normalizer = WeightNormalizer(default_evaluators(NOW))
    normalizer.register_consumer("analytics", "Analytics")
    normalizer.register_consumer("leaderboard", "Leaderboard")
    return normalizer


class TestConsumers:
    def test_register_copies_canonical_weights(self, normalizer):
        profile = normalizer.get_consumer("analytics")

        assert profile.display_name == "Analytics"
        assert profile.weight_of("chatgpt") == 1.0
        assert profile.weight_of("bing") == 0.8
        assert profile.factor_weights["claude"]["content_quality"] == 0.35

    def test_register_is_idempotent(self, normalizer):
        normalizer.set_consumer_weight("analytics", "chatgpt", 1.3)

        profile = normalizer.register_consumer("analytics")

        assert profile.weight_of("chatgpt") == 1.3
        assert normalizer.consumer_ids() == ["analytics", "leaderboard"]

    def test_unknown_consumer(self, normalizer):
        with pytest.raises(NotFoundError):
            normalizer.get_consumer("ghost")
        with pytest.raises(NotFoundError):
            normalizer.normalize("ghost")

    def test_unknown_evaluator(self, normalizer):
        with pytest.raises(NotFoundError):
            normalizer.get_evaluator("ghost")
        with pytest.raises(NotFoundError):
            normalizer.set_consumer_weight("analytics", "ghost", 1.0)

    def test_consumer_weight_falls_back_to_global(self, normalizer):
        assert normalizer.consumer_weight("unregistered", "bing") == 0.8

    def test_override_must_be_positive(self, normalizer):
        with pytest.raises(ValidationError):
            normalizer.set_consumer_weight("analytics", "chatgpt", 0.0)
        with pytest.raises(ValidationError):
            normalizer.set_consumer_weight("analytics", "chatgpt", float("nan"))

    def test_returned_profile_is_a_copy(self, normalizer):
        profile = normalizer.get_consumer("analytics")
        profile.weights["chatgpt"].weight = 9.0

        assert normalizer.consumer_weight("analytics", "chatgpt") == 1.0


class TestNormalize:
    def test_single_pass_correction(self, normalizer):
        """Drift 0.3 above the 0.1 threshold: 1.3 * (1 - 0.5 * 0.3) = 1.105."""
        normalizer.set_consumer_weight("analytics", "chatgpt", 1.3)

        result = normalizer.normalize("analytics", NOW)

        assert result.drift_factors["chatgpt"] == pytest.approx(0.3)
        assert result.new_weights["chatgpt"] == pytest.approx(1.105)
        assert result.original_weights["chatgpt"] == pytest.approx(1.3)
        assert result.corrected == ["chatgpt"]
        assert result.violations == []
        assert normalizer.consumer_weight("analytics", "chatgpt") == pytest.approx(1.105)

    def test_weight_below_global_moves_up(self, normalizer):
        normalizer.set_consumer_weight("analytics", "chatgpt", 0.7)

        result = normalizer.normalize("analytics", NOW)

        assert result.new_weights["chatgpt"] == pytest.approx(0.805)

    def test_drift_within_threshold_untouched(self, normalizer):
        normalizer.set_consumer_weight("analytics", "chatgpt", 1.05)

        result = normalizer.normalize("analytics", NOW)

        assert result.new_weights["chatgpt"] == pytest.approx(1.05)
        assert result.corrected == []

    def test_repeated_passes_converge(self, normalizer):
        normalizer.set_consumer_weight("analytics", "chatgpt", 1.9)
        gaps = []

        for _ in range(20):
            normalizer.normalize("analytics", NOW)
            gaps.append(normalizer.consumer_weight("analytics", "chatgpt") - 1.0)

        assert all(gap >= 0 for gap in gaps)
        assert all(b <= a for a, b in zip(gaps, gaps[1:]))
        assert gaps[-1] <= 0.1 + 1e-9

    def test_hard_drift_reported_not_raised(self, normalizer, caplog):
        normalizer.set_consumer_weight("analytics", "chatgpt", 2.5)

        result = normalizer.normalize("analytics", NOW)

        assert len(result.violations) == 1
        violation = result.violations[0]
        assert violation.evaluator_id == "chatgpt"
        assert violation.drift == pytest.approx(1.5)
        assert result.new_weights["chatgpt"] == pytest.approx(1.25)
        assert "drifted" in caplog.text

    def test_normalize_all_records_residual_drift(self, normalizer):
        normalizer.set_consumer_weight("analytics", "chatgpt", 1.3)

        results = normalizer.normalize_all(NOW)

        assert [r.consumer_id for r in results] == ["analytics", "leaderboard"]
        assert normalizer.get_evaluator("chatgpt").drift_factor == pytest.approx(0.105)
        assert normalizer.get_evaluator("claude").drift_factor == 0.0
        assert len(normalizer.history()) == 2

    def test_normalization_factor_is_mean_weight(self, normalizer):
        result = normalizer.normalize("leaderboard", NOW)
        profile = normalizer.get_consumer("leaderboard")

        expected = sum(result.new_weights.values()) / len(result.new_weights)
        assert profile.normalization_factor == pytest.approx(expected)
        assert profile.last_normalized == NOW


class TestGlobalWeights:
    def test_performance_scales_weight(self, normalizer):
        updated = normalizer.update_global_weights(
            [
                PerformanceSample("chatgpt", 100.0),
                PerformanceSample("claude", 0.0),
                PerformanceSample("bing", 50.0),
            ],
            NOW,
        )

        assert updated["chatgpt"] == pytest.approx(1.2)
        assert updated["claude"] == pytest.approx(0.8)
        assert updated["bing"] == pytest.approx(0.8)

    def test_clamped_to_global_bounds(self):
        evaluators = default_evaluators(NOW)
        evaluators["chatgpt"] = evaluators["chatgpt"].copy(base_weight=2.0, current_weight=2.0)
        evaluators["duckduckgo"] = evaluators["duckduckgo"].copy(base_weight=0.3, current_weight=0.3)
        normalizer = WeightNormalizer(evaluators)

        updated = normalizer.update_global_weights(
            [PerformanceSample("chatgpt", 100.0), PerformanceSample("duckduckgo", 0.0)]
        )

        assert updated == {"chatgpt": 1.5, "duckduckgo": 0.5}

    def test_update_propagates_immediately(self, normalizer):
        normalizer.set_consumer_weight("analytics", "chatgpt", 1.7)

        normalizer.update_global_weights([PerformanceSample("chatgpt", 100.0, confidence=0.5)])

        for consumer_id in normalizer.consumer_ids():
            assert normalizer.consumer_weight(consumer_id, "chatgpt") == pytest.approx(1.2)
        assert normalizer.get_evaluator("chatgpt").confidence == 0.5
        assert normalizer.validate_consistency().is_consistent

    def test_unknown_evaluator_changes_nothing(self, normalizer):
        with pytest.raises(NotFoundError):
            normalizer.update_global_weights(
                [PerformanceSample("chatgpt", 100.0), PerformanceSample("ghost", 50.0)]
            )

        assert normalizer.global_weight("chatgpt") == 1.0

    def test_performance_out_of_range(self):
        with pytest.raises(ValidationError):
            PerformanceSample("chatgpt", 120.0)


class TestConsistency:
    def test_flags_deviation_beyond_tolerance(self, normalizer):
        normalizer.set_consumer_weight("analytics", "chatgpt", 1.3)
        normalizer.set_consumer_weight("analytics", "claude", 1.1)

        report = normalizer.validate_consistency()

        assert not report.is_consistent
        assert len(report.inconsistencies) == 1
        issue = report.inconsistencies[0]
        assert (issue.consumer_id, issue.evaluator_id) == ("analytics", "chatgpt")
        assert issue.deviation == pytest.approx(0.3)

    def test_validation_does_not_correct(self, normalizer):
        normalizer.set_consumer_weight("analytics", "chatgpt", 1.3)

        normalizer.validate_consistency()

        assert normalizer.consumer_weight("analytics", "chatgpt") == 1.3


class TestNormalizedScore:
    def test_missing_scores_excluded(self, normalizer):
        score = normalizer.calculate_normalized_score(
            "analytics", {"chatgpt": 80.0, "bing": 60.0, "claude": None}
        )

        # (80 * 1.0 + 60 * 0.8) / 1.8
        assert score == pytest.approx(71.111, abs=1e-3)

    def test_no_scores_raises(self, normalizer):
        with pytest.raises(ValidationError):
            normalizer.calculate_normalized_score("analytics", {"chatgpt": None})


class TestFactorWeights:
    def test_set_factor_weights_propagates(self, normalizer):
        weights = {"content_quality": 0.4, "authority": 0.2, "citations": 0.2, "schema": 0.2}

        updated = normalizer.set_factor_weights("chatgpt", weights, NOW)

        assert updated.factor_weights == weights
        assert updated.base_factor_weights["content_quality"] == 0.3
        assert normalizer.get_consumer("analytics").factor_weights["chatgpt"] == weights

    def test_invalid_factor_weights(self, normalizer):
        with pytest.raises(ValidationError):
            normalizer.set_factor_weights("chatgpt", {"schema": 1.5})

    def test_set_recency_sensitivity(self, normalizer):
        updated = normalizer.set_recency_sensitivity("claude", 0.2)

        assert updated.recency_sensitivity == 0.2
        assert normalizer.get_evaluator("claude").recency_sensitivity == 0.2

    def test_import_state_replaces_everything(self, normalizer):
        evaluators, consumers = normalizer.export_state()
        other = WeightNormalizer({"chatgpt": evaluators["chatgpt"]})

        other.import_state(evaluators, consumers)

        assert sorted(other.evaluators()) == sorted(evaluators)
        assert other.consumer_ids() == ["analytics", "leaderboard"]
