# tests/integration/test_ranking_pipeline.py
"""End-to-end flows through a single engine context."""
from datetime import datetime, timedelta

import pytest

from src.config.settings import Settings
from src.engine import EngineContext, RankingEngine
from src.feedback.models import FeedbackRecord, OptimizationChange
from src.models.evaluator import Evaluator
from src.models.measurement import Measurement
from src.state import JsonStateStore

NOW = datetime(2026, 1, 15, 12, 0)


def equal_factor_evaluator() -> Evaluator:
    return Evaluator(
        evaluator_id="engine-a",
        display_name="Engine A",
        group="a",
        base_weight=1.0,
        current_weight=1.0,
        confidence=0.9,
        recency_sensitivity=0.9,
        base_factor_weights={
            "content_quality": 0.25,
            "authority": 0.25,
            "citations": 0.25,
            "schema": 0.25,
        },
        last_updated=NOW,
    )


@pytest.fixture
def engine():
    settings = Settings()
    settings.feedback.auto_learn = False
    context = EngineContext.create(settings, evaluators={"engine-a": equal_factor_evaluator()})
    return RankingEngine(context)


class TestRankingPipeline:
    def test_consumer_drift_corrected_gradually(self, engine):
        engine.context.normalizer.set_consumer_weight("analytics", "engine-a", 1.3)

        result = engine.normalize("analytics", NOW)[0]

        assert result.new_weights["engine-a"] == pytest.approx(1.105)

    def test_feedback_shifts_factor_weight(self, engine):
        for i in range(6):
            engine.record_feedback(
                FeedbackRecord(
                    "engine-a", f"page-{i}", 55.0, 62.0,
                    changes=(OptimizationChange("schema", 0.25),),
                    timestamp=NOW,
                )
            )

        engine.recalibrate(NOW)

        weights = engine.get_evaluator("engine-a").factor_weights
        assert weights["schema"] == pytest.approx(0.275)
        for name in ("content_quality", "authority", "citations"):
            assert weights[name] == pytest.approx(0.25 - 0.025 / 3, abs=1e-4)

    def test_year_old_content_discounted(self, engine):
        entity = engine.ingest(
            "page",
            "engine-a",
            Measurement(category_scores={"content": 90.0}, content_age_days=365, measured_at=NOW),
        )

        assert entity.composite_score == pytest.approx(90.0 * 0.73)

    def test_stale_entity_pruned_from_history_and_leaderboard(self, engine):
        engine.ingest(
            "stale", "engine-a",
            Measurement(category_scores={"content": 90.0}, measured_at=NOW - timedelta(days=91)),
        )
        engine.ingest(
            "fresh", "engine-a",
            Measurement(category_scores={"content": 40.0}, measured_at=NOW - timedelta(days=3)),
        )
        assert engine.rebuild_leaderboard(NOW).snapshot.entity_ids() == ["stale", "fresh"]

        engine.prune(NOW)

        assert "stale" not in engine.context.history
        assert engine.rebuild_leaderboard(NOW).snapshot.entity_ids() == ["fresh"]

    def test_full_cycle_survives_restart(self, engine, tmp_path):
        for day in range(5):
            engine.ingest(
                "page", "engine-a",
                Measurement(
                    category_scores={"content": 60.0 + day * 5},
                    citation_count=day,
                    answer_inclusion=day > 2,
                    measured_at=NOW - timedelta(days=4 - day),
                ),
            )
        engine.rebuild_leaderboard(NOW)
        store = JsonStateStore(tmp_path / "engine.json")
        store.save(engine.export_state())

        restarted = RankingEngine(
            EngineContext.create(evaluators={"engine-a": equal_factor_evaluator()})
        )
        restarted.import_state(store.load())

        trend = restarted.get_trend("page", 30, NOW)
        assert trend.change_percent == pytest.approx(100.0 * (80.0 - 60.0) / 60.0)
        assert restarted.current_leaderboard()[0].entity_id == "page"
        assert restarted.get_entity("page").rank == 1
