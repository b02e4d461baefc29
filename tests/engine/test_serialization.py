# tests/engine/test_serialization.py
"""Tests for persisting a full engine state through JsonStateStore."""
from datetime import datetime, timedelta

import pytest

from src.engine import serialization
from src.engine.context import EngineContext
from src.engine.ranking_engine import RankingEngine
from src.feedback.models import FeedbackRecord, OptimizationChange, Outcome
from src.models.measurement import Measurement, ValidationStatus
from src.state.state_store import JsonStateStore

NOW = datetime(2026, 1, 15, 12, 0)


@pytest.fixture
def populated_engine():
    engine = RankingEngine(EngineContext.create(now=NOW))
    engine.ingest(
        "https://example.com/a",
        "chatgpt",
        Measurement(
            category_scores={"technical": 80.0, "content": 75.0},
            factor_scores={"schema": 60.0},
            citation_count=3,
            answer_inclusion=True,
            confidence=0.9,
            content_age_days=40,
            measured_at=NOW - timedelta(days=1),
            validation_status=ValidationStatus.VALID,
            title="Guide",
        ),
    )
    engine.ingest(
        "https://example.com/b",
        "perplexity",
        Measurement(category_scores={"technical": 55.0}, measured_at=NOW),
    )
    for _ in range(5):
        engine.record_feedback(
            FeedbackRecord(
                "chatgpt", "https://example.com/a", 60.0, 70.0,
                changes=(OptimizationChange("schema", 0.4, description="added FAQ schema"),),
                timestamp=NOW,
            )
        )
    engine.context.normalizer.set_consumer_weight("analytics", "claude", 1.25)
    engine.rebuild_leaderboard(NOW)
    return engine


class TestStateRoundTrip:
    def test_state_survives_json_store(self, populated_engine, tmp_path):
        store = JsonStateStore(tmp_path / "state.json")
        store.save(populated_engine.export_state())

        restored = RankingEngine(EngineContext.create(now=NOW))
        restored.import_state(store.load())

        original = populated_engine.context
        copy = restored.context
        assert copy.entities.snapshot() == original.entities.snapshot()
        assert copy.feedback_log.snapshot() == original.feedback_log.snapshot()
        assert copy.leaderboard.snapshots() == original.leaderboard.snapshots()
        assert copy.history.export_points() == original.history.export_points()
        assert copy.normalizer.evaluators() == original.normalizer.evaluators()
        assert copy.normalizer.consumer_weight("analytics", "claude") == 1.25

    def test_restored_engine_keeps_working(self, populated_engine, tmp_path):
        store = JsonStateStore(tmp_path / "state.json")
        store.save(populated_engine.export_state())
        restored = RankingEngine(EngineContext.create(now=NOW))
        restored.import_state(store.load())

        result = restored.rebuild_leaderboard(NOW)

        assert result.snapshot.sequence == 2
        assert result.snapshot.entity_ids() == [
            e.entity_id for e in populated_engine.current_leaderboard()
        ]


class TestRecordConversion:
    def test_feedback_outcome_preserved(self):
        record = FeedbackRecord("claude", "x", 70.0, 60.0, outcome=Outcome.NEUTRAL, timestamp=NOW)

        restored = serialization.feedback_from_dict(serialization.feedback_to_dict(record))

        assert restored == record

    def test_entity_defaults_for_optional_fields(self):
        entity = serialization.entity_from_dict(
            {
                "entity_id": "x",
                "composite_score": 40.0,
                "last_updated": NOW.isoformat(),
            }
        )

        assert entity.url == "x"
        assert entity.rank == 0
        assert entity.evaluator_scores == {}
        assert entity.validation_status == ValidationStatus.UNKNOWN
