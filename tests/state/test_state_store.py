# tests/state/test_state_store.py
"""Tests for JSON state persistence."""
import json

import pytest

from src.state.state_store import COLLECTIONS, JsonStateStore


def empty_state():
    return {name: [] for name in COLLECTIONS}


class TestJsonStateStore:
    def test_creates_parent_directory(self, tmp_path):
        store = JsonStateStore(tmp_path / "nested" / "state.json")

        assert (tmp_path / "nested").is_dir()
        assert not store.exists()

    def test_load_missing_returns_none(self, tmp_path):
        assert JsonStateStore(tmp_path / "state.json").load() is None

    def test_save_and_load(self, tmp_path):
        store = JsonStateStore(tmp_path / "state.json")
        state = empty_state()
        state["feedback_log"] = [{"evaluator_id": "chatgpt"}]

        store.save(state)
        loaded = store.load()

        assert loaded["feedback_log"] == [{"evaluator_id": "chatgpt"}]
        assert set(loaded) == set(COLLECTIONS)
        assert "saved_at" in json.loads(store.path.read_text())
        assert not store.path.with_suffix(".json.tmp").exists()

    def test_save_requires_every_collection(self, tmp_path):
        store = JsonStateStore(tmp_path / "state.json")
        state = empty_state()
        del state["score_history"]

        with pytest.raises(ValueError, match="score_history"):
            store.save(state)
        assert not store.exists()

    def test_missing_collection_loads_empty(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"evaluators": [{"evaluator_id": "claude"}]}))

        loaded = JsonStateStore(path).load()

        assert loaded["evaluators"] == [{"evaluator_id": "claude"}]
        assert loaded["leaderboard_snapshots"] == []
