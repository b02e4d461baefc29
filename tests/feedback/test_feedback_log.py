# tests/feedback/test_feedback_log.py
"""Tests for the append-only FeedbackLog."""
from src.feedback.feedback_log import FeedbackLog
from src.feedback.models import FeedbackRecord


def record(evaluator_id="chatgpt", entity_id="page-1", after=60.0):
    return FeedbackRecord(evaluator_id, entity_id, 50.0, after)


class TestFeedbackLog:
    def test_append_returns_size(self):
        log = FeedbackLog()

        assert log.append(record()) == 1
        assert log.append(record()) == 2
        assert len(log) == 2

    def test_snapshot_is_point_in_time(self):
        log = FeedbackLog()
        log.append(record())

        snapshot = log.snapshot()
        log.append(record())

        assert len(snapshot) == 1
        assert len(log.snapshot()) == 2

    def test_epoch_advances_on_every_change(self):
        log = FeedbackLog()
        assert log.epoch == 0

        log.append(record())
        _, epoch = log.snapshot_with_epoch()
        assert epoch == 1

        log.remove_evaluator("chatgpt")
        assert log.epoch == 2

        log.replace_all([record()])
        assert log.epoch == 3

    def test_count_per_evaluator(self):
        log = FeedbackLog()
        log.append(record("chatgpt"))
        log.append(record("claude"))
        log.append(record("chatgpt"))

        assert log.count() == 3
        assert log.count("chatgpt") == 2
        assert [r.evaluator_id for r in log.for_evaluator("claude")] == ["claude"]

    def test_remove_evaluator(self):
        log = FeedbackLog([record("chatgpt"), record("claude")])

        assert log.remove_evaluator("chatgpt") == 1
        assert log.count("chatgpt") == 0
        assert log.count("claude") == 1
