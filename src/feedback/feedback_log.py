"""Append-only feedback log with point-in-time snapshots."""
import logging
import threading

from src.feedback.models import FeedbackRecord

logger = logging.getLogger(__name__)


class FeedbackLog:
    """Append-only log of FeedbackRecords.

    snapshot() returns an immutable tuple, so a recalibration pass never sees
    records appended after it started. The epoch increases on every append,
    reset or replacement and identifies the log version a pass worked on.
    """

    def __init__(self, records: list[FeedbackRecord] | None = None) -> None:
        self._records: list[FeedbackRecord] = list(records or [])
        self._epoch = 0
        self._lock = threading.Lock()

    @property
    def epoch(self) -> int:
        with self._lock:
            return self._epoch

    def append(self, record: FeedbackRecord) -> int:
        """Append a record.

        Returns:
            Number of records in the log after the append.
        """
        with self._lock:
            self._records.append(record)
            self._epoch += 1
            size = len(self._records)
        logger.info(
            f"Recorded feedback for {record.evaluator_id} on {record.entity_id}: "
            f"{record.before_score:.1f} -> {record.after_score:.1f} ({record.outcome.value})"
        )
        return size

    def snapshot(self) -> tuple[FeedbackRecord, ...]:
        """Point-in-time copy of the whole log."""
        with self._lock:
            return tuple(self._records)

    def snapshot_with_epoch(self) -> tuple[tuple[FeedbackRecord, ...], int]:
        """Point-in-time copy of the log and the epoch it was taken at."""
        with self._lock:
            return tuple(self._records), self._epoch

    def for_evaluator(self, evaluator_id: str) -> list[FeedbackRecord]:
        """Records of one evaluator, in append order."""
        return [r for r in self.snapshot() if r.evaluator_id == evaluator_id]

    def count(self, evaluator_id: str | None = None) -> int:
        """Total records, or records of one evaluator."""
        if evaluator_id is None:
            return len(self)
        return len(self.for_evaluator(evaluator_id))

    def remove_evaluator(self, evaluator_id: str) -> int:
        """Drop every record of an evaluator (explicit learning reset).

        Returns:
            Number of records removed.
        """
        with self._lock:
            before = len(self._records)
            self._records = [r for r in self._records if r.evaluator_id != evaluator_id]
            removed = before - len(self._records)
            self._epoch += 1
        logger.info(f"Removed {removed} feedback records for {evaluator_id}")
        return removed

    def replace_all(self, records: list[FeedbackRecord]) -> None:
        """Replace the log (used when importing persisted state)."""
        with self._lock:
            self._records = list(records)
            self._epoch += 1

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)
