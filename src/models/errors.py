"""Exception hierarchy for the ranking engine.

Callers can catch ``RankingError`` for anything raised by the engine, or a
specific subclass at the granularity they need.
"""


class RankingError(Exception):
    """Base exception for all ranking engine errors."""


class ValidationError(RankingError):
    """Raised for malformed numeric input (NaN, negative weight, out-of-range score)."""

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid value for '{field}' ({value!r}): {reason}")


class NotFoundError(RankingError):
    """Raised when an operation references an unknown evaluator, consumer or entity."""

    def __init__(self, kind: str, key: str):
        self.kind = kind
        self.key = key
        super().__init__(f"Unknown {kind}: '{key}'")


class InsufficientDataError(RankingError):
    """Raised when the feedback learner has fewer records than it needs.

    Non-fatal: the evaluator's weights stay as they were.
    """

    def __init__(self, evaluator_id: str, available: int, required: int):
        self.evaluator_id = evaluator_id
        self.available = available
        self.required = required
        super().__init__(
            f"Evaluator '{evaluator_id}' has {available} feedback records, "
            f"{required} required"
        )


class ConsistencyViolation(RankingError):
    """Drift beyond the hard correction limit.

    Reported inside normalization results, never raised by the normalizer.
    """

    def __init__(self, consumer_id: str, evaluator_id: str, drift: float, limit: float):
        self.consumer_id = consumer_id
        self.evaluator_id = evaluator_id
        self.drift = drift
        self.limit = limit
        super().__init__(
            f"Consumer '{consumer_id}' weight for '{evaluator_id}' drifted "
            f"{drift:.3f} (limit {limit:.3f})"
        )


class RebuildCancelled(RankingError):
    """Raised when a leaderboard rebuild is cancelled between chunks."""

    def __init__(self, processed: int, total: int):
        self.processed = processed
        self.total = total
        super().__init__(f"Leaderboard rebuild cancelled after {processed}/{total} entities")


def require_finite(field: str, value: float) -> float:
    """Return value as float, raising ValidationError for NaN/inf or non-numbers."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(field, value, "not a number") from None
    if number != number or number in (float("inf"), float("-inf")):
        raise ValidationError(field, value, "must be a finite number")
    return number


def require_range(field: str, value: float, low: float, high: float) -> float:
    """Return value if finite and within [low, high], else raise ValidationError."""
    number = require_finite(field, value)
    if number < low or number > high:
        raise ValidationError(field, value, f"must be within [{low}, {high}]")
    return number
