# tests/models/test_errors.py
"""Tests for the engine exception hierarchy and numeric guards."""
import math

import pytest

from src.models.errors import (
    ConsistencyViolation,
    InsufficientDataError,
    NotFoundError,
    RankingError,
    RebuildCancelled,
    ValidationError,
    require_finite,
    require_range,
)


class TestErrors:
    def test_all_errors_share_base(self):
        for error in (
            ValidationError("x", 1, "bad"),
            NotFoundError("evaluator", "nope"),
            InsufficientDataError("chatgpt", 2, 5),
            ConsistencyViolation("analytics", "chatgpt", 1.5, 1.0),
            RebuildCancelled(10, 100),
        ):
            assert isinstance(error, RankingError)

    def test_validation_error_fields(self):
        error = ValidationError("score", -1, "must be within [0, 100]")

        assert error.field == "score"
        assert error.value == -1
        assert "score" in str(error)

    def test_not_found_message(self):
        error = NotFoundError("consumer", "ghost")

        assert error.kind == "consumer"
        assert error.key == "ghost"
        assert str(error) == "Unknown consumer: 'ghost'"

    def test_insufficient_data_counts(self):
        error = InsufficientDataError("claude", 3, 5)

        assert error.available == 3
        assert error.required == 5


class TestGuards:
    def test_require_finite_accepts_numbers(self):
        assert require_finite("x", 3) == 3.0
        assert isinstance(require_finite("x", 3), float)

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf, "abc", None])
    def test_require_finite_rejects(self, value):
        with pytest.raises(ValidationError):
            require_finite("x", value)

    def test_require_range_bounds_inclusive(self):
        assert require_range("x", 0, 0.0, 100.0) == 0.0
        assert require_range("x", 100, 0.0, 100.0) == 100.0

    def test_require_range_rejects_outside(self):
        with pytest.raises(ValidationError):
            require_range("x", 100.1, 0.0, 100.0)
        with pytest.raises(ValidationError):
            require_range("x", -0.1, 0.0, 100.0)
