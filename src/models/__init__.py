"""Core data model shared by every engine component."""

from src.models.errors import (
    ConsistencyViolation,
    InsufficientDataError,
    NotFoundError,
    RankingError,
    RebuildCancelled,
    ValidationError,
)
from src.models.evaluator import FACTOR_KEYS, Evaluator, default_evaluators
from src.models.measurement import LeaderboardSignals, Measurement, ValidationStatus
from src.models.scored_entity import EntityFailure, EvaluatorSubScore, ScoredEntity

__all__ = [
    "ConsistencyViolation",
    "EntityFailure",
    "Evaluator",
    "EvaluatorSubScore",
    "FACTOR_KEYS",
    "InsufficientDataError",
    "LeaderboardSignals",
    "Measurement",
    "NotFoundError",
    "RankingError",
    "RebuildCancelled",
    "ScoredEntity",
    "ValidationError",
    "ValidationStatus",
    "default_evaluators",
]
