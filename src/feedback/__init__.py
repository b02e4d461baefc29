"""Outcome feedback log and factor weight learning."""

from .feedback_learner import FeedbackLearner
from .feedback_log import FeedbackLog
from .models import (
    FeedbackRecord,
    LearningMetrics,
    LearningResult,
    OptimizationChange,
    Outcome,
)
from .settings import FeedbackSettings

__all__ = [
    "FeedbackLearner",
    "FeedbackLog",
    "FeedbackRecord",
    "FeedbackSettings",
    "LearningMetrics",
    "LearningResult",
    "OptimizationChange",
    "Outcome",
]
