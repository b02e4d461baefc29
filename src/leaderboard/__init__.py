"""Leaderboard aggregation and snapshots."""

from .leaderboard import Leaderboard, append_observation
from .models import (
    EvaluatorScore,
    Highlights,
    LeaderboardEntry,
    LeaderboardSnapshot,
    PerformanceMetrics,
    RebuildResult,
)
from .settings import LeaderboardSettings

__all__ = [
    "EvaluatorScore",
    "Highlights",
    "Leaderboard",
    "LeaderboardEntry",
    "LeaderboardSettings",
    "LeaderboardSnapshot",
    "PerformanceMetrics",
    "RebuildResult",
    "append_observation",
]
