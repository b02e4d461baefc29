"""Score history and trend analysis."""

from .models import CommonIssue, HistorySummary, Mover, ScoreHistoryPoint, Trend, TrendResult
from .score_history import ScoreHistory
from .settings import HistorySettings

__all__ = [
    "CommonIssue",
    "HistorySettings",
    "HistorySummary",
    "Mover",
    "ScoreHistory",
    "ScoreHistoryPoint",
    "Trend",
    "TrendResult",
]
