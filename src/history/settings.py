"""Settings for score history tracking."""
from pydantic import BaseModel, Field


class HistorySettings(BaseModel):
    """Configuration for score history and trend classification.

    Attributes:
        max_points_per_entity: Points kept per entity (oldest dropped).
        trend_threshold_percent: Change beyond which a trend is not stable.
        default_window_days: Default trend window.
        top_movers: Movers listed in the summary.
        common_issues: Issues listed in the summary.
        low_score_threshold: Score below which a point counts as low.
    """

    max_points_per_entity: int = Field(default=100, ge=2)
    trend_threshold_percent: float = Field(default=5.0, ge=0.0)
    default_window_days: int = Field(default=30, ge=1)
    top_movers: int = Field(default=5, ge=0)
    common_issues: int = Field(default=5, ge=0)
    low_score_threshold: float = Field(default=70.0, ge=0.0, le=100.0)
