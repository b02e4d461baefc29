"""Settings for composite scoring and temporal decay."""
import math

from pydantic import BaseModel, Field, field_validator

from src.scoring.models import DEFAULT_CATEGORY_WEIGHTS


class ScoringSettings(BaseModel):
    """Configuration for the composite ScoreEngine.

    Attributes:
        category_weights: Category name -> weight (non-negative).
        excellent_threshold: Category score at or above which it is "excellent".
        good_threshold: Category score at or above which it is "good".
    """

    category_weights: dict[str, float] = Field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_WEIGHTS)
    )
    excellent_threshold: float = Field(default=80.0, ge=0.0, le=100.0)
    good_threshold: float = Field(default=60.0, ge=0.0, le=100.0)

    @field_validator("category_weights")
    @classmethod
    def validate_category_weights(cls, v: dict[str, float]) -> dict[str, float]:
        """Weights must be finite, non-negative and not all zero."""
        for name, weight in v.items():
            if not math.isfinite(weight) or weight < 0:
                raise ValueError(f"Invalid weight for category '{name}': {weight}")
        if not any(weight > 0 for weight in v.values()):
            raise ValueError("At least one category weight must be positive")
        return v


class DecaySettings(BaseModel):
    """Configuration for the TemporalDecayModel."""

    decay_period_days: float = Field(default=180.0, gt=0.0)
    max_degradation: float = Field(default=0.3, ge=0.0, le=1.0)
    max_samples_per_entity: int = Field(default=100, ge=1, le=10000)
