"""Settings for the weight normalizer."""
from pydantic import BaseModel, Field, model_validator


class NormalizerSettings(BaseModel):
    """Configuration for drift detection and correction.

    Attributes:
        drift_threshold: Relative drift above which a consumer weight is corrected.
        correction_strength: Fraction of the drift removed per pass.
        min_weight: Lower clamp for corrected consumer weights.
        max_weight: Upper clamp for corrected consumer weights.
        consistency_tolerance: Relative deviation flagged by validate_consistency.
        global_min_weight: Lower clamp for recomputed canonical weights.
        global_max_weight: Upper clamp for recomputed canonical weights.
        hard_drift_limit: Drift reported as a ConsistencyViolation.
        history_limit: Normalization results kept.
        default_consumers: Consumer id -> display name registered at startup.
    """

    drift_threshold: float = Field(default=0.1, ge=0.0)
    correction_strength: float = Field(default=0.5, gt=0.0, le=1.0)
    min_weight: float = Field(default=0.1, gt=0.0)
    max_weight: float = Field(default=2.0, gt=0.0)
    consistency_tolerance: float = Field(default=0.2, ge=0.0)
    global_min_weight: float = Field(default=0.5, gt=0.0)
    global_max_weight: float = Field(default=1.5, gt=0.0)
    hard_drift_limit: float = Field(default=1.0, gt=0.0)
    history_limit: int = Field(default=100, ge=1)
    default_consumers: dict[str, str] = Field(
        default_factory=lambda: {
            "leaderboard": "Leaderboard",
            "analytics": "Analytics",
            "authority": "Authority",
            "auditor": "Auditor",
            "citationflow": "CitationFlow",
            "querymind": "QueryMind",
        }
    )

    @model_validator(mode="after")
    def check_bounds(self) -> "NormalizerSettings":
        if self.min_weight > self.max_weight:
            raise ValueError("min_weight must not exceed max_weight")
        if self.global_min_weight > self.global_max_weight:
            raise ValueError("global_min_weight must not exceed global_max_weight")
        return self
