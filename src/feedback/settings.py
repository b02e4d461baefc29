"""Settings for the feedback learner."""
from pydantic import BaseModel, Field


class FeedbackSettings(BaseModel):
    """Configuration for outcome-driven factor weight learning.

    Attributes:
        learning_rate: Fraction of the average impact added to a factor weight.
        min_data_points: Records needed before an evaluator is adjusted.
        significance_threshold: Average impact a change type must exceed.
        min_factor_weight: Floor for factors that give up weight.
        change_type_mapping: Change type -> factor name it strengthens.
        auto_learn: Run a learning pass for an evaluator on RecordFeedback
            once it has min_data_points records.
    """

    learning_rate: float = Field(default=0.1, ge=0.01, le=0.5)
    min_data_points: int = Field(default=5, ge=1)
    significance_threshold: float = Field(default=0.1, ge=0.0, le=1.0)
    min_factor_weight: float = Field(default=0.1, ge=0.0, le=1.0)
    change_type_mapping: dict[str, str] = Field(
        default_factory=lambda: {
            "schema": "schema",
            "content": "content_quality",
            "authority": "authority",
            "citations": "citations",
        }
    )
    auto_learn: bool = True
