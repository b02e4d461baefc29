"""Settings for leaderboard aggregation."""
from pydantic import BaseModel, Field, field_validator


class LeaderboardSettings(BaseModel):
    """Configuration for per-evaluator signal scoring and ranking.

    Attributes:
        consumer_id: Consumer whose normalized evaluator weights are applied.
        signal_weights: Weight of each signal (citation, inclusion,
            confidence, response_time).
        points_per_citation: Citation score per citation.
        max_citation_score: Cap on the citation score.
        response_time_divisor: Milliseconds per point lost on response time.
        min_score: Entities scoring below this are left out of the ranking.
        max_entries: Entries kept per snapshot.
        snapshot_limit: Snapshots retained.
        retention_days: Entities not measured for this long are pruned.
        citation_leader_threshold: Average citations marking a citation leader.
        inclusion_leader_threshold: Inclusion rate marking an inclusion leader.
        inclusion_majority: Inclusion share counted as "included".
        observation_window: Recent observations averaged per evaluator.
        chunk_size: Entities scored between cancellation checks.
    """

    consumer_id: str = "leaderboard"
    signal_weights: dict[str, float] = Field(
        default_factory=lambda: {
            "citation": 0.3,
            "inclusion": 0.4,
            "confidence": 0.2,
            "response_time": 0.1,
        }
    )
    points_per_citation: float = Field(default=10.0, gt=0.0)
    max_citation_score: float = Field(default=100.0, gt=0.0, le=100.0)
    response_time_divisor: float = Field(default=100.0, gt=0.0)
    min_score: float = Field(default=0.0, ge=0.0, le=100.0)
    max_entries: int = Field(default=100, ge=1)
    snapshot_limit: int = Field(default=30, ge=1)
    retention_days: int = Field(default=90, ge=1)
    citation_leader_threshold: float = Field(default=5.0, ge=0.0)
    inclusion_leader_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    inclusion_majority: float = Field(default=0.5, ge=0.0, le=1.0)
    observation_window: int = Field(default=10, ge=1)
    chunk_size: int = Field(default=500, ge=1)

    @field_validator("signal_weights")
    @classmethod
    def check_signal_weights(cls, v: dict[str, float]) -> dict[str, float]:
        allowed = {"citation", "inclusion", "confidence", "response_time"}
        unknown = set(v) - allowed
        if unknown:
            raise ValueError(f"unknown signals: {sorted(unknown)}")
        if any(w < 0 for w in v.values()) or not any(w > 0 for w in v.values()):
            raise ValueError("signal weights must be non-negative with at least one positive")
        return v
