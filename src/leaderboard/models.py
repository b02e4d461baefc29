"""Data models for leaderboard aggregation."""
from dataclasses import dataclass, field
from datetime import datetime

from src.models.scored_entity import EntityFailure


@dataclass(frozen=True)
class EvaluatorScore:
    """Leaderboard score of one entity from one evaluator.

    Signal fields hold averages over the recent observation window, or None
    when the evaluator never reported that signal.

    Attributes:
        evaluator_id: Evaluator scored.
        group: Evaluator group (vendor).
        score: Weighted signal score times the evaluator weight (0-100).
        weight: Normalized evaluator weight applied.
        citation_count: Average citations.
        answer_inclusion: True if the entity was included in most answers.
        confidence: Average answer confidence (0-1).
        response_time_ms: Average response time.
        observation_count: Observations the signals were averaged over.
        last_seen: Latest measurement time.
    """

    evaluator_id: str
    group: str
    score: float
    weight: float
    citation_count: float | None
    answer_inclusion: bool | None
    confidence: float | None
    response_time_ms: float | None
    observation_count: int
    last_seen: datetime


@dataclass(frozen=True)
class Highlights:
    """Arg-max and threshold highlights of one leaderboard entry."""

    top_evaluator: str
    best_group: str
    citation_leader: bool
    inclusion_leader: bool


@dataclass(frozen=True)
class LeaderboardEntry:
    """One ranked entity."""

    rank: int
    entity_id: str
    url: str
    title: str
    score: float
    evaluator_scores: tuple[EvaluatorScore, ...]
    highlights: Highlights
    last_updated: datetime
    daily_change: float = 0.0
    weekly_change: float = 0.0
    monthly_change: float = 0.0


@dataclass(frozen=True)
class LeaderboardSnapshot:
    """Immutable result of one aggregation run.

    Attributes:
        sequence: Monotonic run number.
        created_at: When the run finished.
        entries: Ranked entries, best first.
        scored_count: Entities scored (before min_score and max_entries).
    """

    sequence: int
    created_at: datetime
    entries: tuple[LeaderboardEntry, ...]
    scored_count: int

    def entity_ids(self) -> list[str]:
        """Entity ids in rank order."""
        return [entry.entity_id for entry in self.entries]


@dataclass
class PerformanceMetrics:
    """Aggregate metrics over all entities scored in a run.

    Attributes:
        total_entities: Entities scored.
        average_score: Mean entity score.
        top_performer: Entity with the highest score.
        most_improved: Entity with the largest daily change.
        evaluator_breakdown: Evaluator id -> entities it scored.
        group_breakdown: Evaluator group -> evaluator scores contributed.
    """

    total_entities: int = 0
    average_score: float = 0.0
    top_performer: str = ""
    most_improved: str = ""
    evaluator_breakdown: dict[str, int] = field(default_factory=dict)
    group_breakdown: dict[str, int] = field(default_factory=dict)


@dataclass
class RebuildResult:
    """Snapshot, metrics and per-entity failures of one rebuild."""

    snapshot: LeaderboardSnapshot
    metrics: PerformanceMetrics
    failures: list[EntityFailure] = field(default_factory=list)
