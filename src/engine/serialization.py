"""Conversion between engine models and JSON-safe dicts.

Datetimes are written as ISO-8601 strings and enums as their values.
"""
from datetime import datetime

from src.feedback.models import FeedbackRecord, OptimizationChange, Outcome
from src.history.models import ScoreHistoryPoint
from src.leaderboard.models import (
    EvaluatorScore,
    Highlights,
    LeaderboardEntry,
    LeaderboardSnapshot,
)
from src.models.evaluator import Evaluator
from src.models.measurement import LeaderboardSignals, ValidationStatus
from src.models.scored_entity import EvaluatorSubScore, ScoredEntity
from src.weights.models import ConsumerWeightProfile, EvaluatorWeight


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


# Evaluators and consumers

def evaluator_to_dict(evaluator: Evaluator) -> dict:
    return {
        "evaluator_id": evaluator.evaluator_id,
        "display_name": evaluator.display_name,
        "group": evaluator.group,
        "base_weight": evaluator.base_weight,
        "current_weight": evaluator.current_weight,
        "confidence": evaluator.confidence,
        "recency_sensitivity": evaluator.recency_sensitivity,
        "base_factor_weights": dict(evaluator.base_factor_weights),
        "factor_weights": dict(evaluator.factor_weights),
        "drift_factor": evaluator.drift_factor,
        "last_updated": _dt(evaluator.last_updated),
    }


def evaluator_from_dict(data: dict) -> Evaluator:
    return Evaluator(
        evaluator_id=data["evaluator_id"],
        display_name=data.get("display_name", data["evaluator_id"]),
        group=data.get("group", data["evaluator_id"]),
        base_weight=data["base_weight"],
        current_weight=data.get("current_weight", data["base_weight"]),
        confidence=data.get("confidence", 1.0),
        recency_sensitivity=data["recency_sensitivity"],
        base_factor_weights=data["base_factor_weights"],
        factor_weights=data.get("factor_weights", {}),
        drift_factor=data.get("drift_factor", 0.0),
        last_updated=_parse_dt(data.get("last_updated")) or datetime.now(),
    )


def consumer_to_dict(profile: ConsumerWeightProfile) -> dict:
    return {
        "consumer_id": profile.consumer_id,
        "display_name": profile.display_name,
        "weights": [
            {
                "evaluator_id": w.evaluator_id,
                "weight": w.weight,
                "confidence": w.confidence,
                "drift_factor": w.drift_factor,
                "last_updated": _dt(w.last_updated),
            }
            for _, w in sorted(profile.weights.items())
        ],
        "factor_weights": {k: dict(v) for k, v in sorted(profile.factor_weights.items())},
        "normalization_factor": profile.normalization_factor,
        "last_normalized": _dt(profile.last_normalized),
    }


def consumer_from_dict(data: dict) -> ConsumerWeightProfile:
    weights = {}
    for w in data.get("weights", []):
        weights[w["evaluator_id"]] = EvaluatorWeight(
            evaluator_id=w["evaluator_id"],
            weight=w["weight"],
            confidence=w.get("confidence", 1.0),
            drift_factor=w.get("drift_factor", 0.0),
            last_updated=_parse_dt(w.get("last_updated")) or datetime.now(),
        )
    return ConsumerWeightProfile(
        consumer_id=data["consumer_id"],
        display_name=data.get("display_name", data["consumer_id"]),
        weights=weights,
        factor_weights={k: dict(v) for k, v in data.get("factor_weights", {}).items()},
        normalization_factor=data.get("normalization_factor", 1.0),
        last_normalized=_parse_dt(data.get("last_normalized")) or datetime.now(),
    )


# Entities

def _signals_to_dict(signals: LeaderboardSignals) -> dict:
    return {
        "observed_at": _dt(signals.observed_at),
        "citation_count": signals.citation_count,
        "answer_inclusion": signals.answer_inclusion,
        "confidence": signals.confidence,
        "response_time_ms": signals.response_time_ms,
    }


def _signals_from_dict(data: dict) -> LeaderboardSignals:
    return LeaderboardSignals(
        observed_at=_parse_dt(data["observed_at"]),
        citation_count=data.get("citation_count"),
        answer_inclusion=data.get("answer_inclusion"),
        confidence=data.get("confidence"),
        response_time_ms=data.get("response_time_ms"),
    )


def entity_to_dict(entity: ScoredEntity) -> dict:
    return {
        "entity_id": entity.entity_id,
        "url": entity.url,
        "title": entity.title,
        "composite_score": entity.composite_score,
        "last_updated": _dt(entity.last_updated),
        "rank": entity.rank,
        "daily_change": entity.daily_change,
        "weekly_change": entity.weekly_change,
        "monthly_change": entity.monthly_change,
        "validation_status": entity.validation_status.value,
        "evaluator_scores": [
            {
                "evaluator_id": sub.evaluator_id,
                "raw_score": sub.raw_score,
                "adjusted_score": sub.adjusted_score,
                "category_breakdown": dict(sub.category_breakdown),
                "factor_breakdown": dict(sub.factor_breakdown),
                "content_age_days": sub.content_age_days,
                "measured_at": _dt(sub.measured_at),
                "observations": [_signals_to_dict(o) for o in sub.observations],
            }
            for _, sub in sorted(entity.evaluator_scores.items())
        ],
    }


def entity_from_dict(data: dict) -> ScoredEntity:
    subs = {}
    for sub in data.get("evaluator_scores", []):
        subs[sub["evaluator_id"]] = EvaluatorSubScore(
            evaluator_id=sub["evaluator_id"],
            raw_score=sub.get("raw_score"),
            adjusted_score=sub.get("adjusted_score"),
            category_breakdown=dict(sub.get("category_breakdown", {})),
            factor_breakdown=dict(sub.get("factor_breakdown", {})),
            content_age_days=sub.get("content_age_days", 0.0),
            measured_at=_parse_dt(sub["measured_at"]),
            observations=tuple(_signals_from_dict(o) for o in sub.get("observations", [])),
        )
    return ScoredEntity(
        entity_id=data["entity_id"],
        url=data.get("url", data["entity_id"]),
        title=data.get("title", ""),
        evaluator_scores=subs,
        composite_score=data.get("composite_score"),
        last_updated=_parse_dt(data["last_updated"]),
        rank=data.get("rank", 0),
        daily_change=data.get("daily_change", 0.0),
        weekly_change=data.get("weekly_change", 0.0),
        monthly_change=data.get("monthly_change", 0.0),
        validation_status=ValidationStatus(data.get("validation_status", "unknown")),
    )


# Feedback

def feedback_to_dict(record: FeedbackRecord) -> dict:
    return {
        "evaluator_id": record.evaluator_id,
        "entity_id": record.entity_id,
        "before_score": record.before_score,
        "after_score": record.after_score,
        "changes": [
            {
                "change_type": c.change_type,
                "impact": c.impact,
                "applied": c.applied,
                "description": c.description,
            }
            for c in record.changes
        ],
        "timestamp": _dt(record.timestamp),
        "outcome": record.outcome.value,
        "confidence": record.confidence,
    }


def feedback_from_dict(data: dict) -> FeedbackRecord:
    return FeedbackRecord(
        evaluator_id=data["evaluator_id"],
        entity_id=data["entity_id"],
        before_score=data["before_score"],
        after_score=data["after_score"],
        changes=tuple(
            OptimizationChange(
                change_type=c["change_type"],
                impact=c["impact"],
                applied=c.get("applied", True),
                description=c.get("description", ""),
            )
            for c in data.get("changes", [])
        ),
        timestamp=_parse_dt(data.get("timestamp")) or datetime.now(),
        outcome=Outcome(data["outcome"]) if data.get("outcome") else None,
        confidence=data.get("confidence", 1.0),
    )


# Leaderboard snapshots

def snapshot_to_dict(snapshot: LeaderboardSnapshot) -> dict:
    return {
        "sequence": snapshot.sequence,
        "created_at": _dt(snapshot.created_at),
        "scored_count": snapshot.scored_count,
        "entries": [
            {
                "rank": e.rank,
                "entity_id": e.entity_id,
                "url": e.url,
                "title": e.title,
                "score": e.score,
                "last_updated": _dt(e.last_updated),
                "daily_change": e.daily_change,
                "weekly_change": e.weekly_change,
                "monthly_change": e.monthly_change,
                "highlights": {
                    "top_evaluator": e.highlights.top_evaluator,
                    "best_group": e.highlights.best_group,
                    "citation_leader": e.highlights.citation_leader,
                    "inclusion_leader": e.highlights.inclusion_leader,
                },
                "evaluator_scores": [
                    {
                        "evaluator_id": s.evaluator_id,
                        "group": s.group,
                        "score": s.score,
                        "weight": s.weight,
                        "citation_count": s.citation_count,
                        "answer_inclusion": s.answer_inclusion,
                        "confidence": s.confidence,
                        "response_time_ms": s.response_time_ms,
                        "observation_count": s.observation_count,
                        "last_seen": _dt(s.last_seen),
                    }
                    for s in e.evaluator_scores
                ],
            }
            for e in snapshot.entries
        ],
    }


def snapshot_from_dict(data: dict) -> LeaderboardSnapshot:
    entries = []
    for e in data.get("entries", []):
        scores = tuple(
            EvaluatorScore(
                evaluator_id=s["evaluator_id"],
                group=s["group"],
                score=s["score"],
                weight=s["weight"],
                citation_count=s.get("citation_count"),
                answer_inclusion=s.get("answer_inclusion"),
                confidence=s.get("confidence"),
                response_time_ms=s.get("response_time_ms"),
                observation_count=s.get("observation_count", 0),
                last_seen=_parse_dt(s["last_seen"]),
            )
            for s in e.get("evaluator_scores", [])
        )
        entries.append(
            LeaderboardEntry(
                rank=e["rank"],
                entity_id=e["entity_id"],
                url=e.get("url", e["entity_id"]),
                title=e.get("title", ""),
                score=e["score"],
                evaluator_scores=scores,
                highlights=Highlights(**e["highlights"]),
                last_updated=_parse_dt(e["last_updated"]),
                daily_change=e.get("daily_change", 0.0),
                weekly_change=e.get("weekly_change", 0.0),
                monthly_change=e.get("monthly_change", 0.0),
            )
        )
    return LeaderboardSnapshot(
        sequence=data["sequence"],
        created_at=_parse_dt(data["created_at"]),
        entries=tuple(entries),
        scored_count=data.get("scored_count", len(entries)),
    )


# Score history

def history_point_to_dict(point: ScoreHistoryPoint) -> dict:
    return {
        "entity_id": point.entity_id,
        "timestamp": _dt(point.timestamp),
        "composite_score": point.composite_score,
        "sub_scores": dict(point.sub_scores),
        "validation_status": point.validation_status.value,
    }


def history_point_from_dict(data: dict) -> ScoreHistoryPoint:
    return ScoreHistoryPoint(
        entity_id=data["entity_id"],
        timestamp=_parse_dt(data["timestamp"]),
        composite_score=data["composite_score"],
        sub_scores=dict(data.get("sub_scores", {})),
        validation_status=ValidationStatus(data.get("validation_status", "unknown")),
    )
