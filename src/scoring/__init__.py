"""Composite scoring and temporal decay."""

from .models import DEFAULT_CATEGORY_WEIGHTS, Category, CompositeResult, DecaySample
from .score_engine import ScoreEngine
from .settings import DecaySettings, ScoringSettings
from .temporal_decay import TemporalDecayModel

__all__ = [
    "Category",
    "CompositeResult",
    "DEFAULT_CATEGORY_WEIGHTS",
    "DecaySample",
    "DecaySettings",
    "ScoreEngine",
    "ScoringSettings",
    "TemporalDecayModel",
]
