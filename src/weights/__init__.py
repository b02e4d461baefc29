"""Canonical evaluator weights and per-consumer drift correction."""

from .models import (
    ConsistencyReport,
    ConsumerWeightProfile,
    EvaluatorWeight,
    Inconsistency,
    NormalizationResult,
    PerformanceSample,
)
from .settings import NormalizerSettings
from .weight_normalizer import WeightNormalizer

__all__ = [
    "ConsistencyReport",
    "ConsumerWeightProfile",
    "EvaluatorWeight",
    "Inconsistency",
    "NormalizationResult",
    "NormalizerSettings",
    "PerformanceSample",
    "WeightNormalizer",
]
