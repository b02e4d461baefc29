"""Evaluator model: one scoring perspective with its own factor weights."""
from dataclasses import dataclass, field, replace
from datetime import datetime

from src.models.errors import ValidationError, require_range


FACTOR_KEYS = ("content_quality", "authority", "citations", "schema")

DEFAULT_RECENCY_SENSITIVITY = 0.7


def validate_factor_weights(weights: dict[str, float], field_name: str = "factor_weights") -> dict[str, float]:
    """Validate a factor weight mapping and return a float copy.

    Args:
        weights: Mapping of factor name to weight.
        field_name: Name used in error messages.

    Returns:
        New dict with every weight as float.

    Raises:
        ValidationError: If the mapping is empty or any weight is NaN or
            outside [0, 1].
    """
    if not weights:
        raise ValidationError(field_name, weights, "at least one factor is required")
    return {
        name: require_range(f"{field_name}.{name}", value, 0.0, 1.0)
        for name, value in weights.items()
    }


@dataclass
class Evaluator:
    """A scoring perspective (for example one AI answer engine).

    Attributes:
        evaluator_id: Stable identifier (e.g. "perplexity").
        display_name: Human-readable name.
        group: Vendor/group the evaluator belongs to, used for highlights.
        base_weight: Weight the evaluator was created with.
        current_weight: Canonical weight after global updates.
        confidence: Confidence in the current weight (0-1).
        recency_sensitivity: How strongly content age discounts scores (0-1).
        base_factor_weights: Factor weights before any feedback learning.
        factor_weights: Factor weights after the latest learning pass.
        drift_factor: Latest observed drift of consumer copies from this weight.
        last_updated: When any weight last changed.
    """

    evaluator_id: str
    display_name: str
    group: str
    base_weight: float
    current_weight: float
    confidence: float
    recency_sensitivity: float
    base_factor_weights: dict[str, float]
    factor_weights: dict[str, float] = field(default_factory=dict)
    drift_factor: float = 0.0
    last_updated: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        self.base_weight = require_range("base_weight", self.base_weight, 0.0, 10.0)
        if self.base_weight == 0.0:
            raise ValidationError("base_weight", self.base_weight, "must be positive")
        self.current_weight = require_range("current_weight", self.current_weight, 0.0, 10.0)
        if self.current_weight == 0.0:
            raise ValidationError("current_weight", self.current_weight, "must be positive")
        self.confidence = require_range("confidence", self.confidence, 0.0, 1.0)
        self.recency_sensitivity = require_range(
            "recency_sensitivity", self.recency_sensitivity, 0.0, 1.0
        )
        self.base_factor_weights = validate_factor_weights(
            self.base_factor_weights, "base_factor_weights"
        )
        if not self.factor_weights:
            self.factor_weights = dict(self.base_factor_weights)
        else:
            self.factor_weights = validate_factor_weights(self.factor_weights)

    @property
    def factor_total(self) -> float:
        """Sum of the current factor weights."""
        return sum(self.factor_weights.values())

    def copy(self, **changes) -> "Evaluator":
        """Return an independent copy, optionally with fields replaced."""
        changes.setdefault("base_factor_weights", dict(self.base_factor_weights))
        changes.setdefault("factor_weights", dict(self.factor_weights))
        return replace(self, **changes)


# (id, display name, group, base weight, confidence, recency sensitivity, factor weights)
_DEFAULT_EVALUATOR_TABLE = [
    ("chatgpt", "ChatGPT", "openai", 1.0, 0.95, 0.7,
     {"content_quality": 0.3, "authority": 0.25, "citations": 0.25, "schema": 0.2}),
    ("claude", "Claude", "anthropic", 1.0, 0.95, 0.5,
     {"content_quality": 0.35, "authority": 0.3, "citations": 0.2, "schema": 0.15}),
    ("perplexity", "Perplexity", "perplexity", 1.0, 0.90, 0.9,
     {"content_quality": 0.25, "authority": 0.2, "citations": 0.35, "schema": 0.2}),
    ("google_ai", "Google AI", "google", 1.0, 0.92, 0.8,
     {"content_quality": 0.2, "authority": 0.3, "citations": 0.2, "schema": 0.3}),
    ("bing", "Bing AI", "microsoft", 0.8, 0.85, 0.7,
     {"content_quality": 0.3, "authority": 0.25, "citations": 0.25, "schema": 0.2}),
    ("duckduckgo", "DuckDuckGo", "duckduckgo", 0.7, 0.80, DEFAULT_RECENCY_SENSITIVITY,
     {"content_quality": 0.3, "authority": 0.25, "citations": 0.25, "schema": 0.2}),
]


def default_evaluators(now: datetime | None = None) -> dict[str, Evaluator]:
    """Build the default evaluator set keyed by evaluator id.

    Args:
        now: Timestamp to stamp as last_updated. Defaults to datetime.now().

    Returns:
        Fresh Evaluator instances; callers may mutate them freely.
    """
    now = now or datetime.now()
    evaluators: dict[str, Evaluator] = {}
    for evaluator_id, name, group, weight, confidence, sensitivity, factors in _DEFAULT_EVALUATOR_TABLE:
        evaluators[evaluator_id] = Evaluator(
            evaluator_id=evaluator_id,
            display_name=name,
            group=group,
            base_weight=weight,
            current_weight=weight,
            confidence=confidence,
            recency_sensitivity=sensitivity,
            base_factor_weights=dict(factors),
            last_updated=now,
        )
    return evaluators
