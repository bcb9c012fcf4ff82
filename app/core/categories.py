"""
Shared behavior-category table.

The single source of truth for how a behavior label is classified.
Aggregator, risk scorer and every detector import from here; no other
module keeps its own category list.

  POSITIVE / NEGATIVE   - polarity partition, anything else is NEUTRAL
  CRITICAL              - incidents that need an immediate response
  RISK_TIERS            - per-event weight used by the risk scorer
"""
from __future__ import annotations

import enum


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------

class Polarity(str, enum.Enum):
    positive = "positive"
    negative = "negative"
    neutral = "neutral"


class ArtifactKind(str, enum.Enum):
    insight = "insight"
    prediction = "prediction"
    suggestion = "suggestion"


class Priority(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class SignalKind(str, enum.Enum):
    """What a detector found. Presentation maps kind → icon/colour."""
    pattern = "pattern"
    intervention = "intervention"
    curriculum = "curriculum"
    scheduling = "scheduling"
    alert = "alert"
    opportunity = "opportunity"
    warning = "warning"
    urgent = "urgent"
    safety = "safety"
    prevention = "prevention"


class RiskLevel(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"


# ---------------------------------------------------------------------------
# Category partitions
# ---------------------------------------------------------------------------

UNKNOWN_CATEGORY = "other"

POSITIVE: frozenset[str] = frozenset({
    "excellent_work",
    "class_participation",
    "helping_others",
    "leadership",
    "creativity",
    "respectful",
    "organized",
    "teamwork",
})

NEGATIVE: frozenset[str] = frozenset({
    "fighting",
    "bullying",
    "disrupting_class",
    "using_phone",
    "not_listening",
})

CRITICAL: frozenset[str] = frozenset({
    "fighting",
    "bullying",
    "disrupting_class",
})

# tier name → (weight, categories)
RISK_TIERS: dict[str, tuple[int, frozenset[str]]] = {
    "critical": (5, frozenset({"fighting", "bullying"})),
    "elevated": (3, frozenset({"disrupting_class", "using_phone"})),
    "mild":     (2, frozenset({"not_listening", "talking_in_class"})),
    "minor":    (1, frozenset({"late_to_class", "incomplete_work"})),
}

MAX_RISK_WEIGHT = max(weight for weight, _ in RISK_TIERS.values())

_WEIGHTS: dict[str, int] = {
    category: weight
    for weight, categories in RISK_TIERS.values()
    for category in categories
}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def classify(category: str) -> Polarity:
    if category in POSITIVE:
        return Polarity.positive
    if category in NEGATIVE:
        return Polarity.negative
    return Polarity.neutral


def is_negative(category: str) -> bool:
    return category in NEGATIVE


def is_critical(category: str) -> bool:
    return category in CRITICAL


def risk_weight(category: str) -> int:
    return _WEIGHTS.get(category, 0)


def humanize(label: str) -> str:
    """`disrupting_class` → `disrupting class`."""
    return label.replace("_", " ")
