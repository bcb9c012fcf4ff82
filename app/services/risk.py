"""
Risk Scorer - recent-window events → per-student risk + overall risk label.

Per student (recent window only)
--------------------------------
  raw score = Σ risk_weight(category)              (5 / 3 / 2 / 1 / 0)
            + 2 if the latest event is < 3 days old
            + 3 more if it is < 1 day old

Overall
-------
  percentage = Σ risk_weight / (event_count × 5) × 100, clamped to [0, 100]
  label      = high if percentage > 60, medium if > 30, else low

Weights and thresholds are policy constants, not fitted parameters.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from app.core.categories import MAX_RISK_WEIGHT, RiskLevel, is_negative, risk_weight
from app.services.aggregator import BehaviorEvent, Student


RECENT_BONUS_DAYS = 3
RECENT_BONUS = 2
SAME_DAY_BONUS = 3

HIGH_RISK_PERCENT = 60
MEDIUM_RISK_PERCENT = 30

UNKNOWN_STUDENT = "Unknown Student"


@dataclass
class EntityRisk:
    entity_id: str
    name: str
    score: int
    negative_count: int
    total_events: int
    days_since_last_event: Optional[int]


@dataclass
class RiskSummary:
    overall: RiskLevel
    percentage: float
    total_incidents: int
    high_severity_count: int


def risk_label(percentage: float) -> RiskLevel:
    if percentage > HIGH_RISK_PERCENT:
        return RiskLevel.high
    if percentage > MEDIUM_RISK_PERCENT:
        return RiskLevel.medium
    return RiskLevel.low


def _days_since(latest: Optional[datetime], now: datetime) -> Optional[int]:
    if latest is None:
        return None
    return math.floor((now - latest).total_seconds() / 86400)


def recency_bonus(days_since: Optional[int]) -> int:
    if days_since is None:
        return 0
    bonus = 0
    if days_since < RECENT_BONUS_DAYS:
        bonus += RECENT_BONUS
    if days_since < 1:
        bonus += SAME_DAY_BONUS
    return bonus


def score_entity(
    entity_id: str,
    events: list[BehaviorEvent],
    now: datetime,
    name: str = UNKNOWN_STUDENT,
) -> EntityRisk:
    """Score one student's recent-window events."""
    stamps = [e.timestamp for e in events if e.timestamp is not None]
    days_since = _days_since(max(stamps) if stamps else None, now)
    score = sum(risk_weight(e.category) for e in events) + recency_bonus(days_since)
    return EntityRisk(
        entity_id=entity_id,
        name=name,
        score=score,
        negative_count=sum(1 for e in events if is_negative(e.category)),
        total_events=len(events),
        days_since_last_event=days_since,
    )


def score_entities(
    recent: Iterable[BehaviorEvent],
    students: Iterable[Student],
    now: datetime,
) -> list[EntityRisk]:
    """
    Score every student with at least one recent event, highest first.
    Events for students missing from the roster are scored under
    "Unknown Student" so they still count.
    """
    names = {s.id: s.name for s in students}
    grouped: dict[str, list[BehaviorEvent]] = {}
    for event in recent:
        if event.entity_id:
            grouped.setdefault(event.entity_id, []).append(event)

    risks = [
        score_entity(entity_id, events, now, names.get(entity_id, UNKNOWN_STUDENT))
        for entity_id, events in grouped.items()
    ]
    risks.sort(key=lambda r: (-r.score, r.name, r.entity_id))
    return risks


def summarize_risk(recent: list[BehaviorEvent]) -> RiskSummary:
    """Overall risk for the whole recent window."""
    total_weight = sum(risk_weight(e.category) for e in recent)
    max_possible = len(recent) * MAX_RISK_WEIGHT
    percentage = (total_weight / max_possible) * 100 if max_possible else 0.0
    percentage = max(0.0, min(100.0, percentage))
    return RiskSummary(
        overall=risk_label(percentage),
        percentage=round(percentage, 2),
        total_incidents=len(recent),
        high_severity_count=sum(1 for e in recent if e.severity == "high"),
    )
