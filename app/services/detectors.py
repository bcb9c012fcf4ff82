"""
Pattern Detector Set - statistics → zero-or-one candidate artifact per rule.

Every detector is a pure function of a DetectorContext (plus, for the
suggestion set, the in-flight event). Detectors never share state, so the
order of a set only decides presentation order.

Insights (lifetime statistics)
------------------------------
  behavior-frequency       top-3 categories                      high if top ≥ 30% else medium
  student-focus            students with > 2 events              high
  subject-patterns         subjects with negative > positive     medium
  time-patterns            busiest time-of-day bucket            medium
  severity-alert           any severity == "high"                high
  positive-reinforcement   any POSITIVE event                    low

Predictions (recent vs previous window)
---------------------------------------
  escalating-behaviors     recent negatives > previous negatives  high if +50% else medium
  time-based-risks         bucket ≥ 3 events, > 60% negative      medium
  student-risk-assessment  any student risk score ≥ 5             high
  subject-behavior-forecast subject ≥ 3 events, > 40% negative    medium

Suggestions (one in-flight event)
---------------------------------
  immediate-response, student-pattern, subject-strategy, severity-escalation,
  positive-recognition, time-management, prevention-strategy

A detector that hits an arithmetic or lookup error is logged and skipped;
the rest of the set still runs.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Optional, Sequence

from app.core.categories import (
    POSITIVE,
    ArtifactKind,
    Priority,
    SignalKind,
    humanize,
    is_critical,
    is_negative,
)
from app.services.aggregator import (
    NO_SUBJECT,
    UNKNOWN_TIME,
    BehaviorEvent,
    PolarityCounts,
    StatSnapshot,
    Student,
    top_counts,
)
from app.services.risk import UNKNOWN_STUDENT, EntityRisk

logger = logging.getLogger(__name__)


# Thresholds
TOP_N = 3
DOMINANT_SHARE_PCT = 30
MULTI_INCIDENT_MIN = 3          # strictly more than 2 lifetime events
ESCALATION_HIGH_PCT = 50
RISK_SCORE_THRESHOLD = 5
MIN_BUCKET_EVENTS = 3
RISKY_TIME_SHARE = 0.6
RISKY_SUBJECT_SHARE = 0.4
PREVENTION_WINDOW_DAYS = 3


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DetectorContext:
    snapshot: StatSnapshot
    recent: Sequence[BehaviorEvent]
    previous: Sequence[BehaviorEvent]
    students: Sequence[Student]
    now: datetime
    entity_risks: Sequence[EntityRisk] = ()
    events: Sequence[BehaviorEvent] = ()

    def student_name(self, entity_id: Optional[str]) -> str:
        for s in self.students:
            if s.id == entity_id:
                return s.name
        return UNKNOWN_STUDENT


@dataclass
class Candidate:
    """Raw detector output, before assembly into an Artifact."""
    kind: ArtifactKind
    detector: str
    signal: SignalKind
    title: str
    description: str
    priority: Priority
    category: str
    confidence: float
    actions: list[str]
    data: list[dict]
    support: int                  # number of events backing the candidate
    related_entities: list[str] = field(default_factory=list)
    risk_level: Optional[str] = None
    timeframe: Optional[str] = None


Detector = Callable[[DetectorContext], Optional[Candidate]]
EventDetector = Callable[[DetectorContext, BehaviorEvent], Optional[Candidate]]


def pct(part: float, whole: float) -> int:
    """Rounded percentage; 0 when there is nothing to divide by."""
    if not whole:
        return 0
    return round(part / whole * 100)


def _share(part: int, whole: int) -> float:
    return part / whole if whole else 0.0


# ---------------------------------------------------------------------------
# Insight detectors
# ---------------------------------------------------------------------------

def detect_frequency_pattern(ctx: DetectorContext) -> Optional[Candidate]:
    total = ctx.snapshot.total_events
    top = top_counts(ctx.snapshot.by_category, TOP_N)
    if not top or total == 0:
        return None

    leader, leader_count = top[0]
    leader_pct = pct(leader_count, total)
    return Candidate(
        kind=ArtifactKind.insight,
        detector="behavior-frequency",
        signal=SignalKind.pattern,
        title="Most Common Behavior Patterns",
        description=(
            f"{humanize(leader)} accounts for {leader_pct}% of {total} logged behaviors. "
            "Focus on the most frequent behaviors to improve classroom management."
        ),
        priority=Priority.high if leader_pct >= DOMINANT_SHARE_PCT else Priority.medium,
        category="behavior-analysis",
        confidence=min(90, 60 + leader_pct / 2),
        actions=[
            f"Address {humanize(leader)} behaviors first",
            f"Write a prevention strategy for {humanize(leader)} and share it with the class",
            "Track the top three behaviors daily for the next two weeks",
        ],
        data=[
            {"label": humanize(cat), "value": count, "percentage": pct(count, total)}
            for cat, count in top
        ],
        support=total,
    )


def detect_multi_incident_entities(ctx: DetectorContext) -> Optional[Candidate]:
    flagged = [
        (entity_id, count)
        for entity_id, count in ctx.snapshot.by_entity.items()
        if count >= MULTI_INCIDENT_MIN
    ]
    if not flagged:
        return None
    flagged.sort(key=lambda kv: (-kv[1], ctx.student_name(kv[0]), kv[0]))
    flagged = flagged[:TOP_N]

    names = [ctx.student_name(entity_id) for entity_id, _ in flagged]
    top_count = flagged[0][1]
    return Candidate(
        kind=ArtifactKind.insight,
        detector="student-focus",
        signal=SignalKind.intervention,
        title="Students Needing Attention",
        description=(
            f"{len(flagged)} student(s) have multiple behavior incidents and may need "
            "additional support."
        ),
        priority=Priority.high,
        category="student-support",
        confidence=min(90, 60 + 5 * top_count),
        actions=[
            f"Meet with {names[0]} this week",
            f"Create an improvement plan with {names[0]}",
            "Contact parents of students with repeated incidents",
        ],
        data=[
            {"label": name, "value": count, "type": "incidents", "entity_id": entity_id}
            for name, (entity_id, count) in zip(names, flagged)
        ],
        support=sum(count for _, count in flagged),
        related_entities=[entity_id for entity_id, _ in flagged],
    )


def detect_context_challenge(ctx: DetectorContext) -> Optional[Candidate]:
    troubled: list[tuple[str, PolarityCounts]] = [
        (subject, counts)
        for subject, counts in ctx.snapshot.by_subject.items()
        if counts.negative > counts.positive
    ]
    if not troubled:
        return None
    troubled.sort(key=lambda kv: (-kv[1].negative, kv[0]))

    worst = troubled[0][0]
    return Candidate(
        kind=ArtifactKind.insight,
        detector="subject-patterns",
        signal=SignalKind.curriculum,
        title="Subject-Specific Behavior Challenges",
        description=(
            f"{len(troubled)} subject(s) show more negative than positive behaviors, "
            f"led by {worst}."
        ),
        priority=Priority.medium,
        category="curriculum-adjustment",
        confidence=70,
        actions=[
            f"Review {worst} lessons",
            f"Add hands-on activities to {worst}",
            f"Increase support during {worst} class",
        ],
        data=[
            {
                "label": subject,
                "positive": counts.positive,
                "negative": counts.negative,
                "neutral": counts.neutral,
            }
            for subject, counts in troubled
        ],
        support=sum(counts.negative for _, counts in troubled),
    )


def detect_temporal_cluster(ctx: DetectorContext) -> Optional[Candidate]:
    busiest = top_counts(ctx.snapshot.by_time_of_day, 1)
    if not busiest:
        return None
    bucket, count = busiest[0]
    share = pct(count, ctx.snapshot.total_events)
    return Candidate(
        kind=ArtifactKind.insight,
        detector="time-patterns",
        signal=SignalKind.scheduling,
        title="Time-Based Behavior Patterns",
        description=f"{share}% of behaviors cluster around {bucket} periods.",
        priority=Priority.medium,
        category="scheduling-optimization",
        confidence=65,
        actions=[
            f"Watch {bucket} periods closely",
            f"Adjust {bucket} activities if incidents continue",
            "Add transition time before that period",
        ],
        data=[{"label": bucket, "value": count, "percentage": share}],
        support=count,
    )


def detect_severity_alert(ctx: DetectorContext) -> Optional[Candidate]:
    high = ctx.snapshot.by_severity.get("high", 0)
    if high <= 0:
        return None
    return Candidate(
        kind=ArtifactKind.insight,
        detector="severity-alert",
        signal=SignalKind.alert,
        title="High Severity Incidents Detected",
        description=f"{high} high-severity incident(s) require immediate attention.",
        priority=Priority.high,
        category="safety",
        confidence=90,
        actions=[
            "Review high-severity incidents today",
            "Monitor the involved students closely this week",
            "Contact an administrator if incidents repeat",
        ],
        data=[{"label": "High Severity", "value": high, "type": "critical"}],
        support=high,
    )


def detect_positive_reinforcement(ctx: DetectorContext) -> Optional[Candidate]:
    positive = sum(
        count for cat, count in ctx.snapshot.by_category.items() if cat in POSITIVE
    )
    if positive <= 0:
        return None
    share = pct(positive, ctx.snapshot.total_events)
    return Candidate(
        kind=ArtifactKind.insight,
        detector="positive-reinforcement",
        signal=SignalKind.opportunity,
        title="Positive Behavior Recognition",
        description="Celebrate and reinforce positive behaviors to encourage more.",
        priority=Priority.low,
        category="positive-reinforcement",
        confidence=min(95, 50 + share / 2),
        actions=[
            f"Celebrate {positive} good behaviors with the class",
            "Give a small reward to students with positive entries",
            "Share one positive example at the start of next lesson",
        ],
        data=[{"label": "Positive Behaviors", "value": positive, "percentage": share}],
        support=positive,
    )


# ---------------------------------------------------------------------------
# Prediction detectors
# ---------------------------------------------------------------------------

def detect_escalation(ctx: DetectorContext) -> Optional[Candidate]:
    recent_neg = sum(1 for e in ctx.recent if is_negative(e.category))
    previous_neg = sum(1 for e in ctx.previous if is_negative(e.category))
    if recent_neg <= previous_neg:
        return None

    increase = (recent_neg - previous_neg) / max(previous_neg, 1) * 100
    level = Priority.high if increase > ESCALATION_HIGH_PCT else Priority.medium
    return Candidate(
        kind=ArtifactKind.prediction,
        detector="escalating-behaviors",
        signal=SignalKind.warning,
        title="Escalating Negative Behaviors",
        description=(
            f"Negative behaviors have increased by {round(increase)}% in the last week."
        ),
        priority=level,
        category="trend-forecast",
        confidence=min(85, 60 + increase * 0.5),
        actions=[
            "Tighten classroom management routines this week",
            "Increase positive reinforcement for good behavior",
            "Schedule individual check-ins with involved students",
            "Consider parent-teacher conferences for repeat incidents",
        ],
        data=[
            {"label": "Recent negative", "value": recent_neg},
            {"label": "Previous negative", "value": previous_neg},
            {"label": "Increase", "value": round(increase), "percentage": round(increase)},
        ],
        support=recent_neg,
        risk_level=level.value,
        timeframe="1-2 weeks",
    )


def _bucket_rates(
    events: Sequence[BehaviorEvent],
    key: Callable[[BehaviorEvent], str],
) -> dict[str, tuple[int, int]]:
    """bucket → (total, negative)"""
    rates: dict[str, tuple[int, int]] = {}
    for e in events:
        total, negative = rates.get(key(e), (0, 0))
        rates[key(e)] = (total + 1, negative + (1 if is_negative(e.category) else 0))
    return rates


def _risky_buckets(
    rates: dict[str, tuple[int, int]],
    threshold: float,
) -> list[tuple[str, int, int]]:
    risky = [
        (bucket, total, negative)
        for bucket, (total, negative) in rates.items()
        if total >= MIN_BUCKET_EVENTS and _share(negative, total) > threshold
    ]
    risky.sort(key=lambda r: (-_share(r[2], r[1]), r[0]))
    return risky


def detect_time_based_risk(ctx: DetectorContext) -> Optional[Candidate]:
    risky = _risky_buckets(_bucket_rates(ctx.recent, lambda e: e.time_of_day), RISKY_TIME_SHARE)
    if not risky:
        return None
    worst = risky[0][0]
    return Candidate(
        kind=ArtifactKind.prediction,
        detector="time-based-risks",
        signal=SignalKind.scheduling,
        title="High-Risk Time Periods Identified",
        description="Certain times of day show a much higher share of negative behaviors.",
        priority=Priority.medium,
        category="scheduling-forecast",
        confidence=75,
        actions=[
            f"Increase supervision during {worst} periods",
            f"Plan structured activities for {worst}",
            "Add a transition activity between periods",
        ],
        data=[
            {"label": bucket, "value": total, "percentage": pct(negative, total)}
            for bucket, total, negative in risky
        ],
        support=sum(total for _, total, _ in risky),
        risk_level=Priority.medium.value,
        timeframe="Ongoing",
    )


def detect_risk_concentration(ctx: DetectorContext) -> Optional[Candidate]:
    at_risk = [r for r in ctx.entity_risks if r.score >= RISK_SCORE_THRESHOLD]
    if not at_risk:
        return None
    at_risk = sorted(at_risk, key=lambda r: (-r.score, r.name, r.entity_id))[:TOP_N]
    return Candidate(
        kind=ArtifactKind.prediction,
        detector="student-risk-assessment",
        signal=SignalKind.intervention,
        title="Students at High Risk",
        description=(
            f"{len(at_risk)} student(s) show elevated risk of future behavioral issues."
        ),
        priority=Priority.high,
        category="student-risk",
        confidence=80,
        actions=[
            f"Schedule a one-on-one meeting with {at_risk[0].name}",
            "Draft a personalized behavior contract",
            "Run daily check-ins and track progress",
            "Coordinate with the school counselor and parents",
        ],
        data=[
            {
                "label": r.name,
                "value": r.score,
                "type": "risk_score",
                "entity_id": r.entity_id,
                "negative_count": r.negative_count,
                "days_since_last_event": r.days_since_last_event,
            }
            for r in at_risk
        ],
        support=sum(r.total_events for r in at_risk),
        related_entities=[r.entity_id for r in at_risk],
        risk_level=Priority.high.value,
        timeframe="Immediate",
    )


def detect_subject_forecast(ctx: DetectorContext) -> Optional[Candidate]:
    risky = _risky_buckets(_bucket_rates(ctx.recent, lambda e: e.subject), RISKY_SUBJECT_SHARE)
    if not risky:
        return None
    worst = risky[0][0]
    return Candidate(
        kind=ArtifactKind.prediction,
        detector="subject-behavior-forecast",
        signal=SignalKind.curriculum,
        title="Subject-Specific Behavior Forecast",
        description=f"{worst} is likely to see more behavioral challenges in the coming weeks.",
        priority=Priority.medium,
        category="curriculum-forecast",
        confidence=70,
        actions=[
            f"Review and revise {worst} lesson plans",
            f"Add interactive activities to {worst}",
            "Provide extra support resources for struggling students",
            "Try differentiated instruction in that subject",
        ],
        data=[
            {"label": subject, "value": total, "percentage": pct(negative, total)}
            for subject, total, negative in risky
        ],
        support=sum(total for _, total, _ in risky),
        risk_level=Priority.medium.value,
        timeframe="2-4 weeks",
    )


# ---------------------------------------------------------------------------
# Suggestion detectors (single in-flight event)
# ---------------------------------------------------------------------------

def _history(ctx: DetectorContext, event: BehaviorEvent) -> list[BehaviorEvent]:
    """Other events for the same student, newest first."""
    if not event.entity_id:
        return []
    history = [
        e for e in ctx.events
        if e.entity_id == event.entity_id and (event.id is None or e.id != event.id)
    ]
    dated = sorted(
        (e for e in history if e.timestamp is not None),
        key=lambda e: e.timestamp,
        reverse=True,
    )
    return dated + [e for e in history if e.timestamp is None]


def _suggestion(
    event: BehaviorEvent,
    detector: str,
    signal: SignalKind,
    title: str,
    description: str,
    priority: Priority,
    confidence: float,
    actions: list[str],
    data: list[dict],
    timeframe: str,
    support: int = 1,
) -> Candidate:
    return Candidate(
        kind=ArtifactKind.suggestion,
        detector=detector,
        signal=signal,
        title=title,
        description=description,
        priority=priority,
        category=event.category,
        confidence=confidence,
        actions=actions,
        data=data,
        support=support,
        related_entities=[event.entity_id] if event.entity_id else [],
        timeframe=timeframe,
    )


def suggest_immediate_response(ctx: DetectorContext, event: BehaviorEvent) -> Optional[Candidate]:
    if not is_critical(event.category):
        return None
    return _suggestion(
        event,
        detector="immediate-response",
        signal=SignalKind.urgent,
        title="Immediate Response Required",
        description=f"This {humanize(event.category)} incident requires immediate intervention.",
        priority=Priority.critical,
        confidence=95,
        actions=[
            "Separate the students involved now",
            "Write an incident report before the end of the period",
            "Call an administrator if the situation does not de-escalate",
        ],
        data=[{"label": humanize(event.category), "value": 1, "type": "incident"}],
        timeframe="Immediate",
    )


def suggest_student_pattern(ctx: DetectorContext, event: BehaviorEvent) -> Optional[Candidate]:
    history = _history(ctx, event)
    if len(history) <= 1:
        return None
    negatives = sum(1 for e in history[:5] if is_negative(e.category))
    if negatives < 2:
        return None
    name = ctx.student_name(event.entity_id)
    return _suggestion(
        event,
        detector="student-pattern",
        signal=SignalKind.intervention,
        title="Student Behavior Pattern Detected",
        description=f"{name} has {negatives} negative incidents among their recent entries.",
        priority=Priority.high,
        confidence=85,
        actions=[
            f"Meet with {name} this week",
            f"Check {name}'s past reports for a trigger",
            f"Make an improvement plan with {name}",
        ],
        data=[{"label": name, "value": negatives, "type": "recent_negative"}],
        timeframe="This week",
        support=negatives,
    )


def suggest_subject_strategy(ctx: DetectorContext, event: BehaviorEvent) -> Optional[Candidate]:
    if not event.subject or event.subject == NO_SUBJECT:
        return None
    negatives = sum(
        1 for e in ctx.events if e.subject == event.subject and is_negative(e.category)
    )
    if negatives <= 2:
        return None
    return _suggestion(
        event,
        detector="subject-strategy",
        signal=SignalKind.curriculum,
        title="Subject-Specific Behavior Management",
        description=f"{event.subject} shows higher incident rates; consider curriculum adjustments.",
        priority=Priority.medium,
        confidence=75,
        actions=[
            f"Add more hands-on activities to {event.subject}",
            "Use structured group work",
            "Give extra support to students who struggle in this subject",
        ],
        data=[{"label": event.subject, "value": negatives, "type": "negative_incidents"}],
        timeframe="Next lesson",
        support=negatives,
    )


def suggest_severity_escalation(ctx: DetectorContext, event: BehaviorEvent) -> Optional[Candidate]:
    if event.severity != "high":
        return None
    return _suggestion(
        event,
        detector="severity-escalation",
        signal=SignalKind.safety,
        title="High Severity Incident Protocol",
        description="This high-severity incident requires escalation and documentation.",
        priority=Priority.critical,
        confidence=90,
        actions=[
            "Complete the incident report now",
            "Notify an administrator",
            "Contact the student's parents today",
        ],
        data=[{"label": "Severity", "value": event.severity, "type": "critical"}],
        timeframe="Within 2 hours",
    )


def suggest_positive_recognition(ctx: DetectorContext, event: BehaviorEvent) -> Optional[Candidate]:
    if event.category not in POSITIVE:
        return None
    name = ctx.student_name(event.entity_id)
    return _suggestion(
        event,
        detector="positive-recognition",
        signal=SignalKind.opportunity,
        title="Positive Behavior Recognition",
        description=f"Celebrate {name}'s {humanize(event.category)} to encourage more of it.",
        priority=Priority.low,
        confidence=80,
        actions=[
            f"Praise {name} in front of the class",
            "Give a small reward",
            "Share the example with the class",
        ],
        data=[{"label": humanize(event.category), "value": 1, "type": "positive"}],
        timeframe="This class period",
    )


def suggest_time_management(ctx: DetectorContext, event: BehaviorEvent) -> Optional[Candidate]:
    if not event.time_of_day or event.time_of_day == UNKNOWN_TIME:
        return None
    critical = sum(
        1 for e in ctx.events if e.time_of_day == event.time_of_day and is_critical(e.category)
    )
    if critical <= 1:
        return None
    return _suggestion(
        event,
        detector="time-management",
        signal=SignalKind.scheduling,
        title="Time-Based Behavior Management",
        description=f"{event.time_of_day} periods show increased behavioral challenges.",
        priority=Priority.medium,
        confidence=70,
        actions=[
            f"Watch {event.time_of_day} periods closely",
            f"Add structure to {event.time_of_day} activities",
            "Give extra support during transitions",
        ],
        data=[{"label": event.time_of_day, "value": critical, "type": "critical_incidents"}],
        timeframe="Ongoing",
        support=critical,
    )


def suggest_prevention(ctx: DetectorContext, event: BehaviorEvent) -> Optional[Candidate]:
    history = _history(ctx, event)
    if not history or history[0].timestamp is None:
        return None
    days_since = (ctx.now - history[0].timestamp).days
    if days_since >= PREVENTION_WINDOW_DAYS:
        return None
    name = ctx.student_name(event.entity_id)
    return _suggestion(
        event,
        detector="prevention-strategy",
        signal=SignalKind.prevention,
        title="Preventive Intervention Needed",
        description=f"{name} has another incident within {PREVENTION_WINDOW_DAYS} days.",
        priority=Priority.high,
        confidence=80,
        actions=[
            f"Check in with {name} daily",
            f"Set one behavior goal with {name}",
            "Reward progress toward the goal",
        ],
        data=[{"label": "Days since last incident", "value": days_since}],
        timeframe="Daily",
        support=len(history),
    )


# ---------------------------------------------------------------------------
# Fixed detector sets
# ---------------------------------------------------------------------------

INSIGHT_DETECTORS: tuple[Detector, ...] = (
    detect_frequency_pattern,
    detect_multi_incident_entities,
    detect_context_challenge,
    detect_temporal_cluster,
    detect_severity_alert,
    detect_positive_reinforcement,
)

PREDICTION_DETECTORS: tuple[Detector, ...] = (
    detect_escalation,
    detect_time_based_risk,
    detect_risk_concentration,
    detect_subject_forecast,
)

SUGGESTION_DETECTORS: tuple[EventDetector, ...] = (
    suggest_immediate_response,
    suggest_student_pattern,
    suggest_subject_strategy,
    suggest_severity_escalation,
    suggest_positive_recognition,
    suggest_time_management,
    suggest_prevention,
)


def run_detectors(detectors: Sequence[Callable], ctx: DetectorContext, *args) -> list[Candidate]:
    """Run each detector in order; a failing detector is skipped, not fatal."""
    candidates: list[Candidate] = []
    for detector in detectors:
        try:
            candidate = detector(ctx, *args)
        except Exception:
            logger.exception("Detector %s failed; skipping it for this run", detector.__name__)
            continue
        if candidate is None or candidate.support <= 0:
            continue
        candidates.append(candidate)
    return candidates
