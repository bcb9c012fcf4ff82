"""
Aggregator - raw behavior events → categorical statistics.

Public API
----------
aggregate(events, now)          -> Aggregation
split_windows(events, now)      -> (recent, previous)

Windows
-------
  recent   : timestamp >= now - 7d
  previous : now - 14d <= timestamp < now - 7d

An event's timestamp is `occurred_at`, falling back to `created_at`. An
event with neither is left out of both windows but still counted in the
lifetime statistics.

Pure: no I/O, no clock reads. The caller supplies `now`.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable, Optional

from app.core.categories import UNKNOWN_CATEGORY, Polarity, classify


WINDOW = timedelta(days=7)

NO_SUBJECT = "No Subject"
UNKNOWN_TIME = "Unknown"
DEFAULT_SEVERITY = "low"


# ---------------------------------------------------------------------------
# Input types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BehaviorEvent:
    """One observed classroom occurrence. Read-only input."""
    category: str = UNKNOWN_CATEGORY
    entity_id: Optional[str] = None
    subject: str = NO_SUBJECT
    time_of_day: str = UNKNOWN_TIME
    severity: str = DEFAULT_SEVERITY
    occurred_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    id: Optional[str] = None

    @property
    def timestamp(self) -> Optional[datetime]:
        ts = self.occurred_at or self.created_at
        if ts is None:
            return None
        if ts.tzinfo is None:
            return ts.replace(tzinfo=timezone.utc)
        return ts

    @property
    def polarity(self) -> Polarity:
        return classify(self.category)


@dataclass(frozen=True)
class Student:
    id: str
    name: str


# ---------------------------------------------------------------------------
# Output types
# ---------------------------------------------------------------------------

@dataclass
class PolarityCounts:
    positive: int = 0
    negative: int = 0
    neutral: int = 0

    @property
    def total(self) -> int:
        return self.positive + self.negative + self.neutral

    def add(self, polarity: Polarity) -> None:
        setattr(self, polarity.value, getattr(self, polarity.value) + 1)


@dataclass
class StatSnapshot:
    """Lifetime statistics over every supplied event."""
    by_category: dict[str, int] = field(default_factory=dict)
    by_entity: dict[str, int] = field(default_factory=dict)
    by_subject: dict[str, PolarityCounts] = field(default_factory=dict)
    by_time_of_day: dict[str, int] = field(default_factory=dict)
    by_severity: dict[str, int] = field(default_factory=dict)
    totals: PolarityCounts = field(default_factory=PolarityCounts)

    @property
    def total_events(self) -> int:
        return self.totals.total

    @property
    def is_empty(self) -> bool:
        return self.total_events == 0


@dataclass
class Aggregation:
    now: datetime
    snapshot: StatSnapshot
    recent: list[BehaviorEvent]
    previous: list[BehaviorEvent]
    undated: int  # events excluded from windows for lack of a timestamp
    earliest: Optional[datetime] = None
    latest: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _label(value: Optional[str], fallback: str) -> str:
    if value is None:
        return fallback
    value = str(value).strip()
    return value or fallback


def normalize(event: BehaviorEvent) -> BehaviorEvent:
    """Replace blank optional fields with their placeholder labels."""
    return BehaviorEvent(
        category=_label(event.category, UNKNOWN_CATEGORY),
        entity_id=_label(event.entity_id, "") or None,
        subject=_label(event.subject, NO_SUBJECT),
        time_of_day=_label(event.time_of_day, UNKNOWN_TIME),
        severity=_label(event.severity, DEFAULT_SEVERITY),
        occurred_at=event.occurred_at,
        created_at=event.created_at,
        id=event.id,
    )


def _bump(counter: dict[str, int], key: str) -> None:
    counter[key] = counter.get(key, 0) + 1


# ---------------------------------------------------------------------------
# Public
# ---------------------------------------------------------------------------

def split_windows(
    events: Iterable[BehaviorEvent],
    now: datetime,
) -> tuple[list[BehaviorEvent], list[BehaviorEvent]]:
    """Return (recent, previous) slices relative to `now`."""
    week_ago = now - WINDOW
    two_weeks_ago = now - 2 * WINDOW
    recent: list[BehaviorEvent] = []
    previous: list[BehaviorEvent] = []
    for event in events:
        ts = event.timestamp
        if ts is None:
            continue
        if ts >= week_ago:
            recent.append(event)
        elif ts >= two_weeks_ago:
            previous.append(event)
    return recent, previous


def build_snapshot(events: Iterable[BehaviorEvent]) -> StatSnapshot:
    snapshot = StatSnapshot()
    for event in events:
        polarity = event.polarity
        _bump(snapshot.by_category, event.category)
        if event.entity_id:
            _bump(snapshot.by_entity, event.entity_id)
        snapshot.by_subject.setdefault(event.subject, PolarityCounts()).add(polarity)
        _bump(snapshot.by_time_of_day, event.time_of_day)
        _bump(snapshot.by_severity, event.severity)
        snapshot.totals.add(polarity)
    return snapshot


def aggregate(events: Iterable[BehaviorEvent], now: datetime) -> Aggregation:
    """Build the lifetime snapshot plus the recent/previous windows."""
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    normalized = [normalize(e) for e in events]

    snapshot = build_snapshot(normalized)
    recent, previous = split_windows(normalized, now)

    stamps = [e.timestamp for e in normalized if e.timestamp is not None]
    return Aggregation(
        now=now,
        snapshot=snapshot,
        recent=recent,
        previous=previous,
        undated=len(normalized) - len(stamps),
        earliest=min(stamps) if stamps else None,
        latest=max(stamps) if stamps else None,
    )


def top_counts(counts: dict[str, int], n: int) -> list[tuple[str, int]]:
    """Highest counts first; ties broken by label so ordering is stable."""
    return sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:n]
