"""
Tests for the Aggregator and the shared category table.
"""
from datetime import timedelta

from app.core.categories import (
    CRITICAL,
    NEGATIVE,
    POSITIVE,
    Polarity,
    classify,
    humanize,
    risk_weight,
)
from app.services.aggregator import (
    NO_SUBJECT,
    UNKNOWN_TIME,
    BehaviorEvent,
    aggregate,
    split_windows,
    top_counts,
)

from conftest import NOW, event


class TestCategoryTable:
    def test_partitions_do_not_overlap(self):
        assert not (POSITIVE & NEGATIVE)

    def test_critical_is_subset_of_negative(self):
        assert CRITICAL <= NEGATIVE

    def test_classify(self):
        assert classify("teamwork") is Polarity.positive
        assert classify("bullying") is Polarity.negative
        assert classify("late_to_class") is Polarity.neutral
        assert classify("something_new") is Polarity.neutral

    def test_risk_weights(self):
        assert risk_weight("fighting") == 5
        assert risk_weight("using_phone") == 3
        assert risk_weight("not_listening") == 2
        assert risk_weight("late_to_class") == 1
        assert risk_weight("teamwork") == 0

    def test_humanize(self):
        assert humanize("disrupting_class") == "disrupting class"


class TestWindows:
    def test_recent_and_previous_split(self):
        events = [
            event("fighting", days_ago=1),
            event("fighting", days_ago=6.9),
            event("fighting", days_ago=8),
            event("fighting", days_ago=13.9),
            event("fighting", days_ago=20),
        ]
        recent, previous = split_windows(events, NOW)
        assert len(recent) == 2
        assert len(previous) == 2

    def test_window_boundary_is_inclusive(self):
        exactly_week = event("fighting", days_ago=7)
        recent, previous = split_windows([exactly_week], NOW)
        assert recent == [exactly_week]
        assert previous == []

    def test_created_at_fallback(self):
        e = BehaviorEvent(category="fighting", created_at=NOW - timedelta(days=2))
        recent, _ = split_windows([e], NOW)
        assert recent == [e]

    def test_naive_timestamps_are_treated_as_utc(self):
        e = BehaviorEvent(category="fighting", occurred_at=(NOW - timedelta(days=1)).replace(tzinfo=None))
        recent, _ = split_windows([e], NOW)
        assert len(recent) == 1

    def test_undated_events_only_count_in_lifetime(self):
        agg = aggregate([event("fighting", days_ago=None)], NOW)
        assert agg.snapshot.total_events == 1
        assert agg.recent == []
        assert agg.previous == []
        assert agg.undated == 1


class TestSnapshot:
    def test_empty_input(self):
        agg = aggregate([], NOW)
        assert agg.snapshot.is_empty
        assert agg.snapshot.total_events == 0
        assert agg.earliest is None

    def test_missing_fields_get_placeholders(self):
        agg = aggregate([BehaviorEvent(category=None, occurred_at=NOW)], NOW)
        snap = agg.snapshot
        assert snap.by_category == {"other": 1}
        assert NO_SUBJECT in snap.by_subject
        assert snap.by_time_of_day == {UNKNOWN_TIME: 1}
        assert snap.by_severity == {"low": 1}
        assert snap.by_entity == {}

    def test_counts_by_dimension(self):
        events = [
            event("fighting", "s1", subject="Math", time_of_day="Morning", severity="high"),
            event("teamwork", "s1", subject="Math", time_of_day="Morning"),
            event("late_to_class", "s2", subject="Art", time_of_day="Afternoon"),
        ]
        snap = aggregate(events, NOW).snapshot
        assert snap.by_entity == {"s1": 2, "s2": 1}
        assert snap.by_subject["Math"].negative == 1
        assert snap.by_subject["Math"].positive == 1
        assert snap.by_subject["Art"].neutral == 1
        assert snap.by_time_of_day["Morning"] == 2
        assert snap.by_severity == {"high": 1, "low": 2}
        assert snap.totals.total == 3

    def test_time_range(self):
        events = [event("fighting", days_ago=10), event("fighting", days_ago=2)]
        agg = aggregate(events, NOW)
        assert agg.earliest == NOW - timedelta(days=10)
        assert agg.latest == NOW - timedelta(days=2)


class TestTopCounts:
    def test_ties_broken_by_label(self):
        counts = {"b": 2, "a": 2, "c": 5}
        assert top_counts(counts, 3) == [("c", 5), ("a", 2), ("b", 2)]

    def test_limit(self):
        assert len(top_counts({"a": 1, "b": 2, "c": 3, "d": 4}, 3)) == 3
