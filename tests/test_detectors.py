"""
Tests for the insight and prediction detectors.

Covered scenarios:
  A) no events               → zero artifacts
  B) 6 recent / 2 previous   → escalation fires, increase 200%, risk high
  C) one student, 3 negative → student-focus names that student first

Additional:
  - determinism for a fixed `now`
  - confidence stays within [0, 100]
  - a raising detector is skipped, the rest still run
"""
from app.services.aggregator import aggregate
from app.services.analysis import generate_artifacts
from app.services.detectors import (
    INSIGHT_DETECTORS,
    PREDICTION_DETECTORS,
    DetectorContext,
    detect_context_challenge,
    detect_escalation,
    detect_frequency_pattern,
    detect_multi_incident_entities,
    detect_positive_reinforcement,
    detect_risk_concentration,
    detect_severity_alert,
    detect_subject_forecast,
    detect_temporal_cluster,
    detect_time_based_risk,
    pct,
    run_detectors,
)
from app.services.risk import score_entities

from conftest import NOW, event


def _ctx(events, students=()):
    agg = aggregate(events, NOW)
    return DetectorContext(
        snapshot=agg.snapshot,
        recent=tuple(agg.recent),
        previous=tuple(agg.previous),
        students=tuple(students),
        now=agg.now,
        entity_risks=tuple(score_entities(agg.recent, students, agg.now)),
        events=tuple(events),
    )


def _mixed_classroom():
    return [
        event("disrupting_class", "s1", days_ago=1, subject="Math", time_of_day="Morning"),
        event("fighting", "s1", days_ago=2, subject="Math", time_of_day="Morning", severity="high"),
        event("using_phone", "s1", days_ago=3, subject="Math", time_of_day="Morning"),
        event("teamwork", "s2", days_ago=2, subject="Art", time_of_day="Afternoon"),
        event("helping_others", "s3", days_ago=9, subject="Art", time_of_day="Afternoon"),
        event("not_listening", "s2", days_ago=10, subject="Math", time_of_day="Morning"),
    ]


class TestScenarios:
    def test_a_no_events_no_artifacts(self, students):
        result = generate_artifacts([], students, NOW)
        assert result.aggregation.snapshot.is_empty
        assert result.insights == []
        assert result.predictions == []

    def test_b_escalation(self):
        events = [event("disrupting_class", f"s{i}", days_ago=1 + i * 0.5) for i in range(6)]
        events += [event("using_phone", "s1", days_ago=9), event("using_phone", "s2", days_ago=10)]
        candidate = detect_escalation(_ctx(events))
        assert candidate is not None
        assert candidate.data[2]["value"] == 200
        assert candidate.risk_level == "high"
        assert candidate.priority.value == "high"
        assert candidate.confidence == 85

    def test_c_multi_incident_names_student_first(self, students):
        events = [
            event("fighting", "s3", days_ago=1),
            event("bullying", "s3", days_ago=2),
            event("using_phone", "s3", days_ago=3),
            event("teamwork", "s1", days_ago=1),
        ]
        candidate = detect_multi_incident_entities(_ctx(events, students))
        assert candidate is not None
        assert candidate.related_entities[0] == "s3"
        assert candidate.data[0]["label"] == "Cleo"
        assert "Cleo" in candidate.actions[0]


class TestInsightDetectors:
    def test_frequency_high_when_dominant(self):
        events = [event("fighting")] * 2 + [event("teamwork")]
        candidate = detect_frequency_pattern(_ctx(events))
        assert candidate.priority.value == "high"
        assert candidate.data[0] == {"label": "fighting", "value": 2, "percentage": 67}

    def test_frequency_medium_when_spread(self):
        cats = ["fighting", "teamwork", "leadership", "creativity", "organized"]
        candidate = detect_frequency_pattern(_ctx([event(c) for c in cats]))
        assert candidate.priority.value == "medium"
        assert len(candidate.data) == 3

    def test_multi_incident_needs_three(self):
        events = [event("fighting", "s1"), event("fighting", "s1")]
        assert detect_multi_incident_entities(_ctx(events)) is None

    def test_context_challenge(self):
        candidate = detect_context_challenge(_ctx(_mixed_classroom()))
        assert candidate is not None
        assert candidate.data[0]["label"] == "Math"
        assert "Math" in candidate.actions[0]

    def test_context_challenge_absent_when_balanced(self):
        events = [event("fighting", subject="Math"), event("teamwork", subject="Math")]
        assert detect_context_challenge(_ctx(events)) is None

    def test_temporal_cluster(self):
        candidate = detect_temporal_cluster(_ctx(_mixed_classroom()))
        assert candidate.data[0]["label"] == "Morning"
        assert candidate.data[0]["value"] == 4

    def test_severity_alert(self):
        candidate = detect_severity_alert(_ctx(_mixed_classroom()))
        assert candidate.data[0]["value"] == 1
        assert detect_severity_alert(_ctx([event("fighting")])) is None

    def test_positive_reinforcement(self):
        candidate = detect_positive_reinforcement(_ctx(_mixed_classroom()))
        assert candidate.support == 2
        assert candidate.priority.value == "low"
        assert detect_positive_reinforcement(_ctx([event("fighting")])) is None


class TestPredictionDetectors:
    def test_escalation_absent_when_not_increasing(self):
        events = [event("fighting", days_ago=1), event("fighting", days_ago=9)]
        assert detect_escalation(_ctx(events)) is None

    def test_escalation_medium_for_small_increase(self):
        events = [event("fighting", days_ago=d) for d in (1, 2, 3)]
        events += [event("fighting", days_ago=d) for d in (8, 9)]
        candidate = detect_escalation(_ctx(events))
        assert candidate.priority.value == "medium"
        assert candidate.data[2]["value"] == 50

    def test_time_based_risk(self):
        events = [event("fighting", time_of_day="Afternoon") for _ in range(3)]
        events.append(event("teamwork", time_of_day="Morning"))
        candidate = detect_time_based_risk(_ctx(events))
        assert candidate.data[0]["label"] == "Afternoon"
        assert candidate.data[0]["percentage"] == 100

    def test_time_based_risk_needs_enough_events(self):
        events = [event("fighting", time_of_day="Afternoon") for _ in range(2)]
        assert detect_time_based_risk(_ctx(events)) is None

    def test_risk_concentration(self, students):
        candidate = detect_risk_concentration(_ctx(_mixed_classroom(), students))
        assert candidate.related_entities[0] == "s1"
        assert candidate.data[0]["label"] == "Ana"

    def test_risk_concentration_absent_for_low_scores(self, students):
        events = [event("late_to_class", "s1", days_ago=5)]
        assert detect_risk_concentration(_ctx(events, students)) is None

    def test_subject_forecast(self):
        candidate = detect_subject_forecast(_ctx(_mixed_classroom()))
        assert candidate.data[0]["label"] == "Math"
        assert candidate.timeframe == "2-4 weeks"


class TestProperties:
    def test_deterministic_for_fixed_now(self, students):
        first = generate_artifacts(_mixed_classroom(), students, NOW)
        second = generate_artifacts(_mixed_classroom(), students, NOW)
        assert [a.fingerprint() for a in first.artifacts] == [
            a.fingerprint() for a in second.artifacts
        ]
        assert len(first.artifacts) > 0

    def test_confidence_bounded(self, students):
        events = [event("fighting", "s1", days_ago=0.1) for _ in range(40)]
        events += [event("teamwork", "s2", days_ago=9)]
        for artifact in generate_artifacts(events, students, NOW).artifacts:
            assert 0 <= artifact.confidence <= 100

    def test_pct_zero_denominator(self):
        assert pct(3, 0) == 0

    def test_failing_detector_is_skipped(self):
        def broken(ctx):
            return 1 / 0

        ctx = _ctx(_mixed_classroom())
        full = run_detectors(INSIGHT_DETECTORS, ctx)
        with_broken = run_detectors((broken,) + INSIGHT_DETECTORS, ctx)
        assert [c.detector for c in with_broken] == [c.detector for c in full]

    def test_attribute_error_in_detector_is_skipped(self):
        def broken(ctx):
            return ctx.no_such_field

        ctx = _ctx(_mixed_classroom())
        full = run_detectors(PREDICTION_DETECTORS, ctx)
        with_broken = run_detectors(PREDICTION_DETECTORS[:1] + (broken,) + PREDICTION_DETECTORS[1:], ctx)
        assert [c.detector for c in with_broken] == [c.detector for c in full]

    def test_artifacts_carry_data_snapshot(self, students):
        result = generate_artifacts(_mixed_classroom(), students, NOW)
        snapshot = result.insights[0].data_snapshot
        assert snapshot["total_events"] == 6
        assert snapshot["total_entities"] == 3
        assert snapshot["time_range"]["end"] == NOW.isoformat()
        assert all(a.id.startswith("cand_") for a in result.artifacts)
