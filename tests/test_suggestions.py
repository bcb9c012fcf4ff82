"""
Tests for the per-event suggestion detectors.
"""
from app.services.analysis import suggest_for_event

from conftest import NOW, event


def _detectors(suggestions):
    return [s.detector for s in suggestions]


class TestSuggestions:
    def test_critical_event_gets_immediate_response(self, students):
        current = event("fighting", "s1", days_ago=0, event_id="e1")
        result = suggest_for_event(current, [current], students, NOW)
        assert "immediate-response" in _detectors(result)
        urgent = result[0]
        assert urgent.priority == "critical"
        assert urgent.kind == "suggestion"
        assert urgent.category == "fighting"
        assert urgent.related_entities == ["s1"]

    def test_positive_event_gets_recognition(self, students):
        current = event("leadership", "s2", days_ago=0, event_id="e1")
        result = suggest_for_event(current, [current], students, NOW)
        assert _detectors(result) == ["positive-recognition"]
        assert "Ben" in result[0].actions[0]

    def test_high_severity_escalation(self, students):
        current = event("using_phone", "s1", days_ago=0, severity="high", event_id="e1")
        result = suggest_for_event(current, [current], students, NOW)
        assert "severity-escalation" in _detectors(result)

    def test_student_pattern_uses_history(self, students):
        history = [
            event("using_phone", "s1", days_ago=5, event_id="h1"),
            event("not_listening", "s1", days_ago=6, event_id="h2"),
        ]
        current = event("late_to_class", "s1", days_ago=0, event_id="e1")
        result = suggest_for_event(current, history + [current], students, NOW)
        pattern = next(s for s in result if s.detector == "student-pattern")
        assert pattern.data[0]["value"] == 2
        assert "Ana" in pattern.description

    def test_current_event_is_not_its_own_history(self, students):
        current = event("using_phone", "s1", days_ago=0, event_id="e1")
        other = event("using_phone", "s1", days_ago=5, event_id="h1")
        result = suggest_for_event(current, [current, other], students, NOW)
        assert "student-pattern" not in _detectors(result)

    def test_subject_strategy(self, students):
        history = [
            event("using_phone", f"s{i}", days_ago=4, subject="Science", event_id=f"h{i}")
            for i in range(3)
        ]
        current = event("teamwork", "s1", days_ago=0, subject="Science", event_id="e1")
        result = suggest_for_event(current, history + [current], students, NOW)
        assert "subject-strategy" in _detectors(result)

    def test_time_management(self, students):
        history = [
            event("bullying", "s2", days_ago=4, time_of_day="Afternoon", event_id="h1"),
            event("fighting", "s3", days_ago=5, time_of_day="Afternoon", event_id="h2"),
        ]
        current = event("not_listening", "s1", days_ago=0, time_of_day="Afternoon", event_id="e1")
        result = suggest_for_event(current, history + [current], students, NOW)
        assert "time-management" in _detectors(result)

    def test_prevention_for_repeat_within_three_days(self, students):
        previous = event("not_listening", "s1", days_ago=1, event_id="h1")
        current = event("not_listening", "s1", days_ago=0, event_id="e1")
        result = suggest_for_event(current, [previous, current], students, NOW)
        prevention = next(s for s in result if s.detector == "prevention-strategy")
        assert prevention.data[0]["value"] == 1

    def test_no_prevention_after_quiet_period(self, students):
        previous = event("not_listening", "s1", days_ago=5, event_id="h1")
        current = event("not_listening", "s1", days_ago=0, event_id="e1")
        result = suggest_for_event(current, [previous, current], students, NOW)
        assert "prevention-strategy" not in _detectors(result)

    def test_neutral_event_without_history_has_no_suggestions(self, students):
        current = event("late_to_class", "s1", days_ago=0, event_id="e1")
        assert suggest_for_event(current, [current], students, NOW) == []
