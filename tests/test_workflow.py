"""
Tests for application status classification and the transition table
"""
import pytest

from workflow import (
    ACTIVE_STATUSES,
    ALL_STATUSES,
    STEPS,
    TERMINAL_STATUSES,
    TRANSITIONS,
    ApplicationStatus,
    allowed_roles,
    can_transition,
    classify,
    current_step_index,
    position_title,
    requires_action,
)


class TestClassify:
    def test_mixed_statuses(self):
        results = [classify(s) for s in ["pending", "interview_passed", "rejected", "on_hold"]]

        assert [r.current_step for r in results] == [0, 2, -1, -1]
        assert results[2].failure_title == "Application Rejected"
        assert results[2].matched is True
        assert results[3].failure_title is None
        assert results[3].matched is False

    @pytest.mark.parametrize("status,index", [
        ("pending", 0),
        ("under_review", 0),
        ("psychometric_scheduled", 1),
        ("psychometric_completed", 1),
        ("psychometric_passed", 1),
        ("interview_scheduled", 2),
        ("interview_completed", 2),
        ("interview_passed", 2),
        ("trainee", 3),
        ("training_completed", 4),
        ("accepted", 5),
    ])
    def test_step_index(self, status, index):
        assert current_step_index(status) == index
        assert classify(status).is_failed is False

    def test_failure_titles(self):
        assert classify("withdrawn").failure_title == "Application Withdrawn"
        assert classify("psychometric_failed").failure_title == "Psychometric Test Not Passed"
        assert classify("interview_failed").failure_title == "Interview Not Passed"
        assert classify("trainee").failure_title is None

    def test_on_hold_is_failed_without_title(self):
        progress = classify("on_hold")

        assert progress.is_failed is True
        assert progress.failure_title is None
        assert progress.description == "Application on hold temporarily"

    def test_unknown_status(self):
        progress = classify("not_a_status")

        assert progress.current_step == -1
        assert progress.matched is False
        assert progress.description == ""

    def test_accepts_enum(self):
        assert classify(ApplicationStatus.TRAINEE) == classify("trainee")

    def test_deterministic(self):
        for status in ALL_STATUSES:
            assert classify(status) == classify(status)

    def test_step_states_in_progress(self):
        states = [s.state for s in classify("interview_scheduled").steps]

        assert states == ["completed", "completed", "current", "pending", "pending", "pending"]

    def test_step_states_accepted(self):
        states = [s.state for s in classify("accepted").steps]

        assert states == ["completed"] * 5 + ["current"]

    def test_step_states_interview_failed(self):
        steps = {s.id: s.state for s in classify("interview_failed").steps}

        assert steps["interview"] == "failed"
        assert steps["review"] == "failed"
        assert steps["trainee"] == "pending"
        assert steps["accepted"] == "pending"

    def test_step_titles(self):
        titles = [s.title for s in classify("pending").steps]

        assert titles == [s.title for s in STEPS]
        assert titles[1] == "Psychometric Test"

    def test_to_dict(self):
        data = classify("under_review").to_dict()

        assert data["current_step"] == 0
        assert data["description"] == "Application under review by HR"
        assert data["steps"][0] == {"id": "review", "title": "Review", "state": "current"}


class TestTransitions:
    def test_terminal_statuses_have_no_exits(self):
        for status in TERMINAL_STATUSES:
            assert status not in TRANSITIONS
            for target in ALL_STATUSES:
                assert not can_transition(status, target)

    def test_every_active_status_has_exits(self):
        for status in ACTIVE_STATUSES:
            assert TRANSITIONS[status]

    def test_forward_path(self):
        path = ["pending", "under_review", "psychometric_scheduled", "psychometric_passed",
                "interview_scheduled", "interview_passed", "trainee", "training_completed",
                "accepted"]
        for current, new in zip(path, path[1:]):
            assert can_transition(current, new), (current, new)

    def test_no_skipping(self):
        assert not can_transition("pending", "accepted")
        assert not can_transition("under_review", "interview_scheduled")
        assert not can_transition("trainee", "accepted")

    def test_on_hold_resumes_only_at_review(self):
        assert can_transition("on_hold", "pending")
        assert can_transition("on_hold", "under_review")
        assert not can_transition("on_hold", "trainee")

    def test_trigger_roles(self):
        assert allowed_roles("withdrawn") == {"student"}
        assert allowed_roles("accepted") == {"hr"}
        assert allowed_roles("under_review") == {"hr", "office"}

    def test_action_statuses(self):
        assert requires_action("accepted")
        assert requires_action(ApplicationStatus.TRAINEE)
        assert not requires_action("under_review")
        assert not requires_action("on_hold")
        assert not requires_action("interview_completed")


def test_position_title():
    assert position_title("student_assistant") == "Student Assistant"
    assert position_title("student_marshal") == "Student Marshal"
