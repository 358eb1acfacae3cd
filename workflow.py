"""
Application status workflow.

An application moves through a fixed set of statuses. For display they are
grouped into six pipeline steps (Review, Psychometric Test, Interview,
Trainee, Training Complete, Accepted); four statuses end the pipeline as a
failure. ``classify`` projects a status onto that view and ``can_transition``
answers whether a write from one status to another is allowed.

Both are pure: no I/O, no hidden state.
"""
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional, Tuple, Union


class ApplicationStatus(str, Enum):
    PENDING = "pending"
    UNDER_REVIEW = "under_review"
    PSYCHOMETRIC_SCHEDULED = "psychometric_scheduled"
    PSYCHOMETRIC_COMPLETED = "psychometric_completed"
    PSYCHOMETRIC_PASSED = "psychometric_passed"
    PSYCHOMETRIC_FAILED = "psychometric_failed"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    INTERVIEW_COMPLETED = "interview_completed"
    INTERVIEW_PASSED = "interview_passed"
    INTERVIEW_FAILED = "interview_failed"
    TRAINEE = "trainee"
    TRAINING_COMPLETED = "training_completed"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"
    ON_HOLD = "on_hold"


S = ApplicationStatus

ALL_STATUSES: Tuple[str, ...] = tuple(s.value for s in ApplicationStatus)

POSITION_TITLES = {
    "student_assistant": "Student Assistant",
    "student_marshal": "Student Marshal",
}


def position_title(position: Optional[str]) -> str:
    return POSITION_TITLES.get(position or "", "Student Marshal")


@dataclass(frozen=True)
class WorkflowStep:
    id: str
    title: str
    statuses: FrozenSet[str]


STEPS: Tuple[WorkflowStep, ...] = (
    WorkflowStep("review", "Review", frozenset({S.PENDING.value, S.UNDER_REVIEW.value})),
    WorkflowStep(
        "psychometric",
        "Psychometric Test",
        frozenset({
            S.PSYCHOMETRIC_SCHEDULED.value,
            S.PSYCHOMETRIC_COMPLETED.value,
            S.PSYCHOMETRIC_PASSED.value,
        }),
    ),
    WorkflowStep(
        "interview",
        "Interview",
        frozenset({
            S.INTERVIEW_SCHEDULED.value,
            S.INTERVIEW_COMPLETED.value,
            S.INTERVIEW_PASSED.value,
        }),
    ),
    WorkflowStep("trainee", "Trainee", frozenset({S.TRAINEE.value})),
    WorkflowStep("training_completed", "Training Complete", frozenset({S.TRAINING_COMPLETED.value})),
    WorkflowStep("accepted", "Accepted", frozenset({S.ACCEPTED.value})),
)

# Banner shown for statuses that end the pipeline unsuccessfully
FAILURE_TITLES: Dict[str, str] = {
    S.REJECTED.value: "Application Rejected",
    S.WITHDRAWN.value: "Application Withdrawn",
    S.PSYCHOMETRIC_FAILED.value: "Psychometric Test Not Passed",
    S.INTERVIEW_FAILED.value: "Interview Not Passed",
}

FAILURE_STATUSES: FrozenSet[str] = frozenset(FAILURE_TITLES)

# The step that gets the red mark when a specific stage was failed
_FAILED_STEP = {
    S.PSYCHOMETRIC_FAILED.value: "psychometric",
    S.INTERVIEW_FAILED.value: "interview",
}

# Steps before this index are drawn as failed in any failure mode
_FAILED_PREFIX = 3

STATUS_DESCRIPTIONS: Dict[str, str] = {
    S.PENDING.value: "Application submitted, awaiting review",
    S.UNDER_REVIEW.value: "Application under review by HR",
    S.PSYCHOMETRIC_SCHEDULED.value: "Psychometric test scheduled",
    S.PSYCHOMETRIC_COMPLETED.value: "Psychometric test completed, awaiting results",
    S.PSYCHOMETRIC_PASSED.value: "Psychometric test passed! Waiting for interview schedule",
    S.PSYCHOMETRIC_FAILED.value: "Psychometric test not passed",
    S.INTERVIEW_SCHEDULED.value: "Interview scheduled",
    S.INTERVIEW_COMPLETED.value: "Interview completed, awaiting decision",
    S.INTERVIEW_PASSED.value: "Interview passed! Will be deployed as trainee soon",
    S.INTERVIEW_FAILED.value: "Interview not passed",
    S.TRAINEE.value: "Currently in training period",
    S.TRAINING_COMPLETED.value: "Training completed! Awaiting final acceptance",
    S.ACCEPTED.value: "Application accepted! Welcome aboard!",
    S.REJECTED.value: "Application was not successful",
    S.WITHDRAWN.value: "Application withdrawn by applicant",
    S.ON_HOLD.value: "Application on hold temporarily",
}


@dataclass(frozen=True)
class StepState:
    id: str
    title: str
    state: str  # completed | current | pending | failed


@dataclass(frozen=True)
class WorkflowProgress:
    status: str
    current_step: int
    is_failed: bool
    matched: bool
    failure_title: Optional[str]
    description: str
    steps: Tuple[StepState, ...]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["steps"] = [dict(step) for step in data["steps"]]
        return data


def _status_value(status: Union[ApplicationStatus, str, None]) -> str:
    if isinstance(status, ApplicationStatus):
        return status.value
    return status or ""


def current_step_index(status: Union[ApplicationStatus, str, None]) -> int:
    """Index of the step containing `status`, or -1.

    -1 covers both the failure statuses and statuses that belong to no step
    (on_hold and anything unknown).
    """
    value = _status_value(status)
    if value in FAILURE_STATUSES:
        return -1
    for index, step in enumerate(STEPS):
        if value in step.statuses:
            return index
    return -1


def _step_state(index: int, step: WorkflowStep, status: str, current: int) -> str:
    if current == -1:
        if _FAILED_STEP.get(status) == step.id:
            return "failed"
        if index < _FAILED_PREFIX:
            return "failed"
        return "pending"
    if index < current:
        return "completed"
    if index == current:
        return "current"
    return "pending"


def classify(status: Union[ApplicationStatus, str, None]) -> WorkflowProgress:
    value = _status_value(status)
    current = current_step_index(value)
    matched = value in FAILURE_STATUSES or current != -1

    steps = tuple(
        StepState(step.id, step.title, _step_state(index, step, value, current))
        for index, step in enumerate(STEPS)
    )

    return WorkflowProgress(
        status=value,
        current_step=current,
        # on_hold lands here too, without a failure title; see `matched`
        is_failed=current == -1,
        matched=matched,
        failure_title=FAILURE_TITLES.get(value),
        description=STATUS_DESCRIPTIONS.get(value, ""),
        steps=steps,
    )


# ---------- Transitions ----------

TERMINAL_STATUSES: FrozenSet[str] = frozenset({S.ACCEPTED.value}) | FAILURE_STATUSES

ACTIVE_STATUSES: FrozenSet[str] = frozenset(ALL_STATUSES) - TERMINAL_STATUSES

_EXITS = frozenset({S.ON_HOLD.value, S.REJECTED.value, S.WITHDRAWN.value})


def _forward(*statuses: ApplicationStatus) -> FrozenSet[str]:
    return frozenset(s.value for s in statuses) | _EXITS


TRANSITIONS: Dict[str, FrozenSet[str]] = {
    S.PENDING.value: _forward(S.UNDER_REVIEW),
    S.UNDER_REVIEW.value: _forward(S.PSYCHOMETRIC_SCHEDULED),
    S.PSYCHOMETRIC_SCHEDULED.value: _forward(
        S.PSYCHOMETRIC_COMPLETED, S.PSYCHOMETRIC_PASSED, S.PSYCHOMETRIC_FAILED
    ),
    S.PSYCHOMETRIC_COMPLETED.value: _forward(S.PSYCHOMETRIC_PASSED, S.PSYCHOMETRIC_FAILED),
    S.PSYCHOMETRIC_PASSED.value: _forward(S.INTERVIEW_SCHEDULED),
    S.INTERVIEW_SCHEDULED.value: _forward(
        S.INTERVIEW_COMPLETED, S.INTERVIEW_PASSED, S.INTERVIEW_FAILED
    ),
    S.INTERVIEW_COMPLETED.value: _forward(S.INTERVIEW_PASSED, S.INTERVIEW_FAILED),
    S.INTERVIEW_PASSED.value: _forward(S.TRAINEE),
    S.TRAINEE.value: _forward(S.TRAINING_COMPLETED),
    S.TRAINING_COMPLETED.value: _forward(S.ACCEPTED),
    S.ON_HOLD.value: frozenset({
        S.PENDING.value, S.UNDER_REVIEW.value, S.REJECTED.value, S.WITHDRAWN.value
    }),
}

# Roles allowed to move an application *into* a status
_TRIGGER_ROLES: Dict[str, FrozenSet[str]] = {
    S.WITHDRAWN.value: frozenset({"student"}),
    S.ACCEPTED.value: frozenset({"hr"}),
}
_STAFF = frozenset({"hr", "office"})

# Statuses that carry side effects and are only written by a pipeline action
ACTION_STATUSES: FrozenSet[str] = frozenset({
    S.PSYCHOMETRIC_SCHEDULED.value,
    S.PSYCHOMETRIC_PASSED.value,
    S.PSYCHOMETRIC_FAILED.value,
    S.INTERVIEW_SCHEDULED.value,
    S.INTERVIEW_PASSED.value,
    S.INTERVIEW_FAILED.value,
    S.TRAINEE.value,
    S.TRAINING_COMPLETED.value,
    S.ACCEPTED.value,
    S.REJECTED.value,
})


def can_transition(current: Union[ApplicationStatus, str], new: Union[ApplicationStatus, str]) -> bool:
    return _status_value(new) in TRANSITIONS.get(_status_value(current), frozenset())


def allowed_roles(new: Union[ApplicationStatus, str]) -> FrozenSet[str]:
    return _TRIGGER_ROLES.get(_status_value(new), _STAFF)


def is_active(status: Union[ApplicationStatus, str]) -> bool:
    return _status_value(status) in ACTIVE_STATUSES


def requires_action(new: Union[ApplicationStatus, str]) -> bool:
    return _status_value(new) in ACTION_STATUSES
