"""
Pipeline actions: psychometric test, interview, training and the final decision.

Every action checks the stage the application is in, writes the next status
through the transition table and tells the applicant.
"""
import logging
import os
from datetime import date
from typing import Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, model_validator

from database import as_datetime, create_document, serialize, utcnow
from errors import app_assert
from schemas import HHMM, Schedule
from security import get_database, require_role
from services import application_service, notification_service
from workflow import ApplicationStatus as S
from workflow import is_active

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflow/applications", tags=["workflow"])

TRAINEE_REQUIRED_HOURS = int(os.getenv("TRAINEE_REQUIRED_HOURS", "130"))
ACADEMIC_EMAIL_DOMAIN = os.getenv("ACADEMIC_EMAIL_DOMAIN", "@s.ubaguio.edu").lower()

STAFF = ("hr", "office")


# ---------- Models for Requests ----------

class PsychometricScheduleRequest(BaseModel):
    test_date: date
    test_time: str = Field(..., pattern=HHMM)
    location: Optional[str] = None
    link: Optional[str] = None
    notes: Optional[str] = None


class PsychometricScoreRequest(BaseModel):
    score: float = Field(..., ge=0, le=100)
    passed: bool
    notes: Optional[str] = None


class InterviewScheduleRequest(BaseModel):
    interview_date: date
    interview_time: str = Field(..., pattern=HHMM)
    mode: Literal["in-person", "virtual", "phone"]
    location: Optional[str] = None
    link: Optional[str] = None
    notes: Optional[str] = None


class InterviewResultRequest(BaseModel):
    score: int = Field(..., ge=1, le=5)
    passed: bool
    notes: Optional[str] = None


class TraineeSetRequest(BaseModel):
    start_date: date
    office: Optional[str] = None
    notes: Optional[str] = None


class TraineeHoursRequest(BaseModel):
    completed_hours: float = Field(..., ge=0)
    notes: Optional[str] = None


class AcceptRequest(BaseModel):
    trainee_performance_rating: Optional[int] = Field(default=None, ge=1, le=5)
    hr_comments: Optional[str] = None


class RejectRequest(BaseModel):
    rejection_reason: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def _not_blank(self):
        if not self.rejection_reason.strip():
            raise ValueError("Rejection reason is required")
        return self


def _require_status(application: dict, *statuses: S, message: str) -> None:
    app_assert(application.get("status") in {s.value for s in statuses}, 400, message)


def _notify(db, application: dict, hr_comments: Optional[str] = None,
            details: Optional[str] = None) -> None:
    notification_service.notify_status_change(
        db,
        application["user_id"],
        str(application["_id"]),
        application["status"],
        application["position"],
        hr_comments,
        details,
    )


# ---------- Psychometric test ----------

@router.post("/{app_id}/psychometric/schedule")
def schedule_psychometric_test(app_id: str, payload: PsychometricScheduleRequest,
                               user=Depends(require_role(*STAFF)), db=Depends(get_database)):
    application = application_service.get_application(db, app_id)
    _require_status(application, S.UNDER_REVIEW,
                    message="Application must be under review to schedule a psychometric test")
    app_assert(payload.location or payload.link, 400, "Either location or link is required")

    updated = application_service.record_transition(
        db, application, S.PSYCHOMETRIC_SCHEDULED.value, user,
        action="psychometric_test_scheduled",
        notes=f"Test scheduled for {payload.test_date.isoformat()} at {payload.test_time}",
        updates={
            "psychometric_test_date": as_datetime(payload.test_date),
            "psychometric_test_time": payload.test_time,
            "psychometric_test_location": payload.location,
            "psychometric_test_link": payload.link,
            "psychometric_test_notes": payload.notes,
            "psychometric_scheduled_at": utcnow(),
        },
    )
    where = f"Location: {payload.location}" if payload.location else f"Link: {payload.link}"
    _notify(db, updated, details=f"Date: {payload.test_date:%A, %B %d, %Y}\nTime: {payload.test_time}\n{where}")
    return {"message": "Psychometric test scheduled successfully", "application": serialize(updated)}


@router.post("/{app_id}/psychometric/score")
def submit_psychometric_score(app_id: str, payload: PsychometricScoreRequest,
                              user=Depends(require_role(*STAFF)), db=Depends(get_database)):
    application = application_service.get_application(db, app_id)
    _require_status(application, S.PSYCHOMETRIC_SCHEDULED, S.PSYCHOMETRIC_COMPLETED,
                    message="Psychometric test must be scheduled first")

    new_status = S.PSYCHOMETRIC_PASSED if payload.passed else S.PSYCHOMETRIC_FAILED
    updated = application_service.record_transition(
        db, application, new_status.value, user,
        action="psychometric_test_scored",
        notes=f"Score: {payload.score:g}. {'Passed' if payload.passed else 'Failed'}",
        updates={
            "psychometric_test_score": payload.score,
            "psychometric_test_passed": payload.passed,
            "psychometric_test_notes": payload.notes,
            "psychometric_completed_at": utcnow(),
        },
    )
    _notify(db, updated)
    return {"message": "Psychometric test score submitted", "application": serialize(updated)}


# ---------- Interview ----------

@router.post("/{app_id}/interview/schedule")
def schedule_interview(app_id: str, payload: InterviewScheduleRequest,
                       user=Depends(require_role(*STAFF)), db=Depends(get_database)):
    application = application_service.get_application(db, app_id)
    _require_status(application, S.PSYCHOMETRIC_PASSED,
                    message="Applicant must pass the psychometric test before the interview")

    updated = application_service.record_transition(
        db, application, S.INTERVIEW_SCHEDULED.value, user,
        action="interview_scheduled",
        notes=f"Interview scheduled for {payload.interview_date.isoformat()} at {payload.interview_time} ({payload.mode})",
        updates={
            "interview_date": as_datetime(payload.interview_date),
            "interview_time": payload.interview_time,
            "interview_mode": payload.mode,
            "interview_location": payload.location,
            "interview_link": payload.link,
            "interview_notes": payload.notes,
            "interview_scheduled_at": utcnow(),
        },
    )
    details = f"Date: {payload.interview_date:%A, %B %d, %Y}\nTime: {payload.interview_time}\nMode: {payload.mode}"
    if payload.location:
        details += f"\nLocation: {payload.location}"
    _notify(db, updated, details=details)
    return {"message": "Interview scheduled successfully", "application": serialize(updated)}


@router.post("/{app_id}/interview/result")
def submit_interview_result(app_id: str, payload: InterviewResultRequest,
                            user=Depends(require_role(*STAFF)), db=Depends(get_database)):
    application = application_service.get_application(db, app_id)
    _require_status(application, S.INTERVIEW_SCHEDULED, S.INTERVIEW_COMPLETED,
                    message="Interview must be scheduled first")

    new_status = S.INTERVIEW_PASSED if payload.passed else S.INTERVIEW_FAILED
    updated = application_service.record_transition(
        db, application, new_status.value, user,
        action="interview_completed",
        notes=f"Interview score: {payload.score}/5. {'Passed' if payload.passed else 'Failed'}",
        updates={
            "interview_score": payload.score,
            "interview_passed": payload.passed,
            "interview_notes": payload.notes,
            "interview_completed_at": utcnow(),
        },
    )
    _notify(db, updated)
    return {"message": "Interview result submitted", "application": serialize(updated)}


# ---------- Training ----------

@router.post("/{app_id}/trainee/set")
def set_as_trainee(app_id: str, payload: TraineeSetRequest,
                   user=Depends(require_role(*STAFF)), db=Depends(get_database)):
    application = application_service.get_application(db, app_id)
    _require_status(application, S.INTERVIEW_PASSED,
                    message="Applicant must pass the interview before training")

    updated = application_service.record_transition(
        db, application, S.TRAINEE.value, user,
        action="set_as_trainee",
        notes=f"Training starts {payload.start_date.isoformat()}. "
              f"Required hours: {TRAINEE_REQUIRED_HOURS}",
        updates={
            "trainee_start_date": as_datetime(payload.start_date),
            "trainee_office": payload.office,
            "trainee_notes": payload.notes,
            "required_hours": TRAINEE_REQUIRED_HOURS,
            "completed_hours": 0,
        },
    )
    application_service.set_user_status(db, updated["user_id"], "trainee")

    if db["schedule"].find_one({"user_id": updated["user_id"]}) is None:
        create_document(db, "schedule", Schedule(
            user_id=updated["user_id"], user_type="trainee", application_id=app_id,
        ))
        logger.info("Created trainee schedule for user %s", updated["user_id"])

    _notify(db, updated)
    return {"message": "Applicant set as trainee", "application": serialize(updated)}


@router.put("/{app_id}/trainee/hours")
def update_trainee_hours(app_id: str, payload: TraineeHoursRequest,
                         user=Depends(require_role(*STAFF)), db=Depends(get_database)):
    application = application_service.get_application(db, app_id)
    _require_status(application, S.TRAINEE, message="Application is not in training")

    required = application.get("required_hours") or TRAINEE_REQUIRED_HOURS
    previous = application.get("completed_hours") or 0
    updates = {"completed_hours": payload.completed_hours}
    if payload.notes:
        updates["trainee_notes"] = payload.notes

    if payload.completed_hours >= required:
        updates["trainee_end_date"] = utcnow()
        updated = application_service.record_transition(
            db, application, S.TRAINING_COMPLETED.value, user,
            action="training_completed",
            notes=f"Training completed! {payload.completed_hours:g}/{required} hours",
            updates=updates,
        )
        _notify(db, updated)
    else:
        entry = application_service.timeline_entry(
            "hours_updated", user,
            notes=f"Hours updated: {previous:g} -> {payload.completed_hours:g}/{required}",
        )
        updated = application_service.add_timeline_entry(db, application, entry, updates)

    return {"message": "Trainee hours updated successfully", "application": serialize(updated)}


# ---------- Decision ----------

@router.post("/{app_id}/accept")
def accept_application(app_id: str, payload: Optional[AcceptRequest] = None,
                       user=Depends(require_role("hr")), db=Depends(get_database)):
    payload = payload or AcceptRequest()
    application = application_service.get_application(db, app_id)
    _require_status(application, S.TRAINING_COMPLETED,
                    message="Training must be completed before acceptance")

    applicant = db["user"].find_one({"_id": ObjectId(application["user_id"])})
    app_assert(applicant, 404, "Applicant not found")
    app_assert(
        (applicant.get("email") or "").lower().endswith(ACADEMIC_EMAIL_DOMAIN),
        400,
        f"Applicant must have an academic email ending with {ACADEMIC_EMAIL_DOMAIN}",
    )

    user_status = "SA" if application["position"] == "student_assistant" else "SM"
    updates = {}
    if payload.trainee_performance_rating:
        updates["trainee_performance_rating"] = payload.trainee_performance_rating
    if payload.hr_comments:
        updates["hr_comments"] = payload.hr_comments

    updated = application_service.record_transition(
        db, application, S.ACCEPTED.value, user,
        action="application_accepted",
        notes=f"Application accepted. Performance rating: "
              f"{payload.trainee_performance_rating or 'N/A'}. User status set to {user_status}.",
        updates=updates,
    )
    application_service.set_user_status(db, updated["user_id"], user_status)
    _notify(db, updated, payload.hr_comments)
    return {"message": "Application accepted successfully", "application": serialize(updated)}


@router.post("/{app_id}/reject")
def reject_application(app_id: str, payload: RejectRequest,
                       user=Depends(require_role(*STAFF)), db=Depends(get_database)):
    application = application_service.get_application(db, app_id)
    app_assert(is_active(application.get("status")), 400, "Application is already closed")

    updated = application_service.record_transition(
        db, application, S.REJECTED.value, user,
        action="application_rejected",
        notes=payload.rejection_reason,
        updates={
            "rejection_reason": payload.rejection_reason,
            "hr_comments": payload.rejection_reason,
        },
    )
    _notify(db, updated, payload.rejection_reason)
    return {"message": "Application rejected", "application": serialize(updated)}
