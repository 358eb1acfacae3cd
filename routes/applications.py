import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field

from database import create_document, serialize
from errors import app_assert
from schemas import Application
from security import full_name, get_database, get_user_from_token, oid, require_role
from services import application_service, notification_service
from workflow import ApplicationStatus, classify

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/applications", tags=["applications"])

STAFF = ("hr", "office")


# ---------- Models for Requests ----------

class ApplicationCreateRequest(BaseModel):
    position: Literal["student_assistant", "student_marshal"]
    firstname: str = Field(..., min_length=1)
    lastname: str = Field(..., min_length=1)
    email: EmailStr
    age: int = Field(..., ge=15, le=30)
    gender: Literal["Male", "Female", "Other"]
    civil_status: Literal["Single", "Married", "Widowed", "Separated"]
    home_address: str
    baguio_address: Optional[str] = None
    home_contact: str
    baguio_contact: Optional[str] = None
    citizenship: str = "Filipino"
    father_name: Optional[str] = None
    mother_name: Optional[str] = None
    emergency_contact: str
    emergency_contact_number: str
    college: Optional[str] = None
    course_year: Optional[str] = None
    agreed_to_terms: bool


class StatusUpdateRequest(BaseModel):
    status: ApplicationStatus
    hr_comments: Optional[str] = None


def _load_visible(db, application_id: str, user: dict) -> dict:
    application = application_service.get_application(db, application_id)
    if user["role"] == "student":
        app_assert(application["user_id"] == user["_id"], 404, "Application not found")
    return application


# ---------- Routes ----------

@router.post("")
def create_application(payload: ApplicationCreateRequest, user=Depends(require_role("student")),
                       db=Depends(get_database)):
    app_assert(payload.agreed_to_terms, 400, "You must agree to the terms and conditions")
    if application_service.active_application(db, user["_id"]):
        raise HTTPException(status_code=400, detail="You already have an active application")

    application = Application(user_id=user["_id"], status="pending", **payload.model_dump())
    doc = application.model_dump()
    doc["timeline"] = [application_service.timeline_entry(
        "application_submitted", user, None, "pending", "Application submitted"
    )]
    app_id = create_document(db, "application", doc)
    logger.info("Application %s submitted by %s", app_id, user["_id"])

    notification_service.notify_hr_new_application(
        db, app_id, f"{payload.firstname} {payload.lastname}", payload.position
    )
    return serialize(db["application"].find_one({"_id": oid(app_id)}))


@router.get("/mine")
def my_applications(user=Depends(get_user_from_token), db=Depends(get_database)):
    apps = db["application"].find({"user_id": user["_id"]}).sort("created_at", -1)
    return [serialize(a) for a in apps]


@router.get("/stats")
def application_stats(user=Depends(require_role(*STAFF)), db=Depends(get_database)):
    return application_service.stats(db)


@router.get("")
def list_applications(
    status: Optional[str] = None,
    position: Optional[str] = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user=Depends(require_role(*STAFF)),
    db=Depends(get_database),
):
    filt = {}
    if status:
        filt["status"] = status
    if position:
        filt["position"] = position

    total = db["application"].count_documents(filt)
    cursor = (
        db["application"]
        .find(filt)
        .sort("created_at", -1)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return {
        "applications": [serialize(a) for a in cursor],
        "pagination": application_service.paginate(page, limit, total),
    }


@router.get("/{app_id}")
def get_application(app_id: str, user=Depends(get_user_from_token), db=Depends(get_database)):
    return serialize(_load_visible(db, app_id, user))


@router.get("/{app_id}/progress")
def application_progress(app_id: str, user=Depends(get_user_from_token), db=Depends(get_database)):
    application = _load_visible(db, app_id, user)
    return {"application_id": str(application["_id"]), **classify(application.get("status")).to_dict()}


@router.patch("/{app_id}/status")
def update_application_status(app_id: str, payload: StatusUpdateRequest,
                              user=Depends(require_role(*STAFF)), db=Depends(get_database)):
    application = application_service.get_application(db, app_id)
    updated = application_service.change_status(
        db, application, payload.status.value, user, payload.hr_comments
    )
    return serialize(updated)


@router.post("/{app_id}/withdraw")
def withdraw_application(app_id: str, user=Depends(require_role("student")),
                         db=Depends(get_database)):
    application = _load_visible(db, app_id, user)
    updated = application_service.record_transition(
        db, application, ApplicationStatus.WITHDRAWN.value, user,
        action="application_withdrawn", notes=f"Withdrawn by {full_name(user)}",
    )
    notification_service.notify_status_change(
        db, user["_id"], app_id, updated["status"], updated["position"]
    )
    return serialize(updated)


@router.delete("/{app_id}")
def delete_application(app_id: str, user=Depends(require_role("student")),
                       db=Depends(get_database)):
    application = _load_visible(db, app_id, user)
    app_assert(application.get("status") == "pending", 400, "Only pending applications can be deleted")
    db["application"].delete_one({"_id": application["_id"]})
    logger.info("Application %s deleted by owner", app_id)
    return {"ok": True}
