import logging
import re
from datetime import date
from typing import Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, Field
from pymongo.errors import PyMongoError

from database import as_datetime, create_document, serialize, utcnow
from errors import app_assert
from schemas import Leave
from security import full_name, get_database, oid, require_role
from services import dtr_service, notification_service
from uploads import save_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/leaves", tags=["leaves"])

REVIEWERS = ("office", "hr")


# ---------- Models for Requests ----------

class LeaveRequest(BaseModel):
    name: str = Field(..., min_length=1)
    school_dept: str
    course_year: str
    type_of_leave: str
    date_from: date
    date_to: date
    days_hours: str
    reasons: str = Field(..., min_length=1)


class DecisionRequest(BaseModel):
    status: Literal["approved", "disapproved"]
    remarks: Optional[str] = None
    allow_resubmit: bool = False


def _check_range(payload: LeaveRequest) -> None:
    app_assert(payload.date_to >= payload.date_from, 400, "date_to must be on or after date_from")


def _leave_fields(payload: LeaveRequest) -> dict:
    data = payload.model_dump()
    data["date_from"] = as_datetime(payload.date_from)
    data["date_to"] = as_datetime(payload.date_to)
    return data


def _load_own(db, leave_id: str, user: dict) -> dict:
    leave = db["leave"].find_one({"_id": oid(leave_id)})
    app_assert(leave and leave["user_id"] == user["_id"], 404, "Leave request not found")
    return leave


# ---------- Student ----------

@router.post("")
def create_leave(payload: LeaveRequest, user=Depends(require_role("student")),
                 db=Depends(get_database)):
    _check_range(payload)
    leave_id = create_document(db, "leave", Leave(user_id=user["_id"], **_leave_fields(payload)))
    logger.info("Leave %s filed by %s", leave_id, user["_id"])
    return serialize(db["leave"].find_one({"_id": ObjectId(leave_id)}))


@router.get("/mine")
def my_leaves(user=Depends(require_role("student")), db=Depends(get_database)):
    return [serialize(leave) for leave in db["leave"].find({"user_id": user["_id"]}).sort("created_at", -1)]


@router.post("/{leave_id}/proof")
def upload_proof(leave_id: str, file: UploadFile = File(...), user=Depends(require_role("student")),
                 db=Depends(get_database)):
    leave = _load_own(db, leave_id, user)
    public_url = save_upload(file, f"leave_{leave_id}")
    db["leave"].update_one(
        {"_id": leave["_id"]}, {"$set": {"proof_url": public_url, "updated_at": utcnow()}}
    )
    return {"proof_url": public_url}


@router.put("/{leave_id}")
def resubmit_leave(leave_id: str, payload: LeaveRequest, user=Depends(require_role("student")),
                   db=Depends(get_database)):
    leave = _load_own(db, leave_id, user)
    app_assert(
        leave.get("status") == "disapproved" and leave.get("allow_resubmit"),
        400,
        "Only disapproved leave requests that allow resubmission can be edited",
    )
    _check_range(payload)
    update = _leave_fields(payload)
    update.update({
        "status": "pending",
        "remarks": None,
        "decided_by": None,
        "decided_by_name": None,
        "decided_at": None,
        "allow_resubmit": False,
        "updated_at": utcnow(),
    })
    db["leave"].update_one({"_id": leave["_id"]}, {"$set": update})
    return serialize(db["leave"].find_one({"_id": leave["_id"]}))


@router.delete("/{leave_id}")
def cancel_leave(leave_id: str, user=Depends(require_role("student")), db=Depends(get_database)):
    leave = _load_own(db, leave_id, user)
    app_assert(leave.get("status") == "pending", 400, "Only pending leave requests can be cancelled")
    db["leave"].delete_one({"_id": leave["_id"]})
    return {"ok": True}


# ---------- Office / HR ----------

@router.get("/office")
def office_leaves(status: Optional[str] = None, q: Optional[str] = None,
                  user=Depends(require_role(*REVIEWERS)), db=Depends(get_database)):
    filt = {}
    if status:
        filt["status"] = status
    if q:
        pattern = {"$regex": re.escape(q), "$options": "i"}
        filt["$or"] = [{"name": pattern}, {"reasons": pattern}]
    return [serialize(leave) for leave in db["leave"].find(filt).sort("created_at", -1)]


@router.post("/{leave_id}/decision")
def decide_leave(leave_id: str, payload: DecisionRequest,
                 user=Depends(require_role(*REVIEWERS)), db=Depends(get_database)):
    leave = db["leave"].find_one({"_id": oid(leave_id)})
    app_assert(leave, 404, "Leave request not found")
    app_assert(leave.get("status") == "pending", 400, "Leave request already decided")

    approved = payload.status == "approved"
    db["leave"].update_one({"_id": leave["_id"]}, {"$set": {
        "status": payload.status,
        "remarks": payload.remarks,
        "allow_resubmit": payload.allow_resubmit and not approved,
        "decided_by": user["_id"],
        "decided_by_name": full_name(user),
        "decided_at": utcnow(),
        "updated_at": utcnow(),
    }})
    logger.info("Leave %s %s by %s", leave_id, payload.status, user["_id"])

    if approved:
        try:
            days = dtr_service.mark_leave_days(
                db, leave["user_id"], leave["date_from"].date(), leave["date_to"].date(),
                leave.get("type_of_leave") or "Leave", user,
            )
            logger.info("Marked %s leave days in DTRs of %s", days, leave["user_id"])
        except PyMongoError:
            logger.exception("Failed to mark leave %s in DTRs", leave_id)

    notification_service.notify(
        db,
        leave["user_id"],
        f"Leave Request {'Approved' if approved else 'Disapproved'}",
        f"Your {leave.get('type_of_leave', 'leave')} request has been {payload.status}."
        + (f" Remarks: {payload.remarks}" if payload.remarks else ""),
        "success" if approved else "warning",
    )
    return serialize(db["leave"].find_one({"_id": leave["_id"]}))
