from typing import Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from database import serialize
from errors import app_assert
from schemas import HHMM
from security import get_database, get_user_from_token, oid, require_role
from services import dtr_service

router = APIRouter(prefix="/dtr", tags=["dtr"])

OPTIONAL_HHMM = f"^$|{HHMM}"


# ---------- Models for Requests ----------

class MonthRequest(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)


class EntryUpdateRequest(BaseModel):
    in1: Optional[str] = Field(default=None, pattern=OPTIONAL_HHMM)
    out1: Optional[str] = Field(default=None, pattern=OPTIONAL_HHMM)
    in2: Optional[str] = Field(default=None, pattern=OPTIONAL_HHMM)
    out2: Optional[str] = Field(default=None, pattern=OPTIONAL_HHMM)
    late: Optional[int] = Field(default=None, ge=0)
    undertime: Optional[int] = Field(default=None, ge=0)
    total_hours: Optional[int] = Field(default=None, ge=0)
    status: Optional[str] = None


class UserMonthRequest(MonthRequest):
    user_id: str


class MarkExcusedRequest(BaseModel):
    dtr_id: str
    day: int = Field(..., ge=1, le=31)
    excused_status: Literal["excused", "none"]
    excused_reason: Optional[str] = None


class RejectRequest(BaseModel):
    remarks: str = Field(..., min_length=1)


class ApproveRequest(BaseModel):
    remarks: Optional[str] = None


def _entry_data(payload: EntryUpdateRequest) -> dict:
    return {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}


def _load(db, dtr_id: str, user: dict) -> dict:
    dtr = dtr_service.get_dtr(db, oid(dtr_id))
    if user["role"] == "student":
        app_assert(dtr["user_id"] == user["_id"], 404, "DTR not found")
    return dtr


def _load_own(db, dtr_id: str, user: dict) -> dict:
    dtr = dtr_service.get_dtr(db, oid(dtr_id))
    app_assert(dtr["user_id"] == user["_id"], 404, "DTR not found")
    return dtr


# ---------- Student ----------

@router.post("/get-or-create")
def get_or_create_dtr(payload: MonthRequest, user=Depends(require_role("student")),
                      db=Depends(get_database)):
    return serialize(dtr_service.get_or_create(db, user["_id"], payload.month, payload.year))


@router.get("/mine")
def my_dtrs(user=Depends(require_role("student")), db=Depends(get_database)):
    cursor = db["dtr"].find({"user_id": user["_id"]}).sort([("year", -1), ("month", -1)])
    return [serialize(d) for d in cursor]


@router.get("/stats")
def my_dtr_stats(user=Depends(require_role("student")), db=Depends(get_database)):
    return dtr_service.stats(db, user["_id"])


# ---------- Office ----------

@router.post("/office/get-user-dtr")
def get_user_dtr(payload: UserMonthRequest, user=Depends(require_role("office", "hr")),
                 db=Depends(get_database)):
    owner = db["user"].find_one({"_id": oid(payload.user_id)}, {"_id": 1})
    app_assert(owner, 404, "User not found")
    return serialize(dtr_service.get_or_create(db, payload.user_id, payload.month, payload.year))


@router.post("/office/mark-day-excused")
def mark_day_excused(payload: MarkExcusedRequest, user=Depends(require_role("office")),
                     db=Depends(get_database)):
    dtr = dtr_service.get_dtr(db, oid(payload.dtr_id))
    excused = payload.excused_status == "excused"
    updated = dtr_service.mark_day_excused(db, dtr, payload.day, excused, user, payload.excused_reason)
    message = "Day marked as excused successfully" if excused else "Excused status removed successfully"
    return {"message": message, "dtr": serialize(updated)}


@router.get("/office/submitted")
def submitted_dtrs(
    month: Optional[int] = Query(None, ge=1, le=12),
    year: Optional[int] = None,
    status: Optional[Literal["submitted", "approved", "rejected"]] = None,
    user=Depends(require_role("office", "hr")),
    db=Depends(get_database),
):
    filt = {"status": status or {"$in": ["submitted", "approved", "rejected"]}}
    if month:
        filt["month"] = month
    if year:
        filt["year"] = year

    results = []
    for dtr in db["dtr"].find(filt).sort("submitted_at", -1):
        owner = None
        if ObjectId.is_valid(dtr["user_id"]):
            owner = db["user"].find_one(
                {"_id": ObjectId(dtr["user_id"])}, {"firstname": 1, "lastname": 1, "email": 1}
            )
        dtr = serialize(dtr)
        dtr["user"] = serialize(owner)
        results.append(dtr)
    return results


@router.post("/{dtr_id}/approve")
def approve_dtr(dtr_id: str, payload: Optional[ApproveRequest] = None,
                user=Depends(require_role("office", "hr")), db=Depends(get_database)):
    dtr = dtr_service.get_dtr(db, oid(dtr_id))
    remarks = payload.remarks if payload else None
    return serialize(dtr_service.check(db, dtr, user, "approved", remarks))


@router.post("/{dtr_id}/reject")
def reject_dtr(dtr_id: str, payload: RejectRequest,
               user=Depends(require_role("office", "hr")), db=Depends(get_database)):
    dtr = dtr_service.get_dtr(db, oid(dtr_id))
    return serialize(dtr_service.check(db, dtr, user, "rejected", payload.remarks))


@router.post("/{dtr_id}/entries/{day}/confirm")
def confirm_entry(dtr_id: str, day: int, user=Depends(require_role("office", "hr")),
                  db=Depends(get_database)):
    dtr = dtr_service.get_dtr(db, oid(dtr_id))
    return serialize(dtr_service.confirm_entry(db, dtr, day, user))


@router.post("/{dtr_id}/confirm-all")
def confirm_all_entries(dtr_id: str, user=Depends(require_role("office", "hr")),
                        db=Depends(get_database)):
    dtr = dtr_service.get_dtr(db, oid(dtr_id))
    return serialize(dtr_service.confirm_all(db, dtr, user))


@router.put("/{dtr_id}/entries/{day}/office")
def office_update_entry(dtr_id: str, day: int, payload: EntryUpdateRequest,
                        user=Depends(require_role("office", "hr")), db=Depends(get_database)):
    dtr = dtr_service.get_dtr(db, oid(dtr_id))
    return serialize(dtr_service.update_entry_by_office(db, dtr, day, _entry_data(payload), user))


# ---------- Single record ----------

@router.get("/{dtr_id}")
def get_dtr(dtr_id: str, user=Depends(get_user_from_token), db=Depends(get_database)):
    return serialize(_load(db, dtr_id, user))


@router.put("/{dtr_id}/entries/{day}")
def update_entry(dtr_id: str, day: int, payload: EntryUpdateRequest,
                 user=Depends(require_role("student")), db=Depends(get_database)):
    dtr = _load_own(db, dtr_id, user)
    return serialize(dtr_service.update_entry(db, dtr, day, _entry_data(payload)))


@router.post("/{dtr_id}/submit")
def submit_dtr(dtr_id: str, user=Depends(require_role("student")), db=Depends(get_database)):
    return serialize(dtr_service.submit(db, _load_own(db, dtr_id, user)))


@router.delete("/{dtr_id}")
def delete_dtr(dtr_id: str, user=Depends(require_role("student")), db=Depends(get_database)):
    dtr = _load_own(db, dtr_id, user)
    app_assert(dtr.get("status") == "draft", 400, "Only draft DTRs can be deleted")
    db["dtr"].delete_one({"_id": dtr["_id"]})
    return {"ok": True}
