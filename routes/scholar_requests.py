import logging
from typing import Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from database import create_document, serialize, utcnow
from errors import app_assert
from schemas import ScholarRequest
from security import get_database, get_user_from_token, oid, require_role
from services import notification_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scholar-requests", tags=["scholar-requests"])


# ---------- Models for Requests ----------

class ScholarRequestCreate(BaseModel):
    total_scholars: int = Field(..., ge=1)
    male_scholars: int = Field(..., ge=0)
    female_scholars: int = Field(..., ge=0)
    scholar_type: Literal["Student Assistant", "Student Marshal"]
    notes: Optional[str] = None


class ReviewRequest(BaseModel):
    status: Literal["approved", "rejected"]
    review_notes: Optional[str] = None


def _page(db, filt: dict, page: int, limit: int) -> dict:
    total = db["scholar_request"].count_documents(filt)
    cursor = (
        db["scholar_request"]
        .find(filt)
        .sort("created_at", -1)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    return {
        "requests": [serialize(r) for r in cursor],
        "total": total,
        "page": page,
        "total_pages": (total + limit - 1) // limit,
    }


def _get(db, request_id: str) -> dict:
    request = db["scholar_request"].find_one({"_id": oid(request_id)})
    app_assert(request, 404, "Scholar request not found")
    return request


# ---------- Routes ----------

@router.post("")
def create_scholar_request(payload: ScholarRequestCreate, user=Depends(require_role("office")),
                           db=Depends(get_database)):
    app_assert(
        payload.total_scholars == payload.male_scholars + payload.female_scholars,
        400,
        "Total scholars must equal male plus female scholars",
    )
    request_id = create_document(
        db, "scholar_request", ScholarRequest(requested_by=user["_id"], **payload.model_dump())
    )
    office = user.get("office_name") or "An office"
    notification_service.notify_role(
        db, "hr",
        "New Scholar Request",
        f"{office} requested {payload.total_scholars} {payload.scholar_type}(s) "
        f"({payload.male_scholars} male, {payload.female_scholars} female).",
        "info",
    )
    logger.info("Scholar request %s created by %s", request_id, user["_id"])
    return serialize(db["scholar_request"].find_one({"_id": ObjectId(request_id)}))


@router.get("")
def my_scholar_requests(page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                        user=Depends(require_role("office")), db=Depends(get_database)):
    return _page(db, {"requested_by": user["_id"]}, page, limit)


@router.get("/all")
def all_scholar_requests(status: Optional[str] = None, scholar_type: Optional[str] = None,
                         page: int = Query(1, ge=1), limit: int = Query(20, ge=1, le=100),
                         user=Depends(require_role("hr")), db=Depends(get_database)):
    filt = {}
    if status:
        filt["status"] = status
    if scholar_type:
        filt["scholar_type"] = scholar_type
    return _page(db, filt, page, limit)


@router.get("/{request_id}")
def get_scholar_request(request_id: str, user=Depends(get_user_from_token),
                        db=Depends(get_database)):
    request = _get(db, request_id)
    app_assert(user["role"] == "hr" or request["requested_by"] == user["_id"], 403, "Forbidden")
    return serialize(request)


@router.patch("/{request_id}/review")
def review_scholar_request(request_id: str, payload: ReviewRequest,
                           user=Depends(require_role("hr")), db=Depends(get_database)):
    request = _get(db, request_id)
    app_assert(request.get("status") == "pending", 400, "Only pending requests can be reviewed")
    db["scholar_request"].update_one({"_id": request["_id"]}, {"$set": {
        "status": payload.status,
        "review_notes": payload.review_notes,
        "reviewed_by": user["_id"],
        "reviewed_at": utcnow(),
        "updated_at": utcnow(),
    }})
    message = f"Your request for {request['total_scholars']} {request['scholar_type']}(s) was {payload.status}."
    if payload.review_notes:
        message += f" Notes: {payload.review_notes}"
    notification_service.notify(
        db, request["requested_by"], "Scholar Request Reviewed", message,
        "success" if payload.status == "approved" else "warning",
    )
    return serialize(db["scholar_request"].find_one({"_id": request["_id"]}))


@router.delete("/{request_id}")
def delete_scholar_request(request_id: str, user=Depends(get_user_from_token),
                           db=Depends(get_database)):
    request = _get(db, request_id)
    app_assert(request["requested_by"] == user["_id"], 403, "Forbidden")
    app_assert(request.get("status") == "pending", 400, "Only pending requests can be deleted")
    db["scholar_request"].delete_one({"_id": request["_id"]})
    return {"ok": True}
