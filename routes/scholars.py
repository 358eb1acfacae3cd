import logging
from typing import Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from database import serialize, utcnow
from errors import app_assert
from security import get_database, get_user_from_token, require_role
from services import maintenance, scholar_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["scholars"])


# ---------- Models for Requests ----------

class DeployRequest(BaseModel):
    application_id: str
    scholar_office: str = Field(..., min_length=1)
    notes: Optional[str] = None


class ScholarUpdateRequest(BaseModel):
    status: Optional[Literal["active", "inactive", "completed"]] = None
    performance_rating: Optional[int] = Field(default=None, ge=1, le=5)
    scholar_notes: Optional[str] = None
    scholar_office: Optional[str] = Field(default=None, min_length=1)


def _with_user(db, scholar: dict) -> dict:
    scholar = serialize(scholar)
    user = None
    if ObjectId.is_valid(scholar.get("user_id") or ""):
        user = db["user"].find_one(
            {"_id": ObjectId(scholar["user_id"])},
            {"firstname": 1, "lastname": 1, "email": 1},
        )
    scholar["user"] = serialize(user)
    return scholar


# ---------- Scholars ----------

@router.post("/scholars")
def deploy_scholar(payload: DeployRequest, user=Depends(require_role("hr")),
                   db=Depends(get_database)):
    scholar = scholar_service.deploy(
        db, payload.application_id, payload.scholar_office, user, payload.notes
    )
    return {"message": "Scholar deployed successfully", "scholar": scholar}


@router.get("/scholars")
def list_scholars(status: Optional[str] = None, office: Optional[str] = None,
                  scholar_type: Optional[str] = None,
                  user=Depends(require_role("hr")), db=Depends(get_database)):
    filt = {}
    if status:
        filt["status"] = status
    if office:
        filt["scholar_office"] = office
    if scholar_type:
        filt["scholar_type"] = scholar_type
    return [_with_user(db, s) for s in db["scholar"].find(filt).sort("deployed_at", -1)]


@router.get("/scholars/office")
def office_scholars(user=Depends(require_role("office")), db=Depends(get_database)):
    app_assert(user.get("office_name"), 400, "Office user has no office assigned")
    filt = maintenance.office_scholar_filter(user["office_name"])
    return [_with_user(db, s) for s in db["scholar"].find(filt).sort("deployed_at", -1)]


@router.patch("/scholars/{scholar_id}")
def update_scholar(scholar_id: str, payload: ScholarUpdateRequest,
                   user=Depends(require_role("hr")), db=Depends(get_database)):
    scholar = scholar_service.get_scholar(db, scholar_id)
    update = {k: v for k, v in payload.model_dump().items() if v is not None}
    app_assert(update, 400, "Nothing to update")
    update["updated_at"] = utcnow()
    db["scholar"].update_one({"_id": scholar["_id"]}, {"$set": update})
    return _with_user(db, db["scholar"].find_one({"_id": scholar["_id"]}))


@router.post("/scholars/{scholar_id}/complete-semester")
def complete_semester(scholar_id: str, user=Depends(require_role("hr")),
                      db=Depends(get_database)):
    return scholar_service.complete_semester(db, scholar_id)


# ---------- Service duration and archival ----------

@router.get("/service-duration/{user_id}")
def service_duration(user_id: str, user=Depends(get_user_from_token), db=Depends(get_database)):
    app_assert(user["role"] == "hr" or user["_id"] == user_id, 403, "Forbidden")
    return scholar_service.service_duration(db, user_id)


@router.post("/archival/end-semester")
def end_semester(user=Depends(require_role("hr")), db=Depends(get_database)):
    summary = scholar_service.end_semester(db, user)
    return {"message": "Semester ended", **summary}
