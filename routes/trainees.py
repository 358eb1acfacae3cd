"""
Trainee views: applications in the training stage, by office and for the
trainee themself. DTR hours are summed across all months, in whole hours.
"""
import logging
from typing import Literal, Optional

from bson import ObjectId
from fastapi import APIRouter, Depends

from database import serialize
from errors import app_assert
from security import get_database, require_role
from workflow import ApplicationStatus as S

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/trainees", tags=["trainees"])

TRAINING_STATUSES = (S.TRAINEE.value, S.TRAINING_COMPLETED.value)


def dtr_hours(db, user_id: str) -> int:
    minutes = sum(
        d.get("total_monthly_hours") or 0
        for d in db["dtr"].find({"user_id": user_id}, {"total_monthly_hours": 1})
    )
    return minutes // 60


def _trainees(db, office: Optional[str], status: Optional[str]) -> list:
    filt = {"status": status or {"$in": list(TRAINING_STATUSES)}}
    if office:
        filt["trainee_office"] = office

    results = []
    for application in db["application"].find(filt, {"timeline": 0}).sort("trainee_start_date", -1):
        owner = None
        if ObjectId.is_valid(application.get("user_id") or ""):
            owner = db["user"].find_one(
                {"_id": ObjectId(application["user_id"])},
                {"firstname": 1, "lastname": 1, "email": 1},
            )
        if owner is None:
            logger.warning("Trainee application %s has no user, leaving it out", application["_id"])
            continue
        trainee = serialize(application)
        trainee["user"] = serialize(owner)
        trainee["dtr_completed_hours"] = dtr_hours(db, application["user_id"])
        results.append(trainee)
    return results


# ---------- Routes ----------

@router.get("/all")
def all_trainees(office: Optional[str] = None,
                 status: Optional[Literal["trainee", "training_completed"]] = None,
                 user=Depends(require_role("hr")), db=Depends(get_database)):
    return {"trainees": _trainees(db, office, status)}


@router.get("/office")
def office_trainees(office: Optional[str] = None,
                    status: Optional[Literal["trainee", "training_completed"]] = None,
                    user=Depends(require_role("office", "hr")), db=Depends(get_database)):
    if user["role"] == "office":
        app_assert(user.get("office_name"), 400, "Office user has no office assigned")
        office = user["office_name"]
    return {"trainees": _trainees(db, office, status)}


@router.get("/my-deployment")
def my_deployment(user=Depends(require_role("student")), db=Depends(get_database)):
    application = db["application"].find_one(
        {"user_id": user["_id"], "status": {"$in": list(TRAINING_STATUSES)}},
        sort=[("trainee_start_date", -1)],
    )
    if not application:
        return {"deployment": None, "message": "No active trainee deployment found"}

    return {
        "deployment": {
            "application_id": str(application["_id"]),
            "office": application.get("trainee_office"),
            "start_date": application.get("trainee_start_date"),
            "end_date": application.get("trainee_end_date"),
            "required_hours": application.get("required_hours"),
            "completed_hours": application.get("completed_hours"),
            "dtr_completed_hours": dtr_hours(db, user["_id"]),
            "status": application["status"],
            "notes": application.get("trainee_notes"),
            "performance_rating": application.get("trainee_performance_rating"),
        }
    }
