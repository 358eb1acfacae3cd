from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel, model_validator

from database import create_document, serialize, utcnow
from errors import app_assert
from schemas import DutyHour, Schedule
from security import get_database, require_role
from services.dtr_service import parse_hhmm
from uploads import save_upload

router = APIRouter(prefix="/schedules", tags=["schedules"])


# ---------- Models for Requests ----------

class ClassScheduleRequest(BaseModel):
    class_schedule_data: list


class DutyHoursRequest(BaseModel):
    duty_hours: List[DutyHour]

    @model_validator(mode="after")
    def _end_after_start(self):
        for slot in self.duty_hours:
            if parse_hhmm(slot.end_time) <= parse_hhmm(slot.start_time):
                raise ValueError(f"{slot.day}: end time must be after start time")
        return self


def _get_or_create(db, user_id: str) -> dict:
    schedule = db["schedule"].find_one({"user_id": user_id})
    if schedule is None:
        # A trainee schedule is always tied to an application
        application = db["application"].find_one({"user_id": user_id}, sort=[("created_at", -1)])
        app_assert(application, 404, "Submit an application before setting up a schedule")
        create_document(db, "schedule", Schedule(
            user_id=user_id, user_type="trainee", application_id=str(application["_id"]),
        ))
        schedule = db["schedule"].find_one({"user_id": user_id})
    return schedule


# ---------- Routes ----------

@router.get("/me")
def my_schedule(user=Depends(require_role("student")), db=Depends(get_database)):
    return serialize(_get_or_create(db, user["_id"]))


@router.put("/me")
def update_my_schedule(payload: ClassScheduleRequest, user=Depends(require_role("student")),
                       db=Depends(get_database)):
    schedule = _get_or_create(db, user["_id"])
    db["schedule"].update_one(
        {"_id": schedule["_id"]},
        {"$set": {"class_schedule_data": payload.class_schedule_data, "updated_at": utcnow()}},
    )
    return serialize(db["schedule"].find_one({"_id": schedule["_id"]}))


@router.post("/me/class-schedule")
def upload_class_schedule(file: UploadFile = File(...), user=Depends(require_role("student")),
                          db=Depends(get_database)):
    schedule = _get_or_create(db, user["_id"])
    public_url = save_upload(file, f"schedule_{user['_id']}")
    now = utcnow()
    db["schedule"].update_one(
        {"_id": schedule["_id"]},
        {"$set": {"class_schedule": public_url, "uploaded_at": now, "updated_at": now}},
    )
    return {"class_schedule": public_url}


@router.get("/user/{user_id}")
def user_schedule(user_id: str, user=Depends(require_role("hr", "office")),
                  db=Depends(get_database)):
    schedule = db["schedule"].find_one({"user_id": user_id})
    app_assert(schedule, 404, "Schedule not found")
    return serialize(schedule)


@router.put("/user/{user_id}/duty-hours")
def set_duty_hours(user_id: str, payload: DutyHoursRequest,
                   user=Depends(require_role("hr", "office")), db=Depends(get_database)):
    schedule = db["schedule"].find_one({"user_id": user_id})
    app_assert(schedule, 404, "Schedule not found")
    now = utcnow()
    db["schedule"].update_one(
        {"_id": schedule["_id"]},
        {"$set": {
            "duty_hours": [d.model_dump() for d in payload.duty_hours],
            "last_modified_by": user["_id"],
            "last_modified_at": now,
            "updated_at": now,
        }},
    )
    return serialize(db["schedule"].find_one({"_id": schedule["_id"]}))
