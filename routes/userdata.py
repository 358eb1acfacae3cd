from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from database import as_datetime, serialize, utcnow
from errors import app_assert
from security import get_database, get_user_from_token
from services.scholar_service import get_user_data

router = APIRouter(prefix="/userdata", tags=["userdata"])


class UserDataUpdateRequest(BaseModel):
    gender: Optional[Literal["Male", "Female", "Other"]] = None
    birthdate: Optional[date] = None
    civil_status: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    college: Optional[str] = None
    course_year: Optional[str] = None


@router.get("/me")
def my_user_data(user=Depends(get_user_from_token), db=Depends(get_database)):
    return serialize(get_user_data(db, user["_id"]))


@router.put("/me")
def update_my_user_data(payload: UserDataUpdateRequest, user=Depends(get_user_from_token),
                        db=Depends(get_database)):
    # service_months, service_periods and effectivity_date are not user editable
    update = payload.model_dump(exclude_unset=True)
    app_assert(update, 400, "Nothing to update")
    if "birthdate" in update:
        update["birthdate"] = as_datetime(update["birthdate"])
    get_user_data(db, user["_id"])
    update["updated_at"] = utcnow()
    db["user_data"].update_one({"user_id": user["_id"]}, {"$set": update})
    return serialize(db["user_data"].find_one({"user_id": user["_id"]}))
