import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, EmailStr, Field

from database import serialize
from security import (
    create_token,
    get_database,
    get_user_from_token,
    public_user,
    require_role,
    verify_password,
)
from services import user_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# ---------- Models for Requests ----------

class RegisterRequest(BaseModel):
    firstname: str = Field(..., min_length=1)
    lastname: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(..., min_length=6)


class StaffCreateRequest(RegisterRequest):
    role: Literal["hr", "office"]
    office_name: Optional[str] = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


# ---------- Routes ----------

@router.post("/auth/register")
def register(payload: RegisterRequest, db=Depends(get_database)):
    # Self-registration always makes a student; staff accounts come from /users
    user_doc = user_service.create_user(
        db, payload.firstname, payload.lastname, payload.email, payload.password
    )
    return {"token": create_token(user_doc), "user": public_user(user_doc)}


@router.post("/auth/login")
def login(payload: LoginRequest, db=Depends(get_database)):
    user = db["user"].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return {"token": create_token(user), "user": public_user(user)}


@router.get("/me")
def me(user=Depends(get_user_from_token)):
    return user


# ---------- Staff accounts (HR) ----------

@router.post("/users")
def create_staff_user(payload: StaffCreateRequest, user=Depends(require_role("hr")),
                      db=Depends(get_database)):
    created = user_service.create_user(
        db, payload.firstname, payload.lastname, payload.email, payload.password,
        role=payload.role, office_name=payload.office_name,
    )
    logger.info("HR %s created %s account %s", user["_id"], payload.role, created["_id"])
    return public_user(created)


@router.get("/users")
def list_users(role: Optional[Literal["student", "hr", "office"]] = None,
               status: Optional[str] = None,
               limit: int = Query(50, ge=1, le=200),
               user=Depends(require_role("hr")), db=Depends(get_database)):
    filt = {}
    if role:
        filt["role"] = role
    if status:
        filt["status"] = status
    cursor = db["user"].find(filt, {"password_hash": 0}).sort("lastname", 1).limit(limit)
    return [serialize(u) for u in cursor]
