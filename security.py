import os
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from bson import ObjectId
from bson.errors import InvalidId
from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from database import get_db

JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-me")
JWT_EXPIRES_MIN = int(os.getenv("JWT_EXPIRES_MIN", "60"))

auth_scheme = HTTPBearer()

ROLES = ("student", "hr", "office")


# ---------- Helpers ----------

def oid(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id")


def get_database(db=Depends(get_db)):
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def hash_password(password: str) -> str:
    """bcrypt hash of `password`, stored as text in `user.password_hash`."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    # Users seeded without a password have an empty hash
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False


def create_token(user: dict) -> str:
    """HS256 token for `user`; the role rides along for clients, the guard rereads it."""
    payload = {
        "sub": str(user["_id"]),
        "role": user.get("role"),
        "exp": datetime.now(timezone.utc) + timedelta(minutes=JWT_EXPIRES_MIN),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


def public_user(user: dict) -> dict:
    out = {k: v for k, v in user.items() if k != "password_hash"}
    out["_id"] = str(out["_id"])
    return out


def full_name(user: dict) -> str:
    return f"{user.get('firstname', '')} {user.get('lastname', '')}".strip()


def get_user_from_token(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
    db=Depends(get_database),
):
    try:
        payload = jwt.decode(credentials.credentials, JWT_SECRET, algorithms=["HS256"])
        user = db["user"].find_one({"_id": ObjectId(payload["sub"])})
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token expired")
    except (jwt.InvalidTokenError, InvalidId, KeyError, TypeError):
        raise HTTPException(status_code=401, detail="Invalid token")
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return public_user(user)


def require_role(*roles: str):
    def _checker(user=Depends(get_user_from_token)):
        if user.get("role") not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user
    return _checker
