import logging
from typing import Optional

from bson import ObjectId
from fastapi import HTTPException
from pymongo.errors import DuplicateKeyError

from database import create_document
from errors import app_assert
from schemas import User
from security import hash_password

logger = logging.getLogger(__name__)

COLLECTION = "user"
STAFF_ROLES = ("hr", "office")


def create_user(db, firstname: str, lastname: str, email: str, password: str,
                role: str = "student", office_name: Optional[str] = None) -> dict:
    """Insert a user and return the stored document.

    Emails are unique case-insensitively (400 on a duplicate). Only office
    users keep an ``office_name`` and they must have one.
    """
    email = email.lower()
    app_assert(db[COLLECTION].find_one({"email": email}) is None, 400, "Email already registered")
    if role == "office":
        app_assert(office_name and office_name.strip(), 400, "Office users need an office name")
        office_name = office_name.strip()
    else:
        office_name = None

    user = User(
        firstname=firstname,
        lastname=lastname,
        email=email,
        password_hash=hash_password(password),
        role=role,
        office_name=office_name,
    )
    try:
        user_id = create_document(db, COLLECTION, user)
    except DuplicateKeyError:
        raise HTTPException(status_code=400, detail="Email already registered")

    logger.info("Created %s user %s", role, user_id)
    return db[COLLECTION].find_one({"_id": ObjectId(user_id)})
