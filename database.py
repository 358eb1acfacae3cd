"""
Database helpers for the SASM-IMS backend.

Every collection lives in one MongoDB database. Collection names are the
lowercase, snake_cased model names from schemas.py (User -> "user",
ScholarRequest -> "scholar_request").
"""
import logging
import os
from datetime import date, datetime, time, timezone
from typing import Any, Dict, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

load_dotenv()

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL") or os.getenv("MONGO_URI")
DATABASE_NAME = os.getenv("DATABASE_NAME", "sasm_ims")

_client = None
db = None

if DATABASE_URL:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]


def get_db():
    """FastAPI dependency returning the configured database (or None)."""
    return db


def connect(url: Optional[str] = None, name: Optional[str] = None):
    """Open a fresh connection; used by the maintenance scripts."""
    url = url or DATABASE_URL
    if not url:
        raise RuntimeError("DATABASE_URL (or MONGO_URI) is not set")
    client = MongoClient(url)
    return client, client[name or DATABASE_NAME]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_datetime(value: Union[date, datetime, None]) -> Optional[datetime]:
    """BSON has no date type; store calendar dates as midnight UTC."""
    if value is None or isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # pymongo hands back naive datetimes that are already UTC
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc["_id"] = str(doc["_id"])
    return doc


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if database is None:
        raise RuntimeError("Database not available. Check DATABASE_URL and DATABASE_NAME.")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = utcnow()
    data_dict.setdefault("created_at", now)
    data_dict["updated_at"] = now

    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def ensure_indexes(database) -> None:
    database["user"].create_index("email", unique=True)
    database["application"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["application"].create_index("status")
    database["scholar"].create_index("user_id")
    database["scholar"].create_index("scholar_office")
    database["scholar"].create_index("status")
    database["schedule"].create_index("user_id")
    database["user_data"].create_index("user_id", unique=True)
    database["dtr"].create_index(
        [("user_id", ASCENDING), ("month", ASCENDING), ("year", ASCENDING)], unique=True
    )
    database["leave"].create_index([("user_id", ASCENDING), ("status", ASCENDING)])
    database["evaluation"].create_index([("scholar_id", ASCENDING), ("created_at", DESCENDING)])
    database["scholar_request"].create_index([("requested_by", ASCENDING), ("created_at", DESCENDING)])
    database["scholar_request"].create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    database["notification"].create_index([("user_id", ASCENDING), ("created_at", DESCENDING)])
    database["notification"].create_index([("user_id", ASCENDING), ("is_read", ASCENDING)])
    logger.info("Database indexes ensured")
