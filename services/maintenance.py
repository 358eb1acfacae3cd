"""
Data repair jobs run from ``scripts/``.

Each job walks its collection one document at a time, logs what it does and
returns a summary dict. They are idempotent: a second run finds nothing to do.
"""
import logging
from datetime import timedelta
from typing import List, Optional

from bson import ObjectId
from pymongo.errors import PyMongoError

from database import as_utc, create_document, utcnow
from schemas import Scholar
from services.scholar_service import (
    END_OF_SEMESTER_REASON,
    SEMESTER_MONTHS,
    credit_service_period,
    sync_schedule,
)

logger = logging.getLogger(__name__)

AUTO_CREATED_NOTE = "Auto-created by fix script"
UNKNOWN_OFFICE = "TBD"
DEDUP_WINDOW = timedelta(seconds=60)

_SCHOLAR_TYPES = {
    "student_assistant": "student_assistant",
    "Student Assistant": "student_assistant",
    "student_marshal": "student_marshal",
    "Student Marshal": "student_marshal",
}


def scholar_type_for(position: Optional[str]) -> Optional[str]:
    return _SCHOLAR_TYPES.get(position or "")


def _display_name(user_id: str, db) -> str:
    user = db["user"].find_one({"_id": ObjectId(user_id)}) if ObjectId.is_valid(user_id) else None
    if not user:
        return user_id
    return f"{user.get('firstname', '')} {user.get('lastname', '')}".strip() or user_id


def fix_all_schedules(db) -> dict:
    """Convert trainee schedules of accepted applicants into scholar schedules."""
    summary = {"checked": 0, "converted": 0, "kept_as_trainee": 0}

    for schedule in list(db["schedule"].find({"user_type": "trainee"})):
        summary["checked"] += 1
        user_id = schedule["user_id"]
        application = db["application"].find_one(
            {"user_id": user_id, "status": "accepted"}, sort=[("created_at", -1)]
        )
        if application is None:
            logger.info("Schedule %s: user %s is still a trainee", schedule["_id"], user_id)
            summary["kept_as_trainee"] += 1
            continue

        application_id = str(application["_id"])
        scholar = db["scholar"].find_one({"user_id": user_id, "application_id": application_id})
        if scholar is None:
            scholar_id = create_document(db, "scholar", Scholar(
                user_id=user_id,
                application_id=application_id,
                scholar_office=application.get("trainee_office") or UNKNOWN_OFFICE,
                scholar_type=application["position"],
                deployed_by=user_id,
                deployed_at=utcnow(),
                scholar_notes=AUTO_CREATED_NOTE,
                semester_months=SEMESTER_MONTHS,
            ))
            logger.info("Created missing scholar %s for user %s", scholar_id, user_id)
        else:
            scholar_id = str(scholar["_id"])

        sync_schedule(db, user_id, scholar_id, application_id)
        logger.info("Converted schedule %s to scholar %s", schedule["_id"], scholar_id)
        summary["converted"] += 1

    return summary


def fix_scholar_schedules(db) -> dict:
    """Make every active scholar's schedule point back at the scholar."""
    summary = {"checked": 0, "fixed": 0, "already_correct": 0, "no_schedule": 0}

    for scholar in list(db["scholar"].find({"status": "active"})):
        summary["checked"] += 1
        user_id = scholar["user_id"]
        if db["schedule"].find_one({"user_id": user_id}, {"_id": 1}) is None:
            logger.warning("Scholar %s (user %s) has no schedule", scholar["_id"], user_id)
            summary["no_schedule"] += 1
            continue

        result = sync_schedule(db, user_id, str(scholar["_id"]), scholar["application_id"])
        if result == "fixed":
            logger.info("Fixed schedule for scholar %s", scholar["_id"])
            summary["fixed"] += 1
        else:
            summary["already_correct"] += 1

    return summary


def _already_credited(periods: List[dict], scholar_type: str, archived_at) -> bool:
    archived_at = as_utc(archived_at)
    for period in periods or []:
        if period.get("scholar_type") != scholar_type or not period.get("end_date"):
            continue
        if abs(as_utc(period["end_date"]) - archived_at) <= DEDUP_WINDOW:
            return True
    return False


def fix_service_duration(db) -> dict:
    """Credit a semester of service for scholars archived at semester end."""
    archived_list = list(db["archived_application"].find(
        {"archived_reason": END_OF_SEMESTER_REASON, "original_status": "accepted"},
        sort=[("archived_at", -1)],
    ))
    summary = {"success": 0, "skipped": 0, "errors": 0, "total": len(archived_list)}

    for archived in archived_list:
        user_id = archived["user_id"]
        original = archived.get("original_application") or {}
        scholar_type = scholar_type_for(original.get("position") or archived.get("position"))
        if scholar_type is None:
            logger.info("Skipping %s: unknown position %r", archived["_id"], archived.get("position"))
            summary["skipped"] += 1
            continue

        archived_at = archived.get("archived_at") or utcnow()
        user_data = db["user_data"].find_one({"user_id": user_id}) or {}
        if _already_credited(user_data.get("service_periods"), scholar_type, archived_at):
            logger.info("Skipping %s: service already credited", _display_name(user_id, db))
            summary["skipped"] += 1
            continue

        start_date = original.get("created_at") or archived.get("created_at") or archived_at
        try:
            updated = credit_service_period(
                db, user_id, start_date, archived_at, scholar_type, SEMESTER_MONTHS
            )
        except PyMongoError:
            logger.exception("Failed to credit service for user %s", user_id)
            summary["errors"] += 1
            continue
        logger.info(
            "Added %s months for %s (%s). Total: %s months",
            SEMESTER_MONTHS, _display_name(user_id, db), scholar_type, updated["service_months"],
        )
        summary["success"] += 1

    return summary


def users_missing_effectivity_date(db) -> List[dict]:
    missing = []
    for user in db["user"].find({"status": {"$in": ["SA", "SM"]}}).sort("lastname", 1):
        user_data = db["user_data"].find_one({"user_id": str(user["_id"])})
        if not user_data or not user_data.get("effectivity_date"):
            missing.append(user)
    return missing


def set_effectivity_date(db, users: List[dict], when=None) -> int:
    when = when or utcnow()
    updated = 0
    for user in users:
        user_id = str(user["_id"])
        db["user_data"].update_one(
            {"user_id": user_id},
            {
                "$set": {"effectivity_date": when, "updated_at": utcnow()},
                "$setOnInsert": {"service_months": 0, "service_periods": [], "created_at": utcnow()},
            },
            upsert=True,
        )
        logger.info("Set effectivity date for %s %s", user.get("firstname"), user.get("lastname"))
        updated += 1
    return updated


def office_scholar_filter(office_name: str) -> dict:
    """The query the office scholar view runs for `office_name`."""
    return {"scholar_office": office_name, "status": {"$in": ["active", "inactive"]}}


def check_office_filter(db, office: str) -> dict:
    """Read-only report on which scholars an office user would see."""
    office_user = db["user"].find_one({"role": "office", "office_name": office})
    filt = office_scholar_filter(office_user["office_name"] if office_user else office)
    matches = list(db["scholar"].find(filt))

    report = {
        "office_user": office_user,
        "filter": filt,
        "matches": matches,
        "all_scholars": [],
    }
    if not matches:
        report["all_scholars"] = [
            {
                "scholar_id": str(s["_id"]),
                "user_id": s.get("user_id"),
                "scholar_office": s.get("scholar_office"),
                "status": s.get("status"),
                "office_matches": s.get("scholar_office") == filt["scholar_office"],
            }
            for s in db["scholar"].find()
        ]
    return report
