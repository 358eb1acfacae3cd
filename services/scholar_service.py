"""
Scholar deployment and service-duration bookkeeping.

A deployed scholar's schedule must be labelled ``user_type = "scholar"`` and
carry the scholar and application ids. ``deploy`` keeps that true when the
scholar is created; the maintenance jobs repair records written before it did.
"""
import logging
import os
from datetime import datetime
from typing import Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from database import create_document, serialize, utcnow
from errors import app_assert
from schemas import Scholar, Schedule, ServicePeriod
from security import oid
from services import notification_service
from workflow import position_title

logger = logging.getLogger(__name__)

SEMESTER_MONTHS = int(os.getenv("SEMESTER_MONTHS", "6"))
END_OF_SEMESTER_REASON = "End of Semester - Scholar Reset"


def get_scholar(db, scholar_id: str) -> dict:
    scholar = db["scholar"].find_one({"_id": oid(scholar_id)})
    app_assert(scholar, 404, "Scholar not found")
    return scholar


def get_user_data(db, user_id: str) -> dict:
    """Return the user's data record, creating an empty one when missing."""
    now = utcnow()
    return db["user_data"].find_one_and_update(
        {"user_id": user_id},
        {
            "$setOnInsert": {
                "service_months": 0,
                "service_periods": [],
                "effectivity_date": None,
                "created_at": now,
            },
            "$set": {"updated_at": now},
        },
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )


def set_effectivity_date_if_missing(db, user_id: str, when: Optional[datetime] = None) -> bool:
    get_user_data(db, user_id)
    result = db["user_data"].update_one(
        {"user_id": user_id, "effectivity_date": None},
        {"$set": {"effectivity_date": when or utcnow(), "updated_at": utcnow()}},
    )
    return result.modified_count == 1


def sync_schedule(db, user_id: str, scholar_id: str, application_id: str) -> str:
    """Label the user's schedule as a scholar schedule.

    Returns "created", "fixed" or "unchanged".
    """
    wanted = {
        "user_type": "scholar",
        "scholar_id": scholar_id,
        "application_id": application_id,
    }
    schedule = db["schedule"].find_one({"user_id": user_id})
    if schedule is None:
        create_document(db, "schedule", Schedule(user_id=user_id, **wanted))
        return "created"
    if all(schedule.get(k) == v for k, v in wanted.items()):
        return "unchanged"
    db["schedule"].update_one(
        {"_id": schedule["_id"]}, {"$set": {**wanted, "updated_at": utcnow()}}
    )
    return "fixed"


def deploy(db, application_id: str, scholar_office: str, actor: dict,
           notes: Optional[str] = None) -> dict:
    application = db["application"].find_one({"_id": oid(application_id)})
    app_assert(application, 404, "Application not found")
    app_assert(
        application.get("status") == "accepted",
        400,
        "Only accepted applications can be deployed",
    )
    user_id = application["user_id"]
    app_assert(
        db["scholar"].find_one({"user_id": user_id, "application_id": application_id}) is None,
        400,
        "Scholar already deployed for this application",
    )

    now = utcnow()
    scholar = Scholar(
        user_id=user_id,
        application_id=application_id,
        scholar_office=scholar_office,
        scholar_type=application["position"],
        deployed_by=str(actor["_id"]),
        deployed_at=now,
        scholar_notes=notes,
        semester_start_date=now,
        semester_months=SEMESTER_MONTHS,
    )
    scholar_id = create_document(db, "scholar", scholar)

    schedule_result = sync_schedule(db, user_id, scholar_id, application_id)
    set_effectivity_date_if_missing(db, user_id, now)
    logger.info(
        "Deployed scholar %s (user %s) to %s; schedule %s",
        scholar_id, user_id, scholar_office, schedule_result,
    )

    notification_service.notify(
        db,
        user_id,
        "Deployed to Office",
        f"You have been deployed as {position_title(application['position'])} "
        f"to {scholar_office}.",
        "success",
        application_id,
    )
    return serialize(db["scholar"].find_one({"_id": ObjectId(scholar_id)}))


def credit_service_period(db, user_id: str, start_date: datetime, end_date: datetime,
                          scholar_type: str, months: int = SEMESTER_MONTHS) -> dict:
    period = ServicePeriod(
        start_date=start_date, end_date=end_date, months=months, scholar_type=scholar_type
    )
    get_user_data(db, user_id)
    return db["user_data"].find_one_and_update(
        {"user_id": user_id},
        {
            "$inc": {"service_months": months},
            "$push": {"service_periods": period.model_dump()},
            "$set": {"updated_at": utcnow()},
        },
        return_document=ReturnDocument.AFTER,
    )


def complete_semester(db, scholar_id: str, end_date: Optional[datetime] = None) -> dict:
    scholar = get_scholar(db, scholar_id)
    app_assert(scholar.get("status") != "completed", 400, "Semester already completed")

    end_date = end_date or utcnow()
    months = scholar.get("semester_months") or SEMESTER_MONTHS
    start_date = scholar.get("semester_start_date") or scholar.get("deployed_at") or end_date
    user_data = credit_service_period(
        db, scholar["user_id"], start_date, end_date, scholar["scholar_type"], months
    )
    db["scholar"].update_one(
        {"_id": scholar["_id"]},
        {"$set": {"status": "completed", "semester_end_date": end_date, "updated_at": utcnow()}},
    )
    logger.info("Scholar %s completed a semester (+%s months)", scholar["_id"], months)
    return {
        "scholar": serialize(db["scholar"].find_one({"_id": scholar["_id"]})),
        "user_data": serialize(user_data),
    }


def service_duration(db, user_id: str) -> dict:
    user_data = db["user_data"].find_one({"user_id": user_id}) or {}
    total = user_data.get("service_months") or 0
    return {
        "years": total // 12,
        "months": total % 12,
        "total_months": total,
        "service_periods": user_data.get("service_periods", []),
    }


def _archive_application(db, application: dict, actor: dict, archived_at: datetime) -> None:
    original = dict(application)
    original["_id"] = str(original["_id"])
    db["archived_application"].insert_one({
        "original_application_id": str(application["_id"]),
        "user_id": application["user_id"],
        "position": application["position"],
        "firstname": application.get("firstname"),
        "lastname": application.get("lastname"),
        "email": application.get("email"),
        "original_status": application["status"],
        "original_application": original,
        "archived_reason": END_OF_SEMESTER_REASON,
        "archived_by": str(actor["_id"]),
        "archived_at": archived_at,
        "created_at": archived_at,
        "updated_at": archived_at,
    })
    db["application"].delete_one({"_id": application["_id"]})


def end_semester(db, actor: dict) -> dict:
    """Close the semester for every active scholar.

    Each scholar is handled on its own; a failure is logged, counted and the
    run continues with the next scholar.
    """
    summary = {"scholars": 0, "archived": 0, "service_credited": 0,
               "missing_applications": 0, "errors": 0}

    for scholar in list(db["scholar"].find({"status": "active"})):
        summary["scholars"] += 1
        archived_at = utcnow()
        try:
            application = None
            if ObjectId.is_valid(scholar.get("application_id") or ""):
                application = db["application"].find_one({
                    "_id": ObjectId(scholar["application_id"]),
                    "status": "accepted",
                })
            if application is not None:
                _archive_application(db, application, actor, archived_at)
                summary["archived"] += 1
            else:
                summary["missing_applications"] += 1
                logger.warning("Scholar %s has no accepted application to archive", scholar["_id"])

            credit_service_period(
                db,
                scholar["user_id"],
                scholar.get("semester_start_date") or scholar.get("deployed_at") or archived_at,
                archived_at,
                scholar["scholar_type"],
                scholar.get("semester_months") or SEMESTER_MONTHS,
            )
            summary["service_credited"] += 1
            db["scholar"].update_one(
                {"_id": scholar["_id"]},
                {"$set": {"status": "completed", "semester_end_date": archived_at,
                          "updated_at": utcnow()}},
            )
        except PyMongoError:
            summary["errors"] += 1
            logger.exception("End of semester failed for scholar %s", scholar["_id"])

    logger.info("End of semester: %s", summary)
    return summary
