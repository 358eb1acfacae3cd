import logging
from typing import Optional

from bson import ObjectId

from database import serialize, utcnow
from errors import app_assert
from schemas import TimelineEntry
from security import full_name, oid
from services import notification_service
from workflow import allowed_roles, can_transition, is_active, requires_action

logger = logging.getLogger(__name__)

COLLECTION = "application"


def get_application(db, application_id: str) -> dict:
    application = db[COLLECTION].find_one({"_id": oid(application_id)})
    app_assert(application, 404, "Application not found")
    return application


def active_application(db, user_id: str) -> Optional[dict]:
    for application in db[COLLECTION].find({"user_id": user_id}).sort("created_at", -1):
        if is_active(application.get("status")):
            return application
    return None


def timeline_entry(action: str, actor: dict, previous_status: Optional[str] = None,
                   new_status: Optional[str] = None, notes: Optional[str] = None) -> dict:
    return TimelineEntry(
        action=action,
        performed_by=str(actor["_id"]),
        performed_by_name=full_name(actor),
        timestamp=utcnow(),
        previous_status=previous_status,
        new_status=new_status,
        notes=notes,
    ).model_dump()


def add_timeline_entry(db, application: dict, entry: dict, updates: Optional[dict] = None) -> dict:
    """Append a timeline entry without touching the status."""
    fields = dict(updates or {})
    fields["updated_at"] = utcnow()
    db[COLLECTION].update_one(
        {"_id": application["_id"]},
        {"$set": fields, "$push": {"timeline": entry}},
    )
    return db[COLLECTION].find_one({"_id": application["_id"]})


def record_transition(db, application: dict, new_status: str, actor: dict,
                      action: Optional[str] = None, notes: Optional[str] = None,
                      updates: Optional[dict] = None) -> dict:
    """Move `application` to `new_status` and append the matching timeline entry.

    The write is rejected (400) when the transition table does not allow it
    and (403) when the actor's role may not trigger the target status. The
    update is conditional on the status read by the caller, so a concurrent
    change answers 409 instead of being overwritten.
    """
    current = application.get("status")
    app_assert(
        can_transition(current, new_status),
        400,
        f"Cannot change application status from {current} to {new_status}",
    )
    app_assert(actor.get("role") in allowed_roles(new_status), 403, "Forbidden")

    fields = dict(updates or {})
    fields["status"] = new_status
    fields["updated_at"] = utcnow()
    entry = timeline_entry(action or f"status_changed_to_{new_status}", actor,
                           current, new_status, notes)

    result = db[COLLECTION].update_one(
        {"_id": application["_id"], "status": current},
        {"$set": fields, "$push": {"timeline": entry}},
    )
    app_assert(result.matched_count == 1, 409, "Application status changed, please reload")
    logger.info(
        "Application %s: %s -> %s by %s", application["_id"], current, new_status, actor["_id"]
    )
    return db[COLLECTION].find_one({"_id": application["_id"]})


def set_user_status(db, user_id: str, status: str) -> None:
    db["user"].update_one(
        {"_id": ObjectId(user_id)}, {"$set": {"status": status, "updated_at": utcnow()}}
    )


def change_status(db, application: dict, new_status: str, actor: dict,
                  hr_comments: Optional[str] = None) -> dict:
    """Generic staff status change, limited to statuses without side effects.

    Pipeline statuses (psychometric and interview outcomes, training,
    acceptance, rejection) answer 400 here; their workflow actions write them.
    """
    app_assert(
        not requires_action(new_status),
        400,
        f"Status {new_status} is set through its workflow action",
    )
    updates = {"reviewed_by": str(actor["_id"]), "reviewed_at": utcnow()}
    if hr_comments is not None:
        updates["hr_comments"] = hr_comments
    updated = record_transition(db, application, new_status, actor,
                                notes=hr_comments, updates=updates)
    notification_service.notify_status_change(
        db, updated["user_id"], str(updated["_id"]), new_status, updated["position"], hr_comments
    )
    return updated


def paginate(page: int, limit: int, total: int) -> dict:
    total_pages = (total + limit - 1) // limit if limit else 0
    return {
        "current_page": page,
        "total_pages": total_pages,
        "total_count": total,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


def stats(db) -> dict:
    by_status = {
        row["_id"]: row["count"]
        for row in db[COLLECTION].aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}])
    }
    by_position = {
        row["_id"]: row["count"]
        for row in db[COLLECTION].aggregate([{"$group": {"_id": "$position", "count": {"$sum": 1}}}])
    }
    recent = [
        serialize(a)
        for a in db[COLLECTION]
        .find({}, {"timeline": 0})
        .sort("created_at", -1)
        .limit(5)
    ]
    return {
        "total": sum(by_status.values()),
        "by_status": by_status,
        "by_position": by_position,
        "recent": recent,
    }
