"""
Per-user notification store.

Every read and write is scoped to the owning user's id: a notification that
belongs to someone else behaves exactly like one that does not exist.
Notification ids that are not valid ObjectIds match nothing.
"""
import logging
from typing import Iterable, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from database import create_document, serialize, utcnow
from schemas import Notification
from workflow import position_title

logger = logging.getLogger(__name__)

COLLECTION = "notification"
DEFAULT_LIMIT = 50


def _parse_id(value) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def _parse_ids(values: Iterable) -> List[ObjectId]:
    parsed = (_parse_id(v) for v in values)
    return [p for p in parsed if p is not None]


def create(db, user_id: str, title: str, message: str, type: str = "info",
           related_application_id: Optional[str] = None) -> dict:
    notification = Notification(
        user_id=str(user_id),
        title=title,
        message=message,
        type=type,
        related_application_id=str(related_application_id) if related_application_id else None,
    )
    new_id = create_document(db, COLLECTION, notification)
    return serialize(db[COLLECTION].find_one({"_id": ObjectId(new_id)}))


def notify(db, user_id: str, title: str, message: str, type: str = "info",
           related_application_id: Optional[str] = None) -> Optional[dict]:
    """Create a notification as a side effect of another write.

    The main write has already happened, so a failure here is logged and
    reported as None instead of being raised.
    """
    try:
        return create(db, user_id, title, message, type, related_application_id)
    except PyMongoError:
        logger.exception("Failed to create notification for user %s", user_id)
        return None


def notify_role(db, role: str, title: str, message: str, type: str = "info",
                related_application_id: Optional[str] = None) -> List[dict]:
    created = []
    for user in db["user"].find({"role": role}, {"_id": 1}):
        n = notify(db, str(user["_id"]), title, message, type, related_application_id)
        if n is not None:
            created.append(n)
    if not created:
        logger.info("No %s users notified about: %s", role, title)
    return created


def list_for_user(db, user_id: str, is_read: Optional[bool] = None,
                  limit: int = DEFAULT_LIMIT, skip: int = 0) -> List[dict]:
    filt = {"user_id": user_id}
    if is_read is not None:
        filt["is_read"] = is_read
    cursor = (
        db[COLLECTION]
        .find(filt)
        .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
        .skip(skip)
        .limit(limit)
    )
    return [serialize(n) for n in cursor]


def unread_count(db, user_id: str) -> int:
    return db[COLLECTION].count_documents({"user_id": user_id, "is_read": False})


def mark_read(db, notification_id: str, user_id: str) -> Optional[dict]:
    _id = _parse_id(notification_id)
    if _id is None:
        return None
    doc = db[COLLECTION].find_one_and_update(
        {"_id": _id, "user_id": user_id},
        {"$set": {"is_read": True, "updated_at": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return serialize(doc)


def mark_all_read(db, user_id: str) -> int:
    result = db[COLLECTION].update_many(
        {"user_id": user_id, "is_read": False},
        {"$set": {"is_read": True, "updated_at": utcnow()}},
    )
    return result.modified_count


def mark_many_read(db, notification_ids: Iterable[str], user_id: str) -> int:
    ids = _parse_ids(notification_ids)
    if not ids:
        return 0
    result = db[COLLECTION].update_many(
        {"_id": {"$in": ids}, "user_id": user_id, "is_read": False},
        {"$set": {"is_read": True, "updated_at": utcnow()}},
    )
    return result.modified_count


def delete(db, notification_id: str, user_id: str) -> Optional[dict]:
    _id = _parse_id(notification_id)
    if _id is None:
        return None
    return serialize(db[COLLECTION].find_one_and_delete({"_id": _id, "user_id": user_id}))


def delete_many(db, notification_ids: Iterable[str], user_id: str) -> int:
    ids = _parse_ids(notification_ids)
    if not ids:
        return 0
    return db[COLLECTION].delete_many({"_id": {"$in": ids}, "user_id": user_id}).deleted_count


# ---------- Application status messages ----------

_STATUS_MESSAGES = {
    "under_review": (
        "Application Under Review",
        "Your application for {position} position is now under review. "
        "We will notify you of any updates.",
        "info",
    ),
    "psychometric_scheduled": (
        "Psychometric Test Scheduled",
        "Great news! A psychometric test has been scheduled for your {position} application.",
        "info",
    ),
    "psychometric_completed": (
        "Psychometric Test Completed",
        "Thank you for completing the psychometric test for the {position} position. "
        "We are reviewing your results and will notify you of the next steps soon.",
        "info",
    ),
    "psychometric_passed": (
        "Psychometric Test Passed! 🎉",
        "Congratulations! You have successfully passed the psychometric test for the "
        "{position} position. Your application will proceed to the next stage.",
        "success",
    ),
    "psychometric_failed": (
        "Psychometric Test Results",
        "Thank you for taking the psychometric test for the {position} position. "
        "Unfortunately, we will not be moving forward at this time.",
        "error",
    ),
    "interview_scheduled": (
        "Interview Scheduled",
        "Great news! An interview has been scheduled for your {position} application.",
        "info",
    ),
    "interview_completed": (
        "Interview Completed",
        "Thank you for attending the interview for the {position} position. "
        "We will notify you of the decision soon.",
        "info",
    ),
    "interview_passed": (
        "Interview Passed! 🎉",
        "Congratulations! You have passed the interview for the {position} position. "
        "You will now need to complete the required training hours before final hiring.",
        "success",
    ),
    "interview_failed": (
        "Interview Results",
        "Thank you for participating in the interview for the {position} position. "
        "Unfortunately, we will not be moving forward at this time.",
        "error",
    ),
    "trainee": (
        "Deployed as Trainee",
        "You have been deployed as a trainee for the {position} position.",
        "success",
    ),
    "training_completed": (
        "Training Completed! ✅",
        "Excellent work! You have completed the required hours for the {position} position. "
        "Your performance will be reviewed for the final hiring decision.",
        "success",
    ),
    "accepted": (
        "Application Accepted! 🎉",
        "Congratulations! Your application for the {position} position has been accepted. "
        "Welcome aboard!",
        "success",
    ),
    "rejected": (
        "Application Status Update",
        "We regret to inform you that your application for {position} position was not "
        "selected at this time. Thank you for your interest.",
        "error",
    ),
    "withdrawn": (
        "Application Withdrawn",
        "Your application for the {position} position has been withdrawn as requested.",
        "info",
    ),
    "on_hold": (
        "Application On Hold",
        "Your application for the {position} position has been put on hold temporarily. "
        "We will update you when there are further developments.",
        "info",
    ),
}

_DEFAULT_STATUS_MESSAGE = (
    "Application Status Update",
    "Your application for {position} position status has been updated.",
    "info",
)


def status_message(status: str, position: str, hr_comments: Optional[str] = None,
                   details: Optional[str] = None):
    """Return the (title, message, type) sent to an applicant for `status`."""
    title, template, type_ = _STATUS_MESSAGES.get(status, _DEFAULT_STATUS_MESSAGE)
    message = template.format(position=position_title(position))
    if details:
        message += f"\n\n{details}"
    if hr_comments and hr_comments.strip():
        message += f"\n\nAdditional notes: {hr_comments}"
    return title, message, type_


def notify_status_change(db, user_id: str, application_id: str, status: str, position: str,
                         hr_comments: Optional[str] = None,
                         details: Optional[str] = None) -> Optional[dict]:
    title, message, type_ = status_message(status, position, hr_comments, details)
    return notify(db, user_id, title, message, type_, application_id)


def notify_hr_new_application(db, application_id: str, applicant_name: str,
                              position: str) -> List[dict]:
    return notify_role(
        db,
        "hr",
        "🆕 New Application Received",
        f"{applicant_name} has submitted a new application for {position_title(position)} "
        "position. Review it in the Application Management section.",
        "info",
        application_id,
    )
