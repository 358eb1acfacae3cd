from fastapi import APIRouter, Depends

from database import serialize
from security import get_database, get_user_from_token
from services import maintenance, notification_service
from workflow import ALL_STATUSES, classify

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _hr_stats(db) -> dict:
    by_status = {s: 0 for s in ALL_STATUSES}
    for row in db["application"].aggregate([{"$group": {"_id": "$status", "count": {"$sum": 1}}}]):
        by_status[row["_id"]] = row["count"]
    return {
        "applications": by_status,
        "total_applications": sum(by_status.values()),
        "active_scholars": db["scholar"].count_documents({"status": "active"}),
        "pending_leaves": db["leave"].count_documents({"status": "pending"}),
        "pending_scholar_requests": db["scholar_request"].count_documents({"status": "pending"}),
    }


def _office_stats(db, user: dict) -> dict:
    office = user.get("office_name")
    scholar_user_ids = [
        s["user_id"] for s in db["scholar"].find(maintenance.office_scholar_filter(office), {"user_id": 1})
    ]
    return {
        "office_name": office,
        "scholars": len(scholar_user_ids),
        "pending_leaves": db["leave"].count_documents(
            {"status": "pending", "user_id": {"$in": scholar_user_ids}}
        ),
        "submitted_dtrs": db["dtr"].count_documents(
            {"status": "submitted", "user_id": {"$in": scholar_user_ids}}
        ),
    }


def _student_stats(db, user: dict) -> dict:
    latest = db["application"].find_one({"user_id": user["_id"]}, sort=[("created_at", -1)])
    return {
        "application": serialize(latest) if latest else None,
        "progress": classify(latest["status"]).to_dict() if latest else None,
        "unread_notifications": notification_service.unread_count(db, user["_id"]),
    }


@router.get("/stats")
def dashboard_stats(user=Depends(get_user_from_token), db=Depends(get_database)):
    if user["role"] == "hr":
        return _hr_stats(db)
    if user["role"] == "office":
        return _office_stats(db, user)
    return _student_stats(db, user)
