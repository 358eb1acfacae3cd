"""
Notification endpoints.

Query parameters and response keys keep the camelCase names the web client
already uses (isRead, notificationIDs, unreadCount, ...).
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from errors import app_assert
from security import get_database, get_user_from_token
from services import notification_service

router = APIRouter(prefix="/notifications", tags=["notifications"])

DIGITS = r"^\d+$"


class NotificationIDsRequest(BaseModel):
    notificationIDs: List[str]


class DeleteManyRequest(BaseModel):
    notificationIDs: List[str] = Field(..., min_length=1)


def parse_is_read(value: Optional[str]) -> Optional[bool]:
    if value == "true":
        return True
    if value == "false":
        return False
    return None


@router.get("")
def list_notifications(
    isRead: Optional[str] = None,
    limit: Optional[str] = Query(None, pattern=DIGITS),
    skip: Optional[str] = Query(None, pattern=DIGITS),
    user=Depends(get_user_from_token),
    db=Depends(get_database),
):
    notifications = notification_service.list_for_user(
        db,
        user["_id"],
        is_read=parse_is_read(isRead),
        limit=int(limit) if limit is not None else notification_service.DEFAULT_LIMIT,
        skip=int(skip) if skip is not None else 0,
    )
    return {"notifications": notifications, "count": len(notifications)}


@router.get("/unread-count")
def unread_count(user=Depends(get_user_from_token), db=Depends(get_database)):
    return {"unreadCount": notification_service.unread_count(db, user["_id"])}


@router.put("/mark-all-read")
def mark_all_read(user=Depends(get_user_from_token), db=Depends(get_database)):
    modified = notification_service.mark_all_read(db, user["_id"])
    return {"message": "All notifications marked as read", "modifiedCount": modified}


@router.put("/bulk-read")
def mark_many_read(payload: NotificationIDsRequest, user=Depends(get_user_from_token),
                   db=Depends(get_database)):
    modified = notification_service.mark_many_read(db, payload.notificationIDs, user["_id"])
    return {"message": "Notifications marked as read", "modifiedCount": modified}


@router.put("/{notification_id}/read")
def mark_read(notification_id: str, user=Depends(get_user_from_token), db=Depends(get_database)):
    notification = notification_service.mark_read(db, notification_id, user["_id"])
    app_assert(notification, 404, "Notification not found")
    return {"message": "Notification marked as read", "notification": notification}


@router.delete("/bulk")
def delete_many(payload: DeleteManyRequest, user=Depends(get_user_from_token),
                db=Depends(get_database)):
    deleted = notification_service.delete_many(db, payload.notificationIDs, user["_id"])
    return {"message": "Notifications deleted", "deletedCount": deleted}


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, user=Depends(get_user_from_token),
                        db=Depends(get_database)):
    notification = notification_service.delete(db, notification_id, user["_id"])
    app_assert(notification, 404, "Notification not found")
    return {"message": "Notification deleted"}
