"""
Daily time records.

One DTR document per (user, month, year) holds an entry per calendar day.
Entry times are "HH:MM" strings and every duration is kept in minutes.
``total_monthly_hours`` is derived from the entries on every write: only
confirmed entries count, each capped at DAILY_CAP_MINUTES.
"""
import calendar
import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from pymongo.errors import DuplicateKeyError

from database import utcnow
from errors import app_assert
from schemas import DTR, DTREntry
from security import full_name

logger = logging.getLogger(__name__)

COLLECTION = "dtr"
DAILY_CAP_MINUTES = 300
TIME_FIELDS = ("in1", "out1", "in2", "out2")
TRACKED_FIELDS = TIME_FIELDS + ("status",)
ON_LEAVE = "On Leave"


def parse_hhmm(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        hours, minutes = value.split(":")
        hours, minutes = int(hours), int(minutes)
    except ValueError:
        return None
    if not (0 <= hours < 24 and 0 <= minutes < 60):
        return None
    return hours * 60 + minutes


def pair_minutes(start: Optional[str], end: Optional[str]) -> int:
    a, b = parse_hhmm(start), parse_hhmm(end)
    if a is None or b is None or b <= a:
        return 0
    return b - a


def has_time(entry: dict) -> bool:
    return any(entry.get(f) for f in TIME_FIELDS)


def entry_minutes(entry: dict) -> int:
    return pair_minutes(entry.get("in1"), entry.get("out1")) + pair_minutes(entry.get("in2"), entry.get("out2"))


def monthly_total(entries: Iterable[dict]) -> int:
    return sum(
        min(entry.get("total_hours") or 0, DAILY_CAP_MINUTES)
        for entry in entries
        if entry.get("confirmation_status") == "confirmed"
    )


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def blank_month(user_id: str, month: int, year: int) -> DTR:
    entries = [DTREntry(day=d) for d in range(1, days_in_month(year, month) + 1)]
    return DTR(user_id=user_id, month=month, year=year, entries=entries)


def get_dtr(db, dtr_id) -> dict:
    dtr = db[COLLECTION].find_one({"_id": dtr_id})
    app_assert(dtr, 404, "DTR not found")
    return dtr


def get_or_create(db, user_id: str, month: int, year: int) -> dict:
    existing = db[COLLECTION].find_one({"user_id": user_id, "month": month, "year": year})
    if existing:
        return existing
    doc = blank_month(user_id, month, year).model_dump()
    now = utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    try:
        db[COLLECTION].insert_one(doc)
    except DuplicateKeyError:
        # created concurrently
        pass
    return db[COLLECTION].find_one({"user_id": user_id, "month": month, "year": year})


def _find_entry(entries: List[dict], day: int) -> int:
    for index, entry in enumerate(entries):
        if entry.get("day") == day:
            return index
    return -1


def _normalize(entry: dict, times_changed: bool = False) -> dict:
    entry = DTREntry(**entry).model_dump()
    if times_changed or has_time(entry):
        entry["total_hours"] = entry_minutes(entry)
    return entry


def save_entries(db, dtr: dict, entries: List[dict], updates: Optional[dict] = None) -> dict:
    entries = sorted(entries, key=lambda e: e["day"])
    fields = dict(updates or {})
    fields.update({
        "entries": entries,
        "total_monthly_hours": monthly_total(entries),
        "updated_at": utcnow(),
    })
    db[COLLECTION].update_one({"_id": dtr["_id"]}, {"$set": fields})
    return db[COLLECTION].find_one({"_id": dtr["_id"]})


def _check_day(dtr: dict, day: int) -> None:
    app_assert(1 <= day <= days_in_month(dtr["year"], dtr["month"]), 400, "Invalid day")


def update_entry(db, dtr: dict, day: int, data: dict) -> dict:
    """Student edit: merge `data` into the day and reset it to unconfirmed."""
    _check_day(dtr, day)
    app_assert(dtr.get("status") != "approved", 400, "Approved DTRs cannot be edited")

    data = {k: v for k, v in data.items() if k not in ("confirmed_by", "confirmed_at", "day")}
    data["confirmation_status"] = "unconfirmed"
    data["confirmed_by"] = None
    data["confirmed_at"] = None
    times_changed = any(f in data for f in TIME_FIELDS)

    entries = list(dtr.get("entries", []))
    index = _find_entry(entries, day)
    if index == -1:
        entries.append(_normalize({"day": day, **data}, times_changed))
    else:
        entries[index] = _normalize({**entries[index], **data, "day": day}, times_changed)
    return save_entries(db, dtr, entries)


def update_entry_by_office(db, dtr: dict, day: int, data: dict, actor: dict) -> dict:
    """Office edit: the confirmation state is left alone and changes are recorded."""
    _check_day(dtr, day)
    now = utcnow()
    editor = {
        "edited_by": str(actor["_id"]),
        "edited_by_name": full_name(actor) or "Office Staff",
        "edited_at": now,
    }

    entries = list(dtr.get("entries", []))
    index = _find_entry(entries, day)
    old = entries[index] if index != -1 else {}

    changes = []
    for field in TRACKED_FIELDS:
        if field not in data:
            continue
        old_value = old.get(field) or ""
        new_value = data[field] or ""
        if old_value != new_value:
            changes.append({
                "field": field,
                "old_value": old_value or "-",
                "new_value": new_value or "-",
            })

    merged = {**old, **data, "day": day}
    history = list(old.get("edit_history") or [])
    if changes:
        history.append({**editor, "changes": changes})
    merged["edit_history"] = history

    times_changed = any(f in data for f in TIME_FIELDS)
    if index == -1:
        entries.append(_normalize(merged, times_changed))
    else:
        entries[index] = _normalize(merged, times_changed)
    return save_entries(db, dtr, entries)


def _confirm(entry: dict, actor: dict, when) -> dict:
    entry = dict(entry)
    entry["confirmation_status"] = "confirmed"
    entry["confirmed_by"] = str(actor["_id"])
    entry["confirmed_at"] = when
    return entry


def confirm_entry(db, dtr: dict, day: int, actor: dict) -> dict:
    entries = list(dtr.get("entries", []))
    index = _find_entry(entries, day)
    app_assert(index != -1, 404, "Entry not found")
    entries[index] = _confirm(entries[index], actor, utcnow())
    return save_entries(db, dtr, entries)


def confirm_all(db, dtr: dict, actor: dict) -> dict:
    now = utcnow()
    entries = [
        _confirm(entry, actor, now) if has_time(entry) else entry
        for entry in dtr.get("entries", [])
    ]
    return save_entries(db, dtr, entries)


def mark_day_excused(db, dtr: dict, day: int, excused: bool, actor: dict,
                     reason: Optional[str] = None) -> dict:
    """Office marking of a single day.

    An excused day counts as a full day (DAILY_CAP_MINUTES) and is confirmed
    on the spot. Removing the mark recomputes the minutes from the recorded
    times and leaves the confirmation as it was.
    """
    _check_day(dtr, day)
    entries = list(dtr.get("entries", []))
    index = _find_entry(entries, day)
    app_assert(index != -1, 404, "Entry not found")

    entry = dict(entries[index])
    if excused:
        entry = _confirm(entry, actor, utcnow())
        entry["excused_status"] = "excused"
        entry["excused_reason"] = reason or ""
        entry["total_hours"] = DAILY_CAP_MINUTES
    else:
        entry["excused_status"] = "none"
        entry["excused_reason"] = None
        entry["total_hours"] = entry_minutes(entry)
    entries[index] = entry

    logger.info("DTR %s day %s %s by %s", dtr["_id"], day,
                "excused" if excused else "no longer excused", actor["_id"])
    return save_entries(db, dtr, entries)


def submit(db, dtr: dict) -> dict:
    app_assert(dtr.get("status") in ("draft", "rejected"), 400, "DTR already submitted")
    return save_entries(db, dtr, dtr.get("entries", []),
                        {"status": "submitted", "submitted_at": utcnow()})


def check(db, dtr: dict, actor: dict, status: str, remarks: Optional[str] = None) -> dict:
    app_assert(dtr.get("status") == "submitted", 400, "Only submitted DTRs can be checked")
    updated = save_entries(db, dtr, dtr.get("entries", []), {
        "status": status,
        "checked_by": str(actor["_id"]),
        "checked_at": utcnow(),
        "remarks": remarks,
    })
    logger.info("DTR %s %s by %s", dtr["_id"], status, actor["_id"])
    return updated


def stats(db, user_id: str) -> dict:
    result = {"total_dtrs": 0, "total_hours": 0, "draft": 0, "submitted": 0,
              "approved": 0, "rejected": 0}
    for dtr in db[COLLECTION].find({"user_id": user_id}, {"status": 1, "total_monthly_hours": 1}):
        result["total_dtrs"] += 1
        result["total_hours"] += dtr.get("total_monthly_hours") or 0
        status = dtr.get("status")
        if status in result:
            result[status] += 1
    return result


def mark_leave_days(db, user_id: str, date_from: date, date_to: date, reason: str,
                    actor: dict) -> int:
    """Mark every day from `date_from` to `date_to` as an excused, confirmed leave.

    Month records are created as needed. Returns the number of days marked.
    """
    by_month: Dict[tuple, List[int]] = defaultdict(list)
    day = date_from
    while day <= date_to:
        by_month[(day.year, day.month)].append(day.day)
        day += timedelta(days=1)

    now = utcnow()
    marked = 0
    for (year, month), days in sorted(by_month.items()):
        dtr = get_or_create(db, user_id, month, year)
        entries = list(dtr.get("entries", []))
        for d in days:
            index = _find_entry(entries, d)
            entry = entries[index] if index != -1 else DTREntry(day=d).model_dump()
            entry = _confirm(entry, actor, now)
            entry["status"] = ON_LEAVE
            entry["excused_status"] = "excused"
            entry["excused_reason"] = reason
            if index == -1:
                entries.append(entry)
            else:
                entries[index] = entry
            marked += 1
        save_entries(db, dtr, entries)
    return marked
