"""Read-only reporting queries for instructors, the REST API and the MCP server."""

from __future__ import annotations

from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from .db import Database
from .directory import phone_forms
from .schedule import UPCOMING_DAYS, normalize_time


def _full_name(first: Optional[str], last: Optional[str]) -> str:
    return " ".join(part for part in (first, last) if part)


def roster_for_day(
    database: Database, day: date, instructor_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Who is expected in each class on ``day``: enrolled minus absent plus make-ups."""

    absences = database.get_absences_between(day, day, instructor_id)
    slots = database.get_slots_between(day, day, instructor_id=instructor_id)
    roster: List[Dict[str, Any]] = []
    for cls in database.get_classes_on(day, instructor_id):
        class_id = cls["class_template_id"]
        absent_ids = {row["user_id"] for row in absences if row["class_template_id"] == class_id}
        enrolled = database.get_enrolled_members(class_id)
        class_slots = [row for row in slots if row["class_template_id"] == class_id]
        roster.append(
            {
                "class_template_id": class_id,
                "group_name": cls["group_name"],
                "start_time": normalize_time(cls["start_time"]),
                "location_name": cls["location_name"],
                "capacity": cls["capacity"],
                "present": [
                    _full_name(m["first_name"], m["last_name"])
                    for m in enrolled
                    if m["id"] not in absent_ids
                ],
                "absent": [
                    _full_name(row["first_name"], row["last_name"])
                    for row in absences
                    if row["class_template_id"] == class_id
                ],
                "makeup": [
                    _full_name(row["taken_by_first_name"], row["taken_by_last_name"])
                    for row in class_slots
                    if row["status"] == "taken"
                ],
                "open_slots": sum(1 for row in class_slots if row["status"] == "open"),
            }
        )
    return roster


def absences_between(
    database: Database, start_day: date, end_day: date, instructor_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    return [
        {
            "absence_id": row["id"],
            "user_id": row["user_id"],
            "name": _full_name(row["first_name"], row["last_name"]),
            "class_template_id": row["class_template_id"],
            "group_name": row["group_name"],
            "session_date": row["session_date"],
            "start_time": normalize_time(row["start_time"]),
            "reported_at": row["created_at"],
        }
        for row in database.get_absences_between(start_day, end_day, instructor_id)
    ]


def open_slots(
    database: Database, today: date, days: int = UPCOMING_DAYS, instructor_id: Optional[int] = None
) -> List[Dict[str, Any]]:
    end_day = today + timedelta(days=days - 1)
    return [
        {
            "slot_id": row["id"],
            "class_template_id": row["class_template_id"],
            "group_name": row["group_name"],
            "session_date": row["session_date"],
            "start_time": normalize_time(row["start_time"]),
            "manual": row["source_absence_id"] is None,
        }
        for row in database.get_slots_between(today, end_day, "open", instructor_id)
    ]


def upcoming_stats(
    database: Database, today: date, instructor_id: Optional[int] = None, days: int = UPCOMING_DAYS
) -> Dict[str, Any]:
    end_day = today + timedelta(days=days - 1)
    slots = database.get_slots_between(today, end_day, instructor_id=instructor_id)
    return {
        "start": today.isoformat(),
        "end": end_day.isoformat(),
        "absences": len(database.get_absences_between(today, end_day, instructor_id)),
        "open": sum(1 for row in slots if row["status"] == "open"),
        "taken": sum(1 for row in slots if row["status"] == "taken"),
    }


def credit_balance(database: Database, phone: str) -> Optional[Dict[str, Any]]:
    member = database.find_member_by_phone(*phone_forms(phone))
    if member is None:
        return None
    return {
        "user_id": member["id"],
        "name": member["name"],
        "balance": database.get_credit_balance(member["id"]),
    }


__all__ = ["roster_for_day", "absences_between", "open_slots", "upcoming_stats", "credit_balance"]
