"""Projection of weekly class templates onto calendar dates.

Every function takes an open connection so the reconciliation engine can run
it inside its own transaction, and read-only callers can use a plain one.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import List, Optional

from .db import Connection
from .models import FailureKind, Occurrence

UPCOMING_DAYS = 14


@dataclass(slots=True)
class Resolution:
    class_template_id: Optional[int] = None
    reason: Optional[FailureKind] = None

    @property
    def ok(self) -> bool:
        return self.class_template_id is not None


def normalize_time(value: str) -> str:
    """Return ``HH:MM`` for stored or parsed start times like ``9:5`` or ``18:00:00``."""

    hours, _, rest = value.strip().partition(":")
    minutes = rest.split(":")[0] if rest else "0"
    return f"{int(hours):02d}:{int(minutes):02d}"


def weekday_enrollments(conn: Connection, member_id: int, session_date: date) -> list:
    cursor = conn.execute(
        """
        SELECT ct.id AS class_template_id, ct.start_time
        FROM enrollments e
        JOIN class_templates ct ON ct.id = e.class_template_id
        JOIN groups g ON g.id = ct.group_id
        WHERE e.user_id = ?
          AND e.is_active = 1
          AND ct.is_active = 1
          AND g.is_active = 1
          AND ct.weekday_iso = ?
        ORDER BY ct.start_time, ct.id
        """,
        (member_id, session_date.isoweekday()),
    )
    return cursor.fetchall()


def resolve_occurrence(
    conn: Connection,
    member_id: int,
    session_date: date,
    today: date,
    session_time: Optional[str] = None,
) -> Resolution:
    """Map a member's calendar date (and optional time) to one class template.

    Never guesses: two classes on the same weekday without a narrowing time is
    reported as ambiguous.
    """

    if session_date < today:
        return Resolution(reason=FailureKind.PAST_DATE)

    rows = weekday_enrollments(conn, member_id, session_date)
    if not rows:
        return Resolution(reason=FailureKind.NO_ENROLLMENT_FOR_WEEKDAY)
    if len(rows) == 1:
        return Resolution(class_template_id=rows[0]["class_template_id"])

    if session_time:
        wanted = normalize_time(session_time)
        narrowed = [row for row in rows if normalize_time(row["start_time"]) == wanted]
        if len(narrowed) == 1:
            return Resolution(class_template_id=narrowed[0]["class_template_id"])

    return Resolution(reason=FailureKind.AMBIGUOUS_DAY_REQUIRES_TIME)


def enrollment_matches(
    conn: Connection, member_id: int, class_template_id: int, session_date: date
) -> bool:
    """Check that a menu-supplied class really is the member's class on that weekday."""

    return any(
        row["class_template_id"] == class_template_id
        for row in weekday_enrollments(conn, member_id, session_date)
    )


def _project(rows: list, today: date, days: int) -> List[Occurrence]:
    occurrences: List[Occurrence] = []
    for offset in range(days):
        day = today + timedelta(days=offset)
        for row in rows:
            if row["weekday_iso"] != day.isoweekday():
                continue
            occurrences.append(
                Occurrence(
                    session_date=day,
                    class_template_id=row["class_template_id"],
                    group_name=row["group_name"],
                    start_time=normalize_time(row["start_time"]),
                    location_name=row["location_name"],
                )
            )
    occurrences.sort(key=lambda o: (o.session_date, o.start_time, o.class_template_id))
    return occurrences


def upcoming_classes(
    conn: Connection, member_id: int, today: date, days: int = UPCOMING_DAYS
) -> List[Occurrence]:
    """Return the member's class occurrences from today over the next ``days`` days."""

    rows = conn.execute(
        """
        SELECT ct.id AS class_template_id, ct.weekday_iso, ct.start_time,
               g.name AS group_name, COALESCE(l.name, '') AS location_name
        FROM enrollments e
        JOIN class_templates ct ON ct.id = e.class_template_id AND ct.is_active = 1
        JOIN groups g ON g.id = ct.group_id AND g.is_active = 1
        LEFT JOIN locations l ON l.id = g.location_id
        WHERE e.user_id = ? AND e.is_active = 1
        """,
        (member_id,),
    ).fetchall()
    return _project(rows, today, days)


def instructor_classes(
    conn: Connection, instructor_id: int, today: date, days: int = UPCOMING_DAYS
) -> List[Occurrence]:
    rows = conn.execute(
        """
        SELECT ct.id AS class_template_id, ct.weekday_iso, ct.start_time,
               g.name AS group_name, COALESCE(l.name, '') AS location_name
        FROM class_templates ct
        JOIN groups g ON g.id = ct.group_id AND g.is_active = 1
        LEFT JOIN locations l ON l.id = g.location_id
        WHERE ct.is_active = 1 AND g.instructor_id = ?
        """,
        (instructor_id,),
    ).fetchall()
    return _project(rows, today, days)


__all__ = [
    "UPCOMING_DAYS",
    "Resolution",
    "normalize_time",
    "resolve_occurrence",
    "enrollment_matches",
    "upcoming_classes",
    "instructor_classes",
]
