"""Absence, slot and credit ledger primitives.

These only ever run on a connection that is already inside
``Database.transaction()``; the engine owns the transaction boundary.
"""

from __future__ import annotations

from datetime import date, timedelta
from typing import List, Optional

from .db import Connection, Row
from .models import MakeupOffer
from .schedule import UPCOMING_DAYS, normalize_time

# Level, price and "not already in this occurrence" filters for a claiming member.
# Expects ``s`` (slots), ``ct`` (class_templates) and ``u`` (users) in scope.
ELIGIBLE_FOR_MEMBER = """
    AND (ct.required_level IS NULL OR u.level IS NULL OR u.level <= ct.required_level)
    AND (ct.price IS NULL OR u.price_ceiling IS NULL OR u.price_ceiling >= ct.price)
    AND NOT EXISTS (
        SELECT 1 FROM enrollments e
        WHERE e.user_id = u.id
          AND e.class_template_id = ct.id
          AND e.is_active = 1
    )
    AND NOT EXISTS (
        SELECT 1 FROM slots t
        WHERE t.class_template_id = ct.id
          AND t.session_date = s.session_date
          AND t.taken_by_user_id = u.id
    )
"""


# region Absences
def find_absence(
    conn: Connection, member_id: int, class_template_id: int, session_date: date
) -> Optional[Row]:
    return conn.execute(
        """
        SELECT id FROM absences
        WHERE user_id = ? AND class_template_id = ? AND session_date = ?
        """,
        (member_id, class_template_id, session_date.isoformat()),
    ).fetchone()


def insert_absence(
    conn: Connection,
    member_id: int,
    class_template_id: int,
    session_date: date,
    reason: str,
    now: str,
) -> Optional[int]:
    """Insert an absence; return its id, or None if one already exists."""

    cursor = conn.execute(
        """
        INSERT INTO absences (user_id, class_template_id, session_date, reason, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?)
        ON CONFLICT(user_id, class_template_id, session_date) DO NOTHING
        """,
        (member_id, class_template_id, session_date.isoformat(), reason, now, now),
    )
    if cursor.rowcount != 1:
        return None
    return cursor.lastrowid


# endregion


# region Slots
def open_slot_for_absence(
    conn: Connection, absence_id: int, class_template_id: int, session_date: date, now: str
) -> None:
    conn.execute(
        """
        INSERT INTO slots (class_template_id, session_date, status, source_absence_id, created_at, updated_at)
        VALUES (?, ?, 'open', ?, ?, ?)
        ON CONFLICT(source_absence_id) DO NOTHING
        """,
        (class_template_id, session_date.isoformat(), absence_id, now, now),
    )


def insert_manual_slot(
    conn: Connection, class_template_id: int, session_date: date, now: str
) -> int:
    cursor = conn.execute(
        """
        INSERT INTO slots (class_template_id, session_date, status, source_absence_id, created_at, updated_at)
        VALUES (?, ?, 'open', NULL, ?, ?)
        """,
        (class_template_id, session_date.isoformat(), now, now),
    )
    return cursor.lastrowid


def pick_open_slot(
    conn: Connection, member_id: int, class_template_id: int, session_date: date
) -> Optional[Row]:
    """Return the oldest open slot of an occurrence the member may claim."""

    return conn.execute(
        f"""
        SELECT s.id, s.class_template_id, s.session_date, ct.start_time, g.name AS group_name
        FROM slots s
        JOIN class_templates ct ON ct.id = s.class_template_id AND ct.is_active = 1
        JOIN groups g ON g.id = ct.group_id
        JOIN users u ON u.id = ?
        WHERE s.class_template_id = ?
          AND s.session_date = ?
          AND s.status = 'open'
          {ELIGIBLE_FOR_MEMBER}
        ORDER BY s.created_at, s.id
        LIMIT 1
        """,
        (member_id, class_template_id, session_date.isoformat()),
    ).fetchone()


def mark_slot_taken(conn: Connection, slot_id: int, member_id: int, now: str) -> bool:
    """Transition open -> taken; False if the row is no longer open."""

    cursor = conn.execute(
        """
        UPDATE slots
        SET status = 'taken', taken_by_user_id = ?, taken_at = ?, updated_at = ?
        WHERE id = ? AND status = 'open'
        """,
        (member_id, now, now, slot_id),
    )
    return cursor.rowcount == 1


def open_makeup_slots(
    conn: Connection, member_id: int, today: date, days: int = UPCOMING_DAYS
) -> List[MakeupOffer]:
    rows = conn.execute(
        f"""
        SELECT s.class_template_id, s.session_date, ct.start_time, g.name AS group_name,
               COUNT(*) AS open_slots
        FROM slots s
        JOIN class_templates ct ON ct.id = s.class_template_id AND ct.is_active = 1
        JOIN groups g ON g.id = ct.group_id AND g.is_active = 1
        JOIN users u ON u.id = ?
        WHERE s.status = 'open'
          AND s.session_date BETWEEN ? AND ?
          {ELIGIBLE_FOR_MEMBER}
        GROUP BY s.class_template_id, s.session_date, ct.start_time, g.name
        ORDER BY s.session_date, ct.start_time, s.class_template_id
        """,
        (member_id, today.isoformat(), (today + timedelta(days=days - 1)).isoformat()),
    ).fetchall()
    return [
        MakeupOffer(
            session_date=date.fromisoformat(row["session_date"]),
            class_template_id=row["class_template_id"],
            group_name=row["group_name"],
            start_time=normalize_time(row["start_time"]),
            open_slots=row["open_slots"],
        )
        for row in rows
    ]


# endregion


# region Credits
def add_credit(conn: Connection, member_id: int, now: str) -> None:
    conn.execute(
        """
        INSERT INTO credits (user_id, balance, updated_at)
        VALUES (?, 1, ?)
        ON CONFLICT(user_id) DO UPDATE SET
            balance = balance + 1,
            updated_at = excluded.updated_at
        """,
        (member_id, now),
    )


def locked_balance(conn: Connection, member_id: int) -> int:
    """Read the balance; the caller's ``BEGIN IMMEDIATE`` holds the write lock."""

    row = conn.execute("SELECT balance FROM credits WHERE user_id = ?", (member_id,)).fetchone()
    return row["balance"] if row else 0


def spend_credit(conn: Connection, member_id: int, now: str) -> bool:
    cursor = conn.execute(
        """
        UPDATE credits
        SET balance = balance - 1, updated_at = ?
        WHERE user_id = ? AND balance > 0
        """,
        (now, member_id),
    )
    return cursor.rowcount == 1


# endregion


__all__ = [
    "find_absence",
    "insert_absence",
    "open_slot_for_absence",
    "insert_manual_slot",
    "pick_open_slot",
    "mark_slot_taken",
    "open_makeup_slots",
    "add_credit",
    "locked_balance",
    "spend_credit",
]
