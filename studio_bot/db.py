"""SQLite persistence layer for the studio booking bot."""

from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

Connection = sqlite3.Connection
Row = sqlite3.Row

SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS locations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS instructors (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        first_name TEXT NOT NULL,
        last_name TEXT,
        phone_e164 TEXT,
        phone_raw TEXT,
        is_active INTEGER NOT NULL DEFAULT 1
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS groups (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        instructor_id INTEGER,
        location_id INTEGER,
        is_active INTEGER NOT NULL DEFAULT 1,
        FOREIGN KEY(instructor_id) REFERENCES instructors(id),
        FOREIGN KEY(location_id) REFERENCES locations(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS class_templates (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        group_id INTEGER NOT NULL,
        weekday_iso INTEGER NOT NULL CHECK (weekday_iso BETWEEN 1 AND 7),
        start_time TEXT NOT NULL,
        capacity INTEGER NOT NULL DEFAULT 10,
        required_level INTEGER,
        price REAL,
        is_active INTEGER NOT NULL DEFAULT 1,
        FOREIGN KEY(group_id) REFERENCES groups(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        first_name TEXT NOT NULL,
        last_name TEXT,
        phone_e164 TEXT,
        phone_raw TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        level INTEGER,
        price_ceiling REAL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS enrollments (
        user_id INTEGER NOT NULL,
        class_template_id INTEGER NOT NULL,
        is_active INTEGER NOT NULL DEFAULT 1,
        PRIMARY KEY (user_id, class_template_id),
        FOREIGN KEY(user_id) REFERENCES users(id),
        FOREIGN KEY(class_template_id) REFERENCES class_templates(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS absences (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        class_template_id INTEGER NOT NULL,
        session_date TEXT NOT NULL,
        reason TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        UNIQUE(user_id, class_template_id, session_date),
        FOREIGN KEY(user_id) REFERENCES users(id),
        FOREIGN KEY(class_template_id) REFERENCES class_templates(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS slots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        class_template_id INTEGER NOT NULL,
        session_date TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'open' CHECK (status IN ('open', 'taken')),
        taken_by_user_id INTEGER,
        taken_at TEXT,
        source_absence_id INTEGER UNIQUE,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY(class_template_id) REFERENCES class_templates(id),
        FOREIGN KEY(taken_by_user_id) REFERENCES users(id),
        FOREIGN KEY(source_absence_id) REFERENCES absences(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS credits (
        user_id INTEGER PRIMARY KEY,
        balance INTEGER NOT NULL DEFAULT 0 CHECK (balance >= 0),
        updated_at TEXT NOT NULL,
        FOREIGN KEY(user_id) REFERENCES users(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS inbox_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        source TEXT NOT NULL,
        provider_uid TEXT NOT NULL UNIQUE,
        message_direction TEXT NOT NULL,
        message_type TEXT,
        from_wa_id TEXT,
        text_body TEXT,
        sent_ts TEXT,
        payload_json TEXT,
        received_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS outbound_messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER,
        to_phone TEXT NOT NULL,
        message_type TEXT NOT NULL,
        body TEXT,
        template_name TEXT,
        variables TEXT,
        status TEXT NOT NULL,
        reason TEXT,
        wa_message_id TEXT,
        attempt INTEGER NOT NULL DEFAULT 1,
        delivery_status TEXT,
        created_at TEXT DEFAULT CURRENT_TIMESTAMP
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_slots_occurrence ON slots (class_template_id, session_date, status)",
    "CREATE INDEX IF NOT EXISTS idx_outbound_wa_message ON outbound_messages (wa_message_id)",
)


class Database:
    """Lightweight wrapper around SQLite operations."""

    def __init__(self, path: Path, busy_timeout: float = 30.0) -> None:
        self._path = path
        self._busy_timeout = busy_timeout
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._initialize()

    @property
    def path(self) -> Path:
        return self._path

    @contextmanager
    def connect(self) -> Iterator[Connection]:
        conn = sqlite3.connect(self._path, timeout=self._busy_timeout, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Run a block inside ``BEGIN IMMEDIATE``; roll back on any exception."""

        with self.connect() as conn:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _initialize(self) -> None:
        with self.connect() as conn:
            conn.execute("PRAGMA journal_mode = WAL")
            for statement in SCHEMA:
                conn.execute(statement)

    # region Sender directory
    def find_member_by_phone(self, plus_form: str, bare_form: str) -> Optional[Row]:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                SELECT id, first_name AS name, is_active AS active
                FROM users
                WHERE phone_e164 = ? OR phone_raw = ? OR phone_raw = ?
                ORDER BY id
                LIMIT 1
                """,
                (plus_form, bare_form, plus_form),
            )
            return cursor.fetchone()

    def find_instructor_by_phone(self, plus_form: str, bare_form: str) -> Optional[Row]:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                SELECT id, first_name AS name, is_active AS active
                FROM instructors
                WHERE phone_e164 = ? OR phone_raw = ? OR phone_raw = ?
                ORDER BY id
                LIMIT 1
                """,
                (plus_form, bare_form, plus_form),
            )
            return cursor.fetchone()

    def get_instructor(self, instructor_id: int) -> Optional[Row]:
        with self.connect() as conn:
            cursor = conn.execute(
                "SELECT id, first_name, phone_e164, phone_raw FROM instructors WHERE id = ?",
                (instructor_id,),
            )
            return cursor.fetchone()

    # endregion

    # region Audit log
    def record_inbound(self, record: Dict[str, Any]) -> bool:
        """Insert an inbound event; return False when the provider id was seen before."""

        with self.connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO inbox_messages
                    (source, provider_uid, message_direction, message_type,
                     from_wa_id, text_body, sent_ts, payload_json)
                VALUES (:source, :provider_uid, :message_direction, :message_type,
                        :from_wa_id, :text_body, :sent_ts, :payload_json)
                ON CONFLICT(provider_uid) DO NOTHING
                """,
                {**record, "payload_json": json.dumps(record.get("payload_json") or {})},
            )
            return cursor.rowcount == 1

    def record_outbound(self, record: Dict[str, Any]) -> None:
        row = {
            "user_id": None,
            "template_name": None,
            "variables": None,
            "reason": None,
            "wa_message_id": None,
            "attempt": 1,
            **record,
        }
        if row["variables"] is not None:
            row["variables"] = json.dumps(row["variables"], ensure_ascii=False)
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO outbound_messages
                    (user_id, to_phone, message_type, body, template_name, variables,
                     status, reason, wa_message_id, attempt)
                VALUES (:user_id, :to_phone, :message_type, :body, :template_name, :variables,
                        :status, :reason, :wa_message_id, :attempt)
                """,
                row,
            )

    def update_delivery_status(self, wa_message_id: str, status: str) -> int:
        with self.connect() as conn:
            cursor = conn.execute(
                "UPDATE outbound_messages SET delivery_status = ? WHERE wa_message_id = ?",
                (status, wa_message_id),
            )
            return cursor.rowcount

    def get_outbound(self, to_phone: Optional[str] = None) -> List[Row]:
        with self.connect() as conn:
            if to_phone is None:
                cursor = conn.execute("SELECT * FROM outbound_messages ORDER BY id")
            else:
                cursor = conn.execute(
                    "SELECT * FROM outbound_messages WHERE to_phone = ? ORDER BY id",
                    (to_phone,),
                )
            return cursor.fetchall()

    # endregion

    # region Reports
    def get_classes_on(self, day: date, instructor_id: Optional[int] = None) -> List[Row]:
        query = """
            SELECT ct.id AS class_template_id, ct.start_time, ct.capacity,
                   g.name AS group_name, g.instructor_id,
                   COALESCE(l.name, '') AS location_name
            FROM class_templates ct
            JOIN groups g ON g.id = ct.group_id AND g.is_active = 1
            LEFT JOIN locations l ON l.id = g.location_id
            WHERE ct.is_active = 1 AND ct.weekday_iso = ?
        """
        params: list[Any] = [day.isoweekday()]
        if instructor_id is not None:
            query += " AND g.instructor_id = ?"
            params.append(instructor_id)
        query += " ORDER BY ct.start_time, ct.id"
        with self.connect() as conn:
            return conn.execute(query, params).fetchall()

    def get_enrolled_members(self, class_template_id: int) -> List[Row]:
        with self.connect() as conn:
            cursor = conn.execute(
                """
                SELECT u.id, u.first_name, u.last_name
                FROM enrollments e
                JOIN users u ON u.id = e.user_id
                WHERE e.class_template_id = ? AND e.is_active = 1 AND u.is_active = 1
                ORDER BY u.last_name, u.first_name
                """,
                (class_template_id,),
            )
            return cursor.fetchall()

    def get_absences_between(
        self, start_day: date, end_day: date, instructor_id: Optional[int] = None
    ) -> List[Row]:
        query = """
            SELECT a.id, a.user_id, a.class_template_id, a.session_date, a.reason, a.created_at,
                   u.first_name, u.last_name, ct.start_time, g.name AS group_name
            FROM absences a
            JOIN users u ON u.id = a.user_id
            JOIN class_templates ct ON ct.id = a.class_template_id
            JOIN groups g ON g.id = ct.group_id
            WHERE a.session_date BETWEEN ? AND ?
        """
        params: list[Any] = [start_day.isoformat(), end_day.isoformat()]
        if instructor_id is not None:
            query += " AND g.instructor_id = ?"
            params.append(instructor_id)
        query += " ORDER BY a.session_date, ct.start_time, u.last_name"
        with self.connect() as conn:
            return conn.execute(query, params).fetchall()

    def get_slots_between(
        self,
        start_day: date,
        end_day: date,
        status: Optional[str] = None,
        instructor_id: Optional[int] = None,
    ) -> List[Row]:
        query = """
            SELECT s.id, s.class_template_id, s.session_date, s.status, s.taken_by_user_id,
                   s.taken_at, s.source_absence_id, ct.start_time, g.name AS group_name,
                   u.first_name AS taken_by_first_name, u.last_name AS taken_by_last_name
            FROM slots s
            JOIN class_templates ct ON ct.id = s.class_template_id
            JOIN groups g ON g.id = ct.group_id
            LEFT JOIN users u ON u.id = s.taken_by_user_id
            WHERE s.session_date BETWEEN ? AND ?
        """
        params: list[Any] = [start_day.isoformat(), end_day.isoformat()]
        if status is not None:
            query += " AND s.status = ?"
            params.append(status)
        if instructor_id is not None:
            query += " AND g.instructor_id = ?"
            params.append(instructor_id)
        query += " ORDER BY s.session_date, ct.start_time, s.id"
        with self.connect() as conn:
            return conn.execute(query, params).fetchall()

    def get_credit_balance(self, user_id: int) -> int:
        with self.connect() as conn:
            row = conn.execute(
                "SELECT balance FROM credits WHERE user_id = ?", (user_id,)
            ).fetchone()
            return row["balance"] if row else 0

    # endregion


__all__ = ["Database", "Connection", "Row"]
