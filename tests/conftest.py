"""
Shared fixtures: a real SQLite file per test, a fixed studio clock, a roster
seeding helper and a messenger that records what the bot would send.
"""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

from studio_bot.config import Settings
from studio_bot.context import StudioContext
from studio_bot.db import Database
from studio_bot.engine import ReconciliationEngine
from studio_bot.models import SendResult

# Wednesday
TODAY = date(2025, 11, 5)
WARSAW = ZoneInfo("Europe/Warsaw")


class FixedClock:
    def __init__(self, today: date = TODAY) -> None:
        self._today = today

    def today(self) -> date:
        return self._today

    def now(self) -> datetime:
        return datetime.combine(self._today, datetime.min.time(), tzinfo=WARSAW) + timedelta(hours=9)


class Roster:
    """Writes roster rows the way the studio's external roster system would."""

    def __init__(self, database: Database) -> None:
        self.database = database

    def _insert(self, sql: str, params: tuple) -> int:
        with self.database.connect() as conn:
            return conn.execute(sql, params).lastrowid

    def instructor(self, name: str = "Agnieszka", phone: str = "+48500000001") -> int:
        return self._insert(
            "INSERT INTO instructors (first_name, phone_e164, phone_raw) VALUES (?, ?, ?)",
            (name, phone, phone.lstrip("+")),
        )

    def group(self, name: str, instructor_id: int, location: str = "Sala A") -> int:
        location_id = self._insert("INSERT INTO locations (name) VALUES (?)", (location,))
        return self._insert(
            "INSERT INTO groups (name, instructor_id, location_id) VALUES (?, ?, ?)",
            (name, instructor_id, location_id),
        )

    def class_template(
        self,
        group_id: int,
        weekday: int,
        start_time: str,
        required_level=None,
        price=None,
        active: bool = True,
    ) -> int:
        return self._insert(
            """
            INSERT INTO class_templates (group_id, weekday_iso, start_time, required_level, price, is_active)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (group_id, weekday, start_time, required_level, price, int(active)),
        )

    def member(
        self,
        first_name: str,
        phone_e164=None,
        phone_raw=None,
        active: bool = True,
        level=None,
        price_ceiling=None,
        last_name: str = "Test",
    ) -> int:
        return self._insert(
            """
            INSERT INTO users (first_name, last_name, phone_e164, phone_raw, is_active, level, price_ceiling)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (first_name, last_name, phone_e164, phone_raw, int(active), level, price_ceiling),
        )

    def enroll(self, user_id: int, class_template_id: int) -> None:
        self._insert(
            "INSERT INTO enrollments (user_id, class_template_id) VALUES (?, ?)",
            (user_id, class_template_id),
        )

    def credit(self, user_id: int, balance: int) -> None:
        self._insert(
            "INSERT INTO credits (user_id, balance, updated_at) VALUES (?, ?, 'seed')",
            (user_id, balance),
        )


class RecordingMessenger:
    """Stands in for the WhatsApp client and keeps every outbound call."""

    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_text(self, to, body, *, user_id=None):
        self.sent.append({"kind": "text", "to": to, "body": body, "user_id": user_id})
        return SendResult(ok=True, message_id=f"wamid.{len(self.sent)}")

    async def send_list(self, to, header, body, sections, *, button="Wybierz", footer=None, user_id=None):
        self.sent.append(
            {
                "kind": "list",
                "to": to,
                "header": header,
                "body": body,
                "sections": sections,
                "ids": [row["id"] for section in sections for row in section["rows"]],
                "user_id": user_id,
            }
        )
        return SendResult(ok=True, message_id=f"wamid.{len(self.sent)}")

    async def send_buttons(self, to, body, buttons, *, user_id=None):
        self.sent.append(
            {"kind": "buttons", "to": to, "body": body, "ids": [b["id"] for b in buttons], "user_id": user_id}
        )
        return SendResult(ok=True, message_id=f"wamid.{len(self.sent)}")

    async def send_template(self, to, template_name, language_code, parameters, *, user_id=None):
        self.sent.append(
            {"kind": "template", "to": to, "name": template_name, "parameters": parameters}
        )
        return SendResult(ok=True, message_id=f"wamid.{len(self.sent)}")

    @property
    def texts(self) -> list[str]:
        return [m["body"] for m in self.sent if m["kind"] == "text"]

    @property
    def kinds(self) -> list[str]:
        return [m["kind"] for m in self.sent]


@pytest.fixture
def settings(tmp_path):
    return Settings(
        verify_token="verify-me",
        api_key="secret-key",
        database_path=tmp_path / "studio.db",
        whatsapp_token="wa-token",
        phone_number_id="1234567890",
        send_max_attempts=3,
        send_backoff_seconds=0.0,
    )


@pytest.fixture
def database(settings):
    return Database(settings.database_path)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def roster(database):
    return Roster(database)


@pytest.fixture
def engine(database, clock):
    return ReconciliationEngine(database, clock)


@pytest.fixture
def messenger():
    return RecordingMessenger()


@pytest.fixture
def context(settings, database, messenger, clock):
    return StudioContext(settings=settings, database=database, messenger=messenger, clock=clock)


@pytest.fixture
def studio(roster):
    """One instructor, two groups, a Wednesday 18:00 class and a Thursday class."""

    instructor_id = roster.instructor()
    group_id = roster.group("Pilates Klasyczny", instructor_id)
    other_group_id = roster.group("Pilates Poranny", instructor_id, location="Sala B")
    wednesday = roster.class_template(group_id, 3, "18:00")
    thursday = roster.class_template(other_group_id, 4, "09:00")
    return {
        "instructor_id": instructor_id,
        "group_id": group_id,
        "other_group_id": other_group_id,
        "wednesday": wednesday,
        "thursday": thursday,
    }


def count(database: Database, table: str, where: str = "1 = 1", params: tuple = ()) -> int:
    with database.connect() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table} WHERE {where}", params).fetchone()[0]


@pytest.fixture
def rows(database):
    """Count rows in a table, optionally filtered by a WHERE clause."""

    def _rows(table: str, where: str = "1 = 1", params: tuple = ()) -> int:
        return count(database, table, where, params)

    return _rows
