"""Absence / slot / credit reconciliation.

Each public operation runs in exactly one ``BEGIN IMMEDIATE`` transaction and
returns an :class:`Outcome`; nothing raised inside the transaction escapes
before the rollback has happened.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Optional

from . import ledger
from .context import StudioClock
from .db import Database
from .models import AbsenceReported, FailureKind, Outcome
from .schedule import enrollment_matches, normalize_time, resolve_occurrence

if TYPE_CHECKING:
    from .notifications import InstructorNotifier

logger = logging.getLogger(__name__)

ABSENCE_REASON = "whatsapp_bezposrednia_wiadomosc"


class Rejected(Exception):
    """Business-rule rejection raised inside a transaction to force a rollback."""

    def __init__(self, kind: FailureKind, detail: str | None = None) -> None:
        super().__init__(kind.value)
        self.kind = kind
        self.detail = detail


class ReconciliationEngine:
    """Keeps the absence, slot and credit ledgers consistent with each other."""

    def __init__(
        self,
        database: Database,
        clock: StudioClock,
        notifier: Optional["InstructorNotifier"] = None,
    ) -> None:
        self.database = database
        self.clock = clock
        self.notifier = notifier

    def _run(self, operation: str, body) -> Outcome:
        try:
            with self.database.transaction() as conn:
                return body(conn)
        except Rejected as exc:
            logger.info("%s rejected: %s", operation, exc.kind.value)
            return Outcome.failure(exc.kind, exc.detail)
        except Exception:
            logger.exception("%s failed; transaction rolled back", operation)
            return Outcome.failure(FailureKind.EXCEPTION)

    def report_absence(
        self,
        member_id: int,
        session_date: date,
        class_template_hint: Optional[int] = None,
        session_time: Optional[str] = None,
    ) -> Outcome:
        """Record one absence, open its compensating slot and credit the member."""

        today = self.clock.today()
        if session_date < today:
            return Outcome.failure(FailureKind.PAST_DATE)
        now = self.clock.now().isoformat()

        def body(conn) -> Outcome:
            class_template_id = None
            if class_template_hint is not None and enrollment_matches(
                conn, member_id, class_template_hint, session_date
            ):
                class_template_id = class_template_hint
            if class_template_id is None:
                resolution = resolve_occurrence(conn, member_id, session_date, today, session_time)
                if not resolution.ok:
                    raise Rejected(resolution.reason)
                class_template_id = resolution.class_template_id

            if ledger.find_absence(conn, member_id, class_template_id, session_date) is not None:
                raise Rejected(FailureKind.ALREADY_ABSENT)

            absence_id = ledger.insert_absence(
                conn, member_id, class_template_id, session_date, ABSENCE_REASON, now
            )
            if absence_id is None:
                raise Rejected(FailureKind.ALREADY_ABSENT)
            ledger.open_slot_for_absence(conn, absence_id, class_template_id, session_date, now)
            ledger.add_credit(conn, member_id, now)

            info = conn.execute(
                """
                SELECT ct.start_time, g.name AS group_name, g.instructor_id, u.first_name, u.last_name
                FROM class_templates ct
                JOIN groups g ON g.id = ct.group_id
                JOIN users u ON u.id = ?
                WHERE ct.id = ?
                """,
                (member_id, class_template_id),
            ).fetchone()
            member_name = " ".join(part for part in (info["first_name"], info["last_name"]) if part)
            start_time = normalize_time(info["start_time"])
            event = AbsenceReported(
                absence_id=absence_id,
                member_id=member_id,
                member_name=member_name,
                class_template_id=class_template_id,
                session_date=session_date,
                start_time=start_time,
                group_name=info["group_name"],
                instructor_id=info["instructor_id"],
            )
            return Outcome(
                ok=True,
                absence_id=absence_id,
                class_template_id=class_template_id,
                session_date=session_date,
                start_time=start_time,
                group_name=info["group_name"],
                events=[event],
            )

        outcome = self._run("report_absence", body)
        if outcome.ok and self.notifier is not None:
            for event in outcome.events:
                self.notifier.publish(event)
        return outcome

    def reserve_makeup_slot(
        self, member_id: int, session_date: date, class_template_id: int
    ) -> Outcome:
        """Let a member spend one credit on an open slot of someone else's class."""

        if session_date < self.clock.today():
            return Outcome.failure(FailureKind.PAST_DATE)
        now = self.clock.now().isoformat()

        def body(conn) -> Outcome:
            if ledger.locked_balance(conn, member_id) <= 0:
                raise Rejected(FailureKind.NO_CREDIT)

            slot = ledger.pick_open_slot(conn, member_id, class_template_id, session_date)
            if slot is None:
                raise Rejected(FailureKind.SLOT_UNAVAILABLE)
            if not ledger.mark_slot_taken(conn, slot["id"], member_id, now):
                raise Rejected(FailureKind.SLOT_UNAVAILABLE)
            if not ledger.spend_credit(conn, member_id, now):
                raise Rejected(FailureKind.NO_CREDIT)

            return Outcome(
                ok=True,
                slot_id=slot["id"],
                class_template_id=class_template_id,
                session_date=session_date,
                start_time=normalize_time(slot["start_time"]),
                group_name=slot["group_name"],
            )

        return self._run("reserve_makeup_slot", body)

    def add_manual_slot(
        self, instructor_id: int, class_template_id: int, session_date: date
    ) -> Outcome:
        """Open an extra slot in the instructor's own class; no credit effects."""

        if session_date < self.clock.today():
            return Outcome.failure(FailureKind.PAST_DATE)
        now = self.clock.now().isoformat()

        def body(conn) -> Outcome:
            row = conn.execute(
                """
                SELECT ct.weekday_iso, ct.start_time, g.name AS group_name
                FROM class_templates ct
                JOIN groups g ON g.id = ct.group_id
                WHERE ct.id = ? AND g.instructor_id = ? AND ct.is_active = 1
                """,
                (class_template_id, instructor_id),
            ).fetchone()
            if row is None:
                raise Rejected(FailureKind.NOT_OWNER)
            if row["weekday_iso"] != session_date.isoweekday():
                raise Rejected(FailureKind.INVALID_OCCURRENCE)

            slot_id = ledger.insert_manual_slot(conn, class_template_id, session_date, now)
            return Outcome(
                ok=True,
                slot_id=slot_id,
                class_template_id=class_template_id,
                session_date=session_date,
                start_time=normalize_time(row["start_time"]),
                group_name=row["group_name"],
            )

        return self._run("add_manual_slot", body)


__all__ = ["ABSENCE_REASON", "Rejected", "ReconciliationEngine"]
