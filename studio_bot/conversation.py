"""Conversation state machine for inbound WhatsApp messages.

The bot keeps no session between turns. Whatever the next step needs travels
in the reply identifier the user clicks (see :mod:`studio_bot.commands`), so
each inbound event is decided from the sender's role plus the event itself.
"""

from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import List, Optional

from . import messages, reports
from .commands import (
    INSTRUCTOR_COMMANDS,
    MEMBER_COMMANDS,
    AbsenceMore,
    AbsenceOtherDate,
    AbsenceSelection,
    Command,
    InstructorAction,
    InstructorAddSlot,
    MakeupSelection,
    MalformedReply,
    MenuChoice,
    absence_id,
    addslot_id,
    instructor_action_id,
    makeup_id,
    menu_id,
    parse_reply_id,
)
from .context import StudioContext
from .engine import ReconciliationEngine
from .ledger import open_makeup_slots
from .models import FailureKind, InboundMessage, Outcome, Sender, SenderRole
from .parsing import (
    AbsenceIntent,
    IntentParser,
    InvalidDate,
    MenuIntent,
    RegexIntentParser,
)
from .schedule import instructor_classes, upcoming_classes

logger = logging.getLogger(__name__)

MAX_LIST_ROWS = 10
RECENT_ABSENCE_DAYS = 7


def _day(value: date) -> str:
    return value.strftime("%d/%m")


class ConversationHandler:
    """Decides which reply (and which engine call) an inbound event produces."""

    def __init__(
        self,
        context: StudioContext,
        engine: ReconciliationEngine,
        parser: Optional[IntentParser] = None,
    ) -> None:
        self.ctx = context
        self.engine = engine
        self.parser = parser or RegexIntentParser()

    @property
    def messenger(self):
        return self.ctx.messenger

    async def handle(self, message: InboundMessage, sender: Sender) -> None:
        command = parse_reply_id(message.reply_id) if message.is_interactive else None
        if command is not None and await self._handle_command(command, sender):
            return

        if sender.role is SenderRole.UNKNOWN:
            await self.messenger.send_text(
                message.sender,
                messages.UNKNOWN_SENDER.format(contact_url=self.ctx.settings.contact_url),
            )
        elif sender.role is SenderRole.INSTRUCTOR:
            await self._send_instructor_panel(sender)
        elif not sender.active:
            await self._text(sender, messages.INACTIVE_MEMBER)
        else:
            await self._handle_member_text(message, sender)

    # region Interactive replies
    async def _handle_command(self, command: Command, sender: Sender) -> bool:
        if isinstance(command, MalformedReply):
            if sender.role is SenderRole.INSTRUCTOR or sender.is_active_member:
                logger.info("Malformed reply id %r from %s", command.raw, sender.phone)
                await self._text(sender, messages.UNKNOWN_SELECTION)
                return True
            return False

        if isinstance(command, MEMBER_COMMANDS):
            if not sender.is_active_member:
                return False
            await self._handle_member_command(command, sender)
            return True

        if isinstance(command, INSTRUCTOR_COMMANDS):
            if sender.role is not SenderRole.INSTRUCTOR:
                return False
            await self._handle_instructor_command(command, sender)
            return True

        return False

    async def _handle_member_command(self, command: Command, sender: Sender) -> None:
        if isinstance(command, AbsenceSelection):
            outcome = self.engine.report_absence(
                sender.participant_id,
                command.session_date,
                class_template_hint=command.class_template_id,
            )
            await self._reply_absence(outcome, sender, command.session_date)
        elif isinstance(command, AbsenceOtherDate):
            await self._text(sender, messages.OTHER_DATE_PROMPT)
            await self._send_more_question(sender)
        elif isinstance(command, AbsenceMore):
            if command.wants_more:
                await self._send_upcoming_menu(sender)
            else:
                await self._text(sender, messages.ABSENCE_DONE)
        elif isinstance(command, MakeupSelection):
            outcome = self.engine.reserve_makeup_slot(
                sender.participant_id, command.session_date, command.class_template_id
            )
            await self._reply_makeup(outcome, sender)
        elif isinstance(command, MenuChoice):
            await self._handle_menu(command.action, sender)

    async def _handle_instructor_command(self, command: Command, sender: Sender) -> None:
        today = self.ctx.clock.today()
        if isinstance(command, InstructorAddSlot):
            outcome = self.engine.add_manual_slot(
                sender.participant_id, command.class_template_id, command.session_date
            )
            if outcome.ok:
                await self._text(
                    sender,
                    messages.ADDSLOT_CONFIRMED.format(
                        day=_day(outcome.session_date), time=outcome.start_time, group=outcome.group_name
                    ),
                )
            elif outcome.kind is FailureKind.NOT_OWNER:
                await self._text(sender, messages.NOT_OWNER)
            elif outcome.kind is FailureKind.PAST_DATE:
                await self._text(sender, messages.PAST_DATE.format(day=_day(command.session_date)))
            elif outcome.kind is FailureKind.INVALID_OCCURRENCE:
                await self._text(sender, messages.INVALID_OCCURRENCE)
            else:
                await self._text(sender, messages.GENERIC_ERROR)
            return

        action = command.action
        if action in ("today", "tomorrow"):
            day = today if action == "today" else today + timedelta(days=1)
            roster = reports.roster_for_day(self.ctx.database, day, sender.participant_id)
            await self._text(sender, format_roster(day, roster))
        elif action == "absences":
            rows = reports.absences_between(
                self.ctx.database,
                today,
                today + timedelta(days=RECENT_ABSENCE_DAYS - 1),
                sender.participant_id,
            )
            await self._text(sender, format_absences(rows))
        elif action == "stats":
            stats = reports.upcoming_stats(self.ctx.database, today, sender.participant_id)
            await self._text(
                sender,
                messages.STATS.format(absences=stats["absences"], open=stats["open"], taken=stats["taken"]),
            )
        elif action == "addslot":
            await self._send_addslot_menu(sender)

    # endregion

    # region Member text
    async def _handle_member_text(self, message: InboundMessage, sender: Sender) -> None:
        text = (message.text or "").strip()
        intent = self.parser.parse(text, self.ctx.clock.today()) if text else None

        if isinstance(intent, MenuIntent):
            if intent.action == "menu":
                await self._send_main_menu(sender)
            else:
                await self._handle_menu(intent.action, sender)
        elif isinstance(intent, AbsenceIntent):
            outcome = self.engine.report_absence(
                sender.participant_id, intent.session_date, session_time=intent.session_time
            )
            await self._reply_absence(outcome, sender, intent.session_date)
        elif isinstance(intent, InvalidDate):
            await self._text(sender, messages.INVALID_DATE)
        else:
            await self._text(sender, messages.GREETING.format(name=sender.display_name or ""))
            await self._send_main_menu(sender)

    async def _handle_menu(self, action: str, sender: Sender) -> None:
        if action == "absence":
            await self._send_upcoming_menu(sender)
        elif action == "makeup":
            await self._send_makeup_menu(sender)
        elif action == "credits":
            balance = self.ctx.database.get_credit_balance(sender.participant_id)
            await self._text(sender, messages.CREDITS_BALANCE.format(balance=balance))
        elif action == "end":
            await self._text(sender, messages.GOODBYE)

    # endregion

    # region Outcome replies
    async def _reply_absence(self, outcome: Outcome, sender: Sender, session_date: date) -> None:
        day = _day(session_date)
        if outcome.ok:
            await self._text(
                sender,
                messages.ABSENCE_CONFIRMED.format(day=day, time=outcome.start_time, group=outcome.group_name),
            )
            await self._send_more_question(sender)
        elif outcome.kind is FailureKind.ALREADY_ABSENT:
            await self._text(sender, messages.ALREADY_ABSENT.format(day=day))
            await self._send_more_question(sender)
        elif outcome.kind is FailureKind.PAST_DATE:
            await self._text(sender, messages.PAST_DATE.format(day=day))
            await self._send_upcoming_menu(sender)
        elif outcome.kind is FailureKind.NO_ENROLLMENT_FOR_WEEKDAY:
            await self._text(sender, messages.NO_CLASS_THAT_DAY)
            await self._send_upcoming_menu(sender)
        elif outcome.kind is FailureKind.AMBIGUOUS_DAY_REQUIRES_TIME:
            await self._text(sender, messages.AMBIGUOUS_DAY.format(day=day))
            await self._send_upcoming_menu(sender)
        else:
            await self._text(sender, messages.GENERIC_ERROR)

    async def _reply_makeup(self, outcome: Outcome, sender: Sender) -> None:
        if outcome.ok:
            balance = self.ctx.database.get_credit_balance(sender.participant_id)
            await self._text(
                sender,
                messages.MAKEUP_CONFIRMED.format(
                    day=_day(outcome.session_date),
                    time=outcome.start_time,
                    group=outcome.group_name,
                    balance=balance,
                ),
            )
        elif outcome.kind is FailureKind.NO_CREDIT:
            await self._text(sender, messages.NO_CREDIT)
        elif outcome.kind in (FailureKind.SLOT_UNAVAILABLE, FailureKind.PAST_DATE):
            await self._text(sender, messages.SLOT_UNAVAILABLE)
            await self._send_makeup_menu(sender)
        else:
            await self._text(sender, messages.GENERIC_ERROR)

    # endregion

    # region Menus
    async def _send_main_menu(self, sender: Sender) -> None:
        rows = [
            {"id": menu_id(action), "title": title, "description": description}
            for action, title, description in messages.MAIN_MENU_ROWS
        ]
        await self.messenger.send_list(
            sender.phone,
            messages.MAIN_MENU_HEADER,
            messages.MAIN_MENU_BODY,
            [{"title": messages.MAIN_MENU_HEADER, "rows": rows}],
            button=messages.MAIN_MENU_BUTTON,
            user_id=sender.participant_id,
        )

    async def _send_upcoming_menu(self, sender: Sender) -> None:
        with self.ctx.database.connect() as conn:
            occurrences = upcoming_classes(conn, sender.participant_id, self.ctx.clock.today())
        if not occurrences:
            await self._text(sender, messages.NO_UPCOMING)
            return

        rows = [
            {
                "id": absence_id(o.session_date, o.class_template_id),
                "title": f"{_day(o.session_date)} {o.start_time}",
                "description": ", ".join(part for part in (o.group_name, o.location_name) if part),
            }
            for o in occurrences[: MAX_LIST_ROWS - 1]
        ]
        await self.messenger.send_list(
            sender.phone,
            messages.UPCOMING_HEADER,
            messages.UPCOMING_BODY,
            [
                {"title": messages.UPCOMING_SECTION, "rows": rows},
                {
                    "title": messages.OTHER_SECTION,
                    "rows": [
                        {
                            "id": "absence_other_date",
                            "title": messages.OTHER_DATE_TITLE,
                            "description": messages.OTHER_DATE_DESCRIPTION,
                        }
                    ],
                },
            ],
            button=messages.UPCOMING_BUTTON,
            footer=messages.UPCOMING_FOOTER,
            user_id=sender.participant_id,
        )

    async def _send_more_question(self, sender: Sender) -> None:
        await self.messenger.send_buttons(
            sender.phone,
            messages.ABSENCE_MORE_QUESTION,
            [
                {"id": "absence_more_yes", "title": messages.ABSENCE_MORE_YES},
                {"id": "absence_more_no", "title": messages.ABSENCE_MORE_NO},
            ],
            user_id=sender.participant_id,
        )

    async def _send_makeup_menu(self, sender: Sender) -> None:
        balance = self.ctx.database.get_credit_balance(sender.participant_id)
        if balance <= 0:
            await self._text(sender, messages.NO_CREDIT)
            return
        with self.ctx.database.connect() as conn:
            offers = open_makeup_slots(conn, sender.participant_id, self.ctx.clock.today())
        if not offers:
            await self._text(sender, messages.NO_MAKEUP_SLOTS)
            return

        rows = [
            {
                "id": makeup_id(o.session_date, o.class_template_id),
                "title": f"{_day(o.session_date)} {o.start_time}",
                "description": f"{o.group_name} · "
                + messages.MAKEUP_ROW_DESCRIPTION.format(count=o.open_slots),
            }
            for o in offers[:MAX_LIST_ROWS]
        ]
        await self.messenger.send_list(
            sender.phone,
            messages.MAKEUP_HEADER,
            messages.MAKEUP_BODY.format(balance=balance),
            [{"title": messages.MAKEUP_SECTION, "rows": rows}],
            button=messages.MAKEUP_BUTTON,
            user_id=sender.participant_id,
        )

    async def _send_instructor_panel(self, sender: Sender) -> None:
        rows = [
            {"id": instructor_action_id(action), "title": title, "description": description}
            for action, title, description in messages.INSTRUCTOR_PANEL_ROWS
        ]
        await self.messenger.send_list(
            sender.phone,
            messages.INSTRUCTOR_PANEL_HEADER,
            messages.INSTRUCTOR_PANEL_BODY.format(name=sender.display_name or ""),
            [{"title": messages.INSTRUCTOR_PANEL_HEADER, "rows": rows}],
            button=messages.INSTRUCTOR_PANEL_BUTTON,
        )

    async def _send_addslot_menu(self, sender: Sender) -> None:
        with self.ctx.database.connect() as conn:
            occurrences = instructor_classes(conn, sender.participant_id, self.ctx.clock.today())
        if not occurrences:
            await self._text(sender, messages.ADDSLOT_EMPTY)
            return
        rows = [
            {
                "id": addslot_id(o.session_date, o.class_template_id),
                "title": f"{_day(o.session_date)} {o.start_time}",
                "description": o.group_name,
            }
            for o in occurrences[:MAX_LIST_ROWS]
        ]
        await self.messenger.send_list(
            sender.phone,
            messages.ADDSLOT_HEADER,
            messages.ADDSLOT_BODY,
            [{"title": messages.ADDSLOT_SECTION, "rows": rows}],
            button=messages.ADDSLOT_BUTTON,
        )

    # endregion

    async def _text(self, sender: Sender, body: str) -> None:
        user_id = sender.participant_id if sender.role is SenderRole.MEMBER else None
        await self.messenger.send_text(sender.phone, body, user_id=user_id)


def format_roster(day: date, roster: List[dict]) -> str:
    if not roster:
        return messages.ROSTER_EMPTY.format(day=_day(day))
    blocks = []
    for cls in roster:
        lines = [messages.ROSTER_CLASS.format(time=cls["start_time"], group=cls["group_name"])]
        lines.append(messages.ROSTER_PRESENT.format(count=len(cls["present"]), names=", ".join(cls["present"]) or "-"))
        if cls["absent"]:
            lines.append(messages.ROSTER_ABSENT.format(count=len(cls["absent"]), names=", ".join(cls["absent"])))
        if cls["makeup"]:
            lines.append(messages.ROSTER_MAKEUP.format(count=len(cls["makeup"]), names=", ".join(cls["makeup"])))
        if cls["open_slots"]:
            lines.append(messages.ROSTER_OPEN.format(count=cls["open_slots"]))
        blocks.append("\n".join(lines))
    return f"{_day(day)}\n\n" + "\n\n".join(blocks)


def format_absences(rows: List[dict]) -> str:
    if not rows:
        return messages.RECENT_ABSENCES_EMPTY
    lines = [messages.RECENT_ABSENCES_HEADER]
    for row in rows:
        lines.append(
            messages.RECENT_ABSENCE_LINE.format(
                day=_day(date.fromisoformat(row["session_date"])),
                time=row["start_time"],
                group=row["group_name"],
                name=row["name"],
            )
        )
    return "\n".join(lines)


__all__ = ["ConversationHandler", "format_roster", "format_absences"]
