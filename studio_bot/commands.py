"""Interactive reply identifiers, parsed once into typed commands.

Wire formats::

    absence_<YYYY-MM-DD>_<classTemplateId>
    absence_other_date
    absence_more_yes / absence_more_no
    makeup_<YYYY-MM-DD>_<classTemplateId>
    menu_absence / menu_makeup / menu_credits / menu_end
    instr_<action>
    instr_addslot_<YYYY-MM-DD>_<classTemplateId>
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Optional, Union

DELIMITER = "_"

MENU_ACTIONS = ("absence", "makeup", "credits", "end")
INSTRUCTOR_ACTIONS = ("today", "tomorrow", "absences", "addslot", "stats")


@dataclass(frozen=True, slots=True)
class AbsenceSelection:
    session_date: date
    class_template_id: int


@dataclass(frozen=True, slots=True)
class AbsenceOtherDate:
    pass


@dataclass(frozen=True, slots=True)
class AbsenceMore:
    wants_more: bool


@dataclass(frozen=True, slots=True)
class MakeupSelection:
    session_date: date
    class_template_id: int


@dataclass(frozen=True, slots=True)
class MenuChoice:
    action: str


@dataclass(frozen=True, slots=True)
class InstructorAction:
    action: str


@dataclass(frozen=True, slots=True)
class InstructorAddSlot:
    session_date: date
    class_template_id: int


@dataclass(frozen=True, slots=True)
class MalformedReply:
    raw: str
    family: str


Command = Union[
    AbsenceSelection,
    AbsenceOtherDate,
    AbsenceMore,
    MakeupSelection,
    MenuChoice,
    InstructorAction,
    InstructorAddSlot,
    MalformedReply,
]

MEMBER_COMMANDS = (AbsenceSelection, AbsenceOtherDate, AbsenceMore, MakeupSelection, MenuChoice)
INSTRUCTOR_COMMANDS = (InstructorAction, InstructorAddSlot)


def _dated(fields: list[str]) -> Optional[tuple[date, int]]:
    try:
        return date.fromisoformat(fields[0]), int(fields[1])
    except ValueError:
        return None


def parse_reply_id(raw: Optional[str]) -> Optional[Command]:
    """Return the command for a reply id, or None when no known family matches."""

    if not raw:
        return None
    value = raw.strip()

    if value == "absence_other_date":
        return AbsenceOtherDate()
    if value == "absence_more_yes":
        return AbsenceMore(wants_more=True)
    if value == "absence_more_no":
        return AbsenceMore(wants_more=False)

    parts = value.split(DELIMITER)
    family = parts[0]

    if family in ("absence", "makeup"):
        parsed = _dated(parts[1:]) if len(parts) == 3 else None
        if parsed is None:
            return MalformedReply(raw=value, family=family)
        if family == "absence":
            return AbsenceSelection(session_date=parsed[0], class_template_id=parsed[1])
        return MakeupSelection(session_date=parsed[0], class_template_id=parsed[1])

    if family == "menu":
        if len(parts) == 2 and parts[1] in MENU_ACTIONS:
            return MenuChoice(action=parts[1])
        return MalformedReply(raw=value, family=family)

    if family == "instr":
        if len(parts) == 2 and parts[1] in INSTRUCTOR_ACTIONS:
            return InstructorAction(action=parts[1])
        if len(parts) == 4 and parts[1] == "addslot":
            parsed = _dated(parts[2:])
            if parsed is not None:
                return InstructorAddSlot(session_date=parsed[0], class_template_id=parsed[1])
        return MalformedReply(raw=value, family=family)

    return None


def absence_id(session_date: date, class_template_id: int) -> str:
    return f"absence_{session_date.isoformat()}_{class_template_id}"


def makeup_id(session_date: date, class_template_id: int) -> str:
    return f"makeup_{session_date.isoformat()}_{class_template_id}"


def addslot_id(session_date: date, class_template_id: int) -> str:
    return f"instr_addslot_{session_date.isoformat()}_{class_template_id}"


def menu_id(action: str) -> str:
    return f"menu_{action}"


def instructor_action_id(action: str) -> str:
    return f"instr_{action}"


__all__ = [
    "AbsenceSelection",
    "AbsenceOtherDate",
    "AbsenceMore",
    "MakeupSelection",
    "MenuChoice",
    "InstructorAction",
    "InstructorAddSlot",
    "MalformedReply",
    "Command",
    "MEMBER_COMMANDS",
    "INSTRUCTOR_COMMANDS",
    "MENU_ACTIONS",
    "INSTRUCTOR_ACTIONS",
    "parse_reply_id",
    "absence_id",
    "makeup_id",
    "addslot_id",
    "menu_id",
    "instructor_action_id",
]
