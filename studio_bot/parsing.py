"""Free-text intent parsing for inbound member messages."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Protocol, Union

ABSENCE_PATTERN = re.compile(
    r"^\s*zwalniam\s+(?P<day>\d{1,2})\s*[./-]\s*(?P<month>\d{1,2})"
    r"(?:,?\s+(?:o\s+|godz\.?\s*|godzina\s+)?(?P<hour>\d{1,2})(?:[:.](?P<minute>\d{2}))?)?"
    r"\s*$",
    re.IGNORECASE,
)

MENU_KEYWORDS = {
    "1": "absence",
    "nieobecność": "absence",
    "nieobecnosc": "absence",
    "2": "makeup",
    "odrabianie": "makeup",
    "odrobienie": "makeup",
    "3": "credits",
    "saldo": "credits",
    "kredyty": "credits",
    "4": "end",
    "koniec": "end",
    "menu": "menu",
    "start": "menu",
    "pomoc": "menu",
}

# A same-month date further back than this is read as next year's.
PAST_GRACE_DAYS = 7


@dataclass(slots=True)
class AbsenceIntent:
    session_date: date
    session_time: Optional[str] = None


@dataclass(slots=True)
class InvalidDate:
    raw: str


@dataclass(slots=True)
class MenuIntent:
    action: str


@dataclass(slots=True)
class Unrecognized:
    text: str


Intent = Union[AbsenceIntent, InvalidDate, MenuIntent]


class IntentParser(Protocol):
    def parse(self, text: str, today: date) -> Intent | Unrecognized:
        ...


def infer_session_date(day: int, month: int, today: date) -> date:
    """Pick the year for a bare ``dd/mm``.

    An earlier month means next year (a December report for January). Inside
    the current month a date more than a week back also rolls to next year;
    anything closer stays in the past so the caller can reject it.
    """

    year = today.year
    if month < today.month:
        year += 1
    candidate = date(year, month, day)
    if month == today.month and candidate < today - timedelta(days=PAST_GRACE_DAYS):
        candidate = date(year + 1, month, day)
    return candidate


class RegexIntentParser:
    """Keyword and pattern based parser for ``Zwalniam dd/mm [hh:mm]`` and menu choices."""

    def parse(self, text: str, today: date) -> Intent | Unrecognized:
        normalized = text.strip().lower().rstrip(".!?")
        if normalized in MENU_KEYWORDS:
            return MenuIntent(action=MENU_KEYWORDS[normalized])

        match = ABSENCE_PATTERN.match(text)
        if not match:
            return Unrecognized(text=text)

        try:
            session_date = infer_session_date(
                int(match.group("day")), int(match.group("month")), today
            )
        except ValueError:
            return InvalidDate(raw=text.strip())

        session_time = None
        if match.group("hour") is not None:
            hour = int(match.group("hour"))
            minute = int(match.group("minute") or 0)
            if hour > 23 or minute > 59:
                return InvalidDate(raw=text.strip())
            session_time = f"{hour:02d}:{minute:02d}"
        return AbsenceIntent(session_date=session_date, session_time=session_time)


__all__ = [
    "AbsenceIntent",
    "InvalidDate",
    "MenuIntent",
    "Unrecognized",
    "Intent",
    "IntentParser",
    "RegexIntentParser",
    "infer_session_date",
]
