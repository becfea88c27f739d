"""Dataclasses representing the studio bot domain models."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional


class SenderRole(str, enum.Enum):
    MEMBER = "member"
    INSTRUCTOR = "instructor"
    UNKNOWN = "unknown"


class FailureKind(str, enum.Enum):
    """Reasons a reconciliation operation did not take effect."""

    PAST_DATE = "past_date"
    NO_ENROLLMENT_FOR_WEEKDAY = "no_enrollment_for_weekday"
    AMBIGUOUS_DAY_REQUIRES_TIME = "ambiguous_day_requires_time"
    ALREADY_ABSENT = "already_absent"
    NO_CREDIT = "no_credit"
    SLOT_UNAVAILABLE = "slot_unavailable"
    NOT_OWNER = "not_owner"
    INVALID_OCCURRENCE = "invalid_occurrence"
    EXCEPTION = "exception"


@dataclass(slots=True)
class Sender:
    phone: str
    role: SenderRole
    participant_id: Optional[int] = None
    active: bool = False
    display_name: Optional[str] = None

    @property
    def is_active_member(self) -> bool:
        return self.role is SenderRole.MEMBER and self.active


@dataclass(slots=True)
class Occurrence:
    """A single dated occurrence of a weekly class template."""

    session_date: date
    class_template_id: int
    group_name: str
    start_time: str
    location_name: str = ""


@dataclass(slots=True)
class MakeupOffer:
    session_date: date
    class_template_id: int
    group_name: str
    start_time: str
    open_slots: int


@dataclass(slots=True)
class AbsenceReported:
    """Emitted after an absence transaction commits."""

    absence_id: int
    member_id: int
    member_name: str
    class_template_id: int
    session_date: date
    start_time: str
    group_name: str
    instructor_id: Optional[int]


@dataclass(slots=True)
class Outcome:
    """Typed result of a reconciliation operation."""

    ok: bool
    kind: Optional[FailureKind] = None
    detail: Optional[str] = None
    absence_id: Optional[int] = None
    slot_id: Optional[int] = None
    class_template_id: Optional[int] = None
    session_date: Optional[date] = None
    start_time: Optional[str] = None
    group_name: Optional[str] = None
    events: list[AbsenceReported] = field(default_factory=list)

    @classmethod
    def failure(cls, kind: FailureKind, detail: str | None = None) -> "Outcome":
        return cls(ok=False, kind=kind, detail=detail)


@dataclass(slots=True)
class InboundMessage:
    """The parts of a provider message event the bot acts on."""

    provider_uid: str
    sender: str
    kind: str
    timestamp: Optional[int] = None
    text: Optional[str] = None
    reply_id: Optional[str] = None
    reply_title: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def is_interactive(self) -> bool:
        return self.kind in ("button_reply", "list_reply")


@dataclass(slots=True)
class DeliveryStatus:
    message_id: str
    status: str
    recipient: Optional[str] = None
    timestamp: Optional[int] = None


@dataclass(slots=True)
class SendResult:
    ok: bool
    message_id: Optional[str] = None
    reason: Optional[str] = None


__all__ = [
    "SenderRole",
    "FailureKind",
    "Sender",
    "Occurrence",
    "MakeupOffer",
    "AbsenceReported",
    "Outcome",
    "InboundMessage",
    "DeliveryStatus",
    "SendResult",
]
