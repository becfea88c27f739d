"""Resolve an inbound phone identifier to a known studio participant."""

from __future__ import annotations

from .db import Database
from .models import Sender, SenderRole


def phone_forms(phone: str) -> tuple[str, str]:
    """Return the ``+``-prefixed and bare-digit forms of a provider phone id."""

    bare = str(phone).strip().lstrip("+")
    return f"+{bare}", bare


def resolve_sender(database: Database, phone: str) -> Sender:
    """Look the phone up in the member roster, then the instructor roster.

    Storage errors propagate; the caller drops the event after logging it.
    """

    if not phone:
        return Sender(phone="", role=SenderRole.UNKNOWN)

    plus_form, bare_form = phone_forms(phone)

    member = database.find_member_by_phone(plus_form, bare_form)
    if member is not None:
        return Sender(
            phone=bare_form,
            role=SenderRole.MEMBER,
            participant_id=member["id"],
            active=bool(member["active"]),
            display_name=member["name"],
        )

    instructor = database.find_instructor_by_phone(plus_form, bare_form)
    if instructor is not None:
        return Sender(
            phone=bare_form,
            role=SenderRole.INSTRUCTOR,
            participant_id=instructor["id"],
            active=True,
            display_name=instructor["name"],
        )

    return Sender(phone=bare_form, role=SenderRole.UNKNOWN)


__all__ = ["phone_forms", "resolve_sender"]
