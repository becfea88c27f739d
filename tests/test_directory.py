from studio_bot.directory import phone_forms, resolve_sender
from studio_bot.models import SenderRole


def test_phone_forms():
    assert phone_forms("48600111222") == ("+48600111222", "48600111222")
    assert phone_forms("+48600111222") == ("+48600111222", "48600111222")


def test_member_matched_by_e164(database, roster):
    member_id = roster.member("Ola", phone_e164="+48600111222")

    sender = resolve_sender(database, "48600111222")

    assert sender.role is SenderRole.MEMBER
    assert sender.participant_id == member_id
    assert sender.is_active_member
    assert sender.display_name == "Ola"
    assert sender.phone == "48600111222"


def test_member_matched_by_raw_phone(database, roster):
    member_id = roster.member("Ola", phone_raw="48600111222")

    assert resolve_sender(database, "48600111222").participant_id == member_id


def test_inactive_member_is_still_a_member(database, roster):
    roster.member("Ola", phone_e164="+48600111222", active=False)

    sender = resolve_sender(database, "48600111222")

    assert sender.role is SenderRole.MEMBER
    assert not sender.is_active_member


def test_member_takes_precedence_over_instructor(database, roster):
    roster.instructor("Agnieszka", "+48600111222")
    roster.member("Agnieszka", phone_e164="+48600111222")

    assert resolve_sender(database, "48600111222").role is SenderRole.MEMBER


def test_instructor(database, roster):
    instructor_id = roster.instructor("Agnieszka", "+48500000001")

    sender = resolve_sender(database, "48500000001")

    assert sender.role is SenderRole.INSTRUCTOR
    assert sender.participant_id == instructor_id
    assert not sender.is_active_member


def test_unknown(database):
    sender = resolve_sender(database, "48999999999")

    assert sender.role is SenderRole.UNKNOWN
    assert sender.participant_id is None
