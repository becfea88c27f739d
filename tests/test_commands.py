from datetime import date

import pytest

from studio_bot.commands import (
    AbsenceMore,
    AbsenceOtherDate,
    AbsenceSelection,
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

DAY = date(2025, 11, 12)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("absence_2025-11-12_7", AbsenceSelection(DAY, 7)),
        ("absence_other_date", AbsenceOtherDate()),
        ("absence_more_yes", AbsenceMore(True)),
        ("absence_more_no", AbsenceMore(False)),
        ("makeup_2025-11-12_3", MakeupSelection(DAY, 3)),
        ("menu_credits", MenuChoice("credits")),
        ("instr_today", InstructorAction("today")),
        ("instr_addslot", InstructorAction("addslot")),
        ("instr_addslot_2025-11-12_9", InstructorAddSlot(DAY, 9)),
    ],
)
def test_known_ids(raw, expected):
    assert parse_reply_id(raw) == expected


@pytest.mark.parametrize(
    "raw, family",
    [
        ("absence_2025-11-12", "absence"),
        ("absence_2025-13-40_1", "absence"),
        ("makeup_2025-11-12_x", "makeup"),
        ("makeup_2025-11-12_1_2", "makeup"),
        ("menu_dance", "menu"),
        ("instr_reboot", "instr"),
        ("instr_addslot_nope_1", "instr"),
    ],
)
def test_malformed_ids_keep_their_family(raw, family):
    result = parse_reply_id(raw)

    assert isinstance(result, MalformedReply)
    assert result.family == family


@pytest.mark.parametrize("raw", [None, "", "hello", "booking_2025-11-12_1"])
def test_unknown_ids(raw):
    assert parse_reply_id(raw) is None


def test_encoders_produce_parseable_ids():
    assert parse_reply_id(absence_id(DAY, 4)) == AbsenceSelection(DAY, 4)
    assert parse_reply_id(makeup_id(DAY, 4)) == MakeupSelection(DAY, 4)
    assert parse_reply_id(addslot_id(DAY, 4)) == InstructorAddSlot(DAY, 4)
    assert parse_reply_id(menu_id("end")) == MenuChoice("end")
    assert parse_reply_id(instructor_action_id("stats")) == InstructorAction("stats")


def test_ids_fit_provider_limit():
    assert len(addslot_id(date(2099, 12, 31), 999999999)) <= 200
