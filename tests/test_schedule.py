from datetime import date

import pytest

from studio_bot.models import FailureKind
from studio_bot.schedule import (
    enrollment_matches,
    instructor_classes,
    normalize_time,
    resolve_occurrence,
    upcoming_classes,
)

TODAY = date(2025, 11, 5)


@pytest.mark.parametrize(
    "value, expected",
    [("18:00", "18:00"), ("9:5", "09:05"), ("18:00:00", "18:00"), (" 7:30 ", "07:30"), ("20", "20:00")],
)
def test_normalize_time(value, expected):
    assert normalize_time(value) == expected


def test_resolves_single_enrollment(database, roster, studio):
    member_id = roster.member("Ola")
    roster.enroll(member_id, studio["wednesday"])

    with database.connect() as conn:
        resolution = resolve_occurrence(conn, member_id, date(2025, 11, 12), TODAY)

    assert resolution.ok
    assert resolution.class_template_id == studio["wednesday"]


def test_inactive_template_is_not_resolved(database, roster, studio):
    member_id = roster.member("Ola")
    retired = roster.class_template(studio["group_id"], 5, "10:00", active=False)
    roster.enroll(member_id, retired)

    with database.connect() as conn:
        resolution = resolve_occurrence(conn, member_id, date(2025, 11, 7), TODAY)

    assert resolution.reason is FailureKind.NO_ENROLLMENT_FOR_WEEKDAY


def test_past_date_wins_over_everything(database, roster, studio):
    member_id = roster.member("Ola")

    with database.connect() as conn:
        resolution = resolve_occurrence(conn, member_id, date(2025, 11, 4), TODAY)

    assert resolution.reason is FailureKind.PAST_DATE


def test_enrollment_matches_checks_weekday(database, roster, studio):
    member_id = roster.member("Ola")
    roster.enroll(member_id, studio["wednesday"])

    with database.connect() as conn:
        assert enrollment_matches(conn, member_id, studio["wednesday"], date(2025, 11, 12))
        assert not enrollment_matches(conn, member_id, studio["wednesday"], date(2025, 11, 13))
        assert not enrollment_matches(conn, member_id, studio["thursday"], date(2025, 11, 13))


def test_upcoming_classes_projects_two_weeks(database, roster, studio):
    member_id = roster.member("Ola")
    roster.enroll(member_id, studio["wednesday"])
    roster.enroll(member_id, studio["thursday"])

    with database.connect() as conn:
        occurrences = upcoming_classes(conn, member_id, TODAY)

    assert [(o.session_date, o.start_time) for o in occurrences] == [
        (date(2025, 11, 5), "18:00"),
        (date(2025, 11, 6), "09:00"),
        (date(2025, 11, 12), "18:00"),
        (date(2025, 11, 13), "09:00"),
    ]
    assert occurrences[1].group_name == "Pilates Poranny"
    assert occurrences[1].location_name == "Sala B"


def test_instructor_classes_only_lists_own_groups(database, roster, studio):
    other = roster.instructor("Marta", "+48500000002")
    other_group = roster.group("Joga", other)
    roster.class_template(other_group, 3, "07:00")

    with database.connect() as conn:
        occurrences = instructor_classes(conn, studio["instructor_id"], TODAY, days=7)

    assert {o.class_template_id for o in occurrences} == {studio["wednesday"], studio["thursday"]}
