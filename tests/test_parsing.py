from datetime import date

import pytest

from studio_bot.parsing import (
    AbsenceIntent,
    InvalidDate,
    MenuIntent,
    RegexIntentParser,
    Unrecognized,
    infer_session_date,
)

TODAY = date(2025, 11, 5)


@pytest.fixture
def parser():
    return RegexIntentParser()


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Zwalniam 12/11", AbsenceIntent(date(2025, 11, 12))),
        ("zwalniam 12.11", AbsenceIntent(date(2025, 11, 12))),
        ("ZWALNIAM 1-12", AbsenceIntent(date(2025, 12, 1))),
        ("Zwalniam 12/11 18:00", AbsenceIntent(date(2025, 11, 12), "18:00")),
        ("Zwalniam 12/11 o 18", AbsenceIntent(date(2025, 11, 12), "18:00")),
        ("Zwalniam 12-11, godz. 9.30", AbsenceIntent(date(2025, 11, 12), "09:30")),
        ("  zwalniam 6/11 godzina 7:05  ", AbsenceIntent(date(2025, 11, 6), "07:05")),
    ],
)
def test_absence_phrases(parser, text, expected):
    assert parser.parse(text, TODAY) == expected


@pytest.mark.parametrize("text", ["Zwalniam 31/02", "Zwalniam 12/13", "Zwalniam 12/11 25:00", "Zwalniam 12/11 18:75"])
def test_impossible_dates_and_times(parser, text):
    assert isinstance(parser.parse(text, TODAY), InvalidDate)


@pytest.mark.parametrize(
    "text, action",
    [
        ("1", "absence"),
        ("Nieobecność", "absence"),
        ("2", "makeup"),
        ("odrabianie", "makeup"),
        ("Saldo!", "credits"),
        ("koniec.", "end"),
        ("MENU", "menu"),
        ("start", "menu"),
    ],
)
def test_menu_keywords(parser, text, action):
    assert parser.parse(text, TODAY) == MenuIntent(action)


@pytest.mark.parametrize("text", ["cześć", "zwalniam jutro", "12/11", "Zwalniam 12/11 wieczorem"])
def test_unrecognized(parser, text):
    assert isinstance(parser.parse(text, TODAY), Unrecognized)


class TestInferSessionDate:
    def test_later_this_month_stays_this_year(self):
        assert infer_session_date(20, 11, TODAY) == date(2025, 11, 20)

    def test_later_month_stays_this_year(self):
        assert infer_session_date(3, 12, TODAY) == date(2025, 12, 3)

    def test_december_report_for_january(self):
        assert infer_session_date(5, 1, date(2025, 12, 20)) == date(2026, 1, 5)

    def test_earlier_month_rolls_to_next_year(self):
        assert infer_session_date(28, 10, TODAY) == date(2026, 10, 28)

    def test_recent_past_in_same_month_is_kept_for_rejection(self):
        assert infer_session_date(3, 11, TODAY) == date(2025, 11, 3)

    def test_older_same_month_date_rolls_forward(self):
        assert infer_session_date(2, 11, date(2025, 11, 20)) == date(2026, 11, 2)

    def test_december_report_for_earlier_december_day_rolls_to_next_year(self):
        assert infer_session_date(3, 12, date(2025, 12, 20)) == date(2026, 12, 3)

    def test_leap_day_in_non_leap_year_raises(self):
        with pytest.raises(ValueError):
            infer_session_date(29, 2, date(2025, 3, 1))
