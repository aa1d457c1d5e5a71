"""Unit tests for cadence translation."""

from __future__ import annotations

import datetime as dt

import pytest

from herald.schedule.errors import InvalidCadenceError, InvalidTimeFormatError
from herald.schedule.translator import (
    Cadence,
    RecurrenceRule,
    cadence_window,
    parse_time_of_day,
    translate,
)


class TestTranslate:
    """Tests for translate()."""

    @pytest.mark.parametrize(
        ("cadence", "time_of_day", "expression"),
        [
            ("daily", "09:00", "cron(0 9 * * ? *)"),
            ("weekly", "09:30", "cron(30 9 ? * MON *)"),
            ("monthly", "23:59", "cron(59 23 1 * ? *)"),
            ("daily", "00:00", "cron(0 0 * * ? *)"),
        ],
    )
    def test_expression_per_cadence(
        self, cadence: str, time_of_day: str, expression: str
    ) -> None:
        """Each cadence renders its documented cron expression."""
        rule = translate(cadence, time_of_day)
        assert rule.expression == expression, f"wrong expression for {cadence}"

    def test_weekly_rule_fires_on_monday(self) -> None:
        """Weekly rules carry ISO weekday 1 and no day of month."""
        rule = translate("weekly", "09:30")
        assert rule == RecurrenceRule(Cadence.WEEKLY, 9, 30, day_of_week=1)

    def test_cadence_is_case_insensitive(self) -> None:
        """Cadence names are normalised before lookup."""
        assert translate(" Monthly ", "06:15").cadence is Cadence.MONTHLY

    def test_translation_is_deterministic(self) -> None:
        """The same input always yields an equal rule."""
        assert translate("daily", "07:05") == translate("daily", "07:05")

    def test_rejects_unknown_cadence(self) -> None:
        """Unsupported cadences raise InvalidCadenceError listing options."""
        with pytest.raises(InvalidCadenceError, match="hourly") as exc_info:
            translate("hourly", "09:00")
        assert "'daily'" in str(exc_info.value), "expected valid options listed"

    @pytest.mark.parametrize(
        "time_of_day",
        ["24:00", "9:00", "09:60", "09-00", "0900", "", " 09:00", "09:00:00"],
    )
    def test_rejects_malformed_time(self, time_of_day: str) -> None:
        """Only strict HH:MM with valid ranges is accepted."""
        with pytest.raises(InvalidTimeFormatError):
            translate("daily", time_of_day)


class TestRecurrenceRuleMatches:
    """Tests for RecurrenceRule.matches()."""

    def test_daily_matches_every_day_at_time(self) -> None:
        """Daily rules fire on any date at the delivery minute."""
        rule = translate("daily", "09:00")
        assert rule.matches(dt.datetime(2024, 6, 1, 9, 0, 42, tzinfo=dt.UTC))
        assert not rule.matches(dt.datetime(2024, 6, 1, 9, 1, tzinfo=dt.UTC))

    def test_weekly_only_matches_monday(self) -> None:
        """Weekly rules skip every other weekday."""
        rule = translate("weekly", "09:00")
        monday = dt.datetime(2024, 6, 3, 9, 0, tzinfo=dt.UTC)
        assert rule.matches(monday), "expected Monday to match"
        assert not rule.matches(monday + dt.timedelta(days=1))

    def test_monthly_only_matches_first_day(self) -> None:
        """Monthly rules fire on day 1 only."""
        rule = translate("monthly", "09:00")
        assert rule.matches(dt.datetime(2024, 7, 1, 9, 0, tzinfo=dt.UTC))
        assert not rule.matches(dt.datetime(2024, 7, 2, 9, 0, tzinfo=dt.UTC))

    def test_non_utc_moments_are_converted(self) -> None:
        """Offsets are normalised to UTC before comparison."""
        rule = translate("daily", "09:00")
        tz = dt.timezone(dt.timedelta(hours=2))
        assert rule.matches(dt.datetime(2024, 6, 1, 11, 0, tzinfo=tz))


def test_parse_time_of_day_renders_zero_padded() -> None:
    """TimeOfDay round-trips to HH:MM."""
    assert str(parse_time_of_day("07:05")) == "07:05"


@pytest.mark.parametrize(
    ("cadence", "end", "start"),
    [
        (
            "daily",
            dt.datetime(2024, 6, 1, 9, tzinfo=dt.UTC),
            dt.datetime(2024, 5, 31, 9, tzinfo=dt.UTC),
        ),
        (
            "weekly",
            dt.datetime(2024, 6, 3, 9, tzinfo=dt.UTC),
            dt.datetime(2024, 5, 27, 9, tzinfo=dt.UTC),
        ),
        (
            "monthly",
            dt.datetime(2024, 3, 1, 9, tzinfo=dt.UTC),
            dt.datetime(2024, 2, 1, 9, tzinfo=dt.UTC),
        ),
        (
            "monthly",
            dt.datetime(2024, 1, 1, 9, tzinfo=dt.UTC),
            dt.datetime(2023, 12, 1, 9, tzinfo=dt.UTC),
        ),
    ],
)
def test_cadence_window(cadence: str, end: dt.datetime, start: dt.datetime) -> None:
    """Windows span one period ending at the delivery moment."""
    assert cadence_window(cadence, end) == (start, end)
