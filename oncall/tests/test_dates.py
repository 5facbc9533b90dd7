from datetime import date, datetime, timedelta, timezone

import pytest

from oncall.dates import (
    add_days,
    first_of_previous_month,
    from_date_key,
    parse_ddmmyyyy,
    shift_bounds_utc,
    to_date_key,
    today_key,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("10/06/2025", "2025-06-10"),
        ("01/01/2024", "2024-01-01"),
        ("29/02/2024", "2024-02-29"),
        ("31/12/1999", "1999-12-31"),
        (" 05/11/2025 ", "2025-11-05"),
    ],
)
def test_parse_ddmmyyyy_round_trips_to_date_key(raw: str, expected: str) -> None:
    parsed = parse_ddmmyyyy(raw)
    assert parsed is not None
    assert to_date_key(parsed) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "2025-06-10",
        "10-06-2025",
        "10.06.2025",
        "1/6/2025",
        "10/6/2025",
        "10/06/25",
        "32/01/2025",
        "31/02/2025",
        "29/02/2025",
        "01/13/2025",
        "00/01/2025",
        "",
        "garbage",
        "\u0661\u0660/\u0660\u0666/\u0662\u0660\u0662\u0665",
        "\uff11\uff10/06/2025",
    ],
)
def test_parse_ddmmyyyy_rejects_malformed(raw: str) -> None:
    assert parse_ddmmyyyy(raw) is None


def test_parse_ddmmyyyy_handles_none() -> None:
    assert parse_ddmmyyyy(None) is None


def test_to_date_key_uses_utc_calendar_for_aware_datetimes() -> None:
    late_evening_new_york = datetime(2025, 6, 10, 22, 0, tzinfo=timezone(timedelta(hours=-4)))
    assert to_date_key(late_evening_new_york) == "2025-06-11"
    assert to_date_key(date(2025, 6, 10)) == "2025-06-10"


def test_from_date_key_rejects_bad_keys() -> None:
    with pytest.raises(ValueError):
        from_date_key("2025-6-10")
    with pytest.raises(ValueError):
        from_date_key("2025-02-30")
    with pytest.raises(ValueError):
        from_date_key("2025-06-10\n")
    with pytest.raises(ValueError):
        from_date_key("\u0662\u0660\u0662\u0665-06-10")


def test_add_days_crosses_month_and_year() -> None:
    assert add_days("2025-01-31", 1) == "2025-02-01"
    assert add_days("2025-01-01", -1) == "2024-12-31"
    assert add_days("2024-02-28", 1) == "2024-02-29"


def test_first_of_previous_month() -> None:
    assert first_of_previous_month("2025-06-10") == "2025-05-01"
    assert first_of_previous_month("2025-01-15") == "2024-12-01"


def test_today_key_uses_configured_timezone() -> None:
    # 22:30 UTC is already the next morning in Jerusalem.
    now = datetime(2025, 6, 9, 22, 30, tzinfo=timezone.utc)
    assert today_key("Asia/Jerusalem", now) == "2025-06-10"
    assert today_key("UTC", now) == "2025-06-09"


class TestShiftBounds:
    def test_summer_shift_is_overnight_in_utc(self) -> None:
        start, end = shift_bounds_utc("2025-06-10")
        assert start == datetime(2025, 6, 10, 5, 0, tzinfo=timezone.utc)
        assert end == datetime(2025, 6, 11, 7, 0, tzinfo=timezone.utc)

    def test_winter_shift_uses_standard_offset(self) -> None:
        start, end = shift_bounds_utc("2025-01-15")
        assert start == datetime(2025, 1, 15, 6, 0, tzinfo=timezone.utc)
        assert end == datetime(2025, 1, 16, 8, 0, tzinfo=timezone.utc)

    def test_spring_forward_changes_start_offset_by_one_hour(self) -> None:
        # Israel moved to daylight time on Friday 2025-03-28.
        before_start, before_end = shift_bounds_utc("2025-03-27")
        after_start, after_end = shift_bounds_utc("2025-03-28")
        assert before_start == datetime(2025, 3, 27, 6, 0, tzinfo=timezone.utc)
        assert after_start == datetime(2025, 3, 28, 5, 0, tzinfo=timezone.utc)
        # Same local hour, offsets differ by exactly the DST delta.
        assert (after_start - before_start) == timedelta(hours=23)
        # The shift spanning the switch is one hour shorter.
        assert before_end - before_start == timedelta(hours=25)
        assert after_end - after_start == timedelta(hours=26)

    def test_fall_back_lengthens_the_spanning_shift(self) -> None:
        # Daylight time ended on Sunday 2025-10-26.
        start, end = shift_bounds_utc("2025-10-25")
        assert start == datetime(2025, 10, 25, 5, 0, tzinfo=timezone.utc)
        assert end == datetime(2025, 10, 26, 8, 0, tzinfo=timezone.utc)
        assert end - start == timedelta(hours=27)

    def test_injected_timezone(self) -> None:
        before, _ = shift_bounds_utc("2025-03-08", "America/New_York")
        after, _ = shift_bounds_utc("2025-03-09", "America/New_York")
        assert before.hour == 13
        assert after.hour == 12

    def test_custom_hours(self) -> None:
        start, end = shift_bounds_utc("2025-06-10", "UTC", start_hour=20, end_hour=8)
        assert start == datetime(2025, 6, 10, 20, 0, tzinfo=timezone.utc)
        assert end == datetime(2025, 6, 11, 8, 0, tzinfo=timezone.utc)

    def test_invalid_date_key_raises(self) -> None:
        with pytest.raises(ValueError):
            shift_bounds_utc("10/06/2025")
