"""Tests for parse_datetime: iCalendar DATE and DATE-TIME normalization."""

from datetime import datetime, timezone

import pytest

from nextcall.calendar import parse_datetime


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


class TestZonedDatetime:

    def test_new_york_during_dst(self):
        # EDT is UTC-4 from the second Sunday of March
        assert parse_datetime("20240315T090000", "America/New_York") == utc(2024, 3, 15, 13, 0)

    def test_new_york_standard_time(self):
        assert parse_datetime("20240115T090000", "America/New_York") == utc(2024, 1, 15, 14, 0)

    def test_separators_are_stripped(self):
        assert parse_datetime("2024-03-15T09:00:00", "Europe/Berlin") == utc(2024, 3, 15, 8, 0)

    def test_result_is_utc(self):
        result = parse_datetime("20240701T120000", "Asia/Tokyo")
        assert result.utcoffset().total_seconds() == 0
        assert result == utc(2024, 7, 1, 3, 0)

    def test_ambiguous_time_takes_earliest(self):
        # 01:30 happens twice on 2024-11-03 in New York; EDT reading is earlier
        assert parse_datetime("20241103T013000", "America/New_York") == utc(2024, 11, 3, 5, 30)

    def test_nonexistent_time_takes_earliest(self):
        # 02:30 is skipped on 2024-03-10; the EDT reading (06:30Z) precedes the EST one
        assert parse_datetime("20240310T023000", "America/New_York") == utc(2024, 3, 10, 6, 30)

    def test_unknown_timezone(self):
        assert parse_datetime("20240315T090000", "Mars/Olympus_Mons") is None

    def test_directory_timezone_id(self):
        # "America" is a directory in the zone database, not a zone
        assert parse_datetime("20240315T090000", "America") is None

    def test_tzid_with_date_only_value(self):
        assert parse_datetime("20240315", "America/New_York") is None

    def test_tzid_does_not_fall_back_to_utc(self):
        assert parse_datetime("20240315T090000Z", "Not/AZone") is None


class TestUtcDatetime:

    def test_zulu(self):
        assert parse_datetime("20240315T130000Z") == utc(2024, 3, 15, 13, 0)

    def test_zulu_with_separators(self):
        assert parse_datetime("2024-03-15T13:00:00Z") == utc(2024, 3, 15, 13, 0)

    def test_invalid_clock(self):
        assert parse_datetime("20240315T256000Z") is None


class TestDateOnly:

    def test_midnight_utc(self):
        assert parse_datetime("20240315") == utc(2024, 3, 15, 0, 0)

    def test_invalid_date(self):
        assert parse_datetime("20240231") is None


@pytest.mark.parametrize("value", [
    "",
    "garbage",
    "20240315T090000",  # floating time, no TZID
    "2024031",
    "20240315T0900Z",
])
def test_unparseable(value):
    assert parse_datetime(value) is None
