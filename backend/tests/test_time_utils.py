"""
Timestamp parsing used by the date-range query parameters.
"""

from datetime import datetime

import pytest

from radstock.time_utils import parse_iso_datetime, to_utc_z


class TestParseIsoDatetime:

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_is_none(self, value):
        assert parse_iso_datetime(value) is None

    def test_offsets_are_converted_to_utc(self):
        assert parse_iso_datetime("2026-10-19T12:00:00Z") == datetime(2026, 10, 19, 12, 0)
        assert parse_iso_datetime("2026-10-19T12:00:00+13:00") == datetime(2026, 10, 18, 23, 0)
        assert parse_iso_datetime("2026-10-19T12:00:00") == datetime(2026, 10, 19, 12, 0)

    def test_date_only_bounds(self):
        assert parse_iso_datetime("2026-10-19") == datetime(2026, 10, 19)
        assert parse_iso_datetime("2026-10-19", end_of_day=True) == datetime(2026, 10, 19, 23, 59, 59, 999999)

    def test_end_of_day_leaves_explicit_times_alone(self):
        assert parse_iso_datetime("2026-10-19T08:30:00", end_of_day=True) == datetime(2026, 10, 19, 8, 30)

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_iso_datetime("yesterday")


def test_to_utc_z_drops_microseconds():
    assert to_utc_z(datetime(2026, 10, 19, 8, 30, 15, 123456)) == "2026-10-19T08:30:15Z"
    assert to_utc_z(None) is None
