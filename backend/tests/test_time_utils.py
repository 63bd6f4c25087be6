"""Date filter parsing and UTC serialization."""

from datetime import datetime

import pytest

from tienda.time_utils import parse_iso_datetime, to_utc_z


class TestParseIsoDatetime:

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_is_none(self, value):
        assert parse_iso_datetime(value) is None

    def test_plain_date_is_midnight_utc(self):
        assert parse_iso_datetime("2026-03-01") == datetime(2026, 3, 1)

    def test_trailing_z(self):
        assert parse_iso_datetime("2026-03-01T10:30:00Z") == datetime(2026, 3, 1, 10, 30)

    def test_offset_shifted_to_naive_utc(self):
        parsed = parse_iso_datetime("2026-03-01T22:00:00-06:00")
        assert parsed == datetime(2026, 3, 2, 4, 0)
        assert parsed.tzinfo is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_iso_datetime("yesterday")


def test_to_utc_z_round_trips_naive_value():
    assert to_utc_z(datetime(2026, 3, 2, 4, 0, 0, 500)) == "2026-03-02T04:00:00Z"
    assert to_utc_z(None) is None
