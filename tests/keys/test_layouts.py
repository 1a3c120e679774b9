"""Tests for keyspine.keys.layouts -- reference-date timestamp layouts."""

from datetime import datetime, timedelta, timezone

import pytest

from keyspine.keys.layouts import RFC3339, RFC3339_FIXED, RFC3339_NANO, render_layout

UTC_TS = datetime(2024, 3, 9, 7, 5, 1, 120000, tzinfo=timezone.utc)
EST = timezone(timedelta(hours=-5))


class TestNamedLayouts:
    def test_rfc3339_utc(self):
        assert render_layout(UTC_TS, RFC3339) == "2024-03-09T07:05:01Z"

    def test_rfc3339_offset(self):
        ts = datetime(2024, 3, 9, 2, 5, 1, tzinfo=EST)
        assert render_layout(ts, RFC3339) == "2024-03-09T02:05:01-05:00"

    def test_rfc3339_nano_trims_zeros(self):
        assert render_layout(UTC_TS, RFC3339_NANO) == "2024-03-09T07:05:01.12Z"

    def test_rfc3339_nano_drops_empty_fraction(self):
        assert render_layout(UTC_TS.replace(microsecond=0), RFC3339_NANO) == "2024-03-09T07:05:01Z"

    def test_rfc3339_fixed_width(self):
        assert render_layout(UTC_TS, RFC3339_FIXED) == "2024-03-09T07:05:01.120000000Z"
        assert len(render_layout(UTC_TS.replace(microsecond=0), RFC3339_FIXED)) == len(
            render_layout(UTC_TS, RFC3339_FIXED)
        )

    def test_naive_is_utc(self):
        assert render_layout(datetime(2024, 3, 9), RFC3339) == "2024-03-09T00:00:00Z"


class TestCustomLayouts:
    @pytest.mark.parametrize(
        "layout, expected",
        [
            ("2006-01-02", "2024-03-09"),
            ("20060102150405", "20240309070501"),
            ("Jan 2, 2006", "Mar 9, 2024"),
            ("Monday January _2", "Saturday March  9"),
            ("3:04PM", "7:05AM"),
            ("06/1/2", "24/3/9"),
            ("002", "069"),
            ("15:04:05.000", "07:05:01.120"),
            ("-0700", "+0000"),
            ("DAY#2006-01-02", "DAY#2024-03-09"),
        ],
    )
    def test_tokens(self, layout, expected):
        assert render_layout(UTC_TS, layout) == expected

    def test_pm(self):
        assert render_layout(UTC_TS.replace(hour=19), "03pm") == "07pm"
