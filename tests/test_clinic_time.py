"""
Tests for clinic-time date parsing and conversion.
"""

from datetime import date, datetime

import pytest
import pytz

from clinic_bot.core.clinic_time import (
    as_utc,
    format_long_date,
    format_short,
    format_time,
    ist_to_utc,
    parse_date,
    today_ist,
)

# Monday 19 October 2026, 11:30 in the clinic
NOW = datetime(2026, 10, 19, 6, 0, tzinfo=pytz.utc)


class TestParseDate:
    """Patient-typed dates (D/M/YYYY)."""

    @pytest.mark.parametrize("text", ["10/11/2026", "10-11-2026", "10.11.2026", " 10/11/2026 "])
    def test_accepts_separators(self, text):
        assert parse_date(text, now=NOW) == date(2026, 11, 10)

    def test_accepts_single_digit_parts(self):
        assert parse_date("3/11/2026", now=NOW) == date(2026, 11, 3)

    def test_accepts_today(self):
        assert parse_date("19/10/2026", now=NOW) == date(2026, 10, 19)

    @pytest.mark.parametrize("text", ["", "tomorrow", "2026-11-10", "10/11/26", "32/13/2025"])
    def test_rejects_malformed(self, text):
        assert parse_date(text, now=NOW) is None

    def test_rejects_impossible_calendar_date(self):
        """30 February never rolls over into March."""
        assert parse_date("30/02/2027", now=NOW) is None

    def test_rejects_past_date(self):
        assert parse_date("18/10/2026", now=NOW) is None

    def test_rejects_sunday(self):
        assert parse_date("08/11/2026", now=NOW) is None

    def test_booking_horizon(self):
        # Saturday 16 Jan 2027 is 89 days out, Monday 18 Jan 2027 is 91
        assert parse_date("16/01/2027", max_days_ahead=90, now=NOW) == date(2027, 1, 16)
        assert parse_date("18/01/2027", max_days_ahead=90, now=NOW) is None

    def test_no_horizon_without_limit(self):
        assert parse_date("18/01/2027", now=NOW) == date(2027, 1, 18)

    def test_today_is_evaluated_in_ist(self):
        """19:00 UTC is already the next day in the clinic."""
        late = datetime(2026, 10, 19, 19, 0, tzinfo=pytz.utc)
        assert today_ist(late) == date(2026, 10, 20)
        assert parse_date("19/10/2026", now=late) is None
        assert parse_date("20/10/2026", now=late) == date(2026, 10, 20)


class TestConversion:
    """IST wall-clock to UTC and display formats."""

    def test_ist_to_utc(self):
        assert ist_to_utc(date(2026, 11, 10), "10:00") == datetime(2026, 11, 10, 4, 30, tzinfo=pytz.utc)

    def test_ist_to_utc_early_slot_crosses_midnight(self):
        assert ist_to_utc(date(2026, 11, 10), "02:00") == datetime(2026, 11, 9, 20, 30, tzinfo=pytz.utc)

    def test_as_utc_naive_values(self):
        naive = datetime(2026, 11, 10, 4, 30)
        assert as_utc(naive) == datetime(2026, 11, 10, 4, 30, tzinfo=pytz.utc)
        assert as_utc(None) is None

    def test_formats(self):
        instant = datetime(2026, 11, 10, 4, 30, tzinfo=pytz.utc)
        assert format_long_date(date(2026, 11, 10)) == "Tuesday, 10 November 2026"
        assert format_time(instant) == "10:00 AM"
        assert format_short(instant) == "Tue 10 Nov, 10:00 AM"
