"""
Clinic clock: every date/time rule is evaluated in Asia/Kolkata and every
persisted timestamp is UTC.
"""
import re
from datetime import date, datetime, timedelta
from typing import Optional

import pytz

IST = pytz.timezone("Asia/Kolkata")
# India has no DST, the offset is fixed
IST_OFFSET = timedelta(hours=5, minutes=30)

_DATE_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def now_utc() -> datetime:
    return datetime.now(pytz.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo) or convert aware ones."""
    if value is None:
        return None
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


def today_ist(now: Optional[datetime] = None) -> date:
    return as_utc(now or now_utc()).astimezone(IST).date()


def parse_date(text: str, max_days_ahead: Optional[int] = None, now: Optional[datetime] = None) -> Optional[date]:
    """
    Parse a D/M/YYYY date typed by the patient ('/', '-' and '.' separators).

    Returns None unless the date is a real calendar date, today or later in
    IST, not a Sunday and, when max_days_ahead is given, no further out than
    that many days.
    """
    cleaned = re.sub(r"[-/.]", "/", (text or "").strip())
    match = _DATE_PATTERN.match(cleaned)
    if not match:
        return None

    day, month, year = (int(part) for part in match.groups())
    try:
        parsed = date(year, month, day)
    except ValueError:
        return None

    today = today_ist(now)
    if parsed < today:
        return None

    if parsed.weekday() == 6:  # Sunday
        return None

    if max_days_ahead is not None and parsed > today + timedelta(days=max_days_ahead):
        return None

    return parsed


def ist_to_utc(day: date, time_value: str) -> datetime:
    """Treat day + 'HH:MM' as IST wall-clock time and return the UTC instant."""
    hours, minutes = (int(part) for part in time_value.split(":"))
    local = datetime(day.year, day.month, day.day, hours, minutes)
    return pytz.utc.localize(local - IST_OFFSET)


def format_long_date(day: date) -> str:
    """'Tuesday, 10 November 2026'"""
    return f"{day.strftime('%A')}, {day.day} {day.strftime('%B %Y')}"


def format_date(value: datetime) -> str:
    return format_long_date(as_utc(value).astimezone(IST).date())


def format_time(value: datetime) -> str:
    """'10:00 AM' in IST"""
    return as_utc(value).astimezone(IST).strftime("%I:%M %p")


def format_datetime(value: datetime) -> str:
    """'Tue, 10 Nov 2026, 10:00 AM' in IST"""
    local = as_utc(value).astimezone(IST)
    return f"{local.strftime('%a')}, {local.day} {local.strftime('%b %Y')}, {local.strftime('%I:%M %p')}"


def format_short(value: datetime) -> str:
    """'Tue 10 Nov, 10:00 AM' - fits a WhatsApp list row title"""
    local = as_utc(value).astimezone(IST)
    return f"{local.strftime('%a')} {local.day} {local.strftime('%b')}, {local.strftime('%I:%M %p')}"
