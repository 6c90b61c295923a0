"""Parsing of admin-entered pickup date and time.

Admins enter a calendar date and a 12-hour clock time ("9:00 AM"). Both are
interpreted in the municipality's fixed UTC offset and combined into one
timezone-aware ``scheduled_at``.
"""

import re
from datetime import date, datetime, time, tzinfo

from protean.exceptions import ValidationError

from pickups.config import local_timezone

TIME_PATTERN = re.compile(r"^(0?[1-9]|1[0-2]):([0-5][0-9])\s?(AM|PM)$", re.IGNORECASE)


def normalize_time(scheduled_time) -> str:
    """Validate a 12-hour clock time and return it upper-cased."""
    if not isinstance(scheduled_time, str) or not TIME_PATTERN.match(scheduled_time.strip()):
        raise ValidationError({"scheduled_time": ["Invalid time format. Use HH:MM AM/PM"]})
    return scheduled_time.strip().upper()


def parse_date(scheduled_date) -> date:
    """Accept a date, a datetime, or an ISO-8601 date/datetime string."""
    if isinstance(scheduled_date, datetime):
        return scheduled_date.date()
    if isinstance(scheduled_date, date):
        return scheduled_date
    if isinstance(scheduled_date, str) and scheduled_date.strip():
        raw = scheduled_date.strip()
        try:
            return date.fromisoformat(raw[:10])
        except ValueError:
            pass
    raise ValidationError({"scheduled_date": ["Invalid date. Use YYYY-MM-DD"]})


def to_clock(scheduled_time: str) -> time:
    match = TIME_PATTERN.match(scheduled_time)
    hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if meridiem == "AM":
        hour = 0 if hour == 12 else hour
    else:
        hour = 12 if hour == 12 else hour + 12
    return time(hour, minute)


def resolve_schedule(scheduled_date, scheduled_time, tz: tzinfo | None = None) -> tuple[datetime, str]:
    """Return ``(scheduled_at, display_time)`` for admin input."""
    display_time = normalize_time(scheduled_time)
    day = parse_date(scheduled_date)
    scheduled_at = datetime.combine(day, to_clock(display_time), tzinfo=tz or local_timezone())
    return scheduled_at, display_time


def format_display_date(scheduled_at: datetime, tz: tzinfo | None = None) -> str:
    """Format like "Jan 5, 2026" in local time."""
    local = scheduled_at.astimezone(tz or local_timezone())
    return f"{local.strftime('%b')} {local.day}, {local.year}"
