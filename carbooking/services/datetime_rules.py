"""
Booking window rules.
Dates and times are local wall-clock values in the company time zone.
"""
import re
from datetime import date, datetime, time, timedelta
from typing import NamedTuple, Optional, Tuple

import pytz

from ..config import settings
from ..errors import FormatError, ValidationError

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"

_DATE_RE = re.compile(DATE_PATTERN)
_TIME_RE = re.compile(TIME_PATTERN)


class WindowCheck(NamedTuple):
    valid: bool
    error: Optional[str] = None


def parse_date(value: str) -> date:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise FormatError(f"Invalid date format: {value}. Expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise FormatError(f"Invalid date: {value}")


def parse_time(value: str) -> time:
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise FormatError(f"Invalid time format: {value}. Expected HH:MM")
    hours, minutes = value.split(":")
    return time(int(hours), int(minutes))


def combine_date_time(date_str: str, time_str: str) -> datetime:
    return datetime.combine(parse_date(date_str), parse_time(time_str))


def local_now(tz_name: Optional[str] = None) -> datetime:
    """Current naive wall-clock time in the company time zone."""
    tz = pytz.timezone(tz_name or settings.tz_default)
    return datetime.now(tz).replace(tzinfo=None)


def resolve_window(
    departure_date: str,
    departure_time: str,
    return_date: Optional[str] = None,
    return_time: Optional[str] = None,
) -> Tuple[datetime, datetime]:
    """
    Return (departure, return) instants.
    A missing return date or time falls back to the departure value.
    """
    start = combine_date_time(departure_date, departure_time)
    end = combine_date_time(return_date or departure_date, return_time or departure_time)
    return start, end


def booking_bounds(booking) -> Tuple[datetime, datetime]:
    """Closed interval occupied by a stored booking."""
    start = datetime.combine(booking.departure_date, booking.departure_time)
    end = datetime.combine(
        booking.return_date or booking.departure_date,
        booking.return_time or booking.departure_time,
    )
    return start, end


def intervals_overlap(start1: datetime, end1: datetime, start2: datetime, end2: datetime) -> bool:
    """Closed intervals: touching endpoints count as an overlap."""
    return start1 <= end2 and start2 <= end1


def validate_booking_window(
    departure_date: str,
    departure_time: str,
    return_date: Optional[str] = None,
    return_time: Optional[str] = None,
    now: Optional[datetime] = None,
) -> WindowCheck:
    """
    Check a requested window against the booking policy.

    Raises FormatError for malformed strings; policy violations come back as
    ``WindowCheck(valid=False, error=...)``.
    """
    departure, ret = resolve_window(departure_date, departure_time, return_date, return_time)
    now = now or local_now()

    if departure < now:
        return WindowCheck(False, "Departure date/time cannot be in the past")

    if departure > now + timedelta(days=settings.max_advance_days):
        return WindowCheck(False, f"Booking cannot be more than {settings.max_advance_days} days in advance")

    if return_date or return_time:
        if ret <= departure:
            return WindowCheck(False, "Return date/time must be after departure")
        if ret - departure > timedelta(days=settings.max_booking_days):
            return WindowCheck(False, f"Booking duration cannot exceed {settings.max_booking_days} days")

    return WindowCheck(True)


def ensure_booking_window(
    departure_date: str,
    departure_time: str,
    return_date: Optional[str] = None,
    return_time: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    """Raise ValidationError for a rejected window; return the resolved one otherwise."""
    check = validate_booking_window(departure_date, departure_time, return_date, return_time, now=now)
    if not check.valid:
        raise ValidationError(check.error)
    return resolve_window(departure_date, departure_time, return_date, return_time)
