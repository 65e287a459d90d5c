"""
Time helpers for storage instants and business-local reporting windows.

Storage convention: every timestamp column holds a naive UTC datetime.
Reporting convention: every boundary a user types (dates on the report page,
"today" on the dashboard) is wall-clock time in the business timezone and has
to be converted to a UTC instant before it is used in a query.
"""

from __future__ import annotations

import calendar
import re
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app

from .validation import ValidationError


# YYYY-MM-DD with an optional THH:MM[:SS[.fff]] part
_LOCAL_DATETIME_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2})"
    r"(?:[T ](?P<hour>\d{2}):(?P<minute>\d{2})(?::(?P<second>\d{2})(?:\.(?P<fraction>\d{1,6}))?)?)?$"
)

END_OF_DAY = time(23, 59, 59, 999000)


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DDTHH:MM" (naive) is interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


# =============================================================================
# BUSINESS TIMEZONE
# =============================================================================

def business_tz() -> ZoneInfo:
    """The configured business timezone of the running app."""
    return ZoneInfo(current_app.config["BUSINESS_TIMEZONE"])


def _as_aware_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def to_business_local(instant: datetime, tz: ZoneInfo) -> datetime:
    """Convert a storage instant (naive = UTC) to aware business-local time."""
    return _as_aware_utc(instant).astimezone(tz)


def local_to_utc(wall_clock: datetime, tz: ZoneInfo) -> datetime:
    """Interpret a naive wall-clock value in ``tz`` and return UTC-naive."""
    aware = wall_clock.replace(tzinfo=tz)
    return aware.astimezone(timezone.utc).replace(tzinfo=None)


def start_of_local_day(instant: datetime, tz: ZoneInfo) -> datetime:
    """Local midnight on or before ``instant``, as a UTC-naive instant."""
    local = to_business_local(instant, tz)
    return local_to_utc(datetime.combine(local.date(), time.min), tz)


def local_day_bounds(instant: datetime, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """UTC bounds of the business-local day containing ``instant`` (both inclusive)."""
    local_day = to_business_local(instant, tz).date()
    return (
        local_to_utc(datetime.combine(local_day, time.min), tz),
        local_to_utc(datetime.combine(local_day, END_OF_DAY), tz),
    )


def local_date_key(instant: datetime, tz: ZoneInfo) -> str:
    return to_business_local(instant, tz).strftime("%Y-%m-%d")


def local_week_key(instant: datetime, tz: ZoneInfo) -> str:
    # ISO week-year, so 2024-12-30 lands in 2025-W01
    iso_year, iso_week, _ = to_business_local(instant, tz).isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def local_month_key(instant: datetime, tz: ZoneInfo) -> str:
    return to_business_local(instant, tz).strftime("%Y-%m")


def shift_months(day: date, months: int) -> date:
    """Move a calendar date by whole months, clamping to the month's last day."""
    month_index = day.year * 12 + (day.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def local_midnight_days_ago(instant: datetime, tz: ZoneInfo, days: int) -> datetime:
    """UTC instant of local midnight ``days`` calendar days before ``instant``."""
    local_day = to_business_local(instant, tz).date() - timedelta(days=days)
    return local_to_utc(datetime.combine(local_day, time.min), tz)


def local_midnight_months_ago(instant: datetime, tz: ZoneInfo, months: int) -> datetime:
    """UTC instant of local midnight ``months`` calendar months before ``instant``."""
    local_day = shift_months(to_business_local(instant, tz).date(), -months)
    return local_to_utc(datetime.combine(local_day, time.min), tz)


# =============================================================================
# REPORT RANGE PARSING
# =============================================================================

def _parse_local_wall_clock(value: str | None, field: str) -> datetime:
    """
    Parse ``YYYY-MM-DD[THH:MM[:SS[.fff]]]`` (optionally ``Z``-suffixed) as a
    naive wall-clock datetime.
    """
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")

    s = str(value).strip()
    # A trailing Z is accepted but ignored: report inputs are always local
    if s.endswith("Z"):
        s = s[:-1]

    match = _LOCAL_DATETIME_RE.match(s)
    if not match:
        raise ValidationError(f"{field} must be YYYY-MM-DD or YYYY-MM-DDTHH:mm:ss")

    try:
        day = date.fromisoformat(match.group("date"))
        fraction = (match.group("fraction") or "").ljust(6, "0")
        clock = time(
            int(match.group("hour") or 0),
            int(match.group("minute") or 0),
            int(match.group("second") or 0),
            int(fraction or 0),
        )
    except ValueError:
        raise ValidationError(f"{field} is not a valid date/time")

    return datetime.combine(day, clock)


def parse_local_range(start: str | None, end: str | None, tz: ZoneInfo) -> tuple[datetime, datetime]:
    """
    Resolve a report date range typed in business-local wall-clock time.

    Both values are read as local time even when suffixed with ``Z``. The end
    value is widened to ``23:59:59.999`` local unless it already names
    ``23:59:59``, so the last calendar day is always fully included.
    Returns ``(utc_start, utc_end)`` as UTC-naive instants.
    """
    start_local = _parse_local_wall_clock(start, "start_date")
    end_local = _parse_local_wall_clock(end, "end_date")

    if end_local.time().replace(microsecond=0) != time(23, 59, 59):
        end_local = datetime.combine(end_local.date(), END_OF_DAY)
    elif end_local.microsecond == 0:
        end_local = end_local.replace(microsecond=END_OF_DAY.microsecond)

    if start_local > end_local:
        raise ValidationError("start_date must not be after end_date")

    return local_to_utc(start_local, tz), local_to_utc(end_local, tz)
