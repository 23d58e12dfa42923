"""
Next-run computation for weekly and monthly automations.

Everything here is pure: the current instant is always passed in.
"""

import calendar
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Optional

# Automations run at 09:00 local time
RUN_HOUR = 9

WEEKLY = "weekly"
MONTHLY = "monthly"
FREQUENCIES = (WEEKLY, MONTHLY)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return an aware UTC datetime. Naive values (e.g. read back from SQLite) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def sunday_based_weekday(value: datetime) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday."""
    return (value.weekday() + 1) % 7


def _days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def _anchor(value: datetime) -> datetime:
    return value.replace(hour=RUN_HOUR, minute=0, second=0, microsecond=0)


def next_weekly_run(day_of_week: int, now: datetime) -> datetime:
    if not 0 <= day_of_week <= 6:
        raise ValueError(f"day_of_week must be 0-6, got {day_of_week}")
    anchor_today = _anchor(now)
    days_until = day_of_week - sunday_based_weekday(now)
    if days_until < 0 or (days_until == 0 and now >= anchor_today):
        days_until += 7
    return anchor_today + timedelta(days=days_until)


def next_monthly_run(day_of_month: int, now: datetime) -> datetime:
    if not 1 <= day_of_month <= 31:
        raise ValueError(f"day_of_month must be 1-31, got {day_of_month}")
    target_day = min(day_of_month, _days_in_month(now.year, now.month))
    candidate = _anchor(now).replace(day=target_day)
    if candidate <= now:
        year, month = (now.year + 1, 1) if now.month == 12 else (now.year, now.month + 1)
        target_day = min(day_of_month, _days_in_month(year, month))
        candidate = candidate.replace(year=year, month=month, day=target_day)
    return candidate


def compute_next_run_at(
    frequency: str,
    day_of_week: Optional[int],
    day_of_month: Optional[int],
    now: datetime,
    tz: Optional[tzinfo] = None,
) -> datetime:
    """
    Compute the next 09:00 run strictly after `now`.

    Weekly: next occurrence of day_of_week (0=Sunday, 6=Saturday).
    Monthly: next occurrence of day_of_month (1-31), clamped to the last day
    of short months.

    Args:
        frequency: "weekly" or "monthly"
        day_of_week: Required for weekly automations
        day_of_month: Required for monthly automations
        now: Current instant (aware)
        tz: Zone whose local 09:00 is the anchor; defaults to now's own zone

    Returns:
        datetime: Aware datetime in the anchor zone
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    if tz is not None:
        now = now.astimezone(tz)

    if frequency == WEEKLY:
        if day_of_week is None:
            raise ValueError("weekly automations need day_of_week")
        return next_weekly_run(day_of_week, now)
    if frequency == MONTHLY:
        if day_of_month is None:
            raise ValueError("monthly automations need day_of_month")
        return next_monthly_run(day_of_month, now)
    raise ValueError(f"Unknown frequency: {frequency}")
