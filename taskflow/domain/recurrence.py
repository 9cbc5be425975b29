"""Recurrence arithmetic on calendar dates.

All functions here are pure and work on ``datetime.date`` values only.
Weekday indices follow the stored convention: 0=Sunday .. 6=Saturday.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta

from .entities import RecurrenceRule
from .enums import RecurrenceType


def compute_next_due_date(current: date, rule: RecurrenceRule) -> date:
    interval = rule.interval
    if rule.type == RecurrenceType.DAILY:
        return current + timedelta(days=interval)
    if rule.type == RecurrenceType.WEEKLY:
        return _next_weekly_date(current, interval, rule.days_of_week)
    if rule.type == RecurrenceType.MONTHLY:
        return add_months(current, interval)
    if rule.type == RecurrenceType.YEARLY:
        return add_months(current, 12 * interval)
    return current + timedelta(days=1)


def _next_weekly_date(current: date, interval: int, days_of_week: Iterable[int]) -> date:
    days = sorted(set(days_of_week))
    if not days:
        return current + timedelta(weeks=interval)

    current_day = sunday_based_weekday(current)
    later_this_week = [day for day in days if day > current_day]
    if later_this_week:
        return current + timedelta(days=later_this_week[0] - current_day)

    # First configured day of the week that starts `interval` weeks later.
    return current + timedelta(days=7 * interval - current_day + days[0])


def sunday_based_weekday(value: date) -> int:
    return value.isoweekday() % 7


def add_months(base: date, months: int) -> date:
    year = base.year + (base.month - 1 + months) // 12
    month = (base.month - 1 + months) % 12 + 1
    day = min(base.day, _days_in_month(year, month))
    return date(year, month, day)


def _days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - timedelta(days=1)).day


def parse_days_of_week(raw: str | None) -> frozenset[int]:
    """Parse the stored ``"1,3,5"`` form.

    Blank entries are skipped. An empty result means no days are configured,
    which makes a weekly rule fall back to plain ``7 * interval`` stepping.
    Non-numeric entries raise ``ValueError``; callers validate before storing.
    """
    if not raw:
        return frozenset()
    return frozenset(int(part) for part in raw.split(",") if part.strip())


def format_days_of_week(days: Iterable[int]) -> str | None:
    ordered = sorted(set(days))
    if not ordered:
        return None
    return ",".join(str(day) for day in ordered)
