# CEO FinSight - Financial computation core for executive dashboards
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Period and calendar helpers for CEO FinSight.

This module defines the Period value object and the calendar arithmetic
used across the engine: month boundaries, same-month-previous-year resolution, day counts and
aging-bucket classification.

All dates are timezone-naive calendar dates. Windows are half-open:
``[start, end)``, so a calendar month runs from its first day (inclusive)
to the first day of the next month (exclusive).
"""

from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from .exceptions import InvalidWindowError


@dataclass(frozen=True)
class Period:
    """Represents a half-open reporting window [start, end) with a label."""

    start: date
    end: date
    label: str

    def contains(self, d: date) -> bool:
        return self.start <= d < self.end

    @property
    def days(self) -> int:
        """Number of calendar days covered by the window."""
        return (self.end - self.start).days


def _today() -> date:
    """Return today's date as a date object (isolated for easier testing)."""
    return datetime.today().date()


def make_window(start: date, end: date, label: Optional[str] = None) -> Period:
    """
    Build a validated window.

    Raises:
        InvalidWindowError: if end <= start.
    """
    if end <= start:
        raise InvalidWindowError(
            f"Invalid window: end ({end}) must be after start ({start})."
        )
    return Period(start=start, end=end, label=label or f"{start} → {end}")


# ---------------------------------------------------------------------------
# Month arithmetic
# ---------------------------------------------------------------------------


def month_start(d: date) -> date:
    return d.replace(day=1)


def add_months(d: date, months: int) -> date:
    """First day of the month that is `months` away from d's month."""
    index = d.year * 12 + (d.month - 1) + months
    return date(index // 12, index % 12 + 1, 1)


def next_month_start(d: date) -> date:
    return add_months(d, 1)


def month_window(year: int, month: int) -> Period:
    """Calendar month [first day, first day of next month)."""
    start = date(year, month, 1)
    return Period(start=start, end=next_month_start(start), label=f"{year:04d}-{month:02d}")


def month_window_of(d: date) -> Period:
    return month_window(d.year, d.month)


def same_month_previous_year(d: date) -> Period:
    return month_window(d.year - 1, d.month)


def month_key(d: date) -> str:
    """Return 'YYYY-MM' for a date."""
    return f"{d.year:04d}-{d.month:02d}"


def parse_month_key(key: str) -> date:
    """
    Parse 'YYYY-MM' into the first day of that month.

    Raises:
        ValueError: if the key is not a valid year-month.
    """
    try:
        year_raw, month_raw = key.strip().split("-")
        return date(int(year_raw), int(month_raw), 1)
    except (ValueError, AttributeError) as exc:
        raise ValueError(f"Invalid month key {key!r}, expected YYYY-MM.") from exc


def iter_month_windows(window: Period) -> list[Period]:
    """
    List every calendar month overlapping the window, in order.

    Months are returned in full even when the window only covers part of
    the first or last one.
    """
    months: list[Period] = []
    cursor = month_start(window.start)
    while cursor < window.end:
        months.append(month_window(cursor.year, cursor.month))
        cursor = next_month_start(cursor)
    return months


def days_between(start: date, end: date) -> int:
    """Whole days from start to end (negative if end is before start)."""
    return (end - start).days


# ---------------------------------------------------------------------------
# Aging buckets
# ---------------------------------------------------------------------------


def aging_bucket_labels(boundaries: Sequence[int]) -> tuple[str, ...]:
    """
    Human-readable labels for aging buckets.

    For boundaries (30, 60, 90) this returns
    ("0-30", "31-60", "61-90", ">90"). These are display names; the
    day ranges actually covered are [0, 30), [30, 60), [60, 90) and
    [90, ...), see classify_aging.
    """
    labels: list[str] = []
    lower = 0
    for upper in boundaries:
        labels.append(f"{lower + 1 if lower else 0}-{upper}")
        lower = upper
    labels.append(f">{lower}")
    return tuple(labels)


def classify_aging(days_overdue: int, boundaries: Sequence[int]) -> int:
    """
    Return the aging bucket index for a number of days past due.

    Buckets are mutually exclusive with an inclusive lower bound: bucket i
    covers [boundaries[i-1], boundaries[i]). A receivable exactly 30 days
    past due therefore falls in the second bucket ("31-60").
    """
    for index, upper in enumerate(boundaries):
        if days_overdue < upper:
            return index
    return len(boundaries)


# ---------------------------------------------------------------------------
# CLI helpers
# ---------------------------------------------------------------------------


def determine_window_from_args(args) -> Period:
    """
    Determine the reporting window from CLI args.

    Priority (highest to lowest):

        1. args.month (YYYY-MM)
        2. args.from_date / args.to_date (custom window, end exclusive)
        3. current calendar month by default
    """
    month_raw: Optional[str] = getattr(args, "month", None)
    if month_raw:
        first = parse_month_key(month_raw)
        return month_window(first.year, first.month)

    from_raw: Optional[str] = getattr(args, "from_date", None)
    to_raw: Optional[str] = getattr(args, "to_date", None)

    if from_raw or to_raw:
        today = _today()
        start = date.fromisoformat(from_raw) if from_raw else month_start(today)
        end = date.fromisoformat(to_raw) if to_raw else next_month_start(today)
        return make_window(start, end, label=f"Custom window ({start} → {end})")

    return month_window_of(_today())


def shift_days(d: date, days: int) -> date:
    return d + timedelta(days=days)
