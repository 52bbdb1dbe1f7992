"""Calendar arithmetic shared by budgets, bills and goals."""

import calendar
from datetime import date, timedelta


def add_months(start: date, months: int) -> date:
    """
    Shift a date by whole months, clamping the day to the month's length.

    Always computed from `start`, so repeated stepping never drifts
    (Jan 31 -> Feb 28 -> Mar 31 when stepping 1, 2 months from Jan 31).
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def months_between(start: date, end: date) -> int:
    """Whole calendar months from start's month to end's month."""
    return (end.year - start.year) * 12 + (end.month - start.month)


# Step sizes for recurrence intervals: (days, months)
INTERVAL_STEPS: dict[str, tuple[int, int]] = {
    "daily": (1, 0),
    "weekly": (7, 0),
    "monthly": (0, 1),
    "quarterly": (0, 3),
    "yearly": (0, 12),
}


def step(start: date, interval: str, count: int = 1) -> date:
    """Advance `start` by `count` recurrence intervals."""
    days, months = INTERVAL_STEPS[interval]
    if months:
        return add_months(start, months * count)
    return start + timedelta(days=days * count)


def window_containing(anchor: date, interval: str, as_of: date) -> tuple[date, date]:
    """
    Return the [start, end) window of a repeating interval anchored at
    `anchor` that contains `as_of`. `as_of` must not precede `anchor`.
    """
    days, months = INTERVAL_STEPS[interval]
    if months:
        index = months_between(anchor, as_of) // months
        window_start = step(anchor, interval, index)
        if window_start > as_of:
            index -= 1
            window_start = step(anchor, interval, index)
        return window_start, step(anchor, interval, index + 1)

    index = (as_of - anchor).days // days
    window_start = step(anchor, interval, index)
    return window_start, step(anchor, interval, index + 1)
