from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import date

# Balances and request lengths are stored in half-day units.
HALF_DAYS_PER_DAY = 2


def calculate_requested_half_days(start_date: date, end_date: date, is_half_day: bool = False) -> int:
    """Return the length of a leave request in half-day units.

    Full-day requests count every calendar day from ``start_date`` through
    ``end_date`` inclusive. A half-day request covers one session of a single
    day and counts 1. Callers validate the range first; an inverted range
    yields a non-positive count.
    """
    if is_half_day:
        return 1
    return ((end_date - start_date).days + 1) * HALF_DAYS_PER_DAY


def half_days_to_days(half_days: int) -> float:
    """Convert half-day units to days for display."""
    return half_days / HALF_DAYS_PER_DAY


def days_to_half_days(days: float) -> int:
    """Convert a whole or half day amount to half-day units."""
    return round(days * HALF_DAYS_PER_DAY)
