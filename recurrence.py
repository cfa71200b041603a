"""
Recurring payment schedules

Next-payment dates, countdowns and urgency for subscriptions and cards, plus
the monthly/annual normalisation of amounts billed at other frequencies.
"""
import calendar
from datetime import date, timedelta
from typing import NamedTuple, Optional

from dateutil.relativedelta import relativedelta

# Months per cycle for the day-of-month based frequencies
MONTH_STEPS = {
    "monthly": 1,
    "bimonthly": 2,
    "quarterly": 3,
    "semiannual": 6,
    "annual": 12,
}

FREQUENCIES = ("weekly", "biweekly") + tuple(MONTH_STEPS)

# Approximate monthly multipliers (not exact calendar fractions)
MONTHLY_MULTIPLIERS = {
    "weekly": 4.33,
    "biweekly": 2.17,
    "monthly": 1,
    "bimonthly": 0.5,
    "quarterly": 0.33,
    "semiannual": 0.167,
    "annual": 0.083,
}

URGENT_DAYS = 3
SOON_DAYS = 7


class Occurrence(NamedTuple):
    next_date: date
    days_left: int
    is_overdue: bool
    urgency: str


def _check(day: int, frequency: str) -> None:
    if frequency not in FREQUENCIES:
        raise ValueError(f"Unknown frequency: {frequency!r}")
    if not 1 <= day <= 31:
        raise ValueError(f"Day must be between 1 and 31, got {day}")


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, pulling ``day`` back to the last day of short months."""
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def _shift_month(ref: date, months: int, day: int) -> date:
    first = ref.replace(day=1) + relativedelta(months=months)
    return clamp_day(first.year, first.month, day)


def urgency(days_left: int) -> str:
    if days_left < 0:
        return "overdue"
    if days_left == 0:
        return "today"
    if days_left <= URGENT_DAYS:
        return "urgent"
    if days_left <= SOON_DAYS:
        return "soon"
    return "normal"


def _weekday(ref: date) -> int:
    # 0 = Sunday ... 6 = Saturday
    return ref.isoweekday() % 7


def _biweekly_anchors(day: int):
    return min(day, 15), min(day + 15, 28)


def _upcoming(reference: date, day: int, frequency: str) -> date:
    if frequency == "weekly":
        delta = (day % 7 - _weekday(reference)) % 7
        return reference + timedelta(days=delta or 7)

    if frequency == "biweekly":
        for anchor in _biweekly_anchors(day):
            if anchor > reference.day:
                return reference.replace(day=anchor)
        return _shift_month(reference, 1, _biweekly_anchors(day)[0])

    step = MONTH_STEPS[frequency]
    candidate = clamp_day(reference.year, reference.month, day)
    if candidate <= reference:
        candidate = _shift_month(reference, step, day)
    return candidate


def _latest_due(reference: date, day: int, frequency: str) -> date:
    """Most recent occurrence on or before ``reference``."""
    if frequency == "weekly":
        delta = (_weekday(reference) - day % 7) % 7
        return reference - timedelta(days=delta)

    if frequency == "biweekly":
        first, second = _biweekly_anchors(day)
        if second <= reference.day:
            return reference.replace(day=second)
        if first <= reference.day:
            return reference.replace(day=first)
        return _shift_month(reference, -1, second)

    candidate = clamp_day(reference.year, reference.month, day)
    if candidate > reference:
        candidate = _shift_month(reference, -MONTH_STEPS[frequency], day)
    return candidate


def _previous_due(due: date, day: int, frequency: str) -> date:
    """The occurrence one cycle before ``due``."""
    if frequency == "weekly":
        return due - timedelta(days=7)

    if frequency == "biweekly":
        first, second = _biweekly_anchors(day)
        if due.day == second:
            return due.replace(day=first)
        return _shift_month(due, -1, second)

    return _shift_month(due, -MONTH_STEPS[frequency], day)


def next_occurrence(
    reference: date,
    day: int,
    frequency: str = "monthly",
    last_paid: Optional[date] = None,
) -> Occurrence:
    """Resolve the next payment of a recurring charge.

    ``day`` is a day of month for every frequency except ``weekly``, where
    ``day % 7`` names a weekday (0 = Sunday). When ``last_paid`` is known, a
    payment made after the previous occurrence settles the latest due date,
    early payments included. Otherwise that due date is still outstanding
    and is returned with a countdown of zero (today) or below (overdue).
    """
    _check(day, frequency)

    if last_paid is not None:
        due = _latest_due(reference, day, frequency)
        if last_paid <= _previous_due(due, day, frequency):
            days_left = (due - reference).days
            return Occurrence(due, days_left, days_left < 0, urgency(days_left))

    next_date = _upcoming(reference, day, frequency)
    days_left = (next_date - reference).days
    return Occurrence(next_date, days_left, False, urgency(days_left))


def days_until(reference: date, day: int) -> int:
    """Days until the next ``day`` of month, zero when it falls on ``reference``."""
    _check(day, "monthly")
    candidate = clamp_day(reference.year, reference.month, day)
    if candidate < reference:
        candidate = _shift_month(reference, 1, day)
    return (candidate - reference).days


def monthly_equivalent(amount: float, frequency: str) -> float:
    try:
        return amount * MONTHLY_MULTIPLIERS[frequency]
    except KeyError:
        raise ValueError(f"Unknown frequency: {frequency!r}")


def annual_equivalent(amount: float, frequency: str) -> float:
    return monthly_equivalent(amount, frequency) * 12
