"""
Billing period arithmetic

A billing cycle starts on ``cycle_day`` (1-28) of a month and ends the day
before the same day of the next month, e.g. Oct 25 - Nov 24.
"""
import calendar
from datetime import datetime, date, time, timedelta
from typing import Optional, Tuple, Union

MIN_CYCLE_DAY = 1
MAX_CYCLE_DAY = 28

DayLike = Union[date, datetime]


def _add_months(year: int, month: int, delta: int) -> Tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _validate_cycle_day(cycle_day: int):
    if not MIN_CYCLE_DAY <= cycle_day <= MAX_CYCLE_DAY:
        raise ValueError(f"Billing cycle day must be between {MIN_CYCLE_DAY} and {MAX_CYCLE_DAY}")


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, time(23, 59, 59))


def get_billing_period(cycle_day: int, reference: Optional[DayLike] = None) -> Tuple[datetime, datetime]:
    """
    Billing period containing ``reference``.

    Args:
        cycle_day: Day of month when the cycle starts (1-28)
        reference: Day to resolve the period for (defaults to today)

    Returns:
        (start at 00:00:00, end at 23:59:59)
    """
    _validate_cycle_day(cycle_day)
    reference = reference or datetime.now()

    if reference.day >= cycle_day:
        start_year, start_month = reference.year, reference.month
    else:
        start_year, start_month = _add_months(reference.year, reference.month, -1)

    next_year, next_month = _add_months(start_year, start_month, 1)
    start = datetime(start_year, start_month, cycle_day)
    end = _end_of_day(date(next_year, next_month, cycle_day) - timedelta(days=1))
    return start, end


def get_previous_billing_period(cycle_day: int, reference: Optional[DayLike] = None) -> Tuple[datetime, datetime]:
    """The period before the current one; it ends 1 ms before the current period starts."""
    current_start, _ = get_billing_period(cycle_day, reference)
    year, month = _add_months(current_start.year, current_start.month, -1)
    return datetime(year, month, cycle_day), current_start - timedelta(milliseconds=1)


def format_period_label(start: datetime, end: datetime) -> str:
    return f"{start.strftime('%b')} {start.day} - {end.strftime('%b')} {end.day}, {end.year}"


def get_billing_period_label(cycle_day: int, reference: Optional[DayLike] = None) -> str:
    """Label like "Oct 25 - Nov 24, 2025"."""
    return format_period_label(*get_billing_period(cycle_day, reference))


def get_calendar_period(reference: Optional[DayLike] = None) -> Tuple[datetime, datetime]:
    """First day 00:00:00 to last day 23:59:59 of the reference month."""
    reference = reference or datetime.now()
    last_day = calendar.monthrange(reference.year, reference.month)[1]
    start = datetime(reference.year, reference.month, 1)
    end = _end_of_day(date(reference.year, reference.month, last_day))
    return start, end
