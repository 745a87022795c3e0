"""Utility functions for money rounding, dates, months and goal progress."""
import calendar
import datetime as dt
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

def _round_money(dec: Decimal) -> float:
    """Round a Decimal to 2 decimal places with HALF_UP (normal money rounding)."""
    return float(dec.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def to_decimal(value: Any) -> Decimal:
    """Turn ints / floats / Decimals into a Decimal without float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def normalize_iso_date(value: Any) -> dt.date:
    """Normalize a value to a date or raise a ValueError."""
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value

    if isinstance(value, str):
        try:
            return dt.date.fromisoformat(value.strip())
        except ValueError:
            raise ValueError("Invalid date format. Expected YYYY-MM-DD.")

    raise ValueError("Invalid date format. Expected YYYY-MM-DD.")


def normalize_month(value: Any) -> dt.date:
    """Normalize 'YYYY-MM' (or any date) to the first day of that month."""
    if isinstance(value, dt.date):
        return dt.date(value.year, value.month, 1)

    if isinstance(value, str):
        try:
            year, month = value.strip().split("-")
            return dt.date(int(year), int(month), 1)
        except ValueError:
            raise ValueError("Invalid month format. Expected YYYY-MM.")

    raise ValueError("Invalid month format. Expected YYYY-MM.")


def shift_month(month: dt.date, offset: int) -> dt.date:
    """Move the first-of-month date `month` by `offset` calendar months."""
    index = month.year * 12 + (month.month - 1) + offset
    year = index // 12
    if not dt.MINYEAR <= year <= dt.MAXYEAR:
        raise ValueError("Month out of range.")
    return dt.date(year, index % 12 + 1, 1)


def month_end(month: dt.date) -> dt.date:
    """Last day of the month containing `month`."""
    return month.replace(day=calendar.monthrange(month.year, month.month)[1])


def month_key(day: dt.date) -> str:
    return f"{day.year:04d}-{day.month:02d}"


def in_month(day: dt.date, month: dt.date) -> bool:
    return day.year == month.year and day.month == month.month


def goal_progress(current_amount: Any, target_amount: Any) -> float:
    """Percentage of a goal reached, clamped to [0, 100]."""
    target = to_decimal(target_amount)
    if target <= 0:
        return 0.0
    pct = to_decimal(current_amount) / target * 100
    pct = max(Decimal("0"), min(Decimal("100"), pct))
    return _round_money(pct)


def goal_remaining(current_amount: Any, target_amount: Any) -> float:
    """Amount still missing to reach a goal (never negative)."""
    remaining = to_decimal(target_amount) - to_decimal(current_amount)
    return _round_money(max(Decimal("0"), remaining))

