from __future__ import annotations

import math
import pandas as pd
from typing import List, Optional, Tuple
from functools import lru_cache


# Payments or compounding events per year for each named frequency.
FREQUENCY_PER_YEAR = {
    "daily": 365,
    "weekly": 52,
    "fortnightly": 26,
    "monthly": 12,
    "quarterly": 4,
    "half-yearly": 2,
    "yearly": 1,
}

# Frequencies that land on whole calendar months.
MONTHLY_INTERVALS = {
    "monthly": 1,
    "quarterly": 3,
    "half-yearly": 6,
    "yearly": 12,
}

RATE_INTERVALS = {
    "daily": 365,
    "weekly": 52,
    "monthly": 12,
    "yearly": 1,
}

# Weekday codes used for interest-bearing day selection, keyed by pandas dayofweek.
WEEKDAY_CODES = ("M", "TU", "W", "TH", "F", "SA", "SU")


def periods_per_year(frequency: str) -> int:
    """Events per year for a named frequency (monthly -> 12, weekly -> 52, ...)."""
    key = frequency.lower().replace("_", "-")
    if key not in FREQUENCY_PER_YEAR:
        raise ValueError(f"Unsupported frequency: {frequency}")
    return FREQUENCY_PER_YEAR[key]


def months_per_interval(frequency: str) -> int:
    """Calendar months between events for month-aligned frequencies."""
    key = frequency.lower().replace("_", "-")
    if key not in MONTHLY_INTERVALS:
        raise ValueError(f"Frequency is not month-aligned: {frequency}")
    return MONTHLY_INTERVALS[key]


def annualize_rate(rate: float, interval: str) -> float:
    """
    Nominal annual rate from a rate quoted per interval.

    1.5 per month -> 18.0 per year. Units are preserved (percent in, percent out).
    """
    key = interval.lower()
    if key not in RATE_INTERVALS:
        raise ValueError(f"Unsupported rate interval: {interval}")
    return rate * RATE_INTERVALS[key]


def total_months(years: float, months: float = 0) -> int:
    """Whole number of months in a years + months term (never negative)."""
    return max(0, int(round(years * 12 + months)))


def split_periods(periods: float) -> Tuple[int, float]:
    """Whole and fractional parts of a period count."""
    whole = math.floor(periods + 1e-12)
    frac = max(0.0, periods - whole)
    return whole, frac


def growth_factor(rate: float, periods_per_year: int, years: float) -> float:
    """
    Growth of 1 unit over `years` at nominal decimal `rate` compounded `periods_per_year` times.

    Whole compounding periods compound; the trailing fractional period accrues simple interest:
      (1 + r/m)^w * (1 + r/m * f),  with w + f = m * years
    """
    if years <= 0:
        return 1.0
    if periods_per_year <= 0:
        return 1.0 + rate * years

    period_rate = rate / periods_per_year
    whole, frac = split_periods(periods_per_year * years)
    return (1.0 + period_rate) ** whole * (1.0 + period_rate * frac)


def equivalent_monthly_rate(rate: float, periods_per_year: int) -> float:
    """Monthly rate with the same effective annual yield as `rate` compounded `periods_per_year` times."""
    if periods_per_year <= 0:
        return rate / 12.0
    return (1.0 + rate / periods_per_year) ** (periods_per_year / 12.0) - 1.0


def effective_annual_rate(rate: float, periods_per_year: int) -> float:
    """APY (decimal) of a nominal decimal rate."""
    if periods_per_year <= 0:
        return 0.0
    return (1.0 + rate / periods_per_year) ** periods_per_year - 1.0


def nominal_from_effective(apy: float, periods_per_year: int) -> float:
    """Nominal decimal rate compounded `periods_per_year` times that yields `apy`."""
    if periods_per_year <= 0 or apy <= -1.0:
        return 0.0
    return periods_per_year * ((1.0 + apy) ** (1.0 / periods_per_year) - 1.0)


def add_months(start: pd.Timestamp, months: int) -> pd.Timestamp:
    """Calendar month offset, clamped to month end (Jan 31 + 1M -> Feb 28/29)."""
    return pd.Timestamp(start) + pd.DateOffset(months=int(months))


def payment_dates(start: pd.Timestamp, n_payments: int, step_months: int = 1) -> List[pd.Timestamp]:
    """
    Payment dates strictly AFTER start: start + step, start + 2*step, ...

    Offsets are taken from start each time rather than chained, so a Jan 31 start
    yields Feb 28, Mar 31, Apr 30 instead of drifting to the 28th.
    """
    if n_payments <= 0:
        return []
    if step_months <= 0:
        raise ValueError("step_months must be positive")

    start = pd.Timestamp(start)
    return [add_months(start, k * step_months) for k in range(1, n_payments + 1)]


@lru_cache(maxsize=10_000)
def cached_payment_dates(start: pd.Timestamp, n_payments: int, step_months: int = 1) -> Tuple[pd.Timestamp, ...]:
    """Cache schedules by (start, n_payments, step_months)."""
    return tuple(payment_dates(pd.Timestamp(start), int(n_payments), int(step_months)))


def to_timestamp(value: Optional[object]) -> pd.Timestamp:
    """Parse a date-like value; None means today (normalized to midnight)."""
    if value is None:
        return pd.Timestamp.today().normalize()
    return pd.Timestamp(value).normalize()


def format_date(value: pd.Timestamp) -> str:
    """ISO date string (YYYY-MM-DD)."""
    return pd.Timestamp(value).strftime("%Y-%m-%d")


def weekday_code(value: pd.Timestamp) -> str:
    return WEEKDAY_CODES[pd.Timestamp(value).dayofweek]
