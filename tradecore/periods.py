"""Candlestick periods and the time windows they cover."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum


class PeriodType(str, Enum):
    """Length of a candlestick."""

    M1 = "m1"
    M3 = "m3"
    M5 = "m5"
    M15 = "m15"
    M30 = "m30"
    H1 = "h1"
    H2 = "h2"
    H4 = "h4"
    H6 = "h6"
    H8 = "h8"
    H12 = "h12"
    D1 = "d1"
    D3 = "d3"
    W1 = "w1"
    MN = "mn"


@dataclass
class KLine:
    """One candlestick; price and size fields are decimal strings."""

    symbol: str
    open_at: datetime
    close_at: datetime
    period: PeriodType
    open: str | None = None
    high: str | None = None
    low: str | None = None
    close: str | None = None
    volume: str | None = None
    amount: str | None = None


def periods() -> list[PeriodType]:
    """All supported periods, shortest first."""
    return list(PeriodType)


def parse_period(period: str) -> PeriodType:
    """Parse a period name case-insensitively."""
    try:
        return PeriodType(period.lower())
    except ValueError:
        raise ValueError("invalid period") from None


_MINUTES = {
    PeriodType.M1: 1,
    PeriodType.M3: 3,
    PeriodType.M5: 5,
    PeriodType.M15: 15,
    PeriodType.M30: 30,
}

_HOURS = {
    PeriodType.H1: 1,
    PeriodType.H2: 2,
    PeriodType.H4: 4,
    PeriodType.H6: 6,
    PeriodType.H8: 8,
    PeriodType.H12: 12,
}

_SECOND = timedelta(seconds=1)


def parse_period_time(at: datetime, period_type: PeriodType | str) -> tuple[datetime, datetime]:
    """Return the first and last second of the period that contains ``at``."""
    period_type = PeriodType(period_type)
    midnight = at.replace(hour=0, minute=0, second=0, microsecond=0)

    if period_type in _MINUTES:
        step = _MINUTES[period_type]
        start = at.replace(minute=at.minute - at.minute % step, second=0, microsecond=0)
        return start, start + timedelta(minutes=step) - _SECOND

    if period_type in _HOURS:
        step = _HOURS[period_type]
        start = at.replace(hour=at.hour - at.hour % step, minute=0, second=0, microsecond=0)
        return start, start + timedelta(hours=step) - _SECOND

    if period_type is PeriodType.D1:
        return midnight, midnight + timedelta(days=1) - _SECOND

    if period_type is PeriodType.D3:
        # A day number of zero rolls back to the last day of the previous month.
        first = midnight.replace(day=1)
        start = first + timedelta(days=at.day - at.day % 3 - 1)
        return start, start + timedelta(days=3) - _SECOND

    if period_type is PeriodType.W1:
        start = midnight - timedelta(days=at.weekday())
        return start, start + timedelta(days=7) - _SECOND

    start = midnight.replace(day=1)
    if start.month == 12:
        next_month = start.replace(year=start.year + 1, month=1)
    else:
        next_month = start.replace(month=start.month + 1)
    return start, next_month - _SECOND