from datetime import datetime, timedelta

import pytest

from tradecore.periods import KLine, PeriodType, parse_period, parse_period_time, periods

SECOND = timedelta(seconds=1)

FIXED_LENGTHS = {
    PeriodType.M1: timedelta(minutes=1),
    PeriodType.M3: timedelta(minutes=3),
    PeriodType.M5: timedelta(minutes=5),
    PeriodType.M15: timedelta(minutes=15),
    PeriodType.M30: timedelta(minutes=30),
    PeriodType.H1: timedelta(hours=1),
    PeriodType.H2: timedelta(hours=2),
    PeriodType.H4: timedelta(hours=4),
    PeriodType.H6: timedelta(hours=6),
    PeriodType.H8: timedelta(hours=8),
    PeriodType.H12: timedelta(hours=12),
    PeriodType.D1: timedelta(days=1),
    PeriodType.D3: timedelta(days=3),
    PeriodType.W1: timedelta(days=7),
}

SAMPLE_TIMES = [
    datetime(2024, 5, 1, 10, 0, 15),
    datetime(2024, 5, 19, 23, 59, 59),
    datetime(2024, 2, 29, 7, 44, 3),
    datetime(2023, 12, 31, 13, 17, 0),
]


def test_periods_lists_every_period_in_order():
    result = periods()
    assert result[0] is PeriodType.M1
    assert result[-1] is PeriodType.MN
    assert len(result) == len(set(result)) == len(PeriodType)


@pytest.mark.parametrize("name", ["m1", "M1", "H12", "mn", "W1"])
def test_parse_period_accepts_any_case(name):
    assert parse_period(name).value == name.lower()


def test_parse_period_rejects_unknown():
    with pytest.raises(ValueError, match="invalid period"):
        parse_period("m2")


@pytest.mark.parametrize("at", SAMPLE_TIMES)
@pytest.mark.parametrize("period", list(FIXED_LENGTHS))
def test_fixed_periods_contain_time_and_have_length(at, period):
    start, end = parse_period_time(at, period)
    assert start <= at <= end
    assert end - start + SECOND == FIXED_LENGTHS[period]
    assert start.second == 0 and start.microsecond == 0


@pytest.mark.parametrize("at", SAMPLE_TIMES)
def test_minute_periods_align(at):
    for period, step in [(PeriodType.M3, 3), (PeriodType.M5, 5), (PeriodType.M15, 15)]:
        start, _ = parse_period_time(at, period)
        assert start.minute % step == 0
        assert start.hour == at.hour


@pytest.mark.parametrize("at", SAMPLE_TIMES)
def test_week_starts_on_monday(at):
    start, _ = parse_period_time(at, PeriodType.W1)
    assert start.weekday() == 0
    assert start.hour == start.minute == 0


@pytest.mark.parametrize("at", SAMPLE_TIMES)
def test_month_covers_calendar_month(at):
    start, end = parse_period_time(at, "mn")
    assert start.day == 1 and start.month == at.month
    assert end.month == at.month
    assert (end + SECOND).day == 1


def test_one_minute_worked_example():
    at = datetime(2024, 5, 1, 10, 0, 15)
    start, end = parse_period_time(at, PeriodType.M1)
    assert start == at.replace(second=0)
    assert end == at.replace(second=59)


def test_three_day_period_rolls_into_previous_month_on_first_day():
    at = datetime(2024, 5, 1, 10, 0, 15)
    start, end = parse_period_time(at, PeriodType.D3)
    assert start.month == at.month - 1
    assert (start + timedelta(days=1)).month == at.month
    assert start < at < end


def test_unknown_period_type_raises():
    with pytest.raises(ValueError):
        parse_period_time(datetime(2024, 5, 1), "x9")


def test_kline_defaults_empty_prices():
    start, end = parse_period_time(datetime(2024, 5, 1, 10), PeriodType.H1)
    candle = KLine(symbol="BTCUSDT", open_at=start, close_at=end, period=PeriodType.H1)
    assert candle.open is None and candle.amount is None
    assert candle.close_at - candle.open_at + SECOND == FIXED_LENGTHS[PeriodType.H1]