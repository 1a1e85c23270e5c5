"""Candlestick aggregation of trades, kept in a key-value cache."""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import ROUND_HALF_EVEN, Decimal, InvalidOperation
from typing import Any, Optional, Union

from tradecore.matching_types import TradeResult
from tradecore.periods import KLine, PeriodType, parse_period_time

_LOCK_SECONDS = 10
_DAY_SECONDS = 3600 * 24


class KLineLockError(RuntimeError):
    """Raised when another computation holds the lock on a candlestick."""


def cache_key(symbol: str, open_at: datetime, close_at: datetime) -> str:
    """The cache key of a symbol's candlestick between two instants."""
    return f"kline:{symbol}:{int(open_at.timestamp())}:{int(close_at.timestamp())}"


class _MemoryStore:
    """An in-process key-value store with the calls the aggregator needs."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._lock = threading.Lock()

    def _live(self, name: str) -> Optional[tuple[str, Optional[float]]]:
        entry = self._data.get(name)
        if entry is None:
            return None
        _, deadline = entry
        if deadline is not None and deadline <= time.monotonic():
            del self._data[name]
            return None
        return entry

    def set(
        self,
        name: str,
        value: Any,
        ex: Union[int, timedelta, None] = None,
        nx: bool = False,
    ) -> Optional[bool]:
        with self._lock:
            if nx and self._live(name) is not None:
                return None
            deadline = None
            if ex is not None:
                seconds = ex.total_seconds() if isinstance(ex, timedelta) else ex
                deadline = time.monotonic() + seconds
            self._data[name] = (str(value), deadline)
            return True

    def get(self, name: str) -> Optional[str]:
        with self._lock:
            entry = self._live(name)
            return None if entry is None else entry[0]

    def delete(self, *names: str) -> int:
        with self._lock:
            removed = 0
            for name in names:
                if self._live(name) is not None:
                    del self._data[name]
                    removed += 1
            return removed

    def expire(self, name: str, seconds: Union[int, timedelta]) -> bool:
        with self._lock:
            entry = self._live(name)
            if entry is None:
                return False
            if isinstance(seconds, timedelta):
                seconds = seconds.total_seconds()
            self._data[name] = (entry[0], time.monotonic() + seconds)
            return True

    def ttl(self, name: str) -> int:
        with self._lock:
            entry = self._live(name)
            if entry is None:
                return -2
            if entry[1] is None:
                return -1
            return int(entry[1] - time.monotonic())


@dataclass
class _Cached:
    """A candlestick together with the times of its opening and closing trades."""

    data: KLine
    open_last_time: int = 0
    close_last_time: int = 0

    def to_json(self) -> str:
        d = self.data
        return json.dumps(
            {
                "Data": {
                    "Symbol": d.symbol,
                    "OpenAt": d.open_at.isoformat(),
                    "CloseAt": d.close_at.isoformat(),
                    "Open": d.open,
                    "High": d.high,
                    "Low": d.low,
                    "Close": d.close,
                    "Volume": d.volume,
                    "Amount": d.amount,
                    "Period": d.period.value,
                },
                "OpenLastTime": self.open_last_time,
                "CloseLastTime": self.close_last_time,
            },
            separators=(",", ":"),
        )


def _plain(value: Decimal) -> str:
    text = format(value.normalize(), "f")
    return "0" if text in ("-0", "") else text


def _fixed_bank(value: Decimal, places: int) -> str:
    rounded = value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)
    text = format(rounded, "f")
    if text.startswith("-") and rounded == 0:
        text = text[1:]
    return text


class KLineAggregator:
    """Folds trades of one symbol into candlesticks held in a cache.

    ``store`` is any client offering ``set(name, value, ex=, nx=)``, ``get``,
    ``delete`` and ``expire`` in the manner of a Redis client; an in-process
    store is used when none is given.
    """

    def __init__(
        self,
        symbol: str,
        store: Any = None,
        *,
        price_precision: int = 2,
        quantity_precision: int = 2,
        amount_precision: int = 2,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.symbol = symbol
        self.store = store if store is not None else _MemoryStore()
        self.price_precision = price_precision
        self.quantity_precision = quantity_precision
        self.amount_precision = amount_precision
        self.logger = logger or logging.getLogger(__name__)

    def clean_cache(self, open_at: datetime, close_at: datetime) -> None:
        """Drop the cached candlestick between ``open_at`` and ``close_at``."""
        self.store.delete(cache_key(self.symbol, open_at, close_at))

    def get_formatted_data(self, period_type: PeriodType, trade_result: TradeResult) -> KLine:
        """Like :meth:`get_data`, with every figure rounded to its precision."""
        data = self.get_data(period_type, trade_result)
        data.open = _fixed_bank(self._decimal(data.open), self.price_precision)
        data.high = _fixed_bank(self._decimal(data.high), self.price_precision)
        data.low = _fixed_bank(self._decimal(data.low), self.price_precision)
        data.close = _fixed_bank(self._decimal(data.close), self.price_precision)
        data.volume = _fixed_bank(self._decimal(data.volume), self.quantity_precision)
        data.amount = _fixed_bank(self._decimal(data.amount), self.amount_precision)
        return data

    def get_data(self, period_type: PeriodType, trade_result: TradeResult) -> KLine:
        """Fold a trade into its candlestick of ``period_type`` and return it."""
        period_type = PeriodType(period_type)
        trade_at = datetime.fromtimestamp(trade_result.trade_time // 1_000_000_000)
        open_at, close_at = parse_period_time(trade_at, period_type)
        key = cache_key(self.symbol, open_at, close_at)

        lock_key = f"lock:{key}"
        if not self.store.set(lock_key, 1, ex=_LOCK_SECONDS, nx=True):
            self.logger.warning("[kline] failed to acquire lock for kline calculation")
            raise KLineLockError("failed to acquire lock for kline calculation")
        try:
            cached = self._load(key, period_type, open_at, close_at)
            self._fold(cached, trade_result)
            data = KLine(
                symbol=self.symbol,
                open_at=open_at,
                close_at=close_at,
                period=period_type,
                open=cached.data.open,
                high=cached.data.high,
                low=cached.data.low,
                close=cached.data.close,
                volume=cached.data.volume,
                amount=cached.data.amount,
            )
            record = _Cached(data, cached.open_last_time, cached.close_last_time)
            self.store.set(key, record.to_json())

            ttl = int(close_at.timestamp()) - int(time.time()) + _DAY_SECONDS
            if ttl < 0:
                ttl = _DAY_SECONDS
            self.store.expire(key, ttl)
            return KLine(**vars(data))
        finally:
            self.store.delete(lock_key)

    def _load(
        self, key: str, period_type: PeriodType, open_at: datetime, close_at: datetime
    ) -> _Cached:
        empty = KLine(symbol=self.symbol, open_at=open_at, close_at=close_at, period=period_type)
        raw = self.store.get(key)
        if raw is None:
            return _Cached(empty)
        if isinstance(raw, bytes):
            raw = raw.decode()
        try:
            body = json.loads(raw)
        except ValueError:
            self.logger.error("[kline] unmarshal kline cache data failed")
            raise
        fields = body.get("Data") or {}
        empty.open = fields.get("Open")
        empty.high = fields.get("High")
        empty.low = fields.get("Low")
        empty.close = fields.get("Close")
        empty.volume = fields.get("Volume")
        empty.amount = fields.get("Amount")
        return _Cached(
            empty,
            int(body.get("OpenLastTime", 0)),
            int(body.get("CloseLastTime", 0)),
        )

    def _fold(self, cached: _Cached, trade: TradeResult) -> None:
        data = cached.data
        price = Decimal(trade.trade_price)
        quantity = Decimal(trade.trade_quantity)
        price_text = _plain(price)

        if data.open is None or trade.trade_time < cached.open_last_time:
            data.open = price_text
            cached.open_last_time = trade.trade_time

        if data.high is None or price > self._decimal(data.high):
            data.high = price_text

        if data.low is None or price < self._decimal(data.low):
            data.low = price_text

        if data.close is None or trade.trade_time > cached.close_last_time:
            data.close = price_text
            cached.close_last_time = trade.trade_time

        if data.volume is None:
            data.volume = _plain(quantity)
        else:
            data.volume = _plain(self._decimal(data.volume) + quantity)

        amount = price * quantity
        if data.amount is None:
            data.amount = _plain(amount)
        else:
            data.amount = _plain(self._decimal(data.amount) + amount)

    def _decimal(self, text: Optional[str]) -> Decimal:
        try:
            return Decimal(text)
        except (InvalidOperation, TypeError, ValueError):
            self.logger.error("[kline] new decimal from string failed: %r", text)
            return Decimal(0)