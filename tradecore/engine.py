"""The matching engine: limit order matching, market order execution and depth."""

from __future__ import annotations

import logging
import threading
import time
from collections import deque
from decimal import ROUND_DOWN, Decimal
from typing import Callable, Optional, Union

from tradecore.matching_types import (
    OrderSide,
    OrderType,
    RemoveResult,
    RemoveType,
    TradeBy,
    TradeResult,
)
from tradecore.order_queue import OrderQueue
from tradecore.orderbook import Level, build_order_book, slice_order_book
from tradecore.queue_item import Order

_IDLE_INTERVAL = 0.1
_DEBUG_INTERVAL = 1.0
_BOOK_INTERVAL = 0.05

_ZERO = Decimal(0)


class EngineClosedError(RuntimeError):
    """Raised when an engine that has been stopped is used again."""


class EnginePausedError(RuntimeError):
    """Raised when orders are submitted while the engine refuses new items."""


def _truncate(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)


class Engine:
    """Matches the orders of one trading pair.

    Limit orders rest in the ask and bid queues and are crossed by
    :meth:`match_once`, which the background thread started by :meth:`start`
    calls continuously. Market orders are executed against the opposite queue
    as soon as they are added. Trade and remove notifications are delivered to
    the registered callbacks in the order they were produced.
    """

    def __init__(
        self,
        symbol: str,
        *,
        price_decimals: int = 2,
        quantity_decimals: int = 4,
        debug: bool = False,
        min_trade_quantity: Union[Decimal, int, str] = 0,
        order_book_max_len: int = 50,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.symbol = symbol
        self.price_decimals = price_decimals
        self.quantity_decimals = quantity_decimals
        self.debug = debug
        self.min_trade_quantity = Decimal(min_trade_quantity)
        self.order_book_max_len = order_book_max_len
        self.pause_accept_item = False
        self.pause_matching = False
        self.asks = OrderQueue()
        self.bids = OrderQueue()
        self.logger = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        self._events: deque[Union[TradeResult, RemoveResult]] = deque()
        self._dispatch_lock = threading.RLock()
        self._on_trade: Optional[Callable[[TradeResult], None]] = None
        self._on_remove: Optional[Callable[[RemoveResult], None]] = None

        self._book_lock = threading.Lock()
        self._ask_book: list[Level] = []
        self._bid_book: list[Level] = []

        self._stop_event = threading.Event()
        self._threads: list[threading.Thread] = []
        self._closed = False

    # lifecycle

    def start(self) -> Engine:
        """Start the matching and depth threads."""
        if self._closed:
            raise EngineClosedError("engine is closed")
        if self._threads:
            return self
        self._threads = [
            threading.Thread(target=self._matching_loop, name=f"match-{self.symbol}", daemon=True),
            threading.Thread(target=self._book_loop, name=f"book-{self.symbol}", daemon=True),
        ]
        for thread in self._threads:
            thread.start()
        return self

    def stop(self) -> None:
        """Stop the background threads; the engine accepts no more orders."""
        self._closed = True
        self._stop_event.set()
        for thread in self._threads:
            thread.join()
        self._threads = []

    def __enter__(self) -> Engine:
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    # orders

    def add_item(self, item: Order) -> None:
        """Queue a limit order, or execute a market order right away."""
        with self._lock:
            if self._closed:
                raise EngineClosedError("engine is closed")
            if self.pause_accept_item:
                raise EnginePausedError("engine is paused")
            self.logger.debug("[matching] add item %r", item)

            if item.order_type is OrderType.LIMIT:
                queue = self.asks if item.side is OrderSide.SELL else self.bids
                queue.push(item)
            elif item.side is OrderSide.SELL:
                self._process_market_sell(item)
            else:
                self._process_market_buy(item)
        self._dispatch()

    def remove_item(
        self, side: OrderSide, unique_id: str, remove_type: RemoveType
    ) -> Optional[Order]:
        """Take an order off the book and report its removal."""
        with self._lock:
            if self._closed:
                raise EngineClosedError("engine is closed")
            queue = self.asks if OrderSide(side) is OrderSide.SELL else self.bids
            removed = queue.remove(unique_id)
            self._events.append(
                RemoveResult(symbol=self.symbol, unique_id=unique_id, type=RemoveType(remove_type))
            )
        self._dispatch()
        return removed

    def on_trade_result(self, fn: Optional[Callable[[TradeResult], None]]) -> None:
        """Register the callback that receives every trade."""
        self._on_trade = fn

    def on_remove_result(self, fn: Optional[Callable[[RemoveResult], None]]) -> None:
        """Register the callback that receives every removal."""
        self._on_remove = fn

    def clean(self) -> None:
        """Empty both queues; only honoured in debug mode."""
        if not self.debug:
            return
        with self._lock:
            self.asks.clean()
            self.bids.clean()
            with self._book_lock:
                self._ask_book = []
                self._bid_book = []

    # depth

    def ask_order_book(self, size: int) -> list[Level]:
        """The best ``size`` ask levels of the last depth snapshot."""
        with self._book_lock:
            return slice_order_book(self._ask_book, size)

    def bid_order_book(self, size: int) -> list[Level]:
        """The best ``size`` bid levels of the last depth snapshot."""
        with self._book_lock:
            return slice_order_book(self._bid_book, size)

    def refresh_order_book(self) -> None:
        """Rebuild the depth snapshot of both sides from the queues."""
        with self._lock:
            asks = build_order_book(
                self.asks, OrderSide.SELL, self.price_decimals,
                self.quantity_decimals, self.order_book_max_len,
            )
            bids = build_order_book(
                self.bids, OrderSide.BUY, self.price_decimals,
                self.quantity_decimals, self.order_book_max_len,
            )
        with self._book_lock:
            self._ask_book = asks
            self._bid_book = bids

    # limit matching

    def match_once(self) -> Optional[TradeResult]:
        """Cross the best bid and ask once; return the trade, if any."""
        with self._lock:
            result = self._match_top()
        self._dispatch()
        return result

    def _match_top(self) -> Optional[TradeResult]:
        if self.pause_matching or len(self.asks) == 0 or len(self.bids) == 0:
            return None

        ask_top = self.asks.top()
        bid_top = self.bids.top()
        try:
            if bid_top.price < ask_top.price:
                return None
            trade_qty = min(ask_top.quantity, bid_top.quantity)
            self.asks.set_quantity(ask_top, ask_top.quantity - trade_qty)
            self.bids.set_quantity(bid_top, bid_top.quantity - trade_qty)
            price = bid_top.price if ask_top.create_time >= bid_top.create_time else ask_top.price
            result = self._trade_result(ask_top, bid_top, price, trade_qty, "")
            self._events.append(result)
            return result
        finally:
            if ask_top.quantity == _ZERO:
                self.asks.remove(ask_top.unique_id)
            if bid_top.quantity == _ZERO:
                self.bids.remove(bid_top.unique_id)

    # market orders

    def _process_market_buy(self, item: Order) -> None:
        while self._market_buy_step(item):
            pass
        self._emit_system_remove(item)

    def _market_buy_step(self, item: Order) -> bool:
        if len(self.asks) == 0:
            return False
        ask = self.asks.top()
        places = self.quantity_decimals
        minimum = self.min_trade_quantity

        if item.order_type is OrderType.MARKET_QUANTITY:
            def max_qty(remain_amount: Decimal, price: Decimal, need: Decimal) -> Decimal:
                return _truncate(min(remain_amount / price, need), places)

            max_trade_qty = max_qty(item.amount, ask.price, item.quantity)
            if max_trade_qty < minimum:
                return False
            trade_qty = self._take(self.asks, ask, max_trade_qty)
            if trade_qty == _ZERO:
                return False

            item.quantity -= trade_qty
            item.amount -= trade_qty * ask.price
            last = (
                len(self.asks) == 0
                or item.quantity == _ZERO
                or max_qty(item.amount, self.asks.top().price, item.quantity) <= minimum
            )
        elif item.order_type is OrderType.MARKET_AMOUNT:
            if ask.price <= _ZERO:
                return False

            def max_qty(amount: Decimal, price: Decimal) -> Decimal:
                return _truncate(amount / price, places)

            max_trade_qty = max_qty(item.amount, ask.price)
            if max_trade_qty < minimum:
                return False
            trade_qty = self._take(self.asks, ask, max_trade_qty)
            if trade_qty == _ZERO:
                return False

            item.amount -= trade_qty * ask.price
            item.quantity += trade_qty
            last = (
                len(self.asks) == 0
                or item.quantity == _ZERO
                or max_qty(item.amount, self.asks.top().price) <= minimum
            )
        else:
            return False

        remainder = item.unique_id if last else ""
        self._events.append(self._trade_result(ask, item, ask.price, trade_qty, remainder))
        return True

    def _process_market_sell(self, item: Order) -> None:
        while self._market_sell_step(item):
            pass
        self._emit_system_remove(item)

    def _market_sell_step(self, item: Order) -> bool:
        if len(self.bids) == 0:
            return False
        bid = self.bids.top()
        places = self.quantity_decimals
        minimum = self.min_trade_quantity

        if item.order_type is OrderType.MARKET_QUANTITY:
            if item.quantity == _ZERO:
                return False
            if bid.quantity <= item.quantity:
                trade_qty = bid.quantity
                self.bids.remove(bid.unique_id)
            else:
                trade_qty = item.quantity
                self.bids.set_quantity(bid, bid.quantity - trade_qty)
            item.quantity -= trade_qty
            last = len(self.bids) == 0 or item.quantity == _ZERO
        elif item.order_type is OrderType.MARKET_AMOUNT:
            if bid.price <= _ZERO:
                return False

            def max_qty(amount: Decimal, price: Decimal, need: Decimal) -> Decimal:
                return _truncate(min(_truncate(amount / price, places), need), places)

            max_trade_qty = max_qty(item.amount, bid.price, item.quantity)
            if max_trade_qty < minimum:
                return False
            trade_qty = self._take(self.bids, bid, max_trade_qty)
            if trade_qty == _ZERO:
                return False

            item.amount -= trade_qty * bid.price
            # Selling by amount is capped by what the seller holds.
            item.quantity -= trade_qty
            last = (
                len(self.bids) == 0
                or max_qty(item.amount, self.bids.top().price, item.quantity) <= minimum
            )
        else:
            return False

        remainder = item.unique_id if last else ""
        self._events.append(self._trade_result(item, bid, bid.price, trade_qty, remainder))
        return True

    @staticmethod
    def _take(queue: OrderQueue, resting: Order, max_trade_qty: Decimal) -> Decimal:
        """Fill up to ``max_trade_qty`` of a resting order; return the filled size."""
        if resting.quantity <= max_trade_qty:
            queue.remove(resting.unique_id)
            return resting.quantity
        queue.set_quantity(resting, resting.quantity - max_trade_qty)
        return max_trade_qty

    def _emit_system_remove(self, item: Order) -> None:
        self._events.append(
            RemoveResult(symbol=self.symbol, unique_id=item.unique_id, type=RemoveType.BY_SYSTEM)
        )

    def _trade_result(
        self, ask: Order, bid: Order, price: Decimal, quantity: Decimal, remainder: str
    ) -> TradeResult:
        trade_by = TradeBy.BUYER if ask.create_time < bid.create_time else TradeBy.SELLER
        return TradeResult(
            symbol=self.symbol,
            ask_order_id=ask.unique_id,
            bid_order_id=bid.unique_id,
            trade_quantity=quantity,
            trade_price=price,
            trade_by=trade_by,
            trade_time=time.time_ns(),
            remainder_market_order_id=remainder,
        )

    # notifications and background work

    def _dispatch(self) -> None:
        with self._dispatch_lock:
            while True:
                try:
                    event = self._events.popleft()
                except IndexError:
                    return
                if isinstance(event, TradeResult):
                    self.logger.debug("[matching] trade %s", event)
                    if self._on_trade is not None:
                        self._on_trade(event)
                else:
                    self.logger.debug("[matching] remove %s", event)
                    if self._on_remove is not None:
                        self._on_remove(event)

    def _matching_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                traded = self.match_once() is not None
            except Exception:
                self.logger.exception("[matching] matching failed")
                traded = False
            if not traded:
                self._stop_event.wait(_IDLE_INTERVAL)
            elif self.debug:
                self._stop_event.wait(_DEBUG_INTERVAL)

    def _book_loop(self) -> None:
        while not self._stop_event.wait(_BOOK_INTERVAL):
            try:
                self.refresh_order_book()
            except Exception:
                self.logger.exception("[matching] order book refresh failed")