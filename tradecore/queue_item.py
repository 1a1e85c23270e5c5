"""Orders as they sit in the ask and bid queues of the matching engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import ClassVar, Union

from tradecore.matching_types import OrderSide, OrderType

Number = Union[Decimal, int, str, float]


def _to_decimal(value: Number) -> Decimal:
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


@dataclass(eq=False)
class Order:
    """Common state of a queued order.

    ``amount`` only matters for market orders; limit orders leave it at zero.
    Orders compare by identity, as they are mutated while queued.
    """

    unique_id: str
    price: Decimal
    quantity: Decimal
    create_time: int
    order_type: OrderType = OrderType.LIMIT
    amount: Decimal = field(default_factory=Decimal)

    side: ClassVar[OrderSide]

    def __post_init__(self) -> None:
        self.price = _to_decimal(self.price)
        self.quantity = _to_decimal(self.quantity)
        self.amount = _to_decimal(self.amount)
        self.order_type = OrderType(self.order_type)


@dataclass(eq=False)
class AskItem(Order):
    """A sell order: the lowest price, then the earliest, comes first."""

    side: ClassVar[OrderSide] = OrderSide.SELL

    @property
    def sort_key(self) -> tuple[Decimal, int]:
        return (self.price, self.create_time)

    def less(self, other: AskItem) -> bool:
        """Whether this order has priority over ``other``."""
        if not isinstance(other, AskItem):
            raise TypeError("an ask can only be compared with another ask")
        return self.price < other.price or (
            self.price == other.price and self.create_time < other.create_time
        )


@dataclass(eq=False)
class BidItem(Order):
    """A buy order: the highest price, then the earliest, comes first."""

    side: ClassVar[OrderSide] = OrderSide.BUY

    @property
    def sort_key(self) -> tuple[Decimal, int]:
        return (-self.price, self.create_time)

    def less(self, other: BidItem) -> bool:
        """Whether this order has priority over ``other``."""
        if not isinstance(other, BidItem):
            raise TypeError("a bid can only be compared with another bid")
        return self.price > other.price or (
            self.price == other.price and self.create_time < other.create_time
        )


def new_ask_item(
    order_type: OrderType,
    unique_id: str,
    price: Number,
    quantity: Number,
    amount: Number,
    create_time: int,
) -> AskItem:
    return AskItem(unique_id, price, quantity, create_time, order_type, amount)


def new_ask_limit_item(unique_id: str, price: Number, quantity: Number, create_time: int) -> AskItem:
    return new_ask_item(OrderType.LIMIT, unique_id, price, quantity, 0, create_time)


def new_ask_market_qty_item(unique_id: str, quantity: Number, create_time: int) -> AskItem:
    return new_ask_item(OrderType.MARKET_QUANTITY, unique_id, 0, quantity, 0, create_time)


def new_ask_market_amount_item(
    unique_id: str, amount: Number, max_hold_qty: Number, create_time: int
) -> AskItem:
    """A market sell for an amount, capped by the quantity the seller holds."""
    return new_ask_item(OrderType.MARKET_AMOUNT, unique_id, 0, max_hold_qty, amount, create_time)


def new_bid_item(
    order_type: OrderType,
    unique_id: str,
    price: Number,
    quantity: Number,
    amount: Number,
    create_time: int,
) -> BidItem:
    return BidItem(unique_id, price, quantity, create_time, order_type, amount)


def new_bid_limit_item(unique_id: str, price: Number, quantity: Number, create_time: int) -> BidItem:
    return new_bid_item(OrderType.LIMIT, unique_id, price, quantity, 0, create_time)


def new_bid_market_qty_item(
    unique_id: str, quantity: Number, max_amount: Number, create_time: int
) -> BidItem:
    """A market buy for a quantity, capped by the funds available."""
    return new_bid_item(OrderType.MARKET_QUANTITY, unique_id, 0, quantity, max_amount, create_time)


def new_bid_market_amount_item(unique_id: str, amount: Number, create_time: int) -> BidItem:
    return new_bid_item(OrderType.MARKET_AMOUNT, unique_id, 0, 0, amount, create_time)