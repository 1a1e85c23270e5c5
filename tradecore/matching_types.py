"""Value types shared by the matching engine and its consumers."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum, IntEnum
from typing import Any


class OrderType(str, Enum):
    """Kind of order submitted to the engine."""

    LIMIT = "limit"
    MARKET = "market"
    MARKET_QUANTITY = "marketQty"
    MARKET_AMOUNT = "marketAmount"

    def __str__(self) -> str:
        return _ORDER_TYPE_NAMES.get(self, "limit")


_ORDER_TYPE_NAMES = {
    OrderType.MARKET: "market",
    OrderType.MARKET_AMOUNT: "market_amount",
    OrderType.MARKET_QUANTITY: "market_qty",
}


class OrderSide(str, Enum):
    """Side of the book an order belongs to."""

    BUY = "bid"
    SELL = "ask"

    def __str__(self) -> str:
        return "ask" if self is OrderSide.SELL else "bid"


class TradeBy(IntEnum):
    """Which side took liquidity in a trade."""

    SELLER = 1
    BUYER = 2


class RemoveType(IntEnum):
    """Reason an order left the book."""

    BY_SYSTEM = 1
    BY_USER = 2
    BY_PARTIAL = 3


def _decimal_str(value: Decimal) -> str:
    """Render a decimal in plain notation without trailing zeros."""
    text = format(Decimal(value).normalize(), "f")
    return "0" if text in ("-0", "") else text


@dataclass
class TradeResult:
    """A single fill produced by the matching engine.

    ``trade_time`` is in nanoseconds. ``remainder_market_order_id`` marks the
    final fill of a market order, whose unfilled remainder is to be cancelled.
    """

    symbol: str = ""
    ask_order_id: str = ""
    bid_order_id: str = ""
    trade_quantity: Decimal = field(default_factory=Decimal)
    trade_price: Decimal = field(default_factory=Decimal)
    trade_by: TradeBy | None = None
    trade_time: int = 0
    remainder_market_order_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "symbol": self.symbol,
            "ask": self.ask_order_id,
            "bid": self.bid_order_id,
            "trade_quantity": _decimal_str(self.trade_quantity),
            "trade_price": _decimal_str(self.trade_price),
            "trade_by": int(self.trade_by) if self.trade_by is not None else 0,
            "trade_time": self.trade_time,
            "remainder_market_order_id": self.remainder_market_order_id,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, data: str | bytes) -> TradeResult:
        raw = json.loads(data)
        trade_by = raw.get("trade_by", 0)
        return cls(
            symbol=raw.get("symbol", ""),
            ask_order_id=raw.get("ask", ""),
            bid_order_id=raw.get("bid", ""),
            trade_quantity=Decimal(str(raw.get("trade_quantity", "0"))),
            trade_price=Decimal(str(raw.get("trade_price", "0"))),
            trade_by=TradeBy(trade_by) if trade_by else None,
            trade_time=int(raw.get("trade_time", 0)),
            remainder_market_order_id=raw.get("remainder_market_order_id", ""),
        )


@dataclass
class RemoveResult:
    """Notification that an order was taken off the book."""

    symbol: str
    unique_id: str
    type: RemoveType

    def to_json(self) -> str:
        return json.dumps(
            {"symbol": self.symbol, "unique_id": self.unique_id, "type": int(self.type)},
            separators=(",", ":"),
        )