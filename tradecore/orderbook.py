"""Aggregation of queued orders into price levels for depth snapshots."""

from __future__ import annotations

from decimal import ROUND_HALF_EVEN, Decimal
from typing import Iterable, Mapping, Sequence, Union

from tradecore.matching_types import OrderSide
from tradecore.queue_item import Order

Level = tuple[str, str]


def _fixed_bank(value: Decimal, places: int) -> str:
    """Round half to even to ``places`` digits and render them all."""
    rounded = Decimal(value).quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_EVEN)
    text = format(rounded, "f")
    if text.startswith("-") and Decimal(text) == 0:
        text = text[1:]
    return text


def sort_levels(levels: Union[Mapping[str, str], Iterable[Level]], side: OrderSide) -> list[Level]:
    """Order price levels: ascending for asks, descending for bids."""
    pairs = list(levels.items()) if isinstance(levels, Mapping) else list(levels)
    return sorted(
        pairs,
        key=lambda level: Decimal(level[0]),
        reverse=OrderSide(side) is not OrderSide.SELL,
    )


def build_order_book(
    items: Iterable[Order],
    side: OrderSide,
    price_decimals: int,
    quantity_decimals: int,
    max_len: int,
) -> list[Level]:
    """Sum order quantities per rounded price and return the sorted levels.

    Collection stops once more than ``max_len`` levels have been gathered.
    """
    levels: dict[str, str] = {}
    for item in items:
        if len(levels) > max_len:
            break
        price = _fixed_bank(item.price, price_decimals)
        total = Decimal(levels[price]) + item.quantity if price in levels else item.quantity
        levels[price] = _fixed_bank(total, quantity_decimals)
    return sort_levels(levels, side)


def slice_order_book(book: Sequence[Level], size: int) -> list[Level]:
    """The first ``size`` levels; all of them when ``size`` is not positive."""
    if size <= 0 or size > len(book):
        size = len(book)
    return list(book[:size])