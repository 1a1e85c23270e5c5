"""A price-time priority queue of orders, addressable by order id."""

from __future__ import annotations

import threading
from bisect import bisect_left, insort_right
from decimal import Decimal
from typing import Callable, Iterator, Optional

from tradecore.queue_item import Order


def _sort_key(item: Order):
    return item.sort_key


class OrderQueue:
    """Orders of one side of the book, best first.

    ``on_event_update`` is called with an order when it is added or its
    quantity changes; ``on_event_remove`` when it is removed.
    """

    def __init__(self) -> None:
        self._items: list[Order] = []
        self._by_id: dict[str, Order] = {}
        self._lock = threading.RLock()
        self.on_event_update: Optional[Callable[[Order], None]] = None
        self.on_event_remove: Optional[Callable[[Order], None]] = None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Order]:
        with self._lock:
            snapshot = list(self._items)
        return iter(snapshot)

    def push(self, item: Order) -> bool:
        """Add an order; return True if one with its id was already queued."""
        with self._lock:
            if item.unique_id in self._by_id:
                return True
            insort_right(self._items, item, key=_sort_key)
            self._by_id[item.unique_id] = item
        if self.on_event_update is not None:
            self.on_event_update(item)
        return False

    def get(self, index: int) -> Optional[Order]:
        """The order at ``index`` in priority order, or None past the end."""
        with self._lock:
            if 0 <= index < len(self._items):
                return self._items[index]
            return None

    def top(self) -> Optional[Order]:
        """The order with the highest priority, or None when empty."""
        return self.get(0)

    def remove(self, unique_id: str) -> Optional[Order]:
        """Take the order with ``unique_id`` out; None if it is not queued."""
        with self._lock:
            item = self._by_id.pop(unique_id, None)
            if item is None:
                return None
            pos = bisect_left(self._items, item.sort_key, key=_sort_key)
            while self._items[pos] is not item:
                pos += 1
            del self._items[pos]
        if self.on_event_remove is not None:
            self.on_event_remove(item)
        return item

    def set_quantity(self, item: Order, quantity: Decimal) -> Order:
        """Change an order's remaining quantity and report the update."""
        item.quantity = Decimal(quantity)
        if self.on_event_update is not None:
            self.on_event_update(item)
        return item

    def clean(self) -> None:
        """Drop every order."""
        with self._lock:
            self._items = []
            self._by_id = {}