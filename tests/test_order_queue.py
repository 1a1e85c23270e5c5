from decimal import Decimal

import pytest

from tradecore.order_queue import OrderQueue
from tradecore.queue_item import new_ask_limit_item, new_bid_limit_item


def d(value: str) -> Decimal:
    return Decimal(value)


@pytest.fixture
def ask_queue():
    queue = OrderQueue()
    queue.push(new_ask_limit_item("1", d("1.8"), d("1"), 11111111))
    queue.push(new_ask_limit_item("2", d("0.99"), d("10"), 11111111))
    queue.push(new_ask_limit_item("3", d("1.1"), d("12"), 11111111))
    queue.push(new_ask_limit_item("5", d("1.1"), d("12"), 11111110))
    return queue


@pytest.fixture
def bid_queue():
    queue = OrderQueue()
    queue.push(new_bid_limit_item("1", d("1.8"), d("1"), 11111111))
    queue.push(new_bid_limit_item("2", d("0.99"), d("10"), 11111111))
    queue.push(new_bid_limit_item("3", d("1.1"), d("12"), 11111111))
    queue.push(new_bid_limit_item("5", d("1.1"), d("12"), 11111110))
    return queue


def test_ask_queue_order(ask_queue):
    assert len(ask_queue) == 4
    top = ask_queue.top()
    assert top.unique_id == "2"
    assert top.price == d("0.99")
    assert top.quantity == d("10")


def test_ask_queue_lower_price_becomes_top(ask_queue):
    ask_queue.push(new_ask_limit_item("4", d("0.01"), d("10"), 11111111))
    assert ask_queue.top().unique_id == "4"


def test_ask_queue_update_top(ask_queue):
    ask_queue.push(new_ask_limit_item("4", d("0.01"), d("10"), 11111111))
    top = ask_queue.top()
    top.quantity = d("10.01")
    top.amount = d("102")
    assert ask_queue.top().amount == d("102")
    assert ask_queue.top().quantity == d("10.01")


def test_ask_queue_remove(ask_queue):
    ask_queue.push(new_ask_limit_item("4", d("0.01"), d("10"), 11111111))
    assert len(ask_queue) == 5
    removed = ask_queue.remove("4")
    assert removed.unique_id == "4"
    assert len(ask_queue) == 4
    assert ask_queue.top().unique_id == "2"


def test_bid_queue_order(bid_queue):
    assert len(bid_queue) == 4
    top = bid_queue.top()
    assert top.unique_id == "1"
    assert top.price == d("1.8")
    assert top.quantity == d("1")


def test_bid_queue_higher_price_becomes_top(bid_queue):
    bid_queue.push(new_bid_limit_item("4", d("2"), d("10"), 11111111))
    assert bid_queue.top().unique_id == "4"


def test_bid_queue_update_top(bid_queue):
    bid_queue.push(new_bid_limit_item("4", d("2"), d("10"), 11111111))
    top = bid_queue.top()
    top.quantity = d("10.01")
    top.amount = d("102")
    assert bid_queue.top().amount == d("102")
    assert bid_queue.top().quantity == d("10.01")


def test_bid_queue_remove(bid_queue):
    bid_queue.push(new_bid_limit_item("4", d("2"), d("10"), 11111111))
    assert len(bid_queue) == 5
    removed = bid_queue.remove("4")
    assert removed.unique_id == "4"
    assert len(bid_queue) == 4


def test_iteration_is_priority_order(ask_queue, bid_queue):
    assert [item.unique_id for item in ask_queue] == ["2", "5", "3", "1"]
    assert [item.unique_id for item in bid_queue] == ["1", "5", "3", "2"]


def test_push_duplicate_id_is_reported(ask_queue):
    assert ask_queue.push(new_ask_limit_item("2", d("5"), d("1"), 1)) is True
    assert len(ask_queue) == 4
    assert ask_queue.top().price == d("0.99")


def test_push_new_id_returns_false():
    queue = OrderQueue()
    assert queue.push(new_ask_limit_item("x", d("1"), d("1"), 1)) is False
    assert len(queue) == 1


def test_get_out_of_range_is_none(ask_queue):
    assert ask_queue.get(4) is None
    assert ask_queue.get(-1) is None
    assert ask_queue.get(3).unique_id == "1"


def test_top_of_empty_queue_is_none():
    assert OrderQueue().top() is None


def test_remove_unknown_id_is_none(ask_queue):
    assert ask_queue.remove("missing") is None
    assert len(ask_queue) == 4


def test_remove_among_equal_keys_picks_right_order():
    queue = OrderQueue()
    queue.push(new_ask_limit_item("a", d("1"), d("1"), 1))
    queue.push(new_ask_limit_item("b", d("1"), d("2"), 1))
    queue.push(new_ask_limit_item("c", d("1"), d("3"), 1))
    assert queue.remove("b").quantity == d("2")
    assert [item.unique_id for item in queue] == ["a", "c"]


def test_set_quantity_and_callbacks():
    queue = OrderQueue()
    updated, removed = [], []
    queue.on_event_update = updated.append
    queue.on_event_remove = removed.append
    item = new_ask_limit_item("a", d("1"), d("5"), 1)
    queue.push(item)
    result = queue.set_quantity(item, d("3"))
    assert result is item
    assert item.quantity == d("3")
    assert updated == [item, item]
    queue.remove("a")
    assert removed == [item]


def test_clean_empties_queue(ask_queue):
    ask_queue.clean()
    assert len(ask_queue) == 0
    assert ask_queue.top() is None
    assert ask_queue.push(new_ask_limit_item("2", d("1"), d("1"), 1)) is False