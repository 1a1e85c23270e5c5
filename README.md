# tradecore

Building blocks for a small exchange backend:

- a price/time priority **matching engine** for limit orders and for market
  orders placed by quantity or by amount;
- **order queues** and aggregated **order book depth**;
- **K-line (candlestick) aggregation** over fixed periods, from one minute to
  one month;
- a uniform **API response** envelope;
- a small **thread-pool executor** for running batches of tasks.

The package uses only the standard library. Prices, quantities and amounts
are `decimal.Decimal` values; the order factories also accept `int`, `str`
and `float` and convert them.

## Orders and queues

Orders are created with the factory functions in `tradecore.queue_item`:

```python
from decimal import Decimal

from tradecore.order_queue import OrderQueue
from tradecore.queue_item import new_ask_limit_item

asks = OrderQueue()
asks.push(new_ask_limit_item("1", Decimal("1.8"), Decimal("1"), 11111111))
asks.push(new_ask_limit_item("2", Decimal("0.99"), Decimal("10"), 11111111))

top = asks.top()          # the cheapest ask comes first
len(asks)                 # 2
asks.remove("2")          # remove an order by its unique id; returns it
```

`AskItem` orders the lowest price first, `BidItem` the highest price first;
orders at the same price are ordered by creation time. `push` returns `True`
and leaves the queue alone if an order with the same id is already queued.
`get(index)`, `top()` and `remove(unique_id)` return `None` when there is no
such order. `set_quantity(item, quantity)` changes a queued order's remaining
quantity, and `clean()` empties the queue. The optional `on_event_update` and
`on_event_remove` attributes are called with an order when it is added or
updated, and when it is removed.

Market orders have their own factories:

| Function | Meaning |
| --- | --- |
| `new_bid_market_qty_item(unique_id, quantity, max_amount, create_time)` | buy a quantity, spending at most `max_amount` |
| `new_bid_market_amount_item(unique_id, amount, create_time)` | buy as much as `amount` pays for |
| `new_ask_market_qty_item(unique_id, quantity, create_time)` | sell a quantity |
| `new_ask_market_amount_item(unique_id, amount, max_hold_qty, create_time)` | sell for `amount`, never more than `max_hold_qty` |

## The matching engine

`tradecore.engine.Engine` keeps one ask queue (`asks`) and one bid queue
(`bids`) for a symbol:

```python
from tradecore.engine import Engine
from tradecore.queue_item import new_ask_limit_item, new_bid_limit_item

trades = []
with Engine("btcusdt", price_decimals=2, quantity_decimals=2) as engine:
    engine.on_trade_result(trades.append)
    engine.add_item(new_ask_limit_item("a1", "1.1", "1.2", 1))
    engine.add_item(new_bid_limit_item("b1", "1.1", "1.2", 2))
    engine.match_once()
```

Keyword options: `price_decimals` (default 2), `quantity_decimals` (4),
`debug` (`False`), `min_trade_quantity` (0), `order_book_max_len` (50) and
`logger`. The attributes `pause_accept_item` and `pause_matching` stop new
orders and limit matching.

- Limit orders rest in the queues. `match_once()` crosses the best bid and
  ask once and returns the `TradeResult`, or `None`. The price is that of the
  older order; `trade_by` is `TradeBy.BUYER` when the ask was older,
  otherwise `TradeBy.SELLER`.
- Market orders are executed inside `add_item` against the opposite queue.
  When execution ends, a `RemoveResult` of type `RemoveType.BY_SYSTEM` is
  reported for the order, so that any unfilled rest can be cancelled; its
  last fill carries the order id in `remainder_market_order_id`.
- `remove_item(side, unique_id, remove_type)` takes an order off the book,
  reports a `RemoveResult` of the given type and returns the order, if any.

Callbacks registered with `on_trade_result(fn)` and `on_remove_result(fn)`
receive results in the order they were produced.

`start()` (or entering the `with` block) starts a thread that calls
`match_once()` continuously and one that calls `refresh_order_book()` every
50 ms; `stop()` ends them. Adding an order while `pause_accept_item` is set
raises `EnginePausedError`; using a stopped engine raises
`EngineClosedError`. `clean()` empties both queues, but only in debug mode.

`ask_order_book(size)` and `bid_order_book(size)` read the last depth
snapshot (a size of `0` or less returns every level). Each level is a pair of
strings `(price, quantity)`, rounded with banker's rounding to the engine's
decimals, for example `[("1.01", "4.00"), ("1.10", "2.00")]`.

`tradecore.orderbook` exposes the same depth logic as plain functions:
`build_order_book(items, side, price_decimals, quantity_decimals, max_len)`,
`sort_levels(levels, side)` and `slice_order_book(book, size)`.

## Trade and remove results

`tradecore.matching_types` defines `OrderType`, `OrderSide`, `TradeBy`,
`RemoveType`, `TradeResult` and `RemoveResult`. A `TradeResult` carries the
ask and bid order ids, price, quantity, the side that took liquidity, a
nanosecond timestamp and `remainder_market_order_id`.
`TradeResult.to_json()` and `TradeResult.from_json(data)` convert to and from
JSON; `RemoveResult.to_json()` serialises a removal.

## K-lines

`tradecore.periods` names the supported periods (`PeriodType`: `m1`, `m3`,
`m5`, `m15`, `m30`, `h1`, `h2`, `h4`, `h6`, `h8`, `h12`, `d1`, `d3`, `w1`,
`mn`):

```python
from datetime import datetime

from tradecore.periods import parse_period, parse_period_time

period = parse_period("M15")                 # case-insensitive
start, end = parse_period_time(datetime(2024, 5, 1, 10, 7, 30), period)
# start is 10:00:00, end is 10:14:59
```

An unknown period name raises `ValueError`. `periods()` lists them all.

`tradecore.kline.KLineAggregator(symbol, store=None, *, price_precision=2,
quantity_precision=2, amount_precision=2, logger=None)` folds trade results
into the `KLine` of their period, using local time: open and close follow
trade time (so late trades are placed correctly), high and low track the
extremes, and volume and amount are summed.

- `get_data(period_type, trade_result)` returns the candle with raw values;
- `get_formatted_data(period_type, trade_result)` returns it rounded to the
  configured precisions;
- `clean_cache(open_at, close_at)` drops a stored candle;
- `cache_key(symbol, open_at, close_at)` gives the key a candle is stored
  under.

Candles are kept in `store`, any client with Redis-style `set(name, value,
ex=, nx=)`, `get`, `delete` and `expire`; without one, an in-process store is
used. If another caller holds the lock on the same candle, `KLineLockError`
is raised.

## Responses

```python
from tradecore.response import fail, success

success().to_dict()                                  # {"code": 0}
success().with_data("hi").to_dict()                  # {"code": 0, "data": "hi"}
fail().to_dict()                                     # {"code": 2, "message": "unknown error"}
fail().with_error(21000, "custom error").to_json()   # '{"code":21000,"message":"custom error"}'
```

Empty messages and missing data are left out of the output.

## Running tasks in parallel

```python
from tradecore.concurrency import Executor

executor = Executor(5)
for i in range(20):
    executor.execute(lambda i=i: i * i)
results = executor.run()   # all 20 results, in completion order
```

A worker count below 1 raises `ValueError`.

## What this package does not do

It is a library only: there is no command-line program, no HTTP or other
network API, no user accounts, balances or settlement, and no database. The
engine's queues live in memory and are lost when the process ends; K-line
candles persist only as long as the store given to `KLineAggregator` keeps
them.