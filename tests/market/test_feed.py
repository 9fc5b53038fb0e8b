import asyncio

import pytest

from otcfeed.core.types import Phase, Tick
from otcfeed.market.feed import MarketFeed

MIN = 60_000_000


def _tick(price, ts_us=0, symbol="EUR/USD-OTC"):
    return Tick(symbol=symbol, price=price, ts_us=ts_us, phase=Phase.NORMAL, bid=price - 0.0001, ask=price + 0.0001)


def test_subscriber_sees_only_future_ticks():
    async def main():
        feed = MarketFeed()
        feed.publish(_tick(1.0))
        sub = feed.subscribe("EUR/USD-OTC")
        feed.publish(_tick(1.1))
        return await sub.get(timeout=1)

    assert asyncio.run(main()).price == 1.1


def test_full_queue_drops_oldest():
    async def main():
        feed = MarketFeed(buffer=2)
        sub = feed.subscribe("EUR/USD-OTC")
        for p in (1.0, 1.1, 1.2):
            feed.publish(_tick(p))
        got = [await sub.get(timeout=1), await sub.get(timeout=1)]
        return got, sub.dropped

    got, dropped = asyncio.run(main())
    assert [t.price for t in got] == [1.1, 1.2]
    assert dropped == 1


def test_close_ends_iteration():
    async def main():
        feed = MarketFeed()
        sub = feed.subscribe("EUR/USD-OTC")
        feed.publish(_tick(1.0))
        feed.publish(_tick(1.1))
        sub.close()
        feed.publish(_tick(1.2))   # after close, not delivered
        return [t.price async for t in sub], feed.subscriber_count("EUR/USD-OTC")

    prices, remaining = asyncio.run(main())
    assert prices == [1.0, 1.1]
    assert remaining == 0


def test_symbol_filter_and_wildcard():
    async def main():
        feed = MarketFeed()
        eur = feed.subscribe("EUR/USD-OTC")
        everything = feed.subscribe()
        feed.publish(_tick(1.3, symbol="GBP/USD-OTC"))
        feed.publish(_tick(1.0))
        return await eur.get(timeout=1), [await everything.get(timeout=1) for _ in range(2)]

    eur_tick, all_ticks = asyncio.run(main())
    assert eur_tick.symbol == "EUR/USD-OTC"
    assert [t.symbol for t in all_ticks] == ["GBP/USD-OTC", "EUR/USD-OTC"]


def test_latest_price_and_forget():
    feed = MarketFeed()
    assert feed.get_latest_price("EUR/USD-OTC") is None
    feed.publish(_tick(1.0))
    feed.publish(_tick(1.1))
    assert feed.get_latest_price("EUR/USD-OTC").price == 1.1

    feed.forget("EUR/USD-OTC")
    assert feed.get_latest_price("EUR/USD-OTC") is None
    assert feed.get_live_candle("EUR/USD-OTC") is None


def test_live_candle_tracks_ohlc_and_rolls_on_bucket_change():
    feed = MarketFeed(candle_interval_us=MIN)
    for ts, p in [(MIN, 1.0), (MIN + 10, 1.3), (MIN + 20, 0.9), (MIN + 30, 1.1)]:
        feed.publish(_tick(p, ts_us=ts))

    live = feed.get_live_candle("EUR/USD-OTC")
    assert (live.ts_us, live.open, live.high, live.low, live.close) == (MIN, 1.0, 1.3, 0.9, 1.1)
    assert live.tick_count == 4

    feed.publish(_tick(1.2, ts_us=2 * MIN + 5))
    done = feed.last_completed_candle("EUR/USD-OTC")
    assert done.close == 1.1
    assert feed.get_live_candle("EUR/USD-OTC").open == 1.2


def test_roll_candle():
    feed = MarketFeed()
    assert feed.roll_candle("EUR/USD-OTC") is None
    feed.publish(_tick(1.0))
    feed.publish(_tick(1.05))
    candle = feed.roll_candle("EUR/USD-OTC")
    assert (candle.open, candle.close, candle.tick_count) == (1.0, 1.05, 2)
    assert feed.get_live_candle("EUR/USD-OTC") is None


def test_get_times_out_without_ticks():
    async def main():
        sub = MarketFeed().subscribe("EUR/USD-OTC")
        await sub.get(timeout=0.01)

    with pytest.raises(asyncio.TimeoutError):
        asyncio.run(main())
