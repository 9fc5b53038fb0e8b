# otcfeed/market/feed.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Dict, Optional, Set

from otcfeed.core.time import US_PER_MINUTE, floor_us
from otcfeed.core.types import Candle, Tick
from otcfeed.utils.logger import logs

_CLOSED = object()


class TickSubscription:
    """
    Async iterator over ticks published AFTER subscribing.

    Bounded: when the consumer falls behind, the oldest buffered tick is
    dropped so that publish() never blocks.
    """

    def __init__(self, feed: "MarketFeed", symbol: Optional[str], maxsize: int):
        self.symbol = symbol
        self.dropped = 0
        self._feed = feed
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, item) -> None:
        if self._queue.full():
            self._queue.get_nowait()
            if item is not _CLOSED:
                self.dropped += 1
        self._queue.put_nowait(item)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._feed._detach(self)
        self._offer(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self) -> Tick:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    async def get(self, timeout: Optional[float] = None) -> Tick:
        return await asyncio.wait_for(self.__anext__(), timeout)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


@dataclass
class _LiveCandle:
    ts_us: int
    open: float
    high: float
    low: float
    close: float
    tick_count: int = 0

    def update(self, price: float) -> None:
        self.high = max(self.high, price)
        self.low = min(self.low, price)
        self.close = price
        self.tick_count += 1

    def freeze(self) -> Candle:
        return Candle(
            ts_us=self.ts_us,
            open=self.open,
            high=self.high,
            low=self.low,
            close=self.close,
            volume=self.tick_count,
            tick_count=self.tick_count,
        )


class MarketFeed:
    """
    Market-facing facade: latest prices, tick fan-out and live candles.

    Touched from the event loop only.
    """

    def __init__(self, buffer: int = 256, candle_interval_us: int = US_PER_MINUTE):
        self.buffer = buffer
        self.candle_interval_us = candle_interval_us
        self._latest: Dict[str, Tick] = {}
        self._subs: Dict[Optional[str], Set[TickSubscription]] = {}
        self._live: Dict[str, _LiveCandle] = {}
        self._completed: Dict[str, Candle] = {}

    # ------------------------------------------------------------------
    # Subscribers
    # ------------------------------------------------------------------

    def subscribe(self, symbol: Optional[str] = None) -> TickSubscription:
        """symbol=None receives every symbol."""
        sub = TickSubscription(self, symbol, self.buffer)
        self._subs.setdefault(symbol, set()).add(sub)
        return sub

    def _detach(self, sub: TickSubscription) -> None:
        subs = self._subs.get(sub.symbol)
        if subs is not None:
            subs.discard(sub)
            if not subs:
                del self._subs[sub.symbol]

    def subscriber_count(self, symbol: Optional[str] = None) -> int:
        return len(self._subs.get(symbol, ()))

    # ------------------------------------------------------------------
    # Publish / read
    # ------------------------------------------------------------------

    def publish(self, tick: Tick) -> None:
        self._latest[tick.symbol] = tick
        self._track_candle(tick)

        for key in (tick.symbol, None):
            for sub in list(self._subs.get(key, ())):
                sub._offer(tick)

    def get_latest_price(self, symbol: str) -> Optional[Tick]:
        return self._latest.get(symbol)

    def forget(self, symbol: str) -> None:
        self._latest.pop(symbol, None)
        self._live.pop(symbol, None)
        self._completed.pop(symbol, None)

    def close(self) -> None:
        for subs in list(self._subs.values()):
            for sub in list(subs):
                sub.close()

    # ------------------------------------------------------------------
    # Live candles
    # ------------------------------------------------------------------

    def _track_candle(self, tick: Tick) -> None:
        bucket = floor_us(tick.ts_us, self.candle_interval_us)
        live = self._live.get(tick.symbol)
        if live is not None and bucket > live.ts_us:
            self._completed[tick.symbol] = live.freeze()
            live = None
        if live is None:
            live = _LiveCandle(ts_us=bucket, open=tick.price, high=tick.price, low=tick.price, close=tick.price)
            self._live[tick.symbol] = live
        live.update(tick.price)

    def get_live_candle(self, symbol: str) -> Optional[Candle]:
        live = self._live.get(symbol)
        return live.freeze() if live is not None else None

    def last_completed_candle(self, symbol: str) -> Optional[Candle]:
        return self._completed.get(symbol)

    def roll_candle(self, symbol: str) -> Optional[Candle]:
        """Close the live candle now; the next tick opens a new one."""
        live = self._live.pop(symbol, None)
        if live is None:
            return None
        candle = live.freeze()
        self._completed[symbol] = candle
        logs.debug(f"[MarketFeed] rolled candle {symbol} @ {candle.ts_us}")
        return candle
