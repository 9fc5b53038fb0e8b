# otcfeed/engines/history_synthesizer.py

from __future__ import annotations

import math
from typing import List, Optional

import pandas as pd

from otcfeed.config.symbol_config import SymbolConfig
from otcfeed.core.pricing import pip_decimals, quantize
from otcfeed.core.time import US_PER_SECOND, floor_us, now_us
from otcfeed.core.types import Candle
from otcfeed.engines.candle_aggregate_engine import AggregateCandleEngine
from otcfeed.engines.price_generator import PriceGenerator
from otcfeed.utils.logger import logs


class HistorySynthesizer:
    """
    Offline candle backfill consistent with the live generator.

    The path is generated forward from end_price (anchored at end_price)
    and then reversed, so history walks INTO end_price:

        ticks  : t0 ... tN            (tN == quantized end_price)
        buckets: count candles + 1 trailing bucket holding only tN
        stitch : close[i] = open[i + 1], high / low widened
        drop   : trailing bucket

    Output invariants:
    - len(candles) == count
    - candles[i].close == candles[i + 1].open
    - low <= min(open, close) <= max(open, close) <= high
    - candles[-1].close == quantize(end_price)
    """

    def __init__(self, clock=now_us):
        self.clock = clock

    @logs.catch(msg="candle synthesis failed", log_time=True)
    def generate_candles(
        self,
        config: SymbolConfig,
        end_price: float,
        count: int,
        candle_duration_seconds: float = 60,
        seed: Optional[int] = None,
        ticks_per_candle: int = 12,
        end_ts_us: Optional[int] = None,
    ) -> List[Candle]:
        if count <= 0:
            return []
        if ticks_per_candle < 1:
            raise ValueError(f"ticks_per_candle must be >= 1, got {ticks_per_candle}")
        if end_price is None or not math.isfinite(end_price) or end_price <= 0:
            raise ValueError(f"end_price must be finite and > 0, got {end_price}")

        dur_us = int(candle_duration_seconds * US_PER_SECOND)
        if dur_us <= 0:
            raise ValueError(f"candle_duration_seconds must be > 0, got {candle_duration_seconds}")
        if end_ts_us is None:
            end_ts_us = floor_us(self.clock(), dur_us)

        cfg = config.model_copy(update={"enabled": True})
        gen = PriceGenerator(seed=seed, clock=lambda: 0)
        gen.initialize_symbol(cfg, end_price)
        gen.update_real_price(cfg.symbol, end_price)

        n_ticks = count * ticks_per_candle
        path = [gen.get_current_price(cfg.symbol)]
        for _ in range(n_ticks):
            path.append(gen.generate_next_price(cfg.symbol, bias=0.0).price)
        path.reverse()

        # bucket on offsets from the first bar so any end_ts_us aligns
        first_start = end_ts_us - count * dur_us
        ts = [
            (j // ticks_per_candle) * dur_us + (j % ticks_per_candle) * dur_us // ticks_per_candle
            for j in range(n_ticks + 1)
        ]
        tick_df = pd.DataFrame({"ts": ts, "price": path, "volume": 1})
        tick_df["ts"] = tick_df["ts"].astype("int64")

        bars = AggregateCandleEngine(interval_us=dur_us).run(tick_df)
        bars = bars.assign(ts=bars["ts"] + first_start)
        candles = self._stitch(bars, cfg, gen)[:count]

        logs.info(
            f"[HistorySynthesizer] {cfg.symbol}: {len(candles)} candles x {candle_duration_seconds}s "
            f"ending {candles[-1].close}"
        )
        return candles

    @staticmethod
    def _stitch(bars: pd.DataFrame, cfg: SymbolConfig, gen: PriceGenerator) -> List[Candle]:
        pip = cfg.pip_size
        d = pip_decimals(pip)
        rows = bars.to_dict("records")
        out: List[Candle] = []
        for i, row in enumerate(rows):
            o = quantize(row["open"], pip)
            c = quantize(rows[i + 1]["open"], pip) if i + 1 < len(rows) else quantize(row["close"], pip)
            h = round(max(row["high"], o, c), d)
            lo = round(min(row["low"], o, c), d)
            range_pips = (h - lo) / pip
            volume = int(round((50 + range_pips * 10) * gen.rng.uniform(0.7, 1.3)))
            out.append(
                Candle(
                    ts_us=int(row["ts"]),
                    open=o,
                    high=h,
                    low=lo,
                    close=c,
                    volume=volume,
                    tick_count=int(row["tick_count"]),
                )
            )
        return out

    @staticmethod
    def to_frame(candles: List[Candle]) -> pd.DataFrame:
        return pd.DataFrame(
            [
                {
                    "ts": c.ts_us,
                    "open": c.open,
                    "high": c.high,
                    "low": c.low,
                    "close": c.close,
                    "volume": c.volume,
                    "tick_count": c.tick_count,
                }
                for c in candles
            ],
            columns=["ts", "open", "high", "low", "close", "volume", "tick_count"],
        )
