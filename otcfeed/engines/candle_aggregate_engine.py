# otcfeed/engines/candle_aggregate_engine.py

from __future__ import annotations

import pandas as pd

from otcfeed.core.time import US_PER_MINUTE


class AggregateCandleEngine:
    """
    AggregateCandleEngine

    Contract:
    - Input:
        DataFrame with columns:
            ts: int (us, sorted ascending)
            price: float > 0
            volume: int > 0
    - Output:
        DataFrame with one bar per interval bucket:
            ts, open, high, low, close, volume, tick_count
    - Bucket start = floor(ts / interval_us) * interval_us
    - No IO
    - Deterministic
    """

    REQUIRED_COLUMNS = ("ts", "price", "volume")
    OUTPUT_COLUMNS = ("ts", "open", "high", "low", "close", "volume", "tick_count")

    def __init__(self, interval_us: int = US_PER_MINUTE):
        if interval_us <= 0:
            raise ValueError(f"interval_us must be > 0, got {interval_us}")
        self.interval_us = int(interval_us)

    def run(self, tick_df: pd.DataFrame) -> pd.DataFrame:
        """
        Aggregate ticks into OHLC bars.

        Parameters
        ----------
        tick_df : pd.DataFrame
            Must satisfy the input contract.

        Returns
        -------
        pd.DataFrame
            Bar DataFrame satisfying the output contract.
        """

        # Empty input → empty output
        if tick_df.empty:
            return self._empty_output()

        self._validate_input(tick_df)

        df = tick_df

        bucket_ts = (df["ts"] // self.interval_us) * self.interval_us

        grouped = df.groupby(bucket_ts, sort=True)

        bar_df = grouped.agg(
            open=("price", "first"),
            high=("price", "max"),
            low=("price", "min"),
            close=("price", "last"),
            volume=("volume", "sum"),
            tick_count=("price", "count"),
        )

        bar_df = (
            bar_df.reset_index()
            .rename(columns={"index": "ts"})
            .rename_axis(None, axis=1)
            .sort_values("ts")
            .reset_index(drop=True)
        )

        return bar_df[list(self.OUTPUT_COLUMNS)]

    # ------------------------------------------------------------------
    # Validation & helpers
    # ------------------------------------------------------------------

    @classmethod
    def _validate_input(cls, df: pd.DataFrame) -> None:
        missing = set(cls.REQUIRED_COLUMNS) - set(df.columns)
        if missing:
            raise ValueError(f"Missing required columns: {missing}")

        if not pd.api.types.is_integer_dtype(df["ts"]):
            raise TypeError("Column 'ts' must be int (microseconds)")

        if (df["price"] <= 0).any():
            raise ValueError("Column 'price' must be > 0")

        if (df["volume"] <= 0).any():
            raise ValueError("Column 'volume' must be > 0")

        if not df["ts"].is_monotonic_increasing:
            raise ValueError("tick_df must be sorted by ts ascending")

    @classmethod
    def _empty_output(cls) -> pd.DataFrame:
        return pd.DataFrame(columns=list(cls.OUTPUT_COLUMNS))
