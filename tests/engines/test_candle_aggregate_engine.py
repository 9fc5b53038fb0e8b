import pandas as pd
import pytest

from otcfeed.engines.candle_aggregate_engine import AggregateCandleEngine

MIN = 60_000_000


@pytest.fixture
def engine():
    return AggregateCandleEngine(interval_us=MIN)


@pytest.fixture
def simple_tick_df():
    """
    ts in us, two buckets
    """
    return pd.DataFrame(
        {
            "ts": [
                MIN + 1_000_000,
                MIN + 5_000_000,
                2 * MIN + 2_000_000,
            ],
            "price": [10.0, 12.0, 11.0],
            "volume": [1, 2, 3],
        }
    )


def test_missing_required_columns(engine):
    df = pd.DataFrame({"ts": [0], "price": [1.0]})

    with pytest.raises(ValueError, match="Missing required columns"):
        engine.run(df)


def test_ts_must_be_int(engine):
    df = pd.DataFrame({"ts": [1.0, 2.0], "price": [10.0, 11.0], "volume": [1, 1]})

    with pytest.raises(TypeError, match="ts"):
        engine.run(df)


@pytest.mark.parametrize("price, volume", [(0.0, 10), (-1.0, 10), (10.0, 0), (10.0, -5)])
def test_price_volume_constraints(engine, price, volume):
    df = pd.DataFrame({"ts": [0], "price": [price], "volume": [volume]})

    with pytest.raises(ValueError):
        engine.run(df)


def test_tick_df_must_be_sorted(engine):
    df = pd.DataFrame({"ts": [2_000, 1_000], "price": [10.0, 11.0], "volume": [1, 1]})

    with pytest.raises(ValueError, match="sorted"):
        engine.run(df)


def test_ohlc(engine, simple_tick_df):
    out = engine.run(simple_tick_df)

    assert list(out.columns) == list(AggregateCandleEngine.OUTPUT_COLUMNS)
    assert out["ts"].tolist() == [MIN, 2 * MIN]

    first = out.iloc[0]
    assert (first["open"], first["high"], first["low"], first["close"]) == (10.0, 12.0, 10.0, 12.0)
    assert first["volume"] == 3
    assert first["tick_count"] == 2
    assert out.iloc[1]["close"] == 11.0


def test_custom_interval():
    df = pd.DataFrame({"ts": [0, 4_000_000, 5_000_000, 9_999_999], "price": [1.0, 2.0, 3.0, 4.0], "volume": 1})
    out = AggregateCandleEngine(interval_us=5_000_000).run(df)
    assert out["ts"].tolist() == [0, 5_000_000]
    assert out["tick_count"].tolist() == [2, 2]


def test_empty_input(engine):
    out = engine.run(pd.DataFrame(columns=["ts", "price", "volume"]))
    assert out.empty
    assert list(out.columns) == list(AggregateCandleEngine.OUTPUT_COLUMNS)


def test_invalid_interval():
    with pytest.raises(ValueError):
        AggregateCandleEngine(interval_us=0)
