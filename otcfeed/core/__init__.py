"""
Core Price Model (FROZEN)

Defines WHAT a synthetic market is, independent of scheduling or transport.

Invariants:
- Time is represented as ts_us (epoch microseconds).
- Ticks and candles are immutable facts once emitted.
- Prices always sit on the symbol's pip grid.
- Once an anchor exists, |price - anchor| / anchor <= max_deviation_percent / 100.

Core explicitly does NOT:
- Perform IO
- Know about asyncio, queues or subscribers
- Decide when time advances

Time advancement is always external.
"""
from otcfeed.core.types import (
    Candle,
    Direction,
    ExposureSnapshot,
    ExtendedState,
    Phase,
    PriceMode,
    PriceState,
    Tick,
)

__all__ = [
    "Candle",
    "Direction",
    "ExposureSnapshot",
    "ExtendedState",
    "Phase",
    "PriceMode",
    "PriceState",
    "Tick",
]
