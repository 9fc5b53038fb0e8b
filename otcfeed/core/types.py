from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


# otcfeed/core/types.py
# -------------------------
# Enums
# -------------------------
class Phase(str, Enum):
    NORMAL = "NORMAL"
    IMPULSE = "IMPULSE"
    CONSOLIDATION = "CONSOLIDATION"
    PULLBACK = "PULLBACK"


class Direction(int, Enum):
    UP = 1
    DOWN = -1

    @classmethod
    def parse(cls, value) -> "Direction":
        if isinstance(value, Direction):
            return value
        if isinstance(value, str):
            key = value.strip().upper()
            if key in ("UP", "BUY", "+"):
                return cls.UP
            if key in ("DOWN", "SELL", "-"):
                return cls.DOWN
        if value in (1, -1):
            return cls(value)
        raise ValueError(f"unknown direction: {value!r}")


class PriceMode(str, Enum):
    REAL = "REAL"
    OTC = "OTC"
    ANCHORING = "ANCHORING"


# -------------------------
# Mutable runtime state
# -------------------------
@dataclass
class PriceState:
    """
    Per-symbol runtime state. Owned by PriceGenerator, never handed out.
    """
    symbol: str
    current_price: float
    variance: float
    last_return: float = 0.0
    momentum: float = 0.0            # cumulative return since last drift reset
    anchor: Optional[float] = None
    drift_origin: float = 0.0        # price at last drift reset
    session_open: float = 0.0        # reference for change / change_percent

    phase: Phase = Phase.NORMAL
    remaining_ticks: int = 0
    phase_direction: int = 1
    phase_multiplier: float = 1.0
    impulse_move: float = 0.0        # signed price move accumulated by the last impulse
    pullback_budget: float = 0.0     # absolute price distance a pullback may still retrace

    last_ts_us: int = 0
    tick_count: int = 0


# -------------------------
# Immutable outputs
# -------------------------
@dataclass(frozen=True)
class Tick:
    symbol: str
    price: float
    ts_us: int
    phase: Phase
    bid: float
    ask: float
    change: float = 0.0
    change_percent: float = 0.0
    mode: PriceMode = PriceMode.OTC


@dataclass(frozen=True)
class ExtendedState:
    """Read-only diagnostics snapshot of one symbol's generator state."""
    symbol: str
    price: float
    phase: Phase
    remaining_ticks: int
    variance: float
    stationary_variance: float
    anchor: Optional[float]
    anchor_deviation: Optional[float]   # (price - anchor) / anchor
    momentum: float
    drift_pips: float
    tick_count: int
    last_ts_us: int


@dataclass(frozen=True)
class ExposureSnapshot:
    symbol: str
    up_notional: float
    down_notional: float
    ts_us: int
    broker_risk_amount: float = 0.0

    @property
    def total(self) -> float:
        return self.up_notional + self.down_notional

    @property
    def net_exposure(self) -> float:
        return self.up_notional - self.down_notional

    @property
    def exposure_ratio(self) -> float:
        total = self.total
        return abs(self.net_exposure) / total if total > 0 else 0.0


@dataclass(frozen=True)
class Candle:
    ts_us: int          # bar start
    open: float
    high: float
    low: float
    close: float
    volume: int = 0
    tick_count: int = 0
