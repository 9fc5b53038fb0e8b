# otcfeed/engines/manual_control.py

from __future__ import annotations

import math
import threading
from dataclasses import dataclass, replace
from typing import Callable, Dict, Optional

from otcfeed.core.time import US_PER_SECOND, now_us
from otcfeed.utils.logger import logs

# how strongly a 100% direction bias at strength 1.0 pushes, in tick sigmas
DIRECTION_INFLUENCE = 0.35


@dataclass(frozen=True)
class ManualControl:
    symbol: str
    direction_bias: float = 0.0          # -100 .. 100
    direction_strength: float = 0.0      # 0 .. 1
    volatility_multiplier: float = 1.0
    price_override: Optional[float] = None
    override_expires_us: Optional[int] = None

    def bias(self) -> float:
        return (self.direction_bias / 100.0) * self.direction_strength * DIRECTION_INFLUENCE


class ManualControlRegistry:
    """
    Operator overrides per symbol.

    - direction bias (-100..100) with strength (0..1)
    - volatility multiplier (> 0)
    - price override target with optional expiry

    Writes come from admin threads, reads from the tick loop;
    entries are frozen and swapped under a lock.
    """

    def __init__(self, clock: Callable[[], int] = now_us):
        self._clock = clock
        self._lock = threading.Lock()
        self._controls: Dict[str, ManualControl] = {}

    def _get_or_default(self, symbol: str) -> ManualControl:
        return self._controls.get(symbol) or ManualControl(symbol=symbol)

    def set_direction_bias(self, symbol: str, bias: float, strength: float = 1.0) -> ManualControl:
        if not (math.isfinite(bias) and math.isfinite(strength)):
            raise ValueError("direction bias / strength must be finite")
        bias = max(-100.0, min(100.0, bias))
        strength = max(0.0, min(1.0, strength))
        with self._lock:
            ctl = replace(self._get_or_default(symbol), direction_bias=bias, direction_strength=strength)
            self._controls[symbol] = ctl
        logs.info(f"[ManualControl] {symbol} direction bias={bias:.1f} strength={strength:.2f}")
        return ctl

    def set_volatility_multiplier(self, symbol: str, multiplier: float) -> ManualControl:
        if not math.isfinite(multiplier) or multiplier <= 0:
            raise ValueError(f"volatility multiplier must be > 0, got {multiplier}")
        with self._lock:
            ctl = replace(self._get_or_default(symbol), volatility_multiplier=multiplier)
            self._controls[symbol] = ctl
        logs.info(f"[ManualControl] {symbol} volatility x{multiplier:.2f}")
        return ctl

    def set_price_override(
        self,
        symbol: str,
        price: float,
        expires_in_seconds: Optional[float] = None,
    ) -> ManualControl:
        if not math.isfinite(price) or price <= 0:
            raise ValueError(f"override price must be > 0, got {price}")
        expires = None
        if expires_in_seconds is not None:
            expires = self._clock() + int(expires_in_seconds * US_PER_SECOND)
        with self._lock:
            ctl = replace(
                self._get_or_default(symbol),
                price_override=price,
                override_expires_us=expires,
            )
            self._controls[symbol] = ctl
        logs.info(f"[ManualControl] {symbol} price override -> {price} (expires_us={expires})")
        return ctl

    def clear_price_override(self, symbol: str) -> None:
        with self._lock:
            ctl = self._controls.get(symbol)
            if ctl is not None:
                self._controls[symbol] = replace(ctl, price_override=None, override_expires_us=None)

    def clear(self, symbol: str) -> None:
        with self._lock:
            self._controls.pop(symbol, None)

    def get(self, symbol: str) -> Optional[ManualControl]:
        """
        Current control for symbol, with an expired price override dropped.
        """
        with self._lock:
            ctl = self._controls.get(symbol)
            if ctl is None:
                return None
            if (
                ctl.price_override is not None
                and ctl.override_expires_us is not None
                and self._clock() >= ctl.override_expires_us
            ):
                ctl = replace(ctl, price_override=None, override_expires_us=None)
                self._controls[symbol] = ctl
                logs.info(f"[ManualControl] {symbol} price override expired")
            return ctl

    def active_symbols(self):
        with self._lock:
            return sorted(self._controls)
