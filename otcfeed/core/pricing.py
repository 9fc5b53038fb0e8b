from __future__ import annotations

import math
from decimal import Decimal
from functools import lru_cache
from typing import Optional

# otcfeed/core/pricing.py


@lru_cache(maxsize=256)
def pip_decimals(pip_size: float) -> int:
    """Number of decimals needed to print a pip multiple exactly."""
    exponent = Decimal(repr(pip_size)).normalize().as_tuple().exponent
    return max(0, -int(exponent))


def quantize(price: float, pip_size: float) -> float:
    """
    Snap a price to the nearest pip multiple.

    round(n) * pip reintroduces float noise (e.g. 1.0850000000000002),
    so the result is rounded again to the pip's decimals.
    """
    return round(round(price / pip_size) * pip_size, pip_decimals(pip_size))


def is_on_grid(price: float, pip_size: float, tol: float = 1e-6) -> bool:
    steps = price / pip_size
    return abs(steps - round(steps)) <= tol


def anchor_band(anchor: float, max_deviation_percent: float, pip_size: float) -> tuple[float, float]:
    """
    Inclusive [lower, upper] band around the anchor, shrunk to the pip grid
    so that any grid price inside it still honours the deviation limit.
    """
    dev = max_deviation_percent / 100.0
    upper = math.floor(anchor * (1.0 + dev) / pip_size + 1e-9) * pip_size
    lower = math.ceil(anchor * (1.0 - dev) / pip_size - 1e-9) * pip_size
    d = pip_decimals(pip_size)
    return round(lower, d), round(upper, d)


def clamp_to_anchor(
    price: float,
    anchor: Optional[float],
    max_deviation_percent: float,
    pip_size: float,
) -> float:
    """Clamp toward the anchor (never toward zero). No anchor → unchanged."""
    if anchor is None or anchor <= 0:
        return price
    lower, upper = anchor_band(anchor, max_deviation_percent, pip_size)
    if lower > upper:
        # band narrower than one pip: fall back to the anchor itself
        return quantize(anchor, pip_size)
    return min(max(price, lower), upper)
