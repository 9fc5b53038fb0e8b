# otcfeed/engines/volatility.py

from __future__ import annotations

import math


class GarchVolatility:
    """
    GARCH(1,1) conditional variance.

    Contract:
    - sigma²_t = omega + alpha * r²_{t-1} + beta * sigma²_{t-1}
    - alpha + beta < 1 (validated upstream), so the process is mean-reverting
      toward omega / (1 - alpha - beta)
    - Pure, no state of its own
    """

    __slots__ = ("omega", "alpha", "beta")

    def __init__(self, omega: float, alpha: float, beta: float):
        self.omega = omega
        self.alpha = alpha
        self.beta = beta

    @classmethod
    def from_config(cls, cfg) -> "GarchVolatility":
        return cls(cfg.garch_omega, cfg.garch_alpha, cfg.garch_beta)

    @property
    def stationary_variance(self) -> float:
        return self.omega / (1.0 - self.alpha - self.beta)

    def update(self, variance: float, last_return: float) -> float:
        if not math.isfinite(last_return):
            last_return = 0.0
        if not math.isfinite(variance) or variance < 0:
            variance = self.stationary_variance
        return self.omega + self.alpha * last_return * last_return + self.beta * variance

    def sigma(self, variance: float, floor: float = 0.0) -> float:
        return max(math.sqrt(max(variance, 0.0)), floor)
