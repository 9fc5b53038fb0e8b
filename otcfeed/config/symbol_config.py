#!filepath: otcfeed/config/symbol_config.py
from __future__ import annotations

from typing import Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from otcfeed.utils.errors import ConfigValidationError

MarketType = Literal["FOREX", "CRYPTO", "STOCK"]


def _check_range(name: str, bounds: Tuple[float, float]) -> Tuple[float, float]:
    lo, hi = bounds
    if lo > hi:
        raise ValueError(f"{name}: lower bound {lo} > upper bound {hi}")
    return bounds


class PhaseTuning(BaseModel):
    """
    Tuning constants of the phase state machine.

    These are operator-tunable defaults, not contracts: durations are in ticks,
    multipliers scale the per-tick shock.
    """

    model_config = ConfigDict(frozen=True)

    impulse_probability: float = Field(0.004, ge=0.0, le=1.0)
    consolidation_probability: float = Field(0.006, ge=0.0, le=1.0)

    impulse_ticks: Tuple[int, int] = (3, 8)
    consolidation_ticks: Tuple[int, int] = (10, 30)
    pullback_ticks: Tuple[int, int] = (2, 5)

    impulse_multiplier: Tuple[float, float] = (3.0, 6.0)
    consolidation_multiplier: Tuple[float, float] = (0.1, 0.3)
    pullback_multiplier: Tuple[float, float] = (1.0, 2.0)

    # fraction of the impulse move a pullback may give back
    pullback_retrace: Tuple[float, float] = (0.3, 0.5)

    # hard per-tick ceiling while consolidating
    consolidation_max_pips: float = Field(1.0, gt=0.0)

    @field_validator(
        "impulse_ticks",
        "consolidation_ticks",
        "pullback_ticks",
    )
    @classmethod
    def _tick_ranges(cls, v, info):
        if v[0] < 1:
            raise ValueError(f"{info.field_name}: durations must be >= 1 tick")
        return _check_range(info.field_name, v)

    @field_validator(
        "impulse_multiplier",
        "consolidation_multiplier",
        "pullback_multiplier",
        "pullback_retrace",
    )
    @classmethod
    def _float_ranges(cls, v, info):
        if v[0] < 0:
            raise ValueError(f"{info.field_name}: must be non-negative")
        return _check_range(info.field_name, v)

    @model_validator(mode="after")
    def _probabilities(self):
        if self.impulse_probability + self.consolidation_probability > 1.0:
            raise ValueError("impulse_probability + consolidation_probability must be <= 1")
        return self


class SymbolConfig(BaseModel):
    """
    Per-symbol configuration record.

    Immutable: hot reload swaps the whole object, so a tick always sees one
    consistent version.
    """

    model_config = ConfigDict(frozen=True)

    symbol: str = Field(..., min_length=1)
    base_symbol: Optional[str] = None
    market_type: MarketType = "FOREX"
    pip_size: float = Field(0.0001, gt=0.0)

    # volatility
    base_volatility: float = Field(0.0001, ge=0.0)
    volatility_multiplier: float = Field(1.0, ge=0.0)
    momentum_factor: float = Field(0.05, ge=0.0, lt=1.0)

    # GARCH(1,1)
    garch_omega: float = 1.0e-10
    garch_alpha: float = 0.05
    garch_beta: float = 0.94

    # anchoring
    mean_reversion_strength: float = Field(0.02, ge=0.0)
    max_deviation_percent: float = Field(2.0, gt=0.0, lt=100.0)
    max_pips_per_tick: float = Field(8.0, gt=0.0)

    # risk
    risk_enabled: bool = True
    exposure_threshold: float = 0.3
    min_intervention_rate: float = 0.05
    max_intervention_rate: float = 0.25
    payout_percent: float = Field(85.0, ge=0.0)
    spread_multiplier: float = Field(1.0, ge=0.0)

    # lifecycle
    enabled: bool = True
    is_24_hours: bool = True
    anchor_refresh_seconds: float = Field(300.0, gt=0.0)
    anchoring_duration_mins: float = Field(15.0, gt=0.0)
    default_price: float = Field(1.0, gt=0.0)

    phases: PhaseTuning = Field(default_factory=PhaseTuning)

    @field_validator("exposure_threshold", "min_intervention_rate", "max_intervention_rate")
    @classmethod
    def _unit_interval(cls, v, info):
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"{info.field_name} must be within [0, 1], got {v}")
        return v

    @model_validator(mode="after")
    def _stability(self):
        check_symbol_config(self)
        return self

    @property
    def stationary_variance(self) -> float:
        return self.garch_omega / (1.0 - self.garch_alpha - self.garch_beta)


def check_symbol_config(cfg: SymbolConfig) -> None:
    """
    Stability checks shared by model validation and PriceGenerator.initialize_symbol.

    Raises
    ------
    ConfigValidationError
        omega <= 0, negative alpha / beta, alpha + beta >= 1, pip_size <= 0,
        or an intervention range that is inverted.
    """
    if cfg.garch_omega <= 0:
        raise ConfigValidationError(f"[{cfg.symbol}] garch_omega must be > 0, got {cfg.garch_omega}")
    if cfg.garch_alpha < 0 or cfg.garch_beta < 0:
        raise ConfigValidationError(f"[{cfg.symbol}] garch_alpha / garch_beta must be >= 0")
    if cfg.garch_alpha + cfg.garch_beta >= 1.0:
        raise ConfigValidationError(
            f"[{cfg.symbol}] garch_alpha + garch_beta must be < 1 "
            f"(got {cfg.garch_alpha + cfg.garch_beta:.4f}), variance would diverge"
        )
    if cfg.pip_size <= 0:
        raise ConfigValidationError(f"[{cfg.symbol}] pip_size must be > 0")
    for name in ("exposure_threshold", "min_intervention_rate", "max_intervention_rate"):
        v = getattr(cfg, name)
        if not 0.0 <= v <= 1.0:
            raise ConfigValidationError(f"[{cfg.symbol}] {name} must be within [0, 1], got {v}")
    if cfg.min_intervention_rate > cfg.max_intervention_rate:
        raise ConfigValidationError(
            f"[{cfg.symbol}] min_intervention_rate > max_intervention_rate"
        )
