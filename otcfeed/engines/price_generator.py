# otcfeed/engines/price_generator.py

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np

from otcfeed.config.symbol_config import SymbolConfig, check_symbol_config
from otcfeed.core.pricing import clamp_to_anchor, pip_decimals, quantize
from otcfeed.core.time import now_us
from otcfeed.core.types import Direction, ExtendedState, Phase, PriceMode, PriceState, Tick
from otcfeed.engines.manual_control import ManualControl, ManualControlRegistry
from otcfeed.engines.phase_machine import PhaseMachine
from otcfeed.engines.volatility import GarchVolatility
from otcfeed.utils.errors import ConfigValidationError, UnknownSymbolError
from otcfeed.utils.logger import logs

# drift allowed into a consolidation tick, in tick sigmas
CONSOLIDATION_MAX_PULL = 0.5


@dataclass
class _SymbolSlot:
    config: SymbolConfig
    state: PriceState
    garch: GarchVolatility


class PriceGenerator:
    """
    PriceGenerator (one tick per call per symbol)

    Contract:
    - Input:
        bias: float, a fraction of one tick sigma (risk + operator)
    - Output:
        Tick on the symbol's pip grid, inside the anchor band once an
        anchor exists
    - No IO, no sleeping, no asyncio
    - Deterministic for a given rng seed and clock

    Per tick:
        variance  = omega + alpha * r² + beta * variance
        return    = shock(phase) + reversion + momentum + bias * sigma
        delta     = clamp(price * return, max_pips_per_tick)
        price     = anchor_band(quantize(price + delta))
    then the phase machine advances.

    CONSOLIDATION prices the move in pips directly (one sigma = one pip).
    """

    def __init__(
        self,
        rng: Optional[np.random.Generator] = None,
        seed: Optional[int] = None,
        controls: Optional[ManualControlRegistry] = None,
        clock: Callable[[], int] = now_us,
    ):
        self.rng = rng if rng is not None else np.random.default_rng(seed)
        self.controls = controls
        self.clock = clock
        self.phases = PhaseMachine(self.rng)
        self._slots: Dict[str, _SymbolSlot] = {}

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize_symbol(self, config: SymbolConfig, initial_price: float) -> None:
        """
        Create (or replace) the state of config.symbol.

        Raises
        ------
        ConfigValidationError
            unstable GARCH parameters, non-positive pip size, thresholds
            outside [0, 1], or a non-finite / non-positive initial price.
        """
        check_symbol_config(config)
        if initial_price is None or not math.isfinite(initial_price) or initial_price <= 0:
            raise ConfigValidationError(
                f"[{config.symbol}] initial_price must be finite and > 0, got {initial_price}"
            )

        garch = GarchVolatility.from_config(config)
        price = quantize(initial_price, config.pip_size)
        if price <= 0:
            price = config.pip_size

        state = PriceState(
            symbol=config.symbol,
            current_price=price,
            variance=garch.stationary_variance,
            drift_origin=price,
            session_open=price,
            last_ts_us=self.clock(),
        )
        self._slots[config.symbol] = _SymbolSlot(config=config, state=state, garch=garch)
        logs.info(
            f"[PriceGenerator] initialized {config.symbol} @ {price} "
            f"(sigma={math.sqrt(state.variance):.3e})"
        )

    def update_config(self, config: SymbolConfig) -> None:
        """Swap the config of a running symbol, keeping its price path."""
        slot = self._slots.get(config.symbol)
        if slot is None:
            raise UnknownSymbolError(config.symbol)
        check_symbol_config(config)
        slot.config = config
        slot.garch = GarchVolatility.from_config(config)
        slot.state.current_price = quantize(slot.state.current_price, config.pip_size)
        logs.info(f"[PriceGenerator] config updated for {config.symbol}")

    def remove_symbol(self, symbol: str) -> None:
        self._slots.pop(symbol, None)

    def has_symbol(self, symbol: str) -> bool:
        return symbol in self._slots

    def active_symbols(self) -> List[str]:
        return sorted(self._slots)

    def get_current_price(self, symbol: str) -> Optional[float]:
        slot = self._slots.get(symbol)
        return slot.state.current_price if slot else None

    def get_config(self, symbol: str) -> Optional[SymbolConfig]:
        slot = self._slots.get(symbol)
        return slot.config if slot else None

    # ------------------------------------------------------------------
    # Anchoring
    # ------------------------------------------------------------------

    def update_real_price(self, symbol: str, price: float) -> bool:
        """
        Set the mean-reversion anchor. The current price is left alone;
        the next tick is pulled into the band.
        """
        slot = self._slots.get(symbol)
        if slot is None:
            return False
        if price is None or not math.isfinite(price) or price <= 0:
            logs.warning(f"[PriceGenerator] ignored invalid real price for {symbol}: {price}")
            return False
        slot.state.anchor = float(price)
        return True

    def reset_drift(self, symbol: str) -> None:
        slot = self._slots.get(symbol)
        if slot is None:
            return
        st = slot.state
        logs.debug(
            f"[PriceGenerator] drift reset {symbol}: "
            f"{(st.current_price - st.drift_origin) / slot.config.pip_size:+.1f} pips"
        )
        st.momentum = 0.0
        st.drift_origin = st.current_price

    # ------------------------------------------------------------------
    # Forced phases
    # ------------------------------------------------------------------

    def force_impulse(self, symbol: str, direction, tick_count: int) -> None:
        slot = self._require(symbol)
        d = Direction.parse(direction)
        self.phases.enter_impulse(slot.state, slot.config.phases, direction=int(d), ticks=tick_count)
        logs.info(f"[PriceGenerator] forced IMPULSE {d.name} for {tick_count} ticks on {symbol}")

    def force_consolidation(self, symbol: str, tick_count: int) -> None:
        slot = self._require(symbol)
        self.phases.enter_consolidation(slot.state, slot.config.phases, ticks=tick_count)
        logs.info(f"[PriceGenerator] forced CONSOLIDATION for {tick_count} ticks on {symbol}")

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def generate_next_price(self, symbol: str, bias: float = 0.0) -> Optional[Tick]:
        slot = self._slots.get(symbol)
        if slot is None or not slot.config.enabled:
            return None

        cfg, st = slot.config, slot.state
        pip = cfg.pip_size
        price = st.current_price
        tuning = cfg.phases
        phase = st.phase

        ctl = self.controls.get(symbol) if self.controls is not None else None

        st.variance = slot.garch.update(st.variance, st.last_return)
        sigma = slot.garch.sigma(st.variance, floor=0.5 * cfg.base_volatility)

        if ctl is not None and ctl.price_override is not None:
            steps = (ctl.price_override - price) / pip
        elif phase is Phase.CONSOLIDATION:
            steps = self._consolidation_steps(cfg, st, sigma, bias, ctl)
        else:
            steps = price * self._raw_return(cfg, st, sigma, bias, ctl) / pip

        steps = self._clamp_steps(steps, cfg, st)
        new_price = quantize(price + steps * pip, pip)
        new_price = clamp_to_anchor(new_price, st.anchor, cfg.max_deviation_percent, pip)
        if new_price <= 0:
            new_price = pip

        move = new_price - price
        if phase is Phase.IMPULSE:
            st.impulse_move += move
        elif phase is Phase.PULLBACK and move * st.phase_direction < 0:
            st.pullback_budget = max(0.0, st.pullback_budget - abs(move))

        self._record(st, new_price)

        next_phase = self.phases.advance(st, tuning)
        if next_phase is not phase:
            logs.debug(f"[PriceGenerator] {symbol} {phase.value} -> {next_phase.value}")

        return self._make_tick(cfg, st, phase)

    def _drift(
        self,
        cfg: SymbolConfig,
        st: PriceState,
        sigma: float,
        bias: float,
        ctl: Optional[ManualControl],
    ) -> Tuple[float, float]:
        """(volatility multiplier, deterministic return) for one tick."""
        vol_mult = cfg.volatility_multiplier
        total_bias = bias if math.isfinite(bias) else 0.0
        if ctl is not None:
            vol_mult *= ctl.volatility_multiplier
            total_bias += ctl.bias()

        reversion = 0.0
        if st.anchor:
            reversion = -cfg.mean_reversion_strength * (st.current_price - st.anchor) / st.anchor
            # an impulse is only stopped by the band, never pulled back early
            if st.phase is Phase.IMPULSE and reversion * st.phase_direction < 0:
                reversion = 0.0

        momentum = cfg.momentum_factor * st.last_return
        return vol_mult, reversion + momentum + total_bias * sigma

    def _raw_return(
        self,
        cfg: SymbolConfig,
        st: PriceState,
        sigma: float,
        bias: float,
        ctl: Optional[ManualControl],
    ) -> float:
        vol_mult, drift = self._drift(cfg, st, sigma, bias, ctl)
        z = float(self.rng.standard_normal())
        mult = st.phase_multiplier

        if st.phase is Phase.IMPULSE:
            shock = st.phase_direction * sigma * mult * (0.5 + abs(z))
        elif st.phase is Phase.PULLBACK:
            shock = -st.phase_direction * sigma * mult * (0.5 + abs(z))
        else:
            shock = z * sigma

        return shock * vol_mult + drift

    def _consolidation_steps(
        self,
        cfg: SymbolConfig,
        st: PriceState,
        sigma: float,
        bias: float,
        ctl: Optional[ManualControl],
    ) -> float:
        """
        Consolidation move in pips.

        One tick sigma maps onto one pip, so the regime is equally quiet
        for every volatility scale. Drift is limited to half a sigma and the
        whole move is damped by the phase multiplier.
        """
        vol_mult, drift = self._drift(cfg, st, sigma, bias, ctl)
        z = float(self.rng.standard_normal())
        pull = drift / sigma if sigma > 0 else 0.0
        pull = max(-CONSOLIDATION_MAX_PULL, min(CONSOLIDATION_MAX_PULL, pull))
        return st.phase_multiplier * (vol_mult * z + pull)

    @staticmethod
    def _clamp_steps(steps: float, cfg: SymbolConfig, st: PriceState) -> int:
        """Price delta in whole pips, never beyond the per-tick ceilings."""
        if not math.isfinite(steps):
            return 0
        cap = cfg.max_pips_per_tick
        if st.phase is Phase.CONSOLIDATION:
            cap = min(cap, cfg.phases.consolidation_max_pips)
        if st.phase is Phase.PULLBACK and steps * st.phase_direction < 0:
            cap = min(cap, st.pullback_budget / cfg.pip_size + 1e-9)

        sign = 1 if steps >= 0 else -1
        whole = min(math.floor(abs(steps) + 0.5), math.floor(cap + 1e-9))
        return sign * int(max(whole, 0))

    def _record(self, st: PriceState, new_price: float) -> None:
        st.last_return = (new_price - st.current_price) / st.current_price
        st.momentum += st.last_return
        st.current_price = new_price
        st.tick_count += 1
        st.last_ts_us = self.clock()

    # ------------------------------------------------------------------
    # Real / anchoring prices
    # ------------------------------------------------------------------

    def real_based_price(self, symbol: str, real_price: float) -> Optional[Tick]:
        """Follow a real quote with up to one pip of noise."""
        slot = self._slots.get(symbol)
        if slot is None:
            return None
        noise = float(self.rng.uniform(-1.0, 1.0)) * slot.config.pip_size
        return self.apply_price(symbol, real_price + noise, PriceMode.REAL)

    def apply_price(self, symbol: str, price: float, mode: PriceMode) -> Optional[Tick]:
        """
        Emit a tick at an externally chosen price.

        The price is quantized and held inside the anchor band like any
        generated tick. Variance keeps tracking the realized returns;
        the phase machine does not advance.
        """
        slot = self._slots.get(symbol)
        if slot is None or not slot.config.enabled:
            return None
        if price is None or not math.isfinite(price) or price <= 0:
            logs.warning(f"[PriceGenerator] ignored invalid {mode.value} price for {symbol}: {price}")
            return None

        cfg, st = slot.config, slot.state
        new_price = quantize(price, cfg.pip_size)
        new_price = clamp_to_anchor(new_price, st.anchor, cfg.max_deviation_percent, cfg.pip_size)
        if new_price <= 0:
            new_price = cfg.pip_size

        st.variance = slot.garch.update(st.variance, st.last_return)
        self._record(st, new_price)
        return self._make_tick(cfg, st, st.phase, mode)

    def _make_tick(
        self,
        cfg: SymbolConfig,
        st: PriceState,
        phase: Phase,
        mode: PriceMode = PriceMode.OTC,
    ) -> Tick:
        d = pip_decimals(cfg.pip_size)
        half_spread = cfg.pip_size * cfg.spread_multiplier
        price = st.current_price
        change = price - st.session_open
        change_pct = change / st.session_open * 100.0 if st.session_open else 0.0
        return Tick(
            symbol=cfg.symbol,
            price=price,
            ts_us=st.last_ts_us,
            phase=phase,
            bid=round(price - half_spread, d),
            ask=round(price + half_spread, d),
            change=round(change, d),
            change_percent=round(change_pct, 4),
            mode=mode,
        )

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def get_extended_state(self, symbol: str) -> Optional[ExtendedState]:
        slot = self._slots.get(symbol)
        if slot is None:
            return None
        st, cfg = slot.state, slot.config
        deviation = None
        if st.anchor:
            deviation = (st.current_price - st.anchor) / st.anchor
        return ExtendedState(
            symbol=symbol,
            price=st.current_price,
            phase=st.phase,
            remaining_ticks=st.remaining_ticks,
            variance=st.variance,
            stationary_variance=slot.garch.stationary_variance,
            anchor=st.anchor,
            anchor_deviation=deviation,
            momentum=st.momentum,
            drift_pips=(st.current_price - st.drift_origin) / cfg.pip_size,
            tick_count=st.tick_count,
            last_ts_us=st.last_ts_us,
        )

    def _require(self, symbol: str) -> _SymbolSlot:
        slot = self._slots.get(symbol)
        if slot is None:
            raise UnknownSymbolError(symbol)
        return slot
