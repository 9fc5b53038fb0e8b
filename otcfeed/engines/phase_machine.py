# otcfeed/engines/phase_machine.py

from __future__ import annotations

import numpy as np

from otcfeed.config.symbol_config import PhaseTuning
from otcfeed.core.types import Phase, PriceState


class PhaseMachine:
    """
    Regime state machine: NORMAL / IMPULSE / CONSOLIDATION / PULLBACK.

    Transitions:
        NORMAL        --p_impulse-->        IMPULSE
        NORMAL        --p_consolidation-->  CONSOLIDATION
        IMPULSE       --expiry-->           PULLBACK
        PULLBACK      --expiry-->           NORMAL
        CONSOLIDATION --expiry-->           NORMAL

    The machine only mutates phase bookkeeping on PriceState.
    It never touches price or variance.
    """

    def __init__(self, rng: np.random.Generator):
        self.rng = rng

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def enter_impulse(
        self,
        state: PriceState,
        tuning: PhaseTuning,
        direction: int | None = None,
        ticks: int | None = None,
    ) -> None:
        if direction is None:
            direction = 1 if self.rng.random() < 0.5 else -1
        if ticks is None:
            ticks = self._draw_ticks(tuning.impulse_ticks)
        state.phase = Phase.IMPULSE
        state.phase_direction = 1 if direction >= 0 else -1
        state.remaining_ticks = max(1, int(ticks))
        state.phase_multiplier = self._draw(tuning.impulse_multiplier)
        state.impulse_move = 0.0
        state.pullback_budget = 0.0

    def enter_consolidation(
        self,
        state: PriceState,
        tuning: PhaseTuning,
        ticks: int | None = None,
    ) -> None:
        if ticks is None:
            ticks = self._draw_ticks(tuning.consolidation_ticks)
        state.phase = Phase.CONSOLIDATION
        state.remaining_ticks = max(1, int(ticks))
        state.phase_multiplier = self._draw(tuning.consolidation_multiplier)

    def enter_pullback(self, state: PriceState, tuning: PhaseTuning) -> None:
        state.phase = Phase.PULLBACK
        state.remaining_ticks = self._draw_ticks(tuning.pullback_ticks)
        state.phase_multiplier = self._draw(tuning.pullback_multiplier)
        state.pullback_budget = abs(state.impulse_move) * self._draw(tuning.pullback_retrace)

    def enter_normal(self, state: PriceState) -> None:
        state.phase = Phase.NORMAL
        state.remaining_ticks = 0
        state.phase_multiplier = 1.0
        state.pullback_budget = 0.0

    # ------------------------------------------------------------------
    # Per tick
    # ------------------------------------------------------------------

    def advance(self, state: PriceState, tuning: PhaseTuning) -> Phase:
        """
        Advance one tick. Called after the tick has been priced.
        Returns the phase the next tick will be generated under.
        """
        if state.phase is Phase.NORMAL:
            u = self.rng.random()
            if u < tuning.impulse_probability:
                self.enter_impulse(state, tuning)
            elif u < tuning.impulse_probability + tuning.consolidation_probability:
                self.enter_consolidation(state, tuning)
            return state.phase

        state.remaining_ticks -= 1
        if state.remaining_ticks > 0:
            return state.phase

        if state.phase is Phase.IMPULSE:
            self.enter_pullback(state, tuning)
        else:
            self.enter_normal(state)
        return state.phase

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _draw(self, bounds) -> float:
        lo, hi = bounds
        return float(self.rng.uniform(lo, hi)) if hi > lo else float(lo)

    def _draw_ticks(self, bounds) -> int:
        lo, hi = bounds
        return int(self.rng.integers(lo, hi + 1))
