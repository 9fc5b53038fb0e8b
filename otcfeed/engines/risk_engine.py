# otcfeed/engines/risk_engine.py

from __future__ import annotations

import math
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from otcfeed.config.symbol_config import SymbolConfig
from otcfeed.core.time import now_us
from otcfeed.core.types import Direction, ExposureSnapshot
from otcfeed.utils.logger import logs

EXPOSURE_WARNING_RATIO = 0.7


@dataclass(frozen=True)
class TrackedTrade:
    trade_id: str
    symbol: str
    direction: Direction
    amount: float
    expires_us: int
    user_id: Optional[str] = None
    entry_price: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "direction", Direction.parse(self.direction))


def _sanitize(x) -> float:
    try:
        x = float(x)
    except (TypeError, ValueError):
        return 0.0
    if not math.isfinite(x) or x < 0:
        return 0.0
    return x


def intervention_bias(snapshot: Optional[ExposureSnapshot], cfg: Optional[SymbolConfig]) -> float:
    """
    Pure bias function.

    Contract:
    - 0 when risk is disabled, inputs are missing, or the imbalance
      ratio |up - down| / (up + down) is at or below the threshold
    - otherwise sign opposes the heavier side; magnitude grows linearly
      from min_intervention_rate at the threshold to max_intervention_rate
      at full imbalance, and never exceeds max_intervention_rate
    """
    if snapshot is None or cfg is None or not cfg.risk_enabled:
        return 0.0
    total = snapshot.total
    if total <= 0:
        return 0.0

    ratio = abs(snapshot.net_exposure) / total
    thr = cfg.exposure_threshold
    if ratio <= thr:
        return 0.0

    lo, hi = cfg.min_intervention_rate, cfg.max_intervention_rate
    span = 1.0 - thr
    t = (ratio - thr) / span if span > 0 else 1.0
    magnitude = min(max(lo + t * (hi - lo), 0.0), hi)

    # up-heavy book → push price down
    return -magnitude if snapshot.net_exposure > 0 else magnitude


class RiskEngine:
    """
    Exposure cache + intervention bias.

    - snapshots are frozen and swapped under a lock
    - readers (tick loops) never observe a half-written snapshot
    - the optional trade book aggregates open trades into snapshots
    """

    def __init__(self, clock: Callable[[], int] = now_us):
        self._clock = clock
        self._lock = threading.Lock()
        self._configs: Dict[str, SymbolConfig] = {}
        self._snapshots: Dict[str, ExposureSnapshot] = {}
        self._trades: Dict[str, Dict[str, TrackedTrade]] = {}

    # ------------------------------------------------------------------
    # Config
    # ------------------------------------------------------------------

    def set_config(self, symbol: str, config: SymbolConfig) -> None:
        with self._lock:
            self._configs[symbol] = config

    def remove_symbol(self, symbol: str) -> None:
        with self._lock:
            self._configs.pop(symbol, None)
            self._snapshots.pop(symbol, None)
            self._trades.pop(symbol, None)

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------

    def record_exposure_snapshot(self, symbol: str, up_notional, down_notional) -> ExposureSnapshot:
        up = _sanitize(up_notional)
        down = _sanitize(down_notional)
        with self._lock:
            snap = self._build_snapshot(symbol, up, down)
            self._snapshots[symbol] = snap
        return snap

    def _build_snapshot(self, symbol: str, up: float, down: float) -> ExposureSnapshot:
        # caller holds the lock
        cfg = self._configs.get(symbol)
        payout = cfg.payout_percent if cfg is not None else 0.0
        return ExposureSnapshot(
            symbol=symbol,
            up_notional=up,
            down_notional=down,
            ts_us=self._clock(),
            broker_risk_amount=abs(up - down) * payout / 100.0,
        )

    def get_exposure(self, symbol: str) -> Optional[ExposureSnapshot]:
        with self._lock:
            return self._snapshots.get(symbol)

    def all_exposures(self) -> List[ExposureSnapshot]:
        with self._lock:
            return [self._snapshots[s] for s in sorted(self._snapshots)]

    def compute_intervention_bias(self, symbol: str) -> float:
        with self._lock:
            snap = self._snapshots.get(symbol)
            cfg = self._configs.get(symbol)
        return intervention_bias(snap, cfg)

    # ------------------------------------------------------------------
    # Trade book
    # ------------------------------------------------------------------

    def track_trade(self, trade: TrackedTrade) -> ExposureSnapshot:
        if _sanitize(trade.amount) <= 0:
            raise ValueError(f"trade amount must be > 0, got {trade.amount}")
        with self._lock:
            self._trades.setdefault(trade.symbol, {})[trade.trade_id] = trade
            snap = self._recompute(trade.symbol)

        if snap.exposure_ratio > EXPOSURE_WARNING_RATIO:
            logs.warning(
                f"[RiskEngine] exposure warning {trade.symbol}: ratio={snap.exposure_ratio:.2f} "
                f"up={snap.up_notional:.2f} down={snap.down_notional:.2f}"
            )
        logs.debug(f"[RiskEngine] trade tracked {trade.trade_id} on {trade.symbol}")
        return snap

    def remove_trade(self, trade_id: str, symbol: str) -> bool:
        with self._lock:
            book = self._trades.get(symbol)
            if not book or trade_id not in book:
                return False
            del book[trade_id]
            self._recompute(symbol)
        logs.debug(f"[RiskEngine] trade removed {trade_id} on {symbol}")
        return True

    def open_trades(self, symbol: str) -> List[TrackedTrade]:
        with self._lock:
            return list(self._trades.get(symbol, {}).values())

    def cleanup_expired_trades(self, now: Optional[int] = None) -> int:
        now = self._clock() if now is None else now
        cleaned = 0
        with self._lock:
            for symbol, book in self._trades.items():
                expired = [tid for tid, t in book.items() if t.expires_us <= now]
                for tid in expired:
                    del book[tid]
                if expired:
                    cleaned += len(expired)
                    self._recompute(symbol)
        if cleaned:
            logs.info(f"[RiskEngine] cleaned up {cleaned} expired trades")
        return cleaned

    def refresh(self) -> List[ExposureSnapshot]:
        """
        Drop expired trades and rebuild the snapshots of every symbol that
        has a trade book. Symbols fed through record_exposure_snapshot only
        keep their last recorded snapshot.
        """
        self.cleanup_expired_trades()
        with self._lock:
            return [self._recompute(symbol) for symbol in list(self._trades)]

    def _recompute(self, symbol: str) -> ExposureSnapshot:
        # caller holds the lock
        up = down = 0.0
        for t in self._trades.get(symbol, {}).values():
            if t.direction is Direction.UP:
                up += t.amount
            else:
                down += t.amount
        snap = self._build_snapshot(symbol, up, down)
        self._snapshots[symbol] = snap
        return snap
