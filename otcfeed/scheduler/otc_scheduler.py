# otcfeed/scheduler/otc_scheduler.py

from __future__ import annotations

import asyncio
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Union

from otcfeed.config.app_config import AppConfig
from otcfeed.config.scheduler_config import SchedulerConfig
from otcfeed.config.symbol_config import SymbolConfig
from otcfeed.core.time import US_PER_MINUTE, US_PER_SECOND, now_us, to_datetime
from otcfeed.core.types import PriceMode, Tick
from otcfeed.engines.price_generator import PriceGenerator
from otcfeed.engines.risk_engine import RiskEngine
from otcfeed.market.feed import MarketFeed
from otcfeed.observability.metrics import MetricRecorder
from otcfeed.session.market_hours import MarketHoursCalendar
from otcfeed.session.session_resolver import SessionCalendar
from otcfeed.utils.logger import logs
from otcfeed.utils.retry import AsyncRetry


class RealPriceSource(Protocol):
    """Pull-based real market quotes, keyed by base symbol."""

    async def fetch_price(self, base_symbol: str) -> Optional[float]:
        ...


ANCHOR_START_OTC_WEIGHT = 0.95


def anchored_price(otc_price: float, real_price: float, progress: float) -> float:
    """
    Blend the OTC price into the real one with quadratic easing.

    The OTC weight starts at 0.95 and decays as (1 - progress)²,
    so the path decelerates onto the real price without a gap.
    """
    if progress >= 1.0:
        return real_price
    otc_weight = ANCHOR_START_OTC_WEIGHT * (1.0 - max(progress, 0.0)) ** 2
    return otc_price * otc_weight + real_price * (1.0 - otc_weight)


@dataclass
class _Anchoring:
    start_us: int
    duration_us: int
    start_price: float

    def progress(self, now: int) -> float:
        if self.duration_us <= 0:
            return 1.0
        return min(max((now - self.start_us) / self.duration_us, 0.0), 1.0)


@dataclass
class _SymbolRuntime:
    config: SymbolConfig
    tick_task: Optional[asyncio.Task] = None
    anchor_task: Optional[asyncio.Task] = None
    last_drift_reset_us: int = 0
    mode: Optional[PriceMode] = None
    anchoring: Optional[_Anchoring] = None

    def all_tasks(self) -> List[asyncio.Task]:
        return [t for t in (self.tick_task, self.anchor_task) if t is not None]


class OTCScheduler:
    """
    Drives one PriceGenerator across many symbols on the event loop.

    Per symbol:
        tick task    every tick_interval_seconds
        anchor task  every anchor_refresh_seconds (base_symbol + price source)
    Shared:
        exposure refresh, diagnostics

    Price modes:
        24h symbols      always OTC (generated)
        non-24h symbols  closed session -> frozen, remembered as OTC
                         open, no real price -> OTC
                         open after OTC -> ANCHORING for anchoring_duration_mins
                         open otherwise -> REAL (real quote + pip noise)

    A failing tick is logged, counted and skipped; other symbols keep running.
    Ticks are synchronous, so cancellation never interrupts one halfway.
    """

    def __init__(
        self,
        generator: PriceGenerator,
        risk: RiskEngine,
        feed: MarketFeed,
        config: Optional[SchedulerConfig] = None,
        calendar: Optional[SessionCalendar] = None,
        price_source: Optional[RealPriceSource] = None,
        metrics: Optional[MetricRecorder] = None,
        clock: Callable[[], int] = now_us,
    ):
        self.generator = generator
        self.risk = risk
        self.feed = feed
        self.config = config or SchedulerConfig()
        self.calendar = calendar or MarketHoursCalendar()
        self.price_source = price_source
        self.metrics = metrics or MetricRecorder()
        self.clock = clock

        self._runtimes: Dict[str, _SymbolRuntime] = {}
        self._real_prices: Dict[str, float] = {}
        self._anchor_applied_us: Dict[str, int] = {}
        self._background: List[asyncio.Task] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        symbol: str,
        config: SymbolConfig,
        initial_price: Optional[float] = None,
    ) -> bool:
        """
        Initialize and start ticking one symbol. Restarts it if running.

        Raises
        ------
        ValueError
            config.symbol does not match symbol.
        ConfigValidationError
            from PriceGenerator.initialize_symbol.
        """
        if config.symbol != symbol:
            raise ValueError(f"config is for {config.symbol!r}, not {symbol!r}")
        if not config.enabled:
            await self.stop(symbol)
            logs.info(f"[Scheduler] {symbol} is disabled, not starting")
            return False

        self._loop = asyncio.get_running_loop()
        price = self._initial_price(config, initial_price)
        if symbol in self._runtimes:
            await self.stop(symbol)

        self.generator.initialize_symbol(config, price)
        self.risk.set_config(symbol, config)

        real = self._real_prices.get(config.base_symbol) if config.base_symbol else None
        if real is not None:
            self.generator.update_real_price(symbol, real)
            self._anchor_applied_us[symbol] = self.clock()

        rt = _SymbolRuntime(config=config, last_drift_reset_us=self.clock())
        self._runtimes[symbol] = rt
        rt.tick_task = asyncio.create_task(self._tick_loop(symbol), name=f"tick:{symbol}")
        self._spawn_anchor_task(rt)
        self._ensure_background()

        logs.info(f"[Scheduler] started {symbol} @ {self.generator.get_current_price(symbol)}")
        return True

    async def start_all(self, configs: Union[AppConfig, Iterable[SymbolConfig]]) -> List[str]:
        started = []
        for cfg in self._iter_configs(configs):
            if await self.start(cfg.symbol, cfg):
                started.append(cfg.symbol)
        return started

    async def stop(self, symbol: str) -> bool:
        rt = self._runtimes.pop(symbol, None)
        if rt is None:
            return False

        tasks = rt.all_tasks()
        for t in tasks:
            t.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

        self.generator.remove_symbol(symbol)
        self.feed.forget(symbol)
        self._anchor_applied_us.pop(symbol, None)
        logs.info(f"[Scheduler] stopped {symbol}")
        return True

    async def stop_all(self) -> None:
        for symbol in list(self._runtimes):
            await self.stop(symbol)

        for t in self._background:
            t.cancel()
        await asyncio.gather(*self._background, return_exceptions=True)
        self._background = []
        logs.info("[Scheduler] all symbols stopped")

    def running_symbols(self) -> List[str]:
        return sorted(self._runtimes)

    def is_running(self, symbol: str) -> bool:
        return symbol in self._runtimes

    # ------------------------------------------------------------------
    # Hot reload
    # ------------------------------------------------------------------

    async def update_config(self, symbol: str, config: SymbolConfig) -> None:
        """Swap one symbol's config; other symbols are untouched."""
        if not config.enabled:
            await self.stop(symbol)
            return

        rt = self._runtimes.get(symbol)
        if rt is None:
            await self.start(symbol, config)
            return

        self.generator.update_config(config)
        self.risk.set_config(symbol, config)
        old, rt.config = rt.config, config

        if old.base_symbol != config.base_symbol:
            if rt.anchor_task is not None:
                rt.anchor_task.cancel()
                await asyncio.gather(rt.anchor_task, return_exceptions=True)
                rt.anchor_task = None
            self._anchor_applied_us.pop(symbol, None)
            self._spawn_anchor_task(rt)

        logs.info(f"[Scheduler] config reloaded for {symbol}")

    async def reload(self, configs: Union[AppConfig, Iterable[SymbolConfig]]) -> None:
        """
        Apply a full config set: unknown running symbols stop,
        the rest are updated or started.
        """
        incoming = {cfg.symbol: cfg for cfg in self._iter_configs(configs, enabled_only=False)}
        for symbol in list(self._runtimes):
            if symbol not in incoming:
                await self.stop(symbol)
        for symbol, cfg in incoming.items():
            await self.update_config(symbol, cfg)

    # ------------------------------------------------------------------
    # Real prices
    # ------------------------------------------------------------------

    def update_real_price(self, base_symbol: str, price: float, force: bool = False) -> bool:
        """
        Record a real quote and re-anchor the symbols built on it,
        at most once per anchor_refresh_seconds each (first quote applies at once).
        """
        if price is None or not math.isfinite(price) or price <= 0:
            logs.warning(f"[Scheduler] ignored invalid real price {base_symbol}={price}")
            return False

        self._real_prices[base_symbol] = float(price)
        now = self.clock()
        applied = False
        for symbol, rt in self._runtimes.items():
            if rt.config.base_symbol != base_symbol:
                continue
            last = self._anchor_applied_us.get(symbol)
            window = int(rt.config.anchor_refresh_seconds * US_PER_SECOND)
            if force or last is None or now - last >= window:
                if self.generator.update_real_price(symbol, price):
                    self._anchor_applied_us[symbol] = now
                    applied = True
        return applied

    def push_real_price(self, base_symbol: str, price: float) -> None:
        """Thread-safe entry for quote feeds running outside the loop."""
        loop = self._loop
        if loop is None or loop.is_closed():
            raise RuntimeError("scheduler is not running on an event loop")
        loop.call_soon_threadsafe(self.update_real_price, base_symbol, price)

    def last_real_price(self, base_symbol: str) -> Optional[float]:
        return self._real_prices.get(base_symbol)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def tick_once(self, symbol: str) -> Optional[Tick]:
        rt = self._runtimes.get(symbol)
        if rt is None:
            return None
        cfg = rt.config
        try:
            now = self.clock()
            real = self._real_prices.get(cfg.base_symbol) if cfg.base_symbol else None
            mode = self._resolve_mode(rt, now, real)
            if mode is None:
                self.metrics.incr(symbol, "skipped_closed")
                return None

            self._maybe_reset_drift(rt)

            bias = 0.0
            if mode is PriceMode.REAL:
                tick = self.generator.real_based_price(symbol, real)
            elif mode is PriceMode.ANCHORING:
                target = anchored_price(rt.anchoring.start_price, real, rt.anchoring.progress(now))
                tick = self.generator.apply_price(symbol, target, PriceMode.ANCHORING)
            else:
                bias = self.risk.compute_intervention_bias(symbol)
                tick = self.generator.generate_next_price(symbol, bias)
            if tick is None:
                return None

            self.feed.publish(tick)
            self.metrics.incr(symbol, "ticks")
            if bias:
                self.metrics.incr(symbol, "biased_ticks")
            return tick
        except Exception:
            logs.exception(f"[Scheduler] tick failed for {symbol}")
            self.metrics.incr(symbol, "failures")
            return None

    def _resolve_mode(self, rt: _SymbolRuntime, now: int, real: Optional[float]) -> Optional[PriceMode]:
        """Price mode of the next tick; None while the session is closed."""
        cfg = rt.config
        if cfg.is_24_hours:
            rt.mode = PriceMode.OTC
            return rt.mode

        if not self.calendar.is_open(cfg.market_type, to_datetime(now)):
            if rt.mode in (PriceMode.REAL, PriceMode.ANCHORING):
                logs.info(f"[Scheduler] mode switch {rt.mode.value} -> OTC for {cfg.symbol}")
            rt.mode, rt.anchoring = PriceMode.OTC, None
            return None

        if real is None:
            rt.mode, rt.anchoring = PriceMode.OTC, None
            return rt.mode

        if rt.mode is PriceMode.OTC:
            rt.anchoring = _Anchoring(
                start_us=now,
                duration_us=int(cfg.anchoring_duration_mins * US_PER_MINUTE),
                start_price=self.generator.get_current_price(cfg.symbol),
            )
            rt.mode = PriceMode.ANCHORING
            logs.info(
                f"[Scheduler] mode switch OTC -> ANCHORING for {cfg.symbol} "
                f"({rt.anchoring.start_price} -> {real} over {cfg.anchoring_duration_mins} min)"
            )
            return rt.mode

        if rt.mode is PriceMode.ANCHORING and rt.anchoring is not None:
            if rt.anchoring.progress(now) < 1.0:
                return rt.mode
            logs.info(f"[Scheduler] anchoring completed for {cfg.symbol}")

        rt.mode, rt.anchoring = PriceMode.REAL, None
        return rt.mode

    def price_mode(self, symbol: str) -> Optional[PriceMode]:
        """Mode of the symbol's last tick decision (None before the first one)."""
        rt = self._runtimes.get(symbol)
        return rt.mode if rt is not None else None

    def anchoring_progress(self, symbol: str) -> float:
        rt = self._runtimes.get(symbol)
        if rt is None or rt.anchoring is None:
            return 1.0
        return rt.anchoring.progress(self.clock())

    async def _tick_loop(self, symbol: str) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.tick_interval_seconds
        next_at = loop.time()
        while True:
            self.tick_once(symbol)
            next_at += interval
            await asyncio.sleep(max(0.0, next_at - loop.time()))

    def _maybe_reset_drift(self, rt: _SymbolRuntime) -> None:
        now = self.clock()
        window = int(rt.config.anchoring_duration_mins * US_PER_MINUTE)
        if now - rt.last_drift_reset_us >= window:
            self.generator.reset_drift(rt.config.symbol)
            rt.last_drift_reset_us = now

    # ------------------------------------------------------------------
    # Anchor / background loops
    # ------------------------------------------------------------------

    def _spawn_anchor_task(self, rt: _SymbolRuntime) -> None:
        if rt.config.base_symbol and self.price_source is not None:
            rt.anchor_task = asyncio.create_task(
                self._anchor_loop(rt.config.symbol), name=f"anchor:{rt.config.symbol}"
            )

    async def _anchor_loop(self, symbol: str) -> None:
        while True:
            rt = self._runtimes.get(symbol)
            if rt is None:
                return
            base = rt.config.base_symbol
            try:
                price = await AsyncRetry.run(
                    self.price_source.fetch_price,
                    base,
                    max_attempts=self.config.anchor_fetch_attempts,
                    delay=self.config.anchor_fetch_delay_seconds,
                    attempt_timeout=self.config.anchor_fetch_timeout_seconds,
                    on_retry=lambda attempt, exc: self.metrics.incr(symbol, "anchor_retries"),
                )
                if price is not None:
                    self.update_real_price(base, price)
            except Exception:
                logs.exception(f"[Scheduler] anchor fetch failed for {symbol} ({base})")
                self.metrics.incr(symbol, "anchor_failures")
            await asyncio.sleep(rt.config.anchor_refresh_seconds)

    def _ensure_background(self) -> None:
        if self._background:
            return
        self._background = [
            asyncio.create_task(self._exposure_loop(), name="exposure-refresh"),
            asyncio.create_task(self._diagnostics_loop(), name="diagnostics"),
        ]

    async def _exposure_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.exposure_refresh_seconds)
            try:
                self.risk.refresh()
            except Exception:
                logs.exception("[Scheduler] exposure refresh failed")

    async def _diagnostics_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.diagnostics_interval_seconds)
            try:
                self.log_diagnostics()
            except Exception:
                logs.exception("[Scheduler] diagnostics failed")

    def log_diagnostics(self) -> None:
        self.metrics.log_summary()
        for symbol in self.running_symbols():
            st = self.generator.get_extended_state(symbol)
            if st is None:
                continue
            mode = self.price_mode(symbol)
            dev = f"{st.anchor_deviation * 100:+.3f}%" if st.anchor_deviation is not None else "n/a"
            logs.info(
                f"[Diagnostics] {symbol} mode={mode.value if mode else '-'} price={st.price} phase={st.phase.value} "
                f"sigma={math.sqrt(st.variance):.3e} anchor_dev={dev} drift={st.drift_pips:+.1f}pips"
            )

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _initial_price(self, config: SymbolConfig, explicit: Optional[float]) -> float:
        if explicit is not None:
            return explicit
        if config.base_symbol and config.base_symbol in self._real_prices:
            return self._real_prices[config.base_symbol]
        last = self.feed.get_latest_price(config.symbol)
        if last is not None:
            return last.price
        return config.default_price

    @staticmethod
    def _iter_configs(configs, enabled_only: bool = True) -> List[SymbolConfig]:
        if isinstance(configs, AppConfig):
            return configs.enabled_symbols() if enabled_only else list(configs.symbols.values())
        items = list(configs)
        return [c for c in items if c.enabled] if enabled_only else items
