# tests/conftest.py
from __future__ import annotations

import pytest
from loguru import logger

from otcfeed.config.scheduler_config import SchedulerConfig
from otcfeed.config.symbol_config import PhaseTuning, SymbolConfig


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)  # or sys.stderr
    yield


class FakeClock:
    """Manually advanced epoch-microsecond clock."""

    def __init__(self, start_us: int = 1_700_000_000_000_000):
        self.now = start_us

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1_000_000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def eur_cfg() -> SymbolConfig:
    return SymbolConfig(
        symbol="EUR/USD-OTC",
        base_symbol="EUR/USD",
        market_type="FOREX",
        pip_size=0.0001,
        default_price=1.0850,
    )


@pytest.fixture
def gbp_cfg() -> SymbolConfig:
    return SymbolConfig(
        symbol="GBP/USD-OTC",
        base_symbol="GBP/USD",
        market_type="FOREX",
        pip_size=0.0001,
        default_price=1.2650,
    )


@pytest.fixture
def quiet_phases() -> PhaseTuning:
    """No random regime switches: phases only change when forced."""
    return PhaseTuning(impulse_probability=0.0, consolidation_probability=0.0)


@pytest.fixture
def fast_scheduler_cfg() -> SchedulerConfig:
    return SchedulerConfig(
        tick_interval_seconds=0.01,
        exposure_refresh_seconds=0.02,
        diagnostics_interval_seconds=0.05,
        subscriber_buffer=16,
        anchor_fetch_attempts=3,
        anchor_fetch_delay_seconds=0.0,
    )
