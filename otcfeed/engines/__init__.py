from otcfeed.engines.candle_aggregate_engine import AggregateCandleEngine
from otcfeed.engines.history_synthesizer import HistorySynthesizer
from otcfeed.engines.manual_control import ManualControl, ManualControlRegistry
from otcfeed.engines.phase_machine import PhaseMachine
from otcfeed.engines.price_generator import PriceGenerator
from otcfeed.engines.risk_engine import RiskEngine, TrackedTrade, intervention_bias
from otcfeed.engines.volatility import GarchVolatility

__all__ = [
    "AggregateCandleEngine",
    "GarchVolatility",
    "HistorySynthesizer",
    "ManualControl",
    "ManualControlRegistry",
    "PhaseMachine",
    "PriceGenerator",
    "RiskEngine",
    "TrackedTrade",
    "intervention_bias",
]
