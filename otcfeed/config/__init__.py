from .app_config import AppConfig
from .log_config import LogConfig
from .scheduler_config import SchedulerConfig
from .symbol_config import PhaseTuning, SymbolConfig, check_symbol_config

__all__ = [
    "AppConfig",
    "LogConfig",
    "SchedulerConfig",
    "PhaseTuning",
    "SymbolConfig",
    "check_symbol_config",
]
