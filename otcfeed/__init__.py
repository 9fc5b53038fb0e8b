#!filepath: otcfeed/__init__.py

from .utils.logger import Logging, logs
from .utils.retry import AsyncRetry
from .config.app_config import AppConfig

__version__ = "0.1.0"

# alias
async_retry = AsyncRetry

__all__ = [
    "logs", "Logging",
    "async_retry",
    "AppConfig",
    "__version__",
]
