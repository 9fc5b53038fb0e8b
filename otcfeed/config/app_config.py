#!filepath: otcfeed/config/app_config.py
from __future__ import annotations

import os
from typing import Dict, List

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

from .log_config import LogConfig
from .scheduler_config import SchedulerConfig
from .symbol_config import SymbolConfig


def project_root() -> str:
    """
    Project root derived from this file:
    otcfeed/config/app_config.py → otcfeed/config → otcfeed → project_root
    """
    return os.path.abspath(os.path.join(os.path.dirname(__file__), "../../"))


def default_config_path() -> str:
    return os.path.join(os.path.dirname(os.path.abspath(__file__)), "base.yml")


class AppConfig(BaseModel):
    log: LogConfig = Field(default_factory=LogConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    symbols: Dict[str, SymbolConfig] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _inject_symbol_keys(cls, raw):
        # YAML is keyed by symbol; the record itself carries the symbol too
        if isinstance(raw, dict) and isinstance(raw.get("symbols"), dict):
            symbols = {}
            for key, body in raw["symbols"].items():
                if isinstance(body, dict):
                    body = {"symbol": key, **body}
                symbols[key] = body
            raw = {**raw, "symbols": symbols}
        return raw

    def enabled_symbols(self) -> List[SymbolConfig]:
        return [cfg for cfg in self.symbols.values() if cfg.enabled]

    @classmethod
    def load(cls, path: str | None = None) -> "AppConfig":
        """
        Load YAML config + .env
        - defaults to otcfeed/config/base.yml
        - independent of the current working directory
        - OTCFEED_LOG_LEVEL overrides log.level
        """
        root = project_root()

        # 1) .env at project root
        load_dotenv(os.path.join(root, ".env"))

        # 2) resolve config path
        if path is None:
            path = default_config_path()

        if not os.path.exists(path):
            raise FileNotFoundError(f"Config file not found: {path}")

        # 3) read YAML
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        level = os.getenv("OTCFEED_LOG_LEVEL")
        if level:
            raw.setdefault("log", {})
            raw["log"]["level"] = level

        return cls(**raw)
