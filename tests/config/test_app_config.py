#!filepath: tests/config/test_app_config.py
import pytest
import yaml

from otcfeed.config import AppConfig, LogConfig, SchedulerConfig, SymbolConfig


@pytest.fixture
def sample_config_file(tmp_path):
    """
    Temporary YAML config; pytest cleans tmp_path.
    """
    data = {
        "log": {
            "dir": str(tmp_path / "logs"),
            "rotation": "1 day",
            "retention": "30 days",
            "level": "DEBUG",
        },
        "scheduler": {
            "tick_interval_seconds": 0.5,
            "exposure_refresh_seconds": 2,
        },
        "symbols": {
            "EUR/USD-OTC": {
                "base_symbol": "EUR/USD",
                "pip_size": 0.0001,
                "default_price": 1.085,
            },
            "BTC/USD-OTC": {
                "market_type": "CRYPTO",
                "pip_size": 0.01,
                "default_price": 95000,
                "enabled": False,
            },
        },
    }

    config_file = tmp_path / "config.yaml"
    config_file.write_text(yaml.safe_dump(data), encoding="utf-8")
    return config_file


def test_app_config_load(sample_config_file, monkeypatch):
    monkeypatch.delenv("OTCFEED_LOG_LEVEL", raising=False)
    cfg = AppConfig.load(path=str(sample_config_file))

    assert isinstance(cfg, AppConfig)
    assert isinstance(cfg.log, LogConfig)
    assert isinstance(cfg.scheduler, SchedulerConfig)

    assert cfg.log.level == "DEBUG"
    assert cfg.scheduler.tick_interval_seconds == 0.5
    # defaults survive partial sections
    assert cfg.scheduler.subscriber_buffer == 256


def test_symbols_are_keyed_and_named(sample_config_file):
    cfg = AppConfig.load(path=str(sample_config_file))

    eur = cfg.symbols["EUR/USD-OTC"]
    assert isinstance(eur, SymbolConfig)
    assert eur.symbol == "EUR/USD-OTC"
    assert eur.base_symbol == "EUR/USD"
    assert cfg.symbols["BTC/USD-OTC"].market_type == "CRYPTO"


def test_enabled_symbols(sample_config_file):
    cfg = AppConfig.load(path=str(sample_config_file))
    assert [c.symbol for c in cfg.enabled_symbols()] == ["EUR/USD-OTC"]


def test_env_overrides_log_level(sample_config_file, monkeypatch):
    monkeypatch.setenv("OTCFEED_LOG_LEVEL", "WARNING")
    cfg = AppConfig.load(path=str(sample_config_file))
    assert cfg.log.level == "WARNING"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        AppConfig.load(path=str(tmp_path / "nope.yml"))


def test_bundled_default_config_loads():
    cfg = AppConfig.load()
    assert "EUR/USD-OTC" in cfg.symbols
    assert cfg.symbols["US500-OTC"].is_24_hours is False


def test_invalid_symbol_in_yaml_is_rejected(tmp_path):
    config_file = tmp_path / "bad.yaml"
    config_file.write_text(
        yaml.safe_dump({"symbols": {"X": {"garch_alpha": 0.5, "garch_beta": 0.6}}}),
        encoding="utf-8",
    )
    with pytest.raises(ValueError):
        AppConfig.load(path=str(config_file))
