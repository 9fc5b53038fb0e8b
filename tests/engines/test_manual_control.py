import pytest

from otcfeed.engines.manual_control import DIRECTION_INFLUENCE, ManualControlRegistry


def test_direction_bias_is_clamped():
    reg = ManualControlRegistry()
    ctl = reg.set_direction_bias("X", 250, 3.0)
    assert ctl.direction_bias == 100
    assert ctl.direction_strength == 1.0
    assert ctl.bias() == pytest.approx(DIRECTION_INFLUENCE)

    ctl = reg.set_direction_bias("X", -50, 0.5)
    assert ctl.bias() == pytest.approx(-0.5 * 0.5 * DIRECTION_INFLUENCE)


def test_volatility_multiplier_validation():
    reg = ManualControlRegistry()
    assert reg.set_volatility_multiplier("X", 2.0).volatility_multiplier == 2.0
    with pytest.raises(ValueError):
        reg.set_volatility_multiplier("X", 0.0)


def test_price_override_expires(clock):
    reg = ManualControlRegistry(clock=clock)
    reg.set_price_override("X", 1.2345, expires_in_seconds=10)
    assert reg.get("X").price_override == 1.2345

    clock.advance(11)
    assert reg.get("X").price_override is None


def test_price_override_without_expiry(clock):
    reg = ManualControlRegistry(clock=clock)
    reg.set_price_override("X", 1.5)
    clock.advance(3600)
    assert reg.get("X").price_override == 1.5

    reg.clear_price_override("X")
    assert reg.get("X").price_override is None


def test_controls_are_independent_per_symbol():
    reg = ManualControlRegistry()
    reg.set_direction_bias("A", 50)
    reg.set_volatility_multiplier("B", 3.0)
    assert reg.get("A").volatility_multiplier == 1.0
    assert reg.get("B").direction_bias == 0.0
    assert reg.active_symbols() == ["A", "B"]

    reg.clear("A")
    assert reg.get("A") is None


def test_invalid_override_price():
    with pytest.raises(ValueError):
        ManualControlRegistry().set_price_override("X", -1.0)
