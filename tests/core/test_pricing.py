import pytest

from otcfeed.core.pricing import (
    anchor_band,
    clamp_to_anchor,
    is_on_grid,
    pip_decimals,
    quantize,
)


@pytest.mark.parametrize(
    "pip, decimals",
    [(0.0001, 4), (0.01, 2), (1.0, 0), (0.5, 1), (0.00001, 5)],
)
def test_pip_decimals(pip, decimals):
    assert pip_decimals(pip) == decimals


def test_quantize_snaps_to_grid():
    assert quantize(1.08504, 0.0001) == 1.085
    assert quantize(1.08506, 0.0001) == 1.0851
    assert quantize(95000.126, 0.01) == 95000.13
    assert is_on_grid(quantize(1.23456789, 0.0001), 0.0001)


def test_anchor_band_is_on_grid_and_inside_limit():
    lower, upper = anchor_band(1.0850, 2.0, 0.0001)
    assert is_on_grid(lower, 0.0001) and is_on_grid(upper, 0.0001)
    assert (upper - 1.0850) / 1.0850 <= 0.02 + 1e-12
    assert (1.0850 - lower) / 1.0850 <= 0.02 + 1e-12
    assert anchor_band(1.0, 2.0, 0.0001) == (0.98, 1.02)


def test_clamp_to_anchor():
    assert clamp_to_anchor(1.05, 1.0, 2.0, 0.0001) == 1.02
    assert clamp_to_anchor(0.90, 1.0, 2.0, 0.0001) == 0.98
    assert clamp_to_anchor(1.01, 1.0, 2.0, 0.0001) == 1.01
    # no anchor → untouched
    assert clamp_to_anchor(5.0, None, 2.0, 0.0001) == 5.0
