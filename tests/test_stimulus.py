# tests/test_stimulus.py
"""Unit tests for dyn_engine.stimulus."""

from __future__ import annotations

import numpy as np
import pytest

from dyn_engine.stimulus import gated, pulse


@pytest.mark.parametrize(
    ("t", "expected"),
    [(-0.1, 0.0), (0.0, 2.0), (0.5, 2.0), (1.0, 0.0), (3.0, 0.0)],
)
def test_pulse_is_half_open(t: float, expected: float) -> None:
    """The pulse includes its onset and excludes its offset."""
    assert pulse(t, 0.0, 1.0, 2.0) == expected


def test_pulse_vector_amplitude_outside_is_zero_vector() -> None:
    """Vector amplitudes give a zero vector outside the window."""
    out = pulse(5.0, 0.0, 1.0, [1.0, 2.0])
    assert np.array_equal(out, [0.0, 0.0])
    assert np.array_equal(pulse(0.5, 0.0, 1.0, [1.0, 2.0]), [1.0, 2.0])


def test_gated_is_zero_before_origin() -> None:
    """Gated stimuli vanish for negative times and pass through afterwards."""
    assert gated(-1e-9, 3.0) == 0.0
    assert gated(0.0, 3.0) == 3.0
    assert gated(1e6, 3.0) == 3.0
