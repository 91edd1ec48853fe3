"""Time-dependent inputs for model right-hand sides."""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray


def pulse(
    t: float,
    t_on: float,
    t_off: float,
    amplitude: ArrayLike = 1.0,
) -> NDArray[np.floating] | float:
    """Rectangular pulse active on the half-open window ``t_on <= t < t_off``.

    Args:
        t: Current time.
        t_on: Onset time (inclusive).
        t_off: Offset time (exclusive).
        amplitude: Value returned inside the window.

    Returns:
        amplitude inside the window, zero (of the same shape) outside it.
    """
    if t_on <= t < t_off:
        return amplitude if np.ndim(amplitude) == 0 else np.asarray(amplitude)
    if np.ndim(amplitude) == 0:
        return 0.0
    return np.zeros_like(np.asarray(amplitude, dtype=np.float64))


def gated(t: float, value: ArrayLike) -> NDArray[np.floating] | float:
    """Return value for ``t >= 0`` and zero before the run origin."""
    return pulse(t, 0.0, np.inf, value)
