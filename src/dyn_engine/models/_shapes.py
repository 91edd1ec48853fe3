"""Initial-condition profiles and nonlinearities shared by gallery models."""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray


def sigmoid(v: ArrayLike) -> NDArray[np.floating]:
    """Logistic firing-rate function ``1 / (1 + exp(-v))``."""
    return 1.0 / (1.0 + np.exp(-np.asarray(v, dtype=np.float64)))


def gauss_1d(n: int, dx: float, sigma: float) -> NDArray[np.floating]:
    """Gaussian bump centred one third of the way along an n-point grid."""
    x = np.linspace(-n * dx / 3.0, 2.0 * n * dx / 3.0, n)
    return np.exp(-(x**2) / sigma**2)


def gauss_2d(n: int, dx: float, dy: float, sigma: float) -> NDArray[np.floating]:
    """Gaussian bump centred on an (n, n) grid."""
    x = np.linspace(-n * dx / 2.0, n * dx / 2.0, n)
    y = np.linspace(-n * dy / 2.0, n * dy / 2.0, n)
    xx, yy = np.meshgrid(x, y)
    return np.exp(-(xx**2) / sigma**2) * np.exp(-(yy**2) / sigma**2)
