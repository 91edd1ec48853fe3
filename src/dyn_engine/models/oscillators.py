"""Phase-coupled oscillator networks.

The Kuramoto network reads

    theta_j' = omega_j + (k / n) * sum_i K[i, j] * sin(theta_i - theta_j)

where K[i, j] is the weight of the connection from oscillator i to j.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..evaluators import OdeEvaluator
from ..matrix_ops import ring_coupling
from ..model_core import Model

_KIJ_SHAPE_ERROR = "Kij must be a square (n, n) matrix; got shape {shape}"


def kuramoto_rhs(
    t: float,  # noqa: ARG001
    theta: NDArray[np.floating],
    Kij: NDArray[np.floating],  # noqa: N803
    k: float,
    omega: NDArray[np.floating],
) -> NDArray[np.floating]:
    """Kuramoto phase velocities."""
    n = theta.size
    theta_ij = theta[:, np.newaxis] - theta[np.newaxis, :]
    return omega + (k / n) * np.sum(Kij * np.sin(theta_ij), axis=0)


def kuramoto_aux(
    time: NDArray[np.floating],  # noqa: ARG001
    theta: NDArray[np.floating],
    **_params: object,
) -> NDArray[np.floating]:
    """Relative phases and the order parameter over a solution.

    Returns:
        Rows ``sin(theta_i - theta_1)`` for every oscillator, followed by one row
        with the order parameter ``R = |sum_i exp(1j*theta_i)| / n``.
    """
    n = theta.shape[0]
    phi = np.sin(theta - theta[0:1, :])
    r = np.abs(np.sum(np.exp(1j * theta), axis=0)) / n
    return np.vstack([phi, r])


def kuramoto_net(
    Kij: ArrayLike,  # noqa: N803
    k: float = 1.0,
    omega: ArrayLike | None = None,
    theta0: ArrayLike | None = None,
    seed: int | None = None,
) -> Model:
    """Kuramoto network over an arbitrary connectivity matrix.

    Args:
        Kij: (n, n) connection weights.
        k: Global coupling strength.
        omega: Natural frequencies; standard-normal draws when None.
        theta0: Initial phases; uniform on [0, 2*pi) when None.
        seed: Seed for the random defaults.

    Raises:
        ValueError: If Kij is not square.

    Returns:
        ODE model with variable ``theta`` and auxiliary ``phi``/``R`` rows.
    """
    kij = np.asarray(Kij, dtype=np.float64)
    if kij.ndim != 2 or kij.shape[0] != kij.shape[1]:  # noqa: PLR2004
        raise ValueError(_KIJ_SHAPE_ERROR.format(shape=kij.shape))
    n = kij.shape[0]
    rng = np.random.default_rng(seed)
    omega_v = rng.standard_normal(n) if omega is None else omega
    theta_v = 2.0 * np.pi * rng.random(n) if theta0 is None else theta0

    return Model(
        "KuramotoNet",
        OdeEvaluator(kuramoto_rhs),
        variables=[("theta", theta_v)],
        parameters=[("Kij", kij), ("k", k, (0.0, 10.0)), ("omega", omega_v)],
        t_span=(0.0, 100.0),
        options={"rtol": 1e-6, "dt_max": 0.1},
        aux_fn=kuramoto_aux,
        display=("time_portrait", "phase_portrait", "auxiliary"),
    )


def kuramoto(n: int, k: float = 1.0, seed: int | None = None) -> Model:
    """Kuramoto oscillators coupled to their two ring neighbours."""
    model = kuramoto_net(ring_coupling(n, (-1, 1)), k=k, seed=seed)
    model.name = "Kuramoto"
    return model
