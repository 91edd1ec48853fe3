"""Delay differential equations ``y' = f(t, y, Z)``.

Column i of Z is the state at ``t - lag_i``, lags in declaration order.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ..evaluators import DdeEvaluator
from ..matrix_ops import ring_coupling
from ..model_core import Model
from ._shapes import sigmoid


def wille_baker_rhs(  # noqa: PLR0913
    t: float,  # noqa: ARG001
    y: NDArray[np.floating],
    z: NDArray[np.floating],
    a: float,
    b: float,
    c: float,
) -> NDArray[np.floating]:
    """Three-variable linear delay system of Wille and Baker (1992)."""
    return np.array([
        z[0, 0] / a,
        (z[0, 0] + z[1, 1]) / b,
        y[1] / c,
    ])


def wille_baker_aux(
    time: NDArray[np.floating],  # noqa: ARG001
    y: NDArray[np.floating],
    **_params: object,
) -> NDArray[np.floating]:
    """Euclidean norm of the state at every stored time."""
    return np.sqrt(np.sum(y**2, axis=0))


def wille_baker_dde() -> Model:
    """Wille-Baker example DDE with lags 1 and 0.2 and unit initial state."""
    return Model(
        "WilleBaker",
        DdeEvaluator(wille_baker_rhs),
        variables=[("y1", 1.0), ("y2", 1.0), ("y3", 1.0)],
        parameters=[("a", 1.0), ("b", 1.0), ("c", 1.0)],
        lags=[("tau1", 1.0, (0.0, 2.0)), ("tau2", 0.2, (0.0, 2.0))],
        t_span=(0.0, 20.0),
        options={"rtol": 1e-6},
        aux_fn=wille_baker_aux,
        display=("time_portrait", "phase_portrait", "auxiliary"),
    )


def neural_net_dde(n: int, seed: int | None = None) -> Model:
    """Ring of n sigmoidal units with delayed second and third neighbour input.

    ``tau V' = -V + F(a A V + b B V(t-d1) + c C V(t-d2) + Iext - theta)``
    where A, B and C couple each unit to the neighbours 1, 2 and 3 steps away.
    """
    rng = np.random.default_rng(seed)

    def neural_net_rhs(  # noqa: PLR0913
        t: float,  # noqa: ARG001
        v: NDArray[np.floating],
        z: NDArray[np.floating],
        Aij: NDArray[np.floating],  # noqa: N803
        Bij: NDArray[np.floating],  # noqa: N803
        Cij: NDArray[np.floating],  # noqa: N803
        a: float,
        b: float,
        c: float,
        Iext: NDArray[np.floating],  # noqa: N803
        theta: float,
        tau: float,
    ) -> NDArray[np.floating]:
        drive = a * Aij @ v + b * Bij @ z[:, 0] + c * Cij @ z[:, 1] + Iext - theta
        return (-v + sigmoid(drive)) / tau

    return Model(
        "NeuralNetDDE",
        DdeEvaluator(neural_net_rhs),
        variables=[("V", rng.random(n), (0.0, 1.0))],
        parameters=[
            ("Aij", ring_coupling(n, (-1, 1))),
            ("Bij", ring_coupling(n, (-2, 2))),
            ("Cij", ring_coupling(n, (-3, 3))),
            ("a", 1.0 / n),
            ("b", 1.0 / n),
            ("c", 1.0 / n),
            ("Iext", rng.random(n)),
            ("theta", 0.5),
            ("tau", 10.0),
        ],
        lags=[("d1", 0.10), ("d2", 0.15)],
        t_span=(0.0, 200.0),
        display=("time_portrait", "space_time"),
    )
