"""Stochastic differential equations ``dy = F(t, y) dt + G(t, y) dW``."""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ..evaluators import SdeEvaluator
from ..model_core import Model


def ornstein_uhlenbeck(n: int = 1) -> Model:
    """n independent Ornstein-Uhlenbeck processes.

    ``dY = theta (mu - Y) dt + sigma dW`` with one noise source per component.
    """

    def ou_drift(
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        theta: float,
        mu: float,
        sigma: float,  # noqa: ARG001
    ) -> NDArray[np.floating]:
        return theta * (mu - y)

    def ou_diffusion(
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        theta: float,  # noqa: ARG001
        mu: float,  # noqa: ARG001
        sigma: float,
    ) -> NDArray[np.floating]:
        return sigma * np.eye(y.size)

    return Model(
        "OrnsteinUhlenbeck",
        SdeEvaluator(ou_drift, ou_diffusion, noise_sources=n),
        variables=[("Y", 5.0 * np.ones(n))],
        parameters=[
            ("theta", 1.0, (0.0, 2.0)),
            ("mu", 0.5, (-1.0, 1.0)),
            ("sigma", 0.5, (0.0, 1.0)),
        ],
        t_span=(0.0, 10.0),
        solvers=("euler-maruyama",),
        options={"dt": 0.01},
        display=("time_portrait", "phase_portrait"),
    )


def kloeden_platen_446() -> Model:
    """Scalar SDE with an explicit Ito solution (Kloeden and Platen, eq. 4.46).

    ``dy = -(a + b^2 y)(1 - y^2) dt + b (1 - y^2) dW``
    """

    def kp_drift(
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        a: float,
        b: float,
    ) -> NDArray[np.floating]:
        return -(a + y * b**2) * (1.0 - y**2)

    def kp_diffusion(
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        a: float,  # noqa: ARG001
        b: float,
    ) -> NDArray[np.floating]:
        return (b * (1.0 - y**2)).reshape(1, 1)

    return Model(
        "KloedenPlaten446",
        SdeEvaluator(kp_drift, kp_diffusion, noise_sources=1),
        variables=[("y", 0.1, (-1.0, 1.0))],
        parameters=[("a", 1.0, (0.0, 2.0)), ("b", 0.8, (0.0, 2.0))],
        t_span=(0.0, 5.0),
        solvers=("euler-maruyama", "heun"),
        options={"dt": 0.005},
        display=("time_portrait",),
    )
