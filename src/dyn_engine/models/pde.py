"""Method-of-lines partial differential equations.

Each model discretizes space with the Laplacians of
:mod:`dyn_engine.matrix_ops`; the operator is built once per model and
closed over by the right-hand side.

Models:
    - 1D wave equation ``U'' = c^2 U_xx`` as the first-order system
      ``U' = V``, ``V' = c^2 U_xx``.
    - 2D wave equation on a periodic (n, n) mesh.
    - Fisher-Kolmogorov ``U' = D U_xx + r U (1 - U)``.
    - Two-species linear reaction-diffusion with periodic boundaries.
"""

from __future__ import annotations

import numpy as np
from numpy.typing import NDArray

from ..evaluators import OdeEvaluator
from ..matrix_ops import (
    apply_absorbing_boundary,
    build_laplacian_1d,
    build_laplacian_2d,
)
from ..model_core import Model
from ._shapes import gauss_1d, gauss_2d

_ODE_SOLVERS = ("rk45", "rk23")


# =============================================================================
# Wave equation
# =============================================================================


def wave_equation_1d(
    n: int,
    bc: str = "periodic",
    c: float = 10.0,
    dx: float = 1.0,
) -> Model:
    """1D wave equation with a Gaussian initial displacement.

    Args:
        n: Number of grid points.
        bc: "periodic" or "absorbing".
        c: Wave speed.
        dx: Grid spacing.

    Returns:
        ODE model with variables ``U`` (displacement) and ``V`` (velocity).
    """
    dxx = build_laplacian_1d(n, bc)
    absorbing = bc.strip().lower() == "absorbing"

    def wave_1d_rhs(
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        c: float,
        dx: float,
    ) -> NDArray[np.floating]:
        u = y[:n]
        v = y[n:]
        du = v.copy()
        dv = c**2 * (dxx @ u) / dx**2
        if absorbing:
            apply_absorbing_boundary(du, u, c, dx)
        return np.concatenate([du, dv])

    return Model(
        "WaveEquation1D",
        OdeEvaluator(wave_1d_rhs),
        variables=[("U", 2.0 * gauss_1d(n, dx, n / 20.0)), ("V", np.zeros(n))],
        parameters=[("c", c, (0.0, 20.0)), ("dx", dx, (0.1, 10.0))],
        t_span=(0.0, 20.0),
        solvers=_ODE_SOLVERS,
        options={"rtol": 1e-6},
        display=("space_time", "time_portrait"),
    )


def wave_equation_2d(n: int, bc: str = "periodic", c: float = 10.0) -> Model:
    """2D wave equation on an (n, n) unit-spaced mesh, Gaussian initial bump.

    Returns:
        ODE model with (n, n) variables ``U`` and ``V``.
    """
    dx = dy = 1.0
    lap = build_laplacian_2d(n, n, bc, dx=dx, dy=dy)
    m = n * n

    def wave_2d_rhs(
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        c: float,
    ) -> NDArray[np.floating]:
        u = y[:m]
        v = y[m:]
        return np.concatenate([v, c**2 * (lap @ u)])

    return Model(
        "WaveEquation2D",
        OdeEvaluator(wave_2d_rhs),
        variables=[
            ("U", 2.0 * gauss_2d(n, dx, dy, n / 20.0)),
            ("V", np.zeros((n, n))),
        ],
        parameters=[("c", c, (0.0, 20.0))],
        t_span=(0.0, 1.0),
        solvers=_ODE_SOLVERS,
        options={"rtol": 1e-6},
        display=("space_2d", "time_portrait"),
    )


# =============================================================================
# Diffusion with reaction
# =============================================================================


def fisher_kolmogorov_1d(n: int, bc: str = "periodic") -> Model:
    """Fisher-Kolmogorov travelling front on n points.

    Args:
        n: Number of grid points.
        bc: "periodic", "reflecting" or "free".

    Returns:
        ODE model with variable ``U``.
    """
    dx = 1.0
    dxx = build_laplacian_1d(n, bc)

    def fisher_kolmogorov_rhs(
        t: float,  # noqa: ARG001
        u: NDArray[np.floating],
        D: float,  # noqa: N803
        r: float,
        dx: float,
    ) -> NDArray[np.floating]:
        return D * (dxx @ u) / dx**2 + r * u * (1.0 - u)

    return Model(
        "FisherKolmogorov1D",
        OdeEvaluator(fisher_kolmogorov_rhs),
        variables=[("U", 2.0 * gauss_1d(n, dx, n / 20.0), (0.0, 1.0))],
        parameters=[("D", 1.0, (0.0, 10.0)), ("r", 1.0, (0.0, 10.0)), ("dx", dx)],
        t_span=(0.0, 20.0),
        solvers=_ODE_SOLVERS,
        options={"rtol": 1e-6},
        display=("space_time", "time_portrait"),
    )


def reaction_diffusion_1d(n: int, seed: int | None = None) -> Model:
    """Linear activator/inhibitor pair diffusing on a periodic ring.

    ``A' = a A - B + A_xx``, ``B' = b A - B + nu B_xx``.
    """
    dx = 1.0
    dxx = build_laplacian_1d(n, "periodic")
    rng = np.random.default_rng(seed)

    def reaction_diffusion_rhs(  # noqa: PLR0913
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        a: float,
        b: float,
        nu: float,
        dx: float,
    ) -> NDArray[np.floating]:
        a_field = y[:n]
        b_field = y[n:]
        f = a * a_field - b_field
        g = b * a_field - b_field
        da = f + (dxx @ a_field) / dx**2
        db = g + nu * (dxx @ b_field) / dx**2
        return np.concatenate([da, db])

    return Model(
        "ReactionDiffusion1D",
        OdeEvaluator(reaction_diffusion_rhs),
        variables=[("A", rng.random(n)), ("B", rng.random(n))],
        parameters=[("a", 1.0), ("b", 2.0), ("nu", 1.0), ("dx", dx)],
        t_span=(0.0, 20.0),
        solvers=("rk45", "rk23", "dop853"),
        options={"rtol": 1e-6},
        display=("space_time", "time_portrait"),
    )
