"""Neural-mass and haemodynamic models."""

from __future__ import annotations

from typing import Final

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..evaluators import OdeEvaluator
from ..matrix_ops import weighted_mean
from ..model_core import Model
from ..stimulus import gated, pulse
from ._shapes import sigmoid

_KIJ_SHAPE_ERROR: Final[str] = "Kij must be a square (n, n) matrix; got shape {shape}"


# =============================================================================
# Wilson-Cowan network
# =============================================================================


def wilson_cowan_net(
    Kij: ArrayLike,  # noqa: N803
    je: ArrayLike = 0.0,
    ji: ArrayLike = 0.0,
    *,
    normalize: bool = False,
    seed: int | None = None,
) -> Model:
    """Network of Wilson-Cowan excitatory/inhibitor pairs.

    ``taue Ue' = -Ue + F(wee Ue - wei Ui + Je - be + k C)``
    ``taui Ui' = -Ui + F(wie Ue - wii Ui + Ji - bi)``

    where the coupling C is ``Kij @ Ue``, or with ``normalize=True`` the mean
    of the source activities weighted by row i of Kij, the inputs to node i.

    Args:
        Kij: (n, n) connection weights.
        je: External drive to the excitatory cells (scalar or length n).
        ji: External drive to the inhibitory cells (scalar or length n).
        normalize: Use the weighted-mean coupling.
        seed: Seed for the random initial state.

    Raises:
        ValueError: If Kij is not square.

    Returns:
        ODE model with variables ``Ue`` and ``Ui``.
    """
    kij = np.asarray(Kij, dtype=np.float64)
    if kij.ndim != 2 or kij.shape[0] != kij.shape[1]:  # noqa: PLR2004
        raise ValueError(_KIJ_SHAPE_ERROR.format(shape=kij.shape))
    n = kij.shape[0]
    rng = np.random.default_rng(seed)

    def wilson_cowan_rhs(  # noqa: PLR0913
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        wee: float,
        wei: float,
        wie: float,
        wii: float,
        k: float,
        Kij: NDArray[np.floating],  # noqa: N803
        be: float,
        bi: float,
        Je: NDArray[np.floating],  # noqa: N803
        Ji: NDArray[np.floating],  # noqa: N803
        taue: float,
        taui: float,
    ) -> NDArray[np.floating]:
        ue = y[:n]
        ui = y[n:]
        # row i of Kij holds the inputs to node i
        coupling = weighted_mean(Kij.T, ue) if normalize else Kij @ ue
        due = (-ue + sigmoid(wee * ue - wei * ui + Je - be + k * coupling)) / taue
        dui = (-ui + sigmoid(wie * ue - wii * ui + Ji - bi)) / taui
        return np.concatenate([due, dui])

    return Model(
        "WilsonCowanNet",
        OdeEvaluator(wilson_cowan_rhs),
        variables=[
            ("Ue", rng.random(n), (0.0, 1.0)),
            ("Ui", rng.random(n), (0.0, 1.0)),
        ],
        parameters=[
            ("wee", 10.0, (0.0, 30.0)),
            ("wei", 10.0, (0.0, 30.0)),
            ("wie", 10.0, (0.0, 30.0)),
            ("wii", -2.0, (-5.0, 5.0)),
            ("k", 1.0, (0.0, 5.0)),
            ("Kij", kij),
            ("be", 0.0),
            ("bi", 0.0),
            ("Je", np.broadcast_to(np.asarray(je, dtype=np.float64), (n,))),
            ("Ji", np.broadcast_to(np.asarray(ji, dtype=np.float64), (n,))),
            ("taue", 1.0),
            ("taui", 1.0),
        ],
        t_span=(0.0, 100.0),
        options={"rtol": 1e-5},
        display=("time_portrait", "phase_portrait", "space_time"),
    )


# =============================================================================
# BOLD haemodynamic response
# =============================================================================


def boldhrf_rhs(  # noqa: PLR0913
    t: float,
    y: NDArray[np.floating],
    V0: float,  # noqa: ARG001, N803
    E0: float,  # noqa: N803
    tau0: float,
    tau1: float,
    alpha: float,
    kappa: float,
    gamma: float,
    Z: float,  # noqa: N803
    ton: float,
    toff: float,
) -> NDArray[np.floating]:
    """Balloon model: blood volume v, deoxyhaemoglobin q, inflow f, signal s."""
    # v, q and f are physically non-negative
    v, q, f = np.maximum(y[:3], 0.0)
    s = y[3]
    u = pulse(t, ton, toff, Z)

    dv = (f - v ** (1.0 / alpha)) / tau0
    # fraction of oxygen extracted from the inflow; all of it as f -> 0
    extraction = 1.0 - (1.0 - E0) ** (1.0 / f) if f > 0.0 else 1.0
    dq = (f * extraction / E0 - v ** ((1.0 - alpha) / alpha) * q) / tau0
    df = s / tau1
    ds = (u - kappa * s - gamma * (f - 1.0)) / tau1
    return np.array([dv, dq, df, ds])


def boldhrf_aux(
    time: NDArray[np.floating],
    y: NDArray[np.floating],
    *,
    V0: float,  # noqa: N803
    E0: float,  # noqa: N803
    Z: float,  # noqa: N803
    ton: float,
    toff: float,
    **_params: object,
) -> NDArray[np.floating]:
    """BOLD signal and the neural stimulus over a solution.

    Returns:
        Row 0 is ``V0 (k1 (1 - q) + k2 (1 - q/v) + k3 (1 - v))``, row 1 the
        stimulus.
    """
    v = y[0]
    q = y[1]
    k1 = 7.0 * E0
    k2 = 2.0
    k3 = 2.0 * E0 - 0.2
    bold = V0 * (k1 * (1.0 - q) + k2 * (1.0 - q / v) + k3 * (1.0 - v))
    u = np.array([pulse(float(t), ton, toff, Z) for t in time], dtype=np.float64)
    return np.vstack([bold, u])


def boldhrf() -> Model:
    """Haemodynamic response to a unit stimulus on ``ton <= t < toff``."""
    return Model(
        "BOLDHRF",
        OdeEvaluator(boldhrf_rhs),
        variables=[
            ("v", 1.0, (0.0, 2.0)),
            ("q", 1.0, (0.0, 2.0)),
            ("f", 1.0, (0.0, 2.0)),
            ("s", 0.0, (-1.0, 1.0)),
        ],
        parameters=[
            ("V0", 0.02, (0.0, 0.1)),
            ("E0", 0.34, (0.0, 1.0)),
            ("tau0", 0.98, (0.0, 2.0)),
            ("tau1", 1.0, (0.0, 2.0)),
            ("alpha", 0.33, (0.0, 1.0)),
            ("kappa", 0.65, (0.0, 1.0)),
            ("gamma", 0.41, (0.0, 1.0)),
            ("Z", 1.0, (0.0, 2.0)),
            ("ton", 0.0, (0.0, 30.0)),
            ("toff", 1.0, (0.0, 30.0)),
        ],
        t_span=(0.0, 30.0),
        options={"rtol": 1e-6},
        aux_fn=boldhrf_aux,
        display=("time_portrait", "auxiliary"),
    )


# =============================================================================
# Excitatory-inhibitory-excitatory triad
# =============================================================================


def eie0d_rhs(  # noqa: PLR0913
    t: float,
    y: NDArray[np.floating],
    wee: float,
    wei: float,
    wie: float,
    wii: float,
    be: float,
    bi: float,
    J1: float,  # noqa: N803
    J2: float,  # noqa: N803
    delta: float,
    taue: float,
    taui: float,
) -> NDArray[np.floating]:
    """Two excitatory populations sharing one inhibitory population."""
    ue1, ui, ue2 = y
    # stimuli are off before the origin
    j1 = gated(t, J1)
    j2 = gated(t, J2)
    d = gated(t, delta)

    due1 = (-ue1 + sigmoid(wee * ue1 - wei * ui - be + j1 + d)) / taue
    dui = (-ui + sigmoid(wie * (ue1 + ue2) - wii * ui - bi)) / taui
    due2 = (-ue2 + sigmoid(wee * ue2 - wei * ui - be + j2 - d)) / taue
    return np.array([due1, dui, due2])


def eie0d() -> Model:
    """Point model of two competing excitatory populations."""
    return Model(
        "EIE0D",
        OdeEvaluator(eie0d_rhs),
        variables=[
            ("Ue1", 0.0, (0.0, 1.0)),
            ("Ui", 0.0, (0.0, 1.0)),
            ("Ue2", 0.0, (0.0, 1.0)),
        ],
        parameters=[
            ("wee", 12.0, (0.0, 20.0)),
            ("wei", 10.0, (0.0, 20.0)),
            ("wie", 10.0, (0.0, 20.0)),
            ("wii", 1.0, (0.0, 20.0)),
            ("be", 1.75, (0.0, 5.0)),
            ("bi", 2.6, (0.0, 5.0)),
            ("J1", 0.0, (0.0, 5.0)),
            ("J2", 0.0, (0.0, 5.0)),
            ("delta", 0.0, (-1.0, 1.0)),
            ("taue", 5.0, (0.0, 20.0)),
            ("taui", 10.0, (0.0, 20.0)),
        ],
        t_span=(0.0, 200.0),
        options={"rtol": 1e-6, "atol": 1e-6},
        display=("time_portrait", "phase_portrait"),
    )
