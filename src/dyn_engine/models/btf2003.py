"""Breakspear-Terry-Friston (2003) neural-mass network.

Each node carries a mean excitatory membrane potential V, the fraction of
open potassium channels W and the inhibitory activity Z. Nodes talk to each
other through the mean firing rate of their excitatory inputs, where
``Kij[i, j]`` is the weight from node i to node j, so column j of Kij holds
the inputs to node j. Nodes without inputs see no long-range drive.

Three variants share the same local dynamics:

- :func:`btf2003`: deterministic network.
- :func:`btf2003_sde`: adds multiplicative noise on V,
  ``ane (alpha + beta V) dW``.
- :func:`btf2003_dde`: long-range input arrives after a lag d while the
  diagonal of Kij acts as an undelayed self-connection.

Vector parameters group related constants::

    a     = [aee, aei, aie, ane, ani]        connection weights
    gion  = [gCa, gK, gNa, gL]               ion conductances
    Vion  = [VCa, VK, VNa, VL]               Nernst potentials
    thrsh = [VT, ZT, TCa, TK, TNa]           gain thresholds
    delta = [dV, dZ, dCa, dK, dNa]           gain slopes
"""

from __future__ import annotations

from typing import Final

import numpy as np
from numpy.typing import ArrayLike, NDArray

from ..evaluators import DdeEvaluator, OdeEvaluator, SdeEvaluator
from ..matrix_ops import weighted_mean
from ..model_core import Model

_KIJ_SHAPE_ERROR: Final[str] = "Kij must be a square (n, n) matrix; got shape {shape}"

_PARAMETERS: Final[tuple[tuple[str, object], ...]] = (
    ("a", np.array([0.4, 2.0, 2.0, 1.0, 0.4])),
    ("b", 0.10),
    ("r", 0.25),
    ("phi", 0.7),
    ("gion", np.array([1.1, 2.0, 6.70, 0.5])),
    ("Vion", np.array([1.0, -0.7, 0.53, -0.5])),
    ("thrsh", np.array([0.0, 0.0, -0.01, 0.0, 0.30])),
    ("delta", np.array([0.7, 0.7, 0.15, 0.30, 0.15])),
    ("Isub", 0.3),
)


# =============================================================================
# Local dynamics
# =============================================================================


def gain(
    x: NDArray[np.floating],
    threshold: float,
    slope: float,
) -> NDArray[np.floating]:
    """Hyperbolic-tangent gain ``0.5 (1 + tanh((x - threshold) / slope))``."""
    return 0.5 * (1.0 + np.tanh((x - threshold) / slope))


def _split(y: NDArray[np.floating]) -> tuple[NDArray[np.floating], ...]:
    n = y.size // 3
    return y[:n], y[n : 2 * n], y[2 * n :]


def btf2003_local(  # noqa: PLR0913
    y: NDArray[np.floating],
    drive: NDArray[np.floating],
    a: NDArray[np.floating],
    b: float,
    r: float,
    phi: float,
    gion: NDArray[np.floating],
    Vion: NDArray[np.floating],  # noqa: N803
    thrsh: NDArray[np.floating],
    delta: NDArray[np.floating],
    Isub: float,  # noqa: N803
) -> NDArray[np.floating]:
    """Derivatives of (V, W, Z) for a given excitatory input drive.

    The drive scales the NMDA (via r) and AMPA contributions of the input
    firing rate to the calcium and sodium currents respectively.

    Args:
        y: Flat state ``[V, W, Z]``.
        drive: Input firing rate seen by each node, shape (n,).
        a: Connection weights.
        b: Time-constant of inhibition.
        r: NMDA to AMPA receptor ratio.
        phi: Temperature scaling of the potassium relaxation.
        gion: Ion conductances.
        Vion: Nernst potentials.
        thrsh: Gain thresholds.
        delta: Gain slopes.
        Isub: Subcortical input.

    Returns:
        Flat derivative ``[dV, dW, dZ]``.
    """
    v, w, z = _split(y)
    aee, aei, aie, ane, ani = a
    g_ca, g_k, g_na, g_l = gion
    v_ca, v_k, v_na, v_l = Vion

    qv = gain(v, thrsh[0], delta[0])
    qz = gain(z, thrsh[1], delta[1])
    m_ca = gain(v, thrsh[2], delta[2])
    m_k = gain(v, thrsh[3], delta[3])
    m_na = gain(v, thrsh[4], delta[4])

    dv = (
        -(g_ca + r * aee * drive) * m_ca * (v - v_ca)
        - g_k * w * (v - v_k)
        - g_l * (v - v_l)
        - (g_na * m_na + aee * drive) * (v - v_na)
        + ane * Isub
        - aie * qz * z
    )
    dw = phi * (m_k - w)
    dz = b * (ani * Isub + aei * qv * v)
    return np.concatenate([dv, dw, dz])


def btf2003_rhs(  # noqa: PLR0913
    t: float,  # noqa: ARG001
    y: NDArray[np.floating],
    Kij: NDArray[np.floating],  # noqa: N803
    a: NDArray[np.floating],
    b: float,
    r: float,
    phi: float,
    gion: NDArray[np.floating],
    Vion: NDArray[np.floating],  # noqa: N803
    thrsh: NDArray[np.floating],
    delta: NDArray[np.floating],
    Isub: float,  # noqa: N803
) -> NDArray[np.floating]:
    """Network drive is the input-weighted mean firing rate of the sources."""
    v, _, _ = _split(y)
    qv_mean = weighted_mean(Kij, gain(v, thrsh[0], delta[0]))
    return btf2003_local(y, qv_mean, a, b, r, phi, gion, Vion, thrsh, delta, Isub)


def _check_kij(Kij: ArrayLike) -> NDArray[np.floating]:  # noqa: N803
    kij = np.asarray(Kij, dtype=np.float64)
    if kij.ndim != 2 or kij.shape[0] != kij.shape[1]:  # noqa: PLR2004
        raise ValueError(_KIJ_SHAPE_ERROR.format(shape=kij.shape))
    return kij


def _variables(n: int, seed: int | None) -> list[tuple]:
    rng = np.random.default_rng(seed)
    return [
        ("V", rng.random(n) / 2.3 - 0.1670, (-0.6, 0.6)),
        ("W", rng.random(n) / 2.6 + 0.27, (0.0, 0.9)),
        ("Z", rng.random(n) / 10.0, (0.0, 0.3)),
    ]


# =============================================================================
# Factories
# =============================================================================


def btf2003(Kij: ArrayLike, seed: int | None = None) -> Model:  # noqa: N803
    """Deterministic BTF2003 network.

    Args:
        Kij: (n, n) connection weights, ``Kij[i, j]`` from node i to node j.
        seed: Seed for the random initial state.

    Raises:
        ValueError: If Kij is not square.

    Returns:
        ODE model with variables ``V``, ``W`` and ``Z``.
    """
    kij = _check_kij(Kij)
    return Model(
        "BTF2003ODE",
        OdeEvaluator(btf2003_rhs),
        variables=_variables(kij.shape[0], seed),
        parameters=[("Kij", kij), *_PARAMETERS],
        t_span=(0.0, 1000.0),
        options={"rtol": 1e-6},
        display=("time_portrait", "phase_portrait", "space_time"),
    )


def btf2003_sde(Kij: ArrayLike, seed: int | None = None) -> Model:  # noqa: N803
    """BTF2003 network driven by one Wiener process per node.

    The noise enters V only, with amplitude ``ane (alpha + beta V)``; both
    alpha and beta start at zero.
    """
    kij = _check_kij(Kij)
    n = kij.shape[0]

    def btf2003_drift(  # noqa: PLR0913
        t: float,
        y: NDArray[np.floating],
        Kij: NDArray[np.floating],  # noqa: N803
        a: NDArray[np.floating],
        b: float,
        r: float,
        phi: float,
        gion: NDArray[np.floating],
        Vion: NDArray[np.floating],  # noqa: N803
        thrsh: NDArray[np.floating],
        delta: NDArray[np.floating],
        Isub: float,  # noqa: N803
        alpha: float,  # noqa: ARG001
        beta: float,  # noqa: ARG001
    ) -> NDArray[np.floating]:
        return btf2003_rhs(t, y, Kij, a, b, r, phi, gion, Vion, thrsh, delta, Isub)

    def btf2003_diffusion(
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        a: NDArray[np.floating],
        alpha: float,
        beta: float,
        **_params: object,
    ) -> NDArray[np.floating]:
        g = np.zeros((3 * n, n))
        g[:n] = np.diag(a[3] * (alpha + beta * y[:n]))
        return g

    return Model(
        "BTF2003SDE",
        SdeEvaluator(btf2003_drift, btf2003_diffusion, noise_sources=n),
        variables=_variables(n, seed),
        parameters=[
            ("Kij", kij),
            *_PARAMETERS,
            ("alpha", 0.0, (0.0, 1.0)),
            ("beta", 0.0, (0.0, 1.0)),
        ],
        t_span=(0.0, 1000.0),
        solvers=("euler-maruyama", "heun"),
        options={"dt": 0.1},
        display=("time_portrait", "phase_portrait", "space_time"),
    )


def btf2003_dde(Kij: ArrayLike, seed: int | None = None) -> Model:  # noqa: N803
    """BTF2003 network whose long-range input is delayed by the lag d.

    The diagonal of Kij is read as an instantaneous self-connection; the
    remaining entries carry the firing rate of the source at ``t - d``.
    """
    kij = _check_kij(Kij)

    def btf2003_delay_rhs(  # noqa: PLR0913
        t: float,  # noqa: ARG001
        y: NDArray[np.floating],
        z: NDArray[np.floating],
        Kij: NDArray[np.floating],  # noqa: N803
        a: NDArray[np.floating],
        b: float,
        r: float,
        phi: float,
        gion: NDArray[np.floating],
        Vion: NDArray[np.floating],  # noqa: N803
        thrsh: NDArray[np.floating],
        delta: NDArray[np.floating],
        Isub: float,  # noqa: N803
    ) -> NDArray[np.floating]:
        v, _, _ = _split(y)
        v_lag, _, _ = _split(z[:, 0])
        kii = np.diag(Kij)
        long_range = Kij - np.diag(kii)
        drive = kii * gain(v, thrsh[0], delta[0]) + weighted_mean(
            long_range, gain(v_lag, thrsh[0], delta[0])
        )
        return btf2003_local(y, drive, a, b, r, phi, gion, Vion, thrsh, delta, Isub)

    return Model(
        "BTF2003DDE",
        DdeEvaluator(btf2003_delay_rhs),
        variables=_variables(kij.shape[0], seed),
        parameters=[("Kij", kij), *_PARAMETERS],
        lags=[("d", 1.0, (0.0, 10.0))],
        t_span=(0.0, 1000.0),
        options={"rtol": 1e-6, "adaptive": True},
        display=("time_portrait", "phase_portrait", "space_time"),
    )
