# tests/test_models.py
"""Tests for the model gallery in dyn_engine.models.

This module verifies:
- Every gallery model passes verify() and survives a short run.
- Kuramoto phase locking and the order parameter.
- Wave propagation with absorbing versus periodic boundaries.
- Reaction-diffusion behaviour on uniform fields.
- Auxiliary outputs of the delay and haemodynamic models.
- Coupling direction of the network neural-mass models.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest

from dyn_engine import auxiliary, integrate, ring_coupling, verify
from dyn_engine.models import (
    boldhrf,
    btf2003,
    btf2003_dde,
    btf2003_sde,
    eie0d,
    fisher_kolmogorov_1d,
    kloeden_platen_446,
    kuramoto,
    kuramoto_net,
    neural_net_dde,
    ornstein_uhlenbeck,
    reaction_diffusion_1d,
    wave_equation_1d,
    wave_equation_2d,
    wille_baker_dde,
    wilson_cowan_net,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from dyn_engine import Model

GALLERY: dict[str, Callable[[], Model]] = {
    "kuramoto": lambda: kuramoto(5, seed=0),
    "kuramoto_net": lambda: kuramoto_net(ring_coupling(4), k=2.0, seed=1),
    "wave_1d_periodic": lambda: wave_equation_1d(50),
    "wave_1d_absorbing": lambda: wave_equation_1d(50, bc="absorbing"),
    "wave_2d": lambda: wave_equation_2d(8),
    "fisher_reflecting": lambda: fisher_kolmogorov_1d(40, bc="reflecting"),
    "fisher_free": lambda: fisher_kolmogorov_1d(40, bc="free"),
    "reaction_diffusion": lambda: reaction_diffusion_1d(20, seed=0),
    "ornstein_uhlenbeck": lambda: ornstein_uhlenbeck(3),
    "kloeden_platen": kloeden_platen_446,
    "wille_baker": wille_baker_dde,
    "neural_net_dde": lambda: neural_net_dde(6, seed=0),
    "wilson_cowan": lambda: wilson_cowan_net(ring_coupling(4), seed=0),
    "wilson_cowan_normalized": lambda: wilson_cowan_net(
        ring_coupling(4), je=0.5, normalize=True, seed=0
    ),
    "boldhrf": boldhrf,
    "eie0d": eie0d,
    "btf2003": lambda: btf2003(ring_coupling(4), seed=0),
    "btf2003_sde": lambda: btf2003_sde(ring_coupling(3), seed=0),
    "btf2003_dde": lambda: btf2003_dde(ring_coupling(4), seed=0),
}


# -----------------------------------------------------------------------------
# Whole gallery
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("factory", GALLERY.values(), ids=GALLERY.keys())
def test_gallery_model_verifies_and_runs(factory: Callable[[], Model]) -> None:
    """Evaluators have the right shapes and a short run stays finite."""
    model = factory()
    verify(model)
    t0 = model.t_span[0]
    traj = integrate(model, t_span=(t0, t0 + 1.0))
    assert np.all(np.isfinite(traj.y))
    assert np.array_equal(traj.y[:, 0], model.concat_state())
    assert traj.solver == model.default_solver


def test_factories_are_reproducible_with_seed() -> None:
    """Random initial states are tied to the seed."""
    a = neural_net_dde(6, seed=4).concat_state()
    b = neural_net_dde(6, seed=4).concat_state()
    c = neural_net_dde(6, seed=5).concat_state()
    assert np.array_equal(a, b)
    assert not np.array_equal(a, c)


def test_neural_net_dde_small_ring_wraps_offsets() -> None:
    """On three units the third-neighbour shift wraps back to each unit."""
    model = neural_net_dde(3, seed=0)
    verify(model)
    assert np.array_equal(model.get_par("Cij"), 2.0 * np.eye(3))
    assert np.array_equal(model.get_par("Bij"), model.get_par("Aij"))


# -----------------------------------------------------------------------------
# Oscillators
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("gap", [2.0, np.pi])
def test_kuramoto_pair_phase_locks(two_node_kij: np.ndarray, gap: float) -> None:
    """Two identical coupled oscillators converge to a common phase."""
    model = kuramoto_net(two_node_kij, k=1.0, omega=[0.0, 0.0], theta0=[0.0, gap])
    traj = integrate(model)
    theta = traj.variable("theta")
    assert np.cos(theta[1, -1] - theta[0, -1]) > 0.99


def test_kuramoto_order_parameter(two_node_kij: np.ndarray) -> None:
    """Identical phases give R = 1 and zero relative phase."""
    model = kuramoto_net(two_node_kij, omega=[1.0, 1.0], theta0=[0.3, 0.3])
    traj = integrate(model, t_span=(0.0, 1.0))
    aux = auxiliary(model, traj)
    assert aux.shape == (3, traj.n_time)
    assert np.allclose(aux[:2], 0.0)
    assert np.allclose(aux[2], 1.0)


def test_kuramoto_ring_variant_name_and_coupling() -> None:
    """The ring variant couples each node to its two neighbours."""
    model = kuramoto(6, seed=0)
    assert model.name == "Kuramoto"
    assert np.array_equal(model.get_par("Kij").sum(axis=0), np.full(6, 2.0))


def test_network_factories_reject_non_square_kij() -> None:
    """Connectivity matrices must be square."""
    with pytest.raises(ValueError, match="square"):
        kuramoto_net(np.ones((2, 3)))
    with pytest.raises(ValueError, match="square"):
        wilson_cowan_net(np.ones(4))


# -----------------------------------------------------------------------------
# Spatial models
# -----------------------------------------------------------------------------


def _right_moving_pulse(model: Model, n: int, c: float) -> float:
    """Load a right-moving Gaussian into a 1D wave model; return its peak."""
    x = np.arange(n, dtype=float)
    sigma = 15.0
    u0 = np.exp(-((x - 150.0) ** 2) / sigma**2)
    # u(x - c t) has velocity -c du/dx
    v0 = 2.0 * c * (x - 150.0) / sigma**2 * u0
    model.set_var("U", u0)
    model.set_var("V", v0)
    return float(u0.max())


def test_wave_absorbing_boundary_lets_pulse_leave() -> None:
    """An outgoing pulse leaves an absorbing domain and wraps a periodic one."""
    n, c = 200, 10.0
    absorbing = wave_equation_1d(n, bc="absorbing", c=c)
    periodic = wave_equation_1d(n, bc="periodic", c=c)
    peak = _right_moving_pulse(absorbing, n, c)
    _right_moving_pulse(periodic, n, c)

    span = (0.0, 15.0)
    u_abs = integrate(absorbing, t_span=span).variable("U")[:, -1]
    u_per = integrate(periodic, t_span=span).variable("U")[:, -1]
    assert np.max(np.abs(u_abs)) < 0.2 * peak
    assert np.max(u_per) > 0.8 * peak


def test_wave_2d_state_layout() -> None:
    """The 2D wave keeps (n, n) variables."""
    model = wave_equation_2d(6)
    assert model.get_var("U").shape == (6, 6)
    assert model.n_state == 72
    traj = integrate(model, t_span=(0.0, 0.1))
    assert traj.variable("V").shape == (6, 6, traj.n_time)


def test_fisher_uniform_field_follows_logistic() -> None:
    """With reflecting edges a uniform field grows logistically everywhere."""
    n = 30
    model = fisher_kolmogorov_1d(n, bc="reflecting")
    model.set_var("U", np.full(n, 0.5))
    traj = integrate(model, t_span=(0.0, 5.0))
    u = traj.variable("U")[:, -1]
    assert np.ptp(u) < 1e-12
    assert u[0] == pytest.approx(1.0 / (1.0 + np.exp(-5.0)), rel=1e-4)


def test_fisher_unknown_boundary_rejected() -> None:
    """Unknown boundary keywords are rejected when the model is built."""
    with pytest.raises(ValueError, match="Unknown bc"):
        fisher_kolmogorov_1d(10, bc="sticky")


# -----------------------------------------------------------------------------
# Stochastic models
# -----------------------------------------------------------------------------


def test_ornstein_uhlenbeck_relaxes_to_mu() -> None:
    """An ensemble of OU processes settles around mu."""
    model = ornstein_uhlenbeck(200)
    traj = integrate(model, options={"seed": 21})
    assert traj.solver == "euler-maruyama"
    assert float(np.mean(traj.final_state)) == pytest.approx(0.5, abs=0.1)


def test_kloeden_platen_solver_variants_share_noise() -> None:
    """Both SDE schemes can be driven by the same recorded draws."""
    model = kloeden_platen_446()
    em = integrate(model, solver="euler-maruyama", options={"seed": 8})
    heun = integrate(model, solver="heun", options={"randn": em.noise})
    assert np.array_equal(em.dw, heun.dw)
    assert np.array_equal(em.time, heun.time)


# -----------------------------------------------------------------------------
# Delay and neural models
# -----------------------------------------------------------------------------


def test_wille_baker_norm_auxiliary() -> None:
    """The auxiliary row is the Euclidean norm of the state."""
    model = wille_baker_dde()
    traj = integrate(model, t_span=(0.0, 2.0))
    aux = auxiliary(model, traj)
    assert aux.shape == (1, traj.n_time)
    assert aux[0, 0] == pytest.approx(np.sqrt(3.0))
    assert np.allclose(aux[0], np.linalg.norm(traj.y, axis=0))


def test_wille_baker_lags() -> None:
    """Lags are declared in order and adjustable."""
    model = wille_baker_dde()
    assert np.array_equal(model.lag_values(), [1.0, 0.2])
    model.set_lag("tau2", 0.5)
    assert model.get_lag("tau2") == 0.5


def test_boldhrf_auxiliary_rows() -> None:
    """BOLD starts at zero at rest and the stimulus row follows the pulse."""
    model = boldhrf()
    traj = integrate(model, t_span=(0.0, 5.0))
    aux = auxiliary(model, traj)
    assert aux.shape == (2, traj.n_time)
    assert aux[0, 0] == pytest.approx(0.0, abs=1e-12)
    assert aux[1, 0] == 1.0
    assert np.all(aux[1, traj.time >= 1.0] == 0.0)
    assert np.all(np.isfinite(aux))


def test_eie0d_symmetric_drive_stays_symmetric() -> None:
    """Equal drives keep both excitatory populations identical."""
    model = eie0d()
    model.set_par("J1", 1.0)
    model.set_par("J2", 1.0)
    traj = integrate(model, t_span=(0.0, 50.0))
    assert np.allclose(traj.variable("Ue1"), traj.variable("Ue2"))


def test_wilson_cowan_drive_broadcasts() -> None:
    """Scalar drives become one value per node."""
    model = wilson_cowan_net(ring_coupling(5), je=0.7, seed=0)
    assert np.array_equal(model.get_par("Je"), np.full(5, 0.7))
    assert model.get_var("Ue").shape == (5,)


def _initial_rhs(model: Model) -> np.ndarray:
    rhs = model.evaluator.bind(model.parameters.as_kwargs(), model.n_state)
    return rhs(model.t_span[0], model.concat_state())


def test_wilson_cowan_normalized_coupling_follows_rows() -> None:
    """The weighted mean for node i averages over row i of Kij."""
    # node 0 listens to node 1; node 1 has no inputs
    one_way = np.array([[0.0, 2.0], [0.0, 0.0]])
    normalized = wilson_cowan_net(one_way, normalize=True, seed=3)
    plain = wilson_cowan_net(one_way / 2.0, seed=3)
    assert np.allclose(_initial_rhs(normalized), _initial_rhs(plain))

    isolated = wilson_cowan_net(np.zeros((2, 2)), seed=3)
    assert _initial_rhs(normalized)[1] == pytest.approx(_initial_rhs(isolated)[1])


# -----------------------------------------------------------------------------
# BTF2003 network
# -----------------------------------------------------------------------------


def test_btf2003_node_without_inputs_gets_no_drive() -> None:
    """A zero column of Kij leaves that node uncoupled."""
    # node 0 projects to node 1; nothing projects to node 0
    one_way = np.array([[0.0, 1.0], [0.0, 0.0]])
    coupled = _initial_rhs(btf2003(one_way, seed=2))
    isolated = _initial_rhs(btf2003(np.zeros((2, 2)), seed=2))
    assert np.allclose(coupled[[0, 2, 4]], isolated[[0, 2, 4]])
    assert coupled[1] != pytest.approx(isolated[1])


def test_btf2003_rejects_non_square_kij() -> None:
    """All three variants validate Kij."""
    for factory in (btf2003, btf2003_sde, btf2003_dde):
        with pytest.raises(ValueError, match="square"):
            factory(np.ones((2, 3)))


def test_btf2003_sde_noise_enters_v_only() -> None:
    """Diffusion is diag(ane (alpha + beta V)) on V and zero elsewhere."""
    model = btf2003_sde(ring_coupling(3), seed=0)
    model.set_par("alpha", 0.5)
    model.set_par("beta", 1.0)
    _, diffusion = model.evaluator.bind(model.parameters.as_kwargs(), model.n_state)
    g = diffusion(0.0, model.concat_state())
    assert g.shape == (9, 3)
    ane = model.get_par("a")[3]
    assert np.allclose(g[:3], np.diag(ane * (0.5 + model.get_var("V"))))
    assert np.array_equal(g[3:], np.zeros((6, 3)))


def test_btf2003_sde_defaults_are_deterministic() -> None:
    """With alpha = beta = 0 the noise draws do not matter."""
    model = btf2003_sde(ring_coupling(3), seed=0)
    a = integrate(model, t_span=(0.0, 2.0), options={"seed": 1})
    b = integrate(model, t_span=(0.0, 2.0), options={"seed": 2})
    assert np.array_equal(a.y, b.y)


def test_btf2003_dde_self_connection_is_instantaneous() -> None:
    """Only off-diagonal inputs read the lagged state."""
    model = btf2003_dde(np.diag([1.0, 1.0, 1.0]), seed=0)
    rhs = model.evaluator.bind(model.parameters.as_kwargs(), model.n_state)
    y = model.concat_state()
    lagged = np.full((model.n_state, 1), 0.4)
    assert np.array_equal(rhs(0.0, y, y[:, np.newaxis]), rhs(0.0, y, lagged))

    model.set_par("Kij", ring_coupling(3))
    rhs = model.evaluator.bind(model.parameters.as_kwargs(), model.n_state)
    assert not np.allclose(rhs(0.0, y, y[:, np.newaxis]), rhs(0.0, y, lagged))


def test_btf2003_dde_lag_and_options() -> None:
    """One lag d = 1 and adaptive stepping by default."""
    model = btf2003_dde(ring_coupling(4), seed=0)
    assert model.lag_values().tolist() == [1.0]
    assert model.options.adaptive
