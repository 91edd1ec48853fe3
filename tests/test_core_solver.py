# tests/test_core_solver.py
"""Tests for dyn_engine.core_solver.CoreSolver.

This module verifies:
- Fixed-step grids, first-column identity and derivative storage.
- Accuracy and convergence order of the explicit methods.
- Adaptive stepping: exact landing on t1, step-size growth, rejection limits.
- scipy-backed methods and their dense-output interpolant.
- Status lifecycle and divergence errors.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest

from dyn_engine.core_solver import (
    AdaptiveConfig,
    CoreSolver,
    DtControllerConfig,
    RunConfig,
    SolverStatus,
    fixed_time_grid,
)
from dyn_engine.errors import IntegrationDivergedError, SolverConfigError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    FloatArray = NDArray[np.floating]


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------


def _decay(_t: float, y: FloatArray) -> FloatArray:
    return -y


def _constant(_t: float, y: FloatArray) -> FloatArray:
    return np.ones_like(y)


def _blowup(_t: float, y: FloatArray) -> FloatArray:
    return y * y


def _final_error(method: str, dt: float) -> float:
    solver = CoreSolver(1)
    cfg = RunConfig(method=method, dt=dt)
    traj = solver.run(_decay, (0.0, 1.0), [1.0], config=cfg)
    return abs(float(traj.final_state[0]) - np.exp(-1.0))


# -----------------------------------------------------------------------------
# Time grid
# -----------------------------------------------------------------------------


def test_fixed_time_grid_lands_on_t1() -> None:
    """The last interval is truncated to end exactly on t1."""
    grid = fixed_time_grid(0.0, 1.0, 0.3)
    assert grid.size == 5
    assert grid[0] == 0.0
    assert grid[-1] == 1.0
    assert np.all(np.diff(grid) > 0.0)


def test_fixed_time_grid_exact_multiple_has_no_sliver() -> None:
    """Spans that are a multiple of dt get exactly that many steps."""
    assert fixed_time_grid(0.0, 1.0, 0.1).size == 11


def test_fixed_time_grid_rejects_bad_dt() -> None:
    """dt must be positive."""
    with pytest.raises(ValueError, match="dt must be positive"):
        fixed_time_grid(0.0, 1.0, 0.0)


# -----------------------------------------------------------------------------
# Fixed stepping
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("method", ["euler", "heun", "rk23", "rk45", "dop853"])
def test_first_column_is_initial_state(method: str) -> None:
    """Column 0 equals y0 exactly and time[0] equals t0."""
    y0 = np.array([0.3, -1.7, 2.0])
    traj = CoreSolver(3).run(_decay, (0.5, 1.5), y0, config=RunConfig(method=method))
    assert traj.time[0] == 0.5
    assert traj.time[-1] == 1.5
    assert np.array_equal(traj.y[:, 0], y0)


def test_default_fixed_grid_has_100_steps() -> None:
    """Without dt a fixed run takes (t1 - t0) / 100 steps."""
    traj = CoreSolver(1).run(_decay, (0.0, 2.0), [1.0], config=RunConfig("euler"))
    assert traj.n_time == 101
    assert traj.stats.nsteps == 100


def test_euler_matches_closed_form_recurrence() -> None:
    """Fixed Euler on y' = -y gives (1 - dt)^k."""
    dt = 0.1
    traj = CoreSolver(1).run(
        _decay, (0.0, 1.0), [1.0], config=RunConfig(method="euler", dt=dt)
    )
    expected = (1.0 - dt) ** np.arange(traj.n_time)
    assert np.allclose(traj.y[0], expected, rtol=1e-12)


def test_yp_holds_rhs_at_stored_points() -> None:
    """yp column k is F(time[k], y[:, k])."""
    traj = CoreSolver(2).run(
        _decay, (0.0, 1.0), [1.0, 2.0], config=RunConfig(method="heun", dt=0.25)
    )
    assert traj.yp is not None
    assert np.allclose(traj.yp, -traj.y)


def test_euler_first_order_convergence() -> None:
    """Halving dt halves the Euler error."""
    ratio = _final_error("euler", 0.02) / _final_error("euler", 0.01)
    assert 1.8 < ratio < 2.2


def test_heun_second_order_convergence() -> None:
    """Halving dt quarters the Heun error."""
    ratio = _final_error("heun", 0.02) / _final_error("heun", 0.01)
    assert 3.6 < ratio < 4.4


def test_unknown_method_raises() -> None:
    """Unknown method names are configuration errors."""
    with pytest.raises(SolverConfigError, match="Unknown method 'rk4'"):
        CoreSolver(1).run(_decay, (0.0, 1.0), [1.0], config=RunConfig(method="rk4"))


def test_wrong_y0_shape_raises() -> None:
    """y0 must have shape (n_state,)."""
    with pytest.raises(ValueError, match="y0 shape"):
        CoreSolver(2).run(_decay, (0.0, 1.0), [1.0])


def test_bad_span_raises() -> None:
    """t_span must be increasing."""
    with pytest.raises(ValueError, match="t_span"):
        CoreSolver(1).run(_decay, (1.0, 1.0), [1.0])


# -----------------------------------------------------------------------------
# Adaptive stepping
# -----------------------------------------------------------------------------


def test_adaptive_heun_exact_for_constant_rhs() -> None:
    """Adaptive Heun reproduces y = y0 + t and lands exactly on t1."""
    cfg = RunConfig(method="heun", adaptive=True, dt=0.01)
    traj = CoreSolver(2).run(_constant, (0.0, 3.0), [1.0, -1.0], config=cfg)
    assert traj.time[-1] == 3.0
    assert np.allclose(traj.final_state, [4.0, 2.0], rtol=0.0, atol=1e-12)
    # zero error estimate lets the step double every time
    steps = np.diff(traj.time)
    assert steps[1] == pytest.approx(2.0 * steps[0])
    assert traj.stats.nfailed == 0


def test_adaptive_respects_dt_max() -> None:
    """Accepted steps never exceed dt_max."""
    cfg = RunConfig(
        method="heun",
        adaptive=True,
        dt_controller=DtControllerConfig(dt_max=0.05),
    )
    traj = CoreSolver(1).run(_constant, (0.0, 1.0), [0.0], config=cfg)
    assert np.max(np.diff(traj.time)) <= 0.05 + 1e-15


@pytest.mark.parametrize("method", ["euler", "heun"])
def test_adaptive_meets_tolerance(method: str) -> None:
    """Adaptive runs on y' = -y stay close to exp(-t)."""
    cfg = RunConfig(
        method=method,
        adaptive=True,
        adaptive_cfg=AdaptiveConfig(rtol=1e-6, atol=1e-9),
    )
    traj = CoreSolver(1).run(_decay, (0.0, 2.0), [1.0], config=cfg)
    # local error control; the global error sits above rtol
    assert traj.final_state[0] == pytest.approx(np.exp(-2.0), rel=5e-3)


def test_adaptive_too_many_rejects_raises() -> None:
    """Exhausting max_reject raises IntegrationDivergedError."""
    cfg = RunConfig(
        method="heun",
        adaptive=True,
        dt=1.0,
        adaptive_cfg=AdaptiveConfig(rtol=1e-14, atol=1e-14, max_reject=2),
    )
    solver = CoreSolver(1)
    with pytest.raises(IntegrationDivergedError, match="too many rejected"):
        solver.run(_decay, (0.0, 5.0), [1.0], config=cfg)
    assert solver.status is SolverStatus.FAILED


def test_adaptive_max_steps_raises() -> None:
    """Exceeding max_steps raises IntegrationDivergedError."""
    cfg = RunConfig(
        method="heun",
        adaptive=True,
        dt=0.01,
        dt_controller=DtControllerConfig(dt_max=0.01),
        adaptive_cfg=AdaptiveConfig(max_steps=10),
    )
    with pytest.raises(IntegrationDivergedError, match="max_steps"):
        CoreSolver(1).run(_constant, (0.0, 1.0), [0.0], config=cfg)


# -----------------------------------------------------------------------------
# scipy-backed methods
# -----------------------------------------------------------------------------


@pytest.mark.parametrize("method", ["rk23", "rk45", "dop853"])
def test_scipy_methods_accuracy(method: str) -> None:
    """Embedded RK pairs meet the requested tolerance."""
    cfg = RunConfig(method=method, adaptive_cfg=AdaptiveConfig(rtol=1e-8, atol=1e-10))
    traj = CoreSolver(1).run(_decay, (0.0, 2.0), [1.0], config=cfg)
    assert traj.final_state[0] == pytest.approx(np.exp(-2.0), rel=1e-5)
    assert traj.solver == method


def test_scipy_dense_output_used_by_state_at() -> None:
    """state_at uses the scipy interpolant between stored points."""
    cfg = RunConfig(method="rk45", adaptive_cfg=AdaptiveConfig(rtol=1e-9, atol=1e-12))
    traj = CoreSolver(1).run(_decay, (0.0, 3.0), [1.0], config=cfg)
    assert traj.interpolant is not None
    assert traj.state_at(1.234)[0] == pytest.approx(np.exp(-1.234), rel=1e-6)
    out = traj.state_at(np.array([0.5, 2.5]))
    assert out.shape == (1, 2)


def test_scipy_respects_dt_max() -> None:
    """dt_max is forwarded as scipy's max_step."""
    cfg = RunConfig(method="rk45", dt_controller=DtControllerConfig(dt_max=0.1))
    traj = CoreSolver(1).run(_decay, (0.0, 2.0), [1.0], config=cfg)
    assert np.max(np.diff(traj.time)) <= 0.1 + 1e-12


# -----------------------------------------------------------------------------
# Status and divergence
# -----------------------------------------------------------------------------


def test_status_lifecycle() -> None:
    """A solver moves from INITIALIZED to COMPLETED."""
    solver = CoreSolver(1)
    assert solver.status is SolverStatus.INITIALIZED
    solver.run(_decay, (0.0, 1.0), [1.0])
    assert solver.status is SolverStatus.COMPLETED


def test_fixed_divergence_carries_last_finite_state() -> None:
    """Overflow to inf raises with the last finite time and state."""
    solver = CoreSolver(1)
    cfg = RunConfig(method="euler", dt=0.5)
    with np.errstate(over="ignore", invalid="ignore"):
        with pytest.raises(IntegrationDivergedError) as info:
            solver.run(_blowup, (0.0, 50.0), [1.0], config=cfg)
    err = info.value
    assert np.all(np.isfinite(err.y))
    assert 0.0 <= err.t < 50.0
    assert solver.status is SolverStatus.FAILED


def test_evaluator_errors_propagate_and_fail() -> None:
    """Exceptions raised by the right-hand side propagate unchanged."""

    def broken(_t: float, _y: FloatArray) -> FloatArray:
        msg = "boom"
        raise RuntimeError(msg)

    solver = CoreSolver(1)
    with pytest.raises(RuntimeError, match="boom"):
        solver.run(broken, (0.0, 1.0), [1.0])
    assert solver.status is SolverStatus.FAILED
