# src/dyn_engine/core_solver.py
"""Explicit time-stepping driver for ODE models.

The solver advances a flat state vector from ``t0`` to ``t1`` and returns a
:class:`dyn_engine.trajectory.Trajectory`.

Supported methods (``RunConfig.method``):
    - "euler":  Explicit Euler (order 1). Fixed step, or adaptive via
                step-doubling.
    - "heun":   Explicit Heun / RK2 (order 2), embedded Euler estimator.
                Fixed step or adaptive.
    - "rk23", "rk45", "dop853":
                Embedded Runge-Kutta pairs from ``scipy.integrate.solve_ivp``.
                Always adaptive; the dense-output interpolant is kept on the
                trajectory.

Fixed stepping:
    The grid is ``t0, t0 + dt, ...`` with the last step truncated so that the
    final point is exactly ``t1``. Every grid point is stored.

Adaptive stepping:
    Each attempt produces a new state and an error estimate. The RMS scaled
    error norm against ``rtol``/``atol`` decides acceptance; the step is then
    rescaled by ``safety * err**(-1/(order+1))`` clamped to
    ``[fac_min, fac_max]`` and ``[dt_min, dt_max]``. Every accepted step is
    stored.

Failure:
    A non-finite state, too many consecutive rejections, ``dt`` collapsing to
    ``dt_min`` or exceeding ``max_steps`` raises
    :class:`dyn_engine.errors.IntegrationDivergedError` carrying the last
    finite time and state. The solver status then reads ``FAILED``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Literal, TypeAlias, cast

import numpy as np
from numpy.typing import ArrayLike, NDArray
from scipy.integrate import solve_ivp

from .errors import SolverConfigError, raise_diverged
from .trajectory import RunStats, Trajectory

logger = logging.getLogger(__name__)


# =============================================================================
# Errors / messages
# =============================================================================

_UNKNOWN_METHOD_ERROR_MSG = "Unknown method '{method}'. Supported: {allowed}"
_TOO_MANY_REJECTS_ERROR_MSG = "too many rejected steps"
_DT_UNDERFLOW_ERROR_MSG = "dt fell below dt_min"
_DT_SPACING_ERROR_MSG = "step size smaller than the spacing of t"
_MAX_STEPS_ERROR_MSG = "exceeded max_steps"
_NON_FINITE_ERROR_MSG = "non-finite state"
_Y0_SHAPE_ERROR_MSG = "y0 shape {actual} does not match expected {expected}"
_Y0_NON_FINITE_ERROR_MSG = "y0 contains non-finite values"
_TSPAN_ERROR_MSG = "t_span must satisfy t0 < t1 with finite values; got {t_span}"
_DT_ERROR_MSG = "dt must be positive and finite; got {dt}"
_INTERNAL_ERROR_ERR_OUT_MSG = "Internal error: err_out is required for this step"


# =============================================================================
# Type aliases
# =============================================================================

RHSFunction = Callable[[float, NDArray[np.floating]], NDArray[np.floating]]
MethodName = Literal["euler", "heun", "rk23", "rk45", "dop853"]

_SCIPY_METHODS: dict[str, str] = {"rk23": "RK23", "rk45": "RK45", "dop853": "DOP853"}
EXPLICIT_METHODS: tuple[str, ...] = ("euler", "heun")
ODE_METHODS: tuple[str, ...] = (*EXPLICIT_METHODS, *_SCIPY_METHODS)

# Default number of fixed steps when no dt is configured.
DEFAULT_STEPS = 100

_RunRecord: TypeAlias = tuple[
    NDArray[np.floating],
    NDArray[np.floating],
    NDArray[np.floating],
    RunStats,
]


class SolverStatus(str, Enum):
    """Lifecycle of a solver instance."""

    INITIALIZED = "initialized"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# Configuration dataclasses
# =============================================================================


@dataclass(slots=True, frozen=True)
class DtControllerConfig:
    """Configuration for adaptive timestep control.

    Attributes:
        dt_min: Minimum allowed dt.
        dt_max: Maximum allowed dt.
        safety: Safety factor applied to dt updates.
        fac_min: Minimum multiplicative change factor.
        fac_max: Maximum multiplicative change factor.
    """

    dt_min: float = 0.0
    dt_max: float = float("inf")
    safety: float = 0.9
    fac_min: float = 0.5
    fac_max: float = 2.0


@dataclass(slots=True, frozen=True)
class AdaptiveConfig:
    """Configuration for adaptive stepping.

    Attributes:
        rtol: Relative tolerance.
        atol: Absolute tolerance (scalar or array-like).
        dt_init: Optional initial dt guess; if None, use (t1 - t0) / 100.
        max_reject: Maximum number of rejected attempts per accepted step.
        max_steps: Maximum number of accepted steps per run.
    """

    rtol: float = 1e-6
    atol: float | NDArray[np.floating] = 1e-9
    dt_init: float | None = None
    max_reject: int = 25
    max_steps: int = 1_000_000


@dataclass(slots=True, frozen=True)
class RunConfig:
    """Configuration for one solver run.

    Attributes:
        method: Method name.
        adaptive: Whether explicit methods use adaptive stepping.
        dt: Fixed step size (also the initial guess in adaptive mode).
        dt_controller: Parameters for dt controller when adaptive=True.
        adaptive_cfg: Parameters controlling error tolerances and limits.
    """

    method: str = "heun"
    adaptive: bool = False
    dt: float | None = None
    dt_controller: DtControllerConfig = DtControllerConfig()
    adaptive_cfg: AdaptiveConfig = AdaptiveConfig()


@dataclass(slots=True)
class StepIO:
    """Bundle of per-step state for stepping kernels.

    Attributes:
        t: Current time.
        dt: Step size.
        y: Current state array (input).
        out: Output state array (written in-place).
        err_out: Error estimate array (written in-place) for adaptive methods.
    """

    t: float
    dt: float
    y: NDArray[np.floating]
    out: NDArray[np.floating]
    err_out: NDArray[np.floating] | None = None


# =============================================================================
# Time-grid helpers
# =============================================================================


def check_span(t_span: tuple[float, float] | ArrayLike) -> tuple[float, float]:
    """Validate and normalize a run span.

    Raises:
        ValueError: If the span is not finite and increasing.

    Returns:
        (t0, t1) as floats.
    """
    t0, t1 = (float(v) for v in np.asarray(t_span, dtype=float).reshape(2))
    if not (np.isfinite(t0) and np.isfinite(t1) and t0 < t1):
        raise ValueError(_TSPAN_ERROR_MSG.format(t_span=(t0, t1)))
    return t0, t1


def fixed_time_grid(t0: float, t1: float, dt: float) -> NDArray[np.floating]:
    """Return the fixed-step grid from t0 to t1.

    The last interval is truncated so the grid ends exactly on t1.

    Args:
        t0: Start time.
        t1: End time.
        dt: Nominal step.

    Raises:
        ValueError: If dt is not positive and finite.

    Returns:
        Strictly increasing grid with ``grid[0] == t0`` and ``grid[-1] == t1``.
    """
    if not (np.isfinite(dt) and dt > 0.0):
        raise ValueError(_DT_ERROR_MSG.format(dt=dt))
    # Shave a relative epsilon so spans that are an exact multiple of dt
    # do not gain a spurious tiny final step from rounding.
    n_steps = max(1, int(np.ceil((t1 - t0) / dt * (1.0 - 1e-12))))
    grid = t0 + dt * np.arange(n_steps + 1, dtype=np.float64)
    grid[-1] = t1
    return grid


def default_dt(t0: float, t1: float, dt: float | None) -> float:
    """Return dt, or (t1 - t0) / DEFAULT_STEPS when dt is None."""
    if dt is None:
        return (t1 - t0) / DEFAULT_STEPS
    return float(dt)


# =============================================================================
# CoreSolver
# =============================================================================


class CoreSolver:
    """Explicit solver for ``y' = f(t, y)`` on a flat state vector."""

    method_names: tuple[str, ...] = ODE_METHODS

    def __init__(self, n_state: int, *, dtype: type[np.floating] = np.float64) -> None:
        """Initialize CoreSolver.

        Args:
            n_state: Length of the state vector.
            dtype: Floating dtype of internal buffers.
        """
        self.n_state = int(n_state)
        self.dtype = np.dtype(dtype)
        self.state_shape = (self.n_state,)
        self._status = SolverStatus.INITIALIZED

        # Preallocate buffers
        self._rhs_buffer: NDArray[np.floating] = np.zeros(
            self.state_shape,
            dtype=self.dtype,
        )

        # Shared stepping buffers
        self._f_n: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)
        self._f_pred: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)
        self._state_pred: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)

        # Adaptive buffers
        self._y_full: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)
        self._y_half: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)
        self._y_two_half: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)
        self._err: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)
        self._scale: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)
        self._ratio: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)

        # Working state buffers (avoid allocating per substep)
        self._y_curr: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)
        self._y_try: NDArray[np.floating] = np.zeros_like(self._rhs_buffer)

        # Run counters
        self._nfevals = 0
        self._nfailed = 0

    @property
    def status(self) -> SolverStatus:
        """Current lifecycle state."""
        return self._status

    # ------------------------------------------------------------------
    # RHS / validation helpers
    # ------------------------------------------------------------------

    def _rhs_into(
        self,
        out: NDArray[np.floating],
        rhs_func: RHSFunction,
        t: float,
        y: NDArray[np.floating],
    ) -> None:
        """Evaluate RHS into out and count the evaluation.

        Args:
            out: Output buffer to write into.
            rhs_func: RHS function F(t, y); shape-checked by the evaluator.
            t: Time.
            y: State.
        """
        self._nfevals += 1
        np.copyto(out, rhs_func(float(t), y))

    def _normalize_method(self, method: str) -> str:
        """Normalize and validate method string.

        Args:
            method: User-provided method string.

        Raises:
            SolverConfigError: If method is unknown.

        Returns:
            Normalized method name.
        """
        method_norm = str(method).strip().lower()
        if method_norm not in self.method_names:
            raise SolverConfigError(
                _UNKNOWN_METHOD_ERROR_MSG.format(
                    method=method,
                    allowed=", ".join(self.method_names),
                )
            )
        return method_norm

    def _initial_state(self, y0: ArrayLike) -> NDArray[np.floating]:
        """Validate y0 and return a private copy.

        Raises:
            ValueError: If y0 has the wrong shape or non-finite entries.
        """
        y = np.array(y0, dtype=self.dtype, copy=True)
        if y.shape != self.state_shape:
            raise ValueError(
                _Y0_SHAPE_ERROR_MSG.format(actual=y.shape, expected=self.state_shape)
            )
        if not np.all(np.isfinite(y)):
            raise ValueError(_Y0_NON_FINITE_ERROR_MSG)
        return y

    # ------------------------------------------------------------------
    # Error control
    # ------------------------------------------------------------------

    def _error_norm(
        self,
        err: NDArray[np.floating],
        y_ref: NDArray[np.floating],
        y_prev: NDArray[np.floating],
        *,
        rtol: float,
        atol: float | NDArray[np.floating],
    ) -> float:
        """
        Compute RMS scaled error norm.

        Args:
            err: Error array.
            y_ref: Reference solution array.
            y_prev: Previous solution array.
            rtol: Relative tolerance.
            atol: Absolute tolerance.

        Returns:
            RMS scaled error norm (inf when not finite).
        """
        np.abs(y_ref, out=self._scale)
        np.abs(y_prev, out=self._ratio)
        np.maximum(self._scale, self._ratio, out=self._scale)

        self._scale *= float(rtol)
        if isinstance(atol, (float, int, np.floating)):
            self._scale += float(atol)
        else:
            self._scale += np.asarray(atol, dtype=self.dtype)

        with np.errstate(invalid="ignore", over="ignore", divide="ignore"):
            np.divide(err, self._scale, out=self._ratio)
            v = float(np.sqrt(np.mean(self._ratio * self._ratio)))
        if not np.isfinite(v):
            return float("inf")
        return v

    @staticmethod
    def _propose_dt(
        dt: float,
        err_norm: float,
        order: int,
        *,
        cfg: DtControllerConfig,
    ) -> float:
        """
        Propose a new dt based on error norm and method order.

        Args:
            dt: Current dt.
            err_norm: Current error norm.
            order: Method order.
            cfg: Dt controller configuration.

        Returns:
            Proposed new dt.
        """
        if err_norm <= 0.0:
            fac = cfg.fac_max
        else:
            exp = 1.0 / float(order + 1)
            fac = cfg.safety * (err_norm ** (-exp))
            fac = min(cfg.fac_max, max(cfg.fac_min, fac))

        dt_new = dt * fac
        if dt_new < cfg.dt_min:
            return cfg.dt_min
        if dt_new > cfg.dt_max:
            return cfg.dt_max
        return dt_new

    # ------------------------------------------------------------------
    # One-step kernels (write into provided out arrays)
    # ------------------------------------------------------------------

    @staticmethod
    def _require_err_out(step: StepIO) -> NDArray[np.floating]:
        """
        Return err_out for a step, raising if missing.

        Args:
            step: Step bundle.

        Raises:
            RuntimeError: If err_out is None.

        Returns:
            err_out array.
        """
        if step.err_out is None:
            raise RuntimeError(_INTERNAL_ERROR_ERR_OUT_MSG)
        return step.err_out

    def _step_euler(self, rhs_func: RHSFunction, step: StepIO) -> int:
        """Plain explicit Euler step (fixed-step mode).

        Returns:
            Method order (1).
        """
        self._rhs_into(self._f_n, rhs_func, step.t, step.y)
        np.multiply(self._f_n, step.dt, out=step.out)
        step.out += step.y
        return 1

    def _step_euler_doubling(self, rhs_func: RHSFunction, step: StepIO) -> int:
        """Explicit Euler step with step-doubling error estimate.

        Args:
            rhs_func: RHS function.
            step: Step bundle.

        Returns:
            Method order (1).
        """
        err_out = self._require_err_out(step)

        self._rhs_into(self._f_n, rhs_func, step.t, step.y)
        np.multiply(self._f_n, step.dt, out=self._y_full)
        self._y_full += step.y

        np.multiply(self._f_n, 0.5 * step.dt, out=self._y_half)
        self._y_half += step.y

        self._rhs_into(self._f_pred, rhs_func, step.t + 0.5 * step.dt, self._y_half)
        np.multiply(self._f_pred, 0.5 * step.dt, out=self._y_two_half)
        self._y_two_half += self._y_half

        np.subtract(self._y_two_half, self._y_full, out=err_out)
        np.copyto(step.out, self._y_two_half)
        return 1

    def _step_heun(self, rhs_func: RHSFunction, step: StepIO) -> int:
        """Explicit Heun (RK2) step with embedded Euler estimator.

        Args:
            rhs_func: RHS function.
            step: Step bundle.

        Returns:
            Method order (2).
        """
        self._rhs_into(self._f_n, rhs_func, step.t, step.y)

        np.multiply(self._f_n, step.dt, out=self._state_pred)
        self._state_pred += step.y

        self._rhs_into(self._f_pred, rhs_func, step.t + step.dt, self._state_pred)

        np.add(self._f_n, self._f_pred, out=self._rhs_buffer)
        self._rhs_buffer *= 0.5 * step.dt
        self._rhs_buffer += step.y

        if step.err_out is not None:
            np.subtract(self._rhs_buffer, self._state_pred, out=step.err_out)
        np.copyto(step.out, self._rhs_buffer)
        return 2

    def _attempt_step(
        self,
        rhs_func: RHSFunction,
        *,
        method: str,
        adaptive: bool,
        step: StepIO,
    ) -> int:
        """
        Dispatch a single attempted step and return the method order.

        Args:
            rhs_func: RHS function.
            method: Normalized explicit method name.
            adaptive: Whether an error estimate is required.
            step: Step bundle.

        Returns:
            Method order.
        """
        if method == "heun":
            return self._step_heun(rhs_func, step)
        if adaptive:
            return self._step_euler_doubling(rhs_func, step)
        return self._step_euler(rhs_func, step)

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    def _accept(self, t: float, y: NDArray[np.floating]) -> None:
        """Called with every stored (t, y), including the initial point."""

    def _adjust_config(self, cfg: RunConfig) -> RunConfig:
        """Return the configuration actually used for a run."""
        return cfg

    # ------------------------------------------------------------------
    # Stepping loops
    # ------------------------------------------------------------------

    def _advance_fixed(
        self,
        rhs_func: RHSFunction,
        *,
        method: str,
        grid: NDArray[np.floating],
        y0: NDArray[np.floating],
    ) -> _RunRecord:
        """Take exactly one step per grid interval.

        Returns:
            (time, y, yp, stats) with y and yp shaped (n_state, n_time).
        """
        n_time = grid.size
        ys = np.empty((self.n_state, n_time), dtype=self.dtype)
        yps = np.empty_like(ys)

        np.copyto(self._y_curr, y0)
        ys[:, 0] = self._y_curr
        self._accept(float(grid[0]), self._y_curr)

        for idx in range(n_time - 1):
            t = float(grid[idx])
            step = StepIO(
                t=t,
                dt=float(grid[idx + 1] - grid[idx]),
                y=self._y_curr,
                out=self._y_try,
                err_out=None,
            )
            _ = self._attempt_step(rhs_func, method=method, adaptive=False, step=step)
            yps[:, idx] = self._f_n
            if not np.all(np.isfinite(self._y_try)):
                raise_diverged(t, self._y_curr, reason=_NON_FINITE_ERROR_MSG)

            self._y_curr, self._y_try = self._y_try, self._y_curr
            ys[:, idx + 1] = self._y_curr
            self._accept(float(grid[idx + 1]), self._y_curr)

        self._rhs_into(self._rhs_buffer, rhs_func, float(grid[-1]), self._y_curr)
        yps[:, -1] = self._rhs_buffer
        stats = RunStats(nsteps=n_time - 1, nfailed=0, nfevals=self._nfevals)
        return grid, ys, yps, stats

    def _advance_adaptive(  # noqa: C901
        self,
        rhs_func: RHSFunction,
        *,
        method: str,
        t0: float,
        t1: float,
        y0: NDArray[np.floating],
        cfg: RunConfig,
    ) -> _RunRecord:
        """Advance with adaptive steps to land exactly on t1.

        Raises:
            IntegrationDivergedError: If rejection limits, dt bounds or
                max_steps are violated.

        Returns:
            (time, y, yp, stats) with every accepted step stored.
        """
        acfg = cfg.adaptive_cfg
        ctrl = cfg.dt_controller

        dt_init = acfg.dt_init if acfg.dt_init is not None else cfg.dt
        dt = default_dt(t0, t1, dt_init)
        if not (np.isfinite(dt) and dt > 0.0):
            dt = default_dt(t0, t1, None)
        dt = min(dt, ctrl.dt_max)

        times: list[float] = [t0]
        states: list[NDArray[np.floating]] = [y0.copy()]
        derivs: list[NDArray[np.floating]] = []

        np.copyto(self._y_curr, y0)
        self._accept(t0, self._y_curr)

        t = t0
        n_accepted = 0
        while t < t1:
            if n_accepted >= acfg.max_steps:
                raise_diverged(t, self._y_curr, reason=_MAX_STEPS_ERROR_MSG)

            remaining = t1 - t
            last = dt >= remaining
            if last:
                dt = remaining

            rejects = 0
            while True:
                if rejects >= acfg.max_reject:
                    raise_diverged(t, self._y_curr, reason=_TOO_MANY_REJECTS_ERROR_MSG)
                if not last and t + dt <= t:
                    raise_diverged(t, self._y_curr, reason=_DT_SPACING_ERROR_MSG)

                step = StepIO(
                    t=t,
                    dt=dt,
                    y=self._y_curr,
                    out=self._y_try,
                    err_out=self._err,
                )
                order = self._attempt_step(
                    rhs_func,
                    method=method,
                    adaptive=True,
                    step=step,
                )

                err_norm = self._error_norm(
                    self._err,
                    self._y_try,
                    self._y_curr,
                    rtol=acfg.rtol,
                    atol=acfg.atol,
                )

                if err_norm <= 1.0 and np.all(np.isfinite(self._y_try)):
                    derivs.append(self._f_n.copy())
                    t = t1 if last else t + dt
                    self._y_curr, self._y_try = self._y_try, self._y_curr
                    dt = self._propose_dt(dt, err_norm, order, cfg=ctrl)
                    break

                self._nfailed += 1
                dt_new = self._propose_dt(dt, err_norm, order, cfg=ctrl)
                if dt_new <= ctrl.dt_min and ctrl.dt_min > 0.0:
                    raise_diverged(t, self._y_curr, reason=_DT_UNDERFLOW_ERROR_MSG)
                dt = dt_new
                last = False
                rejects += 1

            n_accepted += 1
            times.append(t)
            states.append(self._y_curr.copy())
            self._accept(t, self._y_curr)

        self._rhs_into(self._rhs_buffer, rhs_func, t1, self._y_curr)
        derivs.append(self._rhs_buffer.copy())

        stats = RunStats(
            nsteps=n_accepted,
            nfailed=self._nfailed,
            nfevals=self._nfevals,
        )
        return (
            np.asarray(times, dtype=np.float64),
            np.column_stack(states),
            np.column_stack(derivs),
            stats,
        )

    def _run_scipy(
        self,
        rhs_func: RHSFunction,
        *,
        method: str,
        t0: float,
        t1: float,
        y0: NDArray[np.floating],
        cfg: RunConfig,
    ) -> tuple[_RunRecord, Callable[[ArrayLike], NDArray[np.floating]]]:
        """Delegate to scipy's embedded Runge-Kutta integrators.

        Raises:
            IntegrationDivergedError: If scipy fails or returns non-finite states.

        Returns:
            Run record plus scipy's dense-output interpolant.
        """

        def fun(t: float, y: NDArray[np.floating]) -> NDArray[np.floating]:
            self._nfevals += 1
            return rhs_func(float(t), y)

        acfg = cfg.adaptive_cfg
        dt_init = acfg.dt_init if acfg.dt_init is not None else cfg.dt
        first_step = None if dt_init is None else min(float(dt_init), t1 - t0)

        sol = solve_ivp(
            fun,
            (t0, t1),
            y0,
            method=_SCIPY_METHODS[method],
            rtol=acfg.rtol,
            atol=acfg.atol,
            max_step=cfg.dt_controller.dt_max,
            first_step=first_step,
            dense_output=True,
        )

        finite = np.all(np.isfinite(sol.y), axis=0)
        if sol.status < 0 or not np.all(finite):
            last_ok = int(np.flatnonzero(finite)[-1]) if np.any(finite) else 0
            raise_diverged(
                float(sol.t[last_ok]),
                sol.y[:, last_ok],
                reason=str(sol.message) if sol.status < 0 else _NON_FINITE_ERROR_MSG,
            )

        for k in range(sol.t.size):
            self._accept(float(sol.t[k]), sol.y[:, k])
        yp = np.column_stack([
            rhs_func(float(sol.t[k]), sol.y[:, k]) for k in range(sol.t.size)
        ])
        stats = RunStats(nsteps=sol.t.size - 1, nfailed=0, nfevals=self._nfevals)
        return (sol.t, sol.y, yp, stats), cast("Callable", sol.sol)

    # ------------------------------------------------------------------
    # Public run loop
    # ------------------------------------------------------------------

    def _execute(
        self,
        rhs_func: RHSFunction,
        t_span: tuple[float, float] | ArrayLike,
        y0: ArrayLike,
        cfg: RunConfig,
    ) -> Trajectory:
        """Shared run body: validation, status tracking and dispatch.

        Returns:
            Trajectory of the run.
        """
        method = self._normalize_method(cfg.method)
        t0, t1 = check_span(t_span)
        y_init = self._initial_state(y0)
        cfg = self._adjust_config(cfg)

        self._nfevals = 0
        self._nfailed = 0
        self._status = SolverStatus.RUNNING
        logger.debug(
            "Starting %s run on [%g, %g] (n_state=%d, adaptive=%s)",
            method,
            t0,
            t1,
            self.n_state,
            cfg.adaptive,
        )

        interpolant = None
        try:
            if method in _SCIPY_METHODS:
                record, interpolant = self._run_scipy(
                    rhs_func, method=method, t0=t0, t1=t1, y0=y_init, cfg=cfg
                )
            elif cfg.adaptive:
                record = self._advance_adaptive(
                    rhs_func, method=method, t0=t0, t1=t1, y0=y_init, cfg=cfg
                )
            else:
                dt = default_dt(t0, t1, cfg.dt)
                record = self._advance_fixed(
                    rhs_func,
                    method=method,
                    grid=fixed_time_grid(t0, t1, dt),
                    y0=y_init,
                )
        except Exception:
            self._status = SolverStatus.FAILED
            logger.warning("%s run on [%g, %g] failed", method, t0, t1)
            raise

        time, ys, yps, stats = record
        self._status = SolverStatus.COMPLETED
        logger.debug(
            "Completed %s run: nsteps=%d nfailed=%d nfevals=%d",
            method,
            stats.nsteps,
            stats.nfailed,
            stats.nfevals,
        )
        return Trajectory(
            time=time,
            y=ys,
            yp=yps,
            solver=method,
            stats=stats,
            interpolant=interpolant,
        )

    def run(
        self,
        rhs_func: RHSFunction,
        t_span: tuple[float, float] | ArrayLike,
        y0: ArrayLike,
        *,
        config: RunConfig | None = None,
    ) -> Trajectory:
        """Integrate ``y' = rhs_func(t, y)`` over t_span from y0.

        Args:
            rhs_func: Function computing F(t, y).
            t_span: (t0, t1) with t0 < t1.
            y0: Initial state, shape (n_state,).
            config: Optional run configuration. If None, defaults are used.

        Returns:
            Trajectory whose first column is exactly y0.
        """
        return self._execute(rhs_func, t_span, y0, config or RunConfig())
