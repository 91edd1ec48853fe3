# src/dyn_engine/dde_solver.py
"""Explicit solvers for delay models ``y'(t) = f(t, y(t), Z(t))``.

``Z(t)`` has one column per declared lag; column ``i`` is ``y(t - lag_i)``
looked up in a :class:`HistoryBuffer` that grows with every accepted step:

- ``t - lag_i < t0``: the constant history (default: the initial state),
- inside the stored span: linear interpolation between stored points,
- at or beyond the newest stored time: the newest stored state.

Supported methods:
    - "dde-euler": explicit Euler (fixed step, or adaptive via step-doubling).
    - "dde-heun":  explicit Heun with embedded Euler estimate.

Adaptive runs cap the step at the smallest lag so that every lookup falls
inside the stored history. Fixed runs with ``dt`` larger than a lag emit a
``RuntimeWarning``.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Final

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .core_solver import CoreSolver, RunConfig, StepIO, check_span, default_dt
from .errors import InvalidLagError, SolverConfigError

if TYPE_CHECKING:
    from .core_solver import RHSFunction
    from .evaluators import DelayRHSFunction
    from .trajectory import Trajectory

logger = logging.getLogger(__name__)

_LAG_ERROR_MSG: Final[str] = "lags must be strictly positive and finite; got {lags}"
_HISTORY_SHAPE_ERROR_MSG: Final[str] = (
    "history must be a scalar or a vector of length {n}; got shape {shape}"
)
_EMPTY_BUFFER_ERROR_MSG: Final[str] = "history buffer has no stored points"
_DT_EXCEEDS_LAG_MSG: Final[str] = (
    "dt={dt:g} exceeds the smallest lag {lag:g}; lookups past the newest stored "
    "point return the newest state"
)

# Map delay method names onto the explicit stepping kernels.
DDE_METHODS: dict[str, str] = {"dde-euler": "euler", "dde-heun": "heun"}


@dataclass(slots=True, frozen=True)
class HistoryConfig:
    """Constant history for ``t < t0``.

    Attributes:
        value: Scalar, vector of length n_state, or None for the initial state.
    """

    value: float | NDArray[np.floating] | None = None

    def resolve(self, y0: NDArray[np.floating]) -> NDArray[np.floating]:
        """Return the history as a vector shaped like y0.

        Raises:
            SolverConfigError: If a vector history has the wrong length.
        """
        if self.value is None:
            return y0.copy()
        arr = np.asarray(self.value, dtype=np.float64)
        if arr.ndim == 0:
            return np.full_like(y0, float(arr))
        if arr.shape != y0.shape:
            raise SolverConfigError(
                _HISTORY_SHAPE_ERROR_MSG.format(n=y0.size, shape=arr.shape)
            )
        return arr.copy()


class HistoryBuffer:
    """Growing record of accepted (t, y) points with lag lookups."""

    def __init__(
        self,
        history: NDArray[np.floating],
        *,
        capacity: int = 1024,
    ) -> None:
        """
        Initialize an empty buffer.

        Args:
            history: Constant state returned for times before the first point.
            capacity: Initial number of preallocated rows.
        """
        self.history = np.array(history, dtype=np.float64, copy=True)
        n_state = self.history.size
        self._t = np.empty(capacity, dtype=np.float64)
        self._y = np.empty((capacity, n_state), dtype=np.float64)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    @property
    def times(self) -> NDArray[np.floating]:
        """Stored times (view)."""
        return self._t[: self._size]

    def append(self, t: float, y: NDArray[np.floating]) -> None:
        """Store one accepted point; t must exceed the newest stored time."""
        if self._size == self._t.size:
            self._t = np.concatenate([self._t, np.empty_like(self._t)])
            self._y = np.concatenate([self._y, np.empty_like(self._y)])
        self._t[self._size] = t
        self._y[self._size] = y
        self._size += 1

    def lookup(self, tq: ArrayLike) -> NDArray[np.floating]:
        """Return the state at each query time.

        Args:
            tq: 1-D array of query times.

        Raises:
            RuntimeError: If no point has been stored yet.

        Returns:
            Array of shape (n_state, len(tq)).
        """
        if self._size == 0:
            raise RuntimeError(_EMPTY_BUFFER_ERROR_MSG)
        tq = np.atleast_1d(np.asarray(tq, dtype=np.float64))
        times = self._t[: self._size]
        ys = self._y[: self._size]

        out = np.empty((self.history.size, tq.size), dtype=np.float64)
        before = tq < times[0]
        after = tq >= times[-1]
        inside = ~(before | after)

        out[:, before] = self.history[:, np.newaxis]
        out[:, after] = ys[-1][:, np.newaxis]
        if np.any(inside):
            tin = tq[inside]
            idx = np.searchsorted(times, tin, side="right") - 1
            w = (tin - times[idx]) / (times[idx + 1] - times[idx])
            out[:, inside] = (
                ys[idx] * (1.0 - w)[:, np.newaxis] + ys[idx + 1] * w[:, np.newaxis]
            ).T
        return out

    def lagged(self, t: float, lags: NDArray[np.floating]) -> NDArray[np.floating]:
        """Return Z with column i equal to the state at ``t - lags[i]``."""
        return self.lookup(t - lags)


class DdeSolver(CoreSolver):
    """Explicit delay solver built on the CoreSolver stepping loops."""

    method_names: tuple[str, ...] = tuple(DDE_METHODS)

    def __init__(self, n_state: int, lags: ArrayLike) -> None:
        """Initialize DdeSolver.

        Args:
            n_state: Length of the state vector.
            lags: Positive delays, one per column of Z.

        Raises:
            InvalidLagError: If any lag is not strictly positive and finite.
        """
        super().__init__(n_state)
        lag_arr = np.atleast_1d(np.asarray(lags, dtype=np.float64))
        if lag_arr.size == 0 or not np.all(np.isfinite(lag_arr) & (lag_arr > 0.0)):
            raise InvalidLagError(_LAG_ERROR_MSG.format(lags=lag_arr.tolist()))
        self.lags = lag_arr
        self._buffer: HistoryBuffer | None = None

    @property
    def buffer(self) -> HistoryBuffer | None:
        """History of the most recent run."""
        return self._buffer

    def _accept(self, t: float, y: NDArray[np.floating]) -> None:
        if self._buffer is not None:
            self._buffer.append(t, y)

    def _adjust_config(self, cfg: RunConfig) -> RunConfig:
        min_lag = float(self.lags.min())
        if not cfg.adaptive or cfg.dt_controller.dt_max <= min_lag:
            return cfg
        ctrl = replace(cfg.dt_controller, dt_max=min_lag)
        return replace(cfg, dt_controller=ctrl)

    def _attempt_step(
        self,
        rhs_func: RHSFunction,
        *,
        method: str,
        adaptive: bool,
        step: StepIO,
    ) -> int:
        return super()._attempt_step(
            rhs_func,
            method=DDE_METHODS.get(method, method),
            adaptive=adaptive,
            step=step,
        )

    def run(  # type: ignore[override]
        self,
        rhs_func: DelayRHSFunction,
        t_span: tuple[float, float] | ArrayLike,
        y0: ArrayLike,
        *,
        config: RunConfig | None = None,
        history: HistoryConfig | None = None,
    ) -> Trajectory:
        """Integrate ``y' = rhs_func(t, y, Z)`` over t_span from y0.

        Args:
            rhs_func: Delay right-hand side, Z shaped (n_state, n_lags).
            t_span: (t0, t1) with t0 < t1.
            y0: Initial state, shape (n_state,).
            config: Run configuration. If None, defaults are used.
            history: Constant history for t < t0.

        Returns:
            Trajectory whose first column is exactly y0.
        """
        cfg = config or RunConfig(method="dde-heun")
        t0, t1 = check_span(t_span)
        y_init = self._initial_state(y0)

        if not cfg.adaptive:
            dt = default_dt(t0, t1, cfg.dt)
            min_lag = float(self.lags.min())
            if dt > min_lag:
                warnings.warn(
                    _DT_EXCEEDS_LAG_MSG.format(dt=dt, lag=min_lag),
                    RuntimeWarning,
                    stacklevel=2,
                )

        buffer = HistoryBuffer((history or HistoryConfig()).resolve(y_init))
        self._buffer = buffer
        lags = self.lags

        def rhs(t: float, y: NDArray[np.floating]) -> NDArray[np.floating]:
            return rhs_func(t, y, buffer.lagged(t, lags))

        logger.debug("Delay run with lags %s", lags.tolist())
        return self._execute(rhs, (t0, t1), y_init, cfg)
