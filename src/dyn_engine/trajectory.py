# src/dyn_engine/trajectory.py
"""Immutable result of one integration run."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Final, TypeAlias

import numpy as np
from numpy.typing import ArrayLike, NDArray

FloatArray: TypeAlias = NDArray[np.floating]
Layout: TypeAlias = Mapping[str, tuple[slice, tuple[int, ...]]]
Interpolant: TypeAlias = Callable[[Any], FloatArray]

_TIME_1D_ERROR: Final[str] = "time must be a 1D array with at least one point"
_TIME_INCREASING_ERROR: Final[str] = "time must be strictly increasing"
_Y_SHAPE_ERROR: Final[str] = (
    "y shape {actual} does not match (n_state, n_time)={expected}"
)
_YP_SHAPE_ERROR: Final[str] = "yp shape {actual} does not match y shape {expected}"
_OUT_OF_RANGE_ERROR: Final[str] = "t={t} lies outside the solution span [{t0}, {t1}]"
_NO_LAYOUT_ERROR: Final[str] = "Trajectory has no variable layout"
_UNKNOWN_VARIABLE_ERROR: Final[str] = "Unknown variable '{name}'"


def _frozen(arr: ArrayLike | None) -> FloatArray | None:
    if arr is None:
        return None
    out = np.array(arr, dtype=np.float64, copy=True)
    out.flags.writeable = False
    return out


@dataclass(slots=True, frozen=True)
class RunStats:
    """Counters collected during a run.

    Attributes:
        nsteps: Number of accepted steps.
        nfailed: Number of rejected step attempts.
        nfevals: Number of right-hand-side evaluations.
    """

    nsteps: int = 0
    nfailed: int = 0
    nfevals: int = 0


@dataclass(slots=True, frozen=True)
class Trajectory:
    """Time grid and state matrix produced by a solver.

    All arrays are stored as read-only float64 copies.

    Attributes:
        time: Strictly increasing time points, shape (n_time,).
        y: State matrix, shape (n_state, n_time); column k is the state at time[k].
        solver: Name of the solver that produced the run.
        yp: Right-hand side at each stored point (drift for SDE runs).
        stats: Step and evaluation counters.
        layout: Variable name -> (slice, shape) into the state vector.
        noise: For SDE runs, the standard-normal draws z, shape (m, n_steps).
        dw: For SDE runs, the Wiener increments sqrt(dt_k) * z[:, k].
        interpolant: Optional dense-output callable ``f(t) -> state``.
    """

    time: FloatArray
    y: FloatArray
    solver: str
    yp: FloatArray | None = None
    stats: RunStats = field(default_factory=RunStats)
    layout: Layout | None = None
    noise: FloatArray | None = None
    dw: FloatArray | None = None
    interpolant: Interpolant | None = None

    def __post_init__(self) -> None:
        """Validate shapes and freeze arrays.

        Raises:
            ValueError: If time or y are inconsistent.
        """
        time = _frozen(self.time)
        y = _frozen(self.y)
        if time is None or time.ndim != 1 or time.size == 0:
            raise ValueError(_TIME_1D_ERROR)
        if time.size > 1 and not np.all(np.diff(time) > 0.0):
            raise ValueError(_TIME_INCREASING_ERROR)
        if y is None or y.ndim != 2 or y.shape[1] != time.size:  # noqa: PLR2004
            raise ValueError(
                _Y_SHAPE_ERROR.format(
                    actual=None if y is None else y.shape,
                    expected=("n_state", time.size),
                )
            )
        yp = _frozen(self.yp)
        if yp is not None and yp.shape != y.shape:
            raise ValueError(_YP_SHAPE_ERROR.format(actual=yp.shape, expected=y.shape))

        object.__setattr__(self, "time", time)
        object.__setattr__(self, "y", y)
        object.__setattr__(self, "yp", yp)
        object.__setattr__(self, "noise", _frozen(self.noise))
        object.__setattr__(self, "dw", _frozen(self.dw))
        if self.layout is not None:
            object.__setattr__(self, "layout", dict(self.layout))

    @property
    def n_state(self) -> int:
        """State dimension."""
        return int(self.y.shape[0])

    @property
    def n_time(self) -> int:
        """Number of stored time points."""
        return int(self.time.size)

    @property
    def t_span(self) -> tuple[float, float]:
        """First and last stored times."""
        return float(self.time[0]), float(self.time[-1])

    @property
    def final_state(self) -> FloatArray:
        """State at the last stored time (read-only view)."""
        return self.y[:, -1]

    def state_at(self, t: ArrayLike) -> FloatArray:
        """Return the interpolated state at time(s) t.

        The solver's dense-output interpolant is used when available; otherwise
        each component is linearly interpolated between stored points.

        Args:
            t: Scalar time or 1-D array of times inside the solution span.

        Raises:
            ValueError: If any t lies outside [time[0], time[-1]].

        Returns:
            Shape (n_state,) for scalar t, else (n_state, len(t)).
        """
        tq = np.asarray(t, dtype=np.float64)
        t0, t1 = self.t_span
        if np.any(tq < t0) or np.any(tq > t1) or not np.all(np.isfinite(tq)):
            raise ValueError(_OUT_OF_RANGE_ERROR.format(t=t, t0=t0, t1=t1))

        if self.interpolant is not None:
            return np.asarray(self.interpolant(tq), dtype=np.float64)

        flat = np.atleast_1d(tq)
        out = np.empty((self.n_state, flat.size), dtype=np.float64)
        for i in range(self.n_state):
            out[i] = np.interp(flat, self.time, self.y[i])
        if tq.ndim == 0:
            return out[:, 0]
        return out

    def variable(self, name: str) -> FloatArray:
        """Return one variable's time series.

        Args:
            name: Variable name from the model layout.

        Raises:
            KeyError: If the name is not part of the layout.
            ValueError: If the trajectory carries no layout.

        Returns:
            Array of shape (*variable_shape, n_time).
        """
        if self.layout is None:
            raise ValueError(_NO_LAYOUT_ERROR)
        if name not in self.layout:
            raise KeyError(_UNKNOWN_VARIABLE_ERROR.format(name=name))
        sl, shape = self.layout[name]
        return self.y[sl].reshape((*shape, self.n_time))
