# src/dyn_engine/sde_solver.py
"""Fixed-step solvers for stochastic models ``dy = F dt + G dW``.

Supported methods:
    - "euler-maruyama": Ito scheme
          y_{n+1} = y_n + F(t_n, y_n) dt + G(t_n, y_n) @ dW_n
    - "heun": Stratonovich Heun predictor-corrector
          ybar    = y_n + F_n dt + G_n @ dW_n
          y_{n+1} = y_n + (F_n + F(ybar)) dt / 2 + (G_n + G(ybar)) @ dW_n / 2

with ``dW_n = sqrt(dt_n) * z_n`` and ``z_n`` a vector of independent standard
normal draws, one per noise source.

Noise sources, in order of precedence:
    1. A pre-generated array ``randn`` of shape (m, n_steps), consumed column by
       column. The grid is the fixed-step grid for ``dt`` when that grid has
       n_steps intervals, otherwise uniform with step ``(t1 - t0) / n_steps``.
    2. A fresh generator seeded with ``seed``.
    3. The process-wide generator (see :func:`set_global_seed`).

The realized draws and increments are stored on the trajectory, so passing
``trajectory.noise`` back as ``randn`` replays the run exactly.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike, NDArray

from .core_solver import SolverStatus, check_span, default_dt, fixed_time_grid
from .errors import SolverConfigError, raise_diverged
from .trajectory import RunStats, Trajectory

if TYPE_CHECKING:
    from .core_solver import RunConfig, RHSFunction

logger = logging.getLogger(__name__)

_UNKNOWN_METHOD_ERROR_MSG = "Unknown SDE method '{method}'. Supported: {allowed}"
_RANDN_ROWS_ERROR_MSG = (
    "randn has {rows} rows but the model declares {m} noise sources"
)
_Y0_SHAPE_ERROR_MSG = "y0 shape {actual} does not match expected {expected}"
_NON_FINITE_ERROR_MSG = "non-finite state"
_ADAPTIVE_IGNORED_MSG = "SDE solvers use a fixed step; adaptive=True is ignored"
_DT_IGNORED_MSG = "dt={dt} is ignored because randn fixes the step to {implied}"

SDE_METHODS: tuple[str, ...] = ("euler-maruyama", "heun")

_GLOBAL_RNG: np.random.Generator = np.random.default_rng()


def set_global_seed(seed: int | None) -> None:
    """Reseed the process-wide generator used when a run supplies no seed.

    Args:
        seed: Seed for ``numpy.random.default_rng``; None reseeds from entropy.
    """
    global _GLOBAL_RNG  # noqa: PLW0603
    _GLOBAL_RNG = np.random.default_rng(seed)


def global_rng() -> np.random.Generator:
    """Return the process-wide generator."""
    return _GLOBAL_RNG


@dataclass(slots=True, frozen=True)
class NoiseConfig:
    """Noise settings for one stochastic run.

    Attributes:
        seed: Seed for a run-private generator, or None to use the global one.
        randn: Pre-generated standard-normal draws, shape (m, n_steps).
    """

    seed: int | None = None
    randn: NDArray[np.floating] | None = None


class SdeSolver:
    """Fixed-step stochastic solver on a flat state vector."""

    method_names: tuple[str, ...] = SDE_METHODS

    def __init__(self, n_state: int, noise_sources: int) -> None:
        """Initialize SdeSolver.

        Args:
            n_state: Length of the state vector.
            noise_sources: Number m of independent Wiener processes.
        """
        self.n_state = int(n_state)
        self.noise_sources = int(noise_sources)
        self._status = SolverStatus.INITIALIZED
        self._nfevals = 0

    @property
    def status(self) -> SolverStatus:
        """Current lifecycle state."""
        return self._status

    def _normalize_method(self, method: str) -> str:
        method_norm = str(method).strip().lower()
        if method_norm not in self.method_names:
            raise SolverConfigError(
                _UNKNOWN_METHOD_ERROR_MSG.format(
                    method=method,
                    allowed=", ".join(self.method_names),
                )
            )
        return method_norm

    def _noise(
        self,
        t0: float,
        t1: float,
        cfg: RunConfig,
        noise: NoiseConfig,
    ) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """Resolve the time grid and the standard-normal draws for a run.

        Raises:
            SolverConfigError: If randn does not have one row per noise source.

        Returns:
            (grid, z) with ``z.shape == (m, grid.size - 1)``.
        """
        if noise.randn is not None:
            z = np.asarray(noise.randn, dtype=np.float64)
            if z.ndim != 2 or z.shape[0] != self.noise_sources:  # noqa: PLR2004
                raise SolverConfigError(
                    _RANDN_ROWS_ERROR_MSG.format(
                        rows=z.shape[0] if z.ndim else 0,
                        m=self.noise_sources,
                    )
                )
            n_steps = z.shape[1]
            if cfg.dt is not None:
                # Same grid as a fresh run with this dt, so replays match bit for bit
                grid = fixed_time_grid(t0, t1, cfg.dt)
                if grid.size - 1 == n_steps:
                    return grid, z
            dt = (t1 - t0) / n_steps
            if cfg.dt is not None:
                warnings.warn(
                    _DT_IGNORED_MSG.format(dt=cfg.dt, implied=dt),
                    RuntimeWarning,
                    stacklevel=3,
                )
            grid = t0 + dt * np.arange(n_steps + 1, dtype=np.float64)
            grid[-1] = t1
            return grid, z

        grid = fixed_time_grid(t0, t1, default_dt(t0, t1, cfg.dt))
        rng = global_rng() if noise.seed is None else np.random.default_rng(noise.seed)
        z = rng.standard_normal((self.noise_sources, grid.size - 1))
        return grid, z

    def run(  # noqa: PLR0913
        self,
        drift: RHSFunction,
        diffusion: RHSFunction,
        t_span: tuple[float, float] | ArrayLike,
        y0: ArrayLike,
        *,
        config: RunConfig,
        noise: NoiseConfig | None = None,
    ) -> Trajectory:
        """Integrate the SDE over t_span from y0.

        Args:
            drift: ``F(t, y) -> (n,)``.
            diffusion: ``G(t, y) -> (n, m)``.
            t_span: (t0, t1) with t0 < t1.
            y0: Initial state, shape (n_state,).
            config: Run configuration (method, dt).
            noise: Noise settings; defaults to the global generator.

        Raises:
            ValueError: If y0 has the wrong shape.

        Returns:
            Trajectory carrying the realized draws (``noise``) and increments
            (``dw``).
        """
        method = self._normalize_method(config.method)
        t0, t1 = check_span(t_span)
        y = np.array(y0, dtype=np.float64, copy=True)
        if y.shape != (self.n_state,):
            raise ValueError(
                _Y0_SHAPE_ERROR_MSG.format(actual=y.shape, expected=(self.n_state,))
            )
        if config.adaptive:
            warnings.warn(_ADAPTIVE_IGNORED_MSG, RuntimeWarning, stacklevel=2)

        grid, z = self._noise(t0, t1, config, noise or NoiseConfig())
        n_steps = grid.size - 1
        dts = np.diff(grid)
        dw = z * np.sqrt(dts)[np.newaxis, :]

        self._nfevals = 0
        self._status = SolverStatus.RUNNING
        logger.debug(
            "Starting %s run on [%g, %g] (n_state=%d, m=%d, n_steps=%d)",
            method,
            t0,
            t1,
            self.n_state,
            self.noise_sources,
            n_steps,
        )

        ys = np.empty((self.n_state, n_steps + 1), dtype=np.float64)
        yps = np.empty_like(ys)
        ys[:, 0] = y
        try:
            for k in range(n_steps):
                t = float(grid[k])
                y_next, f = self._step(method, drift, diffusion, t, dts[k], y, dw[:, k])
                yps[:, k] = f
                if not np.all(np.isfinite(y_next)):
                    raise_diverged(t, y, reason=_NON_FINITE_ERROR_MSG)
                y = y_next
                ys[:, k + 1] = y
            yps[:, -1] = drift(t1, y)
            self._nfevals += 1
        except Exception:
            self._status = SolverStatus.FAILED
            logger.warning("%s run on [%g, %g] failed", method, t0, t1)
            raise

        self._status = SolverStatus.COMPLETED
        logger.debug("Completed %s run: nfevals=%d", method, self._nfevals)
        return Trajectory(
            time=grid,
            y=ys,
            yp=yps,
            solver=method,
            stats=RunStats(nsteps=n_steps, nfailed=0, nfevals=self._nfevals),
            noise=z,
            dw=dw,
        )

    def _step(  # noqa: PLR0913
        self,
        method: str,
        drift: RHSFunction,
        diffusion: RHSFunction,
        t: float,
        dt: float,
        y: NDArray[np.floating],
        dw: NDArray[np.floating],
    ) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
        """Advance one step.

        Returns:
            (y_next, F(t, y)).
        """
        f = drift(t, y)
        g = diffusion(t, y)
        self._nfevals += 1
        y_pred = y + f * dt + g @ dw
        if method == "euler-maruyama":
            return y_pred, f

        f_bar = drift(t + dt, y_pred)
        g_bar = diffusion(t + dt, y_pred)
        self._nfevals += 1
        y_next = y + 0.5 * (f + f_bar) * dt + 0.5 * ((g + g_bar) @ dw)
        return y_next, f
