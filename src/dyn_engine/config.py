# src/dyn_engine/config.py
"""User-facing solver options.

:class:`SolverOptions` is the pydantic schema a model (or a caller of
:func:`dyn_engine.integrate`) uses to declare step size, tolerances, step
controller bounds and, for stochastic and delay runs, noise and history
settings. It translates into the frozen dataclass configs consumed by the
solvers.

Notes:
    - Options irrelevant to the chosen solver are accepted and ignored;
      :func:`dyn_engine.integrate` warns with a RuntimeWarning when such an
      option was set explicitly.
    - ``randn`` is a pre-generated (m, n_steps) array of standard-normal draws.
      When given it fixes the number of SDE steps to n_steps and is consumed
      in order instead of drawing fresh noise.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .core_solver import AdaptiveConfig, DtControllerConfig, RunConfig
from .dde_solver import HistoryConfig
from .sde_solver import NoiseConfig

_RANDN_NDIM_ERROR = "randn must be a 2D array (noise_sources, n_steps); got ndim={ndim}"
_RANDN_EMPTY_ERROR = "randn must contain at least one step"
_RANDN_FINITE_ERROR = "randn must contain only finite values"
_HISTORY_NDIM_ERROR = "history must be a scalar or a 1D vector; got ndim={ndim}"
_FAC_ORDER_ERROR = "fac_min ({fac_min}) must not exceed fac_max ({fac_max})"
_DT_ORDER_ERROR = "dt_min ({dt_min}) must not exceed dt_max ({dt_max})"


class SolverOptions(BaseModel):
    """Validated solver options.

    Unknown fields are rejected so that typos do not silently fall back to
    defaults.
    """

    model_config = ConfigDict(extra="forbid", arbitrary_types_allowed=True)

    dt: float | None = Field(
        default=None,
        gt=0.0,
        description="Fixed step, or the initial step for adaptive runs",
    )

    adaptive: bool = Field(
        default=False,
        description="Use adaptive stepping for explicit ODE/DDE methods",
    )

    # Adaptive stepping controls
    rtol: float = Field(default=1e-6, gt=0.0)
    atol: float = Field(default=1e-9, gt=0.0)
    max_reject: int = Field(default=25, ge=1)
    max_steps: int = Field(default=1_000_000, ge=1)

    # dt controller controls
    dt_min: float = Field(default=0.0, ge=0.0)
    dt_max: float = Field(default=float("inf"), gt=0.0)
    safety: float = Field(default=0.9, gt=0.0, le=1.0)
    fac_min: float = Field(default=0.5, gt=0.0, le=1.0)
    fac_max: float = Field(default=2.0, ge=1.0)

    # Stochastic runs
    seed: int | None = Field(default=None, ge=0)
    randn: np.ndarray | None = Field(
        default=None,
        description="Pre-generated standard-normal draws, shape (m, n_steps)",
    )

    # Delay runs
    history: float | np.ndarray | None = Field(
        default=None,
        description="Constant history for t < t0 (defaults to the initial state)",
    )

    @field_validator("randn", mode="before")
    @classmethod
    def _validate_randn(cls, value: Any) -> np.ndarray | None:
        if value is None:
            return None
        arr = np.array(value, dtype=np.float64, copy=True)
        if arr.ndim != 2:  # noqa: PLR2004
            raise ValueError(_RANDN_NDIM_ERROR.format(ndim=arr.ndim))
        if arr.shape[1] == 0:
            raise ValueError(_RANDN_EMPTY_ERROR)
        if not np.all(np.isfinite(arr)):
            raise ValueError(_RANDN_FINITE_ERROR)
        arr.flags.writeable = False
        return arr

    @field_validator("history", mode="before")
    @classmethod
    def _validate_history(cls, value: Any) -> float | np.ndarray | None:
        if value is None:
            return None
        arr = np.array(value, dtype=np.float64, copy=True)
        if arr.ndim == 0:
            return float(arr)
        if arr.ndim != 1:
            raise ValueError(_HISTORY_NDIM_ERROR.format(ndim=arr.ndim))
        arr.flags.writeable = False
        return arr

    @model_validator(mode="after")
    def _check_bounds(self) -> SolverOptions:
        """Cross-field checks.

        Raises:
            ValueError: If controller bounds are inverted.

        Returns:
            The validated options.
        """
        if self.fac_min > self.fac_max:
            raise ValueError(
                _FAC_ORDER_ERROR.format(fac_min=self.fac_min, fac_max=self.fac_max)
            )
        if self.dt_min > self.dt_max:
            raise ValueError(
                _DT_ORDER_ERROR.format(dt_min=self.dt_min, dt_max=self.dt_max)
            )
        return self

    @classmethod
    def coerce(cls, options: SolverOptions | Mapping[str, Any] | None) -> SolverOptions:
        """Return options as a SolverOptions instance.

        Args:
            options: Existing instance, mapping of fields, or None for defaults.

        Returns:
            SolverOptions instance.
        """
        if options is None:
            return cls()
        if isinstance(options, cls):
            return options
        return cls.model_validate(dict(options))

    def merged(
        self,
        overrides: SolverOptions | Mapping[str, Any] | None,
    ) -> SolverOptions:
        """Return a copy with explicitly set fields of overrides applied.

        Args:
            overrides: Options whose explicitly set fields take precedence.

        Returns:
            New validated SolverOptions.
        """
        if overrides is None:
            return self
        if isinstance(overrides, SolverOptions):
            update = {k: getattr(overrides, k) for k in overrides.model_fields_set}
        else:
            update = dict(overrides)
        base = {k: getattr(self, k) for k in self.model_fields_set}
        return SolverOptions.model_validate({**base, **update})

    def to_run_config(self, method: str) -> RunConfig:
        """Convert these options to a native RunConfig.

        Args:
            method: Solver method name.

        Returns:
            Fully constructed RunConfig instance.
        """
        adaptive_cfg = AdaptiveConfig(
            rtol=self.rtol,
            atol=self.atol,
            dt_init=self.dt,
            max_reject=self.max_reject,
            max_steps=self.max_steps,
        )

        dt_controller = DtControllerConfig(
            dt_min=self.dt_min,
            dt_max=self.dt_max,
            safety=self.safety,
            fac_min=self.fac_min,
            fac_max=self.fac_max,
        )

        return RunConfig(
            method=method,
            adaptive=self.adaptive,
            dt=self.dt,
            dt_controller=dt_controller,
            adaptive_cfg=adaptive_cfg,
        )

    def to_noise_config(self) -> NoiseConfig:
        """Return the noise settings for stochastic runs."""
        return NoiseConfig(seed=self.seed, randn=self.randn)

    def to_history_config(self) -> HistoryConfig:
        """Return the constant-history settings for delay runs."""
        return HistoryConfig(value=self.history)
