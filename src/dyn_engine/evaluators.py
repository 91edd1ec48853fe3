# src/dyn_engine/evaluators.py
"""Right-hand-side evaluator variants.

A model selects exactly one variant when it is constructed:

- :class:`OdeEvaluator` wraps ``fn(t, y, **params) -> dy``.
- :class:`SdeEvaluator` wraps a drift ``F(t, y, **params) -> (n,)`` and a
  diffusion ``G(t, y, **params) -> (n, m)`` for ``m`` noise sources.
- :class:`DdeEvaluator` wraps ``fn(t, y, z, **params) -> dy`` where column
  ``i`` of ``z`` is the state at ``t - lag_i``.

Parameters are always bound by keyword. ``bind`` resolves the parameters once
per run and returns plain callables with the signatures the solvers expect;
every call checks the result shape and hands the user function read-only views
so an accidental in-place write fails loudly.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Literal, TypeAlias

import numpy as np
from numpy.typing import NDArray

from .errors import raise_evaluator_shape

FloatArray: TypeAlias = NDArray[np.floating]
EvaluatorKind = Literal["ode", "sde", "dde"]

RHSFunction = Callable[[float, FloatArray], FloatArray]
DelayRHSFunction = Callable[[float, FloatArray, FloatArray], FloatArray]

_NOISE_SOURCES_ERROR = "noise_sources must be a positive integer; got {m}"


def _readonly(arr: FloatArray) -> FloatArray:
    view = arr.view()
    view.flags.writeable = False
    return view


def _checked(
    value: object,
    expected: tuple[int, ...],
    *,
    what: str,
) -> FloatArray:
    """Return value as float64 with the expected shape.

    A 0-d result is accepted where exactly one element is expected.

    Raises:
        EvaluatorShapeError: If the shape does not match.
    """
    arr = np.asarray(value, dtype=np.float64)
    if arr.shape == expected:
        return arr
    if arr.ndim == 0 and int(np.prod(expected)) == 1:
        return arr.reshape(expected)
    raise_evaluator_shape(what, expected=expected, actual=arr.shape)
    return arr


@dataclass(slots=True, frozen=True)
class OdeEvaluator:
    """Deterministic evaluator ``fn(t, y, **params) -> dy``."""

    fn: Callable[..., Any]

    kind: ClassVar[EvaluatorKind] = "ode"
    default_solvers: ClassVar[tuple[str, ...]] = ("rk45", "rk23", "heun", "euler")

    def bind(self, params: Mapping[str, FloatArray], n_state: int) -> RHSFunction:
        """Bind parameters and return ``rhs(t, y) -> dy``.

        Args:
            params: Parameter values by name.
            n_state: State dimension used for shape checks.

        Returns:
            Shape-checked right-hand side.
        """
        fn = self.fn
        kwargs = dict(params)
        shape = (n_state,)
        what = f"ODE function {getattr(fn, '__name__', fn)!s}"

        def rhs(t: float, y: FloatArray) -> FloatArray:
            return _checked(fn(t, _readonly(y), **kwargs), shape, what=what)

        return rhs


@dataclass(slots=True, frozen=True)
class SdeEvaluator:
    """Stochastic evaluator: drift ``F`` and diffusion ``G`` with m noise sources.

    Attributes:
        drift: ``F(t, y, **params) -> (n,)``.
        diffusion: ``G(t, y, **params) -> (n, m)``.
        noise_sources: Number m of independent Wiener processes.
    """

    drift: Callable[..., Any]
    diffusion: Callable[..., Any]
    noise_sources: int

    kind: ClassVar[EvaluatorKind] = "sde"
    default_solvers: ClassVar[tuple[str, ...]] = ("euler-maruyama", "heun")

    def __post_init__(self) -> None:
        m = self.noise_sources
        if isinstance(m, bool) or not isinstance(m, (int, np.integer)) or m < 1:
            raise ValueError(_NOISE_SOURCES_ERROR.format(m=m))

    def bind(
        self,
        params: Mapping[str, FloatArray],
        n_state: int,
    ) -> tuple[RHSFunction, RHSFunction]:
        """Bind parameters and return ``(drift(t, y), diffusion(t, y))``.

        Args:
            params: Parameter values by name.
            n_state: State dimension used for shape checks.

        Returns:
            Shape-checked drift and diffusion callables.
        """
        drift_fn = self.drift
        diffusion_fn = self.diffusion
        kwargs = dict(params)
        drift_shape = (n_state,)
        diffusion_shape = (n_state, int(self.noise_sources))
        drift_what = f"SDE drift {getattr(drift_fn, '__name__', drift_fn)!s}"
        diffusion_what = (
            f"SDE diffusion {getattr(diffusion_fn, '__name__', diffusion_fn)!s}"
        )

        def drift(t: float, y: FloatArray) -> FloatArray:
            f = drift_fn(t, _readonly(y), **kwargs)
            return _checked(f, drift_shape, what=drift_what)

        def diffusion(t: float, y: FloatArray) -> FloatArray:
            g = diffusion_fn(t, _readonly(y), **kwargs)
            return _checked(g, diffusion_shape, what=diffusion_what)

        return drift, diffusion


@dataclass(slots=True, frozen=True)
class DdeEvaluator:
    """Delay evaluator ``fn(t, y, z, **params) -> dy``, ``z`` shaped (n, n_lags)."""

    fn: Callable[..., Any]

    kind: ClassVar[EvaluatorKind] = "dde"
    default_solvers: ClassVar[tuple[str, ...]] = ("dde-heun", "dde-euler")

    def bind(self, params: Mapping[str, FloatArray], n_state: int) -> DelayRHSFunction:
        """Bind parameters and return ``rhs(t, y, z) -> dy``.

        Args:
            params: Parameter values by name.
            n_state: State dimension used for shape checks.

        Returns:
            Shape-checked delay right-hand side.
        """
        fn = self.fn
        kwargs = dict(params)
        shape = (n_state,)
        what = f"DDE function {getattr(fn, '__name__', fn)!s}"

        def rhs(t: float, y: FloatArray, z: FloatArray) -> FloatArray:
            dy = fn(t, _readonly(y), _readonly(z), **kwargs)
            return _checked(dy, shape, what=what)

        return rhs


Evaluator: TypeAlias = OdeEvaluator | SdeEvaluator | DdeEvaluator
