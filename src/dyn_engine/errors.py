# src/dyn_engine/errors.py
"""Error types for dyn_engine.

Every error raised by the package derives from :class:`DynEngineError` and
also from the closest builtin exception, so callers may catch either the
package-specific type or the conventional one (``KeyError``, ``ValueError``,
``ArithmeticError``).

Errors propagate uninterrupted: the package never recovers from them locally.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final

import numpy as np

if TYPE_CHECKING:
    from collections.abc import Iterable

    from numpy.typing import NDArray

_UNKNOWN_NAME_MSG: Final[str] = "Unknown {kind} '{name}'. Declared {kind}s: {known}"
_SHAPE_MISMATCH_MSG: Final[str] = (
    "{kind} '{name}' has declared shape {expected}; got shape {actual}"
)
_EVALUATOR_SHAPE_MSG: Final[str] = (
    "{what} returned shape {actual}; expected shape {expected}"
)
_DIVERGED_MSG: Final[str] = "Integration diverged at t={t:.6g}: {reason}"


class DynEngineError(Exception):
    """Base exception for all dyn_engine errors."""


class UnknownNameError(DynEngineError, KeyError):
    """Raised when a parameter, variable or lag name has not been declared."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""


class ShapeMismatchError(DynEngineError, ValueError):
    """Raised when an assigned value's shape differs from the declared shape."""


class EvaluatorShapeError(DynEngineError, ValueError):
    """Raised when an evaluator returns a derivative or diffusion of wrong shape."""


class InvalidBoundaryConditionError(DynEngineError, ValueError):
    """Raised for an unrecognized spatial boundary-condition keyword."""


class InvalidLagError(DynEngineError, ValueError):
    """Raised when a declared delay is not strictly positive."""


class SolverConfigError(DynEngineError, ValueError):
    """Raised when a solver name, option or noise array is unusable for a model."""


class IntegrationDivergedError(DynEngineError, ArithmeticError):
    """Raised when a run produces non-finite values or exhausts its step budget.

    Attributes:
        t: Time of the last finite state reached by the run.
        y: Copy of that state (flat vector).
    """

    def __init__(self, message: str, *, t: float, y: NDArray[np.floating]) -> None:
        super().__init__(message)
        self.t = float(t)
        self.y = np.array(y, dtype=np.float64, copy=True)


def raise_unknown_name(kind: str, name: str, known: Iterable[str]) -> None:
    """Raise a standardized UnknownNameError.

    Args:
        kind: Kind of entry ("parameter", "variable" or "lag").
        name: Requested name.
        known: Names that are declared.

    Raises:
        UnknownNameError: Always.
    """
    known_str = ", ".join(known) or "(none)"
    raise UnknownNameError(
        _UNKNOWN_NAME_MSG.format(kind=kind, name=name, known=known_str)
    )


def raise_shape_mismatch(
    kind: str,
    name: str,
    *,
    expected: tuple[int, ...],
    actual: tuple[int, ...],
) -> None:
    """Raise a standardized ShapeMismatchError.

    Args:
        kind: Kind of entry ("parameter", "variable", "lag" or "state").
        name: Entry name.
        expected: Declared shape.
        actual: Shape of the rejected value.

    Raises:
        ShapeMismatchError: Always.
    """
    raise ShapeMismatchError(
        _SHAPE_MISMATCH_MSG.format(
            kind=kind, name=name, expected=expected, actual=actual
        )
    )


def raise_evaluator_shape(
    what: str,
    *,
    expected: tuple[int, ...],
    actual: tuple[int, ...],
) -> None:
    """Raise a standardized EvaluatorShapeError.

    Args:
        what: Description of the offending callable.
        expected: Required result shape.
        actual: Shape actually returned.

    Raises:
        EvaluatorShapeError: Always.
    """
    raise EvaluatorShapeError(
        _EVALUATOR_SHAPE_MSG.format(what=what, expected=expected, actual=actual)
    )


def raise_diverged(t: float, y: NDArray[np.floating], *, reason: str) -> None:
    """Raise a standardized IntegrationDivergedError.

    Args:
        t: Time of the last finite state.
        y: Last finite state.
        reason: Human-readable cause.

    Raises:
        IntegrationDivergedError: Always.
    """
    raise IntegrationDivergedError(_DIVERGED_MSG.format(t=t, reason=reason), t=t, y=y)
