# src/dyn_engine/model_core.py
"""Named state/parameter containers and the Model definition.

A :class:`Model` bundles everything a time-stepping driver needs:

- an ordered table of Variables, whose concatenation (declaration order, each
  value raveled in C order) is the flat state vector seen by the solvers,
- an ordered table of Parameters, bound to the evaluator by keyword,
- an ordered table of Lags for delay models,
- one evaluator variant, a default run span and default solver options.

Values are stored as read-only float64 arrays. Column and row vectors are
normalized to 1-D on entry; matrices keep their declared 2-D shape. The shape
of an entry is fixed at construction and every later assignment is checked
against it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeAlias

import numpy as np
import numpy.typing as npt

from .config import SolverOptions
from .errors import InvalidLagError, raise_shape_mismatch, raise_unknown_name
from .evaluators import DdeEvaluator, Evaluator

if TYPE_CHECKING:
    from .trajectory import Trajectory

logger = logging.getLogger(__name__)

# Error / message constants -------------------------------------------------

_DUPLICATE_NAME_ERROR = "Duplicate {kind} name: '{name}'"
_EMPTY_NAME_ERROR = "{kind} names must be non-empty strings"
_LIM_ERROR = "lim for '{name}' must be an increasing pair (lo, hi); got {lim}"
_LAG_NONPOSITIVE_ERROR = "Lag '{name}' must be strictly positive; got {value}"
_LAG_SHAPE_ERROR = "Lag '{name}' must be a scalar; got shape {shape}"
_LAGS_REQUIRED_ERROR = "Delay models must declare at least one lag"
_LAGS_UNEXPECTED_ERROR = "Only delay models may declare lags"
_ENTRY_SPEC_ERROR = (
    "Entries must be Entry objects or (name, value[, lim]) tuples; got {entry!r}"
)
_TSPAN_ERROR = "t_span must satisfy t0 < t1; got {t_span}"
_NO_VARIABLES_ERROR = "A model must declare at least one variable"


# Typing helpers ------------------------------------------------------------

FloatArray = npt.NDArray[np.floating[Any]]
Limits: TypeAlias = tuple[float, float]
EntrySpec: TypeAlias = "Entry | tuple[str, Any] | tuple[str, Any, Limits | None]"
AuxFunction = Any


def as_value(value: npt.ArrayLike) -> FloatArray:
    """Convert a user-supplied value into the canonical stored form.

    Column vectors ``(n, 1)`` and row vectors ``(1, n)`` become 1-D ``(n,)``.
    Scalars stay 0-d and matrices keep their shape. The result is a read-only
    float64 copy.

    Args:
        value: Scalar, vector or matrix of reals.

    Returns:
        Read-only float64 array.
    """
    arr = np.array(value, dtype=np.float64, copy=True)
    if arr.ndim == 2 and 1 in arr.shape and arr.size > 1:  # noqa: PLR2004
        arr = arr.reshape(-1)
    arr.flags.writeable = False
    return arr


@dataclass(slots=True, frozen=True)
class Entry:
    """One named value of a model.

    Attributes:
        name: Unique name within its table.
        value: Stored value (read-only float64 array).
        lim: Optional display bounds (lo, hi). Metadata only.
    """

    name: str
    value: FloatArray
    lim: Limits | None = None

    @classmethod
    def create(
        cls,
        name: str,
        value: npt.ArrayLike,
        lim: Limits | None = None,
    ) -> Entry:
        """Build an Entry from raw user input.

        Args:
            name: Entry name.
            value: Raw value.
            lim: Optional display bounds.

        Raises:
            ValueError: If name is empty or lim is not an increasing pair.

        Returns:
            Validated Entry with a canonical read-only value.
        """
        if not isinstance(name, str) or not name:
            raise ValueError(_EMPTY_NAME_ERROR.format(kind="Entry"))
        lim_norm: Limits | None = None
        if lim is not None:
            lo, hi = (float(v) for v in lim)
            if not lo < hi:
                raise ValueError(_LIM_ERROR.format(name=name, lim=lim))
            lim_norm = (lo, hi)
        return cls(name=name, value=as_value(value), lim=lim_norm)

    @property
    def shape(self) -> tuple[int, ...]:
        """Declared shape of the value."""
        return self.value.shape

    @property
    def size(self) -> int:
        """Number of scalar elements in the value."""
        return int(self.value.size)


def _to_entry(spec: EntrySpec) -> Entry:
    if isinstance(spec, Entry):
        return Entry.create(spec.name, spec.value, spec.lim)
    if isinstance(spec, tuple) and len(spec) in {2, 3}:
        return Entry.create(*spec)
    raise TypeError(_ENTRY_SPEC_ERROR.format(entry=spec))


class ValueTable:
    """Ordered, name-addressed table of fixed-shape values.

    The table is the state/parameter container: ``get`` and ``set`` address
    entries by name, and ``concat_state``/``scatter_state`` convert between the
    entries and one flat vector in declaration order.
    """

    def __init__(self, kind: str, entries: Sequence[EntrySpec] = ()) -> None:
        """
        Initialize a ValueTable.

        Args:
            kind: Entry kind used in error messages ("parameter", "variable", ...).
            entries: Entries in declaration order.

        Raises:
            ValueError: If a name is declared twice.
        """
        self.kind = kind
        self._entries: dict[str, Entry] = {}
        for spec in entries:
            entry = _to_entry(spec)
            if entry.name in self._entries:
                msg = _DUPLICATE_NAME_ERROR.format(kind=kind, name=entry.name)
                raise ValueError(msg)
            self._entries[entry.name] = entry

    # ------------------------------------------------------------------
    # Mapping-style access
    # ------------------------------------------------------------------

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        body = ", ".join(f"{e.name}{e.shape}" for e in self._entries.values())
        return f"ValueTable({self.kind}: {body})"

    @property
    def names(self) -> tuple[str, ...]:
        """Entry names in declaration order."""
        return tuple(self._entries)

    def entry(self, name: str) -> Entry:
        """Return the full Entry (value plus display bounds) for name.

        Raises:
            UnknownNameError: If name is not declared.
        """
        if name not in self._entries:
            raise_unknown_name(self.kind, name, self._entries)
        return self._entries[name]

    def entries(self) -> tuple[Entry, ...]:
        """Return all entries in declaration order."""
        return tuple(self._entries.values())

    def get(self, name: str) -> FloatArray:
        """Return the stored (read-only) value for name.

        Raises:
            UnknownNameError: If name is not declared.
        """
        return self.entry(name).value

    def set(self, name: str, value: npt.ArrayLike) -> None:
        """Replace the value for name, keeping its declared shape.

        Args:
            name: Entry name.
            value: New value; must have the declared shape after normalization.

        Raises:
            UnknownNameError: If name is not declared.
            ShapeMismatchError: If the new shape differs from the declared one.
        """
        old = self.entry(name)
        new_value = as_value(value)
        if new_value.shape != old.shape:
            raise_shape_mismatch(
                self.kind,
                name,
                expected=old.shape,
                actual=new_value.shape,
            )
        self._entries[name] = Entry(name=name, value=new_value, lim=old.lim)

    def as_kwargs(self) -> dict[str, FloatArray]:
        """Return a name -> value dict suitable for keyword binding.

        Scalars are passed as 0-d read-only arrays, which behave as floats in
        arithmetic.
        """
        return {name: e.value for name, e in self._entries.items()}

    # ------------------------------------------------------------------
    # Flat-vector layout
    # ------------------------------------------------------------------

    @property
    def size(self) -> int:
        """Total number of scalar elements across all entries."""
        return sum(e.size for e in self._entries.values())

    def slices(self) -> dict[str, slice]:
        """Return name -> slice into the concatenated vector."""
        out: dict[str, slice] = {}
        offset = 0
        for name, e in self._entries.items():
            out[name] = slice(offset, offset + e.size)
            offset += e.size
        return out

    def layout(self) -> dict[str, tuple[slice, tuple[int, ...]]]:
        """Return name -> (slice, shape) for reconstructing individual entries."""
        slices = self.slices()
        return {name: (slices[name], e.shape) for name, e in self._entries.items()}

    def concat_state(self) -> FloatArray:
        """Concatenate all values (declaration order, C order) into a flat vector.

        Returns:
            New writable float64 vector of length ``size``.
        """
        if not self._entries:
            return np.zeros(0, dtype=np.float64)
        return np.concatenate([e.value.ravel() for e in self._entries.values()])

    def scatter_state(self, flat: npt.ArrayLike) -> None:
        """Write a flat vector back into the entries, preserving their shapes.

        Args:
            flat: Vector laid out as produced by ``concat_state``.

        Raises:
            ShapeMismatchError: If flat has the wrong length or rank.
        """
        vec = np.asarray(flat, dtype=np.float64)
        if vec.shape != (self.size,):
            raise_shape_mismatch(
                "state",
                self.kind,
                expected=(self.size,),
                actual=vec.shape,
            )
        for name, sl in self.slices().items():
            old = self._entries[name]
            self._entries[name] = Entry(
                name=name,
                value=as_value(vec[sl].reshape(old.shape)),
                lim=old.lim,
            )

    def element_names(self) -> list[str]:
        """Return one label per scalar element of the concatenated vector.

        Single-element entries keep their name; larger entries are labelled
        ``name_1 ... name_n`` (1-based, flat C order).
        """
        labels: list[str] = []
        for name, e in self._entries.items():
            if e.size == 1:
                labels.append(name)
            else:
                labels.extend(f"{name}_{i}" for i in range(1, e.size + 1))
        return labels


class Model:
    """A dynamical system: named values, one evaluator and run defaults."""

    def __init__(  # noqa: PLR0913
        self,
        name: str,
        evaluator: Evaluator,
        *,
        variables: Sequence[EntrySpec],
        parameters: Sequence[EntrySpec] = (),
        lags: Sequence[EntrySpec] = (),
        t_span: tuple[float, float] = (0.0, 1.0),
        solvers: Sequence[str] = (),
        options: SolverOptions | Mapping[str, Any] | None = None,
        aux_fn: AuxFunction | None = None,
        display: Sequence[str] = (),
    ) -> None:
        """
        Initialize a Model.

        Args:
            name: Model name.
            evaluator: Evaluator variant (ODE, SDE or DDE).
            variables: Variable entries; their concatenation is the state vector.
            parameters: Parameter entries, bound to the evaluator by keyword.
            lags: Lag entries (delay models only), each strictly positive.
            t_span: Default run span (t0, t1).
            solvers: Supported solver names; the first is the default.
            options: Default solver options.
            aux_fn: Optional ``aux_fn(time, y, **params) -> (n_aux, n_time)``.
            display: Names of display capabilities for external front ends.

        Raises:
            ValueError: If the span, variables or lag declarations are invalid.
            InvalidLagError: If a lag is not a positive scalar.
        """
        self.name = name
        self.evaluator = evaluator
        self.variables = ValueTable("variable", variables)
        self.parameters = ValueTable("parameter", parameters)
        self.lags = ValueTable("lag", lags)
        self.t_span = _check_span(t_span)
        self.solvers = tuple(solvers) or evaluator.default_solvers
        self.options = SolverOptions.coerce(options)
        self.aux_fn = aux_fn
        self.display = tuple(display)

        if len(self.variables) == 0:
            raise ValueError(_NO_VARIABLES_ERROR)
        is_dde = isinstance(evaluator, DdeEvaluator)
        if is_dde and len(self.lags) == 0:
            raise ValueError(_LAGS_REQUIRED_ERROR)
        if not is_dde and len(self.lags) > 0:
            raise ValueError(_LAGS_UNEXPECTED_ERROR)
        for entry in self.lags.entries():
            _check_lag(entry.name, entry.value)

        logger.debug(
            "Constructed model %s: n_state=%d, parameters=%s, lags=%s",
            name,
            self.n_state,
            self.parameters.names,
            self.lags.names,
        )

    def __repr__(self) -> str:
        return (
            f"Model(name={self.name!r}, kind={self.evaluator.kind!r}, "
            f"n_state={self.n_state}, t_span={self.t_span})"
        )

    # ------------------------------------------------------------------
    # Named access
    # ------------------------------------------------------------------

    def get_par(self, name: str) -> FloatArray:
        """Return a parameter value."""
        return self.parameters.get(name)

    def set_par(self, name: str, value: npt.ArrayLike) -> None:
        """Set a parameter value (shape must match the declaration)."""
        self.parameters.set(name, value)

    def get_var(self, name: str) -> FloatArray:
        """Return a variable's current (initial) value."""
        return self.variables.get(name)

    def set_var(self, name: str, value: npt.ArrayLike) -> None:
        """Set a variable's initial value (shape must match the declaration)."""
        self.variables.set(name, value)

    def get_lag(self, name: str) -> float:
        """Return a lag value."""
        return float(self.lags.get(name).reshape(()))

    def set_lag(self, name: str, value: float) -> None:
        """Set a lag value.

        Raises:
            InvalidLagError: If value is not strictly positive.
        """
        _check_lag(name, as_value(value))
        self.lags.set(name, value)

    # ------------------------------------------------------------------
    # State layout
    # ------------------------------------------------------------------

    @property
    def n_state(self) -> int:
        """Length of the concatenated state vector."""
        return self.variables.size

    def concat_state(self) -> FloatArray:
        """Return the current variables as one flat state vector."""
        return self.variables.concat_state()

    def scatter_state(self, flat: npt.ArrayLike) -> None:
        """Write a flat state vector back into the variables."""
        self.variables.scatter_state(flat)

    def var_map(self) -> dict[str, slice]:
        """Return variable name -> slice into the state vector."""
        return self.variables.slices()

    def sol_names(self) -> list[str]:
        """Return one label per state component."""
        return self.variables.element_names()

    def lag_values(self) -> FloatArray:
        """Return the lags as a 1-D vector in declaration order."""
        return self.lags.concat_state()

    @property
    def default_solver(self) -> str:
        """Name of the default solver."""
        return self.solvers[0]

    def auxiliary(self, trajectory: Trajectory) -> FloatArray | None:
        """Evaluate the auxiliary function over a trajectory, if one is declared.

        Args:
            trajectory: Result of a run of this model.

        Returns:
            ``(n_aux, n_time)`` array, or None when the model has no aux_fn.
        """
        if self.aux_fn is None:
            return None
        aux = self.aux_fn(trajectory.time, trajectory.y, **self.parameters.as_kwargs())
        return np.atleast_2d(np.asarray(aux, dtype=np.float64))


def _check_span(t_span: Sequence[float]) -> tuple[float, float]:
    t0, t1 = (float(v) for v in t_span)
    if not (np.isfinite(t0) and np.isfinite(t1) and t0 < t1):
        raise ValueError(_TSPAN_ERROR.format(t_span=tuple(t_span)))
    return t0, t1


def _check_lag(name: str, value: FloatArray) -> None:
    if value.size != 1:
        raise InvalidLagError(_LAG_SHAPE_ERROR.format(name=name, shape=value.shape))
    lag = float(value.reshape(()))
    if not (np.isfinite(lag) and lag > 0.0):
        raise InvalidLagError(_LAG_NONPOSITIVE_ERROR.format(name=name, value=lag))
