# src/dyn_engine/driver.py
"""Run a :class:`~dyn_engine.model_core.Model` through the matching solver.

Contract:
- The evaluator variant is inspected once per run and selects the solver
  family: ODE -> :class:`CoreSolver`, SDE -> :class:`SdeSolver`,
  DDE -> :class:`DdeSolver`.
- Parameters are bound by keyword from the model's parameter table; the
  evaluator receives read-only arrays.
- Options are the model defaults with the caller's explicitly set fields
  applied on top. Explicitly set options the chosen solver never reads
  (noise settings outside SDE runs, history outside DDE runs, adaptive=False
  with a scipy method) emit a RuntimeWarning.
- The returned Trajectory carries the model's variable layout.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Final

import numpy as np

from .core_solver import EXPLICIT_METHODS, CoreSolver
from .dde_solver import DdeSolver
from .errors import SolverConfigError
from .evaluators import DdeEvaluator, SdeEvaluator
from .sde_solver import SdeSolver

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from .config import SolverOptions
    from .model_core import FloatArray, Model
    from .trajectory import Trajectory

logger = logging.getLogger(__name__)

_SOLVER_MISMATCH_MSG: Final[str] = (
    "Solver '{solver}' is not available for {kind} model '{model}'. "
    "Supported: {allowed}"
)
_REPEATS_MSG: Final[str] = "repeats must be a positive integer; got {repeats}"
_NO_AUX_MSG: Final[str] = "Model '{model}' declares no auxiliary function"
_IGNORED_OPTIONS_MSG: Final[str] = (
    "Options {names} have no effect with solver '{solver}' for model '{model}'"
)


def _allowed_solvers(model: Model) -> tuple[str, ...]:
    if isinstance(model.evaluator, SdeEvaluator):
        return SdeSolver.method_names
    if isinstance(model.evaluator, DdeEvaluator):
        return DdeSolver.method_names
    return CoreSolver.method_names


def _resolve_solver(model: Model, solver: str | None) -> str:
    """Return the normalized solver name for model.

    Raises:
        SolverConfigError: If the solver does not fit the evaluator variant.
    """
    name = str(solver if solver is not None else model.default_solver)
    name = name.strip().lower()
    allowed = _allowed_solvers(model)
    if name not in allowed:
        raise SolverConfigError(
            _SOLVER_MISMATCH_MSG.format(
                solver=name,
                kind=model.evaluator.kind,
                model=model.name,
                allowed=", ".join(allowed),
            )
        )
    return name


def _ignored_options(model: Model, method: str, opts: SolverOptions) -> list[str]:
    """Return the explicitly set option names the chosen solver never reads."""
    evaluator = model.evaluator
    ignored: list[str] = []
    if not isinstance(evaluator, SdeEvaluator):
        ignored += ["seed", "randn"]
    if not isinstance(evaluator, DdeEvaluator):
        ignored.append("history")
    is_ode = not isinstance(evaluator, (SdeEvaluator, DdeEvaluator))
    # scipy methods always step adaptively
    if is_ode and method not in EXPLICIT_METHODS and not opts.adaptive:
        ignored.append("adaptive")
    return [name for name in ignored if name in opts.model_fields_set]


def integrate(
    model: Model,
    t_span: Sequence[float] | None = None,
    solver: str | None = None,
    options: SolverOptions | Mapping[str, Any] | None = None,
) -> Trajectory:
    """Integrate a model from its current variables.

    Args:
        model: Model to run; its variables are the initial state.
        t_span: Run span (t0, t1); defaults to the model's span.
        solver: Solver name; defaults to the model's first solver.
        options: Overrides for the model's default options.

    Raises:
        SolverConfigError: If the solver does not fit the model.

    Returns:
        Trajectory with the model's variable layout attached.
    """
    method = _resolve_solver(model, solver)
    span = tuple(t_span) if t_span is not None else model.t_span
    opts = model.options.merged(options)
    ignored = _ignored_options(model, method, opts)
    if ignored:
        warnings.warn(
            _IGNORED_OPTIONS_MSG.format(
                names=", ".join(ignored), solver=method, model=model.name
            ),
            RuntimeWarning,
            stacklevel=2,
        )
    cfg = opts.to_run_config(method)
    params = model.parameters.as_kwargs()
    n_state = model.n_state
    y0 = model.concat_state()
    evaluator = model.evaluator

    logger.info("Integrating %s with %s over %s", model.name, method, span)
    if isinstance(evaluator, SdeEvaluator):
        drift, diffusion = evaluator.bind(params, n_state)
        traj = SdeSolver(n_state, evaluator.noise_sources).run(
            drift,
            diffusion,
            span,
            y0,
            config=cfg,
            noise=opts.to_noise_config(),
        )
    elif isinstance(evaluator, DdeEvaluator):
        rhs = evaluator.bind(params, n_state)
        traj = DdeSolver(n_state, model.lag_values()).run(
            rhs,
            span,
            y0,
            config=cfg,
            history=opts.to_history_config(),
        )
    else:
        traj = CoreSolver(n_state).run(
            evaluator.bind(params, n_state),
            span,
            y0,
            config=cfg,
        )

    return replace(traj, layout=model.variables.layout())


def evolve(
    model: Model,
    repeats: int = 1,
    t_span: Sequence[float] | None = None,
    solver: str | None = None,
    options: SolverOptions | Mapping[str, Any] | None = None,
) -> Trajectory:
    """Run the model repeatedly, feeding each final state into the next run.

    After every run the model's variables are overwritten with the final
    state, so the model is left at the end of the last run.

    Args:
        model: Model to run (mutated).
        repeats: Number of chained runs.
        t_span: Span of each run; defaults to the model's span.
        solver: Solver name.
        options: Overrides for the model's default options.

    Raises:
        ValueError: If repeats is not a positive integer.

    Returns:
        Trajectory of the last run.
    """
    if int(repeats) != repeats or repeats < 1:
        raise ValueError(_REPEATS_MSG.format(repeats=repeats))

    for k in range(int(repeats)):
        traj = integrate(model, t_span=t_span, solver=solver, options=options)
        model.scatter_state(traj.final_state)
        logger.debug("evolve %s: run %d/%d done", model.name, k + 1, repeats)
    return traj


def verify(model: Model) -> None:
    """Evaluate the model once at its initial state and check result shapes.

    Raises:
        EvaluatorShapeError: If an evaluator returns a wrongly shaped array.
    """
    params = model.parameters.as_kwargs()
    n_state = model.n_state
    y0 = model.concat_state()
    t0 = model.t_span[0]
    evaluator = model.evaluator

    if isinstance(evaluator, SdeEvaluator):
        drift, diffusion = evaluator.bind(params, n_state)
        drift(t0, y0)
        diffusion(t0, y0)
    elif isinstance(evaluator, DdeEvaluator):
        z = np.repeat(y0[:, np.newaxis], len(model.lags), axis=1)
        evaluator.bind(params, n_state)(t0, y0, z)
    else:
        evaluator.bind(params, n_state)(t0, y0)
    logger.debug("Verified model %s", model.name)


def auxiliary(model: Model, trajectory: Trajectory) -> FloatArray:
    """Evaluate the model's auxiliary function over a trajectory.

    Raises:
        ValueError: If the model declares no auxiliary function.

    Returns:
        Array of shape (n_aux, n_time).
    """
    aux = model.auxiliary(trajectory)
    if aux is None:
        raise ValueError(_NO_AUX_MSG.format(model=model.name))
    return aux
