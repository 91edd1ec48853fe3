"""dyn_engine: dynamical-system models and their time-stepping drivers."""

from __future__ import annotations

import logging

from .config import SolverOptions
from .core_solver import CoreSolver, RunConfig, SolverStatus
from .dde_solver import DdeSolver, HistoryBuffer
from .driver import auxiliary, evolve, integrate, verify
from .errors import (
    DynEngineError,
    EvaluatorShapeError,
    IntegrationDivergedError,
    InvalidBoundaryConditionError,
    InvalidLagError,
    ShapeMismatchError,
    SolverConfigError,
    UnknownNameError,
)
from .evaluators import DdeEvaluator, OdeEvaluator, SdeEvaluator
from .logging_config import setup_logging
from .matrix_ops import (
    apply_absorbing_boundary,
    build_laplacian_1d,
    build_laplacian_2d,
    kron_prod,
    kron_sum,
    ring_coupling,
    weighted_mean,
)
from .model_core import Entry, Model, ValueTable
from .sde_solver import SdeSolver, set_global_seed
from .stimulus import gated, pulse
from .trajectory import RunStats, Trajectory

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "CoreSolver",
    "DdeEvaluator",
    "DdeSolver",
    "DynEngineError",
    "Entry",
    "EvaluatorShapeError",
    "HistoryBuffer",
    "IntegrationDivergedError",
    "InvalidBoundaryConditionError",
    "InvalidLagError",
    "Model",
    "OdeEvaluator",
    "RunConfig",
    "RunStats",
    "SdeEvaluator",
    "SdeSolver",
    "ShapeMismatchError",
    "SolverConfigError",
    "SolverOptions",
    "SolverStatus",
    "Trajectory",
    "UnknownNameError",
    "ValueTable",
    "apply_absorbing_boundary",
    "auxiliary",
    "build_laplacian_1d",
    "build_laplacian_2d",
    "evolve",
    "gated",
    "integrate",
    "kron_prod",
    "kron_sum",
    "pulse",
    "ring_coupling",
    "set_global_seed",
    "setup_logging",
    "verify",
    "weighted_mean",
]

__version__ = "0.1.0"
