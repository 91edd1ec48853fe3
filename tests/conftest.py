"""Global pytest configuration and shared fixtures for dyn_engine."""

from __future__ import annotations

import numpy as np
import pytest

from dyn_engine import Model, OdeEvaluator, set_global_seed

# -----------------------------------------------------------------------------
# Reproducible noise
# -----------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _seed_global_rng() -> None:
    """Reseed the process-wide generator before every test."""
    set_global_seed(12345)


# -----------------------------------------------------------------------------
# Small models
# -----------------------------------------------------------------------------


def _decay_rhs(t, y, rate):  # noqa: ANN001, ANN202, ARG001
    return -rate * y


@pytest.fixture
def decay_model() -> Model:
    """Two-component exponential decay ``y' = -rate * y``."""
    return Model(
        "Decay",
        OdeEvaluator(_decay_rhs),
        variables=[("y", [1.0, 2.0])],
        parameters=[("rate", 0.5)],
        t_span=(0.0, 2.0),
    )


@pytest.fixture
def two_node_kij() -> np.ndarray:
    """Symmetric coupling between two nodes."""
    return np.array([[0.0, 1.0], [1.0, 0.0]])
