# tests/test_matrix_ops.py
"""Unit tests for dyn_engine.matrix_ops.

This module verifies:
- 1D Laplacian structure for every boundary condition.
- Uniform fields are stationary under periodic and reflecting boundaries.
- The absorbing boundary correction.
- 2D Laplacian assembly and its boundary-condition restrictions.
- Ring coupling and weighted mean-field aggregation.
- Kronecker utilities (kron_prod, kron_sum).
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
import pytest
from scipy.sparse import issparse

from dyn_engine.errors import InvalidBoundaryConditionError
from dyn_engine.matrix_ops import (
    apply_absorbing_boundary,
    build_laplacian_1d,
    build_laplacian_2d,
    kron_prod,
    kron_sum,
    ring_coupling,
    weighted_mean,
)

if TYPE_CHECKING:
    from numpy.typing import NDArray


def _as_dense(mat: object) -> NDArray[np.floating]:
    if hasattr(mat, "toarray"):
        return np.asarray(mat.toarray())
    return np.asarray(mat)


# -------------------------------------------------------------------
# 1D Laplacian
# -------------------------------------------------------------------


def test_laplacian_periodic_structure_small() -> None:
    """Periodic Laplacian is circulant with wrap-around neighbours."""
    lap = _as_dense(build_laplacian_1d(4, "periodic"))
    expected = np.array([
        [-2.0, 1.0, 0.0, 1.0],
        [1.0, -2.0, 1.0, 0.0],
        [0.0, 1.0, -2.0, 1.0],
        [1.0, 0.0, 1.0, -2.0],
    ])
    assert np.array_equal(lap, expected)


def test_laplacian_periodic_two_points_sums_neighbours() -> None:
    """With n=2 both neighbours coincide and their weights add."""
    lap = _as_dense(build_laplacian_1d(2, "periodic"))
    assert np.array_equal(lap, np.array([[-2.0, 2.0], [2.0, -2.0]]))


def test_laplacian_reflecting_mirrors_boundary() -> None:
    """Reflecting rows use the mirrored ghost node."""
    lap = _as_dense(build_laplacian_1d(4, "reflecting"))
    assert np.array_equal(lap[0], [-2.0, 2.0, 0.0, 0.0])
    assert np.array_equal(lap[-1], [0.0, 0.0, 2.0, -2.0])
    assert np.array_equal(lap[1], [1.0, -2.0, 1.0, 0.0])


def test_laplacian_free_one_sided_edges() -> None:
    """Free boundary rows are [-1, 1]."""
    lap = _as_dense(build_laplacian_1d(5, "free"))
    assert np.array_equal(lap[0], [-1.0, 1.0, 0.0, 0.0, 0.0])
    assert np.array_equal(lap[-1], [0.0, 0.0, 0.0, 1.0, -1.0])


def test_laplacian_absorbing_uses_periodic_stencil() -> None:
    """The absorbing stencil equals the periodic one."""
    a = _as_dense(build_laplacian_1d(6, "absorbing"))
    p = _as_dense(build_laplacian_1d(6, "periodic"))
    assert np.array_equal(a, p)


def test_laplacian_scaling_and_format() -> None:
    """Output is CSR and scaled by coeff / dx**2."""
    lap = build_laplacian_1d(5, "periodic", dx=0.5, coeff=3.0)
    assert issparse(lap)
    assert lap.format == "csr"
    assert lap[2, 2] == pytest.approx(-2.0 * 3.0 / 0.25)


@pytest.mark.parametrize("bc", ["periodic", "reflecting", "free"])
def test_uniform_field_is_stationary(bc: str) -> None:
    """Constant fields lie in the null space of the Laplacian."""
    lap = build_laplacian_1d(9, bc, dx=0.3)
    u = np.full(9, 2.5)
    assert np.allclose(lap @ u, 0.0)


def test_laplacian_unknown_bc_raises() -> None:
    """Unknown boundary keywords raise InvalidBoundaryConditionError."""
    with pytest.raises(InvalidBoundaryConditionError, match="Unknown bc"):
        build_laplacian_1d(4, "dirichlet")


def test_laplacian_unknown_bc_is_value_error() -> None:
    """The boundary-condition error is also a ValueError."""
    with pytest.raises(ValueError, match="Unknown bc"):
        build_laplacian_1d(4, "neumann")


def test_laplacian_rejects_tiny_grid() -> None:
    """A grid needs at least two points."""
    with pytest.raises(ValueError, match="n must be"):
        build_laplacian_1d(1, "periodic")


# -------------------------------------------------------------------
# Absorbing boundary
# -------------------------------------------------------------------


def test_apply_absorbing_boundary_overwrites_edges() -> None:
    """Edge derivatives are replaced by one-way wave equations."""
    u = np.array([1.0, 3.0, 4.0, 8.0])
    du = np.array([9.0, 9.0, 9.0, 9.0])
    out = apply_absorbing_boundary(du, u, c=2.0, dx=0.5)
    assert out is du
    assert du[0] == pytest.approx(2.0 * (3.0 - 1.0) / 0.5)
    assert du[-1] == pytest.approx(-2.0 * (8.0 - 4.0) / 0.5)
    assert np.array_equal(du[1:-1], [9.0, 9.0])


def test_apply_absorbing_boundary_shape_mismatch() -> None:
    """Mismatched arrays are rejected."""
    with pytest.raises(ValueError, match="equal length"):
        apply_absorbing_boundary(np.zeros(3), np.zeros(4), 1.0, 1.0)


# -------------------------------------------------------------------
# 2D Laplacian
# -------------------------------------------------------------------


def test_laplacian_2d_matches_axis_sum() -> None:
    """The 2D operator applied to a raveled field equals Uxx + Uyy."""
    rng = np.random.default_rng(0)
    nx, ny = 5, 4
    field = rng.normal(size=(ny, nx))
    lap = build_laplacian_2d(nx, ny, "periodic", dx=0.5, dy=2.0)

    uxx = (np.roll(field, 1, axis=1) - 2 * field + np.roll(field, -1, axis=1)) / 0.25
    uyy = (np.roll(field, 1, axis=0) - 2 * field + np.roll(field, -1, axis=0)) / 4.0
    assert lap.shape == (nx * ny, nx * ny)
    assert np.allclose(lap @ field.ravel(), (uxx + uyy).ravel())


@pytest.mark.parametrize("bc", ["periodic", "reflecting", "free"])
def test_laplacian_2d_uniform_field_is_stationary(bc: str) -> None:
    """Constant 2D fields are stationary for every 2D boundary condition."""
    lap = build_laplacian_2d(3, 4, bc)
    assert np.allclose(lap @ np.ones(12), 0.0)


def test_laplacian_2d_rejects_absorbing() -> None:
    """Absorbing boundaries exist only in 1D."""
    with pytest.raises(InvalidBoundaryConditionError):
        build_laplacian_2d(4, 4, "absorbing")


# -------------------------------------------------------------------
# Coupling
# -------------------------------------------------------------------


def test_ring_coupling_nearest_neighbours() -> None:
    """Default offsets connect each node to both ring neighbours."""
    ring = ring_coupling(5)
    assert np.array_equal(ring.sum(axis=0), np.full(5, 2.0))
    assert ring[0, 1] == 1.0
    assert ring[0, 4] == 1.0
    assert ring[0, 2] == 0.0
    assert np.array_equal(ring, ring.T)


def test_ring_coupling_rejects_zero_offset() -> None:
    """A literal zero offset is rejected."""
    with pytest.raises(ValueError, match="non-zero integers"):
        ring_coupling(4, (0,))


def test_ring_coupling_rejects_fractional_offset() -> None:
    """Offsets must be whole steps around the ring."""
    with pytest.raises(ValueError, match="got 1.5"):
        ring_coupling(4, (1.5,))


def test_ring_coupling_wraps_long_offsets() -> None:
    """Offsets at least n long wrap around the ring."""
    assert np.array_equal(ring_coupling(3, (-2, 2)), ring_coupling(3, (1, -1)))
    assert np.array_equal(ring_coupling(5, (7,)), ring_coupling(5, (2,)))


def test_ring_coupling_multiple_of_n_lands_on_diagonal() -> None:
    """Shifting by a whole lap connects every node to itself."""
    assert np.array_equal(ring_coupling(3, (-3, 3)), 2.0 * np.eye(3))


def test_weighted_mean_matches_formula() -> None:
    """Entry j is the incoming-weight average of the source values."""
    w = np.array([[0.0, 2.0], [1.0, 1.0]])
    v = np.array([4.0, 10.0])
    out = weighted_mean(w, v)
    assert out[0] == pytest.approx(10.0)
    assert out[1] == pytest.approx((2.0 * 4.0 + 10.0) / 3.0)


def test_weighted_mean_zero_column_gives_zero() -> None:
    """A node with no incoming weight receives 0 rather than NaN."""
    w = np.array([[0.0, 1.0, 0.0], [1.0, 0.0, 0.0], [1.0, 1.0, 0.0]])
    out = weighted_mean(w, np.array([1.0, 2.0, 3.0]))
    assert np.all(np.isfinite(out))
    assert out[2] == 0.0


def test_weighted_mean_matrix_values() -> None:
    """Column blocks of values are averaged independently."""
    w = np.array([[1.0, 0.0], [1.0, 0.0]])
    v = np.array([[1.0, 5.0], [3.0, 7.0]])
    out = weighted_mean(w, v)
    assert out.shape == (2, 2)
    assert np.allclose(out[0], [2.0, 6.0])
    assert np.array_equal(out[1], [0.0, 0.0])


def test_weighted_mean_shape_mismatch() -> None:
    """Weights and values must agree on the node count."""
    with pytest.raises(ValueError, match="incompatible"):
        weighted_mean(np.ones((3, 3)), np.ones(2))


# -------------------------------------------------------------------
# Kronecker utilities
# -------------------------------------------------------------------


def test_kron_prod_shapes_and_dense_value() -> None:
    """kron_prod returns correct shape and matches np.kron for dense inputs."""
    a = np.array([[1.0, 2.0], [3.0, 4.0]])
    b = np.array([[0.5, 0.0], [0.0, 2.0]])

    out = kron_prod(a, b)
    assert out.shape == (4, 4)
    assert np.allclose(np.asarray(out), np.kron(a, b))


def test_kron_sum_two_terms_matches_definition_dense() -> None:
    """kron_sum([A, B]) matches A kron I + I kron B for dense inputs."""
    a = np.array([[1.0, 2.0], [3.0, 4.0]])
    b = np.array([[5.0, 0.0, 1.0], [0.0, 6.0, 0.0], [2.0, 0.0, 1.0]])

    out = kron_sum([a, b])
    expected = np.kron(a, np.eye(3)) + np.kron(np.eye(2), b)
    assert out.shape == (6, 6)
    assert np.allclose(np.asarray(out), expected)


def test_kron_sum_sparse_stays_sparse() -> None:
    """Sparse inputs give a CSR result."""
    lap = build_laplacian_1d(3, "free")
    out = kron_sum([lap, lap])
    assert issparse(out)
    assert out.shape == (9, 9)


def test_kron_sum_empty_raises() -> None:
    """kron_sum requires at least one operator."""
    with pytest.raises(ValueError, match="at least one operator"):
        _ = kron_sum([])
