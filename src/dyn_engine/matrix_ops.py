"""
Spatial discretization and network coupling operators.

This module builds the small linear operators that method-of-lines and
network models plug into their right-hand sides:

- 1D and 2D second-order central-difference Laplacians for several boundary
  conditions (sparse CSR).
- The absorbing (one-way wave) boundary correction for 1D wave equations.
- Circulant ring adjacency matrices for ring networks.
- Weighted mean-field aggregation over a connectivity matrix.
- Kronecker composition utilities for separable multi-axis operators.

Boundary conditions:
    * "periodic":   circulant stencil, ``u[-1]`` and ``u[n]`` wrap around.
    * "reflecting": mirrored ghost node ``u[-1] = u[1]``; boundary rows read
      ``[-2, 2]`` so constant fields are in the null space. Dropping only the
      wrap-around entries of the periodic stencil would give ``[-2, 0]``
      instead, which drains a uniform field through the edges.
    * "free":       one-sided edges; boundary rows read ``[-1, 1]``.
    * "absorbing":  1D only; the periodic stencil, with the boundary
      derivatives of the displacement overwritten by
      :func:`apply_absorbing_boundary`.

Operators are returned unscaled by any time step; ``coeff / dx**2`` is the
only factor applied.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Final, TypeAlias, cast

import numpy as np
from numpy.typing import ArrayLike, DTypeLike, NDArray
from scipy.sparse import coo_matrix, csr_matrix, identity, issparse, kron

from .errors import InvalidBoundaryConditionError

if TYPE_CHECKING:
    from collections.abc import Sequence


# =============================================================================
# Public operator types (backend-friendly)
# =============================================================================

DenseOperator: TypeAlias = NDArray[np.floating]
SparseOperator: TypeAlias = csr_matrix
Operator: TypeAlias = DenseOperator | SparseOperator

BOUNDARY_CONDITIONS: Final[tuple[str, ...]] = (
    "periodic",
    "reflecting",
    "free",
    "absorbing",
)
_BC_2D: Final[tuple[str, ...]] = ("periodic", "reflecting", "free")

_UNKNOWN_BC_ERROR = "Unknown bc: {bc}. Supported: {allowed}"
_GRID_SIZE_ERROR = "n must be an integer >= 2; got {n}"
_SPACING_ERROR = "{name} must be positive and finite; got {value}"
_ABSORBING_SHAPE_ERROR = "du and u must be 1D with equal length >= 2; got {a} and {b}"
_RING_OFFSET_ERROR = "ring offsets must be non-zero integers; got {offset}"
_WEIGHTS_SHAPE_ERROR = (
    "weights shape {weights} is incompatible with values shape {values}"
)
_KRON_EMPTY_ERROR = "ops must contain at least one operator"
_KRON_INCOMPATIBLE_ERROR = "All operators must be square; got shapes: {shapes}"


# =============================================================================
# Validation helpers
# =============================================================================


def _check_grid(n: int) -> int:
    n_int = int(n)
    if n_int != n or n_int < 2:  # noqa: PLR2004
        raise ValueError(_GRID_SIZE_ERROR.format(n=n))
    return n_int


def _check_spacing(name: str, value: float) -> float:
    v = float(value)
    if not np.isfinite(v) or v <= 0.0:
        raise ValueError(_SPACING_ERROR.format(name=name, value=value))
    return v


def _normalize_bc(bc: str, allowed: tuple[str, ...]) -> str:
    bc_norm = str(bc).strip().lower()
    if bc_norm not in allowed:
        raise InvalidBoundaryConditionError(
            _UNKNOWN_BC_ERROR.format(bc=bc, allowed=", ".join(allowed))
        )
    return bc_norm


# =============================================================================
# Laplacians
# =============================================================================


def _periodic_stencil(n: int, dtype: np.dtype) -> csr_matrix:
    """Circulant [1, -2, 1] stencil.

    Built from COO triplets so that duplicate entries are summed; for n == 2
    both neighbours of a node are the same node.
    """
    idx = np.arange(n)
    rows = np.concatenate([idx, idx, idx])
    cols = np.concatenate([idx, (idx - 1) % n, (idx + 1) % n])
    data = np.concatenate([
        np.full(n, -2.0, dtype=dtype),
        np.ones(n, dtype=dtype),
        np.ones(n, dtype=dtype),
    ])
    return coo_matrix((data, (rows, cols)), shape=(n, n), dtype=dtype).tocsr()


def _tridiag_stencil(n: int, edge: float, dtype: np.dtype) -> csr_matrix:
    """Tridiagonal [1, -2, 1] stencil with boundary rows [-edge, edge]."""
    idx = np.arange(n)
    rows = np.concatenate([idx, idx[1:], idx[:-1]])
    cols = np.concatenate([idx, idx[:-1], idx[1:]])
    main = np.full(n, -2.0, dtype=dtype)
    lower = np.ones(n - 1, dtype=dtype)
    upper = np.ones(n - 1, dtype=dtype)

    main[0] = -edge
    main[-1] = -edge
    upper[0] = edge
    lower[-1] = edge

    data = np.concatenate([main, lower, upper])
    return coo_matrix((data, (rows, cols)), shape=(n, n), dtype=dtype).tocsr()


def build_laplacian_1d(
    n: int,
    bc: str,
    dx: float = 1.0,
    coeff: float = 1.0,
    dtype: DTypeLike = np.float64,
) -> csr_matrix:
    """Build the 1D second-order Laplacian ``coeff * D_xx``.

    Args:
        n: Number of grid points (>= 2).
        bc: One of "periodic", "reflecting", "free", "absorbing".
        dx: Grid spacing.
        coeff: Scalar multiplier, e.g. a diffusion coefficient.
        dtype: Floating dtype of the result.

    Raises:
        InvalidBoundaryConditionError: If bc is not recognized.
        ValueError: If n or dx is invalid.

    Returns:
        Sparse CSR matrix of shape (n, n) scaled by ``coeff / dx**2``.
    """
    n_int = _check_grid(n)
    dx_f = _check_spacing("dx", dx)
    bc_norm = _normalize_bc(bc, BOUNDARY_CONDITIONS)
    dtype_obj = np.dtype(dtype)

    if bc_norm in {"periodic", "absorbing"}:
        laplacian = _periodic_stencil(n_int, dtype_obj)
    elif bc_norm == "reflecting":
        # ghost node doubles the inward neighbour
        laplacian = _tridiag_stencil(n_int, 2.0, dtype_obj)
    else:
        laplacian = _tridiag_stencil(n_int, 1.0, dtype_obj)

    scaled = laplacian * (float(coeff) / dx_f**2)
    return scaled.tocsr()


def apply_absorbing_boundary(
    du: NDArray[np.floating],
    u: NDArray[np.floating],
    c: float,
    dx: float,
) -> NDArray[np.floating]:
    """Overwrite the edge derivatives of a wave displacement in place.

    Sets ``du[0] = c*(u[1]-u[0])/dx`` and ``du[-1] = -c*(u[-1]-u[-2])/dx``,
    the one-way wave equations that let outgoing waves leave the domain.

    Args:
        du: Time derivative of the displacement, modified in place.
        u: Displacement.
        c: Wave speed.
        dx: Grid spacing.

    Raises:
        ValueError: If the arrays are not matching 1D vectors of length >= 2.

    Returns:
        du, for chaining.
    """
    if du.ndim != 1 or u.shape != du.shape or du.size < 2:  # noqa: PLR2004
        raise ValueError(_ABSORBING_SHAPE_ERROR.format(a=du.shape, b=u.shape))
    du[0] = c * (u[1] - u[0]) / dx
    du[-1] = -c * (u[-1] - u[-2]) / dx
    return du


def build_laplacian_2d(  # noqa: PLR0913
    nx: int,
    ny: int,
    bc: str,
    dx: float = 1.0,
    dy: float = 1.0,
    coeff: float = 1.0,
    dtype: DTypeLike = np.float64,
) -> csr_matrix:
    """Build the 2D Laplacian ``coeff * (D_xx + D_yy)`` on an (ny, nx) grid.

    The field is raveled in C order, so x varies fastest: the operator is
    ``kron(I_ny, D_xx) + kron(D_yy, I_nx)``.

    Args:
        nx: Number of columns (x points).
        ny: Number of rows (y points).
        bc: One of "periodic", "reflecting", "free".
        dx: Spacing along x.
        dy: Spacing along y.
        coeff: Scalar multiplier.
        dtype: Floating dtype of the result.

    Raises:
        InvalidBoundaryConditionError: If bc is not a 2D boundary condition.

    Returns:
        Sparse CSR matrix of shape (nx*ny, nx*ny).
    """
    bc_norm = _normalize_bc(bc, _BC_2D)
    d_xx = build_laplacian_1d(nx, bc_norm, dx=dx, coeff=coeff, dtype=dtype)
    d_yy = build_laplacian_1d(ny, bc_norm, dx=dy, coeff=coeff, dtype=dtype)
    return cast("csr_matrix", kron_sum([d_yy, d_xx]))


# =============================================================================
# Network coupling
# =============================================================================


def ring_coupling(
    n: int,
    offsets: Sequence[int] = (-1, 1),
    dtype: DTypeLike = np.float64,
) -> NDArray[np.floating]:
    """Circulant adjacency with ones at ``(i, (i + k) % n)`` for each offset k.

    Offsets wrap around the ring, so on small rings a long offset may coincide
    with a shorter one or, for multiples of n, land on the diagonal.

    Args:
        n: Number of nodes.
        offsets: Non-zero integer neighbour offsets.
        dtype: Floating dtype.

    Raises:
        ValueError: If an offset is zero or not an integer.

    Returns:
        Dense (n, n) matrix; entries for repeated neighbours accumulate.
    """
    n_int = _check_grid(n)
    out = np.zeros((n_int, n_int), dtype=np.dtype(dtype))
    idx = np.arange(n_int)
    for k in offsets:
        k_int = int(k)
        if k_int != k or k_int == 0:
            raise ValueError(_RING_OFFSET_ERROR.format(offset=k))
        np.add.at(out, (idx, (idx + k_int) % n_int), 1.0)
    return out


def weighted_mean(weights: ArrayLike, values: ArrayLike) -> NDArray[np.floating]:
    """Mean of values at the source nodes, weighted by incoming connections.

    Entry j is ``sum_i W[i, j] * values[i] / sum_i W[i, j]``. Nodes with no
    incoming weight get 0 instead of NaN.

    Args:
        weights: Connectivity matrix W, shape (n, n); W[i, j] is i -> j.
        values: Node values, shape (n,) or (n, k).

    Raises:
        ValueError: If the shapes do not line up.

    Returns:
        Array shaped like values.
    """
    w = np.asarray(weights, dtype=np.float64)
    v = np.asarray(values, dtype=np.float64)
    if w.ndim != 2 or v.ndim not in {1, 2} or w.shape[0] != v.shape[0]:  # noqa: PLR2004
        raise ValueError(_WEIGHTS_SHAPE_ERROR.format(weights=w.shape, values=v.shape))

    total = w.sum(axis=0)
    if v.ndim == 2:  # noqa: PLR2004
        total = total[:, np.newaxis]
    with np.errstate(divide="ignore", invalid="ignore"):
        mean = (w.T @ v) / total
    mean[~np.isfinite(mean)] = 0.0
    return mean


# =============================================================================
# Kronecker utilities
# =============================================================================


def kron_prod(a: Operator, b: Operator) -> Operator:
    """
    Compute the Kronecker product of two operators.

    Args:
        a: First operator.
        b: Second operator.

    Returns:
        The Kronecker product operator (CSR if either input is sparse).
    """
    if issparse(a) or issparse(b):
        a_csr = a if issparse(a) else csr_matrix(np.asarray(a))
        b_csr = b if issparse(b) else csr_matrix(np.asarray(b))
        return kron(a_csr, b_csr, format="csr")
    return cast("DenseOperator", np.kron(np.asarray(a), np.asarray(b)))


def kron_sum(ops: list[Operator]) -> Operator:
    """
    Compute a Kronecker sum of square operators.

    For ``ops = [A, B]`` this is ``kron(A, I_b) + kron(I_a, B)``.

    Args:
        ops: List of 2D square operators.

    Raises:
        ValueError: If ops is empty or if any operator is not square.

    Returns:
        The Kronecker sum operator.
    """
    if not ops:
        raise ValueError(_KRON_EMPTY_ERROR)

    shapes = [
        tuple(np.asarray(op).shape) if not issparse(op) else op.shape for op in ops
    ]
    if any(len(s) != 2 or s[0] != s[1] for s in shapes):  # noqa: PLR2004
        raise ValueError(_KRON_INCOMPATIBLE_ERROR.format(shapes=shapes))

    any_sparse = any(issparse(op) for op in ops)
    sizes = [s[0] for s in shapes]
    dtype_obj = np.result_type(*[
        (op.dtype if issparse(op) else np.asarray(op).dtype) for op in ops
    ])

    def _eye(n: int) -> Operator:
        if any_sparse:
            return identity(n, format="csr", dtype=dtype_obj)
        return cast("DenseOperator", np.eye(n, dtype=dtype_obj))

    total: Operator | None = None
    n_ops = len(ops)

    for i, op_i in enumerate(ops):
        term: Operator = op_i
        for j in range(i - 1, -1, -1):
            term = kron_prod(_eye(sizes[j]), term)
        for j in range(i + 1, n_ops):
            term = kron_prod(term, _eye(sizes[j]))
        total = term if total is None else cast("Operator", total + term)

    if total is None:
        raise ValueError(_KRON_EMPTY_ERROR)
    if any_sparse:
        return csr_matrix(total)
    return total
