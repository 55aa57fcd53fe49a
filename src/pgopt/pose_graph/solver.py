"""Normal-equation solver for the Gauss-Newton step."""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt
import scipy.linalg
import scipy.sparse as sp

from .errors import DegenerateSystemError


@dataclass
class LinearSolution:
    """Correction vector and the damping it was computed with."""

    delta: npt.NDArray[np.float64]  # (6 * num_nodes,)
    damping: float  # absolute value added to the diagonal of H


def solve_normal_equations(
    jacobian: sp.spmatrix,
    residual: npt.NDArray[np.float64],
    damping: float = 1e-6,
    rcond: float = 1e-14,
) -> LinearSolution:
    """Solve ``(J^T J + lambda I) delta = -J^T r`` by Cholesky factorization.

    ``lambda`` is ``damping`` relative to the largest diagonal entry of
    ``J^T J`` (and at least ``damping``), which regularizes the gauge freedom
    and rank deficiency of the scalar-per-edge system.

    Args:
        jacobian: (num_edges, 6 * num_nodes) Jacobian.
        residual: (num_edges,) residual vector.
        damping: Relative diagonal damping; 0 gives the undamped system.
        rcond: Smallest accepted ratio between the smallest and largest
            Cholesky pivot.

    Returns:
        The correction and the absolute damping applied.

    Raises:
        DegenerateSystemError: If the system is non-finite, not positive
            definite, or too ill-conditioned to trust.
    """
    H = np.asarray((jacobian.T @ jacobian).toarray(), dtype=np.float64)
    b = np.asarray(jacobian.T @ residual, dtype=np.float64).ravel()

    if not (np.all(np.isfinite(H)) and np.all(np.isfinite(b))):
        raise DegenerateSystemError("Normal equations contain non-finite values")

    max_diag = float(H.diagonal().max()) if H.size else 0.0
    lam = damping * max(max_diag, 1.0)
    H[np.diag_indices_from(H)] += lam

    try:
        factor = scipy.linalg.cho_factor(H, lower=True, check_finite=False)
    except np.linalg.LinAlgError as exc:
        raise DegenerateSystemError(
            "Normal equations are not positive definite; the graph is under-constrained"
        ) from exc

    pivots = np.abs(np.diag(factor[0])) ** 2
    if pivots.size and pivots.min() <= rcond * pivots.max():
        raise DegenerateSystemError(
            f"Normal equations are rank deficient (pivot ratio {pivots.min() / pivots.max():.3e})"
        )

    delta = -scipy.linalg.cho_solve(factor, b, check_finite=False)
    if not np.all(np.isfinite(delta)):
        raise DegenerateSystemError("Solve produced a non-finite correction")

    return LinearSolution(delta=delta, damping=lam)
