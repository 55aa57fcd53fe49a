"""Residual and Jacobian assembly.

Every edge contributes one row: the scalar Mahalanobis norm of its error
tangent vector, and the gradient of that norm placed with a positive sign
at the source node's 6 columns and a negative sign at the target node's.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt
import scipy.sparse as sp

from ..utils.conversions import transform_to_vector6d
from ..utils.geometry import inverse_transform
from .edge import PoseEdge

logger = logging.getLogger(__name__)

# Residuals at or below this value have no defined gradient direction
ZERO_RESIDUAL = 1e-12


@dataclass
class LinearSystem:
    """Linearized pose graph at the current poses."""

    jacobian: sp.csr_matrix  # (num_edges, 6 * num_nodes)
    residual: npt.NDArray[np.float64]  # (num_edges,)
    total_residual: float  # sum of w_e * r_e^2
    num_degenerate: int = 0


def precompute_inverse_measurements(edges: Sequence[PoseEdge]) -> npt.NDArray[np.float64]:
    """Invert every edge measurement once, before iterating.

    Args:
        edges: Pose graph edges.

    Returns:
        (num_edges, 4, 4) array of inverse measurement transforms.
    """
    if not edges:
        return np.zeros((0, 4, 4))
    return np.stack([inverse_transform(edge.transformation) for edge in edges])


def error_transform(
    x_inv: npt.NDArray[np.float64],
    pose_source: npt.NDArray[np.float64],
    pose_target: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """Deviation of the current relative pose from a measurement.

    Args:
        x_inv: Inverse of the measured transformation.
        pose_source: Current 4x4 pose of the source node.
        pose_target: Current 4x4 pose of the target node.

    Returns:
        4x4 error transform, identity when the constraint is satisfied.
    """
    return x_inv @ inverse_transform(pose_target) @ pose_source


def error_vector(
    x_inv: npt.NDArray[np.float64],
    pose_source: npt.NDArray[np.float64],
    pose_target: npt.NDArray[np.float64],
) -> npt.NDArray[np.float64]:
    """Tangent vector of :func:`error_transform`."""
    return transform_to_vector6d(error_transform(x_inv, pose_source, pose_target))


def squared_mahalanobis(
    diff: npt.NDArray[np.float64], information: npt.NDArray[np.float64]
) -> float:
    """``d^T Info d``, clamped at zero against round-off."""
    return max(float(diff @ information @ diff), 0.0)


def edge_residual(
    diff: npt.NDArray[np.float64], information: npt.NDArray[np.float64]
) -> Tuple[float, npt.NDArray[np.float64], bool]:
    """Scalar residual and gradient row of one edge.

    Args:
        diff: Error tangent vector of the edge.
        information: 6x6 information matrix of the edge.

    Returns:
        Tuple of (residual, gradient 6-vector, degenerate flag). A residual
        of (numerically) zero yields a zero gradient and sets the flag.
    """
    residual = np.sqrt(squared_mahalanobis(diff, information))
    if residual <= ZERO_RESIDUAL:
        return float(residual), np.zeros(6), True
    gradient = (diff @ information) / residual
    return float(residual), gradient, False


def build_linear_system(
    x_inv: npt.NDArray[np.float64],
    edges: Sequence[PoseEdge],
    poses: npt.NDArray[np.float64],
    weights: Optional[npt.NDArray[np.float64]] = None,
) -> LinearSystem:
    """Assemble the Jacobian and residual vector of the whole graph.

    Args:
        x_inv: (num_edges, 4, 4) inverse measurements.
        edges: Pose graph edges.
        poses: (num_nodes, 4, 4) current node poses.
        weights: Per-edge line process weights, all ones if None.

    Returns:
        The linear system at ``poses``.
    """
    n_nodes = poses.shape[0]
    n_edges = len(edges)
    if weights is None:
        weights = np.ones(n_edges)

    rows: List[int] = []
    cols: List[int] = []
    data: List[float] = []
    residual = np.zeros(n_edges)
    total_residual = 0.0
    num_degenerate = 0

    for k, edge in enumerate(edges):
        i = edge.source_node_id
        j = edge.target_node_id
        diff = error_vector(x_inv[k], poses[i], poses[j])
        r_e, g_e, degenerate = edge_residual(diff, edge.information)
        if degenerate:
            num_degenerate += 1

        scale = np.sqrt(weights[k])
        for c in range(6):
            rows.extend((k, k))
            cols.extend((6 * i + c, 6 * j + c))
            data.extend((scale * g_e[c], -scale * g_e[c]))

        residual[k] = scale * r_e
        total_residual += weights[k] * r_e * r_e

    if num_degenerate:
        logger.debug("%d edge(s) with zero residual contribute a zero gradient", num_degenerate)

    # Duplicate (row, col) entries are summed by the COO -> CSR conversion
    jacobian = sp.coo_matrix(
        (data, (rows, cols)), shape=(n_edges, 6 * n_nodes)
    ).tocsr()

    return LinearSystem(
        jacobian=jacobian,
        residual=residual,
        total_residual=float(total_residual),
        num_degenerate=num_degenerate,
    )


def compute_total_residual(
    x_inv: npt.NDArray[np.float64],
    edges: Sequence[PoseEdge],
    poses: npt.NDArray[np.float64],
    weights: Optional[npt.NDArray[np.float64]] = None,
) -> float:
    """Weighted sum of squared edge residuals without building the Jacobian."""
    total = 0.0
    for k, edge in enumerate(edges):
        diff = error_vector(x_inv[k], poses[edge.source_node_id], poses[edge.target_node_id])
        w = 1.0 if weights is None else weights[k]
        total += w * squared_mahalanobis(diff, edge.information)
    return float(total)
