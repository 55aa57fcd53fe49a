"""Conversion between pgopt pose graphs and GTSAM factor graphs.

Useful for comparing the line-process optimizer against GTSAM's
Levenberg-Marquardt or Gauss-Newton solvers on the same problem. GTSAM's
Pose3 tangent ordering (rotation first) matches the information matrices
stored on :class:`PoseEdge`, so they are used unchanged.
"""

from typing import Tuple

import gtsam
import numpy as np
import numpy.typing as npt

from .edge import PoseEdge
from .graph import PoseGraph
from .node import PoseNode


def _symbol(node_id: int) -> int:
    return gtsam.symbol("x", node_id)


def transform_to_gtsam_pose3(T: npt.NDArray[np.float64]) -> gtsam.Pose3:
    """Convert a 4x4 transformation matrix to GTSAM Pose3.

    Args:
        T: 4x4 SE(3) transformation matrix.

    Returns:
        GTSAM Pose3 object.
    """
    # Ensure rotation matrix is contiguous and float64 for GTSAM
    R = np.ascontiguousarray(T[:3, :3], dtype=np.float64)
    t = T[:3, 3]
    return gtsam.Pose3(gtsam.Rot3(R), gtsam.Point3(float(t[0]), float(t[1]), float(t[2])))


def gtsam_pose3_to_transform(pose: gtsam.Pose3) -> npt.NDArray[np.float64]:
    """Convert GTSAM Pose3 to a 4x4 transformation matrix."""
    return np.asarray(pose.matrix(), dtype=np.float64)


def edge_to_between_factor(edge: PoseEdge) -> gtsam.BetweenFactorPose3:
    """Convert an edge to a GTSAM BetweenFactorPose3.

    GTSAM measures ``inverse(T_a) @ T_b`` for a factor on ``(a, b)``, so the
    factor runs from the target node to the source node.

    Args:
        edge: The pose graph edge.

    Returns:
        GTSAM BetweenFactorPose3.
    """
    # Information matrix is inverse of covariance
    covariance = np.linalg.inv(edge.information)
    noise_model = gtsam.noiseModel.Gaussian.Covariance(covariance)

    return gtsam.BetweenFactorPose3(
        _symbol(edge.target_node_id),
        _symbol(edge.source_node_id),
        transform_to_gtsam_pose3(edge.transformation),
        noise_model,
    )


def to_gtsam(
    graph: PoseGraph,
    anchor_first: bool = True,
    anchor_sigma: float = 1e-6,
) -> Tuple[gtsam.NonlinearFactorGraph, gtsam.Values]:
    """Build a GTSAM factor graph and initial estimate from a pose graph.

    Args:
        graph: The pose graph.
        anchor_first: Add a tight prior on node 0 to fix the gauge freedom.
        anchor_sigma: Standard deviation of the anchor prior.

    Returns:
        Tuple of (factor graph, initial values).
    """
    graph.validate()

    factors = gtsam.NonlinearFactorGraph()
    values = gtsam.Values()

    for node_id, node in enumerate(graph.nodes):
        values.insert(_symbol(node_id), transform_to_gtsam_pose3(node.pose))

    if anchor_first:
        prior_noise = gtsam.noiseModel.Isotropic.Sigma(6, anchor_sigma)
        factors.add(
            gtsam.PriorFactorPose3(
                _symbol(0), transform_to_gtsam_pose3(graph.nodes[0].pose), prior_noise
            )
        )

    for edge in graph.edges:
        factors.add(edge_to_between_factor(edge))

    return factors, values


def from_gtsam(values: gtsam.Values, graph: PoseGraph) -> PoseGraph:
    """Copy a pose graph, replacing node poses by GTSAM estimates.

    Args:
        values: GTSAM values keyed by ``symbol("x", node_id)``.
        graph: The pose graph the values were built from.

    Returns:
        A new pose graph with the same edges and updated poses.
    """
    nodes = []
    for node_id, node in enumerate(graph.nodes):
        key = _symbol(node_id)
        if values.exists(key):
            nodes.append(PoseNode(pose=gtsam_pose3_to_transform(values.atPose3(key))))
        else:
            nodes.append(PoseNode(pose=node.pose.copy()))
    return PoseGraph(nodes=nodes, edges=list(graph.edges))
