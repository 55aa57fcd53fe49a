"""Synthetic pose graphs for experiments and tests."""

from typing import Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from ..pose_graph import PoseEdge, PoseGraph, PoseNode
from ..utils.conversions import vector6d_to_transform
from ..utils.geometry import inverse_transform, make_transform, rotation_matrix


def circle_trajectory(num_nodes: int, radius: float = 5.0) -> npt.NDArray[np.float64]:
    """Ground-truth poses on a planar circle, heading along the tangent.

    Args:
        num_nodes: Number of poses.
        radius: Circle radius in meters.

    Returns:
        (num_nodes, 4, 4) array of poses.
    """
    poses = np.empty((num_nodes, 4, 4))
    for k in range(num_nodes):
        angle = 360.0 * k / num_nodes
        theta = np.deg2rad(angle)
        position = np.array([radius * np.cos(theta), radius * np.sin(theta), 0.0])
        poses[k] = make_transform(rotation_matrix("z", angle + 90.0), position)
    return poses


def make_loop_graph(
    num_nodes: int = 20,
    radius: float = 5.0,
    noise_sigma: float = 0.02,
    loop_pairs: Optional[Sequence[Tuple[int, int]]] = None,
    outlier_pairs: Sequence[Tuple[int, int]] = (),
    outlier_offset: float = 2.0,
    seed: int = 0,
) -> Tuple[PoseGraph, npt.NDArray[np.float64]]:
    """Build a drifting odometry chain closed by loop-closure edges.

    Every measurement agrees with the ground truth except the outlier loop
    closures, which are displaced by ``outlier_offset`` meters along x. The
    initial node poses integrate odometry corrupted by Gaussian noise on the
    tangent vector, so the graph starts inconsistent with its loops.

    Args:
        num_nodes: Number of poses (at least 2).
        radius: Circle radius in meters.
        noise_sigma: Odometry noise standard deviation per tangent component.
        loop_pairs: ``(source, target)`` loop closures; closes the circle
            with ``(num_nodes - 1, 0)`` if None.
        outlier_pairs: ``(source, target)`` wrong loop closures, flagged
            uncertain.
        outlier_offset: Translation error of outlier measurements.
        seed: Random seed.

    Returns:
        Tuple of (pose graph, (num_nodes, 4, 4) ground-truth poses).
    """
    if num_nodes < 2:
        raise ValueError("A loop graph needs at least 2 nodes")

    rng = np.random.default_rng(seed)
    ground_truth = circle_trajectory(num_nodes, radius)
    sigmas = np.full(6, 0.1)

    graph = PoseGraph()
    pose = ground_truth[0].copy()
    graph.add_node(PoseNode(pose=pose))
    for k in range(num_nodes - 1):
        relative = inverse_transform(ground_truth[k]) @ ground_truth[k + 1]
        noise = vector6d_to_transform(rng.normal(0.0, noise_sigma, size=6))
        pose = pose @ relative @ noise
        graph.add_node(PoseNode(pose=pose))

    for k in range(num_nodes - 1):
        graph.add_edge(PoseEdge.from_poses(k, k + 1, ground_truth[k], ground_truth[k + 1], sigmas))

    if loop_pairs is None:
        loop_pairs = [(num_nodes - 1, 0)]
    for source, target in loop_pairs:
        graph.add_edge(
            PoseEdge.from_poses(
                source, target, ground_truth[source], ground_truth[target], sigmas, uncertain=True
            )
        )

    for source, target in outlier_pairs:
        edge = PoseEdge.from_poses(
            source, target, ground_truth[source], ground_truth[target], sigmas, uncertain=True
        )
        offset = make_transform(translation=[outlier_offset, 0.0, 0.0])
        edge.transformation = offset @ edge.transformation
        graph.add_edge(edge)

    return graph, ground_truth
