"""Pytest configuration and fixtures."""

import numpy as np
import pytest

from pgopt.data import circle_trajectory
from pgopt.pose_graph import PoseEdge, PoseGraph, PoseNode
from pgopt.utils.geometry import make_transform


def translation(x: float, y: float = 0.0, z: float = 0.0) -> np.ndarray:
    """Pure translation transform."""
    return make_transform(translation=[x, y, z])


@pytest.fixture
def chain_with_loop_graph() -> PoseGraph:
    """Three collinear nodes, chain edges 0-1 and 1-2, and a loop edge 2-0 that is 0.1 m off."""
    graph = PoseGraph()
    for x in (0.0, 1.0, 2.0):
        graph.add_node(PoseNode(pose=translation(x)))
    graph.add_edge(PoseEdge(0, 1, translation(-1.0)))
    graph.add_edge(PoseEdge(1, 2, translation(-1.0)))
    graph.add_edge(PoseEdge(2, 0, translation(2.1), uncertain=True))
    return graph


@pytest.fixture
def consistent_graph() -> PoseGraph:
    """Four poses on a circle whose edges are satisfied exactly."""
    poses = circle_trajectory(4, radius=3.0)
    sigmas = np.full(6, 0.1)
    graph = PoseGraph(nodes=[PoseNode(pose=pose) for pose in poses])
    for k in range(3):
        graph.add_edge(PoseEdge.from_poses(k, k + 1, poses[k], poses[k + 1], sigmas))
    graph.add_edge(PoseEdge.from_poses(3, 0, poses[3], poses[0], sigmas, uncertain=True))
    return graph
