"""Line process (switchable constraint) weights for loop-closure edges."""

from typing import List, Sequence

import numpy as np
import numpy.typing as npt

from .edge import PoseEdge
from .residuals import error_vector, squared_mahalanobis


def line_process_weight(squared_residual: float) -> float:
    """Switch value of an edge with squared Mahalanobis error ``s``.

    Returns ``(1 / (1 + s))^2``, which is 1 for a satisfied constraint and
    decays towards 0 for gross violations.
    """
    temp = 1.0 / (1.0 + squared_residual)
    return temp * temp


class LineProcess:
    """Per-loop-edge weights threaded between optimizer iterations.

    Sequential edges (consecutive endpoints) always keep weight 1.
    """

    def __init__(self, edges: Sequence[PoseEdge]) -> None:
        """Initialize all loop edge weights to 1.

        Args:
            edges: Pose graph edges.
        """
        self.num_edges = len(edges)
        self.loop_edge_indices: List[int] = [
            k for k, edge in enumerate(edges) if edge.is_loop_closure
        ]
        self.weights = np.ones(len(self.loop_edge_indices))

    def update(
        self,
        x_inv: npt.NDArray[np.float64],
        edges: Sequence[PoseEdge],
        poses: npt.NDArray[np.float64],
    ) -> npt.NDArray[np.float64]:
        """Recompute loop edge weights from the given poses.

        Args:
            x_inv: (num_edges, 4, 4) inverse measurements.
            edges: Pose graph edges.
            poses: (num_nodes, 4, 4) updated poses.

        Returns:
            The full per-edge weight vector after the update.
        """
        for n, k in enumerate(self.loop_edge_indices):
            edge = edges[k]
            diff = error_vector(x_inv[k], poses[edge.source_node_id], poses[edge.target_node_id])
            self.weights[n] = line_process_weight(squared_mahalanobis(diff, edge.information))
        return self.edge_weights()

    def edge_weights(self) -> npt.NDArray[np.float64]:
        """Full per-edge weight vector, 1 for sequential edges."""
        weights = np.ones(self.num_edges)
        weights[np.asarray(self.loop_edge_indices, dtype=int)] = self.weights
        return weights
