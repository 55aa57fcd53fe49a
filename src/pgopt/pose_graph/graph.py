"""Pose graph container."""

from typing import List, Optional, Tuple

import numpy as np
import numpy.typing as npt
import scipy.sparse as sp
from scipy.sparse import csgraph

from .edge import PoseEdge
from .errors import InvalidGraphError
from .node import PoseNode


class PoseGraph:
    """An ordered sequence of pose nodes plus relative-pose edges.

    Edges reference nodes by their index in ``nodes``.
    """

    def __init__(
        self,
        nodes: Optional[List[PoseNode]] = None,
        edges: Optional[List[PoseEdge]] = None,
    ) -> None:
        """Initialize a pose graph.

        Args:
            nodes: Initial nodes, empty if None.
            edges: Initial edges, empty if None.
        """
        self.nodes: List[PoseNode] = list(nodes) if nodes is not None else []
        self.edges: List[PoseEdge] = list(edges) if edges is not None else []

    def add_node(self, node: PoseNode) -> int:
        """Add a node to the graph.

        Args:
            node: The node to append.

        Returns:
            The index assigned to the node.
        """
        self.nodes.append(node)
        return len(self.nodes) - 1

    def add_edge(self, edge: PoseEdge) -> None:
        """Add an edge to the graph.

        Args:
            edge: The edge to append.
        """
        self.edges.append(edge)

    def get_node(self, node_id: int) -> Optional[PoseNode]:
        """Get a node by index.

        Args:
            node_id: The node index.

        Returns:
            The node if it exists, None otherwise.
        """
        if 0 <= node_id < len(self.nodes):
            return self.nodes[node_id]
        return None

    @property
    def num_nodes(self) -> int:
        return len(self.nodes)

    @property
    def num_edges(self) -> int:
        return len(self.edges)

    def loop_edge_indices(self) -> List[int]:
        """Indices of edges whose endpoints are not consecutive nodes."""
        return [k for k, edge in enumerate(self.edges) if edge.is_loop_closure]

    def node_poses(self) -> npt.NDArray[np.float64]:
        """Stack all node poses into an (N, 4, 4) array copy."""
        if not self.nodes:
            return np.zeros((0, 4, 4))
        return np.stack([node.pose for node in self.nodes]).astype(np.float64)

    def connected_components(self) -> Tuple[int, npt.NDArray[np.int32]]:
        """Group nodes that are linked through edges, ignoring edge direction.

        Returns:
            Tuple of (number of components, component label per node).
        """
        n_nodes = len(self.nodes)
        rows = np.array([edge.source_node_id for edge in self.edges], dtype=int)
        cols = np.array([edge.target_node_id for edge in self.edges], dtype=int)
        adjacency = sp.coo_matrix(
            (np.ones(len(rows)), (rows, cols)), shape=(n_nodes, n_nodes)
        ).tocsr()
        return csgraph.connected_components(adjacency, directed=False)

    def validate(self) -> None:
        """Check structural validity before optimization.

        Raises:
            InvalidGraphError: If the graph has no nodes, an edge references
                a node outside the node sequence, or any matrix holds
                non-finite values.
        """
        if not self.nodes:
            raise InvalidGraphError("Pose graph has no nodes")

        for k, node in enumerate(self.nodes):
            if not np.all(np.isfinite(node.pose)):
                raise InvalidGraphError(f"Node {k} has a non-finite pose")

        n_nodes = len(self.nodes)
        for k, edge in enumerate(self.edges):
            for node_id in (edge.source_node_id, edge.target_node_id):
                if not 0 <= node_id < n_nodes:
                    raise InvalidGraphError(
                        f"Edge {k} references node {node_id}, "
                        f"but the graph has {n_nodes} nodes"
                    )
            if not np.all(np.isfinite(edge.transformation)):
                raise InvalidGraphError(f"Edge {k} has a non-finite transformation")
            if not np.all(np.isfinite(edge.information)):
                raise InvalidGraphError(f"Edge {k} has a non-finite information matrix")

    def __repr__(self) -> str:
        return f"PoseGraph(nodes={len(self.nodes)}, edges={len(self.edges)})"
