"""Input/Output utilities for pose graphs.

Pose graphs are stored as JSON in the layout used by Open3D: matrices are
flattened in column-major order.
"""

import json
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np
import numpy.typing as npt

from ..pose_graph import InvalidGraphError, PoseEdge, PoseGraph, PoseNode

VERSION_MAJOR = 1
VERSION_MINOR = 0


def _flatten(matrix: npt.NDArray[np.float64]) -> list:
    return [float(v) for v in np.asarray(matrix).flatten(order="F")]


def _unflatten(values: Any, size: int, name: str) -> npt.NDArray[np.float64]:
    array = np.asarray(values, dtype=np.float64)
    if array.shape != (size * size,):
        raise InvalidGraphError(f"{name} must have {size * size} entries, got {array.size}")
    return array.reshape((size, size), order="F")


def pose_graph_to_dict(graph: PoseGraph) -> Dict[str, Any]:
    """Convert a pose graph to a JSON-serializable dictionary."""
    return {
        "class_name": "PoseGraph",
        "version_major": VERSION_MAJOR,
        "version_minor": VERSION_MINOR,
        "nodes": [
            {"class_name": "PoseGraphNode", "pose": _flatten(node.pose)} for node in graph.nodes
        ],
        "edges": [
            {
                "class_name": "PoseGraphEdge",
                "source_node_id": int(edge.source_node_id),
                "target_node_id": int(edge.target_node_id),
                "transformation": _flatten(edge.transformation),
                "information": _flatten(edge.information),
                "uncertain": bool(edge.uncertain),
            }
            for edge in graph.edges
        ],
    }


def pose_graph_from_dict(data: Dict[str, Any]) -> PoseGraph:
    """Build a pose graph from its dictionary form.

    Raises:
        InvalidGraphError: If the content is not a pose graph.
    """
    if not isinstance(data, dict) or data.get("class_name") != "PoseGraph":
        raise InvalidGraphError("Content is not a PoseGraph")
    if data.get("version_major") != VERSION_MAJOR:
        raise InvalidGraphError(f"Unsupported PoseGraph version: {data.get('version_major')}")

    graph = PoseGraph()
    try:
        for node in data["nodes"]:
            graph.add_node(PoseNode(pose=_unflatten(node["pose"], 4, "pose")))
        for edge in data["edges"]:
            graph.add_edge(
                PoseEdge(
                    source_node_id=int(edge["source_node_id"]),
                    target_node_id=int(edge["target_node_id"]),
                    transformation=_unflatten(edge["transformation"], 4, "transformation"),
                    information=_unflatten(edge["information"], 6, "information"),
                    uncertain=bool(edge.get("uncertain", False)),
                )
            )
    except (KeyError, TypeError) as exc:
        raise InvalidGraphError(f"Malformed PoseGraph content: {exc}") from exc
    return graph


def save_pose_graph(graph: PoseGraph, filepath: Union[str, Path]) -> None:
    """Save pose graph to file.

    Args:
        graph: The pose graph to save.
        filepath: Output file path.
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)
    with filepath.open("w") as f:
        json.dump(pose_graph_to_dict(graph), f, indent=4)


def load_pose_graph(filepath: Union[str, Path]) -> PoseGraph:
    """Load pose graph from file.

    Args:
        filepath: Path to saved pose graph.

    Returns:
        Loaded pose graph.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Pose graph file not found: {filepath}")

    with filepath.open() as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise InvalidGraphError(f"Invalid JSON in {filepath}: {exc}") from exc

    return pose_graph_from_dict(data)
