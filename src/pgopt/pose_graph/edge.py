"""Pose graph edge representation.

An edge is a relative-pose measurement between two nodes, weighted by a
6x6 information matrix over the tangent vector ``[rotation, translation]``.
"""

from dataclasses import dataclass, field

import numpy as np
import numpy.typing as npt

from ..utils.geometry import inverse_transform


@dataclass
class PoseEdge:
    """Represents a constraint between two poses.

    ``transformation`` measures ``inverse(T_target) @ T_source``, i.e. it maps
    the source node frame into the target node frame.
    """

    source_node_id: int
    target_node_id: int
    transformation: npt.NDArray[np.float64]  # 4x4 transformation matrix
    information: npt.NDArray[np.float64] = field(
        default_factory=lambda: np.eye(6)
    )  # 6x6 information matrix
    uncertain: bool = False

    def __post_init__(self) -> None:
        """Validate edge data."""
        self.transformation = np.asarray(self.transformation, dtype=np.float64)
        self.information = np.asarray(self.information, dtype=np.float64)
        if self.transformation.shape != (4, 4):
            raise ValueError("Transformation must be a 4x4 matrix")
        if self.information.shape != (6, 6):
            raise ValueError("Information matrix must be 6x6")

    @property
    def is_loop_closure(self) -> bool:
        """True when the endpoints are not consecutive nodes."""
        return abs(self.target_node_id - self.source_node_id) != 1

    @staticmethod
    def from_poses(
        source_node_id: int,
        target_node_id: int,
        source_pose: npt.NDArray[np.float64],
        target_pose: npt.NDArray[np.float64],
        noise_sigmas: npt.NDArray[np.float64],
        uncertain: bool = False,
    ) -> "PoseEdge":
        """Create an edge that is exactly satisfied by two poses.

        Args:
            source_node_id: Source node ID.
            target_node_id: Target node ID.
            source_pose: 4x4 pose of the source node.
            target_pose: 4x4 pose of the target node.
            noise_sigmas: Standard deviations for the 6 DOF (rotation first).
            uncertain: Whether the edge is an unreliable loop closure.

        Returns:
            PoseEdge instance.
        """
        transformation = inverse_transform(np.asarray(target_pose)) @ np.asarray(source_pose)

        # Information matrix is the inverse of the diagonal covariance
        information = np.diag(1.0 / (np.asarray(noise_sigmas, dtype=np.float64) ** 2))

        return PoseEdge(
            source_node_id=source_node_id,
            target_node_id=target_node_id,
            transformation=transformation,
            information=information,
            uncertain=uncertain,
        )
