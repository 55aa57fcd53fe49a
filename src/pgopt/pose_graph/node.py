"""Pose graph node representation."""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import numpy.typing as npt
from scipy.spatial.transform import Rotation


@dataclass
class PoseNode:
    """A rigid 3D pose in the global frame.

    The node is identified by its index in ``PoseGraph.nodes``.
    """

    pose: npt.NDArray[np.float64]  # 4x4 transformation, node frame -> global frame

    def __post_init__(self) -> None:
        """Validate node data."""
        self.pose = np.asarray(self.pose, dtype=np.float64)
        if self.pose.shape != (4, 4):
            raise ValueError("Pose must be a 4x4 matrix")

    @property
    def position(self) -> npt.NDArray[np.float64]:
        """Translation part of the pose."""
        return self.pose[:3, 3].copy()

    @property
    def rotation(self) -> npt.NDArray[np.float64]:
        """Rotation part of the pose."""
        return self.pose[:3, :3].copy()

    @staticmethod
    def from_position_orientation(
        position: npt.NDArray[np.float64],
        orientation: Optional[npt.NDArray[np.float64]] = None,
    ) -> "PoseNode":
        """Create a PoseNode from a position and an orientation.

        Args:
            position: 3D position (x, y, z).
            orientation: Quaternion (w, x, y, z) or 3x3 rotation matrix.
                Identity if None.

        Returns:
            PoseNode instance.
        """
        position = np.asarray(position, dtype=np.float64)
        if position.shape != (3,):
            raise ValueError("Position must be a 3D vector")

        pose = np.eye(4)
        pose[:3, 3] = position
        if orientation is None:
            return PoseNode(pose=pose)

        orientation = np.asarray(orientation, dtype=np.float64)
        if orientation.shape == (4,):
            # scipy expects scalar-last quaternions
            w, x, y, z = orientation / np.linalg.norm(orientation)
            pose[:3, :3] = Rotation.from_quat([x, y, z, w]).as_matrix()
        elif orientation.shape == (3, 3):
            pose[:3, :3] = orientation
        else:
            raise ValueError("Orientation must be quaternion (4,) or rotation matrix (3, 3)")

        return PoseNode(pose=pose)
