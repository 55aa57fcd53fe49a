"""Geometry utilities for rigid transformations."""

from typing import Optional

import numpy as np
import numpy.typing as npt


def rotation_matrix(axis: str, degrees: float) -> npt.NDArray[np.float64]:
    """Create a 3D rotation matrix for rotation around a specified axis.

    Args:
        axis: Axis to rotate around ('x', 'y', or 'z').
        degrees: Rotation angle in degrees.

    Returns:
        3x3 rotation matrix.
    """
    radians = np.deg2rad(degrees)
    c, s = np.cos(radians), np.sin(radians)

    if axis.lower() == "x":
        return np.array([
            [1, 0, 0],
            [0, c, -s],
            [0, s, c],
        ])
    if axis.lower() == "y":
        return np.array([
            [c, 0, s],
            [0, 1, 0],
            [-s, 0, c],
        ])
    if axis.lower() == "z":
        return np.array([
            [c, -s, 0],
            [s, c, 0],
            [0, 0, 1],
        ])
    raise ValueError(f"Invalid axis: {axis}. Must be 'x', 'y', or 'z'.")


def make_transform(
    rotation: Optional[npt.NDArray[np.float64]] = None,
    translation: Optional[npt.NDArray[np.float64]] = None,
) -> npt.NDArray[np.float64]:
    """Build a 4x4 homogeneous transform from a rotation and a translation.

    Args:
        rotation: 3x3 rotation matrix, identity if None.
        translation: 3D translation vector, zero if None.

    Returns:
        4x4 SE(3) transformation matrix.
    """
    T = np.eye(4)
    if rotation is not None:
        T[:3, :3] = rotation
    if translation is not None:
        T[:3, 3] = translation
    return T


def inverse_transform(T: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Invert a rigid transform using ``R^T`` instead of a general inverse.

    Args:
        T: 4x4 SE(3) transformation matrix.

    Returns:
        The inverse 4x4 transformation matrix.
    """
    R = T[:3, :3]
    t = T[:3, 3]
    T_inv = np.eye(4)
    T_inv[:3, :3] = R.T
    T_inv[:3, 3] = -R.T @ t
    return T_inv


def is_rigid_transform(T: npt.NDArray[np.float64], atol: float = 1e-6) -> bool:
    """Check whether a matrix is a valid 4x4 rigid transform.

    Args:
        T: Candidate matrix.
        atol: Absolute tolerance for orthonormality and the last row.

    Returns:
        True if ``T`` is a proper rigid transformation.
    """
    T = np.asarray(T)
    if T.shape != (4, 4) or not np.all(np.isfinite(T)):
        return False
    R = T[:3, :3]
    if not np.allclose(R.T @ R, np.eye(3), atol=atol):
        return False
    if not np.isclose(np.linalg.det(R), 1.0, atol=atol):
        return False
    return bool(np.allclose(T[3], [0.0, 0.0, 0.0, 1.0], atol=atol))
