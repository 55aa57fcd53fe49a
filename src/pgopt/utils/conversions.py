"""SE(3) tangent-space conversions.

This module maps between 6-vectors ``[wx, wy, wz, px, py, pz]`` (rotation
first, translation second) and 4x4 rigid transformation matrices using the
exponential and logarithm maps of SE(3).
"""

import numpy as np
import numpy.typing as npt
from scipy.spatial.transform import Rotation

_SMALL_ANGLE = 1e-8


def skew(omega: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Convert a 3D vector to its skew-symmetric (cross product) matrix.

    Args:
        omega: 3D vector.

    Returns:
        3x3 skew-symmetric matrix.
    """
    return np.array(
        [
            [0.0, -omega[2], omega[1]],
            [omega[2], 0.0, -omega[0]],
            [-omega[1], omega[0], 0.0],
        ],
        dtype=np.float64,
    )


def left_jacobian_so3(omega: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Left Jacobian of SO(3), the ``V`` matrix coupling rotation and translation.

    Args:
        omega: Rotation vector (axis times angle).

    Returns:
        3x3 matrix ``V`` with ``t = V @ rho`` in the SE(3) exponential map.
    """
    theta = float(np.linalg.norm(omega))
    K = skew(omega)
    if theta < _SMALL_ANGLE:
        # Taylor expansion around the identity
        return np.eye(3) + 0.5 * K + (1.0 / 6.0) * (K @ K)

    theta2 = theta * theta
    a = (1.0 - np.cos(theta)) / theta2
    b = (theta - np.sin(theta)) / (theta2 * theta)
    return np.eye(3) + a * K + b * (K @ K)


def inverse_left_jacobian_so3(omega: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Inverse of :func:`left_jacobian_so3` in closed form.

    Args:
        omega: Rotation vector (axis times angle).

    Returns:
        3x3 matrix ``V^-1``.
    """
    theta = float(np.linalg.norm(omega))
    K = skew(omega)
    if theta < _SMALL_ANGLE:
        return np.eye(3) - 0.5 * K + (1.0 / 12.0) * (K @ K)

    half = 0.5 * theta
    c = (1.0 - half * np.cos(half) / np.sin(half)) / (theta * theta)
    return np.eye(3) - 0.5 * K + c * (K @ K)


def vector6d_to_transform(vec: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Exponential map from a 6D tangent vector to a 4x4 rigid transform.

    Args:
        vec: Tangent vector ``[wx, wy, wz, px, py, pz]``.

    Returns:
        4x4 SE(3) transformation matrix.
    """
    vec = np.asarray(vec, dtype=np.float64)
    if vec.shape != (6,):
        raise ValueError("Tangent vector must have 6 elements")

    omega = vec[:3]
    rho = vec[3:]

    T = np.eye(4)
    T[:3, :3] = Rotation.from_rotvec(omega).as_matrix()
    T[:3, 3] = left_jacobian_so3(omega) @ rho
    return T


def transform_to_vector6d(T: npt.NDArray[np.float64]) -> npt.NDArray[np.float64]:
    """Logarithm map from a 4x4 rigid transform to a 6D tangent vector.

    Inverse of :func:`vector6d_to_transform` for rotation angles below pi.

    Args:
        T: 4x4 SE(3) transformation matrix.

    Returns:
        Tangent vector ``[wx, wy, wz, px, py, pz]``.
    """
    T = np.asarray(T, dtype=np.float64)
    if T.shape != (4, 4):
        raise ValueError("Transformation must be a 4x4 matrix")

    omega = Rotation.from_matrix(T[:3, :3]).as_rotvec()
    rho = inverse_left_jacobian_so3(omega) @ T[:3, 3]
    return np.concatenate([omega, rho])
