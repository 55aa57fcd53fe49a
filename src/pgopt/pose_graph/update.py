"""Manifold pose update."""

import numpy as np
import numpy.typing as npt

from ..utils.conversions import vector6d_to_transform


def apply_correction(
    poses: npt.NDArray[np.float64], delta: npt.NDArray[np.float64]
) -> npt.NDArray[np.float64]:
    """Apply a stacked tangent correction to every node pose.

    Each node k is updated as ``T_k <- exp(delta_k) @ T_k``. All increments
    are converted before any pose is written, so the whole update comes from
    one linearization. The input array is left untouched.

    Args:
        poses: (num_nodes, 4, 4) poses.
        delta: (6 * num_nodes,) correction vector.

    Returns:
        (num_nodes, 4, 4) updated poses.
    """
    n_nodes = poses.shape[0]
    if delta.shape != (6 * n_nodes,):
        raise ValueError(f"Correction must have {6 * n_nodes} entries, got {delta.shape}")

    increments = [vector6d_to_transform(delta[6 * k : 6 * k + 6]) for k in range(n_nodes)]

    updated = np.empty_like(poses)
    for k in range(n_nodes):
        updated[k] = increments[k] @ poses[k]
    return updated
