"""Utility functions and helpers for SE(3) pose operations."""

from .conversions import (
    inverse_left_jacobian_so3,
    left_jacobian_so3,
    skew,
    transform_to_vector6d,
    vector6d_to_transform,
)
from .geometry import inverse_transform, is_rigid_transform, make_transform, rotation_matrix

__all__ = [
    "inverse_left_jacobian_so3",
    "inverse_transform",
    "is_rigid_transform",
    "left_jacobian_so3",
    "make_transform",
    "rotation_matrix",
    "skew",
    "transform_to_vector6d",
    "vector6d_to_transform",
]
