"""Manifold value types and geometry with analytic Jacobians.

This module provides the quantities that flow through expression trees:
- Manifold, VectorSpace: the retract / local-coordinates interface
- Point2, Point3, Cal3_S2, Pose3: concrete manifold types
- SO(3) maps and Euler conversions
- Pinhole projection and back-projection
"""

from .camera import (
    backproject_pixel,
    project_jacobian,
    project_point,
    project_to_normalized,
)
from .rotations import (
    euler_to_rotation_matrix,
    rotation_matrix_to_euler,
    skew,
    so3_exp,
    so3_log,
    so3_right_jacobian_inverse,
)
from .types import Cal3_S2, Manifold, Point2, Point3, Pose3, VectorSpace

__all__ = [
    # Types
    "Manifold",
    "VectorSpace",
    "Point2",
    "Point3",
    "Cal3_S2",
    "Pose3",
    # Rotations
    "skew",
    "so3_exp",
    "so3_log",
    "so3_right_jacobian_inverse",
    "euler_to_rotation_matrix",
    "rotation_matrix_to_euler",
    # Camera
    "project_to_normalized",
    "project_jacobian",
    "project_point",
    "backproject_pixel",
]
