"""Rotation utilities on SO(3).

This module provides the rotation maths needed by the Pose3 manifold and the
differentiable primitives:
- Skew-symmetric (hat) matrices
- Exponential and logarithm maps between so(3) and SO(3)
- Inverse right Jacobian of SO(3), used for exact pose local coordinates
- Euler angle conversions for building test and example poses

Conventions:
- Rotation vectors ω are axis * angle in radians, shape (3,)
- Euler angles: [roll, pitch, yaw] in radians (ZYX/3-2-1 convention)
- Rotation matrices: 3x3 numpy arrays mapping body vectors to world vectors
"""

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation

_SMALL_ANGLE = 1e-8


def skew(w: NDArray[np.float64]) -> NDArray[np.float64]:
    """Build the skew-symmetric matrix [w]ₓ such that [w]ₓ v = w × v.

    Args:
        w: Vector of shape (3,).

    Returns:
        3x3 skew-symmetric matrix.

    Raises:
        ValueError: If w does not have shape (3,).
    """
    w = np.asarray(w, dtype=np.float64)
    if w.shape != (3,):
        raise ValueError(f"Expected vector of shape (3,), got {w.shape}")

    return np.array(
        [
            [0.0, -w[2], w[1]],
            [w[2], 0.0, -w[0]],
            [-w[1], w[0], 0.0],
        ],
        dtype=np.float64,
    )


def so3_exp(omega: NDArray[np.float64]) -> NDArray[np.float64]:
    """Exponential map from a rotation vector to a rotation matrix.

    Args:
        omega: Rotation vector (axis * angle), shape (3,).

    Returns:
        3x3 rotation matrix Exp(ω).

    Example:
        >>> R = so3_exp(np.array([0.0, 0.0, np.pi / 2]))
        >>> np.allclose(R @ [1, 0, 0], [0, 1, 0])
        True
    """
    omega = np.asarray(omega, dtype=np.float64)
    if omega.shape != (3,):
        raise ValueError(f"Expected rotation vector of shape (3,), got {omega.shape}")
    return Rotation.from_rotvec(omega).as_matrix()


def so3_log(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Logarithm map from a rotation matrix to a rotation vector.

    Args:
        R: 3x3 rotation matrix.

    Returns:
        Rotation vector ω with |ω| in [0, π], shape (3,).

    Raises:
        ValueError: If R is not a 3x3 matrix.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")
    return Rotation.from_matrix(R).as_rotvec()


def so3_right_jacobian_inverse(omega: NDArray[np.float64]) -> NDArray[np.float64]:
    """Inverse right Jacobian of SO(3).

    Satisfies, to first order in δ:
        Log(Exp(ω) Exp(δ)) = ω + Jr⁻¹(ω) δ

    Closed form:
        Jr⁻¹(ω) = I + ½[ω]ₓ + (1/θ² − (1 + cos θ) / (2θ sin θ)) [ω]ₓ²

    with the series I + ½[ω]ₓ + (1/12)[ω]ₓ² near θ = 0.

    Args:
        omega: Rotation vector, shape (3,).

    Returns:
        3x3 matrix Jr⁻¹(ω).
    """
    omega = np.asarray(omega, dtype=np.float64)
    theta = np.linalg.norm(omega)
    W = skew(omega)

    if theta < _SMALL_ANGLE:
        return np.eye(3) + 0.5 * W + W @ W / 12.0

    coefficient = 1.0 / theta**2 - (1.0 + np.cos(theta)) / (2.0 * theta * np.sin(theta))
    return np.eye(3) + 0.5 * W + coefficient * (W @ W)


def euler_to_rotation_matrix(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Convert ZYX Euler angles to a rotation matrix.

    Args:
        roll: Rotation about x-axis (radians).
        pitch: Rotation about y-axis (radians).
        yaw: Rotation about z-axis (radians).

    Returns:
        3x3 rotation matrix R = Rz(yaw) Ry(pitch) Rx(roll).
    """
    return Rotation.from_euler("ZYX", [yaw, pitch, roll]).as_matrix()


def rotation_matrix_to_euler(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert a rotation matrix to ZYX Euler angles.

    Inverse of euler_to_rotation_matrix for pitch in [-π/2, π/2]. At pitch
    = ±90° only yaw ∓ roll is observable; scipy warns and roll is set to zero.

    Args:
        R: 3x3 rotation matrix.

    Returns:
        Euler angles [roll, pitch, yaw] in radians.

    Raises:
        ValueError: If R is not a 3x3 matrix.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got shape {R.shape}")
    yaw, pitch, roll = Rotation.from_matrix(R).as_euler("ZYX")
    return np.array([roll, pitch, yaw], dtype=np.float64)
