"""Pinhole camera projection with analytic Jacobians.

This module implements the camera model used by the projection primitives:
    - Perspective division of a camera-frame point onto the z=1 plane
    - Full pose + calibration projection of a world point to pixels
    - Inverse projection of a pixel at known depth back to the world

Camera frame: X-right, Y-down, Z-forward. Only points with strictly positive
depth can be projected; anything else raises DegenerateGeometryError rather
than producing Inf or NaN.
"""

from typing import Tuple

import numpy as np

from ..errors import DegenerateGeometryError
from .types import Cal3_S2, Point2, Point3, Pose3


def _check_depth(point_camera: Point3) -> None:
    if not np.all(np.isfinite(point_camera.to_array())):
        raise DegenerateGeometryError(f"Cannot project non-finite point {point_camera!r}")
    if point_camera.z <= 0.0:
        raise DegenerateGeometryError(
            f"Cannot project point behind camera (depth {point_camera.z:.6g} <= 0)"
        )


def _perspective_division(point_camera: Point3) -> Tuple[float, float, float]:
    """Inverse depth and normalized coordinates, all guaranteed finite."""
    _check_depth(point_camera)
    with np.errstate(over="ignore", invalid="ignore"):
        d = np.float64(1.0) / np.float64(point_camera.z)
        u = point_camera.x * d
        v = point_camera.y * d
    if not np.all(np.isfinite([d, u, v])):
        raise DegenerateGeometryError(
            f"Cannot project point too close to the image plane (depth {point_camera.z:.6g})"
        )
    return float(d), float(u), float(v)


def project_to_normalized(point_camera: Point3) -> Point2:
    """
    Perspective projection onto the normalized image plane.

    (x_n, y_n) = (X/Z, Y/Z)

    Args:
        point_camera: Point in the camera frame.

    Returns:
        Normalized image coordinates.

    Raises:
        DegenerateGeometryError: If the depth Z is not positive or the
            division by it overflows.

    Example:
        >>> project_to_normalized(Point3(1.0, 0.5, 5.0))
        Point2(x=0.2, y=0.1)
    """
    _, u, v = _perspective_division(point_camera)
    return Point2(x=u, y=v)


def project_jacobian(point_camera: Point3) -> np.ndarray:
    """
    Jacobian of project_to_normalized w.r.t. the camera-frame point.

        [[1/Z,   0, -X/Z²],
         [  0, 1/Z, -Y/Z²]]

    Raises:
        DegenerateGeometryError: If the depth Z is not positive or the
            division by it overflows.
    """
    d, u, v = _perspective_division(point_camera)
    with np.errstate(over="ignore"):
        J = np.array([[d, 0.0, -u * d], [0.0, d, -v * d]], dtype=np.float64)
    if not np.all(np.isfinite(J)):
        raise DegenerateGeometryError(
            f"Projection Jacobian overflows at depth {point_camera.z:.6g}"
        )
    return J


def project_point(pose: Pose3, point: Point3, calibration: Cal3_S2) -> Point2:
    """
    Project a world point to pixel coordinates.

    The projection follows:
        1. Transform: q = Rᵀ (p - t)
        2. Normalize: (x_n, y_n) = (q_x/q_z, q_y/q_z)
        3. Calibrate: (u, v) = K (x_n, y_n)

    Args:
        pose: Camera pose in the world frame.
        point: Point in the world frame.
        calibration: Camera calibration.

    Returns:
        Pixel coordinates.

    Raises:
        DegenerateGeometryError: If the point is not in front of the camera.
    """
    return calibration.uncalibrate(project_to_normalized(pose.transform_to(point)))


def backproject_pixel(
    pose: Pose3,
    pixel: Point2,
    depth: float,
    calibration: Cal3_S2,
) -> Point3:
    """
    Lift a pixel at a known depth back to a world point.

    This is the inverse of project_point() for points with the given depth.

    Args:
        pose: Camera pose in the world frame.
        pixel: Pixel coordinates.
        depth: Depth along the camera Z axis, must be positive.
        calibration: Camera calibration.

    Returns:
        Point in the world frame.

    Raises:
        DegenerateGeometryError: If depth is not positive or the calibration
            is not invertible.
    """
    if not depth > 0.0:
        raise DegenerateGeometryError(f"Depth must be positive, got {depth}")
    normalized = calibration.calibrate(pixel)
    point_camera = Point3(x=normalized.x * depth, y=normalized.y * depth, z=depth)
    return pose.transform_from(point_camera)
