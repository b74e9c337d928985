"""Library of differentiable geometric primitives.

Each primitive is a pure function of its argument values returning the
result together with its exact analytic Jacobian w.r.t. every argument,
evaluated at the current argument values. The builder functions below take
expressions and return Composed expression nodes:

    - transform_to(pose, point): world point into the pose frame
    - transform_from(pose, point): pose-frame point into the world
    - compose(pose1, pose2): pose composition
    - project(point): pinhole perspective division
    - uncalibrate(K, p): normalized coordinates to pixels
    - calibrate(K, uv): pixels to normalized coordinates
    - subtract(a, b): a - b on vector spaces

Example:
    >>> x = Leaf(Pose3, 1)
    >>> p = Leaf(Point3, 2)
    >>> K = Leaf(Cal3_S2, 3)
    >>> uv_hat = uncalibrate(K, project(transform_to(x, p)))
"""

from typing import List, Tuple

import numpy as np

from ..errors import TypeMismatchError
from ..geometry.camera import project_jacobian, project_to_normalized
from ..geometry.types import Cal3_S2, Point2, Point3, Pose3, VectorSpace
from .expression import Composed, Expression, Primitive


def _transform_to(pose: Pose3, point: Point3) -> Tuple[Point3, List[np.ndarray]]:
    H_pose, H_point = pose.transform_to_jacobians(point)
    return pose.transform_to(point), [H_pose, H_point]


def _transform_from(pose: Pose3, point: Point3) -> Tuple[Point3, List[np.ndarray]]:
    H_pose, H_point = pose.transform_from_jacobians(point)
    return pose.transform_from(point), [H_pose, H_point]


def _compose(pose1: Pose3, pose2: Pose3) -> Tuple[Pose3, List[np.ndarray]]:
    H1, H2 = pose1.compose_jacobians(pose2)
    return pose1.compose(pose2), [H1, H2]


def _project(point: Point3) -> Tuple[Point2, List[np.ndarray]]:
    # Both calls raise DegenerateGeometryError for non-positive depth
    return project_to_normalized(point), [project_jacobian(point)]


def _uncalibrate(calibration: Cal3_S2, p: Point2) -> Tuple[Point2, List[np.ndarray]]:
    H_cal, H_point = calibration.uncalibrate_jacobians(p)
    return calibration.uncalibrate(p), [H_cal, H_point]


def _calibrate(calibration: Cal3_S2, uv: Point2) -> Tuple[Point2, List[np.ndarray]]:
    H_cal, H_uv = calibration.calibrate_jacobians(uv)
    return calibration.calibrate(uv), [H_cal, H_uv]


def _subtract(a: VectorSpace, b: VectorSpace) -> Tuple[VectorSpace, List[np.ndarray]]:
    if type(a) is not type(b):
        raise TypeMismatchError(
            f"Cannot subtract {type(b).__name__} from {type(a).__name__}"
        )
    identity = np.eye(a.dim)
    return a - b, [identity, -identity]


TRANSFORM_TO = Primitive("transform_to", _transform_to, (Pose3, Point3), Point3)
TRANSFORM_FROM = Primitive("transform_from", _transform_from, (Pose3, Point3), Point3)
COMPOSE = Primitive("compose", _compose, (Pose3, Pose3), Pose3)
PROJECT = Primitive("project", _project, (Point3,), Point2)
UNCALIBRATE = Primitive("uncalibrate", _uncalibrate, (Cal3_S2, Point2), Point2)
CALIBRATE = Primitive("calibrate", _calibrate, (Cal3_S2, Point2), Point2)
SUBTRACT = Primitive("subtract", _subtract, (VectorSpace, VectorSpace))


def transform_to(pose: Expression, point: Expression) -> Composed:
    """
    Express a world point in the local frame of a pose.

    q = Rᵀ (p - t), with Jacobians [[q]ₓ, -I] (3x6) and Rᵀ (3x3).
    """
    return Composed(TRANSFORM_TO, (pose, point))


def transform_from(pose: Expression, point: Expression) -> Composed:
    """
    Express a pose-frame point in the world frame.

    p = R q + t, with Jacobians [-R[q]ₓ, R] (3x6) and R (3x3).
    """
    return Composed(TRANSFORM_FROM, (pose, point))


def compose(pose1: Expression, pose2: Expression) -> Composed:
    """Pose composition pose1 ∘ pose2, Jacobians Ad(pose2⁻¹) and I."""
    return Composed(COMPOSE, (pose1, pose2))


def project(point: Expression) -> Composed:
    """
    Pinhole perspective division (x/z, y/z).

    Evaluating the result raises DegenerateGeometryError when the depth of
    the point is zero or negative.
    """
    return Composed(PROJECT, (point,))


def uncalibrate(calibration: Expression, p: Expression) -> Composed:
    """Map normalized image coordinates to pixel coordinates."""
    return Composed(UNCALIBRATE, (calibration, p))


def calibrate(calibration: Expression, uv: Expression) -> Composed:
    """Map pixel coordinates to normalized image coordinates."""
    return Composed(CALIBRATE, (calibration, uv))


def subtract(a: Expression, b: Expression) -> Composed:
    """
    Difference a - b of two expressions of the same vector-space type.

    Jacobians are +I w.r.t. a and -I w.r.t. b.

    Raises:
        TypeMismatchError: If a and b do not evaluate to the same
            VectorSpace type.
    """
    if isinstance(a, Expression) and isinstance(b, Expression) and a.value_type is not b.value_type:
        raise TypeMismatchError(
            f"Cannot subtract {b.value_type.__name__} from {a.value_type.__name__}"
        )
    return Composed(SUBTRACT, (a, b))
