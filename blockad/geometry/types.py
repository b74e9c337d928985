"""Manifold value types flowing through expressions.

Every quantity that can be a variable, a measurement or an intermediate value
of an expression tree is a Manifold: it has a tangent dimension, a retraction
that applies a tangent-space perturbation, and local coordinates that invert
the retraction.

Key types:
    - Manifold: Abstract interface (dim, retract, local_coordinates)
    - VectorSpace: Flat manifolds where retract is + and local coordinates is -
    - Point2: 2D point / normalized image coordinate / pixel (dim 2)
    - Point3: 3D point (dim 3)
    - Cal3_S2: 5-parameter pinhole calibration fx, fy, s, u0, v0 (dim 5)
    - Pose3: Rigid transform in 3D, tangent [ω, v] rotation first (dim 6)

Conventions:
    a.local_coordinates(b) is the tangent vector taking a to b, so that
    a.retract(a.local_coordinates(b)) == b. For vector spaces this is b - a.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import ClassVar, Optional, Tuple

import numpy as np

from ..errors import DegenerateGeometryError, DimensionMismatchError
from .rotations import (
    euler_to_rotation_matrix,
    rotation_matrix_to_euler,
    skew,
    so3_exp,
    so3_log,
    so3_right_jacobian_inverse,
)


def _check_tangent(delta: np.ndarray, dim: int, type_name: str) -> np.ndarray:
    delta = np.asarray(delta, dtype=np.float64)
    if delta.shape != (dim,):
        raise DimensionMismatchError(
            f"{type_name} tangent vector must have shape ({dim},), got {delta.shape}"
        )
    return delta


class Manifold(ABC):
    """Minimal algebraic interface of a differentiable value."""

    dim: ClassVar[int]

    @abstractmethod
    def retract(self, delta: np.ndarray) -> "Manifold":
        """Apply a tangent-space perturbation of shape (dim,)."""

    @abstractmethod
    def local_coordinates(self, other: "Manifold") -> np.ndarray:
        """Tangent vector v of shape (dim,) with self.retract(v) == other."""

    @abstractmethod
    def local_coordinates_jacobian(self, other: "Manifold") -> np.ndarray:
        """Derivative of self.local_coordinates(other) w.r.t. a retraction of other."""

    @abstractmethod
    def equals(self, other: "Manifold", tol: float = 1e-9) -> bool:
        """Approximate equality within an absolute tolerance."""

    @classmethod
    @abstractmethod
    def identity(cls) -> "Manifold":
        """The value at which the tangent origin is anchored."""


class VectorSpace(Manifold):
    """Manifold whose tangent space is the value itself."""

    @abstractmethod
    def to_array(self) -> np.ndarray:
        """Coordinates as an array of shape (dim,)."""

    @classmethod
    @abstractmethod
    def from_array(cls, arr: np.ndarray) -> "VectorSpace":
        """Build the value from an array of shape (dim,)."""

    @classmethod
    def identity(cls) -> "VectorSpace":
        return cls.from_array(np.zeros(cls.dim))

    def retract(self, delta: np.ndarray) -> "VectorSpace":
        delta = _check_tangent(delta, self.dim, type(self).__name__)
        return type(self).from_array(self.to_array() + delta)

    def local_coordinates(self, other: "VectorSpace") -> np.ndarray:
        return other.to_array() - self.to_array()

    def local_coordinates_jacobian(self, other: "VectorSpace") -> np.ndarray:
        return np.eye(self.dim)

    def equals(self, other: Manifold, tol: float = 1e-9) -> bool:
        if type(other) is not type(self):
            return False
        return bool(np.allclose(self.to_array(), other.to_array(), rtol=0.0, atol=tol))

    def __add__(self, other: "VectorSpace") -> "VectorSpace":
        if type(other) is not type(self):
            return NotImplemented
        return type(self).from_array(self.to_array() + other.to_array())

    def __sub__(self, other: "VectorSpace") -> "VectorSpace":
        if type(other) is not type(self):
            return NotImplemented
        return type(self).from_array(self.to_array() - other.to_array())


def _check_finite(obj, names: Tuple[str, ...]) -> None:
    for name in names:
        value = getattr(obj, name)
        if not np.isfinite(value):
            raise ValueError(f"{name} must be finite, got {value}")


@dataclass
class Point2(VectorSpace):
    """
    2D point.

    Used for normalized image coordinates (x/z, y/z) and for pixel
    coordinates (u, v).

    Attributes:
        x: First coordinate.
        y: Second coordinate.

    Examples:
        >>> p = Point2(0.0, 1.0)
        >>> p.to_array()
        array([0., 1.])
    """

    dim: ClassVar[int] = 2

    x: float
    y: float

    def __post_init__(self) -> None:
        self.x = float(self.x)
        self.y = float(self.y)
        _check_finite(self, ("x", "y"))

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Point2":
        arr = np.asarray(arr, dtype=np.float64)
        if arr.shape != (2,):
            raise ValueError(f"Array must have shape (2,), got {arr.shape}")
        return cls(x=arr[0], y=arr[1])

    def __repr__(self) -> str:
        return f"Point2(x={self.x:.6g}, y={self.y:.6g})"


@dataclass
class Point3(VectorSpace):
    """
    3D point.

    Attributes:
        x: X coordinate (meters).
        y: Y coordinate (meters).
        z: Z coordinate (meters). In a camera frame this is the depth.
    """

    dim: ClassVar[int] = 3

    x: float
    y: float
    z: float

    def __post_init__(self) -> None:
        self.x = float(self.x)
        self.y = float(self.y)
        self.z = float(self.z)
        _check_finite(self, ("x", "y", "z"))

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Point3":
        arr = np.asarray(arr, dtype=np.float64)
        if arr.shape != (3,):
            raise ValueError(f"Array must have shape (3,), got {arr.shape}")
        return cls(x=arr[0], y=arr[1], z=arr[2])

    def __repr__(self) -> str:
        return f"Point3(x={self.x:.6g}, y={self.y:.6g}, z={self.z:.6g})"


@dataclass
class Cal3_S2(VectorSpace):
    """
    Five-parameter pinhole calibration.

    Maps normalized image coordinates (x, y) to pixels (u, v):
        u = fx*x + s*y + u0
        v = fy*y + v0

    The defaults give the identity calibration, under which pixels and
    normalized coordinates coincide.

    Attributes:
        fx: Focal length in x (pixels).
        fy: Focal length in y (pixels).
        s: Skew (pixels).
        u0: Principal point x-coordinate (pixels).
        v0: Principal point y-coordinate (pixels).

    Examples:
        >>> K = Cal3_S2(fx=500.0, fy=500.0, s=0.0, u0=320.0, v0=240.0)
        >>> K.uncalibrate(Point2(0.1, -0.2))
        Point2(x=370, y=140)
    """

    dim: ClassVar[int] = 5

    fx: float = 1.0
    fy: float = 1.0
    s: float = 0.0
    u0: float = 0.0
    v0: float = 0.0

    def __post_init__(self) -> None:
        self.fx = float(self.fx)
        self.fy = float(self.fy)
        self.s = float(self.s)
        self.u0 = float(self.u0)
        self.v0 = float(self.v0)
        _check_finite(self, ("fx", "fy", "s", "u0", "v0"))

    def to_array(self) -> np.ndarray:
        return np.array([self.fx, self.fy, self.s, self.u0, self.v0], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Cal3_S2":
        arr = np.asarray(arr, dtype=np.float64)
        if arr.shape != (5,):
            raise ValueError(f"Array must have shape (5,), got {arr.shape}")
        return cls(fx=arr[0], fy=arr[1], s=arr[2], u0=arr[3], v0=arr[4])

    @classmethod
    def identity(cls) -> "Cal3_S2":
        return cls()

    def to_matrix(self) -> np.ndarray:
        """
        Convert to the 3x3 intrinsic matrix K.

        Returns:
            [[fx,  s, u0],
             [ 0, fy, v0],
             [ 0,  0,  1]]
        """
        return np.array(
            [[self.fx, self.s, self.u0], [0.0, self.fy, self.v0], [0.0, 0.0, 1.0]],
            dtype=np.float64,
        )

    def uncalibrate(self, p: Point2) -> Point2:
        """Map normalized coordinates to pixel coordinates."""
        return Point2(
            x=self.fx * p.x + self.s * p.y + self.u0,
            y=self.fy * p.y + self.v0,
        )

    def uncalibrate_jacobians(self, p: Point2) -> Tuple[np.ndarray, np.ndarray]:
        """
        Jacobians of uncalibrate w.r.t. the calibration and the point.

        Returns:
            Tuple (H_cal, H_point) of shapes (2, 5) and (2, 2).
        """
        H_cal = np.array(
            [[p.x, 0.0, p.y, 1.0, 0.0], [0.0, p.y, 0.0, 0.0, 1.0]], dtype=np.float64
        )
        H_point = np.array([[self.fx, self.s], [0.0, self.fy]], dtype=np.float64)
        return H_cal, H_point

    def _check_invertible(self) -> None:
        if self.fx * self.fy == 0.0:
            raise DegenerateGeometryError(
                f"Calibration is not invertible (fx={self.fx}, fy={self.fy})"
            )

    def calibrate(self, uv: Point2) -> Point2:
        """
        Map pixel coordinates to normalized coordinates (inverse of uncalibrate).

        Raises:
            DegenerateGeometryError: If fx or fy is zero.
        """
        self._check_invertible()
        y = (uv.y - self.v0) / self.fy
        x = (uv.x - self.u0 - self.s * y) / self.fx
        return Point2(x=x, y=y)

    def calibrate_jacobians(self, uv: Point2) -> Tuple[np.ndarray, np.ndarray]:
        """
        Jacobians of calibrate w.r.t. the calibration and the pixel.

        Obtained by implicit differentiation of uv = uncalibrate(K, p):
            dp/duv = H_point⁻¹,  dp/dK = -H_point⁻¹ H_cal

        Returns:
            Tuple (H_cal, H_uv) of shapes (2, 5) and (2, 2).
        """
        self._check_invertible()
        p = self.calibrate(uv)
        H_uncal_cal, _ = self.uncalibrate_jacobians(p)
        K_inv = np.array(
            [
                [1.0 / self.fx, -self.s / (self.fx * self.fy)],
                [0.0, 1.0 / self.fy],
            ],
            dtype=np.float64,
        )
        return -K_inv @ H_uncal_cal, K_inv

    def __repr__(self) -> str:
        return (
            f"Cal3_S2(fx={self.fx:.4f}, fy={self.fy:.4f}, s={self.s:.4f}, "
            f"u0={self.u0:.4f}, v0={self.v0:.4f})"
        )


@dataclass(eq=False)
class Pose3(Manifold):
    """
    Rigid transformation in 3D (element of SE(3)).

    The pose maps points from its local frame to the world frame:
        p_world = R @ p_local + t

    Tangent vectors are ordered [ω, v] (rotation first) and act on the
    right:
        retract([ω, v]) = (R Exp(ω), t + R v)

    Attributes:
        R: 3x3 rotation matrix.
        t: Translation, shape (3,).

    Examples:
        >>> x = Pose3.identity()
        >>> x.transform_to(Point3(0.0, 0.0, 1.0))
        Point3(x=0, y=0, z=1)
    """

    dim: ClassVar[int] = 6

    R: np.ndarray
    t: np.ndarray

    def __post_init__(self) -> None:
        self.R = np.array(self.R, dtype=np.float64)
        self.t = np.array(self.t, dtype=np.float64).reshape(-1)
        if self.R.shape != (3, 3):
            raise ValueError(f"R must have shape (3, 3), got {self.R.shape}")
        if self.t.shape != (3,):
            raise ValueError(f"t must have shape (3,), got {self.t.shape}")
        if not (np.all(np.isfinite(self.R)) and np.all(np.isfinite(self.t))):
            raise ValueError("Pose3 entries must be finite")
        if not np.allclose(self.R.T @ self.R, np.eye(3), atol=1e-6):
            raise ValueError("R must be orthonormal")
        if np.linalg.det(self.R) <= 0.0:
            raise ValueError("R must have determinant +1")

    @classmethod
    def identity(cls) -> "Pose3":
        return cls(R=np.eye(3), t=np.zeros(3))

    @classmethod
    def from_euler(
        cls,
        roll: float,
        pitch: float,
        yaw: float,
        t: Optional[np.ndarray] = None,
    ) -> "Pose3":
        """Build a pose from ZYX Euler angles and a translation."""
        if t is None:
            t = np.zeros(3)
        return cls(R=euler_to_rotation_matrix(roll, pitch, yaw), t=t)

    def to_euler(self) -> np.ndarray:
        """ZYX Euler angles [roll, pitch, yaw] of the rotation."""
        return rotation_matrix_to_euler(self.R)

    @classmethod
    def from_matrix(cls, T: np.ndarray) -> "Pose3":
        """Build a pose from a 4x4 homogeneous transform."""
        T = np.asarray(T, dtype=np.float64)
        if T.shape != (4, 4):
            raise ValueError(f"Expected 4x4 matrix, got shape {T.shape}")
        return cls(R=T[:3, :3], t=T[:3, 3])

    def matrix(self) -> np.ndarray:
        """4x4 homogeneous transform."""
        T = np.eye(4)
        T[:3, :3] = self.R
        T[:3, 3] = self.t
        return T

    def translation(self) -> Point3:
        return Point3.from_array(self.t)

    # --- Group operations ---

    def compose(self, other: "Pose3") -> "Pose3":
        """self ∘ other."""
        return Pose3(R=self.R @ other.R, t=self.t + self.R @ other.t)

    def inverse(self) -> "Pose3":
        return Pose3(R=self.R.T, t=-self.R.T @ self.t)

    def between(self, other: "Pose3") -> "Pose3":
        """self⁻¹ ∘ other."""
        return self.inverse().compose(other)

    def adjoint_map(self) -> np.ndarray:
        """6x6 adjoint in [ω, v] ordering: [[R, 0], [[t]ₓ R, R]]."""
        Ad = np.zeros((6, 6))
        Ad[:3, :3] = self.R
        Ad[3:, 3:] = self.R
        Ad[3:, :3] = skew(self.t) @ self.R
        return Ad

    def compose_jacobians(self, other: "Pose3") -> Tuple[np.ndarray, np.ndarray]:
        """
        Jacobians of self ∘ other w.r.t. self and other.

        Returns:
            Tuple (Ad(other⁻¹), I₆).
        """
        return other.inverse().adjoint_map(), np.eye(6)

    # --- Action on points ---

    def transform_to(self, point: Point3) -> Point3:
        """Express a world point in the pose's local frame: Rᵀ (p - t)."""
        return Point3.from_array(self.R.T @ (point.to_array() - self.t))

    def transform_to_jacobians(self, point: Point3) -> Tuple[np.ndarray, np.ndarray]:
        """
        Jacobians of transform_to w.r.t. the pose and the point.

        With q = Rᵀ (p - t):
            H_pose = [[q]ₓ, -I]   (3x6)
            H_point = Rᵀ          (3x3)
        """
        q = self.R.T @ (point.to_array() - self.t)
        H_pose = np.hstack([skew(q), -np.eye(3)])
        return H_pose, self.R.T.copy()

    def transform_from(self, point: Point3) -> Point3:
        """Express a local point in the world frame: R p + t."""
        return Point3.from_array(self.R @ point.to_array() + self.t)

    def transform_from_jacobians(self, point: Point3) -> Tuple[np.ndarray, np.ndarray]:
        """
        Jacobians of transform_from w.r.t. the pose and the point.

            H_pose = [-R [p]ₓ, R]   (3x6)
            H_point = R             (3x3)
        """
        H_pose = np.hstack([-self.R @ skew(point.to_array()), self.R])
        return H_pose, self.R.copy()

    # --- Manifold ---

    def retract(self, delta: np.ndarray) -> "Pose3":
        delta = _check_tangent(delta, self.dim, "Pose3")
        return Pose3(R=self.R @ so3_exp(delta[:3]), t=self.t + self.R @ delta[3:])

    def local_coordinates(self, other: "Pose3") -> np.ndarray:
        omega = so3_log(self.R.T @ other.R)
        v = self.R.T @ (other.t - self.t)
        return np.concatenate([omega, v])

    def local_coordinates_jacobian(self, other: "Pose3") -> np.ndarray:
        """
        Derivative of self.local_coordinates(other) w.r.t. other's tangent.

        Block diagonal: Jr⁻¹(ω) for the rotation, Rᵀ R_other for the translation.
        """
        R_rel = self.R.T @ other.R
        H = np.zeros((6, 6))
        H[:3, :3] = so3_right_jacobian_inverse(so3_log(R_rel))
        H[3:, 3:] = R_rel
        return H

    def equals(self, other: Manifold, tol: float = 1e-9) -> bool:
        if not isinstance(other, Pose3):
            return False
        return bool(
            np.allclose(self.R, other.R, rtol=0.0, atol=tol)
            and np.allclose(self.t, other.t, rtol=0.0, atol=tol)
        )

    def __repr__(self) -> str:
        w = so3_log(self.R)
        return (
            f"Pose3(rotvec=[{w[0]:.4f}, {w[1]:.4f}, {w[2]:.4f}], "
            f"t=[{self.t[0]:.4f}, {self.t[1]:.4f}, {self.t[2]:.4f}])"
        )
