"""Unit tests for blockad.geometry.camera (pinhole projection)."""

import numpy as np
import pytest

from blockad.errors import DegenerateGeometryError
from blockad.geometry.camera import (
    backproject_pixel,
    project_jacobian,
    project_point,
    project_to_normalized,
)
from blockad.geometry.types import Cal3_S2, Point2, Point3, Pose3
from blockad.utils.numerical import numerical_derivative


class TestProjectToNormalized:
    """Tests for perspective division."""

    def test_on_axis(self):
        assert project_to_normalized(Point3(0.0, 0.0, 1.0)).equals(Point2(0.0, 0.0))

    def test_divides_by_depth(self):
        uv = project_to_normalized(Point3(1.0, 0.5, 5.0))
        np.testing.assert_allclose(uv.to_array(), [0.2, 0.1])

    @pytest.mark.parametrize("depth", [0.0, -1.0])
    def test_non_positive_depth(self, depth):
        with pytest.raises(DegenerateGeometryError, match="depth"):
            project_to_normalized(Point3(1.0, 1.0, depth))

    def test_jacobian(self):
        q = Point3(0.3, -0.4, 2.5)
        np.testing.assert_allclose(
            project_jacobian(q), numerical_derivative(project_to_normalized, q), atol=1e-9
        )

    def test_jacobian_non_positive_depth(self):
        with pytest.raises(DegenerateGeometryError):
            project_jacobian(Point3(0.0, 0.0, 0.0))

    @pytest.mark.parametrize("point", [Point3(0.0, 0.0, 1e-320), Point3(1e300, 1.0, 1e-10)])
    def test_overflowing_depth(self, point):
        """A positive depth whose division overflows is degenerate, not NaN."""
        with pytest.raises(DegenerateGeometryError, match="depth"):
            project_to_normalized(point)
        with pytest.raises(DegenerateGeometryError, match="depth"):
            project_jacobian(point)

    def test_jacobian_overflow_only(self):
        """X/Z is finite but X/Z² is not."""
        point = Point3(1e290, 0.0, 1e-10)
        assert np.isfinite(project_to_normalized(point).x)
        with pytest.raises(DegenerateGeometryError, match="overflows"):
            project_jacobian(point)


class TestProjectPoint:
    """Tests for full world-to-pixel projection and its inverse."""

    def test_default_scene(self):
        """Identity camera and calibration see (0, 0, 1) at the origin."""
        uv = project_point(Pose3.identity(), Point3(0.0, 0.0, 1.0), Cal3_S2())
        assert uv.equals(Point2(0.0, 0.0))

    def test_principal_point(self):
        K = Cal3_S2(fx=500.0, fy=500.0, s=0.0, u0=320.0, v0=240.0)
        pose = Pose3(R=np.eye(3), t=np.array([1.0, 2.0, 0.0]))
        uv = project_point(pose, Point3(1.0, 2.0, 10.0), K)
        np.testing.assert_allclose(uv.to_array(), [320.0, 240.0])

    def test_behind_camera(self):
        with pytest.raises(DegenerateGeometryError):
            project_point(Pose3.identity(), Point3(0.0, 0.0, -2.0), Cal3_S2())

    def test_backproject_round_trip(self):
        K = Cal3_S2(fx=400.0, fy=420.0, s=1.0, u0=300.0, v0=200.0)
        pose = Pose3.from_euler(0.1, -0.2, 0.3, t=np.array([0.5, -0.5, 1.0]))
        point = pose.transform_from(Point3(0.4, -0.3, 3.0))
        uv = project_point(pose, point, K)
        assert backproject_pixel(pose, uv, 3.0, K).equals(point, tol=1e-9)

    def test_backproject_requires_positive_depth(self):
        with pytest.raises(DegenerateGeometryError, match="Depth"):
            backproject_pixel(Pose3.identity(), Point2(0.0, 0.0), 0.0, Cal3_S2())
