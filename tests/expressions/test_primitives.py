"""Unit tests for blockad.expressions.primitives.

Every primitive's analytic Jacobians are compared with central finite
differences at a few generic argument values.
"""

import numpy as np
import pytest

from blockad.errors import DegenerateGeometryError, TypeMismatchError
from blockad.expressions.expression import Constant, Leaf
from blockad.expressions.primitives import (
    CALIBRATE,
    COMPOSE,
    PROJECT,
    SUBTRACT,
    TRANSFORM_FROM,
    TRANSFORM_TO,
    UNCALIBRATE,
    calibrate,
    compose,
    project,
    subtract,
    transform_from,
    transform_to,
    uncalibrate,
)
from blockad.geometry.types import Cal3_S2, Point2, Point3, Pose3
from blockad.nonlinear.values import Values
from blockad.utils.numerical import check_expression_jacobians, numerical_derivative

POSES = [
    Pose3.identity(),
    Pose3.from_euler(0.1, -0.2, 0.3, t=np.array([0.5, -0.4, -1.0])),
    Pose3.from_euler(-1.0, 0.4, 2.5, t=np.array([2.0, 1.0, 0.0])),
]
POINTS = [Point3(0.0, 0.0, 1.0), Point3(0.3, -0.7, 2.5), Point3(-1.0, 2.0, 0.5)]
CALIBRATION = Cal3_S2(fx=2.0, fy=1.5, s=0.1, u0=0.2, v0=-0.3)


def assert_primitive_jacobians(primitive, args, atol=1e-8):
    """Compare each analytic Jacobian with finite differences in that argument."""
    _, jacobians = primitive(*args)
    for i, H in enumerate(jacobians):

        def f(v, i=i):
            perturbed = list(args)
            perturbed[i] = v
            return primitive(*perturbed)[0]

        np.testing.assert_allclose(H, numerical_derivative(f, args[i]), atol=atol)


class TestTransformTo:
    """Tests for transform_to."""

    @pytest.mark.parametrize("pose", POSES)
    @pytest.mark.parametrize("point", POINTS)
    def test_jacobians(self, pose, point):
        assert_primitive_jacobians(TRANSFORM_TO, (pose, point))

    def test_value(self):
        pose = POSES[1]
        value, _ = TRANSFORM_TO(pose, POINTS[1])
        np.testing.assert_allclose(value.to_array(), pose.R.T @ (POINTS[1].to_array() - pose.t))


class TestTransformFrom:
    """Tests for transform_from."""

    @pytest.mark.parametrize("pose", POSES)
    @pytest.mark.parametrize("point", POINTS)
    def test_jacobians(self, pose, point):
        assert_primitive_jacobians(TRANSFORM_FROM, (pose, point))


class TestCompose:
    """Tests for pose composition."""

    @pytest.mark.parametrize("a", POSES)
    @pytest.mark.parametrize("b", POSES)
    def test_jacobians(self, a, b):
        assert_primitive_jacobians(COMPOSE, (a, b), atol=1e-7)


class TestProject:
    """Tests for perspective projection."""

    @pytest.mark.parametrize("point", POINTS)
    def test_jacobians(self, point):
        assert_primitive_jacobians(PROJECT, (point,))

    @pytest.mark.parametrize("depth", [0.0, -0.5])
    def test_degenerate_depth(self, depth):
        with pytest.raises(DegenerateGeometryError):
            PROJECT(Point3(1.0, 1.0, depth))

    def test_degenerate_depth_through_expression(self):
        """A point behind the camera fails evaluation instead of returning Inf."""
        values = Values({1: Pose3.identity(), 2: Point3(0.0, 0.0, -1.0)})
        e = project(transform_to(Leaf(Pose3, 1), Leaf(Point3, 2)))
        with pytest.raises(DegenerateGeometryError):
            e.value(values)
        with pytest.raises(DegenerateGeometryError):
            e.derivatives(values)

    def test_subnormal_depth_through_expression(self):
        """A vanishing positive depth raises DegenerateGeometryError, not ValueError."""
        e = project(Leaf(Point3, 1))
        values = Values({1: Point3(0.0, 0.0, 1e-320)})
        with pytest.raises(DegenerateGeometryError):
            e.value(values)
        with pytest.raises(DegenerateGeometryError):
            e.derivatives(values)


class TestCalibration:
    """Tests for uncalibrate and calibrate."""

    @pytest.mark.parametrize("p", [Point2(0.0, 1.0), Point2(0.3, -0.2)])
    def test_uncalibrate_jacobians(self, p):
        assert_primitive_jacobians(UNCALIBRATE, (CALIBRATION, p))

    @pytest.mark.parametrize("uv", [Point2(0.0, 1.0), Point2(3.0, -2.0)])
    def test_calibrate_jacobians(self, uv):
        assert_primitive_jacobians(CALIBRATE, (CALIBRATION, uv))

    def test_identity_calibration(self):
        value, (H_cal, H_point) = UNCALIBRATE(Cal3_S2(), Point2(0.0, 1.0))
        assert value.equals(Point2(0.0, 1.0))
        np.testing.assert_allclose(H_point, np.eye(2))
        np.testing.assert_allclose(H_cal, [[0.0, 0.0, 1.0, 1.0, 0.0], [0.0, 1.0, 0.0, 0.0, 1.0]])

    def test_calibrate_inverts_uncalibrate_expression(self):
        values = Values({1: CALIBRATION, 2: Point2(0.3, -0.2)})
        K = Leaf(Cal3_S2, 1)
        e = calibrate(K, uncalibrate(K, Leaf(Point2, 2)))
        value, jacobians = e.derivatives(values)
        assert value.equals(Point2(0.3, -0.2), tol=1e-12)
        np.testing.assert_allclose(jacobians[2], np.eye(2), atol=1e-12)
        np.testing.assert_allclose(jacobians[1], np.zeros((2, 5)), atol=1e-12)


class TestSubtract:
    """Tests for vector-space subtraction."""

    def test_value_and_jacobians(self):
        value, (Ha, Hb) = SUBTRACT(Point3(1.0, 2.0, 3.0), Point3(0.5, 0.5, 0.5))
        assert value.equals(Point3(0.5, 1.5, 2.5))
        np.testing.assert_allclose(Ha, np.eye(3))
        np.testing.assert_allclose(Hb, -np.eye(3))

    def test_runtime_type_mismatch(self):
        with pytest.raises(TypeMismatchError):
            SUBTRACT(Point2(0.0, 0.0), Point3(0.0, 0.0, 0.0))

    def test_builder_type_mismatch(self):
        with pytest.raises(TypeMismatchError):
            subtract(Leaf(Point2, 1), Constant(Point3(0.0, 0.0, 1.0)))

    def test_pose_not_a_vector_space(self):
        with pytest.raises(TypeMismatchError):
            subtract(Leaf(Pose3, 1), Leaf(Pose3, 2))


class TestComposedTrees:
    """Finite-difference checks on whole trees built from the primitives."""

    @pytest.fixture
    def values(self):
        return Values(
            {
                "x": POSES[1],
                "y": POSES[2],
                "p": POINTS[1],
                "K": CALIBRATION,
                "m": Point2(0.1, 0.2),
            }
        )

    def test_projection_chain(self, values):
        e = uncalibrate(Leaf(Cal3_S2, "K"), project(transform_to(Leaf(Pose3, "x"), Leaf(Point3, "p"))))
        assert check_expression_jacobians(e, values)

    def test_relative_pose_chain(self, values):
        x, y, p = Leaf(Pose3, "x"), Leaf(Pose3, "y"), Leaf(Point3, "p")
        e = transform_to(compose(x, y), transform_from(x, p))
        assert check_expression_jacobians(e, values)

    def test_residual_chain(self, values):
        K = Leaf(Cal3_S2, "K")
        e = calibrate(K, uncalibrate(K, Leaf(Point2, "m"))) - Leaf(Point2, "m")
        value, _ = e.derivatives(values)
        assert value.equals(Point2(0.0, 0.0), tol=1e-12)
        assert check_expression_jacobians(e, values)
