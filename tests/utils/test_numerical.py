"""Unit tests for blockad.utils.numerical (finite-difference helpers)."""

import logging

import numpy as np
import pytest

from blockad.expressions.expression import Composed, Leaf, Primitive
from blockad.expressions.primitives import project, transform_to
from blockad.geometry.types import Point2, Point3, Pose3
from blockad.nonlinear.values import Values
from blockad.utils.numerical import (
    DerivativeCheckConfig,
    check_expression_jacobians,
    numerical_derivative,
    numerical_jacobians,
)


def _square(p):
    """Elementwise square with a deliberately wrong Jacobian."""
    value = Point2(p.x**2, p.y**2)
    return value, [np.diag([p.x, p.y])]


BROKEN_SQUARE = Primitive("broken_square", _square, (Point2,), Point2)


class TestDerivativeCheckConfig:
    """Tests for configuration validation."""

    def test_defaults(self):
        config = DerivativeCheckConfig()
        assert config.delta == 1e-5
        assert config.rtol == 1e-6
        assert config.atol == 1e-8

    @pytest.mark.parametrize("delta", [0.0, -1e-5])
    def test_invalid_delta(self, delta):
        with pytest.raises(ValueError, match="delta"):
            DerivativeCheckConfig(delta=delta)

    def test_invalid_tolerance(self):
        with pytest.raises(ValueError, match="Tolerances"):
            DerivativeCheckConfig(atol=-1.0)


class TestNumericalDerivative:
    """Tests for central differences on manifolds."""

    def test_linear_map(self):
        M = np.array([[1.0, 2.0], [3.0, 4.0], [5.0, 6.0]])
        f = lambda p: Point3.from_array(M @ p.to_array())  # noqa: E731
        np.testing.assert_allclose(numerical_derivative(f, Point2(0.3, -0.2)), M, atol=1e-9)

    def test_shape(self):
        H = numerical_derivative(lambda x: x.translation(), Pose3.identity())
        assert H.shape == (3, 6)
        np.testing.assert_allclose(H[:, 3:], np.eye(3), atol=1e-9)
        np.testing.assert_allclose(H[:, :3], np.zeros((3, 3)), atol=1e-9)


class TestExpressionChecks:
    """Tests for numerical_jacobians and check_expression_jacobians."""

    @pytest.fixture
    def values(self):
        return Values(
            {
                1: Pose3.from_euler(0.1, 0.2, 0.3, t=np.array([0.0, 0.0, -2.0])),
                2: Point3(0.2, 0.1, 1.0),
                3: Point2(1.5, -2.0),
            }
        )

    def test_numerical_jacobians_keys(self, values):
        e = project(transform_to(Leaf(Pose3, 1), Leaf(Point3, 2)))
        jacobians = numerical_jacobians(e, values)
        assert list(jacobians) == [1, 2]
        assert jacobians[1].shape == (2, 6)
        assert jacobians[2].shape == (2, 3)

    def test_values_not_modified(self, values):
        e = project(transform_to(Leaf(Pose3, 1), Leaf(Point3, 2)))
        numerical_jacobians(e, values)
        assert values.at(2).equals(Point3(0.2, 0.1, 1.0), tol=0.0)

    def test_correct_jacobians_pass(self, values):
        e = project(transform_to(Leaf(Pose3, 1), Leaf(Point3, 2)))
        assert check_expression_jacobians(e, values)

    def test_wrong_jacobian_detected(self, values, caplog):
        e = Composed(BROKEN_SQUARE, (Leaf(Point2, 3),))
        with caplog.at_level(logging.WARNING, logger="blockad.utils.numerical"):
            assert not check_expression_jacobians(e, values)
        assert "Jacobian mismatch" in caplog.text
