"""Unit tests for blockad.nonlinear.jacobian_factor."""

import numpy as np
import pytest

from blockad.errors import DimensionMismatchError, MissingVariableError
from blockad.nonlinear.jacobian_factor import JacobianFactor


@pytest.fixture
def factor():
    A1 = np.array([[1.0, 0.0], [0.0, 2.0]])
    A2 = np.array([[1.0, 1.0, 0.0], [0.0, 1.0, 1.0]])
    return JacobianFactor({"a": A1, "b": A2}, np.array([1.0, -1.0]))


class TestJacobianFactor:
    """Tests for the linear residual term."""

    def test_accessors(self, factor):
        assert factor.rows == 2
        assert factor.keys() == ["a", "b"]
        assert factor.dims() == {"a": 2, "b": 3}
        np.testing.assert_allclose(factor.get_a("a"), [[1.0, 0.0], [0.0, 2.0]])

    def test_get_a_missing(self, factor):
        with pytest.raises(MissingVariableError):
            factor.get_a("c")

    def test_dense_jacobian(self, factor):
        A, b = factor.jacobian()
        np.testing.assert_allclose(A, [[1.0, 0.0, 1.0, 1.0, 0.0], [0.0, 2.0, 0.0, 1.0, 1.0]])
        np.testing.assert_allclose(b, [1.0, -1.0])

    def test_dense_jacobian_custom_ordering(self, factor):
        A, _ = factor.jacobian(["b", "c", "a"], dims={"c": 1})
        assert A.shape == (2, 6)
        np.testing.assert_allclose(A[:, 3], [0.0, 0.0])
        np.testing.assert_allclose(A[:, 4:], factor.get_a("a"))

    def test_ordering_must_cover_keys(self, factor):
        with pytest.raises(ValueError, match="Ordering"):
            factor.jacobian(["a"])

    def test_unknown_dimension(self, factor):
        with pytest.raises(ValueError):
            factor.jacobian(["a", "b", "c"])

    def test_hessian(self, factor):
        A, b = factor.jacobian()
        H, g = factor.hessian()
        np.testing.assert_allclose(H, A.T @ A)
        np.testing.assert_allclose(g, A.T @ b)

    def test_error(self, factor):
        deltas = {"a": np.array([1.0, 0.0]), "b": np.zeros(3)}
        # A δ - b = [1, 0] - [1, -1] = [0, 1]
        assert factor.error(deltas) == pytest.approx(0.5)
        assert factor.error({"a": np.zeros(2), "b": np.zeros(3)}) == pytest.approx(1.0)

    def test_error_missing_delta(self, factor):
        with pytest.raises(MissingVariableError):
            factor.error({"a": np.zeros(2)})

    def test_gauss_newton_step_zeroes_error(self):
        factor = JacobianFactor({1: np.array([[2.0, 0.0], [0.0, 4.0]])}, np.array([2.0, 2.0]))
        H, g = factor.hessian()
        delta = np.linalg.solve(H, g)
        assert factor.error({1: delta}) == pytest.approx(0.0, abs=1e-20)

    def test_row_mismatch(self):
        with pytest.raises(DimensionMismatchError):
            JacobianFactor({1: np.zeros((3, 2))}, np.zeros(2))

    def test_b_must_be_vector(self):
        with pytest.raises(DimensionMismatchError):
            JacobianFactor({1: np.zeros((2, 2))}, np.zeros((2, 1)))

    def test_equals(self, factor):
        same = JacobianFactor(
            {"b": factor.get_a("b").copy(), "a": factor.get_a("a").copy()}, factor.b.copy()
        )
        assert factor.equals(same)
        shifted = JacobianFactor({"a": factor.get_a("a"), "b": factor.get_a("b")}, factor.b + 1e-6)
        assert not factor.equals(shifted)
        assert factor.equals(shifted, tol=1e-5)
        assert not factor.equals(JacobianFactor({"a": factor.get_a("a")}, factor.b))
