"""Unit tests for blockad.nonlinear.noise_model (Gaussian noise models)."""

import numpy as np
import pytest

from blockad.errors import DimensionMismatchError
from blockad.nonlinear.noise_model import Diagonal, Gaussian, Isotropic, Unit


class TestGaussian:
    """Tests for the full-covariance model."""

    def test_sqrt_information_identity(self):
        """RᵀR equals the information matrix."""
        covariance = np.array([[4.0, 1.0], [1.0, 2.0]])
        model = Gaussian.from_covariance(covariance)
        R = model.sqrt_information
        np.testing.assert_allclose(R.T @ R, np.linalg.inv(covariance), atol=1e-12)
        np.testing.assert_allclose(model.covariance(), covariance, atol=1e-12)

    def test_whiten_gives_mahalanobis_norm(self):
        covariance = np.array([[4.0, 1.0], [1.0, 2.0]])
        model = Gaussian.from_covariance(covariance)
        v = np.array([1.0, -2.0])
        expected = v @ np.linalg.solve(covariance, v)
        w = model.whiten(v)
        assert w @ w == pytest.approx(expected)
        assert model.distance(v) == pytest.approx(expected)

    def test_unwhiten_inverts_whiten(self):
        model = Gaussian.from_information(np.array([[2.0, 0.5], [0.5, 1.0]]))
        v = np.array([0.3, -0.7])
        np.testing.assert_allclose(model.unwhiten(model.whiten(v)), v, atol=1e-12)

    def test_whiten_matrix(self):
        model = Gaussian.from_covariance(np.diag([4.0, 1.0]))
        H = np.array([[2.0, 4.0, 6.0], [1.0, 1.0, 1.0]])
        np.testing.assert_allclose(model.whiten_matrix(H), [[1.0, 2.0, 3.0], [1.0, 1.0, 1.0]])

    def test_sigmas(self):
        model = Gaussian.from_covariance(np.diag([4.0, 9.0]))
        np.testing.assert_allclose(model.sigmas(), [2.0, 3.0])

    def test_not_positive_definite(self):
        with pytest.raises(ValueError, match="positive definite"):
            Gaussian.from_covariance(np.array([[1.0, 2.0], [2.0, 1.0]]))

    def test_not_symmetric(self):
        with pytest.raises(ValueError, match="symmetric"):
            Gaussian.from_information(np.array([[1.0, 0.5], [0.0, 1.0]]))

    def test_singular_sqrt_information(self):
        with pytest.raises(ValueError, match="invertible"):
            Gaussian(np.zeros((2, 2)))

    def test_rank_deficient_sqrt_information(self):
        with pytest.raises(ValueError, match="invertible"):
            Gaussian(np.array([[1.0, 2.0], [2.0, 4.0]]))

    def test_tiny_sqrt_information_is_invertible(self):
        """Invertibility does not depend on the scale of R."""
        model = Gaussian(1e-40 * np.eye(8))
        np.testing.assert_allclose(model.whiten(np.full(8, 1e40)), np.ones(8))

    def test_wrong_dimension(self):
        model = Gaussian(np.eye(2))
        with pytest.raises(DimensionMismatchError):
            model.whiten(np.zeros(3))
        with pytest.raises(DimensionMismatchError):
            model.whiten_matrix(np.zeros((3, 6)))

    def test_equals(self):
        a = Gaussian.from_covariance(np.diag([4.0, 1.0]))
        b = Diagonal.from_sigmas([2.0, 1.0])
        assert a.equals(b)
        assert not a.equals(Unit.create(2))


class TestDiagonalFamily:
    """Tests for Diagonal, Isotropic and Unit."""

    def test_diagonal_whiten(self):
        model = Diagonal.from_sigmas([0.5, 2.0])
        np.testing.assert_allclose(model.whiten(np.array([1.0, 1.0])), [2.0, 0.5])
        np.testing.assert_allclose(model.unwhiten(np.array([2.0, 0.5])), [1.0, 1.0])
        np.testing.assert_allclose(model.sqrt_information, np.diag([2.0, 0.5]))

    def test_diagonal_whiten_matrix(self):
        model = Diagonal.from_sigmas([0.5, 2.0])
        np.testing.assert_allclose(model.whiten_matrix(np.ones((2, 3))), [[2.0] * 3, [0.5] * 3])

    @pytest.mark.parametrize("sigmas", [[], [1.0, 0.0], [1.0, -1.0], [np.inf]])
    def test_diagonal_invalid(self, sigmas):
        with pytest.raises(ValueError):
            Diagonal(sigmas)

    def test_large_sigmas(self):
        model = Diagonal.from_sigmas([1e40] * 8)
        np.testing.assert_allclose(model.sigmas(), np.full(8, 1e40))
        np.testing.assert_allclose(model.whiten(np.full(8, 2e40)), np.full(8, 2.0))

    def test_isotropic(self):
        model = Isotropic.from_sigma(3, 2.0)
        assert model.dim == 3
        assert model.sigma == 2.0
        np.testing.assert_allclose(model.whiten(np.array([2.0, 4.0, 6.0])), [1.0, 2.0, 3.0])

    def test_isotropic_requires_equal_sigmas(self):
        with pytest.raises(ValueError, match="equal"):
            Isotropic([1.0, 2.0])

    def test_unit(self):
        model = Unit.create(2)
        v = np.array([3.0, -4.0])
        np.testing.assert_allclose(model.whiten(v), v)
        np.testing.assert_allclose(model.information(), np.eye(2))
        assert isinstance(model, Gaussian)

    def test_unit_requires_sigma_one(self):
        with pytest.raises(ValueError):
            Unit([2.0, 2.0])

    def test_positive_dimension(self):
        with pytest.raises(ValueError):
            Unit.create(0)
