"""Gaussian noise models for whitening residuals and Jacobians.

A noise model with covariance Σ is represented by its square-root
information matrix R (upper triangular, RᵀR = Σ⁻¹). Whitening left-multiplies
by R, turning a residual with covariance Σ into one with unit covariance:

    ‖r‖²_Σ = rᵀ Σ⁻¹ r = ‖R r‖²

Available models:
    - Gaussian: full covariance / information matrix
    - Diagonal: independent sigmas
    - Isotropic: one sigma for every component
    - Unit: sigma = 1 (whitening is the identity)
"""

from typing import Sequence

import numpy as np

from ..errors import DimensionMismatchError


class Gaussian:
    """
    Gaussian noise model given by a square-root information matrix.

    Attributes:
        sqrt_information: Square (dim, dim) matrix R with RᵀR = Σ⁻¹.

    Example:
        >>> model = Gaussian.from_covariance(np.diag([4.0, 1.0]))
        >>> model.whiten(np.array([2.0, 1.0]))
        array([1., 1.])
    """

    def __init__(self, sqrt_information: np.ndarray):
        R = np.array(sqrt_information, dtype=np.float64)
        if R.ndim != 2 or R.shape[0] != R.shape[1] or R.shape[0] == 0:
            raise ValueError(f"Square-root information must be a non-empty square matrix, got shape {R.shape}")
        if not np.all(np.isfinite(R)):
            raise ValueError("Square-root information must be finite")
        if np.linalg.matrix_rank(R) < R.shape[0]:
            raise ValueError("Square-root information must be invertible")
        self._R = R

    @classmethod
    def from_information(cls, information: np.ndarray) -> "Gaussian":
        """
        Build from an information matrix Λ = Σ⁻¹.

        Raises:
            ValueError: If Λ is not symmetric positive definite.
        """
        information = np.asarray(information, dtype=np.float64)
        if information.ndim != 2 or information.shape[0] != information.shape[1]:
            raise ValueError(f"Information must be square, got shape {information.shape}")
        if not np.allclose(information, information.T):
            raise ValueError("Information matrix must be symmetric")
        try:
            L = np.linalg.cholesky(information)
        except np.linalg.LinAlgError:
            raise ValueError("Information matrix must be positive definite") from None
        # Λ = L Lᵀ, so R = Lᵀ satisfies RᵀR = Λ
        return cls(L.T)

    @classmethod
    def from_covariance(cls, covariance: np.ndarray) -> "Gaussian":
        """
        Build from a covariance matrix Σ.

        Raises:
            ValueError: If Σ is not symmetric positive definite.
        """
        covariance = np.asarray(covariance, dtype=np.float64)
        if covariance.ndim != 2 or covariance.shape[0] != covariance.shape[1]:
            raise ValueError(f"Covariance must be square, got shape {covariance.shape}")
        try:
            np.linalg.cholesky(covariance)
        except np.linalg.LinAlgError:
            raise ValueError("Covariance matrix must be positive definite") from None
        return cls.from_information(np.linalg.inv(covariance))

    @property
    def dim(self) -> int:
        return self._R.shape[0]

    @property
    def sqrt_information(self) -> np.ndarray:
        return self._R.copy()

    def information(self) -> np.ndarray:
        return self._R.T @ self._R

    def covariance(self) -> np.ndarray:
        return np.linalg.inv(self.information())

    def sigmas(self) -> np.ndarray:
        """Marginal standard deviations sqrt(diag(Σ))."""
        return np.sqrt(np.diag(self.covariance()))

    def _check_rows(self, rows: int, what: str) -> None:
        if rows != self.dim:
            raise DimensionMismatchError(
                f"Noise model of dimension {self.dim} cannot whiten {what} with {rows} rows"
            )

    def whiten(self, v: np.ndarray) -> np.ndarray:
        """R v."""
        v = np.asarray(v, dtype=np.float64)
        self._check_rows(v.shape[0], "vector")
        return self._R @ v

    def unwhiten(self, v: np.ndarray) -> np.ndarray:
        """R⁻¹ v."""
        v = np.asarray(v, dtype=np.float64)
        self._check_rows(v.shape[0], "vector")
        return np.linalg.solve(self._R, v)

    def whiten_matrix(self, H: np.ndarray) -> np.ndarray:
        """R H."""
        H = np.asarray(H, dtype=np.float64)
        if H.ndim != 2:
            raise DimensionMismatchError(f"Expected 2-D matrix, got shape {H.shape}")
        self._check_rows(H.shape[0], "matrix")
        return self._R @ H

    def distance(self, v: np.ndarray) -> float:
        """Squared Mahalanobis norm vᵀ Σ⁻¹ v."""
        w = self.whiten(v)
        return float(w @ w)

    def equals(self, other: "Gaussian", tol: float = 1e-9) -> bool:
        if not isinstance(other, Gaussian) or other.dim != self.dim:
            return False
        return bool(np.allclose(self.information(), other.information(), rtol=0.0, atol=tol))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(dim={self.dim})"


class Diagonal(Gaussian):
    """
    Independent noise per component.

    Example:
        >>> model = Diagonal.from_sigmas([0.5, 2.0])
        >>> model.whiten(np.array([1.0, 1.0]))
        array([2. , 0.5])
    """

    def __init__(self, sigmas: Sequence[float]):
        sigmas = np.asarray(sigmas, dtype=np.float64).reshape(-1)
        if sigmas.size == 0:
            raise ValueError("At least one sigma is required")
        if not np.all(np.isfinite(sigmas)) or np.any(sigmas <= 0.0):
            raise ValueError(f"Sigmas must be positive and finite, got {sigmas}")
        self._sigmas = sigmas
        super().__init__(np.diag(1.0 / sigmas))

    @classmethod
    def from_sigmas(cls, sigmas: Sequence[float]) -> "Diagonal":
        return cls(sigmas)

    def sigmas(self) -> np.ndarray:
        return self._sigmas.copy()

    def whiten(self, v: np.ndarray) -> np.ndarray:
        v = np.asarray(v, dtype=np.float64)
        self._check_rows(v.shape[0], "vector")
        return v / self._sigmas

    def unwhiten(self, v: np.ndarray) -> np.ndarray:
        v = np.asarray(v, dtype=np.float64)
        self._check_rows(v.shape[0], "vector")
        return v * self._sigmas

    def whiten_matrix(self, H: np.ndarray) -> np.ndarray:
        H = np.asarray(H, dtype=np.float64)
        if H.ndim != 2:
            raise DimensionMismatchError(f"Expected 2-D matrix, got shape {H.shape}")
        self._check_rows(H.shape[0], "matrix")
        return H / self._sigmas[:, np.newaxis]


class Isotropic(Diagonal):
    """Same sigma for every component."""

    def __init__(self, sigmas: Sequence[float]):
        super().__init__(sigmas)
        if not np.all(self._sigmas == self._sigmas[0]):
            raise ValueError(f"Isotropic model needs equal sigmas, got {self._sigmas}")

    @classmethod
    def from_sigma(cls, dim: int, sigma: float) -> "Isotropic":
        if dim <= 0:
            raise ValueError(f"Dimension must be positive, got {dim}")
        return cls(np.full(dim, float(sigma)))

    @property
    def sigma(self) -> float:
        return float(self._sigmas[0])


class Unit(Isotropic):
    """Unit noise: whitening is the identity."""

    def __init__(self, sigmas: Sequence[float]):
        super().__init__(sigmas)
        if self.sigma != 1.0:
            raise ValueError(f"Unit model needs sigma 1, got {self.sigma}")

    @classmethod
    def create(cls, dim: int) -> "Unit":
        if dim <= 0:
            raise ValueError(f"Dimension must be positive, got {dim}")
        return cls(np.ones(dim))
