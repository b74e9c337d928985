"""Nonlinear measurement factors.

A factor binds a measurement to a prediction h(x) of it and a Gaussian noise
model. Its error is

    error(x) = ½ ‖ R e(x) ‖²,   e(x) = measured.local_coordinates(h(x))

i.e. e is the tangent vector taking the measurement to the prediction
(h(x) − z for vector-space measurements), and R is the noise model's
square-root information.

Linearization produces a JacobianFactor in whitened units:

    A_k = R · D · ∂h/∂x_k,   b = −R e(x)

where D is the derivative of the local coordinates w.r.t. the prediction
(identity for vector spaces). For vector spaces b = z − h(x), the
measurement minus the prediction.

Classes:
    - NoiseModelFactor: shared error / dim / linearize machinery
    - ExpressionFactor: factor whose prediction is an Expression tree
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence, Tuple

import numpy as np

from ..errors import DimensionMismatchError, TypeMismatchError
from ..expressions.expression import Expression
from ..geometry.types import Manifold
from ..keys import Key
from .jacobian_factor import JacobianFactor
from .noise_model import Gaussian
from .values import Values

logger = logging.getLogger(__name__)


class NoiseModelFactor(ABC):
    """
    Base class for factors with a Gaussian noise model.

    Subclasses implement unwhitened_error() and
    unwhitened_error_and_jacobians(); error(), whitened_error() and
    linearize() are shared.
    """

    def __init__(self, noise_model: Gaussian, keys: Sequence[Key], dim: int):
        """
        Initialize NoiseModelFactor.

        Args:
            noise_model: Explicit noise model; there is no default.
            keys: Variable keys the factor depends on.
            dim: Residual dimension (tangent dimension of the measurement).

        Raises:
            ValueError: If noise_model is None.
            TypeError: If noise_model is not a Gaussian noise model.
        """
        if noise_model is None:
            raise ValueError("A noise model is required")
        if not isinstance(noise_model, Gaussian):
            raise TypeError(f"noise_model must be a Gaussian model, got {type(noise_model).__name__}")
        self._noise_model = noise_model
        self._keys: List[Key] = list(keys)
        self._dim = int(dim)

    @property
    def noise_model(self) -> Gaussian:
        return self._noise_model

    def keys(self) -> List[Key]:
        return list(self._keys)

    def dim(self) -> int:
        """Number of rows of the linearized factor."""
        return self._dim

    @abstractmethod
    def unwhitened_error(self, values: Values) -> np.ndarray:
        """Error vector e(x) of shape (dim,)."""

    @abstractmethod
    def unwhitened_error_and_jacobians(
        self, values: Values
    ) -> Tuple[np.ndarray, Dict[Key, np.ndarray]]:
        """Error vector e(x) and ∂e/∂x_k for every key."""

    def _check_noise_dimension(self) -> None:
        if self._noise_model.dim != self._dim:
            raise DimensionMismatchError(
                f"Noise model dimension {self._noise_model.dim} does not match "
                f"measurement dimension {self._dim}"
            )

    def whitened_error(self, values: Values) -> np.ndarray:
        """R e(x)."""
        self._check_noise_dimension()
        return self._noise_model.whiten(self.unwhitened_error(values))

    def error(self, values: Values) -> float:
        """
        Negative log-likelihood ½ ‖R e(x)‖².

        Raises:
            DimensionMismatchError: If the noise model has the wrong dimension.
            MissingVariableError, TypeMismatchError, DegenerateGeometryError:
                Propagated from evaluation.
        """
        w = self.whitened_error(values)
        return 0.5 * float(w @ w)

    def linearize(self, values: Values) -> JacobianFactor:
        """
        Linearize around values into a whitened JacobianFactor.

        Raises:
            DimensionMismatchError: If the noise model has the wrong dimension.
            MissingVariableError, TypeMismatchError, DegenerateGeometryError:
                Propagated from evaluation.
        """
        self._check_noise_dimension()
        e, jacobians = self.unwhitened_error_and_jacobians(values)

        terms = {
            key: self._noise_model.whiten_matrix(jacobians[key])
            for key in self._keys
            if key in jacobians
        }
        b = -self._noise_model.whiten(e)
        logger.debug(
            "Linearized %s: %d key(s), %d row(s)", type(self).__name__, len(terms), b.shape[0]
        )
        return JacobianFactor(terms, b)

    def __repr__(self) -> str:
        keys = ", ".join(f"{key!s}" for key in self._keys)
        return f"{type(self).__name__}(keys=[{keys}], dim={self._dim}, noise={self._noise_model!r})"


class ExpressionFactor(NoiseModelFactor):
    """
    Factor whose prediction is given by an Expression.

    Derivatives come from chain-rule propagation through the expression tree,
    so no derivative code is written per factor.

    Attributes:
        measured: The measurement (same manifold type as the expression).
        expression: Expression predicting the measurement.

    Example:
        >>> x, p, K = Leaf(Pose3, 1), Leaf(Point3, 2), Leaf(Cal3_S2, 3)
        >>> uv_hat = uncalibrate(K, project(transform_to(x, p)))
        >>> factor = ExpressionFactor(Point2(0.0, 1.0), uv_hat, Unit.create(2))
        >>> factor.dim()
        2
    """

    def __init__(self, measured: Manifold, expression: Expression, noise_model: Gaussian):
        """
        Initialize ExpressionFactor.

        Args:
            measured: Measurement value.
            expression: Expression whose value_type is type(measured).
            noise_model: Noise model of dimension measured.dim.

        Raises:
            TypeMismatchError: If measured is not a Manifold, expression is
                not an Expression, or their types disagree.
            ValueError: If noise_model is None.
        """
        if not isinstance(measured, Manifold):
            raise TypeMismatchError(f"Measurement must be a Manifold, got {type(measured).__name__}")
        if not isinstance(expression, Expression):
            raise TypeMismatchError(f"Expected an Expression, got {type(expression).__name__}")
        if expression.value_type is not type(measured):
            raise TypeMismatchError(
                f"Expression evaluates to {expression.value_type.__name__} but the "
                f"measurement is {type(measured).__name__}"
            )
        super().__init__(noise_model, expression.keys(), measured.dim)
        self.measured = measured
        self.expression = expression

    def unwhitened_error(self, values: Values) -> np.ndarray:
        predicted = self.expression.value(values)
        return self.measured.local_coordinates(predicted)

    def unwhitened_error_and_jacobians(
        self, values: Values
    ) -> Tuple[np.ndarray, Dict[Key, np.ndarray]]:
        predicted, jacobians = self.expression.derivatives(values)
        e = self.measured.local_coordinates(predicted)
        D = self.measured.local_coordinates_jacobian(predicted)
        return e, {key: D @ block for key, block in jacobians.items()}

    def __repr__(self) -> str:
        return f"ExpressionFactor(measured={self.measured!r}, expression={self.expression!r})"
