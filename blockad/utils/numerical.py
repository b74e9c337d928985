"""Finite-difference derivatives on manifolds.

Analytic Jacobians are only as good as the algebra behind them. These
helpers estimate them numerically with central differences taken through
retract / local_coordinates, so they work for Pose3 as well as for vector
spaces:

    J[:, i] ≈ ( y0 ⊖ f(x ⊕ δeᵢ) - y0 ⊖ f(x ⊕ -δeᵢ) ) / 2δ,   y0 = f(x)

where x ⊕ v = x.retract(v) and y0 ⊖ y = y0.local_coordinates(y).
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from ..expressions.expression import Expression
from ..geometry.types import Manifold
from ..keys import Key
from ..nonlinear.values import Values

logger = logging.getLogger(__name__)


@dataclass
class DerivativeCheckConfig:
    """
    Settings for comparing analytic and numerical Jacobians.

    Attributes:
        delta: Finite-difference step in tangent coordinates.
        rtol: Relative tolerance of the comparison.
        atol: Absolute tolerance of the comparison.
    """

    delta: float = 1e-5
    rtol: float = 1e-6
    atol: float = 1e-8

    def __post_init__(self) -> None:
        if not self.delta > 0.0:
            raise ValueError(f"delta must be positive, got {self.delta}")
        if self.rtol < 0.0 or self.atol < 0.0:
            raise ValueError(f"Tolerances must be non-negative, got rtol={self.rtol}, atol={self.atol}")


def numerical_derivative(
    f: Callable[[Manifold], Manifold],
    x: Manifold,
    delta: float = 1e-5,
) -> np.ndarray:
    """
    Central-difference Jacobian of a manifold-valued function.

    Args:
        f: Function from x's manifold to some manifold.
        x: Linearization point.
        delta: Step size in tangent coordinates.

    Returns:
        Jacobian of shape (f(x).dim, x.dim).

    Example:
        >>> numerical_derivative(lambda p: p.retract(np.ones(2)), Point2(0.0, 0.0))
        array([[1., 0.],
               [0., 1.]])
    """
    y0 = f(x)
    H = np.zeros((y0.dim, x.dim))
    for i in range(x.dim):
        step = np.zeros(x.dim)
        step[i] = delta
        plus = y0.local_coordinates(f(x.retract(step)))
        minus = y0.local_coordinates(f(x.retract(-step)))
        H[:, i] = (plus - minus) / (2.0 * delta)
    return H


def numerical_jacobians(
    expression: Expression,
    values: Values,
    delta: float = 1e-5,
) -> Dict[Key, np.ndarray]:
    """
    Central-difference Jacobians of an expression w.r.t. each of its keys.

    Each key is perturbed on its own while the rest of values is held fixed.
    """
    jacobians = {}
    for key in expression.keys():
        x = values.at(key)

        def f(v: Manifold, key: Key = key, x: Manifold = x) -> Manifold:
            perturbed = values.retract({key: x.local_coordinates(v)})
            return expression.value(perturbed)

        jacobians[key] = numerical_derivative(f, x, delta)
    return jacobians


def check_expression_jacobians(
    expression: Expression,
    values: Values,
    config: Optional[DerivativeCheckConfig] = None,
) -> bool:
    """
    Compare analytic and numerical Jacobians of an expression.

    Mismatching keys are logged at WARNING level with the largest absolute
    difference.

    Returns:
        True if every key agrees within config's tolerances.
    """
    if config is None:
        config = DerivativeCheckConfig()

    _, analytic = expression.derivatives(values)
    numerical = numerical_jacobians(expression, values, config.delta)

    ok = True
    for key, H_num in numerical.items():
        if key not in analytic:
            logger.warning("No analytic Jacobian for %s", key)
            ok = False
            continue
        H = analytic[key]
        if not np.allclose(H, H_num, rtol=config.rtol, atol=config.atol):
            logger.warning(
                "Jacobian mismatch for %s: max abs difference %.3e",
                key,
                float(np.max(np.abs(H - H_num))),
            )
            ok = False
    return ok
