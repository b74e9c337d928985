"""Utilities for verifying analytic Jacobians.

Available components:
    - numerical_derivative: central differences through retract / local_coordinates
    - numerical_jacobians: per-key numerical Jacobians of an expression
    - check_expression_jacobians: analytic vs numerical comparison
    - DerivativeCheckConfig: step size and tolerances
"""

from .numerical import (
    DerivativeCheckConfig,
    check_expression_jacobians,
    numerical_derivative,
    numerical_jacobians,
)

__all__ = [
    "DerivativeCheckConfig",
    "numerical_derivative",
    "numerical_jacobians",
    "check_expression_jacobians",
]
