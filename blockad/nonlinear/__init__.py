"""Nonlinear least-squares factors and their linearization.

Available components:
    - Values: variable assignment store
    - Noise models: Gaussian, Diagonal, Isotropic, Unit
    - NoiseModelFactor, ExpressionFactor: measurement factors
    - JacobianFactor: whitened sparse linear residual term
"""

from .factors import ExpressionFactor, NoiseModelFactor
from .jacobian_factor import JacobianFactor
from .noise_model import Diagonal, Gaussian, Isotropic, Unit
from .values import Values

__all__ = [
    "Values",
    # Noise models
    "Gaussian",
    "Diagonal",
    "Isotropic",
    "Unit",
    # Factors
    "NoiseModelFactor",
    "ExpressionFactor",
    "JacobianFactor",
]
