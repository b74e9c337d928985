"""Expression trees with automatic Jacobian propagation.

Available components:
    - Expression variants: Constant, Leaf, Composed
    - Primitive: differentiable function with exact local Jacobians
    - JacobianMap: accumulating key -> Jacobian block map
    - Primitive library: transform_to, transform_from, compose, project,
      uncalibrate, calibrate, subtract
"""

from .expression import Composed, Constant, Expression, Leaf, Primitive
from .jacobians import JacobianMap
from .primitives import (
    calibrate,
    compose,
    project,
    subtract,
    transform_from,
    transform_to,
    uncalibrate,
)

__all__ = [
    # Nodes
    "Expression",
    "Constant",
    "Leaf",
    "Composed",
    "Primitive",
    "JacobianMap",
    # Primitive library
    "transform_to",
    "transform_from",
    "compose",
    "project",
    "uncalibrate",
    "calibrate",
    "subtract",
]
