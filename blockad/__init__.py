"""Block automatic differentiation for nonlinear least-squares factors.

This package builds measurement factors from trees of differentiable
geometric functions and linearizes them without hand-written derivative code:
- geometry: Manifold value types (Point2, Point3, Pose3, Cal3_S2) and camera math
- expressions: Expression trees, the primitive library and chain-rule propagation
- nonlinear: Values store, noise models, ExpressionFactor and JacobianFactor
- slam: Hand-coded reference factors
- utils: Numerical differentiation helpers
"""

import logging

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.1.0"
