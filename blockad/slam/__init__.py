"""Bundle-adjustment factors written without expressions.

Main components:
    - ReprojectionFactor: pixel reprojection error with hand-derived Jacobians
"""

from .factors import ReprojectionFactor

__all__ = ["ReprojectionFactor"]
