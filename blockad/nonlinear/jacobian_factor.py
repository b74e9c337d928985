"""Sparse linear residual term produced by linearization.

A JacobianFactor represents the least-squares term

    ½ ‖ Σ_k A_k δ_k − b ‖²

in whitened (unit-noise) units, where δ_k is the tangent-space update of
variable k. It is the hand-off format to the linear-system assembler of an
outer Gauss-Newton or Levenberg-Marquardt optimizer:

    - hessian(): per-factor contribution AᵀA, Aᵀb to the normal equations
    - jacobian(): dense [A | b] stacked over a chosen key ordering
"""

from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..errors import DimensionMismatchError, MissingVariableError
from ..keys import Key


class JacobianFactor:
    """
    Keyed Jacobian blocks together with a residual vector.

    Attributes:
        b: Residual vector, shape (rows,).

    Example:
        >>> factor = JacobianFactor({1: np.eye(2)}, np.array([1.0, 0.0]))
        >>> factor.error({1: np.array([1.0, 0.0])})
        0.0
    """

    def __init__(self, terms: Mapping[Key, np.ndarray], b: np.ndarray):
        """
        Initialize JacobianFactor.

        Args:
            terms: Ordered key -> block mapping, each block of shape
                (rows, dim of variable).
            b: Residual vector of shape (rows,).

        Raises:
            DimensionMismatchError: If b is not 1-D or a block's row count
                differs from len(b).
        """
        b = np.array(b, dtype=np.float64)
        if b.ndim != 1:
            raise DimensionMismatchError(f"b must be 1-D, got shape {b.shape}")

        self._blocks: Dict[Key, np.ndarray] = {}
        for key, block in terms.items():
            block = np.array(block, dtype=np.float64)
            if block.ndim != 2 or block.shape[0] != b.shape[0]:
                raise DimensionMismatchError(
                    f"Block for {key!s} has shape {block.shape}, expected ({b.shape[0]}, n)"
                )
            self._blocks[key] = block
        self.b = b

    @property
    def rows(self) -> int:
        return self.b.shape[0]

    def keys(self) -> List[Key]:
        return list(self._blocks.keys())

    def get_a(self, key: Key) -> np.ndarray:
        """
        Block for one key.

        Raises:
            MissingVariableError: If the factor does not involve key.
        """
        try:
            return self._blocks[key]
        except KeyError:
            raise MissingVariableError(key, f"Key {key!s} not in Jacobian factor") from None

    def dims(self) -> Dict[Key, int]:
        return {key: block.shape[1] for key, block in self._blocks.items()}

    def _ordering(self, ordering: Optional[Sequence[Key]]) -> List[Key]:
        if ordering is None:
            return self.keys()
        for key in self._blocks:
            if key not in ordering:
                raise ValueError(f"Ordering does not contain factor key {key!s}")
        return list(ordering)

    def jacobian(
        self,
        ordering: Optional[Sequence[Key]] = None,
        dims: Optional[Mapping[Key, int]] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Dense Jacobian and residual over an ordering.

        Args:
            ordering: Key order of the columns. Defaults to the factor's own
                keys. May include keys the factor does not involve; their
                columns are zero and need an entry in dims.
            dims: Tangent dimensions for keys not in this factor.

        Returns:
            Tuple (A, b) with A of shape (rows, Σ dims).
        """
        ordering = self._ordering(ordering)
        columns = []
        for key in ordering:
            if key in self._blocks:
                columns.append(self._blocks[key])
            else:
                if dims is None or key not in dims:
                    raise ValueError(f"Dimension of {key!s} is unknown to this factor")
                columns.append(np.zeros((self.rows, dims[key])))
        A = np.hstack(columns) if columns else np.zeros((self.rows, 0))
        return A, self.b.copy()

    def hessian(
        self,
        ordering: Optional[Sequence[Key]] = None,
        dims: Optional[Mapping[Key, int]] = None,
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Contribution of this factor to the normal equations.

        Returns:
            Tuple (H, g) with H = AᵀA and g = Aᵀb, so that the Gauss-Newton
            step solves H δ = g.
        """
        A, b = self.jacobian(ordering, dims)
        return A.T @ A, A.T @ b

    def error(self, deltas: Mapping[Key, np.ndarray]) -> float:
        """
        ½ ‖Σ_k A_k δ_k − b‖².

        Raises:
            MissingVariableError: If deltas lacks one of the factor's keys.
        """
        r = -self.b
        for key, block in self._blocks.items():
            if key not in deltas:
                raise MissingVariableError(key, f"No delta given for {key!s}")
            r = r + block @ np.asarray(deltas[key], dtype=np.float64)
        return 0.5 * float(r @ r)

    def equals(self, other: "JacobianFactor", tol: float = 1e-9) -> bool:
        """Same key set, blocks and residual within an absolute tolerance."""
        if not isinstance(other, JacobianFactor):
            return False
        if set(self._blocks) != set(other._blocks) or self.rows != other.rows:
            return False
        if not np.allclose(self.b, other.b, rtol=0.0, atol=tol):
            return False
        for key, block in self._blocks.items():
            other_block = other._blocks[key]
            if block.shape != other_block.shape:
                return False
            if not np.allclose(block, other_block, rtol=0.0, atol=tol):
                return False
        return True

    def __repr__(self) -> str:
        keys = ", ".join(f"{key!s}" for key in self._blocks)
        return f"JacobianFactor(keys=[{keys}], rows={self.rows})"
