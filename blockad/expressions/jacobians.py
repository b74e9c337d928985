"""Accumulating map of Jacobian blocks.

A JacobianMap holds, for one expression output, the derivative block with
respect to every variable key the expression depends on. Keys can be reached
along several paths of a tree (shared sub-expressions, or the same variable
used twice), so blocks are accumulated with add() and never overwritten.
"""

from typing import Dict, ItemsView, Iterator, KeysView, Optional

import numpy as np

from ..errors import DimensionMismatchError
from ..keys import Key


class JacobianMap:
    """
    Key -> block mapping with add-or-insert semantics.

    All blocks share the same number of rows (the tangent dimension of the
    expression output). Insertion order of first appearance is preserved.

    Example:
        >>> J = JacobianMap()
        >>> J.add(1, np.eye(2))
        >>> J.add(1, np.eye(2))
        >>> J[1]
        array([[2., 0.],
               [0., 2.]])
    """

    def __init__(self) -> None:
        self._blocks: Dict[Key, np.ndarray] = {}
        self._rows: Optional[int] = None

    def add(self, key: Key, block: np.ndarray) -> None:
        """
        Add block to the entry for key, inserting it if key is new.

        Raises:
            DimensionMismatchError: If block is not 2-D, has a different row
                count than the blocks already present, or a different column
                count than an existing block for the same key.
        """
        block = np.asarray(block, dtype=np.float64)
        if block.ndim != 2:
            raise DimensionMismatchError(
                f"Jacobian block for {key!s} must be 2-D, got shape {block.shape}"
            )
        if self._rows is not None and block.shape[0] != self._rows:
            raise DimensionMismatchError(
                f"Jacobian block for {key!s} has {block.shape[0]} rows, expected {self._rows}"
            )

        existing = self._blocks.get(key)
        if existing is None:
            self._blocks[key] = block
        else:
            if existing.shape != block.shape:
                raise DimensionMismatchError(
                    f"Cannot add block of shape {block.shape} to block of shape "
                    f"{existing.shape} for {key!s}"
                )
            # Fresh array: blocks may be shared with memoized sub-results.
            self._blocks[key] = existing + block
        self._rows = block.shape[0]

    @property
    def rows(self) -> Optional[int]:
        """Row count shared by all blocks, None while empty."""
        return self._rows

    def copy(self) -> "JacobianMap":
        result = JacobianMap()
        for key, block in self._blocks.items():
            result.add(key, block.copy())
        return result

    def keys(self) -> KeysView:
        return self._blocks.keys()

    def items(self) -> ItemsView:
        return self._blocks.items()

    def __getitem__(self, key: Key) -> np.ndarray:
        return self._blocks[key]

    def __contains__(self, key: Key) -> bool:
        return key in self._blocks

    def __len__(self) -> int:
        return len(self._blocks)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._blocks)

    def __repr__(self) -> str:
        shapes = ", ".join(f"{key!s}: {block.shape}" for key, block in self._blocks.items())
        return f"JacobianMap({{{shapes}}})"
