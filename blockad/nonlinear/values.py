"""Variable assignment store.

Values maps variable keys to manifold values. Expressions read from it
through at(key, value_type), which is the only lookup contract the
expression and factor layers rely on:

    - absent key        -> MissingVariableError
    - wrong value type  -> TypeMismatchError

The store itself is a plain mutable container; evaluation never mutates it,
so one snapshot can be read concurrently as long as nobody writes to it.
"""

import logging
from typing import Dict, Iterator, List, Mapping, Optional, Tuple, Type

import numpy as np

from ..errors import MissingVariableError, TypeMismatchError
from ..geometry.types import Manifold
from ..keys import Key

logger = logging.getLogger(__name__)


class Values:
    """
    Mapping from variable key to manifold value.

    Attributes are private; use insert/update/at to access entries. Insertion
    order is preserved and used for iteration.

    Example:
        >>> values = Values()
        >>> values.insert(1, Pose3.identity())
        >>> values.insert(2, Point3(0.0, 0.0, 1.0))
        >>> values.at(2, Point3)
        Point3(x=0, y=0, z=1)
    """

    def __init__(self, entries: Optional[Mapping[Key, Manifold]] = None):
        """
        Initialize Values.

        Args:
            entries: Optional initial key -> value mapping.
        """
        self._values: Dict[Key, Manifold] = {}
        if entries is not None:
            for key, value in entries.items():
                self.insert(key, value)

    @staticmethod
    def _check_manifold(key: Key, value: Manifold) -> None:
        if not isinstance(value, Manifold):
            raise TypeMismatchError(
                f"Value for key {key!s} must be a Manifold, got {type(value).__name__}"
            )

    def insert(self, key: Key, value: Manifold) -> None:
        """
        Add a new variable.

        Raises:
            ValueError: If the key already exists.
            TypeMismatchError: If value is not a Manifold.
        """
        if key in self._values:
            raise ValueError(f"Variable {key!s} already exists in values")
        self._check_manifold(key, value)
        self._values[key] = value
        logger.debug("Inserted %s: %s", key, type(value).__name__)

    def update(self, key: Key, value: Manifold) -> None:
        """
        Replace an existing variable with a value of the same type.

        Raises:
            MissingVariableError: If the key does not exist.
            TypeMismatchError: If the new value has a different type.
        """
        current = self.at(key)
        if type(value) is not type(current):
            raise TypeMismatchError(
                f"Cannot update {key!s}: stored {type(current).__name__}, "
                f"got {type(value).__name__}"
            )
        self._values[key] = value
        logger.debug("Updated %s", key)

    def at(self, key: Key, value_type: Optional[Type[Manifold]] = None) -> Manifold:
        """
        Look up a variable, optionally checking its type.

        Args:
            key: Variable key.
            value_type: Expected manifold type. If given, the stored value
                must be an instance of exactly this type.

        Returns:
            The stored value.

        Raises:
            MissingVariableError: If the key is absent.
            TypeMismatchError: If the stored value is not of value_type.
        """
        try:
            value = self._values[key]
        except KeyError:
            raise MissingVariableError(key) from None

        if value_type is not None and type(value) is not value_type:
            raise TypeMismatchError(
                f"Variable {key!s} has type {type(value).__name__}, "
                f"expected {value_type.__name__}"
            )
        return value

    def exists(self, key: Key) -> bool:
        return key in self._values

    def keys(self) -> List[Key]:
        return list(self._values.keys())

    def items(self) -> List[Tuple[Key, Manifold]]:
        return list(self._values.items())

    def dims(self) -> Dict[Key, int]:
        """Tangent dimension of every variable."""
        return {key: value.dim for key, value in self._values.items()}

    def retract(self, deltas: Mapping[Key, np.ndarray]) -> "Values":
        """
        Apply tangent-space perturbations, returning a new Values.

        Keys without a delta are copied unchanged.

        Raises:
            MissingVariableError: If a delta refers to an absent key.
        """
        for key in deltas:
            if key not in self._values:
                raise MissingVariableError(key)

        result = Values()
        for key, value in self._values.items():
            if key in deltas:
                value = value.retract(np.asarray(deltas[key], dtype=np.float64))
            result._values[key] = value
        return result

    def local_coordinates(self, other: "Values") -> Dict[Key, np.ndarray]:
        """
        Per-key tangent vectors taking self to other.

        Raises:
            MissingVariableError: If other lacks one of self's keys.
        """
        return {
            key: value.local_coordinates(other.at(key, type(value)))
            for key, value in self._values.items()
        }

    def __contains__(self, key: Key) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Key]:
        return iter(self._values)

    def __repr__(self) -> str:
        entries = ", ".join(f"{key!s}: {value!r}" for key, value in self._values.items())
        return f"Values({{{entries}}})"
