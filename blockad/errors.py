"""Error types raised by blockad.

All errors are programmer or data errors surfaced synchronously to the
caller. Each one also derives from the closest built-in exception so that
callers who only know the standard hierarchy can still catch them:

    - MissingVariableError: a key is absent from a Values store (KeyError)
    - TypeMismatchError: a stored or argument value has the wrong type (TypeError)
    - DegenerateGeometryError: a primitive's precondition is violated (ValueError)
    - DimensionMismatchError: noise model, measurement or block sizes disagree (ValueError)
"""


class BlockADError(Exception):
    """Base class for all blockad errors."""


class MissingVariableError(BlockADError, KeyError):
    """A variable key was not found in the Values store."""

    def __init__(self, key, message=None):
        self.key = key
        super().__init__(message or f"Variable {key!s} not found in values")

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0])


class TypeMismatchError(BlockADError, TypeError):
    """A value's runtime type disagrees with the expected type."""


class DegenerateGeometryError(BlockADError, ValueError):
    """A geometric primitive was evaluated outside its domain."""


class DimensionMismatchError(BlockADError, ValueError):
    """Two quantities that must share a dimension do not."""
