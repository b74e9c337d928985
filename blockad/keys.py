"""Variable keys.

A key is any hashable identifier naming one unknown. Plain integers work
directly; Symbol adds a readable composite key made of a character and an
index, e.g. x1 for the first pose and l7 for the seventh landmark.
"""

from typing import Hashable, NamedTuple

Key = Hashable


class Symbol(NamedTuple):
    """Composite variable key.

    Attributes:
        char: Single character naming the variable family.
        index: Non-negative index within the family.
    """

    char: str
    index: int

    def __str__(self) -> str:
        return f"{self.char}{self.index}"

    def __repr__(self) -> str:
        return f"Symbol({self.char!r}, {self.index})"


def symbol(c: str, index: int) -> Symbol:
    """
    Create a validated Symbol key.

    Args:
        c: Single character, e.g. "x" for poses, "l" for landmarks.
        index: Non-negative integer index.

    Returns:
        Symbol key.

    Raises:
        ValueError: If c is not a single character or index is negative.

    Example:
        >>> str(symbol("x", 1))
        'x1'
    """
    if not isinstance(c, str) or len(c) != 1:
        raise ValueError(f"Symbol character must be a single character, got {c!r}")
    if isinstance(index, bool) or not isinstance(index, int) or index < 0:
        raise ValueError(f"Symbol index must be a non-negative integer, got {index!r}")
    return Symbol(c, index)
