"""Expression trees and chain-rule derivative propagation.

An Expression is an immutable node evaluating to a manifold value. There are
exactly three variants:

    - Constant(constant): fixed value, no variable dependency
    - Leaf(value_type, key): variable looked up in a Values store
    - Composed(function, children): a Primitive applied to 1-2 child expressions

Evaluation recurses depth-first. derivatives() propagates Jacobian blocks
bottom-up with the chain rule: for every child i of a Composed node and every
key k in the child's JacobianMap, the block Hi @ Ji[k] is added to the node's
map at k, where Hi is the primitive's local Jacobian w.r.t. argument i.
Blocks reaching the same key along different paths are summed.

Children may be shared, within one tree or across trees. Within a single
traversal the result of each node instance is memoized by identity.
"""

from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
    Type,
)

import numpy as np

from ..errors import DimensionMismatchError, TypeMismatchError
from ..geometry.types import Manifold
from ..keys import Key
from .jacobians import JacobianMap

if TYPE_CHECKING:
    from ..nonlinear.values import Values

PrimitiveFunction = Callable[..., Tuple[Manifold, Sequence[np.ndarray]]]


@dataclass(frozen=True, eq=False)
class Primitive:
    """
    A differentiable function with exact local Jacobians.

    Attributes:
        name: Name used in reprs and error messages.
        function: Callable taking the argument values and returning
            (value, [H_arg1, H_arg2, ...]) where H_argi has shape
            (value.dim, argi.dim).
        arg_types: Manifold type accepted for each argument; the arity of
            the primitive is len(arg_types).
        result_type: Manifold type of the result. None means "same type as
            the first argument".

    Example:
        >>> def _negate(p):
        ...     return Point2.from_array(-p.to_array()), [-np.eye(2)]
        >>> negate = Primitive("negate", _negate, (Point2,), Point2)
        >>> negate(Point2(1.0, 2.0))[0]
        Point2(x=-1, y=-2)
    """

    name: str
    function: PrimitiveFunction
    arg_types: Tuple[Type[Manifold], ...]
    result_type: Optional[Type[Manifold]] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "arg_types", tuple(self.arg_types))
        if not self.arg_types:
            raise ValueError(f"Primitive {self.name} must take at least one argument")

    @property
    def arity(self) -> int:
        return len(self.arg_types)

    def output_type(self, argument_types: Sequence[Type[Manifold]]) -> Type[Manifold]:
        """Result type given the (declared) types of the arguments."""
        if self.result_type is not None:
            return self.result_type
        return argument_types[0]

    def __call__(self, *args: Manifold) -> Tuple[Manifold, List[np.ndarray]]:
        """
        Evaluate the primitive and its local Jacobians.

        Raises:
            ValueError: If the number of arguments differs from the arity.
            TypeMismatchError: If an argument or the result has the wrong type.
            DimensionMismatchError: If a local Jacobian has the wrong shape.
        """
        if len(args) != self.arity:
            raise ValueError(
                f"Primitive {self.name} takes {self.arity} argument(s), got {len(args)}"
            )
        for i, (arg, expected) in enumerate(zip(args, self.arg_types)):
            if not isinstance(arg, expected):
                raise TypeMismatchError(
                    f"Argument {i} of {self.name} must be {expected.__name__}, "
                    f"got {type(arg).__name__}"
                )

        value, jacobians = self.function(*args)

        expected_type = self.output_type([type(arg) for arg in args])
        if type(value) is not expected_type:
            raise TypeMismatchError(
                f"{self.name} returned {type(value).__name__}, expected {expected_type.__name__}"
            )
        jacobians = [np.asarray(H, dtype=np.float64) for H in jacobians]
        if len(jacobians) != self.arity:
            raise DimensionMismatchError(
                f"{self.name} returned {len(jacobians)} Jacobian(s) for {self.arity} argument(s)"
            )
        for i, (H, arg) in enumerate(zip(jacobians, args)):
            if H.shape != (value.dim, arg.dim):
                raise DimensionMismatchError(
                    f"Jacobian {i} of {self.name} has shape {H.shape}, "
                    f"expected {(value.dim, arg.dim)}"
                )
        return value, jacobians

    def __repr__(self) -> str:
        args = ", ".join(t.__name__ for t in self.arg_types)
        return f"Primitive({self.name}: ({args}))"


class Expression:
    """
    Base class of the three expression variants.

    Subclasses provide value_type and children(); evaluation and
    differentiation are implemented once, below, over all variants.
    """

    value_type: Type[Manifold]

    def children(self) -> Tuple["Expression", ...]:
        return ()

    def keys(self) -> List[Key]:
        """Unique variable keys, in depth-first order of first appearance."""
        keys: List[Key] = []
        seen_keys = set()
        seen_nodes = set()

        def visit(node: Expression) -> None:
            if id(node) in seen_nodes:
                return
            seen_nodes.add(id(node))
            if isinstance(node, Leaf) and node.key not in seen_keys:
                seen_keys.add(node.key)
                keys.append(node.key)
            for child in node.children():
                visit(child)

        visit(self)
        return keys

    def value(self, values: "Values") -> Manifold:
        """
        Evaluate the expression.

        Raises:
            MissingVariableError: If a Leaf's key is absent from values.
            TypeMismatchError: If a stored value has the wrong type.
            DegenerateGeometryError: If a primitive's precondition fails.
        """
        return _evaluate_value(self, values, {})

    def derivatives(self, values: "Values") -> Tuple[Manifold, JacobianMap]:
        """
        Evaluate the expression and its Jacobians w.r.t. every reachable key.

        Returns:
            Tuple (value, jacobians) where jacobians[k] has shape
            (value.dim, dim of variable k).

        Raises:
            Same as value().
        """
        return _evaluate_derivatives(self, values, {})

    def __sub__(self, other: "Expression") -> "Expression":
        # Import here to avoid circular dependency
        from .primitives import subtract

        if not isinstance(other, Expression):
            return NotImplemented
        return subtract(self, other)


@dataclass(frozen=True, eq=False)
class Constant(Expression):
    """Expression with a fixed value and no variable dependency."""

    constant: Manifold

    def __post_init__(self) -> None:
        if not isinstance(self.constant, Manifold):
            raise TypeMismatchError(
                f"Constant must hold a Manifold, got {type(self.constant).__name__}"
            )

    @property
    def value_type(self) -> Type[Manifold]:
        return type(self.constant)

    def __repr__(self) -> str:
        return f"Constant({self.constant!r})"


@dataclass(frozen=True, eq=False)
class Leaf(Expression):
    """
    Expression reading one variable from the Values store.

    Attributes:
        value_type: Declared manifold type of the variable.
        key: Variable key.
    """

    value_type: Type[Manifold]
    key: Key

    def __post_init__(self) -> None:
        if not (isinstance(self.value_type, type) and issubclass(self.value_type, Manifold)):
            raise TypeMismatchError(f"Leaf type must be a Manifold subclass, got {self.value_type!r}")

    def __repr__(self) -> str:
        return f"Leaf({self.value_type.__name__}, {self.key!s})"


@dataclass(frozen=True, eq=False)
class Composed(Expression):
    """
    Expression applying a Primitive to child expressions.

    Raises (at construction):
        ValueError: If the number of children differs from the arity.
        TypeMismatchError: If a child's value_type is not accepted by the
            primitive.
    """

    function: Primitive
    arguments: Tuple[Expression, ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(self.arguments))
        if len(self.arguments) != self.function.arity:
            raise ValueError(
                f"{self.function.name} takes {self.function.arity} argument(s), "
                f"got {len(self.arguments)}"
            )
        for i, (child, expected) in enumerate(zip(self.arguments, self.function.arg_types)):
            if not isinstance(child, Expression):
                raise TypeMismatchError(
                    f"Argument {i} of {self.function.name} must be an Expression, "
                    f"got {type(child).__name__}"
                )
            if not issubclass(child.value_type, expected):
                raise TypeMismatchError(
                    f"Argument {i} of {self.function.name} must evaluate to "
                    f"{expected.__name__}, got {child.value_type.__name__}"
                )

    @property
    def value_type(self) -> Type[Manifold]:
        return self.function.output_type([child.value_type for child in self.arguments])

    def children(self) -> Tuple[Expression, ...]:
        return self.arguments

    def __repr__(self) -> str:
        args = ", ".join(repr(child) for child in self.arguments)
        return f"{self.function.name}({args})"


def _evaluate_value(node: Expression, values: "Values", memo: Dict[int, Manifold]) -> Manifold:
    cached = memo.get(id(node))
    if cached is not None:
        return cached

    if isinstance(node, Constant):
        result = node.constant
    elif isinstance(node, Leaf):
        result = values.at(node.key, node.value_type)
    elif isinstance(node, Composed):
        args = [_evaluate_value(child, values, memo) for child in node.arguments]
        result, _ = node.function(*args)
    else:
        raise TypeError(f"Unknown expression variant {type(node).__name__}")

    memo[id(node)] = result
    return result


def _evaluate_derivatives(
    node: Expression,
    values: "Values",
    memo: Dict[int, Tuple[Manifold, JacobianMap]],
) -> Tuple[Manifold, JacobianMap]:
    cached = memo.get(id(node))
    if cached is not None:
        return cached

    if isinstance(node, Constant):
        result = (node.constant, JacobianMap())
    elif isinstance(node, Leaf):
        value = values.at(node.key, node.value_type)
        jacobians = JacobianMap()
        jacobians.add(node.key, np.eye(value.dim))
        result = (value, jacobians)
    elif isinstance(node, Composed):
        child_results = [
            _evaluate_derivatives(child, values, memo) for child in node.arguments
        ]
        value, local_jacobians = node.function(*(v for v, _ in child_results))
        jacobians = JacobianMap()
        for H, (_, child_jacobians) in zip(local_jacobians, child_results):
            for key, block in child_jacobians.items():
                jacobians.add(key, H @ block)
        result = (value, jacobians)
    else:
        raise TypeError(f"Unknown expression variant {type(node).__name__}")

    memo[id(node)] = result
    return result
