"""Abstract syntax tree for formulas.

Every node supports four operations:

- ``evaluate(env)`` -- compute a ``NumberValue`` against an environment.
- ``differentiate(var)`` -- symbolic derivative, as a new tree.
- ``integrate(var)`` -- symbolic antiderivative, as a new tree.
- ``render()`` -- formula text that parses back to an equivalent tree.

Symbolic rules report their outcome through ``Transform`` so callers can
branch on "no rule" without catching exceptions; ``differentiate`` and
``integrate`` unwrap the outcome and raise ``UnsupportedOperationError``.

Nodes are immutable once built.
"""

from __future__ import annotations

import math
from enum import IntEnum
from typing import Any, Callable, Iterable, Mapping

from fincalc.formulas.environment import Environment
from fincalc.formulas.errors import ENGINE_ERRORS, UnsupportedOperationError
from fincalc.formulas.values import (
    DEFAULT_FORMAT,
    Continuous,
    Logical,
    NumberFormat,
    NumberValue,
)


class Level(IntEnum):
    """Binding strength of a node kind, lowest first."""

    OR = 1
    AND = 2
    COMPARISON = 3
    ADDITION = 4
    MULTIPLICATION = 5
    UNARY = 6
    EXPONENTIAL = 7
    FUNCTION_CONST = 8


# ---------------------------------------------------------------------------
# Symbolic outcome
# ---------------------------------------------------------------------------


class Transform:
    """Outcome of a symbolic rule: a new tree, or the reason there is none."""

    __slots__ = ("node", "reason")

    def __init__(self, node: Node | None = None, reason: str = "") -> None:
        self.node = node
        self.reason = reason

    @classmethod
    def ok(cls, node: Node) -> Transform:
        return cls(node)

    @classmethod
    def unsupported(cls, reason: str) -> Transform:
        return cls(None, reason)

    @property
    def supported(self) -> bool:
        return self.node is not None

    def map(self, fn: Callable[[Node], Node]) -> Transform:
        if self.node is None:
            return self
        return Transform(fn(self.node))

    def unwrap(self, operation: str, node_name: str) -> Node:
        if self.node is None:
            raise UnsupportedOperationError(operation, node_name, self.reason or None)
        return self.node

    def __repr__(self) -> str:
        if self.node is None:
            return f"Transform.unsupported({self.reason!r})"
        return f"Transform.ok({self.node.render()!r})"


def combine(
    first: Transform, second: Transform, fn: Callable[[Node, Node], Node]
) -> Transform:
    """Join two outcomes; the first unsupported one wins."""
    if first.node is None:
        return first
    if second.node is None:
        return second
    return Transform(fn(first.node, second.node))


# ---------------------------------------------------------------------------
# Base node
# ---------------------------------------------------------------------------


def is_literal(value: NumberValue) -> bool:
    """Whether a constant holding ``value`` renders as text that parses back."""
    return not isinstance(value, Continuous) or math.isfinite(value.magnitude)


class Node:
    """Base class for all formula tree nodes."""

    #: Display name used in error messages.
    name = "Node"
    level = Level.FUNCTION_CONST
    #: Fixed child count, or ``None`` when the subclass manages its own.
    arity: int | None = 0
    #: False for nodes whose value changes between evaluations (``rand``).
    pure = True

    __slots__ = ("_children",)

    def __init__(self, *children: Node) -> None:
        if self.arity is not None and len(children) != self.arity:
            raise ValueError(
                f"{self.name} takes {self.arity} sub-nodes, got {len(children)}"
            )
        self._children: tuple[Node, ...] = tuple(children)

    # -- structure ---------------------------------------------------------

    @property
    def children(self) -> tuple[Node, ...]:
        return self._children

    def precedence_level(self) -> int:
        return int(self.level)

    @property
    def number_format(self) -> NumberFormat | None:
        """Format of the first constant or function found in this tree."""
        for child in self._children:
            fmt = child.number_format
            if fmt is not None:
                return fmt
        return None

    def variables(self) -> set[str]:
        """Names of the free variables referenced by this tree."""
        names: set[str] = set()
        for child in self._children:
            names |= child.variables()
        return names

    def depends_on(self, var: str) -> bool:
        return var in self.variables()

    def is_deterministic(self) -> bool:
        return self.pure and all(c.is_deterministic() for c in self._children)

    def is_constant(self) -> bool:
        """True when the tree has no free variables and no random parts."""
        return self.is_deterministic() and not self.variables()

    def rebuild(self, children: Iterable[Node]) -> Node:
        """Same node kind over new children."""
        return type(self)(*children)

    def optimize(self) -> Node:
        """Fold variable-free deterministic subtrees into constants."""
        if self.is_constant():
            try:
                value = self._evaluate(Environment())
            except ENGINE_ERRORS:
                # Left unfolded; evaluate() reports the failure later.
                value = None
            if value is not None and is_literal(value):
                return Constant(value)
        return self.rebuild(child.optimize() for child in self._children)

    # -- evaluation --------------------------------------------------------

    def evaluate(
        self,
        env: Environment | Mapping[str, Any] | None = None,
        fmt: NumberFormat | None = None,
    ) -> NumberValue:
        """Compute this tree's value.

        Args:
            env: Variable bindings, as an ``Environment`` or a mapping of
                names to ``NumberValue`` or plain Python scalars.
            fmt: Format for plain Python scalars in *env*.

        Raises:
            FormulaTypeError: Variant mismatch or unbound variable.
            FormulaDomainError: A math function left its domain.
            ZeroDivisionError: Division by zero.
        """
        return self._evaluate(Environment.of(env, fmt))

    def _evaluate(self, env: Environment) -> NumberValue:
        raise NotImplementedError

    # -- symbolic calculus -------------------------------------------------

    def derivative(self, var: str) -> Transform:
        return Transform.unsupported(f"{self.name} has no derivative rule")

    def antiderivative(self, var: str) -> Transform:
        return Transform.unsupported(f"{self.name} has no integration rule")

    def differentiate(self, var: str) -> Node:
        """Symbolic derivative with respect to *var*.

        Raises:
            UnsupportedOperationError: If a node in the tree has no rule.
        """
        return self.derivative(var).unwrap("differentiate", self.name)

    def integrate(self, var: str) -> Node:
        """Symbolic antiderivative with respect to *var*.

        Raises:
            UnsupportedOperationError: If a node in the tree has no rule.
        """
        return self.antiderivative(var).unwrap("integrate", self.name)

    # -- text --------------------------------------------------------------

    def render(self) -> str:
        raise NotImplementedError

    def wrap(self, child: Node, strict: bool = False) -> str:
        """Render *child*, bracketed when it binds looser than this node.

        With *strict*, a child at the same level is bracketed too.
        """
        text = child.render()
        if child.level < self.level or (strict and child.level == self.level):
            return f"({text})"
        return text

    # -- identity ----------------------------------------------------------

    def _key(self) -> tuple:
        return (type(self).__name__, tuple(c._key() for c in self._children))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return self.render()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.render()}>"


# ---------------------------------------------------------------------------
# Leaves
# ---------------------------------------------------------------------------


class Constant(Node):
    """A literal value, optionally shown by a symbol such as ``pi``."""

    name = "Constant"

    __slots__ = ("_value", "_symbol")

    def __init__(self, value: NumberValue | float | bool, symbol: str | None = None) -> None:
        super().__init__()
        if isinstance(value, bool):
            value = Logical(value)
        elif not isinstance(value, NumberValue):
            value = Continuous(value)
        self._value = value
        self._symbol = symbol

    @classmethod
    def of(cls, magnitude: float, fmt: NumberFormat | None = None) -> Constant:
        return cls(Continuous(magnitude, fmt))

    @property
    def value(self) -> NumberValue:
        return self._value

    @property
    def symbol(self) -> str | None:
        return self._symbol

    @property
    def number_format(self) -> NumberFormat | None:
        return self._value.format

    def rebuild(self, children: Iterable[Node]) -> Node:
        return self

    def optimize(self) -> Node:
        return self

    def _evaluate(self, env: Environment) -> NumberValue:
        return self._value

    def derivative(self, var: str) -> Transform:
        if not isinstance(self._value, Continuous):
            return Transform.unsupported("logical constants have no derivative")
        return Transform.ok(Constant.of(0.0, self._value.format))

    def antiderivative(self, var: str) -> Transform:
        if not isinstance(self._value, Continuous):
            return Transform.unsupported("logical constants cannot be integrated")
        from fincalc.formulas.operators import product

        return Transform.ok(product(self, Variable(var)))

    def render(self) -> str:
        if self._symbol:
            return self._symbol
        if isinstance(self._value, Logical):
            return self._value.display()
        magnitude = self._value.magnitude
        text = self._value.format.literal(magnitude)
        if magnitude < 0 or text.startswith("-"):
            return f"({text})"
        return text

    def _key(self) -> tuple:
        if isinstance(self._value, Logical):
            return ("Constant", "logical", self._value.flag)
        return ("Constant", "continuous", self._value.magnitude)


PI_SYMBOL = "pi"


def pi_constant(fmt: NumberFormat | None = None) -> Constant:
    return Constant(Continuous(math.pi, fmt or DEFAULT_FORMAT), symbol=PI_SYMBOL)


class Variable(Node):
    """A named reference resolved against the environment."""

    name = "Variable"

    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        super().__init__()
        self._name = name

    @property
    def var_name(self) -> str:
        return self._name

    def rebuild(self, children: Iterable[Node]) -> Node:
        return self

    def variables(self) -> set[str]:
        return {self._name}

    def _evaluate(self, env: Environment) -> NumberValue:
        return env.lookup(self._name)

    def derivative(self, var: str) -> Transform:
        return Transform.ok(Constant.of(1.0 if var == self._name else 0.0))

    def antiderivative(self, var: str) -> Transform:
        from fincalc.formulas.operators import power, product, quotient

        if var == self._name:
            return Transform.ok(quotient(power(self, Constant.of(2.0)), Constant.of(2.0)))
        return Transform.ok(product(self, Variable(var)))

    def render(self) -> str:
        return self._name

    def _key(self) -> tuple:
        return ("Variable", self._name)
