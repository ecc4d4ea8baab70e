"""Operator nodes (arithmetic, comparison, logic) and their calculus rules.

The lower-case constructors at the bottom (``total``, ``product``, ...)
build trees for symbolic results.  They drop additive zeros and
multiplicative ones and fold constant operands, so a derivative of
``3*x`` is ``3`` rather than ``0*x+3*1``.
"""

from __future__ import annotations

from fincalc.formulas.environment import Environment
from fincalc.formulas.errors import ENGINE_ERRORS
from fincalc.formulas.nodes import Constant, Level, Node, Transform, Variable, combine, is_literal
from fincalc.formulas.values import Continuous, Logical, NumberFormat, NumberValue


# ---------------------------------------------------------------------------
# Shapes
# ---------------------------------------------------------------------------


class BinaryNode(Node):
    """Two-operand infix node, left-associative unless overridden."""

    arity = 2
    symbol = ""

    __slots__ = ()

    @property
    def left(self) -> Node:
        return self._children[0]

    @property
    def right(self) -> Node:
        return self._children[1]

    def _evaluate(self, env: Environment) -> NumberValue:
        return self.apply(self.left._evaluate(env), self.right._evaluate(env))

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        raise NotImplementedError

    def render(self) -> str:
        return f"{self.wrap(self.left)}{self.symbol}{self.wrap(self.right, strict=True)}"


class UnaryNode(Node):
    """Prefix operator node."""

    arity = 1
    level = Level.UNARY
    symbol = ""

    __slots__ = ()

    @property
    def operand(self) -> Node:
        return self._children[0]

    def render(self) -> str:
        return f"{self.symbol}{self.wrap(self.operand)}"


# ---------------------------------------------------------------------------
# Arithmetic
# ---------------------------------------------------------------------------


class Add(BinaryNode):
    name = "Add"
    level = Level.ADDITION
    symbol = "+"

    __slots__ = ()

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        return lhs.add(rhs)

    def derivative(self, var: str) -> Transform:
        return combine(self.left.derivative(var), self.right.derivative(var), total)

    def antiderivative(self, var: str) -> Transform:
        return combine(self.left.antiderivative(var), self.right.antiderivative(var), total)


class Sub(BinaryNode):
    name = "Sub"
    level = Level.ADDITION
    symbol = "-"

    __slots__ = ()

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        return lhs.add(rhs, additive=False)

    def derivative(self, var: str) -> Transform:
        return combine(self.left.derivative(var), self.right.derivative(var), difference)

    def antiderivative(self, var: str) -> Transform:
        return combine(
            self.left.antiderivative(var), self.right.antiderivative(var), difference
        )


class Mul(BinaryNode):
    name = "Mul"
    level = Level.MULTIPLICATION
    symbol = "*"

    __slots__ = ()

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        return lhs.mul(rhs)

    def derivative(self, var: str) -> Transform:
        f, g = self.left, self.right
        return combine(
            f.derivative(var),
            g.derivative(var),
            lambda df, dg: total(product(df, g), product(f, dg)),
        )

    def antiderivative(self, var: str) -> Transform:
        f, g = self.left, self.right
        if not self.depends_on(var):
            return Transform.ok(product(self, Variable(var)))
        if not f.depends_on(var):
            return g.antiderivative(var).map(lambda ig: product(f, ig))
        if not g.depends_on(var):
            return f.antiderivative(var).map(lambda if_: product(if_, g))
        return Transform.unsupported(
            f"no rule for a product of two expressions in {var}"
        )


class Div(BinaryNode):
    name = "Div"
    level = Level.MULTIPLICATION
    symbol = "/"

    __slots__ = ()

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        return lhs.div(rhs)

    def derivative(self, var: str) -> Transform:
        f, g = self.left, self.right
        return combine(
            f.derivative(var),
            g.derivative(var),
            lambda df, dg: quotient(
                difference(product(df, g), product(f, dg)),
                power(g, _const(2.0, g)),
            ),
        )

    def antiderivative(self, var: str) -> Transform:
        f, g = self.left, self.right
        if not self.depends_on(var):
            return Transform.ok(product(self, Variable(var)))
        if not g.depends_on(var):
            return f.antiderivative(var).map(lambda if_: quotient(if_, g))
        if not f.depends_on(var) and g == Variable(var):
            return Transform.ok(product(f, call("ln", call("abs", g))))
        return Transform.unsupported(f"no rule for a quotient with {var} in the divisor")


class Pow(BinaryNode):
    """Exponentiation; right-associative, so the base is bracketed at equal level."""

    name = "Pow"
    level = Level.EXPONENTIAL
    symbol = "^"

    __slots__ = ()

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        return lhs.pow(rhs)

    def render(self) -> str:
        return f"{self.wrap(self.left, strict=True)}^{self.wrap(self.right)}"

    def derivative(self, var: str) -> Transform:
        base, exponent = self.left, self.right
        if not exponent.depends_on(var):
            return base.derivative(var).map(
                lambda db: product(
                    product(exponent, power(base, difference(exponent, _const(1.0, exponent)))),
                    db,
                )
            )
        if not base.depends_on(var):
            return exponent.derivative(var).map(
                lambda de: product(product(self, call("ln", base)), de)
            )
        return combine(
            base.derivative(var),
            exponent.derivative(var),
            lambda db, de: product(
                self,
                total(product(de, call("ln", base)), quotient(product(exponent, db), base)),
            ),
        )

    def antiderivative(self, var: str) -> Transform:
        base, exponent = self.left, self.right
        if not self.depends_on(var):
            return Transform.ok(product(self, Variable(var)))
        if base == Variable(var) and not exponent.depends_on(var):
            exponent = exponent.optimize()
            if _is_value(exponent, -1.0):
                return Transform.ok(call("ln", call("abs", base)))
            raised = total(exponent, _const(1.0, exponent))
            return Transform.ok(quotient(power(base, raised), raised))
        if exponent == Variable(var) and not base.depends_on(var):
            return Transform.ok(quotient(self, call("ln", base)))
        return Transform.unsupported(f"no rule for this power of {var}")


class Neg(UnaryNode):
    name = "Neg"
    symbol = "-"

    __slots__ = ()

    def _evaluate(self, env: Environment) -> NumberValue:
        return self.operand._evaluate(env).neg()

    def derivative(self, var: str) -> Transform:
        return self.operand.derivative(var).map(negate)

    def antiderivative(self, var: str) -> Transform:
        return self.operand.antiderivative(var).map(negate)


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


class Comparison(BinaryNode):
    """Non-chaining comparison; both operands bracketed at equal level."""

    level = Level.COMPARISON

    __slots__ = ()

    def render(self) -> str:
        return (
            f"{self.wrap(self.left, strict=True)}{self.symbol}"
            f"{self.wrap(self.right, strict=True)}"
        )

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        return Logical(self.test(lhs, rhs), lhs.format)

    def test(self, lhs: NumberValue, rhs: NumberValue) -> bool:
        raise NotImplementedError


class Equals(Comparison):
    name = "Equals"
    symbol = "=="

    __slots__ = ()

    def test(self, lhs: NumberValue, rhs: NumberValue) -> bool:
        return lhs.equals(rhs)


class NotEquals(Comparison):
    name = "NotEquals"
    symbol = "!="

    __slots__ = ()

    def test(self, lhs: NumberValue, rhs: NumberValue) -> bool:
        return not lhs.equals(rhs)


class Greater(Comparison):
    name = "Greater"
    symbol = ">"

    __slots__ = ()

    def test(self, lhs: NumberValue, rhs: NumberValue) -> bool:
        return lhs.compare_to(rhs) > 0


class GreaterEquals(Comparison):
    name = "GreaterEquals"
    symbol = ">="

    __slots__ = ()

    def test(self, lhs: NumberValue, rhs: NumberValue) -> bool:
        return lhs.compare_to(rhs) >= 0


class Less(Comparison):
    name = "Less"
    symbol = "<"

    __slots__ = ()

    def test(self, lhs: NumberValue, rhs: NumberValue) -> bool:
        return lhs.compare_to(rhs) < 0


class LessEquals(Comparison):
    name = "LessEquals"
    symbol = "<="

    __slots__ = ()

    def test(self, lhs: NumberValue, rhs: NumberValue) -> bool:
        return lhs.compare_to(rhs) <= 0


# ---------------------------------------------------------------------------
# Logic
# ---------------------------------------------------------------------------


class And(BinaryNode):
    name = "And"
    level = Level.AND
    symbol = "&&"

    __slots__ = ()

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        return lhs.and_(rhs)


class Or(BinaryNode):
    name = "Or"
    level = Level.OR
    symbol = "||"

    __slots__ = ()

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        return lhs.or_(rhs)


class Xor(BinaryNode):
    name = "Xor"
    level = Level.OR
    symbol = "##"

    __slots__ = ()

    def apply(self, lhs: NumberValue, rhs: NumberValue) -> NumberValue:
        return lhs.xor(rhs)


class Not(UnaryNode):
    name = "Not"
    symbol = "!"

    __slots__ = ()

    def _evaluate(self, env: Environment) -> NumberValue:
        return self.operand._evaluate(env).not_()


# Lark rule name -> node class, shared with the parser.
BINARY_RULES: dict[str, type[BinaryNode]] = {
    "add": Add,
    "sub": Sub,
    "mul": Mul,
    "div": Div,
    "pow": Pow,
    "eq": Equals,
    "neq": NotEquals,
    "gt": Greater,
    "gte": GreaterEquals,
    "lt": Less,
    "lte": LessEquals,
    "and_": And,
    "or_": Or,
    "xor": Xor,
}


# ---------------------------------------------------------------------------
# Simplifying constructors
# ---------------------------------------------------------------------------


def _fmt(*nodes: Node) -> NumberFormat | None:
    for node in nodes:
        fmt = node.number_format
        if fmt is not None:
            return fmt
    return None


def _const(magnitude: float, *like: Node) -> Constant:
    return Constant.of(magnitude, _fmt(*like))


def _is_value(node: Node, magnitude: float) -> bool:
    return (
        isinstance(node, Constant)
        and isinstance(node.value, Continuous)
        and node.symbol is None
        and node.value.magnitude == magnitude
    )


def _is_number(node: Node) -> bool:
    return isinstance(node, Constant) and isinstance(node.value, Continuous) and node.symbol is None


def _fold(node: BinaryNode) -> Node:
    if _is_number(node.left) and _is_number(node.right):
        try:
            value = node._evaluate(Environment())
        except ENGINE_ERRORS:
            return node
        if is_literal(value):
            return Constant(value)
    return node


def total(a: Node, b: Node) -> Node:
    if _is_value(a, 0.0):
        return b
    if _is_value(b, 0.0):
        return a
    if isinstance(b, Neg):
        return difference(a, b.operand)
    return _fold(Add(a, b))


def difference(a: Node, b: Node) -> Node:
    if _is_value(b, 0.0):
        return a
    if _is_value(a, 0.0):
        return negate(b)
    if a == b and a.is_deterministic():
        return _const(0.0, a)
    return _fold(Sub(a, b))


def product(a: Node, b: Node) -> Node:
    if _is_value(a, 0.0) or _is_value(b, 0.0):
        return _const(0.0, a, b)
    if _is_value(a, 1.0):
        return b
    if _is_value(b, 1.0):
        return a
    if _is_value(a, -1.0):
        return negate(b)
    if _is_value(b, -1.0):
        return negate(a)
    return _fold(Mul(a, b))


def quotient(a: Node, b: Node) -> Node:
    if _is_value(b, 1.0):
        return a
    if _is_value(a, 0.0) and not _is_value(b, 0.0):
        return _const(0.0, a)
    return _fold(Div(a, b))


def power(a: Node, b: Node) -> Node:
    if _is_value(b, 0.0):
        return _const(1.0, a)
    if _is_value(b, 1.0):
        return a
    return _fold(Pow(a, b))


def negate(a: Node) -> Node:
    if _is_number(a):
        return Constant(a.value.neg())
    if isinstance(a, Neg):
        return a.operand
    return Neg(a)


def call(name: str, *args: Node, fmt: NumberFormat | None = None) -> Node:
    """Build a built-in function call node, e.g. ``call("ln", x)``."""
    from fincalc.functions.registry import FunctionRegistry

    return FunctionRegistry.create_builtin(name, list(args), fmt or _fmt(*args))
