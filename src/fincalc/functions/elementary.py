"""Single-argument elementary functions: trigonometric, hyperbolic, ...

Every function is described by one ``ElementaryRule``: the real function
itself, the outer derivative ``f'(u)`` used by the chain rule, and an
antiderivative ``F(u)`` usable when ``u`` is exactly the integration
variable.  Missing rules make the symbolic operation unsupported.
"""

from __future__ import annotations

import math
import random
from typing import Callable

from fincalc.formulas.environment import Environment
from fincalc.formulas.nodes import Constant, Node, Transform, Variable
from fincalc.formulas.operators import (
    difference,
    negate,
    power,
    product,
    quotient,
    total,
)
from fincalc.formulas.values import NumberFormat, NumberValue
from fincalc.functions.base import Function
from fincalc.functions.registry import register_builtin

NodeRule = Callable[[Node, NumberFormat], Node]


class ElementaryRule:
    """Evaluation and calculus rules for one elementary function."""

    __slots__ = ("name", "func", "outer_derivative", "antiderivative", "pure")

    def __init__(
        self,
        name: str,
        func: Callable[[float], float],
        outer_derivative: NodeRule | None = None,
        antiderivative: NodeRule | None = None,
        pure: bool = True,
    ) -> None:
        self.name = name
        self.func = func
        self.outer_derivative = outer_derivative
        self.antiderivative = antiderivative
        self.pure = pure


class ElementaryFunction(Function):
    """``name(u)`` for a single-argument elementary function."""

    min_parameters = 1
    max_parameters = 1

    __slots__ = ("_rule",)

    def __init__(self, rule: ElementaryRule, fmt: NumberFormat | None = None) -> None:
        super().__init__(fmt)
        self._rule = rule

    @property
    def name(self) -> str:  # type: ignore[override]
        return self._rule.name

    @property
    def pure(self) -> bool:  # type: ignore[override]
        return self._rule.pure

    @property
    def argument(self) -> Node:
        return self._children[0]

    def spawn(self) -> ElementaryFunction:
        return ElementaryFunction(self._rule, self._format)

    def call(self, env: Environment) -> NumberValue:
        return self.argument._evaluate(env).apply(self._rule.func, self._rule.name)

    def derivative(self, var: str) -> Transform:
        outer = self._rule.outer_derivative
        if outer is None:
            return Transform.unsupported(f"{self.name} has no derivative rule")
        u = self.argument
        if not u.depends_on(var):
            return Transform.ok(Constant.of(0.0, self._format))
        return u.derivative(var).map(lambda du: product(outer(u, self._format), du))

    def antiderivative(self, var: str) -> Transform:
        if not self.depends_on(var) and self.is_deterministic():
            return Transform.ok(product(self, Variable(var)))
        rule = self._rule.antiderivative
        if rule is not None and self.argument == Variable(var):
            return Transform.ok(rule(self.argument, self._format))
        return Transform.unsupported(f"no rule to integrate {self.render()} in {var}")


# ────────────────────────────────────────────────────────────────
# Real functions
# ────────────────────────────────────────────────────────────────


def _sgn(x: float) -> float:
    return float((x > 0) - (x < 0))


def _arccot(x: float) -> float:
    return math.pi / 2 - math.atan(x)


def _rand(x: float) -> float:
    return random.random() * x


# ────────────────────────────────────────────────────────────────
# Tree builders for derivative and antiderivative rules
# ────────────────────────────────────────────────────────────────


def _fn(name: str, u: Node, fmt: NumberFormat) -> Node:
    return ElementaryFunction(_RULES[name], fmt).bind([u])


def _num(magnitude: float, fmt: NumberFormat) -> Node:
    return Constant.of(magnitude, fmt)


def _square(u: Node, fmt: NumberFormat) -> Node:
    return power(u, _num(2.0, fmt))


def _reciprocal(node: Node, fmt: NumberFormat) -> Node:
    return quotient(_num(1.0, fmt), node)


def _d_tan(u: Node, fmt: NumberFormat) -> Node:
    return _square(_fn("sec", u, fmt), fmt)


def _d_cot(u: Node, fmt: NumberFormat) -> Node:
    return negate(_square(_fn("csc", u, fmt), fmt))


def _d_sec(u: Node, fmt: NumberFormat) -> Node:
    return product(_fn("sec", u, fmt), _fn("tan", u, fmt))


def _d_csc(u: Node, fmt: NumberFormat) -> Node:
    return negate(product(_fn("csc", u, fmt), _fn("cot", u, fmt)))


def _d_arcsin(u: Node, fmt: NumberFormat) -> Node:
    return _reciprocal(_fn("sqrt", difference(_num(1.0, fmt), _square(u, fmt)), fmt), fmt)


def _d_arctan(u: Node, fmt: NumberFormat) -> Node:
    return _reciprocal(total(_num(1.0, fmt), _square(u, fmt)), fmt)


def _d_arcsec(u: Node, fmt: NumberFormat) -> Node:
    root = _fn("sqrt", difference(_square(u, fmt), _num(1.0, fmt)), fmt)
    return _reciprocal(product(_fn("abs", u, fmt), root), fmt)


def _d_tanh(u: Node, fmt: NumberFormat) -> Node:
    return _square(_fn("sech", u, fmt), fmt)


def _d_coth(u: Node, fmt: NumberFormat) -> Node:
    return negate(_square(_fn("csch", u, fmt), fmt))


def _d_sech(u: Node, fmt: NumberFormat) -> Node:
    return negate(product(_fn("sech", u, fmt), _fn("tanh", u, fmt)))


def _d_csch(u: Node, fmt: NumberFormat) -> Node:
    return negate(product(_fn("csch", u, fmt), _fn("coth", u, fmt)))


def _d_arcsinh(u: Node, fmt: NumberFormat) -> Node:
    return _reciprocal(_fn("sqrt", total(_square(u, fmt), _num(1.0, fmt)), fmt), fmt)


def _d_arccosh(u: Node, fmt: NumberFormat) -> Node:
    return _reciprocal(_fn("sqrt", difference(_square(u, fmt), _num(1.0, fmt)), fmt), fmt)


def _d_arctanh(u: Node, fmt: NumberFormat) -> Node:
    return _reciprocal(difference(_num(1.0, fmt), _square(u, fmt)), fmt)


def _d_arcsech(u: Node, fmt: NumberFormat) -> Node:
    root = _fn("sqrt", difference(_num(1.0, fmt), _square(u, fmt)), fmt)
    return negate(_reciprocal(product(u, root), fmt))


def _d_arccsch(u: Node, fmt: NumberFormat) -> Node:
    root = _fn("sqrt", total(_num(1.0, fmt), _square(u, fmt)), fmt)
    return negate(_reciprocal(product(_fn("abs", u, fmt), root), fmt))


def _d_sqrt(u: Node, fmt: NumberFormat) -> Node:
    return _reciprocal(product(_num(2.0, fmt), _fn("sqrt", u, fmt)), fmt)


def _d_log(u: Node, fmt: NumberFormat) -> Node:
    return _reciprocal(product(u, _fn("ln", _num(10.0, fmt), fmt)), fmt)


def _i_ln(u: Node, fmt: NumberFormat) -> Node:
    return difference(product(u, _fn("ln", u, fmt)), u)


def _i_tan(u: Node, fmt: NumberFormat) -> Node:
    return negate(_fn("ln", _fn("abs", _fn("cos", u, fmt), fmt), fmt))


def _i_sqrt(u: Node, fmt: NumberFormat) -> Node:
    return product(quotient(_num(2.0, fmt), _num(3.0, fmt)), power(u, _num(1.5, fmt)))


def _i_abs(u: Node, fmt: NumberFormat) -> Node:
    return quotient(product(u, _fn("abs", u, fmt)), _num(2.0, fmt))


def _i_neg(u: Node, fmt: NumberFormat) -> Node:
    return negate(quotient(_square(u, fmt), _num(2.0, fmt)))


_RULES: dict[str, ElementaryRule] = {
    rule.name: rule
    for rule in (
        # Trigonometric
        ElementaryRule(
            "sin", math.sin,
            lambda u, f: _fn("cos", u, f),
            lambda u, f: negate(_fn("cos", u, f)),
        ),
        ElementaryRule(
            "cos", math.cos,
            lambda u, f: negate(_fn("sin", u, f)),
            lambda u, f: _fn("sin", u, f),
        ),
        ElementaryRule("tan", math.tan, _d_tan, _i_tan),
        ElementaryRule("cot", lambda x: math.cos(x) / math.sin(x), _d_cot),
        ElementaryRule("sec", lambda x: 1.0 / math.cos(x), _d_sec),
        ElementaryRule("csc", lambda x: 1.0 / math.sin(x), _d_csc),
        # Inverse trigonometric
        ElementaryRule("arcsin", math.asin, _d_arcsin),
        ElementaryRule("arccos", math.acos, lambda u, f: negate(_d_arcsin(u, f))),
        ElementaryRule("arctan", math.atan, _d_arctan),
        ElementaryRule("arccot", _arccot, lambda u, f: negate(_d_arctan(u, f))),
        ElementaryRule("arcsec", lambda x: math.acos(1.0 / x), _d_arcsec),
        ElementaryRule("arccsc", lambda x: math.asin(1.0 / x), lambda u, f: negate(_d_arcsec(u, f))),
        # Hyperbolic
        ElementaryRule(
            "sinh", math.sinh,
            lambda u, f: _fn("cosh", u, f),
            lambda u, f: _fn("cosh", u, f),
        ),
        ElementaryRule(
            "cosh", math.cosh,
            lambda u, f: _fn("sinh", u, f),
            lambda u, f: _fn("sinh", u, f),
        ),
        ElementaryRule("tanh", math.tanh, _d_tanh),
        ElementaryRule("coth", lambda x: math.cosh(x) / math.sinh(x), _d_coth),
        ElementaryRule("sech", lambda x: 1.0 / math.cosh(x), _d_sech),
        ElementaryRule("csch", lambda x: 1.0 / math.sinh(x), _d_csch),
        # Inverse hyperbolic
        ElementaryRule("arcsinh", math.asinh, _d_arcsinh),
        ElementaryRule("arccosh", math.acosh, _d_arccosh),
        ElementaryRule("arctanh", math.atanh, _d_arctanh),
        ElementaryRule("arccoth", lambda x: math.atanh(1.0 / x), _d_arctanh),
        ElementaryRule("arcsech", lambda x: math.acosh(1.0 / x), _d_arcsech),
        ElementaryRule("arccsch", lambda x: math.asinh(1.0 / x), _d_arccsch),
        # Powers, exponentials and logarithms
        ElementaryRule("sqrt", math.sqrt, _d_sqrt, _i_sqrt),
        ElementaryRule(
            "exp", math.exp,
            lambda u, f: _fn("exp", u, f),
            lambda u, f: _fn("exp", u, f),
        ),
        ElementaryRule("ln", math.log, lambda u, f: _reciprocal(u, f), _i_ln),
        ElementaryRule("log", math.log10, _d_log),
        # Sign and rounding
        ElementaryRule("abs", abs, lambda u, f: _fn("sgn", u, f), _i_abs),
        ElementaryRule("sgn", _sgn),
        ElementaryRule("int", lambda x: float(math.trunc(x))),
        ElementaryRule("neg", lambda x: -x, lambda u, f: _num(-1.0, f), _i_neg),
        # Random
        ElementaryRule("rand", _rand, pure=False),
    )
}


def _factory(rule: ElementaryRule) -> Callable[[NumberFormat | None], ElementaryFunction]:
    def create(fmt: NumberFormat | None = None) -> ElementaryFunction:
        return ElementaryFunction(rule, fmt)

    return create


for _rule in _RULES.values():
    register_builtin(_rule.name)(_factory(_rule))


def elementary_names() -> list[str]:
    """Sorted names of the elementary functions."""
    return sorted(_RULES)
