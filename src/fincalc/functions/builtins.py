"""Built-in control functions: ``if``, ``sum`` and ``prod``.

Each is registered by keyword via ``@register_builtin``.
"""

from __future__ import annotations

import math

from fincalc.formulas.environment import Environment
from fincalc.formulas.errors import (
    FormulaDomainError,
    FormulaFunctionError,
    FormulaTypeError,
)
from fincalc.formulas.nodes import Node, Transform, Variable
from fincalc.formulas.values import Continuous, Logical, NumberFormat, NumberValue
from fincalc.functions.base import Function
from fincalc.functions.registry import register_builtin


# ────────────────────────────────────────────────────────────────
# if(condition, then[, else])
# ────────────────────────────────────────────────────────────────


@register_builtin("if")
class If(Function):
    """``if(cond, a)`` or ``if(cond, a, b)``.

    Only the selected branch is evaluated.  A false condition with no
    else-branch gives Continuous zero in the condition's format.
    """

    name = "if"
    min_parameters = 2
    max_parameters = 3

    __slots__ = ()

    def call(self, env: Environment) -> NumberValue:
        condition = self._children[0]._evaluate(env)
        if not isinstance(condition, Logical):
            raise FormulaTypeError(
                f"if: condition must be logical, got {condition.kind} value "
                f"{condition.display()}"
            )
        if condition.flag:
            return self._children[1]._evaluate(env)
        if len(self._children) == 3:
            return self._children[2]._evaluate(env)
        return Continuous.zero(condition.format)

    def derivative(self, var: str) -> Transform:
        return Transform.unsupported("if has no derivative rule")

    def antiderivative(self, var: str) -> Transform:
        return Transform.unsupported("if has no integration rule")


# ────────────────────────────────────────────────────────────────
# sum / prod over an inclusive integer-step range
# ────────────────────────────────────────────────────────────────


class Iteration(Function):
    """``name(var, start, end, body)``: fold *body* over ``var = start..end``.

    The running variable steps by one and is bound in a child scope, so
    the caller's environment is never modified, on success or failure.
    """

    min_parameters = 4
    max_parameters = 4

    __slots__ = ()

    def check_arguments(self, arguments: tuple[Node, ...]) -> None:
        if not isinstance(arguments[0], Variable):
            raise FormulaFunctionError(
                self.name,
                f"{self.name}: first argument must be a variable name, "
                f"got {arguments[0].render()!r}",
            )

    @property
    def running_variable(self) -> str:
        return self._children[0].var_name

    @property
    def start(self) -> Node:
        return self._children[1]

    @property
    def end(self) -> Node:
        return self._children[2]

    @property
    def body(self) -> Node:
        return self._children[3]

    def variables(self) -> set[str]:
        return (
            self.start.variables()
            | self.end.variables()
            | (self.body.variables() - {self.running_variable})
        )

    def identity(self, fmt: NumberFormat) -> Continuous:
        raise NotImplementedError

    def accumulate(self, result: NumberValue, term: NumberValue) -> NumberValue:
        raise NotImplementedError

    def _bound_value(self, node: Node, env: Environment, role: str) -> Continuous:
        value = node._evaluate(env)
        if not isinstance(value, Continuous):
            raise FormulaTypeError(
                f"{self.name}: {role} must be continuous, got {value.kind} value {value.display()}"
            )
        if not math.isfinite(value.magnitude):
            raise FormulaDomainError(f"{self.name}: {role} must be finite, got {value.display()}")
        return value

    def call(self, env: Environment) -> NumberValue:
        start = self._bound_value(self.start, env, "start")
        end = self._bound_value(self.end, env, "end")

        result: NumberValue = self.identity(start.format)
        one = Continuous.one(start.format)
        current = start.copy()
        while current.compare_to(end) <= 0:
            term = self.body._evaluate(env.bind(self.running_variable, current))
            result = self.accumulate(result, term)
            current = current.add(one)
        return result

    def _with_body(self, body: Node) -> Function:
        return self.spawn().bind([self._children[0], self.start, self.end, body])


@register_builtin("sum")
class Sum(Iteration):
    """``sum(i, a, b, body)`` = body(a) + body(a+1) + ... + body(b)."""

    name = "sum"

    __slots__ = ()

    def identity(self, fmt: NumberFormat) -> Continuous:
        return Continuous.zero(fmt)

    def accumulate(self, result: NumberValue, term: NumberValue) -> NumberValue:
        return result.add(term)

    # Only the body is transformed; the bounds are carried over as they are.
    def derivative(self, var: str) -> Transform:
        return self.body.derivative(var).map(self._with_body)

    def antiderivative(self, var: str) -> Transform:
        return self.body.antiderivative(var).map(self._with_body)


@register_builtin("prod")
class Prod(Iteration):
    """``prod(i, a, b, body)`` = body(a) * body(a+1) * ... * body(b)."""

    name = "prod"

    __slots__ = ()

    def identity(self, fmt: NumberFormat) -> Continuous:
        return Continuous.one(fmt)

    def accumulate(self, result: NumberValue, term: NumberValue) -> NumberValue:
        return result.mul(term)

    def derivative(self, var: str) -> Transform:
        return Transform.unsupported("prod has no derivative rule")

    def antiderivative(self, var: str) -> Transform:
        return Transform.unsupported("prod has no integration rule")
