"""User-defined functions declared as ``name(params)=body``.

A declaration is parsed once into an unbound ``UserDefinedFunction``.
Every call site gets its own ``copy()`` bound to the call's argument
trees.  The body sees only the parameters: arguments are evaluated in the
caller's environment, then bound in a fresh environment of their own.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Iterable

from fincalc.formulas.environment import Environment
from fincalc.formulas.errors import FormulaParseError
from fincalc.formulas.nodes import Node, Transform
from fincalc.formulas.parser import encloses, parse_expression, split_arguments
from fincalc.formulas.values import DEFAULT_FORMAT, NumberFormat, NumberValue
from fincalc.functions.base import Function

if TYPE_CHECKING:
    from fincalc.functions.registry import FunctionRegistry

_IDENTIFIER_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_HEAD_RE = re.compile(r"\s*([A-Za-z_][A-Za-z0-9_]*)\s*([(\[{].*?)\s*$", re.DOTALL)
_RESERVED = frozenset({"pi", "true", "false"})


class UserDefinedFunction(Function):
    """A function whose body is a formula over its named parameters."""

    __slots__ = ("_name", "_body")

    def __init__(
        self,
        name: str,
        parameter_names: Iterable[str],
        body: Node,
        fmt: NumberFormat | None = None,
    ) -> None:
        super().__init__(fmt, parameter_names)
        self._name = name
        self._body = body

    @property
    def name(self) -> str:  # type: ignore[override]
        return self._name

    @property
    def min_parameters(self) -> int:  # type: ignore[override]
        return len(self._parameter_names)

    @property
    def max_parameters(self) -> int:  # type: ignore[override]
        return len(self._parameter_names)

    @property
    def body(self) -> Node:
        return self._body

    def spawn(self) -> UserDefinedFunction:
        return UserDefinedFunction(self._name, self._parameter_names, self._body, self._format)

    def variables(self) -> set[str]:
        if self._bound:
            return super().variables()
        return self._body.variables() - set(self._parameter_names)

    def is_deterministic(self) -> bool:
        return self._body.is_deterministic() and super().is_deterministic()

    def call(self, env: Environment) -> NumberValue:
        scope = Environment(
            {
                name: argument._evaluate(env)
                for name, argument in zip(self._parameter_names, self._children)
            }
        )
        return self._body._evaluate(scope)

    def derivative(self, var: str) -> Transform:
        return Transform.unsupported(f"user function {self._name} has no derivative rule")

    def antiderivative(self, var: str) -> Transform:
        return Transform.unsupported(f"user function {self._name} has no integration rule")

    def declaration(self) -> str:
        """Declaration text, ``name(params)=body``."""
        sep = self._format.argument_separator
        return f"{self._name}({sep.join(self._parameter_names)})={self._body.render()}"

    def render(self) -> str:
        if not self._bound:
            return self.declaration()
        return super().render()

    def _key(self) -> tuple:
        return (
            "UserDefinedFunction",
            self._name,
            self._parameter_names,
            self._body._key(),
            tuple(c._key() for c in self._children),
        )


def parse_user_function(
    text: str,
    fmt: NumberFormat | None = None,
    registry: FunctionRegistry | None = None,
) -> UserDefinedFunction:
    """Parse a declaration such as ``"f(x,y)=x^2+y"``.

    The text is split at its first ``=``.  The body may call built-ins and
    any function already declared in *registry*.

    Args:
        text: The declaration.
        fmt: Format for numeric literals in the body.
        registry: Registry used to resolve function calls in the body.

    Returns:
        An unbound ``UserDefinedFunction``.

    Raises:
        FormulaParseError: If the declaration is malformed.
    """
    fmt = fmt or DEFAULT_FORMAT
    pos = text.find("=")
    if pos < 0:
        raise FormulaParseError(f"Function declaration {text!r} has no '='")
    head, body_text = text[:pos], text[pos + 1:]

    match = _HEAD_RE.fullmatch(head)
    if match is None:
        raise FormulaParseError(
            f"Function declaration {text!r} must start with name(parameters)"
        )
    name, bracketed = match.group(1), match.group(2)
    if not encloses(bracketed):
        raise FormulaParseError(f"Unbalanced parameter list in {text!r}")
    inner = bracketed[1:-1]
    if any(ch in "([{)]}" for ch in inner):
        raise FormulaParseError(f"Parameter list of {name!r} must not contain brackets")

    params = split_arguments(bracketed, fmt.argument_separator)
    for param in params:
        if not _IDENTIFIER_RE.fullmatch(param) or param.lower() in _RESERVED:
            raise FormulaParseError(f"Invalid parameter name {param!r} in {text!r}")
    if len(set(params)) != len(params):
        raise FormulaParseError(f"Duplicate parameter names in {text!r}")

    if body_text.lstrip().startswith("="):
        raise FormulaParseError(f"Function body of {name!r} starts with '='")
    body = parse_expression(body_text, fmt, registry)
    return UserDefinedFunction(name, params, body, fmt)
