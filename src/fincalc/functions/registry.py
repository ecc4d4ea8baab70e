"""Central registry for built-in and user-defined functions.

Built-ins are registered once per process through ``register_builtin`` and
shared by every ``FunctionRegistry``.  User-defined functions live on a
registry instance, so two projects never see each other's declarations.
"""

from __future__ import annotations

import re
from typing import Callable, Sequence

from fincalc.formulas.errors import FormulaFunctionError, FormulaParseError
from fincalc.formulas.nodes import Node
from fincalc.formulas.parser import encloses
from fincalc.formulas.values import NumberFormat
from fincalc.functions.base import Function
from fincalc.functions.user import UserDefinedFunction, parse_user_function
from fincalc.logging.events import EventType, emit_info, emit_warning

_BUILTINS: dict[str, Callable[[NumberFormat | None], Function]] = {}

_CALL_RE = re.compile(r"\s*([A-Za-z_][A-Za-z0-9_]*)\s*([(\[{].*)$", re.DOTALL)


def register_builtin(name: str) -> Callable:
    """Decorator that registers a built-in function factory by keyword.

    Args:
        name: The keyword used in formula text, e.g. ``"sum"``.

    Returns:
        The factory, unmodified.
    """

    def decorator(factory: Callable) -> Callable:
        _BUILTINS[name.lower()] = factory
        return factory

    return decorator


def builtin_names() -> list[str]:
    """Sorted keywords of all registered built-ins."""
    return sorted(_BUILTINS)


def is_builtin(name: str) -> bool:
    return name.lower() in _BUILTINS


class FunctionRegistry:
    """Resolves function names to fresh, bound function nodes."""

    def __init__(self) -> None:
        self._user: dict[str, UserDefinedFunction] = {}

    @classmethod
    def create_builtin(
        cls,
        name: str,
        arguments: Sequence[Node],
        fmt: NumberFormat | None = None,
    ) -> Function:
        """Create and bind a built-in function node.

        Raises:
            FormulaFunctionError: If *name* is not a built-in.
            FormulaArityError: If the argument count is wrong.
        """
        key = name.lower()
        if key not in _BUILTINS:
            raise FormulaFunctionError(name)
        return _BUILTINS[key](fmt).bind(arguments)

    def create(
        self,
        name: str,
        arguments: Sequence[Node],
        fmt: NumberFormat | None = None,
    ) -> Function:
        """Create and bind a function node, built-in or user-defined.

        Each call returns a fresh node; declared functions are never bound
        in place.

        Raises:
            FormulaFunctionError: If *name* is unknown.
            FormulaArityError: If the argument count is wrong.
        """
        if is_builtin(name):
            return self.create_builtin(name, arguments, fmt)
        if name in self._user:
            return self._user[name].copy().bind(arguments)
        raise FormulaFunctionError(
            name,
            f"Unknown function: {name!r}. Available: {self.names() + builtin_names()}",
        )

    def from_text(self, text: str, fmt: NumberFormat | None = None) -> Function:
        """Create a function node from call text such as ``"sum(i,1,4,i)"``.

        Raises:
            FormulaParseError: If *text* is not a function call.
        """
        match = _CALL_RE.match(text)
        if match is None:
            raise FormulaParseError(f"Not a function call: {text!r}")
        name, argument_text = match.group(1), match.group(2)
        if not encloses(argument_text.strip()):
            raise FormulaParseError(f"Not a single function call: {text!r}")
        arguments = Function.parse_arguments(argument_text, fmt, self)
        return self.create(name, arguments, fmt)

    def declare(self, text: str, fmt: NumberFormat | None = None) -> UserDefinedFunction:
        """Parse and register a declaration such as ``"f(x)=3*x+5"``.

        A later declaration with the same name replaces the earlier one.
        Nothing is registered when the declaration is rejected.

        Raises:
            FormulaParseError: Malformed declaration.
            FormulaFunctionError: The name belongs to a built-in.
        """
        try:
            func = parse_user_function(text, fmt, registry=self)
            self.register(func)
        except (FormulaParseError, FormulaFunctionError) as exc:
            emit_warning(
                EventType.function_rejected,
                f"Rejected declaration {text!r}: {exc}",
                {"declaration": text},
            )
            raise
        emit_info(
            EventType.function_declared,
            f"Declared {func.declaration()}",
            {"function": func.name, "parameters": list(func.parameter_names)},
        )
        return func

    def register(self, func: UserDefinedFunction) -> None:
        """Register an already parsed user-defined function.

        Raises:
            FormulaFunctionError: The name belongs to a built-in.
        """
        if is_builtin(func.name):
            raise FormulaFunctionError(
                func.name, f"Cannot redefine built-in function {func.name!r}"
            )
        self._user[func.name] = func.copy()

    def get(self, name: str) -> UserDefinedFunction:
        """Look up a declared function (unbound).

        Raises:
            KeyError: If no function is declared under *name*.
        """
        if name not in self._user:
            raise KeyError(f"Unknown user function: {name!r}")
        return self._user[name]

    def remove(self, name: str) -> None:
        self._user.pop(name, None)

    def names(self) -> list[str]:
        """Sorted names of the declared user functions."""
        return sorted(self._user)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and (name in self._user or is_builtin(name))

    def __len__(self) -> int:
        return len(self._user)
