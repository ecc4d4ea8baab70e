"""Base class for function nodes: built-ins and user-defined functions.

A function node is created unbound, then ``bind()`` attaches its argument
sub-trees exactly once.  Arity bounds are checked at bind time, so a node
that evaluates always has a legal argument count.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, Sequence

from fincalc.formulas.environment import Environment
from fincalc.formulas.errors import FormulaArityError, FormulaFunctionError
from fincalc.formulas.nodes import Level, Node
from fincalc.formulas.parser import parse_expression, split_arguments
from fincalc.formulas.values import DEFAULT_FORMAT, NumberFormat, NumberValue

if TYPE_CHECKING:
    from fincalc.functions.registry import FunctionRegistry


class Function(Node):
    """A named function applied to argument sub-trees."""

    name = "function"
    level = Level.FUNCTION_CONST
    arity = None
    min_parameters = 0
    max_parameters = 0

    __slots__ = ("_format", "_parameter_names", "_bound")

    def __init__(
        self,
        fmt: NumberFormat | None = None,
        parameter_names: Iterable[str] = (),
    ) -> None:
        super().__init__()
        self._format = fmt or DEFAULT_FORMAT
        self._parameter_names: tuple[str, ...] = tuple(parameter_names)
        self._bound = False

    @property
    def format(self) -> NumberFormat:
        return self._format

    @property
    def number_format(self) -> NumberFormat | None:
        return self._format

    @property
    def parameter_names(self) -> tuple[str, ...]:
        return self._parameter_names

    @property
    def parameters(self) -> tuple[Node, ...]:
        return self._children

    @property
    def is_bound(self) -> bool:
        return self._bound

    def bind(self, arguments: Sequence[Node]) -> Function:
        """Attach argument trees to this node.

        Returns:
            ``self``, so creation and binding chain.

        Raises:
            FormulaArityError: If the argument count is outside the bounds.
            FormulaFunctionError: If the node is already bound, or an
                argument is not acceptable for this function.
        """
        if self._bound:
            raise FormulaFunctionError(
                self.name, f"{self.name}: arguments are already bound"
            )
        args = tuple(arguments)
        if not self.min_parameters <= len(args) <= self.max_parameters:
            raise FormulaArityError(
                self.name, len(args), self.min_parameters, self.max_parameters
            )
        self.check_arguments(args)
        self._children = args
        self._bound = True
        return self

    def check_arguments(self, arguments: tuple[Node, ...]) -> None:
        """Hook for functions that constrain argument shape."""

    @classmethod
    def parse_arguments(
        cls,
        text: str,
        fmt: NumberFormat | None = None,
        registry: FunctionRegistry | None = None,
    ) -> list[Node]:
        """Parse a bracketed argument list such as ``"(x,1,10,x^2)"``."""
        fmt = fmt or DEFAULT_FORMAT
        return [
            parse_expression(part, fmt, registry)
            for part in split_arguments(text, fmt.argument_separator)
        ]

    def spawn(self) -> Function:
        """A new unbound node of the same function."""
        return type(self)(self._format)

    def copy(self) -> Function:
        return self.spawn()

    def rebuild(self, children: Iterable[Node]) -> Node:
        return self.spawn().bind(list(children))

    def _evaluate(self, env: Environment) -> NumberValue:
        if not self._bound:
            raise FormulaFunctionError(
                self.name, f"{self.name} evaluated before its arguments were bound"
            )
        return self.call(env)

    def call(self, env: Environment) -> NumberValue:
        raise NotImplementedError

    def render(self) -> str:
        sep = self._format.argument_separator
        return f"{self.name}({sep.join(p.render() for p in self._children)})"

    def _key(self) -> tuple:
        return ("Function", self.name, tuple(c._key() for c in self._children))
