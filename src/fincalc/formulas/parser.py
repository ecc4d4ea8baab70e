"""Lark-based parser turning formula text into ``Node`` trees.

Supports:
- Arithmetic ``+ - * / ^`` with unary ``-``/``+`` and logical ``!``
- Comparisons ``== != > < >= <=`` and logic ``&& || ##`` (xor)
- Function calls ``name(arg1,arg2,...)``, built-in or user-defined
- Literals: numbers in the caller's ``NumberFormat``, ``true``/``false``, ``pi``
- Bare identifiers as variables

The three bracket kinds ``()``, ``[]`` and ``{}`` are interchangeable: any
opener may be closed by any closer.  Only nesting depth is tracked, never
bracket kind.  Function arguments are separated by the format's argument
separator (``,``, or ``;`` when the decimal separator is ``,``).
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from lark import Lark, Token, Tree
from lark.exceptions import LarkError, UnexpectedInput, VisitError
from lark.visitors import Transformer_NonRecursive

from fincalc.formulas.errors import FormulaError, FormulaParseError
from fincalc.formulas.nodes import Constant, Node, Variable, PI_SYMBOL, pi_constant
from fincalc.formulas.operators import BINARY_RULES, Neg, Not
from fincalc.formulas.values import DEFAULT_FORMAT, Continuous, Logical, NumberFormat

if TYPE_CHECKING:
    from fincalc.functions.registry import FunctionRegistry

logger = logging.getLogger(__name__)

OPENERS = "([{"
CLOSERS = ")]}"

# Node methods recurse once per level; keep well inside the interpreter limit.
MAX_TREE_HEIGHT = 200

# LALR(1) grammar.  Operator precedence (lowest to highest):
#   1. Disjunction: || ##
#   2. Conjunction: &&
#   3. Comparison (non-chaining): == != >= <= > <
#   4. Addition/subtraction: + -
#   5. Multiplication/division: * /
#   6. Unary: - + !
#   7. Exponentiation: ^ (right-associative, binds tighter than unary minus)
#   8. Atoms: number, bool, function call, variable, bracketed expr
_GRAMMAR_TEMPLATE = r"""
start: expr

?expr: disjunction

?disjunction: conjunction
    | disjunction "||" conjunction  -> or_
    | disjunction "##" conjunction  -> xor

?conjunction: comparison
    | conjunction "&&" comparison  -> and_

?comparison: addition
    | addition "==" addition  -> eq
    | addition "!=" addition  -> neq
    | addition ">=" addition  -> gte
    | addition "<=" addition  -> lte
    | addition ">" addition   -> gt
    | addition "<" addition   -> lt

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos
    | "!" unary  -> not_

?exponentiation: atom
    | atom "^" unary  -> pow

?atom: NUMBER                      -> number
    | BOOL                         -> boolean
    | NAME _OPEN args _CLOSE       -> func_call
    | NAME                         -> variable
    | _OPEN expr _CLOSE

args: expr (_SEP expr)*
    |

_OPEN: "(" | "[" | "{"
_CLOSE: ")" | "]" | "}"
_SEP: "%SEP%"

BOOL.2: /(true|false)\b/i
NUMBER: /%NUMBER%/
NAME: /[A-Za-z_][A-Za-z0-9_]*/

%import common.WS
%ignore WS
"""


@lru_cache(maxsize=None)
def _parser_for(number_pattern: str, separator: str) -> Lark:
    logger.debug("building formula grammar (number=%s, separator=%s)", number_pattern, separator)
    grammar = _GRAMMAR_TEMPLATE.replace("%SEP%", separator).replace("%NUMBER%", number_pattern)
    return Lark(grammar, parser="lalr", start="start")


class _NodeBuilder(Transformer_NonRecursive):
    """Turns the Lark parse tree into ``Node`` objects."""

    def __init__(self, fmt: NumberFormat, registry: FunctionRegistry) -> None:
        super().__init__()
        self._fmt = fmt
        self._registry = registry

    def start(self, children: list[Any]) -> Node:
        return children[0]

    def number(self, children: list[Token]) -> Node:
        return Constant(Continuous(self._fmt.parse(str(children[0])), self._fmt))

    def boolean(self, children: list[Token]) -> Node:
        return Constant(Logical(str(children[0]).lower() == "true", self._fmt))

    def variable(self, children: list[Token]) -> Node:
        name = str(children[0])
        if name == PI_SYMBOL:
            return pi_constant(self._fmt)
        return Variable(name)

    def args(self, children: list[Node]) -> list[Node]:
        return list(children)

    def func_call(self, children: list[Any]) -> Node:
        name, arguments = children
        return self._registry.create(str(name), arguments, self._fmt)

    def neg(self, children: list[Node]) -> Node:
        return Neg(children[0])

    def pos(self, children: list[Node]) -> Node:
        return children[0]

    def not_(self, children: list[Node]) -> Node:
        return Not(children[0])

    def __default__(self, data: Any, children: list[Any], meta: Any) -> Any:
        if data in BINARY_RULES:
            return BINARY_RULES[data](*children)
        raise FormulaError(f"Unknown node type: {data}")


def parse_expression(
    text: str,
    fmt: NumberFormat | None = None,
    registry: FunctionRegistry | None = None,
    max_depth: int | None = None,
) -> Node:
    """Parse formula text into a ``Node`` tree.

    A single leading ``=`` (spreadsheet style) is accepted and ignored.

    Args:
        text: The formula, e.g. ``"sum(i,1,n,i^2)/n"``.
        fmt: Format for numeric literals; defaults to ``DEFAULT_FORMAT``.
        registry: Function registry for user-defined functions.  Built-ins
            are always available.
        max_depth: Optional limit on bracket nesting depth.

    Returns:
        The root node.

    Raises:
        FormulaParseError: If the formula has invalid syntax or its tree
            is deeper than ``MAX_TREE_HEIGHT``.
        FormulaFunctionError: Unknown function or bad arguments.
    """
    from fincalc.functions.registry import FunctionRegistry

    fmt = fmt or DEFAULT_FORMAT
    if registry is None:
        registry = FunctionRegistry()

    source = text.strip()
    if source.startswith("=") and not source.startswith("=="):
        source = source[1:].strip()
    if not source:
        raise FormulaParseError("Empty formula", position=0)
    if max_depth is not None:
        check_depth(source, max_depth)

    parser = _parser_for(fmt.number_pattern(), fmt.argument_separator)
    try:
        tree = parser.parse(source)
    except UnexpectedInput as exc:
        raise FormulaParseError(str(exc).strip(), position=getattr(exc, "column", None)) from exc
    except LarkError as exc:
        raise FormulaParseError(str(exc)) from exc

    height = tree_height(tree)
    if height > MAX_TREE_HEIGHT:
        raise FormulaParseError(f"Formula nested {height} levels deep, limit is {MAX_TREE_HEIGHT}")

    try:
        return _NodeBuilder(fmt, registry).transform(tree)
    except VisitError as exc:
        raise exc.orig_exc from exc


def bracket_depth(text: str) -> int:
    """Deepest bracket nesting in *text*, any bracket kind counted alike."""
    depth = deepest = 0
    for ch in text:
        if ch in OPENERS:
            depth += 1
            deepest = max(deepest, depth)
        elif ch in CLOSERS:
            depth -= 1
    return deepest


def tree_height(tree: Tree) -> int:
    """Levels of rule nodes in a Lark parse tree, computed without recursion."""
    heights: dict[int, int] = {}
    for subtree in tree.iter_subtrees():
        below = [heights[id(child)] for child in subtree.children if isinstance(child, Tree)]
        heights[id(subtree)] = 1 + max(below, default=0)
    return heights[id(tree)]


def check_depth(text: str, max_depth: int) -> None:
    """Raise ``FormulaParseError`` if *text* nests deeper than *max_depth*."""
    depth = bracket_depth(text)
    if depth > max_depth:
        raise FormulaParseError(
            f"Brackets nested {depth} deep, limit is {max_depth}"
        )


def encloses(text: str) -> bool:
    """True when the first character opens a bracket closed by the last one."""
    if len(text) < 2 or text[0] not in OPENERS or text[-1] not in CLOSERS:
        return False
    depth = 0
    for pos, ch in enumerate(text):
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
            if depth == 0:
                return pos == len(text) - 1
    return False


def split_arguments(text: str, separator: str = ",") -> list[str]:
    """Split an argument list at separators outside any brackets.

    One bracket pair enclosing the whole text is stripped first, so
    ``"(1,(2,3),4)"`` gives ``["1", "(2,3)", "4"]``.  Separators nested in
    brackets of any kind are kept literally.

    Raises:
        FormulaParseError: If the brackets do not balance.
    """
    source = text.strip()
    if encloses(source):
        source = source[1:-1]

    parts: list[str] = []
    current: list[str] = []
    depth = 0
    for pos, ch in enumerate(source):
        if ch in OPENERS:
            depth += 1
        elif ch in CLOSERS:
            depth -= 1
            if depth < 0:
                raise FormulaParseError(f"Unbalanced {ch!r} in {text!r}", position=pos)
        elif ch == separator and depth == 0:
            parts.append("".join(current).strip())
            current = []
            continue
        current.append(ch)

    if depth != 0:
        raise FormulaParseError(f"Bracket not closed in {text!r}", position=len(source))
    tail = "".join(current).strip()
    if tail or parts:
        parts.append(tail)
    return parts
