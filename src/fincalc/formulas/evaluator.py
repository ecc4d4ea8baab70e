"""One-call entry points: parse, evaluate or transform, and log the outcome.

``Node.evaluate`` and friends stay silent; these wrappers add the
structured events a CLI or host application wants in its log.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping

from fincalc.formulas.environment import Environment
from fincalc.formulas.errors import ENGINE_ERRORS, FormulaParseError, UnsupportedOperationError
from fincalc.formulas.nodes import Node
from fincalc.formulas.parser import parse_expression
from fincalc.formulas.values import NumberFormat, NumberValue
from fincalc.logging.events import EventType, emit_error, emit_info, emit_warning

if TYPE_CHECKING:
    from fincalc.functions.registry import FunctionRegistry

logger = logging.getLogger(__name__)


def parse_formula(
    text: str,
    fmt: NumberFormat | None = None,
    registry: FunctionRegistry | None = None,
    max_depth: int | None = None,
) -> Node:
    """``parse_expression`` that logs syntax errors before re-raising them."""
    try:
        return parse_expression(text, fmt, registry, max_depth)
    except FormulaParseError as exc:
        emit_warning(
            EventType.formula_parse_failed,
            exc.message,
            {"formula": text, "position": exc.position},
        )
        raise


def evaluate_formula(
    source: str | Node,
    env: Environment | Mapping[str, Any] | None = None,
    fmt: NumberFormat | None = None,
    registry: FunctionRegistry | None = None,
    max_depth: int | None = None,
) -> NumberValue:
    """Evaluate formula text (or an already parsed tree).

    Args:
        source: Formula text or a ``Node``.
        env: Variable bindings; plain Python scalars are coerced using *fmt*.
        fmt: Number format for literals and scalar bindings.
        registry: Registry for user-defined functions.
        max_depth: Optional bracket nesting limit for text input.

    Returns:
        The computed value.

    Raises:
        FormulaError: Parse, type, domain or function errors.
        ZeroDivisionError: Division by zero.
    """
    node = source if isinstance(source, Node) else parse_formula(source, fmt, registry, max_depth)
    text = node.render()
    try:
        value = node.evaluate(env, fmt)
    except ENGINE_ERRORS as exc:
        emit_error(
            EventType.evaluation_failed,
            str(exc),
            {"formula": text, "error_type": type(exc).__name__},
        )
        raise
    logger.debug("evaluated %s -> %s", text, value.display())
    emit_info(
        EventType.evaluation_completed,
        f"{text} = {value.display()}",
        {"formula": text, "result": value.display()},
    )
    return value


def _transform(node: Node, var: str, operation: str) -> Node:
    try:
        if operation == "differentiate":
            return node.differentiate(var)
        return node.integrate(var)
    except UnsupportedOperationError as exc:
        emit_warning(
            EventType.transform_unsupported,
            str(exc),
            {"formula": node.render(), "variable": var, "operation": operation},
        )
        raise


def differentiate_formula(
    source: str | Node,
    var: str,
    fmt: NumberFormat | None = None,
    registry: FunctionRegistry | None = None,
) -> Node:
    """Symbolic derivative of formula text (or a tree) with respect to *var*."""
    node = source if isinstance(source, Node) else parse_formula(source, fmt, registry)
    return _transform(node, var, "differentiate")


def integrate_formula(
    source: str | Node,
    var: str,
    fmt: NumberFormat | None = None,
    registry: FunctionRegistry | None = None,
) -> Node:
    """Symbolic antiderivative of formula text (or a tree) with respect to *var*."""
    node = source if isinstance(source, Node) else parse_formula(source, fmt, registry)
    return _transform(node, var, "integrate")
