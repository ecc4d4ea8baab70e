"""Tests for formula parsing, rendering and argument splitting."""

from __future__ import annotations

import math
from typing import Any

import pytest

from fincalc.formulas import (
    Constant,
    FormulaArityError,
    FormulaFunctionError,
    FormulaParseError,
    Logical,
    NumberFormat,
    parse_expression,
    split_arguments,
)
from fincalc.formulas.nodes import Level
from fincalc.formulas.operators import Add, Neg, Pow, Sub


def _eval(text: str, env: dict[str, Any] | None = None, fmt: NumberFormat | None = None) -> Any:
    value = parse_expression(text, fmt).evaluate(env, fmt)
    if isinstance(value, Logical):
        return value.flag
    return value.magnitude


# ────────────────────────────────────────────────────────────────
# Grammar
# ────────────────────────────────────────────────────────────────


class TestParser:
    def test_arithmetic_precedence(self) -> None:
        """Multiplication binds tighter than addition: 2+3*4 = 14."""
        assert _eval("2 + 3 * 4") == 14

    def test_left_associative(self) -> None:
        assert _eval("10 - 4 - 3") == 3
        assert _eval("24 / 4 / 2") == 3

    def test_exponentiation_right_associative(self) -> None:
        """2^3^2 = 2^(3^2) = 512."""
        assert _eval("2^3^2") == 512

    def test_unary_minus_with_exponent(self) -> None:
        """-2^2 = -(2^2) = -4."""
        assert _eval("-2^2") == -4
        assert _eval("(-2)^2") == 4

    def test_negative_exponent(self) -> None:
        assert _eval("2^-1") == 0.5

    def test_unary_plus(self) -> None:
        assert _eval("+3 - +1") == 2

    def test_brackets_are_interchangeable(self) -> None:
        assert _eval("[2 + 3] * {4}") == 20
        assert _eval("(2 + 3] * 4") == 20

    def test_variables(self) -> None:
        assert _eval("a * b", {"a": 3, "b": 4}) == 12

    def test_pi(self) -> None:
        assert _eval("pi") == math.pi
        node = parse_expression("2*pi")
        assert node.render() == "2*pi"

    def test_boolean_literals_case_insensitive(self) -> None:
        assert _eval("true") is True
        assert _eval("FALSE") is False
        assert _eval("True && !false") is True

    def test_identifier_starting_with_true_is_a_variable(self) -> None:
        assert _eval("trueish + 1", {"trueish": 1}) == 2

    def test_comparisons(self) -> None:
        assert _eval("1 < 2") is True
        assert _eval("2 <= 2") is True
        assert _eval("3 > 4") is False
        assert _eval("3 >= 4") is False
        assert _eval("1 + 1 == 2") is True
        assert _eval("1 != 1") is False

    def test_logic_precedence(self) -> None:
        """&& binds tighter than ||."""
        assert _eval("true || false && false") is True
        assert _eval("1 < 2 && 3 > 4") is False
        assert _eval("true ## true") is False
        assert _eval("true ## false") is True

    def test_comparisons_do_not_chain(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_expression("1 < 2 < 3")

    def test_function_call(self) -> None:
        assert _eval("sqrt(16) + abs(-2)") == 6

    def test_builtin_names_are_case_insensitive(self) -> None:
        node = parse_expression("SQRT(4)")
        assert node.render() == "sqrt(4)"

    def test_leading_equals_is_accepted(self) -> None:
        assert _eval("=1 + 1") == 2

    def test_comma_decimal_format(self) -> None:
        de = NumberFormat.for_locale("de_DE")
        assert _eval("1,5 * 2", fmt=de) == 3.0
        assert _eval("if(1,5 > 1; 2,5; 0)", fmt=de) == 2.5

    def test_literal_format_threads_into_results(self) -> None:
        de = NumberFormat.for_locale("de_DE")
        value = parse_expression("1,25 + 1", de).evaluate()
        assert value.display() == "2,25"


# ────────────────────────────────────────────────────────────────
# Errors
# ────────────────────────────────────────────────────────────────


class TestParseErrors:
    def test_empty(self) -> None:
        with pytest.raises(FormulaParseError, match="Empty"):
            parse_expression("   ")

    def test_bad_expression(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_expression("1 2")

    def test_incomplete(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_expression("1 +")

    def test_position(self) -> None:
        with pytest.raises(FormulaParseError) as exc_info:
            parse_expression("1 $ 2")
        assert exc_info.value.position is not None
        assert "position" in str(exc_info.value)

    def test_unbalanced(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_expression("(1 + 2")
        with pytest.raises(FormulaParseError):
            parse_expression("1 + 2)")

    def test_unknown_function(self) -> None:
        with pytest.raises(FormulaFunctionError, match="nosuch"):
            parse_expression("nosuch(1)")

    def test_wrong_arity(self) -> None:
        with pytest.raises(FormulaArityError) as exc_info:
            parse_expression("sin(1, 2)")
        assert exc_info.value.given == 2
        assert exc_info.value.minimum == exc_info.value.maximum == 1

    def test_max_depth(self) -> None:
        assert parse_expression("((((1))))", max_depth=4).evaluate().magnitude == 1
        with pytest.raises(FormulaParseError, match="nested"):
            parse_expression("((((1))))", max_depth=3)

    def test_wrong_argument_separator(self) -> None:
        de = NumberFormat.for_locale("de_DE")
        with pytest.raises(FormulaParseError):
            parse_expression("if(true, 1, 2)", de)

    def test_out_of_range_literal(self) -> None:
        with pytest.raises(FormulaParseError, match="out of range"):
            parse_expression("1e400 + 1")

    def test_long_flat_chain_is_rejected(self) -> None:
        with pytest.raises(FormulaParseError, match="levels deep"):
            parse_expression("+".join(["x"] * 1500))

    def test_deep_unary_chain_is_rejected(self) -> None:
        with pytest.raises(FormulaParseError, match="levels deep"):
            parse_expression("-" * 1500 + "x")

    def test_long_chain_within_limit(self) -> None:
        node = parse_expression("+".join(["x"] * 100))
        assert node.evaluate({"x": 1}).magnitude == 100
        assert parse_expression(node.render()) == node


# ────────────────────────────────────────────────────────────────
# Tree shape and rendering
# ────────────────────────────────────────────────────────────────


class TestTreeShape:
    def test_node_kinds(self) -> None:
        node = parse_expression("-x^2 + 1")
        assert isinstance(node, Add)
        assert isinstance(node.left, Neg)
        assert isinstance(node.left.operand, Pow)

    def test_precedence_levels(self) -> None:
        assert parse_expression("a || b").precedence_level() == Level.OR
        assert parse_expression("a && b").precedence_level() == Level.AND
        assert parse_expression("a < b").precedence_level() == Level.COMPARISON
        assert parse_expression("a - b").precedence_level() == Level.ADDITION
        assert parse_expression("a / b").precedence_level() == Level.MULTIPLICATION
        assert parse_expression("-a").precedence_level() == Level.UNARY
        assert parse_expression("a ^ b").precedence_level() == Level.EXPONENTIAL
        assert parse_expression("sin(a)").precedence_level() == Level.FUNCTION_CONST
        assert parse_expression("2").precedence_level() == Level.FUNCTION_CONST

    def test_arity(self) -> None:
        assert len(parse_expression("a - b").children) == 2
        assert len(parse_expression("-a").children) == 1
        assert len(parse_expression("a").children) == 0
        with pytest.raises(ValueError):
            Sub(Constant(1.0))

    def test_variables(self) -> None:
        assert parse_expression("a*x + sin(b) - 2").variables() == {"a", "x", "b"}


class TestRender:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("a-(b-c)", "a-(b-c)"),
            ("(a-b)-c", "a-b-c"),
            ("a/(b*c)", "a/(b*c)"),
            ("(a+b)*c", "(a+b)*c"),
            ("[a+b]*c", "(a+b)*c"),
            ("-2^2", "-2^2"),
            ("(-2)^2", "(-2)^2"),
            ("(a^b)^c", "(a^b)^c"),
            ("a^b^c", "a^b^c"),
            ("2^-x", "2^(-x)"),
            ("!(p && q) || r", "!(p&&q)||r"),
            ("(a < b) == p", "(a<b)==p"),
            ("sum(i, 1, 3, i^2)", "sum(i,1,3,i^2)"),
            ("0.5 * x", "0.5*x"),
        ],
    )
    def test_render(self, text: str, expected: str) -> None:
        assert parse_expression(text).render() == expected

    def test_render_locale(self) -> None:
        de = NumberFormat.for_locale("de_DE")
        assert parse_expression("1,5+x", de).render() == "1,5+x"
        assert parse_expression("if(x > 1; 2; 3)", de).render() == "if(x>1;2;3)"

    def test_negative_constant_renders_bracketed(self) -> None:
        assert Constant(-2.0).render() == "(-2)"


class TestRoundTrip:
    """parse(render(parse(f))) evaluates exactly like parse(f)."""

    ENV = {"x": 1.5, "y": -2.0, "p": True, "q": False}

    @pytest.mark.parametrize(
        "text",
        [
            "x - (y - 3)",
            "x / (y / 2)",
            "(x^2)^3",
            "-x^2",
            "(-x)^2",
            "2^-x",
            "x * -y",
            "x - -y",
            "1e-3 * x + 0.1",
            "x - (y + 0.1)",
            "cos(x)^2 + sin(x)^2",
            "sum(i, 1, 4, i * x)",
            "if(x > y, x, y)",
            "!(p && q) || q",
            "(x < y) == q",
            "p ## q && p",
            "exp(-x / 3) * (y - x)",
        ],
    )
    def test_round_trip(self, text: str) -> None:
        first = parse_expression(text)
        second = parse_expression(first.render())
        assert second.evaluate(self.ENV) == first.evaluate(self.ENV)
        assert second.render() == first.render()


# ────────────────────────────────────────────────────────────────
# split_arguments
# ────────────────────────────────────────────────────────────────


class TestSplitArguments:
    def test_nested(self) -> None:
        assert split_arguments("(1,(2,3),4)") == ["1", "(2,3)", "4"]

    def test_mixed_brackets(self) -> None:
        assert split_arguments("(a,[b,c},d)") == ["a", "[b,c}", "d"]

    def test_without_outer_brackets(self) -> None:
        assert split_arguments("f(1,2), 3") == ["f(1,2)", "3"]

    def test_separator(self) -> None:
        assert split_arguments("(1,5;2,5)", ";") == ["1,5", "2,5"]

    def test_empty(self) -> None:
        assert split_arguments("()") == []

    def test_empty_argument_is_kept(self) -> None:
        assert split_arguments("(a,)") == ["a", ""]

    def test_unbalanced(self) -> None:
        with pytest.raises(FormulaParseError):
            split_arguments("(1,[2,3}")
        with pytest.raises(FormulaParseError):
            split_arguments("1,2)")
