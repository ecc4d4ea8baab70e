"""Tests for symbolic differentiation, integration and constant folding."""

from __future__ import annotations

import math

import pytest

from fincalc.formulas import (
    Constant,
    Continuous,
    Transform,
    UnsupportedOperationError,
    Variable,
    parse_expression,
)
from fincalc.formulas.operators import difference, power, product, quotient, total


def _at(text: str, **env: float) -> float:
    return parse_expression(text).evaluate(env).magnitude


def _numeric_derivative(text: str, x: float, h: float = 1e-6) -> float:
    node = parse_expression(text)
    hi = node.evaluate({"x": x + h}).magnitude
    lo = node.evaluate({"x": x - h}).magnitude
    return (hi - lo) / (2 * h)


# ────────────────────────────────────────────────────────────────
# Derivatives
# ────────────────────────────────────────────────────────────────


class TestDifferentiate:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("3*x", "3"),
            ("x^2", "2*x"),
            ("x + y", "1"),
            ("y", "0"),
            ("sin(x)", "cos(x)"),
            ("ln(x)", "1/x"),
            ("exp(2*x)", "exp(2*x)*2"),
            ("-x", "(-1)"),
        ],
    )
    def test_rendered_result(self, text: str, expected: str) -> None:
        assert parse_expression(text).differentiate("x").render() == expected

    @pytest.mark.parametrize(
        "text",
        [
            "x^3 - 4*x",
            "x * exp(x)",
            "sin(x) / x",
            "2^x",
            "x^x",
            "tan(x)",
            "sqrt(x)",
            "arctan(x)",
            "arcsin(x / 2)",
            "sinh(x) * cosh(x)",
            "tanh(x)",
            "log(x)",
            "sec(x)",
            "arcsech(x / 2)",
            "ln(cos(x) + 2)",
        ],
    )
    def test_matches_finite_difference(self, text: str) -> None:
        derivative = parse_expression(text).differentiate("x")
        for x in (0.4, 0.9, 1.3):
            expected = _numeric_derivative(text, x)
            assert derivative.evaluate({"x": x}).magnitude == pytest.approx(expected, rel=1e-5)

    def test_derivative_keeps_other_variables(self) -> None:
        derivative = parse_expression("a * x^2").differentiate("x")
        assert derivative.evaluate({"a": 3, "x": 2}).magnitude == 12

    def test_unsupported_if(self) -> None:
        node = parse_expression("if(x > 0, x, -x)")
        outcome = node.derivative("x")
        assert isinstance(outcome, Transform)
        assert not outcome.supported
        assert "if" in outcome.reason
        with pytest.raises(UnsupportedOperationError) as exc_info:
            node.differentiate("x")
        assert exc_info.value.operation == "differentiate"

    def test_unsupported_comparison(self) -> None:
        with pytest.raises(UnsupportedOperationError):
            parse_expression("x > 1").differentiate("x")

    def test_unsupported_propagates_from_subtree(self) -> None:
        with pytest.raises(UnsupportedOperationError):
            parse_expression("2 * sgn(x) + x").differentiate("x")

    def test_sum_rewrites_body_only(self) -> None:
        derivative = parse_expression("sum(i, 1, 3, i * x^2)").differentiate("x")
        assert derivative.render() == "sum(i,1,3,i*(2*x))"
        assert derivative.evaluate({"x": 1}).magnitude == 12

    def test_prod_unsupported(self) -> None:
        with pytest.raises(UnsupportedOperationError):
            parse_expression("prod(i, 1, 3, x)").differentiate("x")


# ────────────────────────────────────────────────────────────────
# Antiderivatives
# ────────────────────────────────────────────────────────────────


class TestIntegrate:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("3", "3*x"),
            ("x", "x^2/2"),
            ("x^3", "x^4/4"),
            ("1/x", "ln(abs(x))"),
            ("x^-1", "ln(abs(x))"),
            ("sin(x)", "-cos(x)"),
            ("exp(x)", "exp(x)"),
            ("y", "y*x"),
        ],
    )
    def test_rendered_result(self, text: str, expected: str) -> None:
        assert parse_expression(text).integrate("x").render() == expected

    @pytest.mark.parametrize(
        "text",
        ["2*x + 1", "x^2 - 3*x", "cos(x) + exp(x)", "4 * x^-2", "3^x", "tan(x)", "sqrt(x)", "ln(x)", "x / 5"],
    )
    def test_derivative_of_antiderivative(self, text: str) -> None:
        antiderivative = parse_expression(text).integrate("x")
        back = antiderivative.differentiate("x")
        for x in (0.5, 1.2, 2.0):
            assert back.evaluate({"x": x}).magnitude == pytest.approx(_at(text, x=x), rel=1e-9)

    def test_unsupported_product_of_dependents(self) -> None:
        node = parse_expression("x * sin(x)")
        assert not node.antiderivative("x").supported
        with pytest.raises(UnsupportedOperationError) as exc_info:
            node.integrate("x")
        assert exc_info.value.operation == "integrate"

    def test_unsupported_if(self) -> None:
        with pytest.raises(UnsupportedOperationError):
            parse_expression("if(x > 0, x)").integrate("x")

    def test_unsupported_logical_constant(self) -> None:
        with pytest.raises(UnsupportedOperationError):
            parse_expression("true").integrate("x")

    def test_sum_rewrites_body_only(self) -> None:
        antiderivative = parse_expression("sum(i, 1, 3, i * x)").integrate("x")
        assert antiderivative.render() == "sum(i,1,3,i*(x^2/2))"
        assert antiderivative.evaluate({"x": 2}).magnitude == 12


# ────────────────────────────────────────────────────────────────
# Simplifying constructors and folding
# ────────────────────────────────────────────────────────────────


class TestSimplify:
    def test_identities(self) -> None:
        x = Variable("x")
        zero, one = Constant.of(0.0), Constant.of(1.0)
        assert total(x, zero) is x
        assert product(one, x) is x
        assert product(zero, x).render() == "0"
        assert quotient(x, one) is x
        assert power(x, one) is x
        assert power(x, zero).render() == "1"
        assert difference(x, x).render() == "0"

    def test_constants_fold(self) -> None:
        assert total(Constant.of(2.0), Constant.of(3.0)).render() == "5"

    def test_division_by_zero_is_not_folded(self) -> None:
        assert quotient(Constant.of(1.0), Constant.of(0.0)).render() == "1/0"

    def test_overflow_is_not_folded(self) -> None:
        big = Constant.of(1e308)
        node = total(big, big)
        assert not isinstance(node, Constant)
        assert parse_expression(node.render()) == node
        assert node.evaluate().magnitude == math.inf


class TestOptimize:
    def test_folds_constant_subtrees(self) -> None:
        assert parse_expression("2*3 + x").optimize().render() == "6+x"

    def test_folds_whole_tree(self) -> None:
        node = parse_expression("sum(i, 1, 4, i) * 2").optimize()
        assert isinstance(node, Constant)
        assert node.value == Continuous(20.0)

    def test_keeps_random(self) -> None:
        node = parse_expression("rand(1) + 1")
        assert not node.is_deterministic()
        assert node.optimize().render() == "rand(1)+1"

    def test_keeps_failing_subtree(self) -> None:
        node = parse_expression("1/0 + x").optimize()
        assert node.render() == "1/0+x"
        with pytest.raises(ZeroDivisionError):
            node.evaluate({"x": 1})

    def test_keeps_overflowing_subtree(self) -> None:
        node = parse_expression("1e308 * 10 + x").optimize()
        assert node.render() == parse_expression("1e308 * 10 + x").render()
        assert parse_expression(node.render()).variables() == {"x"}
        assert node.evaluate({"x": 1}).magnitude == math.inf

    def test_finite_part_of_overflowing_tree_still_folds(self) -> None:
        node = parse_expression("(2 + 3) * 1e308 * 10").optimize()
        assert not isinstance(node, Constant)
        assert node.render().startswith("5*")

    def test_optimized_tree_evaluates_the_same(self) -> None:
        text = "x * (2 + 3) - sin(0) + sum(i, 1, x, i)"
        node = parse_expression(text)
        assert node.optimize().evaluate({"x": 3}) == node.evaluate({"x": 3})
