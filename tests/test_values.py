"""Tests for NumberFormat and the Continuous / Logical value variants."""

from __future__ import annotations

import math

import pytest
from pydantic import ValidationError

from fincalc.formulas import (
    Continuous,
    FormulaDomainError,
    FormulaParseError,
    FormulaTypeError,
    Logical,
    NumberFormat,
)
from fincalc.formulas.values import DEFAULT_FORMAT, coerce


# ────────────────────────────────────────────────────────────────
# NumberFormat
# ────────────────────────────────────────────────────────────────


class TestNumberFormat:
    def test_defaults(self) -> None:
        fmt = NumberFormat()
        assert fmt.decimal_separator == "."
        assert fmt.max_fraction_digits == 3
        assert fmt.argument_separator == ","

    def test_display_rounds_to_three_digits(self) -> None:
        assert DEFAULT_FORMAT.format(3.14159) == "3.142"
        assert DEFAULT_FORMAT.format(2.0) == "2"
        assert DEFAULT_FORMAT.format(0.5) == "0.5"

    def test_display_never_shows_negative_zero(self) -> None:
        assert DEFAULT_FORMAT.format(-0.0001) == "0"
        assert DEFAULT_FORMAT.format(-0.0) == "0"

    def test_display_grouping(self) -> None:
        fmt = NumberFormat(grouping_used=True)
        assert fmt.format(1234567.5) == "1,234,567.5"
        assert fmt.format(-1234.0) == "-1,234"
        assert fmt.format(999.0) == "999"

    def test_display_german(self) -> None:
        fmt = NumberFormat(decimal_separator=",", grouping_separator=".", grouping_used=True)
        assert fmt.format(1234567.891) == "1.234.567,891"

    def test_display_special_values(self) -> None:
        assert DEFAULT_FORMAT.format(math.nan) == "NaN"
        assert DEFAULT_FORMAT.format(math.inf) == "∞"
        assert DEFAULT_FORMAT.format(-math.inf) == "-∞"

    def test_more_fraction_digits(self) -> None:
        fmt = NumberFormat(max_fraction_digits=6)
        assert fmt.format(math.pi) == "3.141593"

    def test_parse(self) -> None:
        assert DEFAULT_FORMAT.parse("1.5") == 1.5
        assert DEFAULT_FORMAT.parse("2e3") == 2000.0

    def test_parse_locale(self) -> None:
        de = NumberFormat.for_locale("de_DE")
        assert de.parse("1,5") == 1.5
        with pytest.raises(FormulaParseError):
            de.parse("1.5")

    def test_parse_grouped(self) -> None:
        fmt = NumberFormat(grouping_used=True)
        assert fmt.parse("1,234.5") == 1234.5

    def test_parse_rejects_garbage(self) -> None:
        with pytest.raises(FormulaParseError):
            DEFAULT_FORMAT.parse("abc")

    def test_parse_rejects_out_of_range(self) -> None:
        with pytest.raises(FormulaParseError, match="out of range"):
            DEFAULT_FORMAT.parse("1e400")
        with pytest.raises(FormulaParseError, match="out of range"):
            DEFAULT_FORMAT.parse("-1e400")
        assert DEFAULT_FORMAT.parse("1e308") == 1e308

    def test_literal_is_lossless(self) -> None:
        for magnitude in (0.1, 1 / 3, 2.0, 1e20, 1.5e-7, 123456.789):
            assert DEFAULT_FORMAT.parse(DEFAULT_FORMAT.literal(magnitude)) == magnitude

    def test_literal_uses_decimal_separator(self) -> None:
        de = NumberFormat.for_locale("de_DE")
        assert de.literal(2.5) == "2,5"
        assert de.literal(3.0) == "3"

    def test_comma_decimal_uses_semicolon_arguments(self) -> None:
        assert NumberFormat.for_locale("de_DE").argument_separator == ";"
        assert NumberFormat.for_locale("de_CH").argument_separator == ","

    def test_unknown_locale(self) -> None:
        with pytest.raises(ValueError, match="Unknown locale"):
            NumberFormat.for_locale("xx_XX")

    def test_separator_validation(self) -> None:
        with pytest.raises(ValidationError):
            NumberFormat(decimal_separator="ab")
        with pytest.raises(ValidationError):
            NumberFormat(decimal_separator="+")
        with pytest.raises(ValidationError):
            NumberFormat(decimal_separator=",", grouping_separator=",")

    def test_fraction_digit_bounds(self) -> None:
        with pytest.raises(ValidationError):
            NumberFormat(max_fraction_digits=16)

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            DEFAULT_FORMAT.decimal_separator = ","  # type: ignore[misc]


# ────────────────────────────────────────────────────────────────
# Continuous
# ────────────────────────────────────────────────────────────────


class TestContinuous:
    def test_arithmetic(self) -> None:
        a, b = Continuous(6.0), Continuous(4.0)
        assert a.add(b).magnitude == 10.0
        assert a.add(b, additive=False).magnitude == 2.0
        assert a.sub(b).magnitude == 2.0
        assert a.mul(b).magnitude == 24.0
        assert a.div(b).magnitude == 1.5
        assert a.pow(Continuous(2.0)).magnitude == 36.0
        assert a.neg().magnitude == -6.0

    def test_result_inherits_left_format(self) -> None:
        de = NumberFormat.for_locale("de_DE")
        result = Continuous(1.25, de).add(Continuous(1.0))
        assert result.format == de
        assert result.display() == "2,25"

    def test_copy_is_equal_and_independent(self) -> None:
        a = Continuous(3.0)
        b = a.copy()
        assert a == b
        assert a is not b

    def test_compare_to(self) -> None:
        assert Continuous(1.0).compare_to(Continuous(2.0)) == -1
        assert Continuous(2.0).compare_to(Continuous(2.0)) == 0
        assert Continuous(3.0).compare_to(Continuous(2.0)) == 1

    def test_division_by_zero(self) -> None:
        with pytest.raises(ZeroDivisionError):
            Continuous(1.0).div(Continuous.zero())

    def test_complex_power_is_domain_error(self) -> None:
        with pytest.raises(FormulaDomainError):
            Continuous(-8.0).pow(Continuous(1 / 3))

    def test_zero_to_negative_power(self) -> None:
        with pytest.raises(ZeroDivisionError):
            Continuous(0.0).pow(Continuous(-1.0))

    def test_apply_maps_math_errors(self) -> None:
        assert Continuous(4.0).apply(math.sqrt, "sqrt").magnitude == 2.0
        with pytest.raises(FormulaDomainError, match="sqrt"):
            Continuous(-1.0).apply(math.sqrt, "sqrt")

    def test_mixing_variants_is_type_error(self) -> None:
        with pytest.raises(FormulaTypeError):
            Continuous(1.0).add(Logical(True))
        with pytest.raises(FormulaTypeError):
            Continuous(1.0).compare_to(Logical(False))

    def test_logic_on_continuous_is_type_error(self) -> None:
        with pytest.raises(FormulaTypeError):
            Continuous(1.0).and_(Continuous(1.0))
        with pytest.raises(FormulaTypeError):
            Continuous(1.0).not_()

    def test_identities(self) -> None:
        assert Continuous.zero().magnitude == 0.0
        assert Continuous.one().magnitude == 1.0


# ────────────────────────────────────────────────────────────────
# Logical
# ────────────────────────────────────────────────────────────────


class TestLogical:
    def test_logic(self) -> None:
        t, f = Logical(True), Logical(False)
        assert t.and_(f).flag is False
        assert t.or_(f).flag is True
        assert t.xor(t).flag is False
        assert t.xor(f).flag is True
        assert f.not_().flag is True

    def test_display(self) -> None:
        assert Logical(True).display() == "true"
        assert str(Logical(False)) == "false"

    def test_equals(self) -> None:
        assert Logical(True).equals(Logical(True))
        assert not Logical(True).equals(Logical(False))

    def test_compare_to_is_type_error(self) -> None:
        with pytest.raises(FormulaTypeError):
            Logical(True).compare_to(Logical(False))

    def test_arithmetic_is_type_error(self) -> None:
        with pytest.raises(FormulaTypeError):
            Logical(True).add(Logical(True))
        with pytest.raises(FormulaTypeError):
            Logical(True).neg()


class TestCoerce:
    def test_scalars(self) -> None:
        assert coerce(True) == Logical(True)
        assert coerce(3) == Continuous(3.0)
        assert coerce(2.5) == Continuous(2.5)

    def test_value_passes_through(self) -> None:
        v = Continuous(1.0)
        assert coerce(v) is v

    def test_rejects_strings(self) -> None:
        with pytest.raises(FormulaTypeError):
            coerce("1")
