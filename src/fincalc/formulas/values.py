"""Scalar values produced and consumed by the formula engine.

Two variants exist:

- ``Continuous`` -- a real magnitude (``float``).
- ``Logical`` -- a boolean flag.

Both carry a ``NumberFormat`` that controls how literals are parsed and how
results are displayed.  Derived values inherit the format of the left
operand so results render consistently with their inputs.  Operations are
only defined within a variant; mixing them raises ``FormulaTypeError``.
"""

from __future__ import annotations

import math
import re
from decimal import ROUND_HALF_EVEN, Context, Decimal
from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from fincalc.formulas.errors import (
    FormulaDomainError,
    FormulaParseError,
    FormulaTypeError,
)

_PLAIN_LITERAL_RE = re.compile(r"[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")

# Wide enough to quantize any finite float to the fraction digits we allow.
_DISPLAY_CONTEXT = Context(prec=420)


# ---------------------------------------------------------------------------
# Number format
# ---------------------------------------------------------------------------


class NumberFormat(BaseModel):
    """Locale-aware literal parsing and result display settings."""

    model_config = ConfigDict(frozen=True)

    decimal_separator: str = "."
    grouping_separator: str = ","
    grouping_used: bool = False
    max_fraction_digits: int = 3

    @field_validator("decimal_separator", "grouping_separator")
    @classmethod
    def _single_char(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError(f"separator must be a single character, got {v!r}")
        if v.isalnum() or v in "()[]{}+-*/^":
            raise ValueError(f"separator {v!r} collides with formula syntax")
        return v

    @field_validator("max_fraction_digits")
    @classmethod
    def _digits_in_range(cls, v: int) -> int:
        if not 0 <= v <= 15:
            raise ValueError("max_fraction_digits must be between 0 and 15")
        return v

    @model_validator(mode="after")
    def _distinct_separators(self) -> NumberFormat:
        if self.decimal_separator == self.grouping_separator:
            raise ValueError("decimal and grouping separators must differ")
        return self

    @classmethod
    def for_locale(cls, name: str) -> NumberFormat:
        """Return the preset format for a locale name such as ``de_DE``."""
        key = name.replace("-", "_")
        if key not in _LOCALE_PRESETS:
            raise ValueError(
                f"Unknown locale {name!r}. Available: {sorted(_LOCALE_PRESETS)}"
            )
        return cls(**_LOCALE_PRESETS[key])

    @property
    def argument_separator(self) -> str:
        """Separator between function arguments in formula text."""
        return ";" if self.decimal_separator == "," else ","

    def number_pattern(self) -> str:
        """Regex for an unsigned numeric literal in formula text."""
        dec = re.escape(self.decimal_separator)
        return rf"\d+(?:{dec}\d+)?(?:[eE][+-]?\d+)?"

    def parse(self, text: str) -> float:
        """Parse a numeric literal written in this format.

        Raises:
            FormulaParseError: If *text* is not a number in this format
                or is too large for a float.
        """
        raw = text.strip()
        if self.grouping_used:
            raw = raw.replace(self.grouping_separator, "")
        if self.decimal_separator != ".":
            if "." in raw:
                raise FormulaParseError(f"Cannot parse number {text!r}")
            raw = raw.replace(self.decimal_separator, ".")
        if not _PLAIN_LITERAL_RE.fullmatch(raw):
            raise FormulaParseError(f"Cannot parse number {text!r}")
        value = float(raw)
        if not math.isfinite(value):
            raise FormulaParseError(f"Number {text!r} is out of range")
        return value

    def format(self, magnitude: float) -> str:
        """Display text for *magnitude*, rounded half-even."""
        if math.isnan(magnitude):
            return "NaN"
        if math.isinf(magnitude):
            return "-∞" if magnitude < 0 else "∞"

        quantum = Decimal(1).scaleb(-self.max_fraction_digits)
        rounded = Decimal(repr(float(magnitude))).quantize(
            quantum, rounding=ROUND_HALF_EVEN, context=_DISPLAY_CONTEXT
        )
        text = f"{rounded:f}"
        if "." in text:
            text = text.rstrip("0").rstrip(".")
        if text in ("-0", ""):
            text = "0"

        sign = ""
        if text.startswith("-"):
            sign, text = "-", text[1:]
        int_part, _, frac_part = text.partition(".")
        if self.grouping_used:
            int_part = _group_digits(int_part, self.grouping_separator)
        if frac_part:
            return f"{sign}{int_part}{self.decimal_separator}{frac_part}"
        return f"{sign}{int_part}"

    def literal(self, magnitude: float) -> str:
        """Lossless literal for *magnitude* that parses back to the same float."""
        text = repr(float(magnitude))
        mantissa, e, exponent = text.partition("e")
        if mantissa.endswith(".0"):
            mantissa = mantissa[:-2]
        text = mantissa + e + exponent
        return text.replace(".", self.decimal_separator)


def _group_digits(digits: str, separator: str) -> str:
    groups = []
    while len(digits) > 3:
        groups.insert(0, digits[-3:])
        digits = digits[:-3]
    groups.insert(0, digits)
    return separator.join(groups)


_LOCALE_PRESETS: dict[str, dict[str, Any]] = {
    "C": {"decimal_separator": ".", "grouping_separator": ","},
    "en_US": {"decimal_separator": ".", "grouping_separator": ","},
    "en_GB": {"decimal_separator": ".", "grouping_separator": ","},
    "de_DE": {"decimal_separator": ",", "grouping_separator": "."},
    "fr_FR": {"decimal_separator": ",", "grouping_separator": " "},
    "de_CH": {"decimal_separator": ".", "grouping_separator": "'"},
}

DEFAULT_FORMAT = NumberFormat()


# ---------------------------------------------------------------------------
# Values
# ---------------------------------------------------------------------------


class NumberValue:
    """Base class for engine scalars.

    Every arithmetic or logical operation is defined here as a type error
    and overridden by the variant that supports it.
    """

    kind = "value"

    __slots__ = ("_format",)

    def __init__(self, fmt: NumberFormat | None = None) -> None:
        self._format = fmt or DEFAULT_FORMAT

    @property
    def format(self) -> NumberFormat:
        """The display/parse format threaded through derived values."""
        return self._format

    def copy(self) -> NumberValue:
        raise NotImplementedError

    def display(self) -> str:
        raise NotImplementedError

    def _unsupported(self, operation: str, other: NumberValue | None = None) -> FormulaTypeError:
        if other is None:
            return FormulaTypeError(f"{operation} is not defined for {self.kind} values")
        return FormulaTypeError(
            f"{operation} is not defined between {self.kind} and {other.kind} values"
        )

    def add(self, other: NumberValue, additive: bool = True) -> NumberValue:
        raise self._unsupported("add" if additive else "sub", other)

    def sub(self, other: NumberValue) -> NumberValue:
        return self.add(other, additive=False)

    def mul(self, other: NumberValue) -> NumberValue:
        raise self._unsupported("mul", other)

    def div(self, other: NumberValue) -> NumberValue:
        raise self._unsupported("div", other)

    def pow(self, other: NumberValue) -> NumberValue:
        raise self._unsupported("pow", other)

    def neg(self) -> NumberValue:
        raise self._unsupported("neg")

    def apply(self, func: Callable[[float], float], name: str = "function") -> NumberValue:
        raise self._unsupported(name)

    def compare_to(self, other: NumberValue) -> int:
        raise self._unsupported("compare", other)

    def equals(self, other: NumberValue) -> bool:
        raise self._unsupported("equals", other)

    def and_(self, other: NumberValue) -> NumberValue:
        raise self._unsupported("and", other)

    def or_(self, other: NumberValue) -> NumberValue:
        raise self._unsupported("or", other)

    def xor(self, other: NumberValue) -> NumberValue:
        raise self._unsupported("xor", other)

    def not_(self) -> NumberValue:
        raise self._unsupported("not")

    def __str__(self) -> str:
        return self.display()


class Continuous(NumberValue):
    """A real-valued scalar."""

    kind = "continuous"

    __slots__ = ("_magnitude",)

    def __init__(self, magnitude: float, fmt: NumberFormat | None = None) -> None:
        super().__init__(fmt)
        self._magnitude = float(magnitude)

    @classmethod
    def zero(cls, fmt: NumberFormat | None = None) -> Continuous:
        return cls(0.0, fmt)

    @classmethod
    def one(cls, fmt: NumberFormat | None = None) -> Continuous:
        return cls(1.0, fmt)

    @property
    def magnitude(self) -> float:
        return self._magnitude

    def copy(self) -> Continuous:
        return Continuous(self._magnitude, self._format)

    def display(self) -> str:
        return self._format.format(self._magnitude)

    def _other(self, other: NumberValue, operation: str) -> float:
        if not isinstance(other, Continuous):
            raise self._unsupported(operation, other)
        return other._magnitude

    def add(self, other: NumberValue, additive: bool = True) -> Continuous:
        """Return ``self + other``, or ``self - other`` when *additive* is False."""
        rhs = self._other(other, "add" if additive else "sub")
        if additive:
            return Continuous(self._magnitude + rhs, self._format)
        return Continuous(self._magnitude - rhs, self._format)

    def mul(self, other: NumberValue) -> Continuous:
        return Continuous(self._magnitude * self._other(other, "mul"), self._format)

    def div(self, other: NumberValue) -> Continuous:
        rhs = self._other(other, "div")
        if rhs == 0:
            raise ZeroDivisionError("Division by zero in formula")
        return Continuous(self._magnitude / rhs, self._format)

    def pow(self, other: NumberValue) -> Continuous:
        rhs = self._other(other, "pow")
        try:
            result = self._magnitude ** rhs
        except ZeroDivisionError as exc:
            raise ZeroDivisionError("Zero raised to a negative power in formula") from exc
        except OverflowError as exc:
            raise FormulaDomainError(f"{self.display()}^{other.display()} overflows") from exc
        if isinstance(result, complex):
            raise FormulaDomainError(
                f"{self.display()}^{other.display()} has no real value"
            )
        return Continuous(result, self._format)

    def neg(self) -> Continuous:
        return Continuous(-self._magnitude, self._format)

    def apply(self, func: Callable[[float], float], name: str = "function") -> Continuous:
        """Apply a real function, mapping math domain failures to ``FormulaDomainError``."""
        try:
            result = func(self._magnitude)
        except ZeroDivisionError as exc:
            raise FormulaDomainError(f"{name}({self.display()}) is undefined") from exc
        except (ValueError, OverflowError) as exc:
            raise FormulaDomainError(f"{name}({self.display()}) is undefined: {exc}") from exc
        return Continuous(result, self._format)

    def compare_to(self, other: NumberValue) -> int:
        rhs = self._other(other, "compare")
        if self._magnitude < rhs:
            return -1
        if self._magnitude > rhs:
            return 1
        return 0

    def equals(self, other: NumberValue) -> bool:
        return self._magnitude == self._other(other, "equals")

    def __float__(self) -> float:
        return self._magnitude

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Continuous):
            return NotImplemented
        return self._magnitude == other._magnitude

    def __hash__(self) -> int:
        return hash(("continuous", self._magnitude))

    def __repr__(self) -> str:
        return f"Continuous({self._magnitude!r})"


class Logical(NumberValue):
    """A boolean scalar."""

    kind = "logical"

    __slots__ = ("_flag",)

    def __init__(self, flag: bool, fmt: NumberFormat | None = None) -> None:
        super().__init__(fmt)
        self._flag = bool(flag)

    @property
    def flag(self) -> bool:
        return self._flag

    def copy(self) -> Logical:
        return Logical(self._flag, self._format)

    def display(self) -> str:
        return "true" if self._flag else "false"

    def _other(self, other: NumberValue, operation: str) -> bool:
        if not isinstance(other, Logical):
            raise self._unsupported(operation, other)
        return other._flag

    def and_(self, other: NumberValue) -> Logical:
        return Logical(self._flag and self._other(other, "and"), self._format)

    def or_(self, other: NumberValue) -> Logical:
        return Logical(self._flag or self._other(other, "or"), self._format)

    def xor(self, other: NumberValue) -> Logical:
        return Logical(self._flag != self._other(other, "xor"), self._format)

    def not_(self) -> Logical:
        return Logical(not self._flag, self._format)

    def equals(self, other: NumberValue) -> bool:
        return self._flag == self._other(other, "equals")

    def __bool__(self) -> bool:
        return self._flag

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Logical):
            return NotImplemented
        return self._flag == other._flag

    def __hash__(self) -> int:
        return hash(("logical", self._flag))

    def __repr__(self) -> str:
        return f"Logical({self._flag!r})"


def coerce(raw: Any, fmt: NumberFormat | None = None) -> NumberValue:
    """Turn a Python scalar into a ``NumberValue``.

    ``bool`` becomes ``Logical``; ``int`` and ``float`` become
    ``Continuous``; existing values pass through unchanged.
    """
    if isinstance(raw, NumberValue):
        return raw
    if isinstance(raw, bool):
        return Logical(raw, fmt)
    if isinstance(raw, (int, float)):
        return Continuous(float(raw), fmt)
    raise FormulaTypeError(f"Cannot use {type(raw).__name__} value {raw!r} in a formula")
