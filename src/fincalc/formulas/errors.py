"""Error types for formula parsing, evaluation and symbolic transforms."""

from __future__ import annotations


class FormulaError(Exception):
    """Base class for all formula-related errors."""


class FormulaParseError(FormulaError):
    """Syntax error in a formula expression or function declaration.

    Attributes:
        position: Character position where the error was detected.
        message: Human-readable description.
    """

    def __init__(self, message: str, position: int | None = None) -> None:
        self.position = position
        self.message = message
        full = f"Formula parse error: {message}"
        if position is not None:
            full += f" (at position {position})"
        super().__init__(full)


class FormulaTypeError(FormulaError):
    """A value of the wrong variant reached an operation.

    Raised for Logical/Continuous mixing, non-Logical conditions and
    unbound variable lookups.
    """


class FormulaRefError(FormulaTypeError):
    """Reference to an unbound variable name.

    Attributes:
        ref_name: The unresolved reference.
        available: Names that are currently bound.
    """

    def __init__(self, ref_name: str, available: list[str] | None = None) -> None:
        self.ref_name = ref_name
        self.available = available or []
        msg = f"Unknown reference: {ref_name!r}"
        if self.available:
            msg += f". Available: {self.available}"
        super().__init__(msg)


class FormulaFunctionError(FormulaError):
    """Unknown function or misuse of a function's parameters.

    Attributes:
        func_name: The function that caused the error.
    """

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        msg = message or f"Unknown function: {func_name!r}"
        super().__init__(msg)


class FormulaArityError(FormulaFunctionError):
    """Argument count outside a function's declared bounds."""

    def __init__(self, func_name: str, given: int, minimum: int, maximum: int) -> None:
        self.given = given
        self.minimum = minimum
        self.maximum = maximum
        if minimum == maximum:
            expected = f"exactly {minimum}"
        else:
            expected = f"{minimum}-{maximum}"
        super().__init__(
            func_name,
            f"{func_name} requires {expected} arguments, got {given}",
        )


class FormulaDomainError(FormulaError):
    """A math function was applied outside its domain (e.g. ``ln(-1)``)."""


class UnsupportedOperationError(FormulaError):
    """A symbolic operation was requested on a node without a rule for it.

    Attributes:
        operation: ``"differentiate"`` or ``"integrate"``.
        node_name: Name of the node kind that has no rule.
    """

    def __init__(self, operation: str, node_name: str, reason: str | None = None) -> None:
        self.operation = operation
        self.node_name = node_name
        msg = f"{operation} is not supported for {node_name}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


# Errors an evaluation can raise; callers that recover do so on this tuple.
ENGINE_ERRORS: tuple[type[Exception], ...] = (
    FormulaError,
    ZeroDivisionError,
)
