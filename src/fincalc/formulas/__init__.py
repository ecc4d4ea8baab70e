"""Formula parsing, evaluation and symbolic calculus.

Public API::

    from fincalc.formulas import parse_expression, evaluate_formula, Environment
"""

from fincalc.formulas.environment import Environment
from fincalc.formulas.errors import (
    ENGINE_ERRORS,
    FormulaArityError,
    FormulaDomainError,
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    FormulaTypeError,
    UnsupportedOperationError,
)
from fincalc.formulas.evaluator import (
    differentiate_formula,
    evaluate_formula,
    integrate_formula,
    parse_formula,
)
from fincalc.formulas.nodes import Constant, Level, Node, Transform, Variable
from fincalc.formulas.parser import parse_expression, split_arguments
from fincalc.formulas.values import (
    DEFAULT_FORMAT,
    Continuous,
    Logical,
    NumberFormat,
    NumberValue,
)

__all__ = [
    "DEFAULT_FORMAT",
    "ENGINE_ERRORS",
    "Constant",
    "Continuous",
    "Environment",
    "FormulaArityError",
    "FormulaDomainError",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRefError",
    "FormulaTypeError",
    "Level",
    "Logical",
    "Node",
    "NumberFormat",
    "NumberValue",
    "Transform",
    "UnsupportedOperationError",
    "Variable",
    "differentiate_formula",
    "evaluate_formula",
    "integrate_formula",
    "parse_expression",
    "parse_formula",
    "split_arguments",
]
