"""Function framework: built-in and user-defined function nodes.

Importing this package registers every built-in keyword.
"""

from fincalc.functions.registry import (
    FunctionRegistry,
    builtin_names,
    is_builtin,
    register_builtin,
)
from fincalc.functions.base import Function
from fincalc.functions.builtins import If, Iteration, Prod, Sum
from fincalc.functions.elementary import ElementaryFunction, ElementaryRule, elementary_names
from fincalc.functions.user import UserDefinedFunction, parse_user_function

__all__ = [
    "ElementaryFunction",
    "ElementaryRule",
    "Function",
    "FunctionRegistry",
    "If",
    "Iteration",
    "Prod",
    "Sum",
    "UserDefinedFunction",
    "builtin_names",
    "elementary_names",
    "is_builtin",
    "parse_user_function",
    "register_builtin",
]
