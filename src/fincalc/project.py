"""Project-level configuration and scaffolding."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from fincalc.formulas.values import NumberFormat
from fincalc.functions.registry import FunctionRegistry

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "fincalc.yaml"

DEFAULT_CONFIG: dict[str, Any] = {
    "locale": None,
    "number_format": {},
    "max_nesting_depth": 64,
    "functions": [],
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}


DEMO_CONFIG = """\
# fincalc project config
locale: en_US
number_format:
  max_fraction_digits: 3
max_nesting_depth: 64
functions:
  - "cube(x)=x^3"
  - "pythagoras(a,b)=sqrt(a^2+b^2)"
  - "sumup(n)=sum(v,1,n,v)"
logging_fsync: false
"""


def _flatten_number_format(user_config: dict[str, Any]) -> dict[str, Any]:
    """Accept flat ``decimal_separator``-style keys as well as the nested block.

    Supports::

        number_format:
          decimal_separator: ","
          grouping_separator: "."

    and the same keys at the top level.  Top-level keys win.
    """
    block = dict(user_config.get("number_format") or {})
    for key in NumberFormat.model_fields:
        if key in user_config:
            block[key] = user_config.pop(key)
    user_config["number_format"] = block
    return user_config


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``fincalc.yaml``, with defaults.

    Args:
        project_dir: Root of the fincalc project.

    Returns:
        Merged configuration dict.

    Raises:
        ValueError: If the file is not a YAML mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = Path(project_dir) / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ValueError(f"{config_path} must contain a mapping")
        config.update(_flatten_number_format(user_config))
    return config


def number_format_from_config(config: dict[str, Any]) -> NumberFormat:
    """Build the ``NumberFormat`` described by *config*.

    A ``locale`` preset is applied first; explicit ``number_format`` keys
    override it.

    Raises:
        ValueError: Unknown locale or invalid format settings.
    """
    base: dict[str, Any] = {}
    locale = config.get("locale")
    if locale:
        base = NumberFormat.for_locale(locale).model_dump()
    base.update(config.get("number_format") or {})
    return NumberFormat(**base)


def build_registry(config: dict[str, Any], fmt: NumberFormat | None = None) -> FunctionRegistry:
    """Declare the configured functions, in order, into a new registry.

    Later declarations may call earlier ones.

    Raises:
        FormulaParseError: A declaration is malformed.
        FormulaFunctionError: A declaration redefines a built-in.
    """
    fmt = fmt or number_format_from_config(config)
    registry = FunctionRegistry()
    for declaration in config.get("functions") or []:
        registry.declare(str(declaration), fmt)
    logger.debug("declared %d configured functions", len(registry))
    return registry


def scaffold_project(target_dir: Path) -> Path:
    """Create a new fincalc project at the target directory.

    Args:
        target_dir: Directory to create (must not already contain fincalc.yaml).

    Returns:
        Path to the created project directory.
    """
    target_dir = Path(target_dir).resolve()
    target_dir.mkdir(parents=True, exist_ok=True)

    config_path = target_dir / CONFIG_FILENAME
    if config_path.exists():
        raise FileExistsError(f"{CONFIG_FILENAME} already exists in {target_dir}")
    config_path.write_text(DEMO_CONFIG)
    (target_dir / "logs").mkdir(exist_ok=True)
    return target_dir
