"""Command-line interface for fincalc."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import click

from fincalc import __core_api_version__, __version__
from fincalc.formulas.errors import ENGINE_ERRORS
from fincalc.formulas.values import Continuous, NumberFormat, NumberValue


@click.group()
@click.version_option(
    version=f"{__version__} (core_api={__core_api_version__})",
    prog_name="fincalc",
)
def main() -> None:
    """fincalc -- formula evaluation and symbolic calculus."""


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


class _Session:
    """Format, function registry and limits for one command invocation."""

    def __init__(self, fmt: NumberFormat, registry: Any, max_depth: int | None) -> None:
        self.fmt = fmt
        self.registry = registry
        self.max_depth = max_depth


def _open_session(
    directory: str | None,
    locale: str | None = None,
    definitions: tuple[str, ...] = (),
) -> _Session:
    from fincalc.logging.events import set_log_dir
    from fincalc.project import (
        DEFAULT_CONFIG,
        build_registry,
        load_project_config,
        number_format_from_config,
    )

    try:
        if directory is not None:
            config = load_project_config(Path(directory))
            set_log_dir(Path(directory))
        else:
            config = dict(DEFAULT_CONFIG)
        if locale:
            config["locale"] = locale
        fmt = number_format_from_config(config)
        registry = build_registry(config, fmt)
        for declaration in definitions:
            registry.declare(declaration, fmt)
    except (ValueError, *ENGINE_ERRORS) as e:
        raise click.ClickException(str(e))
    return _Session(fmt, registry, config.get("max_nesting_depth"))


def _parse_bindings(session: _Session, overrides: tuple[str, ...]) -> dict[str, NumberValue]:
    from fincalc.formulas.parser import parse_expression

    bindings: dict[str, NumberValue] = {}
    for item in overrides:
        if "=" not in item:
            raise click.ClickException(f"Invalid --set format: {item!r}. Use name=value.")
        name, text = item.split("=", 1)
        try:
            node = parse_expression(text, session.fmt, session.registry, session.max_depth)
            bindings[name.strip()] = node.evaluate(bindings, session.fmt)
        except ENGINE_ERRORS as e:
            raise click.ClickException(f"--set {name}: {e}")
    return bindings


def _value_json(value: NumberValue) -> dict[str, Any]:
    raw: Any = value.magnitude if isinstance(value, Continuous) else bool(value)
    return {"kind": value.kind, "value": raw, "display": value.display()}


_project_option = click.option(
    "--project", "directory", default=None, type=click.Path(exists=True, file_okay=False),
    help="Project directory with fincalc.yaml.",
)
_locale_option = click.option("--locale", default=None, help="Number format preset, e.g. de_DE.")
_define_option = click.option(
    "--define", "definitions", multiple=True, help="Declare a function, e.g. 'f(x)=3*x+5'.",
)


# ---------------------------------------------------------------------------
# New
# ---------------------------------------------------------------------------


@main.command()
@click.argument("directory", type=click.Path())
def new(directory: str) -> None:
    """Scaffold a new project at DIRECTORY."""
    from fincalc.project import scaffold_project

    try:
        result = scaffold_project(Path(directory))
        click.echo(f"Created project at {result}")
    except FileExistsError as e:
        raise click.ClickException(str(e))


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.argument("formula")
@click.option("--set", "overrides", multiple=True, help="Bind a variable as name=value.")
@_define_option
@_project_option
@_locale_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def eval_cmd(
    formula: str,
    overrides: tuple[str, ...],
    definitions: tuple[str, ...],
    directory: str | None,
    locale: str | None,
    as_json: bool,
) -> None:
    """Evaluate FORMULA and print the result."""
    from fincalc.formulas.evaluator import evaluate_formula

    session = _open_session(directory, locale, definitions)
    bindings = _parse_bindings(session, overrides)
    try:
        value = evaluate_formula(
            formula, bindings, session.fmt, session.registry, session.max_depth
        )
    except ENGINE_ERRORS as e:
        raise click.ClickException(str(e))

    if as_json:
        out = {"formula": formula, **_value_json(value)}
        click.echo(json.dumps(out, indent=2))
    else:
        click.echo(value.display())


# ---------------------------------------------------------------------------
# Symbolic calculus
# ---------------------------------------------------------------------------


def _transform_cmd(
    operation: str,
    formula: str,
    var: str,
    definitions: tuple[str, ...],
    directory: str | None,
    locale: str | None,
    optimize: bool,
) -> None:
    from fincalc.formulas.evaluator import (
        differentiate_formula,
        integrate_formula,
        parse_formula,
    )

    session = _open_session(directory, locale, definitions)
    transform = differentiate_formula if operation == "diff" else integrate_formula
    try:
        node = parse_formula(formula, session.fmt, session.registry, session.max_depth)
        result = transform(node, var, session.fmt, session.registry)
    except ENGINE_ERRORS as e:
        raise click.ClickException(str(e))
    if optimize:
        result = result.optimize()
    click.echo(result.render())


@main.command()
@click.argument("formula")
@click.option("--var", required=True, help="Variable to differentiate by.")
@click.option("--optimize", is_flag=True, help="Fold constant subexpressions.")
@_define_option
@_project_option
@_locale_option
def diff(
    formula: str,
    var: str,
    optimize: bool,
    definitions: tuple[str, ...],
    directory: str | None,
    locale: str | None,
) -> None:
    """Print the derivative of FORMULA with respect to --var."""
    _transform_cmd("diff", formula, var, definitions, directory, locale, optimize)


@main.command()
@click.argument("formula")
@click.option("--var", required=True, help="Variable to integrate by.")
@click.option("--optimize", is_flag=True, help="Fold constant subexpressions.")
@_define_option
@_project_option
@_locale_option
def integrate(
    formula: str,
    var: str,
    optimize: bool,
    definitions: tuple[str, ...],
    directory: str | None,
    locale: str | None,
) -> None:
    """Print an antiderivative of FORMULA with respect to --var."""
    _transform_cmd("integrate", formula, var, definitions, directory, locale, optimize)


# ---------------------------------------------------------------------------
# Render
# ---------------------------------------------------------------------------


@main.command()
@click.argument("formula")
@click.option("--optimize", is_flag=True, help="Fold constant subexpressions.")
@_define_option
@_project_option
@_locale_option
def render(
    formula: str,
    optimize: bool,
    definitions: tuple[str, ...],
    directory: str | None,
    locale: str | None,
) -> None:
    """Print FORMULA in normalized form."""
    from fincalc.formulas.evaluator import parse_formula

    session = _open_session(directory, locale, definitions)
    try:
        node = parse_formula(formula, session.fmt, session.registry, session.max_depth)
    except ENGINE_ERRORS as e:
        raise click.ClickException(str(e))
    if optimize:
        node = node.optimize()
    click.echo(node.render())


# ---------------------------------------------------------------------------
# Functions
# ---------------------------------------------------------------------------


@main.command()
@_define_option
@_project_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def functions(definitions: tuple[str, ...], directory: str | None, as_json: bool) -> None:
    """List built-in and declared functions."""
    from fincalc.functions.registry import builtin_names

    session = _open_session(directory, None, definitions)
    declared = [session.registry.get(name).declaration() for name in session.registry.names()]

    if as_json:
        click.echo(json.dumps({"builtins": builtin_names(), "declared": declared}, indent=2))
        return
    click.echo("Built-in: " + ", ".join(builtin_names()))
    if declared:
        click.echo("Declared:")
        for text in declared:
            click.echo(f"  {text}")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.argument("directory", type=click.Path(exists=True))
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
def events_cmd(directory: str, level: str | None, event_type: str | None, limit: int) -> None:
    """Show structured event log for DIRECTORY."""
    from fincalc.logging.sink import EventSink

    sink = EventSink(Path(directory))
    events = sink.read_events(level=level, event_type=event_type, limit=limit)

    if not events:
        click.echo("No events found.")
        return

    for evt in events:
        ts = evt.get("ts", "")
        lvl = evt.get("level", "").upper()
        etype = evt.get("event_type", "")
        msg = evt.get("message", "")
        err = evt.get("error_code")
        line = f"[{ts}] {lvl:7s} {etype}: {msg}"
        if err:
            line += f"  ({err})"
        click.echo(line)


if __name__ == "__main__":
    main()
