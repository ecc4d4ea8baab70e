"""Shared fixtures for the fincalc test suite."""

from __future__ import annotations

from typing import Iterator

import pytest

from fincalc.formulas.values import NumberFormat
from fincalc.functions.registry import FunctionRegistry
from fincalc.logging.events import clear_log_dir


@pytest.fixture(autouse=True)
def _detach_event_sink() -> Iterator[None]:
    """Never let a test's log directory leak into the next test."""
    clear_log_dir()
    yield
    clear_log_dir()


@pytest.fixture
def registry() -> FunctionRegistry:
    return FunctionRegistry()


@pytest.fixture
def de_format() -> NumberFormat:
    return NumberFormat.for_locale("de_DE")
