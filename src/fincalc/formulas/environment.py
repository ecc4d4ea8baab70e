"""Variable scopes for formula evaluation.

An ``Environment`` is immutable: ``extend()`` returns a child scope layered
on its parent, so iteration constructs bind their running variable without
touching the caller's bindings.  Nothing needs restoring when a body
evaluation fails part-way through a loop.
"""

from __future__ import annotations

from typing import Any, Iterator, Mapping

from fincalc.formulas.errors import FormulaRefError
from fincalc.formulas.values import NumberFormat, NumberValue, coerce


class Environment(Mapping[str, NumberValue]):
    """Read-only name -> value bindings with an optional parent scope."""

    __slots__ = ("_bindings", "_parent")

    def __init__(
        self,
        bindings: Mapping[str, NumberValue] | None = None,
        parent: Environment | None = None,
    ) -> None:
        self._bindings: dict[str, NumberValue] = dict(bindings or {})
        self._parent = parent

    @classmethod
    def of(
        cls,
        mapping: Mapping[str, Any] | Environment | None = None,
        fmt: NumberFormat | None = None,
    ) -> Environment:
        """Build an environment from a mapping of raw Python scalars or values.

        An existing ``Environment`` is returned as is.
        """
        if isinstance(mapping, Environment):
            return mapping
        if not mapping:
            return cls()
        return cls({name: coerce(value, fmt) for name, value in mapping.items()})

    @property
    def parent(self) -> Environment | None:
        return self._parent

    def lookup(self, name: str) -> NumberValue:
        """Resolve *name* through this scope and its parents.

        Raises:
            FormulaRefError: If no scope binds *name*.
        """
        scope: Environment | None = self
        while scope is not None:
            if name in scope._bindings:
                return scope._bindings[name]
            scope = scope._parent
        raise FormulaRefError(name, available=sorted(self.keys()))

    def extend(self, bindings: Mapping[str, NumberValue]) -> Environment:
        """Return a child scope where *bindings* shadow this scope."""
        return Environment(bindings, parent=self)

    def bind(self, name: str, value: NumberValue) -> Environment:
        """Shorthand for ``extend({name: value})``."""
        return Environment({name: value}, parent=self)

    def flatten(self) -> dict[str, NumberValue]:
        """Visible bindings as a plain dict (innermost scope wins)."""
        merged: dict[str, NumberValue] = {}
        chain: list[Environment] = []
        scope: Environment | None = self
        while scope is not None:
            chain.append(scope)
            scope = scope._parent
        for env in reversed(chain):
            merged.update(env._bindings)
        return merged

    def __getitem__(self, name: str) -> NumberValue:
        return self.lookup(name)

    def get(self, name: str, default: Any = None) -> Any:
        if name in self:
            return self.lookup(name)
        return default

    def __contains__(self, name: object) -> bool:
        scope: Environment | None = self
        while scope is not None:
            if name in scope._bindings:
                return True
            scope = scope._parent
        return False

    def __iter__(self) -> Iterator[str]:
        return iter(self.flatten())

    def __len__(self) -> int:
        return len(self.flatten())

    def __repr__(self) -> str:
        inner = ", ".join(f"{k}={v.display()}" for k, v in sorted(self.flatten().items()))
        return f"Environment({inner})"
