"""Imp Type System.

Three types: Number, Location, Boolean. Booleans only exist as expression
results; names are bound to numbers (store) or locations (heap).
The type environment is flat and flow-sensitive.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator, Optional


class Type(Enum):
    NUMBER = "Number"
    LOCATION = "Location"
    BOOLEAN = "Boolean"

    def __str__(self) -> str:
        return self.value


NUMBER = Type.NUMBER
LOCATION = Type.LOCATION
BOOLEAN = Type.BOOLEAN


class TypeEnvironment:
    """Σ: maps names to the type they are known to have at a program point.

    Branches are checked against a ``clone()``; after a conditional the two
    branch environments are combined with ``intersect()``.
    """

    def __init__(self, variables: Optional[dict[str, Type]] = None):
        self._variables: dict[str, Type] = dict(variables or {})

    def define_variable(self, name: str, typ: Type) -> None:
        self._variables[name] = typ

    def lookup_variable(self, name: str) -> Optional[Type]:
        return self._variables.get(name)

    def clone(self) -> TypeEnvironment:
        return TypeEnvironment(self._variables)

    def intersect(self, other: TypeEnvironment) -> TypeEnvironment:
        """Keep only names bound in both environments with the same type."""
        return TypeEnvironment({
            name: typ
            for name, typ in self._variables.items()
            if other._variables.get(name) == typ
        })

    def as_dict(self) -> dict[str, Type]:
        return dict(self._variables)

    def __contains__(self, name: object) -> bool:
        return name in self._variables

    def __iter__(self) -> Iterator[str]:
        return iter(self._variables)

    def __len__(self) -> int:
        return len(self._variables)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TypeEnvironment):
            return NotImplemented
        return self._variables == other._variables

    def __repr__(self) -> str:
        items = ", ".join(f"{k}: {v}" for k, v in sorted(self._variables.items()))
        return f"TypeEnvironment({{{items}}})"
