"""Structured error objects for Imp.

Two taxonomies live here and are deliberately kept apart: evaluation errors
and type errors. The soundness harness compares them, so neither may be
folded into the other. Syntax errors from the front end share the same record
shape but never reach the evaluator or the type checker.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Union


class EvalErrorKind(Enum):
    UNBOUND_VARIABLE = "unbound_variable"
    TYPE_MISMATCH = "type_mismatch"
    INVALID_DEREFERENCE = "invalid_dereference"


class TypeErrorKind(Enum):
    UNBOUND_VARIABLE = "unbound_variable"
    MISMATCH = "mismatch"
    OTHER = "other"


class SyntaxErrorKind(Enum):
    SYNTAX_ERROR = "syntax_error"


ErrorKind = Union[EvalErrorKind, TypeErrorKind, SyntaxErrorKind]


@dataclass
class SourceLocation:
    line: int
    column: int
    file: str = "<stdin>"

    def __str__(self) -> str:
        return f"{self.file}:{self.line}:{self.column}"


@dataclass
class ImpError:
    kind: ErrorKind
    message: str
    location: Optional[SourceLocation] = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "kind": self.kind.value,
            "message": self.message,
        }
        if self.location:
            d["location"] = {
                "file": self.location.file,
                "line": self.location.line,
                "column": self.location.column,
            }
        if self.details:
            d["details"] = self.details
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def __str__(self) -> str:
        loc = f" at {self.location}" if self.location else ""
        return f"[{self.kind.value}]{loc}: {self.message}"


# ---------------------------------------------------------------------------
# Evaluation errors
# ---------------------------------------------------------------------------

def unbound_variable(name: str) -> ImpError:
    return ImpError(
        kind=EvalErrorKind.UNBOUND_VARIABLE,
        message=f"Unbound variable '{name}'",
        details={"name": name},
    )


def type_mismatch(expected: str, actual: str, name: Optional[str] = None) -> ImpError:
    details: dict[str, Any] = {"expected": expected, "actual": actual}
    if name is not None:
        details["name"] = name
    return ImpError(
        kind=EvalErrorKind.TYPE_MISMATCH,
        message=f"Expected {expected}, got {actual}",
        details=details,
    )


def bound_kind_mismatch(name: str, bound: str, attempted: str) -> ImpError:
    return ImpError(
        kind=EvalErrorKind.TYPE_MISMATCH,
        message=f"Cannot rebind '{name}' from {bound} to {attempted}",
        details={"name": name, "bound": bound, "attempted": attempted, "bound_kind": True},
    )


def invalid_dereference(name: str, index: int, heap_size: int) -> ImpError:
    return ImpError(
        kind=EvalErrorKind.INVALID_DEREFERENCE,
        message=f"Location {index} of '{name}' is outside a heap of {heap_size} cells",
        details={"name": name, "index": index, "heap_size": heap_size},
    )


# ---------------------------------------------------------------------------
# Type errors
# ---------------------------------------------------------------------------

def unbound_name(name: str) -> ImpError:
    return ImpError(
        kind=TypeErrorKind.UNBOUND_VARIABLE,
        message=f"Name '{name}' has no type here",
        details={"name": name},
    )


def mismatch(expected: Any, got: Any) -> ImpError:
    return ImpError(
        kind=TypeErrorKind.MISMATCH,
        message=f"Expected type '{expected}', got '{got}'",
        details={"expected": str(expected), "got": str(got)},
    )


def other_type_error(message: str, location: Optional[SourceLocation] = None) -> ImpError:
    return ImpError(kind=TypeErrorKind.OTHER, message=message, location=location)


def syntax_error(
    message: str,
    location: Optional[SourceLocation] = None,
) -> ImpError:
    return ImpError(
        kind=SyntaxErrorKind.SYNTAX_ERROR,
        message=message,
        location=location,
    )


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class EvalError(Exception):
    """Raised by the evaluator. Carries the store and heap as they were when
    the failing statement aborted (there is no rollback)."""

    def __init__(self, error: ImpError, store: Optional[dict] = None,
                 heap: Optional[list[int]] = None):
        self.error = error
        self.store = store
        self.heap = heap
        super().__init__(str(error))

    @property
    def kind(self) -> EvalErrorKind:
        return self.error.kind  # type: ignore[return-value]

    def to_json(self, indent: int = 2) -> str:
        return self.error.to_json(indent=indent)


class ImpTypeError(Exception):
    """Raised by the type checker."""

    def __init__(self, error: ImpError, expected: Any = None, got: Any = None):
        self.error = error
        self.expected = expected
        self.got = got
        super().__init__(str(error))

    @property
    def kind(self) -> TypeErrorKind:
        return self.error.kind  # type: ignore[return-value]

    def to_json(self, indent: int = 2) -> str:
        return self.error.to_json(indent=indent)


class CompileError(Exception):
    """Exception wrapping one or more front-end ImpErrors."""

    def __init__(self, errors: list[ImpError] | ImpError):
        if isinstance(errors, ImpError):
            errors = [errors]
        self.errors = errors
        super().__init__(self._format())

    def _format(self) -> str:
        return "\n".join(str(e) for e in self.errors)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps([e.to_dict() for e in self.errors], indent=indent)


class ConfigError(Exception):
    """Raised when a configuration file holds a value of the wrong shape."""
