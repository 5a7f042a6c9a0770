"""Imp AST node definitions.

Constants, expressions and statements are immutable trees. Expressions only
read the store and heap; statements mutate them.

    Constant  := Nat(int) | Bool(bool)
    Expr      := StoreRead | HeapRead | Const | NatAdd | NatLeq | BoolAnd | BoolNot
    Statement := StoreAssign | HeapNew | HeapUpdate | HeapAlias
               | Sequence | Conditional | While | Skip
"""

from __future__ import annotations

from dataclasses import dataclass


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Constant:
    """Base class for constants."""

    def node_count(self) -> int:
        return 1


@dataclass(frozen=True)
class Nat(Constant):
    value: int

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Bool(Constant):
    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


# ---------------------------------------------------------------------------
# Expressions
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Expr:
    """Base class for expressions."""

    def node_count(self) -> int:
        return 1

    def __str__(self) -> str:
        return format_expr(self)


@dataclass(frozen=True)
class StoreRead(Expr):
    """x — reads a number bound in the store."""
    name: str


@dataclass(frozen=True)
class HeapRead(Expr):
    """*x — reads the heap cell that x points to."""
    name: str


@dataclass(frozen=True)
class Const(Expr):
    value: Constant

    def node_count(self) -> int:
        return 1 + self.value.node_count()


@dataclass(frozen=True)
class NatAdd(Expr):
    left: Expr
    right: Expr

    def node_count(self) -> int:
        return 1 + self.left.node_count() + self.right.node_count()


@dataclass(frozen=True)
class NatLeq(Expr):
    """left <= right, a boolean built from two numbers."""
    left: Expr
    right: Expr

    def node_count(self) -> int:
        return 1 + self.left.node_count() + self.right.node_count()


@dataclass(frozen=True)
class BoolAnd(Expr):
    left: Expr
    right: Expr

    def node_count(self) -> int:
        return 1 + self.left.node_count() + self.right.node_count()


@dataclass(frozen=True)
class BoolNot(Expr):
    operand: Expr

    def node_count(self) -> int:
        return 1 + self.operand.node_count()


# ---------------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Statement:
    """Base class for statements."""

    def size(self) -> int:
        """Number of leaf statements. Drives the generator's size control."""
        return 1

    def node_count(self) -> int:
        return 1

    def __str__(self) -> str:
        return format_statement(self)


@dataclass(frozen=True)
class StoreAssign(Statement):
    """x = e;"""
    name: str
    expr: Expr

    def node_count(self) -> int:
        return 1 + self.expr.node_count()


@dataclass(frozen=True)
class HeapNew(Statement):
    """x = new e;"""
    name: str
    expr: Expr

    def node_count(self) -> int:
        return 1 + self.expr.node_count()


@dataclass(frozen=True)
class HeapUpdate(Statement):
    """*x = e;"""
    name: str
    expr: Expr

    def node_count(self) -> int:
        return 1 + self.expr.node_count()


@dataclass(frozen=True)
class HeapAlias(Statement):
    """alias = &name;  binds alias to the location name already holds."""
    alias: str
    name: str


@dataclass(frozen=True)
class Sequence(Statement):
    first: Statement
    second: Statement

    def size(self) -> int:
        return sum(item.size() for item in sequence_items(self))

    def node_count(self) -> int:
        items = sequence_items(self)
        return len(items) - 1 + sum(item.node_count() for item in items)


@dataclass(frozen=True)
class Conditional(Statement):
    guard: Expr
    then_branch: Statement
    else_branch: Statement

    def size(self) -> int:
        return self.then_branch.size() + self.else_branch.size()

    def node_count(self) -> int:
        return (1 + self.guard.node_count() + self.then_branch.node_count()
                + self.else_branch.node_count())


@dataclass(frozen=True)
class While(Statement):
    guard: Expr
    body: Statement

    def size(self) -> int:
        return self.body.size()

    def node_count(self) -> int:
        return 1 + self.guard.node_count() + self.body.node_count()


@dataclass(frozen=True)
class Skip(Statement):
    pass


def sequence_of(statements: list[Statement]) -> Statement:
    """Left-fold a statement list into nested Sequences (empty list is Skip)."""
    if not statements:
        return Skip()
    result = statements[0]
    for stmt in statements[1:]:
        result = Sequence(result, stmt)
    return result


def sequence_items(stmt: Statement) -> list[Statement]:
    """Unfold the left spine of a Sequence chain into its statements, in
    execution order. A Sequence in second position stays one item.

    A parsed program is a left spine as long as the program itself, so this
    walks it with a loop rather than recursing once per statement.
    """
    items = []
    while isinstance(stmt, Sequence):
        items.append(stmt.second)
        stmt = stmt.first
    items.append(stmt)
    items.reverse()
    return items


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def format_expr(expr: Expr) -> str:
    """Render an expression in Imp source syntax. Binary operators are always
    parenthesized, so the text parses back to the same tree."""
    if isinstance(expr, StoreRead):
        return expr.name
    if isinstance(expr, HeapRead):
        return f"*{expr.name}"
    if isinstance(expr, Const):
        return str(expr.value)
    if isinstance(expr, NatAdd):
        return f"({format_expr(expr.left)} + {format_expr(expr.right)})"
    if isinstance(expr, NatLeq):
        return f"({format_expr(expr.left)} <= {format_expr(expr.right)})"
    if isinstance(expr, BoolAnd):
        return f"({format_expr(expr.left)} && {format_expr(expr.right)})"
    if isinstance(expr, BoolNot):
        return f"!{format_expr(expr.operand)}"
    raise TypeError(f"Not an Imp expression: {expr!r}")


def _format_lines(stmt: Statement, indent: int) -> list[str]:
    pad = "    " * indent
    if isinstance(stmt, StoreAssign):
        return [f"{pad}{stmt.name} = {format_expr(stmt.expr)};"]
    if isinstance(stmt, HeapNew):
        return [f"{pad}{stmt.name} = new {format_expr(stmt.expr)};"]
    if isinstance(stmt, HeapUpdate):
        return [f"{pad}*{stmt.name} = {format_expr(stmt.expr)};"]
    if isinstance(stmt, HeapAlias):
        return [f"{pad}{stmt.alias} = &{stmt.name};"]
    if isinstance(stmt, Skip):
        return [f"{pad}skip;"]
    if isinstance(stmt, Sequence):
        lines: list[str] = []
        for item in sequence_items(stmt):
            # A Sequence in second position prints as a nested block.
            if isinstance(item, Sequence):
                lines.append(f"{pad}{{")
                lines.extend(_format_lines(item, indent + 1))
                lines.append(f"{pad}}}")
            else:
                lines.extend(_format_lines(item, indent))
        return lines
    if isinstance(stmt, Conditional):
        lines = [f"{pad}if {format_expr(stmt.guard)} {{"]
        lines.extend(_format_lines(stmt.then_branch, indent + 1))
        lines.append(f"{pad}}} else {{")
        lines.extend(_format_lines(stmt.else_branch, indent + 1))
        lines.append(f"{pad}}}")
        return lines
    if isinstance(stmt, While):
        lines = [f"{pad}while {format_expr(stmt.guard)} {{"]
        lines.extend(_format_lines(stmt.body, indent + 1))
        lines.append(f"{pad}}}")
        return lines
    raise TypeError(f"Not an Imp statement: {stmt!r}")


def format_statement(stmt: Statement) -> str:
    """Render a statement as an Imp program."""
    return "\n".join(_format_lines(stmt, 0))
