"""Imp type checker.

Flow-sensitive: the environment Σ grows as assignments are checked in order.

  * Each branch of a conditional is checked against its own copy of Σ. After
    the conditional only names both branches bind with the same type survive.
  * A loop body is checked against a copy of Σ that is then thrown away: the
    body may run zero times, so nothing it binds is known afterwards.
  * A name never changes kind. Assigning a number to a Location name (or
    allocating into a Number name) is a mismatch.
"""

from __future__ import annotations

from typing import Optional

from implang.ast_nodes import (
    Nat, Bool,
    Expr, StoreRead, HeapRead, Const, NatAdd, NatLeq, BoolAnd, BoolNot,
    Statement, StoreAssign, HeapNew, HeapUpdate, HeapAlias,
    Sequence, Conditional, While, Skip, sequence_items,
)
from implang.errors import (
    CompileError, ImpTypeError, unbound_name, mismatch, other_type_error,
)
from implang.parser import parse
from implang.types import Type, TypeEnvironment, NUMBER, LOCATION, BOOLEAN


def _expect(expected: Type, got: Type) -> Type:
    if expected != got:
        raise ImpTypeError(mismatch(expected, got), expected=expected, got=got)
    return expected


class TypeChecker:
    """Type checks an Imp program."""

    def __init__(self, env: Optional[TypeEnvironment] = None):
        self.env = env if env is not None else TypeEnvironment()

    def check_program(self, program: Statement) -> TypeEnvironment:
        """Check a whole program. Returns the environment at its end."""
        self.env = self._check_stmt(program, self.env)
        return self.env

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def check_expr(self, expr: Expr, env: TypeEnvironment) -> Type:
        if isinstance(expr, StoreRead):
            return _expect(NUMBER, self._lookup(expr.name, env))

        if isinstance(expr, HeapRead):
            _expect(LOCATION, self._lookup(expr.name, env))
            return NUMBER

        if isinstance(expr, Const):
            if isinstance(expr.value, Nat):
                return NUMBER
            if isinstance(expr.value, Bool):
                return BOOLEAN
            raise TypeError(f"Not an Imp constant: {expr.value!r}")

        if isinstance(expr, NatAdd):
            _expect(NUMBER, self.check_expr(expr.left, env))
            return _expect(NUMBER, self.check_expr(expr.right, env))

        if isinstance(expr, NatLeq):
            _expect(NUMBER, self.check_expr(expr.left, env))
            _expect(NUMBER, self.check_expr(expr.right, env))
            return BOOLEAN

        if isinstance(expr, BoolAnd):
            _expect(BOOLEAN, self.check_expr(expr.left, env))
            return _expect(BOOLEAN, self.check_expr(expr.right, env))

        if isinstance(expr, BoolNot):
            return _expect(BOOLEAN, self.check_expr(expr.operand, env))

        raise TypeError(f"Not an Imp expression: {expr!r}")

    @staticmethod
    def _lookup(name: str, env: TypeEnvironment) -> Type:
        typ = env.lookup_variable(name)
        if typ is None:
            raise ImpTypeError(unbound_name(name))
        return typ

    @staticmethod
    def _expect_unbound_or(expected: Type, name: str, env: TypeEnvironment) -> None:
        """A name may be (re)bound if it is fresh or already of this type."""
        typ = env.lookup_variable(name)
        if typ is not None:
            _expect(expected, typ)

    # -------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------

    def _check_stmt(self, stmt: Statement, env: TypeEnvironment) -> TypeEnvironment:
        if isinstance(stmt, StoreAssign):
            expr_ty = self.check_expr(stmt.expr, env)
            self._expect_unbound_or(NUMBER, stmt.name, env)
            _expect(NUMBER, expr_ty)
            env.define_variable(stmt.name, NUMBER)
            return env

        if isinstance(stmt, HeapNew):
            expr_ty = self.check_expr(stmt.expr, env)
            self._expect_unbound_or(LOCATION, stmt.name, env)
            _expect(NUMBER, expr_ty)
            env.define_variable(stmt.name, LOCATION)
            return env

        if isinstance(stmt, HeapUpdate):
            expr_ty = self.check_expr(stmt.expr, env)
            _expect(LOCATION, self._lookup(stmt.name, env))
            _expect(NUMBER, expr_ty)
            return env

        if isinstance(stmt, HeapAlias):
            source_ty = self._lookup(stmt.name, env)
            self._expect_unbound_or(LOCATION, stmt.alias, env)
            _expect(LOCATION, source_ty)
            env.define_variable(stmt.alias, LOCATION)
            return env

        if isinstance(stmt, Sequence):
            for item in sequence_items(stmt):
                env = self._check_stmt(item, env)
            return env

        if isinstance(stmt, Conditional):
            _expect(BOOLEAN, self.check_expr(stmt.guard, env))
            then_env = self._check_stmt(stmt.then_branch, env.clone())
            else_env = self._check_stmt(stmt.else_branch, env.clone())
            return then_env.intersect(else_env)

        if isinstance(stmt, While):
            _expect(BOOLEAN, self.check_expr(stmt.guard, env))
            self._check_stmt(stmt.body, env.clone())
            return env

        if isinstance(stmt, Skip):
            return env

        raise TypeError(f"Not an Imp statement: {stmt!r}")


def typecheck(program: Statement) -> None:
    """Type check a program from the empty environment.

    Raises ImpTypeError on the first error.
    """
    TypeChecker().check_program(program)


def check_program(program: Statement) -> TypeEnvironment:
    """Type check a program and return the environment at its end."""
    return TypeChecker().check_program(program)


def typecheck_expr(expr: Expr, env: Optional[TypeEnvironment] = None) -> Type:
    return TypeChecker().check_expr(expr, env if env is not None else TypeEnvironment())


def typecheck_source(source: str, filename: str = "<stdin>") -> Statement:
    """Parse and type check source text. Returns the parsed program.

    A parse failure is reported as an OTHER type error, since it did not come
    from the checker itself.
    """
    try:
        program = parse(source, filename=filename)
    except CompileError as e:
        first = e.errors[0]
        raise ImpTypeError(other_type_error(first.message, first.location)) from e
    typecheck(program)
    return program
