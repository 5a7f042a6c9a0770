"""Imp Evaluator — big-step interpreter over the split store/heap model.

The store maps names to either a Number or a Location; the heap is an
append-only list of integer cells addressed by Location index. A name keeps
its kind for the whole run: rebinding a Number name to a Location (or the
reverse) is a dynamic type mismatch.

Evaluation stops at the first error. Nothing is rolled back, so the store and
heap attached to the raised EvalError show every effect up to the failure.

Usage:
    from implang.evaluator import eval_program
    store, heap = eval_program(program)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from implang.ast_nodes import (
    Constant, Nat, Bool,
    Expr, StoreRead, HeapRead, Const, NatAdd, NatLeq, BoolAnd, BoolNot,
    Statement, StoreAssign, HeapNew, HeapUpdate, HeapAlias,
    Sequence, Conditional, While, Skip, sequence_items,
)
from implang.errors import (
    EvalError, unbound_variable, type_mismatch, bound_kind_mismatch,
    invalid_dereference,
)

logger = logging.getLogger(__name__)

# Hard bound on loop iterations. A loop whose guard is still true after this
# many iterations ends successfully with the state it has reached.
MAX_LOOP_ITERATIONS = 1000


@dataclass(frozen=True)
class Number:
    value: int


@dataclass(frozen=True)
class Location:
    index: int


Value = Union[Number, Location]
Store = dict[str, Value]
Heap = list[int]


def _kind(value: Value) -> str:
    return "Location" if isinstance(value, Location) else "Number"


def _constant_kind(c: Constant) -> str:
    return "Bool" if isinstance(c, Bool) else "Nat"


class Evaluator:
    """Evaluates one program against its own store and heap."""

    def __init__(self, loop_limit: int = MAX_LOOP_ITERATIONS):
        self.store: Store = {}
        self.heap: Heap = []
        self.loop_limit = loop_limit

    def _fail(self, error) -> EvalError:
        return EvalError(error, store=dict(self.store), heap=list(self.heap))

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------

    def _lookup(self, name: str) -> Value:
        value = self.store.get(name)
        if value is None:
            raise self._fail(unbound_variable(name))
        return value

    def _location_of(self, name: str) -> int:
        value = self._lookup(name)
        if not isinstance(value, Location):
            raise self._fail(type_mismatch("Location", _kind(value), name))
        return value.index

    def _nat(self, c: Constant) -> int:
        if not isinstance(c, Nat):
            raise self._fail(type_mismatch("Nat", _constant_kind(c)))
        return c.value

    def _bool(self, c: Constant) -> bool:
        if not isinstance(c, Bool):
            raise self._fail(type_mismatch("Bool", _constant_kind(c)))
        return c.value

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def eval_expr(self, expr: Expr) -> Constant:
        if isinstance(expr, StoreRead):
            value = self._lookup(expr.name)
            if not isinstance(value, Number):
                raise self._fail(type_mismatch("Number", _kind(value), expr.name))
            return Nat(value.value)

        if isinstance(expr, HeapRead):
            index = self._location_of(expr.name)
            if not 0 <= index < len(self.heap):
                raise self._fail(invalid_dereference(expr.name, index, len(self.heap)))
            return Nat(self.heap[index])

        if isinstance(expr, Const):
            return expr.value

        if isinstance(expr, NatAdd):
            left = self.eval_expr(expr.left)
            right = self.eval_expr(expr.right)
            return Nat(self._nat(left) + self._nat(right))

        if isinstance(expr, NatLeq):
            left = self.eval_expr(expr.left)
            right = self.eval_expr(expr.right)
            return Bool(self._nat(left) <= self._nat(right))

        if isinstance(expr, BoolAnd):
            left = self.eval_expr(expr.left)
            right = self.eval_expr(expr.right)
            # Both operands are tag-checked, so no short-circuit.
            lhs, rhs = self._bool(left), self._bool(right)
            return Bool(lhs and rhs)

        if isinstance(expr, BoolNot):
            return Bool(not self._bool(self.eval_expr(expr.operand)))

        raise TypeError(f"Not an Imp expression: {expr!r}")

    # -------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------

    def eval_stmt(self, stmt: Statement) -> None:
        if isinstance(stmt, StoreAssign):
            value = self._nat(self.eval_expr(stmt.expr))
            bound = self.store.get(stmt.name)
            if isinstance(bound, Location):
                raise self._fail(bound_kind_mismatch(stmt.name, "Location", "Number"))
            self.store[stmt.name] = Number(value)

        elif isinstance(stmt, HeapNew):
            value = self._nat(self.eval_expr(stmt.expr))
            index = len(self.heap)
            self.heap.append(value)
            bound = self.store.get(stmt.name)
            if isinstance(bound, Number):
                raise self._fail(bound_kind_mismatch(stmt.name, "Number", "Location"))
            self.store[stmt.name] = Location(index)

        elif isinstance(stmt, HeapUpdate):
            value = self._nat(self.eval_expr(stmt.expr))
            index = self._location_of(stmt.name)
            if not 0 <= index < len(self.heap):
                raise self._fail(invalid_dereference(stmt.name, index, len(self.heap)))
            self.heap[index] = value

        elif isinstance(stmt, HeapAlias):
            index = self._location_of(stmt.name)
            bound = self.store.get(stmt.alias)
            if isinstance(bound, Number):
                raise self._fail(bound_kind_mismatch(stmt.alias, "Number", "Location"))
            self.store[stmt.alias] = Location(index)

        elif isinstance(stmt, Sequence):
            for item in sequence_items(stmt):
                self.eval_stmt(item)

        elif isinstance(stmt, Conditional):
            if self._bool(self.eval_expr(stmt.guard)):
                self.eval_stmt(stmt.then_branch)
            else:
                self.eval_stmt(stmt.else_branch)

        elif isinstance(stmt, While):
            self._eval_while(stmt)

        elif isinstance(stmt, Skip):
            pass

        else:
            raise TypeError(f"Not an Imp statement: {stmt!r}")

    def _eval_while(self, stmt: While) -> None:
        iterations = 0
        while self._bool(self.eval_expr(stmt.guard)):
            if iterations >= self.loop_limit:
                logger.debug("Loop truncated after %d iterations", iterations)
                return
            self.eval_stmt(stmt.body)
            iterations += 1

    def run(self, program: Statement) -> tuple[Store, Heap]:
        self.eval_stmt(program)
        return self.store, self.heap


def eval_program(program: Statement, loop_limit: int = MAX_LOOP_ITERATIONS) -> tuple[Store, Heap]:
    """Evaluate a whole program from the empty store and heap.

    Returns the final (store, heap). Raises EvalError on the first failure.
    """
    return Evaluator(loop_limit=loop_limit).run(program)


def eval_expr(expr: Expr, store: Store, heap: Heap) -> Constant:
    """Evaluate an expression against an existing store and heap.

    The store and heap are only read.
    """
    evaluator = Evaluator()
    evaluator.store = store
    evaluator.heap = heap
    return evaluator.eval_expr(expr)
