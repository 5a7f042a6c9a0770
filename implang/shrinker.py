"""Imp Shrinker — lazy candidate sequences for minimizing counterexamples.

Every ``shrink_*`` function is a generator: each call returns a fresh, finite
sequence of candidates that are no larger than the input. Composite nodes
first offer a direct child of the same sort in their place, then themselves
with one child shrunk. Names are never touched, so a candidate may refer to a
name whose binding was shrunk away; callers re-check every candidate instead
of assuming that it still fails.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator

from implang.ast_nodes import (
    Constant, Nat, Bool,
    Expr, StoreRead, HeapRead, Const, NatAdd, NatLeq, BoolAnd, BoolNot,
    Statement, StoreAssign, HeapNew, HeapUpdate, HeapAlias,
    Sequence, Conditional, While, Skip, sequence_items,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_SHRINK_STEPS = 1000


def shrink_int(n: int) -> Iterator[int]:
    """0 first, then the positive mirror of a negative, then values closing
    in on n by halving the distance."""
    if n == 0:
        return
    yield 0
    if n < 0:
        yield -n
    step = abs(n) // 2
    sign = 1 if n > 0 else -1
    while step != 0:
        yield n - sign * step
        step //= 2


def shrink_constant(c: Constant) -> Iterator[Constant]:
    if isinstance(c, Nat):
        for n in shrink_int(c.value):
            yield Nat(n)
    elif isinstance(c, Bool):
        if c.value:
            yield Bool(False)


def shrink_expr(expr: Expr) -> Iterator[Expr]:
    if isinstance(expr, (StoreRead, HeapRead)):
        return

    if isinstance(expr, Const):
        for c in shrink_constant(expr.value):
            yield Const(c)

    elif isinstance(expr, (NatAdd, BoolAnd)):
        node = type(expr)
        yield expr.left
        yield expr.right
        for left in shrink_expr(expr.left):
            yield node(left, expr.right)
        for right in shrink_expr(expr.right):
            yield node(expr.left, right)

    elif isinstance(expr, NatLeq):
        # Both children are numbers, neither can stand in for a boolean.
        for left in shrink_expr(expr.left):
            yield NatLeq(left, expr.right)
        for right in shrink_expr(expr.right):
            yield NatLeq(expr.left, right)

    elif isinstance(expr, BoolNot):
        yield expr.operand
        for operand in shrink_expr(expr.operand):
            yield BoolNot(operand)

    else:
        raise TypeError(f"Not an Imp expression: {expr!r}")


def shrink_statement(stmt: Statement) -> Iterator[Statement]:
    if isinstance(stmt, (HeapAlias, Skip)):
        return

    if isinstance(stmt, (StoreAssign, HeapNew, HeapUpdate)):
        node = type(stmt)
        for expr in shrink_expr(stmt.expr):
            yield node(stmt.name, expr)

    elif isinstance(stmt, Sequence):
        yield from _shrink_sequence(sequence_items(stmt))

    elif isinstance(stmt, Conditional):
        yield stmt.then_branch
        yield stmt.else_branch
        for guard in shrink_expr(stmt.guard):
            yield Conditional(guard, stmt.then_branch, stmt.else_branch)
        for then_branch in shrink_statement(stmt.then_branch):
            yield Conditional(stmt.guard, then_branch, stmt.else_branch)
        for else_branch in shrink_statement(stmt.else_branch):
            yield Conditional(stmt.guard, stmt.then_branch, else_branch)

    elif isinstance(stmt, While):
        yield stmt.body
        for guard in shrink_expr(stmt.guard):
            yield While(guard, stmt.body)
        for body in shrink_statement(stmt.body):
            yield While(stmt.guard, body)

    else:
        raise TypeError(f"Not an Imp statement: {stmt!r}")


def _shrink_sequence(items: list[Statement]) -> Iterator[Statement]:
    """Shrink a left-nested Sequence given as its spine items.

    Yields the same candidates, in the same order, as shrinking each Sequence
    node by offering its first and second child and then shrinking first and
    second in place. The spine is unrolled into loops so a long program does
    not need one generator frame per statement.
    """
    # prefixes[k] is the Sequence of the first k items.
    prefixes: list[Statement] = [Skip(), items[0]]
    for item in items[1:]:
        prefixes.append(Sequence(prefixes[-1], item))

    def followed_by_rest(stmt: Statement, k: int) -> Statement:
        for item in items[k:]:
            stmt = Sequence(stmt, item)
        return stmt

    for k in range(len(items), 1, -1):
        yield followed_by_rest(prefixes[k - 1], k)
        yield followed_by_rest(items[k - 1], k)
    for first in shrink_statement(items[0]):
        yield followed_by_rest(first, 1)
    for k in range(2, len(items) + 1):
        for second in shrink_statement(items[k - 1]):
            yield followed_by_rest(Sequence(prefixes[k - 1], second), k)


def minimize(stmt: Statement, still_fails: Callable[[Statement], bool],
             max_steps: int = DEFAULT_MAX_SHRINK_STEPS) -> tuple[Statement, int]:
    """Greedily shrink a failing statement.

    Takes the first candidate for which ``still_fails`` holds and starts over
    from it, until no candidate fails (a local minimum) or ``max_steps``
    successful shrinks have been taken. Returns the smallest failing statement
    found and the number of shrinks taken.
    """
    current = stmt
    steps = 0
    while steps < max_steps:
        for candidate in shrink_statement(current):
            if still_fails(candidate):
                current = candidate
                steps += 1
                logger.debug("Shrink step %d: %d nodes", steps, current.node_count())
                break
        else:
            break
    return current, steps
