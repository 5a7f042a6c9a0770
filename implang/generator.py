"""Imp Program Generator — scope-aware random programs for soundness testing.

Generated programs are meant to be realistic: almost every read, update and
alias refers to a name that is actually bound at that point, so most programs
type check and run deep into their control flow instead of stopping at the
first unbound variable.

To find the rare programs on which the type checker and the evaluator
disagree, a tunable fault injector occasionally breaks that discipline:

  * a number expression is replaced by a boolean one, or the reverse;
  * a read or a heap pick uses a name that is not in scope;
  * a heap pick falls back to a store name;
  * a fresh name is replaced by one that is already bound;
  * a newly bound name is recorded under the wrong kind.

Each of these fires with probability 1/fault_rate at its decision point.
With ``fault_rate=0`` (the fault-free mode) every generated program must
type check and evaluate without error.

The names currently in scope live in a Scope owned by one generator. It is
snapshotted before the branches of a conditional and the body of a loop and
restored afterwards, which matches the type checker: names bound inside a
branch are not known after it.

Usage:
    from implang.generator import generate_program, generate_correct_program
    program = generate_program(seed=7, size=40)
"""

from __future__ import annotations

import random
import string
from dataclasses import dataclass, field, replace
from typing import Optional

from implang.ast_nodes import (
    Nat, Bool,
    Expr, StoreRead, HeapRead, Const, NatAdd, NatLeq, BoolAnd, BoolNot,
    Statement, StoreAssign, HeapNew, HeapUpdate, HeapAlias,
    Sequence, Conditional, While, Skip,
)


STORE_ASSIGN = "store_assign"
HEAP_NEW = "heap_new"
HEAP_UPDATE = "heap_update"
HEAP_ALIAS = "heap_alias"
SEQUENCE = "sequence"
CONDITIONAL = "conditional"
LOOP = "loop"
SKIP = "skip"

STATEMENT_KINDS = (
    STORE_ASSIGN, HEAP_NEW, HEAP_UPDATE, HEAP_ALIAS,
    SEQUENCE, CONDITIONAL, LOOP, SKIP,
)
LEAF_KINDS = (STORE_ASSIGN, HEAP_NEW, HEAP_UPDATE, HEAP_ALIAS, SKIP)

# Out of 105.
DEFAULT_WEIGHTS: dict[str, int] = {
    STORE_ASSIGN: 15,
    HEAP_NEW: 15,
    HEAP_UPDATE: 5,
    HEAP_ALIAS: 10,
    SEQUENCE: 20,
    CONDITIONAL: 25,
    LOOP: 10,
    SKIP: 5,
}


@dataclass
class GeneratorConfig:
    """Tuning knobs for the program generator."""
    # One fault per `fault_rate` decision points; 0 disables fault injection.
    fault_rate: int = 512
    # Loops can be switched off for runs that must not rely on the
    # evaluator's iteration cap. Their weight then goes to skip.
    allow_loops: bool = True
    weights: dict[str, int] = field(default_factory=lambda: dict(DEFAULT_WEIGHTS))
    # Statement nesting depth after which only leaf statements are drawn.
    max_depth: int = 10
    max_expr_depth: int = 5
    # How many loops may enclose a generated loop.
    max_loop_nesting: int = 1
    ident_length: tuple[int, int] = (20, 39)
    nat_range: tuple[int, int] = (-128, 127)

    def __post_init__(self) -> None:
        if set(self.weights) != set(STATEMENT_KINDS):
            missing = sorted(set(STATEMENT_KINDS) - set(self.weights))
            unknown = sorted(set(self.weights) - set(STATEMENT_KINDS))
            raise ValueError(f"weights must name every statement kind "
                             f"(missing: {missing}, unknown: {unknown})")
        if any(w < 0 for w in self.weights.values()):
            raise ValueError("weights must be non-negative")
        # heap_update and heap_alias are redrawn while no heap name is in scope
        if sum(self.weights[k] for k in (STORE_ASSIGN, HEAP_NEW, SKIP)) <= 0:
            raise ValueError("store_assign, heap_new or skip needs a positive weight")
        if self.fault_rate < 0:
            raise ValueError("fault_rate must be >= 0")
        lo, hi = self.ident_length
        if lo < 1 or hi < lo:
            raise ValueError(f"bad ident_length {self.ident_length}")
        self.ident_length = (int(lo), int(hi))
        lo, hi = self.nat_range
        if hi < lo:
            raise ValueError(f"bad nat_range {self.nat_range}")
        self.nat_range = (int(lo), int(hi))

    def fault_free(self) -> GeneratorConfig:
        return replace(self, fault_rate=0, weights=dict(self.weights))


@dataclass
class Scope:
    """Names currently bound, split by kind."""
    store: set[str] = field(default_factory=set)
    heap: set[str] = field(default_factory=set)

    def snapshot(self) -> Scope:
        return Scope(set(self.store), set(self.heap))

    def restore(self, snapshot: Scope) -> None:
        self.store = set(snapshot.store)
        self.heap = set(snapshot.heap)

    def __contains__(self, name: object) -> bool:
        return name in self.store or name in self.heap


class ProgramGenerator:
    """Generates random Imp programs from its own random stream.

    A generator is meant for one trial at a time; concurrent trials each need
    their own instance.
    """

    def __init__(self, config: Optional[GeneratorConfig] = None,
                 rng: Optional[random.Random] = None, seed: Optional[int] = None):
        self.config = config or GeneratorConfig()
        self.rng = rng if rng is not None else random.Random(seed)
        self.scope = Scope()
        # Every name handed out so far, including ones whose scope has ended.
        self._used: set[str] = set()
        self._loop_nesting = 0

    # -------------------------------------------------------------------
    # Top level
    # -------------------------------------------------------------------

    def generate(self, size: int) -> Statement:
        """Sequence fresh statements until the program reaches a target size
        drawn from 1..size."""
        self.scope = Scope()
        self._used = set()
        self._loop_nesting = 0
        target = self.rng.randint(1, max(1, size))
        program = self.statement()
        total = program.size()
        while total < target:
            nxt = self.statement()
            total += nxt.size()
            program = Sequence(program, nxt)
        return program

    # -------------------------------------------------------------------
    # Faults and names
    # -------------------------------------------------------------------

    def _fault(self) -> bool:
        rate = self.config.fault_rate
        return rate > 0 and self.rng.randrange(rate) == 0

    def _random_name(self) -> str:
        length = self.rng.randint(*self.config.ident_length)
        return "".join(self.rng.choice(string.ascii_lowercase) for _ in range(length))

    def fresh_name(self) -> str:
        if self._fault():
            reused = self.pick_heap()
            if reused is not None:
                return reused
        while True:
            name = self._random_name()
            if name not in self._used:
                self._used.add(name)
                return name

    def declare(self, name: str, is_store: bool) -> None:
        if self._fault():
            is_store = not is_store
        if is_store:
            self.scope.store.add(name)
        else:
            self.scope.heap.add(name)

    def pick_store(self) -> Optional[str]:
        if self._fault():
            return self.fresh_name()
        if not self.scope.store:
            return None
        return self.rng.choice(sorted(self.scope.store))

    def pick_heap(self) -> Optional[str]:
        if self._fault():
            return self.fresh_name()
        if self._fault():
            return self.pick_store()
        if not self.scope.heap:
            return None
        return self.rng.choice(sorted(self.scope.heap))

    # -------------------------------------------------------------------
    # Expressions
    # -------------------------------------------------------------------

    def _nat_constant(self) -> Const:
        return Const(Nat(self.rng.randint(*self.config.nat_range)))

    def nat_expr(self, depth: int = 0) -> Expr:
        if self._fault():
            return self.bool_expr(depth + 1)
        choice = self.rng.randrange(4)
        if depth >= self.config.max_expr_depth and choice == 3:
            choice = 2
        if choice == 0:
            name = self.pick_store()
            return StoreRead(name) if name is not None else self._nat_constant()
        if choice == 1:
            name = self.pick_heap()
            return HeapRead(name) if name is not None else self._nat_constant()
        if choice == 2:
            return self._nat_constant()
        return NatAdd(self.nat_expr(depth + 1), self.nat_expr(depth + 1))

    def bool_expr(self, depth: int = 0) -> Expr:
        if self._fault():
            return self.nat_expr(depth + 1)
        choice = self.rng.randrange(4)
        if depth >= self.config.max_expr_depth:
            choice = 3
        if choice == 0:
            return NatLeq(self.nat_expr(depth + 1), self.nat_expr(depth + 1))
        if choice == 1:
            return BoolAnd(self.bool_expr(depth + 1), self.bool_expr(depth + 1))
        if choice == 2:
            return BoolNot(self.bool_expr(depth + 1))
        return Const(Bool(self.rng.random() < 0.5))

    # -------------------------------------------------------------------
    # Statements
    # -------------------------------------------------------------------

    def _choose_kind(self, depth: int) -> str:
        weights = dict(self.config.weights)
        if not self.config.allow_loops or self._loop_nesting >= self.config.max_loop_nesting:
            weights[SKIP] += weights[LOOP]
            weights[LOOP] = 0
        kinds = LEAF_KINDS if depth >= self.config.max_depth else STATEMENT_KINDS
        return self.rng.choices(kinds, weights=[weights[k] for k in kinds])[0]

    def statement(self, depth: int = 0) -> Statement:
        while True:
            kind = self._choose_kind(depth)

            if kind == STORE_ASSIGN:
                name = self.fresh_name()
                expr = self.nat_expr()
                self.declare(name, is_store=True)
                return StoreAssign(name, expr)

            if kind == HEAP_NEW:
                name = self.fresh_name()
                expr = self.nat_expr()
                self.declare(name, is_store=False)
                return HeapNew(name, expr)

            if kind == HEAP_UPDATE:
                target = self.pick_heap()
                if target is None:
                    continue
                return HeapUpdate(target, self.nat_expr())

            if kind == HEAP_ALIAS:
                target = self.pick_heap()
                if target is None:
                    continue
                alias = self.fresh_name()
                self.declare(alias, is_store=False)
                return HeapAlias(alias, target)

            if kind == SEQUENCE:
                first = self.statement(depth + 1)
                second = self.statement(depth + 1)
                return Sequence(first, second)

            if kind == CONDITIONAL:
                saved = self.scope.snapshot()
                guard = self.bool_expr()
                then_branch = self.statement(depth + 1)
                self.scope.restore(saved)
                else_branch = self.statement(depth + 1)
                self.scope.restore(saved)
                return Conditional(guard, then_branch, else_branch)

            if kind == LOOP:
                saved = self.scope.snapshot()
                guard = self.bool_expr()
                self._loop_nesting += 1
                try:
                    body = self.statement(depth + 1)
                finally:
                    self._loop_nesting -= 1
                self.scope.restore(saved)
                return While(guard, body)

            return Skip()


def generate_program(seed: Optional[int] = None, size: int = 40,
                     config: Optional[GeneratorConfig] = None) -> Statement:
    """Generate one program with fault injection as configured."""
    return ProgramGenerator(config, seed=seed).generate(size)


def generate_correct_program(seed: Optional[int] = None, size: int = 65,
                             config: Optional[GeneratorConfig] = None) -> Statement:
    """Generate one program with fault injection disabled."""
    base = config or GeneratorConfig()
    return ProgramGenerator(base.fault_free(), seed=seed).generate(size)
