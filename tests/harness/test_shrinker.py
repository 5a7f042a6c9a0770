"""Shrinker Tests — candidates only get smaller, and minimize reaches a
local minimum."""

from itertools import islice

from hypothesis import given, settings
from hypothesis import strategies as st

from implang.ast_nodes import (
    Nat, Bool,
    StoreRead, HeapRead, Const, NatAdd, NatLeq, BoolAnd, BoolNot,
    StoreAssign, HeapNew, HeapUpdate, HeapAlias,
    Sequence, Conditional, While, Skip, Statement, sequence_of,
)
from implang.generator import GeneratorConfig, generate_program
from implang.shrinker import (
    shrink_int, shrink_constant, shrink_expr, shrink_statement, minimize,
)


def nat(n):
    return Const(Nat(n))


def contains(stmt, node_type):
    if isinstance(stmt, node_type):
        return True
    return any(contains(child, node_type) for child in vars(stmt).values()
               if isinstance(child, Statement))


class TestShrinkInt:

    def test_zero_has_no_candidates(self):
        assert list(shrink_int(0)) == []

    def test_positive(self):
        assert list(shrink_int(10)) == [0, 5, 8, 9]

    def test_negative_tries_mirror(self):
        assert list(shrink_int(-6)) == [0, 6, -3, -5]

    def test_one(self):
        assert list(shrink_int(1)) == [0]


class TestShrinkConstantsAndExpressions:

    def test_booleans(self):
        assert list(shrink_constant(Bool(True))) == [Bool(False)]
        assert list(shrink_constant(Bool(False))) == []

    def test_reads_are_leaves(self):
        assert list(shrink_expr(StoreRead("x"))) == []
        assert list(shrink_expr(HeapRead("x"))) == []

    def test_add_offers_children_first(self):
        candidates = list(shrink_expr(NatAdd(nat(3), StoreRead("x"))))
        assert candidates[:2] == [nat(3), StoreRead("x")]
        assert NatAdd(nat(0), StoreRead("x")) in candidates

    def test_leq_never_offers_a_number_child(self):
        candidates = list(shrink_expr(NatLeq(nat(2), nat(0))))
        assert candidates == [NatLeq(nat(0), nat(0)), NatLeq(nat(1), nat(0))]

    def test_not_offers_operand(self):
        expr = BoolNot(Const(Bool(True)))
        assert list(shrink_expr(expr)) == [Const(Bool(True)), BoolNot(Const(Bool(False)))]

    def test_and(self):
        expr = BoolAnd(Const(Bool(False)), Const(Bool(True)))
        assert list(shrink_expr(expr)) == [
            Const(Bool(False)), Const(Bool(True)),
            BoolAnd(Const(Bool(False)), Const(Bool(False))),
        ]

    def test_candidates_are_fresh_each_call(self):
        expr = NatAdd(nat(4), nat(2))
        assert list(shrink_expr(expr)) == list(shrink_expr(expr))


class TestShrinkStatements:

    def test_leaves(self):
        assert list(shrink_statement(Skip())) == []
        assert list(shrink_statement(HeapAlias("a", "b"))) == []
        assert list(shrink_statement(StoreAssign("x", StoreRead("y")))) == []

    def test_assignment_keeps_name(self):
        assert list(shrink_statement(HeapNew("p", nat(2)))) == [
            HeapNew("p", nat(0)), HeapNew("p", nat(1)),
        ]

    def test_sequence(self):
        first, second = StoreAssign("x", nat(1)), Skip()
        candidates = list(shrink_statement(Sequence(first, second)))
        assert candidates[:2] == [first, second]
        assert Sequence(StoreAssign("x", nat(0)), second) in candidates

    def test_three_statement_chain_order(self):
        a, b, c = StoreAssign("x", nat(1)), HeapNew("p", nat(0)), HeapAlias("q", "p")
        candidates = list(shrink_statement(Sequence(Sequence(a, b), c)))
        assert candidates == [
            Sequence(a, b),
            c,
            Sequence(a, c),
            Sequence(b, c),
            Sequence(Sequence(StoreAssign("x", nat(0)), b), c),
        ]

    def test_long_chain(self):
        program = sequence_of([StoreAssign("x", nat(i % 5)) for i in range(5000)])
        first, second = islice(shrink_statement(program), 2)
        assert first.size() == 4999
        assert second == StoreAssign("x", nat(4))

    def test_conditional_offers_branches(self):
        stmt = Conditional(Const(Bool(True)), Skip(), HeapUpdate("p", nat(1)))
        candidates = list(shrink_statement(stmt))
        assert candidates[:2] == [Skip(), HeapUpdate("p", nat(1))]
        assert Conditional(Const(Bool(False)), Skip(), HeapUpdate("p", nat(1))) in candidates

    def test_while_offers_body(self):
        stmt = While(Const(Bool(True)), StoreAssign("x", nat(1)))
        candidates = list(shrink_statement(stmt))
        assert candidates[0] == StoreAssign("x", nat(1))

    @given(seed=st.integers(min_value=0, max_value=2**32))
    @settings(max_examples=50)
    def test_candidates_never_grow(self, seed):
        program = generate_program(seed, size=15, config=GeneratorConfig(fault_rate=8))
        for candidate in shrink_statement(program):
            assert candidate.node_count() <= program.node_count()
            assert candidate != program


class TestMinimize:

    def test_reaches_fixed_point(self):
        program = Sequence(
            StoreAssign("a", nat(5)),
            Sequence(Skip(), HeapUpdate("p", NatAdd(nat(3), nat(4)))),
        )

        def still_fails(stmt):
            return contains(stmt, HeapUpdate)

        shrunk, steps = minimize(program, still_fails)
        assert shrunk == HeapUpdate("p", nat(0))
        assert steps > 0
        assert not any(still_fails(c) for c in shrink_statement(shrunk))

    def test_no_failing_candidate(self):
        program = StoreAssign("x", nat(7))
        shrunk, steps = minimize(program, lambda s: False)
        assert shrunk == program
        assert steps == 0

    def test_step_limit(self):
        program = StoreAssign("x", nat(100))
        shrunk, steps = minimize(program, lambda s: True, max_steps=1)
        assert steps == 1
        assert shrunk == StoreAssign("x", nat(0))

    def test_long_program(self):
        program = sequence_of([StoreAssign("x", nat(1)) for _ in range(5000)])
        shrunk, steps = minimize(program, lambda s: s.size() >= 4990, max_steps=10)
        assert steps == 10
        assert shrunk.size() == 4990
