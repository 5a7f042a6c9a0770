"""Imp Type Checker Tests.

Flow-sensitive environments: sequencing extends Σ, conditionals keep only
names both branches agree on, loop bodies never leak bindings, and a name
never changes kind.
"""

import pytest

from implang.ast_nodes import (
    Nat, Bool,
    StoreRead, HeapRead, Const, NatAdd, NatLeq, BoolAnd, BoolNot,
    StoreAssign, HeapNew, HeapUpdate, HeapAlias,
    Sequence, Conditional, While, Skip, sequence_of,
)
from implang.errors import ImpTypeError, TypeErrorKind
from implang.typechecker import (
    typecheck, check_program, typecheck_expr, typecheck_source,
)
from implang.types import TypeEnvironment, NUMBER, LOCATION, BOOLEAN


def nat(n):
    return Const(Nat(n))


def boolean(b):
    return Const(Bool(b))


class TestWellTyped:
    """Programs the checker accepts."""

    def test_basic_program(self):
        program = sequence_of([
            HeapNew("x", nat(1)),
            HeapNew("z", nat(2)),
            HeapUpdate("z", NatAdd(HeapRead("x"), HeapRead("z"))),
            Conditional(
                NatLeq(HeapRead("x"), nat(0)),
                HeapNew("y", HeapRead("z")),
                HeapNew("y", nat(4)),
            ),
        ])
        typecheck(program)
        env = check_program(program)
        assert env.lookup_variable("y") == LOCATION

    def test_counter(self, counter_program):
        env = check_program(counter_program)
        assert env.as_dict() == {"x": LOCATION, "inc": NUMBER}

    def test_alias(self):
        env = check_program(Sequence(HeapNew("a", nat(0)), HeapAlias("b", "a")))
        assert env.lookup_variable("b") == LOCATION

    def test_rebinding_same_kind(self):
        program = sequence_of([
            StoreAssign("x", nat(1)),
            StoreAssign("x", NatAdd(StoreRead("x"), nat(1))),
            HeapNew("p", nat(0)),
            HeapNew("p", StoreRead("x")),
        ])
        typecheck(program)

    def test_empty_program(self):
        assert len(check_program(Skip())) == 0


class TestConditionalMerge:
    """Only names bound in both branches with the same type survive."""

    def test_disagreeing_name_is_dropped(self):
        program = Conditional(
            boolean(True),
            Sequence(StoreAssign("a", nat(1)), StoreAssign("b", nat(2))),
            Sequence(HeapNew("a", nat(1)), StoreAssign("b", nat(3))),
        )
        env = check_program(program)
        assert "a" not in env
        assert env.lookup_variable("b") == NUMBER

    def test_one_sided_binding_is_dropped(self):
        program = Sequence(
            Conditional(boolean(True), StoreAssign("a", nat(1)), Skip()),
            StoreAssign("b", StoreRead("a")),
        )
        with pytest.raises(ImpTypeError) as exc:
            typecheck(program)
        assert exc.value.kind is TypeErrorKind.UNBOUND_VARIABLE

    def test_guard_must_be_boolean(self):
        with pytest.raises(ImpTypeError) as exc:
            typecheck(Conditional(nat(1), Skip(), Skip()))
        assert exc.value.kind is TypeErrorKind.MISMATCH
        assert exc.value.expected == BOOLEAN
        assert exc.value.got == NUMBER


class TestLoops:
    """Loop bodies are checked but their bindings are discarded."""

    def test_body_binding_does_not_leak(self):
        program = Sequence(
            While(boolean(False), StoreAssign("inner", nat(1))),
            StoreAssign("outer", StoreRead("inner")),
        )
        with pytest.raises(ImpTypeError) as exc:
            typecheck(program)
        assert exc.value.kind is TypeErrorKind.UNBOUND_VARIABLE

    def test_body_is_checked(self):
        with pytest.raises(ImpTypeError):
            typecheck(While(boolean(False), StoreAssign("x", boolean(True))))


class TestTypeErrors:
    """Ill-typed programs and the error each one produces."""

    def test_nested_program_with_bad_alias(self):
        program = sequence_of([
            Skip(),
            StoreAssign("x1", nat(13)),
            Skip(),
            HeapNew("x2", StoreRead("x1")),
            Conditional(
                BoolNot(boolean(True)),
                While(
                    BoolAnd(BoolAnd(boolean(False), boolean(True)), boolean(True)),
                    StoreAssign("x4", StoreRead("x1")),
                ),
                HeapAlias("x1", "x2"),
            ),
            HeapNew("x3", nat(117)),
            HeapUpdate("x2", StoreRead("x1")),
        ])
        with pytest.raises(ImpTypeError) as exc:
            typecheck(program)
        assert exc.value.kind is TypeErrorKind.MISMATCH

    def test_store_assign_to_location_name(self):
        with pytest.raises(ImpTypeError) as exc:
            typecheck(Sequence(HeapNew("x", nat(1)), StoreAssign("x", nat(2))))
        assert exc.value.kind is TypeErrorKind.MISMATCH

    def test_heap_new_into_number_name(self):
        with pytest.raises(ImpTypeError) as exc:
            typecheck(Sequence(StoreAssign("x", nat(1)), HeapNew("x", nat(2))))
        assert exc.value.kind is TypeErrorKind.MISMATCH

    def test_unbound_read(self):
        with pytest.raises(ImpTypeError) as exc:
            typecheck(StoreAssign("x", StoreRead("y")))
        assert exc.value.kind is TypeErrorKind.UNBOUND_VARIABLE
        assert exc.value.error.details["name"] == "y"

    def test_heap_update_of_number(self):
        with pytest.raises(ImpTypeError) as exc:
            typecheck(Sequence(StoreAssign("x", nat(1)), HeapUpdate("x", nat(2))))
        assert exc.value.kind is TypeErrorKind.MISMATCH

    def test_alias_of_number(self):
        with pytest.raises(ImpTypeError) as exc:
            typecheck(Sequence(StoreAssign("x", nat(1)), HeapAlias("y", "x")))
        assert exc.value.kind is TypeErrorKind.MISMATCH

    def test_expression_checked_before_name(self):
        # Both the target kind and the expression are wrong; the
        # expression's unbound name is what gets reported.
        program = Sequence(HeapNew("x", nat(1)), StoreAssign("x", StoreRead("nope")))
        with pytest.raises(ImpTypeError) as exc:
            typecheck(program)
        assert exc.value.kind is TypeErrorKind.UNBOUND_VARIABLE


class TestExpressions:

    def test_expression_types(self):
        env = TypeEnvironment({"n": NUMBER, "p": LOCATION})
        assert typecheck_expr(NatAdd(StoreRead("n"), HeapRead("p")), env) == NUMBER
        assert typecheck_expr(NatLeq(nat(1), nat(2))) == BOOLEAN
        assert typecheck_expr(BoolNot(BoolAnd(boolean(True), boolean(False)))) == BOOLEAN

    def test_not_of_number(self):
        with pytest.raises(ImpTypeError):
            typecheck_expr(BoolNot(nat(1)))

    def test_leq_of_booleans(self):
        with pytest.raises(ImpTypeError):
            typecheck_expr(NatLeq(boolean(True), nat(1)))


class TestSource:
    """Type checking straight from source text."""

    def test_well_typed_source(self):
        program = typecheck_source("x = new 1; y = &x; *y = *x + 1;")
        assert isinstance(program, Sequence)

    def test_syntax_error_is_other(self):
        with pytest.raises(ImpTypeError) as exc:
            typecheck_source("x = ;")
        assert exc.value.kind is TypeErrorKind.OTHER
        assert exc.value.error.location is not None


class TestTypeEnvironment:

    def test_clone_is_independent(self):
        env = TypeEnvironment({"x": NUMBER})
        copy = env.clone()
        copy.define_variable("y", LOCATION)
        assert "y" not in env

    def test_intersect(self):
        left = TypeEnvironment({"a": NUMBER, "b": LOCATION, "c": NUMBER})
        right = TypeEnvironment({"a": NUMBER, "b": NUMBER})
        assert left.intersect(right) == TypeEnvironment({"a": NUMBER})
