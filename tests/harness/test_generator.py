"""Program Generator Tests.

Generation is deterministic per seed, respects its configuration, and in
fault-free mode only produces programs that type check and run.
"""

import random

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from implang.ast_nodes import (
    Const, Nat, StoreAssign, HeapNew, HeapAlias, Sequence, Conditional, While,
    Statement, Expr,
)
from implang.errors import ImpTypeError
from implang.evaluator import eval_program
from implang.generator import (
    DEFAULT_WEIGHTS, STATEMENT_KINDS, LOOP, SKIP,
    GeneratorConfig, ProgramGenerator, Scope,
    generate_program, generate_correct_program,
)
from implang.typechecker import typecheck


def walk(node):
    """Yield every statement and expression node in a tree."""
    yield node
    for value in vars(node).values():
        if isinstance(value, (Statement, Expr)):
            yield from walk(value)


NO_LOOPS = GeneratorConfig(allow_loops=False)


class TestDeterminism:

    def test_same_seed_same_program(self):
        assert generate_program(42) == generate_program(42)
        assert generate_correct_program(42) == generate_correct_program(42)

    def test_different_seeds_differ(self):
        programs = {generate_program(seed, size=20) for seed in range(10)}
        assert len(programs) > 1

    def test_explicit_rng(self):
        a = ProgramGenerator(rng=random.Random(7)).generate(30)
        b = ProgramGenerator(seed=7).generate(30)
        assert a == b


class TestShape:

    def test_size_one_is_a_single_statement(self):
        config = GeneratorConfig(weights={**{k: 0 for k in STATEMENT_KINDS}, "store_assign": 1})
        for seed in range(20):
            assert isinstance(generate_program(seed, size=1, config=config), StoreAssign)

    def test_program_reaches_target_size(self):
        config = GeneratorConfig(weights={**{k: 0 for k in STATEMENT_KINDS}, "store_assign": 1})
        sizes = {generate_program(seed, size=10, config=config).size() for seed in range(50)}
        assert sizes <= set(range(1, 11))
        assert len(sizes) > 1

    def test_no_loops_when_disabled(self):
        for seed in range(30):
            program = generate_program(seed, size=40, config=NO_LOOPS)
            assert not any(isinstance(n, While) for n in walk(program))

    def test_loop_nesting_is_bounded(self):
        config = GeneratorConfig(weights={**DEFAULT_WEIGHTS, LOOP: 60}, max_loop_nesting=1)
        for seed in range(20):
            program = generate_program(seed, size=20, config=config)
            for node in walk(program):
                if isinstance(node, While):
                    assert not any(isinstance(n, While) for n in walk(node.body))

    def test_identifiers_and_constants_in_range(self):
        for seed in range(10):
            program = generate_correct_program(seed, size=30, config=NO_LOOPS)
            for node in walk(program):
                if isinstance(node, (StoreAssign, HeapNew)):
                    assert 20 <= len(node.name) <= 39
                    assert node.name.isalpha() and node.name.islower()
                if isinstance(node, Const) and isinstance(node.value, Nat):
                    assert -128 <= node.value.value <= 127

    def test_custom_ranges(self):
        config = GeneratorConfig(ident_length=(3, 3), nat_range=(0, 1), allow_loops=False)
        program = generate_correct_program(3, size=20, config=config)
        for node in walk(program):
            if isinstance(node, (StoreAssign, HeapNew, HeapAlias)):
                assert len(getattr(node, "alias", node.name)) == 3
            if isinstance(node, Const) and isinstance(node.value, Nat):
                assert node.value.value in (0, 1)

    def test_only_leaves_at_max_depth(self):
        config = GeneratorConfig(max_depth=0, fault_rate=0)
        gen = ProgramGenerator(config, seed=1)
        for _ in range(50):
            stmt = gen.statement()
            assert not isinstance(stmt, (Sequence, Conditional, While))


class TestFaultFree:
    """Without fault injection every program type checks and evaluates."""

    @given(seed=st.integers(min_value=0, max_value=2**32))
    @settings(max_examples=100)
    def test_loop_free_programs_are_correct(self, seed):
        program = generate_correct_program(seed, size=65, config=NO_LOOPS)
        typecheck(program)
        eval_program(program)

    @given(seed=st.integers(min_value=0, max_value=2**32))
    @settings(max_examples=25)
    def test_programs_with_loops_are_correct(self, seed):
        program = generate_correct_program(seed, size=30)
        typecheck(program)
        eval_program(program)

    def test_fault_free_copy(self):
        config = GeneratorConfig(fault_rate=3)
        copy = config.fault_free()
        assert copy.fault_rate == 0
        assert config.fault_rate == 3
        copy.weights[SKIP] = 99
        assert config.weights[SKIP] == DEFAULT_WEIGHTS[SKIP]


class TestFaults:

    def test_faults_produce_some_broken_programs(self):
        config = GeneratorConfig(fault_rate=4, allow_loops=False)
        broken = 0
        for seed in range(40):
            program = generate_program(seed, size=20, config=config)
            try:
                typecheck(program)
            except ImpTypeError:
                broken += 1
        assert broken > 0


class TestConfig:

    def test_defaults(self):
        config = GeneratorConfig()
        assert config.fault_rate == 512
        assert sum(config.weights.values()) == 105
        assert set(config.weights) == set(STATEMENT_KINDS)

    def test_missing_weight(self):
        weights = dict(DEFAULT_WEIGHTS)
        del weights[SKIP]
        with pytest.raises(ValueError):
            GeneratorConfig(weights=weights)

    def test_negative_weight(self):
        with pytest.raises(ValueError):
            GeneratorConfig(weights={**DEFAULT_WEIGHTS, LOOP: -1})

    def test_no_statement_can_bind_a_name(self):
        weights = {kind: 0 for kind in STATEMENT_KINDS}
        weights["heap_update"] = 1
        with pytest.raises(ValueError):
            GeneratorConfig(weights=weights)

    def test_bad_ranges(self):
        with pytest.raises(ValueError):
            GeneratorConfig(ident_length=(0, 5))
        with pytest.raises(ValueError):
            GeneratorConfig(nat_range=(5, 1))
        with pytest.raises(ValueError):
            GeneratorConfig(fault_rate=-1)


class TestScope:

    def test_snapshot_restore(self):
        scope = Scope({"a"}, {"p"})
        saved = scope.snapshot()
        scope.store.add("b")
        scope.heap.add("q")
        scope.restore(saved)
        assert scope.store == {"a"}
        assert scope.heap == {"p"}
        assert "a" in scope and "p" in scope and "b" not in scope
