"""Imp Soundness Harness — randomized trials, shrinking, reporting.

Runs an oracle over many generated programs, QuickCheck style: trials go on
until enough programs passed or the trial budget is spent, and the first
failing program is minimized with the shrinker before it is reported.

Every trial is described by a seed alone. The program is regenerated from
(seed, size, generator config) wherever it is needed, so trials can be fanned
out over worker processes without sharing any generator state, and a reported
seed reproduces its counterexample.

Usage:
    from implang.harness import HarnessConfig, run_property
    report = run_property("type-eval", HarnessConfig(tests=500, seed=1))
    assert report.ok, report.message
"""

from __future__ import annotations

import json
import logging
import random
import time
from dataclasses import dataclass, field
from multiprocessing import Pool, cpu_count
from typing import Any, Iterator, Optional

from implang.ast_nodes import Statement, format_statement
from implang.generator import GeneratorConfig, ProgramGenerator
from implang.oracles import OracleResult, OracleSpec, Verdict, get_oracle
from implang.shrinker import DEFAULT_MAX_SHRINK_STEPS, minimize

logger = logging.getLogger(__name__)


@dataclass
class HarnessConfig:
    """How many trials to run and what counts as success."""
    # Stop once this many trials passed.
    tests: int = 100
    # Upper bound on trials, discarded ones included.
    max_tests: int = 1000
    # A run with fewer passing trials is not ok, even without a failure.
    min_tests_passed: int = 0
    # Generator size; None uses the oracle's default.
    size: Optional[int] = None
    seed: Optional[int] = None
    workers: int = 1  # 0 = auto (cpu_count)
    shrink: bool = True
    max_shrink_steps: int = DEFAULT_MAX_SHRINK_STEPS
    # Keep every trial seed on the report.
    record_seeds: bool = False

    def __post_init__(self) -> None:
        if self.tests < 0 or self.max_tests < 0 or self.min_tests_passed < 0:
            raise ValueError("trial counts must be non-negative")
        if self.workers < 0:
            raise ValueError("workers must be >= 0")


@dataclass
class Counterexample:
    seed: int
    original: Statement
    shrunk: Statement
    shrink_steps: int
    result: OracleResult

    def to_dict(self) -> dict[str, Any]:
        return {
            "seed": self.seed,
            "original_nodes": self.original.node_count(),
            "shrunk_nodes": self.shrunk.node_count(),
            "shrink_steps": self.shrink_steps,
            "program": format_statement(self.shrunk),
            "result": self.result.to_dict(),
        }


@dataclass
class HarnessReport:
    oracle: str
    min_tests_passed: int = 0
    passed: int = 0
    failed: int = 0
    discarded: int = 0
    counterexample: Optional[Counterexample] = None
    elapsed: float = 0.0
    # Filled only when HarnessConfig.record_seeds is set.
    seeds: list[int] = field(default_factory=list, repr=False)

    @property
    def trials(self) -> int:
        return self.passed + self.failed + self.discarded

    @property
    def ok(self) -> bool:
        return self.failed == 0 and self.passed >= self.min_tests_passed

    @property
    def message(self) -> str:
        if self.counterexample is not None:
            return (f"{self.oracle}: falsified after {self.trials} trials "
                    f"(seed {self.counterexample.seed}): {self.counterexample.result.message}\n"
                    f"{format_statement(self.counterexample.shrunk)}")
        if self.passed < self.min_tests_passed:
            return (f"{self.oracle}: only {self.passed} trials passed, "
                    f"{self.min_tests_passed} required ({self.discarded} discarded)")
        return f"{self.oracle}: {self.passed} passed, {self.discarded} discarded"

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "oracle": self.oracle,
            "ok": self.ok,
            "trials": self.trials,
            "passed": self.passed,
            "failed": self.failed,
            "discarded": self.discarded,
            "elapsed": round(self.elapsed, 3),
        }
        if self.counterexample is not None:
            d["counterexample"] = self.counterexample.to_dict()
        return d

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


# ---------------------------------------------------------------------------
# Trials (top-level so they pickle)
# ---------------------------------------------------------------------------

def program_for_trial(oracle: OracleSpec, seed: int, size: int,
                      generator_config: GeneratorConfig) -> Statement:
    config = generator_config.fault_free() if oracle.fault_free else generator_config
    return ProgramGenerator(config, seed=seed).generate(size)


def _run_trial(args: tuple[str, int, int, GeneratorConfig]) -> tuple[int, str]:
    oracle_name, seed, size, generator_config = args
    oracle = get_oracle(oracle_name)
    program = program_for_trial(oracle, seed, size, generator_config)
    return seed, oracle.check(program).verdict.value


def _trial_seeds(seed: Optional[int]) -> Iterator[int]:
    master = random.Random(seed)
    while True:
        yield master.getrandbits(64)


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------

def run_property(oracle_name: str, config: Optional[HarnessConfig] = None,
                 generator_config: Optional[GeneratorConfig] = None) -> HarnessReport:
    """Run one oracle over generated programs and report the outcome."""
    config = config or HarnessConfig()
    generator_config = generator_config or GeneratorConfig()
    oracle = get_oracle(oracle_name)
    size = config.size if config.size is not None else oracle.default_size
    report = HarnessReport(oracle=oracle.name, min_tests_passed=config.min_tests_passed)

    workers = config.workers or cpu_count()
    start = time.time()
    seeds = _trial_seeds(config.seed)
    failing_seed: Optional[int] = None

    logger.info("Running %s: up to %d trials, size %d, %d worker(s)",
                oracle.name, config.max_tests, size, workers)

    pool = Pool(processes=workers) if workers > 1 else None
    try:
        while report.passed < config.tests and report.trials < config.max_tests:
            batch_size = min(config.max_tests - report.trials, max(1, workers * 16))
            batch = [(oracle.name, next(seeds), size, generator_config)
                     for _ in range(batch_size)]
            if pool is not None:
                results = pool.map(_run_trial, batch)
            else:
                results = (_run_trial(args) for args in batch)

            for seed, verdict in results:
                if config.record_seeds:
                    report.seeds.append(seed)
                if verdict == Verdict.PASS.value:
                    report.passed += 1
                elif verdict == Verdict.DISCARD.value:
                    report.discarded += 1
                else:
                    report.failed += 1
                    failing_seed = seed
                    break
                if report.passed >= config.tests:
                    break
            if failing_seed is not None:
                break
    finally:
        if pool is not None:
            pool.close()
            pool.join()

    if failing_seed is not None:
        report.counterexample = _counterexample(oracle, failing_seed, size,
                                                generator_config, config)
        logger.warning("%s falsified by seed %d", oracle.name, failing_seed)

    report.elapsed = time.time() - start
    logger.info("%s: %d passed, %d failed, %d discarded in %.2fs",
                oracle.name, report.passed, report.failed, report.discarded, report.elapsed)
    return report


def _counterexample(oracle: OracleSpec, seed: int, size: int,
                    generator_config: GeneratorConfig,
                    config: HarnessConfig) -> Counterexample:
    original = program_for_trial(oracle, seed, size, generator_config)
    shrunk, steps = original, 0
    if config.shrink:
        shrunk, steps = minimize(original, lambda s: oracle.check(s).failed,
                                 max_steps=config.max_shrink_steps)
        logger.info("Shrunk counterexample from %d to %d nodes in %d steps",
                    original.node_count(), shrunk.node_count(), steps)
    return Counterexample(seed=seed, original=original, shrunk=shrunk,
                          shrink_steps=steps, result=oracle.check(shrunk))
