"""Soundness oracles.

Each oracle runs the type checker and the evaluator on one program and turns
the two outcomes into a verdict:

  type-eval   type checking succeeds  =>  evaluation succeeds
  eval-type   evaluation fails        =>  type checking fails
  correct     both succeed (for programs generated without faults)

DISCARD means the program says nothing about the property: a program the
checker rejects is no evidence for type-eval, and a program that runs fine is
no evidence for eval-type.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from implang.ast_nodes import Statement
from implang.errors import EvalError, ImpTypeError, ImpError
from implang.evaluator import eval_program
from implang.typechecker import typecheck


class Verdict(Enum):
    PASS = "pass"
    FAIL = "fail"
    DISCARD = "discard"


@dataclass
class OracleResult:
    verdict: Verdict
    statement: Statement
    eval_error: Optional[ImpError] = None
    type_error: Optional[ImpError] = None
    message: str = ""

    @property
    def failed(self) -> bool:
        return self.verdict is Verdict.FAIL

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"verdict": self.verdict.value}
        if self.message:
            d["message"] = self.message
        if self.eval_error:
            d["eval_error"] = self.eval_error.to_dict()
        if self.type_error:
            d["type_error"] = self.type_error.to_dict()
        return d


def _run_both(stmt: Statement) -> tuple[Optional[ImpError], Optional[ImpError]]:
    type_error = eval_error = None
    try:
        typecheck(stmt)
    except ImpTypeError as e:
        type_error = e.error
    try:
        eval_program(stmt)
    except EvalError as e:
        eval_error = e.error
    return type_error, eval_error


def check_type_eval(stmt: Statement) -> OracleResult:
    """A program that type checks must evaluate without error."""
    type_error, eval_error = _run_both(stmt)
    if type_error is not None:
        return OracleResult(Verdict.DISCARD, stmt, eval_error, type_error)
    if eval_error is not None:
        return OracleResult(Verdict.FAIL, stmt, eval_error, type_error,
                            message=f"{eval_error} on a program that type checks")
    return OracleResult(Verdict.PASS, stmt)


def check_eval_type(stmt: Statement) -> OracleResult:
    """A program that fails to evaluate must also fail to type check."""
    type_error, eval_error = _run_both(stmt)
    if eval_error is None:
        return OracleResult(Verdict.DISCARD, stmt, eval_error, type_error)
    if type_error is not None:
        return OracleResult(Verdict.PASS, stmt, eval_error, type_error)
    return OracleResult(Verdict.FAIL, stmt, eval_error, type_error,
                        message=f"type checker accepted a program that fails with {eval_error}")


def check_correct(stmt: Statement) -> OracleResult:
    """A fault-free program must both type check and evaluate."""
    type_error, eval_error = _run_both(stmt)
    if type_error is not None:
        return OracleResult(Verdict.FAIL, stmt, eval_error, type_error,
                            message=f"{type_error} on a fault-free program")
    if eval_error is not None:
        return OracleResult(Verdict.FAIL, stmt, eval_error, type_error,
                            message=f"{eval_error} on a fault-free program")
    return OracleResult(Verdict.PASS, stmt)


@dataclass(frozen=True)
class OracleSpec:
    name: str
    check: Callable[[Statement], OracleResult]
    # Whether the oracle is fed programs generated with fault injection off.
    fault_free: bool
    default_size: int


ORACLES: dict[str, OracleSpec] = {
    "type-eval": OracleSpec("type-eval", check_type_eval, fault_free=False, default_size=40),
    "eval-type": OracleSpec("eval-type", check_eval_type, fault_free=False, default_size=80),
    "correct": OracleSpec("correct", check_correct, fault_free=True, default_size=65),
}


def get_oracle(name: str) -> OracleSpec:
    try:
        return ORACLES[name]
    except KeyError:
        raise ValueError(f"Unknown oracle '{name}' (choose from {', '.join(ORACLES)})") from None
