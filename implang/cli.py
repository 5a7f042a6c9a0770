"""Imp CLI — command-line interface for the Imp toolchain.

Commands:
  imp run <file.imp>                 — Type check, then evaluate; print final state
  imp check <file.imp>               — Type check only
  imp generate --seed N              — Print a randomly generated program
  imp fuzz --oracle type-eval        — Run a soundness oracle over generated programs
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any, Optional

from implang import __version__
from implang.ast_nodes import format_statement
from implang.config import ImpConfig, load_config
from implang.errors import CompileError, ConfigError, EvalError, ImpTypeError
from implang.evaluator import Location, Store, Heap, Evaluator
from implang.generator import generate_program, generate_correct_program
from implang.harness import HarnessConfig, run_property
from implang.oracles import ORACLES
from implang.parser import parse
from implang.typechecker import check_program

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _configure_logging(verbosity: int, default: str = "warning") -> None:
    """Attach a stderr handler to the ``implang`` logger.

    0 → the configured level (WARNING unless a config file says otherwise),
    1 → INFO, 2+ → DEBUG.
    """
    level = _LEVELS.get(default, logging.WARNING)
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s [%(levelname)-5.5s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    root = logging.getLogger("implang")
    root.setLevel(level)
    if not root.handlers:
        root.addHandler(handler)


def _read_program(path: str):
    """Parse a source file. Prints the error and returns None on failure."""
    if not os.path.exists(path):
        print(json.dumps({"error": f"File not found: {path}"}))
        return None
    with open(path, "r") as f:
        source = f.read()
    try:
        return parse(source, filename=path)
    except CompileError as e:
        print(e.to_json())
        return None


def _state_to_dict(store: Store, heap: Heap) -> dict[str, Any]:
    return {
        "store": {
            name: ({"location": value.index} if isinstance(value, Location)
                   else {"number": value.value})
            for name, value in sorted(store.items())
        },
        "heap": list(heap),
    }


def cmd_run(args: argparse.Namespace) -> int:
    """Type check and evaluate an Imp source file."""
    config: ImpConfig = args.imp_config
    program = _read_program(args.file)
    if program is None:
        return 1

    result: dict[str, Any] = {"file": args.file}
    try:
        check_program(program)
        result["typecheck"] = "ok"
    except ImpTypeError as e:
        result["typecheck"] = e.error.to_dict()
        if not args.force:
            print(json.dumps(result, indent=2))
            return 1

    evaluator = Evaluator(loop_limit=config.loop_limit)
    try:
        store, heap = evaluator.run(program)
    except EvalError as e:
        result["eval"] = e.error.to_dict()
        result.update(_state_to_dict(e.store or {}, e.heap or []))
        print(json.dumps(result, indent=2))
        return 1

    result["eval"] = "ok"
    result.update(_state_to_dict(store, heap))
    print(json.dumps(result, indent=2))
    return 0


def cmd_check(args: argparse.Namespace) -> int:
    """Type check an Imp source file."""
    program = _read_program(args.file)
    if program is None:
        return 1
    try:
        env = check_program(program)
    except ImpTypeError as e:
        print(e.to_json())
        return 1
    environment = {name: str(typ) for name, typ in sorted(env.as_dict().items())}
    print(json.dumps({"status": "ok", "environment": environment}, indent=2))
    return 0


def cmd_generate(args: argparse.Namespace) -> int:
    """Print a generated program."""
    config: ImpConfig = args.imp_config
    if args.fault_free:
        program = generate_correct_program(args.seed, size=args.size, config=config.generator)
    else:
        program = generate_program(args.seed, size=args.size, config=config.generator)
    print(format_statement(program))
    return 0


def cmd_fuzz(args: argparse.Namespace) -> int:
    """Run a soundness oracle and print the report as JSON."""
    config: ImpConfig = args.imp_config

    base = config.harness
    try:
        harness = HarnessConfig(
            tests=args.tests if args.tests is not None else base.tests,
            max_tests=args.max_tests if args.max_tests is not None else base.max_tests,
            min_tests_passed=(args.min_passed if args.min_passed is not None
                              else base.min_tests_passed),
            size=args.size if args.size is not None else base.size,
            seed=args.seed if args.seed is not None else base.seed,
            workers=args.workers if args.workers is not None else base.workers,
            shrink=base.shrink and not args.no_shrink,
            max_shrink_steps=base.max_shrink_steps,
        )
    except ValueError as e:
        print(json.dumps({"error": str(e)}))
        return 1

    report = run_property(args.oracle, harness, config.generator)
    print(report.to_json())
    return 0 if report.ok else 1


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(
        prog="imp",
        description="Imp — a small imperative language with a soundness harness",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Increase log verbosity (-v info, -vv debug)")
    parser.add_argument("--config", default=None,
                        help="Configuration file (default: nearest .imprc.yml)")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # run
    p_run = subparsers.add_parser("run", help="Type check and evaluate a program")
    p_run.add_argument("file", help="Imp source file (.imp)")
    p_run.add_argument("--force", action="store_true",
                       help="Evaluate even if type checking fails")
    p_run.set_defaults(func=cmd_run)

    # check
    p_check = subparsers.add_parser("check", help="Type check a program")
    p_check.add_argument("file", help="Imp source file (.imp)")
    p_check.set_defaults(func=cmd_check)

    # generate
    p_gen = subparsers.add_parser("generate", help="Print a randomly generated program")
    p_gen.add_argument("--seed", type=int, default=None, help="Random seed")
    p_gen.add_argument("--size", type=int, default=40, help="Upper bound on program size")
    p_gen.add_argument("--fault-free", action="store_true", dest="fault_free",
                       help="Disable fault injection")
    p_gen.set_defaults(func=cmd_generate)

    # fuzz
    p_fuzz = subparsers.add_parser("fuzz", help="Run a soundness oracle")
    p_fuzz.add_argument("--oracle", choices=sorted(ORACLES), default="type-eval",
                        help="Property to test (default: type-eval)")
    p_fuzz.add_argument("--tests", type=int, default=None, help="Passing trials to stop at")
    p_fuzz.add_argument("--max-tests", type=int, default=None, dest="max_tests",
                        help="Upper bound on trials")
    p_fuzz.add_argument("--min-passed", type=int, default=None, dest="min_passed",
                        help="Fewer passing trials than this is a failure")
    p_fuzz.add_argument("--size", type=int, default=None,
                        help="Generator size (default: per oracle)")
    p_fuzz.add_argument("--seed", type=int, default=None, help="Master seed")
    p_fuzz.add_argument("--workers", type=int, default=None,
                        help="Number of parallel workers (0=auto)")
    p_fuzz.add_argument("--no-shrink", action="store_true", dest="no_shrink",
                        help="Report the counterexample unshrunk")
    p_fuzz.set_defaults(func=cmd_fuzz)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        args.imp_config = load_config(args.config)
    except ConfigError as e:
        print(json.dumps({"error": f"Bad configuration: {e}"}))
        sys.exit(1)
    _configure_logging(args.verbose, args.imp_config.log_level)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
