#!/usr/bin/env python3
"""
mbqe CLI - Model-Based Quantifier Elimination for Linear Arithmetic.

Commands:
- project: eliminate constants from a conjunction of SMT-LIB assertions
- maximize: maximize a term under SMT-LIB assertions

Usage:
    mbqe project problem.smt2 --vars x y          # Eliminate x and y
    mbqe project problem.smt2 --vars x -f json    # JSON output
    mbqe maximize problem.smt2 --objective x      # Maximize x
    mbqe maximize problem.smt2 --objective-term "(+ x y)"
"""

import argparse
import sys
import json
import time
from pathlib import Path
from typing import List

from mbqe import __version__


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser"""
    parser = argparse.ArgumentParser(
        prog="mbqe",
        description="mbqe - Model-based projection and maximization for linear arithmetic",
        epilog="Use 'mbqe <command> --help' for more information on a specific command.",
    )

    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # === PROJECT command ===
    project_parser = subparsers.add_parser(
        "project",
        help="Eliminate constants from SMT-LIB assertions",
        description="Find a model of the assertions and project the given constants out of them."
    )
    project_parser.add_argument(
        "file",
        help="SMT-LIB2 file with declarations and assertions"
    )
    project_parser.add_argument(
        "--vars",
        nargs="+",
        required=True,
        help="Names of the constants to eliminate"
    )
    _add_common_options(project_parser)

    # === MAXIMIZE command ===
    maximize_parser = subparsers.add_parser(
        "maximize",
        help="Maximize a term under SMT-LIB assertions",
        description="Find a model of the assertions and maximize a linear term in its neighbourhood."
    )
    maximize_parser.add_argument(
        "file",
        help="SMT-LIB2 file with declarations and assertions"
    )
    objective = maximize_parser.add_mutually_exclusive_group(required=True)
    objective.add_argument(
        "--objective",
        help="Name of the constant to maximize"
    )
    objective.add_argument(
        "--objective-term",
        help="SMT-LIB term to maximize, e.g. \"(+ x (* 2 y))\""
    )
    _add_common_options(maximize_parser)

    return parser


def _add_common_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-f", "--format",
        default="text",
        choices=["text", "json"],
        help="Output format (default: text)"
    )
    parser.add_argument(
        "--timeout",
        type=int,
        default=5000,
        help="Solver timeout in ms for finding the model (default: 5000)"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Print projection traces"
    )


def _load_problem(args):
    """Read the file named on the command line and find a model for it"""
    from mbqe.utils.smtlib import InputError, find_model, load_literals

    try:
        text = Path(args.file).read_text()
    except OSError as e:
        raise InputError(f"cannot read {args.file}: {e}") from e
    literals = load_literals(text)
    model = find_model(literals, timeout_ms=args.timeout)
    return literals, model


# ============================================================================
# PROJECT Command
# ============================================================================

def cmd_project(args) -> int:
    """Execute project command"""
    from mbqe.projection.arith_project import ArithProjector
    from mbqe.utils.smtlib import InputError, lookup_constants

    start_time = time.time()
    try:
        literals, model = _load_problem(args)
        variables = lookup_constants(literals, args.vars)
    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        print(f"Model: {model}")
        print("-" * 60)

    requested = list(variables)
    projector = ArithProjector(verbose=args.verbose)
    projector.eliminate(model, variables, literals)
    elapsed_ms = (time.time() - start_time) * 1000

    remaining = {v.get_id() for v in variables}
    eliminated = [str(v) for v in requested if v.get_id() not in remaining]

    if args.format == "json":
        print(json.dumps({
            "eliminated": eliminated,
            "remaining": [str(v) for v in variables],
            "literals": [lit.sexpr() for lit in literals],
            "time_ms": round(elapsed_ms, 2)
        }, indent=2))
    else:
        if not literals:
            print("true")
        for lit in literals:
            print(lit.sexpr())
        if variables:
            print(f"; not eliminated: {' '.join(str(v) for v in variables)}")
        if args.verbose:
            print(f"Time: {elapsed_ms:.2f}ms")
    return 0


# ============================================================================
# MAXIMIZE Command
# ============================================================================

def cmd_maximize(args) -> int:
    """Execute maximize command"""
    from mbqe.projection.arith_project import ArithProjector
    from mbqe.utils.smtlib import InputError, lookup_constants, parse_term

    start_time = time.time()
    try:
        literals, model = _load_problem(args)
        if args.objective:
            objective = lookup_constants(literals, [args.objective])[0]
        else:
            objective = parse_term(args.objective_term, literals)
    except InputError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    projector = ArithProjector(verbose=args.verbose)
    result = projector.maximize(literals, model, objective)
    elapsed_ms = (time.time() - start_time) * 1000

    if args.format == "json":
        print(json.dumps({
            "objective": objective.sexpr(),
            "value": str(result.value),
            "unbounded": result.value.unbounded,
            "bound_ge": result.bound_ge.sexpr(),
            "bound_gt": result.bound_gt.sexpr(),
            "model": {str(term): str(value) for term, value in result.assignments},
            "time_ms": round(elapsed_ms, 2)
        }, indent=2))
    else:
        print(f"max {objective.sexpr()} = {result.value}")
        print(f"ge: {result.bound_ge.sexpr()}")
        print(f"gt: {result.bound_gt.sexpr()}")
        if args.verbose:
            for term, value in result.assignments:
                print(f"  {term} := {value}")
            print(f"Time: {elapsed_ms:.2f}ms")
    return 0


def main(argv: List[str] = None) -> int:
    """Main CLI entry point"""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    # Dispatch to command handler
    commands = {
        "project": cmd_project,
        "maximize": cmd_maximize,
    }

    handler = commands.get(args.command)
    if handler:
        return handler(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
