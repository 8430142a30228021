"""
SMT-LIB input helpers

Loads assertions from SMT-LIB2 text, splits them into literals, finds a
model for them and looks up declared constants by name.
"""

import z3
from typing import Dict, Iterable, List

from mbqe.core.terms import is_uninterp_const


class InputError(ValueError):
    """Raised when problem input cannot be used"""
    pass


def flatten_conjunction(fmls: Iterable[z3.ExprRef]) -> List[z3.ExprRef]:
    """Split nested conjunctions into their conjuncts, dropping ``true``."""
    literals = []
    todo = list(reversed(list(fmls)))
    while todo:
        f = todo.pop()
        if z3.is_and(f):
            todo.extend(reversed(f.children()))
        elif not z3.is_true(f):
            literals.append(f)
    return literals


def load_literals(text: str) -> List[z3.ExprRef]:
    """Parse SMT-LIB2 assertions and return them as a list of literals."""
    try:
        assertions = z3.parse_smt2_string(text)
    except z3.Z3Exception as e:
        raise InputError(f"cannot parse SMT-LIB input: {e}") from e
    return flatten_conjunction(assertions)


def find_model(literals: List[z3.ExprRef], timeout_ms: int = 5000) -> z3.ModelRef:
    """
    Find a model of the literals.

    Raises:
        InputError: if the literals are unsatisfiable or the solver gives up
    """
    solver = z3.Solver()
    solver.set("timeout", timeout_ms)
    solver.add(literals)
    result = solver.check()
    if result == z3.unsat:
        raise InputError("assertions are unsatisfiable")
    if result != z3.sat:
        raise InputError(f"no model found: {solver.reason_unknown()}")
    return solver.model()


def collect_constants(exprs: Iterable[z3.ExprRef]) -> Dict[str, z3.ExprRef]:
    """Map names of uninterpreted constants occurring in ``exprs`` to the constants."""
    constants: Dict[str, z3.ExprRef] = {}
    seen = set()
    todo = list(exprs)
    while todo:
        e = todo.pop()
        if e.get_id() in seen:
            continue
        seen.add(e.get_id())
        if is_uninterp_const(e):
            constants[e.decl().name()] = e
        todo.extend(e.children())
    return constants


def lookup_constants(literals: List[z3.ExprRef], names: List[str]) -> List[z3.ExprRef]:
    constants = collect_constants(literals)
    missing = [name for name in names if name not in constants]
    if missing:
        raise InputError(f"unknown constant(s): {', '.join(missing)}")
    return [constants[name] for name in names]


def parse_term(text: str, literals: List[z3.ExprRef]) -> z3.ExprRef:
    """Parse an SMT-LIB term over the constants occurring in ``literals``."""
    decls = {name: const.decl() for name, const in collect_constants(literals).items()}
    try:
        parsed = z3.parse_smt2_string(f"(assert (= {text} {text}))", decls=decls)
    except z3.Z3Exception as e:
        raise InputError(f"cannot parse term {text!r}: {e}") from e
    return parsed[0].arg(0)
