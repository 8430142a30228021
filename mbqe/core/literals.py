"""
Arithmetic literal classification

Strips one negation from a literal and normalises comparisons so that the
linearizer only sees ``<=``, ``<``, ``=`` and ``distinct``.
"""

import z3
from enum import Enum
from typing import List, Tuple

from mbqe.core.terms import is_arith


class LiteralKind(Enum):
    LE = "<="
    LT = "<"
    EQ = "="
    DISTINCT = "distinct"
    OTHER = "other"


def mk_not(lit: z3.ExprRef) -> z3.ExprRef:
    """Negate a literal, removing a double negation."""
    if z3.is_not(lit):
        return lit.arg(0)
    return z3.Not(lit)


def classify_literal(lit: z3.ExprRef) -> Tuple[bool, LiteralKind, List[z3.ExprRef]]:
    """
    Classify an arithmetic literal.

    ``a >= b`` and ``a > b`` are reported as ``b <= a`` and ``b < a``.
    Equalities and distinctness are only recognised over arithmetic sorts.

    Returns:
        (negated, kind, args) where args are the compared terms
    """
    negated = z3.is_not(lit)
    if negated:
        lit = lit.arg(0)
    if z3.is_le(lit):
        return negated, LiteralKind.LE, [lit.arg(0), lit.arg(1)]
    if z3.is_ge(lit):
        return negated, LiteralKind.LE, [lit.arg(1), lit.arg(0)]
    if z3.is_lt(lit):
        return negated, LiteralKind.LT, [lit.arg(0), lit.arg(1)]
    if z3.is_gt(lit):
        return negated, LiteralKind.LT, [lit.arg(1), lit.arg(0)]
    if z3.is_eq(lit) and is_arith(lit.arg(0)):
        return negated, LiteralKind.EQ, [lit.arg(0), lit.arg(1)]
    if z3.is_distinct(lit) and lit.num_args() > 0 and is_arith(lit.arg(0)):
        return negated, LiteralKind.DISTINCT, list(lit.children())
    return negated, LiteralKind.OTHER, list(lit.children()) if z3.is_app(lit) else []
