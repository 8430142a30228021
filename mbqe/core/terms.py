"""
Arithmetic term classification

Classifies z3 arithmetic terms into the closed set of shapes understood by
linearization, folds compile-time numerals, and builds numerals back.
"""

import z3
from enum import Enum
from fractions import Fraction
from typing import Iterable, Optional, Set


class TermKind(Enum):
    """Shapes of arithmetic terms recognised by linearization"""
    ADD = "add"
    SUB = "sub"
    UMINUS = "uminus"
    MUL = "mul"
    NUMERAL = "numeral"
    MOD = "mod"
    ITE = "ite"
    TO_REAL = "to_real"
    ATOM = "atom"  # Anything else is an indivisible variable


def classify_term(t: z3.ExprRef) -> TermKind:
    """Return the shape of an arithmetic term."""
    if z3.is_int_value(t) or z3.is_rational_value(t):
        return TermKind.NUMERAL
    if z3.is_add(t):
        return TermKind.ADD
    if z3.is_sub(t):
        return TermKind.SUB
    if z3.is_app_of(t, z3.Z3_OP_UMINUS):
        return TermKind.UMINUS
    if z3.is_mul(t):
        return TermKind.MUL
    if z3.is_mod(t):
        return TermKind.MOD
    if z3.is_app_of(t, z3.Z3_OP_ITE):
        return TermKind.ITE
    if z3.is_to_real(t):
        return TermKind.TO_REAL
    return TermKind.ATOM


def is_arith(t: z3.ExprRef) -> bool:
    return z3.is_int(t) or z3.is_real(t)


def is_uninterp_const(t: z3.ExprRef) -> bool:
    return z3.is_const(t) and t.decl().kind() == z3.Z3_OP_UNINTERPRETED


def numeral_to_fraction(v: z3.ExprRef) -> Optional[Fraction]:
    """Convert a z3 numeral to a Fraction, or None if v is not a numeral."""
    if z3.is_int_value(v):
        return Fraction(v.as_long())
    if z3.is_rational_value(v):
        return Fraction(v.numerator_as_long(), v.denominator_as_long())
    return None


def numeral_value(t: z3.ExprRef) -> Optional[Fraction]:
    """
    Fold a term built only from numerals.

    Accepts numerals and negations, products, sums and differences of
    numerals (recursively). Returns None on any non-numeral leaf.
    """
    value = numeral_to_fraction(t)
    if value is not None:
        return value
    kind = classify_term(t)
    if kind == TermKind.ATOM or kind == TermKind.ITE or kind == TermKind.MOD:
        return None
    values = []
    for child in t.children():
        v = numeral_value(child)
        if v is None:
            return None
        values.append(v)
    if kind == TermKind.UMINUS or (kind == TermKind.SUB and len(values) == 1):
        return -values[0]
    if kind == TermKind.TO_REAL:
        return values[0]
    if kind == TermKind.MUL:
        result = Fraction(1)
        for v in values:
            result *= v
        return result
    if kind == TermKind.ADD:
        return sum(values, Fraction(0))
    if kind == TermKind.SUB:
        return values[0] - sum(values[1:], Fraction(0))
    return None


def mk_numeral(value: Fraction, is_int: bool) -> z3.ArithRef:
    """Build an integer numeral when possible, otherwise a real numeral."""
    value = Fraction(value)
    if is_int and value.denominator == 1:
        return z3.IntVal(value.numerator)
    return z3.RealVal(str(value))


def subterm_ids(exprs: Iterable[z3.ExprRef]) -> Set[int]:
    """Collect the ids of all sub-terms (the terms themselves included)."""
    seen: Set[int] = set()
    todo = list(exprs)
    while todo:
        e = todo.pop()
        e_id = e.get_id()
        if e_id in seen:
            continue
        seen.add(e_id)
        todo.extend(e.children())
    return seen
