"""
Term and literal classification over z3 expressions.
"""

from mbqe.core.terms import (
    TermKind, classify_term, is_arith, is_uninterp_const,
    numeral_to_fraction, numeral_value, mk_numeral, subterm_ids
)
from mbqe.core.literals import LiteralKind, classify_literal, mk_not
