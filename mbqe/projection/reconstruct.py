"""
Formula reconstruction

Turns the rows that survive projection back into z3 arithmetic literals.
"""

import z3
from fractions import Fraction
from typing import List, Optional

from mbqe.core.terms import mk_numeral
from mbqe.opt.rows import Row, RowType
from mbqe.projection.atoms import AtomRegistry


class FormulaReconstructor:
    """Builds literals over registered atoms from engine rows"""

    def __init__(self, atoms: AtomRegistry, evaluator=None, verbose: bool = False):
        """
        Args:
            atoms: Registry used to map engine ids back to terms
            evaluator: Optional evaluator used to report literals the model falsifies
            verbose: Print debug information
        """
        self.atoms = atoms
        self.evaluator = evaluator
        self.verbose = verbose

    def reconstruct_rows(self, rows: List[Row]) -> List[z3.BoolRef]:
        literals = []
        for row in rows:
            lit = self.reconstruct(row)
            if lit is not None:
                literals.append(lit)
        return literals

    def reconstruct(self, row: Row) -> Optional[z3.BoolRef]:
        """
        Reconstruct one row.

        Rows without variables carry no information and yield None. A row
        with a single negatively weighted atom becomes a lower bound on that
        atom; divisibility rows become ``(sum + c) mod m == 0``.
        """
        if not row.vars:
            return None
        if len(row.vars) == 1 and row.vars[0].coeff < 0 and row.type != RowType.MOD:
            lit = self._unit_bound(row)
        else:
            lit = self._linear(row)
        if self.verbose and self.evaluator is not None and not self.evaluator.truth_value(lit):
            print(f"[Reconstruct] {lit} is false in the model")
        return lit

    def _scaled(self, coeff: Fraction, var_id: int) -> z3.ArithRef:
        t = self.atoms.term(var_id)
        if coeff == 1:
            return t
        return mk_numeral(coeff, z3.is_int(t)) * t

    def _unit_bound(self, row: Row) -> z3.BoolRef:
        var = row.vars[0]
        t = self._scaled(-var.coeff, var.id)
        s = mk_numeral(row.coeff, z3.is_int(t))
        if row.type == RowType.LT:
            return t > s
        if row.type == RowType.LE:
            return t >= s
        return t == s

    def _linear(self, row: Row) -> z3.BoolRef:
        terms = [self._scaled(v.coeff, v.id) for v in row.vars]
        t = terms[0] if len(terms) == 1 else z3.Sum(terms)
        s = mk_numeral(-row.coeff, z3.is_int(t))
        if row.type == RowType.LT:
            return t < s
        if row.type == RowType.LE:
            return t <= s
        if row.type == RowType.EQ:
            return t == s
        if row.coeff != 0:
            t = t - s
        return t % z3.IntVal(row.mod) == z3.IntVal(0)
