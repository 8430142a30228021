"""
Literal linearization

Rewrites arithmetic literals into linear rows of the model-based optimizer.
Structure that would otherwise need a case split (conditional terms,
disequalities, distinctness, modulus) is resolved by consulting the model:
only the case that holds in the model is linearized, and the conditions
that select it are returned to the caller as extra literals.
"""

import z3
from fractions import Fraction
from typing import Dict, Iterator, List, Tuple

from mbqe.core.literals import LiteralKind, classify_literal, mk_not
from mbqe.core.terms import TermKind, classify_term, numeral_to_fraction, numeral_value
from mbqe.opt.model_based_opt import ModelBasedOpt
from mbqe.opt.rows import RowType, Var
from mbqe.projection.atoms import AtomRegistry


class LinearSum:
    """Accumulates ``sum(coeff * atom) + const`` while a term is folded"""

    def __init__(self, const=Fraction(0)):
        self.const = Fraction(const)
        self._coeffs: Dict[int, Tuple[z3.ExprRef, Fraction]] = {}

    def add_atom(self, term: z3.ExprRef, coeff: Fraction) -> None:
        key = term.get_id()
        if key in self._coeffs:
            _, old = self._coeffs[key]
            self._coeffs[key] = (term, old + coeff)
        else:
            self._coeffs[key] = (term, coeff)

    def add_const(self, value: Fraction) -> None:
        self.const += value

    def atoms(self) -> Iterator[Tuple[z3.ExprRef, Fraction]]:
        return iter(self._coeffs.values())

    def coefficient(self, term: z3.ExprRef) -> Fraction:
        entry = self._coeffs.get(term.get_id())
        return entry[1] if entry else Fraction(0)


class Linearizer:
    """
    Submits linearized literals to a ModelBasedOpt instance.

    The evaluator must answer ``rational_value``, ``truth_value`` and
    ``set_model_completion`` (see ModelEvaluator); it is the only source of
    model information.
    """

    def __init__(self, engine: ModelBasedOpt, evaluator, atoms: AtomRegistry,
                 verbose: bool = False):
        self.engine = engine
        self.evaluator = evaluator
        self.atoms = atoms
        self.verbose = verbose

    def linearize_literal(self, lit: z3.ExprRef, residue: List[z3.ExprRef]) -> bool:
        """
        Add the constraint expressed by a literal to the engine.

        The literal must be true in the model. Conditions selected while
        folding conditional terms are appended to ``residue``.

        Returns:
            False if the literal has no linear reading (nothing is added)
        """
        negated, kind, args = classify_literal(lit)
        if kind == LiteralKind.OTHER:
            if self.verbose:
                print(f"[Linearize] skipping {lit}")
            return False
        assert self.evaluator.truth_value(lit), f"model does not satisfy {lit}"

        mul = Fraction(-1) if negated else Fraction(1)
        lin = LinearSum()
        if kind == LiteralKind.LE:
            self.linearize_term(mul, args[0], lin, residue)
            self.linearize_term(-mul, args[1], lin, residue)
            row_type = RowType.LT if negated else RowType.LE
        elif kind == LiteralKind.LT:
            self.linearize_term(mul, args[0], lin, residue)
            self.linearize_term(-mul, args[1], lin, residue)
            row_type = RowType.LE if negated else RowType.LT
        elif kind == LiteralKind.EQ and not negated:
            self.linearize_term(Fraction(1), args[0], lin, residue)
            self.linearize_term(Fraction(-1), args[1], lin, residue)
            row_type = RowType.EQ
        elif kind == LiteralKind.EQ:
            # Disequality: orient as smaller < larger in the model.
            smaller, larger = args
            r1 = self.evaluator.rational_value(smaller)
            r2 = self.evaluator.rational_value(larger)
            assert r1 != r2, f"disequality {lit} has equal sides {r1} in the model"
            if r1 > r2:
                smaller, larger = larger, smaller
            self.linearize_term(Fraction(1), smaller, lin, residue)
            self.linearize_term(Fraction(-1), larger, lin, residue)
            row_type = RowType.LT
        elif not negated:
            return self._linearize_distinct(args, residue)
        else:
            first, second = self._find_collision(lit, args)
            self.linearize_term(Fraction(1), first, lin, residue)
            self.linearize_term(Fraction(-1), second, lin, residue)
            row_type = RowType.EQ

        self.engine.add_constraint(self.extract_coefficients(lin), lin.const, row_type)
        if self.verbose:
            print(f"[Linearize] {lit}")
        return True

    def _linearize_distinct(self, args: List[z3.ExprRef], residue: List[z3.ExprRef]) -> bool:
        """Chain the arguments in model order: a1 < a2 < ... < an."""
        ordered = sorted(((arg, self.evaluator.rational_value(arg)) for arg in args),
                         key=lambda pair: pair[1])
        for (lo, lo_value), (hi, hi_value) in zip(ordered, ordered[1:]):
            assert lo_value < hi_value, f"distinct arguments {lo} and {hi} are equal in the model"
            if not self.linearize_literal(lo < hi, residue):
                return False
        return True

    def _find_collision(self, lit: z3.ExprRef, args: List[z3.ExprRef]) -> Tuple[z3.ExprRef, z3.ExprRef]:
        """First pair of arguments with equal model values."""
        seen: Dict[Fraction, z3.ExprRef] = {}
        for arg in args:
            value = self.evaluator.rational_value(arg)
            if value in seen:
                return arg, seen[value]
            seen[value] = arg
        raise AssertionError(f"no two arguments of {lit} are equal in the model")

    def linearize_term(self, mul: Fraction, t: z3.ExprRef, lin: LinearSum,
                       residue: List[z3.ExprRef]) -> None:
        """Fold ``mul * t`` into ``lin``."""
        match classify_term(t):
            case TermKind.NUMERAL:
                lin.add_const(mul * numeral_to_fraction(t))
            case TermKind.ADD:
                for child in t.children():
                    self.linearize_term(mul, child, lin, residue)
            case TermKind.SUB:
                children = t.children()
                self.linearize_term(mul, children[0], lin, residue)
                for child in children[1:]:
                    self.linearize_term(-mul, child, lin, residue)
            case TermKind.UMINUS:
                self.linearize_term(-mul, t.arg(0), lin, residue)
            case TermKind.TO_REAL:
                self.linearize_term(mul, t.arg(0), lin, residue)
            case TermKind.MUL:
                self._linearize_mul(mul, t, lin, residue)
            case TermKind.ITE:
                cond = t.arg(0)
                if self.evaluator.truth_value(cond):
                    self.linearize_term(mul, t.arg(1), lin, residue)
                    residue.append(cond)
                else:
                    residue.append(mk_not(cond))
                    self.linearize_term(mul, t.arg(2), lin, residue)
            case TermKind.MOD:
                self._linearize_mod(mul, t, lin, residue)
            case TermKind.ATOM:
                lin.add_atom(t, mul)
            case _:
                raise AssertionError(f"unhandled term shape: {t}")

    def _linearize_mul(self, mul: Fraction, t: z3.ExprRef, lin: LinearSum,
                       residue: List[z3.ExprRef]) -> None:
        factor = Fraction(1)
        rest = []
        for child in t.children():
            value = numeral_value(child)
            if value is None:
                rest.append(child)
            else:
                factor *= value
        if not rest:
            lin.add_const(mul * factor)
        elif len(rest) == 1:
            self.linearize_term(mul * factor, rest[0], lin, residue)
        else:
            lin.add_atom(t, mul)

    def _linearize_mod(self, mul: Fraction, t: z3.ExprRef, lin: LinearSum,
                       residue: List[z3.ExprRef]) -> None:
        """
        Treat ``t1 mod k`` as its model value r and record ``t1 - r == 0 (mod k)``.
        """
        k = numeral_value(t.arg(1))
        if k is None or k == 0 or k.denominator != 1:
            lin.add_atom(t, mul)
            return
        r = self.evaluator.rational_value(t)
        lin.add_const(mul * r)
        divisor = LinearSum(-r)
        self.linearize_term(Fraction(1), t.arg(0), divisor, residue)
        self.engine.add_divides(self.extract_coefficients(divisor), divisor.const, abs(k.numerator))
        if self.verbose:
            print(f"[Linearize] {t.arg(0)} == {r} (mod {abs(k.numerator)})")

    def extract_coefficients(self, lin: LinearSum) -> List[Var]:
        """Register the atoms of ``lin`` and return its non-zero coefficients."""
        self.evaluator.set_model_completion(True)
        coeffs = []
        for term, coeff in lin.atoms():
            var_id = self.atoms.register(term)
            if coeff != 0:
                coeffs.append(Var(var_id, coeff))
            elif self.verbose:
                print(f"[Linearize] {term} has coefficient 0")
        return coeffs
