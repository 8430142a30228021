"""
Model-Based Arithmetic Projection

Eliminates existentially quantified arithmetic variables from a conjunction
of literals relative to a model, and maximizes a linear term under the same
literals.

Both operations linearize what they can (mbqe.projection.linearize), hand the
rows to a ModelBasedOpt engine, and (for projection) rebuild literals from
the surviving rows. Literals without a linear reading are kept unchanged.
"""

import z3
from fractions import Fraction
from typing import List, Optional, Set, Tuple

from mbqe.core.terms import is_arith, is_uninterp_const, mk_numeral, subterm_ids
from mbqe.opt.extended_value import ExtendedValue
from mbqe.opt.model_based_opt import ModelBasedOpt
from mbqe.projection.atoms import AtomRegistry
from mbqe.projection.evaluator import ModelEvaluator
from mbqe.projection.linearize import LinearSum, Linearizer
from mbqe.projection.reconstruct import FormulaReconstructor


class MaximizeResult:
    """Result of maximizing a term"""

    def __init__(self, value: ExtendedValue, bound_ge: z3.BoolRef, bound_gt: z3.BoolRef,
                 assignments: Optional[List[Tuple[z3.ExprRef, Fraction]]] = None):
        """
        Args:
            value: Optimal value (possibly unbounded or approached strictly)
            bound_ge: Non-strict bound predicate on the objective
            bound_gt: Strict bound predicate forcing a better value
            assignments: Constants whose model value was overwritten, with the new value
        """
        self.value = value
        self.bound_ge = bound_ge
        self.bound_gt = bound_gt
        self.assignments = assignments or []

    def __iter__(self):
        return iter((self.value, self.bound_ge, self.bound_gt))

    def __str__(self) -> str:
        return f"max = {self.value}; ge: {self.bound_ge}; gt: {self.bound_gt}"


class _Session:
    """Per-call state: engine, atom registry and linearizer"""

    def __init__(self, evaluator, verbose: bool):
        self.evaluator = evaluator
        self.engine = ModelBasedOpt(verbose=verbose)
        self.atoms = AtomRegistry(self.engine, evaluator)
        self.linearizer = Linearizer(self.engine, evaluator, self.atoms, verbose=verbose)


class ArithProjector:
    """
    Model-based projection for linear integer/real arithmetic.

    Example:
        >>> x, y = z3.Ints("x y")
        >>> lits = [x <= y, y <= 5]
        >>> s = z3.Solver()
        >>> s.add(lits)
        >>> _ = s.check()
        >>> ArithProjector().eliminate(s.model(), [y], lits)
        True
        >>> lits
        [x <= 5]
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def _evaluator(self, model):
        if isinstance(model, z3.ModelRef):
            return ModelEvaluator(model)
        return model

    def eliminate(self, model, variables: List[z3.ExprRef], literals: List[z3.ExprRef]) -> bool:
        """
        Eliminate arithmetic variables from a conjunction of literals.

        Both lists are updated in place: ``variables`` keeps the variables
        that could not be eliminated (in their original order) and
        ``literals`` becomes the untouched residue followed by the literals
        rebuilt from the projected rows.

        Args:
            model: A z3 model satisfying the literals, or an evaluator
            variables: Constants to eliminate
            literals: Conjunction of literals true in the model

        Returns:
            True if at least one variable was eliminated
        """
        if not any(is_arith(v) for v in variables):
            return False
        evaluator = self._evaluator(model)
        session = _Session(evaluator, self.verbose)

        # The list grows while it is scanned: conditions chosen for
        # conditional terms are linearized too.
        residue = []
        i = 0
        while i < len(literals):
            lit = literals[i]
            if not session.linearizer.linearize_literal(lit, literals):
                residue.append(lit)
            i += 1
        literals[:] = residue

        frozen = self._frozen_ids(variables, residue, session.atoms)
        requested = list(variables)
        candidates = [
            v for v in requested if is_arith(v) and v.get_id() not in frozen
        ]
        candidate_ids = [session.atoms.register(v) for v in candidates]
        if self.verbose:
            for var_id in candidate_ids:
                print(f"[MBP] v{var_id} {session.atoms.term(var_id)}")
            print(session.engine.display())

        kept_ids = set(session.engine.project(candidate_ids))
        eliminated = {
            v.get_id() for v, var_id in zip(candidates, candidate_ids) if var_id not in kept_ids
        }
        variables[:] = [v for v in requested if v.get_id() not in eliminated]
        if self.verbose:
            print(f"[MBP] remaining vars: {variables}")

        reconstructor = FormulaReconstructor(session.atoms, evaluator, verbose=self.verbose)
        literals.extend(reconstructor.reconstruct_rows(session.engine.get_live_rows()))
        return bool(eliminated)

    @staticmethod
    def _frozen_ids(variables: List[z3.ExprRef], residue: List[z3.ExprRef],
                    atoms: AtomRegistry) -> Set[int]:
        """
        Terms that must not be projected: everything occurring in the residue
        or inside a registered atom that is not itself being eliminated.
        """
        requested = {v.get_id() for v in variables}
        kept_atoms = [term for term, _ in atoms.items() if term.get_id() not in requested]
        return subterm_ids(residue) | subterm_ids(kept_atoms)

    def project_var(self, model, var: z3.ExprRef, literals: List[z3.ExprRef]) -> bool:
        """Eliminate a single variable; True if it was eliminated."""
        variables = [var]
        self.eliminate(model, variables, literals)
        return not variables

    def maximize(self, literals: List[z3.ExprRef], model, objective: z3.ExprRef) -> MaximizeResult:
        """
        Maximize a linear term subject to the literals that can be linearized.

        The values the engine settles on are written back into the model for
        every atom that is an uninterpreted constant; these writes are also
        listed in ``MaximizeResult.assignments``. When the optimum cannot be
        written consistently (a non-integral value for an integer constant,
        or a literal it falsifies) the model is left unchanged and both
        bounds are anchored at the current value of the objective.

        Args:
            literals: Conjunction of literals true in the model (not modified)
            model: A z3 model satisfying the literals, or an evaluator
            objective: Arithmetic term to maximize

        Returns:
            MaximizeResult (unpacks as ``value, bound_ge, bound_gt``)
        """
        evaluator = self._evaluator(model)
        session = _Session(evaluator, self.verbose)
        fmls = list(literals)

        objective_sum = LinearSum()
        session.linearizer.linearize_term(Fraction(1), objective, objective_sum, fmls)
        session.engine.set_objective(
            session.linearizer.extract_coefficients(objective_sum), objective_sum.const
        )
        assert self.validate_model(evaluator, literals)

        i = 0
        while i < len(fmls):
            session.linearizer.linearize_literal(fmls[i], fmls)
            i += 1

        value = session.engine.maximize()
        assignments = self._update_model(session, evaluator, literals)

        current = evaluator.rational_value(objective)
        current_val = mk_numeral(current, z3.is_int(objective))
        if not value.is_finite():
            bound_ge = objective >= current_val
            bound_gt = z3.BoolVal(False)
        elif value.infinitesimal < 0 or assignments is None:
            bound_ge = objective >= current_val
            bound_gt = objective > current_val
        else:
            optimum = mk_numeral(value.rational, False)
            bound_ge = objective >= optimum
            bound_gt = objective > optimum
        if self.verbose:
            print(f"[MBP] maximize {objective}: {value}")
        return MaximizeResult(value, bound_ge, bound_gt, assignments or [])

    def _update_model(self, session: _Session, evaluator,
                      literals: List[z3.ExprRef]) -> Optional[List[Tuple[z3.ExprRef, Fraction]]]:
        """
        Write the engine's final values of uninterpreted constants into the model.

        The writes are all or nothing: if an integer constant would receive a
        non-integral value, or the written model falsifies one of the
        literals, the model is left as it was and None is returned.
        """
        writes = []
        for term, var_id in session.atoms.items():
            if not is_uninterp_const(term):
                if self.verbose:
                    print(f"[MBP] omitting model update for {term}")
                continue
            new_value = session.engine.get_value(var_id)
            if z3.is_int(term) and new_value.denominator != 1:
                if self.verbose:
                    print(f"[MBP] keeping the model: {term} would be {new_value}")
                return None
            writes.append((term, evaluator.rational_value(term), new_value))

        for term, _, new_value in writes:
            evaluator.assign(term, new_value)
        if not all(evaluator.is_true(lit) for lit in literals):
            if self.verbose:
                print("[MBP] keeping the model: the optimum violates a literal")
            for term, old_value, _ in writes:
                evaluator.assign(term, old_value)
            return None
        return [(term, new_value) for term, _, new_value in writes]

    def validate_model(self, evaluator, literals: List[z3.ExprRef]) -> bool:
        """Check that every literal is true in the model."""
        valid = True
        for lit in literals:
            if not evaluator.is_true(lit):
                valid = False
                if self.verbose:
                    print(f"[MBP] {lit} is false in the model")
        return valid


def eliminate(model, variables: List[z3.ExprRef], literals: List[z3.ExprRef],
              verbose: bool = False) -> bool:
    """Convenience wrapper around ArithProjector.eliminate."""
    return ArithProjector(verbose=verbose).eliminate(model, variables, literals)


def arith_project(model, var: z3.ExprRef, literals: List[z3.ExprRef]) -> bool:
    """Eliminate one variable from ``literals``; True if it was eliminated."""
    return ArithProjector().project_var(model, var, literals)


def maximize(literals: List[z3.ExprRef], model, objective: z3.ExprRef,
             verbose: bool = False) -> MaximizeResult:
    """Convenience wrapper around ArithProjector.maximize."""
    return ArithProjector(verbose=verbose).maximize(literals, model, objective)
