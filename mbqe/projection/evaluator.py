"""
Model evaluation

Wraps a z3 model behind the small interface the projection needs:
evaluation with optional model completion, rational values, truth values,
and the single model write used by maximization.
"""

import z3
from fractions import Fraction

from mbqe.core.terms import is_uninterp_const, mk_numeral, numeral_to_fraction


class ModelEvaluator:
    """
    Evaluator over a z3 model.

    Any object with the same methods can be passed to the projection code
    instead (for instance a test double that scripts values).
    """

    def __init__(self, model: z3.ModelRef, model_completion: bool = False):
        """
        Args:
            model: The model to evaluate in (written to only by assign)
            model_completion: Give unconstrained constants a default value
        """
        self.model = model
        self.model_completion = model_completion

    def set_model_completion(self, flag: bool) -> None:
        self.model_completion = flag

    def __call__(self, t: z3.ExprRef) -> z3.ExprRef:
        return self.model.eval(t, model_completion=self.model_completion)

    def rational_value(self, t: z3.ExprRef) -> Fraction:
        """Value of an arithmetic term; unconstrained constants are completed."""
        val = self.model.eval(t, model_completion=True)
        value = numeral_to_fraction(val)
        if value is None:
            raise AssertionError(f"{t} evaluates to non-numeral {val}")
        return value

    def truth_value(self, t: z3.ExprRef) -> bool:
        """Truth value of a formula; unconstrained constants are completed."""
        val = self.model.eval(t, model_completion=True)
        if not (z3.is_true(val) or z3.is_false(val)):
            raise AssertionError(f"{t} evaluates to {val}")
        return z3.is_true(val)

    def is_true(self, t: z3.ExprRef) -> bool:
        return z3.is_true(self(t))

    def is_false(self, t: z3.ExprRef) -> bool:
        return z3.is_false(self(t))

    def assign(self, const: z3.ExprRef, value: Fraction) -> None:
        """Overwrite the interpretation of an uninterpreted constant."""
        assert is_uninterp_const(const), f"cannot assign a value to {const}"
        self.model.update_value(const.decl(), mk_numeral(value, z3.is_int(const)))
