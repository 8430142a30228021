"""
Model-Based Quantifier Elimination for Linear Arithmetic

Given a model of a conjunction of arithmetic literals, eliminates
existentially quantified variables (model-based projection) and maximizes
linear terms, using z3 for terms and models.

The library is organized into logical modules:
- core: term and literal classification
- opt: exact rational model-based optimization engine
- projection: linearization, projection and maximization
- utils: SMT-LIB input helpers
"""

from mbqe.opt import ExtendedValue, ModelBasedOpt, Row, RowType, Var
from mbqe.projection import (
    ArithProjector, MaximizeResult, ModelEvaluator,
    arith_project, eliminate, maximize
)

__version__ = "0.1.0"
__all__ = [
    # Projection
    "ArithProjector", "MaximizeResult", "ModelEvaluator",
    "arith_project", "eliminate", "maximize",
    # Engine
    "ModelBasedOpt", "ExtendedValue", "Row", "RowType", "Var",
]
