"""
Model-based projection for arithmetic literals.

- evaluator: model access
- atoms: atom registry
- linearize: literal linearization
- reconstruct: literals from projected rows
- arith_project: elimination and maximization entry points
"""

from mbqe.projection.evaluator import ModelEvaluator
from mbqe.projection.atoms import AtomRegistry
from mbqe.projection.linearize import Linearizer, LinearSum
from mbqe.projection.reconstruct import FormulaReconstructor
from mbqe.projection.arith_project import (
    ArithProjector, MaximizeResult, arith_project, eliminate, maximize
)
