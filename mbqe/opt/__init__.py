"""
Model-based optimization over linear rows.

This module contains the exact rational constraint engine:
- Row representation (rows)
- Extended optimal values (extended_value)
- Projection and maximization (model_based_opt)
"""

from mbqe.opt.rows import Row, RowType, Var
from mbqe.opt.extended_value import ExtendedValue
from mbqe.opt.model_based_opt import ModelBasedOpt
