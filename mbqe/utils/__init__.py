"""
Utility modules.

This module contains auxiliary functionality:
- SMT-LIB loading, model search and constant lookup
"""

from mbqe.utils.smtlib import (
    InputError, flatten_conjunction, load_literals, find_model,
    collect_constants, lookup_constants, parse_term
)
