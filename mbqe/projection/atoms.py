"""
Atom registry

Maps arithmetic sub-terms that linearization treats as indivisible
variables to engine variable ids. A registry lives for one projection or
maximization call.
"""

import z3
from typing import Dict, Iterator, List, Optional, Tuple

from mbqe.opt.model_based_opt import ModelBasedOpt


class AtomRegistry:
    """Insertion-ordered map from atoms (keyed by z3 term id) to engine ids"""

    def __init__(self, engine: ModelBasedOpt, evaluator):
        self.engine = engine
        self.evaluator = evaluator
        self._ids: Dict[int, int] = {}
        self._terms: List[z3.ExprRef] = []
        self._by_id: Dict[int, z3.ExprRef] = {}

    def register(self, term: z3.ExprRef) -> int:
        """Return the engine id of a term, adding it with its model value if new."""
        var_id = self._ids.get(term.get_id())
        if var_id is not None:
            return var_id
        self.evaluator.set_model_completion(True)
        value = self.evaluator.rational_value(term)
        var_id = self.engine.add_var(value, z3.is_int(term))
        self._ids[term.get_id()] = var_id
        self._terms.append(term)
        self._by_id[var_id] = term
        return var_id

    def lookup(self, term: z3.ExprRef) -> Optional[int]:
        return self._ids.get(term.get_id())

    def term(self, var_id: int) -> z3.ExprRef:
        """Reverse lookup: the atom registered under an engine id."""
        return self._by_id[var_id]

    def items(self) -> Iterator[Tuple[z3.ExprRef, int]]:
        for term in self._terms:
            yield term, self._ids[term.get_id()]

    def __contains__(self, term: z3.ExprRef) -> bool:
        return term.get_id() in self._ids

    def __len__(self) -> int:
        return len(self._terms)
