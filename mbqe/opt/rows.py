"""
Linear row type definitions

A row is the linear constraint format exchanged with the model-based
optimizer: ``sum(coeff * var) + coeff  REL  0``. Divisibility rows read
``sum(coeff * var) + coeff == 0 (mod m)``.
"""

from dataclasses import dataclass, field
from enum import Enum
from fractions import Fraction
from typing import Dict, List


class RowType(Enum):
    """Relation of a row against zero"""
    LT = "<"
    LE = "<="
    EQ = "="
    MOD = "mod"


@dataclass(frozen=True)
class Var:
    """A variable occurrence inside a row"""
    id: int
    coeff: Fraction

    def __str__(self) -> str:
        return f"{self.coeff}*v{self.id}"


@dataclass
class Row:
    """A linear constraint (or the objective) over engine variables"""
    vars: List[Var] = field(default_factory=list)  # Sorted by variable id
    coeff: Fraction = Fraction(0)                   # Constant term
    type: RowType = RowType.LE
    mod: int = 0                                    # Only for RowType.MOD
    alive: bool = True

    def coefficient(self, var_id: int) -> Fraction:
        for v in self.vars:
            if v.id == var_id:
                return v.coeff
        return Fraction(0)

    def coeff_map(self) -> Dict[int, Fraction]:
        return {v.id: v.coeff for v in self.vars}

    def __str__(self) -> str:
        terms = " + ".join(str(v) for v in self.vars) or "0"
        if self.type == RowType.MOD:
            return f"({terms} + {self.coeff}) mod {self.mod} = 0"
        return f"{terms} + {self.coeff} {self.type.value} 0"


def normalize_vars(coeffs: Dict[int, Fraction]) -> List[Var]:
    """Build a sorted variable list, dropping zero coefficients."""
    return [Var(var_id, Fraction(c)) for var_id, c in sorted(coeffs.items()) if c != 0]
