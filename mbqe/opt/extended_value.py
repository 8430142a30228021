"""
Extended optimal values

Optimal values reported by maximization: a rational part, an infinitesimal
component for suprema approached through strict bounds, and an unbounded flag.
"""

from dataclasses import dataclass
from fractions import Fraction
from functools import total_ordering


@total_ordering
@dataclass(frozen=True)
class ExtendedValue:
    """
    Value of the form ``rational + infinitesimal * epsilon`` or +infinity.

    Unbounded values compare above every finite value. Finite values compare
    by rational part first and then by infinitesimal part.
    """
    rational: Fraction = Fraction(0)
    infinitesimal: Fraction = Fraction(0)
    unbounded: bool = False

    def __post_init__(self):
        # All unbounded values are the same value.
        if self.unbounded:
            object.__setattr__(self, "rational", Fraction(0))
            object.__setattr__(self, "infinitesimal", Fraction(0))
        else:
            object.__setattr__(self, "rational", Fraction(self.rational))
            object.__setattr__(self, "infinitesimal", Fraction(self.infinitesimal))

    @classmethod
    def infinity(cls) -> "ExtendedValue":
        return cls(unbounded=True)

    def is_finite(self) -> bool:
        return not self.unbounded

    def _key(self):
        if self.unbounded:
            return (1, Fraction(0), Fraction(0))
        return (0, self.rational, self.infinitesimal)

    def __lt__(self, other: "ExtendedValue") -> bool:
        if not isinstance(other, ExtendedValue):
            return NotImplemented
        return self._key() < other._key()

    def __str__(self) -> str:
        if self.unbounded:
            return "oo"
        if self.infinitesimal == 0:
            return str(self.rational)
        sign = "-" if self.infinitesimal < 0 else "+"
        magnitude = abs(self.infinitesimal)
        eps = "epsilon" if magnitude == 1 else f"{magnitude}*epsilon"
        return f"{self.rational} {sign} {eps}"
