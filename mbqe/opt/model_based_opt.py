"""
Model-Based Optimization Engine

Exact rational engine behind arithmetic projection and maximization.
Variables carry a current value (the model); every operation is guided by
that model, and every row the engine derives is true under it.

Rows read ``sum(coeff * var) + coeff  REL  0`` (see mbqe.opt.rows).
Row 0 is reserved for the objective.
"""

import math
from dataclasses import replace
from fractions import Fraction
from typing import Dict, List, Optional, Sequence, Tuple

from mbqe.opt.rows import Row, RowType, Var, normalize_vars
from mbqe.opt.extended_value import ExtendedValue


def _sign(value: Fraction) -> int:
    return 1 if value > 0 else -1


class ModelBasedOpt:
    """
    Linear constraint store supporting model-based projection and
    maximization.

    Projection follows Loos-Weispfenning for real variables: the bound that is
    tightest under the current values is substituted, so the result is an
    under-approximation of the projection that still contains the model.
    Integer variables use a model-based Cooper step. Maximization eliminates
    objective variables against their tightest bound in the improving
    direction and finally moves the values to the optimum.
    """

    def __init__(self, verbose: bool = False):
        self.verbose = verbose
        self._values: List[Fraction] = []
        self._is_int: List[bool] = []
        self._rows: List[Row] = [Row()]
        self._objective_id = 0

    # ------------------------------------------------------------------
    # Variables and rows
    # ------------------------------------------------------------------

    def add_var(self, value, is_int: bool = False) -> int:
        """Register a variable with its model value and return its id."""
        self._values.append(Fraction(value))
        self._is_int.append(is_int)
        return len(self._values) - 1

    def get_value(self, var_id: int) -> Fraction:
        return self._values[var_id]

    def is_int(self, var_id: int) -> bool:
        return self._is_int[var_id]

    @property
    def num_vars(self) -> int:
        return len(self._values)

    def add_constraint(self, vars: Sequence[Var], coeff, row_type: RowType) -> int:
        """Add ``sum(vars) + coeff  row_type  0``."""
        assert row_type != RowType.MOD, "divisibility rows are added with add_divides"
        return self._add_row(self._merge(vars), Fraction(coeff), row_type)

    def add_divides(self, vars: Sequence[Var], coeff, modulus: int) -> int:
        """Add ``sum(vars) + coeff == 0 (mod modulus)``."""
        assert modulus > 0, f"modulus must be positive, got {modulus}"
        return self._add_row(self._merge(vars), Fraction(coeff), RowType.MOD, modulus)

    def set_objective(self, vars: Sequence[Var], coeff) -> None:
        """Set the term ``sum(vars) + coeff`` to maximize."""
        self._rows[self._objective_id] = Row(
            normalize_vars(self._merge(vars)), Fraction(coeff), RowType.LE
        )

    def objective(self) -> Row:
        return self._rows[self._objective_id]

    def row_value(self, row: Row) -> Fraction:
        """Evaluate the left-hand side of a row under the current values."""
        return sum((v.coeff * self._values[v.id] for v in row.vars), Fraction(0)) + row.coeff

    def holds(self, row: Row) -> bool:
        """Check a row against the current values."""
        value = self.row_value(row)
        if row.type == RowType.LT:
            return value < 0
        if row.type == RowType.LE:
            return value <= 0
        if row.type == RowType.EQ:
            return value == 0
        return value.denominator == 1 and value.numerator % row.mod == 0

    def get_live_rows(self) -> List[Row]:
        """Return copies of all alive constraint rows (the objective excluded)."""
        return [
            replace(row, vars=list(row.vars))
            for i, row in enumerate(self._rows)
            if i != self._objective_id and row.alive
        ]

    def display(self) -> str:
        lines = [f"v{i} := {value}{' (int)' if self._is_int[i] else ''}"
                 for i, value in enumerate(self._values)]
        lines.append(f"objective: {self.objective()}")
        for i, row in enumerate(self._rows):
            if i != self._objective_id and row.alive:
                lines.append(f"r{i}: {row}")
        return "\n".join(lines)

    @staticmethod
    def _merge(vars: Sequence[Var]) -> Dict[int, Fraction]:
        coeffs: Dict[int, Fraction] = {}
        for v in vars:
            coeffs[v.id] = coeffs.get(v.id, Fraction(0)) + Fraction(v.coeff)
        return coeffs

    def _add_row(self, coeffs: Dict[int, Fraction], coeff: Fraction,
                 row_type: RowType, mod: int = 0) -> int:
        row = Row(normalize_vars(coeffs), Fraction(coeff), row_type, mod)
        self._rows.append(row)
        if self.verbose:
            print(f"[MBO] r{len(self._rows) - 1}: {row}")
        return len(self._rows) - 1

    def _retire(self, row_ids: Sequence[int]) -> None:
        for i in row_ids:
            self._rows[i].alive = False

    def _rows_with(self, x: int) -> List[int]:
        return [
            i for i, row in enumerate(self._rows)
            if i != self._objective_id and row.alive and row.coefficient(x) != 0
        ]

    @staticmethod
    def _combine(*parts: Tuple[Fraction, Row]) -> Tuple[Dict[int, Fraction], Fraction]:
        """Linear combination ``sum(scale * row)`` of row left-hand sides."""
        coeffs: Dict[int, Fraction] = {}
        const = Fraction(0)
        for scale, row in parts:
            for v in row.vars:
                coeffs[v.id] = coeffs.get(v.id, Fraction(0)) + scale * v.coeff
            const += scale * row.coeff
        return coeffs, const

    def _bound_value(self, x: int, row: Row) -> Fraction:
        """Value of ``x`` at which ``row`` becomes tight, other values fixed."""
        return self._values[x] - self.row_value(row) / row.coefficient(x)

    def _tightest(self, x: int, row_ids: Sequence[int], is_upper: bool) -> int:
        """
        Pick the bound on ``x`` that is tightest under the current values.

        Upper bounds pick the least value, lower bounds the greatest; on ties
        a strict bound wins.
        """
        best_id: Optional[int] = None
        best_value = Fraction(0)
        for i in row_ids:
            row = self._rows[i]
            value = self._bound_value(x, row)
            if best_id is None:
                best_id, best_value = i, value
            elif (is_upper and value < best_value) or (not is_upper and value > best_value):
                best_id, best_value = i, value
            elif value == best_value and row.type == RowType.LT and self._rows[best_id].type != RowType.LT:
                best_id = i
        assert best_id is not None
        return best_id

    def _resolve(self, x: int, bound_id: int, row_id: int) -> Tuple[Dict[int, Fraction], Fraction, RowType]:
        """
        Eliminate ``x`` from a row using the selected bound.

        Rows bounding ``x`` from the same side as the bound are turned into
        "the bound is at least as tight"; rows bounding it from the other side
        into "the two bounds are compatible".
        """
        bound = self._rows[bound_id]
        row = self._rows[row_id]
        a_b = bound.coefficient(x)
        a_r = row.coefficient(x)
        if bound.type == RowType.EQ:
            coeffs, const = self._combine((Fraction(1), row), (-a_r / a_b, bound))
            return coeffs, const, row.type
        assert row.type in (RowType.LT, RowType.LE), f"cannot resolve {row} against an inequality"
        bound_strict = bound.type == RowType.LT
        row_strict = row.type == RowType.LT
        if (a_b > 0) == (a_r > 0):
            coeffs, const = self._combine((abs(a_b), row), (-abs(a_r), bound))
            strict = row_strict and not bound_strict
        else:
            coeffs, const = self._combine((abs(a_b), row), (abs(a_r), bound))
            strict = row_strict or bound_strict
        return coeffs, const, RowType.LT if strict else RowType.LE

    # ------------------------------------------------------------------
    # Projection
    # ------------------------------------------------------------------

    def project(self, var_ids: Sequence[int]) -> List[int]:
        """
        Eliminate the given variables from the live rows, one at a time.

        Returns:
            The ids that could not be eliminated; their rows stay live
        """
        kept = [x for x in var_ids if not self._project_var(x)]
        if self.verbose:
            print(f"[MBO] after projection:\n{self.display()}")
        return kept

    def _project_var(self, x: int) -> bool:
        row_ids = self._rows_with(x)
        if not row_ids:
            return True
        if self._is_int[x]:
            if not all(self._is_int_row(self._rows[i]) for i in row_ids):
                if self.verbose:
                    print(f"[MBO] keeping int v{x}: it shares a row with a real variable")
                return False
            self._project_int(x, row_ids)
            return True
        if any(self._rows[i].type == RowType.MOD for i in row_ids):
            if self.verbose:
                print(f"[MBO] keeping v{x}: it occurs in a divisibility row")
            return False
        self._project_real(x, row_ids)
        return True

    def _is_int_row(self, row: Row) -> bool:
        return all(self._is_int[v.id] for v in row.vars)

    def _project_real(self, x: int, row_ids: List[int]) -> None:
        eq_id = next((i for i in row_ids if self._rows[i].type == RowType.EQ), None)
        if eq_id is not None:
            for i in row_ids:
                if i != eq_id:
                    coeffs, const, row_type = self._resolve(x, eq_id, i)
                    self._add_row(coeffs, const, row_type)
            self._retire(row_ids)
            return

        lower = [i for i in row_ids if self._rows[i].coefficient(x) < 0]
        upper = [i for i in row_ids if self._rows[i].coefficient(x) > 0]
        if not lower or not upper:
            self._retire(row_ids)
            return

        side = lower if len(lower) <= len(upper) else upper
        bound_id = self._tightest(x, side, is_upper=side is upper)
        if self.verbose:
            print(f"[MBO] project v{x} using r{bound_id}: {self._rows[bound_id]}")
        for i in row_ids:
            if i != bound_id:
                coeffs, const, row_type = self._resolve(x, bound_id, i)
                self._add_row(coeffs, const, row_type)
        self._retire(row_ids)

    def _integralize(self, row: Row) -> None:
        """Scale a row over integer variables to integer coefficients."""
        denominators = [v.coeff.denominator for v in row.vars] + [row.coeff.denominator]
        factor = math.lcm(*denominators)
        if factor != 1:
            self._scale(row, factor)

    @staticmethod
    def _scale(row: Row, factor: int) -> None:
        row.vars = [Var(v.id, v.coeff * factor) for v in row.vars]
        row.coeff *= factor
        if row.type == RowType.MOD:
            row.mod *= factor

    def _project_int(self, x: int, row_ids: List[int]) -> None:
        rows = [self._rows[i] for i in row_ids]
        for row in rows:
            self._integralize(row)
        # Normalize every coefficient of x to +-L; below, y stands for L*x.
        lcm = math.lcm(*(int(abs(row.coefficient(x))) for row in rows))
        for row in rows:
            self._scale(row, lcm // int(abs(row.coefficient(x))))

        eq_id = next((i for i in row_ids if self._rows[i].type == RowType.EQ), None)
        if eq_id is not None:
            eq = self._rows[eq_id]
            sigma = _sign(eq.coefficient(x))
            for i in row_ids:
                if i == eq_id:
                    continue
                row = self._rows[i]
                tau = _sign(row.coefficient(x))
                coeffs, const = self._combine((Fraction(1), row), (Fraction(-tau * sigma), eq))
                self._add_row(coeffs, const, row.type, row.mod)
            if lcm > 1:
                coeffs, const = self._combine((Fraction(1), eq))
                coeffs.pop(x, None)
                self._add_row(coeffs, const, RowType.MOD, lcm)
            self._retire(row_ids)
            return

        for row in rows:
            if row.type == RowType.LT:
                row.coeff += 1
                row.type = RowType.LE

        lower = [i for i in row_ids if self._rows[i].type == RowType.LE and self._rows[i].coefficient(x) < 0]
        upper = [i for i in row_ids if self._rows[i].type == RowType.LE and self._rows[i].coefficient(x) > 0]
        modulus = math.lcm(lcm, *(row.mod for row in rows if row.type == RowType.MOD))
        y_value = lcm * self._values[x]
        assert y_value.denominator == 1, f"integer variable v{x} has value {self._values[x]}"

        if not lower or not upper:
            # y can move by multiples of the modulus past every one-sided
            # bound, so only the congruences constrain it: y := y_M mod D.
            residue = int(y_value) % modulus
            for i in row_ids:
                row = self._rows[i]
                if row.type != RowType.MOD:
                    continue
                tau = _sign(row.coefficient(x))
                coeffs, const = self._combine((Fraction(1), row))
                coeffs.pop(x, None)
                self._add_row(coeffs, const + tau * residue, RowType.MOD, row.mod)
            if self.verbose:
                print(f"[MBO] project int v{x} as {residue} (mod {modulus})")
            self._retire(row_ids)
            return

        # Greatest lower bound y >= t* under the current values.
        bound_id = lower[0]
        bound_value = self.row_value(self._rows[bound_id]) + y_value
        for i in lower[1:]:
            value = self.row_value(self._rows[i]) + y_value
            if value > bound_value:
                bound_id, bound_value = i, value
        offset = int(y_value - bound_value) % modulus
        bound = self._rows[bound_id]
        if self.verbose:
            print(f"[MBO] project int v{x} as r{bound_id} + {offset} (mod {modulus})")

        # Substitute y := t* + offset into every row mentioning x.
        for i in row_ids:
            if i == bound_id:
                continue
            row = self._rows[i]
            tau = _sign(row.coefficient(x))
            coeffs, const = self._combine((Fraction(1), row), (Fraction(tau), bound))
            self._add_row(coeffs, const + tau * offset, row.type, row.mod)
        if lcm > 1:
            coeffs, const = self._combine((Fraction(1), bound))
            coeffs.pop(x, None)
            self._add_row(coeffs, const + offset, RowType.MOD, lcm)
        self._retire(row_ids)

    # ------------------------------------------------------------------
    # Maximization
    # ------------------------------------------------------------------

    def maximize(self) -> ExtendedValue:
        """
        Maximize the objective over the live inequality and equality rows.

        Divisibility rows are ignored (real relaxation). On return the
        variable values attain the optimum, or approach it when the supremum
        is only reached through a strict bound.

        Returns:
            The optimal value, or ExtendedValue.infinity() when unbounded
        """
        trail: List[Tuple[int, int, List[int]]] = []
        objective = self.objective()
        while objective.vars:
            var = objective.vars[-1]
            x, c = var.id, var.coeff
            row_ids = self._rows_with(x)
            self._retire([i for i in row_ids if self._rows[i].type == RowType.MOD])
            row_ids = [i for i in row_ids if self._rows[i].type != RowType.MOD]

            bound_id = self._find_bound(x, row_ids, c > 0)
            if bound_id is None:
                if self.verbose:
                    print(f"[MBO] objective unbounded in v{x}")
                self._update_values(trail)
                return ExtendedValue.infinity()

            bound = self._rows[bound_id]
            others = [i for i in row_ids if i != bound_id]
            for i in others:
                coeffs, const, row_type = self._resolve(x, bound_id, i)
                self._add_row(coeffs, const, row_type)
            coeffs, const = self._combine((Fraction(1), objective), (-c / bound.coefficient(x), bound))
            row_type = RowType.LT if bound.type == RowType.LT else objective.type
            objective = Row(normalize_vars(coeffs), const, row_type)
            self._rows[self._objective_id] = objective
            self._retire([bound_id] + others)
            trail.append((x, bound_id, others))
            if self.verbose:
                print(f"[MBO] bound v{x} by r{bound_id}, objective: {objective}")

        self._update_values(trail)
        if objective.type == RowType.LT:
            return ExtendedValue(objective.coeff, Fraction(-1))
        return ExtendedValue(objective.coeff)

    def _find_bound(self, x: int, row_ids: Sequence[int], is_pos: bool) -> Optional[int]:
        for i in row_ids:
            if self._rows[i].type == RowType.EQ:
                return i
        candidates = [i for i in row_ids if (self._rows[i].coefficient(x) > 0) == is_pos]
        if not candidates:
            return None
        return self._tightest(x, candidates, is_upper=is_pos)

    def _update_values(self, trail: List[Tuple[int, int, List[int]]]) -> None:
        """Move eliminated variables onto their bounds, last eliminated first."""
        for x, bound_id, others in reversed(trail):
            bound = self._rows[bound_id]
            target = self._bound_value(x, bound)
            if bound.type != RowType.LT:
                self._values[x] = target
                continue
            # Strict bound: keep the current value if it is still feasible.
            if all(self.holds(self._rows[i]) for i in [bound_id] + others):
                continue
            is_upper = bound.coefficient(x) > 0
            opposite = [
                self._bound_value(x, self._rows[i]) for i in others
                if (self._rows[i].coefficient(x) > 0) != is_upper
            ]
            if opposite:
                other = min(opposite) if not is_upper else max(opposite)
                self._values[x] = (target + other) / 2
            else:
                self._values[x] = target - 1 if is_upper else target + 1
