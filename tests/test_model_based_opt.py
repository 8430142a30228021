"""
Tests for the model-based optimization engine (mbqe/opt)

Rows are written ``sum(coeff * var) + const REL 0``; every test checks that
derived rows still hold under the engine's values.
"""

import pytest
from fractions import Fraction

from mbqe.opt.extended_value import ExtendedValue
from mbqe.opt.model_based_opt import ModelBasedOpt
from mbqe.opt.rows import Row, RowType, Var, normalize_vars


def V(var_id, coeff):
    return Var(var_id, Fraction(coeff))


def rows_with_vars(engine):
    return [row for row in engine.get_live_rows() if row.vars]


class TestRows:
    """Test the row data types"""

    def test_normalize_vars(self):
        """Variables are sorted by id and zero coefficients dropped"""
        result = normalize_vars({3: Fraction(1), 1: Fraction(2), 2: Fraction(0)})
        assert result == [V(1, 2), V(3, 1)]

    def test_row_coefficient(self):
        row = Row([V(0, 2), V(2, -1)], Fraction(5), RowType.LE)
        assert row.coefficient(0) == 2
        assert row.coefficient(1) == 0
        assert row.coeff_map() == {0: 2, 2: -1}

    def test_row_str(self):
        row = Row([V(0, 1)], Fraction(-1), RowType.MOD, 3)
        assert "mod 3" in str(row)
        assert "<=" in str(Row([V(0, 1)], Fraction(0), RowType.LE))


class TestEngineBasics:
    """Test variable and row bookkeeping"""

    def test_add_var(self):
        engine = ModelBasedOpt()
        x = engine.add_var(3, is_int=True)
        r = engine.add_var(Fraction(1, 2))
        assert (x, r) == (0, 1)
        assert engine.get_value(r) == Fraction(1, 2)
        assert engine.is_int(x)
        assert not engine.is_int(r)
        assert engine.num_vars == 2

    def test_constraints_are_merged_and_normalized(self):
        """Repeated variables are summed; cancelled ones disappear"""
        engine = ModelBasedOpt()
        x = engine.add_var(1)
        y = engine.add_var(2)
        engine.add_constraint([V(y, 1), V(x, 2), V(y, -1)], -5, RowType.LE)
        rows = engine.get_live_rows()
        assert len(rows) == 1
        assert rows[0].vars == [V(x, 2)]
        assert rows[0].coeff == -5

    def test_holds(self):
        engine = ModelBasedOpt()
        x = engine.add_var(4, is_int=True)
        assert engine.holds(Row([V(x, 1)], Fraction(-4), RowType.LE))
        assert not engine.holds(Row([V(x, 1)], Fraction(-4), RowType.LT))
        assert engine.holds(Row([V(x, 1)], Fraction(-4), RowType.EQ))
        assert engine.holds(Row([V(x, 1)], Fraction(-1), RowType.MOD, 3))
        assert not engine.holds(Row([V(x, 1)], Fraction(0), RowType.MOD, 3))

    def test_live_rows_are_copies(self):
        """Mutating returned rows does not affect the engine"""
        engine = ModelBasedOpt()
        x = engine.add_var(1)
        engine.add_constraint([V(x, 1)], -5, RowType.LE)
        engine.get_live_rows()[0].vars.clear()
        assert engine.get_live_rows()[0].vars == [V(x, 1)]

    def test_add_divides_requires_positive_modulus(self):
        engine = ModelBasedOpt()
        x = engine.add_var(1, is_int=True)
        with pytest.raises(AssertionError):
            engine.add_divides([V(x, 1)], 0, 0)


class TestRealProjection:
    """Test Loos-Weispfenning projection of real variables"""

    def test_interval_collapses_to_constant(self):
        """x <= 5 and x >= 1 leave only a constant row"""
        engine = ModelBasedOpt()
        x = engine.add_var(3)
        engine.add_constraint([V(x, 1)], -5, RowType.LE)
        engine.add_constraint([V(x, -1)], 1, RowType.LE)
        assert engine.project([x]) == []
        rows = engine.get_live_rows()
        assert len(rows) == 1
        assert rows[0].vars == []
        assert engine.holds(rows[0])

    def test_bound_chain(self):
        """x <= y, y <= 5 projects y to x <= 5"""
        engine = ModelBasedOpt()
        x = engine.add_var(1)
        y = engine.add_var(2)
        engine.add_constraint([V(x, 1), V(y, -1)], 0, RowType.LE)
        engine.add_constraint([V(y, 1)], -5, RowType.LE)
        engine.project([y])
        rows = engine.get_live_rows()
        assert len(rows) == 1
        assert rows[0].vars == [V(x, 1)]
        assert rows[0].coeff == -5
        assert rows[0].type == RowType.LE

    def test_strictness_is_propagated(self):
        """x < y, y <= 5 projects y to x < 5"""
        engine = ModelBasedOpt()
        x = engine.add_var(1)
        y = engine.add_var(2)
        engine.add_constraint([V(x, 1), V(y, -1)], 0, RowType.LT)
        engine.add_constraint([V(y, 1)], -5, RowType.LE)
        engine.project([y])
        rows = engine.get_live_rows()
        assert len(rows) == 1
        assert rows[0].type == RowType.LT

    def test_one_sided_rows_are_dropped(self):
        """A variable bounded from one side only imposes nothing"""
        engine = ModelBasedOpt()
        x = engine.add_var(1)
        y = engine.add_var(2)
        engine.add_constraint([V(x, 1), V(y, 2)], -10, RowType.LE)
        engine.add_constraint([V(y, 1)], -7, RowType.LE)
        engine.project([y])
        assert engine.get_live_rows() == []

    def test_smaller_side_is_substituted(self):
        """Two lower bounds and one upper bound: the upper bound is used"""
        engine = ModelBasedOpt()
        a = engine.add_var(1)
        b = engine.add_var(2)
        c = engine.add_var(5)
        z = engine.add_var(3)
        engine.add_constraint([V(z, -1), V(a, 1)], 0, RowType.LE)
        engine.add_constraint([V(z, -1), V(b, 1)], 0, RowType.LE)
        engine.add_constraint([V(z, 1), V(c, -1)], 0, RowType.LE)
        engine.project([z])
        rows = engine.get_live_rows()
        assert len(rows) == 2
        assert {frozenset(row.coeff_map().items()) for row in rows} == {
            frozenset({a: 1, c: -1}.items()),
            frozenset({b: 1, c: -1}.items()),
        }
        assert all(engine.holds(row) for row in rows)

    def test_tightest_lower_bound_is_chosen(self):
        """With lower bounds a and b under the model, b (greater) is used"""
        engine = ModelBasedOpt()
        a = engine.add_var(1)
        b = engine.add_var(2)
        c = engine.add_var(5)
        d = engine.add_var(6)
        z = engine.add_var(3)
        engine.add_constraint([V(z, -1), V(a, 1)], 0, RowType.LE)
        engine.add_constraint([V(z, -1), V(b, 1)], 0, RowType.LE)
        engine.add_constraint([V(z, 1), V(c, -1)], 0, RowType.LE)
        engine.add_constraint([V(z, 1), V(d, -1)], 0, RowType.LE)
        engine.project([z])
        rows = engine.get_live_rows()
        # a <= b, b <= c, b <= d
        assert len(rows) == 3
        assert all(row.coefficient(b) != 0 for row in rows)
        assert all(engine.holds(row) for row in rows)

    def test_equality_is_substituted(self):
        """x = y, y <= 5 projects y to x <= 5"""
        engine = ModelBasedOpt()
        x = engine.add_var(2)
        y = engine.add_var(2)
        engine.add_constraint([V(x, 1), V(y, -1)], 0, RowType.EQ)
        engine.add_constraint([V(y, 1)], -5, RowType.LE)
        engine.project([y])
        rows = engine.get_live_rows()
        assert len(rows) == 1
        assert rows[0].vars == [V(x, 1)]
        assert rows[0].coeff == -5

    def test_projection_of_unused_variable(self):
        engine = ModelBasedOpt()
        x = engine.add_var(1)
        y = engine.add_var(2)
        engine.add_constraint([V(x, 1)], -5, RowType.LE)
        engine.project([y])
        assert len(engine.get_live_rows()) == 1


class TestIntegerProjection:
    """Test model-based Cooper projection of integer variables"""

    def test_interval_with_coefficient(self):
        """x - 3 <= 2y <= x projects y to (x - 3) divisible by 2"""
        engine = ModelBasedOpt()
        x = engine.add_var(7, is_int=True)
        y = engine.add_var(3, is_int=True)
        engine.add_constraint([V(y, 2), V(x, -1)], 0, RowType.LE)
        engine.add_constraint([V(y, -2), V(x, 1)], -3, RowType.LE)
        engine.project([y])
        rows = engine.get_live_rows()
        assert all(y not in row.coeff_map() for row in rows)
        assert all(engine.holds(row) for row in rows)
        mods = [row for row in rows if row.type == RowType.MOD]
        assert len(mods) == 1
        assert mods[0].mod == 2
        assert mods[0].vars == [V(x, 1)]
        assert mods[0].coeff == -3

    def test_equality_with_coefficient(self):
        """2y = x, y <= 5 projects y to x <= 10 and x even"""
        engine = ModelBasedOpt()
        x = engine.add_var(6, is_int=True)
        y = engine.add_var(3, is_int=True)
        engine.add_constraint([V(y, 2), V(x, -1)], 0, RowType.EQ)
        engine.add_constraint([V(y, 1)], -5, RowType.LE)
        engine.project([y])
        rows = engine.get_live_rows()
        assert all(engine.holds(row) for row in rows)
        le = [row for row in rows if row.type == RowType.LE]
        assert len(le) == 1
        assert le[0].vars == [V(x, 1)]
        assert le[0].coeff == -10
        mods = [row for row in rows if row.type == RowType.MOD]
        assert len(mods) == 1
        assert mods[0].mod == 2
        assert mods[0].vars == [V(x, -1)]

    def test_divisibility_row_is_substituted(self):
        """0 <= y <= x with y = 1 (mod 3) projects y to x >= 1"""
        engine = ModelBasedOpt()
        x = engine.add_var(5, is_int=True)
        y = engine.add_var(4, is_int=True)
        engine.add_constraint([V(y, 1), V(x, -1)], 0, RowType.LE)
        engine.add_constraint([V(y, -1)], 0, RowType.LE)
        engine.add_divides([V(y, 1)], -1, 3)
        engine.project([y])
        rows = engine.get_live_rows()
        assert all(engine.holds(row) for row in rows)
        nontrivial = rows_with_vars(engine)
        assert len(nontrivial) == 1
        assert nontrivial[0].vars == [V(x, -1)]
        assert nontrivial[0].coeff == 1
        assert nontrivial[0].type == RowType.LE

    def test_strict_rows_are_tightened(self):
        """Over the integers x < y < 5 projects y to x <= 3"""
        engine = ModelBasedOpt()
        x = engine.add_var(1, is_int=True)
        y = engine.add_var(2, is_int=True)
        engine.add_constraint([V(x, 1), V(y, -1)], 0, RowType.LT)
        engine.add_constraint([V(y, 1)], -5, RowType.LT)
        engine.project([y])
        rows = rows_with_vars(engine)
        assert len(rows) == 1
        assert rows[0].type == RowType.LE
        assert rows[0].vars == [V(x, 1)]
        assert rows[0].coeff == -3

    def test_fractional_coefficients_are_integralized(self):
        """y/2 <= x with y >= 0 keeps every row true"""
        engine = ModelBasedOpt()
        x = engine.add_var(3, is_int=True)
        y = engine.add_var(4, is_int=True)
        engine.add_constraint([V(y, Fraction(1, 2)), V(x, -1)], 0, RowType.LE)
        engine.add_constraint([V(y, -1)], 0, RowType.LE)
        engine.project([y])
        rows = engine.get_live_rows()
        assert all(y not in row.coeff_map() for row in rows)
        assert all(engine.holds(row) for row in rows)

    def test_mixed_rows_keep_integer_variable(self):
        """An integer variable sharing a row with a real is not eliminated"""
        engine = ModelBasedOpt()
        r = engine.add_var(Fraction(1, 2))
        y = engine.add_var(1, is_int=True)
        engine.add_constraint([V(r, 1), V(y, -1)], 0, RowType.LE)
        engine.add_constraint([V(y, 1)], -5, RowType.LE)
        assert engine.project([y]) == [y]
        rows = engine.get_live_rows()
        assert len(rows) == 2
        assert all(row.coefficient(y) != 0 for row in rows)

    def test_real_variable_in_divisibility_row_is_kept(self):
        engine = ModelBasedOpt()
        r = engine.add_var(2)
        engine.add_divides([V(r, 1)], 0, 2)
        assert engine.project([r]) == [r]
        assert len(engine.get_live_rows()) == 1

    def test_congruences_only(self):
        """x = y (mod 2), x = z (mod 2) with x = 3 projects x to y, z odd"""
        engine = ModelBasedOpt()
        x = engine.add_var(3, is_int=True)
        y = engine.add_var(1, is_int=True)
        z = engine.add_var(5, is_int=True)
        engine.add_divides([V(x, 1), V(y, -1)], 0, 2)
        engine.add_divides([V(x, 1), V(z, -1)], 0, 2)
        assert engine.project([x]) == []
        rows = engine.get_live_rows()
        assert len(rows) == 2
        assert all(row.type == RowType.MOD and row.mod == 2 for row in rows)
        assert {tuple(row.vars) for row in rows} == {(V(y, -1),), (V(z, -1),)}
        assert all(row.coeff == 1 for row in rows)
        assert all(engine.holds(row) for row in rows)

    def test_one_sided_bound_with_congruence(self):
        """x <= y, x = z (mod 3): the bound goes, the congruence stays"""
        engine = ModelBasedOpt()
        x = engine.add_var(4, is_int=True)
        y = engine.add_var(6, is_int=True)
        z = engine.add_var(1, is_int=True)
        engine.add_constraint([V(x, 1), V(y, -1)], 0, RowType.LE)
        engine.add_divides([V(x, 1), V(z, -1)], 0, 3)
        engine.project([x])
        rows = rows_with_vars(engine)
        assert len(rows) == 1
        assert rows[0].type == RowType.MOD
        assert rows[0].mod == 3
        assert rows[0].vars == [V(z, -1)]
        assert rows[0].coeff == 1
        assert engine.holds(rows[0])

    def test_congruence_with_scaled_variable(self):
        """2x = y (mod 3) and x <= 7 keep a congruence on y"""
        engine = ModelBasedOpt()
        x = engine.add_var(2, is_int=True)
        y = engine.add_var(1, is_int=True)
        engine.add_constraint([V(x, 1)], -7, RowType.LE)
        engine.add_divides([V(x, 2), V(y, -1)], 0, 3)
        engine.project([x])
        rows = rows_with_vars(engine)
        assert len(rows) == 1
        assert rows[0].vars == [V(y, -1)]
        assert all(engine.holds(row) for row in engine.get_live_rows())


class TestMaximize:
    """Test maximization of the objective row"""

    def test_strict_bound(self):
        """max x subject to x < 5 is 5 - epsilon; x keeps its value"""
        engine = ModelBasedOpt()
        x = engine.add_var(3)
        engine.add_constraint([V(x, 1)], -5, RowType.LT)
        engine.set_objective([V(x, 1)], 0)
        value = engine.maximize()
        assert value == ExtendedValue(Fraction(5), Fraction(-1))
        assert engine.get_value(x) == 3

    def test_non_strict_bound(self):
        """max x subject to x <= 5 is 5 and x moves there"""
        engine = ModelBasedOpt()
        x = engine.add_var(3)
        engine.add_constraint([V(x, 1)], -5, RowType.LE)
        engine.add_constraint([V(x, -1)], 0, RowType.LE)
        engine.set_objective([V(x, 1)], 0)
        value = engine.maximize()
        assert value == ExtendedValue(Fraction(5))
        assert engine.get_value(x) == 5

    def test_unbounded(self):
        engine = ModelBasedOpt()
        x = engine.add_var(3)
        engine.add_constraint([V(x, -1)], 1, RowType.LE)
        engine.set_objective([V(x, 1)], 0)
        value = engine.maximize()
        assert value.unbounded
        assert not value.is_finite()

    def test_minimize_through_negative_objective(self):
        """max -x subject to x >= 2 is -2"""
        engine = ModelBasedOpt()
        x = engine.add_var(3)
        engine.add_constraint([V(x, -1)], 2, RowType.LE)
        engine.set_objective([V(x, -1)], 0)
        assert engine.maximize() == ExtendedValue(Fraction(-2))
        assert engine.get_value(x) == 2

    def test_chained_variables(self):
        """max x + y subject to x <= y, y <= 4 is 8 with x = y = 4"""
        engine = ModelBasedOpt()
        x = engine.add_var(0)
        y = engine.add_var(1)
        engine.add_constraint([V(x, 1), V(y, -1)], 0, RowType.LE)
        engine.add_constraint([V(y, 1)], -4, RowType.LE)
        engine.set_objective([V(x, 1), V(y, 1)], 0)
        assert engine.maximize() == ExtendedValue(Fraction(8))
        assert engine.get_value(x) == 4
        assert engine.get_value(y) == 4

    def test_equality_bound(self):
        """max x subject to x = 2y, y <= 3 is 6"""
        engine = ModelBasedOpt()
        x = engine.add_var(2)
        y = engine.add_var(1)
        engine.add_constraint([V(x, 1), V(y, -2)], 0, RowType.EQ)
        engine.add_constraint([V(y, 1)], -3, RowType.LE)
        engine.set_objective([V(x, 1)], 1)
        assert engine.maximize() == ExtendedValue(Fraction(7))
        assert engine.get_value(y) == 3
        assert engine.get_value(x) == 6

    def test_divisibility_rows_are_ignored(self):
        engine = ModelBasedOpt()
        x = engine.add_var(3, is_int=True)
        engine.add_constraint([V(x, 1)], -10, RowType.LE)
        engine.add_divides([V(x, 1)], 0, 3)
        engine.set_objective([V(x, 1)], 0)
        assert engine.maximize() == ExtendedValue(Fraction(10))

    def test_constant_objective(self):
        engine = ModelBasedOpt()
        engine.set_objective([], 4)
        assert engine.maximize() == ExtendedValue(Fraction(4))


class TestExtendedValue:
    """Test ordering and printing of optimal values"""

    def test_ordering(self):
        assert ExtendedValue.infinity() > ExtendedValue(Fraction(100))
        assert ExtendedValue(Fraction(5), Fraction(-1)) < ExtendedValue(Fraction(5))
        assert ExtendedValue(Fraction(4)) < ExtendedValue(Fraction(5), Fraction(-1))

    def test_str(self):
        assert str(ExtendedValue.infinity()) == "oo"
        assert str(ExtendedValue(Fraction(5))) == "5"
        assert str(ExtendedValue(Fraction(5), Fraction(-1))) == "5 - epsilon"
        assert str(ExtendedValue(Fraction(1, 2))) == "1/2"

    def test_unbounded_values_are_equal(self):
        """The finite parts of an unbounded value are ignored"""
        assert ExtendedValue(Fraction(1), unbounded=True) == ExtendedValue.infinity()
        assert not ExtendedValue(Fraction(1), unbounded=True) < ExtendedValue.infinity()
        assert ExtendedValue(3) == ExtendedValue(Fraction(3))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
