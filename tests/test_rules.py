"""
Tests for validation rules.
"""

import datetime

import numpy as np
import pandas as pd
import pytest

from cdvalidate import (
    FAIL,
    NA,
    PASS,
    AllComplete,
    AllUnique,
    Conditional,
    ContainsExactly,
    Dataset,
    InCodelist,
    Inequality,
    InLinearSequence,
    InRange,
    IsUniqueKey,
    MissingReferenceError,
    NotMissing,
    Scope,
    TypeIs,
    UnknownColumnError,
)


class TestTypeIs:

    def test_numeric(self):
        ds = Dataset.from_columns({'x': [1, 2.5, 'three', True]}, kinds={'x': 'text'})
        assert TypeIs('x', 'numeric').evaluate(ds) == [PASS, PASS, FAIL, FAIL]

    def test_date_and_text(self):
        ds = Dataset.from_columns({'x': [datetime.date(2024, 1, 1), '2024-01-01']})
        assert TypeIs('x', 'date').evaluate(ds) == [PASS, FAIL]
        assert TypeIs('x', 'text').evaluate(ds) == [FAIL, PASS]

    def test_missing_is_na(self, ages):
        assert TypeIs('age', 'numeric').evaluate(ages) == [PASS, PASS, NA]

    def test_numpy_column(self):
        ds = Dataset.from_columns({'visit': np.array([1, 2, 3])})
        assert TypeIs('visit', 'numeric').evaluate(ds) == [PASS, PASS, PASS]

    def test_column_name_must_be_text(self):
        with pytest.raises(TypeError):
            TypeIs(5, 'numeric')

    def test_categorical_kind_rejected(self):
        with pytest.raises(ValueError):
            TypeIs('sex', 'categorical')


class TestCompleteness:

    def test_not_missing_fails_on_missing(self, ages):
        assert NotMissing('age').evaluate(ages) == [PASS, PASS, FAIL]

    def test_all_complete(self, vitals):
        outcomes = AllComplete('sex', 'sbp').evaluate(vitals)
        assert outcomes == [PASS, PASS, PASS, FAIL, FAIL]

    def test_column_names_must_be_text(self):
        with pytest.raises(TypeError):
            NotMissing(5)
        with pytest.raises(TypeError):
            AllComplete('pid', None)

    def test_all_complete_needs_columns(self):
        with pytest.raises(ValueError):
            AllComplete()


class TestInRange:

    def test_three_valued(self, ages):
        assert InRange('age', 18, 95).evaluate(ages) == [FAIL, PASS, NA]

    def test_bounds_inclusive(self):
        ds = Dataset.from_columns({'x': [18, 95]})
        assert InRange('x', 18, 95).evaluate(ds) == [PASS, PASS]

    def test_strict_bounds(self):
        ds = Dataset.from_columns({'x': [18, 50, 95]})
        assert InRange('x', 18, 95, strict=True).evaluate(ds) == [FAIL, PASS, FAIL]

    def test_open_bound(self, vitals):
        outcomes = InRange('sbp', min_val=100).evaluate(vitals)
        assert outcomes == [PASS, PASS, FAIL, PASS, NA]

    def test_needs_a_bound(self):
        with pytest.raises(ValueError):
            InRange('x')

    def test_bounds_must_be_numbers_or_dates(self):
        with pytest.raises(TypeError):
            InRange('age', 'low', 95)
        with pytest.raises(TypeError):
            InRange('age', 18, max_val=[95])

    def test_strict_must_be_boolean(self):
        with pytest.raises(TypeError):
            InRange('age', 1, 2, strict='maybe')

    def test_numpy_and_date_bounds(self):
        assert InRange('age', np.int64(18), np.float64(95.0)).expression() == 'in_range(age, 18, 95.0)'
        ds = Dataset.from_columns({'seen': [datetime.date(2024, 1, 5), datetime.date(2023, 12, 1)]})
        rule = InRange('seen', min_val=datetime.date(2024, 1, 1))
        assert rule.evaluate(ds) == [PASS, FAIL]

    def test_missing_column_raises(self, ages):
        with pytest.raises(UnknownColumnError):
            InRange('weight', 0, 200).evaluate(ages)


class TestInCodelist:

    def test_membership(self, doses, references):
        rule = InCodelist('route', 'routes')
        assert rule.evaluate(doses, references) == [PASS, PASS, PASS, PASS, FAIL]
        assert rule.required_references() == ('routes',)

    def test_missing_value_is_na(self, doses):
        rule = InCodelist('drug', 'drugs')
        outcomes = rule.evaluate(doses, {'drugs': {'aspirin', 'statin'}})
        assert outcomes[-1] == NA

    def test_series_codelist(self, doses):
        refs = {'routes': pd.Series(['oral', 'iv'])}
        assert InCodelist('route', 'routes').evaluate(doses, refs)[2] == PASS

    def test_reference_name_must_be_text(self):
        with pytest.raises(TypeError):
            InCodelist('route', ['oral', 'iv'])

    def test_absent_reference(self, doses):
        with pytest.raises(MissingReferenceError):
            InCodelist('route', 'routes').evaluate(doses, {})


class TestInequality:

    def test_comparison(self, vitals):
        outcomes = Inequality('sbp', '>', 'dbp').evaluate(vitals)
        assert outcomes == [PASS, PASS, FAIL, PASS, NA]

    def test_column_names_must_be_text(self):
        with pytest.raises(TypeError):
            Inequality('sbp', '>', 80)

    def test_unknown_operator(self):
        with pytest.raises(ValueError):
            Inequality('sbp', '=>', 'dbp')


class TestConditional:

    def test_condition_gates_consequent(self, vitals):
        rule = Conditional('sex', 'M', Inequality('pregnant', '==', 'pregnant'))
        assert rule.evaluate(vitals) == [PASS, PASS, PASS, NA, PASS]

    def test_true_condition_uses_consequent(self, vitals):
        rule = Conditional('pregnant', True, InRange('sbp', max_val=85))
        assert rule.evaluate(vitals) == [PASS, PASS, FAIL, NA, PASS]

    def test_missing_condition_is_na(self, vitals):
        rule = Conditional('sex', 'F', NotMissing('sbp'))
        assert rule.evaluate(vitals)[3] == NA

    def test_consequent_sees_matching_rows_only(self):
        ds = Dataset.from_columns({'sex': ['M', 'F'], 'age': ['x', 40]}, kinds={'age': 'text'})
        rule = Conditional('sex', 'F', InRange('age', 18, 95))
        assert rule.evaluate(ds) == [PASS, PASS]

    def test_consequent_faults_on_matching_rows_still_raise(self):
        ds = Dataset.from_columns({'sex': ['F', 'M'], 'age': ['x', 40]}, kinds={'age': 'text'})
        with pytest.raises(TypeError):
            Conditional('sex', 'F', InRange('age', 18, 95)).evaluate(ds)

    def test_no_matching_rows(self, doses):
        rule = Conditional('pid', 99, InCodelist('route', 'routes'))
        assert rule.evaluate(doses, {'routes': ['oral']}) == [PASS] * doses.row_count()
        with pytest.raises(MissingReferenceError):
            rule.evaluate(doses)

    def test_consequent_must_be_a_rule(self):
        with pytest.raises(TypeError):
            Conditional('sex', 'F', 'not_missing(sbp)')

    def test_consequent_must_be_row_wise(self):
        with pytest.raises(ValueError):
            Conditional('sex', 'F', AllUnique('pid'))

    def test_columns_include_consequent(self):
        rule = Conditional('sex', 'F', Inequality('sbp', '>', 'dbp'))
        assert rule.columns == ('sex', 'sbp', 'dbp')


class TestUniqueness:

    def test_unique_keys_pass(self, ages):
        assert AllUnique('pid').evaluate(ages) == [PASS]
        assert IsUniqueKey('pid').evaluate(ages) == [PASS, PASS, PASS]

    def test_duplicate_flips_all_unique(self):
        ds = Dataset.from_columns({'pid': [1, 2, 2, 3]})
        assert AllUnique('pid').evaluate(ds) == [FAIL]

    def test_is_unique_key_marks_duplicates_only(self, doses):
        outcomes = IsUniqueKey('pid', 'drug').evaluate(doses)
        assert outcomes == [PASS, PASS, FAIL, FAIL, NA]

    def test_grouped_variant(self):
        ds = Dataset.from_columns({
            'site': ['A', 'A', 'B', 'B'],
            'pid': [1, 1, 1, 2],
        })
        assert IsUniqueKey('pid', by='site').evaluate(ds) == [FAIL, FAIL, PASS, PASS]

    def test_all_unique_na_when_key_incomplete(self, doses):
        ds = doses.take([0, 1, 4])
        assert AllUnique('pid', 'drug').evaluate(ds) == [NA]

    def test_key_names_must_be_text(self):
        with pytest.raises(TypeError):
            IsUniqueKey('pid', by=[1])
        with pytest.raises(TypeError):
            AllUnique('pid', 2)

    def test_scopes(self):
        assert IsUniqueKey('pid').scope == Scope.GROUP
        assert AllUnique('pid').scope == Scope.DATASET


class TestInLinearSequence:

    def test_incomplete_group_fails_every_present_row(self, visits):
        outcomes = InLinearSequence('visit', 1, 5, by='pid').evaluate(visits)
        assert outcomes == [FAIL, FAIL, FAIL, PASS, PASS, PASS, PASS, PASS]

    def test_missing_value_is_na(self):
        ds = Dataset.from_columns({'pid': [1, 1, 1], 'visit': [1, None, 2]})
        outcomes = InLinearSequence('visit', 1, 2, by='pid').evaluate(ds)
        assert outcomes == [PASS, NA, PASS]

    def test_open_bounds_detect_gaps(self):
        ds = Dataset.from_columns({'pid': [1, 1, 2, 2], 'visit': [2, 3, 1, 3]})
        outcomes = InLinearSequence('visit', by='pid').evaluate(ds)
        assert outcomes == [PASS, PASS, FAIL, FAIL]

    def test_out_of_range_value_fails(self):
        ds = Dataset.from_columns({'visit': [1, 2, 3]})
        assert InLinearSequence('visit', 1, 2).evaluate(ds) == [FAIL, FAIL, FAIL]

    def test_float_visits_from_pandas(self):
        ds = Dataset.from_frame(pd.DataFrame({'visit': [1, 2, None]}))
        assert InLinearSequence('visit', 1, 2).evaluate(ds) == [PASS, PASS, NA]

    def test_numpy_visits(self):
        ds = Dataset.from_columns({'pid': np.array([1, 1, 1]), 'visit': np.array([1, 2, 3])})
        assert InLinearSequence('visit', 1, 3, by='pid').evaluate(ds) == [PASS, PASS, PASS]

    def test_bounds_must_be_integers(self):
        with pytest.raises(TypeError):
            InLinearSequence('visit', 1.5, 5)
        with pytest.raises(TypeError):
            InLinearSequence('visit', 1, 'last')
        with pytest.raises(TypeError):
            InLinearSequence('visit', True, 5)
        assert InLinearSequence('visit', np.int64(1), 5).begin == 1

    def test_begin_after_end(self):
        with pytest.raises(ValueError):
            InLinearSequence('visit', 5, 1)


class TestContainsExactly:

    def test_sequence_template(self, visits, references):
        rule = ContainsExactly('pid', 'visit_plan', columns='visit')
        outcomes = rule.evaluate(visits, references)
        assert outcomes == [FAIL] * 3 + [PASS] * 5

    def test_frame_template(self, visits):
        template = pd.DataFrame({'visit': [5, 4, 3, 2, 1]})
        rule = ContainsExactly(['pid'], 'plan')
        assert rule.evaluate(visits, {'plan': template})[3:] == [PASS] * 5

    def test_duplicate_counts_matter(self):
        ds = Dataset.from_columns({'visit': [1, 2, 2]})
        rule = ContainsExactly(None, 'plan', columns='visit')
        assert rule.evaluate(ds, {'plan': [1, 2]}) == [FAIL, FAIL, FAIL]
        assert rule.evaluate(ds, {'plan': [2, 1, 2]}) == [PASS, PASS, PASS]

    def test_extra_record_fails_group(self):
        ds = Dataset.from_columns({'pid': [1, 1, 1], 'visit': [1, 2, 9]})
        rule = ContainsExactly('pid', 'plan', columns='visit')
        assert rule.evaluate(ds, {'plan': [1, 2]}) == [FAIL, FAIL, FAIL]

    def test_sequence_template_needs_columns(self, visits, references):
        with pytest.raises(ValueError):
            ContainsExactly('pid', 'visit_plan').evaluate(visits, references)


class TestRuleBasics:

    def test_default_names(self):
        assert InRange('age', 18, 95).name == 'range_age'
        assert IsUniqueKey('pid', 'visit').name == 'unique_pid_visit'

    def test_expression(self):
        rule = InLinearSequence('visit', 1, 5, by='pid')
        assert rule.expression() == 'in_linear_sequence(visit, 1, 5, by=pid)'

    def test_immutable(self):
        rule = InRange('age', 18, 95)
        with pytest.raises(AttributeError):
            rule.max_val = 120

    def test_equality(self):
        assert InRange('age', 18, 95) == InRange('age', 18, 95)
        assert InRange('age', 18, 95) != InRange('age', 18, 99)
