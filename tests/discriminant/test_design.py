"""
Tests for AnalyzedDataset extraction and case screening.
"""

import numpy as np
import pytest

from pydiscriminant.core.exceptions import ConfigurationError, DimensionError, ValidationError
from pydiscriminant.discriminant.config import DefineRange, DiscriminantConfig, MainOptions
from pydiscriminant.discriminant.design import AnalyzedDataset, group_label, screen_records


def _config(**main_kwargs):
    main = dict(grouping_variable='g', independent_variables=('x1', 'x2'))
    main.update(main_kwargs)
    return DiscriminantConfig(main=MainOptions(**main))


class TestGroupLabel:
    """Numeric codes read the same as int or float."""

    @pytest.mark.parametrize("value, expected", [
        (1, '1'), (1.0, '1'), (np.int64(2), '2'), (2.5, '2.5'), ('north', 'north'),
    ])
    def test_label(self, value, expected):
        assert group_label(value) == expected


class TestFromRecords:
    """Extraction from host records."""

    def test_groups_keep_insertion_order(self):
        records = [
            {'g': 3, 'x1': 1.0, 'x2': 2.0},
            {'g': 1, 'x1': 2.0, 'x2': 3.0},
            {'g': 3, 'x1': 3.0, 'x2': 1.0},
            {'g': 2, 'x1': 4.0, 'x2': 0.0},
        ]
        ds = AnalyzedDataset.from_records(records, _config())
        assert ds.group_labels == ('3', '1', '2')
        assert ds.num_groups == 3
        assert ds.total_cases == 4
        np.testing.assert_array_equal(ds.values('x1', '3'), [1.0, 3.0])
        assert ds.group_means['3']['x2'] == pytest.approx(1.5)
        assert ds.overall_means['x1'] == pytest.approx(2.5)
        np.testing.assert_array_equal(ds.case_numbers['3'], [1, 3])

    def test_arrays_are_read_only(self):
        records = [{'g': 1, 'x1': 1.0, 'x2': 2.0}, {'g': 2, 'x1': 2.0, 'x2': 1.0}]
        ds = AnalyzedDataset.from_records(records, _config())
        with pytest.raises(ValueError):
            ds.values('x1', '1')[0] = 10.0

    def test_listwise_deletion(self):
        records = [
            {'g': 1, 'x1': 1.0, 'x2': 2.0},
            {'g': 1, 'x1': None, 'x2': 2.0},       # missing variable
            {'g': None, 'x1': 1.0, 'x2': 2.0},     # missing group
            {'g': '', 'x1': 'n/a', 'x2': 2.0},     # both
            {'g': 2, 'x1': '4.5', 'x2': 1.0},      # numeric string accepted
            {'g': 2, 'x1': float('nan'), 'x2': 1.0},
        ]
        screened = screen_records(records, _config())
        s = screened.summary
        assert (s.valid, s.missing_discriminating, s.missing_or_out_of_range_group,
                s.missing_both, s.total) == (2, 2, 1, 1, 6)
        np.testing.assert_array_equal(screened.case_numbers, [1, 5])
        np.testing.assert_allclose(screened.values[1], [4.5, 1.0])

    def test_define_range(self):
        records = [{'g': code, 'x1': float(code), 'x2': 0.0} for code in (0, 1, 2, 3, 4)]
        cfg = DiscriminantConfig(
            main=MainOptions('g', ('x1', 'x2')),
            define_range=DefineRange(min_range=1, max_range=3),
        )
        ds = AnalyzedDataset.from_records(records, cfg)
        assert ds.group_labels == ('1', '2', '3')
        assert screen_records(records, cfg).summary.missing_or_out_of_range_group == 2

    def test_selection_variable(self):
        records = [
            {'g': 1, 'x1': 1.0, 'x2': 1.0, 'keep': 1},
            {'g': 2, 'x1': 2.0, 'x2': 2.0, 'keep': 0},
            {'g': 2, 'x1': 3.0, 'x2': 3.0, 'keep': 1.0},
        ]
        cfg = _config(selection_variable='keep', selection_value=1)
        screened = screen_records(records, cfg)
        assert screened.summary.unselected == 1
        assert screened.summary.valid == 2

    def test_no_valid_cases(self):
        with pytest.raises(ValidationError, match="No valid cases"):
            AnalyzedDataset.from_records([{'g': None, 'x1': 1.0, 'x2': 1.0}], _config())

    def test_no_variables(self):
        with pytest.raises(ConfigurationError, match="no independent variables"):
            AnalyzedDataset.from_records([], _config(independent_variables=()))


class TestFromArrays:
    """Extraction from numpy input."""

    def test_default_names(self, rng):
        ds = AnalyzedDataset.from_arrays(rng.standard_normal((6, 3)), [0, 0, 1, 1, 2, 2])
        assert ds.variables == ('x1', 'x2', 'x3')
        assert ds.group_labels == ('0', '1', '2')
        assert ds.group_sizes() == (2, 2, 2)

    def test_length_mismatch(self):
        with pytest.raises(DimensionError, match="Case counts differ"):
            AnalyzedDataset.from_arrays(np.ones((4, 2)), [0, 1, 0])

    def test_nan_rejected(self):
        with pytest.raises(ValidationError, match="missing"):
            AnalyzedDataset.from_arrays(np.array([[1.0], [np.nan]]), [0, 1])

    def test_name_count(self):
        with pytest.raises(ValidationError, match="2 names given for 3 columns"):
            AnalyzedDataset.from_arrays(np.ones((4, 3)), [0, 0, 1, 1], variables=['a', 'b'])


class TestAccessors:
    """Accessors on a built dataset."""

    def test_absent_group_is_empty(self, three_group_dataset):
        assert len(three_group_dataset.values('x1', 'missing')) == 0
        assert len(three_group_dataset.values('nope', '1')) == 0

    def test_stacked_cases_record_order(self, three_group_dataset):
        X, group_index, numbers = three_group_dataset.stacked_cases(['x2', 'x1'])
        assert X.shape == (30, 2)
        np.testing.assert_array_equal(numbers, np.arange(1, 31))
        np.testing.assert_array_equal(group_index, np.repeat([0, 1, 2], 10))
        assert X[10, 1] == pytest.approx(6.0)    # x1 of the first case in group 2

    def test_mean_vectors(self, three_group_dataset):
        np.testing.assert_allclose(
            three_group_dataset.group_mean_vector('3', ['x1', 'x2']), [10.0, 10.0], atol=1e-12
        )
        np.testing.assert_allclose(
            three_group_dataset.overall_mean_vector(['x1', 'x2']), [5.0, 5.0], atol=1e-12
        )
