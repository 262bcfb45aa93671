"""
Tests for classification functions, classification tables and casewise
statistics.
"""

import numpy as np
import pytest

from pydiscriminant.core.exceptions import ValidationError
from pydiscriminant.discriminant._classify import (
    casewise_statistics,
    classification_function_coefficients,
    classification_results,
    prior_probabilities,
)
from pydiscriminant.discriminant.config import ClassifyOptions
from pydiscriminant.discriminant.design import AnalyzedDataset


def _equal_priors(dataset):
    return prior_probabilities(dataset, ClassifyOptions())


def _refit_predictions(dataset, variables, priors):
    """Leave-one-out predictions by refitting on n - 1 cases."""
    X, group_index, _ = dataset.stacked_cases(variables)
    labels = np.array(dataset.group_labels)[group_index]
    predicted = []
    for i in range(len(X)):
        keep = np.arange(len(X)) != i
        held = AnalyzedDataset.from_arrays(X[keep], labels[keep], variables=variables)
        funcs = classification_function_coefficients(held, variables, priors)
        scores = X[i] @ funcs.coefficients + funcs.constants
        predicted.append(held.group_labels[int(np.argmax(scores))])
    return labels, np.array(predicted)


class TestPriors:
    """Equal or size-proportional prior probabilities."""

    def test_equal(self, random_dataset):
        priors = _equal_priors(random_dataset)
        assert priors == {'low': 1 / 3, 'mid': 1 / 3, 'high': 1 / 3}

    def test_group_size(self, random_dataset):
        priors = prior_probabilities(random_dataset, ClassifyOptions(group_size=True))
        assert priors == pytest.approx({'low': 0.25, 'mid': 20 / 60, 'high': 25 / 60})
        assert sum(priors.values()) == pytest.approx(1.0)


class TestClassificationFunctions:
    """Fisher's linear classification functions."""

    def test_coefficients(self, random_dataset):
        variables = ['a', 'b']
        priors = _equal_priors(random_dataset)
        funcs = classification_function_coefficients(random_dataset, variables, priors, epsilon=0.0)
        n, g = random_dataset.total_cases, random_dataset.num_groups
        S_inv = np.linalg.inv(
            sum((random_dataset.group_size(grp) - 1)
                * np.cov(random_dataset.case_matrix(grp, variables), rowvar=False)
                for grp in random_dataset.group_labels) / (n - g)
        )
        for k, grp in enumerate(random_dataset.group_labels):
            mu = random_dataset.group_mean_vector(grp, variables)
            np.testing.assert_allclose(funcs.coefficients[:, k], S_inv @ mu, rtol=1e-8)
            assert funcs.constants[k] == pytest.approx(-0.5 * mu @ S_inv @ mu + np.log(1 / 3))

    def test_no_variables(self, random_dataset):
        with pytest.raises(ValidationError, match="no variables"):
            classification_function_coefficients(random_dataset, [], _equal_priors(random_dataset))


class TestClassificationResults:
    """Actual by predicted tables."""

    def test_separated_groups_all_correct(self, three_group_dataset):
        priors = _equal_priors(three_group_dataset)
        res = classification_results(three_group_dataset, ['x1', 'x2'], priors, leave_one_out=True)
        assert res.original.percent_correct == 100.0
        assert res.cross_validated.percent_correct == 100.0
        np.testing.assert_array_equal(res.original.counts, 10 * np.eye(3, dtype=int))
        np.testing.assert_allclose(res.original.percentages, 100.0 * np.eye(3))

    def test_no_cross_validation_by_default(self, three_group_dataset):
        res = classification_results(three_group_dataset, ['x1'], _equal_priors(three_group_dataset))
        assert res.cross_validated is None
        assert res.groups == ('1', '2', '3')

    def test_counts_sum_to_cases(self, random_dataset):
        res = classification_results(
            random_dataset, random_dataset.variables, _equal_priors(random_dataset),
            leave_one_out=True,
        )
        assert res.original.counts.sum() == 60
        np.testing.assert_array_equal(res.original.counts.sum(axis=1), [15, 20, 25])
        np.testing.assert_array_equal(res.cross_validated.counts.sum(axis=1), [15, 20, 25])
        assert 0.0 <= res.cross_validated.percent_correct <= 100.0

    def test_leave_one_out_matches_refit(self, random_dataset):
        variables = ['a', 'b', 'c']
        priors = _equal_priors(random_dataset)
        res = classification_results(random_dataset, variables, priors, leave_one_out=True)
        actual, predicted = _refit_predictions(random_dataset, variables, priors)
        labels = list(random_dataset.group_labels)
        counts = np.zeros((3, 3), dtype=int)
        for a, p in zip(actual, predicted):
            counts[labels.index(a), labels.index(p)] += 1
        np.testing.assert_array_equal(res.cross_validated.counts, counts)


class TestCasewise:
    """Per-case predicted group, posteriors and distances."""

    def test_rows(self, three_group_dataset):
        res = casewise_statistics(three_group_dataset, ['x1', 'x2'], _equal_priors(three_group_dataset))
        assert res.n_cases == 30
        assert not res.truncated
        assert [r.case_number for r in res.rows] == list(range(1, 31))
        for row in res.rows:
            assert row.predicted_group == row.actual_group
            assert row.df == 2
            assert 0.0 <= row.p_value <= 1.0
            assert row.posterior >= row.second_posterior
            assert row.posterior + row.second_posterior <= 1.0 + 1e-12
            assert row.second_group != row.predicted_group

    def test_limit(self, three_group_dataset):
        res = casewise_statistics(
            three_group_dataset, ['x1', 'x2'], _equal_priors(three_group_dataset), limit=5
        )
        assert len(res.rows) == 5
        assert res.truncated
        assert res.n_cases == 30

    def test_limit_above_case_count(self, three_group_dataset):
        res = casewise_statistics(
            three_group_dataset, ['x1'], _equal_priors(three_group_dataset), limit=100
        )
        assert len(res.rows) == 30
        assert not res.truncated

    def test_posteriors_reflect_priors(self, random_dataset):
        variables = ['a', 'b']
        equal = casewise_statistics(random_dataset, variables, _equal_priors(random_dataset))
        skewed_priors = {'low': 0.9, 'mid': 0.05, 'high': 0.05}
        skewed = casewise_statistics(random_dataset, variables, skewed_priors)
        n_low_equal = sum(r.predicted_group == 'low' for r in equal.rows)
        n_low_skewed = sum(r.predicted_group == 'low' for r in skewed.rows)
        assert n_low_skewed >= n_low_equal
