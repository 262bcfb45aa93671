"""
Tests for canonical discriminant functions.
"""

import numpy as np
import pytest

from pydiscriminant.core.exceptions import ValidationError
from pydiscriminant.discriminant._canonical import (
    canonical_functions,
    eigen_statistics,
    generalized_eigen,
)
from pydiscriminant.discriminant._matrix import between_within_matrices, within_groups_sscp
from pydiscriminant.discriminant.design import AnalyzedDataset


def _scores(dataset, params):
    X, group_index, _ = dataset.stacked_cases(params.variables)
    return X @ params.unstandardized + params.constants, group_index


class TestEigenvalues:
    """Eigenvalues of W^-1 B."""

    def test_three_groups_two_variables(self, three_group_dataset):
        eig = eigen_statistics(three_group_dataset, ['x1', 'x2'])
        assert len(eig.eigenvalues) == 2
        assert eig.eigenvalues[0] == pytest.approx(1000.0 / 15.0, rel=1e-6)
        assert eig.eigenvalues[1] == pytest.approx(0.0, abs=1e-6)
        assert eig.pct_variance[0] == pytest.approx(100.0)
        assert eig.cumulative_pct[-1] == pytest.approx(100.0)

    def test_count_is_min_of_groups_and_variables(self, random_dataset):
        assert len(eigen_statistics(random_dataset, ['a']).eigenvalues) == 1
        assert len(eigen_statistics(random_dataset, ['a', 'b', 'c', 'd']).eigenvalues) == 2

    def test_matches_direct_eigenproblem(self, random_dataset):
        variables = ['a', 'b', 'c']
        B, _ = between_within_matrices(random_dataset, variables)
        S = within_groups_sscp(random_dataset, variables)
        expected = np.sort(np.linalg.eigvals(np.linalg.solve(S, B)).real)[::-1][:2]
        evals, _ = generalized_eigen(random_dataset, variables, epsilon=0.0)
        np.testing.assert_allclose(evals, expected, rtol=1e-8)

    def test_descending_and_correlations_in_unit_interval(self, random_dataset):
        eig = eigen_statistics(random_dataset, random_dataset.variables)
        assert list(eig.eigenvalues) == sorted(eig.eigenvalues, reverse=True)
        assert all(0.0 <= r <= 1.0 for r in eig.canonical_correlation)
        e = eig.eigenvalues[0]
        assert eig.canonical_correlation[0] == pytest.approx(np.sqrt(e / (1 + e)))


class TestCanonicalFunctions:
    """Coefficients, scores and centroids."""

    def test_scores_have_unit_within_variance(self, random_dataset):
        params = canonical_functions(random_dataset, random_dataset.variables, epsilon=0.0)
        scores, group_index = _scores(random_dataset, params)
        n, g = random_dataset.total_cases, random_dataset.num_groups
        within = np.zeros((2, 2))
        for k in range(g):
            block = scores[group_index == k]
            dev = block - block.mean(axis=0)
            within += dev.T @ dev
        np.testing.assert_allclose(within / (n - g), np.eye(2), atol=1e-8)

    def test_scores_centered(self, random_dataset):
        params = canonical_functions(random_dataset, random_dataset.variables)
        scores, _ = _scores(random_dataset, params)
        np.testing.assert_allclose(scores.mean(axis=0), 0.0, atol=1e-10)

    def test_centroids_are_group_mean_scores(self, random_dataset):
        params = canonical_functions(random_dataset, random_dataset.variables)
        scores, group_index = _scores(random_dataset, params)
        for k, label in enumerate(random_dataset.group_labels):
            np.testing.assert_allclose(
                params.centroids[label], scores[group_index == k].mean(axis=0), atol=1e-10
            )

    def test_sign_convention(self, random_dataset):
        params = canonical_functions(random_dataset, random_dataset.variables)
        for k in range(params.standardized.shape[1]):
            column = params.standardized[:, k]
            assert column[np.argmax(np.abs(column))] > 0

    def test_shapes(self, random_dataset):
        params = canonical_functions(random_dataset, ['a', 'b', 'c'])
        assert params.unstandardized.shape == (3, 2)
        assert params.standardized.shape == (3, 2)
        assert params.structure.shape == (3, 2)
        assert params.constants.shape == (2,)
        assert set(params.centroids) == {'low', 'mid', 'high'}
        assert np.all(np.abs(params.structure) <= 1.0 + 1e-10)

    def test_separated_groups_centroids_ordered(self, three_group_dataset):
        params = canonical_functions(three_group_dataset, ['x1', 'x2'])
        first = [params.centroids[g][0] for g in ('1', '2', '3')]
        assert first[0] < first[1] < first[2] or first[0] > first[1] > first[2]
        assert first[1] == pytest.approx(0.0, abs=1e-8)


class TestNotEstimable:
    """Inputs that cannot define canonical functions."""

    def test_no_variables(self, random_dataset):
        with pytest.raises(ValidationError, match="no variables"):
            canonical_functions(random_dataset, [])

    def test_single_group(self):
        ds = AnalyzedDataset.from_arrays(np.arange(8.0).reshape(4, 2), ['a'] * 4)
        with pytest.raises(ValidationError, match="at least 2 groups"):
            eigen_statistics(ds, ['x1', 'x2'])

    def test_no_within_df(self):
        ds = AnalyzedDataset.from_arrays(np.array([[1.0], [2.0]]), ['a', 'b'])
        with pytest.raises(ValidationError, match="degrees of freedom"):
            generalized_eigen(ds, ['x1'])
