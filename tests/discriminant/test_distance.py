"""
Tests for Mahalanobis distance, pairwise comparisons and the distance
based selection statistics.
"""

import numpy as np
import pytest

from pydiscriminant.discriminant._distance import (
    mahalanobis_distance,
    min_f_ratio,
    min_mahalanobis_distance,
    pairwise_comparisons,
    raos_v,
    total_unexplained_variation,
)
from pydiscriminant.discriminant._matrix import between_within_matrices
from pydiscriminant.discriminant.design import AnalyzedDataset


class TestMahalanobisDistance:
    """D^2 with a covariance pooled from the two groups."""

    def test_euclidean_fallback_single_cases(self):
        X = np.array([[1.0, 2.0], [4.0, 6.0]])
        ds = AnalyzedDataset.from_arrays(X, ['a', 'b'])
        assert mahalanobis_distance(ds, 'a', 'b', ['x1', 'x2']) == 25.0

    def test_matches_direct_formula(self, random_dataset):
        variables = ['a', 'b', 'c']
        A = random_dataset.case_matrix('low', variables)
        B = random_dataset.case_matrix('high', variables)
        S = ((len(A) - 1) * np.cov(A, rowvar=False) + (len(B) - 1) * np.cov(B, rowvar=False)) / (
            len(A) + len(B) - 2
        )
        diff = A.mean(axis=0) - B.mean(axis=0)
        expected = diff @ np.linalg.inv(S) @ diff
        d2 = mahalanobis_distance(random_dataset, 'low', 'high', variables, epsilon=0.0)
        assert d2 == pytest.approx(expected, rel=1e-10)

    def test_symmetric(self, random_dataset):
        variables = random_dataset.variables
        assert mahalanobis_distance(random_dataset, 'low', 'mid', variables) == pytest.approx(
            mahalanobis_distance(random_dataset, 'mid', 'low', variables)
        )

    def test_no_variables(self, random_dataset):
        assert mahalanobis_distance(random_dataset, 'low', 'mid', []) == 0.0


class TestPairwiseComparisons:
    """F test of D^2 for every ordered group pair."""

    def test_structure(self, three_group_dataset):
        table = pairwise_comparisons(three_group_dataset, ['x1', 'x2'], step=2)
        assert list(table) == ['1', '2', '3']
        assert [c.other_group for c in table['1']] == ['2', '3']
        for rows in table.values():
            for c in rows:
                assert c.df1 == 2
                assert c.df2 == 30 - 3 - 2 + 1
                assert 0.0 <= c.p_value <= 1.0

    def test_f_value(self, three_group_dataset):
        table = pairwise_comparisons(three_group_dataset, ['x1'], step=1)
        c = table['1'][0]
        d2 = 25.0 / (5.0 / 9.0)
        n, g, p = 30, 3, 1
        expected = d2 * (n - g - p + 1) * 10 * 10 / (p * (n - g) * 20)
        assert c.squared_distance == pytest.approx(d2, rel=1e-6)
        assert c.f_value == pytest.approx(expected, rel=1e-6)

    def test_parallel_matches_sequential(self, random_dataset):
        variables = ['a', 'b']
        assert pairwise_comparisons(random_dataset, variables, 1, n_jobs=1) == \
            pairwise_comparisons(random_dataset, variables, 1, n_jobs=3)


class TestSelectionStatistics:
    """Unexplained variation, minimum D^2, minimum F and Rao's V."""

    def test_unexplained_empty_set_is_pair_count(self, three_group_dataset):
        assert total_unexplained_variation(three_group_dataset, []) == 3.0

    def test_unexplained_decreases_with_separation(self, three_group_dataset):
        u = total_unexplained_variation(three_group_dataset, ['x1'])
        assert 0.0 < u < 3.0

    def test_min_distance_is_adjacent_pair(self, three_group_dataset):
        d2 = min_mahalanobis_distance(three_group_dataset, ['x1'])
        assert d2 == pytest.approx(25.0 / (5.0 / 9.0), rel=1e-6)

    def test_min_f_ratio(self, three_group_dataset):
        table = pairwise_comparisons(three_group_dataset, ['x1', 'x2'], step=0)
        smallest = min(c.f_value for rows in table.values() for c in rows)
        assert min_f_ratio(three_group_dataset, ['x1', 'x2']) == pytest.approx(smallest)

    def test_empty_sets(self, three_group_dataset):
        assert min_mahalanobis_distance(three_group_dataset, []) == 0.0
        assert min_f_ratio(three_group_dataset, []) == 0.0
        assert raos_v(three_group_dataset, []) == 0.0

    def test_raos_v_is_trace(self, random_dataset):
        variables = ['a', 'b']
        B, W = between_within_matrices(random_dataset, variables)
        assert raos_v(random_dataset, variables) == pytest.approx(np.trace(np.linalg.solve(W, B)))

    def test_raos_v_singular_within(self):
        X = np.array([[1.0, 1.0], [1.0, 1.0], [3.0, 3.0], [3.0, 3.0]])
        ds = AnalyzedDataset.from_arrays(X, ['a', 'a', 'b', 'b'])
        B, _ = between_within_matrices(ds, ['x1', 'x2'])
        assert raos_v(ds, ['x1', 'x2']) == pytest.approx(np.trace(B))
