"""
Descriptive tables: group statistics, tests of equality of group means,
pooled within-groups matrices and separate-groups covariance matrices.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from pydiscriminant.discriminant._common import (
    CovarianceMatricesParams,
    EqualityTestRow,
    EqualityTestsParams,
    GroupStatisticsParams,
    PooledMatricesParams,
    VariableStatistics,
)
from pydiscriminant.discriminant._matrix import (
    between_within_matrices,
    covariance,
    covariance_to_correlation,
    f_p_value,
    group_covariance_matrix,
    total_covariance_matrix,
)
from pydiscriminant.discriminant._significance import univariate_f
from pydiscriminant.discriminant.design import AnalyzedDataset

TOTAL = 'Total'


def _describe(values: np.ndarray, mean: float) -> VariableStatistics:
    n = len(values)
    return VariableStatistics(
        mean=mean,
        std_deviation=float(np.sqrt(covariance(values, values, mean, mean))) if n > 1 else 0.0,
        n_unweighted=n,
        n_weighted=float(n),
    )


def group_statistics_impl(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
) -> GroupStatisticsParams:
    """Mean, standard deviation and valid N per group and in total."""
    stats: dict[str, dict[str, VariableStatistics]] = {}
    for g in dataset.group_labels:
        stats[g] = {
            v: _describe(dataset.values(v, g), dataset.group_means[g][v])
            for v in variables
        }
    stats[TOTAL] = {}
    for v in variables:
        pooled = np.concatenate([dataset.values(v, g) for g in dataset.group_labels])
        stats[TOTAL][v] = _describe(pooled, dataset.overall_means[v])
    return GroupStatisticsParams(
        variables=tuple(variables),
        groups=dataset.group_labels,
        statistics=stats,
    )


def equality_tests_impl(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
) -> EqualityTestsParams:
    """Univariate Wilks' lambda and F for every variable."""
    df1 = dataset.num_groups - 1
    df2 = dataset.total_cases - dataset.num_groups
    rows = []
    for v in variables:
        f, lam = univariate_f(v, dataset)
        rows.append(EqualityTestRow(
            variable=v,
            wilks_lambda=lam,
            f_value=f,
            df1=df1,
            df2=df2,
            p_value=f_p_value(f, df1, df2),
        ))
    return EqualityTestsParams(rows=tuple(rows))


def pooled_matrices_impl(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
) -> PooledMatricesParams:
    """Pooled within-groups covariance and correlation matrices."""
    _, W = between_within_matrices(dataset, variables)
    df = dataset.total_cases - dataset.num_groups
    return PooledMatricesParams(
        variables=tuple(variables),
        covariance=W,
        correlation=covariance_to_correlation(W),
        df=df,
        note=f"a. The covariance matrix has {df} degrees of freedom.",
    )


def covariance_matrices_impl(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
) -> CovarianceMatricesParams:
    """Covariance matrix of each group and of the total sample."""
    return CovarianceMatricesParams(
        variables=tuple(variables),
        group_covariances={
            g: group_covariance_matrix(dataset, g, variables)
            for g in dataset.group_labels
        },
        total_covariance=total_covariance_matrix(dataset, variables),
        total_df=dataset.total_cases - 1,
    )
