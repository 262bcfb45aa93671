"""
Mahalanobis distances between group centroids and the statistics built
on them.

    mahalanobis_distance         D^2 between two groups (two-group pooled S)
    pairwise_comparisons         F test of D^2 for every ordered group pair
    total_unexplained_variation  sum over pairs of 4 / (4 + D^2)
    min_mahalanobis_distance     smallest D^2 over group pairs
    min_f_ratio                  smallest pairwise F over group pairs
    raos_v                       trace(W^-1 B)
"""

from __future__ import annotations

import logging
from itertools import combinations
from typing import Sequence

import numpy as np

from pydiscriminant.core.compute.parallel import ordered_map
from pydiscriminant.core.compute.precision import DEFAULT_EPSILON, regularize
from pydiscriminant.discriminant._common import PairwiseComparison
from pydiscriminant.discriminant._matrix import (
    between_within_matrices,
    f_p_value,
    group_covariance_matrix,
)
from pydiscriminant.discriminant.design import AnalyzedDataset

logger = logging.getLogger(__name__)


def mahalanobis_distance(
    dataset: AnalyzedDataset,
    group_a: str,
    group_b: str,
    variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> float:
    """
    Squared Mahalanobis distance between two group centroids.

    The covariance matrix is pooled from the two groups only (weighted
    by degrees of freedom, epsilon on the diagonal). When neither group
    has more than one case, or the pooled matrix cannot be inverted, the
    squared Euclidean distance between the centroids is returned.
    """
    if not variables:
        return 0.0
    diff = dataset.group_mean_vector(group_a, variables) - dataset.group_mean_vector(group_b, variables)
    euclidean = float(diff @ diff)

    p = len(variables)
    pooled = np.zeros((p, p))
    df = 0
    for group in (group_a, group_b):
        n = dataset.group_size(group)
        if n > 1:
            pooled += (n - 1) * group_covariance_matrix(dataset, group, variables)
            df += n - 1
    if df == 0:
        return euclidean

    pooled = regularize(pooled / df, epsilon)
    try:
        inverse = np.linalg.inv(pooled)
    except np.linalg.LinAlgError:
        logger.debug("mahalanobis_distance: singular pooled matrix for %s/%s, "
                     "using Euclidean distance", group_a, group_b)
        return euclidean

    d2 = float(diff @ inverse @ diff)
    return d2 if np.isfinite(d2) else euclidean


def _pair_f(
    d2: float, n_i: int, n_j: int, p: int, n: int, g: int
) -> tuple[float, int, int]:
    """F = D^2 (n - g - p + 1) n_i n_j / (p (n - g)(n_i + n_j)) and its df."""
    df1 = p
    df2 = n - g - p + 1
    if p <= 0 or n - g <= 0 or df2 <= 0 or n_i + n_j == 0:
        return 0.0, df1, df2
    f = d2 * df2 * n_i * n_j / (p * (n - g) * (n_i + n_j))
    return float(f), df1, df2


def pairwise_comparisons(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    step: int,
    *,
    epsilon: float = DEFAULT_EPSILON,
    n_jobs: int | None = 1,
) -> dict[str, tuple[PairwiseComparison, ...]]:
    """
    Pairwise group comparisons at a stepwise step.

    Args:
        dataset: Analyzed dataset
        variables: Variables in the model at this step
        step: Step number (used only for log messages)
        epsilon: Diagonal regularization
        n_jobs: Worker threads (one task per group)

    Returns:
        group -> comparisons against every other group, in group_labels
        order. Pairs involving an empty group are omitted.
    """
    variables = list(variables)
    p = len(variables)
    n = dataset.total_cases
    g = dataset.num_groups

    def _compare(group: str) -> tuple[PairwiseComparison, ...]:
        n_i = dataset.group_size(group)
        out = []
        if n_i == 0:
            return ()
        for other in dataset.group_labels:
            if other == group:
                continue
            n_j = dataset.group_size(other)
            if n_j == 0:
                continue
            d2 = mahalanobis_distance(dataset, group, other, variables, epsilon=epsilon)
            f, df1, df2 = _pair_f(d2, n_i, n_j, p, n, g)
            out.append(PairwiseComparison(
                group=group,
                other_group=other,
                squared_distance=d2,
                f_value=f,
                df1=df1,
                df2=df2,
                p_value=f_p_value(f, df1, df2),
            ))
        return tuple(out)

    logger.debug("pairwise_comparisons: step %d, %d variables", step, p)
    results = ordered_map(_compare, dataset.group_labels, n_jobs=n_jobs)
    return dict(zip(dataset.group_labels, results))


def _nonempty_pairs(dataset: AnalyzedDataset) -> list[tuple[str, str]]:
    groups = [g for g in dataset.group_labels if dataset.group_size(g) > 0]
    return list(combinations(groups, 2))


def total_unexplained_variation(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> float:
    """
    Residual variation not explained by the model, sum 4 / (4 + D^2).

    For the empty variable set every D^2 is zero, so the value is the
    number of group pairs.
    """
    pairs = _nonempty_pairs(dataset)
    if not variables:
        return float(len(pairs))
    return float(sum(
        4.0 / (4.0 + mahalanobis_distance(dataset, a, b, variables, epsilon=epsilon))
        for a, b in pairs
    ))


def min_mahalanobis_distance(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> float:
    """Smallest D^2 over group pairs; 0.0 without variables or pairs."""
    pairs = _nonempty_pairs(dataset)
    if not variables or not pairs:
        return 0.0
    return min(
        mahalanobis_distance(dataset, a, b, variables, epsilon=epsilon)
        for a, b in pairs
    )


def min_f_ratio(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> float:
    """Smallest pairwise F over group pairs; 0.0 without variables or pairs."""
    pairs = _nonempty_pairs(dataset)
    if not variables or not pairs:
        return 0.0
    p, n, g = len(variables), dataset.total_cases, dataset.num_groups
    values = []
    for a, b in pairs:
        d2 = mahalanobis_distance(dataset, a, b, variables, epsilon=epsilon)
        f, _, _ = _pair_f(d2, dataset.group_size(a), dataset.group_size(b), p, n, g)
        values.append(f)
    return min(values)


def raos_v(dataset: AnalyzedDataset, variables: Sequence[str]) -> float:
    """Rao's V, trace(W^-1 B); trace(B) when W is singular."""
    if not variables:
        return 0.0
    B, W = between_within_matrices(dataset, variables)
    try:
        v = float(np.trace(np.linalg.solve(W, B)))
    except np.linalg.LinAlgError:
        logger.debug("raos_v: singular within matrix, using trace(B)")
        return float(np.trace(B))
    return v if np.isfinite(v) else float(np.trace(B))
