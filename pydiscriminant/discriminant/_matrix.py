"""
Covariance and matrix primitives for discriminant analysis.

Every function here returns a number for every input: degenerate data
(short vectors, empty groups, singular matrices) resolves to a documented
fallback instead of an exception, so the stepwise loop built on top can
keep going when a single candidate is uninformative.

Matrix entries are filled element by element, (i, j) and (j, i) each from
their own covariance call, so the symmetry of the result is whatever the
covariance formula gives rather than an explicit copy.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import numpy as np
from numpy.typing import NDArray
from scipy import stats as sp_stats

from pydiscriminant.core.compute.precision import (
    DEFAULT_EPSILON,
    F_SATURATION,
    clamp_unit,
    regularize,
)
from pydiscriminant.discriminant.design import AnalyzedDataset

logger = logging.getLogger(__name__)


def covariance(
    a: NDArray[np.floating[Any]],
    b: NDArray[np.floating[Any]],
    mean_a: float | None = None,
    mean_b: float | None = None,
) -> float:
    """
    Sample covariance sum((a - mean_a)(b - mean_b)) / (n - 1).

    Args:
        a, b: Equal-length observation vectors
        mean_a, mean_b: Precomputed means (e.g. group means); computed
            from the vectors when omitted

    Returns:
        Covariance, or 0.0 if the lengths differ or n < 2
    """
    n = len(a)
    if n != len(b) or n < 2:
        return 0.0
    ma = float(np.mean(a)) if mean_a is None else mean_a
    mb = float(np.mean(b)) if mean_b is None else mean_b
    return float(np.dot(np.asarray(a) - ma, np.asarray(b) - mb) / (n - 1))


def correlation(
    a: NDArray[np.floating[Any]],
    b: NDArray[np.floating[Any]],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> float:
    """Pearson correlation; 0.0 when either standard deviation is <= epsilon."""
    if len(a) != len(b) or len(a) < 2:
        return 0.0
    sd_a = np.sqrt(covariance(a, a))
    sd_b = np.sqrt(covariance(b, b))
    if sd_a <= epsilon or sd_b <= epsilon:
        return 0.0
    return covariance(a, b) / (sd_a * sd_b)


def log_determinant(
    matrix: NDArray[np.floating[Any]],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> float:
    """
    Natural log of a determinant.

    The matrix is expected to be regularized already. If slogdet still
    reports a non-positive determinant, the log pseudo-determinant (sum
    of log singular values above epsilon) is returned instead.
    """
    if matrix.size == 0:
        return 0.0
    sign, logdet = np.linalg.slogdet(matrix)
    if sign > 0 and np.isfinite(logdet):
        return float(logdet)
    s = np.linalg.svd(matrix, compute_uv=False)
    return float(np.sum(np.log(s[s > epsilon])))


def group_covariance_matrix(
    dataset: AnalyzedDataset,
    group: str,
    variables: Sequence[str],
) -> NDArray[np.floating[Any]]:
    """Sample covariance matrix of one group over the given variables."""
    p = len(variables)
    means = dataset.group_means.get(group, {})
    cols = [dataset.values(v, group) for v in variables]
    out = np.zeros((p, p))
    for i in range(p):
        for j in range(p):
            out[i, j] = covariance(
                cols[i], cols[j], means.get(variables[i]), means.get(variables[j])
            )
    return out


def total_covariance_matrix(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
) -> NDArray[np.floating[Any]]:
    """Covariance over all cases, ignoring group membership."""
    p = len(variables)
    cols = [
        np.concatenate([dataset.values(v, g) for g in dataset.group_labels])
        if dataset.group_labels else np.empty(0)
        for v in variables
    ]
    out = np.zeros((p, p))
    for i in range(p):
        for j in range(p):
            out[i, j] = covariance(
                cols[i], cols[j],
                dataset.overall_means.get(variables[i]),
                dataset.overall_means.get(variables[j]),
            )
    return out


def pooled_covariance(
    group_covariances: Sequence[NDArray[np.floating[Any]]],
    group_sizes: Sequence[int],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> NDArray[np.floating[Any]]:
    """
    Degrees-of-freedom weighted average of group covariance matrices.

    sum((n_i - 1) S_i) / sum(n_i - 1), with epsilon added to the
    diagonal afterwards. When the total degrees of freedom is zero the
    unweighted average is returned; it carries no information but keeps
    the shape callers expect.
    """
    if not group_covariances:
        return np.zeros((0, 0))
    total_df = sum(max(n - 1, 0) for n in group_sizes)
    if total_df > 0:
        pooled = sum(max(n - 1, 0) * S for S, n in zip(group_covariances, group_sizes))
        pooled = pooled / total_df
    else:
        pooled = sum(group_covariances) / len(group_covariances)
    return regularize(pooled, epsilon)


def between_within_matrices(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
) -> tuple[NDArray[np.floating[Any]], NDArray[np.floating[Any]]]:
    """
    Between-groups scatter and pooled within-groups covariance.

    B[i, j] = sum_g n_g (m_gi - o_i)(m_gj - o_j)
    W[i, j] = sum_g (n_g - 1) cov_g(i, j) / sum_g (n_g - 1)

    Groups with one case or fewer contribute nothing to W. W is left
    unregularized.

    Returns:
        (B, W), both (p, p)
    """
    p = len(variables)
    B = np.zeros((p, p))
    W = np.zeros((p, p))
    if p == 0:
        return B, W

    overall = dataset.overall_mean_vector(variables)
    total_df = 0
    for g in dataset.group_labels:
        n_g = dataset.group_size(g)
        if n_g == 0:
            continue
        d = dataset.group_mean_vector(g, variables) - overall
        for i in range(p):
            for j in range(p):
                B[i, j] += n_g * d[i] * d[j]
        if n_g > 1:
            W += (n_g - 1) * group_covariance_matrix(dataset, g, variables)
            total_df += n_g - 1

    if total_df > 0:
        W /= total_df
    return B, W


def pooled_within_matrix(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> NDArray[np.floating[Any]]:
    """Pooled within-groups covariance with epsilon on the diagonal."""
    _, W = between_within_matrices(dataset, variables)
    return regularize(W, epsilon)


def within_groups_sscp(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
) -> NDArray[np.floating[Any]]:
    """Pooled within-groups sums of squares and cross-products."""
    p = len(variables)
    S = np.zeros((p, p))
    for g in dataset.group_labels:
        n_g = dataset.group_size(g)
        if n_g > 1:
            S += (n_g - 1) * group_covariance_matrix(dataset, g, variables)
    return S


def covariance_to_correlation(cov: NDArray[np.floating[Any]]) -> NDArray[np.floating[Any]]:
    """Correlation matrix from a covariance matrix; zero-variance rows give 0."""
    sd = np.sqrt(np.clip(np.diag(cov), 0.0, None))
    with np.errstate(divide='ignore', invalid='ignore'):
        corr = cov / np.outer(sd, sd)
    corr = np.where(np.isfinite(corr), corr, 0.0)
    corr[np.diag_indices_from(corr)] = np.where(sd > 0, 1.0, 0.0)
    return corr


def f_p_value(f: float, df1: float, df2: float) -> float:
    """
    Upper-tail probability of the F distribution.

    1.0 for NaN, non-positive F or non-positive degrees of freedom;
    0.0 when F exceeds F_SATURATION.
    """
    if np.isnan(f) or f <= 0 or df1 <= 0 or df2 <= 0:
        return 1.0
    if f > F_SATURATION:
        return 0.0
    return clamp_unit(float(sp_stats.f.sf(f, df1, df2)))


def chi_square_p_value(chi2: float, df: float) -> float:
    """Upper-tail chi-square probability; 1.0 for chi2 <= 0 or df <= 0."""
    if np.isnan(chi2) or chi2 <= 0 or df <= 0:
        return 1.0
    return clamp_unit(float(sp_stats.chi2.sf(chi2, df)))
