"""
Significance statistics used by stepwise selection.

    univariate_f          one-way ANOVA F and lambda for a single variable
    overall_wilks_lambda  det(W) / det(B + W) over a variable set
    overall_f_statistic   F for the overall lambda, as reported per step
    rao_f_approximation   Rao's F approximation to the overall lambda
    tolerance             1 - max pairwise r^2 against other variables
    wilks_lambda_test     chi-square test of successive canonical functions

Degenerate inputs return the "no information" values (lambda 1, F 0,
p 1) rather than raising.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from pydiscriminant.core.compute.precision import (
    DEFAULT_EPSILON,
    F_CEILING,
    MIN_TOLERANCE_FACTOR,
)
from pydiscriminant.discriminant._common import WilksLambdaTestParams
from pydiscriminant.discriminant._matrix import (
    between_within_matrices,
    chi_square_p_value,
    correlation,
)
from pydiscriminant.discriminant.design import AnalyzedDataset


def univariate_f(variable: str, dataset: AnalyzedDataset) -> tuple[float, float]:
    """
    One-way ANOVA of a single variable across groups.

    Args:
        variable: Variable name
        dataset: Analyzed dataset

    Returns:
        (F, wilks_lambda). (0.0, 1.0) when fewer than two groups have
        data or the within-groups sum of squares is zero.
    """
    overall = dataset.overall_means.get(variable, 0.0)
    ss_between = 0.0
    ss_within = 0.0
    n_total = 0
    k = 0
    for g in dataset.group_labels:
        values = dataset.values(variable, g)
        if len(values) == 0:
            continue
        k += 1
        n_total += len(values)
        mean_g = dataset.group_means[g].get(variable, 0.0)
        ss_between += len(values) * (mean_g - overall) ** 2
        ss_within += float(np.sum((values - mean_g) ** 2))

    if k < 2:
        return 0.0, 1.0
    ss_total = ss_between + ss_within
    lam = ss_within / ss_total if ss_total > 0 else 1.0
    if ss_within <= 0 or n_total - k <= 0:
        return 0.0, float(lam)

    f = (ss_between / (k - 1)) / (ss_within / (n_total - k))
    return float(f), float(lam)


def overall_wilks_lambda(dataset: AnalyzedDataset, variables: Sequence[str]) -> float:
    """
    Wilks' lambda det(W) / det(B + W) for a set of variables.

    A non-positive or non-finite determinant is replaced by 1.0, so a
    singular within matrix drives lambda toward 1 (no discrimination).
    Result is clamped to [0, 1]; an empty variable set gives 1.0.
    """
    if not variables:
        return 1.0
    B, W = between_within_matrices(dataset, variables)
    det_w = np.linalg.det(W)
    det_t = np.linalg.det(B + W)
    if not np.isfinite(det_w) or det_w <= 0:
        det_w = 1.0
    if not np.isfinite(det_t) or det_t <= 0:
        det_t = 1.0
    return float(min(max(det_w / det_t, 0.0), 1.0))


def overall_f_statistic(
    wilks_lambda: float, p: int, g: int, n: int
) -> tuple[float, int, int, int]:
    """
    F statistic reported alongside the overall lambda at each step.

    df1 = p, df2 = 1, df3 = n - g and F = ((1 - lambda) / lambda) * df3 / df1.
    lambda <= 0 reports F_CEILING; lambda >= 1 (or p = 0) reports 0.

    Returns:
        (F, df1, df2, df3)
    """
    df1, df2, df3 = p, 1, n - g
    if p <= 0 or wilks_lambda >= 1.0:
        f = 0.0
    elif wilks_lambda <= 0.0:
        f = F_CEILING
    else:
        f = ((1.0 - wilks_lambda) / wilks_lambda) * (df3 / df1)
    return float(f), df1, df2, df3


def rao_f_approximation(
    wilks_lambda: float, p: int, g: int, n: int
) -> tuple[float, float, float]:
    """
    Rao's F approximation to the distribution of Wilks' lambda.

    With q = g - 1:
        s  = sqrt((p^2 q^2 - 4) / (p^2 + q^2 - 5))   (1 if undefined)
        m  = n - 1 - (p + g) / 2
        df1 = p q,  df2 = m s - p q / 2 + 1
        F  = (1 - lambda^(1/s)) / lambda^(1/s) * df2 / df1

    Returns:
        (F, df1, df2); F is 0 for lambda outside (0, 1) or non-positive df
    """
    q = g - 1
    df1 = float(p * q)
    denom = p * p + q * q - 5
    s = 1.0
    if denom > 0 and p * p * q * q - 4 > 0:
        s = float(np.sqrt((p * p * q * q - 4) / denom))
    m = n - 1 - (p + g) / 2.0
    df2 = m * s - df1 / 2.0 + 1.0
    if df1 <= 0 or df2 <= 0 or not (0.0 < wilks_lambda < 1.0):
        return 0.0, df1, df2
    root = wilks_lambda ** (1.0 / s)
    f = (1.0 - root) / root * (df2 / df1)
    return float(f), df1, float(df2)


def tolerance(
    variable: str,
    dataset: AnalyzedDataset,
    other_variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> tuple[float, float]:
    """
    Tolerance of a variable against variables already in the model.

    Tolerance is 1 - max(r^2) over the pairwise correlations with each
    other variable (all groups pooled). With a single other variable this
    is the usual 1 - r^2; with several it is the largest pairwise r^2,
    not a multiple R^2.

    Returns:
        (tolerance, min_tolerance) with min_tolerance = 0.8 * tolerance.
        (1.0, 1.0) without other variables, (0.0, 0.0) when the variable
        has no data.
    """
    others = [v for v in other_variables if v != variable]
    if not others:
        return 1.0, 1.0

    target = _pooled_values(dataset, variable)
    if len(target) == 0:
        return 0.0, 0.0

    max_r2 = 0.0
    for other in others:
        values = _pooled_values(dataset, other)
        if len(values) != len(target):
            continue
        r = correlation(target, values, epsilon=epsilon)
        max_r2 = max(max_r2, r * r)

    tol = float(min(max(1.0 - max_r2, 0.0), 1.0))
    return tol, tol * MIN_TOLERANCE_FACTOR


def _pooled_values(dataset: AnalyzedDataset, variable: str) -> np.ndarray:
    parts = [dataset.values(variable, g) for g in dataset.group_labels]
    return np.concatenate(parts) if parts else np.empty(0)


def wilks_lambda_test(
    eigenvalues: Sequence[float], p: int, g: int, n: int
) -> WilksLambdaTestParams:
    """
    Test the significance of successive canonical functions.

    For test k (0-based) the residual lambda is prod_{i>=k} 1 / (1 + e_i),
    chi^2 = -(n - (p + g) / 2 - 1) ln(lambda_k) and
    df = (p - k)(g - k - 1).

    Args:
        eigenvalues: Canonical eigenvalues in descending order
        p: Number of variables in the analysis
        g: Number of groups
        n: Number of cases

    Returns:
        WilksLambdaTestParams with one entry per function
    """
    m = len(eigenvalues)
    labels, lambdas, chis, dfs, sigs = [], [], [], [], []
    for k in range(m):
        lam = float(np.prod([1.0 / (1.0 + e) for e in eigenvalues[k:]]))
        chi2 = -(n - (p + g) / 2.0 - 1.0) * np.log(lam) if lam > 0 else 0.0
        df = (p - k) * (g - k - 1)
        labels.append(f"{k + 1} through {m}" if k < m - 1 else f"{m}")
        lambdas.append(lam)
        chis.append(float(chi2))
        dfs.append(int(df))
        sigs.append(chi_square_p_value(float(chi2), df))

    return WilksLambdaTestParams(
        test_of_functions=tuple(labels),
        wilks_lambda=tuple(lambdas),
        chi_square=tuple(chis),
        df=tuple(dfs),
        significance=tuple(sigs),
    )
