"""
Box's M test for equality of group covariance matrices.

Algorithm:
    1. Covariance matrix S_i and log|S_i| for every group with more than
       one case (computed per group, in parallel), pooled matrix S and
       log|S|.
    2. M = (n - g) log|S| - sum (n_i - 1) log|S_i|
    3. c1 = (sum 1/(n_i - 1) - 1/(n - g)) (2p^2 + 3p - 1) / (6 (p + 1)(g - 1))
       c2 = (sum 1/(n_i - 1)^2 - 1/(n - g)^2) (p - 1)(p + 2) / (6 (g - 1))
    4. v1 = p (p + 1)(g - 1) / 2,  v2 = (v1 + 2) / |c1 - c2/c1|
       (v2 = 2 v1 when that denominator vanishes)
    5. c2 > c1^2:  b = v1 / (1 - c1 - v1/v2),  F = M / b
       otherwise:  b = v2 / (1 - c1 - 2/v2),   F = v2 M / (v1 (b - M))
    6. p = P(F(v1, v2) > F)

Every group covariance and the pooled matrix carry epsilon on the
diagonal so single-variable and near-singular groups still have a finite
log determinant.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np

from pydiscriminant.core.compute.parallel import ordered_map
from pydiscriminant.core.compute.precision import DEFAULT_EPSILON, clamp_unit, regularize
from pydiscriminant.discriminant._common import BoxMTestParams, LogDeterminantRow
from pydiscriminant.discriminant._matrix import (
    f_p_value,
    group_covariance_matrix,
    log_determinant,
    pooled_covariance,
)
from pydiscriminant.discriminant.design import AnalyzedDataset

logger = logging.getLogger(__name__)

_NOTE = "Tests null hypothesis of equal population covariance matrices."


def box_m_test_impl(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
    n_jobs: int | None = 1,
) -> BoxMTestParams:
    """
    Compute Box's M and its F approximation.

    Args:
        dataset: Analyzed dataset
        variables: Variables whose covariance matrices are compared
        epsilon: Diagonal regularization
        n_jobs: Worker threads for the per-group covariance matrices

    Returns:
        BoxMTestParams. With fewer than two groups holding more than one
        case the statistic is reported as M = 0, F = 0, p = 1.
    """
    variables = list(variables)
    p = len(variables)
    usable = [g for g in dataset.group_labels if dataset.group_size(g) > 1]
    skipped = [g for g in dataset.group_labels if g not in usable]
    if skipped:
        logger.debug("box_m_test: groups %s have <= 1 case and are skipped", skipped)

    if p == 0:
        return BoxMTestParams(
            box_m=0.0, f_approx=0.0, df1=0.0, df2=0.0, p_value=1.0,
            note=_NOTE + " No variables are in the analysis.", log_determinants=(),
        )

    def _group_stats(group: str) -> tuple[np.ndarray, float, int]:
        S = group_covariance_matrix(dataset, group, variables)
        S_reg = regularize(S, epsilon)
        return S, log_determinant(S_reg, epsilon=epsilon), int(np.linalg.matrix_rank(S_reg))

    per_group = ordered_map(_group_stats, usable, n_jobs=n_jobs)
    sizes = [dataset.group_size(g) for g in usable]

    rows = [
        LogDeterminantRow(group=g, rank=rank, log_determinant=ld)
        for g, (_, ld, rank) in zip(usable, per_group)
    ]

    k = len(usable)
    if k < 2:
        note = _NOTE + " Fewer than two groups have enough cases for the test."
        return BoxMTestParams(
            box_m=0.0, f_approx=0.0, df1=0.0, df2=0.0, p_value=1.0,
            note=note, log_determinants=tuple(rows),
        )

    pooled = pooled_covariance([S for S, _, _ in per_group], sizes, epsilon=epsilon)
    ld_pooled = log_determinant(pooled, epsilon=epsilon)
    rows.append(LogDeterminantRow(
        group='Pooled within-groups',
        rank=int(np.linalg.matrix_rank(pooled)),
        log_determinant=ld_pooled,
    ))

    n = sum(sizes)
    df_within = n - k
    box_m = df_within * ld_pooled - sum(
        (n_i - 1) * ld for n_i, (_, ld, _) in zip(sizes, per_group)
    )

    inv_df = sum(1.0 / (n_i - 1) for n_i in sizes)
    inv_df_sq = sum(1.0 / (n_i - 1) ** 2 for n_i in sizes)
    if df_within > epsilon:
        inv_df -= 1.0 / df_within
        inv_df_sq -= 1.0 / df_within ** 2
    c1 = inv_df * (2 * p * p + 3 * p - 1) / (6.0 * (p + 1) * (k - 1))
    c2 = inv_df_sq * (p - 1) * (p + 2) / (6.0 * (k - 1))

    v1 = p * (p + 1) * (k - 1) / 2.0
    gap = abs(c1 - c2 / c1) if abs(c1) > epsilon else 0.0
    v2 = (v1 + 2.0) / gap if gap > epsilon else 2.0 * v1

    if c2 > c1 * c1:
        b = v1 / (1.0 - c1 - v1 / v2)
        f = box_m / b if (b > epsilon and box_m > epsilon) else 0.0
    else:
        b = v2 / (1.0 - c1 - 2.0 / v2)
        f = (v2 * box_m) / (v1 * (b - box_m)) if (b > epsilon and box_m > epsilon) else 0.0

    if not np.isfinite(f):
        p_value = 1.0
    else:
        p_value = clamp_unit(f_p_value(f, v1, v2))

    note = _NOTE
    if skipped:
        note += f" Groups with one case or fewer were excluded: {', '.join(skipped)}."

    return BoxMTestParams(
        box_m=float(box_m),
        f_approx=float(f),
        df1=float(v1),
        df2=float(v2),
        p_value=p_value,
        note=note,
        log_determinants=tuple(rows),
    )
