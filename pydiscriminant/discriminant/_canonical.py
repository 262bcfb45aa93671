"""
Canonical discriminant functions.

Algorithm: solve the generalized symmetric eigenproblem B v = e W v,
with B the between-groups scatter and W the pooled within-groups SSCP
(epsilon on its diagonal), using scipy.linalg.eigh. The leading
min(g - 1, p) eigenpairs define the canonical functions. eigh normalizes
v' W v = 1; multiplying by sqrt(n - g) gives coefficients whose scores
have unit pooled within-groups variance.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from numpy.typing import NDArray
from scipy import linalg as sp_linalg

from pydiscriminant.core.compute.precision import DEFAULT_EPSILON, regularize
from pydiscriminant.core.exceptions import NotPositiveDefiniteError, ValidationError
from pydiscriminant.discriminant._common import CanonicalFunctionParams, EigenParams
from pydiscriminant.discriminant._matrix import (
    between_within_matrices,
    covariance_to_correlation,
    within_groups_sscp,
)
from pydiscriminant.discriminant.design import AnalyzedDataset


def _check_estimable(dataset: AnalyzedDataset, variables: Sequence[str]) -> None:
    if not variables:
        raise ValidationError("canonical functions: no variables in the analysis")
    if dataset.num_groups < 2:
        raise ValidationError(
            f"canonical functions: need at least 2 groups, got {dataset.num_groups}"
        )
    if dataset.total_cases - dataset.num_groups <= 0:
        raise ValidationError(
            f"canonical functions: {dataset.total_cases} cases leave no within-groups "
            f"degrees of freedom for {dataset.num_groups} groups"
        )


def generalized_eigen(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> tuple[NDArray[np.floating], NDArray[np.floating]]:
    """
    Leading eigenpairs of W^-1 B.

    Returns:
        (eigenvalues, eigenvectors): eigenvalues descending and clipped at
        zero, eigenvectors as columns normalized to v' W v = 1

    Raises:
        ValidationError: If there are no variables, fewer than two
            groups, or no within-groups degrees of freedom
        NotPositiveDefiniteError: If W cannot be factored
    """
    _check_estimable(dataset, variables)
    B, _ = between_within_matrices(dataset, variables)
    W = regularize(within_groups_sscp(dataset, variables), epsilon)
    try:
        evals, evecs = sp_linalg.eigh(B, W)
    except np.linalg.LinAlgError as e:
        raise NotPositiveDefiniteError(
            f"pooled within-groups matrix is not positive definite: {e}",
            matrix_name='within_groups_sscp',
            variables=tuple(variables),
            min_eigenvalue=float(np.min(np.linalg.eigvalsh(W))),
        ) from e

    order = np.argsort(evals, kind='stable')[::-1]
    m = min(dataset.num_groups - 1, len(variables))
    keep = order[:m]
    return np.clip(evals[keep], 0.0, None), evecs[:, keep]


def eigen_statistics(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> EigenParams:
    """Eigenvalues, % of variance, cumulative % and canonical correlations."""
    evals, _ = generalized_eigen(dataset, variables, epsilon=epsilon)
    return _eigen_params(evals)


def _eigen_params(evals: NDArray[np.floating]) -> EigenParams:
    total = float(np.sum(evals))
    pct = evals / total * 100.0 if total > 0 else np.zeros_like(evals)
    return EigenParams(
        eigenvalues=tuple(float(e) for e in evals),
        pct_variance=tuple(float(x) for x in pct),
        cumulative_pct=tuple(float(x) for x in np.cumsum(pct)),
        canonical_correlation=tuple(float(np.sqrt(e / (1.0 + e))) for e in evals),
    )


def canonical_functions(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> CanonicalFunctionParams:
    """
    Canonical discriminant function coefficients and centroids.

    Each function is signed so that its largest absolute standardized
    coefficient is positive.
    """
    variables = list(variables)
    evals, evecs = generalized_eigen(dataset, variables, epsilon=epsilon)
    df_within = dataset.total_cases - dataset.num_groups

    coef = evecs * np.sqrt(df_within)
    within_cov = within_groups_sscp(dataset, variables) / df_within
    sd = np.sqrt(np.clip(np.diag(within_cov), 0.0, None))
    standardized = coef * sd[:, None]

    for k in range(coef.shape[1]):
        j = int(np.argmax(np.abs(standardized[:, k])))
        if standardized[j, k] < 0:
            coef[:, k] *= -1.0
            standardized[:, k] *= -1.0

    constants = -dataset.overall_mean_vector(variables) @ coef
    structure = covariance_to_correlation(within_cov) @ standardized
    centroids = {
        g: dataset.group_mean_vector(g, variables) @ coef + constants
        for g in dataset.group_labels
    }

    return CanonicalFunctionParams(
        variables=tuple(variables),
        unstandardized=coef,
        constants=constants,
        standardized=standardized,
        structure=structure,
        centroids=centroids,
        eigen=_eigen_params(evals),
    )
