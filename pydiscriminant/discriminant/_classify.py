"""
Classification of cases into groups.

Fisher's linear classification functions use the pooled within-groups
covariance S:

    b_g = S^-1 mu_g,   a_g = -1/2 mu_g' S^-1 mu_g + ln(prior_g)

and a case goes to the group with the largest a_g + b_g' x. Leave-one-out
classification removes each case from its own group with a rank-one
downdate of the group mean and of the within-groups SSCP instead of
refitting. Casewise statistics work in the space of the canonical
functions, where pooled within-groups covariance is the identity.
"""

from __future__ import annotations

import logging
from typing import Sequence

import numpy as np
from numpy.typing import NDArray

from pydiscriminant.core.compute.precision import DEFAULT_EPSILON, regularize, safe_divide
from pydiscriminant.core.exceptions import SingularMatrixError, ValidationError
from pydiscriminant.discriminant._canonical import canonical_functions
from pydiscriminant.discriminant._common import (
    CasewiseParams,
    CasewiseRow,
    ClassificationFunctionParams,
    ClassificationResultsParams,
    ClassificationTable,
)
from pydiscriminant.discriminant._matrix import chi_square_p_value, within_groups_sscp
from pydiscriminant.discriminant.config import ClassifyOptions
from pydiscriminant.discriminant.design import AnalyzedDataset

logger = logging.getLogger(__name__)


def prior_probabilities(dataset: AnalyzedDataset, options: ClassifyOptions) -> dict[str, float]:
    """Equal priors, or priors proportional to group size when group_size is set."""
    groups = dataset.group_labels
    if options.group_size and dataset.total_cases > 0:
        return {g: dataset.group_size(g) / dataset.total_cases for g in groups}
    return {g: 1.0 / len(groups) for g in groups}


def _pooled_inverse(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    epsilon: float,
) -> tuple[NDArray[np.floating], NDArray[np.floating], int]:
    df = dataset.total_cases - dataset.num_groups
    if df <= 0:
        raise ValidationError(
            f"classification: {dataset.total_cases} cases leave no within-groups "
            f"degrees of freedom for {dataset.num_groups} groups"
        )
    sscp = within_groups_sscp(dataset, variables)
    S = regularize(sscp / df, epsilon)
    try:
        inverse = np.linalg.inv(S)
    except np.linalg.LinAlgError as e:
        raise SingularMatrixError(
            "pooled within-groups covariance matrix is singular",
            matrix_name='pooled_within_covariance',
            condition_number=float(np.linalg.cond(S)),
            rank=int(np.linalg.matrix_rank(S)),
            variables=tuple(variables),
        ) from e
    return sscp, inverse, df


def classification_function_coefficients(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    priors: dict[str, float],
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> ClassificationFunctionParams:
    """
    Fisher's linear classification function coefficients.

    Returns:
        ClassificationFunctionParams with (p, g) coefficients and one
        constant per group
    """
    variables = list(variables)
    if not variables:
        raise ValidationError("classification: no variables in the analysis")
    _, inverse, _ = _pooled_inverse(dataset, variables, epsilon)

    groups = dataset.group_labels
    means = np.column_stack([dataset.group_mean_vector(g, variables) for g in groups])
    coefficients = inverse @ means
    constants = np.array([
        -0.5 * means[:, k] @ coefficients[:, k] + np.log(priors[g])
        for k, g in enumerate(groups)
    ])
    return ClassificationFunctionParams(
        variables=tuple(variables),
        groups=groups,
        coefficients=coefficients,
        constants=constants,
        priors=dict(priors),
    )


def _table(actual: NDArray[np.integer], predicted: NDArray[np.integer], g: int) -> ClassificationTable:
    counts = np.zeros((g, g), dtype=np.int64)
    np.add.at(counts, (actual, predicted), 1)
    row_totals = counts.sum(axis=1, keepdims=True)
    percentages = safe_divide(counts * 100.0, row_totals)
    total = counts.sum()
    correct = float(np.trace(counts) / total * 100.0) if total else 0.0
    return ClassificationTable(counts=counts, percentages=percentages, percent_correct=correct)


def _solve(matrix: NDArray[np.floating], rhs: NDArray[np.floating]) -> NDArray[np.floating]:
    try:
        return np.linalg.solve(matrix, rhs)
    except np.linalg.LinAlgError:
        logger.debug("leave-one-out: singular covariance, using pseudo-inverse")
        return np.linalg.pinv(matrix) @ rhs


def _leave_one_out_predictions(
    dataset: AnalyzedDataset,
    variables: list[str],
    X: NDArray[np.floating],
    group_index: NDArray[np.integer],
    sscp: NDArray[np.floating],
    log_priors: NDArray[np.floating],
    epsilon: float,
) -> NDArray[np.integer]:
    groups = dataset.group_labels
    sizes = np.array(dataset.group_sizes())
    means = np.vstack([dataset.group_mean_vector(g, variables) for g in groups])
    df = dataset.total_cases - 1 - dataset.num_groups
    predicted = np.empty(len(X), dtype=np.int64)

    for i, (x, k) in enumerate(zip(X, group_index)):
        n_k = sizes[k]
        held_means = means.copy()
        held_sscp = sscp
        if n_k > 1:
            dev = x - means[k]
            held_means[k] = (n_k * means[k] - x) / (n_k - 1)
            held_sscp = sscp - (n_k / (n_k - 1)) * np.outer(dev, dev)
        S = regularize(held_sscp / df, epsilon) if df > 0 else regularize(held_sscp, epsilon)
        diffs = x - held_means
        d2 = np.einsum('ij,ij->i', diffs, _solve(S, diffs.T).T)
        predicted[i] = int(np.argmax(log_priors - 0.5 * d2))
    return predicted


def classification_results(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    priors: dict[str, float],
    *,
    leave_one_out: bool = False,
    epsilon: float = DEFAULT_EPSILON,
) -> ClassificationResultsParams:
    """
    Classification table of actual by predicted group.

    Args:
        dataset: Analyzed dataset
        variables: Variables used to classify
        priors: Prior probability per group
        leave_one_out: Also produce the cross-validated table

    Returns:
        ClassificationResultsParams
    """
    variables = list(variables)
    funcs = classification_function_coefficients(dataset, variables, priors, epsilon=epsilon)
    X, group_index, _ = dataset.stacked_cases(variables)
    scores = X @ funcs.coefficients + funcs.constants
    predicted = np.argmax(scores, axis=1)
    g = dataset.num_groups
    original = _table(group_index, predicted, g)

    cross_validated = None
    if leave_one_out:
        sscp = within_groups_sscp(dataset, variables)
        log_priors = np.log([priors[grp] for grp in dataset.group_labels])
        loo = _leave_one_out_predictions(
            dataset, variables, X, group_index, sscp, log_priors, epsilon
        )
        cross_validated = _table(group_index, loo, g)

    return ClassificationResultsParams(
        groups=dataset.group_labels,
        priors=dict(priors),
        original=original,
        cross_validated=cross_validated,
    )


def casewise_statistics(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    priors: dict[str, float],
    *,
    limit: int | None = None,
    epsilon: float = DEFAULT_EPSILON,
) -> CasewiseParams:
    """
    Per-case predicted group, posterior probabilities and distances.

    Distances are squared Euclidean distances from the case's canonical
    scores to each group centroid; P(D > d | G = g) uses a chi-square
    with as many degrees of freedom as there are functions.

    Args:
        limit: Report only the first ``limit`` cases (record order)
    """
    variables = list(variables)
    canon = canonical_functions(dataset, variables, epsilon=epsilon)
    groups = dataset.group_labels
    X, group_index, case_number = dataset.stacked_cases(variables)

    scores = X @ canon.unstandardized + canon.constants
    centroids = np.vstack([canon.centroids[g] for g in groups])
    d2 = ((scores[:, None, :] - centroids[None, :, :]) ** 2).sum(axis=2)
    log_post = np.log([priors[g] for g in groups])[None, :] - 0.5 * d2
    log_post -= log_post.max(axis=1, keepdims=True)
    posterior = np.exp(log_post)
    posterior /= posterior.sum(axis=1, keepdims=True)

    df = canon.unstandardized.shape[1]
    n_cases = len(X)
    shown = n_cases if limit is None else min(limit, n_cases)
    rows = []
    for i in range(shown):
        ranked = np.argsort(-posterior[i], kind='stable')
        best = int(ranked[0])
        second = int(ranked[1]) if len(ranked) > 1 else None
        rows.append(CasewiseRow(
            case_number=int(case_number[i]),
            actual_group=groups[int(group_index[i])],
            predicted_group=groups[best],
            p_value=chi_square_p_value(float(d2[i, best]), df),
            df=df,
            posterior=float(posterior[i, best]),
            squared_distance=float(d2[i, best]),
            second_group=groups[second] if second is not None else None,
            second_posterior=float(posterior[i, second]) if second is not None else None,
            second_squared_distance=float(d2[i, second]) if second is not None else None,
        ))

    return CasewiseParams(rows=tuple(rows), n_cases=n_cases, truncated=shown < n_cases)
