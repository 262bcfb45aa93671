"""
Variable selection criteria for stepwise discriminant analysis.

Each MethodType has its own F-to-enter / F-to-remove formula and its own
rule for picking the best candidate:

    WILKS        change in overall Wilks' lambda; best = smallest lambda,
                 worst = largest lambda after removal
    UNEXPLAINED  change in sum over pairs of 4 / (4 + D^2)
    MAHALANOBIS  smallest pairwise D^2 of the enlarged model
    F_RATIO      smallest pairwise F of the enlarged model
    RAOS         change in Rao's V; best = first candidate with F >= v_enter

For every method except WILKS the best candidate is the top of the list
sorted by F (descending) and the worst is the smallest F-to-remove.
With no variable included yet, every method except UNEXPLAINED enters on
the univariate F.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Sequence

import numpy as np

from pydiscriminant.core.compute.parallel import ordered_map
from pydiscriminant.core.compute.precision import DEFAULT_EPSILON
from pydiscriminant.core.tracing import NullTracer, Tracer
from pydiscriminant.discriminant._common import VariableInAnalysis, VariableNotInAnalysis
from pydiscriminant.discriminant._distance import (
    min_f_ratio,
    min_mahalanobis_distance,
    raos_v,
    total_unexplained_variation,
)
from pydiscriminant.discriminant._matrix import f_p_value
from pydiscriminant.discriminant._significance import (
    overall_wilks_lambda,
    tolerance,
    univariate_f,
)
from pydiscriminant.discriminant.config import MethodOptions
from pydiscriminant.discriminant.design import AnalyzedDataset


class MethodType(Enum):
    WILKS = 'wilks'
    UNEXPLAINED = 'unexplained'
    MAHALANOBIS = 'mahalanobis'
    F_RATIO = 'f_ratio'
    RAOS = 'raos'

    @classmethod
    def from_options(cls, options: MethodOptions) -> 'MethodType':
        """First method flag set, in priority order; WILKS if none is set."""
        for flag, method in (
            ('wilks', cls.WILKS),
            ('unexplained', cls.UNEXPLAINED),
            ('mahalonobis', cls.MAHALANOBIS),
            ('f_ratio', cls.F_RATIO),
            ('raos', cls.RAOS),
        ):
            if getattr(options, flag):
                return method
        return cls.WILKS


# =====================================================================
# F-to-enter
# =====================================================================
# Every function receives (candidate, dataset, current, epsilon) and
# returns (F, lambda). n = cases, g = groups, q = len(current).


def _wilks_enter(candidate, dataset, current, epsilon):
    if not current:
        return univariate_f(candidate, dataset)
    n, g, q = dataset.total_cases, dataset.num_groups, len(current)
    lam_cur = overall_wilks_lambda(dataset, current)
    lam_new = overall_wilks_lambda(dataset, [*current, candidate])
    df1 = g - 1
    df2 = n - q - 1 - df1
    if df1 <= 0 or df2 <= 0 or not (0.0 < lam_new < lam_cur):
        return 0.0, lam_new
    return ((lam_cur - lam_new) / lam_new) * df2 / df1, lam_new


def _unexplained_enter(candidate, dataset, current, epsilon):
    n, g, q = dataset.total_cases, dataset.num_groups, len(current)
    u_cur = total_unexplained_variation(dataset, current, epsilon=epsilon)
    u_new = total_unexplained_variation(dataset, [*current, candidate], epsilon=epsilon)
    df1 = g - 1
    df2 = n - q - 1 - df1
    f = 0.0
    if df1 > 0 and df2 > 0 and 0.0 < u_new < u_cur:
        f = ((u_cur - u_new) / u_new) * df2 / df1
    lam = df2 / (df2 + df1 * f) if f > 0 else 1.0
    return f, lam


def _mahalanobis_enter(candidate, dataset, current, epsilon):
    if not current:
        return univariate_f(candidate, dataset)
    n, g = dataset.total_cases, dataset.num_groups
    new = [*current, candidate]
    p = len(new)
    d2 = min_mahalanobis_distance(dataset, new, epsilon=epsilon)
    df = n - g - p + 1
    if n - g <= 0 or df <= 0:
        return 0.0, 1.0
    f = d2 * df / (p * (n - g))
    lam = df / (df + p * f) if df + p * f > 0 else 1.0
    return f, lam


def _f_ratio_enter(candidate, dataset, current, epsilon):
    if not current:
        return univariate_f(candidate, dataset)
    n, g = dataset.total_cases, dataset.num_groups
    new = [*current, candidate]
    f = min_f_ratio(dataset, new, epsilon=epsilon)
    df2 = n - g - len(new) + 1
    lam = df2 / (df2 + f) if df2 > 0 and df2 + f > 0 else 1.0
    return f, lam


def _raos_enter(candidate, dataset, current, epsilon):
    if not current:
        return univariate_f(candidate, dataset)
    n, g, q = dataset.total_cases, dataset.num_groups, len(current)
    v_cur = raos_v(dataset, current)
    v_new = raos_v(dataset, [*current, candidate])
    df1 = g - 1
    df2 = n - q - g
    f = (v_new - v_cur) / df1 if df1 > 0 and df2 > 0 else 0.0
    lam = 1.0 / (1.0 + v_new / n) if n > 0 else 1.0
    return f, lam


# =====================================================================
# F-to-remove
# =====================================================================
# (variable, dataset, current, epsilon) -> (F, lambda after removal)


def _wilks_remove(variable, dataset, current, epsilon):
    n, g, q = dataset.total_cases, dataset.num_groups, len(current)
    reduced = [v for v in current if v != variable]
    lam_cur = overall_wilks_lambda(dataset, current)
    lam_red = overall_wilks_lambda(dataset, reduced)
    df1 = g - 1
    df2 = n - q + 1 - df1
    if df1 <= 0 or df2 <= 0 or not (0.0 < lam_cur < lam_red):
        return 0.0, lam_red
    return ((lam_red - lam_cur) / lam_cur) * df2 / df1, lam_red


def _unexplained_remove(variable, dataset, current, epsilon):
    n, g, q = dataset.total_cases, dataset.num_groups, len(current)
    reduced = [v for v in current if v != variable]
    u_cur = total_unexplained_variation(dataset, current, epsilon=epsilon)
    u_red = total_unexplained_variation(dataset, reduced, epsilon=epsilon)
    df1 = g - 1
    df2 = n - q + 1 - df1
    f = 0.0
    if df1 > 0 and df2 > 0 and 0.0 < u_cur < u_red:
        f = ((u_red - u_cur) / u_cur) * df2 / df1
    lam = df2 / (df2 + df1 * f) if f > 0 else 1.0
    return f, lam


def _mahalanobis_remove(variable, dataset, current, epsilon):
    n, g, p = dataset.total_cases, dataset.num_groups, len(current)
    reduced = [v for v in current if v != variable]
    d2_cur = min_mahalanobis_distance(dataset, current, epsilon=epsilon)
    d2_red = min_mahalanobis_distance(dataset, reduced, epsilon=epsilon)
    decrease = d2_cur - d2_red
    df = n - g - p + 2
    if n - g <= 0 or df <= 0 or decrease <= 0:
        return 0.0, 1.0
    f = decrease * df / ((n - g) * (1.0 + decrease / (n - g)))
    lam = df / (df + f) if df + f > 0 else 1.0
    return f, lam


def _f_ratio_remove(variable, dataset, current, epsilon):
    n, g = dataset.total_cases, dataset.num_groups
    reduced = [v for v in current if v != variable]
    f_cur = min_f_ratio(dataset, current, epsilon=epsilon)
    f_red = min_f_ratio(dataset, reduced, epsilon=epsilon)
    df2 = n - g - len(reduced) + 1
    lam = df2 / (df2 + f_red) if df2 > 0 and df2 + f_red > 0 else 1.0
    return f_cur - f_red, lam


def _raos_remove(variable, dataset, current, epsilon):
    n, g, q = dataset.total_cases, dataset.num_groups, len(current)
    reduced = [v for v in current if v != variable]
    v_cur = raos_v(dataset, current)
    v_red = raos_v(dataset, reduced)
    df1 = g - 1
    df2 = n - q + 1 - g
    f = (v_cur - v_red) / df1 if df1 > 0 and df2 > 0 else 0.0
    lam = 1.0 / (1.0 + v_red / n) if n > 0 else 1.0
    return f, lam


_Criterion = Callable[[str, AnalyzedDataset, list[str], float], tuple[float, float]]

_ENTER: dict[MethodType, _Criterion] = {
    MethodType.WILKS: _wilks_enter,
    MethodType.UNEXPLAINED: _unexplained_enter,
    MethodType.MAHALANOBIS: _mahalanobis_enter,
    MethodType.F_RATIO: _f_ratio_enter,
    MethodType.RAOS: _raos_enter,
}

_REMOVE: dict[MethodType, _Criterion] = {
    MethodType.WILKS: _wilks_remove,
    MethodType.UNEXPLAINED: _unexplained_remove,
    MethodType.MAHALANOBIS: _mahalanobis_remove,
    MethodType.F_RATIO: _f_ratio_remove,
    MethodType.RAOS: _raos_remove,
}


def f_to_enter(
    candidate: str,
    dataset: AnalyzedDataset,
    current: Sequence[str],
    method: MethodType,
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> tuple[float, float]:
    """
    F-to-enter of a candidate given the variables already in the model.

    Returns:
        (F, lambda) where lambda is the method's lambda for the enlarged
        model
    """
    f, lam = _ENTER[method](candidate, dataset, list(current), epsilon)
    return float(f), float(lam)


def f_to_remove(
    variable: str,
    dataset: AnalyzedDataset,
    current: Sequence[str],
    method: MethodType,
    *,
    epsilon: float = DEFAULT_EPSILON,
) -> tuple[float, float]:
    """
    F-to-remove of an included variable.

    Returns:
        (F, lambda) where lambda is the method's lambda once the variable
        is removed
    """
    f, lam = _REMOVE[method](variable, dataset, list(current), epsilon)
    return float(f), float(lam)


# =====================================================================
# Candidate analysis
# =====================================================================


@dataclass(frozen=True)
class _Dropped:
    variable: str
    reason: str


def analyze_variables_not_in_model(
    candidates: Sequence[str],
    dataset: AnalyzedDataset,
    current: Sequence[str],
    method: MethodType,
    options: MethodOptions,
    *,
    epsilon: float = DEFAULT_EPSILON,
    n_jobs: int | None = 1,
    tracer: Tracer | None = None,
) -> list[VariableNotInAnalysis]:
    """
    Evaluate every excluded variable as an entry candidate.

    Candidates are evaluated independently. A candidate is dropped when
    its tolerance is below options.tolerance, when its computation hits
    a singular matrix, or when its statistics are not finite.

    Returns:
        Surviving candidates sorted by F-to-enter, largest first; ties
        keep input order
    """
    tracer = tracer if tracer is not None else NullTracer()
    current = list(current)

    def _evaluate(candidate: str) -> VariableNotInAnalysis | _Dropped:
        tol, min_tol = tolerance(candidate, dataset, current, epsilon=epsilon)
        if tol < options.tolerance:
            return _Dropped(candidate, f"tolerance {tol:.6g} below {options.tolerance}")
        try:
            f, lam = f_to_enter(candidate, dataset, current, method, epsilon=epsilon)
        except np.linalg.LinAlgError as e:
            return _Dropped(candidate, f"linear algebra failure: {e}")
        if not (np.isfinite(f) and np.isfinite(lam)):
            return _Dropped(candidate, "non-finite statistic")
        return VariableNotInAnalysis(
            variable=candidate,
            tolerance=tol,
            min_tolerance=min_tol,
            f_to_enter=f,
            wilks_lambda=lam,
        )

    kept: list[VariableNotInAnalysis] = []
    for item in ordered_map(_evaluate, candidates, n_jobs=n_jobs):
        if isinstance(item, _Dropped):
            tracer.event('candidate_dropped', variable=item.variable, reason=item.reason)
        else:
            kept.append(item)
    return sorted(kept, key=lambda v: v.f_to_enter, reverse=True)


def analyze_variables_in_model(
    dataset: AnalyzedDataset,
    current: Sequence[str],
    method: MethodType,
    *,
    epsilon: float = DEFAULT_EPSILON,
    n_jobs: int | None = 1,
    tracer: Tracer | None = None,
) -> list[VariableInAnalysis]:
    """
    Evaluate every included variable as a removal candidate.

    Tolerance is measured against the other included variables.

    Returns:
        One entry per variable whose statistics could be computed, in
        model (entry) order
    """
    tracer = tracer if tracer is not None else NullTracer()
    current = list(current)

    def _evaluate(variable: str) -> VariableInAnalysis | _Dropped:
        others = [v for v in current if v != variable]
        tol, min_tol = tolerance(variable, dataset, others, epsilon=epsilon)
        try:
            f, lam = f_to_remove(variable, dataset, current, method, epsilon=epsilon)
        except np.linalg.LinAlgError as e:
            return _Dropped(variable, f"linear algebra failure: {e}")
        if not (np.isfinite(f) and np.isfinite(lam)):
            return _Dropped(variable, "non-finite statistic")
        return VariableInAnalysis(
            variable=variable,
            tolerance=tol,
            min_tolerance=min_tol,
            f_to_remove=f,
            wilks_lambda=lam,
        )

    kept: list[VariableInAnalysis] = []
    for item in ordered_map(_evaluate, current, n_jobs=n_jobs):
        if isinstance(item, _Dropped):
            tracer.event('candidate_dropped', variable=item.variable, reason=item.reason)
        else:
            kept.append(item)
    return kept


def find_best_variable_to_enter(
    analysis: Sequence[VariableNotInAnalysis],
    method: MethodType,
    v_enter: float = 0.0,
) -> VariableNotInAnalysis | None:
    """
    Pick the entry candidate from an F-sorted candidate list.

    RAOS takes the first candidate whose F reaches v_enter (else the
    top); WILKS takes the smallest lambda (first one on ties); other
    methods take the top of the list.
    """
    if not analysis:
        return None
    if method is MethodType.RAOS:
        return next((v for v in analysis if v.f_to_enter >= v_enter), analysis[0])
    if method is MethodType.WILKS:
        return min(analysis, key=lambda v: v.wilks_lambda)
    return analysis[0]


def find_worst_variable_to_remove(
    analysis: Sequence[VariableInAnalysis],
    method: MethodType,
    exclude: str | None = None,
) -> VariableInAnalysis | None:
    """
    Pick the removal candidate among included variables.

    WILKS takes the largest lambda after removal; other methods take the
    smallest F-to-remove. ``exclude`` (the variable entered in the same
    step) is never chosen.
    """
    pool = [v for v in analysis if v.variable != exclude]
    if not pool:
        return None
    if method is MethodType.WILKS:
        return max(pool, key=lambda v: v.wilks_lambda)
    return min(pool, key=lambda v: v.f_to_remove)


def passes_entry(f: float, options: MethodOptions, g: int, n: int) -> bool:
    """
    Entry criterion for a candidate.

    f_value: F >= f_entry. f_probability: P(F; g-1, n-g) <= p_entry. The
    degrees of freedom do not depend on how many variables are included.
    """
    if options.f_value:
        return f >= options.f_entry
    if options.f_probability:
        return f_p_value(f, g - 1, n - g) <= options.p_entry
    return False


def passes_removal(f: float, options: MethodOptions, g: int, n: int) -> bool:
    """
    Removal criterion for an included variable.

    f_value: F <= f_removal. f_probability: P(F; g-1, n-g) >= p_removal.
    """
    if options.f_value:
        return f <= options.f_removal
    if options.f_probability:
        return f_p_value(f, g - 1, n - g) >= options.p_removal
    return False
