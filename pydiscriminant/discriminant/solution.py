"""
User-facing discriminant analysis solution types.

Each solution wraps a Result[Params] and provides accessors and an
SPSS-style text summary() of its table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import numpy as np
from numpy.typing import NDArray

from pydiscriminant.core.result import Result
from pydiscriminant.discriminant._common import (
    BoxMTestParams,
    CanonicalFunctionParams,
    CasewiseParams,
    CasewiseRow,
    ClassificationFunctionParams,
    ClassificationResultsParams,
    CovarianceMatricesParams,
    EigenParams,
    EqualityTestRow,
    EqualityTestsParams,
    GroupStatisticsParams,
    LogDeterminantRow,
    PairwiseComparison,
    PooledMatricesParams,
    ProcedureError,
    ProcessingSummaryParams,
    StepRecord,
    StepwiseParams,
    VariableInAnalysis,
    VariableNotInAnalysis,
    WilksLambdaTestParams,
)

_RULE = "=" * 72
_THIN = "-" * 72


def _significance_stars(p: float) -> str:
    if p < 0.001:
        return '***'
    elif p < 0.01:
        return '**'
    elif p < 0.05:
        return '*'
    elif p < 0.1:
        return '.'
    return ''


def _format_matrix(
    title: str,
    names: tuple[str, ...],
    matrix: NDArray[np.floating],
    columns: tuple[str, ...] | None = None,
) -> list[str]:
    columns = names if columns is None else columns
    lines = [title, f"{'':<16}" + "".join(f"{c:>14}" for c in columns)]
    for name, row in zip(names, matrix):
        lines.append(f"{name:<16}" + "".join(f"{x:>14.4f}" for x in row))
    return lines


class _ResultAccessors:
    """Envelope accessors shared by every solution."""
    _result: Result

    @property
    def info(self) -> dict[str, Any]:
        return self._result.info

    @property
    def timing(self) -> dict[str, float] | None:
        return self._result.timing

    @property
    def procedure(self) -> str:
        return self._result.procedure

    @property
    def warnings(self) -> tuple[str, ...]:
        return self._result.warnings


# =====================================================================
# Descriptive tables
# =====================================================================


@dataclass
class ProcessingSummarySolution(_ResultAccessors):
    """Analysis case processing summary."""
    _result: Result[ProcessingSummaryParams]

    @property
    def params(self) -> ProcessingSummaryParams:
        return self._result.params

    @property
    def valid(self) -> int:
        return self._result.params.valid

    @property
    def excluded(self) -> int:
        s = self._result.params
        return s.missing_or_out_of_range_group + s.missing_discriminating + s.missing_both

    @property
    def total(self) -> int:
        return self._result.params.total

    def summary(self) -> str:
        s = self._result.params
        total = s.total or 1
        rows = [
            ("Valid", s.valid),
            ("Missing or out-of-range group codes", s.missing_or_out_of_range_group),
            ("At least one missing discriminating variable", s.missing_discriminating),
            ("Both missing or out-of-range group codes and at least one "
             "missing discriminating variable", s.missing_both),
            ("Unselected", s.unselected),
            ("Total", s.total),
        ]
        lines = ["Analysis Case Processing Summary", _RULE, f"{'Unweighted Cases':<56} {'N':>6} {'Percent':>8}", _THIN]
        for label, count in rows:
            lines.append(f"{label[:56]:<56} {count:>6} {100.0 * count / total:>8.1f}")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"ProcessingSummarySolution(valid={self.valid}, total={self.total})"


@dataclass
class GroupStatisticsSolution(_ResultAccessors):
    """Group statistics (mean, std. deviation, valid N)."""
    _result: Result[GroupStatisticsParams]

    @property
    def statistics(self):
        return self._result.params.statistics

    @property
    def groups(self) -> tuple[str, ...]:
        return self._result.params.groups

    def summary(self) -> str:
        p = self._result.params
        lines = ["Group Statistics", _RULE,
                 f"{'Group':<12} {'Variable':<16} {'Mean':>12} {'Std. Dev.':>12} {'N':>8}", _THIN]
        for g in (*p.groups, 'Total'):
            for v in p.variables:
                s = p.statistics[g][v]
                lines.append(
                    f"{g:<12} {v:<16} {s.mean:>12.4f} {s.std_deviation:>12.4f} {s.n_unweighted:>8}"
                )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"GroupStatisticsSolution(groups={list(self.groups)})"


@dataclass
class EqualityTestsSolution(_ResultAccessors):
    """Tests of equality of group means."""
    _result: Result[EqualityTestsParams]

    @property
    def rows(self) -> tuple[EqualityTestRow, ...]:
        return self._result.params.rows

    def row(self, variable: str) -> EqualityTestRow:
        for r in self.rows:
            if r.variable == variable:
                return r
        raise KeyError(variable)

    def summary(self) -> str:
        lines = ["Tests of Equality of Group Means", _RULE,
                 f"{'Variable':<16} {'Wilks Lambda':>12} {'F':>10} {'df1':>5} {'df2':>6} {'Sig.':>10}",
                 _THIN]
        for r in self.rows:
            lines.append(
                f"{r.variable:<16} {r.wilks_lambda:>12.4f} {r.f_value:>10.4f} "
                f"{r.df1:>5} {r.df2:>6} {r.p_value:>10.4f} {_significance_stars(r.p_value)}"
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"EqualityTestsSolution(variables={[r.variable for r in self.rows]})"


@dataclass
class PooledMatricesSolution(_ResultAccessors):
    """Pooled within-groups matrices."""
    _result: Result[PooledMatricesParams]

    @property
    def covariance(self) -> NDArray[np.floating]:
        return self._result.params.covariance

    @property
    def correlation(self) -> NDArray[np.floating]:
        return self._result.params.correlation

    @property
    def df(self) -> int:
        return self._result.params.df

    @property
    def note(self) -> str:
        return self._result.params.note

    def summary(self) -> str:
        p = self._result.params
        lines = ["Pooled Within-Groups Matrices", _RULE]
        lines += _format_matrix("Covariance", p.variables, p.covariance)
        lines += [""] + _format_matrix("Correlation", p.variables, p.correlation)
        lines += [_THIN, p.note]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"PooledMatricesSolution(variables={list(self._result.params.variables)}, df={self.df})"


@dataclass
class CovarianceMatricesSolution(_ResultAccessors):
    """Separate-groups and total covariance matrices."""
    _result: Result[CovarianceMatricesParams]

    @property
    def group_covariances(self) -> dict[str, NDArray[np.floating]]:
        return self._result.params.group_covariances

    @property
    def total_covariance(self) -> NDArray[np.floating]:
        return self._result.params.total_covariance

    def summary(self) -> str:
        p = self._result.params
        lines = ["Covariance Matrices", _RULE]
        for g, cov in p.group_covariances.items():
            lines += _format_matrix(f"Group {g}", p.variables, cov) + [""]
        lines += _format_matrix("Total", p.variables, p.total_covariance)
        lines += [_THIN, f"a. The total covariance matrix has {p.total_df} degrees of freedom."]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"CovarianceMatricesSolution(groups={list(self.group_covariances)})"


# =====================================================================
# Box's M
# =====================================================================


@dataclass
class BoxMSolution(_ResultAccessors):
    """Box's M test of equality of covariance matrices."""
    _result: Result[BoxMTestParams]

    @property
    def box_m(self) -> float:
        return self._result.params.box_m

    @property
    def f_approx(self) -> float:
        return self._result.params.f_approx

    @property
    def df1(self) -> float:
        return self._result.params.df1

    @property
    def df2(self) -> float:
        return self._result.params.df2

    @property
    def p_value(self) -> float:
        return self._result.params.p_value

    @property
    def note(self) -> str:
        return self._result.params.note

    @property
    def log_determinants(self) -> tuple[LogDeterminantRow, ...]:
        return self._result.params.log_determinants

    def summary(self) -> str:
        lines = ["Log Determinants", _RULE, f"{'Group':<28} {'Rank':>6} {'Log Determinant':>18}", _THIN]
        for row in self.log_determinants:
            lines.append(f"{row.group:<28} {row.rank:>6} {row.log_determinant:>18.4f}")
        lines += [
            "",
            "Test Results",
            _RULE,
            f"Box's M:        {self.box_m:.4f}",
            f"F (approx.):    {self.f_approx:.4f}",
            f"df1:            {self.df1:.0f}",
            f"df2:            {self.df2:.3f}",
            f"Sig.:           {self.p_value:.4f} {_significance_stars(self.p_value)}",
            _THIN,
            self.note,
        ]
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"BoxMSolution(M={self.box_m:.4f}, F={self.f_approx:.4f}, p={self.p_value:.4g})"


# =====================================================================
# Stepwise
# =====================================================================


@dataclass
class StepwiseSolution(_ResultAccessors):
    """
    Stepwise variable selection history.

    The flat accessors (variables_entered, wilks_lambda, f_values, df1..)
    are parallel tuples over the steps after step 0.
    """
    _result: Result[StepwiseParams]

    @property
    def steps(self) -> tuple[StepRecord, ...]:
        """All step records, step 0 (empty model) first."""
        return self._result.params.steps

    @property
    def final_variables(self) -> tuple[str, ...]:
        return self._result.params.final_variables

    @property
    def method(self) -> str:
        return self._result.params.method

    @property
    def note(self) -> tuple[str, ...]:
        return self._result.params.note

    @property
    def hit_step_cap(self) -> bool:
        return self._result.params.hit_step_cap

    @property
    def _changes(self) -> tuple[StepRecord, ...]:
        return self.steps[1:]

    @property
    def variables_entered(self) -> tuple[str | None, ...]:
        return tuple(s.variable if s.action == 'Entered' else None for s in self._changes)

    @property
    def variables_removed(self) -> tuple[str | None, ...]:
        return tuple(s.variable if s.action == 'Removed' else None for s in self._changes)

    @property
    def wilks_lambda(self) -> tuple[float, ...]:
        return tuple(s.wilks_lambda for s in self._changes)

    @property
    def f_values(self) -> tuple[float, ...]:
        return tuple(s.f_value for s in self._changes)

    @property
    def df1(self) -> tuple[int, ...]:
        return tuple(s.df1 for s in self._changes)

    @property
    def df2(self) -> tuple[int, ...]:
        return tuple(s.df2 for s in self._changes)

    @property
    def df3(self) -> tuple[int, ...]:
        return tuple(s.df3 for s in self._changes)

    @property
    def significance(self) -> tuple[float, ...]:
        return tuple(s.significance for s in self._changes)

    @property
    def variables_in_analysis(self) -> dict[int, tuple[VariableInAnalysis, ...]]:
        return {s.step: s.variables_in_analysis for s in self.steps}

    @property
    def variables_not_in_analysis(self) -> dict[int, tuple[VariableNotInAnalysis, ...]]:
        return {s.step: s.variables_not_in_analysis for s in self.steps}

    @property
    def pairwise_comparisons(self) -> dict[int, dict[str, tuple[PairwiseComparison, ...]]]:
        return {
            s.step: s.pairwise_comparisons
            for s in self.steps if s.pairwise_comparisons is not None
        }

    @property
    def final_wilks_lambda(self) -> float:
        return self.steps[-1].wilks_lambda

    def summary(self) -> str:
        lines = [
            f"Variables Entered/Removed (method: {self.method})",
            _RULE,
            f"{'Step':>4} {'Action':<8} {'Variable':<16} {'Lambda':>8} "
            f"{'F':>10} {'df1':>4} {'df2':>6} {'Sig.':>10}",
            _THIN,
        ]
        for s in self._changes:
            lines.append(
                f"{s.step:>4} {s.action:<8} {s.variable:<16} {s.wilks_lambda:>8.4f} "
                f"{s.f_value:>10.4f} {s.exact_df1:>4} {s.exact_df2:>6} "
                f"{s.significance:>10.4f} {_significance_stars(s.significance)}"
            )
        if not self._changes:
            lines.append("No variables qualified for entry.")
        lines.append(_THIN)
        lines.extend(self.note)

        last = self.steps[-1]
        lines += ["", "Variables in the Analysis (final step)", _THIN]
        for v in last.variables_in_analysis:
            lines.append(
                f"  {v.variable:<16} tol={v.tolerance:.4f} F-to-remove={v.f_to_remove:.4f} "
                f"lambda={v.wilks_lambda:.4f}"
            )
        lines += ["", "Variables Not in the Analysis (final step)", _THIN]
        for v in last.variables_not_in_analysis:
            lines.append(
                f"  {v.variable:<16} tol={v.tolerance:.4f} F-to-enter={v.f_to_enter:.4f} "
                f"lambda={v.wilks_lambda:.4f}"
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return (
            f"StepwiseSolution(method={self.method!r}, steps={len(self.steps) - 1}, "
            f"final={list(self.final_variables)})"
        )


# =====================================================================
# Canonical functions
# =====================================================================


@dataclass
class WilksLambdaSolution(_ResultAccessors):
    """Wilks' lambda test of the canonical functions."""
    _result: Result[WilksLambdaTestParams]

    @property
    def test_of_functions(self) -> tuple[str, ...]:
        return self._result.params.test_of_functions

    @property
    def wilks_lambda(self) -> tuple[float, ...]:
        return self._result.params.wilks_lambda

    @property
    def chi_square(self) -> tuple[float, ...]:
        return self._result.params.chi_square

    @property
    def df(self) -> tuple[int, ...]:
        return self._result.params.df

    @property
    def significance(self) -> tuple[float, ...]:
        return self._result.params.significance

    def summary(self) -> str:
        lines = ["Wilks' Lambda", _RULE,
                 f"{'Test of Function(s)':<22} {'Wilks Lambda':>12} {'Chi-square':>12} {'df':>5} {'Sig.':>10}",
                 _THIN]
        for label, lam, chi, df, sig in zip(
            self.test_of_functions, self.wilks_lambda, self.chi_square, self.df, self.significance
        ):
            lines.append(
                f"{label:<22} {lam:>12.4f} {chi:>12.4f} {df:>5} {sig:>10.4f} {_significance_stars(sig)}"
            )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"WilksLambdaSolution(functions={len(self.test_of_functions)})"


@dataclass
class CanonicalSolution(_ResultAccessors):
    """Eigenvalues and canonical discriminant function coefficients."""
    _result: Result[CanonicalFunctionParams]

    @property
    def eigen(self) -> EigenParams:
        return self._result.params.eigen

    @property
    def eigenvalues(self) -> tuple[float, ...]:
        return self._result.params.eigen.eigenvalues

    @property
    def canonical_correlation(self) -> tuple[float, ...]:
        return self._result.params.eigen.canonical_correlation

    @property
    def unstandardized(self) -> NDArray[np.floating]:
        return self._result.params.unstandardized

    @property
    def constants(self) -> NDArray[np.floating]:
        return self._result.params.constants

    @property
    def standardized(self) -> NDArray[np.floating]:
        return self._result.params.standardized

    @property
    def structure(self) -> NDArray[np.floating]:
        return self._result.params.structure

    @property
    def centroids(self) -> dict[str, NDArray[np.floating]]:
        return self._result.params.centroids

    @property
    def n_functions(self) -> int:
        return len(self.eigenvalues)

    def summary(self) -> str:
        p = self._result.params
        e = p.eigen
        funcs = tuple(f"Function {k + 1}" for k in range(self.n_functions))
        lines = ["Eigenvalues", _RULE,
                 f"{'Function':<10} {'Eigenvalue':>12} {'% of Var.':>10} {'Cum. %':>10} {'Canon. Corr.':>13}",
                 _THIN]
        for k in range(self.n_functions):
            lines.append(
                f"{k + 1:<10} {e.eigenvalues[k]:>12.4f} {e.pct_variance[k]:>10.2f} "
                f"{e.cumulative_pct[k]:>10.2f} {e.canonical_correlation[k]:>13.4f}"
            )
        lines += [""] + _format_matrix(
            "Standardized Canonical Discriminant Function Coefficients",
            p.variables, p.standardized, funcs,
        )
        lines += [""] + _format_matrix("Structure Matrix", p.variables, p.structure, funcs)
        if self.info.get('show_unstandardized', True):
            lines += [""] + _format_matrix(
                "Canonical Discriminant Function Coefficients (unstandardized)",
                (*p.variables, "(Constant)"),
                np.vstack([p.unstandardized, p.constants]),
                funcs,
            )
        groups = tuple(p.centroids)
        lines += [""] + _format_matrix(
            "Functions at Group Centroids",
            groups,
            np.vstack([p.centroids[g] for g in groups]),
            funcs,
        )
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"CanonicalSolution(functions={self.n_functions})"


# =====================================================================
# Classification
# =====================================================================


@dataclass
class ClassificationSolution(_ResultAccessors):
    """Classification function coefficients and classification results."""
    _result: Result[ClassificationResultsParams]
    functions: ClassificationFunctionParams | None = None

    @property
    def priors(self) -> dict[str, float]:
        return self._result.params.priors

    @property
    def groups(self) -> tuple[str, ...]:
        return self._result.params.groups

    @property
    def original(self):
        return self._result.params.original

    @property
    def cross_validated(self):
        return self._result.params.cross_validated

    @property
    def percent_correct(self) -> float:
        return self._result.params.original.percent_correct

    def summary(self) -> str:
        lines = ["Prior Probabilities for Groups", _RULE]
        for g, prior in self.priors.items():
            lines.append(f"  {g:<16} {prior:.4f}")
        if self.functions is not None:
            f = self.functions
            lines += [""] + _format_matrix(
                "Classification Function Coefficients",
                (*f.variables, "(Constant)"),
                np.vstack([f.coefficients, f.constants]),
                f.groups,
            )
        tables = [("Original", self.original)]
        if self.cross_validated is not None:
            tables.append(("Cross-validated", self.cross_validated))
        for label, table in tables:
            lines += [""] + _format_matrix(f"Classification Results: {label} (count)",
                                           self.groups, table.counts.astype(float), self.groups)
            lines.append(f"{table.percent_correct:.1f}% of {label.lower()} grouped cases correctly classified.")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"ClassificationSolution(groups={list(self.groups)}, correct={self.percent_correct:.1f}%)"


@dataclass
class CasewiseSolution(_ResultAccessors):
    """Casewise statistics."""
    _result: Result[CasewiseParams]

    @property
    def rows(self) -> tuple[CasewiseRow, ...]:
        return self._result.params.rows

    @property
    def truncated(self) -> bool:
        return self._result.params.truncated

    def summary(self) -> str:
        lines = ["Casewise Statistics", _RULE,
                 f"{'Case':>5} {'Actual':<10} {'Predicted':<10} {'P(D>d|G)':>9} "
                 f"{'P(G|D)':>8} {'D^2':>9} {'2nd':<10} {'P(G|D)':>8}",
                 _THIN]
        for r in self.rows:
            flag = '**' if r.actual_group != r.predicted_group else '  '
            second = r.second_group or ''
            second_post = f"{r.second_posterior:>8.4f}" if r.second_posterior is not None else f"{'':>8}"
            lines.append(
                f"{r.case_number:>5} {r.actual_group:<10} {r.predicted_group + flag:<10} "
                f"{r.p_value:>9.4f} {r.posterior:>8.4f} {r.squared_distance:>9.3f} "
                f"{second:<10} {second_post}"
            )
        if self.truncated:
            lines.append(f"(first {len(self.rows)} of {self._result.params.n_cases} cases)")
        lines.append("** Misclassified case")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"CasewiseSolution(rows={len(self.rows)})"


# =====================================================================
# Aggregate
# =====================================================================


@dataclass
class DiscriminantAnalysisSolution:
    """
    Everything a full discriminant analysis run produced.

    Fields are None for procedures that were not requested or that
    failed; failures are listed in ``errors``.
    """
    processing_summary: ProcessingSummarySolution | None = None
    group_statistics: GroupStatisticsSolution | None = None
    equality_tests: EqualityTestsSolution | None = None
    pooled_matrices: PooledMatricesSolution | None = None
    covariance_matrices: CovarianceMatricesSolution | None = None
    box_m_test: BoxMSolution | None = None
    stepwise: StepwiseSolution | None = None
    wilks_lambda_test: WilksLambdaSolution | None = None
    canonical: CanonicalSolution | None = None
    classification: ClassificationSolution | None = None
    casewise: CasewiseSolution | None = None
    analysis_variables: tuple[str, ...] = ()
    errors: tuple[ProcedureError, ...] = ()
    timing: dict[str, float] | None = None
    warnings: tuple[str, ...] = field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return not self.errors

    def failed(self, procedure: str) -> bool:
        return any(e.procedure == procedure for e in self.errors)

    def summary(self) -> str:
        parts = []
        for name in (
            'processing_summary', 'group_statistics', 'equality_tests',
            'pooled_matrices', 'covariance_matrices', 'box_m_test', 'stepwise',
            'canonical', 'wilks_lambda_test', 'classification', 'casewise',
        ):
            sol = getattr(self, name)
            if sol is not None:
                parts.append(sol.summary())
        if self.errors:
            lines = ["Errors", _RULE]
            lines += [f"{e.procedure}: {e.error_type}: {e.message}" for e in self.errors]
            parts.append("\n".join(lines))
        return "\n\n".join(parts)

    def __repr__(self) -> str:
        produced = [
            name for name in (
                'processing_summary', 'group_statistics', 'equality_tests',
                'pooled_matrices', 'covariance_matrices', 'box_m_test', 'stepwise',
                'wilks_lambda_test', 'canonical', 'classification', 'casewise',
            ) if getattr(self, name) is not None
        ]
        return f"DiscriminantAnalysisSolution(produced={produced}, errors={len(self.errors)})"
