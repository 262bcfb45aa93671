"""
Common data types for discriminant analysis.

Contains the frozen parameter payloads that go inside Result[P] envelopes.
Each payload is a pure data container: no methods, no computation.
Group-indexed tuples follow AnalyzedDataset.group_labels order.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray


# =====================================================================
# Descriptive tables
# =====================================================================


@dataclass(frozen=True)
class ProcessingSummaryParams:
    """Analysis case processing summary (counts of cases)."""
    valid: int
    missing_or_out_of_range_group: int
    missing_discriminating: int
    missing_both: int
    unselected: int
    total: int


@dataclass(frozen=True)
class VariableStatistics:
    """Mean / standard deviation / valid N of one variable in one group."""
    mean: float
    std_deviation: float
    n_unweighted: int
    n_weighted: float


@dataclass(frozen=True)
class GroupStatisticsParams:
    """Group statistics; the 'Total' key holds the pooled-over-groups row."""
    variables: tuple[str, ...]
    groups: tuple[str, ...]
    statistics: dict[str, dict[str, VariableStatistics]]   # group -> variable -> stats


@dataclass(frozen=True)
class EqualityTestRow:
    """Tests of equality of group means: one row per variable."""
    variable: str
    wilks_lambda: float
    f_value: float
    df1: int
    df2: int
    p_value: float


@dataclass(frozen=True)
class EqualityTestsParams:
    rows: tuple[EqualityTestRow, ...]


@dataclass(frozen=True)
class PooledMatricesParams:
    """Pooled within-groups covariance and correlation matrices."""
    variables: tuple[str, ...]
    covariance: NDArray[np.floating]
    correlation: NDArray[np.floating]
    df: int
    note: str


@dataclass(frozen=True)
class CovarianceMatricesParams:
    """Separate-groups covariance matrices plus the total-sample matrix."""
    variables: tuple[str, ...]
    group_covariances: dict[str, NDArray[np.floating]]
    total_covariance: NDArray[np.floating]
    total_df: int


# =====================================================================
# Homogeneity and significance tests
# =====================================================================


@dataclass(frozen=True)
class LogDeterminantRow:
    """One row of the Box's M log-determinants table."""
    group: str              # group label, or 'Pooled within-groups'
    rank: int
    log_determinant: float


@dataclass(frozen=True)
class BoxMTestParams:
    """Box's M test of equality of group covariance matrices."""
    box_m: float
    f_approx: float
    df1: float
    df2: float
    p_value: float
    note: str
    log_determinants: tuple[LogDeterminantRow, ...]


@dataclass(frozen=True)
class WilksLambdaTestParams:
    """
    Wilks' lambda test of the canonical functions.

    Parallel tuples, one entry per test ("1 through m", "2 through m", ...).
    """
    test_of_functions: tuple[str, ...]
    wilks_lambda: tuple[float, ...]
    chi_square: tuple[float, ...]
    df: tuple[int, ...]
    significance: tuple[float, ...]


# =====================================================================
# Stepwise selection
# =====================================================================


@dataclass(frozen=True)
class VariableInAnalysis:
    """Snapshot of an included variable at one step."""
    variable: str
    tolerance: float
    min_tolerance: float
    f_to_remove: float
    wilks_lambda: float


@dataclass(frozen=True)
class VariableNotInAnalysis:
    """Snapshot of an excluded (candidate) variable at one step."""
    variable: str
    tolerance: float
    min_tolerance: float
    f_to_enter: float
    wilks_lambda: float


@dataclass(frozen=True)
class PairwiseComparison:
    """F test of the Mahalanobis distance between two group centroids."""
    group: str
    other_group: str
    squared_distance: float
    f_value: float
    df1: int
    df2: int
    p_value: float


@dataclass(frozen=True)
class StepRecord:
    """
    One row of the stepwise history.

    Step 0 is the starting state (no variables). For later steps
    ``action`` is 'Entered' or 'Removed' and ``variable`` names the
    variable that changed.
    """
    step: int
    action: str | None
    variable: str | None
    wilks_lambda: float
    f_value: float
    df1: int
    df2: int
    df3: int
    exact_df1: int
    exact_df2: int
    significance: float
    included: tuple[str, ...]
    variables_in_analysis: tuple[VariableInAnalysis, ...]
    variables_not_in_analysis: tuple[VariableNotInAnalysis, ...]
    pairwise_comparisons: dict[str, tuple[PairwiseComparison, ...]] | None


@dataclass(frozen=True)
class StepwiseParams:
    """Parameter payload for a stepwise variable-selection run."""
    steps: tuple[StepRecord, ...]
    final_variables: tuple[str, ...]
    method: str
    criterion: str            # 'f_value', 'f_probability' or 'none'
    max_steps: int
    hit_step_cap: bool
    note: tuple[str, ...]


# =====================================================================
# Canonical discriminant functions
# =====================================================================


@dataclass(frozen=True)
class EigenParams:
    """Eigenvalues of W^-1 B for the retained canonical functions."""
    eigenvalues: tuple[float, ...]
    pct_variance: tuple[float, ...]
    cumulative_pct: tuple[float, ...]
    canonical_correlation: tuple[float, ...]


@dataclass(frozen=True)
class CanonicalFunctionParams:
    """
    Canonical discriminant function coefficients.

    Coefficient matrices are (n_variables, n_functions).
    """
    variables: tuple[str, ...]
    unstandardized: NDArray[np.floating]
    constants: NDArray[np.floating]
    standardized: NDArray[np.floating]
    structure: NDArray[np.floating]
    centroids: dict[str, NDArray[np.floating]]     # group -> function values
    eigen: EigenParams


# =====================================================================
# Classification
# =====================================================================


@dataclass(frozen=True)
class ClassificationFunctionParams:
    """Fisher's linear classification functions; coefficients are (p, g)."""
    variables: tuple[str, ...]
    groups: tuple[str, ...]
    coefficients: NDArray[np.floating]
    constants: NDArray[np.floating]
    priors: dict[str, float]


@dataclass(frozen=True)
class ClassificationTable:
    """Actual (rows) by predicted (columns) group membership."""
    counts: NDArray[np.integer]
    percentages: NDArray[np.floating]
    percent_correct: float


@dataclass(frozen=True)
class ClassificationResultsParams:
    groups: tuple[str, ...]
    priors: dict[str, float]
    original: ClassificationTable
    cross_validated: ClassificationTable | None


@dataclass(frozen=True)
class CasewiseRow:
    """Casewise statistics for one case."""
    case_number: int
    actual_group: str
    predicted_group: str
    p_value: float                 # P(D > d | G = g)
    df: int
    posterior: float               # P(G = g | D = d)
    squared_distance: float
    second_group: str | None
    second_posterior: float | None
    second_squared_distance: float | None


@dataclass(frozen=True)
class CasewiseParams:
    rows: tuple[CasewiseRow, ...]
    n_cases: int
    truncated: bool


# =====================================================================
# Aggregate run
# =====================================================================


@dataclass(frozen=True)
class ProcedureError:
    """A procedure that failed inside an aggregate run."""
    procedure: str
    message: str
    error_type: str
