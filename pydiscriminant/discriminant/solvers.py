"""
Discriminant analysis solver dispatch.

Public API:
    case_processing_summary(data, config) -> ProcessingSummarySolution
    group_statistics(data, config, ...) -> GroupStatisticsSolution
    equality_of_group_means(data, config, ...) -> EqualityTestsSolution
    pooled_within_matrices(data, config, ...) -> PooledMatricesSolution
    covariance_matrices(data, config, ...) -> CovarianceMatricesSolution
    box_m_test(data, config, ...) -> BoxMSolution
    stepwise_statistics(data, config, ...) -> StepwiseSolution
    wilks_lambda_test(data, config, ...) -> WilksLambdaSolution
    canonical_discriminant(data, config, ...) -> CanonicalSolution
    classification(data, config, ...) -> ClassificationSolution
    casewise_statistics(data, config, ...) -> CasewiseSolution
    discriminant_analysis(data, config, ...) -> DiscriminantAnalysisSolution

``data`` is either a sequence of records (one mapping of variable name to
value per case) or an AnalyzedDataset. Records are screened with the
config's selection, group range and listwise deletion rules.
"""

from __future__ import annotations

import logging
import warnings
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from pydiscriminant.core.compute.timing import Timer
from pydiscriminant.core.exceptions import (
    ConfigurationError,
    PyDiscriminantError,
    ValidationError,
)
from pydiscriminant.core.result import Result
from pydiscriminant.core.tracing import Tracer, default_tracer
from pydiscriminant.discriminant._boxm import box_m_test_impl
from pydiscriminant.discriminant._canonical import canonical_functions, generalized_eigen
from pydiscriminant.discriminant._classify import (
    casewise_statistics as casewise_statistics_impl,
    classification_function_coefficients,
    classification_results,
    prior_probabilities,
)
from pydiscriminant.discriminant._common import ProcedureError, ProcessingSummaryParams
from pydiscriminant.discriminant._descriptive import (
    covariance_matrices_impl,
    equality_tests_impl,
    group_statistics_impl,
    pooled_matrices_impl,
)
from pydiscriminant.discriminant._significance import (
    wilks_lambda_test as wilks_lambda_test_impl,
)
from pydiscriminant.discriminant._stepwise import run_stepwise
from pydiscriminant.discriminant.config import DiscriminantConfig, MainOptions
from pydiscriminant.discriminant.design import AnalyzedDataset, screen_records
from pydiscriminant.discriminant.solution import (
    BoxMSolution,
    CanonicalSolution,
    CasewiseSolution,
    ClassificationSolution,
    CovarianceMatricesSolution,
    DiscriminantAnalysisSolution,
    EqualityTestsSolution,
    GroupStatisticsSolution,
    PooledMatricesSolution,
    ProcessingSummarySolution,
    StepwiseSolution,
    WilksLambdaSolution,
)

logger = logging.getLogger(__name__)

T = TypeVar('T')

AnalysisData = AnalyzedDataset | Iterable[Mapping[str, Any]]


# =====================================================================
# Shared plumbing
# =====================================================================


def _default_config(dataset: AnalyzedDataset) -> DiscriminantConfig:
    return DiscriminantConfig(
        main=MainOptions(grouping_variable='group', independent_variables=dataset.variables)
    )


def _excluded_warning(summary: ProcessingSummaryParams) -> list[str]:
    excluded = summary.total - summary.valid - summary.unselected
    if excluded <= 0:
        return []
    return [f"{excluded} of {summary.total} cases excluded (missing or out-of-range values)"]


def _extract(
    data: AnalysisData,
    config: DiscriminantConfig | None,
    tracer: Tracer,
    timer: Timer,
) -> tuple[AnalyzedDataset, DiscriminantConfig, ProcessingSummaryParams]:
    """Screen records (or accept a ready dataset) and validate the config."""
    with timer.section('extract'):
        if isinstance(data, AnalyzedDataset):
            dataset = data
            config = config.validate() if config is not None else _default_config(dataset)
            summary = ProcessingSummaryParams(
                valid=dataset.total_cases,
                missing_or_out_of_range_group=0,
                missing_discriminating=0,
                missing_both=0,
                unselected=0,
                total=dataset.total_cases,
            )
        else:
            if config is None:
                raise ConfigurationError(
                    "config: a DiscriminantConfig is required to screen records",
                    option='config',
                )
            config.validate()
            screened = screen_records(data, config)
            summary = screened.summary
            dataset = AnalyzedDataset.from_screened(
                screened, config.main.independent_variables
            )

    tracer.event(
        'dataset_extracted',
        n_cases=dataset.total_cases,
        n_groups=dataset.num_groups,
        variables=dataset.variables,
    )
    return dataset, config, summary


def _analysis_variables(
    dataset: AnalyzedDataset,
    variables: Sequence[str] | None,
) -> tuple[str, ...]:
    if variables is None:
        return dataset.variables
    variables = tuple(variables)
    unknown = [v for v in variables if v not in dataset.variables]
    if unknown:
        raise ValidationError(f"variables: not in the dataset: {unknown}")
    return variables


def _require_groups(dataset: AnalyzedDataset, procedure: str) -> None:
    if dataset.num_groups < 2:
        raise ValidationError(
            f"{procedure}: need at least 2 groups, got {dataset.num_groups}"
        )


def _info(
    dataset: AnalyzedDataset,
    variables: Sequence[str],
    config: DiscriminantConfig,
    **extra: Any,
) -> dict[str, Any]:
    info = {
        'n_cases': dataset.total_cases,
        'n_groups': dataset.num_groups,
        'groups': dataset.group_labels,
        'variables': tuple(variables),
        'epsilon': config.epsilon,
    }
    info.update(extra)
    return info


def _finish(timer: Timer) -> dict[str, float]:
    return timer.finish()


def _prepare(
    data: AnalysisData,
    config: DiscriminantConfig | None,
    variables: Sequence[str] | None,
    tracer: Tracer | None,
) -> tuple[AnalyzedDataset, DiscriminantConfig, tuple[str, ...], Tracer, Timer]:
    tracer = tracer if tracer is not None else default_tracer()
    timer = Timer()
    timer.start()
    dataset, config, _ = _extract(data, config, tracer, timer)
    return dataset, config, _analysis_variables(dataset, variables), tracer, timer


# =====================================================================
# Descriptive procedures
# =====================================================================


def case_processing_summary(
    data: AnalysisData,
    config: DiscriminantConfig | None = None,
    *,
    tracer: Tracer | None = None,
) -> ProcessingSummarySolution:
    """
    Analysis case processing summary.

    Unlike the other procedures this one does not require any valid case:
    it reports how many records were kept and why the others were dropped.

    Args:
        data: Records or an AnalyzedDataset
        config: Analysis configuration (required for records)
        tracer: Receives checkpoint events

    Returns:
        ProcessingSummarySolution
    """
    tracer = tracer if tracer is not None else default_tracer()
    timer = Timer()
    timer.start()

    if isinstance(data, AnalyzedDataset):
        _, config, summary = _extract(data, config, tracer, timer)
    else:
        if config is None:
            raise ConfigurationError(
                "config: a DiscriminantConfig is required to screen records",
                option='config',
            )
        config.validate()
        with timer.section('extract'):
            summary = screen_records(data, config).summary

    tracer.event('test_computed', test='processing_summary', valid=summary.valid)
    result = Result(
        params=summary,
        info={'total_records': summary.total},
        timing=_finish(timer),
        procedure='case_processing_summary',
        warnings=tuple(_excluded_warning(summary)),
    )
    return ProcessingSummarySolution(_result=result)


def group_statistics(
    data: AnalysisData,
    config: DiscriminantConfig | None = None,
    *,
    variables: Sequence[str] | None = None,
    tracer: Tracer | None = None,
) -> GroupStatisticsSolution:
    """
    Mean, standard deviation and valid N per group and in total.

    Args:
        data: Records or an AnalyzedDataset
        config: Analysis configuration (required for records)
        variables: Subset of the dataset's variables (default: all)
        tracer: Receives checkpoint events

    Returns:
        GroupStatisticsSolution
    """
    dataset, config, variables, tracer, timer = _prepare(data, config, variables, tracer)
    with timer.section('compute'):
        params = group_statistics_impl(dataset, variables)
    tracer.event('test_computed', test='group_statistics')
    result = Result(
        params=params,
        info=_info(dataset, variables, config),
        timing=_finish(timer),
        procedure='group_statistics',
    )
    return GroupStatisticsSolution(_result=result)


def equality_of_group_means(
    data: AnalysisData,
    config: DiscriminantConfig | None = None,
    *,
    variables: Sequence[str] | None = None,
    tracer: Tracer | None = None,
) -> EqualityTestsSolution:
    """
    Tests of equality of group means, one univariate F per variable.

    Returns:
        EqualityTestsSolution with Wilks' lambda, F, df1 = g - 1,
        df2 = n - g and significance per variable
    """
    dataset, config, variables, tracer, timer = _prepare(data, config, variables, tracer)
    _require_groups(dataset, 'equality_of_group_means')
    with timer.section('compute'):
        params = equality_tests_impl(dataset, variables)
    tracer.event('test_computed', test='equality_of_group_means')
    result = Result(
        params=params,
        info=_info(dataset, variables, config),
        timing=_finish(timer),
        procedure='equality_of_group_means',
    )
    return EqualityTestsSolution(_result=result)


def pooled_within_matrices(
    data: AnalysisData,
    config: DiscriminantConfig | None = None,
    *,
    variables: Sequence[str] | None = None,
    tracer: Tracer | None = None,
) -> PooledMatricesSolution:
    """Pooled within-groups covariance and correlation matrices."""
    dataset, config, variables, tracer, timer = _prepare(data, config, variables, tracer)
    with timer.section('compute'):
        params = pooled_matrices_impl(dataset, variables)
    tracer.event('test_computed', test='pooled_within_matrices')
    result = Result(
        params=params,
        info=_info(dataset, variables, config),
        timing=_finish(timer),
        procedure='pooled_within_matrices',
    )
    return PooledMatricesSolution(_result=result)


def covariance_matrices(
    data: AnalysisData,
    config: DiscriminantConfig | None = None,
    *,
    variables: Sequence[str] | None = None,
    tracer: Tracer | None = None,
) -> CovarianceMatricesSolution:
    """Covariance matrix of each group and of the total sample."""
    dataset, config, variables, tracer, timer = _prepare(data, config, variables, tracer)
    with timer.section('compute'):
        params = covariance_matrices_impl(dataset, variables)
    tracer.event('test_computed', test='covariance_matrices')
    result = Result(
        params=params,
        info=_info(dataset, variables, config),
        timing=_finish(timer),
        procedure='covariance_matrices',
    )
    return CovarianceMatricesSolution(_result=result)


def box_m_test(
    data: AnalysisData,
    config: DiscriminantConfig | None = None,
    *,
    variables: Sequence[str] | None = None,
    tracer: Tracer | None = None,
) -> BoxMSolution:
    """
    Box's M test of equality of group covariance matrices.

    Groups with one case or fewer cannot contribute a covariance matrix;
    they are skipped and named in the note and in the warnings.

    Args:
        data: Records or an AnalyzedDataset
        config: Analysis configuration (epsilon, n_jobs)
        variables: Subset of the dataset's variables (default: all)
        tracer: Receives checkpoint events

    Returns:
        BoxMSolution

    Examples:
        >>> sol = box_m_test(records, config)
        >>> sol.p_value
        >>> print(sol.summary())
    """
    dataset, config, variables, tracer, timer = _prepare(data, config, variables, tracer)
    with timer.section('box_m'):
        params = box_m_test_impl(
            dataset, variables, epsilon=config.epsilon, n_jobs=config.n_jobs
        )
    skipped = [g for g in dataset.group_labels if dataset.group_size(g) <= 1]
    notes = []
    if skipped:
        notes.append(f"Box's M: groups with one case or fewer were skipped: {skipped}")
    tracer.event('test_computed', test='box_m', box_m=params.box_m, p_value=params.p_value)

    result = Result(
        params=params,
        info=_info(dataset, variables, config, skipped_groups=tuple(skipped)),
        timing=_finish(timer),
        procedure='box_m_test',
        warnings=tuple(notes),
    )
    return BoxMSolution(_result=result)


# =====================================================================
# Stepwise selection
# =====================================================================


def stepwise_statistics(
    data: AnalysisData,
    config: DiscriminantConfig,
    *,
    tracer: Tracer | None = None,
) -> StepwiseSolution:
    """
    Stepwise variable selection.

    Every independent variable in the dataset is a candidate. The method
    flag on config.method picks the selection statistic (Wilks' lambda
    when none is set) and f_value / f_probability pick the criterion.

    Args:
        data: Records or an AnalyzedDataset
        config: Analysis configuration; main.stepwise must be set
        tracer: Receives one 'step_completed' event per recorded step

    Returns:
        StepwiseSolution

    Raises:
        ConfigurationError: If main.stepwise is not set
        ValidationError: If fewer than two groups are present

    Warns:
        RuntimeWarning: If selection stops at method.max_steps

    Examples:
        >>> sol = stepwise_statistics(records, config)
        >>> sol.variables_entered
        >>> sol.final_variables
    """
    dataset, config, variables, tracer, timer = _prepare(data, config, None, tracer)
    with timer.section('stepwise'):
        params, step_warnings = run_stepwise(dataset, config, tracer=tracer)
    if params.hit_step_cap:
        warnings.warn(
            f"Stepwise selection stopped at the maximum of {params.max_steps} steps "
            f"before the selection settled.",
            RuntimeWarning,
            stacklevel=2,
        )
    tracer.event(
        'test_computed', test='stepwise',
        steps=len(params.steps) - 1, final_variables=params.final_variables,
    )
    result = Result(
        params=params,
        info=_info(dataset, variables, config, method=params.method, criterion=params.criterion),
        timing=_finish(timer),
        procedure='stepwise_statistics',
        warnings=tuple(step_warnings),
    )
    return StepwiseSolution(_result=result)


# =====================================================================
# Canonical functions
# =====================================================================


def wilks_lambda_test(
    data: AnalysisData,
    config: DiscriminantConfig | None = None,
    *,
    variables: Sequence[str] | None = None,
    tracer: Tracer | None = None,
) -> WilksLambdaSolution:
    """
    Wilks' lambda test of the canonical discriminant functions.

    Raises:
        ValidationError: If the functions are not estimable
        NotPositiveDefiniteError: If the within-groups matrix is singular
    """
    dataset, config, variables, tracer, timer = _prepare(data, config, variables, tracer)
    with timer.section('eigen'):
        evals, _ = generalized_eigen(dataset, variables, epsilon=config.epsilon)
        params = wilks_lambda_test_impl(
            [float(e) for e in evals], len(variables), dataset.num_groups, dataset.total_cases
        )
    tracer.event('test_computed', test='wilks_lambda', functions=len(evals))
    result = Result(
        params=params,
        info=_info(dataset, variables, config),
        timing=_finish(timer),
        procedure='wilks_lambda_test',
    )
    return WilksLambdaSolution(_result=result)


def canonical_discriminant(
    data: AnalysisData,
    config: DiscriminantConfig | None = None,
    *,
    variables: Sequence[str] | None = None,
    tracer: Tracer | None = None,
) -> CanonicalSolution:
    """
    Eigenvalues and canonical discriminant functions.

    Returns:
        CanonicalSolution with eigen statistics, unstandardized and
        standardized coefficients, the structure matrix and the group
        centroids

    Raises:
        ValidationError: If the functions are not estimable
        NotPositiveDefiniteError: If the within-groups matrix is singular
    """
    dataset, config, variables, tracer, timer = _prepare(data, config, variables, tracer)
    with timer.section('canonical'):
        params = canonical_functions(dataset, variables, epsilon=config.epsilon)
    tracer.event('test_computed', test='canonical', functions=len(params.eigen.eigenvalues))
    result = Result(
        params=params,
        info=_info(
            dataset, variables, config,
            show_unstandardized=config.statistics.unstandardized,
        ),
        timing=_finish(timer),
        procedure='canonical_discriminant',
    )
    return CanonicalSolution(_result=result)


# =====================================================================
# Classification
# =====================================================================


def classification(
    data: AnalysisData,
    config: DiscriminantConfig | None = None,
    *,
    variables: Sequence[str] | None = None,
    tracer: Tracer | None = None,
) -> ClassificationSolution:
    """
    Classify every case with Fisher's linear classification functions.

    Priors follow config.classify (equal, or proportional to group size).
    When classify.leave_one_out is set a cross-validated table is added.

    Returns:
        ClassificationSolution with the classification functions and the
        original (and cross-validated) classification tables

    Raises:
        ValidationError: If there are no variables or no within-groups df
        SingularMatrixError: If the pooled covariance cannot be inverted
    """
    dataset, config, variables, tracer, timer = _prepare(data, config, variables, tracer)
    _require_groups(dataset, 'classification')
    priors = prior_probabilities(dataset, config.classify)
    with timer.section('classify'):
        functions = classification_function_coefficients(
            dataset, variables, priors, epsilon=config.epsilon
        )
        params = classification_results(
            dataset, variables, priors,
            leave_one_out=config.classify.leave_one_out, epsilon=config.epsilon,
        )
    tracer.event(
        'test_computed', test='classification',
        percent_correct=params.original.percent_correct,
    )
    result = Result(
        params=params,
        info=_info(dataset, variables, config, leave_one_out=config.classify.leave_one_out),
        timing=_finish(timer),
        procedure='classification',
    )
    return ClassificationSolution(_result=result, functions=functions)


def casewise_statistics(
    data: AnalysisData,
    config: DiscriminantConfig,
    *,
    variables: Sequence[str] | None = None,
    tracer: Tracer | None = None,
) -> CasewiseSolution:
    """
    Per-case classification details.

    Raises:
        ConfigurationError: If classify.case is not set
    """
    if not config.classify.case:
        raise ConfigurationError(
            "classify.case: casewise statistics requested but classify.case is not set",
            option='classify.case',
        )
    dataset, config, variables, tracer, timer = _prepare(data, config, variables, tracer)
    _require_groups(dataset, 'casewise_statistics')
    priors = prior_probabilities(dataset, config.classify)
    limit = config.classify.limit_value if config.classify.limit else None
    with timer.section('casewise'):
        params = casewise_statistics_impl(
            dataset, variables, priors, limit=limit, epsilon=config.epsilon
        )
    tracer.event('test_computed', test='casewise', rows=len(params.rows))
    result = Result(
        params=params,
        info=_info(dataset, variables, config, limit=limit),
        timing=_finish(timer),
        procedure='casewise_statistics',
    )
    return CasewiseSolution(_result=result)


# =====================================================================
# Aggregate runner
# =====================================================================


class ErrorCollector:
    """
    Runs procedures, keeping going past library errors.

    A PyDiscriminantError from one procedure is recorded as a
    ProcedureError and the procedure's result becomes None. Any other
    exception propagates.
    """

    def __init__(self) -> None:
        self.errors: list[ProcedureError] = []

    def run(self, procedure: str, func: Callable[..., T], *args: Any, **kwargs: Any) -> T | None:
        try:
            return func(*args, **kwargs)
        except PyDiscriminantError as e:
            logger.debug("%s failed: %s", procedure, e)
            self.errors.append(ProcedureError(
                procedure=procedure,
                message=str(e),
                error_type=type(e).__name__,
            ))
            return None


def discriminant_analysis(
    data: AnalysisData,
    config: DiscriminantConfig,
    *,
    tracer: Tracer | None = None,
) -> DiscriminantAnalysisSolution:
    """
    Run every procedure the configuration requests.

    The processing summary, canonical functions and their Wilks' lambda
    test always run. Descriptive tables follow config.statistics,
    stepwise selection follows main.stepwise, classification follows
    classify.summary / classify.leave_one_out / statistics.fisher and
    casewise statistics follow classify.case. In stepwise mode the
    canonical and classification procedures use the variables selected
    by the last step.

    Args:
        data: Records or an AnalyzedDataset
        config: Analysis configuration
        tracer: Receives checkpoint events from every procedure

    Returns:
        DiscriminantAnalysisSolution. Procedures that raised a
        PyDiscriminantError are None and listed in ``errors``.

    Raises:
        ConfigurationError: If the configuration is invalid
        ValidationError: If no case survives screening

    Examples:
        >>> sol = discriminant_analysis(records, config)
        >>> sol.stepwise.final_variables
        >>> sol.errors
        >>> print(sol.summary())
    """
    tracer = tracer if tracer is not None else default_tracer()
    timer = Timer()
    timer.start()
    dataset, config, summary = _extract(data, config, tracer, timer)

    collector = ErrorCollector()
    notes = _excluded_warning(summary)
    stats = config.statistics
    out: dict[str, Any] = {}

    # counts come from the raw records, screened once above
    out['processing_summary'] = ProcessingSummarySolution(_result=Result(
        params=summary,
        info={'total_records': summary.total},
        timing=None,
        procedure='case_processing_summary',
        warnings=tuple(notes),
    ))

    with timer.section('descriptive'):
        if stats.means:
            out['group_statistics'] = collector.run(
                'group_statistics', group_statistics, dataset, config, tracer=tracer
            )
        if stats.anova:
            out['equality_tests'] = collector.run(
                'equality_tests', equality_of_group_means, dataset, config, tracer=tracer
            )
        if stats.within_groups_matrices:
            out['pooled_matrices'] = collector.run(
                'pooled_matrices', pooled_within_matrices, dataset, config, tracer=tracer
            )
        if stats.covariance_matrices:
            out['covariance_matrices'] = collector.run(
                'covariance_matrices', covariance_matrices, dataset, config, tracer=tracer
            )

    analysis_variables: tuple[str, ...] | None = dataset.variables
    if config.main.stepwise:
        with timer.section('stepwise'):
            stepwise = collector.run(
                'stepwise', stepwise_statistics, dataset, config, tracer=tracer
            )
        out['stepwise'] = stepwise
        if stepwise is None:
            analysis_variables = None
        else:
            notes.extend(stepwise.warnings)
            analysis_variables = stepwise.final_variables
            if not analysis_variables:
                notes.append(
                    "no variable qualified for entry; canonical functions and "
                    "classification were not computed"
                )
                analysis_variables = None

    if stats.box_m:
        box_variables = analysis_variables if analysis_variables else dataset.variables
        out['box_m_test'] = collector.run(
            'box_m_test', box_m_test, dataset, config, variables=box_variables, tracer=tracer
        )
        if out['box_m_test'] is not None:
            notes.extend(out['box_m_test'].warnings)

    if analysis_variables:
        with timer.section('canonical'):
            out['canonical'] = collector.run(
                'canonical', canonical_discriminant, dataset, config,
                variables=analysis_variables, tracer=tracer,
            )
            out['wilks_lambda_test'] = collector.run(
                'wilks_lambda_test', wilks_lambda_test, dataset, config,
                variables=analysis_variables, tracer=tracer,
            )
        classify = config.classify
        with timer.section('classify'):
            if classify.summary or classify.leave_one_out or stats.fisher:
                out['classification'] = collector.run(
                    'classification', classification, dataset, config,
                    variables=analysis_variables, tracer=tracer,
                )
            if classify.case:
                out['casewise'] = collector.run(
                    'casewise', casewise_statistics, dataset, config,
                    variables=analysis_variables, tracer=tracer,
                )

    timer.stop()
    if collector.errors:
        logger.debug(
            "discriminant_analysis: %d procedure(s) failed: %s",
            len(collector.errors), [e.procedure for e in collector.errors],
        )
    return DiscriminantAnalysisSolution(
        **out,
        analysis_variables=analysis_variables or (),
        errors=tuple(collector.errors),
        timing=timer.result(),
        warnings=tuple(notes),
    )
