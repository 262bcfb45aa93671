"""
Discriminant analysis with stepwise variable selection.

Public API:
    discriminant_analysis(data, config) -> DiscriminantAnalysisSolution
    stepwise_statistics(data, config) -> StepwiseSolution
    box_m_test(data, config) -> BoxMSolution                  # equal covariances
    wilks_lambda_test(data, config) -> WilksLambdaSolution    # canonical functions
    canonical_discriminant(data, config) -> CanonicalSolution
    classification(data, config) -> ClassificationSolution
    casewise_statistics(data, config) -> CasewiseSolution
    case_processing_summary(data, config) -> ProcessingSummarySolution
    group_statistics(data, config) -> GroupStatisticsSolution
    equality_of_group_means(data, config) -> EqualityTestsSolution
    pooled_within_matrices(data, config) -> PooledMatricesSolution
    covariance_matrices(data, config) -> CovarianceMatricesSolution
"""

from pydiscriminant.discriminant.config import (
    ClassifyOptions,
    DefineRange,
    DiscriminantConfig,
    MainOptions,
    MethodOptions,
    StatisticsOptions,
)
from pydiscriminant.discriminant.design import AnalyzedDataset
from pydiscriminant.discriminant.solvers import (
    ErrorCollector,
    box_m_test,
    canonical_discriminant,
    case_processing_summary,
    casewise_statistics,
    classification,
    covariance_matrices,
    discriminant_analysis,
    equality_of_group_means,
    group_statistics,
    pooled_within_matrices,
    stepwise_statistics,
    wilks_lambda_test,
)
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

__all__ = [
    # Configuration
    "ClassifyOptions",
    "DefineRange",
    "DiscriminantConfig",
    "MainOptions",
    "MethodOptions",
    "StatisticsOptions",
    # Data
    "AnalyzedDataset",
    # Procedures
    "ErrorCollector",
    "box_m_test",
    "canonical_discriminant",
    "case_processing_summary",
    "casewise_statistics",
    "classification",
    "covariance_matrices",
    "discriminant_analysis",
    "equality_of_group_means",
    "group_statistics",
    "pooled_within_matrices",
    "stepwise_statistics",
    "wilks_lambda_test",
    # Solutions
    "BoxMSolution",
    "CanonicalSolution",
    "CasewiseSolution",
    "ClassificationSolution",
    "CovarianceMatricesSolution",
    "DiscriminantAnalysisSolution",
    "EqualityTestsSolution",
    "GroupStatisticsSolution",
    "PooledMatricesSolution",
    "ProcessingSummarySolution",
    "StepwiseSolution",
    "WilksLambdaSolution",
]
