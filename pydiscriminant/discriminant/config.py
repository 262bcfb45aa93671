"""
Discriminant analysis configuration.

Options mirror the host dialog they come from: main variable selection,
the stepwise method, statistics to display, classification settings and
the valid range of the grouping variable. Defaults follow SPSS
DISCRIMINANT.

Public API:
    DiscriminantConfig(main=MainOptions(...), method=MethodOptions(...), ...)
    DiscriminantConfig.from_dict(payload) -> DiscriminantConfig
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any

from pydiscriminant.core.compute.precision import DEFAULT_EPSILON, DEFAULT_TOLERANCE
from pydiscriminant.core.exceptions import ConfigurationError
from pydiscriminant.core.validation import (
    check_non_negative,
    check_probability,
    check_unique_names,
)


@dataclass(frozen=True)
class MainOptions:
    """Variables taking part in the analysis."""
    grouping_variable: str
    independent_variables: tuple[str, ...]
    stepwise: bool = False
    selection_variable: str | None = None
    selection_value: Any = None


@dataclass(frozen=True)
class DefineRange:
    """Valid range for numeric group codes (inclusive); None = unbounded."""
    min_range: float | None = None
    max_range: float | None = None


@dataclass(frozen=True)
class MethodOptions:
    """
    Stepwise method and entry/removal criteria.

    The method flags are checked in the order wilks, unexplained,
    mahalonobis, f_ratio, raos; the first one set wins and Wilks is used
    when none is set. Exactly one of f_value / f_probability selects the
    criterion used for entry and removal.
    """
    wilks: bool = False
    unexplained: bool = False
    mahalonobis: bool = False
    f_ratio: bool = False
    raos: bool = False
    f_value: bool = True
    f_probability: bool = False
    f_entry: float = 3.84
    f_removal: float = 2.71
    p_entry: float = 0.05
    p_removal: float = 0.10
    v_enter: float = 0.0
    pairwise: bool = False
    tolerance: float = DEFAULT_TOLERANCE
    max_steps: int | None = None


@dataclass(frozen=True)
class StatisticsOptions:
    """Optional descriptive tables."""
    means: bool = False
    anova: bool = False
    box_m: bool = False
    within_groups_matrices: bool = False
    covariance_matrices: bool = False
    fisher: bool = False
    unstandardized: bool = False


@dataclass(frozen=True)
class ClassifyOptions:
    """
    Classification settings.

    Priors are equal for all groups unless group_size is set, in which
    case they are proportional to the group sizes (group_size wins over
    all_groups_equal).
    """
    all_groups_equal: bool = True
    group_size: bool = False
    summary: bool = True
    leave_one_out: bool = False
    case: bool = False
    limit: bool = False
    limit_value: int | None = None


@dataclass(frozen=True)
class DiscriminantConfig:
    """
    Complete configuration for one discriminant analysis run.

    Attributes:
        main: Grouping/independent variables and stepwise switch
        method: Stepwise method and thresholds
        statistics: Which descriptive tables to produce
        classify: Classification settings
        define_range: Valid range for numeric group codes
        epsilon: Diagonal regularization for covariance matrices
        n_jobs: Worker threads for independent per-group/per-candidate work
    """
    main: MainOptions
    method: MethodOptions = field(default_factory=MethodOptions)
    statistics: StatisticsOptions = field(default_factory=StatisticsOptions)
    classify: ClassifyOptions = field(default_factory=ClassifyOptions)
    define_range: DefineRange = field(default_factory=DefineRange)
    epsilon: float = DEFAULT_EPSILON
    n_jobs: int | None = 1

    def validate(self) -> 'DiscriminantConfig':
        """
        Check option invariants.

        Returns:
            self, so calls can be chained

        Raises:
            ConfigurationError: On the first violated invariant
        """
        if not self.main.grouping_variable:
            raise ConfigurationError(
                "main.grouping_variable: no grouping variable specified",
                option='main.grouping_variable',
            )
        if not self.main.independent_variables:
            raise ConfigurationError(
                "main.independent_variables: no independent variables specified",
                option='main.independent_variables',
            )
        check_unique_names(self.main.independent_variables, 'main.independent_variables')
        if self.main.grouping_variable in self.main.independent_variables:
            raise ConfigurationError(
                f"main.grouping_variable: {self.main.grouping_variable!r} is also "
                f"listed as an independent variable",
                option='main.grouping_variable',
            )

        method = self.method
        if method.f_value and method.f_probability:
            raise ConfigurationError(
                "method: f_value and f_probability are mutually exclusive",
                option='method.f_probability',
            )
        check_probability(method.p_entry, 'method.p_entry')
        check_probability(method.p_removal, 'method.p_removal')
        check_non_negative(method.f_entry, 'method.f_entry')
        check_non_negative(method.f_removal, 'method.f_removal')
        check_non_negative(method.v_enter, 'method.v_enter')
        check_probability(method.tolerance, 'method.tolerance')
        if method.max_steps is not None and method.max_steps < 1:
            raise ConfigurationError(
                f"method.max_steps: must be >= 1, got {method.max_steps}",
                option='method.max_steps',
            )

        if self.classify.limit and (
            self.classify.limit_value is None or self.classify.limit_value < 1
        ):
            raise ConfigurationError(
                "classify.limit_value: a positive case limit is required when "
                "classify.limit is set",
                option='classify.limit_value',
            )

        lo, hi = self.define_range.min_range, self.define_range.max_range
        if lo is not None and hi is not None and lo > hi:
            raise ConfigurationError(
                f"define_range: min_range {lo} exceeds max_range {hi}",
                option='define_range.min_range',
            )

        if not self.epsilon >= 0:
            raise ConfigurationError(
                f"epsilon: must be >= 0, got {self.epsilon}", option='epsilon'
            )
        return self

    def with_variables(self, variables: tuple[str, ...]) -> 'DiscriminantConfig':
        """Copy of this config analysing a different variable list."""
        return replace(self, main=replace(self.main, independent_variables=tuple(variables)))

    @staticmethod
    def from_dict(payload: dict[str, Any]) -> 'DiscriminantConfig':
        """
        Build a config from the nested dictionary a host sends.

        Section keys are main, method, statistics, classify and
        define_range; epsilon and n_jobs are top-level. ``leave`` and
        ``all_group_equal`` are accepted as aliases for the classify
        options of the same meaning.

        Raises:
            ConfigurationError: On unknown sections or options
        """
        sections = {
            'main': MainOptions,
            'method': MethodOptions,
            'statistics': StatisticsOptions,
            'classify': ClassifyOptions,
            'define_range': DefineRange,
        }
        aliases = {
            'classify': {'leave': 'leave_one_out', 'all_group_equal': 'all_groups_equal'},
        }

        unknown = set(payload) - set(sections) - {'epsilon', 'n_jobs'}
        if unknown:
            raise ConfigurationError(f"unknown configuration sections: {sorted(unknown)}")
        if 'main' not in payload:
            raise ConfigurationError("main: section is required", option='main')

        built: dict[str, Any] = {}
        for key, cls in sections.items():
            if key not in payload:
                continue
            raw = dict(payload[key] or {})
            for old, new in aliases.get(key, {}).items():
                if old in raw:
                    raw[new] = raw.pop(old)
            allowed = {f.name for f in fields(cls)}
            extra = set(raw) - allowed
            if extra:
                raise ConfigurationError(
                    f"{key}: unknown options {sorted(extra)}", option=key
                )
            if key == 'main':
                raw['independent_variables'] = tuple(raw.get('independent_variables') or ())
                raw.setdefault('grouping_variable', '')
            built[key] = cls(**raw)

        return DiscriminantConfig(
            epsilon=payload.get('epsilon', DEFAULT_EPSILON),
            n_jobs=payload.get('n_jobs', 1),
            **built,
        )
