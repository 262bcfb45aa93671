"""
Discriminant analysis design object.

AnalyzedDataset holds the validated per-group, per-variable observations
every procedure works from. It is built once per invocation and shared
read-only afterwards (its arrays are flagged non-writeable), so worker
threads may read it without locking.

Factory methods:
    AnalyzedDataset.from_records(records, config)   # host tabular rows
    AnalyzedDataset.from_arrays(X, group, variables)  # numpy input
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Sequence

import numpy as np
from numpy.typing import NDArray

from pydiscriminant.core.exceptions import ConfigurationError, ValidationError
from pydiscriminant.core.validation import (
    as_float_array,
    check_1d,
    check_2d,
    check_finite,
    check_min_cases,
    check_same_cases,
)
from pydiscriminant.discriminant._common import ProcessingSummaryParams
from pydiscriminant.discriminant.config import DiscriminantConfig

logger = logging.getLogger(__name__)

_EMPTY = np.empty(0, dtype=np.float64)
_EMPTY.setflags(write=False)


def group_label(value: Any) -> str:
    """
    Text label for a group code.

    Integral numbers drop their fractional part (1.0 -> '1') so numeric
    codes read the same whether the host stored them as int or float.
    """
    if isinstance(value, (bool, np.bool_)):
        return str(bool(value))
    if isinstance(value, (int, np.integer)):
        return str(int(value))
    if isinstance(value, (float, np.floating)):
        v = float(value)
        return str(int(v)) if v.is_integer() else str(v)
    return str(value)


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if isinstance(value, (float, np.floating)):
        return math.isnan(value)
    return False


def _as_number(value: Any) -> float | None:
    """Numeric value of a cell, or None when it is missing or not numeric."""
    if _is_missing(value) or isinstance(value, (bool, np.bool_)):
        return None
    if isinstance(value, (int, float, np.integer, np.floating)):
        v = float(value)
    elif isinstance(value, str):
        try:
            v = float(value)
        except ValueError:
            return None
    else:
        return None
    return v if math.isfinite(v) else None


def _matches_selection(value: Any, target: Any) -> bool:
    a, b = _as_number(value), _as_number(target)
    if a is not None and b is not None:
        return a == b
    return not _is_missing(value) and str(value) == str(target)


@dataclass(frozen=True)
class ScreenedCases:
    """Records that survived screening plus the processing summary counts."""
    labels: tuple[str, ...]
    values: NDArray[np.floating]           # (n_valid, p) in record order
    case_numbers: NDArray[np.integer]      # 1-based record positions
    summary: ProcessingSummaryParams


def screen_records(
    records: Iterable[Mapping[str, Any]],
    config: DiscriminantConfig,
) -> ScreenedCases:
    """
    Apply case selection, group range checks and listwise deletion.

    A case is valid when it passes the selection variable filter, has a
    non-missing group code inside define_range (numeric codes only are
    range-checked), and has a numeric value for every independent
    variable.

    Args:
        records: Host rows, one mapping of variable name to value per case
        config: Analysis configuration

    Returns:
        ScreenedCases with the valid rows and the processing summary
    """
    main = config.main
    variables = main.independent_variables
    lo, hi = config.define_range.min_range, config.define_range.max_range

    labels: list[str] = []
    rows: list[list[float]] = []
    case_numbers: list[int] = []
    bad_group = bad_vars = bad_both = unselected = total = 0

    for number, record in enumerate(records, start=1):
        total += 1
        if main.selection_variable is not None and not _matches_selection(
            record.get(main.selection_variable), main.selection_value
        ):
            unselected += 1
            continue

        raw_group = record.get(main.grouping_variable)
        group_ok = not _is_missing(raw_group)
        code = _as_number(raw_group) if group_ok else None
        if code is not None:
            if (lo is not None and code < lo) or (hi is not None and code > hi):
                group_ok = False

        row = [_as_number(record.get(v)) for v in variables]
        vars_ok = all(x is not None for x in row)

        if not group_ok and not vars_ok:
            bad_both += 1
        elif not group_ok:
            bad_group += 1
        elif not vars_ok:
            bad_vars += 1
        else:
            labels.append(group_label(raw_group))
            rows.append(row)
            case_numbers.append(number)

    values = np.array(rows, dtype=np.float64).reshape(len(rows), len(variables))
    summary = ProcessingSummaryParams(
        valid=len(rows),
        missing_or_out_of_range_group=bad_group,
        missing_discriminating=bad_vars,
        missing_both=bad_both,
        unselected=unselected,
        total=total,
    )
    return ScreenedCases(
        labels=tuple(labels),
        values=values,
        case_numbers=np.array(case_numbers, dtype=np.int64),
        summary=summary,
    )


@dataclass(frozen=True)
class AnalyzedDataset:
    """
    Per-group observations for every independent variable.

    Created via factory methods, not directly.

    Attributes:
        group_labels: Distinct group labels in first-seen order
        variables: Independent variable names, in configured order
        group_data: variable -> group -> 1D array of observations
        group_means: group -> variable -> mean (0.0 for an empty group)
        overall_means: variable -> mean over all cases
        case_numbers: group -> 1-based record numbers of that group's cases
        num_groups: Number of groups
        total_cases: Number of valid cases
    """
    group_labels: tuple[str, ...]
    variables: tuple[str, ...]
    group_data: dict[str, dict[str, NDArray[np.floating]]]
    group_means: dict[str, dict[str, float]]
    overall_means: dict[str, float]
    case_numbers: dict[str, NDArray[np.integer]]
    num_groups: int
    total_cases: int

    # -----------------------------------------------------------------
    # Accessors
    # -----------------------------------------------------------------

    def values(self, variable: str, group: str) -> NDArray[np.floating]:
        """Observations of a variable in a group; empty when either is absent."""
        by_group = self.group_data.get(variable)
        if by_group is None:
            return _EMPTY
        return by_group.get(group, _EMPTY)

    def group_size(self, group: str) -> int:
        """Number of cases in a group (counted on the first variable)."""
        if not self.variables:
            return 0
        return len(self.values(self.variables[0], group))

    def group_sizes(self) -> tuple[int, ...]:
        return tuple(self.group_size(g) for g in self.group_labels)

    def group_mean_vector(self, group: str, variables: Sequence[str]) -> NDArray[np.floating]:
        means = self.group_means.get(group, {})
        return np.array([means.get(v, 0.0) for v in variables], dtype=np.float64)

    def overall_mean_vector(self, variables: Sequence[str]) -> NDArray[np.floating]:
        return np.array([self.overall_means.get(v, 0.0) for v in variables], dtype=np.float64)

    def case_matrix(self, group: str, variables: Sequence[str]) -> NDArray[np.floating]:
        """(n_group, len(variables)) matrix of one group's cases."""
        n = self.group_size(group)
        if not variables:
            return np.empty((n, 0), dtype=np.float64)
        return np.column_stack([self.values(v, group) for v in variables]).reshape(n, len(variables))

    def stacked_cases(
        self, variables: Sequence[str]
    ) -> tuple[NDArray[np.floating], NDArray[np.integer], NDArray[np.integer]]:
        """
        All cases in original record order.

        Returns:
            (X, group_index, case_number) where group_index points into
            group_labels
        """
        blocks = [self.case_matrix(g, variables) for g in self.group_labels]
        index = [np.full(len(b), k, dtype=np.int64) for k, b in enumerate(blocks)]
        numbers = [self.case_numbers[g] for g in self.group_labels]
        X = np.vstack(blocks) if blocks else np.empty((0, len(variables)))
        group_index = np.concatenate(index) if index else np.empty(0, dtype=np.int64)
        case_number = np.concatenate(numbers) if numbers else np.empty(0, dtype=np.int64)
        order = np.argsort(case_number, kind='stable')
        return X[order], group_index[order], case_number[order]

    # -----------------------------------------------------------------
    # Factories
    # -----------------------------------------------------------------

    @staticmethod
    def from_records(
        records: Iterable[Mapping[str, Any]],
        config: DiscriminantConfig,
    ) -> 'AnalyzedDataset':
        """
        Create the dataset from host records.

        Args:
            records: One mapping per case (variable name -> value)
            config: Analysis configuration (variables, grouping, range,
                selection)

        Returns:
            AnalyzedDataset over the valid cases

        Raises:
            ConfigurationError: If no variables or grouping variable given
            ValidationError: If no case survives screening
        """
        if not config.main.independent_variables:
            raise ConfigurationError(
                "main.independent_variables: no independent variables specified",
                option='main.independent_variables',
            )
        if not config.main.grouping_variable:
            raise ConfigurationError(
                "main.grouping_variable: no grouping variable specified",
                option='main.grouping_variable',
            )

        return AnalyzedDataset.from_screened(
            screen_records(records, config),
            tuple(config.main.independent_variables),
        )

    @staticmethod
    def from_screened(
        screened: ScreenedCases,
        variables: Sequence[str],
    ) -> 'AnalyzedDataset':
        """
        Create the dataset from already screened cases.

        Raises:
            ValidationError: If no case survived screening
        """
        if screened.summary.valid == 0:
            raise ValidationError(
                "No valid cases: every record is missing a group code, is "
                "outside the group range, or is missing a discriminating variable"
            )
        excluded = screened.summary.total - screened.summary.valid
        if excluded:
            logger.debug("from_screened: %d of %d cases excluded",
                         excluded, screened.summary.total)

        return AnalyzedDataset._build(
            screened.labels,
            screened.values,
            tuple(variables),
            screened.case_numbers,
        )

    @staticmethod
    def from_arrays(
        X: Any,
        group: Any,
        variables: Sequence[str] | None = None,
    ) -> 'AnalyzedDataset':
        """
        Create the dataset from a data matrix and group codes.

        Args:
            X: (n, p) numeric matrix of independent variables
            group: Length-n group codes (any hashable values)
            variables: Column names; defaults to x1, x2, ...

        Returns:
            AnalyzedDataset
        """
        X_arr = as_float_array(X, "X")
        if X_arr.ndim == 1:
            X_arr = X_arr.reshape(-1, 1)
        check_2d(X_arr, "X")
        check_finite(X_arr, "X")
        check_min_cases(X_arr, 1, "X")

        group_arr = np.asarray(group)
        check_1d(group_arr, "group")
        check_same_cases({"X": X_arr, "group": group_arr})

        p = X_arr.shape[1]
        if variables is None:
            variables = tuple(f"x{j + 1}" for j in range(p))
        variables = tuple(variables)
        if len(variables) != p:
            raise ValidationError(
                f"variables: {len(variables)} names given for {p} columns"
            )
        if len(set(variables)) != p:
            raise ValidationError(f"variables: duplicate names in {list(variables)}")

        labels = tuple(group_label(v) for v in group_arr)
        case_numbers = np.arange(1, len(labels) + 1, dtype=np.int64)
        return AnalyzedDataset._build(labels, X_arr.astype(np.float64), variables, case_numbers)

    @staticmethod
    def _build(
        labels: Sequence[str],
        values: NDArray[np.floating],
        variables: tuple[str, ...],
        case_numbers: NDArray[np.integer],
    ) -> 'AnalyzedDataset':
        group_labels = tuple(dict.fromkeys(labels))
        label_arr = np.array(labels, dtype=object)

        masks = {g: label_arr == g for g in group_labels}
        group_data: dict[str, dict[str, NDArray]] = {}
        for j, var in enumerate(variables):
            column = values[:, j]
            by_group = {}
            for g in group_labels:
                arr = np.ascontiguousarray(column[masks[g]])
                arr.setflags(write=False)
                by_group[g] = arr
            group_data[var] = by_group

        group_means = {
            g: {
                var: float(np.mean(group_data[var][g])) if len(group_data[var][g]) else 0.0
                for var in variables
            }
            for g in group_labels
        }
        overall_means = {
            var: float(np.mean(values[:, j])) if len(values) else 0.0
            for j, var in enumerate(variables)
        }
        numbers = {}
        for g in group_labels:
            arr = np.asarray(case_numbers)[masks[g]].copy()
            arr.setflags(write=False)
            numbers[g] = arr

        return AnalyzedDataset(
            group_labels=group_labels,
            variables=variables,
            group_data=group_data,
            group_means=group_means,
            overall_means=overall_means,
            case_numbers=numbers,
            num_groups=len(group_labels),
            total_cases=int(len(values)),
        )
