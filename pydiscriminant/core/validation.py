"""
Boundary validation for PyDiscriminant.

Anything a host hands in (case matrices, group codes, option values) is
checked here and rejected loudly with the offending parameter named. Nothing
is silently repaired. Code behind this boundary assumes validated input and
uses documented numeric fallbacks instead of raising.
"""

from __future__ import annotations

from typing import Any, Mapping, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from pydiscriminant.core.exceptions import (
    ConfigurationError,
    DimensionError,
    ValidationError,
)


# ═══════════════════════════════════════════════════════════════════════
# Case data
# ═══════════════════════════════════════════════════════════════════════


def as_float_array(values: ArrayLike, name: str) -> NDArray[np.float64]:
    """
    Convert case values to a float64 array.

    Integer and boolean input is promoted. Strings, objects and ragged
    input are refused rather than coerced.

    Raises:
        ValidationError: If the values are not numeric
    """
    try:
        arr = np.asarray(values)
    except (ValueError, TypeError) as e:
        raise ValidationError(f"{name}: not convertible to a numeric array ({e})") from e

    if arr.dtype == object or not np.issubdtype(arr.dtype, np.number):
        if not np.issubdtype(arr.dtype, np.bool_):
            raise ValidationError(
                f"{name}: expected numeric values, got non-numeric dtype {arr.dtype}"
            )
    return arr.astype(np.float64, copy=False)


def check_finite(array: NDArray[np.floating[Any]], name: str) -> None:
    """
    Reject NaN and infinite values.

    Missing values are resolved during case selection, so any NaN that
    reaches an array validator is an error.
    """
    bad = ~np.isfinite(array)
    if bad.any():
        n_missing = int(np.isnan(array).sum())
        raise ValidationError(
            f"{name}: {int(bad.sum())} non-finite entries "
            f"({n_missing} missing, {int(bad.sum()) - n_missing} infinite)"
        )


def check_1d(array: NDArray[Any], name: str) -> None:
    if array.ndim != 1:
        raise DimensionError(
            f"{name}: expected one value per case, got shape {array.shape}"
        )


def check_2d(array: NDArray[Any], name: str) -> None:
    if array.ndim != 2:
        raise DimensionError(
            f"{name}: expected a cases x variables matrix, got shape {array.shape}"
        )


def check_same_cases(arrays: Mapping[str, NDArray[Any]]) -> None:
    """
    Require every array to describe the same number of cases.

    Args:
        arrays: Parameter name -> array; rows are cases

    Raises:
        DimensionError: If the row counts differ
    """
    counts = {name: arr.shape[0] for name, arr in arrays.items()}
    if len(set(counts.values())) > 1:
        detail = ", ".join(f"{name} has {n}" for name, n in counts.items())
        raise DimensionError(f"Case counts differ: {detail}")


def check_min_cases(array: NDArray[Any], minimum: int, name: str) -> None:
    n = array.shape[0]
    if n < minimum:
        raise ValidationError(f"{name}: needs at least {minimum} cases, got {n}")


# ═══════════════════════════════════════════════════════════════════════
# Options
# ═══════════════════════════════════════════════════════════════════════


def check_probability(value: float, name: str) -> None:
    """
    Verify an option is a probability in [0, 1].

    Raises:
        ConfigurationError: If value is outside [0, 1] or not a number
    """
    if not isinstance(value, (int, float)) or not (0.0 <= value <= 1.0):
        raise ConfigurationError(
            f"{name}: expected a probability in [0, 1], got {value!r}",
            option=name,
        )


def check_non_negative(value: float, name: str) -> None:
    """
    Verify a numeric option is >= 0.

    Raises:
        ConfigurationError: If value is negative or not a number
    """
    if not isinstance(value, (int, float)) or value < 0:
        raise ConfigurationError(
            f"{name}: expected a non-negative number, got {value!r}",
            option=name,
        )


def check_unique_names(names: Sequence[str], name: str) -> None:
    """
    Verify a list of variable names has no duplicates.

    Raises:
        ConfigurationError: If any name appears more than once
    """
    seen: set[str] = set()
    duplicates = [n for n in names if n in seen or seen.add(n)]
    if duplicates:
        raise ConfigurationError(
            f"{name}: duplicate variable names {sorted(set(duplicates))}",
            option=name,
        )
