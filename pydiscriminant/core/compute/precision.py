"""
Numerical precision constants and utilities.

DEFAULT_EPSILON is the diagonal regularization added to covariance
matrices before inversion or log-determinants. It is only a default: every
function that regularizes takes an explicit ``epsilon`` keyword, and
DiscriminantConfig carries the value used for a run.
"""

from __future__ import annotations

from typing import Any

import numpy as np
from numpy.typing import NDArray


# Diagonal regularization for covariance matrices
DEFAULT_EPSILON: float = 1e-8

# Candidates whose tolerance falls below this never enter (SPSS default)
DEFAULT_TOLERANCE: float = 0.001

# Fraction of tolerance reported as minimum tolerance
MIN_TOLERANCE_FACTOR: float = 0.8

# F statistic reported when Wilks' lambda collapses to zero
F_CEILING: float = 10000.0

# F above this is treated as p = 0 without calling the distribution
F_SATURATION: float = 1e6


def regularize(matrix: NDArray[np.floating[Any]], epsilon: float) -> NDArray[np.floating[Any]]:
    """
    Return a copy of a square matrix with epsilon added to its diagonal.

    Args:
        matrix: Square matrix
        epsilon: Value added to every diagonal element

    Returns:
        New regularized matrix; the input is not modified
    """
    out = np.array(matrix, dtype=np.float64, copy=True)
    if out.size:
        out[np.diag_indices_from(out)] += epsilon
    return out


def safe_divide(
    numerator: NDArray[np.floating[Any]],
    denominator: NDArray[np.floating[Any]],
    fill_value: float = 0.0
) -> NDArray[np.floating[Any]]:
    """
    Division with protection against divide-by-zero.

    Args:
        numerator: Numerator array
        denominator: Denominator array
        fill_value: Value to use where denominator is zero

    Returns:
        Result of division with fill_value where denominator is zero
    """
    with np.errstate(divide='ignore', invalid='ignore'):
        result = np.asarray(numerator, dtype=np.float64) / denominator
        result = np.where(np.isfinite(result), result, fill_value)
    return result


def clamp_unit(value: float) -> float:
    """Clamp a probability-like value to [0, 1]; NaN maps to 1.0."""
    if np.isnan(value):
        return 1.0
    return float(min(max(value, 0.0), 1.0))
