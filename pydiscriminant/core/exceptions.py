"""
Exception hierarchy for PyDiscriminant.

All exceptions inherit from PyDiscriminantError so a host can catch any
library-specific error. Procedure-level code raises these; the numeric
primitives underneath the stepwise engine never do and instead return
documented fallback values.

Design principles:
    - Exceptions carry diagnostic information as attributes
    - Error messages name the offending option or variable
    - Never catch and re-raise with less information
"""

from __future__ import annotations


class PyDiscriminantError(Exception):
    """Base exception for all PyDiscriminant errors."""
    pass


class ValidationError(PyDiscriminantError):
    """
    Input validation failed.

    Raised when user-provided data fails validation checks.
    """
    pass


class DimensionError(ValidationError):
    """
    Array dimensions are incorrect or inconsistent.
    """
    pass


class ConfigurationError(ValidationError):
    """
    Analysis configuration is unusable.

    Raised for missing variables, a missing grouping variable, mutually
    exclusive options set together, or a procedure requested without the
    option that enables it.

    Attributes:
        option: Dotted name of the offending option, if known
    """

    def __init__(self, message: str, option: str | None = None):
        super().__init__(message)
        self.option = option


class NumericalError(PyDiscriminantError):
    """
    Numerical computation failed with no sensible fallback value.
    """
    pass


class MatrixError(NumericalError):
    """
    A matrix built from the analysis variables could not be used.

    Attributes:
        matrix_name: Which matrix failed (e.g. 'within_groups_sscp')
        variables: Variables spanning the matrix, in row order
    """

    def __init__(
        self,
        message: str,
        *,
        matrix_name: str | None = None,
        variables: tuple[str, ...] = (),
    ):
        super().__init__(message)
        self.matrix_name = matrix_name
        self.variables = tuple(variables)

    @property
    def order(self) -> int | None:
        """Number of rows the matrix should have, if the variables are known."""
        return len(self.variables) or None


class SingularMatrixError(MatrixError):
    """
    Matrix cannot be inverted.

    Attributes:
        condition_number: 2-norm condition number, if computed
        rank: Numerical rank, if computed (compare with ``order``)
    """

    def __init__(
        self,
        message: str,
        *,
        condition_number: float | None = None,
        rank: int | None = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.condition_number = condition_number
        self.rank = rank


class NotPositiveDefiniteError(MatrixError):
    """
    Pooled within-groups matrix has no Cholesky factor, so the generalized
    eigenproblem for the canonical functions is undefined.
    """

    def __init__(self, message: str, *, min_eigenvalue: float | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.min_eigenvalue = min_eigenvalue
