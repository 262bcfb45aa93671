"""
Core infrastructure for PyDiscriminant.

Shared abstractions used by the discriminant procedures.

Key components:
    result: Generic Result[P] envelope
    exceptions: Exception hierarchy
    validation: Input validators
    tracing: Checkpoint event receivers
    compute: Timing, precision constants, ordered parallel map
"""

from pydiscriminant.core.result import Result
from pydiscriminant.core.exceptions import (
    PyDiscriminantError,
    ValidationError,
    DimensionError,
    ConfigurationError,
    NumericalError,
    MatrixError,
    SingularMatrixError,
    NotPositiveDefiniteError,
)
from pydiscriminant.core.tracing import (
    Tracer,
    LoggingTracer,
    NullTracer,
    RecordingTracer,
)

__all__ = [
    # Result
    "Result",
    # Exceptions
    "PyDiscriminantError",
    "ValidationError",
    "DimensionError",
    "ConfigurationError",
    "NumericalError",
    "MatrixError",
    "SingularMatrixError",
    "NotPositiveDefiniteError",
    # Tracing
    "Tracer",
    "LoggingTracer",
    "NullTracer",
    "RecordingTracer",
]
