"""
PyDiscriminant: discriminant analysis with stepwise variable selection.

Submodules:
    discriminant: Stepwise selection, Box's M, canonical functions,
        classification and the descriptive tables around them
    core: Result envelope, exceptions, validation, timing, tracing
"""

__version__ = "0.1.0"

from pydiscriminant import discriminant
from pydiscriminant.discriminant import (
    AnalyzedDataset,
    DiscriminantConfig,
    discriminant_analysis,
    stepwise_statistics,
)

__all__ = [
    "__version__",
    "discriminant",
    "AnalyzedDataset",
    "DiscriminantConfig",
    "discriminant_analysis",
    "stepwise_statistics",
]
