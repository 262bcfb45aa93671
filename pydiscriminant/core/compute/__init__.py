"""
Shared compute infrastructure for PyDiscriminant.

Submodules:
    timing: Execution timing utilities
    precision: Regularization constants and numeric guards
    parallel: Order-preserving map over a thread pool
"""

from pydiscriminant.core.compute.timing import Timer, timed
from pydiscriminant.core.compute.parallel import ordered_map, resolve_n_jobs

__all__ = [
    # Timing
    "Timer",
    "timed",
    # Parallel
    "ordered_map",
    "resolve_n_jobs",
]
