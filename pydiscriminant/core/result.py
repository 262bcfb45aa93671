"""
Result envelope shared by every PyDiscriminant procedure.

A procedure returns its table as a frozen params payload; Result wraps it
with what the host needs besides the numbers: which procedure ran, the
metadata it used, the phase timings and any non-fatal notes.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

import numpy as np
import scipy

P = TypeVar('P')


def _default_provenance() -> dict[str, str]:
    from pydiscriminant import __version__

    return {
        'pydiscriminant_version': __version__,
        'numpy_version': np.__version__,
        'scipy_version': scipy.__version__,
        'python_version': platform.python_version(),
    }


@dataclass(frozen=True)
class Result(Generic[P]):
    """
    Frozen envelope around one procedure's payload.

    Attributes:
        params: The table (e.g. BoxMTestParams, StepwiseParams)
        info: Analysis metadata: variables, epsilon, case counts
        timing: Seconds per phase from Timer.result(); None in unit tests
        procedure: Name of the procedure that built the payload
        warnings: Notes for the host (excluded cases, step cap, ...)
        provenance: Library versions, filled in automatically

    Example:
        >>> Result(
        ...     params=BoxMTestParams(...),
        ...     info={'variables': ('x1', 'x2')},
        ...     timing={'total_seconds': 0.01, 'box_m': 0.008},
        ...     procedure='box_m_test',
        ... )
    """
    params: P
    info: dict[str, Any]
    timing: dict[str, float] | None
    procedure: str
    warnings: tuple[str, ...] = field(default_factory=tuple)
    provenance: dict[str, str] = field(default_factory=_default_provenance)

    def has_warning(self, substring: str) -> bool:
        return any(substring in w for w in self.warnings)
