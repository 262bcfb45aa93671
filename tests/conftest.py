"""
pytest configuration and shared fixtures.
"""

import pytest
import numpy as np


@pytest.fixture
def rng():
    """Seeded random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture
def collinear_data(rng):
    """Three columns where the third is the sum of the first two."""
    n = 60
    x1 = rng.standard_normal(n)
    x2 = rng.standard_normal(n)
    X = np.column_stack([x1, x2, x1 + x2])
    group = np.repeat(['a', 'b', 'c'], n // 3)
    return X, group
