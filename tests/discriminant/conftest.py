"""
Shared fixtures for discriminant analysis tests.

The three-group scenario uses identical residuals in every group, points
on the unit circle (cos, sin), so the residuals of x1 and x2 are exactly
uncorrelated and every group has exactly the same covariance matrix.
"""

import numpy as np
import pytest

from pydiscriminant.discriminant.config import (
    DiscriminantConfig,
    MainOptions,
    MethodOptions,
)
from pydiscriminant.discriminant.design import AnalyzedDataset

_ANGLES = 2.0 * np.pi * np.arange(10) / 10.0
RESIDUALS = np.column_stack([np.cos(_ANGLES), np.sin(_ANGLES)])
CENTROIDS = {1: (0.0, 0.0), 2: (5.0, 5.0), 3: (10.0, 10.0)}


def make_records(centroids=CENTROIDS, residuals=RESIDUALS):
    records = []
    for code, (m1, m2) in centroids.items():
        for r1, r2 in residuals:
            records.append({'group': code, 'x1': m1 + r1, 'x2': m2 + r2})
    return records


def stepwise_config(**method_options):
    options = dict(wilks=True, f_value=False, f_probability=True, p_entry=0.05, p_removal=0.10)
    options.update(method_options)
    return DiscriminantConfig(
        main=MainOptions(
            grouping_variable='group',
            independent_variables=('x1', 'x2'),
            stepwise=True,
        ),
        method=MethodOptions(**options),
    )


@pytest.fixture
def three_group_records():
    """3 groups x 10 cases, centroids (0,0), (5,5), (10,10)."""
    return make_records()


@pytest.fixture
def three_group_config():
    """Stepwise Wilks config with probability criteria 0.05 / 0.10."""
    return stepwise_config()


@pytest.fixture
def three_group_dataset(three_group_records, three_group_config):
    return AnalyzedDataset.from_records(three_group_records, three_group_config)


@pytest.fixture
def identical_means_dataset():
    """Two groups with exactly the same values for one variable."""
    x = np.concatenate([RESIDUALS[:, 0], RESIDUALS[:, 0]])
    group = np.repeat(['a', 'b'], 10)
    return AnalyzedDataset.from_arrays(x, group, variables=['x1'])


@pytest.fixture
def random_dataset(rng):
    """3 groups of unequal size with 4 variables and shifted means."""
    sizes = [15, 20, 25]
    shifts = [np.zeros(4), np.array([1.5, 0.0, 0.5, 0.0]), np.array([0.0, 2.0, 0.0, 0.3])]
    X = np.vstack([rng.standard_normal((n, 4)) + s for n, s in zip(sizes, shifts)])
    group = np.repeat(['low', 'mid', 'high'], sizes)
    return AnalyzedDataset.from_arrays(X, group, variables=['a', 'b', 'c', 'd'])


@pytest.fixture
def make_config():
    """Factory: make_config(**method_options) -> stepwise DiscriminantConfig."""
    return stepwise_config
