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
def batch_temp_data(rng):
    """yield ~ batch + temp style dataset: 10 batches of 4, one covariate."""
    n_batches, per_batch = 10, 4
    batch = np.repeat(np.arange(1, n_batches + 1), per_batch)
    temp = rng.uniform(200.0, 450.0, size=n_batches * per_batch)
    return {'batch': batch, 'temp': temp}
