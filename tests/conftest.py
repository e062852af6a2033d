"""
Pytest fixtures for testing the sparse transform engine.

This module provides reusable fixtures including seeded sparse matrices,
the small column-selection scenario and parallel configurations.
"""
import pytest
import numpy as np

from featxform.config.parallel import ParallelConfig
from featxform.linalg import SparseMatrix


# Register custom pytest markers
def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


def make_sparse_dense(n_rows: int, n_cols: int, density: float, seed: int) -> np.ndarray:
    """Dense array with roughly ``density`` non-zeros, mixed-sign values."""
    rng = np.random.RandomState(seed)
    values = rng.normal(loc=2.0, scale=3.0, size=(n_rows, n_cols))
    mask = rng.uniform(size=(n_rows, n_cols)) < density
    return np.where(mask, values, 0.0)


@pytest.fixture
def sequential_config():
    """Run every pass inline."""
    return ParallelConfig.sequential()


@pytest.fixture
def threaded_config():
    """Force the joblib path even on small matrices."""
    return ParallelConfig(
        n_jobs=4,
        backend='threading',
        chunk_size=7,
        min_parallel_rows=0,
        report_memory=False,
    )


@pytest.fixture
def train_dense():
    """200 x 12 training data; column 5 is all zero, row 0 is absent."""
    np.random.seed(42)  # For reproducible tests
    dense = make_sparse_dense(200, 12, density=0.3, seed=42)
    dense[:, 5] = 0.0
    dense[0, :] = 0.0
    # column 9 holds a single observation
    dense[:, 9] = 0.0
    dense[17, 9] = 4.0
    return dense


@pytest.fixture
def train_matrix(train_dense):
    """SparseMatrix built from train_dense."""
    return SparseMatrix.from_dense(train_dense)


@pytest.fixture
def holdout_dense():
    """50 x 12 held-out data drawn from the same distribution."""
    return make_sparse_dense(50, 12, density=0.3, seed=7)


@pytest.fixture
def holdout_matrix(holdout_dense):
    """SparseMatrix built from holdout_dense."""
    return SparseMatrix.from_dense(holdout_dense)


@pytest.fixture
def selector_dense():
    """4 x 3 scenario: column 0 = [1,2,3,4], column 1 all zero, column 2 = [5,0,0,0]."""
    return np.array([
        [1.0, 0.0, 5.0],
        [2.0, 0.0, 0.0],
        [3.0, 0.0, 0.0],
        [4.0, 0.0, 0.0],
    ])


@pytest.fixture
def selector_matrix(selector_dense):
    """SparseMatrix built from selector_dense."""
    return SparseMatrix.from_dense(selector_dense)


@pytest.fixture
def feature_names():
    """Names for the 12 columns of train_dense."""
    return [f'feat_{i:02d}' for i in range(12)]
