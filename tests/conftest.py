"""
Test configuration and fixtures for hmm_engine.

This file contains pytest configuration and shared fixtures
for testing the HMM engine.
"""

import pytest
import tempfile
import numpy as np
from pathlib import Path

from hmm_engine.config import reset_config
from hmm_engine.emission import DiscreteEmission, GaussianEmission
from hmm_engine.hmm import HiddenMarkovModel


@pytest.fixture(autouse=True)
def default_config():
    """Restore default configuration around every test."""
    reset_config()
    yield
    reset_config()


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(12345)


@pytest.fixture
def regression_model():
    """
    Three-state, four-symbol model whose log-likelihoods are known to
    ten digits. The chain starts in state 0 at t = -1.
    """
    transition = np.array([[0.5, 0.0, 0.1],
                           [0.2, 0.6, 0.2],
                           [0.3, 0.4, 0.7]])
    emissions = [
        DiscreteEmission([0.75, 0.25, 0.00, 0.00]),
        DiscreteEmission([0.00, 0.25, 0.25, 0.50]),
        DiscreteEmission([0.10, 0.40, 0.40, 0.10])
    ]
    return HiddenMarkovModel(transition, emissions, start_state=0)


@pytest.fixture
def weather_model():
    """Two-state umbrella model with a uniform initial distribution."""
    transition = np.array([[0.7, 0.3],
                           [0.3, 0.7]])
    emissions = [DiscreteEmission([0.9, 0.1]), DiscreteEmission([0.2, 0.8])]
    return HiddenMarkovModel(transition, emissions)


@pytest.fixture
def gaussian_model():
    """Three-state model over 2-D Gaussian observations."""
    transition = np.array([[0.4, 0.6, 0.8],
                           [0.2, 0.2, 0.1],
                           [0.4, 0.2, 0.1]])
    emissions = [
        GaussianEmission([0.0, 0.0], [[1.0, 0.3], [0.3, 1.5]]),
        GaussianEmission([4.0, 1.0], [[0.8, 0.0], [0.0, 0.6]]),
        GaussianEmission([-3.0, 5.0], np.eye(2))
    ]
    return HiddenMarkovModel(transition, emissions)


def pytest_configure(config):
    """Configure pytest."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
