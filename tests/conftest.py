"""
Pytest configuration and fixtures for reproducible testing.

This file provides centralized test configuration including:
- Random seed management for reproducibility
- Shared calibration curve and simulated datasets
- Small MCMC settings for fast sampling tests
"""
import pytest
import numpy as np

from carbon_growth.data import simulate_dates, synthetic_curve


@pytest.fixture(scope="session", autouse=True)
def set_random_seeds():
    """Set random seeds at the start of test session for reproducibility."""
    np.random.seed(42)
    yield


@pytest.fixture
def rng():
    """Fresh, seeded numpy Generator for each test."""
    return np.random.default_rng(42)


@pytest.fixture(scope="session")
def curve():
    """Synthetic calibration curve covering 0-15000 BP."""
    return synthetic_curve()


@pytest.fixture(scope="session")
def window():
    """Growth window (a, b) in BP."""
    return 6500, 4500


@pytest.fixture(scope="session")
def exponential_dates(curve, window):
    """Radiocarbon dates simulated from exponential growth (r = 0.002)."""
    a, b = window
    return simulate_dates(80, a, b, 'exponential', curve,
                          rng=np.random.default_rng(1), r=0.002)
