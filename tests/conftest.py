"""
Pytest configuration and shared fixtures for the fsi_coupling test suite.

This module provides common fixtures, test configuration, and utilities
used across the entire test suite.
"""

import numpy as np
import pytest

from fsi_coupling.config import AndersonConfig, ConvergenceSettings
from fsi_coupling.core import LinearFixedPointEvaluator

# =============================================================================
# Test Configuration
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (slower, cross-component)")
    config.addinivalue_line("markers", "slow: Slow tests (may take >10 seconds)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test paths."""
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)

        if "slow" in item.name:
            item.add_marker(pytest.mark.slow)


# =============================================================================
# Evaluator Fixtures
# =============================================================================


def symmetric_contraction(eigenvalues, seed=0):
    """Symmetric matrix with the given eigenvalues and a seeded eigenbasis."""
    eigenvalues = np.asarray(eigenvalues, dtype=float)
    rng = np.random.default_rng(seed)
    Q, _ = np.linalg.qr(rng.standard_normal((eigenvalues.size, eigenvalues.size)))
    return Q @ np.diag(eigenvalues) @ Q.T


@pytest.fixture
def contraction_matrix():
    """4x4 contraction with distinct eigenvalues and spectral radius 0.5."""
    return symmetric_contraction([0.5, 0.3, -0.2, 0.1], seed=42)


@pytest.fixture
def linear_evaluator(contraction_matrix):
    """evaluate(x) = (A x, A x - x); fixed point at the origin."""
    return LinearFixedPointEvaluator(contraction_matrix)


@pytest.fixture
def affine_evaluator(contraction_matrix):
    """evaluate(x) = (A x + b, A x + b - x) with a nonzero fixed point."""
    return LinearFixedPointEvaluator(contraction_matrix, b=np.array([1.0, -2.0, 0.5, 3.0]))


@pytest.fixture
def stalled_evaluator():
    """Residual is identically one, so no criterion can ever be met."""
    return LinearFixedPointEvaluator(np.eye(4), b=np.ones(4))


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture
def tight_convergence():
    return ConvergenceSettings(tolerance=1e-10)


@pytest.fixture
def anderson_config():
    """Jacobian-free Anderson mixing with enough columns for a 4-vector."""
    return AndersonConfig(max_iterations=20, max_used_iterations=4, singularity_limit=1e-12)


@pytest.fixture
def x0():
    return np.ones(4)
