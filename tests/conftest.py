"""Shared pytest fixtures and configuration.

This file is automatically loaded by pytest and provides fixtures
accessible to all tests.
"""

import os
import threading

import pytest
from hypothesis import HealthCheck, settings

from topkview.config import DashboardConfig
from topkview.scheduler import Scheduler
from topkview.sketch import SlidingSketch

# =============================================================================
# Hypothesis Configuration
# =============================================================================

settings.register_profile(
    "ci",
    max_examples=50,  # Faster for CI
    deadline=None,  # No deadlines for slow tests
    suppress_health_check=[HealthCheck.too_slow],
)

settings.register_profile(
    "dev",
    max_examples=10,  # Very fast for local development
    deadline=500,  # 500ms deadline for local tests
)

settings.register_profile(
    "thorough",
    max_examples=1000,  # Comprehensive for nightly runs
    deadline=None,
)

settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "dev"))

# =============================================================================
# Sketch / Scheduler Fixtures
# =============================================================================


@pytest.fixture
def sketch():
    """Small seeded sketch with a 10-tick window."""
    return SlidingSketch(k=5, history_length=10, width=512, depth=3, seed=7)


@pytest.fixture
def sketch_lock():
    return threading.Lock()


@pytest.fixture
def small_config():
    """Config with a small sketch and a 10-tick window."""
    return DashboardConfig(k=5, width=512, depth=3, seed=7)


@pytest.fixture
def scheduler(small_config):
    """Unstarted scheduler on a frozen clock."""
    return Scheduler(small_config, clock=lambda: 0.0)
