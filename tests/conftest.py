"""
conftest.py - Shared pytest fixtures for the plant portal test suite.

No database fixtures are defined here. Scoring tests build record snapshots
directly; scorecard and fetcher tests monkeypatch the store layer.

Import-path bootstrapping:
    The repository root is inserted into sys.path so that ``core.*``,
    ``utils.*`` and ``ui.*`` imports resolve regardless of where pytest is
    invoked.
"""

import os
import sys
from datetime import datetime

import pytest

# ---------------------------------------------------------------------------
# Ensure the repository root is on the import path before any project imports.
# ---------------------------------------------------------------------------
_ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if _ROOT_DIR not in sys.path:
    sys.path.insert(0, _ROOT_DIR)

from utils.formatting import get_plant_timezone  # noqa: E402


# ---------------------------------------------------------------------------
# Clock fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def plant_tz():
    return get_plant_timezone()


@pytest.fixture(scope="session")
def at(plant_tz):
    """Build an aware plant-time datetime: ``at(2024, 3, 13, 10, 15)``."""
    def _at(year, month, day, hour=0, minute=0):
        return plant_tz.localize(datetime(year, month, day, hour, minute))
    return _at


@pytest.fixture
def now(at):
    """
    Wednesday 2024-03-13 10:15 plant time.

    4.25 hours into a shift that starts at 06:00, and clear of the
    2024-03-10 daylight-saving change.
    """
    return at(2024, 3, 13, 10, 15)
