"""Shared pytest fixtures for the curve_lib test suite.

Fixtures:
    line_path: Straight open path of 11 points spaced 1.0 apart
    closed_square: Counter-clockwise closed square with 40 points
    wavy_paths: Four similar open sine-like paths
    trace_source: Small branching trace hierarchy wrapped in a TraceSource

Markers:
    slow: Mark test as slow-running (skip with -m "not slow")
    integration: Mark test as integration test
"""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from curve_lib.domain import Path as CurvePath  # noqa: E402
from curve_lib.domain import TraceNode, TraceSource  # noqa: E402


def pytest_configure(config):
    """Register custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: mark test as slow-running (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


def make_wave(amplitude=1.0, phase=0.0, offset=0.0, length=20.0, n=41):
    """Open sine-like path along the x axis."""
    x = np.linspace(0.0, length, n)
    y = offset + amplitude * np.sin(x / 3.0 + phase)
    return CurvePath(np.column_stack([x, y]))


def make_square(side=10.0, per_side=10):
    """Counter-clockwise closed square starting at the origin."""
    t = np.arange(per_side) / per_side * side
    points = np.vstack([
        np.column_stack([t, np.zeros(per_side)]),
        np.column_stack([np.full(per_side, side), t]),
        np.column_stack([side - t, np.full(per_side, side)]),
        np.column_stack([np.zeros(per_side), side - t]),
    ])
    return CurvePath(points, closed=True)


# -----------------------------------------------------------------------------
# Path Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def line_path():
    """Return a straight open path from (0, 0) to (10, 0)."""
    return CurvePath([(float(x), 0.0) for x in range(11)])


@pytest.fixture
def closed_square():
    """Return a closed 10x10 square traced counter-clockwise."""
    return make_square()


@pytest.fixture
def wavy_paths():
    """Return four similar, distinct open paths."""
    return [
        make_wave(),
        make_wave(amplitude=1.2, offset=0.3),
        make_wave(amplitude=0.8, phase=0.2),
        make_wave(amplitude=1.5, offset=-0.4, phase=-0.1),
    ]


# -----------------------------------------------------------------------------
# Hierarchy Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def trace_source():
    """Return a trunk with two branches, wrapped in a TraceSource.

    Structure::

        arbor (no segment)
        └── trunk   (0, 0) -> (0, 10)
            ├── left   (0, 10) -> (-6, 16)
            └── right  (0, 10) -> (6, 16)
    """
    trunk = TraceNode('trunk', path=CurvePath([(0, y) for y in range(11)]))
    trunk.add_child(TraceNode('left', path=CurvePath([(-k, 10 + k) for k in range(7)])))
    trunk.add_child(TraceNode('right', path=CurvePath([(k, 10 + k) for k in range(7)])))
    root = TraceNode('arbor', children=[trunk])
    return TraceSource('specimen', root)
