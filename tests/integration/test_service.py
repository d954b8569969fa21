"""Integration tests for the comparison service.

Tests whole workflows through ComparisonService: gathering chains from trace
hierarchies, calibrating and resampling them, all-to-all scoring, ranking
matches for a query, and condensing a group into a consensus with its
variability envelope.
"""

import json
import sys
import threading
import unittest
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent.parent))

from curve_lib import ComparisonConfig, ComparisonService, Metric  # noqa: E402
from curve_lib.domain import Calibration, TraceNode, TraceSource  # noqa: E402
from curve_lib.domain import Path as CurvePath  # noqa: E402
from curve_lib.errors import NoCommonAnchorError, OperationCancelledError  # noqa: E402

pytestmark = pytest.mark.integration


def arbor(title, spread=1.0, bend=0.0):
    """Trunk with two side branches, as a trace source."""
    trunk = TraceNode('trunk', path=CurvePath([(bend * y / 10, float(y)) for y in range(11)]))
    trunk.add_child(TraceNode('left', path=CurvePath(
        [(bend - spread * k, 10.0 + k) for k in range(8)])))
    trunk.add_child(TraceNode('right', path=CurvePath(
        [(bend + spread * k, 10.0 + k) for k in range(8)])))
    return TraceSource(title, TraceNode(title, children=[trunk]))


class TestComparisonWorkflow(unittest.TestCase):
    """End-to-end comparison of two traced specimens."""

    def setUp(self):
        self.service = ComparisonService(ComparisonConfig(
            delta=1.0, metric=Metric.AVG_PHYS_DIST, max_workers=2))
        self.sources = [arbor('specimen A'), arbor('specimen B', spread=1.2, bend=0.5)]

    def test_gather_chains(self):
        chains, delta = self.service.gather_chains(self.sources)
        self.assertEqual(delta, 1.0)
        self.assertEqual(len(chains), 4)
        for chain in chains:
            self.assertTrue(chain.path.is_resampled_to(1.0))
            self.assertIsNotNone(chain.path.provenance)

    def test_all_to_all(self):
        chains, _ = self.service.gather_chains(self.sources)
        table = self.service.compare_all_to_all(chains)
        self.assertEqual(table.matrix.shape, (4, 4))
        np.testing.assert_array_equal(np.diag(table.matrix), np.zeros(4))
        np.testing.assert_allclose(table.matrix, table.matrix.T)
        self.assertEqual(table.short_titles, ['trunk'] * 4)
        self.assertTrue(table.titles[0].startswith('specimen A'))

    def test_score_table_serializes(self):
        chains, _ = self.service.gather_chains(self.sources)
        data = json.loads(json.dumps(self.service.compare_all_to_all(chains).to_dict()))
        self.assertEqual(len(data['matrix']), 4)
        self.assertEqual(len(data['root_ids']), 4)

    def test_rank_matches(self):
        chains, _ = self.service.gather_chains(self.sources)
        query = chains[0]
        matches = self.service.rank_matches(query, chains)
        self.assertEqual(len(matches), 3)
        values = [m.stats.mean_distance for m in matches]
        self.assertEqual(values, sorted(values))
        self.assertTrue(all(m.query is query for m in matches))

    def test_rank_matches_two_stage(self):
        service = ComparisonService(ComparisonConfig(
            delta=1.0, metric=Metric.AVG_PHYS_DIST, secondary_metric=Metric.LEVENSHTEIN,
            min_matches=1))
        chains, _ = service.gather_chains(self.sources)
        matches = service.rank_matches(chains[0], chains[1:])
        self.assertGreaterEqual(len(matches), 1)
        self.assertLessEqual(len(matches), 3)

    def test_variability(self):
        chains, _ = self.service.gather_chains(self.sources)
        result = self.service.variability([c.path for c in chains if c.segments[1].title == 'left'])
        self.assertEqual(result.consensus.source_count, 2)
        self.assertEqual(len(result.std_devs), len(result.consensus))
        np.testing.assert_allclose(result.widths, 3 * result.std_devs)
        data = result.to_dict()
        self.assertEqual(data['source_count'], 2)
        self.assertEqual(len(data['points']), len(data['widths']))

    def test_variability_single_path(self):
        chains, _ = self.service.gather_chains(self.sources[:1])
        result = self.service.variability([chains[0].path])
        self.assertEqual(result.consensus.source_count, 1)
        self.assertEqual(len(result.widths), len(chains[0].path))


class TestServiceEdgeCases(unittest.TestCase):
    """Configuration-driven behavior and failures."""

    def test_no_chains(self):
        empty = TraceSource('empty', TraceNode('empty'))
        with self.assertRaises(NoCommonAnchorError):
            ComparisonService().gather_chains([empty])

    def test_variability_without_paths(self):
        with self.assertRaises(NoCommonAnchorError):
            ComparisonService().variability([])

    def test_exclusion_from_config(self):
        service = ComparisonService(ComparisonConfig(delta=1.0, exclude_pattern='left'))
        chains, _ = service.gather_chains([arbor('A')])
        self.assertEqual(len(chains), 1)

    def test_average_spacing_as_delta(self):
        chains, delta = ComparisonService().gather_chains([arbor('A')])
        self.assertGreater(delta, 0.9)
        self.assertLess(delta, 1.5)
        self.assertTrue(all(c.path.is_resampled_to(delta) for c in chains))

    def test_calibration_applied(self):
        source = arbor('A')
        source.calibration = Calibration(scale=(2.0, 2.0), unit='um')
        service = ComparisonService(ComparisonConfig(delta=1.0))
        chains, _ = service.gather_chains([source])
        self.assertTrue(chains[0].path.is_calibrated)
        self.assertGreater(chains[0].path.arc_length(), 30.0)

    def test_cancelled(self):
        stop = threading.Event()
        stop.set()
        service = ComparisonService(ComparisonConfig(delta=1.0))
        with self.assertRaises(OperationCancelledError):
            service.gather_chains([arbor('A')], is_cancelled=stop.is_set)


def test_wavy_paths_condense(wavy_paths):
    service = ComparisonService(ComparisonConfig(delta=1.0, max_workers=2))
    result = service.variability(wavy_paths)
    assert result.consensus.source_count == len(wavy_paths)
    assert np.all(result.widths >= 0)


def test_fixture_source(trace_source):
    service = ComparisonService(ComparisonConfig(delta=1.0))
    chains, _ = service.gather_chains([trace_source])
    assert [c.segments[1].title for c in chains] == ['left', 'right']
    table = service.compare_all_to_all(chains)
    assert table.matrix[0, 1] == table.matrix[1, 0]


def test_closed_outlines(closed_square):
    service = ComparisonService(ComparisonConfig(delta=1.0, metric=Metric.PROXIMITY))
    shifted = closed_square.translated((0.5, 0.5))
    result = service.variability([closed_square, shifted])
    assert result.consensus.source_count == 2


def test_parallel_lines_consensus(line_path):
    service = ComparisonService(ComparisonConfig(delta=1.0, metric=Metric.AVG_PHYS_DIST))
    result = service.variability([line_path, line_path.translated((0.0, 2.0))])
    np.testing.assert_allclose(result.consensus.points[:, 1], 1.0)
