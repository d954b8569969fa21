"""Unit tests for consensus building.

Tests curve_lib.analysis.condense:
    - merge_pair: weighted average by source count, source count law
    - Condenser.condense: source count of the result, provenance, edge cases
    - Cancellation
    - envelope_widths and get_std_dev_at_each_point
"""

import unittest

import numpy as np

from curve_lib.analysis.condense import (
    Condenser,
    condense,
    envelope_widths,
    get_std_dev_at_each_point,
    merge_pair,
)
from curve_lib.analysis.matching import Matcher
from curve_lib.config import ComparisonConfig, EnvelopeMode, Metric
from curve_lib.domain.path import Path
from curve_lib.errors import InvalidInputError, NoCommonAnchorError, OperationCancelledError


def horizontal(y, source_count=1, n=13):
    return Path([(float(x), y) for x in range(n)], source_count=source_count)


def wave(amplitude, offset):
    x = np.linspace(0.0, 20.0, 41)
    return Path(np.column_stack([x, offset + amplitude * np.sin(x / 3.0)]))


def ellipse(rx, ry, n=60):
    t = np.linspace(0.0, 2 * np.pi, n, endpoint=False)
    return Path(np.column_stack([rx * np.cos(t), ry * np.sin(t)]), closed=True)


class TestMergePair(unittest.TestCase):
    """Tests for merge_pair."""

    def setUp(self):
        self.matcher = Matcher(delta=1.0, metric=Metric.AVG_PHYS_DIST)

    def test_equal_weights_give_midline(self):
        merged = merge_pair(horizontal(0.0).resample(1.0), horizontal(4.0).resample(1.0),
                            self.matcher, 1.0)
        np.testing.assert_allclose(merged.points[:, 1], 2.0)
        self.assertEqual(merged.source_count, 2)

    def test_weighted_by_source_count(self):
        merged = merge_pair(horizontal(0.0, source_count=3).resample(1.0),
                            horizontal(4.0, source_count=1).resample(1.0),
                            self.matcher, 1.0)
        np.testing.assert_allclose(merged.points[:, 1], 1.0)
        self.assertEqual(merged.source_count, 4)

    def test_source_count_law(self):
        a = wave(1.0, 0.0)
        b = wave(1.3, 0.5)
        a = Path(a.points, source_count=2).resample(1.0, keep_provenance=True)
        b = Path(b.points, source_count=3).resample(1.0, keep_provenance=True)
        merged = merge_pair(a, b, self.matcher, 1.0)
        self.assertEqual(merged.source_count, 5)
        self.assertTrue(merged.is_resampled_to(1.0))
        self.assertIsNotNone(merged.provenance)

    def test_closed_outlines_stay_closed(self):
        merged = merge_pair(ellipse(12.0, 8.0).resample(1.0), ellipse(13.0, 7.5).resample(1.0),
                            self.matcher, 1.0)
        self.assertTrue(merged.closed)
        self.assertEqual(merged.source_count, 2)

    def test_without_cut(self):
        merged = merge_pair(horizontal(0.0).resample(1.0), horizontal(2.0).resample(1.0),
                            self.matcher, 1.0, cut_uneven_ends=False)
        self.assertEqual(merged.source_count, 2)


class TestCondense(unittest.TestCase):
    """Tests for Condenser.condense."""

    def setUp(self):
        self.paths = [wave(1.0, 0.0), wave(1.2, 0.4), wave(0.8, -0.3), wave(1.1, 0.2)]
        self.condenser = Condenser(Matcher(metric=Metric.AVG_PHYS_DIST), max_workers=2)

    def test_source_count_is_number_of_inputs(self):
        result = self.condenser.condense(self.paths, delta=1.0)
        self.assertEqual(result.source_count, 4)

    def test_consensus_lies_between_inputs(self):
        result = self.condenser.condense(self.paths[:2], delta=1.0)
        mean_y = result.points[:, 1].mean()
        self.assertGreater(mean_y, self.paths[0].points[:, 1].mean())
        self.assertLess(mean_y, self.paths[1].points[:, 1].mean())

    def test_provenance_reaches_all_inputs(self):
        result = self.condenser.condense(self.paths, delta=1.0)
        self.assertEqual(len(result.provenance), len(result))
        sources = np.unique(np.concatenate(result.provenance.members))
        self.assertGreaterEqual(len(result.provenance.arena), sum(len(p) for p in self.paths))
        self.assertGreater(len(sources), len(self.paths[0]))

    def test_provenance_arena_holds_input_points(self):
        inputs = [self.paths[0], self.paths[1].resample(1.0)]
        result = self.condenser.condense(inputs, delta=1.0)
        arena = result.provenance.arena
        raw = np.vstack([p.points for p in inputs])

        def ordered(pts):
            return pts[np.lexsort(pts.T[::-1])]

        np.testing.assert_array_equal(ordered(arena), ordered(raw))

    def test_std_dev_positive_somewhere(self):
        result = self.condenser.condense(self.paths, delta=1.0)
        std = result.std_dev_at_each_point()
        self.assertEqual(len(std), len(result))
        self.assertGreater(std.max(), 0.0)

    def test_default_delta(self):
        result = self.condenser.condense(self.paths[:2])
        self.assertTrue(result.is_resampled)
        self.assertEqual(result.source_count, 2)

    def test_closed_consensus(self):
        outlines = [ellipse(12.0, 8.0), ellipse(13.0, 7.5), ellipse(11.5, 8.5)]
        result = self.condenser.condense(outlines, delta=1.0)
        self.assertTrue(result.closed)
        self.assertEqual(result.source_count, 3)

    def test_single_path_unchanged(self):
        self.assertIs(self.condenser.condense(self.paths[:1]), self.paths[0])

    def test_empty(self):
        with self.assertRaises(NoCommonAnchorError):
            self.condenser.condense([])

    def test_cancelled(self):
        with self.assertRaises(OperationCancelledError):
            self.condenser.condense(self.paths, delta=1.0, is_cancelled=lambda: True)

    def test_module_function(self):
        config = ComparisonConfig(metric=Metric.PROXIMITY, max_workers=1)
        result = condense(self.paths[:3], delta=1.0, config=config)
        self.assertEqual(result.source_count, 3)

    def test_from_config(self):
        config = ComparisonConfig(delta=0.5, cut_uneven_ends=False, max_workers=2)
        condenser = Condenser.from_config(config)
        self.assertEqual(condenser.matcher.delta, 0.5)
        self.assertFalse(condenser.cut_uneven_ends)
        self.assertEqual(condenser.max_workers, 2)


class TestEnvelope(unittest.TestCase):
    """Tests for envelope_widths."""

    def setUp(self):
        paths = [wave(1.0, 0.0), wave(1.2, 0.6), wave(0.8, -0.5)]
        self.consensus = Condenser(Matcher(metric=Metric.AVG_PHYS_DIST)).condense(paths, delta=1.0)

    def test_std_dev_multiples(self):
        one = envelope_widths(self.consensus, EnvelopeMode.STD_DEV_1)
        two = envelope_widths(self.consensus, EnvelopeMode.STD_DEV_2)
        three = envelope_widths(self.consensus, 'std_dev_3')
        np.testing.assert_allclose(two, 2 * one)
        np.testing.assert_allclose(three, 3 * one)
        np.testing.assert_allclose(one, get_std_dev_at_each_point(self.consensus))

    def test_mean_not_above_max(self):
        mean = envelope_widths(self.consensus, EnvelopeMode.MEAN_DISTANCE)
        largest = self.consensus.envelope_widths(EnvelopeMode.MAX_DISTANCE)
        self.assertTrue(np.all(mean <= largest + 1e-12))

    def test_needs_provenance(self):
        with self.assertRaises(InvalidInputError):
            envelope_widths(horizontal(0.0), EnvelopeMode.STD_DEV_1)


if __name__ == '__main__':
    unittest.main()
