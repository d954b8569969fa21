"""Unit tests for uniform resampling.

Tests curve_lib.analysis.resampling:
    - Idempotence: resampling twice to the same delta is a no-op
    - Spacing: consecutive output points sit delta apart
    - Coverage: output starts at the first point and reaches the end
    - Closed paths: winding normalized to counter-clockwise
    - Provenance: every output point records its raw source points
    - Invalid input: bad delta, too few points, zero length
"""

import math
import unittest

import numpy as np

from curve_lib.analysis.resampling import Resampler, normalize_winding, resample
from curve_lib.domain.path import Path
from curve_lib.errors import InvalidInputError
from curve_lib.utils.geometry import segment_lengths, signed_area


def wave(n=60, length=30.0):
    x = np.linspace(0.0, length, n)
    return Path(np.column_stack([x, 2.0 * np.sin(x / 4.0)]))


def circle(n=80, radius=10.0, clockwise=False):
    t = np.linspace(0.0, 2 * math.pi, n, endpoint=False)
    if clockwise:
        t = -t
    return Path(np.column_stack([radius * np.cos(t), radius * np.sin(t)]), closed=True)


class TestResampleSpacing(unittest.TestCase):
    """Tests for output spacing and coverage."""

    def test_straight_line_exact(self):
        line = Path([(float(x), 0.0) for x in range(11)])
        result = resample(line, 1.0)
        self.assertEqual(result.delta, 1.0)
        np.testing.assert_allclose(result.points[:, 1], 0.0, atol=1e-12)
        np.testing.assert_allclose(result.points[0], [0, 0])
        self.assertLess(np.linalg.norm(result.points[-1] - [10, 0]), 1.2)

    def test_open_spacing_within_tolerance(self):
        result = resample(wave(), 1.0)
        spacing = segment_lengths(result.points)
        self.assertAlmostEqual(result.average_spacing(), 1.0, delta=0.2)
        self.assertTrue(np.all(np.abs(spacing - 1.0) < 0.2))

    def test_sparse_input_is_densified(self):
        """Raw points farther apart than delta get points in between."""
        sparse = Path([(0, 0), (10, 0), (10, 10)])
        result = resample(sparse, 0.5)
        self.assertGreater(len(result), 30)
        self.assertAlmostEqual(result.average_spacing(), 0.5, delta=0.1)

    def test_dense_input_is_thinned(self):
        dense = Path(np.column_stack([np.linspace(0, 10, 500), np.zeros(500)]))
        result = resample(dense, 1.0)
        self.assertLessEqual(len(result), 12)

    def test_reaches_end(self):
        path = wave()
        result = resample(path, 1.0)
        gap = np.linalg.norm(result.points[-1] - path.points[-1])
        self.assertLessEqual(gap, 1.2 * 1.0 + 1e-9)

    def test_vectors_recomputed(self):
        result = resample(wave(), 1.0)
        np.testing.assert_allclose(result.vectors[1:], np.diff(result.points, axis=0))

    def test_three_dimensional_helix(self):
        t = np.linspace(0.0, 4 * math.pi, 120)
        helix = Path(np.column_stack([5 * np.cos(t), 5 * np.sin(t), t]))
        result = resample(helix, 1.0)
        self.assertEqual(result.dimensions, 3)
        self.assertAlmostEqual(result.average_spacing(), 1.0, delta=0.2)

    def test_smoothing(self):
        rng = np.random.default_rng(7)
        noisy = Path(wave().points + rng.normal(0.0, 0.05, wave().points.shape))
        result = Resampler(smooth_sigma=1.5).resample(noisy, 1.0)
        self.assertAlmostEqual(result.average_spacing(), 1.0, delta=0.2)

    def test_reversal_commutes(self):
        path = wave()
        forward = resample(path, 1.0)
        backward = resample(path.reversed(), 1.0)
        np.testing.assert_array_equal(backward.points, forward.points[::-1])

    def test_backwards_input_keeps_its_direction(self):
        path = wave().reversed()
        result = resample(path, 1.0, keep_provenance=True)
        self.assertTrue(np.allclose(result.points[-1], path.points[-1]))
        self.assertLess(result.points[-1, 0], result.points[0, 0])
        self.assertIn(len(path) - 1, result.provenance.members[-1])


class TestResampleIdempotence(unittest.TestCase):
    """Tests for repeated resampling."""

    def test_same_delta_is_noop(self):
        once = resample(wave(), 1.0)
        self.assertIs(resample(once, 1.0), once)

    def test_closed_same_delta_is_noop(self):
        once = resample(circle(), 0.5)
        self.assertIs(once.resample(0.5), once)

    def test_other_delta_resamples(self):
        once = resample(wave(), 1.0)
        twice = resample(once, 0.5)
        self.assertIsNot(twice, once)
        self.assertEqual(twice.delta, 0.5)

    def test_metadata_carried(self):
        path = Path(wave().points, source_count=3, reversed_=True)
        result = resample(path, 1.0)
        self.assertEqual(result.source_count, 3)
        self.assertTrue(result.reversed_)


class TestClosedPaths(unittest.TestCase):
    """Tests for closed path resampling."""

    def test_circle_spacing(self):
        result = resample(circle(), 1.0)
        self.assertTrue(result.closed)
        self.assertAlmostEqual(result.average_spacing(), 1.0, delta=0.2)
        # 2*pi*10 of perimeter
        self.assertTrue(55 <= len(result) <= 66)

    def test_clockwise_is_normalized(self):
        result = resample(circle(clockwise=True), 1.0)
        self.assertGreater(signed_area(result.points), 0)
        np.testing.assert_allclose(result.points[0], [10, 0])

    def test_square_corners(self):
        square = Path([(0, 0), (0, 10), (10, 10), (10, 0)], closed=True)
        result = resample(square, 1.0)
        self.assertGreater(signed_area(result.points), 0)
        self.assertTrue(30 <= len(result) <= 45)
        self.assertAlmostEqual(result.average_spacing(), 1.0, delta=0.2)

    def test_normalize_winding_keeps_start(self):
        points = np.array([[0, 0], [0, 1], [1, 1], [1, 0]], dtype=float)
        normalized, _ = normalize_winding(points)
        np.testing.assert_array_equal(normalized, [[0, 0], [1, 0], [1, 1], [0, 1]])

    def test_normalize_winding_counter_clockwise_unchanged(self):
        points = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=float)
        normalized, _ = normalize_winding(points)
        self.assertIs(normalized, points)


class TestProvenance(unittest.TestCase):
    """Tests for provenance tracking."""

    def test_every_point_has_sources(self):
        path = wave()
        result = resample(path, 1.0, keep_provenance=True)
        self.assertEqual(len(result.provenance), len(result))
        for members in result.provenance.members:
            self.assertGreater(len(members), 0)
            self.assertTrue(np.all((members >= 0) & (members < len(path))))

    def test_sources_are_nearby(self):
        result = resample(wave(), 1.0, keep_provenance=True)
        for distances in result.source_distances():
            self.assertLess(distances.max(), 2.5 * 1.0 + 1.0)

    def test_no_provenance_by_default(self):
        self.assertIsNone(resample(wave(), 1.0).provenance)

    def test_existing_provenance_carried(self):
        path = wave().with_provenance()
        once = resample(path, 1.0, keep_provenance=True)
        twice = resample(once, 0.5, keep_provenance=True)
        self.assertIs(twice.provenance.arena, path.provenance.arena)


class TestInvalidInput(unittest.TestCase):
    """Tests for rejected inputs."""

    def test_non_positive_delta(self):
        with self.assertRaises(InvalidInputError):
            resample(wave(), 0.0)
        with self.assertRaises(InvalidInputError):
            resample(wave(), -1.0)
        with self.assertRaises(InvalidInputError):
            resample(wave(), math.nan)

    def test_single_point(self):
        with self.assertRaises(InvalidInputError):
            resample(Path([(1, 1)]), 1.0)

    def test_zero_length(self):
        with self.assertRaises(InvalidInputError):
            resample(Path([(1, 1), (1, 1), (1, 1)]), 1.0)


if __name__ == '__main__':
    unittest.main()
