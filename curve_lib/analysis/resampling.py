"""Uniform re-parameterization of paths.

Traced curves have irregular point spacing: dense where the tracer slowed
down, sparse on long straight runs. Before two curves can be compared point
by point they are resampled so consecutive points sit ``delta`` apart.

The walk starts at one end and repeatedly emits a new point at
distance ``delta`` from the last emitted one. The direction of each step is a
weighted average over the raw points ahead within ``MAX_DISTANCE_FACTOR *
delta``: closer points weigh more, and each contributes the unit direction
towards it, computed from its angles. This keeps the resampled curve on the
traced shape while smoothing jitter smaller than ``delta``.

Open curves are walked from their lexicographically smaller end and the
result is flipped back when needed, so resampling commutes with reversal.
Closed curves start at their first point.

The raw cursor only moves forward. For closed curves it is an unwrapped
index, so near the end of the loop the start point is looked at as the point
after the last one.

Example usage::

    from curve_lib.domain import Path
    from curve_lib.analysis.resampling import resample

    path = Path([(0, 0), (0.3, 0.1), (5, 0), (9, 1)])
    even = resample(path, 1.0, keep_provenance=True)
    even.provenance.sources(3)   # raw points that shaped the fourth point
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
from scipy.ndimage import gaussian_filter1d

from ..domain.path import Path, Provenance
from ..errors import InvalidInputError
from ..utils.geometry import is_counter_clockwise, segment_lengths, unit_steps

logger = logging.getLogger(__name__)

# Raw points farther than this many deltas do not steer the next step
MAX_DISTANCE_FACTOR = 2.5
# Smallest number of raw points considered ahead of the cursor
MIN_LOOKAHEAD = 6
# Residual gaps to the end point larger than this many deltas get filled
FILL_FACTOR = 1.2


def normalize_winding(points: np.ndarray, provenance: Optional[Provenance] = None):
    """Reorder a closed polygon to counter-clockwise winding.

    Returns:
        Tuple of (points, provenance), reversed if the input ran clockwise.
        The start point is kept in place.
    """
    if is_counter_clockwise(points):
        return points, provenance
    order = np.concatenate([[0], np.arange(len(points) - 1, 0, -1)])
    return points[order], provenance.select(order) if provenance is not None else None


def runs_backwards(points: np.ndarray) -> bool:
    """Whether an open polyline is walked from its last point.

    Open paths are walked from the lexicographically smaller end, so a path
    and its reversed copy resample to reversed copies of each other.
    """
    flipped = points[::-1]
    differs = np.any(points != flipped, axis=1)
    if not differs.any():
        return False
    i = int(np.argmax(differs))
    return tuple(flipped[i]) < tuple(points[i])


@dataclass
class Resampler:
    """Resamples paths to uniform point spacing.

    Attributes:
        max_distance_factor: Look-ahead radius in units of delta.
        min_lookahead: Minimum number of raw points in the look-ahead window.
        fill_factor: Gaps to the end point longer than this many deltas are
            filled with straight steps.
        smooth_sigma: Optional Gaussian sigma (in raw points) applied to the
            raw coordinates before walking.
    """
    max_distance_factor: float = MAX_DISTANCE_FACTOR
    min_lookahead: int = MIN_LOOKAHEAD
    fill_factor: float = FILL_FACTOR
    smooth_sigma: Optional[float] = None

    def resample(self, path: Path, delta: float, keep_provenance: bool = False) -> Path:
        """Return ``path`` resampled to spacing ``delta``.

        Resampling an already resampled path to the same delta returns it
        unchanged.

        Args:
            path: Path to resample.
            delta: Target spacing, > 0.
            keep_provenance: Record for every output point the raw source
                points that contributed to it. Existing provenance is
                carried through.

        Returns:
            A new Path with delta set and vectors recomputed.

        Raises:
            InvalidInputError: For a non-positive delta, fewer than two
                points, or a path without extent.
        """
        if not math.isfinite(delta) or delta <= 0:
            raise InvalidInputError(f"delta must be positive, got {delta!r}")
        if path.is_resampled_to(delta):
            return path
        if len(path) < 2:
            raise InvalidInputError("Cannot resample a path with fewer than 2 points")

        points = np.array(path.points)
        if self.smooth_sigma:
            mode = 'wrap' if path.closed else 'nearest'
            points = gaussian_filter1d(points, self.smooth_sigma, axis=0, mode=mode)
        if segment_lengths(points, path.closed).sum() == 0:
            raise InvalidInputError("Cannot resample a path of zero length")

        provenance = None
        if keep_provenance:
            provenance = path.provenance or Provenance.identity(path.points)
        backwards = False
        if path.closed:
            points, provenance = normalize_winding(points, provenance)
        elif runs_backwards(path.points):
            backwards = True
            points = points[::-1]
            if provenance is not None:
                provenance = provenance.reversed()

        walk = _Walk(points, path.closed, delta, self)
        out_points, sources = walk.run()
        if backwards:
            out_points, sources = out_points[::-1], sources[::-1]

        if provenance is not None:
            provenance = Provenance(provenance.arena, [provenance.union(s) for s in sources])

        logger.debug("Resampled %d points to %d at delta %g", len(points), len(out_points), delta)
        return Path(
            np.array(out_points),
            closed=path.closed,
            delta=delta,
            calibration=path.calibration,
            is_calibrated=path.is_calibrated,
            provenance=provenance,
            source_count=path.source_count,
            reversed_=path.reversed_,
            mirror_tags=path.mirror_tags,
        )


class _Walk:
    """State of one resampling walk over raw points."""

    def __init__(self, points: np.ndarray, closed: bool, delta: float, params: Resampler):
        self.points = points
        self.n = len(points)
        self.closed = closed
        self.delta = delta
        self.max_distance = params.max_distance_factor * delta
        self.fill_factor = params.fill_factor
        # Unwrapped index of the end point: the start again for closed paths
        self.limit = self.n if closed else self.n - 1
        self.end_point = points[0] if closed else points[-1]
        spacing = segment_lengths(points, closed).mean()
        self.max_ahead = max(params.min_lookahead, int(self.max_distance / spacing))
        self.out: List[np.ndarray] = [points[0].copy()]
        self.sources: List[List[int]] = [[0]]

    def raw(self, index) -> np.ndarray:
        return self.points[np.asarray(index) % self.n]

    def emit(self, point: np.ndarray, raw_indices) -> None:
        self.out.append(point)
        self.sources.append([int(i) % self.n for i in np.atleast_1d(raw_indices)])

    def run(self):
        cursor = 1
        while cursor <= self.limit:
            last = self.out[-1]
            stop = min(cursor + self.max_ahead, self.limit + 1)
            if self.closed and cursor < self.limit - 1:
                # the start point only steers the walk once the loop is nearly closed
                stop = min(stop, self.limit)
            window = np.arange(cursor, stop)
            distances = np.linalg.norm(self.raw(window) - last, axis=1)
            in_range = distances < self.max_distance

            if in_range.any():
                cursor = self._weighted_step(last, window[in_range], distances[in_range], cursor)
            else:
                cursor = self._straight_step(last, cursor)

            if self._reached_end(cursor):
                break
        self._fill_to_end()
        return self.out, self.sources

    def _weighted_step(self, last, ahead, distances, cursor) -> int:
        """Step along the weighted mean direction to the points ahead."""
        weights = 1.0 - distances / self.max_distance
        weights /= weights.sum()
        # rounding remainder goes to the nearest point
        weights[int(np.argmin(distances))] += 1.0 - weights.sum()

        steps = unit_steps(self.raw(ahead) - last)
        direction = (weights[:, None] * steps).sum(axis=0)
        norm = np.linalg.norm(direction)
        if norm < 1e-12:
            # candidates cancel out or sit on the last point
            direction = self.raw(ahead[-1]) - last
            norm = np.linalg.norm(direction)
            if norm == 0:
                return int(ahead[-1]) + 1
        self.emit(last + direction / norm * self.delta, ahead)

        beyond = ahead[distances > self.delta]
        if len(beyond) and beyond[0] != cursor:
            return int(beyond[0])
        return int(ahead[-1]) + 1

    def _straight_step(self, last, cursor) -> int:
        """Step directly towards the raw point at the cursor."""
        target = self.raw(cursor)
        gap = np.linalg.norm(target - last)
        point = last + (target - last) / gap * self.delta
        self.emit(point, cursor)
        if np.linalg.norm(target - point) <= self.delta:
            # do not lag behind: move the cursor past everything within delta
            while cursor <= self.limit and np.linalg.norm(self.raw(cursor) - point) <= self.delta:
                cursor += 1
        return cursor

    def _reached_end(self, cursor: int) -> bool:
        if len(self.out) < 3:
            return False
        if self.limit - cursor >= self.max_ahead:
            return False
        return np.linalg.norm(self.out[-1] - self.end_point) < self.delta

    def _fill_to_end(self) -> None:
        end_index = 0 if self.closed else self.n - 1
        gap = np.linalg.norm(self.end_point - self.out[-1])
        while gap > self.fill_factor * self.delta:
            last = self.out[-1]
            self.emit(last + (self.end_point - last) / gap * self.delta, end_index)
            gap = np.linalg.norm(self.end_point - self.out[-1])


def resample(path: Path, delta: float, keep_provenance: bool = False,
             smooth_sigma: Optional[float] = None) -> Path:
    """Resample ``path`` to uniform spacing ``delta``.

    Shortcut for ``Resampler(smooth_sigma=smooth_sigma).resample(...)``.
    """
    return Resampler(smooth_sigma=smooth_sigma).resample(path, delta, keep_provenance)
