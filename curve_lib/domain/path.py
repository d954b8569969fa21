"""Path value object and its companions.

A Path is an ordered sequence of 2-D or 3-D points with the per-point
vectors derived from them. Paths are treated as values: every transformation
(reverse, mirror, calibrate, resample, chain) returns a new Path and leaves
the original untouched, so a Path can be shared between threads freely.

The module provides:
    Calibration: Physical scale factors per axis and the unit name.
    Provenance: Per-point index sets into a shared arena of source points.
    Path: The point sequence itself.

Example usage::

    from curve_lib.domain import Path, Calibration

    path = Path([(0, 0), (3, 0), (3, 4)])
    path.arc_length()                 # 7.0
    um = path.calibrated(Calibration(scale=(0.5, 0.5), unit='um'))
    even = um.resample(0.25)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from ..errors import InvalidInputError
from ..utils.geometry import consecutive_vectors, segment_lengths

if TYPE_CHECKING:
    from ..config import EnvelopeMode

# Two deltas closer than this are the same spacing
DELTA_TOLERANCE = 1e-7


@dataclass(frozen=True)
class Calibration:
    """Physical calibration of raw trace coordinates.

    Attributes:
        scale: Size of one raw unit along each axis. With two values on a
            3-D path, z is scaled like x (isotropic section spacing).
        unit: Name of the physical unit, informational only.
    """
    scale: Tuple[float, ...] = (1.0, 1.0)
    unit: str = 'pixel'

    def factors(self, dimensions: int) -> np.ndarray:
        """Per-axis scale factors for a path with the given dimensionality."""
        scale = tuple(float(s) for s in self.scale)
        if len(scale) < 2:
            raise InvalidInputError(f"Calibration needs at least 2 scale factors, got {scale}")
        if dimensions == 3 and len(scale) == 2:
            scale = scale + (scale[0],)
        return np.asarray(scale[:dimensions], dtype=float)


class Provenance:
    """Which original source points contributed to each point of a path.

    Source points live once in an immutable ``arena`` array that clones,
    reversed copies and resampled copies share; each path point stores only
    an integer index array into it.
    """

    __slots__ = ('arena', 'members')

    def __init__(self, arena: np.ndarray, members: Sequence[np.ndarray]):
        arena = np.asarray(arena, dtype=float)
        arena.setflags(write=False)
        self.arena = arena
        self.members = [np.asarray(m, dtype=np.intp) for m in members]

    @classmethod
    def identity(cls, points: np.ndarray) -> Provenance:
        """Each point is its own single source."""
        return cls(np.array(points, dtype=float), [np.array([i]) for i in range(len(points))])

    def __len__(self) -> int:
        return len(self.members)

    def sources(self, index: int) -> np.ndarray:
        """Coordinates of the source points of one path point."""
        return self.arena[self.members[index]]

    def reversed(self) -> Provenance:
        return Provenance(self.arena, self.members[::-1])

    def select(self, indices: Iterable[int]) -> Provenance:
        return Provenance(self.arena, [self.members[i] for i in indices])

    def union(self, indices: Iterable[int]) -> np.ndarray:
        """Union of the member sets of several points."""
        return np.unique(np.concatenate([self.members[i] for i in indices]))

    def merge(self, other: Provenance, pairs: Iterable[Tuple[int, int]]) -> Provenance:
        """Provenance of point-wise merged paths.

        Args:
            other: Provenance of the second path.
            pairs: For each merged point, the index in this path and the
                index in the other path it was interpolated from.
        """
        if other.arena is self.arena:
            arena = self.arena
            offset = 0
        else:
            arena = np.vstack([self.arena, other.arena])
            offset = len(self.arena)
        members = [
            np.unique(np.concatenate([self.members[i], other.members[j] + offset]))
            for i, j in pairs
        ]
        return Provenance(arena, members)


class Path:
    """An ordered 2-D or 3-D point sequence with derived vectors.

    Attributes:
        points: Array of shape (N, D).
        vectors: Array of shape (N, D); vectors[i] = points[i] - points[i-1].
            vectors[0] is the wrap vector for closed paths, zero otherwise.
        closed: Whether the last point connects back to the first.
        delta: Spacing the path was resampled to; 0 when not resampled.
        calibration: Calibration of the raw coordinates, if known.
        is_calibrated: Whether the calibration has been applied to the points.
        provenance: Source points per point, or None when not tracked.
        source_count: Number of original paths merged into this one.
        reversed_: Tag, toggled by reversed().
        mirror_tags: Per-axis tags, toggled by mirrored().
    """

    def __init__(
        self,
        points,
        closed: bool = False,
        delta: float = 0.0,
        vectors=None,
        calibration: Optional[Calibration] = None,
        is_calibrated: bool = False,
        provenance: Optional[Provenance] = None,
        source_count: int = 1,
        reversed_: bool = False,
        mirror_tags: Optional[Sequence[bool]] = None,
    ):
        pts = np.array(points, dtype=float)
        if pts.ndim != 2 or pts.shape[1] not in (2, 3):
            raise InvalidInputError(f"Points must have shape (N, 2) or (N, 3), got {pts.shape}")
        if len(pts) == 0:
            raise InvalidInputError("A path needs at least one point")
        if not np.all(np.isfinite(pts)):
            raise InvalidInputError("Points must be finite")
        if vectors is None:
            vecs = consecutive_vectors(pts, closed)
        else:
            vecs = np.array(vectors, dtype=float)
            if vecs.shape != pts.shape:
                raise InvalidInputError(
                    f"Vectors shape {vecs.shape} does not match points shape {pts.shape}")
        if provenance is not None and len(provenance) != len(pts):
            raise InvalidInputError(
                f"Provenance has {len(provenance)} entries for {len(pts)} points")
        if source_count < 1:
            raise InvalidInputError(f"source_count must be >= 1, got {source_count}")
        if delta < 0 or not np.isfinite(delta):
            raise InvalidInputError(f"delta must be >= 0, got {delta!r}")

        pts.setflags(write=False)
        vecs.setflags(write=False)
        self.points = pts
        self.vectors = vecs
        self.closed = bool(closed)
        self.delta = float(delta)
        self.calibration = calibration
        self.is_calibrated = is_calibrated
        self.provenance = provenance
        self.source_count = int(source_count)
        self.reversed_ = reversed_
        self.mirror_tags = tuple(mirror_tags) if mirror_tags is not None else (False,) * pts.shape[1]

    def _copy(self, **changes) -> Path:
        """New path sharing this one's attributes except the given changes."""
        attrs = dict(
            points=self.points,
            closed=self.closed,
            delta=self.delta,
            vectors=self.vectors,
            calibration=self.calibration,
            is_calibrated=self.is_calibrated,
            provenance=self.provenance,
            source_count=self.source_count,
            reversed_=self.reversed_,
            mirror_tags=self.mirror_tags,
        )
        if 'points' in changes and 'vectors' not in changes:
            attrs['vectors'] = None
        attrs.update(changes)
        return Path(**attrs)

    def __len__(self) -> int:
        return len(self.points)

    def __repr__(self) -> str:
        kind = 'closed' if self.closed else 'open'
        return (f"Path({len(self)} points, {self.dimensions}D, {kind}, "
                f"delta={self.delta:g}, sources={self.source_count})")

    @property
    def length(self) -> int:
        return len(self.points)

    @property
    def dimensions(self) -> int:
        return self.points.shape[1]

    @property
    def is_resampled(self) -> bool:
        return self.delta > 0

    def is_resampled_to(self, delta: float) -> bool:
        return self.delta > 0 and abs(self.delta - delta) < DELTA_TOLERANCE

    def arc_length(self) -> float:
        """Total physical length, including the closing segment of closed paths."""
        return float(segment_lengths(self.points, self.closed).sum())

    def average_spacing(self) -> float:
        """Mean distance between consecutive points (0 for a single point)."""
        lengths = segment_lengths(self.points, False)
        return float(lengths.mean()) if len(lengths) else 0.0

    def center_of_mass(self) -> np.ndarray:
        return self.points.mean(axis=0)

    def bounds(self) -> Tuple[np.ndarray, np.ndarray]:
        """Axis-aligned bounding box as (min corner, max corner)."""
        return self.points.min(axis=0), self.points.max(axis=0)

    def resample(self, delta: float, keep_provenance: bool = False,
                 smooth_sigma: Optional[float] = None) -> Path:
        """Resample to uniform spacing; see curve_lib.analysis.resampling."""
        from ..analysis.resampling import resample
        return resample(self, delta, keep_provenance=keep_provenance, smooth_sigma=smooth_sigma)

    def reversed(self) -> Path:
        """Same curve traversed in the opposite direction.

        Spacing is unchanged, so delta is kept. Reversing twice gives back
        the original arrays.
        """
        return self._copy(
            points=self.points[::-1],
            provenance=self.provenance.reversed() if self.provenance else None,
            reversed_=not self.reversed_,
        )

    def mirrored(self, axis: int = 0) -> Path:
        """Reflection across the plane orthogonal to ``axis``."""
        if not 0 <= axis < self.dimensions:
            raise InvalidInputError(f"Axis {axis} out of range for {self.dimensions}D path")
        points = self.points.copy()
        points[:, axis] *= -1
        tags = list(self.mirror_tags)
        tags[axis] = not tags[axis]
        return self._copy(points=points, mirror_tags=tags, provenance=None)

    def translated(self, offset) -> Path:
        offset = np.asarray(offset, dtype=float)
        provenance = None
        if self.provenance is not None:
            provenance = Provenance(self.provenance.arena + offset, self.provenance.members)
        return self._copy(points=self.points + offset, vectors=self.vectors,
                          provenance=provenance)

    def rotated_start(self, k: int) -> Path:
        """Closed path starting at point ``k`` instead of point 0."""
        if not self.closed:
            raise InvalidInputError("Only closed paths can change their start point")
        k %= len(self)
        if k == 0:
            return self
        order = np.roll(np.arange(len(self)), -k)
        return self._copy(
            points=self.points[order],
            vectors=self.vectors[order],
            provenance=self.provenance.select(order) if self.provenance else None,
        )

    def calibrated(self, calibration: Optional[Calibration] = None) -> Path:
        """Apply a physical calibration to the points.

        The result must be resampled again: delta is reset and vectors are
        recomputed.

        Raises:
            InvalidInputError: If the path is already calibrated or no
                calibration is available.
        """
        calibration = calibration or self.calibration
        if calibration is None:
            raise InvalidInputError("No calibration to apply")
        if self.is_calibrated:
            raise InvalidInputError("Path is already calibrated")
        factors = calibration.factors(self.dimensions)
        return self._copy(
            points=self.points * factors,
            delta=0.0,
            calibration=calibration,
            is_calibrated=True,
            provenance=None,
        )

    def substring(self, first: int, last: int) -> Path:
        """Open sub-path over the half-open index window [first, last).

        Vectors are copied as they are, so the first vector still points
        from the point before the window.
        """
        if not 0 <= first < last <= len(self):
            raise InvalidInputError(f"Bad substring bounds [{first}, {last}) for {len(self)} points")
        return self._copy(
            points=self.points[first:last],
            vectors=self.vectors[first:last],
            closed=False,
            provenance=self.provenance.select(range(first, last)) if self.provenance else None,
        )

    def chain(self, other: Path) -> Path:
        """Join two open paths at their closest pair of endpoints.

        Whichever operand has to be reversed so the closest endpoints meet
        is reversed; the result runs from this path into the other one.

        Raises:
            InvalidInputError: If either path is closed or dimensions differ.
        """
        if self.closed or other.closed:
            raise InvalidInputError("Closed paths cannot be chained")
        if self.dimensions != other.dimensions:
            raise InvalidInputError("Cannot chain paths of different dimensionality")
        a_ends = (self.points[0], self.points[-1])
        b_ends = (other.points[0], other.points[-1])
        # (distance, reverse self, reverse other) for last->first, last->last,
        # first->first and first->last
        options = [
            (np.linalg.norm(a_ends[1] - b_ends[0]), False, False),
            (np.linalg.norm(a_ends[1] - b_ends[1]), False, True),
            (np.linalg.norm(a_ends[0] - b_ends[0]), True, False),
            (np.linalg.norm(a_ends[0] - b_ends[1]), True, True),
        ]
        _, rev_a, rev_b = min(options, key=lambda o: o[0])
        head = self.points[::-1] if rev_a else self.points
        tail = other.points[::-1] if rev_b else other.points
        return Path(
            np.vstack([head, tail]),
            closed=False,
            calibration=self.calibration,
            is_calibrated=self.is_calibrated,
        )

    def equalized(self, target_delta: float) -> Path:
        """Scale about the first point so average spacing becomes ``target_delta``."""
        spacing = self.average_spacing()
        if spacing <= 0 or target_delta <= 0:
            raise InvalidInputError("Cannot equalize a path without extent to a non-positive spacing")
        origin = self.points[0]
        scaled = origin + (self.points - origin) * (target_delta / spacing)
        return self._copy(points=scaled, delta=0.0, provenance=None)

    def with_provenance(self) -> Path:
        """This path with identity provenance attached when none is tracked."""
        if self.provenance is not None:
            return self
        return self._copy(provenance=Provenance.identity(self.points), vectors=self.vectors)

    def is_near(self, other: Path, radius: float) -> bool:
        """Whether any point of ``other`` lies within ``radius`` of this path's points."""
        tree = cKDTree(self.points)
        distances, _ = tree.query(other.points, k=1, distance_upper_bound=radius)
        return bool(np.any(np.isfinite(distances)))

    def std_dev_at_each_point(self) -> np.ndarray:
        """Root mean squared distance from each point to its provenance sources.

        Raises:
            InvalidInputError: If the path carries no provenance.
        """
        return self._source_distances_reduce(lambda d: np.sqrt(np.mean(d * d)))

    def source_distances(self) -> List[np.ndarray]:
        """Distances from each point to every one of its provenance sources."""
        if self.provenance is None:
            raise InvalidInputError("Path has no provenance")
        return [
            np.linalg.norm(self.provenance.sources(i) - self.points[i], axis=1)
            for i in range(len(self))
        ]

    def _source_distances_reduce(self, reduce) -> np.ndarray:
        return np.array([reduce(d) if len(d) else 0.0 for d in self.source_distances()])

    def envelope_widths(self, mode: EnvelopeMode) -> np.ndarray:
        """Per-point variability radius; see curve_lib.analysis.condense.envelope_widths."""
        from ..analysis.condense import envelope_widths
        return envelope_widths(self, mode)
