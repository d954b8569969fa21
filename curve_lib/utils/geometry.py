"""Geometric utility functions.

Vectorized numpy helpers shared by the Path type, the resampler and the
aligner. All functions take ``(N, D)`` float arrays with D equal to 2 or 3.

The module provides the following functions:
    segment_lengths: Lengths of consecutive segments of a polyline.
    consecutive_vectors: Per-point difference vectors.
    unit_steps: Unit direction of each vector, derived from its angles.
    direction_chord: Chord length between the unit directions of two vectors.
    signed_area: Shoelace area of a closed 2-D polygon.
    vector_area: Vector area of a closed 3-D polygon.
    is_counter_clockwise: Winding test used to normalize closed curves.

Example usage::

    import numpy as np
    from curve_lib.utils.geometry import unit_steps, signed_area

    square = np.array([[0, 0], [1, 0], [1, 1], [0, 1]], dtype=float)
    signed_area(square)                  # 1.0, counter-clockwise
    unit_steps(np.array([[0.0, 2.0]]))  # [[0, 1]]
"""

from __future__ import annotations

import numpy as np


def segment_lengths(points: np.ndarray, closed: bool = False) -> np.ndarray:
    """Lengths of the segments between consecutive points.

    Args:
        points: Array of shape (N, D).
        closed: Include the segment from the last point back to the first.

    Returns:
        Array of N-1 lengths (N when closed).
    """
    if len(points) < 2:
        return np.zeros(0)
    diffs = np.diff(points, axis=0)
    if closed:
        diffs = np.vstack([diffs, points[0] - points[-1]])
    return np.linalg.norm(diffs, axis=1)


def consecutive_vectors(points: np.ndarray, closed: bool = False) -> np.ndarray:
    """Vectors from each point's predecessor to the point.

    vector[0] is the wrap-around vector from the last point for closed paths
    and zero for open ones.
    """
    vectors = np.zeros_like(points, dtype=float)
    if len(points) > 1:
        vectors[1:] = points[1:] - points[:-1]
        if closed:
            vectors[0] = points[0] - points[-1]
    return vectors


def unit_steps(vectors: np.ndarray) -> np.ndarray:
    """Unit direction of each vector, computed from its angles.

    The direction goes through arctan2 rather than division by the norm so
    the quadrant is always resolved from the signs of the components. Zero
    vectors have no direction and map to zero.

    Args:
        vectors: Array of shape (N, D), D in {2, 3}.

    Returns:
        Array of shape (N, D) with unit rows, or zero rows for zero input.
    """
    vectors = np.atleast_2d(np.asarray(vectors, dtype=float))
    steps = np.zeros_like(vectors)
    nonzero = np.any(vectors != 0, axis=1)
    if not nonzero.any():
        return steps
    v = vectors[nonzero]
    azimuth = np.arctan2(v[:, 1], v[:, 0])
    if vectors.shape[1] == 2:
        steps[nonzero] = np.column_stack([np.cos(azimuth), np.sin(azimuth)])
    else:
        elevation = np.arctan2(v[:, 2], np.hypot(v[:, 0], v[:, 1]))
        cos_el = np.cos(elevation)
        steps[nonzero] = np.column_stack([
            cos_el * np.cos(azimuth),
            cos_el * np.sin(azimuth),
            np.sin(elevation),
        ])
    return steps


def direction_chord(u: np.ndarray, w: np.ndarray) -> np.ndarray:
    """Euclidean distance between unit directions.

    Equals 2*sin(theta/2) for the angle theta between two non-zero
    directions, so it grows monotonically from 0 (same direction) to 2
    (opposite). Broadcasts over leading axes.
    """
    return np.linalg.norm(u - w, axis=-1)


def signed_area(points: np.ndarray) -> float:
    """Signed shoelace area of a closed 2-D polygon.

    Positive for counter-clockwise winding in a y-up frame.
    """
    x = points[:, 0]
    y = points[:, 1]
    return 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))


def vector_area(points: np.ndarray) -> np.ndarray:
    """Vector area of a closed 3-D polygon (half the sum of edge cross products)."""
    return 0.5 * np.cross(points, np.roll(points, -1, axis=0)).sum(axis=0)


def is_counter_clockwise(points: np.ndarray) -> bool:
    """Winding test for closed polygons.

    In 2-D this is the sign of the shoelace area. In 3-D the polygon is
    judged by the dominant component of its vector area, which is the
    projection plane that preserves most of its shape.
    """
    if len(points) < 3:
        return True
    if points.shape[1] == 2:
        return signed_area(points) >= 0
    area = vector_area(points)
    dominant = int(np.argmax(np.abs(area)))
    return area[dominant] >= 0
