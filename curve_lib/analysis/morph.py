"""Interpolation between two aligned paths.

An alignment script pairs every point of one path with a point of the
other, which is all that is needed to blend them. Two blends are offered:

    interpolate_points   weighted average of the paired points; used to
                         merge paths into a consensus.
    interpolate_vectors  weighted average of the paired vectors,
                         accumulated from a blended start point; keeps the
                         local shape of both inputs and is used to morph
                         one outline into another.

morph and morph_series build the intermediate outlines between successive
sections of a structure, e.g. to close the gaps between traced slices.

Example usage::

    from curve_lib.analysis.morph import morph

    steps = morph(section_a, section_b, n=3)   # 3 outlines in between
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence

import numpy as np

from ..config import ComparisonConfig
from ..domain.path import Path
from ..domain.script import AlignmentScript, EditKind
from ..errors import InvalidInputError
from .alignment import align
from .matching import Matcher

logger = logging.getLogger(__name__)


def interpolate_points(script: AlignmentScript, weight_a: float,
                       first: int = 0, last: Optional[int] = None) -> Path:
    """Point-wise weighted average of the two aligned paths.

    Args:
        script: Alignment of a onto b.
        weight_a: Weight of path a in [0, 1]; b gets 1 - weight_a.
        first: First op of the window to blend.
        last: Last op of the window, inclusive; defaults to the last op.

    Returns:
        An unresampled path with one point per op in the window. It is
        closed only if both inputs are closed and the whole script is
        used. Provenance is the union of both inputs' provenance when both
        carry it; source_count is the sum of both.
    """
    if not 0.0 <= weight_a <= 1.0:
        raise InvalidInputError(f"weight_a must be within [0, 1], got {weight_a!r}")
    last = len(script.ops) - 1 if last is None else last
    if not 0 <= first <= last < len(script.ops):
        raise InvalidInputError(f"Bad op window [{first}, {last}] for {len(script.ops)} ops")
    a, b = script.a, script.b
    pairs = script.pairs()[first:last + 1]
    points = a.points[pairs[:, 0]] * weight_a + b.points[pairs[:, 1]] * (1.0 - weight_a)

    provenance = None
    if a.provenance is not None and b.provenance is not None:
        provenance = a.provenance.merge(b.provenance, pairs)
    whole = first == 0 and last == len(script.ops) - 1
    return Path(
        points,
        closed=a.closed and b.closed and whole,
        calibration=a.calibration,
        is_calibrated=a.is_calibrated,
        provenance=provenance,
        source_count=a.source_count + b.source_count,
    )


def interpolate_vectors(script: AlignmentScript, alpha: float) -> Path:
    """Outline ``alpha`` of the way from path a to path b.

    Starts at the blend of both start points and adds, for every further
    op, the blend of the paired vectors: a deleted point contributes only
    its share of a's vector, an inserted point only its share of b's.
    """
    if not 0.0 <= alpha <= 1.0:
        raise InvalidInputError(f"alpha must be within [0, 1], got {alpha!r}")
    a, b = script.a, script.b
    start = a.points[0] * (1.0 - alpha) + b.points[0] * alpha
    steps = np.zeros((len(script.ops), a.dimensions))
    for k, op in enumerate(script.ops[1:], start=1):
        if op.kind is EditKind.INSERT:
            steps[k] = b.vectors[op.j] * alpha
        elif op.kind is EditKind.DELETE:
            steps[k] = a.vectors[op.i] * (1.0 - alpha)
        else:
            steps[k] = a.vectors[op.i] * (1.0 - alpha) + b.vectors[op.j] * alpha
    points = start + np.cumsum(steps, axis=0)
    return Path(points, closed=a.closed and b.closed,
                calibration=a.calibration, is_calibrated=a.is_calibrated)


def morph(a: Path, b: Path, n: int = -1, config: Optional[ComparisonConfig] = None) -> List[Path]:
    """Intermediate outlines between ``a`` and ``b``.

    Args:
        a: Start outline.
        b: End outline.
        n: Number of outlines in between; negative picks
            int(sqrt(sqrt(edit distance))), more steps for more different
            outlines.
        config: Spacing and edit weights. Both outlines are aligned in the
            direction given.

    Returns:
        ``n`` paths resampled to the alignment's delta, ordered from a to b.
    """
    config = config or ComparisonConfig()
    delta = Matcher.from_config(config).common_delta(a, b)
    script = align(a.resample(delta), b.resample(delta), delta, config.weights)
    if n < 0:
        n = int(math.sqrt(math.sqrt(script.distance)))
    outlines = []
    for k in range(1, n + 1):
        alpha = k / (n + 1)
        outline = interpolate_vectors(script, alpha)
        if outline.arc_length() > 0:
            outline = outline.resample(script.delta)
        outlines.append(outline)
    logger.debug("Morphed %d outlines (edit distance %.4g)", n, script.distance)
    return outlines


def morph_series(paths: Sequence[Path], n: int = -1,
                 config: Optional[ComparisonConfig] = None) -> List[Path]:
    """Successive outlines with morphed outlines between each pair.

    Returns:
        ``paths[0]``, its morphs towards ``paths[1]``, ``paths[1]``, and so on.
    """
    if not paths:
        return []
    series = [paths[0]]
    for previous, current in zip(paths, paths[1:]):
        series.extend(morph(previous, current, n, config))
        series.append(current)
    return series
