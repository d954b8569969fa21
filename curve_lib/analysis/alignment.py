"""Edit-distance alignment of resampled paths.

Two paths resampled to the same spacing are compared as sequences of
vectors. Aligning them is a classic Needleman-Wunsch dynamic program over an
(n+1) x (m+1) cost matrix with three operations:

    DELETE  consume a point of A alone,  cost = delete * delta
    INSERT  consume a point of B alone,  cost = insert * delta
    MUTATE  pair a point of A with one of B,
            cost = mutate * delta * |unit(vA) - unit(vB)|

The mutation cost is the chord between the two unit directions, which is 0
for parallel vectors and grows monotonically with the angle between them.
Only directions are compared, so it does not matter how far apart the two
paths are in space; physical distances are reported separately as
statistics of the alignment.

Each matrix row is computed with numpy: delete and mutate are elementwise,
and the chain of inserts along the row is a cumulative minimum scan.

The module provides:
    align: Align two paths and return an AlignmentScript.
    compute_statistics: Similarity and physical distance statistics.
    recreate_from_center: Re-align from the middle of the longest run of
        mutations, to escape a bad start.

Example usage::

    from curve_lib.analysis.alignment import align, compute_statistics

    script = align(a.resample(1.0), b.resample(1.0))
    stats = compute_statistics(script, skip_ends=True)
    print(script.distance, stats.similarity, stats.median_distance)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np

from ..config import EditWeights
from ..domain.path import DELTA_TOLERANCE, Path
from ..domain.script import AlignmentScript, EditKind, EditOp
from ..errors import InvalidInputError
from ..utils.geometry import direction_chord, unit_steps

logger = logging.getLogger(__name__)

# Relative tolerance when retracing which operation produced a matrix cell
TRACEBACK_TOLERANCE = 1e-9
# Fraction of the second path between start points tried in the coarse pass
ROTATION_COARSE_STEP = 0.1
# Shortest mutation run recreate_from_center will anchor on
MIN_CENTER_RUN = 3


@dataclass
class AlignmentStats:
    """Scalar statistics of one alignment.

    Physical distances are measured between the paired points themselves.
    Mutation statistics are ``inf`` when the script pairs no points.

    Attributes:
        distance: Total edit cost.
        similarity: 1 minus the share of inserted/deleted points.
        mean_distance: Mean distance over mutation pairs.
        median_distance: Median distance over mutation pairs.
        cumulative_distance: Summed distance over mutation pairs.
        std_dev: Standard deviation of distances over mutation pairs.
        std_dev_all: Standard deviation of distances over all pairs.
        proximity: Summed distance over all pairs / longer arc length.
        proximity_mut: Summed distance over mutation pairs / longer arc length.
        prop_mutations: Mutations per point of the first path.
        length_ratio: Point count of A over point count of B.
        tortuosity_ratio: Arc length of A over arc length of B.
        n_mutations: Number of mutation pairs in the window.
    """
    distance: float
    similarity: float
    mean_distance: float
    median_distance: float
    cumulative_distance: float
    std_dev: float
    std_dev_all: float
    proximity: float
    proximity_mut: float
    prop_mutations: float
    length_ratio: float
    tortuosity_ratio: float
    n_mutations: int


def resolve_delta(a: Path, b: Path, delta: Optional[float] = None) -> float:
    """Spacing shared by two paths about to be aligned.

    Raises:
        InvalidInputError: If the paths were resampled to different deltas
            or ``delta`` contradicts a path's own spacing.
    """
    known = [p.delta for p in (a, b) if p.is_resampled]
    if len(known) == 2 and abs(known[0] - known[1]) > DELTA_TOLERANCE:
        raise InvalidInputError(f"Paths resampled to different deltas: {known[0]} and {known[1]}")
    if delta is not None:
        if not math.isfinite(delta) or delta <= 0:
            raise InvalidInputError(f"delta must be positive, got {delta!r}")
        if known and abs(known[0] - delta) > DELTA_TOLERANCE:
            raise InvalidInputError(f"Paths are resampled to {known[0]}, not {delta}")
        return float(delta)
    if known:
        return known[0]
    spacing = (a.average_spacing() + b.average_spacing()) / 2
    if spacing <= 0:
        raise InvalidInputError("Cannot infer delta from paths without extent")
    return spacing


def _cost_matrix(va: np.ndarray, vb: np.ndarray, delta: float, weights: EditWeights) -> np.ndarray:
    """Fill the (n+1) x (m+1) alignment matrix."""
    n, m = len(va), len(vb)
    ua = unit_steps(va)
    ub = unit_steps(vb)
    insert = weights.insert * delta
    delete = weights.delete * delta
    mutate = weights.mutate * delta

    matrix = np.empty((n + 1, m + 1))
    ramp = np.arange(m + 1) * insert
    matrix[0] = ramp
    candidate = np.empty(m + 1)
    for i in range(1, n + 1):
        prev = matrix[i - 1]
        candidate[0] = i * delete
        candidate[1:] = np.minimum(prev[1:] + delete,
                                   prev[:-1] + mutate * direction_chord(ua[i - 1], ub))
        # a run of inserts ending at j: min over k <= j of candidate[k] + (j - k) * insert
        matrix[i] = np.minimum.accumulate(candidate - ramp) + ramp
    return matrix


def _traceback(matrix: np.ndarray, va: np.ndarray, vb: np.ndarray,
               delta: float, weights: EditWeights) -> List[EditOp]:
    n, m = len(va), len(vb)
    ua = unit_steps(va)
    ub = unit_steps(vb)
    insert = weights.insert * delta
    delete = weights.delete * delta
    mutate = weights.mutate * delta

    ops: List[EditOp] = []
    i, j = n, m
    while i > 0 or j > 0:
        value = matrix[i, j]
        tolerance = TRACEBACK_TOLERANCE * max(1.0, abs(value))
        options = []
        if i > 0 and j > 0:
            cost = mutate * float(direction_chord(ua[i - 1], ub[j - 1]))
            options.append((abs(matrix[i - 1, j - 1] + cost - value), EditKind.MUTATE, cost))
        if i > 0:
            options.append((abs(matrix[i - 1, j] + delete - value), EditKind.DELETE, delete))
        if j > 0:
            options.append((abs(matrix[i, j - 1] + insert - value), EditKind.INSERT, insert))
        # preference order on ties: mutate, delete, insert
        chosen = next((o for o in options if o[0] <= tolerance), None)
        if chosen is None:
            chosen = min(options, key=lambda o: o[0])
        _, kind, cost = chosen
        if kind is EditKind.MUTATE:
            ops.append(EditOp(kind, i - 1, j - 1, cost))
            i -= 1
            j -= 1
        elif kind is EditKind.DELETE:
            ops.append(EditOp(kind, i - 1, min(max(j - 1, 0), m - 1), cost))
            i -= 1
        else:
            ops.append(EditOp(kind, min(max(i - 1, 0), n - 1), j - 1, cost))
            j -= 1
    ops.reverse()
    return ops


def _distance_only(va, vb, delta, weights) -> float:
    return float(_cost_matrix(va, vb, delta, weights)[-1, -1])


def _best_rotation(a: Path, b: Path, delta: float, weights: EditWeights) -> int:
    """Start point of closed path ``b`` that minimizes the edit distance to ``a``.

    A coarse pass tries every ~10% of the points, then the interval around
    the best start is halved until single points are compared.
    """
    m = len(b)
    cache = {}

    def cost(k: int) -> float:
        k %= m
        if k not in cache:
            cache[k] = _distance_only(a.vectors, np.roll(b.vectors, -k, axis=0), delta, weights)
        return cache[k]

    step = max(1, int(math.ceil(m * ROTATION_COARSE_STEP)))
    best = min(range(0, m, step), key=lambda k: (cost(k), k))
    while step > 1:
        step = (step + 1) // 2
        best = min((best - step, best, best + step), key=lambda k: (cost(k), k % m)) % m
    return best


def align(a: Path, b: Path, delta: Optional[float] = None,
          weights: Optional[EditWeights] = None) -> AlignmentScript:
    """Align path ``a`` onto path ``b``.

    Both paths should be resampled to the same delta. Paths that were never
    resampled are aligned as given using ``delta`` (or their mean spacing).
    When both paths are closed, the start point of ``b`` is searched first
    and the script refers to the correspondingly rotated copy of ``b``.

    Args:
        a: First path (its points are DELETEd).
        b: Second path (its points are INSERTed).
        delta: Shared spacing; taken from the paths when None.
        weights: Edit weights; defaults to EditWeights().

    Returns:
        AlignmentScript with ops ordered from start to end.

    Raises:
        InvalidInputError: If the paths' spacings disagree or dimensions differ.
        NoFeasibleAlignmentError: If a weight is negative or not finite.
    """
    weights = (weights or EditWeights()).validate()
    if a.dimensions != b.dimensions:
        raise InvalidInputError("Cannot align paths of different dimensionality")
    delta = resolve_delta(a, b, delta)

    if a.closed and b.closed and len(b) > 1:
        k = _best_rotation(a, b, delta, weights)
        if k:
            logger.debug("Closed alignment: start of second path moved to %d", k)
            b = b.rotated_start(k)

    matrix = _cost_matrix(a.vectors, b.vectors, delta, weights)
    ops = _traceback(matrix, a.vectors, b.vectors, delta, weights)
    return AlignmentScript(a=a, b=b, ops=ops, distance=float(matrix[-1, -1]),
                           delta=delta, weights=weights)


def pair_distances(script: AlignmentScript, ops: Optional[List[EditOp]] = None) -> np.ndarray:
    """Physical distance between the two points referenced by each op."""
    ops = script.ops if ops is None else ops
    if not ops:
        return np.zeros(0)
    i = np.array([op.i for op in ops])
    j = np.array([op.j for op in ops])
    return np.linalg.norm(script.a.points[i] - script.b.points[j], axis=1)


def compute_statistics(script: AlignmentScript, skip_ends: bool = False,
                       max_mutation: int = 5, min_chunk: float = 0.5) -> AlignmentStats:
    """Derive similarity and physical distance statistics from a script.

    With ``skip_ends``, statistics cover only the end window of the script
    (see AlignmentScript.end_window).
    """
    start, end, _ = script.end_window(skip_ends, max_mutation, min_chunk)
    window = script.ops[start:end + 1]
    mutations = [op for op in window if op.is_mutation]
    all_d = pair_distances(script, window)
    mut_d = pair_distances(script, mutations)

    arc_a = script.a.arc_length()
    arc_b = script.b.arc_length()
    longest = max(arc_a, arc_b)

    if len(mut_d):
        mean = float(mut_d.mean())
        median = float(np.median(mut_d))
        cumulative = float(mut_d.sum())
        std = float(mut_d.std())
        proximity_mut = cumulative / longest if longest > 0 else math.inf
    else:
        mean = median = cumulative = std = proximity_mut = math.inf

    return AlignmentStats(
        distance=script.distance,
        similarity=script.similarity(skip_ends, max_mutation, min_chunk),
        mean_distance=mean,
        median_distance=median,
        cumulative_distance=cumulative,
        std_dev=std,
        std_dev_all=float(all_d.std()) if len(all_d) else math.inf,
        proximity=float(all_d.sum()) / longest if longest > 0 else math.inf,
        proximity_mut=proximity_mut,
        prop_mutations=len(mutations) / len(script.a),
        length_ratio=len(script.a) / len(script.b),
        tortuosity_ratio=arc_a / arc_b if arc_b > 0 else math.inf,
        n_mutations=len(mutations),
    )


def _mutation_chunks(ops: List[EditOp], max_gap: int) -> List[Tuple[int, int, int]]:
    """Runs of mutations allowing gaps of up to ``max_gap`` other ops.

    Returns:
        List of (first op index, last op index, number of mutations).
    """
    chunks = []
    first = last = None
    count = gap = 0
    for k, op in enumerate(ops):
        if op.is_mutation:
            if first is None:
                first = k
            last = k
            count += 1
            gap = 0
        elif first is not None:
            gap += 1
            if gap > max_gap:
                chunks.append((first, last, count))
                first = last = None
                count = gap = 0
    if first is not None:
        chunks.append((first, last, count))
    return chunks


def recreate_from_center(script: AlignmentScript, max_mutation: int) -> Optional[AlignmentScript]:
    """Re-align the part before the middle of the longest mutation run.

    An arbitrary start point can drag an otherwise good alignment into a
    poor correspondence near the start. Anchoring at the middle of the
    longest run of mutations and aligning the two prefixes backwards from
    there removes that bias. The suffix after the anchor is kept.

    Args:
        script: Alignment to improve.
        max_mutation: Non-mutation ops tolerated inside a run.

    Returns:
        The new script, or None if no run of at least MIN_CENTER_RUN
        mutations exists.
    """
    chunks = [c for c in _mutation_chunks(script.ops, max_mutation) if c[2] >= MIN_CENTER_RUN]
    if not chunks:
        logger.debug("No run of %d mutations to recreate from; keeping alignment", MIN_CENTER_RUN)
        return None
    longest = max(c[2] for c in chunks)
    candidates = [c for c in chunks if c[2] == longest]
    if len(candidates) > 1:
        def mean_distance(chunk):
            muts = [op for op in script.ops[chunk[0]:chunk[1] + 1] if op.is_mutation]
            return float(pair_distances(script, muts).mean())
        candidates.sort(key=mean_distance)
    first, last, _ = candidates[0]
    chunk_mutations = [k for k in range(first, last + 1) if script.ops[k].is_mutation]
    anchor = chunk_mutations[len(chunk_mutations) // 2]
    center = script.ops[anchor]
    mi, mj = center.i, center.j

    # Prefixes up to and including the anchor pair, walked backwards
    head_a = Path(script.a.points[mi::-1])
    head_b = Path(script.b.points[mj::-1])
    head = align(head_a, head_b, delta=script.delta, weights=script.weights)

    ops: List[EditOp] = [
        EditOp(op.kind, mi - op.i, mj - op.j, op.cost) for op in reversed(head.ops)
    ]
    ops.extend(script.ops[anchor + 1:])
    distance = head.distance + sum(op.cost for op in script.ops[anchor + 1:])
    logger.debug("Recreated alignment from op %d (%d, %d): %.4g -> %.4g",
                 anchor, mi, mj, script.distance, distance)
    return AlignmentScript(a=script.a, b=script.b, ops=ops, distance=distance,
                           delta=script.delta, weights=script.weights)

