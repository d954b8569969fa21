"""Consensus building by greedy nearest-pair merging.

Given paths that trace the same structure in different specimens, the
condenser repeatedly merges the two most similar ones into their weighted
average until one path is left. A merged path stands for all the sources
behind it: its ``source_count`` is the sum of its operands' and it weighs
that much in later merges, so the result does not depend on merge order as
much as a plain pairwise average would.

Every merged and resampled point remembers the source points it came from
(provenance). From those the per-point standard deviation gives a
variability envelope around the consensus.

Example usage::

    from curve_lib.analysis.condense import condense, envelope_widths
    from curve_lib.config import EnvelopeMode

    consensus = condense(paths, delta=1.0)
    radii = envelope_widths(consensus, EnvelopeMode.STD_DEV_2)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import ComparisonConfig, EnvelopeMode
from ..domain.path import Path
from ..domain.script import AlignmentScript
from ..errors import InvalidInputError, NoCommonAnchorError, OperationCancelledError
from .all_pairs import score_against, score_matrix
from .matching import Matcher
from .morph import interpolate_points

logger = logging.getLogger(__name__)


def merge_window(script: AlignmentScript, max_mutation: int) -> Tuple[int, int]:
    """Op window without uneven free ends.

    The window runs from the first to the last run of more than
    ``max_mutation`` consecutive mutations; the whole script is used when
    there is no such run.
    """
    start, end, _ = script.end_window(True, max_mutation, 0.0)
    return start, end


def merge_pair(a: Path, b: Path, matcher: Matcher, delta: float,
               cut_uneven_ends: bool = True) -> Path:
    """Weighted average of two paths along their best alignment.

    Each operand weighs in proportion to its ``source_count``. Uneven ends
    are only trimmed when at least one operand is open.

    Returns:
        The merged path, resampled to ``delta`` with provenance and
        ``source_count`` equal to the sum of the operands'.
    """
    best = matcher.match(a, b)
    script = best.script
    first, last = 0, len(script.ops) - 1
    # closed outlines have no free ends to trim
    if cut_uneven_ends and not (script.a.closed and script.b.closed):
        first, last = merge_window(script, matcher.max_mutation)
    total = script.a.source_count + script.b.source_count
    merged = interpolate_points(script, script.a.source_count / total, first, last)
    if merged.arc_length() == 0:
        raise NoCommonAnchorError("Merged path collapsed to a single point")
    merged = merged.resample(delta, keep_provenance=True)
    logger.debug("Merged paths of %d and %d sources over ops [%d, %d]",
                 script.a.source_count, script.b.source_count, first, last)
    return merged


class Condenser:
    """Merges a set of paths into one consensus path.

    Args:
        matcher: Scores pairs and aligns them for merging.
        cut_uneven_ends: Trim uneven free ends before each merge.
        max_workers: Thread pool size for the score table.
    """

    def __init__(self, matcher: Optional[Matcher] = None, cut_uneven_ends: bool = True,
                 max_workers: Optional[int] = None):
        self.matcher = matcher or Matcher()
        self.cut_uneven_ends = cut_uneven_ends
        self.max_workers = max_workers

    @classmethod
    def from_config(cls, config: ComparisonConfig) -> Condenser:
        return cls(Matcher.from_config(config), config.cut_uneven_ends, config.max_workers)

    def condense(self, paths: Sequence[Path], delta: Optional[float] = None,
                 is_cancelled: Optional[Callable[[], bool]] = None) -> Path:
        """Merge ``paths`` greedily, most similar pair first.

        Args:
            paths: Paths to condense.
            delta: Common spacing; defaults to the matcher's delta, else the
                mean of the paths' average spacings.
            is_cancelled: Polled between merges and between pairs.

        Returns:
            The consensus path. A single input is returned unchanged.

        Raises:
            NoCommonAnchorError: If ``paths`` is empty.
            OperationCancelledError: If cancellation was requested.
        """
        if not paths:
            raise NoCommonAnchorError("Nothing to condense")
        if len(paths) == 1:
            return paths[0]

        if delta is None:
            delta = self.matcher.delta or float(np.mean([p.average_spacing() for p in paths]))
        if delta <= 0:
            raise InvalidInputError("Cannot condense paths without extent")
        matcher = self.matcher
        if matcher.delta != delta:
            matcher = replace(matcher, delta=delta)

        working: Dict[int, Path] = {
            k: p.resample(delta, keep_provenance=True).with_provenance()
            for k, p in enumerate(paths)
        }
        logger.info("Condensing %d paths at delta %g", len(working), delta)

        handles = list(working)
        matrix = score_matrix([working[k] for k in handles], matcher,
                              is_cancelled, self.max_workers)
        table: Dict[Tuple[int, int], float] = {
            (handles[r], handles[c]): float(matrix[r, c])
            for r in range(len(handles)) for c in range(r + 1, len(handles))
        }
        next_handle = len(paths)

        while len(working) > 1:
            if is_cancelled is not None and is_cancelled():
                raise OperationCancelledError("Condensation cancelled")
            (h1, h2), score = min(table.items(), key=lambda item: (item[1], item[0]))
            a = working.pop(h1)
            b = working.pop(h2)
            table = {pair: s for pair, s in table.items() if h1 not in pair and h2 not in pair}

            merged = merge_pair(a, b, matcher, delta, self.cut_uneven_ends)
            logger.debug("Merged #%d and #%d (score %.4g) into #%d", h1, h2, score, next_handle)

            remaining = list(working)
            scores = score_against(merged, [working[k] for k in remaining], matcher,
                                   is_cancelled, self.max_workers)
            for k, s in zip(remaining, scores):
                table[(k, next_handle)] = float(s)
            working[next_handle] = merged
            next_handle += 1

        (result,) = working.values()
        logger.info("Condensed into %d points from %d sources", len(result), result.source_count)
        return result


def condense(paths: Sequence[Path], delta: Optional[float] = None, cut_uneven_ends: bool = True,
             config: Optional[ComparisonConfig] = None,
             is_cancelled: Optional[Callable[[], bool]] = None) -> Path:
    """Merge ``paths`` into one consensus path; see Condenser.condense."""
    config = config or ComparisonConfig()
    condenser = Condenser(Matcher.from_config(config), cut_uneven_ends, config.max_workers)
    return condenser.condense(paths, delta, is_cancelled)


def get_std_dev_at_each_point(path: Path) -> np.ndarray:
    """Root mean squared distance from each point to its source points."""
    return path.std_dev_at_each_point()


def envelope_widths(path: Path, mode: EnvelopeMode) -> np.ndarray:
    """Per-point variability radius of a path carrying provenance.

    Args:
        path: Usually a condensed path.
        mode: 1x, 2x or 3x the standard deviation, or the mean or maximum
            distance to the source points.

    Raises:
        InvalidInputError: If the path carries no provenance.
    """
    mode = EnvelopeMode.parse(mode)
    if mode in (EnvelopeMode.STD_DEV_1, EnvelopeMode.STD_DEV_2, EnvelopeMode.STD_DEV_3):
        factor = {EnvelopeMode.STD_DEV_1: 1.0, EnvelopeMode.STD_DEV_2: 2.0,
                  EnvelopeMode.STD_DEV_3: 3.0}[mode]
        return path.std_dev_at_each_point() * factor
    distances: List[np.ndarray] = path.source_distances()
    reduce = np.mean if mode is EnvelopeMode.MEAN_DISTANCE else np.max
    return np.array([float(reduce(d)) if len(d) else 0.0 for d in distances])
