"""Best-match search over orientations and windows of two paths.

The start point of an open trace is arbitrary: the same structure can be
traced from either end. The matcher therefore aligns all four combinations
of {a, reversed a} x {b, reversed b}, retries each from the center of its
longest mutation run, and keeps the alignment with the lowest score under
the selected metric. Closed paths need no orientation search; their
winding is normalized during resampling and the aligner searches their
start point.

In substring mode the shorter path is slid along the longer one and every
window is searched as above, for traces that cover only part of the
structure.

Example usage::

    from curve_lib.analysis.matching import Matcher
    from curve_lib.config import ComparisonConfig, Metric

    matcher = Matcher.from_config(ComparisonConfig(metric=Metric.PROXIMITY, delta=1.0))
    best = matcher.match(a, b)
    print(best.score, best.stats.similarity)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Iterator, Optional, Sequence, Tuple

from ..config import COMBINED_SCORE_WEIGHTS, ComparisonConfig, EditWeights, Metric
from ..domain.path import Path
from ..domain.script import AlignmentScript
from ..errors import InvalidInputError, NoCommonAnchorError
from .alignment import AlignmentStats, align, compute_statistics, recreate_from_center

logger = logging.getLogger(__name__)


def combined_score(similarity: float, distance: float, median: float,
                   weights: Sequence[float] = COMBINED_SCORE_WEIGHTS) -> float:
    """Linear combination of similarity, edit distance and median distance.

    Larger is better.
    """
    return similarity * weights[0] + distance * weights[1] + median * weights[2] + weights[3]


def score_of(stats: AlignmentStats, metric: Metric,
             combined_weights: Sequence[float] = COMBINED_SCORE_WEIGHTS) -> float:
    """Value of ``metric`` for one alignment. Smaller is better for every metric."""
    if metric is Metric.LEVENSHTEIN:
        return stats.distance
    if metric is Metric.DISSIMILARITY:
        return 1.0 - stats.similarity
    if metric is Metric.AVG_PHYS_DIST:
        return stats.mean_distance
    if metric is Metric.MEDIAN_PHYS_DIST:
        return stats.median_distance
    if metric is Metric.CUM_PHYS_DIST:
        return stats.cumulative_distance
    if metric is Metric.STD_DEV:
        return stats.std_dev
    if metric is Metric.STD_DEV_ALL:
        return stats.std_dev_all
    if metric is Metric.PROXIMITY:
        return stats.proximity
    if metric is Metric.PROXIMITY_MUT:
        return stats.proximity_mut
    if metric in (Metric.COMBINED, Metric.COMBINED_SCORE_INDICES):
        score = combined_score(stats.similarity, stats.distance, stats.median_distance,
                               combined_weights)
        return 1.0 / score if score > 0 else math.inf
    raise InvalidInputError(f"Unsupported metric: {metric!r}")


@dataclass
class BestMatch:
    """Winning alignment of a match search.

    Attributes:
        script: Alignment of the winning orientation/window.
        score: Value of ``metric`` for it (smaller is better).
        stats: Statistics of the alignment.
        metric: Metric the score was computed with.
    """
    script: AlignmentScript
    score: float
    stats: AlignmentStats
    metric: Metric


@dataclass
class Matcher:
    """Finds the best alignment between two paths.

    Attributes:
        delta: Common spacing; None uses the paths' own or mean spacing.
        weights: Edit weights.
        metric: Metric minimized by the search.
        skip_ends: Ignore uneven ends in statistics.
        max_mutation: Run length anchoring the end window and the
            gap tolerance of recreate_from_center.
        min_chunk: Minimum window share for skip_ends.
        direct_only: Only try (a, b) and (b, a) as given.
        substring_mode: Slide the shorter path over the longer one.
        combined_weights: Coefficients of the combined score.
    """
    delta: Optional[float] = None
    weights: EditWeights = field(default_factory=EditWeights)
    metric: Metric = Metric.COMBINED
    skip_ends: bool = False
    max_mutation: int = 5
    min_chunk: float = 0.5
    direct_only: bool = False
    substring_mode: bool = False
    combined_weights: Tuple[float, ...] = COMBINED_SCORE_WEIGHTS

    def __post_init__(self):
        self.weights.validate()
        if self.metric is Metric.COMBINED_SCORE_INDICES:
            # rank aggregation needs a set of matches; single pairs use the combined score
            logger.debug("Pairwise matching scores COMBINED_SCORE_INDICES as COMBINED")
            self.metric = Metric.COMBINED

    @classmethod
    def from_config(cls, config: ComparisonConfig, delta: Optional[float] = None) -> Matcher:
        return cls(
            delta=delta if delta is not None else (config.delta or None),
            weights=config.weights,
            metric=config.metric,
            skip_ends=config.skip_ends,
            max_mutation=config.max_mutation,
            min_chunk=config.min_chunk,
            direct_only=config.direct_only,
            substring_mode=config.substring_mode,
            combined_weights=config.combined_weights,
        )

    def common_delta(self, a: Path, b: Path) -> float:
        if self.delta:
            return self.delta
        for path in (a, b):
            if path.is_resampled:
                return path.delta
        spacing = (a.average_spacing() + b.average_spacing()) / 2
        if spacing <= 0:
            raise InvalidInputError("Cannot infer delta from paths without extent")
        return spacing

    def evaluate(self, script: AlignmentScript) -> BestMatch:
        stats = compute_statistics(script, self.skip_ends, self.max_mutation, self.min_chunk)
        return BestMatch(script, score_of(stats, self.metric, self.combined_weights),
                         stats, self.metric)

    def _align(self, a: Path, b: Path, delta: float) -> BestMatch:
        return self.evaluate(align(a, b, delta, self.weights))

    def _pairs(self, a: Path, b: Path) -> Iterator[Tuple[Path, Path]]:
        if self.direct_only or a.closed or b.closed:
            yield a, b
            yield b, a
            return
        a_rev = a.reversed()
        b_rev = b.reversed()
        yield a, b
        yield a_rev, b_rev
        yield a, b_rev
        yield a_rev, b

    def _search(self, a: Path, b: Path, delta: float) -> Optional[BestMatch]:
        best: Optional[BestMatch] = None
        for x, y in self._pairs(a, b):
            candidate = self._align(x, y, delta)
            if not self.direct_only:
                recreated = recreate_from_center(candidate.script, self.max_mutation)
                if recreated is not None:
                    retry = self.evaluate(recreated)
                    if retry.score < candidate.score:
                        candidate = retry
            if best is None or candidate.score < best.score:
                best = candidate
        return best

    def match(self, a: Path, b: Path) -> BestMatch:
        """Best-scoring alignment of ``a`` and ``b``.

        Raises:
            InvalidInputError: For paths that cannot be resampled or aligned.
            NoCommonAnchorError: If no alignment was produced.
        """
        delta = self.common_delta(a, b)
        a = a.resample(delta)
        b = b.resample(delta)

        if not self.substring_mode or len(a) == len(b):
            best = self._search(a, b, delta)
        else:
            best = self._search_substrings(a, b, delta)
        if best is None:
            raise NoCommonAnchorError("No alignment found between the two paths")
        logger.debug("Best match score %.6g (%s)", best.score, self.metric.name)
        return best

    def _search_substrings(self, a: Path, b: Path, delta: float) -> Optional[BestMatch]:
        swapped = len(a) > len(b)
        short, long_ = (b, a) if swapped else (a, b)
        best: Optional[BestMatch] = None
        for offset in range(len(long_) - len(short) + 1):
            window = long_.substring(offset, offset + len(short))
            candidate = self._search(window, short, delta) if swapped \
                else self._search(short, window, delta)
            if candidate is not None and (best is None or candidate.score < best.score):
                best = candidate
        return best


def find_best_match(a: Path, b: Path, delta: Optional[float] = None, *,
                    skip_ends: bool = False, max_mutation: int = 5, min_chunk: float = 0.5,
                    metric: Metric = Metric.COMBINED, direct_only: bool = False,
                    substring_mode: bool = False, weights: Optional[EditWeights] = None,
                    combined_weights: Sequence[float] = COMBINED_SCORE_WEIGHTS) -> BestMatch:
    """Best alignment of ``a`` and ``b`` over orientations (and windows).

    See Matcher for the meaning of the arguments.
    """
    matcher = Matcher(
        delta=delta,
        weights=weights or EditWeights(),
        metric=Metric.parse(metric),
        skip_ends=skip_ends,
        max_mutation=max_mutation,
        min_chunk=min_chunk,
        direct_only=direct_only,
        substring_mode=substring_mode,
        combined_weights=tuple(combined_weights),
    )
    return matcher.match(a, b)
