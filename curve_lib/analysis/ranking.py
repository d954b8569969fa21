"""Scoring and ordering of pairwise chain matches.

Every metric is oriented so that smaller values are better, which lets one
sort routine serve all of them. The combined score is a larger-is-better
linear fit and is inverted when used as a metric.

Two orderings are offered besides a plain sort:

* Two-stage sort: sort by a primary metric, drop entries past
  ``min_matches`` whose primary value exceeds 1.5x the best one, then
  re-sort the survivors by a secondary metric.
* Combined rank index: rank the matches under several metrics separately
  and sort by the sum of rank positions, for when no single metric is
  trusted on its own.

Example usage::

    from curve_lib.analysis.ranking import Ranker
    from curve_lib.config import Metric

    ranker = Ranker()
    matches = [ranker.make_match(query, ref, matcher.match(query.path, ref.path))
               for ref in references]
    ordered = ranker.sort(matches, Metric.AVG_PHYS_DIST, Metric.LEVENSHTEIN, min_matches=10)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

from ..config import COMBINED_SCORE_WEIGHTS, RANK_INDEX_METRICS, Metric
from ..domain.script import AlignmentScript
from .alignment import AlignmentStats
from .matching import BestMatch, combined_score, score_of

logger = logging.getLogger(__name__)

# Entries past min_matches are dropped above this multiple of the best value
ROOF_FACTOR = 1.5


@dataclass
class ChainMatch:
    """A query chain matched against one reference chain.

    ``query`` and ``reference`` are whatever the caller compares: chains or
    bare paths.
    """
    query: Any
    reference: Any
    script: AlignmentScript
    stats: AlignmentStats
    combined_score: float
    combined_weights: Tuple[float, ...] = COMBINED_SCORE_WEIGHTS

    def value(self, metric: Metric) -> float:
        """Value under ``metric``; smaller is better."""
        if metric is Metric.COMBINED:
            return 1.0 / self.combined_score if self.combined_score > 0 else float('inf')
        return score_of(self.stats, metric, self.combined_weights)


class Ranker:
    """Builds ChainMatch objects and orders them.

    Args:
        combined_weights: Coefficients of the combined score.
        index_metrics: Metrics whose rank positions are summed by
            rank_by_combined_index.
    """

    def __init__(self, combined_weights: Sequence[float] = COMBINED_SCORE_WEIGHTS,
                 index_metrics: Sequence[Metric] = RANK_INDEX_METRICS):
        self.combined_weights = tuple(combined_weights)
        self.index_metrics = tuple(index_metrics)

    def make_match(self, query, reference, best: BestMatch) -> ChainMatch:
        stats = best.stats
        return ChainMatch(
            query=query,
            reference=reference,
            script=best.script,
            stats=stats,
            combined_score=combined_score(stats.similarity, stats.distance,
                                          stats.median_distance, self.combined_weights),
            combined_weights=self.combined_weights,
        )

    def sort(self, matches: Sequence[ChainMatch], metric: Metric,
             secondary: Optional[Metric] = None, min_matches: int = 0) -> List[ChainMatch]:
        """Order matches by ``metric``, optionally in two stages.

        Args:
            matches: Matches to order; not modified.
            metric: Primary metric. COMBINED_SCORE_INDICES delegates to
                rank_by_combined_index.
            secondary: If given, the survivors of the roof filter are
                re-sorted by it.
            min_matches: Number of leading entries always kept.

        Returns:
            A new list, best first. Ties keep input order.
        """
        if metric is Metric.COMBINED_SCORE_INDICES:
            return self.rank_by_combined_index(matches)
        ordered = sorted(matches, key=lambda m: m.value(metric))
        if secondary is None or not ordered:
            return ordered

        roof = ordered[0].value(metric) * ROOF_FACTOR
        kept = ordered[:min_matches] + [
            m for m in ordered[min_matches:] if m.value(metric) <= roof
        ]
        logger.debug("Two-stage sort kept %d of %d matches (roof %.4g)",
                     len(kept), len(ordered), roof)
        if secondary is Metric.COMBINED_SCORE_INDICES:
            return self.rank_by_combined_index(kept)
        return sorted(kept, key=lambda m: m.value(secondary))

    def rank_by_combined_index(self, matches: Sequence[ChainMatch]) -> List[ChainMatch]:
        """Order matches by the sum of their rank positions under index_metrics."""
        totals = [0] * len(matches)
        for metric in self.index_metrics:
            order = sorted(range(len(matches)), key=lambda k: matches[k].value(metric))
            for position, k in enumerate(order):
                totals[k] += position
        ranked = sorted(range(len(matches)), key=lambda k: totals[k])
        return [matches[k] for k in ranked]
