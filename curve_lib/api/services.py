"""Service layer for curve comparison.

This module strings the core steps together for callers that hold trace
hierarchies rather than bare paths: build chains, calibrate and resample
them, score them against each other, rank matches, and condense groups into
a consensus with a variability envelope. Results come with plain-value
representations suitable for exporters and JSON serialization.

The module contains:
    ComparisonService: Facade over chain building, matching, ranking and
        condensation driven by one ComparisonConfig.
    ScoreTable: All-to-all score matrix plus the chain names exporters need.
    VariabilityResult: Consensus path with per-point variability.

Example usage:
    All-to-all comparison of two traced specimens::

        from curve_lib.api import ComparisonService
        from curve_lib.config import ComparisonConfig, Metric

        service = ComparisonService(ComparisonConfig(metric=Metric.PROXIMITY))
        chains, delta = service.gather_chains([source_a, source_b])
        table = service.compare_all_to_all(chains)
        print(table.short_titles, table.matrix)

    Ranking references for one query::

        matches = service.rank_matches(chains[0], chains[1:])
        best = matches[0]
        print(best.reference.cell_title, best.stats.mean_distance)
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..analysis.all_pairs import score_matrix
from ..analysis.chains import ChainBuilder
from ..analysis.condense import Condenser, envelope_widths
from ..analysis.matching import Matcher
from ..analysis.ranking import ChainMatch, Ranker
from ..config import ComparisonConfig
from ..domain.chain import Chain, TraceSource
from ..domain.path import Path
from ..errors import NoCommonAnchorError, OperationCancelledError

# Logger for service progress
_logger = logging.getLogger(__name__)


@dataclass
class ScoreTable:
    """All-to-all scores with the names exporters label them with."""
    matrix: np.ndarray
    titles: List[str]
    short_titles: List[str]
    cell_titles: List[str]
    colors: List[Optional[Tuple[int, int, int]]]
    root_ids: List[int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'matrix': self.matrix.tolist(),
            'titles': list(self.titles),
            'short_titles': list(self.short_titles),
            'cell_titles': list(self.cell_titles),
            'colors': [list(c) if c is not None else None for c in self.colors],
            'root_ids': list(self.root_ids),
        }


@dataclass
class VariabilityResult:
    """Consensus of a group of paths and its spread at every point."""
    consensus: Path
    std_devs: np.ndarray
    widths: np.ndarray

    def to_dict(self) -> Dict[str, Any]:
        return {
            'points': self.consensus.points.tolist(),
            'closed': self.consensus.closed,
            'source_count': self.consensus.source_count,
            'std_devs': self.std_devs.tolist(),
            'widths': self.widths.tolist(),
        }


@dataclass
class ComparisonService:
    """High-level curve comparison driven by one configuration.

    Attributes:
        config: Options for every step. ``config.delta == 0`` lets
            gather_chains pick the mean spacing of the gathered chains.
    """
    config: ComparisonConfig = field(default_factory=ComparisonConfig)

    def _matcher(self, delta: Optional[float] = None) -> Matcher:
        return Matcher.from_config(self.config, delta)

    def gather_chains(self, sources: Sequence[TraceSource],
                      is_cancelled: Optional[Callable[[], bool]] = None) -> Tuple[List[Chain], float]:
        """Build, calibrate and resample the chains of all sources.

        Args:
            sources: Trace hierarchies to walk.
            is_cancelled: Polled once per chain-building frame and per chain.

        Returns:
            Tuple of (chains with resampled paths, delta used).

        Raises:
            NoCommonAnchorError: If no source yields any chain.
            OperationCancelledError: If cancellation was requested.
        """
        builder = ChainBuilder(self.config.exclude_pattern)
        chains: List[Chain] = []
        for source in sources:
            built = builder.build_chains(source.root, source.title, is_cancelled)
            for chain in built:
                calibration = chain.root.calibration or chain.path.calibration or source.calibration
                if calibration is not None and not chain.path.is_calibrated:
                    chain.path = chain.path.calibrated(calibration)
            chains.extend(built)
        if not chains:
            raise NoCommonAnchorError("No chains found in the given sources")

        delta = self.config.delta
        if not delta:
            delta = float(np.mean([c.path.average_spacing() for c in chains]))
            _logger.info("Using average spacing %g as delta", delta)
        for chain in chains:
            if is_cancelled is not None and is_cancelled():
                raise OperationCancelledError("Chain gathering cancelled")
            chain.path = chain.path.resample(delta, self.config.keep_provenance,
                                             self.config.smooth_sigma)
        _logger.info("Gathered %d chains from %d sources", len(chains), len(sources))
        return chains, delta

    def compare_all_to_all(self, chains: Sequence[Chain],
                           is_cancelled: Optional[Callable[[], bool]] = None) -> ScoreTable:
        """Score every chain against every other one."""
        matrix = score_matrix([c.path for c in chains], self._matcher(), is_cancelled,
                              self.config.max_workers)
        return ScoreTable(
            matrix=matrix,
            titles=[c.long_title for c in chains],
            short_titles=[c.short_title for c in chains],
            cell_titles=[c.cell_title for c in chains],
            colors=[c.color for c in chains],
            root_ids=[c.root_id for c in chains],
        )

    def rank_matches(self, query: Chain, references: Sequence[Chain],
                     is_cancelled: Optional[Callable[[], bool]] = None) -> List[ChainMatch]:
        """Match ``query`` against each reference and order the matches.

        The order follows config.metric, with the two-stage sort when
        config.secondary_metric is set.
        """
        matcher = self._matcher()
        ranker = Ranker(self.config.combined_weights, self.config.rank_index_metrics)
        matches = []
        for reference in references:
            if is_cancelled is not None and is_cancelled():
                raise OperationCancelledError("Ranking cancelled")
            if reference is query:
                continue
            best = matcher.match(query.path, reference.path)
            matches.append(ranker.make_match(query, reference, best))
        return ranker.sort(matches, self.config.metric, self.config.secondary_metric,
                           self.config.min_matches)

    def variability(self, paths: Sequence[Path],
                    is_cancelled: Optional[Callable[[], bool]] = None) -> VariabilityResult:
        """Condense ``paths`` and measure the spread of its sources."""
        if not paths:
            raise NoCommonAnchorError("No paths to condense")
        condenser = Condenser.from_config(self.config)
        # a single input comes back as given, possibly without provenance
        consensus = condenser.condense(paths, self.config.delta or None, is_cancelled).with_provenance()
        return VariabilityResult(
            consensus=consensus,
            std_devs=consensus.std_dev_at_each_point(),
            widths=envelope_widths(consensus, self.config.envelope_mode),
        )
