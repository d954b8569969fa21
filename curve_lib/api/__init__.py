"""API layer for curve comparison.

This module provides the service layer, offering one entry point per
workflow on top of the analysis modules: gathering chains from trace
hierarchies, all-to-all scoring, ranking matches for a query, and
condensing a group into a consensus with a variability envelope.

The module exports:
    ComparisonService: Facade driven by a ComparisonConfig.
    ScoreTable: Score matrix plus chain names for exporters.
    VariabilityResult: Consensus path with per-point spread.

Example usage::

    from curve_lib.api import ComparisonService

    service = ComparisonService()
    chains, delta = service.gather_chains(sources)
    table = service.compare_all_to_all(chains)
"""

from .services import ComparisonService, ScoreTable, VariabilityResult

__all__ = ['ComparisonService', 'ScoreTable', 'VariabilityResult']
