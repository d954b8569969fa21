"""Curve comparison algorithms.

Modules:
    resampling: Uniform re-parameterization of paths.
    alignment: Edit-distance alignment and its statistics.
    matching: Best match over orientations and windows.
    chains: Chain construction from trace hierarchies.
    ranking: Ordering of matches by one or more metrics.
    all_pairs: Parallel all-to-all score matrix.
    condense: Consensus by greedy nearest-pair merging.
    morph: Interpolation between aligned paths.
"""

from .alignment import AlignmentStats, align, compute_statistics, recreate_from_center
from .all_pairs import score_against, score_matrix
from .chains import ChainBuilder, build_chains, has_path_descendants
from .condense import Condenser, condense, envelope_widths, get_std_dev_at_each_point, merge_pair
from .matching import BestMatch, Matcher, combined_score, find_best_match, score_of
from .morph import interpolate_points, interpolate_vectors, morph, morph_series
from .ranking import ChainMatch, Ranker
from .resampling import Resampler, resample

__all__ = [
    'Resampler', 'resample',
    'align', 'compute_statistics', 'recreate_from_center', 'AlignmentStats',
    'Matcher', 'BestMatch', 'find_best_match', 'score_of', 'combined_score',
    'ChainBuilder', 'build_chains', 'has_path_descendants',
    'Ranker', 'ChainMatch',
    'score_matrix', 'score_against',
    'Condenser', 'condense', 'merge_pair', 'envelope_widths', 'get_std_dev_at_each_point',
    'interpolate_points', 'interpolate_vectors', 'morph', 'morph_series',
]
