"""Curve Comparison Package.

Morphometric comparison of traced curves: the same biological structure
traced in different specimens is normalized, aligned, ranked and merged
into a consensus with a per-point variability estimate.

Architecture Overview:
    The package is layered from value objects up to a service facade:

    - curve_lib.domain holds the data: Path, AlignmentScript, TraceNode, Chain
    - curve_lib.analysis holds the algorithms operating on them
    - curve_lib.api offers ComparisonService for whole workflows
    - curve_lib.config and curve_lib.errors are shared by all layers

    Data flows from trace hierarchies to chains (ChainBuilder), through the
    resampler to uniform spacing, into pairwise alignments (Matcher), which
    are ranked (Ranker) or merged into a consensus (Condenser).

The package is organized into the following modules:
    domain: Path, Calibration, Provenance, alignment scripts, trace nodes
        and chains.
    analysis: Resampling, alignment, matching, chain building, ranking,
        all-pairs scoring, condensation and morphing.
    api: Service layer combining the analysis steps.
    utils: Geometry helpers and logging setup.
    config: Metrics, edit weights and the comparison configuration.
    errors: Exception hierarchy.

Example usage:
    Aligning two traces::

        from curve_lib import Path, find_best_match

        a = Path([(0, 0), (4, 1), (8, 0), (12, 2)])
        b = Path([(12, 2.5), (8, 0.5), (4, 1.5), (0, 0.5)])
        best = find_best_match(a, b, delta=1.0)
        print(best.score, best.stats.similarity)

    Building a consensus::

        from curve_lib import condense

        consensus = condense([a, b], delta=1.0)
        print(consensus.source_count, consensus.std_dev_at_each_point())

Attributes:
    __version__ (str): Package version string.
    __all__ (list): List of public symbols exported by this package.
"""

from .analysis import (
    ChainBuilder,
    ChainMatch,
    Condenser,
    Matcher,
    Ranker,
    Resampler,
    align,
    build_chains,
    condense,
    envelope_widths,
    find_best_match,
    resample,
    score_matrix,
)
from .api import ComparisonService
from .config import ComparisonConfig, EditWeights, EnvelopeMode, Metric
from .domain import AlignmentScript, Calibration, Chain, EditKind, Path, TraceNode, TraceSource
from .errors import (
    CurveCompareError,
    InvalidInputError,
    NoCommonAnchorError,
    NoFeasibleAlignmentError,
    OperationCancelledError,
)

__all__ = [
    # Domain objects
    'Path', 'Calibration', 'AlignmentScript', 'EditKind', 'TraceNode', 'TraceSource', 'Chain',
    # Algorithms
    'Resampler', 'resample', 'align', 'Matcher', 'find_best_match', 'ChainBuilder',
    'build_chains', 'Ranker', 'ChainMatch', 'score_matrix', 'Condenser', 'condense',
    'envelope_widths',
    # Configuration
    'ComparisonConfig', 'EditWeights', 'Metric', 'EnvelopeMode',
    # Services
    'ComparisonService',
    # Errors
    'CurveCompareError', 'InvalidInputError', 'NoFeasibleAlignmentError',
    'NoCommonAnchorError', 'OperationCancelledError',
]

__version__ = '1.0.0'
